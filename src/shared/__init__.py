"""Cross-cutting pieces: errors, JSON repair, text generation."""
