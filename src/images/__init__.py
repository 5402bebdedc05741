"""Caricature generation: process runner, retry orchestrator, generator process."""

from rogerthat.images.orchestrator import ImageOrchestrator
from rogerthat.images.runner import CaricatureScriptRunner, ImageBatchResult

__all__ = ["CaricatureScriptRunner", "ImageBatchResult", "ImageOrchestrator"]
