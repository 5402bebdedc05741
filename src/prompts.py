"""Default prompt text.

Generation prompts are seeded into the settings table (admins edit them
there); the caricature prompts are used directly by the image process.
"""

from __future__ import annotations

from rogerthat.config import (
    CELEBRITIES_SYSTEM_PROMPT,
    CELEBRITIES_USER_PROMPT,
    PUZZLE_SYSTEM_PROMPT,
    PUZZLE_USER_PROMPT,
    RELATIONSHIPS_SYSTEM_PROMPT,
    RELATIONSHIPS_USER_PROMPT,
)

EXCLUDED_NAMES_TOKEN = "[INSERT_EXCLUDED_NAMES_HERE]"
CELEBRITY_NAMES_TOKEN = "[INSERT_CELEBRITY_NAMES_HERE]"
GAME_DATE_TOKEN = "[GAME_DATE]"

_TAGLINE_RULES = """\
TAGLINE RULES
- Short, witty, cheeky: 2-7 words
- About career, vibe, reputation or public persona only
- NEVER reference relationships, dating, exes, or the answer
- No boring literal job titles
"""

_VERIFICATION_RULES = """\
A relationship counts ONLY if it was explicitly described as dating, engaged
or married in Wikipedia, major news outlets or confirmed interviews. Rumours,
"linked to", "spotted with", co-starring and social media follows do not count.
Never include anyone who was under 18 at the time.
"""

CELEBRITIES_SYSTEM = f"""\
You are a meticulous celebrity relationship researcher for "Roger That", a
daily pop culture trivia game. Accuracy is mandatory; creativity applies only
to taglines.

Generate up to 10 well-known male public figures who each have AT LEAST 5
publicly confirmed romantic relationships with other well-known people.

{_VERIFICATION_RULES}
Mix professions, decades and countries. Do not default to Hollywood actors.
Names must match their primary Wikipedia page title; birth years must be
accurate four-digit years. If you can only confidently produce 8, stop at 8.

{_TAGLINE_RULES}
OUTPUT: only a JSON array of objects
[{{"name": "Full Name", "birth_year": 1970, "gender": "male", "tagline": "..."}}]
No commentary, no markdown.
"""

CELEBRITIES_USER = f"""\
Generate a list of 10 male celebrities with 5+ verified romantic relationships.

EXCLUSION LIST - DO NOT INCLUDE:
{EXCLUDED_NAMES_TOKEN}

Return only the JSON array.
"""

RELATIONSHIPS_SYSTEM = f"""\
You are a celebrity relationship fact-checker for "Roger That". For each male
celebrity provided, list ALL publicly confirmed romantic partners who are
themselves public figures.

{_VERIFICATION_RULES}
{_TAGLINE_RULES}
OUTPUT: only JSON in this structure
[{{"celebrity_name": "Full Name", "relationships": [
  {{"name": "Full Name", "birth_year": 1975, "gender": "female", "tagline": "..."}}
]}}]
No commentary, no markdown.
"""

RELATIONSHIPS_USER = f"""\
Retrieve verified romantic relationships for these celebrities:
{CELEBRITY_NAMES_TOKEN}

Do not include any of these people as partners:
{EXCLUDED_NAMES_TOKEN}

Return only the JSON.
"""

PUZZLE_SYSTEM = f"""\
You are a meticulous celebrity relationship researcher for "Roger That", a
daily trivia game where players guess the celebrity connecting four partners.

Pick ONE well-known male celebrity (the answer) with AT LEAST 4 verifiable
romantic relationships, then exactly 4 of those partners. For each partner
give a citation URL from a reputable source confirming the relationship.

{_VERIFICATION_RULES}
Avoid figures likely to be blocked by image moderation: teen idols, active
politicians, people in ongoing high-profile legal cases, the recently deceased
and religious leaders.

{_TAGLINE_RULES}
OUTPUT: only one JSON object
{{"answer": {{"name": "Full Name", "birth_year": 1970, "gender": "male", "tagline": "..."}},
 "relationships": [{{"name": "Full Name", "birth_year": 1975, "gender": "female",
   "tagline": "...", "citation": "https://..."}}]}}
Exactly 4 relationships. No commentary, no markdown.
"""

PUZZLE_USER = f"""\
Today is {GAME_DATE_TOKEN}. Generate one daily puzzle using the rules above.

Do NOT use any of the following as the answer (used recently):
{EXCLUDED_NAMES_TOKEN}

If your first choice breaks any rule, silently choose someone else.
"""

DEFAULT_SETTINGS: dict[str, str] = {
    CELEBRITIES_SYSTEM_PROMPT: CELEBRITIES_SYSTEM,
    CELEBRITIES_USER_PROMPT: CELEBRITIES_USER,
    RELATIONSHIPS_SYSTEM_PROMPT: RELATIONSHIPS_SYSTEM,
    RELATIONSHIPS_USER_PROMPT: RELATIONSHIPS_USER,
    PUZZLE_SYSTEM_PROMPT: PUZZLE_SYSTEM,
    PUZZLE_USER_PROMPT: PUZZLE_USER,
}


def format_names(names: list[str]) -> str:
    """Comma-separated names, or ``(none)`` so the prompt never has a blank slot."""
    return ", ".join(names) if names else "(none)"


# ---------------------------------------------------------------------------
# Caricature prompts
# ---------------------------------------------------------------------------

_CARICATURE_PRIMARY = """\
Brief: editorial illustration, digital art.

STYLE: a classic magazine caricature with a warm colour palette and playfully
exaggerated proportions, clearly hand-illustrated, never photographic.

SUBJECT: a single caricature character inspired by the widely recognised public
image of {name}. Amplify their most identifiable traits: facial geometry,
signature hairstyle, characteristic wardrobe.

FRAMING: full head, hair and face inside the canvas; head-and-shoulders or
three-quarter view; one fully clothed character in a relaxed pose. Fill the
background edge to edge with abstract shapes or generic props from their field.

TONE: respectful, lighthearted, suitable for all ages.
"""

_CARICATURE_ALTERNATE = """\
Brief: editorial illustration, digital art.

Create one stylized caricature in the tradition of newspaper cartoon art,
inspired by the public image of {name}. Exaggerate distinctive features the way
a cartoonist would. It must read unmistakably as a cartoon, never as a
photograph or realistic portrait.

Head-and-shoulders framing with nothing cropped. One fully clothed character,
neutral editorial pose. Background fills the whole canvas and must not depict
real events, legal matters or identifiable locations.

Render as: editorial caricature, non-photorealistic, stylized cartoon,
exaggerated proportions, safe for all audiences.
"""


def caricature_prompt(name: str, variant: int = 1) -> str:
    """Image prompt for *name*; variant 2 is reworded to pass moderation more often."""
    template = _CARICATURE_PRIMARY if variant == 1 else _CARICATURE_ALTERNATE
    return template.format(name=name)
