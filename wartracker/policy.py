"""Shared keyword and classification policy.

The normalizer pre-filter, the classification prompt and any display-side
filter all read from this module so that what is fetched, what is sent to the
model and what is shown stay in step. Bump ``POLICY_VERSION`` whenever a list
below changes.
"""

import re
from typing import Iterable, List

POLICY_VERSION = "3"

# Minimum model confidence for an extraction to become a WarEvent.
CONFIDENCE_THRESHOLD = 60

EVENT_TYPES = ("airstrike", "humanitarian", "cyberattack", "diplomatic")
THREAT_LEVELS = ("low", "medium", "high", "critical")

WAR_KEYWORDS = (
    # Conflict vocabulary
    "war",
    "military",
    "conflict",
    "attack",
    "strike",
    "airstrike",
    "missile",
    "drone",
    "artillery",
    "bomb",
    "shelling",
    "casualt",
    "invasion",
    "offensive",
    "weapon",
    "troop",
    "soldier",
    "army",
    "navy",
    "air force",
    "battle",
    "combat",
    "fighting",
    "assault",
    "siege",
    "occupation",
    "frontline",
    "ceasefire",
    "armistice",
    "nuclear",
    "terroris",
    "insurgen",
    "militant",
    "hostage",
    "refugee",
    "humanitarian",
    "cyberattack",
    "sanction",
    # Countries and regions
    "ukraine",
    "russia",
    "gaza",
    "israel",
    "palestin",
    "lebanon",
    "hezbollah",
    "hamas",
    "syria",
    "iran",
    "yemen",
    "houthi",
    "sudan",
    "taiwan",
    "north korea",
)

# Keywords match at the start of a word so that "troop" catches "troops" while
# "war" does not catch "award".
_KEYWORD_PATTERN = re.compile(
    r"\b(" + "|".join(re.escape(k) for k in sorted(WAR_KEYWORDS, key=len, reverse=True)) + r")",
    re.IGNORECASE,
)


def match_keywords(*texts: str) -> List[str]:
    """Return the distinct policy keywords found in the given texts, in list order."""
    found = set()
    for text in texts:
        if not text:
            continue
        for match in _KEYWORD_PATTERN.finditer(text):
            found.add(match.group(1).lower())
    return [k for k in WAR_KEYWORDS if k in found]


def is_war_related(title: str, content: str = "") -> bool:
    """Cheap heuristic gate; not the authoritative classification."""
    return bool(match_keywords(title, content))


def matches_policy(items: Iterable[dict], title_key: str = "title", content_key: str = "content") -> List[dict]:
    """Filter dict rows (e.g. for display) with the same rule as the ingestion pre-filter."""
    return [
        item for item in items
        if is_war_related(item.get(title_key) or "", item.get(content_key) or "")
    ]
