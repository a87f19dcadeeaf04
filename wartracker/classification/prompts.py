"""Extraction prompt for conflict event classification."""

from ..models import Article
from ..policy import EVENT_TYPES, THREAT_LEVELS

NO_EVENT = "NO_EVENT"
MAX_PROMPT_CONTENT = 1000


def _choices(values) -> str:
    return " | ".join(f"'{v}'" for v in values)


def build_extraction_prompt(article: Article) -> str:
    """Render the fixed extraction prompt for one article."""
    content = article.content.strip()[:MAX_PROMPT_CONTENT]

    return f"""You are a military intelligence analyst. Decide whether this news article reports a concrete conflict event and, if it does, extract it as JSON.

Fields:
- event_type: {_choices(EVENT_TYPES)}
- country: string (primary location)
- region: string | null (state, province or oblast)
- latitude: number | null (ONLY if specific coordinates are known, otherwise null)
- longitude: number | null (ONLY if specific coordinates are known, otherwise null)
- casualties: integer | null (deaths and injuries)
- weapons_used: string[] | null (weapons or equipment)
- source_country: string | null (attacking country)
- target_country: string | null (defending country)
- confidence: number (0-100, how certain you are that this is a real conflict event)
- threat_level: {_choices(THREAT_LEVELS)}

If the article does not report a conflict event, reply with exactly: {NO_EVENT}

Otherwise return ONLY the JSON object, no explanatory text.

Article: "{article.title.strip()}"
Source: {article.source}
Content: "{content}"
"""
