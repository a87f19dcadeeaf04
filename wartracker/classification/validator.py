"""Validation of model output.

Model replies are untrusted. They are reduced to the first JSON object in the
text and run through ``validate_extraction``, which yields either a typed
``ExtractedEvent`` or a list of errors. Coordinates are the one exception to
whole-object rejection: a bad latitude or longitude is dropped to null.
"""

import json
import math
from typing import Any, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..models import EventType, ThreatLevel


def _alias(name: str) -> AliasChoices:
    """Accept both snake_case and camelCase spellings of a field."""
    head, *rest = name.split("_")
    camel = head + "".join(part.capitalize() for part in rest)
    return AliasChoices(name, camel)


class ExtractedEvent(BaseModel):
    """Event fields as reported by the model, after validation."""

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    event_type: EventType = Field(..., validation_alias=_alias("event_type"))
    country: str = Field(..., min_length=2)
    region: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    casualties: Optional[int] = Field(None, ge=0)
    weapons_used: Optional[List[str]] = Field(None, validation_alias=_alias("weapons_used"))
    source_country: Optional[str] = Field(None, validation_alias=_alias("source_country"))
    target_country: Optional[str] = Field(None, validation_alias=_alias("target_country"))
    confidence: float = Field(..., ge=0, le=100)
    threat_level: ThreatLevel = Field(..., validation_alias=_alias("threat_level"))

    @field_validator("event_type", "threat_level", mode="before")
    @classmethod
    def lowercase_enum(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator("region", "source_country", "target_country", mode="before")
    @classmethod
    def optional_text(cls, v: Any) -> Optional[str]:
        if not isinstance(v, str) or not v.strip():
            return None
        return v

    @field_validator("latitude", "longitude", mode="before")
    @classmethod
    def numeric_or_null(cls, v: Any) -> Optional[float]:
        if isinstance(v, bool) or v is None:
            return None
        if isinstance(v, str):
            try:
                v = float(v)
            except ValueError:
                return None
        if not isinstance(v, (int, float)) or not math.isfinite(v):
            return None
        return float(v)

    @field_validator("latitude", mode="after")
    @classmethod
    def latitude_in_range(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and not -90 <= v <= 90:
            return None
        return v

    @field_validator("longitude", mode="after")
    @classmethod
    def longitude_in_range(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and not -180 <= v <= 180:
            return None
        return v

    @field_validator("weapons_used", mode="before")
    @classmethod
    def weapons_list(cls, v: Any) -> Optional[List[str]]:
        if not isinstance(v, list):
            return None
        weapons = [w.strip() for w in v if isinstance(w, str) and w.strip()]
        return weapons or None

    @field_validator("confidence", mode="before")
    @classmethod
    def confidence_is_number(cls, v: Any) -> Any:
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            raise ValueError("confidence must be a number")
        return v


class ValidationResult(BaseModel):
    """Either a validated event or the reasons it was rejected."""

    event: Optional[ExtractedEvent] = None
    errors: List[str] = Field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return self.event is not None and not self.errors


def validate_extraction(payload: Any) -> ValidationResult:
    """Check a parsed model reply against the event schema."""
    if not isinstance(payload, dict):
        return ValidationResult(errors=["response is not a JSON object"])

    try:
        event = ExtractedEvent.model_validate(payload)
    except ValidationError as e:
        errors = []
        for error in e.errors():
            location = ".".join(str(part) for part in error["loc"]) or "response"
            errors.append(f"{location}: {error['msg']}")
        return ValidationResult(errors=errors)

    return ValidationResult(event=event)


def extract_json_object(text: str) -> Optional[str]:
    """
    Return the first balanced ``{...}`` block in ``text``.

    Braces inside JSON strings are ignored, so prose before or after the
    object and markdown code fences around it do not matter.
    """
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for index in range(start, len(text)):
            char = text[index]
            if in_string:
                if escaped:
                    escaped = False
                elif char == "\\":
                    escaped = True
                elif char == '"':
                    in_string = False
            elif char == '"':
                in_string = True
            elif char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    return text[start : index + 1]
        start = text.find("{", start + 1)
    return None


def parse_json_object(text: str) -> Optional[dict]:
    """First JSON object in ``text`` that actually parses, else None."""
    remaining = text
    while True:
        candidate = extract_json_object(remaining)
        if candidate is None:
            return None
        try:
            payload = json.loads(candidate)
        except json.JSONDecodeError:
            # Skip past the opening brace and look for another object
            remaining = remaining[remaining.find(candidate) + 1 :]
            continue
        if isinstance(payload, dict):
            return payload
        remaining = remaining[remaining.find(candidate) + 1 :]
