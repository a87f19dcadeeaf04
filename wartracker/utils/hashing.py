"""Hashing utilities."""

import hashlib
import re
import uuid

_WHITESPACE = re.compile(r"\s+")


def generate_article_id(url: str) -> str:
    """Deterministic article ID: the same URL always maps to the same UUID."""
    return str(uuid.uuid5(uuid.NAMESPACE_URL, url.strip()))


def normalize_for_hash(text: str) -> str:
    """Lowercase and collapse whitespace so cosmetic changes do not alter the hash."""
    return _WHITESPACE.sub(" ", text or "").strip().lower()


def compute_content_hash(title: str, content: str) -> str:
    """SHA-256 hex digest of normalized title and content."""
    payload = normalize_for_hash(title) + "\n" + normalize_for_hash(content)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()
