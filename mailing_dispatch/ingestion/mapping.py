"""Column mapping heuristics and sanitisation."""
from __future__ import annotations

import logging
import re
import unicodedata
from typing import List, Optional, Sequence

from ..config import DEFAULT_SETTINGS, IngestionSettings
from ..models import MAPPING_FIELDS, ColumnMapping

LOGGER = logging.getLogger(__name__)

NAME_TOKENS = ("nome", "name", "cliente", "client", "customer", "pessoa", "contato", "contact", "razao social", "nombre")
PHONE_TOKENS = ("telefone", "phone", "celular", "fone", "mobile", "whatsapp", "tel", "cel", "numero", "number", "movil")

_PHONE_PUNCTUATION = re.compile(r"[\s+().\-/]")
_HEADER_SPLIT = re.compile(r"[^a-z0-9]+")


def _fold(text: str) -> str:
    decomposed = unicodedata.normalize("NFKD", text or "")
    return "".join(char for char in decomposed if not unicodedata.combining(char)).lower().strip()


def _header_matches(header: str, tokens: Sequence[str]) -> bool:
    folded = _fold(header)
    if not folded:
        return False
    words = [word for word in _HEADER_SPLIT.split(folded) if word]
    joined = " ".join(words)
    for token in tokens:
        if " " in token:
            if token in joined:
                return True
            continue
        for word in words:
            if word == token or word.startswith(token) and len(token) >= 4:
                return True
    return False


def looks_like_phone(value: str, *, min_digits: int = 8, max_digits: int = 13) -> bool:
    """``True`` for values that are digits after dropping common phone punctuation."""

    stripped = _PHONE_PUNCTUATION.sub("", value or "")
    return stripped.isdigit() and min_digits <= len(stripped) <= max_digits


def phone_ratio(values: Sequence[str], settings: IngestionSettings = DEFAULT_SETTINGS.ingestion) -> float:
    filled = [value for value in values if value and value.strip()]
    if not filled:
        return 0.0
    hits = sum(
        1
        for value in filled
        if looks_like_phone(value, min_digits=settings.phone_min_digits, max_digits=settings.phone_max_digits)
    )
    return hits / len(filled)


def suggest_mapping(
    headers: Sequence[str],
    body_rows: Sequence[Sequence[str]],
    *,
    settings: IngestionSettings = DEFAULT_SETTINGS.ingestion,
) -> ColumnMapping:
    """Guess the ``name`` and ``phone`` columns; extras are never suggested.

    The phone column is the one whose sampled values most often look like
    phone numbers (a phone-like header adds a bonus). The name column is the
    leftmost name-like header, else the leftmost column that is not the phone
    column. Ties always go to the leftmost column.
    """

    sample = body_rows[: settings.sample_rows]
    phone_index: Optional[int] = None
    best_score = 0.0

    for index, header in enumerate(headers):
        values = [row[index] if index < len(row) else "" for row in sample]
        ratio = phone_ratio(values, settings)
        header_hit = _header_matches(header, PHONE_TOKENS)
        eligible = ratio >= settings.phone_value_ratio or (header_hit and ratio > 0)
        score = ratio + (0.5 if header_hit else 0.0)
        LOGGER.debug("Column %s (%r): phone ratio %.2f, header match %s", index, header, ratio, header_hit)
        if eligible and score > best_score:
            best_score = score
            phone_index = index

    name_index: Optional[int] = None
    for index, header in enumerate(headers):
        if index != phone_index and _header_matches(header, NAME_TOKENS):
            name_index = index
            break
    if name_index is None:
        for index in range(len(headers)):
            if index != phone_index:
                name_index = index
                break

    return ColumnMapping(name=name_index, phone=phone_index)


def sanitize_mapping(mapping: ColumnMapping, column_count: int) -> ColumnMapping:
    """Drop fields whose index is negative or not below ``column_count``."""

    cleaned = {}
    dropped: List[str] = []
    for field_name in MAPPING_FIELDS:
        index = mapping.get(field_name)
        if index is None:
            cleaned[field_name] = None
        elif 0 <= index < column_count:
            cleaned[field_name] = index
        else:
            cleaned[field_name] = None
            dropped.append(f"{field_name}={index}")
    if dropped:
        LOGGER.warning("Dropped out-of-range column mapping entries: %s", ", ".join(dropped))
    return ColumnMapping(**cleaned)


__all__ = [
    "NAME_TOKENS",
    "PHONE_TOKENS",
    "looks_like_phone",
    "phone_ratio",
    "suggest_mapping",
    "sanitize_mapping",
]
