"""Apply a confirmed column mapping to body rows and produce contacts."""
from __future__ import annotations

import logging
import re
import unicodedata
from typing import Dict, Iterator, List, Optional, Sequence

from ..config import DEFAULT_SETTINGS, IngestionSettings
from ..models import ColumnMapping, Contact
from .mapping import sanitize_mapping

LOGGER = logging.getLogger(__name__)

_NON_DIGITS = re.compile(r"\D")


def normalize_phone(
    value: Optional[str],
    *,
    add_country_code: bool = False,
    settings: IngestionSettings = DEFAULT_SETTINGS.ingestion,
) -> Optional[str]:
    """Strip everything but digits and optionally prepend the country prefix.

    The prefix is only added to numbers that do not already start with it and
    whose length is in the plausible local range, so applying this twice is
    the same as applying it once.
    """

    if value is None:
        return None
    digits = _NON_DIGITS.sub("", str(value))
    if not digits:
        return None
    prefix = settings.country_prefix
    if (
        add_country_code
        and prefix
        and not digits.startswith(prefix)
        and settings.local_min_digits <= len(digits) <= settings.local_max_digits
    ):
        digits = prefix + digits
    return digits


def phone_lookup_candidates(phone: str, *, country_prefix: str = "55") -> List[str]:
    """Digit strings under which a stored contact may match an incoming number."""

    digits = _NON_DIGITS.sub("", phone or "")
    candidates = [digits] if digits else []
    if country_prefix and digits.startswith(country_prefix) and len(digits) > 11:
        candidates.append(digits[len(country_prefix):])
    if digits.startswith("0"):
        stripped = digits.lstrip("0")
        if stripped:
            candidates.append(stripped)
    # local numbers may have been stored with the prefix
    for candidate in list(candidates):
        if country_prefix and not candidate.startswith(country_prefix) and 8 <= len(candidate) <= 11:
            candidates.append(country_prefix + candidate)
    unique: List[str] = []
    for candidate in candidates:
        if candidate not in unique:
            unique.append(candidate)
    return unique


def _clean_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _cell(row: Sequence[str], index: Optional[int]) -> Optional[str]:
    if index is None or index < 0 or index >= len(row):
        return None
    return row[index]


def normalize_contacts(
    body_rows: Sequence[Sequence[str]],
    mapping: ColumnMapping,
    add_country_code: bool = False,
    headers: Sequence[str] = (),
    *,
    settings: IngestionSettings = DEFAULT_SETTINGS.ingestion,
) -> List[Contact]:
    """Build one :class:`Contact` per body row using ``mapping``.

    Never raises on bad cells: missing or blank values become ``None``. Rows
    without a usable phone are kept so callers can decide what to discard.
    When ``headers`` is given the mapping is sanitised against its width.
    """

    if headers:
        mapping = sanitize_mapping(mapping, len(headers))
    extras = list(mapping.extras())

    contacts: List[Contact] = []
    for row_index, row in enumerate(body_rows):
        name = _clean_text(_cell(row, mapping.name))
        phone = normalize_phone(_cell(row, mapping.phone), add_country_code=add_country_code, settings=settings)
        extra_values: Dict[str, str] = {}
        for field_name, index in extras:
            value = _clean_text(_cell(row, index))
            if value is not None:
                extra_values[field_name] = value
        contacts.append(Contact(row_index=row_index, name=name, phone=phone, extras=extra_values))

    without_phone = sum(1 for contact in contacts if contact.phone is None)
    LOGGER.info("Normalised %s contacts (%s without phone)", len(contacts), without_phone)
    return contacts


# ``apply_mapping`` is the mechanical counterpart of ``suggest_mapping``.
apply_mapping = normalize_contacts


def _slug(header: str, index: int) -> str:
    decomposed = unicodedata.normalize("NFKD", header or "")
    text = "".join(char for char in decomposed if not unicodedata.combining(char)).lower().strip()
    text = re.sub(r"[^a-z0-9\s_\-]+", "", text)
    text = re.sub(r"\s+", "_", text)
    text = re.sub(r"_+", "_", text).strip("_")
    return text or f"col_{index + 1}"


def record_keys(headers: Sequence[str], *, slug: bool = False) -> List[str]:
    """Unique record keys for ``headers``; repeated keys get ``_2``, ``_3``..."""

    counts: Dict[str, int] = {}
    used = set()
    keys: List[str] = []
    for index, header in enumerate(headers):
        base = _slug(header, index) if slug else (header or f"Column {index + 1}")
        counts[base] = counts.get(base, 0) + 1
        key = base if counts[base] == 1 else f"{base}_{counts[base]}"
        while key in used:
            counts[base] += 1
            key = f"{base}_{counts[base]}"
        used.add(key)
        keys.append(key)
    return keys


def iter_row_objects(
    headers: Sequence[str],
    body_rows: Sequence[Sequence[str]],
    *,
    slug: bool = False,
) -> Iterator[Dict[str, str]]:
    keys = record_keys(headers, slug=slug)
    for row in body_rows:
        yield {key: (str(row[index]) if index < len(row) and row[index] is not None else "") for index, key in enumerate(keys)}


def rows_to_objects(
    headers: Sequence[str],
    body_rows: Sequence[Sequence[str]],
    *,
    slug: bool = False,
) -> List[Dict[str, str]]:
    """Materialise every row as ``{header: cell}`` without any normalisation."""

    return list(iter_row_objects(headers, body_rows, slug=slug))


__all__ = [
    "normalize_phone",
    "phone_lookup_candidates",
    "normalize_contacts",
    "apply_mapping",
    "record_keys",
    "iter_row_objects",
    "rows_to_objects",
]
