"""Utilities for reading uploaded lead files and normalising them into contacts."""
from __future__ import annotations

from .analyzer import (
    EmptyFileError,
    IngestionError,
    TableAnalysis,
    UnsupportedFormatError,
    analyze_file,
    build_table,
    detect_delimiter,
    sniff_format,
)
from .exporters import contacts_to_dataframe, export_contacts, export_raw_table
from .mapping import sanitize_mapping, suggest_mapping
from .normalizer import (
    apply_mapping,
    normalize_contacts,
    normalize_phone,
    phone_lookup_candidates,
    rows_to_objects,
)

__all__ = [
    "EmptyFileError",
    "IngestionError",
    "TableAnalysis",
    "UnsupportedFormatError",
    "analyze_file",
    "build_table",
    "detect_delimiter",
    "sniff_format",
    "contacts_to_dataframe",
    "export_contacts",
    "export_raw_table",
    "sanitize_mapping",
    "suggest_mapping",
    "apply_mapping",
    "normalize_contacts",
    "normalize_phone",
    "phone_lookup_candidates",
    "rows_to_objects",
]
