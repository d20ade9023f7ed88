"""Detect the structure of uploaded lead files and build a :class:`RawTable`."""
from __future__ import annotations

import csv
import io
import logging
import re
from dataclasses import dataclass
from pathlib import PurePath
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple

from ..config import DEFAULT_SETTINGS, IngestionSettings
from ..models import ColumnMapping, RawTable
from .mapping import suggest_mapping

LOGGER = logging.getLogger(__name__)

CANDIDATE_DELIMITERS: Tuple[str, ...] = (",", ";", "\t", "|")

_ZIP_MAGIC = b"PK\x03\x04"
_OLE_MAGIC = b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1"
_UTF16_BOMS = (b"\xff\xfe", b"\xfe\xff")
_TEXT_SUFFIXES = {".csv", ".tsv", ".txt"}
_XLSX_SUFFIXES = {".xlsx", ".xlsm", ".xltx", ".xltm"}
_XLS_SUFFIXES = {".xls"}


class IngestionError(ValueError):
    """Base class for structural failures while reading an upload."""


class UnsupportedFormatError(IngestionError):
    """Raised when the upload is neither delimited text nor a known spreadsheet."""


class EmptyFileError(IngestionError):
    """Raised when the upload has no data rows after the header."""


@dataclass(frozen=True)
class TableAnalysis:
    """Result of :func:`analyze_file`: the table and a best-guess mapping."""

    table: RawTable
    mapping: ColumnMapping


def analyze_file(
    data: bytes,
    *,
    filename: Optional[str] = None,
    declared_format: Optional[str] = None,
    settings: IngestionSettings = DEFAULT_SETTINGS.ingestion,
) -> TableAnalysis:
    """Parse an uploaded file and suggest which columns hold name and phone.

    Parameters
    ----------
    data:
        Raw bytes of the upload.
    filename:
        Optional original file name; its suffix is used as a hint only.
    declared_format:
        Optional ``"csv"``, ``"xlsx"`` or ``"xls"`` declared by the caller.
        Content sniffing wins when the declaration contradicts the bytes.
    settings:
        Preview size, sampling and phone heuristics.
    """

    source_format = sniff_format(data, filename=filename, declared_format=declared_format)
    LOGGER.debug("Detected upload format %s (filename=%s)", source_format, filename)

    delimiter: Optional[str] = None
    if source_format == "csv":
        text = _decode_text(data)
        delimiter = detect_delimiter(text, sample_lines=settings.delimiter_sample_lines)
        LOGGER.debug("Using delimiter %r", delimiter)
        rows: Iterable[List[str]] = parse_delimited(text, delimiter)
    elif source_format == "xlsx":
        rows = _read_xlsx_rows(data)
    else:
        rows = _read_xls_rows(data)

    table = build_table(
        rows,
        preview_size=settings.preview_rows,
        source_format=source_format,
        delimiter=delimiter,
    )
    mapping = suggest_mapping(table.headers, table.body_rows, settings=settings)
    LOGGER.info(
        "Analysed %s upload: %s columns, %s data rows, suggested mapping %s",
        source_format,
        table.column_count,
        table.total_rows,
        mapping.to_dict(),
    )
    return TableAnalysis(table=table, mapping=mapping)


def sniff_format(
    data: bytes,
    *,
    filename: Optional[str] = None,
    declared_format: Optional[str] = None,
) -> str:
    """Return ``"csv"``, ``"xlsx"`` or ``"xls"`` based on the file content."""

    if not data:
        raise EmptyFileError("The uploaded file is empty")

    hinted = _format_hint(filename, declared_format)
    if data.startswith(_ZIP_MAGIC):
        return "xlsx"
    if data.startswith(_OLE_MAGIC):
        return "xls"
    if data.startswith(_UTF16_BOMS):
        # Excel "Unicode Text" exports; NUL bytes are expected here
        return "csv"
    if _looks_binary(data[:4096]):
        raise UnsupportedFormatError(
            f"Unrecognised binary content{f' in {filename}' if filename else ''}; upload CSV, TXT or Excel files"
        )
    if hinted in {"xlsx", "xls"}:
        LOGGER.debug("Declared format %s does not match text content; reading as delimited text", hinted)
    return "csv"


def _format_hint(filename: Optional[str], declared_format: Optional[str]) -> Optional[str]:
    if declared_format:
        return declared_format.lower().lstrip(".")
    if not filename:
        return None
    suffix = PurePath(filename).suffix.lower()
    if suffix in _TEXT_SUFFIXES:
        return "csv"
    if suffix in _XLSX_SUFFIXES:
        return "xlsx"
    if suffix in _XLS_SUFFIXES:
        return "xls"
    return suffix.lstrip(".") or None


def _looks_binary(chunk: bytes) -> bool:
    if b"\x00" in chunk:
        return True
    control = sum(1 for byte in chunk if byte < 32 and byte not in (9, 10, 13, 12))
    return control > max(1, len(chunk) // 100)


def _decode_text(data: bytes) -> str:
    if data.startswith(_UTF16_BOMS):
        try:
            return data.decode("utf-16")
        except UnicodeDecodeError as exc:
            raise UnsupportedFormatError("The upload has a UTF-16 marker but is not valid UTF-16 text") from exc
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError:
        LOGGER.debug("Upload is not valid UTF-8; decoding as cp1252")
        return data.decode("cp1252", errors="replace")


def _normalise_eol(text: str) -> str:
    return text.replace("\r\n", "\n").replace("\r", "\n")


def _count_unquoted(line: str, delimiter: str) -> int:
    count = 0
    in_quotes = False
    index = 0
    while index < len(line):
        char = line[index]
        if char == '"':
            if in_quotes and index + 1 < len(line) and line[index + 1] == '"':
                index += 2
                continue
            in_quotes = not in_quotes
        elif not in_quotes and char == delimiter:
            count += 1
        index += 1
    return count


def detect_delimiter(
    text: str,
    *,
    candidates: Sequence[str] = CANDIDATE_DELIMITERS,
    sample_lines: int = 10,
) -> str:
    """Pick the delimiter that splits the sample most often and most consistently.

    Each candidate is scored as ``median - 0.01 * variance`` of its quote-aware
    count per line. Candidates with a zero median never win; ties go to the
    earlier candidate and the fallback is a comma.
    """

    lines = [line for line in _normalise_eol(text).split("\n")[:sample_lines] if line]
    best_delimiter = ","
    best_score: Optional[float] = None
    for delimiter in candidates:
        counts = sorted(_count_unquoted(line, delimiter) for line in lines)
        if not counts:
            continue
        median = counts[len(counts) // 2]
        variance = sum((count - median) ** 2 for count in counts) / len(counts)
        score = median - variance * 0.01
        if median > 0 and (best_score is None or score > best_score):
            best_score = score
            best_delimiter = delimiter
    return best_delimiter


def parse_delimited(text: str, delimiter: str) -> Iterator[List[str]]:
    """Yield trimmed rows of a delimited text, honouring double-quoted fields."""

    reader = csv.reader(io.StringIO(text, newline=""), delimiter=delimiter, quotechar='"', doublequote=True)
    for row in reader:
        yield [cell.strip() for cell in row]


def _read_xlsx_rows(data: bytes) -> Iterator[List[str]]:
    try:
        from openpyxl import load_workbook  # type: ignore
    except ImportError as exc:  # pragma: no cover - dependency optional
        raise RuntimeError("Reading Excel files requires the 'openpyxl' package") from exc

    try:
        workbook = load_workbook(filename=io.BytesIO(data), read_only=True, data_only=True)
    except Exception as exc:
        raise UnsupportedFormatError("The uploaded ZIP archive is not a readable Excel workbook") from exc

    try:
        sheet = workbook.worksheets[0] if workbook.worksheets else None
        if sheet is None:
            return
        for values in sheet.iter_rows(values_only=True):
            yield [_cell_to_text(value) for value in values]
    finally:
        workbook.close()


def _read_xls_rows(data: bytes) -> Iterator[List[str]]:
    import pandas as pd

    try:
        frame = pd.read_excel(io.BytesIO(data), sheet_name=0, header=None, dtype=str)
    except ImportError:
        raise
    except Exception as exc:
        raise UnsupportedFormatError("The uploaded file is not a readable legacy Excel workbook") from exc

    frame = frame.fillna("")
    for values in frame.itertuples(index=False, name=None):
        yield [_cell_to_text(value) for value in values]


def _cell_to_text(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


_WHITESPACE = re.compile(r"\s+")


def sanitize_header(name: str, index: int) -> str:
    """Collapse whitespace; blank headers become ``Column N`` (1-based)."""

    text = _WHITESPACE.sub(" ", name or "").strip()
    return text or f"Column {index + 1}"


def build_table(
    rows: Iterable[Sequence[str]],
    *,
    preview_size: int = 5,
    source_format: str = "csv",
    delimiter: Optional[str] = None,
) -> RawTable:
    """Turn parsed rows into a rectangular :class:`RawTable`.

    Blank rows are skipped, the first remaining row is the header, and every
    body row is padded or truncated to the header width.
    """

    header_cells: Optional[List[str]] = None
    body: List[List[str]] = []
    used_width = 0
    truncated = 0

    for raw in rows:
        cells = ["" if cell is None else str(cell) for cell in raw]
        if not any(cell.strip() for cell in cells):
            continue
        if header_cells is None:
            header_cells = cells
            used_width = _filled_width(cells)
            continue
        width = len(header_cells)
        if len(cells) > width:
            if any(cell.strip() for cell in cells[width:]):
                truncated += 1
            cells = cells[:width]
        elif len(cells) < width:
            cells = cells + [""] * (width - len(cells))
        used_width = max(used_width, _filled_width(cells))
        body.append(cells)

    if header_cells is None:
        raise EmptyFileError("The uploaded file contains no rows")
    if not body:
        raise EmptyFileError("The uploaded file has a header but no data rows")
    if truncated:
        LOGGER.warning("Truncated %s rows that had more cells than the %s header columns", truncated, len(header_cells))

    # trailing columns that are blank everywhere (spreadsheet padding) are dropped
    headers = tuple(sanitize_header(cell, index) for index, cell in enumerate(header_cells[:used_width]))
    body_rows = tuple(tuple(cells[:used_width]) for cells in body)
    preview = body_rows[: max(preview_size, 0)]
    return RawTable(
        headers=headers,
        preview_rows=preview,
        body_rows=body_rows,
        source_format=source_format,
        delimiter=delimiter,
    )


def _filled_width(cells: Sequence[str]) -> int:
    for index in range(len(cells) - 1, -1, -1):
        if cells[index].strip():
            return index + 1
    return 0


__all__ = [
    "CANDIDATE_DELIMITERS",
    "IngestionError",
    "UnsupportedFormatError",
    "EmptyFileError",
    "TableAnalysis",
    "analyze_file",
    "sniff_format",
    "detect_delimiter",
    "parse_delimited",
    "sanitize_header",
    "build_table",
]
