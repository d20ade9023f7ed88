"""Export utilities for normalised contacts, assignments and raw uploads."""
from __future__ import annotations

from pathlib import Path
from typing import Iterable, List, Mapping, MutableMapping, Optional, Sequence, Union

import pandas as pd

from ..models import ColumnMapping, Contact, DistributionPlan, RawTable
from .normalizer import record_keys, rows_to_objects

PathLike = Union[str, Path]

_RESERVED_COLUMNS = frozenset({"row_index", "name", "phone", "agent_id"})


def contacts_to_dataframe(
    contacts: Sequence[Contact],
    *,
    plan: Optional[DistributionPlan] = None,
    headers: Sequence[str] = (),
    mapping: Optional[ColumnMapping] = None,
    assigned_only: bool = False,
) -> pd.DataFrame:
    """Convert contacts into a :class:`pandas.DataFrame`.

    With ``plan`` an ``agent_id`` column holds the owner of each contact's
    position. With ``headers`` and ``mapping`` the extra columns are named
    after the upload headers instead of ``extra1..extra3``.
    """

    owners = plan.assignments() if plan is not None else []
    records: List[MutableMapping[str, object]] = []
    for position, contact in enumerate(contacts):
        agent_id = owners[position] if position < len(owners) else None
        if assigned_only and agent_id is None:
            continue
        row: MutableMapping[str, object] = {
            "row_index": contact.row_index,
            "name": contact.name or "",
            "phone": contact.phone or "",
        }
        if headers and mapping is not None:
            _add_extras(row, contact.labelled_extras(headers, mapping))
        else:
            _add_extras(row, contact.extras)
        if plan is not None:
            row["agent_id"] = agent_id or ""
        records.append(row)

    columns = ["row_index", "name", "phone"]
    frame = pd.DataFrame(records)
    if frame.empty:
        return pd.DataFrame(columns=columns + (["agent_id"] if plan is not None else []))
    return frame


def _add_extras(row: MutableMapping[str, object], extras: Mapping[str, str]) -> None:
    """Add extras without overwriting the normalised columns; clashes get ``_2``, ``_3``..."""

    for label, value in extras.items():
        key = label
        suffix = 2
        while key in row or key in _RESERVED_COLUMNS:
            key = f"{label}_{suffix}"
            suffix += 1
        row[key] = value


def export_contacts(
    contacts: Sequence[Contact],
    path: PathLike,
    *,
    plan: Optional[DistributionPlan] = None,
    headers: Sequence[str] = (),
    mapping: Optional[ColumnMapping] = None,
    assigned_only: bool = False,
    sheet_name: str = "Contacts",
    exporter_kwargs: Optional[MutableMapping[str, object]] = None,
) -> Path:
    """Write contacts (optionally with their agents) to a CSV or Excel file."""

    dataframe = contacts_to_dataframe(
        contacts,
        plan=plan,
        headers=headers,
        mapping=mapping,
        assigned_only=assigned_only,
    )
    output_path = Path(path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    _write_dataframe(dataframe, output_path, sheet_name=sheet_name, exporter_kwargs=exporter_kwargs)
    return output_path


def raw_table_to_dataframe(table: RawTable, *, slug: bool = False) -> pd.DataFrame:
    keys = record_keys(table.headers, slug=slug)
    return pd.DataFrame(rows_to_objects(table.headers, table.body_rows, slug=slug), columns=keys, dtype=str)


def export_raw_table(
    table: RawTable,
    path: PathLike,
    *,
    slug: bool = False,
    sheet_name: str = "Upload",
    exporter_kwargs: Optional[MutableMapping[str, object]] = None,
) -> Path:
    """Archive the original upload (every row, every column) without normalisation."""

    output_path = Path(path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    _write_dataframe(
        raw_table_to_dataframe(table, slug=slug),
        output_path,
        sheet_name=sheet_name,
        exporter_kwargs=exporter_kwargs,
    )
    return output_path


def _join_list(values: Iterable[Optional[str]]) -> str:
    cleaned: List[str] = []
    for value in values:
        if not value:
            continue
        text = str(value).strip()
        if text:
            cleaned.append(text)
    return "; ".join(cleaned)


def plan_summary_dataframe(plan: DistributionPlan) -> pd.DataFrame:
    """One row per agent: quantity and the index ranges it owns."""

    rows = [
        {
            "agent_id": allocation.agent_id,
            "agent": allocation.agent.label(),
            "quantity": allocation.quantity,
            "ranges": _join_list(f"{segment.start}-{segment.stop - 1}" for segment in allocation.segments),
        }
        for allocation in plan.allocations
    ]
    return pd.DataFrame(rows, columns=["agent_id", "agent", "quantity", "ranges"])


def _write_dataframe(
    dataframe: pd.DataFrame,
    path: Path,
    *,
    sheet_name: str,
    exporter_kwargs: Optional[MutableMapping[str, object]],
) -> None:
    exporter_kwargs = dict(exporter_kwargs or {})
    suffix = path.suffix.lower()

    if suffix in {".csv", ".tsv"}:
        if suffix == ".tsv":
            exporter_kwargs.setdefault("sep", "\t")
        dataframe.to_csv(path, index=False, **exporter_kwargs)
        return

    if suffix in {".xlsx", ".xlsm"}:
        engine = exporter_kwargs.pop("engine", None) or "openpyxl"
        dataframe.to_excel(path, index=False, sheet_name=sheet_name, engine=engine, **exporter_kwargs)
        return

    raise ValueError(f"Unsupported export file extension: {suffix}")


__all__ = [
    "contacts_to_dataframe",
    "export_contacts",
    "raw_table_to_dataframe",
    "export_raw_table",
    "plan_summary_dataframe",
]
