"""Data models shared by the ingestion, distribution, and campaign workflow code."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple


EXTRA_FIELDS: Tuple[str, ...] = ("extra1", "extra2", "extra3")
MAPPING_FIELDS: Tuple[str, ...] = ("name", "phone") + EXTRA_FIELDS


class DistributionMode(str, Enum):
    SINGLE = "single"
    MULTIPLE = "multiple"


class AllocationStrategy(str, Enum):
    AUTOMATIC = "automatic"
    MANUAL = "manual"


class RedistributionStrategy(str, Enum):
    FROM_END = "from_end"
    BALANCED = "balanced"


# --- Ingestion Models ---

@dataclass(frozen=True, slots=True)
class RawTable:
    """Rectangular view of an uploaded file.

    Every entry of ``body_rows`` has exactly ``len(headers)`` cells; the
    analyzer pads or truncates rows while building the table.
    """

    headers: Tuple[str, ...]
    preview_rows: Tuple[Tuple[str, ...], ...]
    body_rows: Tuple[Tuple[str, ...], ...]
    source_format: str = "csv"
    delimiter: Optional[str] = None

    @property
    def total_rows(self) -> int:
        return len(self.body_rows)

    @property
    def column_count(self) -> int:
        return len(self.headers)

    def column(self, index: int) -> List[str]:
        return [row[index] for row in self.body_rows]


@dataclass(frozen=True, slots=True)
class ColumnMapping:
    """Logical field to zero-based column index; ``None`` means unused."""

    name: Optional[int] = None
    phone: Optional[int] = None
    extra1: Optional[int] = None
    extra2: Optional[int] = None
    extra3: Optional[int] = None

    def get(self, field_name: str) -> Optional[int]:
        if field_name not in MAPPING_FIELDS:
            raise KeyError(field_name)
        return getattr(self, field_name)

    def items(self) -> Iterator[Tuple[str, int]]:
        """Yield ``(field, index)`` for every mapped field."""

        for field_name in MAPPING_FIELDS:
            index = getattr(self, field_name)
            if index is not None:
                yield field_name, index

    def extras(self) -> Iterator[Tuple[str, int]]:
        for field_name in EXTRA_FIELDS:
            index = getattr(self, field_name)
            if index is not None:
                yield field_name, index

    def used_columns(self) -> List[int]:
        """Column indices referenced by the mapping, in column order."""

        return sorted({index for _, index in self.items()})

    def to_dict(self) -> Dict[str, int]:
        return dict(self.items())

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ColumnMapping":
        """Build a mapping from plain data, ignoring unknown keys.

        Values that are not integers (or integer-like strings) are treated as
        unmapped; range checks are left to :func:`sanitize_mapping`.
        """

        values: Dict[str, Optional[int]] = {}
        for field_name in MAPPING_FIELDS:
            values[field_name] = _coerce_index(data.get(field_name))
        return cls(**values)


def _coerce_index(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    return None


@dataclass(frozen=True, slots=True)
class Contact:
    """Normalized lead produced from one body row of the upload."""

    row_index: int
    name: Optional[str] = None
    phone: Optional[str] = None
    extras: Mapping[str, str] = field(default_factory=dict)

    @property
    def is_reachable(self) -> bool:
        return bool(self.phone)

    def labelled_extras(self, headers: Sequence[str], mapping: ColumnMapping) -> Dict[str, str]:
        """Re-key extras by the header of the column they were read from."""

        labelled: Dict[str, str] = {}
        for field_name, index in mapping.extras():
            value = self.extras.get(field_name)
            if value is None:
                continue
            if 0 <= index < len(headers) and headers[index]:
                label = headers[index]
            else:
                label = f"Extra {field_name[-1]}"
            key, suffix = label, 2
            while key in labelled:
                key = f"{label}_{suffix}"
                suffix += 1
            labelled[key] = value
        return labelled

    def as_row(self) -> Dict[str, Any]:
        row: Dict[str, Any] = {
            "row_index": self.row_index,
            "name": self.name or "",
            "phone": self.phone or "",
        }
        for field_name in EXTRA_FIELDS:
            row[field_name] = self.extras.get(field_name, "")
        return row


# --- Distribution Models ---

@dataclass(frozen=True, slots=True)
class AgentRef:
    """Outbound-calling operator, used only as a partition key."""

    id: str
    display_name: str = ""
    extension: str = ""

    def label(self) -> str:
        name = self.display_name or self.id
        return f"{name} ({self.extension})" if self.extension else name


@dataclass(frozen=True, slots=True)
class AgentAllocation:
    """Contact indices owned by one agent, as half-open ``range`` segments."""

    agent: AgentRef
    segments: Tuple[range, ...] = ()

    @property
    def agent_id(self) -> str:
        return self.agent.id

    @property
    def quantity(self) -> int:
        return sum(len(segment) for segment in self.segments)

    def indices(self) -> Iterator[int]:
        for segment in self.segments:
            yield from segment

    def owns(self, index: int) -> bool:
        return any(index in segment for segment in self.segments)


@dataclass(frozen=True, slots=True)
class DistributionPlan:
    """Immutable assignment of contact indices to agents.

    ``allocations`` never contains zero-quantity entries. Changing a plan means
    building a new one with :func:`mailing_dispatch.distribution.redistribute`.
    """

    mode: DistributionMode
    allocations: Tuple[AgentAllocation, ...]
    effective_total: int
    total_contacts: int
    strategy: Optional[AllocationStrategy] = None

    @property
    def agent_ids(self) -> List[str]:
        return [allocation.agent_id for allocation in self.allocations]

    @property
    def agents(self) -> List[AgentRef]:
        return [allocation.agent for allocation in self.allocations]

    @property
    def assigned_total(self) -> int:
        return sum(allocation.quantity for allocation in self.allocations)

    @property
    def unassigned(self) -> int:
        return self.effective_total - self.assigned_total

    def quantities(self) -> List[Tuple[str, int]]:
        return [(allocation.agent_id, allocation.quantity) for allocation in self.allocations]

    def allocation_for(self, agent_id: str) -> Optional[AgentAllocation]:
        for allocation in self.allocations:
            if allocation.agent_id == agent_id:
                return allocation
        return None

    def agent_for_index(self, index: int) -> Optional[str]:
        for allocation in self.allocations:
            if allocation.owns(index):
                return allocation.agent_id
        return None

    def assignments(self) -> List[Optional[str]]:
        """Owner of each index ``0..effective_total-1`` (``None`` if unassigned)."""

        owners: List[Optional[str]] = [None] * self.effective_total
        for allocation in self.allocations:
            for index in allocation.indices():
                if index < self.effective_total:
                    owners[index] = allocation.agent_id
        return owners

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mode": self.mode.value,
            "strategy": self.strategy.value if self.strategy else None,
            "effective_total": self.effective_total,
            "total_contacts": self.total_contacts,
            "allocations": [
                {
                    "agent_id": allocation.agent.id,
                    "display_name": allocation.agent.display_name,
                    "extension": allocation.agent.extension,
                    "quantity": allocation.quantity,
                    "segments": [[segment.start, segment.stop] for segment in allocation.segments],
                }
                for allocation in self.allocations
            ],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DistributionPlan":
        allocations = []
        for entry in data.get("allocations", []):
            agent = AgentRef(
                id=str(entry["agent_id"]),
                display_name=entry.get("display_name", ""),
                extension=entry.get("extension", ""),
            )
            segments = tuple(range(int(start), int(stop)) for start, stop in entry.get("segments", []))
            allocations.append(AgentAllocation(agent=agent, segments=segments))
        strategy = data.get("strategy")
        return cls(
            mode=DistributionMode(data["mode"]),
            allocations=tuple(allocations),
            effective_total=int(data["effective_total"]),
            total_contacts=int(data.get("total_contacts", data["effective_total"])),
            strategy=AllocationStrategy(strategy) if strategy else None,
        )


@dataclass(frozen=True, slots=True)
class ContactAssignment:
    """A contact paired with the agent that will dial it."""

    contact: Contact
    agent_id: str

    def as_row(self) -> Dict[str, Any]:
        row = self.contact.as_row()
        row["agent_id"] = self.agent_id
        return row


def segments_from_indices(indices: Iterable[int]) -> Tuple[range, ...]:
    """Collapse indices into sorted, non-overlapping ``range`` segments."""

    segments: List[range] = []
    start: Optional[int] = None
    previous: Optional[int] = None
    for index in sorted(set(indices)):
        if start is None:
            start = previous = index
            continue
        if index == previous + 1:  # type: ignore[operator]
            previous = index
            continue
        segments.append(range(start, previous + 1))  # type: ignore[operator]
        start = previous = index
    if start is not None:
        segments.append(range(start, previous + 1))  # type: ignore[operator]
    return tuple(segments)


__all__ = [
    "EXTRA_FIELDS",
    "MAPPING_FIELDS",
    "DistributionMode",
    "AllocationStrategy",
    "RedistributionStrategy",
    "RawTable",
    "ColumnMapping",
    "Contact",
    "AgentRef",
    "AgentAllocation",
    "DistributionPlan",
    "ContactAssignment",
    "segments_from_indices",
]
