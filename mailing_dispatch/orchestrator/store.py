"""Campaign persistence interface and an in-memory implementation."""
from __future__ import annotations

import itertools
import logging
import threading
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Protocol, Tuple

from ..models import ColumnMapping, Contact, DistributionPlan

LOGGER = logging.getLogger(__name__)


class CampaignNotFoundError(KeyError):
    """Raised when a campaign id is unknown to the store."""


@dataclass(frozen=True)
class CampaignRecord:
    """Everything the store keeps about one outbound campaign."""

    name: str
    contacts: Tuple[Contact, ...]
    headers: Tuple[str, ...]
    mapping: ColumnMapping
    plan: DistributionPlan
    id: Optional[str] = None
    add_country_code: bool = False
    metadata: Dict[str, str] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return len(self.contacts)


class CampaignStore(Protocol):
    """Create/read/update/delete by id; serialisation is up to the implementation."""

    def create(self, record: CampaignRecord) -> CampaignRecord:  # pragma: no cover - runtime protocol
        """Persist ``record`` and return it with its assigned id."""

    def get(self, campaign_id: str) -> CampaignRecord:  # pragma: no cover - runtime protocol
        """Return the stored record or raise :class:`CampaignNotFoundError`."""

    def update(self, record: CampaignRecord) -> CampaignRecord:  # pragma: no cover - runtime protocol
        """Replace the stored record with the same id."""

    def delete(self, campaign_id: str) -> None:  # pragma: no cover - runtime protocol
        """Remove a record."""


class InMemoryCampaignStore:
    """Thread-safe dictionary store; records are replaced, never mutated."""

    def __init__(self) -> None:
        self._records: Dict[str, CampaignRecord] = {}
        self._lock = threading.Lock()
        self._ids = itertools.count(1)

    def create(self, record: CampaignRecord) -> CampaignRecord:
        with self._lock:
            campaign_id = record.id or str(next(self._ids))
            if campaign_id in self._records:
                raise ValueError(f"Campaign {campaign_id} already exists")
            stored = _with_id(record, campaign_id)
            self._records[campaign_id] = stored
        LOGGER.debug("Stored campaign %s (%s contacts)", campaign_id, stored.total)
        return stored

    def get(self, campaign_id: str) -> CampaignRecord:
        with self._lock:
            try:
                return self._records[campaign_id]
            except KeyError as exc:
                raise CampaignNotFoundError(campaign_id) from exc

    def update(self, record: CampaignRecord) -> CampaignRecord:
        if record.id is None:
            raise ValueError("Only stored campaigns can be updated")
        with self._lock:
            if record.id not in self._records:
                raise CampaignNotFoundError(record.id)
            self._records[record.id] = record
        return record

    def delete(self, campaign_id: str) -> None:
        with self._lock:
            if self._records.pop(campaign_id, None) is None:
                raise CampaignNotFoundError(campaign_id)

    def list_campaigns(self) -> List[CampaignRecord]:
        with self._lock:
            return list(self._records.values())


def _with_id(record: CampaignRecord, campaign_id: str) -> CampaignRecord:
    return replace(record, id=campaign_id)


__all__ = ["CampaignNotFoundError", "CampaignRecord", "CampaignStore", "InMemoryCampaignStore"]
