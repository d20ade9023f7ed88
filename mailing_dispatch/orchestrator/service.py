"""Campaign workflow tying ingestion, planning, and redistribution to a store."""
from __future__ import annotations

import logging
from dataclasses import replace
from typing import Dict, List, Mapping, Optional, Sequence

from ..config import DEFAULT_SETTINGS, DispatchSettings
from ..distribution import assign_contacts, plan_distribution, redistribute
from ..ingestion import EmptyFileError, TableAnalysis, analyze_file, normalize_contacts, sanitize_mapping
from ..ingestion.normalizer import phone_lookup_candidates
from ..models import (
    AgentRef,
    AllocationStrategy,
    ColumnMapping,
    Contact,
    ContactAssignment,
    DistributionMode,
    RawTable,
    RedistributionStrategy,
)
from .store import CampaignRecord, CampaignStore

LOGGER = logging.getLogger(__name__)


class MailingService:
    """Runs the upload → contacts → plan → store workflow for outbound campaigns."""

    def __init__(self, store: CampaignStore, *, settings: DispatchSettings = DEFAULT_SETTINGS) -> None:
        self._store = store
        self._settings = settings

    @property
    def settings(self) -> DispatchSettings:
        return self._settings

    def analyze(
        self,
        data: bytes,
        *,
        filename: Optional[str] = None,
        declared_format: Optional[str] = None,
    ) -> TableAnalysis:
        return analyze_file(
            data,
            filename=filename,
            declared_format=declared_format,
            settings=self._settings.ingestion,
        )

    def build_contacts(
        self,
        table: RawTable,
        mapping: ColumnMapping,
        *,
        add_country_code: bool = False,
    ) -> List[Contact]:
        return normalize_contacts(
            table.body_rows,
            mapping,
            add_country_code,
            table.headers,
            settings=self._settings.ingestion,
        )

    def create_campaign(
        self,
        name: str,
        table: RawTable,
        mapping: ColumnMapping,
        agents: Sequence[AgentRef],
        *,
        mode: DistributionMode | str = DistributionMode.SINGLE,
        strategy: AllocationStrategy | str = AllocationStrategy.AUTOMATIC,
        manual_quantities: Optional[Mapping[str, int]] = None,
        add_country_code: bool = False,
        metadata: Optional[Dict[str, str]] = None,
    ) -> CampaignRecord:
        """Normalise ``table`` with ``mapping``, plan the distribution and store it.

        Validation failures (:class:`~mailing_dispatch.distribution.DistributionError`)
        happen before anything is persisted.
        """

        if not name or not name.strip():
            raise ValueError("Campaign name is required")

        safe_mapping = sanitize_mapping(mapping, table.column_count)
        contacts = self.build_contacts(table, safe_mapping, add_country_code=add_country_code)
        if not contacts:
            raise EmptyFileError("The campaign has no contacts")

        plan = plan_distribution(
            len(contacts),
            mode,
            agents,
            strategy,
            manual_quantities,
            ceiling=self._settings.distribution.contact_ceiling,
        )
        record = CampaignRecord(
            name=name.strip(),
            contacts=tuple(contacts),
            headers=table.headers,
            mapping=safe_mapping,
            plan=plan,
            add_country_code=add_country_code,
            metadata=dict(metadata or {}),
        )
        stored = self._store.create(record)
        LOGGER.info(
            "Created campaign %s (%s) with %s contacts for %s agents",
            stored.id,
            stored.name,
            stored.total,
            len(plan.allocations),
        )
        return stored

    def change_agents(
        self,
        campaign_id: str,
        agents: Sequence[AgentRef],
        *,
        strategy: Optional[RedistributionStrategy | str] = None,
        manual_quantities: Optional[Mapping[str, int]] = None,
    ) -> CampaignRecord:
        """Redistribute a stored campaign over a new roster and swap its plan."""

        record = self._store.get(campaign_id)
        chosen = RedistributionStrategy(strategy or self._settings.distribution.redistribution_strategy)
        new_plan = redistribute(
            record.plan,
            agents,
            record.plan.effective_total,
            strategy=chosen,
            manual_quantities=manual_quantities,
            ceiling=self._settings.distribution.contact_ceiling,
        )
        updated = self._store.update(replace(record, plan=new_plan))
        LOGGER.info("Campaign %s now distributed over %s", campaign_id, new_plan.agent_ids)
        return updated

    def assignments(self, campaign_id: str) -> List[ContactAssignment]:
        record = self._store.get(campaign_id)
        return assign_contacts(record.contacts, record.plan)

    def resolve_contact(
        self,
        campaign_id: str,
        phone: str,
        *,
        agent_id: Optional[str] = None,
    ) -> Optional[Contact]:
        """Find the campaign contact behind an incoming or dialled number."""

        record = self._store.get(campaign_id)
        candidates = set(phone_lookup_candidates(phone, country_prefix=self._settings.ingestion.country_prefix))
        if not candidates:
            return None

        owners = record.plan.assignments() if agent_id is not None else []
        for position, contact in enumerate(record.contacts):
            if contact.phone not in candidates:
                continue
            if agent_id is not None:
                owner = owners[position] if position < len(owners) else None
                if owner != agent_id:
                    continue
            return contact
        return None


__all__ = ["MailingService"]
