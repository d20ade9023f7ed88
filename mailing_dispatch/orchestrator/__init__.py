"""Workflow orchestration for campaign creation and roster changes."""

from .service import MailingService
from .store import CampaignNotFoundError, CampaignRecord, CampaignStore, InMemoryCampaignStore

__all__ = [
    "MailingService",
    "CampaignNotFoundError",
    "CampaignRecord",
    "CampaignStore",
    "InMemoryCampaignStore",
]
