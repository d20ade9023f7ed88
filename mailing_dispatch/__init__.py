"""Contact ingestion and agent distribution for outbound calling campaigns."""

from . import models  # noqa: F401
from .distribution import (
    DistributionError,
    InvalidManualQuantityError,
    NoAgentsSelectedError,
    QuantityExceedsTotalError,
    plan_distribution,
    redistribute,
)
from .ingestion import (
    EmptyFileError,
    UnsupportedFormatError,
    analyze_file,
    normalize_contacts,
    rows_to_objects,
    suggest_mapping,
)
from .models import (
    AgentAllocation,
    AgentRef,
    AllocationStrategy,
    ColumnMapping,
    Contact,
    DistributionMode,
    DistributionPlan,
    RawTable,
    RedistributionStrategy,
)
from .orchestrator import InMemoryCampaignStore, MailingService

__all__ = [
    "AgentAllocation",
    "AgentRef",
    "AllocationStrategy",
    "ColumnMapping",
    "Contact",
    "DistributionMode",
    "DistributionPlan",
    "RawTable",
    "RedistributionStrategy",
    "DistributionError",
    "InvalidManualQuantityError",
    "NoAgentsSelectedError",
    "QuantityExceedsTotalError",
    "EmptyFileError",
    "UnsupportedFormatError",
    "analyze_file",
    "normalize_contacts",
    "rows_to_objects",
    "suggest_mapping",
    "plan_distribution",
    "redistribute",
    "InMemoryCampaignStore",
    "MailingService",
    "ingestion",
    "distribution",
    "orchestrator",
]
