"""Contact-to-agent distribution planning and redistribution."""

from .planner import (
    CONTACT_CEILING,
    DistributionError,
    InvalidManualQuantityError,
    NoAgentsSelectedError,
    QuantityExceedsTotalError,
    assign_contacts,
    automatic_quantities,
    effective_total,
    group_by_agent,
    plan_distribution,
)
from .redistribution import redistribute

__all__ = [
    "CONTACT_CEILING",
    "DistributionError",
    "InvalidManualQuantityError",
    "NoAgentsSelectedError",
    "QuantityExceedsTotalError",
    "assign_contacts",
    "automatic_quantities",
    "effective_total",
    "group_by_agent",
    "plan_distribution",
    "redistribute",
]
