"""Partition campaign contacts between outbound agents."""
from __future__ import annotations

import logging
from typing import Dict, List, Mapping, Optional, Sequence, Tuple, Union

from ..config import DEFAULT_SETTINGS
from ..models import (
    AgentAllocation,
    AgentRef,
    AllocationStrategy,
    Contact,
    ContactAssignment,
    DistributionMode,
    DistributionPlan,
)

LOGGER = logging.getLogger(__name__)

CONTACT_CEILING = DEFAULT_SETTINGS.distribution.contact_ceiling

ModeLike = Union[DistributionMode, str]
StrategyLike = Union[AllocationStrategy, str]


class DistributionError(ValueError):
    """Raised when an agent selection cannot produce a valid plan."""


class NoAgentsSelectedError(DistributionError):
    """Raised when no agent would receive any contact."""


class InvalidManualQuantityError(DistributionError):
    """Raised for negative manual quantities or quantities of unknown agents."""


class QuantityExceedsTotalError(DistributionError):
    """Raised when manual quantities add up to more than the effective total."""


def effective_total(total_contacts: int, ceiling: int = CONTACT_CEILING) -> int:
    """Contacts actually used for allocation: ``min(total, ceiling)``, never negative."""

    return max(0, min(int(total_contacts), ceiling))


def automatic_quantities(total: int, agent_count: int) -> List[int]:
    """Split ``total`` evenly; the first ``total % agent_count`` agents get one more.

    ``automatic_quantities(10, 3) == [4, 3, 3]``; the result always sums to
    ``total``.
    """

    if agent_count <= 0:
        return []
    base, remainder = divmod(max(total, 0), agent_count)
    return [base + (1 if position < remainder else 0) for position in range(agent_count)]


def validate_agents(agents: Sequence[AgentRef]) -> List[AgentRef]:
    selection = list(agents or [])
    if not selection:
        raise NoAgentsSelectedError("Select at least one agent to distribute contacts")
    seen = set()
    for agent in selection:
        if agent.id in seen:
            raise DistributionError(f"Agent {agent.id} was selected more than once")
        seen.add(agent.id)
    return selection


def validate_manual_quantities(
    agents: Sequence[AgentRef],
    manual_quantities: Optional[Mapping[str, int]],
    total: int,
) -> List[int]:
    """Return the manual quantity of each agent in selection order.

    Agents missing from ``manual_quantities`` get ``0``.
    """

    quantities: Mapping[str, int] = manual_quantities or {}
    known = {agent.id for agent in agents}
    for agent_id, quantity in quantities.items():
        if agent_id not in known:
            raise InvalidManualQuantityError(f"Agent {agent_id} is not part of the selection")
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            raise InvalidManualQuantityError(f"Quantity for agent {agent_id} must be an integer, got {quantity!r}")
        if quantity < 0:
            raise InvalidManualQuantityError(f"Quantity for agent {agent_id} must not be negative")

    ordered = [quantities.get(agent.id, 0) for agent in agents]
    requested = sum(ordered)
    if requested > total:
        raise QuantityExceedsTotalError(
            f"Manual quantities add up to {requested} but only {total} contacts can be distributed"
        )
    return ordered


def contiguous_allocations(agents: Sequence[AgentRef], quantities: Sequence[int]) -> Tuple[AgentAllocation, ...]:
    """Give each agent the next ``quantity`` indices, in selection order.

    Zero quantities are dropped from the result.
    """

    allocations: List[AgentAllocation] = []
    cursor = 0
    for agent, quantity in zip(agents, quantities):
        if quantity <= 0:
            continue
        allocations.append(AgentAllocation(agent=agent, segments=(range(cursor, cursor + quantity),)))
        cursor += quantity
    return tuple(allocations)


def plan_distribution(
    total_contacts: int,
    mode: ModeLike,
    agents: Sequence[AgentRef],
    strategy: StrategyLike = AllocationStrategy.AUTOMATIC,
    manual_quantities: Optional[Mapping[str, int]] = None,
    *,
    ceiling: int = CONTACT_CEILING,
) -> DistributionPlan:
    """Build a :class:`DistributionPlan` for ``total_contacts`` uploaded leads.

    Contacts ``0..effective_total-1`` are handed out in contiguous blocks in
    the order agents were selected.

    Raises
    ------
    NoAgentsSelectedError
        ``agents`` is empty, or every agent ends up with zero contacts.
    InvalidManualQuantityError
        A manual quantity is negative, not an integer, or names an unknown agent.
    QuantityExceedsTotalError
        Manual quantities add up to more than the effective total.
    DistributionError
        ``single`` mode with more than one agent, or duplicated agents.
    """

    mode = DistributionMode(mode)
    strategy = AllocationStrategy(strategy)
    selection = validate_agents(agents)
    total = effective_total(total_contacts, ceiling)
    if total < total_contacts:
        LOGGER.info("Capping %s uploaded contacts to the %s contact ceiling", total_contacts, ceiling)

    if mode is DistributionMode.SINGLE:
        if len(selection) != 1:
            raise DistributionError(f"Single-agent mode needs exactly one agent, got {len(selection)}")
        quantities = [total]
        plan_strategy: Optional[AllocationStrategy] = None
    elif strategy is AllocationStrategy.AUTOMATIC:
        quantities = automatic_quantities(total, len(selection))
        plan_strategy = strategy
    else:
        quantities = validate_manual_quantities(selection, manual_quantities, total)
        plan_strategy = strategy

    allocations = contiguous_allocations(selection, quantities)
    if not allocations and (plan_strategy is AllocationStrategy.MANUAL or total > 0):
        raise NoAgentsSelectedError("No selected agent receives any contact")

    plan = DistributionPlan(
        mode=mode,
        allocations=allocations,
        effective_total=total,
        total_contacts=int(total_contacts),
        strategy=plan_strategy,
    )
    LOGGER.info(
        "Planned %s distribution of %s contacts over %s agents: %s",
        mode.value,
        total,
        len(allocations),
        plan.quantities(),
    )
    return plan


def assign_contacts(contacts: Sequence[Contact], plan: DistributionPlan) -> List[ContactAssignment]:
    """Pair each contact with its agent; contacts past the plan are left out."""

    owners = plan.assignments()
    assignments: List[ContactAssignment] = []
    for position, contact in enumerate(contacts[: plan.effective_total]):
        agent_id = owners[position]
        if agent_id is not None:
            assignments.append(ContactAssignment(contact=contact, agent_id=agent_id))
    return assignments


def group_by_agent(assignments: Sequence[ContactAssignment]) -> Dict[str, List[Contact]]:
    grouped: Dict[str, List[Contact]] = {}
    for assignment in assignments:
        grouped.setdefault(assignment.agent_id, []).append(assignment.contact)
    return grouped


__all__ = [
    "CONTACT_CEILING",
    "DistributionError",
    "NoAgentsSelectedError",
    "InvalidManualQuantityError",
    "QuantityExceedsTotalError",
    "effective_total",
    "automatic_quantities",
    "validate_agents",
    "validate_manual_quantities",
    "contiguous_allocations",
    "plan_distribution",
    "assign_contacts",
    "group_by_agent",
]
