"""Recompute a plan after the agent roster of a campaign changes."""
from __future__ import annotations

import logging
from typing import Dict, List, Mapping, Optional, Sequence, Set, Tuple, Union

from ..models import (
    AgentAllocation,
    AgentRef,
    AllocationStrategy,
    DistributionMode,
    DistributionPlan,
    RedistributionStrategy,
    segments_from_indices,
)
from .planner import (
    CONTACT_CEILING,
    NoAgentsSelectedError,
    automatic_quantities,
    contiguous_allocations,
    effective_total as cap_total,
    validate_agents,
    validate_manual_quantities,
)

LOGGER = logging.getLogger(__name__)

RedistributionLike = Union[RedistributionStrategy, str]


def redistribute(
    plan: DistributionPlan,
    agents: Sequence[AgentRef],
    effective_total: Optional[int] = None,
    *,
    strategy: RedistributionLike = RedistributionStrategy.FROM_END,
    manual_quantities: Optional[Mapping[str, int]] = None,
    ceiling: int = CONTACT_CEILING,
) -> DistributionPlan:
    """Return a new plan for ``agents``; ``plan`` itself is left untouched.

    ``FROM_END`` keeps the indices of agents that stay selected. Indices of
    removed agents (and unowned indices) form a pool. Added agents take their
    share from the highest pool indices, then from the highest indices still
    held by the remaining agents, so contacts at the start of the list, the
    ones most likely to be in progress, keep their owner. A remaining agent
    keeps at least half of its new share; once it is down to that, the
    highest indices of the other remaining agents are taken instead. What is
    left in the pool goes to agents below their share, and an agent that is
    still selected never ends without contacts while another holds two.

    ``BALANCED`` ignores the current ownership and lays the roster out again
    in contiguous blocks.

    With ``manual_quantities`` each agent ends with exactly its quantity;
    agents holding more than that give up their highest indices first.
    """

    strategy = RedistributionStrategy(strategy)
    selection = validate_agents(agents)
    total = cap_total(plan.effective_total if effective_total is None else effective_total, ceiling)
    manual = manual_quantities is not None

    if manual:
        targets = validate_manual_quantities(selection, manual_quantities, total)
    else:
        targets = automatic_quantities(total, len(selection))

    if strategy is RedistributionStrategy.BALANCED:
        allocations = contiguous_allocations(selection, targets)
    else:
        allocations = _redistribute_from_end(plan, selection, targets, total, manual=manual)

    if not allocations and (manual or total > 0):
        raise NoAgentsSelectedError("No selected agent receives any contact")

    if len(selection) == 1 and plan.mode is DistributionMode.SINGLE and not manual:
        mode = DistributionMode.SINGLE
        allocation_strategy: Optional[AllocationStrategy] = None
    else:
        mode = DistributionMode.MULTIPLE
        allocation_strategy = AllocationStrategy.MANUAL if manual else AllocationStrategy.AUTOMATIC

    new_plan = DistributionPlan(
        mode=mode,
        allocations=allocations,
        effective_total=total,
        total_contacts=plan.total_contacts,
        strategy=allocation_strategy,
    )
    added = [agent.id for agent in selection if plan.allocation_for(agent.id) is None]
    removed = [agent_id for agent_id in plan.agent_ids if agent_id not in {agent.id for agent in selection}]
    LOGGER.info(
        "Redistributed %s contacts (%s): added %s, removed %s, quantities %s",
        total,
        strategy.value,
        added,
        removed,
        new_plan.quantities(),
    )
    return new_plan


def _redistribute_from_end(
    plan: DistributionPlan,
    selection: Sequence[AgentRef],
    targets: Sequence[int],
    total: int,
    *,
    manual: bool,
) -> Tuple[AgentAllocation, ...]:
    previous: Dict[str, Set[int]] = {}
    for allocation in plan.allocations:
        previous[allocation.agent_id] = {index for index in allocation.indices() if index < total}

    held: Dict[str, Set[int]] = {}
    kept: List[str] = []
    for agent in selection:
        if agent.id in previous:
            held[agent.id] = set(previous[agent.id])
            kept.append(agent.id)
        else:
            held[agent.id] = set()

    owned: Set[int] = set().union(*held.values()) if held else set()
    pool: List[int] = [index for index in range(total) if index not in owned]

    if manual:
        for agent, target in zip(selection, targets):
            surplus = len(held[agent.id]) - target
            if surplus > 0:
                released = sorted(held[agent.id])[-surplus:]
                held[agent.id].difference_update(released)
                pool.extend(released)
        pool.sort()

    # kept agents give away at most half of their new share
    floors = {agent.id: max(1, target // 2) for agent, target in zip(selection, targets) if target > 0}

    for agent, target in zip(selection, targets):
        if agent.id in previous:
            continue
        taken = _take_from_tail(pool, target)
        missing = target - len(taken)
        if missing > 0 and not manual:
            taken.extend(_steal_from_tail(held, floors, kept, missing))
        held[agent.id].update(taken)
        LOGGER.debug("Agent %s takes %s contacts from the end of the list", agent.id, len(taken))

    for agent, target in zip(selection, targets):
        deficit = target - len(held[agent.id])
        if deficit > 0 and pool:
            count = min(deficit, len(pool))
            held[agent.id].update(pool[:count])
            del pool[:count]

    if not manual:
        _hand_out_to_empty(selection, targets, held)

    if pool:
        LOGGER.debug("%s contacts left unassigned after redistribution", len(pool))

    allocations: List[AgentAllocation] = []
    for agent in selection:
        if held[agent.id]:
            allocations.append(AgentAllocation(agent=agent, segments=segments_from_indices(held[agent.id])))
    return tuple(allocations)


def _take_from_tail(pool: List[int], count: int) -> List[int]:
    """Pop the ``count`` highest indices of the ascending ``pool``."""

    if count <= 0 or not pool:
        return []
    count = min(count, len(pool))
    taken = pool[-count:]
    del pool[-count:]
    return taken


def _steal_from_tail(
    held: Dict[str, Set[int]],
    floors: Mapping[str, int],
    owners: Sequence[str],
    count: int,
) -> List[int]:
    """Take up to ``count`` of the highest indices held by ``owners``.

    An owner stops giving once it is down to its floor, so the next highest
    index of another owner is taken instead.
    """

    spare = {owner: len(held[owner]) - floors.get(owner, 0) for owner in owners}
    taken: List[int] = []
    for index, owner in sorted(((index, owner) for owner in owners for index in held[owner]), reverse=True):
        if len(taken) >= count:
            break
        if spare[owner] <= 0:
            continue
        spare[owner] -= 1
        held[owner].discard(index)
        taken.append(index)
    return taken


def _hand_out_to_empty(selection: Sequence[AgentRef], targets: Sequence[int], held: Dict[str, Set[int]]) -> None:
    # an agent that is still selected never ends without contacts while others hold two or more
    wanted = {agent.id: target for agent, target in zip(selection, targets)}
    for agent in selection:
        if wanted[agent.id] <= 0 or held[agent.id]:
            continue
        donor = max(
            (other.id for other in selection if other.id != agent.id),
            key=lambda other_id: (len(held[other_id]) - wanted[other_id], len(held[other_id])),
            default=None,
        )
        if donor is None or len(held[donor]) < 2:
            continue
        index = max(held[donor])
        held[donor].discard(index)
        held[agent.id].add(index)
        LOGGER.debug("Agent %s takes contact %s from %s to avoid an empty allocation", agent.id, index, donor)


__all__ = ["redistribute"]
