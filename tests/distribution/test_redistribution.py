import pytest

from mailing_dispatch.distribution import (
    InvalidManualQuantityError,
    NoAgentsSelectedError,
    QuantityExceedsTotalError,
    plan_distribution,
    redistribute,
)
from mailing_dispatch.models import AgentRef, AllocationStrategy, DistributionMode, RedistributionStrategy

ANA = AgentRef("a", "Ana")
BIA = AgentRef("b", "Bia")
CAIO = AgentRef("c", "Caio")
DANI = AgentRef("d", "Dani")


def test_added_agent_takes_contacts_from_the_end():
    plan = plan_distribution(10000, "multiple", [ANA, BIA])

    new_plan = redistribute(plan, [ANA, BIA, CAIO])

    assert new_plan.allocation_for("c").segments == (range(6667, 10000),)
    before, after = plan.assignments(), new_plan.assignments()
    assert after[:6667] == before[:6667]
    assert new_plan.quantities() == [("a", 5000), ("b", 1667), ("c", 3333)]
    assert new_plan.assigned_total == 10000


def test_adding_two_agents_keeps_every_selected_agent():
    plan = plan_distribution(10000, "multiple", [ANA, BIA])

    new_plan = redistribute(plan, [ANA, BIA, CAIO, DANI])

    assert new_plan.agent_ids == ["a", "b", "c", "d"]
    assert new_plan.quantities() == [("a", 3750), ("b", 1250), ("c", 2500), ("d", 2500)]
    assert new_plan.allocation_for("b").segments == (range(5000, 6250),)
    assert new_plan.allocation_for("c").segments == (range(7500, 10000),)
    assert new_plan.allocation_for("d").segments == (range(3750, 5000), range(6250, 7500))
    assert new_plan.assignments()[:3750] == plan.assignments()[:3750]


def test_shrinking_total_leaves_no_selected_agent_empty():
    plan = plan_distribution(10, "multiple", [ANA, BIA])

    new_plan = redistribute(plan, [ANA, BIA, CAIO], 5)

    assert new_plan.quantities() == [("a", 3), ("b", 1), ("c", 1)]
    assert new_plan.assignments() == ["a", "a", "a", "b", "c"]


@pytest.mark.parametrize("added", [1, 2, 3, 5, 8])
def test_remaining_agents_keep_half_their_share(added):
    plan = plan_distribution(1000, "multiple", [ANA, BIA])
    newcomers = [AgentRef(f"n{position}") for position in range(added)]

    new_plan = redistribute(plan, [ANA, BIA] + newcomers)

    quantities = dict(new_plan.quantities())
    assert len(quantities) == 2 + added
    assert new_plan.assigned_total == 1000
    assert quantities["b"] >= (1000 // (2 + added)) // 2


def test_input_plan_is_not_modified():
    plan = plan_distribution(10000, "multiple", [ANA, BIA])
    snapshot = plan.to_dict()

    redistribute(plan, [ANA, BIA, CAIO])

    assert plan.to_dict() == snapshot


def test_removed_agent_contacts_go_to_remaining_agents():
    plan = plan_distribution(9, "multiple", [ANA, BIA, CAIO])

    new_plan = redistribute(plan, [ANA, CAIO])

    assert new_plan.allocation_for("a").segments == (range(0, 5),)
    assert new_plan.allocation_for("c").segments == (range(5, 9),)
    assert new_plan.allocation_for("b") is None


def test_swapping_agents_keeps_the_remaining_agent_untouched():
    plan = plan_distribution(10000, "multiple", [ANA, BIA])

    new_plan = redistribute(plan, [BIA, DANI])

    assert new_plan.allocation_for("b").segments == (range(5000, 10000),)
    assert new_plan.allocation_for("d").segments == (range(0, 5000),)


def test_single_agent_replacement_stays_single():
    plan = plan_distribution(100, "single", [ANA])

    new_plan = redistribute(plan, [BIA])

    assert new_plan.mode is DistributionMode.SINGLE
    assert new_plan.strategy is None
    assert new_plan.quantities() == [("b", 100)]


def test_balanced_strategy_lays_out_contiguous_blocks():
    plan = plan_distribution(10000, "multiple", [ANA, BIA])

    new_plan = redistribute(plan, [ANA, BIA, CAIO], strategy=RedistributionStrategy.BALANCED)

    assert [allocation.segments for allocation in new_plan.allocations] == [
        (range(0, 3334),),
        (range(3334, 6667),),
        (range(6667, 10000),),
    ]


def test_manual_redistribution_releases_highest_indices():
    plan = plan_distribution(10, "multiple", [ANA, BIA])

    new_plan = redistribute(plan, [ANA, BIA, CAIO], manual_quantities={"a": 2, "b": 5, "c": 3})

    assert new_plan.strategy is AllocationStrategy.MANUAL
    assert new_plan.allocation_for("a").segments == (range(0, 2),)
    assert new_plan.allocation_for("b").segments == (range(5, 10),)
    assert new_plan.allocation_for("c").segments == (range(2, 5),)


def test_growing_total_hands_new_indices_to_agents_below_share():
    plan = plan_distribution(10, "multiple", [ANA, BIA])

    new_plan = redistribute(plan, [ANA, BIA], 20)

    assert new_plan.allocation_for("a").segments == (range(0, 5), range(10, 15))
    assert new_plan.allocation_for("b").segments == (range(5, 10), range(15, 20))


def test_redistribution_total_is_capped():
    plan = plan_distribution(10, "multiple", [ANA])

    new_plan = redistribute(plan, [ANA, BIA], 25000)

    assert new_plan.effective_total == 10000
    assert new_plan.assigned_total == 10000


@pytest.mark.parametrize(
    "roster",
    [[ANA], [BIA, CAIO], [CAIO, DANI, ANA], [DANI], [ANA, BIA, CAIO, DANI]],
)
def test_automatic_redistribution_assigns_everything(roster):
    plan = plan_distribution(997, "multiple", [ANA, BIA, CAIO])

    new_plan = redistribute(plan, roster)

    owners = new_plan.assignments()
    assert None not in owners
    assert new_plan.assigned_total == 997


def test_manual_redistribution_errors():
    plan = plan_distribution(10, "multiple", [ANA, BIA])

    with pytest.raises(QuantityExceedsTotalError):
        redistribute(plan, [ANA, BIA], manual_quantities={"a": 6, "b": 5})
    with pytest.raises(InvalidManualQuantityError):
        redistribute(plan, [ANA, BIA], manual_quantities={"c": 1})
    with pytest.raises(NoAgentsSelectedError):
        redistribute(plan, [ANA], manual_quantities={})


def test_empty_roster_is_rejected():
    plan = plan_distribution(10, "multiple", [ANA, BIA])

    with pytest.raises(NoAgentsSelectedError):
        redistribute(plan, [])
