"""Property-based tests for node lifecycle phases."""

import pytest
from hypothesis import given
from hypothesis import strategies as st

from maintenance_manager.exceptions import PreconditionFailedError
from maintenance_manager.models.node import ALLOWED_TRANSITIONS, LifecyclePhase, Node


@st.composite
def valid_hostname(draw):
    """Generate valid RFC 1123 hostnames."""
    num_labels = draw(st.integers(min_value=1, max_value=3))
    labels = []
    for _ in range(num_labels):
        length = draw(st.integers(min_value=1, max_value=10))
        if length == 1:
            label = draw(st.sampled_from("abcdefghijklmnopqrstuvwxyz0123456789"))
        else:
            start = draw(st.sampled_from("abcdefghijklmnopqrstuvwxyz0123456789"))
            middle = "".join(
                draw(
                    st.lists(
                        st.sampled_from("abcdefghijklmnopqrstuvwxyz0123456789-"),
                        min_size=length - 2,
                        max_size=length - 2,
                    )
                )
            )
            end = draw(st.sampled_from("abcdefghijklmnopqrstuvwxyz0123456789"))
            label = start + middle + end
        labels.append(label)
    return ".".join(labels)


@st.composite
def node_in_phase(draw):
    """Generate a node sitting in an arbitrary phase."""
    node = Node(
        node_id=draw(valid_hostname()),
        address=draw(valid_hostname()),
        service_vm=draw(st.from_regex(r"[a-z][a-z0-9-]{0,15}", fullmatch=True)),
    )
    node.phase = draw(st.sampled_from(list(LifecyclePhase)))
    return node


@given(node=node_in_phase())
def test_exactly_one_next_phase(node):
    """Every phase has exactly one legal successor."""
    allowed = [p for p in LifecyclePhase if node.can_transition_to(p)]

    assert allowed == [ALLOWED_TRANSITIONS[node.phase]]


@given(node=node_in_phase())
def test_full_cycle_returns_to_start(node):
    """Four legal steps bring a node back to the phase it started in."""
    start = node.phase

    for _ in range(len(LifecyclePhase)):
        previous = node.phase
        assert node.transition_to(ALLOWED_TRANSITIONS[node.phase]) == previous

    assert node.phase == start


@given(node=node_in_phase(), target=st.sampled_from(list(LifecyclePhase)))
def test_illegal_transition_leaves_phase_unchanged(node, target):
    """Skipping or repeating a phase is rejected without side effects."""
    if target == ALLOWED_TRANSITIONS[node.phase]:
        return
    start = node.phase

    with pytest.raises(PreconditionFailedError):
        node.transition_to(target)

    assert node.phase == start


@given(node=node_in_phase())
def test_inventory_round_trip_resets_phase(node):
    """Phase is runtime state and is never written to the inventory."""
    restored = Node.from_inventory_dict(node.node_id, node.to_inventory_dict())

    assert restored.node_id == node.node_id
    assert restored.service_vm == node.service_vm
    assert restored.phase == LifecyclePhase.ACTIVE
