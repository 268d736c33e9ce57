"""Tests for the per-user view."""

from taskpulse.users import UNKNOWN_USER, aggregate_users
from tests.conftest import make_entity


def test_groups_by_user_then_name() -> None:
    """Each user gets their own name-keyed groups."""
    sessions = aggregate_users(
        [
            make_entity("bash", 1, cpu=1, memory=10, username="bob"),
            make_entity("chrome", 2, cpu=20, memory=100, username="alice"),
            make_entity("chrome", 3, cpu=5, memory=50, username="alice"),
            make_entity("vim", 4, cpu=30, memory=5, username="alice"),
        ]
    )
    assert [s.username for s in sessions] == ["alice", "bob"]
    alice = sessions[0]
    assert alice.process_count == 3
    assert alice.cpu_usage == 55
    assert alice.memory == 155
    assert [g.name for g in alice.groups] == ["vim", "chrome"]
    assert alice.groups[1].total_cpu == 25


def test_users_sorted_case_insensitively() -> None:
    """Usernames sort without regard to case."""
    sessions = aggregate_users(
        [make_entity("a", 1, username="zed"), make_entity("b", 2, username="Amy")]
    )
    assert [s.username for s in sessions] == ["Amy", "zed"]


def test_missing_username() -> None:
    """Processes without an owner collect under the unknown user."""
    sessions = aggregate_users([make_entity("kthreadd", 2)])
    assert sessions[0].username == UNKNOWN_USER


def test_empty() -> None:
    """No processes, no users."""
    assert aggregate_users([]) == []
