"""Tests for host, group and history records."""

import pytest

from assho.errors import ValidationError
from assho.ids import new_id
from assho.models import (
    MAX_HISTORY_ENTRIES,
    Group,
    HistoryEntry,
    Host,
    count_containers,
    ensure_group_ids,
    ensure_host_ids,
    find_group_by_name,
    find_host_by_alias,
    record_history,
    validate_port,
)


def test_new_id_is_hex_and_unique() -> None:
    ids = {new_id() for _ in range(200)}
    assert len(ids) == 200
    for value in ids:
        int(value, 16)


def test_record_history_moves_existing_host_to_front() -> None:
    history = [
        HistoryEntry(host_id="h2", alias="db", timestamp=2),
        HistoryEntry(host_id="h1", alias="web", timestamp=1),
    ]

    result = record_history(history, "h1", "web", timestamp=3)

    assert [e.host_id for e in result] == ["h1", "h2"]
    assert result[0].timestamp == 3
    # Input list is not modified
    assert len(history) == 2 and history[0].host_id == "h2"


def test_record_history_caps_length() -> None:
    history = [HistoryEntry(host_id=f"h{i}", alias=f"host{i}") for i in range(MAX_HISTORY_ENTRIES)]

    result = record_history(history, "new", "new-host")

    assert len(result) == MAX_HISTORY_ENTRIES
    assert result[0].host_id == "new"
    # Oldest entry dropped
    assert result[-1].host_id == f"h{MAX_HISTORY_ENTRIES - 2}"


@pytest.mark.parametrize("port", ["abc", "0", "65536", "-1", "99999"])
def test_validate_port_rejects_invalid(port: str) -> None:
    with pytest.raises(ValidationError):
        validate_port(port)


@pytest.mark.parametrize("port", ["", "22", "1", "65535", " 2222 "])
def test_validate_port_accepts_valid(port: str) -> None:
    assert validate_port(port) == port.strip()


def test_host_dict_omits_ui_state_and_empty_fields() -> None:
    host = Host(id="h1", alias="web", hostname="10.0.0.1", user="root", expanded=True)

    data = host.to_dict()

    assert data == {"id": "h1", "alias": "web", "hostname": "10.0.0.1", "user": "root", "port": "22"}


def test_host_from_dict_accepts_integer_port_and_links_containers() -> None:
    host = Host.from_dict(
        {
            "id": "h1",
            "alias": "web",
            "hostname": "10.0.0.1",
            "port": 2222,
            "containers": [{"id": "c1", "alias": "app", "hostname": "abc", "is_container": True}],
        }
    )

    assert host.port == "2222"
    assert host.containers[0].is_container
    assert host.containers[0].parent_id == "h1"


def test_group_expanded_round_trip() -> None:
    assert Group.from_dict(Group(id="g", name="prod", expanded=True).to_dict()).expanded
    assert "expanded" not in Group(id="g", name="prod").to_dict()


@pytest.mark.parametrize("value", ["false", "true", 1, "yes"])
def test_flags_only_accept_real_booleans(value) -> None:
    assert not Group.from_dict({"id": "g", "name": "prod", "expanded": value}).expanded
    assert not Host.from_dict({"alias": "web", "is_container": value}).is_container


def test_ensure_ids_assigns_missing() -> None:
    hosts = [Host(alias="web", containers=[Host(alias="app", is_container=True)])]
    groups = [Group(name="prod"), Group(id="g2", name="dev")]

    assert ensure_host_ids(hosts)
    assert ensure_group_ids(groups)

    assert hosts[0].id and hosts[0].containers[0].id
    assert hosts[0].containers[0].parent_id == hosts[0].id
    assert groups[1].id == "g2"
    assert not ensure_host_ids(hosts)


def test_lookups_are_case_insensitive(sample_groups, sample_hosts) -> None:
    assert find_group_by_name(sample_groups, "  PROD ") == 0
    assert find_group_by_name(sample_groups, "") == -1
    assert find_host_by_alias(sample_hosts, "WEB").id == "h1"
    assert find_host_by_alias(sample_hosts, "Nginx").id == "c1"
    assert count_containers(sample_hosts) == 1
