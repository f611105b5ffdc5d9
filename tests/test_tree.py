"""Tests for the display row projection."""

from assho.models import Group, Host
from assho.tree import flatten_all, flatten_hosts


def _ids(rows) -> list[tuple[str, str, int]]:
    return [(row.kind, row.item_id, row.indent) for row in rows]


def test_ungrouped_first_then_groups(sample_groups, sample_hosts) -> None:
    rows = flatten_hosts(sample_groups, sample_hosts)

    assert _ids(rows) == [
        ("host", "h2", 0),
        ("group", "g1", 0),
        ("host", "h1", 1),
        ("host", "h3", 1),
        ("group", "g2", 0),
    ]


def test_collapsed_group_hides_members() -> None:
    hosts = [
        Host(id="h1", alias="web", group_id="g1"),
        Host(id="h2", alias="db"),
    ]
    groups = [Group(id="g1", name="prod", expanded=False)]

    rows = flatten_hosts(groups, hosts)

    assert _ids(rows) == [("host", "h2", 0), ("group", "g1", 0)]


def test_expanded_host_shows_containers(sample_groups, sample_hosts) -> None:
    sample_hosts[2].expanded = True

    rows = flatten_hosts(sample_groups, sample_hosts)

    assert ("host", "c1", 2) in _ids(rows)
    container_row = next(r for r in rows if r.item_id == "c1")
    assert container_row.is_container


def test_ungrouped_expanded_host_containers_indent_one() -> None:
    host = Host(id="h1", alias="web", expanded=True, containers=[Host(id="c1", is_container=True)])

    assert _ids(flatten_hosts([], [host])) == [("host", "h1", 0), ("host", "c1", 1)]


def test_dangling_group_reference_is_ungrouped() -> None:
    hosts = [Host(id="h1", alias="web", group_id="gone")]

    rows = flatten_hosts([], hosts)

    assert _ids(rows) == [("host", "h1", 0)]


def test_flatten_all_ignores_collapse_state(sample_groups, sample_hosts) -> None:
    rows = flatten_all(sample_groups, sample_hosts)

    assert _ids(rows) == [
        ("host", "h2", 0),
        ("group", "g1", 0),
        ("host", "h1", 1),
        ("host", "h3", 1),
        ("host", "c1", 2),
        ("group", "g2", 0),
        ("host", "h4", 1),
    ]


def test_projection_is_pure(sample_groups, sample_hosts) -> None:
    first = flatten_hosts(sample_groups, sample_hosts)
    second = flatten_hosts(sample_groups, sample_hosts)

    assert first == second
    assert [h.id for h in sample_hosts] == ["h1", "h2", "h3", "h4"]
