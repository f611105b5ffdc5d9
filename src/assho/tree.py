"""Flatten the group/host/container hierarchy into display rows."""

from dataclasses import dataclass

from assho.models import Group, Host


@dataclass(frozen=True)
class Row:
    """One line of the dashboard: either a group or a host."""

    kind: str  # 'group' or 'host'
    indent: int
    group: Group | None = None
    host: Host | None = None

    @property
    def is_group(self) -> bool:
        return self.kind == "group"

    @property
    def is_container(self) -> bool:
        return self.host is not None and self.host.is_container

    @property
    def item_id(self) -> str:
        if self.group is not None:
            return self.group.id
        return self.host.id if self.host is not None else ""

    @property
    def label(self) -> str:
        if self.group is not None:
            return self.group.name
        return self.host.alias if self.host is not None else ""

    @property
    def search_text(self) -> str:
        """Text matched by the dashboard filter."""
        if self.group is not None:
            return self.group.name
        return f"{self.host.alias} {self.host.hostname}"


def _host_rows(host: Host, indent: int, show_containers: bool) -> list[Row]:
    rows = [Row(kind="host", indent=indent, host=host)]
    if show_containers:
        for container in host.containers:
            rows.append(Row(kind="host", indent=indent + 1, host=container))
    return rows


def _partition(groups: list[Group], hosts: list[Host]) -> tuple[list[Host], dict[str, list[Host]]]:
    # Hosts pointing at a group that no longer exists are treated as ungrouped.
    known = {g.id for g in groups}
    ungrouped: list[Host] = []
    members: dict[str, list[Host]] = {g.id: [] for g in groups}
    for host in hosts:
        if host.group_id and host.group_id in known:
            members[host.group_id].append(host)
        else:
            ungrouped.append(host)
    return ungrouped, members


def flatten_hosts(groups: list[Group], hosts: list[Host]) -> list[Row]:
    """Project the hierarchy honoring collapse state.

    Ungrouped hosts come first, then each group row followed by its members
    when the group is expanded. Containers follow their host only when the
    host is expanded.

    Args:
        groups: Groups in display order.
        hosts: Top-level hosts in stored order.

    Returns:
        Ordered list of rows with computed indentation.
    """
    ungrouped, members = _partition(groups, hosts)
    rows: list[Row] = []
    for host in ungrouped:
        rows.extend(_host_rows(host, 0, host.expanded))
    for group in groups:
        rows.append(Row(kind="group", indent=0, group=group))
        if not group.expanded:
            continue
        for host in members[group.id]:
            rows.extend(_host_rows(host, 1, host.expanded))
    return rows


def flatten_all(groups: list[Group], hosts: list[Host]) -> list[Row]:
    """Project every group, host and container regardless of collapse state.

    Used by the dashboard filter so hidden items can still be found.
    """
    ungrouped, members = _partition(groups, hosts)
    rows: list[Row] = []
    for host in ungrouped:
        rows.extend(_host_rows(host, 0, True))
    for group in groups:
        rows.append(Row(kind="group", indent=0, group=group))
        for host in members[group.id]:
            rows.extend(_host_rows(host, 1, True))
    return rows
