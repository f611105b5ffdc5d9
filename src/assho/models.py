"""Host, group and history records."""

import time
from dataclasses import dataclass, field
from typing import Any

from assho.errors import ValidationError
from assho.ids import new_id

DEFAULT_PORT = "22"
MAX_HISTORY_ENTRIES = 50


@dataclass
class Host:
    """A stored SSH target, or a Docker container reached through one."""

    id: str = ""
    alias: str = ""
    hostname: str = ""
    user: str = ""
    port: str = DEFAULT_PORT
    identity_file: str = ""
    proxy_jump: str = ""
    password: str = ""
    password_ref: str = ""
    group_id: str = ""
    containers: list["Host"] = field(default_factory=list)
    is_container: bool = False

    # UI state, never written to disk
    expanded: bool = False
    parent_id: str = ""

    @property
    def display_name(self) -> str:
        """Return a display-friendly connection summary."""
        if self.is_container:
            return f"Container: {self.hostname}"
        desc = f"{self.user}@{self.hostname}"
        if self.port and self.port != DEFAULT_PORT:
            desc += f":{self.port}"
        return desc

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "alias": self.alias,
            "hostname": self.hostname,
            "user": self.user,
            "port": self.port,
        }
        optional = {
            "identity_file": self.identity_file,
            "proxy_jump": self.proxy_jump,
            "password": self.password,
            "password_ref": self.password_ref,
            "group_id": self.group_id,
        }
        data.update({key: value for key, value in optional.items() if value})
        if self.containers:
            data["containers"] = [c.to_dict() for c in self.containers]
        if self.is_container:
            data["is_container"] = True
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any], parent_id: str = "") -> "Host":
        if not isinstance(data, dict):
            raise TypeError(f"host entry must be an object, got {type(data).__name__}")
        port = data.get("port")
        host = cls(
            id=str(data.get("id") or ""),
            alias=str(data.get("alias") or ""),
            hostname=str(data.get("hostname") or ""),
            user=str(data.get("user") or ""),
            port="" if port is None else str(port),
            identity_file=str(data.get("identity_file") or ""),
            proxy_jump=str(data.get("proxy_jump") or ""),
            password=str(data.get("password") or ""),
            password_ref=str(data.get("password_ref") or ""),
            group_id=str(data.get("group_id") or ""),
            is_container=data.get("is_container") is True,
            parent_id=parent_id,
        )
        host.containers = [
            cls.from_dict(c, parent_id=host.id) for c in data.get("containers") or []
        ]
        return host


@dataclass
class Group:
    """A named, collapsible bucket of hosts."""

    id: str = ""
    name: str = ""
    expanded: bool = False

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"id": self.id, "name": self.name}
        if self.expanded:
            data["expanded"] = True
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Group":
        if not isinstance(data, dict):
            raise TypeError(f"group entry must be an object, got {type(data).__name__}")
        return cls(
            id=str(data.get("id") or ""),
            name=str(data.get("name") or ""),
            expanded=data.get("expanded") is True,
        )


@dataclass
class HistoryEntry:
    """One past connection. The alias is cached so it outlives the host."""

    host_id: str
    alias: str
    timestamp: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {"host_id": self.host_id, "alias": self.alias, "timestamp": self.timestamp}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "HistoryEntry":
        if not isinstance(data, dict):
            raise TypeError(
                f"history entry must be an object, got {type(data).__name__}"
            )
        return cls(
            host_id=str(data.get("host_id") or ""),
            alias=str(data.get("alias") or ""),
            timestamp=int(data.get("timestamp") or 0),
        )


def record_history(
    history: list[HistoryEntry],
    host_id: str,
    alias: str,
    timestamp: int | None = None,
) -> list[HistoryEntry]:
    """Return a new history list with host_id at the front.

    Any older entry for the same host is dropped and the result is capped
    at MAX_HISTORY_ENTRIES.
    """
    if timestamp is None:
        timestamp = int(time.time())
    entry = HistoryEntry(host_id=host_id, alias=alias, timestamp=timestamp)
    filtered = [entry] + [h for h in history if h.host_id != host_id]
    return filtered[:MAX_HISTORY_ENTRIES]


def validate_port(value: str) -> str:
    """Check a user-supplied port, returning it stripped.

    An empty value is allowed and means the default port.

    Raises:
        ValidationError: If the port is not an integer in 1..65535.
    """
    value = value.strip()
    if not value:
        return value
    try:
        port = int(value)
    except ValueError:
        raise ValidationError(f"invalid port: {value}") from None
    if port < 1 or port > 65535:
        raise ValidationError(f"port out of range (1-65535): {value}")
    return value


def normalize_key(name: str) -> str:
    """Case-insensitive comparison key for aliases and group names."""
    return name.strip().lower()


def find_host_index(hosts: list[Host], host_id: str) -> int:
    for i, host in enumerate(hosts):
        if host.id == host_id:
            return i
    return -1


def find_group_index(groups: list[Group], group_id: str) -> int:
    for i, group in enumerate(groups):
        if group.id == group_id:
            return i
    return -1


def find_group_by_name(groups: list[Group], name: str) -> int:
    target = normalize_key(name)
    if not target:
        return -1
    for i, group in enumerate(groups):
        if normalize_key(group.name) == target:
            return i
    return -1


def find_host_by_alias(hosts: list[Host], alias: str) -> Host | None:
    """Look up a host or container by alias, case-insensitively."""
    target = normalize_key(alias)
    if not target:
        return None
    for host in hosts:
        if normalize_key(host.alias) == target:
            return host
    for host in hosts:
        for container in host.containers:
            if normalize_key(container.alias) == target:
                return container
    return None


def iter_all_hosts(hosts: list[Host]):
    """Yield every host followed by its containers."""
    for host in hosts:
        yield host
        yield from host.containers


def count_containers(hosts: list[Host]) -> int:
    return sum(len(h.containers) for h in hosts)


def ensure_host_ids(hosts: list[Host]) -> bool:
    """Assign ids to hosts and containers that lack one.

    Also points every container back at its parent. Returns True if any id
    was assigned.
    """
    changed = False
    for host in hosts:
        if not host.id:
            host.id = new_id()
            changed = True
        for container in host.containers:
            container.parent_id = host.id
        if ensure_host_ids(host.containers):
            changed = True
    return changed


def ensure_group_ids(groups: list[Group]) -> bool:
    changed = False
    for group in groups:
        if not group.id:
            group.id = new_id()
            changed = True
    return changed
