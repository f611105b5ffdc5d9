"""Transactional state for groups, hosts and history.

Every mutation snapshots the current state, applies the change, refreshes
the display rows and saves the document. If the save fails the snapshot
is restored, so memory never holds a change that is not on disk.
"""

import copy
import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path

from assho import ssh_config
from assho.config import Config, load_config, save_config
from assho.errors import AsshoError, PersistenceError, ValidationError
from assho.ids import new_id
from assho.models import (
    DEFAULT_PORT,
    Group,
    HistoryEntry,
    Host,
    ensure_group_ids,
    ensure_host_ids,
    find_group_by_name,
    find_group_index,
    find_host_by_alias,
    find_host_index,
    iter_all_hosts,
    normalize_key,
    record_history,
    validate_port,
)
from assho.tree import Row, flatten_all, flatten_hosts

logger = logging.getLogger(__name__)

HISTORY_VIEW_LIMIT = 5
DELETED_SUFFIX = " (deleted)"


@dataclass
class Snapshot:
    """Deep copy of the mutable state taken before a change."""

    groups: list[Group]
    hosts: list[Host]
    history: list[HistoryEntry]


@dataclass
class HostForm:
    """User-entered host fields, as collected by a form or CLI options."""

    alias: str
    hostname: str = ""
    user: str = ""
    port: str = DEFAULT_PORT
    identity_file: str = ""
    proxy_jump: str = ""
    password: str = ""
    group: str = ""

    @classmethod
    def from_host(cls, host: Host, group_name: str = "") -> "HostForm":
        return cls(
            alias=host.alias,
            hostname=host.hostname,
            user=host.user,
            port=host.port,
            identity_file=host.identity_file,
            proxy_jump=host.proxy_jump,
            password=host.password,
            group=group_name,
        )


@dataclass
class ImportResult:
    imported: list[Host] = field(default_factory=list)
    skipped: int = 0


class Store:
    """Owns the live groups, hosts and history and mutates them atomically."""

    def __init__(
        self,
        config: Config | None = None,
        saver: Callable[[Config], None] = save_config,
    ):
        """Initialize the store.

        Args:
            config: Initial state. Defaults to an empty config.
            saver: Persists a Config; raises PersistenceError on failure.
        """
        if config is None:
            config = Config()
        self.groups: list[Group] = config.groups
        self.hosts: list[Host] = config.hosts
        self.history: list[HistoryEntry] = config.history
        self._saver = saver
        self.rows: list[Row] = []
        self.refresh()

    @classmethod
    def open(cls) -> tuple["Store", AsshoError | None]:
        """Load the store from disk, assigning any missing ids.

        Returns:
            The store and a non-fatal error raised while migrating or
            re-saving the document, if any.
        """
        config, error = load_config()
        hosts_changed = ensure_host_ids(config.hosts)
        groups_changed = ensure_group_ids(config.groups)
        store = cls(config)
        if hosts_changed or groups_changed:
            logger.info("Assigned missing ids, re-saving config")
            try:
                store.save()
            except PersistenceError as e:
                error = error or e
        return store, error

    # -- state plumbing --------------------------------------------------

    def config(self) -> Config:
        return Config(groups=self.groups, hosts=self.hosts, history=self.history)

    def save(self) -> None:
        self._saver(self.config())

    def refresh(self) -> None:
        """Recompute the display rows from the current state."""
        self.rows = flatten_hosts(self.groups, self.hosts)

    def all_rows(self) -> list[Row]:
        """Rows for every item, ignoring collapse state."""
        return flatten_all(self.groups, self.hosts)

    def snapshot(self) -> Snapshot:
        return Snapshot(
            groups=copy.deepcopy(self.groups),
            hosts=copy.deepcopy(self.hosts),
            history=copy.deepcopy(self.history),
        )

    def restore(self, snapshot: Snapshot) -> None:
        self.groups = snapshot.groups
        self.hosts = snapshot.hosts
        self.history = snapshot.history
        self.refresh()

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Apply the enclosed mutation, then persist it or roll it back."""
        snapshot = self.snapshot()
        try:
            yield
            self.refresh()
            self.save()
        except Exception:
            logger.warning("Mutation failed, restoring previous state")
            self.restore(snapshot)
            raise

    # -- lookups ---------------------------------------------------------

    def find_host(self, host_id: str) -> Host | None:
        """Find a host or container by id."""
        for host in iter_all_hosts(self.hosts):
            if host.id == host_id:
                return host
        return None

    def find_host_by_alias(self, alias: str) -> Host | None:
        return find_host_by_alias(self.hosts, alias)

    def find_group_by_name(self, name: str) -> Group | None:
        idx = find_group_by_name(self.groups, name)
        return self.groups[idx] if idx != -1 else None

    def group_name(self, group_id: str) -> str:
        idx = find_group_index(self.groups, group_id)
        return self.groups[idx].name if idx != -1 else ""

    def _require_host_index(self, host_id: str) -> int:
        idx = find_host_index(self.hosts, host_id)
        if idx == -1:
            raise ValidationError(f"host not found: {host_id}")
        return idx

    def _require_group_index(self, group_id: str) -> int:
        idx = find_group_index(self.groups, group_id)
        if idx == -1:
            raise ValidationError(f"group not found: {group_id}")
        return idx

    # -- hosts -----------------------------------------------------------

    def save_host(self, form: HostForm, host_id: str | None = None) -> Host:
        """Create a host, or update the host with host_id.

        A group named in the form that does not exist yet is created in
        the same transaction. Editing keeps the host's id, containers and
        expansion state.

        Raises:
            ValidationError: On an empty or duplicate alias, a bad port or
                an unknown host_id.
            PersistenceError: If saving fails.
        """
        alias = form.alias.strip()
        if not alias:
            raise ValidationError("alias is required")
        for host in self.hosts:
            if normalize_key(host.alias) == normalize_key(alias) and host.id != host_id:
                raise ValidationError(f"alias already exists: {alias}")
        port = validate_port(form.port)
        existing_idx = self._require_host_index(host_id) if host_id else -1

        new_host = Host(
            alias=alias,
            hostname=form.hostname.strip(),
            user=form.user.strip(),
            port=port,
            identity_file=form.identity_file.strip(),
            proxy_jump=form.proxy_jump.strip(),
            password=form.password,
        )

        with self.transaction():
            group_name = form.group.strip()
            if group_name:
                idx = find_group_by_name(self.groups, group_name)
                if idx == -1:
                    self.groups.append(Group(id=new_id(), name=group_name, expanded=True))
                    idx = len(self.groups) - 1
                new_host.group_id = self.groups[idx].id

            if existing_idx != -1:
                old = self.hosts[existing_idx]
                new_host.id = old.id
                new_host.containers = old.containers
                new_host.expanded = old.expanded
                new_host.password_ref = old.password_ref if form.password == old.password else ""
                self.hosts[existing_idx] = new_host
            else:
                new_host.id = new_id()
                self.hosts.append(new_host)

        logger.info("Saved host %s (%s)", new_host.alias, new_host.id)
        return new_host

    def delete_host(self, host_id: str) -> None:
        """Delete a host, or a container from its parent.

        History entries for the host are kept and shown as deleted.
        """
        idx = find_host_index(self.hosts, host_id)
        if idx != -1:
            with self.transaction():
                del self.hosts[idx]
            return

        for parent_idx, parent in enumerate(self.hosts):
            for child_idx, child in enumerate(parent.containers):
                if child.id == host_id:
                    with self.transaction():
                        del self.hosts[parent_idx].containers[child_idx]
                    return
        raise ValidationError(f"host not found: {host_id}")

    def toggle_host(self, host_id: str) -> bool:
        """Flip a host's container visibility. Not persisted."""
        idx = self._require_host_index(host_id)
        self.hosts[idx].expanded = not self.hosts[idx].expanded
        self.refresh()
        return self.hosts[idx].expanded

    def set_containers(self, host_id: str, containers: list[Host]) -> None:
        """Replace a host's containers with freshly discovered ones."""
        idx = self._require_host_index(host_id)
        with self.transaction():
            parent = self.hosts[idx]
            for container in containers:
                container.is_container = True
                container.parent_id = parent.id
                container.group_id = ""
                if not container.id:
                    container.id = new_id()
            parent.containers = list(containers)
            parent.expanded = True

    def move_host(self, host_id: str, direction: int) -> bool:
        """Swap a host with its nearest neighbor in the same group.

        Args:
            host_id: Top-level host to move.
            direction: -1 for up, +1 for down.

        Returns:
            True if the host moved, False if there was no neighbor.
        """
        idx = find_host_index(self.hosts, host_id)
        if idx == -1:
            # Containers and unknown ids cannot be reordered.
            return False
        # A dangling group id places the host among the ungrouped ones.
        known = {g.id for g in self.groups}

        def effective_group(host: Host) -> str:
            return host.group_id if host.group_id in known else ""

        group_id = effective_group(self.hosts[idx])
        step = -1 if direction < 0 else 1

        neighbor = idx + step
        while 0 <= neighbor < len(self.hosts):
            if effective_group(self.hosts[neighbor]) == group_id:
                break
            neighbor += step
        else:
            return False

        with self.transaction():
            self.hosts[idx], self.hosts[neighbor] = self.hosts[neighbor], self.hosts[idx]
        return True

    # -- groups ----------------------------------------------------------

    def _check_group_name(self, name: str, group_id: str = "") -> str:
        name = name.strip()
        if not name:
            raise ValidationError("group name is required")
        idx = find_group_by_name(self.groups, name)
        if idx != -1 and self.groups[idx].id != group_id:
            raise ValidationError("group name already exists")
        return name

    def create_group(self, name: str) -> Group:
        name = self._check_group_name(name)
        group = Group(id=new_id(), name=name, expanded=True)
        with self.transaction():
            self.groups.append(group)
        return group

    def rename_group(self, group_id: str, name: str) -> None:
        name = self._check_group_name(name, group_id)
        idx = self._require_group_index(group_id)
        with self.transaction():
            self.groups[idx].name = name

    def delete_group(self, group_id: str) -> None:
        """Delete a group; its hosts become ungrouped."""
        idx = self._require_group_index(group_id)
        with self.transaction():
            del self.groups[idx]
            for host in self.hosts:
                if host.group_id == group_id:
                    host.group_id = ""

    def toggle_group(self, group_id: str) -> bool:
        idx = self._require_group_index(group_id)
        with self.transaction():
            self.groups[idx].expanded = not self.groups[idx].expanded
        return self.groups[idx].expanded

    def move_group(self, group_id: str, direction: int) -> bool:
        """Swap a group with the adjacent group. Returns False at either end."""
        idx = self._require_group_index(group_id)
        new_idx = idx + (-1 if direction < 0 else 1)
        if new_idx < 0 or new_idx >= len(self.groups):
            return False
        with self.transaction():
            self.groups[idx], self.groups[new_idx] = self.groups[new_idx], self.groups[idx]
        return True

    # -- history ---------------------------------------------------------

    def record_history(self, host: Host) -> None:
        with self.transaction():
            self.history = record_history(self.history, host.id, host.alias)

    def history_hosts(self, limit: int = HISTORY_VIEW_LIMIT) -> list[Host]:
        """Recent hosts, newest first.

        Entries whose host was deleted come back as placeholder hosts with
        no address and the cached alias marked as deleted.
        """
        by_id = {h.id: h for h in iter_all_hosts(self.hosts)}
        items: list[Host] = []
        seen: set[str] = set()
        for entry in self.history:
            if entry.host_id in seen:
                continue
            seen.add(entry.host_id)
            host = by_id.get(entry.host_id)
            if host is None:
                host = Host(id=entry.host_id, alias=entry.alias + DELETED_SUFFIX, port="")
            items.append(host)
            if len(items) >= limit:
                break
        return items

    # -- ssh config interchange -----------------------------------------

    def import_ssh_config(self, config_path: Path | None = None) -> ImportResult:
        """Add hosts from the SSH config whose aliases are new."""
        imported, skipped = ssh_config.import_ssh_config(self.hosts, config_path)
        if imported:
            with self.transaction():
                self.hosts.extend(imported)
        logger.info("Imported %d hosts (%d skipped)", len(imported), skipped)
        return ImportResult(imported=imported, skipped=skipped)

    def export_ssh_config(self, config_path: Path | None = None) -> tuple[int, int]:
        return ssh_config.export_ssh_config(self.hosts, config_path)
