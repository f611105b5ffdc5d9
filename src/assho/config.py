"""Configuration storage for assho.

The document lives at ~/.config/assho/hosts.json and holds groups, hosts
and connection history. Older layouts (unversioned, or a bare list of
hosts) are still accepted on load, and a document found under the old
~/.config/asshi directory is migrated once.
"""

import json
import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from assho import keychain
from assho.errors import ConfigFormatError, KeychainError, PersistenceError
from assho.ids import new_id
from assho.models import Group, HistoryEntry, Host

logger = logging.getLogger(__name__)

CONFIG_VERSION = 3
APP_NAME = "assho"
LEGACY_APP_NAME = "asshi"
CONFIG_FILENAME = "hosts.json"

_FALSE_VALUES = ("0", "false", "no")
_TRUE_VALUES = ("1", "true", "yes")


@dataclass
class Config:
    """Everything persisted in the config document."""

    groups: list[Group] = field(default_factory=list)
    hosts: list[Host] = field(default_factory=list)
    history: list[HistoryEntry] = field(default_factory=list)
    version: int = CONFIG_VERSION


def get_config_path() -> Path:
    return Path.home() / ".config" / APP_NAME / CONFIG_FILENAME


def get_legacy_config_path() -> Path:
    return Path.home() / ".config" / LEGACY_APP_NAME / CONFIG_FILENAME


def _env_setting(name: str) -> str:
    """Read ASSHO_<name>, falling back to the old ASSHI_<name>."""
    value = os.environ.get(f"ASSHO_{name}", "").strip().lower()
    if not value:
        value = os.environ.get(f"ASSHI_{name}", "").strip().lower()
    return value


def should_persist_password() -> bool:
    """Whether passwords may be written to the document or keychain.

    Defaults to True; ASSHO_STORE_PASSWORD=0/false/no turns it off.
    """
    value = _env_setting("STORE_PASSWORD")
    if not value:
        return True
    return value not in _FALSE_VALUES


def allow_insecure_test() -> bool:
    """Whether connection tests may skip host key checking."""
    return _env_setting("INSECURE_TEST") in _TRUE_VALUES


def expand_path(path: str) -> str:
    """Expand environment variables and a leading ~ in a path."""
    if not path:
        return path
    return os.path.expanduser(os.path.expandvars(path))


def default_config() -> Config:
    """Config used when no document exists yet."""
    return Config(
        hosts=[
            Host(
                id=new_id(),
                alias="Localhost",
                hostname="127.0.0.1",
                user="root",
                port="22",
            )
        ]
    )


def sanitize_hosts_for_save(hosts: list[Host]) -> list[Host]:
    """Return copies of hosts with secrets handled per the current policy.

    With persistence disabled both password fields are cleared. Otherwise
    each password is offered to the keychain under the host id; on success
    only the reference is kept, on failure the plaintext stays.
    """
    persist = should_persist_password()
    sanitized: list[Host] = []
    for host in hosts:
        copy = replace(host, containers=[])
        if not persist:
            copy.password = ""
            copy.password_ref = ""
        elif copy.password:
            try:
                keychain.store_password_secret(copy.id, copy.password)
            except KeychainError as e:
                logger.debug("Keeping plaintext password for %s: %s", copy.alias, e)
            else:
                copy.password_ref = copy.id
                copy.password = ""
        copy.containers = sanitize_hosts_for_save(host.containers)
        sanitized.append(copy)
    return sanitized


def hydrate_host_passwords(hosts: list[Host]) -> None:
    """Fill in passwords that are stored in the keychain."""
    for host in hosts:
        if not host.password and host.password_ref:
            try:
                host.password = keychain.lookup_password_secret(host.password_ref)
            except KeychainError as e:
                logger.warning("Cannot read password for %s: %s", host.alias, e)
        hydrate_host_passwords(host.containers)


def _parse_entries(data: dict[str, Any], key: str, factory) -> list:
    entries = data.get(key) or []
    if not isinstance(entries, list):
        raise TypeError(f"'{key}' must be a list")
    return [factory(entry) for entry in entries]


def parse_document(text: str) -> Config:
    """Decode a config document in any supported layout.

    Tried in order: the versioned document, an unversioned document
    (treated as version 1), and a bare list of hosts.

    Raises:
        ConfigFormatError: If none of the layouts match.
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ConfigFormatError(f"invalid config format: {e}") from e

    try:
        if isinstance(data, dict):
            version = data.get("version") or 0
            if not isinstance(version, int):
                raise TypeError("'version' must be an integer")
            if version > 0 or data.get("hosts") or data.get("groups"):
                return Config(
                    groups=_parse_entries(data, "groups", Group.from_dict),
                    hosts=_parse_entries(data, "hosts", Host.from_dict),
                    history=_parse_entries(data, "history", HistoryEntry.from_dict),
                    version=version or 1,
                )
        elif isinstance(data, list):
            return Config(hosts=[Host.from_dict(entry) for entry in data], version=0)
    except (TypeError, ValueError) as e:
        raise ConfigFormatError(f"invalid config format: {e}") from e

    raise ConfigFormatError("invalid config format")


def encode_document(config: Config) -> str:
    """Serialize config, applying the password policy to the hosts."""
    document = {
        "version": CONFIG_VERSION,
        "groups": [g.to_dict() for g in config.groups],
        "hosts": [h.to_dict() for h in sanitize_hosts_for_save(config.hosts)],
        "history": [e.to_dict() for e in config.history],
    }
    return json.dumps(document, indent=2)


def save_config(config: Config, path: Path | None = None) -> None:
    """Atomically write the config document.

    The document is written to a temporary sibling and renamed over the
    target so a crash never leaves a half-written file in place.

    Raises:
        PersistenceError: If any filesystem step fails.
    """
    if path is None:
        path = get_config_path()

    tmp_path = path.with_name(path.name + ".tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        content = encode_document(config)
        with open(tmp_path, "w", encoding="utf-8") as f:
            f.write(content)
        os.replace(tmp_path, path)
    except OSError as e:
        try:
            tmp_path.unlink(missing_ok=True)
        except OSError:
            pass
        raise PersistenceError(f"failed to save config to {path}: {e}") from e

    logger.debug("Saved %d hosts and %d groups to %s", len(config.hosts), len(config.groups), path)


def _read(path: Path) -> str | None:
    try:
        return path.read_text(encoding="utf-8")
    except (FileNotFoundError, NotADirectoryError):
        return None
    except UnicodeDecodeError as e:
        raise ConfigFormatError(f"invalid config format: {e}") from e
    except OSError as e:
        raise PersistenceError(f"cannot read config {path}: {e}") from e


def load_config() -> tuple[Config, PersistenceError | None]:
    """Load the config document from disk.

    A missing document yields default_config(). A document found only at
    the legacy location is re-saved at the current location; if that save
    fails the loaded config is still returned together with the error.

    Returns:
        The loaded config and an error from legacy migration, if any.

    Raises:
        ConfigFormatError: If the document exists but cannot be parsed.
        PersistenceError: If the document exists but cannot be read.
    """
    path = get_config_path()
    text = _read(path)
    from_legacy = False

    if text is None:
        legacy_path = get_legacy_config_path()
        if legacy_path != path:
            text = _read(legacy_path)
            from_legacy = text is not None
        if text is None:
            logger.info("No config at %s, starting with defaults", path)
            return default_config(), None

    config = parse_document(text)
    logger.info("Loaded %d hosts from %s (version %d)", len(config.hosts), path, config.version)

    migrate_error = None
    if from_legacy:
        try:
            save_config(config, path)
            logger.info("Migrated legacy config to %s", path)
        except PersistenceError as e:
            migrate_error = PersistenceError(
                f"migrated legacy config but failed to persist new path: {e}"
            )
            migrate_error.__cause__ = e

    hydrate_host_passwords(config.hosts)
    return config, migrate_error
