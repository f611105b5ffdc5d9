"""Import hosts from, and export hosts to, ~/.ssh/config."""

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path

from assho.errors import SSHConfigError
from assho.ids import new_id
from assho.models import DEFAULT_PORT, Host, normalize_key

logger = logging.getLogger(__name__)

_DIRECTIVE_RE = re.compile(r"^([^\s=]+)\s*=?\s*(.*)$")


def default_ssh_config_path() -> Path:
    return Path.home() / ".ssh" / "config"


def split_directive(line: str) -> tuple[str, str]:
    """Split a config line into keyword and arguments.

    SSH config accepts either whitespace or '=' between the two.
    """
    match = _DIRECTIVE_RE.match(line.strip())
    if match is None:
        return "", ""
    return match.group(1), match.group(2).strip()


def is_wildcard(alias: str) -> bool:
    """Return True if the alias is a glob pattern rather than a name."""
    return "*" in alias or "?" in alias


@dataclass
class _HostBlock:
    aliases: list[str]
    settings: dict[str, str] = field(default_factory=dict)


_KNOWN_KEYS = ("hostname", "user", "port", "identityfile", "proxyjump")


def parse_ssh_config(config_path: Path | None = None) -> list[Host]:
    """Parse an SSH config file into hosts, one per concrete alias.

    Wildcard aliases are dropped, blocks made only of wildcards are
    skipped, and Match blocks are ignored up to the next Host line.

    Args:
        config_path: Path to SSH config file. Defaults to ~/.ssh/config.

    Returns:
        Hosts in file order.

    Raises:
        SSHConfigError: If the file cannot be read.
    """
    if config_path is None:
        config_path = default_ssh_config_path()

    try:
        content = Path(config_path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise SSHConfigError(f"cannot open ssh config: {e}") from e

    blocks: list[_HostBlock] = []
    current: _HostBlock | None = None

    for line in content.splitlines():
        line = line.strip()

        # Skip empty lines and comments
        if not line or line.startswith("#"):
            continue

        keyword, args = split_directive(line)
        keyword = keyword.lower()

        if keyword == "match":
            current = None
            continue

        if keyword == "host":
            aliases = [a for a in args.split() if not is_wildcard(a)]
            if aliases:
                current = _HostBlock(aliases=aliases)
                blocks.append(current)
            else:
                current = None
            continue

        if current is not None and keyword in _KNOWN_KEYS:
            current.settings[keyword] = args

    hosts: list[Host] = []
    for block in blocks:
        for alias in block.aliases:
            hosts.append(
                Host(
                    id=new_id(),
                    alias=alias,
                    hostname=block.settings.get("hostname") or alias,
                    user=block.settings.get("user", ""),
                    port=block.settings.get("port") or DEFAULT_PORT,
                    identity_file=block.settings.get("identityfile", ""),
                    proxy_jump=block.settings.get("proxyjump", ""),
                )
            )

    logger.info("Parsed %d hosts from %s", len(hosts), config_path)
    return hosts


def import_ssh_config(
    existing: list[Host],
    config_path: Path | None = None,
) -> tuple[list[Host], int]:
    """Parse the SSH config and keep only hosts with new aliases.

    Aliases are compared case-insensitively against existing hosts and
    against hosts already accepted from the same file.

    Returns:
        The hosts to add and the number skipped as duplicates.
    """
    parsed = parse_ssh_config(config_path)

    seen = {normalize_key(h.alias) for h in existing}
    imported: list[Host] = []
    skipped = 0
    for host in parsed:
        key = normalize_key(host.alias)
        if key in seen:
            skipped += 1
            continue
        seen.add(key)
        imported.append(host)
    return imported, skipped


def _existing_aliases(content: str) -> set[str]:
    aliases: set[str] = set()
    for line in content.splitlines():
        keyword, args = split_directive(line)
        if keyword.lower() != "host":
            continue
        aliases.update(a.lower() for a in args.split() if not is_wildcard(a))
    return aliases


def format_host_block(host: Host) -> str:
    """Render one host as an SSH config Host block."""
    lines = [f"Host {host.alias}", f"    HostName {host.hostname}"]
    if host.user:
        lines.append(f"    User {host.user}")
    if host.port and host.port != DEFAULT_PORT:
        lines.append(f"    Port {host.port}")
    if host.identity_file:
        lines.append(f"    IdentityFile {host.identity_file}")
    if host.proxy_jump:
        lines.append(f"    ProxyJump {host.proxy_jump}")
    return "\n".join(lines)


def export_ssh_config(
    hosts: list[Host],
    config_path: Path | None = None,
) -> tuple[int, int]:
    """Append hosts missing from the SSH config to the end of it.

    Containers and hosts without an alias or address are ignored. Existing
    content is never rewritten.

    Returns:
        Number of hosts exported and number skipped as already present.

    Raises:
        SSHConfigError: If the file cannot be read or appended to.
    """
    if config_path is None:
        config_path = default_ssh_config_path()
    config_path = Path(config_path)

    try:
        config_path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
        existing_content = config_path.read_text(encoding="utf-8") if config_path.exists() else ""
    except (OSError, UnicodeDecodeError) as e:
        raise SSHConfigError(f"cannot read ssh config: {e}") from e

    present = _existing_aliases(existing_content)
    entries: list[str] = []
    skipped = 0
    for host in hosts:
        if host.is_container or not host.alias or not host.hostname:
            continue
        key = host.alias.lower()
        if key in present:
            skipped += 1
            continue
        present.add(key)
        entries.append(format_host_block(host))

    if not entries:
        return 0, skipped

    separator = ""
    if existing_content:
        separator = "\n" if existing_content.endswith("\n") else "\n\n"

    try:
        fd = os.open(config_path, os.O_APPEND | os.O_CREAT | os.O_WRONLY, 0o600)
        with os.fdopen(fd, "a", encoding="utf-8") as f:
            f.write(separator + "\n\n".join(entries) + "\n")
    except OSError as e:
        raise SSHConfigError(f"cannot write ssh config: {e}") from e

    logger.info("Exported %d hosts to %s (%d skipped)", len(entries), config_path, skipped)
    return len(entries), skipped
