"""Shared fixtures for assho tests."""

from pathlib import Path

import pytest

from assho import keychain
from assho.errors import KeychainError, PersistenceError
from assho.models import Group, Host


@pytest.fixture(autouse=True)
def isolated_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point HOME at a temp dir and keep tests away from the real keychain."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    for name in ("STORE_PASSWORD", "INSECURE_TEST", "LOG_LEVEL"):
        monkeypatch.delenv(f"ASSHO_{name}", raising=False)
        monkeypatch.delenv(f"ASSHI_{name}", raising=False)

    def no_keychain(*args, **kwargs):
        raise KeychainError("keychain disabled in tests")

    monkeypatch.setattr(keychain, "store_password_secret", no_keychain)
    monkeypatch.setattr(keychain, "lookup_password_secret", no_keychain)
    return home


@pytest.fixture
def failing_saver():
    """Saver that always fails, as if the disk were full."""

    def saver(config):
        raise PersistenceError("disk full")

    return saver


@pytest.fixture
def sample_groups() -> list[Group]:
    return [
        Group(id="g1", name="prod", expanded=True),
        Group(id="g2", name="staging", expanded=False),
    ]


@pytest.fixture
def sample_hosts() -> list[Host]:
    return [
        Host(id="h1", alias="web", hostname="10.0.0.1", user="root", group_id="g1"),
        Host(id="h2", alias="db", hostname="10.0.0.2", user="root"),
        Host(
            id="h3",
            alias="api",
            hostname="10.0.0.3",
            user="deploy",
            group_id="g1",
            containers=[
                Host(id="c1", alias="nginx", hostname="abc123", user="root",
                     port="", is_container=True, parent_id="h3"),
            ],
        ),
        Host(id="h4", alias="cache", hostname="10.0.0.4", user="root", group_id="g2"),
    ]
