"""Tests for the OS keychain wrapper."""

import subprocess

import pytest

from assho import keychain
from assho.errors import KeychainError

# Captured before the autouse fixture swaps them out.
store_secret = keychain.store_password_secret
lookup_secret = keychain.lookup_password_secret


@pytest.fixture
def recorded_runs(monkeypatch):
    calls = []

    def fake_run(cmd, **kwargs):
        calls.append((cmd, kwargs))
        return subprocess.CompletedProcess(cmd, 0, stdout="s3cret\n", stderr="")

    monkeypatch.setattr(keychain.subprocess, "run", fake_run)
    monkeypatch.setattr(keychain.shutil, "which", lambda name: f"/usr/bin/{name}")
    return calls


def test_empty_ref_or_password_is_ignored(recorded_runs) -> None:
    store_secret("", "pw")
    store_secret("ref", "")

    assert lookup_secret("") == ""
    assert recorded_runs == []


def test_linux_store_passes_password_on_stdin(monkeypatch, recorded_runs) -> None:
    monkeypatch.setattr(keychain.sys, "platform", "linux")

    store_secret("h1", "pw")

    cmd, kwargs = recorded_runs[0]
    assert cmd[:2] == ["secret-tool", "store"]
    assert cmd[-2:] == ["account", "h1"]
    assert kwargs["input"] == "pw"
    assert kwargs["timeout"] == keychain.TIMEOUT_SECONDS


def test_macos_lookup(monkeypatch, recorded_runs) -> None:
    monkeypatch.setattr(keychain.sys, "platform", "darwin")

    assert lookup_secret("h1") == "s3cret"
    assert recorded_runs[0][0][:2] == ["security", "find-generic-password"]


def test_linux_without_secret_tool(monkeypatch) -> None:
    monkeypatch.setattr(keychain.sys, "platform", "linux")
    monkeypatch.setattr(keychain.shutil, "which", lambda name: None)

    with pytest.raises(KeychainError, match="secret-tool not installed"):
        lookup_secret("h1")


def test_unsupported_platform(monkeypatch) -> None:
    monkeypatch.setattr(keychain.sys, "platform", "win32")

    with pytest.raises(KeychainError, match="unsupported"):
        store_secret("h1", "pw")


def test_nonzero_exit_raises(monkeypatch) -> None:
    monkeypatch.setattr(keychain.sys, "platform", "darwin")
    monkeypatch.setattr(
        keychain.subprocess,
        "run",
        lambda cmd, **kw: subprocess.CompletedProcess(cmd, 44, stdout="", stderr="not found"),
    )

    with pytest.raises(KeychainError, match="not found"):
        lookup_secret("h1")


def test_timeout_raises(monkeypatch) -> None:
    monkeypatch.setattr(keychain.sys, "platform", "darwin")

    def fake_run(cmd, **kwargs):
        raise subprocess.TimeoutExpired(cmd, kwargs["timeout"])

    monkeypatch.setattr(keychain.subprocess, "run", fake_run)

    with pytest.raises(KeychainError, match="timed out"):
        lookup_secret("h1")
