"""OS keychain access for host passwords."""

import shutil
import subprocess
import sys

from assho.errors import KeychainError

SERVICE_NAME = "assho"
TIMEOUT_SECONDS = 5


def _run(cmd: list[str], stdin: str | None = None) -> str:
    try:
        result = subprocess.run(
            cmd,
            input=stdin,
            capture_output=True,
            text=True,
            timeout=TIMEOUT_SECONDS,
        )
    except subprocess.TimeoutExpired:
        raise KeychainError(f"{cmd[0]} timed out") from None
    except OSError as e:
        raise KeychainError(f"{cmd[0]} failed: {e}") from e

    if result.returncode != 0:
        output = (result.stderr or result.stdout).strip()
        raise KeychainError(f"{cmd[0]} exited with {result.returncode}: {output}")
    return result.stdout.strip()


def _require_secret_tool() -> None:
    if shutil.which("secret-tool") is None:
        raise KeychainError("secret-tool not installed")


def store_password_secret(ref: str, password: str) -> None:
    """Store a password in the keychain under ref.

    Empty refs or passwords are ignored.

    Raises:
        KeychainError: If no backend is available or the store fails.
    """
    if not ref or not password:
        return

    if sys.platform == "darwin":
        _run(
            [
                "security", "add-generic-password", "-U",
                "-a", ref, "-s", SERVICE_NAME, "-w", password,
            ]
        )
    elif sys.platform.startswith("linux"):
        _require_secret_tool()
        _run(
            [
                "secret-tool", "store", f"--label={SERVICE_NAME} password",
                "service", SERVICE_NAME, "account", ref,
            ],
            stdin=password,
        )
    else:
        raise KeychainError(f"keychain backend unsupported on {sys.platform}")


def lookup_password_secret(ref: str) -> str:
    """Fetch the password stored under ref, or "" for an empty ref.

    Raises:
        KeychainError: If no backend is available or the lookup fails.
    """
    if not ref:
        return ""

    if sys.platform == "darwin":
        return _run(
            ["security", "find-generic-password", "-a", ref, "-s", SERVICE_NAME, "-w"]
        )
    if sys.platform.startswith("linux"):
        _require_secret_tool()
        return _run(["secret-tool", "lookup", "service", SERVICE_NAME, "account", ref])
    raise KeychainError(f"keychain backend unsupported on {sys.platform}")
