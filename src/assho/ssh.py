"""Run ssh against stored hosts: connect, test and discover containers."""

import logging
import os
import shutil
import subprocess
from dataclasses import dataclass

from assho.config import allow_insecure_test, expand_path
from assho.errors import ScanError
from assho.ids import new_id
from assho.models import DEFAULT_PORT, Host

logger = logging.getLogger(__name__)

CONNECT_TIMEOUT = 5
COMMAND_TIMEOUT = 8
DOCKER_PS = 'docker ps --format "{{.ID}}|{{.Names}}|{{.Image}}"'


@dataclass
class TestResult:
    """Outcome of a connection test, already phrased for the user."""

    success: bool
    message: str


def build_ssh_args(host: Host, force_tty: bool = False, remote_cmd: str = "") -> list[str]:
    """Build ssh arguments (without the binary) for a host."""
    args: list[str] = []
    if force_tty:
        args.append("-t")
    if host.user:
        args.extend(["-l", host.user])
    if host.port:
        args.extend(["-p", host.port])
    if host.identity_file:
        args.extend(["-i", expand_path(host.identity_file)])
    if host.proxy_jump:
        args.extend(["-J", host.proxy_jump])
    args.append(host.hostname)
    if remote_cmd:
        args.append(remote_cmd)
    return args


def build_ssh_command(password: str, ssh_args: list[str]) -> tuple[list[str], bool]:
    """Prefix ssh args with the binary, using sshpass when a password is set.

    Returns:
        The full command and whether the password will be supplied. The
        second value is False when a password is set but sshpass is not
        installed; ssh then prompts interactively.
    """
    if not password:
        return ["ssh", *ssh_args], True
    sshpass = shutil.which("sshpass")
    if sshpass is None:
        return ["ssh", *ssh_args], False
    return [sshpass, "-p", password, "ssh", *ssh_args], True


def build_connect_command(host: Host, parent: Host | None = None) -> tuple[list[str], bool]:
    """Command that opens an interactive shell on a host or container.

    Containers are entered with docker exec through their parent host.
    """
    if host.is_container:
        if parent is None:
            raise ValueError(f"container {host.alias} has no parent host")
        remote = f"docker exec -it {host.hostname} /bin/sh"
        return build_ssh_command(parent.password, build_ssh_args(parent, True, remote))
    return build_ssh_command(host.password, build_ssh_args(host))


def format_test_status(error: str | None) -> TestResult:
    """Turn raw ssh output into a user-facing test result."""
    if error is None:
        return TestResult(True, "Connection successful")
    if "REMOTE HOST IDENTIFICATION HAS CHANGED" in error:
        return TestResult(False, "Host key mismatch in ~/.ssh/known_hosts. Refusing to connect.")
    if "REVOKED HOST KEY" in error:
        return TestResult(False, "Host key is revoked in ~/.ssh/known_hosts.")
    if (
        "Host key verification failed" in error
        or "authenticity of host" in error
        or "No RSA host key is known" in error
    ):
        return TestResult(
            False,
            "Host key is unknown. Run `ssh <host>` once or set "
            "ASSHO_INSECURE_TEST=1 to bypass for testing.",
        )
    return TestResult(False, error)


def test_connection(host: Host) -> TestResult:
    """Try a non-interactive login and report the outcome."""
    if not host.hostname:
        return TestResult(False, "hostname required")
    user = host.user or os.environ.get("USER")
    if not user:
        return TestResult(False, "user required")

    args = [
        "-o", f"ConnectTimeout={CONNECT_TIMEOUT}",
        "-o", "NumberOfPasswordPrompts=1",
        "-o", "PreferredAuthentications=publickey,password,keyboard-interactive",
    ]
    if allow_insecure_test():
        args += ["-o", "StrictHostKeyChecking=no", "-o", "UserKnownHostsFile=/dev/null"]
    else:
        args += ["-o", "StrictHostKeyChecking=yes"]
    args += ["-l", user, "-p", host.port or DEFAULT_PORT]
    if host.identity_file:
        args += ["-i", expand_path(host.identity_file)]
    if host.proxy_jump:
        args += ["-J", host.proxy_jump]
    args += [host.hostname, "exit"]

    cmd = ["ssh", *args]
    # Key auth wins when an identity file is configured.
    if host.password and not host.identity_file.strip():
        sshpass = shutil.which("sshpass")
        if sshpass is None:
            return TestResult(False, "password provided but sshpass not installed")
        cmd = [sshpass, "-p", host.password, "ssh", *args]

    try:
        result = subprocess.run(cmd, capture_output=True, text=True, timeout=COMMAND_TIMEOUT)
    except subprocess.TimeoutExpired:
        return TestResult(False, "connection test timed out")
    except FileNotFoundError:
        return TestResult(False, "ssh command not found. Please install OpenSSH.")

    if result.returncode != 0:
        output = (result.stdout + result.stderr).strip()
        return format_test_status(output or f"ssh exited with {result.returncode}")
    return format_test_status(None)


def parse_docker_ps(output: str, parent: Host) -> list[Host]:
    """Turn `docker ps` lines of ID|NAME|IMAGE into container hosts."""
    containers: list[Host] = []
    for line in output.splitlines():
        if not line.strip():
            continue
        parts = line.split("|")
        if len(parts) < 2:
            continue
        containers.append(
            Host(
                id=new_id(),
                alias=parts[1].strip(),
                hostname=parts[0].strip(),
                user="root",
                port="",
                is_container=True,
                parent_id=parent.id,
            )
        )
    return containers


def scan_docker_containers(host: Host) -> list[Host]:
    """List running containers on a host over ssh.

    Raises:
        ScanError: If ssh fails or times out.
    """
    args = ["-o", "BatchMode=yes", "-o", f"ConnectTimeout={CONNECT_TIMEOUT}"]
    args += build_ssh_args(host, remote_cmd=DOCKER_PS)
    cmd, _ = build_ssh_command(host.password, args)

    try:
        result = subprocess.run(cmd, capture_output=True, text=True, timeout=COMMAND_TIMEOUT)
    except subprocess.TimeoutExpired:
        raise ScanError("scan timed out") from None
    except FileNotFoundError as e:
        raise ScanError("ssh command not found. Please install OpenSSH.") from e

    if result.returncode != 0:
        error_msg = result.stderr.strip() or f"exit status {result.returncode}"
        raise ScanError(f"scan failed: {error_msg}")

    containers = parse_docker_ps(result.stdout, host)
    logger.info("Found %d containers on %s", len(containers), host.alias)
    return containers
