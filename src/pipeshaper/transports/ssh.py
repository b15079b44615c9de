from __future__ import annotations
import shlex
from typing import Optional, Sequence, Tuple
import paramiko

__all__ = ["make_ssh_client", "ssh_exec", "SshRunner"]

DEFAULT_TIMEOUT = 10

def make_ssh_client(
    host: str,
    port: int,
    username: str,
    password: str,
    timeout: float = DEFAULT_TIMEOUT,
    *,
    strict_host_key: bool = False,
) -> paramiko.SSHClient:
    """
    Create and return a connected Paramiko SSHClient.

    - strict_host_key=False (default): accept unknown keys (AutoAddPolicy)
    - strict_host_key=True: require known keys (RejectPolicy)

    Key/agent auth is disabled; the shaping host is reached with a password.
    """
    client = paramiko.SSHClient()
    if strict_host_key:
        client.load_system_host_keys()
        client.set_missing_host_key_policy(paramiko.RejectPolicy())
    else:
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())

    client.connect(
        hostname=host,
        port=port,
        username=username,
        password=password,
        look_for_keys=False,
        allow_agent=False,
        timeout=timeout,
        banner_timeout=timeout,
        auth_timeout=timeout,
    )
    return client


def ssh_exec(client: paramiko.SSHClient, cmd: str, timeout: float = 60) -> Tuple[str, str, int]:
    """
    Execute a command over SSH and return (stdout, stderr, exit_code).
    """
    stdin, stdout, stderr = client.exec_command(cmd, timeout=timeout)
    out = stdout.read().decode("utf-8", errors="ignore")
    err = stderr.read().decode("utf-8", errors="ignore")
    rc = stdout.channel.recv_exit_status()
    return out, err, rc


class SshRunner:
    """
    Run backend commands on a remote shaping host.

    The connection is opened lazily on the first command and reused until close().
    """
    def __init__(self, host: str, port: int, username: str, password: str,
                 timeout: float = DEFAULT_TIMEOUT, *, strict_host_key: bool = False):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.timeout = timeout
        self.strict_host_key = strict_host_key
        self._client: Optional[paramiko.SSHClient] = None

    def _connect(self) -> paramiko.SSHClient:
        if self._client is None:
            self._client = make_ssh_client(
                self.host, self.port, self.username, self.password,
                timeout=self.timeout, strict_host_key=self.strict_host_key,
            )
        return self._client

    def run(self, argv: Sequence[str]) -> Tuple[str, str, int]:
        return ssh_exec(self._connect(), shlex.join([str(a) for a in argv]), timeout=self.timeout)

    def close(self) -> None:
        if self._client is not None:
            try:
                self._client.close()
            finally:
                self._client = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
