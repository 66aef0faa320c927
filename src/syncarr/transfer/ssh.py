"""Remote file operations over a persistent SSH session."""

import logging
import shlex
from typing import Optional

import paramiko

from .base import TransferError

logger = logging.getLogger(__name__)


class RemoteCommandError(TransferError):
    """Remote command exited with a non-zero status."""

    def __init__(self, command: str, exit_status: int, stderr: str = ""):
        super().__init__(f"'{command}' exited with status {exit_status}: {stderr.strip()}")
        self.command = command
        self.exit_status = exit_status
        self.stderr = stderr


class RemoteShell:
    """One SSH session to the destination host, reused for every command.

    The connection opens on first use. Each command runs on its own exec
    channel, so the session is safe for sequential reuse but must not be
    driven from two call sites at once.
    """

    def __init__(
        self,
        host: str,
        user: str,
        port: int = 22,
        password: Optional[str] = None,
        key_path: Optional[str] = None,
        timeout: int = 30,
    ):
        """Initialize remote shell.

        Args:
            host: Destination hostname
            user: SSH user
            port: SSH port
            password: SSH password (optional when key_path is set)
            key_path: Private key file (optional)
            timeout: Connect and command timeout in seconds
        """
        self.host = host
        self.user = user
        self.port = port
        self.password = password
        self.key_path = key_path
        self.timeout = timeout
        self._client: Optional[paramiko.SSHClient] = None

    @classmethod
    def from_config(cls, config):
        return cls(
            host=config.get("ssh.host") or config.get("destination.host"),
            user=config.get("ssh.user"),
            port=config.get("ssh.port", 22),
            password=config.get("ssh.password"),
            key_path=config.get("ssh.key_path"),
        )

    @property
    def client(self) -> paramiko.SSHClient:
        if self._client is not None and not _is_active(self._client):
            logger.warning(f"SSH session to {self.host} was lost, reconnecting")
            self.close()
        if self._client is None:
            self._client = self._connect()
        return self._client

    def _connect(self) -> paramiko.SSHClient:
        client = paramiko.SSHClient()
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        try:
            client.connect(
                hostname=self.host,
                port=self.port,
                username=self.user,
                password=self.password or None,
                key_filename=self.key_path or None,
                timeout=self.timeout,
                allow_agent=not self.password,
                look_for_keys=not self.password and not self.key_path,
            )
        except (paramiko.SSHException, OSError) as e:
            client.close()
            raise TransferError(f"SSH connection to {self.user}@{self.host}:{self.port} failed: {e}")

        transport = client.get_transport()
        if transport is not None:
            transport.set_keepalive(30)

        logger.debug(f"SSH session opened to {self.user}@{self.host}:{self.port}")
        return client

    def run(self, command: str) -> str:
        """Run a command and return its stdout.

        Raises:
            RemoteCommandError: If the command exits non-zero
            TransferError: If the session fails
        """
        try:
            _, stdout, stderr = self.client.exec_command(command, timeout=self.timeout)
            output = stdout.read().decode("utf-8", errors="replace")
            error_output = stderr.read().decode("utf-8", errors="replace")
            exit_status = stdout.channel.recv_exit_status()
        except (paramiko.SSHException, OSError) as e:
            # The next command opens a fresh session
            self.close()
            raise TransferError(f"Remote command failed: {command}: {e}")

        if exit_status != 0:
            raise RemoteCommandError(command, exit_status, error_output)
        return output

    def open_sftp(self) -> paramiko.SFTPClient:
        try:
            return self.client.open_sftp()
        except (paramiko.SSHException, OSError) as e:
            self.close()
            raise TransferError(f"Failed to open SFTP channel: {e}")

    def get_file_size(self, path: str) -> Optional[int]:
        """Size of a remote file in bytes, or None if it does not exist."""
        quoted = shlex.quote(path)
        try:
            output = self.run(f"stat -c%s {quoted} 2>/dev/null || stat -f%z {quoted}")
        except RemoteCommandError:
            return None

        try:
            return int(output.strip())
        except ValueError:
            logger.debug(f"Unexpected stat output for {path}: {output!r}")
            return None

    def delete_file(self, path: str):
        self.run(f"rm -f {shlex.quote(path)}")

    def make_dirs(self, path: str):
        self.run(f"mkdir -p {shlex.quote(path)}")

    def list_files(self, root: str) -> set[str]:
        """Every regular file below ``root``.

        A missing root, or a listing that fails twice, yields an empty set.
        """
        quoted = shlex.quote(root)
        try:
            output = self.run(f"find {quoted} -type f 2>/dev/null")
        except RemoteCommandError as e:
            logger.debug(f"find failed for {root}, retrying with directory check: {e}")
            try:
                output = self.run(f"test -d {quoted} && find {quoted} -type f || echo ''")
            except RemoteCommandError as e:
                logger.warning(f"Failed to list {root} on destination: {e}")
                return set()

        return {line.strip() for line in output.splitlines() if line.strip()}

    def close(self):
        if self._client is not None:
            self._client.close()
            self._client = None
            logger.debug(f"SSH session to {self.host} closed")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


def _is_active(client: paramiko.SSHClient) -> bool:
    transport = client.get_transport()
    return transport is not None and transport.is_active()
