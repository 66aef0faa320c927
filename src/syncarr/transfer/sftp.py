"""Whole-file copies over SFTP."""

import logging
import os
import posixpath
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

import paramiko

from .base import TransferBackend, TransferError, TransferMethod
from .ssh import RemoteShell

logger = logging.getLogger(__name__)


class SftpBackend(TransferBackend):
    """Transfer backend that copies files over the shared SSH session."""

    method = TransferMethod.SFTP

    def __init__(self, shell: RemoteShell, buffer_size: int = 1024 * 1024):
        """Initialize SFTP backend.

        Args:
            shell: Remote shell owning the SSH session
            buffer_size: Copy buffer in bytes
        """
        self.shell = shell
        self.buffer_size = buffer_size
        self._sftp: Optional[paramiko.SFTPClient] = None

    @property
    def sftp(self) -> paramiko.SFTPClient:
        if self._sftp is None:
            self._sftp = self.shell.open_sftp()
        return self._sftp

    def transfer(self, local_path: str, dest_path: str) -> bool:
        try:
            return self._copy(self.sftp, local_path, dest_path)
        except TransferError:
            # Reopen the channel on the next attempt
            self.close()
            raise

    def _copy(self, sftp: paramiko.SFTPClient, local_path: str, dest_path: str) -> bool:
        self.shell.make_dirs(posixpath.dirname(dest_path))

        try:
            expected = os.path.getsize(local_path)
            copied = 0
            with open(local_path, "rb") as src, sftp.open(dest_path, "wb") as dst:
                dst.set_pipelined(True)
                while True:
                    chunk = src.read(self.buffer_size)
                    if not chunk:
                        break
                    dst.write(chunk)
                    copied += len(chunk)
            remote_size = sftp.stat(dest_path).st_size
        except (paramiko.SSHException, OSError) as e:
            raise TransferError(f"SFTP copy of {local_path} to {dest_path} failed: {e}")

        if copied != expected or remote_size != expected:
            raise TransferError(
                f"Size mismatch after copying {local_path}: expected {expected}, "
                f"copied {copied}, remote {remote_size}"
            )
        return True

    def transfer_many(
        self,
        pairs: list[tuple[str, str]],
        max_concurrent: int = 3,
    ) -> dict[str, Optional[Exception]]:
        """Copy several files concurrently, one SFTP channel per worker.

        Not used by the sync pipeline, which transfers sequentially.

        Args:
            pairs: ``(local_path, dest_path)`` tuples
            max_concurrent: Maximum simultaneous copies

        Returns:
            Mapping of dest_path to the error raised, or None on success
        """
        # Connect once up front so workers share an established transport
        _ = self.shell.client

        def worker(pair):
            local_path, dest_path = pair
            sftp = self.shell.open_sftp()
            try:
                self._copy(sftp, local_path, dest_path)
                return dest_path, None
            except TransferError as e:
                return dest_path, e
            finally:
                sftp.close()

        with ThreadPoolExecutor(max_workers=max_concurrent) as pool:
            return dict(pool.map(worker, pairs))

    def close(self):
        if self._sftp is not None:
            self._sftp.close()
            self._sftp = None
