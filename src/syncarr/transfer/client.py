"""Unified transfer client shared by every backend."""

import logging
import os
import posixpath
import time
from typing import Callable, Optional

from .. import events
from ..models import TransferResult, TransferStatus
from .base import TransferBackend, TransferError, TransferMethod
from .rsync import RsyncBackend, is_rsync_available
from .sftp import SftpBackend
from .ssh import RemoteShell

logger = logging.getLogger(__name__)


class Transferrer:
    """Decides whether a file needs sending and delegates the copy.

    A destination file whose size equals the local file's size is treated
    as already synced. This is a size heuristic, not a checksum: a
    same-sized file with different content is not re-sent.
    """

    def __init__(
        self,
        backend: TransferBackend,
        shell: RemoteShell,
        max_attempts: int = 3,
        retry_delay: float = 2.0,
        dry_run: bool = False,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize transferrer.

        Args:
            backend: Backend performing the raw copy
            shell: Remote shell for size, delete, list and mkdir operations
            max_attempts: Attempts per file before giving up
            retry_delay: Seconds to wait between attempts
            dry_run: Log what would happen without writing to the destination
        """
        self.backend = backend
        self.shell = shell
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay
        self.dry_run = dry_run
        self._sleep = sleep
        self._clock = clock

    @property
    def method(self) -> TransferMethod:
        return self.backend.method

    def transfer_file(self, local_path: str, dest_path: str) -> TransferResult:
        """Send one file to the destination unless it is already there.

        Raises:
            TransferError: If the local file cannot be read or every
                attempt failed
        """
        try:
            size = os.stat(local_path).st_size
        except OSError as e:
            raise TransferError(f"Cannot stat local file {local_path}: {e}")

        remote_size = self.shell.get_file_size(dest_path)
        if remote_size is not None and remote_size == size:
            events.transfer_skipped(local_path, dest_path, size, "identical_size")
            return TransferResult(local_path, dest_path, size, TransferStatus.SKIPPED, "identical_size")

        if self.dry_run:
            logger.info(f"[dry run] Would transfer {local_path} -> {dest_path}")
            return TransferResult(local_path, dest_path, size, TransferStatus.SKIPPED, "dry_run")

        self._ensure_parent_dir(dest_path)

        events.transfer_started(local_path, dest_path, size)
        started = self._clock()
        sent = self._transfer_with_retry(local_path, dest_path)
        duration = self._clock() - started

        if not sent:
            events.transfer_skipped(local_path, dest_path, size, "up_to_date")
            return TransferResult(local_path, dest_path, size, TransferStatus.SKIPPED, "up_to_date")

        result = TransferResult(
            local_path, dest_path, size, TransferStatus.COMPLETED, duration=duration
        )
        events.transfer_completed(result)
        return result

    def _transfer_with_retry(self, local_path: str, dest_path: str) -> bool:
        for attempt in range(1, self.max_attempts + 1):
            try:
                return self.backend.transfer(local_path, dest_path)
            except TransferError as e:
                if attempt == self.max_attempts:
                    raise
                events.retry_attempt(f"transfer {dest_path}", attempt, self.max_attempts, e)
                self._sleep(self.retry_delay)
        return False

    def _ensure_parent_dir(self, dest_path: str):
        parent = posixpath.dirname(dest_path)
        if not parent:
            return
        try:
            self.shell.make_dirs(parent)
        except TransferError as e:
            logger.warning(f"Failed to create destination directory {parent}: {e}")

    def get_file_size(self, path: str) -> Optional[int]:
        return self.shell.get_file_size(path)

    def list_files(self, root: str) -> set[str]:
        return self.shell.list_files(root)

    def delete_file(self, path: str):
        if self.dry_run:
            logger.info(f"[dry run] Would delete {path}")
            return
        self.shell.delete_file(path)

    def close(self):
        try:
            self.backend.close()
        finally:
            self.shell.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


def select_transfer_method(forced: Optional[str] = None) -> TransferMethod:
    """Pick rsync when it is usable locally, otherwise SFTP.

    Args:
        forced: "rsync", "sftp" or "scp" to skip detection; empty for auto
    """
    forced = (forced or "").lower()
    if forced in ("sftp", "scp"):
        logger.info("Using forced transfer method: sftp")
        return TransferMethod.SFTP

    available = is_rsync_available()
    if forced == "rsync":
        if available:
            logger.info("Using forced transfer method: rsync")
            return TransferMethod.RSYNC
        logger.warning("rsync was requested but is not available, falling back to sftp")
        return TransferMethod.SFTP

    if available:
        logger.info("rsync detected - using rsync transfers")
        return TransferMethod.RSYNC

    logger.info("rsync not available - falling back to sftp transfers")
    return TransferMethod.SFTP


def create_transferrer(config) -> Transferrer:
    """Build a Transferrer from configuration.

    The rsync capability check runs once here, at startup.
    """
    shell = RemoteShell.from_config(config)
    method = select_transfer_method(config.get("transfer.method"))

    if method == TransferMethod.RSYNC:
        backend = RsyncBackend.from_config(config)
    else:
        backend = SftpBackend(shell, buffer_size=config.get("transfer.buffer_size", 1024 * 1024))

    return Transferrer(
        backend=backend,
        shell=shell,
        max_attempts=config.get("transfer.max_attempts", 3),
        dry_run=config.get("sync.dry_run", False),
    )
