"""Delta transfers with rsync over ssh."""

import logging
import os
import shutil
import subprocess
import tempfile
from collections import defaultdict
from typing import Optional

from .base import TransferBackend, TransferError, TransferMethod

logger = logging.getLogger(__name__)

BATCH_THRESHOLD = 3

SSH_OPTIONS = [
    "-o", "Compression=no",
    "-o", "TCPKeepAlive=yes",
    "-o", "ServerAliveInterval=30",
    "-o", "ServerAliveCountMax=6",
    "-o", "StrictHostKeyChecking=no",
]


def is_rsync_available() -> bool:
    """Check that rsync is on PATH and actually runs."""
    for name in ("rsync", "rsync.exe"):
        path = shutil.which(name)
        if not path:
            continue

        try:
            result = subprocess.run(
                [path, "--version"],
                capture_output=True,
                text=True,
                timeout=10,
            )
        except (OSError, subprocess.SubprocessError) as e:
            logger.warning(f"rsync found at {path} but failed to run: {e}")
            continue

        if result.returncode == 0:
            version = result.stdout.splitlines()[0] if result.stdout else ""
            logger.debug(f"rsync available at {path}: {version}")
            return True

        logger.warning(f"rsync found at {path} but '--version' exited {result.returncode}")

    return False


class RsyncBackend(TransferBackend):
    """Transfer backend that shells out to rsync."""

    method = TransferMethod.RSYNC

    def __init__(
        self,
        host: str,
        user: str,
        port: int = 22,
        password: Optional[str] = None,
        key_path: Optional[str] = None,
        compression_level: int = 1,
        timeout: Optional[int] = None,
    ):
        """Initialize rsync backend.

        Args:
            host: Destination hostname
            user: SSH user
            port: SSH port
            password: SSH password, passed to sshpass through the environment
            key_path: Private key file
            compression_level: rsync compression level, 0 disables compression
            timeout: Per-file timeout in seconds (None for no limit)
        """
        self.host = host
        self.user = user
        self.port = port
        self.password = password
        self.key_path = key_path
        self.compression_level = compression_level
        self.timeout = timeout

    @classmethod
    def from_config(cls, config):
        return cls(
            host=config.get("ssh.host") or config.get("destination.host"),
            user=config.get("ssh.user"),
            port=config.get("ssh.port", 22),
            password=config.get("ssh.password"),
            key_path=config.get("ssh.key_path"),
            compression_level=1 if config.get("transfer.enable_compression", True) else 0,
        )

    def ssh_command(self) -> str:
        parts = ["ssh", *SSH_OPTIONS]
        if self.port and int(self.port) != 22:
            parts += ["-p", str(self.port)]
        if self.key_path:
            parts += ["-i", self.key_path]
        if self.password:
            # sshpass -e reads the password from SSHPASS
            parts = ["sshpass", "-e", *parts]
        return " ".join(parts)

    def build_args(self, local_path: str, dest_path: str) -> list[str]:
        args = [
            "rsync",
            "-avz" if self.compression_level > 0 else "-av",
            "--progress",
            "--partial",
            "--inplace",
            "--itemize-changes",
        ]
        if self.compression_level > 0:
            args.append(f"--compress-level={self.compression_level}")
        # Force the delta algorithm even when both ends look local
        args.append("--no-whole-file")
        args += ["-e", self.ssh_command()]
        args += [local_path, f"{self.user}@{self.host}:{dest_path}"]
        return args

    def _env(self) -> dict:
        env = dict(os.environ)
        if self.password:
            env["SSHPASS"] = self.password
        return env

    def _run(self, args: list[str]) -> str:
        try:
            result = subprocess.run(
                args,
                capture_output=True,
                text=True,
                env=self._env(),
                timeout=self.timeout,
            )
        except (OSError, subprocess.SubprocessError) as e:
            raise TransferError(f"Failed to run rsync: {e}")

        output = (result.stdout or "") + (result.stderr or "")
        if result.returncode != 0:
            logger.error(f"rsync exited {result.returncode}: {output.strip()[-500:]}")
            raise TransferError(f"rsync failed with exit code {result.returncode}")
        return output

    def transfer(self, local_path: str, dest_path: str) -> bool:
        output = self._run(self.build_args(local_path, dest_path))
        if is_file_skipped(output, local_path):
            logger.debug(f"rsync reported {dest_path} as up to date")
            return False
        return True

    def transfer_batch(self, pairs: list[tuple[str, str]]):
        """Transfer many files, grouped by source directory.

        Groups of up to three files go one at a time; larger groups run as
        a single rsync invocation fed by ``--files-from``.

        Args:
            pairs: ``(local_path, dest_path)`` tuples
        """
        groups = defaultdict(list)
        for local_path, dest_path in pairs:
            groups[os.path.dirname(local_path)].append((local_path, dest_path))

        for source_dir, files in groups.items():
            if len(files) <= BATCH_THRESHOLD:
                for local_path, dest_path in files:
                    self.transfer(local_path, dest_path)
                continue
            self._transfer_directory(source_dir, files)

    def _transfer_directory(self, source_dir: str, files: list[tuple[str, str]]):
        dest_dir = os.path.dirname(files[0][1])
        with tempfile.NamedTemporaryFile("w", suffix=".txt", prefix="rsync-files-", delete=False) as f:
            for local_path, _ in files:
                f.write(os.path.relpath(local_path, source_dir) + "\n")
            list_file = f.name

        try:
            args = [
                "rsync",
                "-avz",
                "--progress",
                "--partial",
                "--inplace",
                f"--files-from={list_file}",
                "-e", self.ssh_command(),
                source_dir.rstrip("/") + "/",
                f"{self.user}@{self.host}:{dest_dir}/",
            ]
            self._run(args)
            logger.info(f"Batch transferred {len(files)} files from {source_dir}")
        finally:
            os.remove(list_file)


def is_file_skipped(output: str, local_path: str) -> bool:
    """Decide from rsync output whether a file was left untouched.

    With --itemize-changes a transferred file shows a ``>f`` line and a
    progress line; neither appears when the destination is up to date.
    """
    filename = os.path.basename(local_path)
    for raw_line in output.splitlines():
        line = raw_line.strip()
        if line.startswith(">f") and filename in line:
            return False
        if filename in line and ("bytes/sec" in line or "%" in line):
            return False
    return True
