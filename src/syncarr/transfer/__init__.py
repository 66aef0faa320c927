"""File transfer to the destination host."""

from .base import TransferBackend, TransferError, TransferMethod
from .client import Transferrer, create_transferrer, select_transfer_method
from .rsync import RsyncBackend, is_rsync_available
from .sftp import SftpBackend
from .ssh import RemoteCommandError, RemoteShell

__all__ = [
    "TransferBackend",
    "TransferError",
    "TransferMethod",
    "Transferrer",
    "create_transferrer",
    "select_transfer_method",
    "RsyncBackend",
    "is_rsync_available",
    "SftpBackend",
    "RemoteCommandError",
    "RemoteShell",
]
