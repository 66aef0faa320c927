"""Transfer backend interface."""

from abc import ABC, abstractmethod
from enum import Enum


class TransferError(Exception):
    """File transfer error."""
    pass


class TransferMethod(Enum):
    """Available transfer backends."""
    RSYNC = "rsync"
    SFTP = "sftp"


class TransferBackend(ABC):
    """Moves a local file to a path on the destination host."""

    method: TransferMethod

    @abstractmethod
    def transfer(self, local_path: str, dest_path: str) -> bool:
        """Copy ``local_path`` to ``dest_path`` on the destination.

        Returns:
            True if data was sent, False if the backend reported the
            destination as already up to date

        Raises:
            TransferError: If the transfer fails
        """

    def close(self):
        """Release backend resources."""
        return None
