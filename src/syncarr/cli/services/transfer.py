"""File transfer service wrapper."""

from ...transfer import Transferrer, create_transferrer


class TransferService:
    """
    Owns the SSH session and transfer backend for one command invocation.

    The session is closed on every exit path, including errors.
    """

    def __init__(self, transferrer: Transferrer):
        self._transferrer = transferrer

    @classmethod
    def from_config(cls, config, dry_run=False):
        """
        Create TransferService from configuration.

        Args:
            config: Config object
            dry_run: Log transfers and deletions instead of performing them

        Returns:
            TransferService instance
        """
        transferrer = create_transferrer(config)
        transferrer.dry_run = dry_run
        return cls(transferrer)

    def __enter__(self):
        return self._transferrer

    def __exit__(self, exc_type, exc_val, exc_tb):
        self._transferrer.close()
        return False
