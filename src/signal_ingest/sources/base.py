"""Abstract base class for upstream message sources."""

from abc import ABC, abstractmethod

from signal_ingest.models import UpstreamBatch


class MessageSource(ABC):
    """Pulls ordered channel messages newer than a cursor."""

    name: str = ""
    # True when re-reading from the initial cursor only returns unconfirmed
    # messages, so a stalled cursor may be reset without replaying history
    supports_resync: bool = False

    @abstractmethod
    async def fetch(self, offset: int) -> UpstreamBatch:
        """Fetch messages whose upstream id is at or above `offset`.

        Args:
            offset: The persisted ingestion cursor

        Returns:
            Messages in upstream order, oldest first

        Raises:
            UpstreamConflict: If another poller holds the update stream
            UpstreamError: If the upstream could not be read
            ConfigurationError: If required credentials are missing
        """
        pass

    async def close(self) -> None:
        """Release network resources held by the source."""
        return None
