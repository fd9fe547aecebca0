"""FastAPI dependencies for dependency injection."""

from signal_ingest.config import AppConfig, config
from signal_ingest.ingestion import IngestionLoop
from signal_ingest.stores.base import SignalStore

# Global ingestion loop (initialized in lifespan)
_ingestion_loop: IngestionLoop | None = None


def get_ingestion_loop() -> IngestionLoop:
    """Get the ingestion loop instance.

    Raises:
        RuntimeError: If the loop is not initialized.
    """
    if _ingestion_loop is None:
        raise RuntimeError("Ingestion loop not initialized")
    return _ingestion_loop


def get_signal_store() -> SignalStore:
    """Get the signal store used by the ingestion loop."""
    return get_ingestion_loop().signal_store


def get_app_config() -> AppConfig:
    """Get the application configuration."""
    return config


def set_ingestion_loop(loop: IngestionLoop) -> None:
    """Set the global ingestion loop instance.

    Args:
        loop: The IngestionLoop instance to set.
    """
    global _ingestion_loop
    _ingestion_loop = loop


def clear_ingestion_loop() -> None:
    """Clear the global ingestion loop instance."""
    global _ingestion_loop
    _ingestion_loop = None
