"""Backend package for SentinelSim."""

from .broadcaster import CrisisBroadcaster
from .config import BackendSettings, SmtpSettings, load_settings
from .logging_config import configure_logging
from .registry import ConnectionRegistry
from .store import InMemoryInteractionStore, InteractionStore, PostgresInteractionStore, create_store

__all__ = [
    "BackendSettings",
    "configure_logging",
    "ConnectionRegistry",
    "create_store",
    "CrisisBroadcaster",
    "InMemoryInteractionStore",
    "InteractionStore",
    "load_settings",
    "PostgresInteractionStore",
    "SmtpSettings",
]
