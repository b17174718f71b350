"""Backend package for the private game server."""

from .codec import MalformedSaveError, SaveCodec
from .config import BackendSettings, load_settings, load_starting_values
from .matchmaking import MatchmakingEngine
from .models import KilledLobby, Lobby, PlayerIdentity, QueuedPlayer, QueueRequest, Session
from .progression import StartingValues, xp_to_player_level
from .store import FileSaveStore, InMemorySaveStore, InMemorySessionStore, SaveStore, create_save_store

__all__ = [
    "BackendSettings",
    "create_save_store",
    "FileSaveStore",
    "InMemorySaveStore",
    "InMemorySessionStore",
    "KilledLobby",
    "load_settings",
    "load_starting_values",
    "Lobby",
    "MalformedSaveError",
    "MatchmakingEngine",
    "PlayerIdentity",
    "QueuedPlayer",
    "QueueRequest",
    "SaveCodec",
    "SaveStore",
    "Session",
    "StartingValues",
    "xp_to_player_level",
]
