"""
Store layer: realtime tree store and identity provider abstractions.
"""

from repositories.interfaces import (
    IIdentityProvider,
    ILobbyStore,
    IOnDisconnect,
    StoreConnectionError,
    StoreError,
)
from repositories.memory_identity import InMemoryIdentityProvider
from repositories.memory_store import InMemoryDatabase, InMemoryLobbyStore

__all__ = [
    "InMemoryDatabase",
    "InMemoryLobbyStore",
    "InMemoryIdentityProvider",
    "ILobbyStore",
    "IOnDisconnect",
    "IIdentityProvider",
    "StoreError",
    "StoreConnectionError",
]
