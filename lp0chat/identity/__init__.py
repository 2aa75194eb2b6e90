"""Persistent client identity.

    from lp0chat.identity import IdentityStore, JsonFileStorage
    identity = IdentityStore(JsonFileStorage(path)).get_or_create_identity()
"""

from lp0chat.identity.store import (
    Identity,
    IdentityStore,
    JsonFileStorage,
    MemoryStorage,
    SeedStorage,
    SEED_STORAGE_KEY,
)

__all__ = [
    "Identity",
    "IdentityStore",
    "JsonFileStorage",
    "MemoryStorage",
    "SeedStorage",
    "SEED_STORAGE_KEY",
]
