"""Client identity — a persistent NKEY user key pair.

The identity is created on first use and then reused for as long as the
storage lives. Only the seed is persisted; the public key is re-derived
from it on every load, so a seed that no longer decodes is treated as
corrupted storage rather than silently replaced.

    store = IdentityStore(JsonFileStorage("~/.lp0chat/storage.json"))
    identity = store.get_or_create_identity()
    identity.public_key   # "U..."
"""

from __future__ import annotations

import base64
import json
import logging
import os
import secrets
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol
from uuid import uuid4

import nkeys

from lp0chat.errors import KeyDerivationError

logger = logging.getLogger(__name__)

SEED_STORAGE_KEY = "custSeed"


# ---------------------------------------------------------------------------
# Storage backends
# ---------------------------------------------------------------------------


class SeedStorage(Protocol):
    """Minimal key/value storage holding the identity seed."""

    def get(self, key: str) -> str | None:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def delete(self, key: str) -> None:
        ...


class MemoryStorage:
    """In-process storage. Identities do not outlive the process."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStorage:
    """Key/value pairs in a single JSON file, written atomically."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path).expanduser()

    @property
    def path(self) -> Path:
        return self._path

    def _read(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise KeyDerivationError(
                f"Identity storage {self._path} is unreadable: {e}"
            ) from e
        if not isinstance(data, dict):
            raise KeyDerivationError(f"Identity storage {self._path} is not a mapping")
        return data

    def _write(self, data: dict[str, str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_name(f"{self._path.name}.{uuid4().hex}.tmp")
        try:
            tmp_path.write_text(json.dumps(data, indent=2), encoding="utf-8")
            os.replace(tmp_path, self._path)
        except Exception:
            tmp_path.unlink(missing_ok=True)
            raise

    def get(self, key: str) -> str | None:
        value = self._read().get(key)
        return value if value is None else str(value)

    def set(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        self._write(data)

    def delete(self, key: str) -> None:
        data = self._read()
        if key in data:
            del data[key]
            self._write(data)


# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Identity:
    """A user key pair. The seed is the private half."""
    public_key: str
    seed: bytes = field(repr=False)

    def sign(self, data: bytes) -> bytes:
        """Return the raw Ed25519 signature of *data*."""
        kp = nkeys.from_seed(self.seed)
        return kp.sign(data)


def encode_user_seed(raw: bytes) -> bytes:
    """Encode 32 raw bytes as an NKEY user seed (``SU...``)."""
    if len(raw) != 32:
        raise ValueError("seed material must be exactly 32 bytes")
    return nkeys.encode_seed(raw, nkeys.PREFIX_BYTE_USER)


def _verify_checksum(seed: bytes) -> None:
    # nkeys.decode_seed ignores the trailing CRC16, so a damaged seed would
    # still decode to some other key pair.
    try:
        raw = base64.b32decode(seed + b"=" * (-len(seed) % 8))
    except ValueError as e:
        raise KeyDerivationError(f"Stored seed is malformed: {e}") from e
    if len(raw) < 3 or nkeys.crc16_checksum(raw[:-2]) != raw[-2:]:
        raise KeyDerivationError("Stored seed failed its checksum")


def derive_identity(seed: bytes) -> Identity:
    """Re-derive the key pair for *seed*.

    Raises ``KeyDerivationError`` when the seed does not decode or its
    checksum does not match.
    """
    _verify_checksum(seed)
    try:
        kp = nkeys.from_seed(seed)
        public_key = kp.public_key.decode()
    except Exception as e:
        raise KeyDerivationError(f"Stored seed is malformed: {e}") from e
    if not public_key.startswith("U"):
        raise KeyDerivationError("Stored seed is not a user seed")
    return Identity(public_key=public_key, seed=seed)


class IdentityStore:
    """Owns the persistent client identity.

    Parameters
    ----------
    storage:
        Where the seed lives. ``JsonFileStorage`` for a persistent
        identity, ``MemoryStorage`` for an ephemeral one.
    """

    def __init__(self, storage: SeedStorage) -> None:
        self._storage = storage

    def get_or_create_identity(self) -> Identity:
        """Load the stored identity, creating and persisting one if absent."""
        stored = self._storage.get(SEED_STORAGE_KEY)
        if stored:
            identity = derive_identity(stored.encode())
            logger.debug("Loaded identity %s", identity.public_key)
            return identity

        seed = encode_user_seed(secrets.token_bytes(32))
        identity = derive_identity(seed)
        self._storage.set(SEED_STORAGE_KEY, seed.decode())
        logger.info("Created new identity %s", identity.public_key)
        return identity

    def clear(self) -> None:
        """Forget the stored seed. The next load creates a new identity."""
        self._storage.delete(SEED_STORAGE_KEY)
        logger.info("Identity seed cleared")
