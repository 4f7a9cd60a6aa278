"""
Content-addressed response cache with time-to-live.

Entries are immutable once written. Concurrent writers of the same key are
tolerated: the values are equivalent responses and the last writer wins. When
a cache directory is configured, entries are mirrored to disk so they survive
across runs; disk writes land via rename so a reader never sees half a file.
"""

import hashlib
import json
import os
import tempfile
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Mapping, Optional

from loguru import logger

# Only headers that change the representation of the body take part in the key
KEY_HEADERS = ("accept",)


def cache_key(method: str, url: str, headers: Optional[Mapping[str, str]] = None) -> str:
    """
    Deterministic key for a request.

    Args:
        method: HTTP method (case-insensitive)
        url: Full request URL including query string
        headers: Request headers; only KEY_HEADERS are considered

    Returns:
        Hex SHA-256 digest
    """
    parts = [method.upper(), url]
    lowered = {k.lower(): v for k, v in (headers or {}).items()}
    for name in KEY_HEADERS:
        if name in lowered:
            parts.append(f"{name}:{lowered[name]}")
    return hashlib.sha256("\n".join(parts).encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class CacheEntry:
    """
    A stored response.

    Attributes:
        key: Request key (see cache_key)
        body: Raw response body
        stored_at: Epoch seconds when the entry was written
        ttl: Lifetime in seconds
        status_code: HTTP status of the stored response
        headers: Response headers kept alongside the body (e.g., Link)
    """

    key: str
    body: bytes
    stored_at: float
    ttl: float
    status_code: int = 200
    headers: Dict[str, str] = field(default_factory=dict)

    def is_expired(self, now: float) -> bool:
        return now - self.stored_at > self.ttl


class ResponseCache:
    """
    In-memory response cache, optionally mirrored to a directory.

    Expired entries are evicted lazily when read.
    """

    def __init__(
        self,
        cache_dir: Optional[Path] = None,
        default_ttl: float = 3600.0,
        clock: Callable[[], float] = time.time,
    ):
        self.cache_dir = Path(cache_dir) if cache_dir is not None else None
        self.default_ttl = default_ttl
        self.clock = clock
        self._entries: Dict[str, CacheEntry] = {}

        if self.cache_dir is not None:
            self.cache_dir.mkdir(parents=True, exist_ok=True)

    def get(self, key: str) -> Optional[CacheEntry]:
        """Return the live entry for key, or None (evicting it if expired)."""
        entry = self._entries.get(key)
        if entry is None and self.cache_dir is not None:
            entry = self._read_disk(key)
            if entry is not None:
                self._entries[key] = entry

        if entry is None:
            return None

        if entry.is_expired(self.clock()):
            logger.debug(f"Cache entry expired: {key[:12]}")
            self.evict(key)
            return None

        return entry

    def put(
        self,
        key: str,
        body: bytes,
        ttl: Optional[float] = None,
        status_code: int = 200,
        headers: Optional[Mapping[str, str]] = None,
    ) -> CacheEntry:
        """Store a response body under key and return the new entry."""
        entry = CacheEntry(
            key=key,
            body=body,
            stored_at=self.clock(),
            ttl=self.default_ttl if ttl is None else ttl,
            status_code=status_code,
            headers=dict(headers or {}),
        )
        self._entries[key] = entry
        if self.cache_dir is not None:
            self._write_disk(entry)
        return entry

    def evict(self, key: str) -> None:
        self._entries.pop(key, None)
        if self.cache_dir is not None:
            for path in (self._body_path(key), self._meta_path(key)):
                path.unlink(missing_ok=True)

    def clear(self) -> None:
        for key in list(self._entries):
            self.evict(key)
        if self.cache_dir is not None:
            for path in self.cache_dir.glob("*.meta.json"):
                self.evict(path.name.split(".")[0])

    def __len__(self) -> int:
        return len(self._entries)

    # --- disk mirror ---

    def _body_path(self, key: str) -> Path:
        return self.cache_dir / f"{key}.body"

    def _meta_path(self, key: str) -> Path:
        return self.cache_dir / f"{key}.meta.json"

    def _read_disk(self, key: str) -> Optional[CacheEntry]:
        meta_path = self._meta_path(key)
        body_path = self._body_path(key)
        if not meta_path.exists() or not body_path.exists():
            return None
        try:
            meta = json.loads(meta_path.read_text(encoding="utf-8"))
            body = body_path.read_bytes()
        except (OSError, ValueError) as e:
            logger.debug(f"Ignoring unreadable cache entry {key[:12]}: {e}")
            return None
        return CacheEntry(
            key=key,
            body=body,
            stored_at=float(meta["stored_at"]),
            ttl=float(meta["ttl"]),
            status_code=int(meta.get("status_code", 200)),
            headers=dict(meta.get("headers", {})),
        )

    def _write_disk(self, entry: CacheEntry) -> None:
        meta = {
            "stored_at": entry.stored_at,
            "ttl": entry.ttl,
            "status_code": entry.status_code,
            "headers": entry.headers,
        }
        # Body first: a meta file is only ever visible next to a complete body
        _atomic_write(self._body_path(entry.key), entry.body)
        _atomic_write(self._meta_path(entry.key), json.dumps(meta).encode("utf-8"))


def _atomic_write(path: Path, data: bytes) -> None:
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".tmp-")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
