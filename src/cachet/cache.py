"""Cache: content-hash request identity and response stores."""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass, field
import hashlib
import json
import logging
import os
from pathlib import Path
import tempfile
import threading
import time
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from cachet.errors import CacheError, ParseError
from cachet.parser import parse_chat_response
from cachet.wire import encode_chat_request, encode_chat_response

if TYPE_CHECKING:
    from cachet.types import ChatRequest, ChatResponse

logger = logging.getLogger(__name__)


def canonical_request(request: ChatRequest) -> dict[str, Any]:
    """Return the document that identifies *request* for caching.

    Every field participates. Instructions are kept apart from the messages
    so that ``instructions="x"`` and a leading ``Message.system("x")`` do not
    collide. Integral floats are written as integers, so a schema bound of
    ``1.0`` and one of ``1`` give the same document.
    """
    return _integral_floats_as_ints(encode_chat_request(request, canonical=True))


def _integral_floats_as_ints(value: Any) -> Any:
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, dict):
        return {k: _integral_floats_as_ints(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_integral_floats_as_ints(v) for v in value]
    return value


def _canonical_json(document: dict[str, Any]) -> str:
    # Object keys are sorted; array order is preserved.
    return json.dumps(
        document,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
    )


def fingerprint(request: ChatRequest) -> str:
    """Compute a deterministic cache key for *request*.

    Key = sha256(canonical JSON of the full request), as 64 hex digits.
    """
    try:
        payload = _canonical_json(canonical_request(request)).encode("utf-8")
    except (TypeError, ValueError) as e:
        # UnicodeEncodeError (lone surrogates) is a ValueError.
        raise CacheError(f"Could not fingerprint request: {e}") from e
    return hashlib.sha256(payload).hexdigest()


@dataclass(frozen=True)
class CacheEntry:
    """A cached response plus the request document it answers."""

    fingerprint: str
    request: dict[str, Any]
    response: ChatResponse
    stored_at: float = field(default_factory=time.time)

    def matches(self, request: ChatRequest) -> bool:
        """Return True when this entry was stored for *request*."""
        return self.request == canonical_request(request)


@runtime_checkable
class CacheStore(Protocol):
    """Minimal store protocol: get and put by fingerprint."""

    def get(self, key: str) -> CacheEntry | None:
        """Return the entry for *key*, or None."""
        ...

    def put(self, key: str, entry: CacheEntry) -> None:
        """Store *entry* under *key*, replacing any previous entry."""
        ...


class MemoryCacheStore:
    """In-process store owned by a single client.

    Entries are complete before they are inserted, so readers never observe
    a partial entry. Identical keys overwrite (last write wins).
    """

    def __init__(self, max_entries: int | None = None) -> None:
        if max_entries is not None and max_entries < 1:
            raise ValueError("max_entries must be >= 1 or None")
        self.max_entries = max_entries
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str) -> CacheEntry | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and self.max_entries is not None:
                self._entries.move_to_end(key)
            return entry

    def put(self, key: str, entry: CacheEntry) -> None:
        with self._lock:
            self._entries[key] = entry
            self._entries.move_to_end(key)
            if self.max_entries is not None:
                while len(self._entries) > self.max_entries:
                    evicted, _ = self._entries.popitem(last=False)
                    logger.debug("Evicted cache entry %s", evicted[:12])

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


class FileCacheStore:
    """Directory-backed store: one ``<fingerprint>.json`` file per entry.

    Each file holds the request document and the response in wire shape, so
    entries survive process restarts and stay human-readable. Writes go
    through a temporary file and ``os.replace``.
    """

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)
        if self.root.exists() and not self.root.is_dir():
            raise CacheError(
                f"Cache root is not a directory: {self.root}",
                hint="Point cache_dir at a directory (it is created if missing).",
            )

    def _path(self, key: str) -> Path:
        return self.root / f"{key}.json"

    def get(self, key: str) -> CacheEntry | None:
        path = self._path(key)
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise CacheError(f"Could not read cache file {path}: {e}") from e

        try:
            document = json.loads(text)
            request = document["request"]
            response = parse_chat_response(document["response"])
            stored_at = float(document.get("stored_at", 0.0))
        except (ValueError, KeyError, TypeError, ParseError) as e:
            raise CacheError(f"Corrupt cache file {path}: {e}") from e
        if not isinstance(request, dict):
            raise CacheError(f"Corrupt cache file {path}: request is not an object")

        return CacheEntry(
            fingerprint=key, request=request, response=response, stored_at=stored_at
        )

    def put(self, key: str, entry: CacheEntry) -> None:
        document = {
            "fingerprint": key,
            "stored_at": entry.stored_at,
            "request": entry.request,
            "response": encode_chat_response(entry.response),
        }
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self.root, prefix=f".{key[:12]}-", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    json.dump(document, fh, indent=2, ensure_ascii=False)
                os.replace(tmp_name, self._path(key))
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except (OSError, TypeError, ValueError) as e:
            raise CacheError(f"Could not write cache file for {key[:12]}: {e}") from e
