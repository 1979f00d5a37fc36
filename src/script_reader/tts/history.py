"""
Generation History with Reference-Counted Audio Resources.

Every generated WAV lives in an AudioResource whose backing bytes are
shared by up to three owners:

    creator      the generation that produced it (released once handed off)
    history      the HistoryEntry holding it
    active slot  the currently playable result

Ownership:
    acquire()  adds an owner
    release()  drops an owner; the last release frees the bytes

    Active --release() x owners--> Released   (terminal)

A released resource cannot be read, acquired or released again; doing so
is a programming error and raises ResourceReleasedError.

ResourceCache Rules:
    - insert() puts the newest entry first and never evicts
    - delete() drops the history reference exactly once and clears the
      active slot when it points at the same resource
    - set_active() acquires the new resource before releasing the old one,
      so re-activating the current resource is safe
    - unknown ids are a soft warning, never an error

Example:
    >>> cache = ResourceCache()
    >>> res = AudioResource(wav_bytes, sample_rate=24000)
    >>> entry = HistoryEntry.create("Hello world.", res, segments=1)
    >>> entry_id = cache.insert(entry)
    >>> cache.set_active(res)
    >>> res.release()          # creator hands off
    >>> cache.delete(entry_id)  # clears the active slot too
    True
    >>> res.released
    True
"""
from __future__ import annotations

import threading
import time
import uuid
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from script_reader.core.config import Defaults
from script_reader.core.errors import ResourceReleasedError
from script_reader.core.logging import debug, get_logger, info, verbose, warn

_LOG = get_logger("script-reader.history")

SNIPPET_ELLIPSIS = "..."


def make_snippet(text: str, max_chars: int = Defaults.HISTORY_SNIPPET_CHARS) -> str:
    """First ``max_chars`` characters of the trimmed text, with an ellipsis if cut."""
    text = text.strip()
    if len(text) <= max_chars:
        return text
    return text[:max_chars] + SNIPPET_ELLIPSIS


class AudioResource:
    """
    Encoded audio with an explicit owner count.

    A new resource starts with one owner, the creator.

    Attributes:
        id: Short resource identifier used in logs.
        sample_rate: Sample rate of the encoded audio.
        size: Byte size of the encoded audio, kept after release.
    """

    def __init__(self, data: bytes, sample_rate: int, media_type: str = "audio/wav"):
        self.id = uuid.uuid4().hex[:12]
        self.sample_rate = int(sample_rate)
        self.media_type = media_type
        self.size = len(data)
        self._data: Optional[bytes] = data
        self._owners = 1
        self._lock = threading.Lock()

    @property
    def data(self) -> bytes:
        """The encoded bytes. Raises ResourceReleasedError once freed."""
        with self._lock:
            if self._data is None:
                raise ResourceReleasedError(f"Audio resource {self.id} was already released")
            return self._data

    @property
    def owners(self) -> int:
        with self._lock:
            return self._owners

    @property
    def released(self) -> bool:
        with self._lock:
            return self._data is None

    def acquire(self) -> "AudioResource":
        """Add an owner and return self."""
        with self._lock:
            if self._data is None:
                raise ResourceReleasedError(f"Cannot acquire released audio resource {self.id}")
            self._owners += 1
            return self

    def release(self) -> bool:
        """
        Drop one owner.

        Returns:
            True if this call freed the backing bytes.

        Raises:
            ResourceReleasedError: If the resource was already freed.
        """
        with self._lock:
            if self._data is None:
                raise ResourceReleasedError(f"Audio resource {self.id} released twice")
            self._owners -= 1
            if self._owners > 0:
                return False
            self._data = None

        debug(_LOG, "resource_freed", resource=self.id, bytes=self.size)
        return True

    def __repr__(self) -> str:
        state = "released" if self.released else f"owners={self.owners}"
        return f"AudioResource(id={self.id!r}, bytes={self.size}, {state})"


@dataclass
class HistoryEntry:
    """
    One completed generation.

    Attributes:
        id: Unique identifier (uuid4 hex).
        snippet: Short display text.
        resource: Encoded audio owned by this entry.
        full_text: Whole input script, None when not retained.
        segments: Number of segments synthesized.
        created_at: Unix timestamp.
    """
    snippet: str
    resource: AudioResource
    full_text: Optional[str] = None
    segments: int = 0
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: float = field(default_factory=time.time)

    @classmethod
    def create(
        cls,
        text: str,
        resource: AudioResource,
        segments: int = 0,
        snippet_chars: int = Defaults.HISTORY_SNIPPET_CHARS,
        store_full_text: bool = Defaults.HISTORY_STORE_FULL_TEXT,
    ) -> "HistoryEntry":
        return cls(
            snippet=make_snippet(text, snippet_chars),
            resource=resource,
            full_text=text if store_full_text else None,
            segments=segments,
        )

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "created_at": self.created_at,
            "snippet": self.snippet,
            "full_text": self.full_text,
            "segments": self.segments,
            "bytes": self.resource.size,
            "sample_rate": self.resource.sample_rate,
        }


class ResourceCache:
    """
    Thread-safe, most-recent-first history plus the active result slot.

    The cache holds one owner reference per entry and one for the active
    slot. All mutation happens under a single re-entrant lock.
    """

    def __init__(self):
        self._entries: List[HistoryEntry] = []
        self._by_id: Dict[str, HistoryEntry] = {}
        self._active: Optional[AudioResource] = None
        self._lock = threading.RLock()
        self._released = 0

    def _release(self, resource: AudioResource) -> None:
        if resource.release():
            self._released += 1

    # -------------------------------------------------------------------------
    # History
    # -------------------------------------------------------------------------

    def insert(self, entry: HistoryEntry) -> str:
        """
        Add ``entry`` at the front of the history.

        Raises:
            ValueError: If an entry with the same id already exists.
        """
        with self._lock:
            if entry.id in self._by_id:
                raise ValueError(f"Duplicate history entry id: {entry.id}")
            entry.resource.acquire()
            self._entries.insert(0, entry)
            self._by_id[entry.id] = entry
            count = len(self._entries)

        info(_LOG, "history_insert", entry=entry.id[:8], bytes=entry.resource.size, entries=count)
        return entry.id

    def get(self, entry_id: str) -> Optional[HistoryEntry]:
        with self._lock:
            entry = self._by_id.get(entry_id)
        if entry is None:
            warn(_LOG, "history_unknown_id", entry=entry_id, op="get")
        return entry

    def delete(self, entry_id: str) -> bool:
        """
        Remove an entry and drop its reference.

        Returns:
            False if the id is unknown.
        """
        with self._lock:
            entry = self._by_id.pop(entry_id, None)
            if entry is None:
                warn(_LOG, "history_unknown_id", entry=entry_id, op="delete")
                return False

            self._entries.remove(entry)
            was_active = self._active is entry.resource
            if was_active:
                self.clear_active()
            self._release(entry.resource)
            count = len(self._entries)

        info(_LOG, "history_delete", entry=entry_id[:8], was_active=was_active, entries=count)
        return True

    def list_most_recent_first(self) -> List[HistoryEntry]:
        with self._lock:
            return list(self._entries)

    def clear(self) -> int:
        """Delete every entry and the active slot. Returns the number of entries removed."""
        with self._lock:
            self.clear_active()
            entries, self._entries = self._entries, []
            self._by_id.clear()
            for entry in entries:
                self._release(entry.resource)

        info(_LOG, "history_cleared", entries=len(entries))
        return len(entries)

    # -------------------------------------------------------------------------
    # Active slot
    # -------------------------------------------------------------------------

    @property
    def active(self) -> Optional[AudioResource]:
        with self._lock:
            return self._active

    def set_active(self, resource: Optional[AudioResource]) -> None:
        """Make ``resource`` the active result, releasing the previous one."""
        if resource is None:
            self.clear_active()
            return

        with self._lock:
            resource.acquire()
            previous, self._active = self._active, resource
            if previous is not None:
                self._release(previous)

        verbose(_LOG, "active_set", resource=resource.id)

    def restore(self, entry_id: str) -> Optional[HistoryEntry]:
        """Make an entry's audio the active result. Returns None for unknown ids."""
        with self._lock:
            entry = self.get(entry_id)
            if entry is None:
                return None
            self.set_active(entry.resource)

        info(_LOG, "history_restore", entry=entry_id[:8])
        return entry

    def clear_active(self) -> None:
        with self._lock:
            previous, self._active = self._active, None
            if previous is not None:
                self._release(previous)
                verbose(_LOG, "active_cleared", resource=previous.id)

    # -------------------------------------------------------------------------
    # Introspection
    # -------------------------------------------------------------------------

    def stats(self) -> Dict[str, int]:
        """
        Get cache statistics.

        Returns:
            Dictionary with entries, live resources and bytes, active flag
            and the number of resources freed so far.
        """
        with self._lock:
            live = {e.resource.id: e.resource for e in self._entries}
            if self._active is not None:
                live[self._active.id] = self._active
            return {
                "entries": len(self._entries),
                "live_resources": len(live),
                "live_bytes": sum(r.size for r in live.values()),
                "active": int(self._active is not None),
                "released": self._released,
            }

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, entry_id: str) -> bool:
        with self._lock:
            return entry_id in self._by_id
