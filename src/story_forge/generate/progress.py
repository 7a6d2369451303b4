"""In-memory progress registry for running generations.

Every stage of a generation reports through ``ProgressReporter``; pollers read
copies via ``snapshot``. All mutation happens under one short-held lock and
listeners are notified after it is released, so a slow forwarder never stalls
a writer or evaluator thread.
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Optional

from ..errors import DuplicateIdError
from .models import SelectionOutcome

logger = logging.getLogger(__name__)

# (event, generation_id, payload) where event is "started", "appended" or "completed"
ProgressListener = Callable[[str, str, object], None]


@dataclass
class ProgressEntry:
    generation_id: str
    messages: list[str] = field(default_factory=list)
    completed: bool = False
    result: Optional[SelectionOutcome] = None
    created_at: datetime = field(default_factory=datetime.now)
    completed_at: Optional[datetime] = None


@dataclass(frozen=True)
class ProgressSnapshot:
    """Read-only copy of a progress entry."""
    generation_id: str
    messages: tuple[str, ...] = ()
    completed: bool = False
    result: Optional[SelectionOutcome] = None
    found: bool = True

    def to_dict(self) -> dict:
        return {
            "messages": list(self.messages),
            "completed": self.completed,
            "result": self.result.summary() if self.result else None,
        }


class ProgressReporter:
    """Thread-safe registry mapping generation ids to progress entries."""

    def __init__(self):
        self._entries: dict[str, ProgressEntry] = {}
        self._lock = threading.Lock()
        self._listeners: list[ProgressListener] = []

    def start(self, generation_id: str) -> None:
        """Register a new, empty entry."""
        with self._lock:
            if generation_id in self._entries:
                raise DuplicateIdError(generation_id)
            self._entries[generation_id] = ProgressEntry(generation_id=generation_id)
        self._notify("started", generation_id, None)

    def append(self, generation_id: str, message: str) -> None:
        """Append a message; unknown ids are ignored."""
        with self._lock:
            entry = self._entries.get(generation_id)
            if entry is not None:
                entry.messages.append(message)
        if entry is None:
            logger.warning("Progress for unknown generation %s dropped: %s", generation_id, message)
            return
        logger.debug("[%s] %s", generation_id[:8], message)
        self._notify("appended", generation_id, message)

    def mark_completed(self, generation_id: str, result: Optional[SelectionOutcome] = None) -> bool:
        """Seal an entry with its final result.

        Only the first call for an id takes effect.

        Returns:
            True if this call completed the entry
        """
        with self._lock:
            entry = self._entries.get(generation_id)
            accepted = entry is not None and not entry.completed
            if accepted:
                entry.completed = True
                entry.result = result
                entry.completed_at = datetime.now()
        if not accepted:
            if entry is None:
                logger.warning("Completion for unknown generation %s ignored", generation_id)
            else:
                logger.debug("Generation %s already completed", generation_id)
            return False
        self._notify("completed", generation_id, result)
        return True

    def snapshot(self, generation_id: str) -> ProgressSnapshot:
        """Copy of the entry; an empty snapshot with ``found=False`` for unknown ids."""
        with self._lock:
            entry = self._entries.get(generation_id)
            if entry is None:
                return ProgressSnapshot(generation_id=generation_id, found=False)
            return ProgressSnapshot(
                generation_id=generation_id,
                messages=tuple(entry.messages),
                completed=entry.completed,
                result=entry.result,
            )

    def is_completed(self, generation_id: str) -> bool:
        with self._lock:
            entry = self._entries.get(generation_id)
            return entry is not None and entry.completed

    def discard(self, generation_id: str) -> bool:
        with self._lock:
            return self._entries.pop(generation_id, None) is not None

    def purge(self, older_than: timedelta) -> int:
        """Drop completed entries sealed more than ``older_than`` ago.

        Returns:
            Number of entries removed
        """
        cutoff = datetime.now() - older_than
        with self._lock:
            stale = [
                gid for gid, entry in self._entries.items()
                if entry.completed and entry.completed_at is not None and entry.completed_at < cutoff
            ]
            for gid in stale:
                del self._entries[gid]
        if stale:
            logger.info("Purged %d completed generations", len(stale))
        return len(stale)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, generation_id: object) -> bool:
        with self._lock:
            return generation_id in self._entries

    def subscribe(self, listener: ProgressListener) -> None:
        """Register a callback for start/append/complete events."""
        with self._lock:
            self._listeners.append(listener)

    def _notify(self, event: str, generation_id: str, payload: object) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(event, generation_id, payload)
            except Exception:
                logger.exception("Progress listener failed on %s for %s", event, generation_id)
