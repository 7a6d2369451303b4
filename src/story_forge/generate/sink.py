"""Hand-off of finished generations to storage."""

import json
import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Optional, Protocol

from .models import SelectionOutcome

logger = logging.getLogger(__name__)


class ResultSink(Protocol):
    def save_result(
        self,
        generation_id: str,
        prompt: str,
        outcome: Optional[SelectionOutcome],
    ) -> None:
        ...


class JsonlResultSink:
    """Appends one JSON record per generation to a file."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock = threading.Lock()

    def save_result(
        self,
        generation_id: str,
        prompt: str,
        outcome: Optional[SelectionOutcome],
    ) -> None:
        record = {
            "generation_id": generation_id,
            "prompt": prompt,
            "saved_at": datetime.now().isoformat(),
            "outcome": outcome.to_dict() if outcome else None,
        }
        line = json.dumps(record, ensure_ascii=False)
        with self._lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(line + "\n")
        logger.debug("Saved generation %s to %s", generation_id, self.path)

    def load_all(self) -> list[dict]:
        """Read every saved record (oldest first)."""
        if not self.path.exists():
            return []
        with open(self.path, encoding="utf-8") as f:
            return [json.loads(line) for line in f if line.strip()]
