"""Data models for story generation."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from ..agents import WriterSelection


def new_id() -> str:
    return uuid.uuid4().hex


class GenerationState(Enum):
    """Lifecycle of one generation."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (GenerationState.COMPLETED, GenerationState.FAILED)


@dataclass(frozen=True)
class GenerationRequest:
    """A prompt and the writers asked to answer it."""
    id: str
    prompt: str
    writer_selection: WriterSelection = WriterSelection.ALL
    created_at: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class Draft:
    """Text produced by one writer for one generation."""
    writer_label: str
    text: str = ""
    model: str = ""
    failed: bool = False
    failure_reason: Optional[str] = None
    produced_at: datetime = field(default_factory=datetime.now)
    draft_id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])

    def __post_init__(self):
        if self.failed != (self.failure_reason is not None):
            raise ValueError("failed and failure_reason must be set together")

    @classmethod
    def failure(cls, writer_label: str, reason: str, model: str = "") -> "Draft":
        return cls(writer_label=writer_label, model=model, failed=True, failure_reason=reason)

    @property
    def word_count(self) -> int:
        return len(self.text.split())

    def to_dict(self) -> dict:
        return {
            "draft_id": self.draft_id,
            "writer_label": self.writer_label,
            "model": self.model,
            "text": self.text,
            "failed": self.failed,
            "failure_reason": self.failure_reason,
            "word_count": self.word_count,
            "produced_at": self.produced_at.isoformat(),
        }


@dataclass(frozen=True)
class EvaluationResult:
    """One evaluator's verdict on one draft."""
    draft_id: str
    writer_label: str
    evaluator_label: str
    score: Optional[int] = None
    feedback: Optional[str] = None
    malformed: bool = False
    attempts: int = 1

    def __post_init__(self):
        if (self.score is None) != self.malformed:
            raise ValueError("score must be present exactly when the result is not malformed")

    def to_dict(self) -> dict:
        return {
            "draft_id": self.draft_id,
            "writer_label": self.writer_label,
            "evaluator_label": self.evaluator_label,
            "score": self.score,
            "feedback": self.feedback,
            "malformed": self.malformed,
            "attempts": self.attempts,
        }


@dataclass(frozen=True)
class SelectionOutcome:
    """Winner of a generation plus every candidate with its best evaluation."""
    winning_draft: Optional[Draft]
    approved: bool
    winning_score: float = 0.0
    all_drafts: tuple[tuple[Draft, Optional[EvaluationResult]], ...] = ()

    @property
    def winning_text(self) -> Optional[str]:
        return self.winning_draft.text if self.winning_draft else None

    def summary(self) -> dict:
        """Compact form returned to pollers."""
        return {
            "approved": self.approved,
            "winning_text": self.winning_text,
            "writer_label": self.winning_draft.writer_label if self.winning_draft else None,
            "score": self.winning_score,
        }

    def to_dict(self) -> dict:
        return {
            "approved": self.approved,
            "winning_score": self.winning_score,
            "winning_draft": self.winning_draft.to_dict() if self.winning_draft else None,
            "all_drafts": [
                {
                    "draft": draft.to_dict(),
                    "best_evaluation": best.to_dict() if best else None,
                }
                for draft, best in self.all_drafts
            ],
        }
