"""Choose the winning draft from evaluated candidates."""

from collections.abc import Mapping, Sequence
from typing import Optional

from ..agents import WRITER_PRIORITY
from .models import Draft, EvaluationResult, SelectionOutcome

APPROVAL_THRESHOLD = 7.0


def representative_score(results: Sequence[EvaluationResult]) -> float:
    """Mean of the valid scores; 0.0 when a draft has none."""
    scores = [r.score for r in results if not r.malformed]
    if not scores:
        return 0.0
    return sum(scores) / len(scores)


def best_evaluation(results: Sequence[EvaluationResult]) -> Optional[EvaluationResult]:
    """Highest-scoring valid result, else the first one recorded."""
    valid = [r for r in results if not r.malformed]
    if valid:
        return max(valid, key=lambda r: r.score)
    return results[0] if results else None


def _priority(draft: Draft) -> int:
    try:
        return WRITER_PRIORITY.index(draft.writer_label)
    except ValueError:
        return len(WRITER_PRIORITY)


def select(
    drafts: Sequence[Draft],
    evaluations: Mapping[str, Sequence[EvaluationResult]],
) -> SelectionOutcome:
    """Pick the best draft.

    Args:
        drafts: Every draft of the generation, failed ones included
        evaluations: Evaluation results keyed by ``draft_id``

    The winner has the highest mean score; ties go to the writer earliest in
    ``WRITER_PRIORITY`` and then to the longer text. A draft without any valid
    score counts as 0 and only wins when no draft was scored. The outcome is
    approved when the winner's mean reaches ``APPROVAL_THRESHOLD``.
    """
    ordered = sorted(drafts, key=_priority)
    all_drafts = tuple(
        (draft, best_evaluation(evaluations.get(draft.draft_id, ())))
        for draft in ordered
    )

    candidates = [d for d in ordered if not d.failed]
    if not candidates:
        return SelectionOutcome(winning_draft=None, approved=False, all_drafts=all_drafts)

    scored = [
        (representative_score(evaluations.get(d.draft_id, ())), d)
        for d in candidates
    ]
    winning_score, winner = max(
        scored,
        key=lambda item: (item[0], -_priority(item[1]), len(item[1].text)),
    )

    return SelectionOutcome(
        winning_draft=winner,
        approved=winning_score >= APPROVAL_THRESHOLD,
        winning_score=winning_score,
        all_drafts=all_drafts,
    )
