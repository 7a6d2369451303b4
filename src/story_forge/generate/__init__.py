"""Story generation module.

Generates short stories by racing several writer models:
- Writers draft concurrently from one prompt
- LLM judges score every draft as soon as it is ready
- The best mean score wins, approved at 7/10 or above
"""

from .models import Draft, EvaluationResult, GenerationRequest, GenerationState, SelectionOutcome
from .progress import ProgressReporter, ProgressSnapshot
from .writer import WriterDispatcher
from .judge import EvaluationPipeline, ScoreCard, parse_score
from .selector import APPROVAL_THRESHOLD, select
from .sink import JsonlResultSink, ResultSink
from .generator import GenerationCoordinator

__all__ = [
    "Draft",
    "EvaluationResult",
    "GenerationRequest",
    "GenerationState",
    "SelectionOutcome",
    "ProgressReporter",
    "ProgressSnapshot",
    "WriterDispatcher",
    "EvaluationPipeline",
    "ScoreCard",
    "parse_score",
    "APPROVAL_THRESHOLD",
    "select",
    "JsonlResultSink",
    "ResultSink",
    "GenerationCoordinator",
]
