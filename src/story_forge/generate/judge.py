"""LLM-as-judge scoring of drafts."""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

from pydantic import AliasChoices, BaseModel, Field, ValidationError, field_validator

from ..agents import AgentConfig, AgentRoster
from ..errors import ChatError, MalformedEvaluationError
from ..llm import ChatCaller, extract_json
from .models import Draft, EvaluationResult
from .progress import ProgressReporter

logger = logging.getLogger(__name__)

MIN_SCORE = 1
MAX_SCORE = 10


class ScoreCard(BaseModel):
    """Structured judge response."""

    score: int = Field(
        ge=MIN_SCORE,
        le=MAX_SCORE,
        validation_alias=AliasChoices("score", "structure_score"),
    )
    defects: str = ""
    feedback: Optional[str] = None

    @field_validator("score", mode="before")
    @classmethod
    def _reject_fractions(cls, value):
        if isinstance(value, bool):
            raise ValueError("score must be an integer")
        if isinstance(value, float) and not value.is_integer():
            raise ValueError("score must be an integer")
        return value

    @field_validator("defects", mode="before")
    @classmethod
    def _join_defects(cls, value):
        if isinstance(value, list):
            return "; ".join(str(v) for v in value)
        return "" if value is None else value

    def summary(self) -> Optional[str]:
        parts = [p for p in (self.feedback, self.defects) if p]
        return " | ".join(parts) or None


def parse_score(response: str) -> ScoreCard:
    """Decode a judge response into a ScoreCard.

    Raises:
        MalformedEvaluationError: no JSON object, missing or out-of-range score
    """
    data = extract_json(response)
    if not isinstance(data, dict):
        raise MalformedEvaluationError("no JSON object in response")
    try:
        return ScoreCard.model_validate(data)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'response'}: {err['msg']}"
            for err in e.errors()
        )
        raise MalformedEvaluationError(problems) from e


class EvaluationPipeline:
    """Scores a draft with every configured evaluator, concurrently.

    Each evaluator gets ``1 + max_retries`` attempts to return a well-formed
    score. A failed or crashed call counts as an attempt. When all attempts fail the
    result is recorded as malformed with no score; the generation goes on.
    """

    def __init__(
        self,
        caller: ChatCaller,
        roster: AgentRoster,
        progress: ProgressReporter,
        timeout: float = 60.0,
        max_retries: int = 2,
    ):
        self.caller = caller
        self.evaluators = list(roster.evaluators)
        self.progress = progress
        self.timeout = timeout
        self.max_retries = max_retries

    @property
    def max_attempts(self) -> int:
        return 1 + self.max_retries

    def evaluate(self, generation_id: str, draft: Draft) -> list[EvaluationResult]:
        """Run all evaluators on one draft.

        Returns:
            One EvaluationResult per evaluator, in roster order
        """
        if draft.failed:
            raise ValueError(f"Draft from writer {draft.writer_label} failed and cannot be evaluated")

        with ThreadPoolExecutor(
            max_workers=len(self.evaluators),
            thread_name_prefix=f"judge-{generation_id[:8]}-{draft.writer_label}",
        ) as pool:
            futures = [
                pool.submit(self._judge, generation_id, draft, evaluator)
                for evaluator in self.evaluators
            ]
            return [f.result() for f in futures]

    def _judge(self, generation_id: str, draft: Draft, evaluator: AgentConfig) -> EvaluationResult:
        tag = f"[writer {draft.writer_label} / evaluator {evaluator.label}]"
        prompt = evaluator.render(draft=draft.text)
        last_error = ""

        for attempt in range(1, self.max_attempts + 1):
            try:
                response = self.caller.complete(evaluator, prompt, self.timeout)
                card = parse_score(response)
            except ChatError as e:
                last_error = f"call failed: {e}"
            except MalformedEvaluationError as e:
                last_error = f"malformed response: {e}"
            except Exception as e:
                logger.exception("%s attempt %d crashed", tag, attempt)
                last_error = f"error: {type(e).__name__}: {e}"
            else:
                self.progress.append(
                    generation_id,
                    f"{tag} attempt {attempt}/{self.max_attempts}: score {card.score}",
                )
                return EvaluationResult(
                    draft_id=draft.draft_id,
                    writer_label=draft.writer_label,
                    evaluator_label=evaluator.label,
                    score=card.score,
                    feedback=card.summary(),
                    attempts=attempt,
                )

            self.progress.append(
                generation_id,
                f"{tag} attempt {attempt}/{self.max_attempts}: {last_error}",
            )

        logger.warning("%s gave up after %d attempts: %s", tag, self.max_attempts, last_error)
        return EvaluationResult(
            draft_id=draft.draft_id,
            writer_label=draft.writer_label,
            evaluator_label=evaluator.label,
            feedback=last_error,
            malformed=True,
            attempts=self.max_attempts,
        )
