"""End-to-end orchestration of one generation.

``GenerationCoordinator.start`` registers a generation and runs it on a
background thread:

1. Writers draft concurrently (``WriterDispatcher``)
2. Each draft is judged as soon as it arrives (``EvaluationPipeline``)
3. The best draft is selected (``select``)
4. The progress entry is sealed and the outcome handed to the result sink

Callers observe a generation only through ``poll`` / ``get_progress``, which
never raise for a running or failed generation.
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import timedelta
from typing import Optional

from ..agents import WRITER_PRIORITY, AgentRoster, WriterSelection, load_roster
from ..config import Settings, get_settings
from ..errors import AllWritersFailedError, CoordinatorInternalError, EmptyPromptError
from ..llm import ChatCaller, LLMClient
from ..usage import MeteredChatCaller, UsageLedger
from .judge import EvaluationPipeline
from .models import Draft, EvaluationResult, GenerationRequest, GenerationState, SelectionOutcome, new_id
from .progress import ProgressReporter, ProgressSnapshot
from .selector import APPROVAL_THRESHOLD, select
from .sink import JsonlResultSink, ResultSink
from .writer import WriterDispatcher

logger = logging.getLogger(__name__)


class GenerationCoordinator:
    """Starts generations and answers progress polls."""

    def __init__(
        self,
        dispatcher: WriterDispatcher,
        pipeline: EvaluationPipeline,
        progress: ProgressReporter,
        sink: Optional[ResultSink] = None,
        ledger: Optional[UsageLedger] = None,
    ):
        self.dispatcher = dispatcher
        self.pipeline = pipeline
        self.progress = progress
        self.sink = sink
        self.ledger = ledger
        self._states: dict[str, GenerationState] = {}
        self._finished: dict[str, threading.Event] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Settings] = None,
        caller: Optional[ChatCaller] = None,
        roster: Optional[AgentRoster] = None,
        progress: Optional[ProgressReporter] = None,
        sink: Optional[ResultSink] = None,
    ) -> "GenerationCoordinator":
        """Wire a coordinator from configuration.

        Chat calls go through a metered wrapper so ``coordinator.ledger``
        reports usage. Results are appended to ``settings.results_file``
        unless another sink is given.
        """
        settings = settings or get_settings()
        roster = roster or load_roster(settings.agents_file)
        progress = progress or ProgressReporter()
        ledger = UsageLedger()
        metered = MeteredChatCaller(caller or LLMClient(), ledger)

        dispatcher = WriterDispatcher(
            metered,
            roster,
            progress,
            timeout=settings.writer_timeout,
            coherence_retries=settings.coherence_retries,
            min_chars=settings.min_draft_chars,
            max_extension_rounds=settings.max_extension_rounds,
        )
        pipeline = EvaluationPipeline(
            metered,
            roster,
            progress,
            timeout=settings.evaluator_timeout,
            max_retries=settings.evaluator_max_retries,
        )
        return cls(
            dispatcher,
            pipeline,
            progress,
            sink=sink or JsonlResultSink(settings.results_file),
            ledger=ledger,
        )

    def start(
        self,
        prompt: str,
        writer_selection: WriterSelection | str = WriterSelection.ALL,
    ) -> str:
        """Register a generation and run it in the background.

        Returns:
            The generation id to poll

        Raises:
            EmptyPromptError: prompt is blank
            ConfigurationError: unknown or unconfigured writer selection
        """
        if not prompt or not prompt.strip():
            raise EmptyPromptError()

        request = GenerationRequest(
            id=new_id(),
            prompt=prompt.strip(),
            writer_selection=WriterSelection.parse(writer_selection),
        )
        self.dispatcher.roster.resolve(request.writer_selection)
        self.progress.start(request.id)
        with self._lock:
            self._states[request.id] = GenerationState.PENDING
            self._finished[request.id] = threading.Event()

        self.progress.append(
            request.id,
            f"Generation started (writers: {request.writer_selection.value})",
        )
        thread = threading.Thread(
            target=self.run,
            args=(request,),
            name=f"generation-{request.id[:8]}",
            daemon=True,
        )
        thread.start()
        return request.id

    def poll(self, generation_id: str) -> ProgressSnapshot:
        return self.progress.snapshot(generation_id)

    def get_progress(self, generation_id: str) -> dict:
        """Poll result as plain data: messages, completed flag and result summary."""
        return self.poll(generation_id).to_dict()

    def state(self, generation_id: str) -> Optional[GenerationState]:
        with self._lock:
            return self._states.get(generation_id)

    def wait(self, generation_id: str, timeout: Optional[float] = None) -> ProgressSnapshot:
        """Block until the generation has finished (or ``timeout`` elapses)."""
        with self._lock:
            finished = self._finished.get(generation_id)
        if finished is not None:
            finished.wait(timeout)
        return self.poll(generation_id)

    def discard(self, generation_id: str) -> bool:
        """Forget a generation: its progress entry, state and completion event."""
        removed = self.progress.discard(generation_id)
        self._forget_orphans()
        return removed

    def purge(self, older_than: timedelta) -> int:
        """Drop generations completed more than ``older_than`` ago.

        Also clears bookkeeping for entries already purged from the reporter
        directly.

        Returns:
            Number of progress entries removed
        """
        removed = self.progress.purge(older_than)
        self._forget_orphans()
        return removed

    def __len__(self) -> int:
        with self._lock:
            return len(self._states)

    def _forget_orphans(self) -> None:
        with self._lock:
            orphans = [gid for gid in self._states if gid not in self.progress]
            for gid in orphans:
                del self._states[gid]
                finished = self._finished.pop(gid, None)
                if finished is not None:
                    finished.set()
        if orphans:
            logger.debug("Forgot %d generations", len(orphans))

    def run(self, request: GenerationRequest) -> Optional[SelectionOutcome]:
        """Run one generation to a terminal state.

        Every failure is turned into a progress message and a sealed entry
        without result; nothing propagates to the caller.
        """
        gid = request.id
        outcome: Optional[SelectionOutcome] = None
        self._set_state(gid, GenerationState.RUNNING)
        try:
            outcome = self._orchestrate(request)
        except AllWritersFailedError as e:
            self.progress.append(gid, f"ERROR: {e}")
            self._set_state(gid, GenerationState.FAILED)
        except Exception as e:
            logger.exception("Generation %s crashed", gid)
            error = CoordinatorInternalError(f"{type(e).__name__}: {e}")
            self.progress.append(gid, f"ERROR: internal error: {error}")
            self._set_state(gid, GenerationState.FAILED)
        else:
            self.progress.append(gid, self._describe(outcome))
            self._set_state(gid, GenerationState.COMPLETED)
        finally:
            self.progress.mark_completed(gid, outcome)
            try:
                self._save(request, outcome)
            finally:
                self._set_finished(gid)
        return outcome

    def _orchestrate(self, request: GenerationRequest) -> SelectionOutcome:
        gid = request.id
        pending: dict[str, Future] = {}
        pool = ThreadPoolExecutor(
            max_workers=len(WRITER_PRIORITY),
            thread_name_prefix=f"evaluate-{gid[:8]}",
        )

        def evaluate_when_ready(draft: Draft) -> None:
            self.progress.append(gid, f"Evaluating draft from writer {draft.writer_label}")
            pending[draft.draft_id] = pool.submit(self.pipeline.evaluate, gid, draft)

        try:
            drafts = self.dispatcher.dispatch(
                gid,
                request.prompt,
                request.writer_selection,
                on_draft=evaluate_when_ready,
            )
            evaluations: dict[str, list[EvaluationResult]] = {
                draft_id: future.result() for draft_id, future in pending.items()
            }
        finally:
            pool.shutdown(wait=False, cancel_futures=True)

        return select(drafts, evaluations)

    def _describe(self, outcome: SelectionOutcome) -> str:
        if outcome.winning_draft is None:
            return "No draft could be selected"
        label = outcome.winning_draft.writer_label
        if outcome.approved:
            return f"Writer {label} selected with mean score {outcome.winning_score:.2f} (approved)"
        return (
            f"Writer {label} is the best candidate with mean score "
            f"{outcome.winning_score:.2f}, below the approval threshold of {APPROVAL_THRESHOLD:g}"
        )

    def _save(self, request: GenerationRequest, outcome: Optional[SelectionOutcome]) -> None:
        if self.sink is None:
            return
        try:
            self.sink.save_result(request.id, request.prompt, outcome)
        except Exception:
            logger.exception("Saving generation %s failed", request.id)

    def _set_state(self, generation_id: str, state: GenerationState) -> None:
        with self._lock:
            # A discarded generation stays forgotten
            if generation_id in self._states:
                self._states[generation_id] = state

    def _set_finished(self, generation_id: str) -> None:
        with self._lock:
            finished = self._finished.get(generation_id)
        if finished is not None:
            finished.set()
