"""Concurrent fan-out of a prompt to the selected writers."""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from concurrent.futures import TimeoutError as FuturesTimeout
from typing import Callable, Optional

from ..agents import AgentConfig, AgentRoster, WriterSelection
from ..errors import AllWritersFailedError, ChatError, ChatTimeoutError
from ..llm import ChatCaller
from .models import Draft
from .progress import ProgressReporter
from .quality import is_likely_gibberish, tail

logger = logging.getLogger(__name__)

MIN_CONTINUATION_CHARS = 500


class WriterDispatcher:
    """Runs every selected writer in its own thread and collects one Draft each.

    A writer that does not finish within ``timeout`` seconds gets a failed
    Draft with reason "timeout"; the others keep going. Successful drafts are
    passed to ``on_draft`` the moment they arrive so evaluation can start
    while slower writers are still busy.
    """

    REGENERATE_HINT = (
        "\n\nREGENERATE the story avoiding repetition, with complete sentences "
        "and a coherent narrative flow. Do not repeat words or blocks of text."
    )

    CONTINUE_PROMPT = (
        "Continue the story from where it stopped.\n"
        "NO summaries, NO repetition.\n"
        "Context:\n{context}"
    )

    def __init__(
        self,
        caller: ChatCaller,
        roster: AgentRoster,
        progress: ProgressReporter,
        timeout: float = 120.0,
        coherence_retries: int = 0,
        min_chars: int = 0,
        max_extension_rounds: int = 6,
    ):
        self.caller = caller
        self.roster = roster
        self.progress = progress
        self.timeout = timeout
        self.coherence_retries = coherence_retries
        self.min_chars = min_chars
        self.max_extension_rounds = max_extension_rounds

    def dispatch(
        self,
        generation_id: str,
        prompt: str,
        selection: WriterSelection = WriterSelection.ALL,
        on_draft: Optional[Callable[[Draft], None]] = None,
    ) -> list[Draft]:
        """Fan the prompt out and wait for every writer (or its deadline).

        Returns:
            One Draft per selected writer, in writer priority order

        Raises:
            AllWritersFailedError: no writer produced a usable draft
        """
        writers = self.roster.resolve(selection)
        drafts: dict[str, Draft] = {}

        pool = ThreadPoolExecutor(
            max_workers=len(writers),
            thread_name_prefix=f"writer-{generation_id[:8]}",
        )
        futures = {
            pool.submit(self._write, generation_id, writer, prompt): writer
            for writer in writers
        }
        try:
            try:
                for future in as_completed(futures, timeout=self.timeout):
                    self._collect(generation_id, future.result(), drafts, on_draft)
            except FuturesTimeout:
                for future, writer in futures.items():
                    if writer.label in drafts:
                        continue
                    if future.done() and not future.cancelled():
                        # Finished between the deadline and this check
                        draft = future.result()
                    else:
                        future.cancel()
                        draft = Draft.failure(writer.label, "timeout", model=writer.model)
                    self._collect(generation_id, draft, drafts, on_draft)
        finally:
            # A writer stuck past its deadline must not hold up the generation
            pool.shutdown(wait=False, cancel_futures=True)

        ordered = [drafts[writer.label] for writer in writers]
        if all(d.failed for d in ordered):
            raise AllWritersFailedError(ordered)
        return ordered

    def _collect(
        self,
        generation_id: str,
        draft: Draft,
        drafts: dict[str, Draft],
        on_draft: Optional[Callable[[Draft], None]],
    ) -> None:
        drafts[draft.writer_label] = draft
        if draft.failed:
            self.progress.append(
                generation_id,
                f"Writer {draft.writer_label} failed: {draft.failure_reason}",
            )
            return
        self.progress.append(
            generation_id,
            f"Writer {draft.writer_label} ({draft.model}) finished: "
            f"{draft.word_count} words, {len(draft.text)} characters",
        )
        if on_draft is not None:
            on_draft(draft)

    def _write(self, generation_id: str, writer: AgentConfig, prompt: str) -> Draft:
        """Produce one writer's draft; chat failures become a failed Draft."""
        self.progress.append(generation_id, f"Writer {writer.label}: started ({writer.model})")
        try:
            text = self._compose(generation_id, writer, prompt)
        except ChatTimeoutError:
            return Draft.failure(writer.label, "timeout", model=writer.model)
        except ChatError as e:
            logger.warning("Writer %s transport failure: %s", writer.label, e)
            return Draft.failure(writer.label, f"transport: {e}", model=writer.model)
        except Exception as e:
            logger.exception("Writer %s crashed", writer.label)
            return Draft.failure(writer.label, f"error: {type(e).__name__}: {e}", model=writer.model)

        if not text.strip():
            return Draft.failure(writer.label, "empty response", model=writer.model)
        return Draft(writer_label=writer.label, text=text, model=writer.model)

    def _compose(self, generation_id: str, writer: AgentConfig, prompt: str) -> str:
        """Ask the writer, then regenerate gibberish and extend short drafts."""
        request = writer.render(prompt=prompt)
        text = self.caller.complete(writer, request, self.timeout)

        for attempt in range(1, self.coherence_retries + 1):
            if not is_likely_gibberish(text):
                break
            self.progress.append(
                generation_id,
                f"Writer {writer.label}: draft looks incoherent, regenerating "
                f"({attempt}/{self.coherence_retries})",
            )
            text = self.caller.complete(writer, request + self.REGENERATE_HINT, self.timeout)

        rounds = 0
        while len(text) < self.min_chars and rounds < self.max_extension_rounds:
            rounds += 1
            extra = self.caller.complete(
                writer,
                self.CONTINUE_PROMPT.format(context=tail(text)),
                self.timeout,
            )
            if len(extra) < MIN_CONTINUATION_CHARS or is_likely_gibberish(extra):
                break
            text += "\n\n" + extra
            self.progress.append(
                generation_id,
                f"Writer {writer.label}: extended draft to {len(text)} characters (round {rounds})",
            )

        return text
