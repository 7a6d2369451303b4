"""Call and token accounting for chat completions."""

import threading
from dataclasses import dataclass

from .agents import AgentConfig
from .errors import ChatError
from .llm import ChatCaller

CHARS_PER_TOKEN = 4


def estimate_tokens(text: str) -> int:
    """Rough token count: one token per four characters, at least one."""
    return max(1, len(text or "") // CHARS_PER_TOKEN)


@dataclass
class ModelUsage:
    calls: int = 0
    failures: int = 0
    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


class UsageLedger:
    """Thread-safe per-model usage counters."""

    def __init__(self):
        self._usage: dict[str, ModelUsage] = {}
        self._lock = threading.Lock()

    def record(self, model: str, prompt: str, completion: str | None) -> None:
        with self._lock:
            usage = self._usage.setdefault(model, ModelUsage())
            usage.calls += 1
            usage.input_tokens += estimate_tokens(prompt)
            if completion is None:
                usage.failures += 1
            else:
                usage.output_tokens += estimate_tokens(completion)

    def by_model(self) -> dict[str, ModelUsage]:
        with self._lock:
            return {
                model: ModelUsage(u.calls, u.failures, u.input_tokens, u.output_tokens)
                for model, u in self._usage.items()
            }

    def totals(self) -> ModelUsage:
        total = ModelUsage()
        for u in self.by_model().values():
            total.calls += u.calls
            total.failures += u.failures
            total.input_tokens += u.input_tokens
            total.output_tokens += u.output_tokens
        return total

    def reset(self) -> None:
        with self._lock:
            self._usage.clear()


class MeteredChatCaller:
    """Wraps a ChatCaller and records every call in a ledger."""

    def __init__(self, caller: ChatCaller, ledger: UsageLedger):
        self.caller = caller
        self.ledger = ledger

    def complete(self, agent: AgentConfig, prompt: str, timeout: float) -> str:
        try:
            text = self.caller.complete(agent, prompt, timeout)
        except ChatError:
            self.ledger.record(agent.model, prompt, None)
            raise
        self.ledger.record(agent.model, prompt, text)
        return text
