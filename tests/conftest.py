"""Shared fixtures: scripted chat callers and small rosters."""

import threading

import pytest

from story_forge.agents import AgentConfig, AgentRole, AgentRoster
from story_forge.generate import ProgressReporter


class ScriptedCaller:
    """ChatCaller stand-in answering from a per-label script.

    A script entry may be a string, an exception instance, a callable taking
    the prompt, or a list of those consumed one per call (the last one repeats).
    """

    def __init__(self, script=None, default="ok"):
        self.script = script or {}
        self.default = default
        self.calls = []
        self._lock = threading.Lock()

    def complete(self, agent, prompt, timeout):
        with self._lock:
            index = sum(1 for label, _ in self.calls if label == agent.label)
            self.calls.append((agent.label, prompt))
        action = self.script.get(agent.label, self.default)
        if isinstance(action, list):
            action = action[min(index, len(action) - 1)]
        if isinstance(action, Exception):
            raise action
        if callable(action):
            return action(prompt)
        return action

    def calls_for(self, label):
        with self._lock:
            return [prompt for l, prompt in self.calls if l == label]


def make_roster(writers=("A", "B", "C"), evaluators=("judge",)):
    return AgentRoster(
        writers=[
            AgentConfig(
                label=label,
                role=AgentRole.WRITER,
                model=f"writer-{label.lower()}",
                prompt_template="{prompt}",
            )
            for label in writers
        ],
        evaluators=[
            AgentConfig(
                label=label,
                role=AgentRole.EVALUATOR,
                model=f"judge-{label}",
                prompt_template="{draft}",
            )
            for label in evaluators
        ],
    )


@pytest.fixture
def progress():
    reporter = ProgressReporter()
    reporter.start("gen-1")
    return reporter


@pytest.fixture
def roster():
    return make_roster()
