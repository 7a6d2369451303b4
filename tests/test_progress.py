"""Tests for the progress registry."""

import threading
from datetime import timedelta

import pytest

from story_forge.errors import DuplicateIdError
from story_forge.generate import Draft, ProgressReporter, SelectionOutcome


def _outcome(text="story"):
    draft = Draft(writer_label="A", text=text)
    return SelectionOutcome(winning_draft=draft, approved=True, winning_score=8.0)


class TestLifecycle:
    """Start, append, complete and snapshot."""

    def test_start_creates_empty_entry(self):
        reporter = ProgressReporter()
        reporter.start("g")

        snapshot = reporter.snapshot("g")
        assert snapshot.found
        assert snapshot.messages == ()
        assert not snapshot.completed
        assert snapshot.result is None

    def test_duplicate_start_rejected(self):
        reporter = ProgressReporter()
        reporter.start("g")

        with pytest.raises(DuplicateIdError):
            reporter.start("g")

    def test_messages_keep_append_order(self, progress):
        for i in range(5):
            progress.append("gen-1", f"message {i}")

        assert progress.snapshot("gen-1").messages == tuple(f"message {i}" for i in range(5))

    def test_append_to_unknown_id_is_ignored(self):
        reporter = ProgressReporter()

        reporter.append("missing", "late message")

        assert len(reporter) == 0
        assert not reporter.snapshot("missing").found

    def test_snapshot_is_a_copy(self, progress):
        progress.append("gen-1", "one")
        snapshot = progress.snapshot("gen-1")

        progress.append("gen-1", "two")

        assert snapshot.messages == ("one",)
        assert progress.snapshot("gen-1").messages == ("one", "two")

    def test_unknown_snapshot_is_empty(self):
        snapshot = ProgressReporter().snapshot("nope")

        assert snapshot.found is False
        assert snapshot.completed is False
        assert snapshot.to_dict() == {"messages": [], "completed": False, "result": None}


class TestCompletion:
    """Completion is accepted exactly once."""

    def test_first_completion_wins(self, progress):
        first = _outcome("first")

        assert progress.mark_completed("gen-1", first) is True
        assert progress.mark_completed("gen-1", _outcome("second")) is False

        snapshot = progress.snapshot("gen-1")
        assert snapshot.completed
        assert snapshot.result is first

    def test_completion_without_result_is_final(self, progress):
        progress.mark_completed("gen-1", None)
        progress.mark_completed("gen-1", _outcome())

        assert progress.snapshot("gen-1").result is None

    def test_append_after_completion_keeps_result(self, progress):
        outcome = _outcome()
        progress.mark_completed("gen-1", outcome)

        progress.append("gen-1", "straggler")

        snapshot = progress.snapshot("gen-1")
        assert snapshot.messages[-1] == "straggler"
        assert snapshot.completed
        assert snapshot.result is outcome

    def test_completing_unknown_id(self):
        assert ProgressReporter().mark_completed("nope") is False

    def test_to_dict_summarises_result(self, progress):
        progress.mark_completed("gen-1", _outcome("the tale"))

        data = progress.snapshot("gen-1").to_dict()
        assert data["completed"] is True
        assert data["result"]["approved"] is True
        assert data["result"]["winning_text"] == "the tale"


class TestConcurrency:
    """Appends from many threads are all kept."""

    def test_parallel_appends(self, progress):
        def worker(n):
            for i in range(100):
                progress.append("gen-1", f"{n}-{i}")

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        messages = progress.snapshot("gen-1").messages
        assert len(messages) == 800
        # Per-thread order survives interleaving
        for n in range(8):
            own = [m for m in messages if m.startswith(f"{n}-")]
            assert own == [f"{n}-{i}" for i in range(100)]


class TestRetention:
    """Discard and purge for external cleanup."""

    def test_discard(self, progress):
        assert progress.discard("gen-1") is True
        assert progress.discard("gen-1") is False

    def test_purge_only_completed(self):
        reporter = ProgressReporter()
        reporter.start("done")
        reporter.start("running")
        reporter.mark_completed("done")

        removed = reporter.purge(older_than=timedelta(seconds=-1))

        assert removed == 1
        assert not reporter.snapshot("done").found
        assert reporter.snapshot("running").found

    def test_purge_keeps_recent(self, progress):
        progress.mark_completed("gen-1")

        assert progress.purge(older_than=timedelta(hours=1)) == 0


class TestListeners:
    """Push forwarders see every event."""

    def test_listener_receives_events(self):
        reporter = ProgressReporter()
        events = []
        reporter.subscribe(lambda event, gid, payload: events.append((event, gid, payload)))

        reporter.start("g")
        reporter.append("g", "hello")
        reporter.mark_completed("g", None)
        reporter.mark_completed("g", None)

        assert events == [("started", "g", None), ("appended", "g", "hello"), ("completed", "g", None)]

    def test_failing_listener_is_isolated(self):
        reporter = ProgressReporter()

        def broken(event, gid, payload):
            raise RuntimeError("forwarder down")

        reporter.subscribe(broken)
        reporter.start("g")
        reporter.append("g", "still recorded")

        assert reporter.snapshot("g").messages == ("still recorded",)
