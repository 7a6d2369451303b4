"""Tests for draft selection."""

from story_forge.generate import Draft, EvaluationResult, select
from story_forge.generate.selector import best_evaluation, representative_score


def _draft(label, text=None):
    return Draft(writer_label=label, text=text or f"story by {label}")


def _result(draft, score, evaluator="judge"):
    if score is None:
        return EvaluationResult(
            draft_id=draft.draft_id,
            writer_label=draft.writer_label,
            evaluator_label=evaluator,
            malformed=True,
            attempts=3,
        )
    return EvaluationResult(
        draft_id=draft.draft_id,
        writer_label=draft.writer_label,
        evaluator_label=evaluator,
        score=score,
    )


class TestRepresentativeScore:

    def test_mean_of_valid_scores(self):
        d = _draft("A")
        results = [_result(d, 6, "e1"), _result(d, 9, "e2"), _result(d, None, "e3")]

        assert representative_score(results) == 7.5

    def test_no_valid_scores_is_zero(self):
        d = _draft("A")

        assert representative_score([_result(d, None)]) == 0.0
        assert representative_score([]) == 0.0

    def test_best_evaluation_prefers_valid(self):
        d = _draft("A")
        malformed = _result(d, None, "e1")
        low = _result(d, 4, "e2")
        high = _result(d, 9, "e3")

        assert best_evaluation([malformed, low, high]) is high
        assert best_evaluation([malformed]) is malformed
        assert best_evaluation([]) is None


class TestSelect:

    def test_highest_mean_wins(self):
        a, b, c = _draft("A"), _draft("B"), _draft("C")
        evaluations = {
            a.draft_id: [_result(a, 8)],
            b.draft_id: [_result(b, 6)],
            c.draft_id: [_result(c, 9)],
        }

        outcome = select([a, b, c], evaluations)

        assert outcome.winning_draft is c
        assert outcome.approved is True
        assert outcome.winning_score == 9

    def test_tie_goes_to_writer_priority(self):
        a, b = _draft("A", "short"), _draft("B", "a much longer story text")
        evaluations = {a.draft_id: [_result(a, 8)], b.draft_id: [_result(b, 8)]}

        outcome = select([b, a], evaluations)

        assert outcome.winning_draft is a

    def test_approval_threshold_is_inclusive(self):
        a = _draft("A")
        outcome = select([a], {a.draft_id: [_result(a, 7)]})

        assert outcome.approved is True

    def test_below_threshold_still_returns_candidate(self):
        a, b = _draft("A"), _draft("B")
        evaluations = {
            a.draft_id: [_result(a, 6, "e1"), _result(a, 7, "e2")],
            b.draft_id: [_result(b, 5, "e1"), _result(b, 5, "e2")],
        }

        outcome = select([a, b], evaluations)

        assert outcome.winning_draft is a
        assert outcome.winning_score == 6.5
        assert outcome.approved is False

    def test_unscored_draft_never_beats_scored(self):
        a, b = _draft("A"), _draft("B")
        evaluations = {a.draft_id: [_result(a, None)], b.draft_id: [_result(b, 2)]}

        outcome = select([a, b], evaluations)

        assert outcome.winning_draft is b

    def test_all_unscoreable_returns_unapproved_candidate(self):
        a, b = _draft("A"), _draft("B")
        evaluations = {a.draft_id: [_result(a, None)], b.draft_id: [_result(b, None)]}

        outcome = select([b, a], evaluations)

        assert outcome.winning_draft is a
        assert outcome.approved is False
        assert outcome.winning_score == 0.0

    def test_failed_drafts_are_skipped(self):
        a = Draft.failure("A", "timeout")
        b = _draft("B")

        outcome = select([a, b], {b.draft_id: [_result(b, 3)]})

        assert outcome.winning_draft is b
        assert [d.writer_label for d, _ in outcome.all_drafts] == ["A", "B"]
        assert outcome.all_drafts[0][1] is None

    def test_no_usable_drafts(self):
        outcome = select([Draft.failure("A", "timeout"), Draft.failure("B", "timeout")], {})

        assert outcome.winning_draft is None
        assert outcome.approved is False
        assert outcome.winning_text is None

    def test_empty_input(self):
        outcome = select([], {})

        assert outcome.winning_draft is None
        assert outcome.all_drafts == ()

    def test_all_drafts_in_priority_order_with_best_result(self):
        a, b, c = _draft("A"), _draft("B"), _draft("C")
        best_c = _result(c, 9, "e2")
        evaluations = {
            a.draft_id: [_result(a, 8)],
            b.draft_id: [_result(b, 6)],
            c.draft_id: [_result(c, 5, "e1"), best_c],
        }

        outcome = select([c, a, b], evaluations)

        assert [d.writer_label for d, _ in outcome.all_drafts] == ["A", "B", "C"]
        assert outcome.all_drafts[2][1] is best_c
