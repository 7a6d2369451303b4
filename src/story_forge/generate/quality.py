"""Cheap heuristics for spotting broken writer output."""

MIN_WORDS = 20
MIN_UNIQUE_RATIO = 0.45
MAX_REPEAT_RATIO = 0.06


def is_likely_gibberish(text: str) -> bool:
    """True when text is too short or too repetitive to be a story.

    Checks, in order: fewer than ``MIN_WORDS`` words, a low share of distinct
    words, and runs of the same word ("sea sea sea").
    """
    if not text or not text.strip():
        return True

    words = [w.strip().lower() for w in text.split()]
    if len(words) < MIN_WORDS:
        return True

    if len(set(words)) / len(words) < MIN_UNIQUE_RATIO:
        return True

    repeats = sum(1 for i in range(1, len(words)) if words[i] == words[i - 1])
    if repeats / len(words) > MAX_REPEAT_RATIO:
        return True

    return False


def tail(text: str, max_chars: int = 4000) -> str:
    """Last ``max_chars`` characters, used as continuation context."""
    return text[-max_chars:]
