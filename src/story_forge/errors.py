"""Exception taxonomy for story generation.

Writer and evaluator failures are recovered where they happen and only show up
as progress messages. Only ``AllWritersFailedError`` and unexpected errors end a
generation, and even those are turned into a completed-without-result entry at
the coordinator boundary.
"""


class StoryForgeError(Exception):
    """Base class for all Story Forge errors."""


class ConfigurationError(StoryForgeError):
    """Agent roster or settings are invalid."""


class EmptyPromptError(StoryForgeError, ValueError):
    """A generation was requested with a blank prompt."""

    def __init__(self, message: str = "Prompt must not be empty"):
        super().__init__(message)


class ChatError(StoryForgeError):
    """A chat completion call did not produce text."""


class ChatTimeoutError(ChatError):
    """The model did not answer within the call timeout."""


class ChatTransportError(ChatError):
    """Network failure or non-success response from the model backend."""


class MalformedEvaluationError(StoryForgeError):
    """An evaluator response could not be decoded into a valid score."""


class AllWritersFailedError(StoryForgeError):
    """Every selected writer failed; there is nothing to evaluate."""

    def __init__(self, drafts):
        self.drafts = list(drafts)
        reasons = ", ".join(f"{d.writer_label}: {d.failure_reason}" for d in self.drafts)
        super().__init__(f"All writers failed ({reasons})")


class DuplicateIdError(StoryForgeError):
    """A progress entry already exists for this generation id."""

    def __init__(self, generation_id: str):
        self.generation_id = generation_id
        super().__init__(f"Generation id already registered: {generation_id}")


class CoordinatorInternalError(StoryForgeError):
    """Unexpected failure inside a generation run."""
