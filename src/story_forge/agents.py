"""Writer and evaluator agent configuration.

A roster maps writer labels (A, B, C) and evaluator labels to a model, a system
prompt and a prompt template. Rosters are loaded from a JSON file or fall back
to the built-in defaults.
"""

import json
import logging
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

# Tie-break order used by selection
WRITER_PRIORITY = ("A", "B", "C")


class AgentRole(Enum):
    WRITER = "writer"
    EVALUATOR = "evaluator"


class WriterSelection(Enum):
    """Which writers take part in a generation."""
    ALL = "All"
    A = "A"
    B = "B"
    C = "C"

    @classmethod
    def parse(cls, value: "str | WriterSelection | None") -> "WriterSelection":
        """Parse a user-supplied selection ("all", " b ", None...)."""
        if isinstance(value, cls):
            return value
        text = (value or "All").strip().upper()
        if not text or text == "ALL":
            return cls.ALL
        try:
            return cls[text]
        except KeyError:
            raise ConfigurationError(f"Unknown writer selection: {value!r}") from None


WRITER_TEMPLATE = (
    "Write a complete story on the theme: {prompt}\n\n"
    "Reply ONLY in the following format:\n"
    "Title: <the title>\n\n<the story body>\n\n"
    "Nothing else: no explanations, no metadata, just the title and the story."
)

EVALUATOR_TEMPLATE = (
    "Evaluate the following story.\n\n"
    'STORY:\n"""\n{draft}\n"""\n\n'
    "Respond in JSON:\n"
    '{{"score": <integer 1-10>, "defects": "<main weaknesses>", "feedback": "<one paragraph>"}}'
)


class AgentConfig(BaseModel):
    """A configured language-model call."""

    label: str
    role: AgentRole
    model: str
    system_prompt: str = ""
    prompt_template: str
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    max_tokens: int = Field(default=8000, gt=0)

    @field_validator("label")
    @classmethod
    def _strip_label(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("label must not be empty")
        return value

    @model_validator(mode="after")
    def _check_template(self) -> "AgentConfig":
        placeholder = "prompt" if self.role is AgentRole.WRITER else "draft"
        try:
            self.render(**{placeholder: ""})
        except (KeyError, IndexError, ValueError) as e:
            raise ValueError(
                f"prompt_template of {self.label!r} must only use {{{placeholder}}} "
                f"(escape literal braces as {{{{ }}}}): {type(e).__name__}: {e}"
            ) from e
        return self

    def render(self, **values: str) -> str:
        """Fill the prompt template."""
        return self.prompt_template.format(**values)


class AgentRoster(BaseModel):
    """All writers and evaluators available to the generator."""

    writers: list[AgentConfig]
    evaluators: list[AgentConfig] = Field(min_length=1)

    @model_validator(mode="after")
    def _check_labels(self) -> "AgentRoster":
        labels = [w.label.upper() for w in self.writers]
        if not labels:
            raise ValueError("at least one writer is required")
        unknown = [label for label in labels if label not in WRITER_PRIORITY]
        if unknown:
            raise ValueError(f"writer labels must be one of {WRITER_PRIORITY}, got {unknown}")
        if len(set(labels)) != len(labels):
            raise ValueError("writer labels must be unique")
        evaluator_labels = [e.label for e in self.evaluators]
        if len(set(evaluator_labels)) != len(evaluator_labels):
            raise ValueError("evaluator labels must be unique")
        for writer in self.writers:
            writer.label = writer.label.upper()
        return self

    def resolve(self, selection: WriterSelection) -> list[AgentConfig]:
        """Return the writers taking part, in priority order."""
        writers = sorted(self.writers, key=lambda w: WRITER_PRIORITY.index(w.label))
        if selection is WriterSelection.ALL:
            return writers
        chosen = [w for w in writers if w.label == selection.value]
        if not chosen:
            raise ConfigurationError(f"Writer {selection.value} is not configured")
        return chosen


def default_roster() -> AgentRoster:
    """Built-in roster: three local writers and two small judges."""
    return AgentRoster(
        writers=[
            AgentConfig(
                label="A",
                role=AgentRole.WRITER,
                model="phi3:3.8b-mini-4k-instruct-q4_K_M",
                system_prompt="You are an expert writer. Write coherent, well-structured prose. Avoid repetition.",
                prompt_template=WRITER_TEMPLATE,
            ),
            AgentConfig(
                label="B",
                role=AgentRole.WRITER,
                model="mistral:7b-instruct-q4_K_M",
                system_prompt="You are an emotional storyteller. Write engaging prose and avoid repetition.",
                prompt_template=WRITER_TEMPLATE,
            ),
            AgentConfig(
                label="C",
                role=AgentRole.WRITER,
                model="phi3:mini-128k",
                system_prompt="You are an epic writer: write long, gripping and detailed stories.",
                prompt_template=WRITER_TEMPLATE,
            ),
        ],
        evaluators=[
            AgentConfig(
                label="coherence",
                role=AgentRole.EVALUATOR,
                model="qwen2.5:3b",
                system_prompt="Evaluate coherence and structure. Reply with JSON only.",
                prompt_template=EVALUATOR_TEMPLATE,
                temperature=0.2,
                max_tokens=1000,
            ),
            AgentConfig(
                label="style",
                role=AgentRole.EVALUATOR,
                model="llama3.2:3b",
                system_prompt="Evaluate style and rhythm. Reply with JSON only.",
                prompt_template=EVALUATOR_TEMPLATE,
                temperature=0.2,
                max_tokens=1000,
            ),
        ],
    )


def load_roster(path: Path | None = None) -> AgentRoster:
    """Load a roster from JSON, or the defaults when no path is given.

    The file holds ``{"writers": [...], "evaluators": [...]}``; ``role`` may be
    omitted and is filled in from the list an agent appears in.
    """
    if path is None:
        return default_roster()

    path = Path(path)
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        raise ConfigurationError(f"Agents file not found: {path}") from None
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Agents file is not valid JSON: {path}: {e}") from e

    for key, role in (("writers", AgentRole.WRITER), ("evaluators", AgentRole.EVALUATOR)):
        for agent in data.get(key, []):
            agent.setdefault("role", role.value)

    try:
        roster = AgentRoster.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid agents file {path}: {e}") from e

    logger.info(
        "Loaded roster from %s: %d writers, %d evaluators",
        path, len(roster.writers), len(roster.evaluators),
    )
    return roster
