"""Story Forge - multi-writer story generation with LLM judges."""

__version__ = "0.1.0"
