"""Tests for the command-line interface."""

import json

from click.testing import CliRunner

from story_forge import __version__
from story_forge.cli import main
from story_forge.config import get_settings


def test_version():
    result = CliRunner().invoke(main, ["--version"])

    assert result.exit_code == 0
    assert __version__ in result.output


def test_agents_lists_defaults():
    result = CliRunner().invoke(main, ["agents"])

    assert result.exit_code == 0
    assert "mistral:7b-instruct-q4_K_M" in result.output
    assert "evaluator" in result.output


def test_agents_rejects_invalid_file(tmp_path):
    path = tmp_path / "agents.json"
    path.write_text(json.dumps({"writers": [], "evaluators": []}), encoding="utf-8")

    result = CliRunner().invoke(main, ["agents", "--file", str(path)])

    assert result.exit_code == 1


def test_generate_rejects_blank_prompt():
    result = CliRunner().invoke(main, ["generate", "   "])

    assert result.exit_code == 1
    assert "Prompt must not be empty" in result.output


def test_history_empty(tmp_path, monkeypatch):
    monkeypatch.setenv("SF_DATA_DIR", str(tmp_path))
    get_settings.cache_clear()
    try:
        result = CliRunner().invoke(main, ["history"])
    finally:
        get_settings.cache_clear()

    assert result.exit_code == 0
    assert "No generations saved yet" in result.output
