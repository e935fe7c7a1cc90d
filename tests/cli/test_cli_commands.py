"""
Tests for the command-line interface.
"""

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import pytest
from click.testing import CliRunner

from ai_builder import __version__
from ai_builder.cli.main import cli
from ai_builder.exceptions import HttpStatusError
from ai_builder.models import GenerationOutcome, GenerationState


@pytest.fixture
def runner():
    return CliRunner()


def test_version(runner):
    result = runner.invoke(cli, ["--version"])

    assert result.exit_code == 0
    assert f"AI Builder version {__version__}" in result.output


def test_help_without_command(runner):
    result = runner.invoke(cli, [])

    assert result.exit_code == 0
    assert "generate" in result.output
    assert "compose" in result.output


class TestComposeCommand:
    """Test the compose command."""

    def test_compose(self, runner, tmp_path):
        fields = tmp_path / "fields.json"
        values = tmp_path / "values.json"
        fields.write_text(json.dumps([
            {"id": "user-prompt", "name": "userPrompt", "label": "User Prompt", "order": 1},
            {"id": "tone", "name": "tone", "label": "Tone", "order": 2},
            {"id": "ar", "name": "aspectRatio", "sectionId": "body"},
        ]))
        values.write_text(json.dumps({"userPrompt": "A fox", "tone": "Playful", "aspectRatio": "1:1"}))

        result = runner.invoke(cli, ["compose", "--fields", str(fields), "--values", str(values), "--params"])

        assert result.exit_code == 0
        assert result.output.startswith("User Prompt: A fox\n\nTone: Playful\n")
        assert '"aspect_ratio": "1:1"' in result.output

    def test_compose_rejects_invalid_json(self, runner, tmp_path):
        fields = tmp_path / "fields.json"
        values = tmp_path / "values.json"
        fields.write_text("not json")
        values.write_text("{}")

        result = runner.invoke(cli, ["compose", "--fields", str(fields), "--values", str(values)])

        assert result.exit_code != 0
        assert "not valid JSON" in result.output


class TestGenerateCommand:
    """Test the generate command with the generation run mocked out."""

    def test_generate_json_output(self, runner):
        outcome = GenerationOutcome(main_text="Hello!", state=GenerationState.DONE)
        run = AsyncMock(return_value=SimpleNamespace(outcome=outcome))

        with patch("ai_builder.cli.main._run_generation", run):
            result = runner.invoke(
                cli,
                ["generate", "writer", "Say hi", "--search", "basic", "--max-results", "3",
                 "--language", "fr", "--json"],
            )

        assert result.exit_code == 0
        assert '"main_text": "Hello!"' in result.output

        request = run.call_args.args[0]
        assert request.agent_id == "writer"
        assert request.body == {"searchType": "basic", "max_results": 3}
        assert request.user_prompt.startswith("Say hi\n\nIMPORTANT OUTPUT LANGUAGE REQUIREMENT:")
        assert run.call_args.kwargs["history"] is True

    def test_generate_failure_exit_code(self, runner):
        outcome = GenerationOutcome(main_error=HttpStatusError(500, "boom"), state=GenerationState.DONE)
        run = AsyncMock(return_value=SimpleNamespace(outcome=outcome))

        with patch("ai_builder.cli.main._run_generation", run):
            result = runner.invoke(cli, ["generate", "writer", "Say hi", "--no-history"])

        assert result.exit_code == 1
        assert "Server Error (500)" in result.output
        assert run.call_args.kwargs["history"] is False

    def test_generate_requires_prompt(self, runner):
        run = AsyncMock()

        with patch("ai_builder.cli.main._run_generation", run):
            result = runner.invoke(cli, ["generate", "writer"])

        assert result.exit_code == 2
        run.assert_not_called()

    def test_invalid_max_results(self, runner):
        result = runner.invoke(cli, ["generate", "writer", "Hi", "--max-results", "50"])

        assert result.exit_code == 2
