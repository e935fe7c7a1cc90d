"""
Main CLI entry point for AI Builder.
"""

import asyncio
import json
import logging
import sys
from datetime import datetime
from pathlib import Path

import click
from rich.console import Console

from .. import __version__
from ..backend.client import BackendClient
from ..exceptions import PreconditionError
from ..history import HttpHistoryRecorder, InMemoryHistoryRecorder
from ..models import GenerationRequest
from ..orchestrator import GenerationOrchestrator
from ..prompt.composer import compose
from ..prompt.fields import FieldSpec, extract_parameters
from ..prompt.language import build_language_instruction
from ..session import GenerationSession
from .renderer import OutcomeRenderer

console = Console()


def _configure_logging(level: int) -> Path:
    """Log to a timestamped file and to stderr."""
    logs_dir = Path("logs")
    logs_dir.mkdir(exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = logs_dir / f"ai_builder_{timestamp}.log"

    file_handler = logging.FileHandler(log_file)
    file_handler.setLevel(level)
    file_handler.setFormatter(logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    ))

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter("%(name)s - %(levelname)s - %(message)s"))

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.info(f"Logging initialized. Log file: {log_file}")
    return log_file


def _load_json(path: Path) -> object:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise click.BadParameter(f"{path} is not valid JSON: {e}") from e


@click.group(invoke_without_command=True)
@click.option("--version", is_flag=True, help="Show version and exit")
@click.option("--debug", "-d", is_flag=True, help="Enable debug logging")
@click.option("--info", "-i", is_flag=True, help="Enable info logging")
@click.pass_context
def cli(ctx: click.Context, version: bool, debug: bool, info: bool) -> None:
    """
    AI Builder - compose prompts and run agent generations.
    """
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug

    if debug or info:
        _configure_logging(logging.DEBUG if debug else logging.INFO)

    if version:
        console.print(f"[bold cyan]AI Builder[/bold cyan] version [green]{__version__}[/green]")
        return

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@cli.command("compose")
@click.option(
    "--fields", "fields_path", required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="JSON file with the form's field records",
)
@click.option(
    "--values", "values_path", required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="JSON file with form values keyed by field name",
)
@click.option("--language", "-l", default=None, help="Output language code (e.g. fr)")
@click.option("--params", is_flag=True, help="Also print body/extra_body parameters")
def compose_command(fields_path: Path, values_path: Path, language: str | None, params: bool) -> None:
    """Compose a prompt from form fields and values."""
    raw_fields = _load_json(fields_path)
    values = _load_json(values_path)
    if not isinstance(raw_fields, list) or not isinstance(values, dict):
        raise click.BadParameter("fields must be a JSON list and values a JSON object")

    fields = [FieldSpec.from_dict(f) for f in raw_fields]
    click.echo(compose(fields, values, selected_language=language))

    if params:
        extracted = extract_parameters(fields, values)
        click.echo(json.dumps({"body": extracted.body, "extra_body": extracted.extra}, indent=2))


async def _run_generation(request: GenerationRequest, base_url: str | None, history: bool) -> GenerationSession:
    async with BackendClient(base_url=base_url) as client:
        recorder = HttpHistoryRecorder(client) if history else InMemoryHistoryRecorder()
        session = GenerationSession(GenerationOrchestrator(client, history=recorder))
        try:
            await session.start(request)
            await session.flush()
        finally:
            await session.aclose()
        return session


@cli.command("generate")
@click.argument("agent_id")
@click.argument("prompt", required=False)
@click.option(
    "--prompt-file", type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Read the prompt from a file",
)
@click.option(
    "--search", "search_type", default="no-search",
    type=click.Choice(["no-search", "basic", "advanced", "deep"]),
    help="Web search mode",
)
@click.option("--max-results", type=click.IntRange(1, 20), default=None, help="Search results to use")
@click.option("--image", "image_type", default=None, help="Image type to generate alongside the response")
@click.option("--language", "-l", default=None, help="Output language code")
@click.option("--no-summarize", is_flag=True, help="Skip summarization before search/image")
@click.option("--base-url", default=None, help="Completion service URL")
@click.option("--no-history", is_flag=True, help="Do not write the result to prompt history")
@click.option("--json", "as_json", is_flag=True, help="Print the outcome as JSON")
def generate_command(
    agent_id: str,
    prompt: str | None,
    prompt_file: Path | None,
    search_type: str,
    max_results: int | None,
    image_type: str | None,
    language: str | None,
    no_summarize: bool,
    base_url: str | None,
    no_history: bool,
    as_json: bool,
) -> None:
    """Run a generation with AGENT_ID on PROMPT."""
    renderer = OutcomeRenderer(console)

    if prompt_file is not None:
        prompt = prompt_file.read_text(encoding="utf-8")
    if not prompt:
        renderer.error("A prompt is required (argument or --prompt-file)")
        sys.exit(2)

    if language:
        prompt += build_language_instruction(language)

    body: dict = {"searchType": search_type}
    if max_results is not None:
        body["max_results"] = max_results

    request = GenerationRequest(
        agent_id=agent_id,
        user_prompt=prompt,
        body=body,
        image_type=image_type,
        summarize_before_search_image=not no_summarize,
    )

    try:
        with console.status("[cyan]Generating...[/cyan]"):
            session = asyncio.run(_run_generation(request, base_url, history=not no_history))
    except KeyboardInterrupt:
        renderer.warning("Generation cancelled")
        sys.exit(130)
    except PreconditionError as e:
        renderer.error(e.message)
        sys.exit(2)

    outcome = session.outcome
    if as_json:
        click.echo(json.dumps(outcome.to_dict(), indent=2, ensure_ascii=False))
    else:
        renderer.outcome(outcome)

    if outcome.primary_error is not None:
        sys.exit(1)


@cli.command("serve")
@click.option("--host", default=None, help="Bind address")
@click.option("--port", type=int, default=None, help="Port")
@click.option("--reload", is_flag=True, help="Reload on code changes")
def serve_command(host: str | None, port: int | None, reload: bool) -> None:
    """Run the HTTP API server."""
    import uvicorn

    from ..config import settings

    uvicorn.run(
        "ai_builder.api.main:app",
        host=host or settings.HOST,
        port=port or settings.PORT,
        reload=reload,
    )


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
