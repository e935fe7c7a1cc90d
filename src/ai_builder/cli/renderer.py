"""
Output renderer for the CLI.

Renders generation outcomes with Rich.
"""

from typing import Any
import json
import logging

from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

from ..exceptions import describe_error
from ..models import GenerationOutcome
from ..stages.search import SearchHit

# Global console instance
console = Console()
logger = logging.getLogger(__name__)


class OutcomeRenderer:
    """
    Renders messages and generation outcomes with consistent formatting.
    """

    def __init__(self, console_instance: Console | None = None, snippet_limit: int = 200) -> None:
        """
        Initialize the renderer.

        Args:
            console_instance: Optional Rich Console instance to use
            snippet_limit: Maximum characters shown per search snippet
        """
        self.console = console_instance or console
        self.snippet_limit = snippet_limit

    def error(self, message: str, title: str | None = None) -> None:
        if title:
            self.console.print(f"[bold red]{title}:[/bold red] {message}")
        else:
            self.console.print(f"[bold red]Error:[/bold red] {message}")

    def success(self, message: str) -> None:
        self.console.print(f"[green]✓[/green] {message}")

    def info(self, message: str, title: str | None = None) -> None:
        if title:
            self.console.print(f"[bold cyan]{title}:[/bold cyan] {message}")
        else:
            self.console.print(f"[cyan]ℹ[/cyan] {message}")

    def warning(self, message: str, title: str | None = None) -> None:
        if title:
            self.console.print(f"[bold yellow]{title}:[/bold yellow] {message}")
        else:
            self.console.print(f"[yellow]⚠[/yellow] {message}")

    def response(self, text: str, response_format: str | None = None) -> None:
        """
        Render the main response: JSON with syntax highlighting, anything else as markdown.

        Args:
            text: Response text
            response_format: Format tag reported by the backend
        """
        if response_format == "json" or _is_json(text):
            body: Any = Syntax(text, "json", theme="monokai", word_wrap=True)
        else:
            body = Markdown(text)
        self.console.print(Panel(body, title="Response", border_style="blue"))

    def search_results(self, hits: list[SearchHit]) -> None:
        table = Table(title=f"Search Results ({len(hits)})")
        table.add_column("#", justify="right")
        table.add_column("Source")
        table.add_column("Title")
        table.add_column("Snippet")

        for i, hit in enumerate(hits, 1):
            snippet = hit.snippet.replace("\n", " ")
            if len(snippet) > self.snippet_limit:
                snippet = snippet[:self.snippet_limit] + "..."
            table.add_row(str(i), hit.source_host, hit.title, snippet)

        self.console.print(table)

    def usage(self, outcome: GenerationOutcome) -> None:
        rows: list[tuple[str, str]] = []
        if outcome.usage is not None:
            rows.append(("Prompt tokens", str(outcome.usage.prompt_tokens)))
            rows.append(("Completion tokens", str(outcome.usage.completion_tokens)))
            rows.append(("Total tokens", str(outcome.usage.total_tokens)))
            if outcome.usage.pricing is not None:
                rows.append(("Cost", f"${outcome.usage.pricing.total_cost:.6f}"))
        if outcome.search_usage:
            rows.append(("Search", f"{outcome.search_usage['tool']} (${outcome.search_usage['cost']:.3f})"))
        if outcome.duration is not None:
            rows.append(("Duration", f"{outcome.duration:.2f}s"))
        if not rows:
            return

        table = Table(title="Usage", show_header=False)
        table.add_column("Metric", style="cyan")
        table.add_column("Value")
        for row in rows:
            table.add_row(*row)
        self.console.print(table)

    def outcome(self, outcome: GenerationOutcome) -> None:
        """Render every populated slot of an outcome."""
        if outcome.cancelled:
            self.warning("Generation cancelled")
            return

        if outcome.search_error is not None:
            self.warning(describe_error(outcome.search_error), title="Search")
        if outcome.search_results:
            self.search_results(outcome.search_results)

        if outcome.main_text is not None:
            self.response(outcome.main_text, outcome.response_format)
        elif outcome.primary_error is not None:
            self.error(describe_error(outcome.primary_error))

        if outcome.image_artifact is not None:
            artifact = outcome.image_artifact
            if artifact.url:
                self.success(f"Image: {artifact.url}")
            else:
                self.success(f"Image generated inline ({len(artifact.b64_json or '')} base64 characters)")
        if outcome.image_error is not None:
            self.warning(describe_error(outcome.image_error), title="Image")

        for warning in outcome.warnings:
            self.warning(warning)

        self.usage(outcome)


def _is_json(text: str) -> bool:
    stripped = text.strip()
    if not stripped.startswith(("{", "[")):
        return False
    try:
        json.loads(stripped)
    except json.JSONDecodeError:
        return False
    return True
