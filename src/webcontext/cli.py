"""CLI entrypoints for WebContext."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any

import typer

from webcontext.config import load_settings
from webcontext.errors import ConfigurationError
from webcontext.logging import configure_logging, get_logger
from webcontext.orchestrator.service import (
    EnhancementOrchestrator,
    build_orchestrator,
    options_from_settings,
)

app = typer.Typer(add_completion=False, help="WebContext prompt enhancement with live web context")
logger = get_logger(__name__)


def _build() -> tuple[EnhancementOrchestrator, Any]:
    settings = load_settings()
    configure_logging(settings.log_level)
    try:
        return build_orchestrator(settings), settings
    except ConfigurationError as e:
        typer.echo(f"Configuration error: {e}", err=True)
        raise typer.Exit(code=2) from e


@app.command()
def enhance(
    prompt: str = typer.Argument("", help="Prompt to enhance.", show_default=False),
    prompt_file: Path | None = typer.Option(
        None, "--prompt-file", help="Read the prompt from a UTF-8 text file."
    ),
    no_web: bool = typer.Option(False, "--no-web", help="Skip web search and scraping."),
    max_iterations: int | None = typer.Option(None, "--max-iterations", min=1, help="Enhancement passes."),
    cost_limit: float | None = typer.Option(None, "--cost-limit", min=0.0, help="USD budget for enhancement."),
    as_json: bool = typer.Option(False, "--json", help="Print the full result as JSON."),
) -> None:
    """Enhance a prompt with web context and print the result."""

    if not prompt:
        if prompt_file is None:
            raise typer.BadParameter("You must provide either a positional PROMPT or --prompt-file.")
        prompt = prompt_file.read_text(encoding="utf-8").strip()
        if not prompt:
            raise typer.BadParameter("The prompt file is empty.")

    orchestrator, settings = _build()
    options = options_from_settings(
        settings,
        enable_web_search=not no_web,
        max_iterations=max_iterations,
        cost_limit=cost_limit,
    )

    async def _run() -> Any:
        try:
            return await orchestrator.enhance_with_web_context(prompt, options)
        finally:
            await orchestrator.cleanup()

    logger.info("CLI enhance requested")
    result = asyncio.run(_run())
    if as_json:
        typer.echo(result.model_dump_json(indent=2))
    else:
        typer.echo(result.enhanced_prompt)


@app.command()
def health() -> None:
    """Check search engines, the scraper and the categorizer."""

    orchestrator, _ = _build()

    async def _run() -> dict[str, Any]:
        try:
            return await orchestrator.health_check()
        finally:
            await orchestrator.cleanup()

    report = asyncio.run(_run())
    typer.echo(json.dumps(report, indent=2))
    if report["status"] == "unhealthy":
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
