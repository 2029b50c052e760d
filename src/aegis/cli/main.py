"""
Rich CLI interface for Aegis.

Run guardrail validations from the command line.
"""

import asyncio
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.markup import escape
from rich.table import Table
from rich.text import Text

from aegis import __version__
from aegis.core.models import (
    ContentType,
    GuardrailContext,
    GuardrailResult,
    IndustryType,
    SafetyLevel,
    SanitizationOptions,
    Severity,
)
from aegis.core.orchestrator import GuardrailOrchestrator
from aegis.providers.base import StaticClassifier
from aegis.safety.guardrails import COMPLIANCE_RULES
from aegis.utils.logging import setup_logging

app = typer.Typer(
    name="aegis",
    help="Content safety and policy validation for AI responses and prompts",
    no_args_is_help=True,
)
console = Console()

SEVERITY_STYLES = {
    Severity.NONE: "green",
    Severity.LOW: "cyan",
    Severity.MEDIUM: "yellow",
    Severity.HIGH: "red",
    Severity.CRITICAL: "bold red",
}


def get_orchestrator(offline: bool = False) -> GuardrailOrchestrator:
    """Get orchestrator instance."""
    classifier = StaticClassifier() if offline else None
    return GuardrailOrchestrator(classifier=classifier)


@app.callback()
def main(
    log_level: str = typer.Option("WARNING", "--log-level", help="Log level"),
):
    """Configure logging for every command."""
    setup_logging(level=log_level, json_format=False)


def render_result(result: GuardrailResult) -> None:
    """Print a result as a table plus the content to deliver."""
    table = Table(title="Guardrail Checks", show_header=True, header_style="bold magenta")
    table.add_column("Check", style="cyan")
    table.add_column("Passed")
    table.add_column("Severity")
    table.add_column("Confidence", justify="right")
    table.add_column("Details", style="dim")

    for check in result.validation_results:
        style = SEVERITY_STYLES[check.severity]
        table.add_row(
            check.check_type,
            "[green]yes[/green]" if check.passed else "[red]no[/red]",
            f"[{style}]{check.severity.name}[/{style}]",
            f"{check.confidence_score:.2f}",
            escape(check.details),
        )

    console.print(table)

    style = SEVERITY_STYLES[result.max_severity]
    console.print(
        f"\nAction: [bold]{result.recommended_action.value.upper()}[/bold]  "
        f"Severity: [{style}]{result.max_severity.name}[/{style}]  "
        f"Allowed: {'yes' if result.is_allowed else 'no'}"
    )

    if result.fallback_response:
        console.print(Panel(Text(result.fallback_response), title="[bold red]Fallback response[/bold red]"))
    elif result.processed_content is not None:
        console.print(Panel(Text(result.processed_content), title="[bold cyan]Processed content[/bold cyan]"))

    console.print(
        f"[dim]{result.validation_id} | {result.processing_time_ms:.0f}ms[/dim]"
    )


@app.command()
def version():
    """Show version information."""
    console.print(f"[bold cyan]Aegis[/bold cyan] v{__version__}")


@app.command()
def industries():
    """List industries and their compliance rule counts."""
    table = Table(title="Industries", show_header=True, header_style="bold magenta")
    table.add_column("Industry", style="cyan")
    table.add_column("Compliance rules", justify="right")

    for industry in IndustryType:
        rules = COMPLIANCE_RULES.get(industry)
        table.add_row(industry.value, str(len(rules)) if rules else "-")

    console.print(table)


@app.command()
def validate(
    text: str = typer.Argument(..., help="Generated text to validate"),
    industry: IndustryType = typer.Option(IndustryType.GENERAL, "--industry", "-i", help="Industry"),
    content_type: ContentType = typer.Option(ContentType.RESPONSE, "--content-type", "-c", help="Content type"),
    source: Optional[List[Path]] = typer.Option(None, "--source", "-s", help="Source document file"),
    user_id: str = typer.Option("cli", "--user", help="User ID"),
    offline: bool = typer.Option(False, "--offline", help="Use a static all-zero classifier"),
):
    """Validate AI-generated output."""
    documents = [p.read_text(encoding="utf-8") for p in source or []]
    context = GuardrailContext(
        industry=industry,
        content_type=content_type,
        user_id=user_id,
        session_id="cli",
        has_source_documents=bool(documents),
        source_documents=documents,
    )

    async def run() -> GuardrailResult:
        async with get_orchestrator(offline) as orch:
            return await orch.validate_output(text, context)

    result = asyncio.run(run())
    render_result(result)
    if not result.is_allowed:
        raise typer.Exit(1)


@app.command("validate-input")
def validate_input(
    text: str = typer.Argument(..., help="User input to validate"),
    industry: IndustryType = typer.Option(IndustryType.GENERAL, "--industry", "-i", help="Industry"),
    offline: bool = typer.Option(False, "--offline", help="Use a static all-zero classifier"),
):
    """Validate user input before it reaches a model."""
    context = GuardrailContext(
        industry=industry,
        content_type=ContentType.QUERY,
        user_id="cli",
        session_id="cli",
    )

    async def run() -> GuardrailResult:
        async with get_orchestrator(offline) as orch:
            return await orch.validate_input(text, context)

    result = asyncio.run(run())
    render_result(result)
    if not result.is_allowed:
        raise typer.Exit(1)


@app.command("is-safe")
def is_safe(
    text: str = typer.Argument(..., help="Text to check"),
    level: SafetyLevel = typer.Option(SafetyLevel.MEDIUM, "--level", "-l", help="Safety level (low is most permissive)"),
    offline: bool = typer.Option(False, "--offline", help="Use a static all-zero classifier"),
):
    """Check text against a safety level."""
    async def run() -> bool:
        async with get_orchestrator(offline) as orch:
            return await orch.is_content_safe(text, level)

    safe = asyncio.run(run())
    if safe:
        console.print(f"[green]Safe[/green] at level {level.value}")
    else:
        console.print(f"[red]Unsafe[/red] at level {level.value}")
        raise typer.Exit(1)


@app.command()
def sanitize(
    text: str = typer.Argument(..., help="Text to sanitize"),
    no_pii: bool = typer.Option(False, "--no-pii", help="Do not redact PII"),
    no_harm: bool = typer.Option(False, "--no-harm", help="Do not remove harmful content"),
    no_structure: bool = typer.Option(False, "--no-structure", help="Remove harmful content entirely"),
    offline: bool = typer.Option(False, "--offline", help="Use a static all-zero classifier"),
):
    """Redact PII and remove harmful content."""
    options = SanitizationOptions(
        redact_pii=not no_pii,
        remove_harmful_content=not no_harm,
        preserve_structure=not no_structure,
    )

    async def run() -> str:
        async with get_orchestrator(offline) as orch:
            return await orch.sanitize(text, options)

    console.print(asyncio.run(run()), markup=False, highlight=False)


if __name__ == "__main__":
    app()
