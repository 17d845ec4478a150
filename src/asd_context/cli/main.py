"""CLI for asd-context: inject / validate / init / update / trigger commands."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Optional

import typer
import yaml
from rich.console import Console
from rich.table import Table

from asd_context.context.models import ContextBundle
from asd_context.context.store import ContextStore
from asd_context.context.triggers import ContextTriggerSystem
from asd_context.core.config import AppSettings, ObservabilityConfig, ProjectConfig
from asd_context.core.startup_checks import validate_settings
from asd_context.engine import ContextEngine
from asd_context.exceptions import InjectionError
from asd_context.hooks import setup_logging
from asd_context.validation import create_validator

app = typer.Typer(name="asd-context", help="Layered context injection for agent workflows")
console = Console()


def _build_settings(root: Optional[Path], verbose: bool) -> AppSettings:
    """Build settings, overriding env defaults with CLI flags."""
    settings = AppSettings()
    if root is not None:
        settings = settings.model_copy(update={"project": ProjectConfig(root=root)})
    if verbose:
        settings = settings.model_copy(
            update={"observability": ObservabilityConfig(log_level="DEBUG")}
        )
    setup_logging(settings.observability)
    return settings


def _parse_assignments(pairs: list[str]) -> dict:
    """``key=value`` pairs; values are read as YAML scalars or lists."""
    header: dict = {}
    for pair in pairs:
        key, sep, raw = pair.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"Expected key=value, got {pair!r}")
        header[key.strip()] = yaml.safe_load(raw) if raw else ""
    return header


def _print_bundle(bundle: ContextBundle) -> None:
    meta = bundle.metadata
    console.print(
        f"[bold]Context for {meta.agent_type}[/bold] "
        f"(spec={meta.spec_id or '-'}, task={meta.task_id or '-'})"
    )

    table = Table(title="Layers")
    table.add_column("Layer", style="cyan")
    table.add_column("Relevance")
    table.add_column("Time (ms)")

    scores = bundle.filtering.relevance_scores if bundle.filtering else {}
    for name, _layer in bundle.layers.items():
        score = scores.get(name)
        table.add_row(
            name,
            f"{score.overall_score:.2f}" if score else "-",
            f"{meta.performance.get(name, 0.0):.1f}",
        )
    console.print(table)

    inheritance = bundle.inheritance
    console.print(f"Hierarchy: {' → '.join(inheritance.hierarchy) or '(none)'}")
    console.print(
        f"Constraints: {len(inheritance.constraints)}, "
        f"decisions: {len(inheritance.decisions)}, "
        f"findings: {len(inheritance.research_findings)}"
    )

    validation = bundle.validation
    if validation is not None:
        status = "[green]valid[/green]" if validation.is_valid else "[red]invalid[/red]"
        console.print(f"Validation: {status}")
        for error in validation.errors:
            console.print(f"  [red]error[/red] {error}")
        for warning in validation.warnings:
            console.print(f"  [yellow]warning[/yellow] {warning}")
    console.print(f"Total: {meta.performance.get('total', 0.0):.1f}ms")


@app.command()
def inject(
    agent_type: str = typer.Argument(..., help="Agent type, e.g. backend-developer"),
    spec: Optional[str] = typer.Option(None, "--spec", help="Specification ID"),
    task: Optional[str] = typer.Option(None, "--task", help="Task ID"),
    root: Optional[Path] = typer.Option(None, "--root", help="Project root"),
    output: Optional[Path] = typer.Option(None, help="Write the bundle as JSON"),
    as_json: bool = typer.Option(False, "--json", help="Print the bundle as JSON"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Inject layered context for an agent."""
    settings = _build_settings(root, verbose)
    try:
        validate_settings(settings)
    except ValueError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=2) from exc

    engine = ContextEngine(settings.project, settings=settings)
    try:
        bundle = asyncio.run(engine.inject_context(agent_type, spec, task, use_cache=False))
    except InjectionError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1) from exc

    if output:
        output.write_text(bundle.model_dump_json(indent=2), encoding="utf-8")
        console.print(f"[green]Context saved to {output}[/green]")
    elif as_json:
        typer.echo(bundle.model_dump_json(indent=2))
    else:
        _print_bundle(bundle)


@app.command()
def validate(
    files: Optional[list[Path]] = typer.Argument(None, help="Context files (default: all under .asd)"),
    root: Optional[Path] = typer.Option(None, "--root", help="Project root"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Validate context files against their schemas."""
    settings = _build_settings(root, verbose)
    if not files:
        paths = ContextStore(settings.project).get_context_paths()
        files = sorted(paths.context.rglob("*.md")) + sorted(paths.agents.glob("*.md"))

    summary = create_validator(settings).validate_context_files(files)

    table = Table(title="Context Files")
    table.add_column("File", style="cyan")
    table.add_column("Type")
    table.add_column("Status")
    table.add_column("Issues", max_width=70)
    for result in summary.results:
        status = "[green]valid[/green]" if result.is_valid else "[red]invalid[/red]"
        issues = "; ".join(result.errors + result.warnings)
        table.add_row(result.file_path, result.expected_type, status, issues)
    console.print(table)

    console.print(
        f"\n{summary.total_files} files, {summary.valid_files} valid, "
        f"{summary.invalid_files} invalid, {summary.warnings} warnings"
    )
    if summary.invalid_files:
        raise typer.Exit(code=1)


@app.command()
def init(
    root: Optional[Path] = typer.Option(None, "--root", help="Project root"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Create the .asd directory layout."""
    settings = _build_settings(root, verbose)
    store = ContextStore(settings.project)
    if not asyncio.run(store.initialize_context_structure()):
        console.print("[red]Failed to initialize context structure[/red]")
        raise typer.Exit(code=1)
    console.print(f"[green]Initialized {store.get_context_paths().base}[/green]")


@app.command()
def update(
    kind: str = typer.Argument(..., help="project, spec or task"),
    context_id: str = typer.Argument(..., help="Spec or task ID (ignored for project)"),
    set_: list[str] = typer.Option([], "--set", help="Header field as key=value"),
    body_file: Optional[Path] = typer.Option(None, "--body-file", help="Replace the body"),
    root: Optional[Path] = typer.Option(None, "--root", help="Project root"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Merge header fields (and optionally a new body) into a context file."""
    settings = _build_settings(root, verbose)
    updates: dict = {"header": _parse_assignments(set_)}
    if body_file is not None:
        updates["body"] = body_file.read_text(encoding="utf-8")

    store = ContextStore(settings.project)
    if not asyncio.run(store.update_context(kind, context_id, updates)):  # type: ignore[arg-type]
        console.print(f"[red]Failed to update {kind} context {context_id}[/red]")
        raise typer.Exit(code=1)
    console.print(
        f"[green]Updated {kind} context {context_id}[/green] "
        f"({json.dumps(sorted(updates['header']))})"
    )


@app.command()
def trigger(
    event: str = typer.Argument(..., help="Event name, e.g. task_start or research"),
    set_: list[str] = typer.Option([], "--set", help="Event field as key=value"),
    root: Optional[Path] = typer.Option(None, "--root", help="Project root"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Fire a context trigger (task lifecycle, assign, research, ...)."""
    settings = _build_settings(root, verbose)
    data = _parse_assignments(set_)
    triggers = ContextTriggerSystem(
        ContextStore(settings.project), validator=create_validator(settings)
    )

    async def _fire() -> bool:
        if not await triggers.initialize():
            return False
        return await triggers.fire_trigger(event, data)

    if not asyncio.run(_fire()):
        console.print(f"[red]Trigger {event} failed[/red]")
        raise typer.Exit(code=1)
    console.print(f"[green]Trigger {event} fired[/green]")


if __name__ == "__main__":
    app()
