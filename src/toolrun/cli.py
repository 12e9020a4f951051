"""
CLI entry point for Toolrun.

This module provides the Typer-based command-line interface for Toolrun.
It is a thin driver over the Engine, useful for trying tools by hand and
for checking the local environment.

Commands:
    tools       List the tool catalog by category
    describe    Show the function definition of one tool
    call        Execute a tool call (with the approval flow)
    doctor      Check Python and the search binaries
    events      Show recently recorded tool events

Architecture Note:
    Commands build a registry, an Engine and an event logger from the
    runtime config, run one call, and print the ToolResult. All tool
    semantics live in the library; nothing here touches files directly.
"""

import asyncio
import json
import sys
import traceback
from pathlib import Path
from typing import Annotated, Any, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

from toolrun import __version__
from toolrun.engine import Engine, parse_arguments
from toolrun.errors import StorageError, ToolNotFoundError
from toolrun.events import (
    AuditEventLogger,
    CompositeEventLogger,
    ConsoleEventLogger,
    ToolEventLogger,
    print_events,
)
from toolrun.paths import PathResolver
from toolrun.schema import RuntimeConfig, load_config
from toolrun.store import AuditLog
from toolrun.tools import ToolContext, ToolResult, ToolServices, build_registry

# Initialize Typer app with metadata
app = typer.Typer(
    name="toolrun",
    help="Run LLM agent tool calls against the local filesystem.",
    add_completion=False,
    no_args_is_help=True,
)

# Rich console for formatted output
console = Console()

SEARCH_BINARIES = ["rg", "fd", "grep", "find"]

# Agent id used for calls made from the command line
CLI_AGENT_ID = "cli"


class _State:
    """Options set by the app callback."""

    config_path: Path | None = None


state = _State()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold]toolrun[/bold] version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
    config: Annotated[
        Optional[Path],
        typer.Option(
            "--config",
            "-c",
            help="Path to a runtime config YAML file.",
            resolve_path=True,
        ),
    ] = None,
) -> None:
    """
    Toolrun - Tool-calling runtime for LLM coding agents.

    Execute the same tools an agent calls, with approval prompts for
    anything that changes files.
    """
    state.config_path = config


def _load_config() -> RuntimeConfig:
    try:
        return load_config(state.config_path)
    except Exception as e:
        console.print(f"[red]Error loading config: {e}[/red]")
        raise typer.Exit(code=1)


def _open_audit(config: RuntimeConfig) -> AuditLog | None:
    if not config.audit.enabled:
        return None
    try:
        return AuditLog(Path(config.audit.db_path).expanduser())
    except StorageError as e:
        console.print(f"[yellow]Audit log disabled: {e.message}[/yellow]")
        return None


# =============================================================================
# Catalog
# =============================================================================


@app.command()
def tools(
    show_all: Annotated[
        bool,
        typer.Option(
            "--all",
            "-a",
            help="Include hidden execute_* tools.",
        ),
    ] = False,
    json_output: Annotated[
        bool,
        typer.Option(
            "--json",
            help="Output the function definitions as JSON.",
        ),
    ] = False,
) -> None:
    """
    List available tools grouped by category.

    Example:
        $ toolrun tools --all
    """
    registry = build_registry(ToolServices(config=_load_config()))

    if json_output:
        print(json.dumps(registry.get_tool_definitions(), indent=2))
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Category", style="dim")
    table.add_column("Tool", style="cyan")
    table.add_column("Risk", width=8)
    table.add_column("Description")

    for label, names in registry.list_tools_by_category().items():
        for name in names:
            tool = registry.get(name)
            risk = tool.risk_level.value if tool.risk_level else ""
            table.add_row(label, name, risk, _first_sentence(tool.description))

    if show_all:
        visible = set(registry.list_tools())
        for name in registry.list_all_tools():
            if name in visible:
                continue
            tool = registry.get(name)
            category = registry.category_of(name)
            label = category.display_name if category else "Other"
            risk = tool.risk_level.value if tool.risk_level else ""
            table.add_row(label, f"{name} [dim](hidden)[/dim]", risk, _first_sentence(tool.description))

    console.print(table)


def _first_sentence(text: str, max_length: int = 70) -> str:
    sentence = text.split(". ")[0]
    if len(sentence) > max_length:
        sentence = sentence[: max_length - 3] + "..."
    return sentence


@app.command()
def describe(
    name: Annotated[
        str,
        typer.Argument(help="Tool name (hidden tools allowed)."),
    ],
) -> None:
    """
    Show the function definition of a tool.

    Example:
        $ toolrun describe edit_file
    """
    registry = build_registry(ToolServices(config=_load_config()))
    try:
        tool = registry.get(name)
    except ToolNotFoundError as e:
        console.print(f"[red]{e.message}[/red]")
        if e.suggestion:
            console.print(f"  [dim]{e.suggestion}[/dim]")
        raise typer.Exit(code=1)

    console.print(Syntax(json.dumps(tool.definition(), indent=2), "json"))


# =============================================================================
# Execution
# =============================================================================


@app.command()
def call(
    name: Annotated[
        str,
        typer.Argument(help="Tool name."),
    ],
    arguments: Annotated[
        str,
        typer.Argument(help="Arguments as a JSON object."),
    ] = "{}",
    yes: Annotated[
        bool,
        typer.Option(
            "--yes",
            "-y",
            help="Approve mutating operations without prompting.",
        ),
    ] = False,
    cwd: Annotated[
        Optional[Path],
        typer.Option(
            "--cwd",
            help="Working directory for relative paths. Defaults to the current directory.",
            resolve_path=True,
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            help="Log tool arguments and full results.",
        ),
    ] = False,
    debug: Annotated[
        bool,
        typer.Option(
            "--debug",
            help="Enable debug mode with full error tracebacks.",
        ),
    ] = False,
    json_output: Annotated[
        bool,
        typer.Option(
            "--json",
            help="Output the ToolResult as JSON.",
        ),
    ] = False,
) -> None:
    """
    Execute one tool call.

    When the tool asks for approval, the proposed change is shown and you
    are asked to confirm; on confirmation the paired execute_* tool is
    called with the exact arguments from the proposal.

    Example:
        $ toolrun call write_file '{"path": "notes.txt", "content": "hi"}'
    """
    config = _load_config()

    try:
        args = parse_arguments(arguments)
    except json.JSONDecodeError as e:
        console.print(f"[red]Invalid JSON arguments: {e.msg}[/red]")
        raise typer.Exit(code=1)

    services = ToolServices(config=config, paths=PathResolver(default_cwd=cwd))

    audit = _open_audit(config)
    loggers: list[ToolEventLogger] = [ConsoleEventLogger(verbose=verbose)]
    if audit is not None:
        loggers.append(AuditEventLogger(audit))
    engine = Engine(build_registry(services), logger=CompositeEventLogger(*loggers))
    context = ToolContext(agent_id=CLI_AGENT_ID)

    try:
        result = asyncio.run(engine.execute(name, args, context))

        if result.requires_approval:
            _display_approval(result)
            if not (yes or typer.confirm("Proceed?", default=False)):
                console.print("[yellow]Cancelled.[/yellow]")
                raise typer.Exit(code=1)
            payload = result.result
            result = asyncio.run(
                engine.execute(payload["executeToolName"], payload["executeArgs"], context)
            )
    except typer.Exit:
        raise
    except Exception as e:
        console.print(f"[red]Execution error: {e}[/red]")
        if debug:
            console.print(f"[dim]{traceback.format_exc()}[/dim]")
        raise typer.Exit(code=1)
    finally:
        if audit is not None:
            audit.close()

    if json_output:
        print(json.dumps(result.to_dict(), indent=2, default=str))
    else:
        _display_result(result)

    raise typer.Exit(code=0 if result.success else 1)


def _display_approval(result: ToolResult) -> None:
    """Show what an approval request would do."""
    payload = result.result
    message = payload["message"].split("\n\nIMPORTANT:")[0]
    console.print(Panel(message, title="[yellow]Approval required[/yellow]", border_style="yellow"))
    if payload.get("previewDiff"):
        console.print(Syntax(payload["previewDiff"], "diff"))


def _display_result(result: ToolResult) -> None:
    """Display a ToolResult in a formatted way."""
    if result.success:
        if result.summary:
            console.print(f"[green]✓[/green] {result.summary}")
        console.print(_render_value(result.result))
        return

    console.print(f"[red]✗ {result.error}[/red]")
    if isinstance(result.result, dict):
        if result.result.get("suggestion"):
            console.print(f"  [dim]Suggestion: {result.result['suggestion']}[/dim]")
        for error in result.result.get("errors", []):
            console.print(f"  [red]• {error}[/red]")


def _render_value(value: Any) -> Any:
    if isinstance(value, str):
        return value
    return Syntax(json.dumps(value, indent=2, default=str), "json")


# =============================================================================
# Environment
# =============================================================================


@app.command()
def doctor(
    json_output: Annotated[
        bool,
        typer.Option(
            "--json",
            help="Output results in JSON format.",
        ),
    ] = False,
) -> None:
    """
    Check system environment and dependencies.

    Verifies:
    - Python version (3.11+)
    - Search binaries (rg and fd preferred, grep and find as fallback)
    - Audit database accessibility

    Example:
        $ toolrun doctor
    """
    config = _load_config()
    checks = []
    all_ok = True

    # Check 1: Python version
    py_version = sys.version_info
    py_version_str = f"{py_version.major}.{py_version.minor}.{py_version.micro}"
    py_ok = py_version >= (3, 11)
    checks.append({
        "name": "Python version",
        "ok": py_ok,
        "value": py_version_str,
        "message": "OK" if py_ok else "Requires Python 3.11+",
    })
    if not py_ok:
        all_ok = False

    # Check 2: Search binaries
    services = ToolServices(config=config)
    available = asyncio.run(services.search.probe(SEARCH_BINARIES))
    for binary in SEARCH_BINARIES:
        ok = available[binary]
        fallback = binary in ("grep", "find")
        if ok:
            message = "OK"
        elif fallback:
            message = "Missing; required when the preferred backend is unavailable"
        else:
            message = "Missing; falling back to grep/find (slower)"
        checks.append({
            "name": f"Search backend {binary}",
            "ok": ok,
            "value": "installed" if ok else "not found",
            "message": message,
        })
    if not (available["grep"] or available["rg"]) or not (available["find"] or available["fd"]):
        all_ok = False

    # Check 3: Audit database
    db_path = Path(config.audit.db_path).expanduser()
    db_ok = True
    if not config.audit.enabled:
        db_message = "Disabled in config"
    elif db_path.exists():
        db_message = f"Exists ({db_path.stat().st_size} bytes)"
    elif db_path.parent.exists() and db_path.parent.is_dir():
        db_message = "Not found (will be created on first call)"
    else:
        db_ok = False
        db_message = f"Parent directory does not exist: {db_path.parent}"
    checks.append({
        "name": "Audit database",
        "ok": db_ok,
        "value": str(db_path),
        "message": db_message,
    })
    if not db_ok:
        all_ok = False

    # Output results
    if json_output:
        output = {
            "ok": all_ok,
            "version": __version__,
            "checks": checks,
        }
        print(json.dumps(output, indent=2))
    else:
        console.print(f"[bold]Toolrun Doctor[/bold] v{__version__}")
        console.print()

        for check in checks:
            if check["ok"]:
                console.print(f"[green]✓[/green] {check['name']}: [dim]{check['value']}[/dim] - {check['message']}")
            else:
                console.print(f"[red]✗[/red] {check['name']}: [dim]{check['value']}[/dim]")
                console.print(f"    [yellow]{check['message']}[/yellow]")

        console.print()
        if all_ok:
            console.print("[green]All checks passed![/green]")
        else:
            console.print("[yellow]Some checks failed. See above for details.[/yellow]")

    raise typer.Exit(code=0 if all_ok else 1)


@app.command()
def events(
    limit: Annotated[
        int,
        typer.Option(
            "--limit",
            "-n",
            help="Number of events to show.",
        ),
    ] = 20,
    tool: Annotated[
        Optional[str],
        typer.Option(
            "--tool",
            "-t",
            help="Only show events of this tool.",
        ),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option(
            "--json",
            help="Output events in JSON format.",
        ),
    ] = False,
) -> None:
    """
    Show recently recorded tool events, newest first.

    Example:
        $ toolrun events --tool edit_file
    """
    config = _load_config()
    db_path = Path(config.audit.db_path).expanduser()
    if not db_path.exists():
        console.print(f"[red]Database not found: {db_path}[/red]")
        raise typer.Exit(code=1)

    try:
        with AuditLog(db_path) as audit:
            recorded = audit.list_events(limit=limit, tool_name=tool)
    except StorageError as e:
        console.print(f"[red]{e.message}[/red]")
        raise typer.Exit(code=1)

    if json_output:
        print(json.dumps([e.to_dict() for e in recorded], indent=2, default=str))
    else:
        print_events(recorded, console=console)


if __name__ == "__main__":
    app()
