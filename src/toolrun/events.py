"""
Tool lifecycle event loggers.

The engine reports every call to a ToolEventLogger: once when it starts,
and once when it ends in success, an approval request, or an error.
Loggers are fire-and-forget; the engine discards their failures.

Implementations:
    - NullEventLogger: Drops everything
    - ConsoleEventLogger: Rich terminal lines with status icons
    - AuditEventLogger: Appends to the SQLite audit log
    - CompositeEventLogger: Fans out to several loggers
"""

import json
from abc import ABC, abstractmethod
from typing import Any

from rich.console import Console
from rich.table import Table
from rich.text import Text

from toolrun.schema import ToolEventKind
from toolrun.store import AuditLog, ToolEvent

# Status icons
ICON_START = "[dim]►[/dim]"
ICON_SUCCESS = "[green]✓[/green]"
ICON_APPROVAL = "[yellow]⚠[/yellow]"
ICON_ERROR = "[red]✗[/red]"

KIND_ICONS = {
    ToolEventKind.START: ICON_START,
    ToolEventKind.SUCCESS: ICON_SUCCESS,
    ToolEventKind.APPROVAL_REQUIRED: ICON_APPROVAL,
    ToolEventKind.ERROR: ICON_ERROR,
}


class ToolEventLogger(ABC):
    """Receiver for tool lifecycle events."""

    @abstractmethod
    def on_start(self, name: str, args: dict[str, Any]) -> None:
        ...

    @abstractmethod
    def on_success(
        self,
        name: str,
        duration_ms: float,
        summary: str | None = None,
        result: Any = None,
    ) -> None:
        ...

    @abstractmethod
    def on_approval_required(self, name: str, duration_ms: float, message: str) -> None:
        ...

    @abstractmethod
    def on_error(self, name: str, duration_ms: float, message: str) -> None:
        ...


class NullEventLogger(ToolEventLogger):
    """Logger that records nothing."""

    def on_start(self, name: str, args: dict[str, Any]) -> None:
        pass

    def on_success(
        self,
        name: str,
        duration_ms: float,
        summary: str | None = None,
        result: Any = None,
    ) -> None:
        pass

    def on_approval_required(self, name: str, duration_ms: float, message: str) -> None:
        pass

    def on_error(self, name: str, duration_ms: float, message: str) -> None:
        pass


def _format_args(args: dict[str, Any], max_length: int = 80) -> str:
    text = json.dumps(args, default=str)
    if len(text) > max_length:
        text = text[: max_length - 3] + "..."
    return text


class ConsoleEventLogger(ToolEventLogger):
    """
    Print events to a Rich console.

    Approval requests are shown in yellow as needing attention rather
    than as errors.
    """

    def __init__(self, console: Console | None = None, verbose: bool = False) -> None:
        self.console = console or Console(stderr=True)
        self.verbose = verbose

    def on_start(self, name: str, args: dict[str, Any]) -> None:
        line = Text.from_markup(f"{ICON_START} ")
        line.append(name, style="bold cyan")
        if self.verbose and args:
            line.append(f" {_format_args(args)}", style="dim")
        self.console.print(line)

    def on_success(
        self,
        name: str,
        duration_ms: float,
        summary: str | None = None,
        result: Any = None,
    ) -> None:
        line = Text.from_markup(f"{ICON_SUCCESS} ")
        line.append(name, style="bold")
        line.append(f" ({duration_ms:.0f}ms)", style="dim")
        if summary:
            line.append(f" {summary}")
        self.console.print(line)

    def on_approval_required(self, name: str, duration_ms: float, message: str) -> None:
        line = Text.from_markup(f"{ICON_APPROVAL} ")
        line.append(name, style="bold yellow")
        line.append(" needs approval", style="yellow")
        line.append(f" ({duration_ms:.0f}ms)", style="dim")
        self.console.print(line)
        if self.verbose:
            self.console.print(Text(message, style="yellow"))

    def on_error(self, name: str, duration_ms: float, message: str) -> None:
        line = Text.from_markup(f"{ICON_ERROR} ")
        line.append(name, style="bold red")
        line.append(f" ({duration_ms:.0f}ms) ", style="dim")
        line.append(message, style="red")
        self.console.print(line)


class AuditEventLogger(ToolEventLogger):
    """Append every event to an AuditLog."""

    def __init__(self, audit_log: AuditLog) -> None:
        self.audit_log = audit_log

    def on_start(self, name: str, args: dict[str, Any]) -> None:
        self.audit_log.record_event(name, ToolEventKind.START, args=args)

    def on_success(
        self,
        name: str,
        duration_ms: float,
        summary: str | None = None,
        result: Any = None,
    ) -> None:
        self.audit_log.record_event(
            name, ToolEventKind.SUCCESS, duration_ms=duration_ms, summary=summary
        )

    def on_approval_required(self, name: str, duration_ms: float, message: str) -> None:
        self.audit_log.record_event(
            name, ToolEventKind.APPROVAL_REQUIRED, duration_ms=duration_ms, message=message
        )

    def on_error(self, name: str, duration_ms: float, message: str) -> None:
        self.audit_log.record_event(
            name, ToolEventKind.ERROR, duration_ms=duration_ms, message=message
        )


class CompositeEventLogger(ToolEventLogger):
    """Forward each event to every wrapped logger in order."""

    def __init__(self, *loggers: ToolEventLogger) -> None:
        self.loggers = list(loggers)

    def on_start(self, name: str, args: dict[str, Any]) -> None:
        for logger in self.loggers:
            logger.on_start(name, args)

    def on_success(
        self,
        name: str,
        duration_ms: float,
        summary: str | None = None,
        result: Any = None,
    ) -> None:
        for logger in self.loggers:
            logger.on_success(name, duration_ms, summary, result)

    def on_approval_required(self, name: str, duration_ms: float, message: str) -> None:
        for logger in self.loggers:
            logger.on_approval_required(name, duration_ms, message)

    def on_error(self, name: str, duration_ms: float, message: str) -> None:
        for logger in self.loggers:
            logger.on_error(name, duration_ms, message)


def print_events(events: list[ToolEvent], console: Console | None = None) -> None:
    """Print audit events as a table, most recent first."""
    if console is None:
        console = Console()

    if not events:
        console.print("[dim]No events recorded.[/dim]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Time", style="dim")
    table.add_column("", width=2)
    table.add_column("Tool", style="cyan")
    table.add_column("Duration", justify="right")
    table.add_column("Detail")

    for event in events:
        duration = f"{event.duration_ms:.0f}ms" if event.duration_ms is not None else ""
        if event.kind == ToolEventKind.START:
            detail = _format_args(event.args or {}, max_length=60)
        else:
            detail = (event.summary or event.message or "").splitlines()[0:1]
            detail = detail[0] if detail else ""
        table.add_row(
            event.created_at.strftime("%Y-%m-%d %H:%M:%S"),
            KIND_ICONS[event.kind],
            event.tool_name,
            duration,
            detail,
        )

    console.print(table)
