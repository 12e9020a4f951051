"""
Execution Engine for Toolrun.

The Engine is the single entry point the orchestrator uses to run a tool
call. It coordinates between:
- Registry: Resolves the tool name (hidden tools included)
- Tools: Validate and execute the call
- Event logger: Receives start/success/approval/error events

Execution Flow:
    1. Resolve the tool (miss -> tool_not_found failure)
    2. Emit on_start
    3. Run the tool inside a boundary that catches domain errors and defects
    4. Emit exactly one terminal event and return a ToolResult

Design Principles:
    - Total: execute() never raises; every outcome is a ToolResult
    - Tagged: failures carry errorKind for programmatic branching
    - Isolated: a failing event logger cannot change a result
"""

import asyncio
import json
import time
from dataclasses import dataclass, field
from typing import Any

from toolrun.errors import ToolNotFoundError, ToolrunError
from toolrun.events import NullEventLogger, ToolEventLogger
from toolrun.tools.base import ToolContext, ToolResult
from toolrun.tools.registry import ToolRegistry

DEFECT_KIND = "defect"
INVALID_ARGUMENTS_KIND = "invalid_arguments"
UNKNOWN_ERROR = "Unknown error"


@dataclass
class ToolCall:
    """
    One call as emitted by the orchestrator.

    Attributes:
        name: Tool name
        arguments: Argument object, or the raw JSON string from the model
    """

    name: str
    arguments: dict[str, Any] | str = field(default_factory=dict)


def parse_arguments(arguments_json: str | None) -> dict[str, Any]:
    """
    Parse a function-call argument string.

    Empty input and JSON that is not an object both yield {}.

    Raises:
        json.JSONDecodeError: If the string is not valid JSON
    """
    if not arguments_json or not arguments_json.strip():
        return {}
    parsed = json.loads(arguments_json)
    return parsed if isinstance(parsed, dict) else {}


class Engine:
    """
    Runs tool calls and normalizes their outcomes.

    Usage:
        engine = Engine(registry, logger=ConsoleEventLogger())
        result = await engine.execute("read_file", {"path": "a.txt"}, context)
        print(result.to_dict())

    Attributes:
        registry: Tool registry for looking up tools
        logger: Receiver of lifecycle events
        dropped_events: Number of events the logger failed to handle
    """

    def __init__(
        self,
        registry: ToolRegistry,
        logger: ToolEventLogger | None = None,
    ) -> None:
        self.registry = registry
        self.logger = logger or NullEventLogger()
        self.dropped_events = 0

    async def execute(
        self,
        name: str,
        args: dict[str, Any],
        context: ToolContext,
    ) -> ToolResult:
        """
        Execute a tool call.

        Args:
            name: Tool name (visible or hidden)
            args: Raw, unvalidated arguments
            context: The calling session

        Returns:
            ToolResult; never raises
        """
        start = time.perf_counter()

        try:
            tool = self.registry.get(name)
        except ToolNotFoundError as e:
            result = ToolResult.from_error(e)
            self._emit("on_error", name, _elapsed_ms(start), result.error)
            return result

        self._emit("on_start", name, args)

        try:
            result = await tool.execute(args, context)
        except ToolrunError as e:
            result = ToolResult.from_error(e)
        except Exception as e:
            result = ToolResult.fail(
                str(e) or UNKNOWN_ERROR,
                result={"exceptionType": type(e).__name__},
                kind=DEFECT_KIND,
            )

        duration_ms = _elapsed_ms(start)

        if result.success:
            summary = result.summary
            if summary is None:
                try:
                    summary = tool.create_summary(result)
                except Exception:
                    summary = None
                if summary is not None:
                    result = ToolResult.ok(result.result, summary=summary)
            self._emit("on_success", name, duration_ms, summary, result.result)
        elif result.requires_approval:
            self._emit(
                "on_approval_required", name, duration_ms, result.result.get("message", "")
            )
        else:
            self._emit("on_error", name, duration_ms, result.error or UNKNOWN_ERROR)

        return result

    async def execute_call(
        self,
        name: str,
        arguments_json: str | None,
        context: ToolContext,
    ) -> ToolResult:
        """
        Execute a call whose arguments arrive as a JSON string.

        Returns:
            ToolResult; malformed JSON yields an invalid_arguments failure
        """
        try:
            args = parse_arguments(arguments_json)
        except json.JSONDecodeError as e:
            result = ToolResult.fail(
                f"Invalid JSON arguments for {name}: {e.msg}",
                result={"arguments": arguments_json},
                kind=INVALID_ARGUMENTS_KIND,
            )
            self._emit("on_error", name, 0.0, result.error)
            return result
        return await self.execute(name, args, context)

    async def execute_many(
        self,
        calls: list[ToolCall],
        context: ToolContext,
    ) -> list[ToolResult]:
        """Run a batch of calls concurrently; results keep call order."""
        tasks = []
        for call in calls:
            if isinstance(call.arguments, str):
                tasks.append(self.execute_call(call.name, call.arguments, context))
            else:
                tasks.append(self.execute(call.name, call.arguments, context))
        return list(await asyncio.gather(*tasks))

    def _emit(self, event: str, *args: Any) -> None:
        """Deliver one event to the logger, counting any failure as dropped."""
        try:
            getattr(self.logger, event)(*args)
        except Exception:
            self.dropped_events += 1


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000
