"""
Base classes for the tool interface.

This module defines the core abstractions for tools in Toolrun:
- Tool: Abstract base class that all tools must implement
- ToolArgs: Base model for closed, camelCase parameter schemas
- ToolContext: Identity of the calling session
- ToolResult: Standardized result format from tool execution
- ValidationResult: Outcome of validating raw arguments

Design Principles:
    - Tools are stateless - session state lives in collaborators (paths)
    - Handlers receive validated arguments - validation happens in execute()
    - Expected failures become ToolResult.fail(), never escape execute()
    - Tools are registered by name - the registry handles lookup
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from pydantic import ValidationError

from toolrun.errors import ToolInvalidArgsError, ToolrunError
from toolrun.schema import RiskLevel, ToolArgs

ArgsT = TypeVar("ArgsT", bound=ToolArgs)


@dataclass(frozen=True)
class ToolResult:
    """
    Standardized output from tool execution.

    Every tool call ends in a ToolResult, whether successful or failed.
    When success is False, result optionally carries a diagnostic payload
    (errorKind, context, or an approval request).

    Attributes:
        success: Whether the tool executed successfully
        result: Output data (type varies by tool) or diagnostic payload
        error: Error message if success is False
        summary: Optional human-readable summary of a successful result
    """

    success: bool
    result: Any = None
    error: str | None = None
    summary: str | None = None

    @classmethod
    def ok(cls, result: Any, summary: str | None = None) -> "ToolResult":
        """Create a successful result."""
        return cls(success=True, result=result, summary=summary)

    @classmethod
    def fail(cls, error: str, result: Any = None, kind: str | None = None) -> "ToolResult":
        """Create a failed result, tagging it with an error kind if given."""
        if kind is not None:
            payload = dict(result) if isinstance(result, dict) else {}
            payload.setdefault("errorKind", kind)
            result = payload
        return cls(success=False, result=result, error=error)

    @classmethod
    def from_error(cls, err: ToolrunError) -> "ToolResult":
        """Convert a domain error into a failed result."""
        payload: dict[str, Any] = {"errorKind": err.kind, "context": err.context}
        if err.suggestion:
            payload["suggestion"] = err.suggestion
        return cls(success=False, result=payload, error=err.message or str(err))

    @property
    def error_kind(self) -> str | None:
        """The errorKind tag of a failed result, if any."""
        if isinstance(self.result, dict):
            return self.result.get("errorKind")
        return None

    @property
    def requires_approval(self) -> bool:
        """Whether this is the proposal half of an approval pair."""
        return (
            not self.success
            and isinstance(self.result, dict)
            and self.result.get("approvalRequired") is True
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to the wire shape returned to the orchestrator."""
        data: dict[str, Any] = {"success": self.success, "result": self.result}
        if self.error is not None:
            data["error"] = self.error
        if self.summary is not None:
            data["summary"] = self.summary
        return data


@dataclass(frozen=True)
class ValidationResult(Generic[ArgsT]):
    """Outcome of Tool.validate(): a typed value or field-level errors."""

    valid: bool
    value: ArgsT | None = None
    errors: tuple[str, ...] = ()


@dataclass
class ToolContext:
    """
    Identity of the session a tool call belongs to.

    Attributes:
        agent_id: The calling agent (required)
        conversation_id: The conversation within that agent, if any
        metadata: Additional context-specific metadata
    """

    agent_id: str
    conversation_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def session_key(self) -> str:
        """Key under which session-scoped state (cwd) is stored."""
        if self.conversation_id:
            return f"{self.agent_id}:{self.conversation_id}"
        return self.agent_id


def format_validation_errors(exc: ValidationError) -> list[str]:
    """Flatten a pydantic ValidationError into 'field.path: message' strings."""
    errors = []
    for issue in exc.errors():
        path = ".".join(str(part) for part in issue["loc"])
        errors.append(f"{path}: {issue['msg']}" if path else issue["msg"])
    return errors


class Tool(ABC, Generic[ArgsT]):
    """
    Abstract base class for all Toolrun tools.

    Each tool:
    - Has a unique name (e.g., "read_file", "grep")
    - Declares a closed parameter model (a ToolArgs subclass)
    - Implements the async handler() method
    - Returns a ToolResult

    Subclasses must implement:
    - name property: Returns the tool's unique identifier
    - parameters: ToolArgs subclass describing accepted arguments
    - handler(): Performs the tool's action on validated arguments

    Example:
        class EchoArgs(ToolArgs):
            message: str

        class EchoTool(Tool[EchoArgs]):
            parameters = EchoArgs

            @property
            def name(self) -> str:
                return "echo"

            async def handler(self, args: EchoArgs, context: ToolContext) -> ToolResult:
                return ToolResult.ok(args.message)
    """

    parameters: type[ArgsT]
    tags: tuple[str, ...] = ()
    hidden: bool = False
    risk_level: RiskLevel | None = None

    @property
    @abstractmethod
    def name(self) -> str:
        """
        The unique identifier for this tool.

        Returns:
            The tool's unique name
        """
        ...

    @property
    def description(self) -> str:
        """
        Human-readable description shown to the orchestrator.

        Returns:
            Description of the tool's purpose
        """
        return f"Tool: {self.name}"

    def validate(self, args: dict[str, Any]) -> ValidationResult[ArgsT]:
        """
        Validate raw arguments against the parameter model.

        Args:
            args: The arguments as received from the orchestrator

        Returns:
            ValidationResult with the typed value or a list of errors
        """
        try:
            value = self.parameters.model_validate(args)
        except ValidationError as e:
            return ValidationResult(valid=False, errors=tuple(format_validation_errors(e)))
        return ValidationResult(valid=True, value=value)

    @abstractmethod
    async def handler(self, args: ArgsT, context: ToolContext) -> ToolResult:
        """
        Perform the tool's action.

        Args:
            args: Validated arguments
            context: The calling session

        Returns:
            ToolResult indicating success or failure

        Note:
            Handlers may raise ToolrunError subclasses for expected failures;
            execute() converts them. Anything else is a defect and is left
            to the engine.
        """
        ...

    async def execute(self, args: dict[str, Any], context: ToolContext) -> ToolResult:
        """
        Validate, then run the handler.

        Args:
            args: Raw arguments
            context: The calling session

        Returns:
            ToolResult from the handler, or a validation/domain failure
        """
        validation = self.validate(args)
        if not validation.valid:
            err = ToolInvalidArgsError(tool=self.name, errors=list(validation.errors))
            return ToolResult.fail(
                err.message,
                result={"errors": list(validation.errors)},
                kind=err.kind,
            )
        try:
            return await self.handler(validation.value, context)
        except ToolrunError as e:
            return ToolResult.from_error(e)

    def create_summary(self, result: ToolResult) -> str | None:
        """Optional one-line summary of a successful result."""
        return None

    def definition(self) -> dict[str, Any]:
        """The OpenAI-style function definition for this tool."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters.model_json_schema(by_alias=True),
            },
        }

    def __repr__(self) -> str:
        """String representation of the tool."""
        return f"<Tool: {self.name}>"
