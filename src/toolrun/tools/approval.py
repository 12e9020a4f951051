"""
Approval-gated tools.

A mutating operation is exposed as two tools built from one
ApprovalOperation:

- the proposal tool (visible, named after the operation) never touches
  external state; it always fails softly with an approval payload that
  describes the effect and restates the exact arguments to replay;
- the commit tool (hidden, named "execute_<operation>") performs the
  effect once the orchestrator has obtained human confirmation.

Nothing binds the two calls together on the server side; correctness
rests on the proposal restating every argument the commit needs.
"""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Generic

from toolrun.schema import RiskLevel
from toolrun.tools.base import ArgsT, Tool, ToolContext, ToolResult

APPROVAL_REQUIRED_PREFIX = "APPROVAL REQUIRED: "
EXECUTION_TOOL_PREFIX = "EXECUTION TOOL: "
EXECUTE_TOOL_PREFIX = "execute_"

DEFAULT_APPROVAL_ERROR = "Approval required: This action requires user confirmation."


def execute_tool_name(name: str) -> str:
    """Name of the commit tool paired with a proposal tool."""
    return f"{EXECUTE_TOOL_PREFIX}{name}"


@dataclass(frozen=True)
class ApprovalMessage:
    """
    What the user is asked to confirm.

    Attributes:
        message: Human-readable description of the intended effect
        preview_diff: Optional unified diff of the change
    """

    message: str
    preview_diff: str | None = None


class ApprovalOperation(ABC, Generic[ArgsT]):
    """
    A mutating operation that must be confirmed before it runs.

    Subclasses provide the parameter model, a side-effect-free describe()
    used by the proposal tool, and perform() used by the commit tool.
    """

    parameters: type[ArgsT]
    tags: tuple[str, ...] = ()
    risk_level: RiskLevel = RiskLevel.MEDIUM
    approval_error: str = DEFAULT_APPROVAL_ERROR

    @property
    @abstractmethod
    def name(self) -> str:
        """Name of the proposal tool."""
        ...

    @property
    @abstractmethod
    def description(self) -> str:
        """What the operation does, without approval boilerplate."""
        ...

    @abstractmethod
    async def describe(self, args: ArgsT, context: ToolContext) -> str | ApprovalMessage:
        """Describe the intended effect. Must not change external state."""
        ...

    @abstractmethod
    async def perform(self, args: ArgsT, context: ToolContext) -> ToolResult:
        """Carry out the effect."""
        ...

    def build_execute_args(self, args: ArgsT) -> dict[str, Any]:
        """Arguments the commit tool must be called with."""
        return args.to_wire()

    def create_summary(self, result: ToolResult) -> str | None:
        """Optional summary of a successful commit."""
        return None


class ProposalTool(Tool[ArgsT]):
    """Visible half of an approval pair; returns an approval request."""

    def __init__(self, operation: ApprovalOperation[ArgsT]) -> None:
        self.operation = operation
        self.parameters = operation.parameters
        self.tags = operation.tags
        self.risk_level = operation.risk_level

    @property
    def name(self) -> str:
        return self.operation.name

    @property
    def execute_name(self) -> str:
        return execute_tool_name(self.operation.name)

    @property
    def description(self) -> str:
        return (
            f"{APPROVAL_REQUIRED_PREFIX}{self.operation.description} "
            "This tool requests user approval and does NOT perform the operation. "
            f"After the user confirms, you MUST call {self.execute_name} with the "
            "exact arguments provided in the approval response."
        )

    async def handler(self, args: ArgsT, context: ToolContext) -> ToolResult:
        described = await self.operation.describe(args, context)
        if isinstance(described, str):
            described = ApprovalMessage(message=described)

        execute_args = self.operation.build_execute_args(args)
        args_json = json.dumps(execute_args)
        message = (
            f"{described.message}\n\n"
            f"IMPORTANT: After getting user confirmation, you MUST call the "
            f"{self.execute_name} tool with these exact arguments: {args_json}"
        )
        payload: dict[str, Any] = {
            "approvalRequired": True,
            "message": message,
            "instruction": (
                "Please ask the user for confirmation. If they confirm, call "
                f"{self.execute_name} with these exact arguments: {args_json}"
            ),
            "executeToolName": self.execute_name,
            "executeArgs": execute_args,
        }
        if described.preview_diff:
            payload["previewDiff"] = described.preview_diff
        return ToolResult(success=False, result=payload, error=self.operation.approval_error)


class CommitTool(Tool[ArgsT]):
    """Hidden half of an approval pair; performs the effect."""

    hidden = True

    def __init__(self, operation: ApprovalOperation[ArgsT]) -> None:
        self.operation = operation
        self.parameters = operation.parameters
        self.tags = operation.tags
        self.risk_level = operation.risk_level

    @property
    def name(self) -> str:
        return execute_tool_name(self.operation.name)

    @property
    def description(self) -> str:
        return (
            f"{EXECUTION_TOOL_PREFIX}Performs {self.operation.name} after user approval. "
            f"{self.operation.description} Only call this after {self.operation.name} "
            "received user approval."
        )

    async def handler(self, args: ArgsT, context: ToolContext) -> ToolResult:
        return await self.operation.perform(args, context)

    def create_summary(self, result: ToolResult) -> str | None:
        return self.operation.create_summary(result)


@dataclass(frozen=True)
class ApprovalToolPair:
    """The proposal and commit tools for one operation."""

    approval: ProposalTool
    execute: CommitTool

    def all(self) -> tuple[Tool, Tool]:
        """Both tools, for registration."""
        return (self.approval, self.execute)


def define_approval_tools(operation: ApprovalOperation) -> ApprovalToolPair:
    """Build the proposal/commit pair for an operation."""
    return ApprovalToolPair(approval=ProposalTool(operation), execute=CommitTool(operation))
