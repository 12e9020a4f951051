"""
Schema definitions for Toolrun.

This module defines the Pydantic models shared across Toolrun:
- ToolCategory: Grouping used by the registry's category views
- ToolArgs: Base model for closed, camelCase tool parameter schemas
- RuntimeConfig and its sections: Tunables for editing, search, processes
  and the audit log
- Enums for risk levels and tool lifecycle events

Design Decisions:
    - Config models forbid unknown keys so typos in YAML fail loudly
    - Models are immutable where possible (frozen=True)
    - Every tunable has a default, so an empty or missing config file works
"""

from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


# =============================================================================
# Enums
# =============================================================================


class RiskLevel(str, Enum):
    """How much damage a tool can do if misused."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ToolEventKind(str, Enum):
    """Lifecycle events emitted by the engine for each tool call."""

    START = "start"
    SUCCESS = "success"
    APPROVAL_REQUIRED = "approval_required"
    ERROR = "error"


# =============================================================================
# Registry Models
# =============================================================================


class ToolCategory(BaseModel):
    """
    A named group of tools.

    Attributes:
        id: Stable identifier used when registering (e.g., "filesystem")
        display_name: Label used in listings (e.g., "File System")
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(..., min_length=1, description="Stable category identifier")
    display_name: str = Field(..., min_length=1, description="Human-readable label")


FILESYSTEM_CATEGORY = ToolCategory(id="filesystem", display_name="File System")
SEARCH_CATEGORY = ToolCategory(id="search", display_name="Search")


class ToolArgs(BaseModel):
    """
    Base class for tool parameter models.

    Schemas are closed (unknown fields are rejected) and exposed to the
    orchestrator in camelCase, while handlers read snake_case attributes.
    """

    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_wire(self) -> dict[str, Any]:
        """Dump using the camelCase names the orchestrator sends."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


# =============================================================================
# Config Models
# =============================================================================


class EditConfig(BaseModel):
    """
    Limits for the edit engine.

    Attributes:
        max_iterations: Ceiling on match iterations per replace_pattern operation
        max_diff_lines: Lines of diff kept in results and approval previews
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    max_iterations: int = Field(default=100_000, gt=0)
    max_diff_lines: int = Field(default=200, gt=0)


class SearchConfig(BaseModel):
    """
    Defaults and caps for find/grep.

    Attributes:
        default_max_results: Results returned when a query does not say
        hard_max_results: Upper bound no query can exceed
        default_max_depth: Traversal depth when a query does not say
        parent_levels: How many parents of cwd smart search visits
        smart_min_results: Smart search stops merging roots past this count
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    default_max_results: int = Field(default=200, gt=0)
    hard_max_results: int = Field(default=2000, gt=0)
    default_max_depth: int = Field(default=25, ge=0)
    parent_levels: int = Field(default=3, ge=0)
    smart_min_results: int = Field(default=10, gt=0)


class ProcessConfig(BaseModel):
    """Timeouts for external processes."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    timeout_seconds: float = Field(default=30.0, gt=0, le=600)
    probe_timeout_seconds: float = Field(default=5.0, gt=0, le=60)


class AuditConfig(BaseModel):
    """Where tool events are recorded."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    enabled: bool = Field(default=True)
    db_path: str = Field(default="toolrun.db")


class RuntimeConfig(BaseModel):
    """
    Complete runtime configuration.

    Example YAML:
        edit:
          max_iterations: 50000
        search:
          default_max_results: 100
        audit:
          db_path: ~/.toolrun/events.db
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    edit: EditConfig = Field(default_factory=EditConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)
    process: ProcessConfig = Field(default_factory=ProcessConfig)
    audit: AuditConfig = Field(default_factory=AuditConfig)


# =============================================================================
# YAML Loading Helpers
# =============================================================================


def load_config(path: Path | str | None) -> RuntimeConfig:
    """
    Load a runtime config from a YAML file.

    Args:
        path: Path to the YAML file. None or a missing file yields defaults.

    Returns:
        Validated RuntimeConfig object

    Raises:
        ValidationError: If the YAML doesn't match the schema
    """
    if path is None:
        return RuntimeConfig()
    path = Path(path).expanduser()
    if not path.exists():
        return RuntimeConfig()
    with path.open() as f:
        data = yaml.safe_load(f)

    return RuntimeConfig.model_validate(data or {})


def load_config_from_string(content: str) -> RuntimeConfig:
    """Load a runtime config from a YAML string."""
    data = yaml.safe_load(content)
    return RuntimeConfig.model_validate(data or {})
