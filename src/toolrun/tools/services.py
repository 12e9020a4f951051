"""
Collaborators shared by the built-in tools.

Tools are stateless; everything they need (configuration, filesystem,
per-session paths, search) is handed to them through one ToolServices
object at construction.
"""

from dataclasses import dataclass, field

from toolrun.fsys import LocalFileSystem
from toolrun.paths import PathResolver
from toolrun.schema import RuntimeConfig
from toolrun.search import SearchEngine
from toolrun.tools.base import ToolContext


@dataclass
class ToolServices:
    """
    Dependencies of the built-in tools.

    Attributes:
        config: Runtime configuration
        fs: Async filesystem primitives
        paths: Per-session working directories
        search: Search engine (built from config when not given)
    """

    config: RuntimeConfig = field(default_factory=RuntimeConfig)
    fs: LocalFileSystem = field(default_factory=LocalFileSystem)
    paths: PathResolver = field(default_factory=PathResolver)
    search: SearchEngine | None = None

    def __post_init__(self) -> None:
        if self.search is None:
            self.search = SearchEngine(self.config.search, self.config.process)

    def resolve(self, context: ToolContext, raw: str, must_exist: bool = True) -> str:
        """Resolve a tool argument path for the calling session."""
        return self.paths.resolve_path(
            context.session_key, raw, skip_existence_check=not must_exist
        )

    def cwd(self, context: ToolContext) -> str:
        return self.paths.get_cwd(context.session_key)
