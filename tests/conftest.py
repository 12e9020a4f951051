"""
Pytest configuration and fixtures for Toolrun tests.

This module provides shared fixtures used across unit and integration
tests.
"""

import tempfile
from pathlib import Path
from typing import Generator

import pytest

from toolrun.engine import Engine
from toolrun.paths import PathResolver
from toolrun.schema import RuntimeConfig
from toolrun.tools import ToolContext, ToolRegistry, ToolServices, build_registry


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir).resolve()


@pytest.fixture
def config() -> RuntimeConfig:
    """Default runtime configuration."""
    return RuntimeConfig()


@pytest.fixture
def services(temp_dir: Path, config: RuntimeConfig) -> ToolServices:
    """Tool services whose working directory is the temp dir."""
    return ToolServices(config=config, paths=PathResolver(default_cwd=temp_dir))


@pytest.fixture
def registry(services: ToolServices) -> ToolRegistry:
    """Registry holding every built-in tool."""
    return build_registry(services)


@pytest.fixture
def engine(registry: ToolRegistry) -> Engine:
    """Engine over the built-in registry, with no event logging."""
    return Engine(registry)


@pytest.fixture
def context() -> ToolContext:
    """Context of a test agent session."""
    return ToolContext(agent_id="test-agent", conversation_id="conv-1")


@pytest.fixture
def sample_file(temp_dir: Path) -> Path:
    """Create a five-line text file."""
    path = temp_dir / "sample.txt"
    path.write_text("line 1\nline 2\nline 3\nline 4\nline 5\n")
    return path


@pytest.fixture
def sample_tree(temp_dir: Path) -> Path:
    """
    Create a small project tree.

    Layout:
        src/main.py          (contains TODO)
        src/util.py          (contains TODO twice)
        src/nested/deep.py
        docs/readme.md       (contains TODO)
        .hidden/secret.py    (contains TODO)
        node_modules/pkg.js  (contains TODO)
        big.bin              (4096 bytes)
    """
    (temp_dir / "src" / "nested").mkdir(parents=True)
    (temp_dir / "docs").mkdir()
    (temp_dir / ".hidden").mkdir()
    (temp_dir / "node_modules").mkdir()

    (temp_dir / "src" / "main.py").write_text("import util\n# TODO: main\nprint('hi')\n")
    (temp_dir / "src" / "util.py").write_text("# TODO: one\ndef f():\n    pass\n# TODO: two\n")
    (temp_dir / "src" / "nested" / "deep.py").write_text("x = 1\n")
    (temp_dir / "docs" / "readme.md").write_text("Docs\nTODO: write docs\n")
    (temp_dir / ".hidden" / "secret.py").write_text("# TODO hidden\n")
    (temp_dir / "node_modules" / "pkg.js").write_text("// TODO vendored\n")
    (temp_dir / "big.bin").write_bytes(b"a" * 4096)
    return temp_dir
