"""
Toolrun - Tool-calling runtime for LLM coding agents.

Toolrun executes the tool calls an agent emits and hands back uniform,
structured results. It provides:
- A validated tool interface with a name-keyed registry
- An approval protocol for mutating operations (propose, then commit)
- An engine that turns every failure into a result and logs each call
- Atomic multi-operation file edits
- File and content search over fd/find and rg/grep with fallback

Example usage:
    $ toolrun tools
    $ toolrun call grep '{"pattern": "TODO", "outputMode": "files"}'
    $ toolrun call edit_file '{"path": "a.py", "edits": [...]}' --yes
"""

__version__ = "0.1.0"
__author__ = "Toolrun Contributors"

__all__ = [
    "__version__",
    "__author__",
]
