"""Conductor MCP Server - Model Context Protocol integration.

This package exposes Conductor workflow authoring to AI assistants over the
stdio MCP transport.

Modules:
- server: stdio MCP server, logging, dispatch and shutdown
- formatters: Tool result envelopes
- tools: MCP tool definitions
- handlers: Tool implementation handlers
"""

__version__ = "0.1.0"

from . import formatters
from . import tools
from . import handlers

__all__ = ["formatters", "tools", "handlers", "__version__"]
