"""Conductor MCP Server - Expose workflow authoring tools to AI assistants."""
import asyncio
import logging
import os
import signal
import sys
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Mapping, Optional

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import CallToolResult, Tool
from pydantic import BaseModel

from conductor_core.errors import ConductorError, InternalError
from conductor_core.ratelimit import RateLimiter

from . import formatters
from . import handlers
from . import tools
from .formatters import ToolResult
from .handlers import ToolContext

LOGGER_NAME = "conductor"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}

SHUTDOWN_TIMEOUT = 5

Handler = Callable[[dict, ToolContext], Awaitable[ToolResult]]

HANDLERS: dict[str, Handler] = {
    tools.WORKFLOW_VALIDATE: handlers.handle_workflow_validate,
    tools.WORKFLOW_SCHEMA: handlers.handle_workflow_schema,
    tools.LIST_TEMPLATES: handlers.handle_list_templates,
    tools.SCAFFOLD: handlers.handle_scaffold,
    tools.WORKFLOW_RUN: handlers.handle_workflow_run,
    tools.HEALTH: handlers.handle_health,
}


class ServerConfig(BaseModel):
    name: str = "conductor"
    version: str = "dev"
    log_level: str = "info"


@dataclass(frozen=True)
class RegisteredTool:
    tool: Tool
    handler: Handler


def create_logger(level: str) -> logging.Logger:
    """Configure the ``conductor`` logger tree to write to stderr only.

    stdout carries the protocol, so the logger never propagates to the root
    logger (whose handlers may point anywhere).

    Raises:
        ValueError: If ``level`` is not one of debug, info, warn, error
    """
    level = level or "info"
    if level not in LOG_LEVELS:
        raise ValueError(f"invalid log level {level!r}: must be one of {', '.join(LOG_LEVELS)}")

    logger = logging.getLogger(LOGGER_NAME)
    for existing in list(logger.handlers):
        logger.removeHandler(existing)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)
    logger.setLevel(LOG_LEVELS[level])
    logger.propagate = False
    return logger


def build_registry() -> Mapping[str, RegisteredTool]:
    """Pair every tool descriptor with its handler. Read-only once built."""
    registry = {}
    for tool in tools.get_tools():
        handler = HANDLERS.get(tool.name)
        if handler is None:
            raise InternalError(f"no handler registered for tool {tool.name}")
        registry[tool.name] = RegisteredTool(tool=tool, handler=handler)
    return MappingProxyType(registry)


class ConductorMCPServer:
    """Server state: name, version, logger, rate limiter and tool registry.

    Everything is built in the constructor; the registry is complete before
    the transport accepts a request.
    """

    def __init__(self, config: Optional[ServerConfig] = None, rate_limiter: Optional[RateLimiter] = None):
        self.config = config or ServerConfig()
        self.logger = create_logger(self.config.log_level)
        self.rate_limiter = rate_limiter or RateLimiter()
        self.context = ToolContext(version=self.config.version, rate_limiter=self.rate_limiter)
        self.registry = build_registry()

        self.app = Server(self.config.name, version=self.config.version)
        self._register_hooks()

    def _register_hooks(self) -> None:
        @self.app.list_tools()
        async def list_tools() -> list[Tool]:
            """List available MCP tools for workflow authoring."""
            return [entry.tool for entry in self.registry.values()]

        # Argument checking happens in the handlers so type mismatches come
        # back as invalid-argument results
        @self.app.call_tool(validate_input=False)
        async def call_tool(name: str, arguments: Any) -> CallToolResult:
            result = await self.dispatch(name, arguments)
            return formatters.to_call_tool_result(result)

    async def dispatch(self, name: str, arguments: Any) -> ToolResult:
        """Route one tool call to its handler and produce exactly one result."""
        keys = sorted(arguments) if isinstance(arguments, dict) else []
        self.logger.debug(f"Tool call: {name} with argument keys: {keys}")

        entry = self.registry.get(name)
        if entry is None:
            self.logger.warning(f"Unknown tool requested: {name}")
            return formatters.err(f"Unknown tool: {name}", "invalid-argument")

        if not self.rate_limiter.allow_call():
            self.logger.warning(f"Call rate limit exceeded (tool: {name})")
            return formatters.err(
                f"Rate limit exceeded for tool calls ({self.rate_limiter.calls_per_minute}/min). "
                f"Please try again later.",
                "rate-limited",
            )

        try:
            return await entry.handler(arguments, self.context)
        except InternalError as e:
            self.logger.error(f"Internal error during {name} call: {e.message}", exc_info=True)
            return formatters.err(f"internal error while running {name}", e.kind)
        except ConductorError as e:
            self.logger.info(f"{name} failed ({e.kind})")
            return formatters.err(e.message, e.kind)
        except Exception as e:
            self.logger.error(f"Unexpected error during {name} call: {type(e).__name__}", exc_info=True)
            return formatters.err(f"internal error while running {name}", "internal")

    async def run(self) -> None:
        """Serve MCP over stdio until the client closes the stream."""
        self.logger.info(f"MCP Server starting: {self.config.name} {self.config.version}")
        async with stdio_server() as (read_stream, write_stream):
            await self.app.run(read_stream, write_stream, self.app.create_initialization_options())
        self.logger.info("MCP Server stopped")


async def serve(config: ServerConfig) -> bool:
    """Run the server until EOF or SIGINT/SIGTERM.

    On a signal the run task is cancelled and given SHUTDOWN_TIMEOUT seconds
    to finish; anything left over is reported on the log.

    Returns:
        False if the run task was still running when the shutdown timeout
        expired, True otherwise
    """
    server = ConductorMCPServer(config)
    logger = server.logger
    loop = asyncio.get_running_loop()
    stop = asyncio.Event()

    installed = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
            installed.append(sig)
        except NotImplementedError:
            logger.debug(f"Signal handlers not supported for {sig.name} on this platform")

    run_task = asyncio.create_task(server.run())
    stop_task = asyncio.create_task(stop.wait())
    try:
        done, _ = await asyncio.wait({run_task, stop_task}, return_when=asyncio.FIRST_COMPLETED)
        if run_task in done:
            stop_task.cancel()
            # Transport failures end the process
            run_task.result()
            return True

        logger.info("Shutdown signal received, stopping server")
        run_task.cancel()
        finished, _ = await asyncio.wait({run_task}, timeout=SHUTDOWN_TIMEOUT)
        if not finished:
            logger.error(f"Server did not stop within {SHUTDOWN_TIMEOUT}s")
            return False
        if not run_task.cancelled() and run_task.exception() is not None:
            logger.error("Server stopped with an error", exc_info=run_task.exception())
        return True
    finally:
        for sig in installed:
            loop.remove_signal_handler(sig)


def exit_now(status: int) -> None:
    """Flush log output and leave the process without any further cleanup.

    Used when the run task ignored cancellation. Closing the event loop would
    wait on that task, which can be blocked reading stdin indefinitely.
    """
    for handler in logging.getLogger(LOGGER_NAME).handlers:
        handler.flush()
    sys.stdout.flush()
    sys.stderr.flush()
    os._exit(status)


def main() -> None:
    """Console entry point (conductor-mcp)."""
    config = ServerConfig(
        name=os.getenv("CONDUCTOR_MCP_NAME") or "conductor",
        version=os.getenv("CONDUCTOR_VERSION") or "dev",
        log_level=os.getenv("CONDUCTOR_MCP_LOG_LEVEL") or "info",
    )
    try:
        with asyncio.Runner() as runner:
            if not runner.run(serve(config)):
                exit_now(0)
    except ValueError as e:
        sys.exit(f"conductor-mcp: {e}")
    sys.exit(0)


if __name__ == "__main__":
    main()
