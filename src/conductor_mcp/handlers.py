"""MCP tool handlers for Conductor.

All handlers follow a consistent pattern:
- Accept: the raw arguments dict and the server's ToolContext
- Parse arguments into a strict pydantic model before touching domain code
- Return: a formatters.ToolResult (JSON text for every success)
- Raise ConductorError subclasses for failures; the server dispatcher is the
  single place that turns them into error results

The call-level rate limit is applied by the dispatcher before any handler
runs. Handlers only consume the run bucket (workflow_run with dry_run=false).
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, StrictBool, StrictStr, ValidationError

from conductor_core import health, planner, schema, templates
from conductor_core.errors import DeadlineExceededError, InvalidArgumentError, RateLimitedError
from conductor_core.paths import validate_path
from conductor_core.ratelimit import RateLimiter
from conductor_core.validation import check_workflow_size, validate_workflow

from . import formatters
from .formatters import ToolResult

logger = logging.getLogger("conductor.mcp.handlers")


@dataclass
class ToolContext:
    """Server state shared with every handler call."""

    version: str
    rate_limiter: RateLimiter


# ============================================================================
# Argument Models
# ============================================================================

class ToolArguments(BaseModel):
    """Base for tool argument records: strict types, unknown keys ignored."""

    model_config = ConfigDict(strict=True, extra="ignore")


class WorkflowValidateArguments(ToolArguments):
    workflow_yaml: StrictStr


class ListTemplatesArguments(ToolArguments):
    category: Optional[StrictStr] = None


class ScaffoldArguments(ToolArguments):
    template: StrictStr
    name: StrictStr
    parameters: Optional[dict[str, Any]] = None


class WorkflowRunArguments(ToolArguments):
    workflow_path: StrictStr
    inputs: Optional[dict[str, Any]] = None
    # Omitted means dry run
    dry_run: Optional[StrictBool] = None

    @property
    def is_dry_run(self) -> bool:
        return self.dry_run is not False


ArgumentsT = TypeVar("ArgumentsT", bound=ToolArguments)


def parse_arguments(model: type[ArgumentsT], arguments: Optional[dict]) -> ArgumentsT:
    """Parse a raw argument bag into ``model``.

    Raises:
        InvalidArgumentError: Naming every offending field, without echoing values
    """
    if arguments is None:
        arguments = {}
    if not isinstance(arguments, dict):
        raise InvalidArgumentError("arguments must be a JSON object")
    try:
        return model.model_validate(arguments)
    except ValidationError as e:
        problems = []
        for item in e.errors(include_input=False, include_url=False):
            field = ".".join(str(p) for p in item["loc"]) or "arguments"
            problems.append(f"{field}: {item['msg']}")
        raise InvalidArgumentError(f"invalid arguments: {'; '.join(problems)}") from None


# ============================================================================
# Authoring Handlers
# ============================================================================

async def handle_workflow_validate(arguments: dict, context: ToolContext) -> ToolResult:
    """Validate workflow YAML.

    RETURNS:
    • valid: True when no stage reported an error
    • errors: Diagnostics from the first failing stage (syntax, schema or semantic)
    • warnings: Best-practice advisories (only when valid)
    """
    args = parse_arguments(WorkflowValidateArguments, arguments)
    check_workflow_size(args.workflow_yaml)

    outcome = await asyncio.to_thread(validate_workflow, args.workflow_yaml)
    logger.info(f"Validated workflow: valid={outcome.valid} errors={len(outcome.errors)} "
                f"warnings={len(outcome.warnings)}")
    return formatters.ok_json(outcome.to_payload())


async def handle_workflow_schema(arguments: dict, context: ToolContext) -> ToolResult:
    """Return the embedded workflow JSON Schema along with the server version."""
    document = schema.load_schema()
    return formatters.ok_json({"schema": document, "version": context.version})


# ============================================================================
# Template Handlers
# ============================================================================

async def handle_list_templates(arguments: dict, context: ToolContext) -> ToolResult:
    """List built-in templates, optionally filtered by exact category."""
    args = parse_arguments(ListTemplatesArguments, arguments)
    found = templates.list_templates(args.category)
    logger.info(f"Listed {len(found)} templates (filtered={bool(args.category)})")
    return formatters.ok_json({
        "templates": [t.model_dump(mode="json", exclude_none=True) for t in found]
    })


async def handle_scaffold(arguments: dict, context: ToolContext) -> ToolResult:
    """Render a template into workflow YAML.

    Nothing is written to disk, so files_created is always empty. The YAML
    has already passed full validation.
    """
    args = parse_arguments(ScaffoldArguments, arguments)
    content = await asyncio.to_thread(templates.render, args.template, args.name, args.parameters)
    logger.info(f"Scaffolded workflow from template {args.template}")
    return formatters.ok_json({
        "workflow_yaml": content.decode("utf-8"),
        "files_created": [],
    })


# ============================================================================
# Execution Handlers
# ============================================================================

async def handle_workflow_run(arguments: dict, context: ToolContext) -> ToolResult:
    """Plan a workflow run.

    FLOW:
    • Validate workflow_path against the allow-list (no file read on rejection)
    • dry_run=false consumes a run token in addition to the call token
    • Load, parse and plan under the mode's deadline (5m dry run, 30m executed)
    """
    args = parse_arguments(WorkflowRunArguments, arguments)
    path = validate_path(args.workflow_path)

    if not args.is_dry_run and not context.rate_limiter.allow_run():
        limit = context.rate_limiter.runs_per_minute
        logger.warning("Run rate limit exceeded")
        raise RateLimitedError(
            f"Rate limit exceeded for workflow runs ({limit}/min). "
            f"Use dry_run=true to preview the execution plan without consuming a run."
        )

    result = await planner.plan_workflow(path, args.inputs or {}, dry_run=args.is_dry_run)
    return formatters.ok_json(result.model_dump(mode="json", exclude_none=True))


# ============================================================================
# Diagnostics Handlers
# ============================================================================

async def handle_health(arguments: dict, context: ToolContext) -> ToolResult:
    """Run the installation health check, bounded to HEALTH_TIMEOUT seconds."""
    try:
        async with asyncio.timeout(health.HEALTH_TIMEOUT):
            report = await health.run_health_checks(context.version)
    except TimeoutError:
        raise DeadlineExceededError(health.HEALTH_TIMEOUT) from None
    return formatters.ok_json(report.to_payload())
