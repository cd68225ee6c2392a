"""Dry-run execution planning for workflow files.

The planner never runs a step. In dry-run mode it checks inputs and lists the
steps in source order; in execute mode it declines, since real execution
belongs to the CLI and daemon rather than the assistant-facing tool.
"""
import asyncio
import logging
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field

from .errors import DeadlineExceededError, InvalidArgumentError, WorkflowIOError, WorkflowParseError
from .validation import check_workflow_size
from .workflow import WorkflowDefinition, parse_definition

logger = logging.getLogger("conductor.core.planner")

DRY_RUN_TIMEOUT = 5 * 60
EXECUTE_TIMEOUT = 30 * 60

EXECUTION_NOT_SUPPORTED = "execution via this transport is not implemented; use the CLI"


class RunMode(str, Enum):
    DRY_RUN = "dry_run"
    EXECUTED = "executed"


class StepStatus(str, Enum):
    PENDING = "pending"
    CONDITIONAL = "conditional"
    FAILED = "failed"
    SUCCESS = "success"
    SKIPPED = "skipped"


class StepPlan(BaseModel):
    step_id: str
    type: str
    status: StepStatus


class RunResult(BaseModel):
    """Outcome of a workflow_run call."""

    success: bool
    mode: RunMode
    plan: list[StepPlan] = Field(default_factory=list)
    error: Optional[str] = None


def missing_inputs(definition: WorkflowDefinition, inputs: dict[str, Any]) -> list[str]:
    """Names of required inputs that were neither provided nor defaulted."""
    return [i.name for i in definition.required_inputs() if i.name not in inputs]


def build_plan(definition: WorkflowDefinition) -> list[StepPlan]:
    return [
        StepPlan(
            step_id=step.id,
            type=step.type,
            status=StepStatus.CONDITIONAL if step.is_conditional else StepStatus.PENDING,
        )
        for step in definition.steps
    ]


def _read_workflow(path: Path) -> str:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return f.read()
    except FileNotFoundError:
        raise WorkflowIOError(f"workflow file not found: {path}") from None
    except IsADirectoryError:
        raise WorkflowIOError(f"workflow path is a directory: {path}") from None
    except UnicodeDecodeError:
        raise WorkflowIOError(f"workflow file is not valid UTF-8: {path}") from None
    except OSError as e:
        raise WorkflowIOError(f"failed to read workflow file {path}: {e.strerror or e}") from None


def _parse_workflow(path: Path, text: str) -> WorkflowDefinition:
    check_workflow_size(text, field="workflow file")
    try:
        return parse_definition(text)
    except WorkflowParseError as e:
        raise InvalidArgumentError(f"invalid workflow {path.name}: {e.message}") from None


async def load_workflow(path: Path) -> WorkflowDefinition:
    """Read and parse a workflow file without blocking the event loop.

    Both the read and the parse run in worker threads, so a caller's
    deadline fires even while a large document is being parsed.

    Raises:
        WorkflowIOError: If the file cannot be read
        InvalidArgumentError: If the file is too large or does not parse
    """
    text = await asyncio.to_thread(_read_workflow, path)
    return await asyncio.to_thread(_parse_workflow, path, text)


def plan(definition: WorkflowDefinition, inputs: dict[str, Any], dry_run: bool) -> RunResult:
    """Produce the RunResult for an already-parsed workflow."""
    if not dry_run:
        return RunResult(success=False, mode=RunMode.EXECUTED, error=EXECUTION_NOT_SUPPORTED)

    missing = missing_inputs(definition, inputs)
    if missing:
        return RunResult(
            success=False,
            mode=RunMode.DRY_RUN,
            error=f"input-validation-failed: missing required input(s): {', '.join(missing)}",
        )

    return RunResult(success=True, mode=RunMode.DRY_RUN, plan=build_plan(definition))


async def plan_workflow(
    path: Path,
    inputs: Optional[dict[str, Any]] = None,
    dry_run: bool = True,
    timeout: Optional[float] = None
) -> RunResult:
    """Load ``path`` and plan it under the mode's deadline.

    The deadline is derived from the calling task, so cancellation of the
    caller still propagates.

    Raises:
        DeadlineExceededError: If the deadline fires
        WorkflowIOError, InvalidArgumentError: From load_workflow
    """
    if timeout is None:
        timeout = DRY_RUN_TIMEOUT if dry_run else EXECUTE_TIMEOUT

    try:
        async with asyncio.timeout(timeout):
            definition = await load_workflow(path)
            result = plan(definition, inputs or {}, dry_run)
    except TimeoutError:
        raise DeadlineExceededError(timeout) from None

    logger.info(f"Planned workflow with {len(definition.steps)} steps: "
                f"mode={result.mode.value} success={result.success}")
    return result
