"""Multi-stage workflow validation.

Stages run in order and stop at the first one that reports errors:
1. YAML syntax
2. JSON schema (embedded document)
3. Semantic rules (workflow definition parser)
4. Best-practice advisories (warnings only, never invalidate)

The outcome is a pure function of the input text.
"""
import logging
import re
from enum import Enum
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field, computed_field

from .errors import InvalidArgumentError, WorkflowParseError
from .schema import schema_validator
from .workflow import load_yaml, parse_definition

logger = logging.getLogger("conductor.core.validation")

MAX_WORKFLOW_BYTES = 10 * 1024 * 1024
MAX_RECOMMENDED_STEPS = 20

_LINE_PATTERN = re.compile(r"line (\d+)")


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


class Diagnostic(BaseModel):
    """A single validation finding. Line and column are 1-based, 0 if unknown."""

    line: int = 0
    column: int = 0
    message: str
    suggestion: Optional[str] = None
    severity: Severity = Severity.ERROR


class ValidationOutcome(BaseModel):
    """Result of validate_workflow. ``valid`` is derived from ``errors``."""

    errors: list[Diagnostic] = Field(default_factory=list)
    warnings: list[Diagnostic] = Field(default_factory=list)

    @computed_field
    @property
    def valid(self) -> bool:
        return not self.errors

    def to_payload(self) -> dict:
        """JSON-ready dict with ``valid`` first and empty suggestions dropped."""
        return {
            "valid": self.valid,
            "errors": [d.model_dump(mode="json", exclude_none=True) for d in self.errors],
            "warnings": [d.model_dump(mode="json", exclude_none=True) for d in self.warnings],
        }


def check_workflow_size(text: str, field: str = "workflow_yaml") -> None:
    """Reject workflow bodies larger than MAX_WORKFLOW_BYTES (UTF-8).

    Raises:
        InvalidArgumentError: If the body is too large
    """
    size = len(text.encode("utf-8"))
    if size > MAX_WORKFLOW_BYTES:
        raise InvalidArgumentError(
            f"{field} exceeds maximum size of 10 MiB ({size} bytes); "
            f"split the workflow into smaller files"
        )


def _syntax_position(error: Exception) -> tuple[int, int]:
    mark = getattr(error, "problem_mark", None) or getattr(error, "context_mark", None)
    if mark is not None:
        return mark.line + 1, mark.column + 1
    match = _LINE_PATTERN.search(str(error))
    if match:
        return int(match.group(1)), 0
    return 0, 0


def _syntax_diagnostic(error: Exception) -> Diagnostic:
    line, column = _syntax_position(error)
    problem = getattr(error, "problem", None) or str(error)
    return Diagnostic(
        line=line,
        column=column,
        message=f"YAML syntax error: {problem}",
        suggestion="Check indentation (spaces only, no tabs) and that every key is followed by a colon",
    )


def _instance_path(parts) -> str:
    path = "$"
    for part in parts:
        path += f"[{part}]" if isinstance(part, int) else f".{part}"
    return path


def _schema_diagnostics(data: Any) -> list[Diagnostic]:
    violations = sorted(
        schema_validator().iter_errors(data),
        key=lambda e: (_instance_path(e.absolute_path), e.message),
    )
    return [
        Diagnostic(
            message=f"Schema validation error at '{_instance_path(e.absolute_path)}': {e.message}",
            suggestion="Refer to the workflow schema (workflow_schema tool) for the expected structure",
        )
        for e in violations
    ]


def _advisories(definition) -> list[Diagnostic]:
    warnings = []
    if not definition.description:
        warnings.append(Diagnostic(
            message="Workflow has no description",
            suggestion="Add a description field explaining what the workflow does",
            severity=Severity.WARNING,
        ))
    step_count = len(definition.steps)
    if step_count == 0:
        warnings.append(Diagnostic(
            message="Workflow has no steps",
            suggestion="Add at least one step so the workflow does something",
            severity=Severity.WARNING,
        ))
    elif step_count > MAX_RECOMMENDED_STEPS:
        warnings.append(Diagnostic(
            message=f"Workflow has {step_count} steps (more than {MAX_RECOMMENDED_STEPS})",
            suggestion="Consider splitting it into smaller workflows invoked as sub-workflow steps",
            severity=Severity.WARNING,
        ))
    return warnings


def validate_workflow(yaml_text: str) -> ValidationOutcome:
    """Validate workflow YAML through every stage.

    Raises:
        InvalidArgumentError: If the input exceeds MAX_WORKFLOW_BYTES
    """
    check_workflow_size(yaml_text)

    try:
        data = load_yaml(yaml_text)
    except yaml.YAMLError as e:
        logger.debug("Workflow failed YAML syntax stage")
        return ValidationOutcome(errors=[_syntax_diagnostic(e)])
    except RecursionError:
        return ValidationOutcome(errors=[Diagnostic(
            message="YAML syntax error: document is nested too deeply",
            suggestion="Flatten the document structure",
        )])

    schema_errors = _schema_diagnostics(data)
    if schema_errors:
        logger.debug(f"Schema validation found {len(schema_errors)} errors")
        return ValidationOutcome(errors=schema_errors)

    try:
        definition = parse_definition(yaml_text)
    except WorkflowParseError as e:
        logger.debug("Workflow failed semantic validation stage")
        return ValidationOutcome(errors=[Diagnostic(
            message=e.message,
            suggestion=e.suggestion or "Fix the workflow definition and validate again",
        )])

    return ValidationOutcome(warnings=_advisories(definition))
