"""Workflow definition parsing and semantic validation.

Turns workflow YAML into a WorkflowDefinition and enforces the cross-field
rules that a JSON schema cannot express:
- step IDs present and unique (auto-generated for shorthand integration steps)
- per-type required fields (llm prompt, condition expression, loop bounds, ...)
- then_steps / else_steps must reference existing step IDs
- input declarations are well-formed and unique

Structural typing comes from the pydantic models below; everything else is
checked in WorkflowDefinition.validate_definition().
"""
import logging
from enum import Enum
from typing import Any, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import WorkflowParseError

logger = logging.getLogger("conductor.core.workflow")


class StepType(str, Enum):
    """Step types understood by the workflow engine."""
    CONDITION = "condition"
    LLM = "llm"
    PARALLEL = "parallel"
    INTEGRATION = "integration"
    LOOP = "loop"
    WORKFLOW = "workflow"


class ModelTier(str, Enum):
    """Model capability tiers for LLM steps."""
    FAST = "fast"
    BALANCED = "balanced"
    STRATEGIC = "strategic"


VALID_INPUT_TYPES = ("string", "number", "boolean", "object", "array", "enum")
VALID_ACTIONS = ("file", "shell", "http", "transform", "utility")
MAX_LOOP_ITERATIONS = 100


class ConditionDefinition(BaseModel):
    """A conditional expression, optionally branching to named steps."""

    expression: str = ""
    then_steps: list[str] = Field(default_factory=list)
    else_steps: list[str] = Field(default_factory=list)


class InputDefinition(BaseModel):
    """A declared workflow input."""

    name: str = ""
    type: str = ""
    required: bool = False
    default: Any = None
    description: str = ""
    enum: list[str] = Field(default_factory=list)

    @property
    def has_default(self) -> bool:
        return self.default is not None


class OutputDefinition(BaseModel):
    """A declared workflow output."""

    name: str = ""
    type: str = ""
    value: Any = None
    description: str = ""


class StepDefinition(BaseModel):
    """A single workflow step. Unknown keys are kept for shorthand detection."""

    model_config = ConfigDict(extra="allow")

    id: str = ""
    name: str = ""
    type: str = ""
    prompt: str = ""
    system: str = ""
    model: str = ""
    agent: str = ""
    inputs: dict[str, Any] = Field(default_factory=dict)
    condition: Optional[ConditionDefinition] = None
    integration: str = ""
    action: str = ""
    operation: str = ""
    workflow: str = ""
    steps: list["StepDefinition"] = Field(default_factory=list)
    max_iterations: int = 0
    until: str = ""
    timeout: Optional[int] = None

    @property
    def is_conditional(self) -> bool:
        return self.condition is not None

    def validate_step(self) -> None:
        """Check per-type rules for this step and its nested steps."""
        if not self.id:
            raise WorkflowParseError("step ID is required", field="id",
                                     suggestion="add an 'id' field to each step")

        if not self.type:
            raise WorkflowParseError(f"step {self.id}: step type is required", field="type",
                                     suggestion="set 'type' to one of: " + ", ".join(t.value for t in StepType))

        if self.type not in {t.value for t in StepType}:
            raise WorkflowParseError(f"step {self.id}: invalid step type: {self.type}", field="type",
                                     suggestion="set 'type' to one of: " + ", ".join(t.value for t in StepType))

        if self.type == StepType.LLM:
            if not self.prompt:
                raise WorkflowParseError(f"step {self.id}: prompt is required for LLM step type",
                                         field="prompt", suggestion="add a 'prompt' to the llm step")
            if self.model and self.model not in {t.value for t in ModelTier}:
                raise WorkflowParseError(
                    f"step {self.id}: invalid model tier: {self.model} (must be fast, balanced, or strategic)",
                    field="model")

        if self.type == StepType.CONDITION and (self.condition is None or not self.condition.expression):
            raise WorkflowParseError(f"step {self.id}: condition is required for condition step type",
                                     field="condition",
                                     suggestion="add 'condition: {expression: ...}' to the step")

        if self.type == StepType.INTEGRATION:
            self._validate_integration()

        if self.type == StepType.WORKFLOW:
            if not self.workflow:
                raise WorkflowParseError(
                    f"step {self.id}: workflow step requires 'workflow' field with path to sub-workflow file",
                    field="workflow")
            if self.prompt:
                raise WorkflowParseError(
                    f"step {self.id}: workflow step cannot have 'prompt' field (use 'inputs' to pass data)",
                    field="prompt")
            if ".." in self.workflow or self.workflow.startswith(("/", "\\")):
                raise WorkflowParseError(
                    f"step {self.id}: invalid workflow path: must be relative to the parent workflow "
                    f"and must not contain '..'",
                    field="workflow")

        if self.type == StepType.PARALLEL:
            if not self.steps:
                raise WorkflowParseError(f"step {self.id}: parallel step requires nested steps", field="steps")
            self._validate_nested("parallel")

        if self.type == StepType.LOOP:
            if not 1 <= self.max_iterations <= MAX_LOOP_ITERATIONS:
                raise WorkflowParseError(
                    f"step {self.id}: max_iterations must be between 1 and {MAX_LOOP_ITERATIONS}, "
                    f"got {self.max_iterations}",
                    field="max_iterations")
            if not self.until:
                raise WorkflowParseError(f"step {self.id}: until expression is required for loop step",
                                         field="until")
            if not self.steps:
                raise WorkflowParseError(f"step {self.id}: loop step requires nested steps", field="steps")
            if self.timeout is not None and 0 < self.timeout < 2:
                raise WorkflowParseError(f"step {self.id}: loop timeout must be at least 2 seconds",
                                         field="timeout")
            for nested in self.steps:
                if nested.type == StepType.LOOP:
                    raise WorkflowParseError(f"step {self.id}: nested loops are not supported", field="steps")
            self._validate_nested("loop")

    def _validate_integration(self) -> None:
        has_integration = bool(self.integration)
        has_action = bool(self.action and self.operation)

        if not has_integration and not has_action:
            raise WorkflowParseError(
                f"step {self.id}: integration step requires either 'integration' field "
                f"or 'action'+'operation' fields",
                field="integration")
        if has_integration and has_action:
            raise WorkflowParseError(
                f"step {self.id}: integration step cannot have both 'integration' and 'action' fields",
                field="integration")
        if has_action and self.action not in VALID_ACTIONS:
            raise WorkflowParseError(
                f"step {self.id}: invalid action: {self.action} (must be {', '.join(VALID_ACTIONS[:-1])}, "
                f"or {VALID_ACTIONS[-1]})",
                field="action")
        if has_integration:
            parts = self.integration.split(".")
            if len(parts) != 2 or not all(parts):
                raise WorkflowParseError(
                    f"step {self.id}: integration must be in format 'integration_name.operation_name', "
                    f"got: {self.integration}",
                    field="integration")

    def _validate_nested(self, kind: str) -> None:
        seen: set[str] = set()
        for index, nested in enumerate(self.steps):
            try:
                nested.validate_step()
            except WorkflowParseError as e:
                raise WorkflowParseError(
                    f"{kind} step {self.id}, nested step {index}: {e.message}",
                    field=e.field, suggestion=e.suggestion) from None
            if nested.id in seen:
                raise WorkflowParseError(f"{kind} step {self.id} has duplicate nested step ID: {nested.id}",
                                         field="id", suggestion="ensure each step has a unique ID")
            seen.add(nested.id)


class WorkflowDefinition(BaseModel):
    """A parsed workflow. Only the fields the MCP tools need are modelled."""

    name: str = ""
    description: str = ""
    version: Optional[Union[str, int, float]] = None
    inputs: list[InputDefinition] = Field(default_factory=list)
    steps: list[StepDefinition] = Field(default_factory=list)
    outputs: list[OutputDefinition] = Field(default_factory=list)

    def all_step_ids(self) -> set[str]:
        ids: set[str] = set()
        pending = list(self.steps)
        while pending:
            step = pending.pop()
            ids.add(step.id)
            pending.extend(step.steps)
        return ids

    def required_inputs(self) -> list[InputDefinition]:
        """Inputs that must be supplied because they are required and carry no default."""
        return [i for i in self.inputs if i.required and not i.has_default]

    def assign_step_ids(self) -> None:
        """Give top-level steps without an explicit ID a non-colliding one.

        Format: {action}_{operation}_{N} or {integration}_{operation}_{N}.
        """
        taken = {step.id for step in self.steps if step.id}
        counters: dict[str, int] = {}
        for step in self.steps:
            if step.id:
                continue
            if step.type == StepType.INTEGRATION and step.action:
                base = f"{step.action}_{step.operation}"
            elif step.type == StepType.INTEGRATION and step.integration:
                base = step.integration.replace(".", "_", 1)
            elif step.type == StepType.INTEGRATION:
                base = "integration"
            else:
                base = "step"
            n = counters.get(base, 0) + 1
            while f"{base}_{n}" in taken:
                n += 1
            step.id = f"{base}_{n}"
            counters[base] = n
            taken.add(step.id)

    def apply_defaults(self) -> None:
        for step in self.steps:
            if step.type == StepType.LLM and not step.model:
                step.model = ModelTier.BALANCED.value

    def validate_definition(self) -> None:
        """Check cross-field rules.

        Raises:
            WorkflowParseError: On the first rule violation
        """
        if not self.name:
            raise WorkflowParseError("workflow name is required", field="name",
                                     suggestion="add a descriptive name for the workflow")

        step_ids: set[str] = set()
        for step in self.steps:
            if step.id and step.id in step_ids:
                raise WorkflowParseError(f"duplicate step ID: {step.id}", field="id",
                                         suggestion="ensure each step has a unique ID")
            step.validate_step()
            step_ids.add(step.id)

        known = self.all_step_ids()
        pending = list(self.steps)
        while pending:
            step = pending.pop(0)
            pending.extend(step.steps)
            if step.condition is None:
                continue
            for ref in step.condition.then_steps + step.condition.else_steps:
                if ref not in known:
                    raise WorkflowParseError(
                        f"step {step.id} references unknown step: {ref}", field="condition",
                        suggestion="then_steps and else_steps must name existing step IDs")

        input_names: set[str] = set()
        for declared in self.inputs:
            if not declared.name:
                raise WorkflowParseError("input name is required", field="inputs")
            if not declared.type:
                raise WorkflowParseError(f"invalid input {declared.name}: input type is required", field="inputs")
            if declared.type not in VALID_INPUT_TYPES:
                raise WorkflowParseError(
                    f"invalid input {declared.name}: invalid input type: {declared.type} "
                    f"(must be string, number, boolean, object, array, or enum)",
                    field="inputs")
            if declared.type == "enum" and not declared.enum:
                raise WorkflowParseError(f"invalid input {declared.name}: enum inputs require 'enum' values",
                                         field="inputs")
            if declared.name in input_names:
                raise WorkflowParseError(f"duplicate input name: {declared.name}", field="inputs")
            input_names.add(declared.name)

        for output in self.outputs:
            if not output.name:
                raise WorkflowParseError("output name is required", field="outputs")


def _expand_shorthand(raw: Any) -> Any:
    """Rewrite `service.operation: {...}` steps into explicit integration steps."""
    if not isinstance(raw, dict):
        return raw
    step = dict(raw)
    if isinstance(step.get("steps"), list):
        step["steps"] = [_expand_shorthand(s) for s in step["steps"]]
    if step.get("type"):
        return step
    dotted = [k for k, v in step.items() if isinstance(k, str) and "." in k and isinstance(v, dict)]
    if len(dotted) != 1:
        return step
    key = dotted[0]
    body = step.pop(key)
    step["type"] = StepType.INTEGRATION.value
    step["integration"] = key
    step["inputs"] = body
    return step


class WorkflowLoader(yaml.SafeLoader):
    """SafeLoader that refuses aliases.

    Aliases let a few hundred bytes expand into billions of nodes once the
    document is constructed, so any ``*name`` reference is a syntax error.
    """

    def compose_node(self, parent, index):
        if self.check_event(yaml.AliasEvent):
            event = self.peek_event()
            raise yaml.composer.ComposerError(
                None, None, "YAML aliases are not supported", event.start_mark)
        return super().compose_node(parent, index)


def load_yaml(text: Union[str, bytes]) -> Any:
    """yaml.safe_load with aliases rejected."""
    return yaml.load(text, Loader=WorkflowLoader)


def _describe_validation_error(error: ValidationError) -> str:
    # include_input=False: never echo field values back to the caller
    first = error.errors(include_input=False, include_url=False)[0]
    location = ".".join(str(part) for part in first["loc"]) or "workflow"
    return f"invalid workflow definition at {location}: {first['msg']}"


def parse_definition(data: Union[str, bytes]) -> WorkflowDefinition:
    """Parse workflow YAML into a validated WorkflowDefinition.

    Zero steps is accepted; callers that care report it separately.

    Raises:
        WorkflowParseError: If the YAML is malformed or a rule is violated
    """
    if isinstance(data, bytes):
        try:
            data = data.decode("utf-8")
        except UnicodeDecodeError:
            raise WorkflowParseError("workflow definition is not valid UTF-8") from None

    try:
        raw = load_yaml(data)
    except yaml.YAMLError as e:
        raise WorkflowParseError(f"failed to parse workflow definition: {e}") from e

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise WorkflowParseError("workflow definition must be a YAML mapping",
                                 suggestion="start the file with 'name:' and 'steps:' keys")

    if "triggers" in raw:
        raise WorkflowParseError(
            "the 'triggers:' key is no longer supported. Use 'listen:' instead.",
            field="triggers",
            suggestion="move trigger configuration under a top-level 'listen:' key")

    raw = dict(raw)
    if isinstance(raw.get("steps"), list):
        raw["steps"] = [_expand_shorthand(step) for step in raw["steps"]]

    try:
        definition = WorkflowDefinition.model_validate(raw)
    except ValidationError as e:
        raise WorkflowParseError(_describe_validation_error(e)) from None

    definition.assign_step_ids()
    definition.apply_defaults()
    definition.validate_definition()
    logger.debug(f"Parsed workflow with {len(definition.steps)} steps")
    return definition
