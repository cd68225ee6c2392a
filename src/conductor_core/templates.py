"""Built-in workflow templates.

Templates ship as package data under builtin_templates/ and are rendered with
Jinja2 using [[ ]] delimiters, leaving the workflow's own {{.inputs.x}}
expressions untouched. Every template takes a ``Name`` parameter; some
declare extra parameters with defaults.

A rendered template is only returned if it passes full workflow validation.
"""
import logging
from functools import lru_cache
from typing import Any, Optional

from jinja2 import Environment, PackageLoader, StrictUndefined
from jinja2 import TemplateError as JinjaTemplateError
from pydantic import BaseModel, Field

from .errors import InternalError, InvalidArgumentError, TemplateError
from .validation import validate_workflow
from .workflow import parse_definition

logger = logging.getLogger("conductor.core.templates")

TEMPLATE_DIR = "builtin_templates"
TEMPLATE_SUFFIX = ".yaml"


class TemplateParameter(BaseModel):
    """A value a caller may supply when scaffolding from a template."""

    name: str
    description: str
    required: bool = False
    default: Optional[str] = None


class TemplateDescriptor(BaseModel):
    """Metadata for one built-in template."""

    name: str
    description: str
    category: str
    parameters: list[TemplateParameter] = Field(default_factory=list)


NAME_PARAMETER = TemplateParameter(
    name="Name",
    description="Name of the generated workflow",
    required=True,
)

# Intrinsic metadata; the file for each entry lives at builtin_templates/<name>.yaml
_CATALOG: dict[str, TemplateDescriptor] = {
    "blank": TemplateDescriptor(
        name="blank",
        description="Minimal workflow with a single LLM step, ready to customize",
        category="Basic",
    ),
    "code-review": TemplateDescriptor(
        name="code-review",
        description="Review code changes and flag critical issues",
        category="Development",
        parameters=[TemplateParameter(
            name="focus",
            description="Aspects the review should concentrate on",
            default="correctness, security and readability",
        )],
    ),
    "explain": TemplateDescriptor(
        name="explain",
        description="Explain a concept or piece of code for a chosen audience",
        category="Education",
        parameters=[TemplateParameter(
            name="audience",
            description="Who the explanation is for",
            default="a curious beginner",
        )],
    ),
    "summarize": TemplateDescriptor(
        name="summarize",
        description="Summarize a block of text into a short overview",
        category="Text Processing",
        parameters=[TemplateParameter(
            name="max_words",
            description="Upper bound on the summary length in words",
            default="150",
        )],
    ),
    "translate": TemplateDescriptor(
        name="translate",
        description="Translate text into another language",
        category="Text Processing",
        parameters=[TemplateParameter(
            name="target_language",
            description="Language to translate into",
            default="Spanish",
        )],
    ),
}


@lru_cache(maxsize=1)
def _environment() -> Environment:
    return Environment(
        loader=PackageLoader(__package__, TEMPLATE_DIR),
        undefined=StrictUndefined,
        keep_trailing_newline=True,
        autoescape=False,
        variable_start_string="[[",
        variable_end_string="]]",
        block_start_string="[%",
        block_end_string="%]",
        comment_start_string="[#",
        comment_end_string="#]",
    )


def _describe(name: str) -> TemplateDescriptor:
    entry = _CATALOG[name]
    return entry.model_copy(update={"parameters": [NAME_PARAMETER] + list(entry.parameters)})


def list_templates(category: Optional[str] = None) -> list[TemplateDescriptor]:
    """All templates in name order, optionally restricted to one exact category."""
    return [
        _describe(name)
        for name in sorted(_CATALOG)
        if not category or _CATALOG[name].category == category
    ]


def exists(name: str) -> bool:
    return name in _CATALOG


def check_template_name(name: str) -> None:
    """Reject names that look like paths before any lookup happens.

    Raises:
        TemplateError: If the name is empty or contains '..', '/' or '\\'
    """
    if not name:
        raise TemplateError("template name is required")
    if ".." in name or "/" in name or "\\" in name:
        raise TemplateError("invalid template name: must not contain '..', '/' or '\\'")


def get_template(name: str) -> TemplateDescriptor:
    """Descriptor for one template, Name parameter included.

    Raises:
        TemplateError: If the name is rejected or unknown
    """
    check_template_name(name)
    if not exists(name):
        raise TemplateError(f"template not found: {name} (use list_templates to see available templates)")
    return _describe(name)


def _render_context(descriptor: TemplateDescriptor, workflow_name: str,
                    parameters: Optional[dict[str, Any]]) -> dict[str, str]:
    supplied = dict(parameters or {})
    supplied.pop("Name", None)

    declared = {p.name: p for p in descriptor.parameters}
    unknown = sorted(set(supplied) - set(declared))
    if unknown:
        raise InvalidArgumentError(
            f"unknown parameter(s) for template {descriptor.name}: {', '.join(unknown)}"
        )

    context = {"Name": workflow_name}
    for param in descriptor.parameters:
        if param.name == NAME_PARAMETER.name:
            continue
        value = supplied.get(param.name, param.default)
        if value is None:
            raise InvalidArgumentError(f"parameter {param.name} is required for template {descriptor.name}")
        if not isinstance(value, str):
            raise InvalidArgumentError(f"parameter {param.name} must be a string")
        context[param.name] = value
    return context


def render(name: str, workflow_name: str, parameters: Optional[dict[str, Any]] = None) -> bytes:
    """Render a template for ``workflow_name`` and return validated YAML bytes.

    Raises:
        TemplateError: If the name is rejected, unknown, or the output is invalid
        InvalidArgumentError: If the parameters are unusable or the workflow name
            does not come back unchanged from the rendered YAML
    """
    descriptor = get_template(name)
    if not workflow_name:
        raise InvalidArgumentError("workflow name is required")

    context = _render_context(descriptor, workflow_name, parameters)

    try:
        text = _environment().get_template(name + TEMPLATE_SUFFIX).render(**context)
    except JinjaTemplateError as e:
        logger.error(f"Built-in template {name} failed to render: {e}")
        raise InternalError(f"template {name} could not be rendered") from e

    outcome = validate_workflow(text)
    if not outcome.valid:
        logger.info(f"Rendered template {name} failed validation with {len(outcome.errors)} errors")
        raise TemplateError(f"rendered template {name} is not a valid workflow: {outcome.errors[0].message}")

    if parse_definition(text).name != workflow_name:
        logger.info(f"Rendered template {name} did not keep the requested workflow name")
        raise InvalidArgumentError("workflow name must be a single-line plain YAML string")

    logger.debug(f"Rendered template {name}")
    return text.encode("utf-8")
