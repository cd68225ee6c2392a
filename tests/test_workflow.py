"""Tests for the workflow definition parser."""
import pytest

from conductor_core.errors import WorkflowParseError
from conductor_core.workflow import parse_definition


MINIMAL = """
name: greet
steps:
  - id: hello
    type: llm
    prompt: Say hello
"""


class TestParseDefinition:
    """Happy paths and defaults."""

    def test_minimal_workflow(self):
        definition = parse_definition(MINIMAL)
        assert definition.name == "greet"
        assert [s.id for s in definition.steps] == ["hello"]

    def test_llm_model_defaults_to_balanced(self):
        definition = parse_definition(MINIMAL)
        assert definition.steps[0].model == "balanced"

    def test_accepts_bytes(self):
        definition = parse_definition(MINIMAL.encode("utf-8"))
        assert definition.name == "greet"

    def test_zero_steps_is_not_an_error(self):
        """An empty step list parses; the validator reports it as an advisory."""
        definition = parse_definition("name: w\nsteps: []\n")
        assert definition.steps == []

    def test_unknown_top_level_keys_ignored(self):
        definition = parse_definition(MINIMAL + "listen:\n  schedule: daily\n")
        assert definition.name == "greet"

    def test_aliases_rejected(self):
        text = "name: w\nprompt: &p hello\nsteps:\n  - id: a\n    type: llm\n    prompt: *p\n"
        with pytest.raises(WorkflowParseError, match="aliases are not supported"):
            parse_definition(text)

    def test_required_inputs_exclude_defaults(self):
        definition = parse_definition("""
name: w
inputs:
  - name: x
    type: string
    required: true
  - name: y
    type: string
    required: true
    default: fallback
  - name: z
    type: string
steps: []
""")
        assert [i.name for i in definition.required_inputs()] == ["x"]

    def test_conditional_step_detected(self):
        definition = parse_definition("""
name: w
steps:
  - id: a
    type: llm
    prompt: first
  - id: b
    type: llm
    prompt: second
    condition:
      expression: "true"
""")
        assert [s.is_conditional for s in definition.steps] == [False, True]


class TestShorthandSteps:
    """`service.operation: {...}` steps become integration steps."""

    def test_shorthand_expanded(self):
        definition = parse_definition("""
name: w
steps:
  - github.create_issue:
      title: Bug report
""")
        step = definition.steps[0]
        assert step.type == "integration"
        assert step.integration == "github.create_issue"
        assert step.inputs == {"title": "Bug report"}
        assert step.id == "github_create_issue_1"

    def test_generated_ids_avoid_explicit_ids(self):
        definition = parse_definition("""
name: w
steps:
  - github.create_issue:
      title: one
  - id: github_create_issue_1
    type: integration
    integration: github.create_issue
  - github.create_issue:
      title: two
""")
        ids = [s.id for s in definition.steps]
        assert len(set(ids)) == 3
        assert ids[1] == "github_create_issue_1"
        assert ids[0] != "github_create_issue_1"


class TestSemanticRules:
    """Cross-field rules produce WorkflowParseError."""

    @pytest.mark.parametrize("text,fragment", [
        ("steps: []\n", "workflow name is required"),
        ("name: w\nsteps:\n  - id: a\n    type: llm\n", "prompt is required"),
        ("name: w\nsteps:\n  - id: a\n    type: magic\n", "invalid step type: magic"),
        ("name: w\nsteps:\n  - id: a\n    type: condition\n", "condition is required"),
        ("name: w\nsteps:\n  - id: a\n    type: integration\n", "requires either 'integration'"),
        ("name: w\nsteps:\n  - id: a\n    type: integration\n    integration: github\n",
         "integration_name.operation_name"),
        ("name: w\nsteps:\n  - id: a\n    type: workflow\n", "requires 'workflow' field"),
        ("name: w\nsteps:\n  - id: a\n    type: workflow\n    workflow: ../other.yaml\n",
         "invalid workflow path"),
        ("name: w\nsteps:\n  - id: a\n    type: parallel\n", "parallel step requires nested steps"),
        ("name: w\nsteps:\n  - id: a\n    type: llm\n    prompt: x\n    model: huge\n", "invalid model tier"),
    ])
    def test_rule_violations(self, text, fragment):
        with pytest.raises(WorkflowParseError) as excinfo:
            parse_definition(text)
        assert fragment in excinfo.value.message

    def test_duplicate_step_ids(self):
        with pytest.raises(WorkflowParseError, match="duplicate step ID: a"):
            parse_definition("""
name: w
steps:
  - id: a
    type: llm
    prompt: one
  - id: a
    type: llm
    prompt: two
""")

    def test_unknown_branch_reference(self):
        with pytest.raises(WorkflowParseError, match="references unknown step: missing"):
            parse_definition("""
name: w
steps:
  - id: check
    type: condition
    condition:
      expression: "true"
      then_steps: [missing]
""")

    def test_loop_bounds(self):
        with pytest.raises(WorkflowParseError, match="max_iterations must be between 1 and 100"):
            parse_definition("""
name: w
steps:
  - id: retry
    type: loop
    until: done
    steps:
      - id: attempt
        type: llm
        prompt: try
""")

    def test_nested_step_errors_name_their_parent(self):
        with pytest.raises(WorkflowParseError, match="parallel step fan, nested step 0"):
            parse_definition("""
name: w
steps:
  - id: fan
    type: parallel
    steps:
      - id: a
        type: llm
""")

    def test_enum_input_needs_values(self):
        with pytest.raises(WorkflowParseError, match="enum inputs require 'enum' values"):
            parse_definition("name: w\ninputs:\n  - name: mode\n    type: enum\nsteps: []\n")

    def test_duplicate_input_names(self):
        with pytest.raises(WorkflowParseError, match="duplicate input name: x"):
            parse_definition("""
name: w
inputs:
  - name: x
    type: string
  - name: x
    type: number
steps: []
""")

    def test_triggers_key_rejected(self):
        with pytest.raises(WorkflowParseError, match="listen:"):
            parse_definition("name: w\ntriggers: {}\nsteps: []\n")

    def test_non_mapping_rejected(self):
        with pytest.raises(WorkflowParseError, match="must be a YAML mapping"):
            parse_definition("- just\n- a list\n")

    def test_invalid_utf8_rejected(self):
        with pytest.raises(WorkflowParseError, match="not valid UTF-8"):
            parse_definition(b"name: \xff\xfe\n")

    def test_type_errors_do_not_echo_values(self):
        """Pydantic errors report the location, not the offending value."""
        with pytest.raises(WorkflowParseError) as excinfo:
            parse_definition("name: w\nsteps:\n  - id: a\n    type: llm\n    prompt: x\n    max_iterations: sekrit\n")
        assert "sekrit" not in excinfo.value.message
        assert "steps.0.max_iterations" in excinfo.value.message
