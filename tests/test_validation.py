"""Tests for multi-stage workflow validation and the embedded schema."""
import json

import pytest

from conductor_core import schema
from conductor_core.errors import InternalError, InvalidArgumentError
from conductor_core.validation import MAX_WORKFLOW_BYTES, Severity, validate_workflow


def llm_steps(count: int) -> str:
    return "".join(f"  - id: s{i}\n    type: llm\n    prompt: step {i}\n" for i in range(count))


class TestSyntaxStage:
    """YAML errors stop the pipeline with a single positioned diagnostic."""

    def test_tab_indentation(self):
        outcome = validate_workflow("name: w\n\tsteps:")
        assert not outcome.valid
        assert len(outcome.errors) == 1
        error = outcome.errors[0]
        assert error.message.startswith("YAML syntax error")
        assert error.line == 2
        assert error.suggestion

    def test_unclosed_flow_sequence(self):
        outcome = validate_workflow("name: w\nsteps: [\n")
        assert not outcome.valid
        assert outcome.errors[0].message.startswith("YAML syntax error")
        assert outcome.warnings == []

    def test_nested_aliases_rejected(self):
        """A small document of nested aliases is refused instead of expanded."""
        lines = ["name: w", 'l0: &l0 ["x", "x", "x", "x", "x", "x", "x", "x", "x", "x"]']
        for level in range(1, 9):
            refs = ", ".join([f"*l{level - 1}"] * 10)
            lines.append(f"l{level}: &l{level} [{refs}]")
        lines.append("steps: *l8")
        outcome = validate_workflow("\n".join(lines) + "\n")
        assert not outcome.valid
        assert len(outcome.errors) == 1
        assert outcome.errors[0].message == "YAML syntax error: YAML aliases are not supported"
        assert outcome.errors[0].line == 3

    def test_anchor_without_alias_is_accepted(self):
        outcome = validate_workflow("name: &n w\nsteps: []\n")
        assert outcome.valid


class TestSchemaStage:
    """Schema violations become one diagnostic each, without positions."""

    def test_missing_name(self):
        outcome = validate_workflow("steps: []\n")
        assert not outcome.valid
        messages = [e.message for e in outcome.errors]
        assert any("'name' is a required property" in m for m in messages)
        assert all(e.line == 0 and e.column == 0 for e in outcome.errors)

    def test_wrong_type_reports_location(self):
        outcome = validate_workflow("name: w\nsteps: {}\n")
        assert not outcome.valid
        assert "Schema validation error at '$.steps'" in outcome.errors[0].message
        assert "workflow_schema" in outcome.errors[0].suggestion

    def test_not_a_mapping(self):
        outcome = validate_workflow("- a\n- b\n")
        assert not outcome.valid
        assert "at '$'" in outcome.errors[0].message

    def test_nested_step_violation(self):
        outcome = validate_workflow("name: w\nsteps:\n  - id: a\n    type: llm\n    prompt: x\n    model: huge\n")
        assert not outcome.valid
        assert "$.steps[0].model" in outcome.errors[0].message


class TestSemanticStage:
    """Parser rules run only once the schema passes."""

    def test_llm_without_prompt(self):
        outcome = validate_workflow("name: w\nsteps:\n  - id: a\n    type: llm\n")
        assert not outcome.valid
        assert len(outcome.errors) == 1
        assert "prompt is required" in outcome.errors[0].message

    def test_unknown_branch_target(self):
        outcome = validate_workflow("""name: w
steps:
  - id: check
    type: condition
    condition:
      expression: "true"
      else_steps: [nowhere]
""")
        assert not outcome.valid
        assert "nowhere" in outcome.errors[0].message


class TestAdvisories:
    """Warnings never affect validity."""

    def test_empty_workflow(self):
        """name: w with no steps is valid and carries two advisories."""
        outcome = validate_workflow("name: w\nsteps: []\n")
        assert outcome.valid
        assert outcome.errors == []
        messages = [w.message for w in outcome.warnings]
        assert any("no steps" in m for m in messages)
        assert any("description" in m for m in messages)
        assert all(w.severity == Severity.WARNING for w in outcome.warnings)

    def test_advisory_order(self):
        """Description first, then step count."""
        outcome = validate_workflow("name: w\nsteps: []\n")
        assert [w.message for w in outcome.warnings] == [
            "Workflow has no description",
            "Workflow has no steps",
        ]

    def test_too_many_steps(self):
        outcome = validate_workflow("name: w\ndescription: big\nsteps:\n" + llm_steps(21))
        assert outcome.valid
        assert len(outcome.warnings) == 1
        assert "21 steps" in outcome.warnings[0].message

    def test_twenty_steps_is_fine(self):
        outcome = validate_workflow("name: w\ndescription: ok\nsteps:\n" + llm_steps(20))
        assert outcome.valid
        assert outcome.warnings == []


class TestValidationOutcome:
    """Payload shape and purity."""

    def test_payload_shape(self):
        payload = validate_workflow("name: w\nsteps: []\n").to_payload()
        assert list(payload) == ["valid", "errors", "warnings"]
        assert payload["valid"] is True
        assert payload["warnings"][0]["severity"] == "warning"
        assert json.loads(json.dumps(payload)) == payload

    def test_idempotent(self):
        text = "name: w\nsteps:\n  - id: a\n    type: llm\n"
        assert validate_workflow(text) == validate_workflow(text)

    def test_size_limit(self):
        """Bodies over 10 MiB are refused before parsing."""
        oversized = "name: w\nsteps: []\n#" + "x" * MAX_WORKFLOW_BYTES
        with pytest.raises(InvalidArgumentError, match="10 MiB"):
            validate_workflow(oversized)


class TestEmbeddedSchema:
    """The schema document shipped with the package."""

    def test_is_draft7_with_required_fields(self):
        document = schema.load_schema()
        assert document["$schema"] == "http://json-schema.org/draft-07/schema#"
        assert document["required"] == ["name", "steps"]

    def test_each_load_is_a_fresh_copy(self):
        first = schema.load_schema()
        first["title"] = "mutated"
        assert schema.load_schema()["title"] != "mutated"

    def test_matches_raw_resource(self):
        assert schema.load_schema() == json.loads(schema.get_embedded_schema())

    def test_corrupt_resource_is_internal_error(self, monkeypatch):
        monkeypatch.setattr(schema, "get_embedded_schema", lambda: b"{not json")
        with pytest.raises(InternalError):
            schema.load_schema()
