"""Tests for the built-in template store."""
import pytest

from conductor_core import templates
from conductor_core.errors import InvalidArgumentError, TemplateError
from conductor_core.validation import validate_workflow
from conductor_core.workflow import parse_definition

BUILTIN = ["blank", "code-review", "explain", "summarize", "translate"]


class TestListTemplates:
    """Enumeration and category filtering."""

    def test_all_builtins_listed(self):
        found = templates.list_templates()
        assert [t.name for t in found] == BUILTIN
        assert all(t.description for t in found)

    def test_name_parameter_always_first(self):
        for descriptor in templates.list_templates():
            first = descriptor.parameters[0]
            assert first.name == "Name"
            assert first.required
            assert first.default is None

    def test_extra_parameters_have_defaults(self):
        translate = {t.name: t for t in templates.list_templates()}["translate"]
        extra = translate.parameters[1]
        assert extra.name == "target_language"
        assert extra.default == "Spanish"

    def test_category_filter_is_exact(self):
        assert [t.name for t in templates.list_templates("Text Processing")] == ["summarize", "translate"]
        assert templates.list_templates("text processing") == []

    def test_empty_filter_means_all(self):
        assert len(templates.list_templates("")) == len(BUILTIN)

    def test_exists(self):
        assert templates.exists("blank")
        assert not templates.exists("nope")

    def test_get_template(self):
        descriptor = templates.get_template("code-review")
        assert descriptor.category == "Development"
        assert [p.name for p in descriptor.parameters] == ["Name", "focus"]

    def test_get_template_unknown(self):
        with pytest.raises(TemplateError, match="template not found"):
            templates.get_template("nope")


class TestRender:
    """Rendering always yields a valid workflow."""

    def test_blank_substitutes_name(self):
        text = templates.render("blank", "my-wf").decode("utf-8")
        assert "name: my-wf" in text
        assert "{{.Name}}" not in text
        assert "[[" not in text
        # Workflow expressions pass through untouched
        assert "{{.inputs.input}}" in text

    @pytest.mark.parametrize("name", BUILTIN)
    def test_every_builtin_renders_valid(self, name):
        text = templates.render(name, "generated").decode("utf-8")
        assert validate_workflow(text).valid

    def test_parameter_overrides_default(self):
        text = templates.render("translate", "t", {"target_language": "French"})
        definition = parse_definition(text)
        target = {i.name: i for i in definition.inputs}["target_language"]
        assert target.default == "French"

    def test_default_used_when_parameter_omitted(self):
        definition = parse_definition(templates.render("summarize", "s"))
        assert {i.name: i for i in definition.inputs}["max_words"].default == "150"

    def test_parameter_values_are_quoted(self):
        """YAML-significant characters in parameters cannot break the document."""
        text = templates.render("code-review", "cr", {"focus": "speed: and [style]"})
        definition = parse_definition(text)
        assert {i.name: i for i in definition.inputs}["focus"].default == "speed: and [style]"

    def test_name_in_parameters_ignored(self):
        text = templates.render("blank", "real", {"Name": "ignored"}).decode("utf-8")
        assert "name: real" in text

    def test_unknown_template(self):
        with pytest.raises(TemplateError, match="template not found: nope"):
            templates.render("nope", "x")

    @pytest.mark.parametrize("name", ["", "../blank", "sub/blank", "sub\\blank"])
    def test_path_like_names_rejected(self, name):
        with pytest.raises(TemplateError):
            templates.render(name, "x")

    def test_unknown_parameter(self):
        with pytest.raises(InvalidArgumentError, match="unknown parameter"):
            templates.render("blank", "x", {"colour": "blue"})

    def test_non_string_parameter(self):
        with pytest.raises(InvalidArgumentError, match="must be a string"):
            templates.render("summarize", "x", {"max_words": 100})

    def test_empty_workflow_name(self):
        with pytest.raises(InvalidArgumentError, match="workflow name is required"):
            templates.render("blank", "")

    def test_name_that_breaks_validation(self):
        """A name YAML reads as a boolean fails the schema, so nothing invalid is returned."""
        with pytest.raises(TemplateError, match="not a valid workflow"):
            templates.render("blank", "yes")

    @pytest.mark.parametrize("workflow_name", [
        "w\ndescription: injected",
        "w\r\nversion: '9'",
        "w # trailing comment",
    ])
    def test_name_must_survive_rendering(self, workflow_name):
        """A name that YAML would read back differently cannot inject keys."""
        with pytest.raises(InvalidArgumentError):
            templates.render("blank", workflow_name)

    def test_name_with_spaces_survives(self):
        definition = parse_definition(templates.render("blank", "weekly report"))
        assert definition.name == "weekly report"

    def test_template_errors_are_invalid_arguments(self):
        with pytest.raises(TemplateError) as excinfo:
            templates.render("nope", "x")
        assert excinfo.value.kind == "invalid-argument"
