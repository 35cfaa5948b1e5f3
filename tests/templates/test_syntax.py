"""Tests for legacy placeholder syntax conversion."""

from unittest.mock import MagicMock

import pytest


class TestNormalizeSyntax:
    """Tests for normalize_syntax."""

    def test_config_maps_to_env(self):
        """Test ${config.X} becomes {{env.X}}."""
        from placeholder_engine.templates.syntax import normalize_syntax

        assert normalize_syntax("${config.X}") == "{{env.X}}"

    def test_response_maps_to_last_response(self):
        """Test ${response.a.b} reads the last response body."""
        from placeholder_engine.templates.syntax import normalize_syntax

        assert normalize_syntax("${response.a.b}") == "{{responses.last.body.a.b}}"

    def test_test_data_maps_to_variable(self):
        """Test ${testData.X} becomes a plain variable."""
        from placeholder_engine.templates.syntax import normalize_syntax

        assert normalize_syntax("${testData.userId}") == "{{userId}}"

    def test_plain_legacy_placeholder(self):
        """Test remaining ${X} placeholders."""
        from placeholder_engine.templates.syntax import normalize_syntax

        result = normalize_syntax("GET ${baseUrl}/users/${config.TENANT}?t=${uuid()}")

        assert result == "GET {{baseUrl}}/users/{{env.TENANT}}?t={{uuid()}}"

    @pytest.mark.parametrize(
        "template",
        [
            "{{name}}",
            "Hello {{user.name | uppercase}}",
            "{{add(1, 2)}} and {{env.HOST}}",
            "no placeholders",
        ],
    )
    def test_idempotent_on_native_input(self, template):
        """Test native-only input is a fixed point."""
        from placeholder_engine.templates.syntax import normalize_syntax

        once = normalize_syntax(template)

        assert once == template
        assert normalize_syntax(once) == once

    def test_non_string_input(self):
        """Test non-strings and empty strings pass through."""
        from placeholder_engine.templates.syntax import normalize_syntax

        assert normalize_syntax(None) is None
        assert normalize_syntax(5) == 5
        assert normalize_syntax("") == ""

    def test_malformed_input_unchanged(self):
        """Test an unterminated placeholder is left alone."""
        from placeholder_engine.templates.syntax import normalize_syntax

        assert normalize_syntax("${broken") == "${broken"


class TestDetection:
    """Tests for dialect detection and variable extraction."""

    def test_has_syntax(self):
        """Test legacy and native detectors."""
        from placeholder_engine.templates.syntax import has_legacy_syntax, has_native_syntax

        assert has_legacy_syntax("a ${b}") is True
        assert has_legacy_syntax("a {{b}}") is False
        assert has_native_syntax("a {{b}}") is True
        assert has_native_syntax("a ${b}") is False
        assert has_native_syntax(None) is False

    def test_extract_variables(self):
        """Test de-duplicated names from both dialects, pipes stripped."""
        from placeholder_engine.templates.syntax import extract_variables

        template = "${a} {{b | uppercase}} {{a}} ${a} {{ c }}"

        assert extract_variables(template) == ["a", "b", "c"]
        assert extract_variables("") == []

    def test_analyze_syntax(self):
        """Test the per-dialect analysis."""
        from placeholder_engine.templates.syntax import analyze_syntax

        analysis = analyze_syntax("${config.HOST} {{name | trim}}")

        assert analysis.has_legacy_syntax is True
        assert analysis.has_native_syntax is True
        assert analysis.legacy_variables == ["config.HOST"]
        assert analysis.native_variables == ["name"]
        assert analysis.all_variables == ["config.HOST", "name"]


class TestValidateSyntax:
    """Tests for validate_syntax."""

    def test_valid_template(self):
        """Test balanced placeholders pass."""
        from placeholder_engine.templates.syntax import validate_syntax

        result = validate_syntax("${a} and {{b}}")

        assert result.valid is True
        assert result.errors == []

    def test_unbalanced_native(self):
        """Test a missing closing brace pair."""
        from placeholder_engine.templates.syntax import validate_syntax

        result = validate_syntax("{{a} text")

        assert result.valid is False
        assert result.errors == ["Mismatched native placeholder braces: 1 opening, 0 closing"]

    def test_unbalanced_legacy(self):
        """Test an unterminated legacy placeholder."""
        from placeholder_engine.templates.syntax import validate_syntax

        result = validate_syntax("${a")

        assert result.errors == ["Mismatched legacy placeholder braces: 1 opening, 0 closing"]

    def test_nested_placeholders(self):
        """Test nesting within and across dialects is flagged."""
        from placeholder_engine.templates.syntax import validate_syntax

        assert "Nested placeholders are not supported" in validate_syntax("{{a {{b}}").errors
        assert "Nested placeholders are not supported" in validate_syntax("${a ${b}").errors
        assert "Nested placeholders are not supported" in validate_syntax("${a{{b}}}").errors

    def test_non_string_is_valid(self):
        """Test validation never raises."""
        from placeholder_engine.templates.syntax import validate_syntax

        assert validate_syntax(None).valid is True


class TestConvertToLegacySyntax:
    """Tests for convert_to_legacy_syntax."""

    def test_namespaces_map_back(self):
        """Test env and last-response paths return to legacy names."""
        from placeholder_engine.templates.syntax import convert_to_legacy_syntax

        assert convert_to_legacy_syntax("{{env.HOST}}") == "${config.HOST}"
        assert convert_to_legacy_syntax("{{responses.last.body.id}}") == "${response.id}"

    def test_simple_names_converted(self):
        """Test bare names are converted."""
        from placeholder_engine.templates.syntax import convert_to_legacy_syntax

        assert convert_to_legacy_syntax("{{ name }}") == "${name}"

    def test_ambiguous_bodies_kept(self):
        """Test calls, paths and pipelines are not converted."""
        from placeholder_engine.templates.syntax import convert_to_legacy_syntax

        assert convert_to_legacy_syntax("{{user.name}}") == "{{user.name}}"
        assert convert_to_legacy_syntax("{{uuid()}}") == "{{uuid()}}"
        assert convert_to_legacy_syntax("{{name | uppercase}}") == "{{name | uppercase}}"

    def test_round_trip_for_simple_templates(self):
        """Test normalize then convert back restores simple templates."""
        from placeholder_engine.templates.syntax import convert_to_legacy_syntax, normalize_syntax

        template = "${config.HOST}/${response.id}/${name}"

        assert convert_to_legacy_syntax(normalize_syntax(template)) == template


class TestHelpers:
    """Tests for the narrower normalization helpers."""

    def test_normalize_array_indexing(self):
        """Test indexed legacy placeholders."""
        from placeholder_engine.templates.syntax import normalize_array_indexing

        assert normalize_array_indexing("${response.users[0].name}") == (
            "{{responses.last.body.users[0].name}}"
        )
        assert normalize_array_indexing("${items[2]}") == "{{items[2]}}"
        assert normalize_array_indexing("${items[2].id}") == "{{items[2].id}}"
        assert normalize_array_indexing("${plain}") == "${plain}"

    def test_normalize_function_calls(self):
        """Test legacy function-call placeholders."""
        from placeholder_engine.templates.syntax import normalize_function_calls

        assert normalize_function_calls("${uuid()}") == "{{uuid()}}"
        assert normalize_function_calls("${add(1, 2)}") == "{{add(1, 2)}}"
        assert normalize_function_calls("${name}") == "${name}"

    def test_normalize_object(self):
        """Test nested payload normalization."""
        from placeholder_engine.templates.syntax import normalize_object

        payload = {"a": "${x}", "b": [1, "${config.H}"], "c": None, "${k}": True}

        assert normalize_object(payload) == {
            "a": "{{x}}",
            "b": [1, "{{env.H}}"],
            "c": None,
            "${k}": True,
        }

    def test_log_syntax_analysis(self):
        """Test analysis is logged and errors raise a warning."""
        from placeholder_engine.templates.syntax import log_syntax_analysis

        log = MagicMock()

        analysis = log_syntax_analysis("{{a} ${b}", label="body", log=log)

        assert analysis.legacy_variables == ["b"]
        log.debug.assert_called_once()
        log.warning.assert_called_once()
        assert log.warning.call_args.kwargs["label"] == "body"

    def test_log_syntax_analysis_valid(self):
        """Test a valid template logs no warning."""
        from placeholder_engine.templates.syntax import log_syntax_analysis

        log = MagicMock()

        log_syntax_analysis("{{a}}", log=log)

        log.warning.assert_not_called()
