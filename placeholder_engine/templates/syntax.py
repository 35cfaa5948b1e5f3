"""Legacy ``${...}`` to native ``{{...}}`` placeholder conversion.

Older test data was written in a ``${...}`` dialect. These helpers rewrite it
into the resolver's dialect, inspect templates written in either, and report
structural problems. Everything here is a pure string transform: non-string
or empty input comes back unchanged and nothing raises.

Rewrite rules, applied in order:

    ${config.X}    -> {{env.X}}
    ${response.X}  -> {{responses.last.body.X}}
    ${testData.X}  -> {{X}}
    ${X}           -> {{X}}
"""

import re
from collections.abc import Mapping
from typing import Any, Optional

import structlog

from placeholder_engine.templates.models import SyntaxAnalysis, SyntaxValidationResult

logger = structlog.get_logger()

LEGACY_CONFIG = re.compile(r"\$\{config\.([^}]+)\}")
LEGACY_RESPONSE = re.compile(r"\$\{response\.([^}]+)\}")
LEGACY_TEST_DATA = re.compile(r"\$\{testData\.([^}]+)\}")
LEGACY_PLACEHOLDER = re.compile(r"\$\{([^}]+)\}")
NATIVE_PLACEHOLDER = re.compile(r"\{\{([^}]+)\}\}")

LAST_RESPONSE_PATH = "responses.last.body"

_LEGACY_OPEN = re.compile(r"\$\{")
_LEGACY_CLOSED = re.compile(r"\$\{[^}]*\}")
_NATIVE_OPEN = re.compile(r"\{\{")
_NATIVE_CLOSED = re.compile(r"\{\{[^}]*\}\}")
_NESTED = (
    re.compile(r"\$\{[^}]*\$\{"),
    re.compile(r"\{\{[^}]*\{\{"),
    re.compile(r"\$\{[^}]*\{\{"),
    re.compile(r"\{\{[^}]*\$\{"),
)
_REVERSE_ENV = re.compile(r"\{\{env\.([^}]+)\}\}")
_REVERSE_RESPONSE = re.compile(r"\{\{responses\.last\.body\.([^}]+)\}\}")
_REVERSE_SIMPLE = re.compile(r"\{\{([^}|]+)\}\}")
_LEGACY_INDEXED = re.compile(r"\$\{([^}]+)\[(\d+)\]([^}]*)\}")
_LEGACY_CALL = re.compile(r"\$\{([a-zA-Z_][a-zA-Z0-9_]*\([^)]*\))\}")


def _legacy_body(match: re.Match) -> str:
    return match.group(1)


def _native_body(match: re.Match) -> str:
    return match.group(1).split("|")[0].strip()


def normalize_syntax(template: Any) -> Any:
    """Rewrite every legacy placeholder in ``template`` to the native dialect.

    Already-native templates pass through unchanged, so normalizing twice
    gives the same result as normalizing once.

    Args:
        template: Template string (anything else is returned as is)

    Returns:
        The normalized template
    """
    if not isinstance(template, str) or not template:
        return template

    normalized = LEGACY_CONFIG.sub(r"{{env.\1}}", template)
    normalized = LEGACY_RESPONSE.sub(rf"{{{{{LAST_RESPONSE_PATH}.\1}}}}", normalized)
    normalized = LEGACY_TEST_DATA.sub(r"{{\1}}", normalized)
    return LEGACY_PLACEHOLDER.sub(r"{{\1}}", normalized)


def has_legacy_syntax(template: Any) -> bool:
    return isinstance(template, str) and LEGACY_PLACEHOLDER.search(template) is not None


def has_native_syntax(template: Any) -> bool:
    return isinstance(template, str) and NATIVE_PLACEHOLDER.search(template) is not None


def extract_variables(template: Any) -> list[str]:
    """Return the distinct placeholder bodies of both dialects.

    Pipeline suffixes are dropped from native placeholders, so
    ``{{name | uppercase}}`` contributes ``name``. Order is first appearance,
    legacy placeholders before native ones.
    """
    return analyze_syntax(template).all_variables


def analyze_syntax(template: Any) -> SyntaxAnalysis:
    """Report which dialects a template uses and the variables of each."""
    if not isinstance(template, str) or not template:
        return SyntaxAnalysis()

    legacy_variables = [_legacy_body(m) for m in LEGACY_PLACEHOLDER.finditer(template)]
    native_variables = [_native_body(m) for m in NATIVE_PLACEHOLDER.finditer(template)]

    return SyntaxAnalysis(
        has_legacy_syntax=bool(legacy_variables),
        has_native_syntax=bool(native_variables),
        legacy_variables=legacy_variables,
        native_variables=native_variables,
        all_variables=list(dict.fromkeys(legacy_variables + native_variables)),
    )


def validate_syntax(template: Any) -> SyntaxValidationResult:
    """Check placeholder braces are balanced and not nested.

    Problems are returned as human-readable strings; nothing is raised.
    """
    if not isinstance(template, str) or not template:
        return SyntaxValidationResult()

    errors: list[str] = []

    legacy_open = len(_LEGACY_OPEN.findall(template))
    legacy_closed = len(_LEGACY_CLOSED.findall(template))
    if legacy_open != legacy_closed:
        errors.append(
            f"Mismatched legacy placeholder braces: {legacy_open} opening, {legacy_closed} closing"
        )

    native_open = len(_NATIVE_OPEN.findall(template))
    native_closed = len(_NATIVE_CLOSED.findall(template))
    if native_open != native_closed:
        errors.append(
            f"Mismatched native placeholder braces: {native_open} opening, {native_closed} closing"
        )

    if any(pattern.search(template) for pattern in _NESTED):
        errors.append("Nested placeholders are not supported")

    return SyntaxValidationResult(valid=not errors, errors=errors)


def convert_to_legacy_syntax(template: Any) -> Any:
    """Rewrite native placeholders back to the legacy dialect.

    ``{{env.X}}`` and ``{{responses.last.body.X}}`` map back to their legacy
    namespaces. Any other placeholder is converted only when it is a bare
    name: bodies containing ``(``, ``.`` or a pipeline are left alone.
    """
    if not isinstance(template, str) or not template:
        return template

    converted = _REVERSE_ENV.sub(r"${config.\1}", template)
    converted = _REVERSE_RESPONSE.sub(r"${response.\1}", converted)

    def simple(match: re.Match) -> str:
        name = match.group(1).strip()
        if "(" in name or "." in name:
            return match.group(0)
        return "${" + name + "}"

    return _REVERSE_SIMPLE.sub(simple, converted)


def normalize_array_indexing(template: Any) -> Any:
    """Convert legacy placeholders that index into arrays.

    ``${response.users[0].name}`` becomes
    ``{{responses.last.body.users[0].name}}`` and ``${items[2]}`` becomes
    ``{{items[2]}}``. Other legacy placeholders are left for normalize_syntax.
    """
    if not isinstance(template, str) or not template:
        return template

    normalized = LEGACY_RESPONSE.sub(rf"{{{{{LAST_RESPONSE_PATH}.\1}}}}", template)
    return _LEGACY_INDEXED.sub(r"{{\1[\2]\3}}", normalized)


def normalize_function_calls(template: Any) -> Any:
    """Convert legacy function-call placeholders, e.g. ``${uuid()}`` to ``{{uuid()}}``."""
    if not isinstance(template, str) or not template:
        return template
    return _LEGACY_CALL.sub(r"{{\1}}", template)


def normalize_object(value: Any) -> Any:
    """Apply normalize_syntax to every string inside a nested payload.

    Lists and dicts are rebuilt; dict keys and non-string leaves are kept.
    """
    if isinstance(value, str):
        return normalize_syntax(value)
    if isinstance(value, list):
        return [normalize_object(item) for item in value]
    if isinstance(value, tuple):
        return tuple(normalize_object(item) for item in value)
    if isinstance(value, Mapping):
        return {key: normalize_object(item) for key, item in value.items()}
    return value


def log_syntax_analysis(
    template: Any,
    label: Optional[str] = None,
    log: Optional[structlog.BoundLogger] = None,
) -> SyntaxAnalysis:
    """Log the dialects and variables found in ``template``.

    Validation problems are logged as a warning. Returns the analysis so
    callers can reuse it.
    """
    log = log or logger
    analysis = analyze_syntax(template)

    log.debug(
        "Template syntax analysis",
        label=label,
        has_legacy_syntax=analysis.has_legacy_syntax,
        has_native_syntax=analysis.has_native_syntax,
        legacy_variables=analysis.legacy_variables,
        native_variables=analysis.native_variables,
    )

    validation = validate_syntax(template)
    if not validation.valid:
        log.warning(
            "Template syntax errors",
            label=label,
            errors=validation.errors,
        )

    return analysis


__all__ = [
    "analyze_syntax",
    "convert_to_legacy_syntax",
    "extract_variables",
    "has_legacy_syntax",
    "has_native_syntax",
    "log_syntax_analysis",
    "normalize_array_indexing",
    "normalize_function_calls",
    "normalize_object",
    "normalize_syntax",
    "validate_syntax",
]
