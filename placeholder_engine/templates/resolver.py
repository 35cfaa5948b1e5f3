"""Placeholder resolver for request templates and test data.

This module provides the PlaceholderResolver class which handles:
- Scanning strings for {{expression}} placeholders (delimiters configurable)
- Evaluating pipelines, function calls, dotted paths and index access
- Routing lookups to variables, env, responses, cookies, headers or metadata
- Bounding nested resolution with a depth guard

Expression grammar, in the order it is tried:

    {{name | uppercase | replace('O', '0')}}   pipeline
    {{add(price, 5)}}                          function call
    {{user.profile.age}}                       dotted path
    {{items[0].name}}                          index access
    {{name}}                                   plain variable

A failed expression leaves its placeholder untouched unless
``throw_on_undefined`` is set. A tripped depth guard always propagates.
"""

import json
import re
from collections.abc import Hashable, Mapping
from typing import Any, Optional

import structlog

from placeholder_engine.templates.context import UNDEFINED, PlaceholderContext, is_missing
from placeholder_engine.templates.errors import (
    DepthExceededError,
    InvalidExpressionError,
    MalformedLiteralError,
    PlaceholderError,
)
from placeholder_engine.templates.functions import (
    FunctionRegistry,
    ScopeEvaluator,
    to_display_string,
)
from placeholder_engine.templates.models import ResolverOptions

logger = structlog.get_logger()

_FUNCTION_CALL = re.compile(r"^([A-Za-z_][\w.]*)\((.*)\)$", re.DOTALL)
_IDENTIFIER = re.compile(r"^[A-Za-z_][\w.]*$")
_NUMBER_LITERAL = re.compile(r"^-?\d+(\.\d+)?$")
_INDEX_LITERAL = re.compile(r"^-?\d+$")
_PATH_PART = re.compile(r"\.?([^.\[\]]+)|\[([^\[\]]+)\]")
_KEYWORD_LITERALS = {"true": True, "false": False, "null": None, "undefined": UNDEFINED}
_QUOTES = ("'", '"')
MEMO_LIMIT = 1000


def split_top_level(text: str, separator: str) -> list[str]:
    """Split ``text`` on ``separator`` outside quotes and brackets.

    Example:
        >>> split_top_level("a, f(b, c), 'd,e'", ",")
        ['a', ' f(b, c)', " 'd,e'"]
    """
    parts: list[str] = []
    current: list[str] = []
    depth = 0
    quote: Optional[str] = None
    previous = ""

    for char in text:
        if char in _QUOTES and previous != "\\":
            if quote is None:
                quote = char
            elif char == quote:
                quote = None
        elif quote is None:
            if char in "([{":
                depth += 1
            elif char in ")]}":
                depth -= 1
            elif char == separator and depth == 0:
                parts.append("".join(current))
                current = []
                previous = char
                continue
        current.append(char)
        previous = char

    parts.append("".join(current))
    return parts


def _is_quoted(token: str) -> bool:
    return len(token) >= 2 and token[0] in _QUOTES and token[-1] == token[0]


def _split_path(expression: str) -> Optional[list[tuple[str, bool]]]:
    """Split ``a.b[0].c`` into ``(segment, is_index)`` pairs; None if malformed."""
    parts: list[tuple[str, bool]] = []
    position = 0

    while position < len(expression):
        match = _PATH_PART.match(expression, position)
        if match is None:
            return None
        name, index = match.groups()
        if name is not None:
            dotted = expression[position] == "."
            # Leading segment must not start with a dot, later ones must
            if dotted == (position == 0):
                return None
            parts.append((name.strip(), False))
        else:
            if position == 0:
                return None
            parts.append((index.strip(), True))
        position = match.end()

    return parts or None


def get_member(value: Any, key: Any) -> Any:
    """Read ``value[key]`` (or ``value.key``); misses return UNDEFINED."""
    if is_missing(value) or not isinstance(key, Hashable):
        return UNDEFINED
    if isinstance(value, Mapping):
        if key in value:
            return value[key]
        if not isinstance(key, str) and str(key) in value:
            return value[str(key)]
        return UNDEFINED
    if isinstance(value, (list, tuple, str)):
        if key == "length":
            return len(value)
        if isinstance(key, str) and key.isdigit():
            key = int(key)
        if isinstance(key, int) and not isinstance(key, bool) and 0 <= key < len(value):
            return value[key]
        return UNDEFINED
    if isinstance(key, str) and key and not key.startswith("_"):
        return getattr(value, key, UNDEFINED)
    return UNDEFINED


class PlaceholderResolver:
    """Resolves {{expression}} placeholders against a PlaceholderContext.

    Each resolver owns its context, its function registry and a private memo
    of resolved templates (at most MEMO_LIMIT entries, oldest dropped first).
    The memo is invalidated by the set_* mutators; after writing to
    ``resolver.context`` maps directly, call clear_cache(). Instances are not
    meant to be shared between concurrent units of work; create one per
    worker instead.

    Example:
        resolver = PlaceholderResolver()
        resolver.set_variable("name", "world")

        resolver.resolve("Hello, {{name}}!")        # "Hello, world!"
        resolver.resolve("{{name | uppercase}}")    # "WORLD"
        resolver.resolve("{{add(2, 3)}}")           # "5"
        resolver.resolve("{{missing}}")             # "{{missing}}"
    """

    def __init__(
        self,
        context: Optional[PlaceholderContext] = None,
        options: Optional[ResolverOptions] = None,
        log: Optional[structlog.BoundLogger] = None,
        **overrides: Any,
    ):
        """Initialize the resolver.

        Args:
            context: Value sources; a fresh context (with an environment
                snapshot) is created when omitted
            options: Resolver options
            log: Logger for diagnostics; defaults to the module logger
            **overrides: Individual ResolverOptions fields, applied on top
                of ``options``
        """
        if options is None:
            options = ResolverOptions(**overrides)
        elif overrides:
            options = ResolverOptions(**{**options.model_dump(), **overrides})

        self.options = options
        self.functions = FunctionRegistry()
        self.log = log or logger
        self._context = context if context is not None else PlaceholderContext()
        self._memo: dict[str, str] = {}

        delimiters = options.delimiters
        self._start = delimiters.start
        self._pattern = re.compile(
            f"{re.escape(delimiters.start)}([^{re.escape(delimiters.end)}]+){re.escape(delimiters.end)}"
        )

    @classmethod
    def from_settings(cls, settings: Any, context: Optional[PlaceholderContext] = None) -> "PlaceholderResolver":
        """Build a resolver from EngineSettings."""
        return cls(context=context, options=settings.resolver_options())

    # -------------------------------------------------------------------------
    # Resolution
    # -------------------------------------------------------------------------

    def resolve(self, template: str, depth: int = 0) -> str:
        """Replace every placeholder in ``template`` with its evaluated value.

        Args:
            template: String containing placeholders
            depth: Current nesting depth (callers normally leave this at 0)

        Returns:
            The resolved string; placeholders that could not be evaluated are
            kept verbatim

        Raises:
            DepthExceededError: If nested resolution goes deeper than max_depth
            PlaceholderError: On the first failed expression when
                throw_on_undefined is set
        """
        if not template:
            return template
        return self._resolve(template, depth, self._context)

    def resolve_value(self, value: Any) -> Any:
        """Resolve placeholders in every string inside a nested payload.

        Dict keys are resolved too; non-string leaves are returned untouched.
        """
        if isinstance(value, str):
            return self.resolve(value)
        if isinstance(value, list):
            return [self.resolve_value(item) for item in value]
        if isinstance(value, tuple):
            return tuple(self.resolve_value(item) for item in value)
        if isinstance(value, Mapping):
            return {
                (self.resolve(key) if isinstance(key, str) else key): self.resolve_value(item)
                for key, item in value.items()
            }
        return value

    def has_placeholders(self, text: str) -> bool:
        return bool(text) and self._pattern.search(text) is not None

    def _resolve(self, template: str, depth: int, context: PlaceholderContext) -> str:
        if depth > self.options.max_depth:
            raise DepthExceededError(self.options.max_depth)

        # Only top-level calls on the root context are memoized; nested results
        # must always be re-walked so the depth guard sees the whole chain
        memoize = self.options.cache and depth == 0 and context is self._context
        if memoize and template in self._memo:
            return self._memo[template]

        def substitute(match: re.Match) -> str:
            expression = match.group(1).strip()
            try:
                value = self._evaluate(expression, depth, context)
            except DepthExceededError:
                raise
            except PlaceholderError as e:
                if self.options.throw_on_undefined:
                    raise
                self.log.debug(
                    "Failed to resolve placeholder",
                    expression=expression,
                    error=str(e),
                )
                return match.group(0)

            if value is UNDEFINED:
                return match.group(0)
            return to_display_string(value)

        resolved = self._pattern.sub(substitute, template)

        if memoize:
            if len(self._memo) >= MEMO_LIMIT:
                self._memo.pop(next(iter(self._memo)))
            self._memo[template] = resolved
        return resolved

    def _evaluate(self, expression: str, depth: int, context: PlaceholderContext) -> Any:
        expression = expression.strip()

        if self.options.enable_chaining and "|" in expression:
            stages = split_top_level(expression, "|")
            if len(stages) > 1:
                return self._evaluate_pipeline(stages, depth, context)

        if self.options.enable_functions:
            call = _FUNCTION_CALL.match(expression)
            if call:
                args = self._parse_arguments(call.group(2), depth, context)
                return self._call(call.group(1), args, depth, context)

        value = self._resolve_path(expression, depth, context)
        # A variable holding a template is resolved in turn, one level deeper
        if isinstance(value, str) and self._start in value:
            value = self._resolve(value, depth + 1, context)
        return value

    def _evaluate_pipeline(
        self, stages: list[str], depth: int, context: PlaceholderContext
    ) -> Any:
        head, *rest = (stage.strip() for stage in stages)
        result = self._parse_argument(head, depth, context)

        for stage in rest:
            call = _FUNCTION_CALL.match(stage)
            if call:
                args = self._parse_arguments(call.group(2), depth, context)
                result = self._call(call.group(1), [result, *args], depth, context)
            elif _IDENTIFIER.match(stage):
                spec = self.functions.lookup_stage(stage, context.functions)
                if spec is None:
                    self.log.debug("Skipping unknown pipeline stage", stage=stage)
                    continue
                result = self.functions.invoke(
                    spec, [result], evaluate=self._scope_evaluator(depth, context)
                )
            else:
                raise InvalidExpressionError(stage, "pipeline stage must be a name or a call")

        return result

    def _parse_arguments(
        self, args_text: str, depth: int, context: PlaceholderContext
    ) -> list[Any]:
        if not args_text.strip():
            return []
        tokens = [token.strip() for token in split_top_level(args_text, ",")]
        if tokens and not tokens[-1]:
            tokens.pop()
        return [self._parse_argument(token, depth, context) for token in tokens]

    def _parse_argument(self, token: str, depth: int, context: PlaceholderContext) -> Any:
        if _is_quoted(token):
            return token[1:-1]
        if _NUMBER_LITERAL.match(token):
            return float(token) if "." in token else int(token)
        if token in _KEYWORD_LITERALS:
            return _KEYWORD_LITERALS[token]
        if (token.startswith("[") and token.endswith("]")) or (
            token.startswith("{") and token.endswith("}")
        ):
            try:
                return json.loads(token)
            except json.JSONDecodeError as e:
                raise MalformedLiteralError(token, str(e)) from e
        if not token:
            return UNDEFINED
        return self._evaluate(token, depth, context)

    def _call(
        self, name: str, args: list[Any], depth: int, context: PlaceholderContext
    ) -> Any:
        return self.functions.call(
            name,
            args,
            context_functions=context.functions,
            evaluate=self._scope_evaluator(depth, context),
        )

    def _scope_evaluator(self, depth: int, context: PlaceholderContext) -> ScopeEvaluator:
        def evaluate(expression: str, **bindings: Any) -> Any:
            return self._evaluate(expression, depth, context.child(**bindings))

        return evaluate

    def _resolve_path(self, expression: str, depth: int, context: PlaceholderContext) -> Any:
        parts = _split_path(expression)
        if parts is None:
            return UNDEFINED

        head, _ = parts[0]
        source = context.namespace(head) if len(parts) > 1 and not parts[1][1] else None
        if source is not None:
            value = source.get(parts[1][0], UNDEFINED)
            remaining = parts[2:]
        elif expression in context.variables:
            # Flattened keys such as "user.id" stored verbatim
            return context.variables[expression]
        else:
            value = context.variables.get(head, UNDEFINED)
            remaining = parts[1:]

        for segment, is_index in remaining:
            if is_missing(value):
                return UNDEFINED
            key = self._index_key(segment, depth, context) if is_index else segment
            value = get_member(value, key)

        return value

    def _index_key(self, segment: str, depth: int, context: PlaceholderContext) -> Any:
        if _INDEX_LITERAL.match(segment):
            return int(segment)
        if _is_quoted(segment):
            return segment[1:-1]
        key = self._evaluate(segment, depth, context)
        if isinstance(key, float) and key.is_integer():
            return int(key)
        return key

    # -------------------------------------------------------------------------
    # Context management
    # -------------------------------------------------------------------------

    @property
    def context(self) -> PlaceholderContext:
        """The live context. Direct writes to its maps need a clear_cache()."""
        return self._context

    def set_context(self, context: PlaceholderContext) -> None:
        self._context = context
        self._memo.clear()

    def set_variable(self, name: str, value: Any) -> None:
        self._context.variables[name] = value
        self._memo.clear()

    def get_variable(self, name: str) -> Any:
        return self._context.variables.get(name)

    def set_function(self, name: str, func: Any) -> None:
        self._context.functions[name] = func
        self._memo.clear()

    def set_transformer(self, name: str, func: Any) -> None:
        self.functions.register_transformer(name, func)
        self._memo.clear()

    def set_response(self, name: str, response: Any) -> None:
        self._context.responses[name] = response
        self._memo.clear()

    def set_cookie(self, name: str, value: str) -> None:
        self._context.cookies[name] = value
        self._memo.clear()

    def set_header(self, name: str, value: str) -> None:
        self._context.headers[name] = value
        self._memo.clear()

    def set_metadata(self, name: str, value: Any) -> None:
        self._context.metadata[name] = value
        self._memo.clear()

    def clear_cache(self) -> None:
        """Drop memoized template results."""
        self._memo.clear()

    @property
    def cache_size(self) -> int:
        return len(self._memo)

    def export_state(self) -> dict[str, Any]:
        """Snapshot the context as ``[key, value]`` pair lists.

        Functions, transformers and responses are listed by name only.
        """
        context = self._context
        return {
            "variables": [[key, value] for key, value in context.variables.items()],
            "functions": list(context.functions),
            "transformers": self.functions.transformer_names,
            "responses": list(context.responses),
            "cookies": [[key, value] for key, value in context.cookies.items()],
            "headers": [[key, value] for key, value in context.headers.items()],
            "metadata": [[key, value] for key, value in context.metadata.items()],
        }

    def import_state(self, data: Mapping[str, Any]) -> None:
        """Replace variables, cookies, headers and metadata from an export."""
        targets = {
            "variables": self._context.variables,
            "cookies": self._context.cookies,
            "headers": self._context.headers,
            "metadata": self._context.metadata,
        }
        for section, target in targets.items():
            pairs = data.get(section)
            if pairs is None:
                continue
            target.clear()
            for key, value in pairs:
                target[key] = value

        self._memo.clear()
        self.log.debug("Resolver state imported", sections=[s for s in targets if s in data])
