"""Built-in template functions and the three-tier function registry.

Templates were written against JavaScript value semantics, so the helpers
here coerce and render values the same way: ``Number()``-style numeric
coercion, JS truthiness, ``typeof`` names and display strings such as
``true``, ``null`` and ``5`` (not ``5.0``).

Lookup order is fixed: built-in, then context-registered, then transformer.
The first tier that knows a name wins; there is no overloading by arity.
"""

import base64
import hashlib
import hmac
import json
import math
import random
import re
import string
import time
import uuid
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import Any, Optional, Union
from urllib.parse import quote, unquote

import structlog

from placeholder_engine.templates.context import UNDEFINED, is_missing
from placeholder_engine.templates.errors import (
    FunctionCallError,
    FunctionNotFoundError,
    InvalidExpressionError,
    PlaceholderError,
)

logger = structlog.get_logger()

Number = Union[int, float]

# Scoped functions receive this as their first argument: evaluate(expression, **bindings)
ScopeEvaluator = Callable[..., Any]

# Month and year are fixed-length approximations, not calendar arithmetic
UNIT_MILLISECONDS: dict[str, int] = {
    "second": 1_000,
    "minute": 60_000,
    "hour": 3_600_000,
    "day": 86_400_000,
    "week": 604_800_000,
    "month": 2_592_000_000,
    "year": 31_536_000_000,
}

_INTEGER = re.compile(r"[+-]?\d+")
_HTML_ENTITIES = {"&": "&amp;", "<": "&lt;", ">": "&gt;", '"': "&quot;", "'": "&#39;"}
_HTML_DECODE = {entity: char for char, entity in _HTML_ENTITIES.items()}
_BASE36 = string.digits + string.ascii_lowercase

FIRST_NAMES = ["John", "Jane", "Bob", "Alice", "Charlie", "Emma", "Oliver", "Sophia"]
LAST_NAMES = ["Smith", "Johnson", "Williams", "Brown", "Jones", "Garcia", "Miller", "Davis"]
EMAIL_DOMAINS = ["gmail.com", "yahoo.com", "outlook.com", "example.com", "test.com"]
STREETS = ["Main St", "Oak Ave", "Elm St", "Park Rd", "First Ave"]
CITIES = ["New York", "Los Angeles", "Chicago", "Houston", "Phoenix"]
COMPANY_PREFIXES = ["Tech", "Global", "Advanced", "Dynamic", "Smart"]
COMPANY_SUFFIXES = ["Solutions", "Systems", "Corp", "Industries", "Group"]
LOREM_WORDS = [
    "lorem", "ipsum", "dolor", "sit", "amet", "consectetur", "adipiscing", "elit",
    "sed", "do", "eiusmod", "tempor", "incididunt", "ut", "labore", "et", "dolore",
    "magna", "aliqua",
]


# =============================================================================
# Value semantics
# =============================================================================


def to_display_string(value: Any) -> str:
    """Render a value the way it is substituted into a template."""
    if isinstance(value, str):
        return value
    if value is UNDEFINED:
        return "undefined"
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        if value.is_integer():
            return str(int(value))
        return repr(value)
    if isinstance(value, int):
        return str(value)
    if isinstance(value, datetime):
        return _iso(value)
    if isinstance(value, (list, tuple, dict)):
        return json.dumps(
            value, separators=(",", ":"), ensure_ascii=False, default=_json_default
        )
    return str(value)


def _json_default(value: Any) -> Any:
    if value is UNDEFINED:
        return None
    if isinstance(value, datetime):
        return _iso(value)
    return str(value)


def is_truthy(value: Any) -> bool:
    """JavaScript truthiness: empty containers are truthy, NaN is not."""
    if is_missing(value):
        return False
    if isinstance(value, float) and math.isnan(value):
        return False
    if isinstance(value, (list, tuple, dict)):
        return True
    return bool(value)


def js_typeof(value: Any) -> str:
    if value is UNDEFINED:
        return "undefined"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if callable(value) and not isinstance(value, (Mapping, list, tuple)):
        return "function"
    return "object"


def to_number(value: Any) -> Number:
    """Coerce like JavaScript ``Number()``; unparsable input becomes NaN."""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return value
    if value is None:
        return 0
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return 0
        if _INTEGER.fullmatch(text):
            return int(text)
        try:
            return float(text)
        except ValueError:
            return math.nan
    return math.nan


def _to_int(value: Any, default: int = 0) -> int:
    number = to_number(value)
    if isinstance(number, float) and not math.isfinite(number):
        return default
    return int(number)


def _arg(value: Any, default: Any) -> Any:
    """An explicit ``undefined`` argument falls back to the default, as in JS."""
    return default if value is UNDEFINED else value


def _same_value(left: Any, right: Any) -> bool:
    if isinstance(left, bool) != isinstance(right, bool):
        return False
    if js_typeof(left) != js_typeof(right):
        return False
    return left == right


def _sequence(value: Any) -> Union[list, tuple, str]:
    if isinstance(value, (list, tuple, str)):
        return value
    raise TypeError(f"expected an array, got {js_typeof(value)}")


def _mapping(value: Any) -> Mapping[str, Any]:
    if isinstance(value, Mapping):
        return value
    if isinstance(value, (list, tuple, str)):
        return {str(index): item for index, item in enumerate(value)}
    if is_missing(value):
        raise TypeError("cannot convert undefined or null to object")
    return {}


# =============================================================================
# String and number functions
# =============================================================================


def _substring(value: Any, start: Any = 0, end: Any = UNDEFINED) -> str:
    text = to_display_string(value)
    length = len(text)
    begin = min(max(_to_int(start), 0), length)
    finish = length if is_missing(end) else min(max(_to_int(end), 0), length)
    if begin > finish:
        begin, finish = finish, begin
    return text[begin:finish]


def _replace(value: Any, search: Any, replacement: Any) -> str:
    literal = to_display_string(replacement)
    return re.sub(to_display_string(search), lambda _match: literal, to_display_string(value))


def _split(value: Any, separator: Any = UNDEFINED) -> list[str]:
    text = to_display_string(value)
    if is_missing(separator):
        return [text]
    separator = to_display_string(separator)
    if separator == "":
        return list(text)
    return text.split(separator)


def _join(items: Any, separator: Any = ",") -> str:
    separator = to_display_string(_arg(separator, ","))
    return separator.join(
        "" if is_missing(item) else to_display_string(item) for item in _sequence(items)
    )


def _length(value: Any) -> int:
    if isinstance(value, (str, list, tuple, Mapping)):
        return len(value)
    return 0


def _divide(left: Any, right: Any) -> Number:
    dividend, divisor = to_number(left), to_number(right)
    if divisor == 0:
        if dividend == 0 or math.isnan(dividend):
            return math.nan
        return math.copysign(math.inf, dividend)
    return dividend / divisor


def _mod(left: Any, right: Any) -> Number:
    dividend, divisor = to_number(left), to_number(right)
    if divisor == 0 or not math.isfinite(dividend):
        return math.nan
    result = math.fmod(dividend, divisor)
    if isinstance(dividend, int) and isinstance(divisor, int):
        return int(result)
    return result


def _round(value: Any, decimals: Any = 0) -> Number:
    number = to_number(value)
    if not math.isfinite(number):
        return number
    factor = 10 ** _to_int(_arg(decimals, 0))
    return math.floor(number * factor + 0.5) / factor


def _finite(operation: Callable[[float], Number]) -> Callable[[Any], Number]:
    def apply(value: Any) -> Number:
        number = to_number(value)
        return operation(number) if math.isfinite(number) else number

    return apply


def _extreme(pick: Callable[..., Number], empty: float) -> Callable[..., Number]:
    def apply(*values: Any) -> Number:
        numbers = [to_number(value) for value in values]
        if not numbers:
            return empty
        if any(isinstance(n, float) and math.isnan(n) for n in numbers):
            return math.nan
        return pick(numbers)

    return apply


def _random(low: Any = 0, high: Any = 1) -> float:
    low, high = to_number(_arg(low, 0)), to_number(_arg(high, 1))
    return random.random() * (high - low) + low


def _random_int(low: Any, high: Any) -> int:
    low, high = _to_int(low), _to_int(high)
    return math.floor(random.random() * (high - low + 1)) + low


# =============================================================================
# Date functions
# =============================================================================


def _iso(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    moment = moment.astimezone(UTC)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def _to_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=UTC)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value / 1000, tz=UTC)
    text = to_display_string(value).strip()
    if _INTEGER.fullmatch(text):
        return datetime.fromtimestamp(int(text) / 1000, tz=UTC)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


def format_date(moment: datetime, pattern: Optional[str] = None) -> str:
    """Format with YYYY/MM/DD/HH/mm/ss/SSS tokens in local time; ISO when no pattern."""
    if not pattern:
        return _iso(moment)
    local = moment.astimezone()
    replacements = {
        "YYYY": f"{local.year:04d}",
        "MM": f"{local.month:02d}",
        "DD": f"{local.day:02d}",
        "HH": f"{local.hour:02d}",
        "mm": f"{local.minute:02d}",
        "ss": f"{local.second:02d}",
        "SSS": f"{local.microsecond // 1000:03d}",
    }
    result = pattern
    for token, replacement in replacements.items():
        result = result.replace(token, replacement)
    return result


def _date(pattern: Any = UNDEFINED) -> str:
    pattern = None if is_missing(pattern) else to_display_string(pattern)
    return format_date(datetime.now(UTC), pattern)


def _date_add(value: Any, amount: Any, unit: Any) -> str:
    moment = _to_datetime(value)
    milliseconds = UNIT_MILLISECONDS.get(to_display_string(unit))
    if milliseconds:
        moment = moment + timedelta(milliseconds=to_number(amount) * milliseconds)
    return _iso(moment)


def _date_diff(first: Any, second: Any, unit: Any) -> int:
    milliseconds = UNIT_MILLISECONDS.get(to_display_string(unit))
    if not milliseconds:
        return 0
    elapsed = (_to_datetime(second) - _to_datetime(first)).total_seconds() * 1000
    return math.floor(elapsed / milliseconds)


def _format_date(value: Any, pattern: Any = UNDEFINED) -> str:
    pattern = None if is_missing(pattern) else to_display_string(pattern)
    return format_date(_to_datetime(value), pattern)


def _parse_date(value: Any) -> int:
    return round(_to_datetime(value).timestamp() * 1000)


# =============================================================================
# Encoding, hashing and identifiers
# =============================================================================


def _html_encode(value: Any) -> str:
    return re.sub(r"[&<>\"']", lambda m: _HTML_ENTITIES[m.group(0)], to_display_string(value))


def _html_decode(value: Any) -> str:
    return re.sub(
        r"&[a-z]+;|&#\d+;",
        lambda m: _HTML_DECODE.get(m.group(0), m.group(0)),
        to_display_string(value),
        flags=re.IGNORECASE,
    )


def _json_encode(value: Any) -> Any:
    if value is UNDEFINED:
        return UNDEFINED
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False, default=_json_default)


def _digest(algorithm: str) -> Callable[[Any], str]:
    def apply(value: Any) -> str:
        return hashlib.new(algorithm, to_display_string(value).encode("utf-8")).hexdigest()

    return apply


def _hmac(value: Any, key: Any, algorithm: Any = "sha256") -> str:
    return hmac.new(
        to_display_string(key).encode("utf-8"),
        to_display_string(value).encode("utf-8"),
        to_display_string(_arg(algorithm, "sha256")),
    ).hexdigest()


def _short_id() -> str:
    return "".join(random.choices(_BASE36, k=11))


# =============================================================================
# Array and object functions
# =============================================================================


def _first(items: Any) -> Any:
    sequence = _sequence(items)
    return sequence[0] if sequence else UNDEFINED


def _last(items: Any) -> Any:
    sequence = _sequence(items)
    return sequence[-1] if sequence else UNDEFINED


def _slice(items: Any, start: Any = 0, end: Any = UNDEFINED) -> Any:
    sequence = _sequence(items)
    stop = None if is_missing(end) else _to_int(end)
    result = sequence[_to_int(start):stop]
    return list(result) if isinstance(result, tuple) else result


def _sort(items: Any) -> list:
    # Default JS ordering: compare display strings, undefined last
    return sorted(
        _sequence(items), key=lambda item: (item is UNDEFINED, to_display_string(item))
    )


def _unique(items: Any) -> list:
    result: list = []
    for item in _sequence(items):
        if not any(_same_value(item, seen) for seen in result):
            result.append(item)
    return result


def _filter(evaluate: ScopeEvaluator, items: Any, predicate: Any) -> list:
    expression = to_display_string(predicate)
    return [
        item
        for index, item in enumerate(_sequence(items))
        if is_truthy(evaluate(expression, item=item, index=index))
    ]


def _map(evaluate: ScopeEvaluator, items: Any, transform: Any) -> list:
    expression = to_display_string(transform)
    return [
        evaluate(expression, item=item, index=index)
        for index, item in enumerate(_sequence(items))
    ]


def _merge(*objects: Any) -> dict[str, Any]:
    merged: dict[str, Any] = {}
    for obj in objects:
        if not is_missing(obj):
            merged.update(_mapping(obj))
    return merged


def _pick(obj: Any, *keys: Any) -> dict[str, Any]:
    source = _mapping(obj)
    names = [to_display_string(key) for key in keys]
    return {name: source[name] for name in names if name in source}


def _omit(obj: Any, *keys: Any) -> dict[str, Any]:
    names = {to_display_string(key) for key in keys}
    return {key: value for key, value in _mapping(obj).items() if key not in names}


# =============================================================================
# Conditional and type functions
# =============================================================================


def _if(condition: Any, when_true: Any = UNDEFINED, when_false: Any = UNDEFINED) -> Any:
    return when_true if is_truthy(condition) else when_false


def _switch(value: Any, *cases: Any) -> Any:
    for index in range(0, len(cases) - 1, 2):
        if _same_value(value, cases[index]):
            return cases[index + 1]
    # An odd trailing argument is the default
    return cases[-1] if len(cases) % 2 == 1 else UNDEFINED


def _default(value: Any, fallback: Any = UNDEFINED) -> Any:
    return fallback if is_missing(value) else value


def _is_object(value: Any) -> bool:
    return js_typeof(value) == "object" and value is not None and not isinstance(value, (list, tuple))


# =============================================================================
# Fake test data
# =============================================================================


def _fake_name() -> str:
    return f"{random.choice(FIRST_NAMES)} {random.choice(LAST_NAMES)}"


def _fake_email() -> str:
    username = "".join(random.choices(_BASE36, k=8))
    return f"{username}@{random.choice(EMAIL_DOMAINS)}"


def _fake_phone() -> str:
    return (
        f"+1-{random.randint(100, 999)}-{random.randint(100, 999)}-{random.randint(1000, 9999)}"
    )


def _fake_address() -> str:
    return f"{random.randint(1, 9999)} {random.choice(STREETS)}, {random.choice(CITIES)}"


def _fake_company() -> str:
    return f"{random.choice(COMPANY_PREFIXES)} {random.choice(COMPANY_SUFFIXES)}"


def _fake_lorem(words: Any = 10) -> str:
    return " ".join(random.choice(LOREM_WORDS) for _ in range(_to_int(_arg(words, 10), 10)))


def _fake_number(low: Any = 0, high: Any = 100) -> int:
    return _random_int(_arg(low, 0), _arg(high, 100))


# =============================================================================
# Registry
# =============================================================================


class FunctionTier(str, Enum):
    """Registry tiers, in lookup order."""

    BUILTIN = "builtin"
    CONTEXT = "context"
    TRANSFORMER = "transformer"


@dataclass(frozen=True)
class FunctionSpec:
    """A registered callable.

    Attributes:
        name: Name used in templates
        func: The callable, invoked with the evaluated arguments
        tier: Registry tier the callable belongs to
        scoped: When True, ``func`` receives a ScopeEvaluator before its arguments
    """

    name: str
    func: Callable[..., Any]
    tier: FunctionTier = FunctionTier.BUILTIN
    scoped: bool = False

    def invoke(self, args: list[Any], evaluate: Optional[ScopeEvaluator] = None) -> Any:
        if self.scoped:
            if evaluate is None:
                raise InvalidExpressionError(self.name, "function requires an evaluation scope")
            return self.func(evaluate, *args)
        return self.func(*args)


def _builtin(name: str, func: Callable[..., Any], scoped: bool = False) -> tuple[str, FunctionSpec]:
    return name, FunctionSpec(name=name, func=func, tier=FunctionTier.BUILTIN, scoped=scoped)


BUILTIN_FUNCTIONS: dict[str, FunctionSpec] = dict([
    # String
    _builtin("uppercase", lambda value: to_display_string(value).upper()),
    _builtin("lowercase", lambda value: to_display_string(value).lower()),
    _builtin("capitalize", lambda value: to_display_string(value)[:1].upper() + to_display_string(value)[1:]),
    _builtin("trim", lambda value: to_display_string(value).strip()),
    _builtin("substring", _substring),
    _builtin("replace", _replace),
    _builtin("split", _split),
    _builtin("join", _join),
    _builtin("length", _length),
    # Number
    _builtin("add", lambda a, b: to_number(a) + to_number(b)),
    _builtin("subtract", lambda a, b: to_number(a) - to_number(b)),
    _builtin("multiply", lambda a, b: to_number(a) * to_number(b)),
    _builtin("divide", _divide),
    _builtin("mod", _mod),
    _builtin("round", _round),
    _builtin("floor", _finite(math.floor)),
    _builtin("ceil", _finite(math.ceil)),
    _builtin("abs", lambda value: abs(to_number(value))),
    _builtin("min", _extreme(min, math.inf)),
    _builtin("max", _extreme(max, -math.inf)),
    _builtin("random", _random),
    _builtin("randomInt", _random_int),
    # Date/time
    _builtin("now", lambda: int(time.time() * 1000)),
    _builtin("timestamp", lambda: _iso(datetime.now(UTC))),
    _builtin("date", _date),
    _builtin("dateAdd", _date_add),
    _builtin("dateDiff", _date_diff),
    _builtin("formatDate", _format_date),
    _builtin("parseDate", _parse_date),
    # Encoding
    _builtin("base64", lambda value: base64.b64encode(to_display_string(value).encode("utf-8")).decode("ascii")),
    _builtin("base64Decode", lambda value: base64.b64decode(to_display_string(value)).decode("utf-8", errors="replace")),
    _builtin("urlEncode", lambda value: quote(to_display_string(value), safe="-_.!~*'()")),
    _builtin("urlDecode", lambda value: unquote(to_display_string(value))),
    _builtin("htmlEncode", _html_encode),
    _builtin("htmlDecode", _html_decode),
    _builtin("jsonEncode", _json_encode),
    _builtin("jsonDecode", lambda value: json.loads(to_display_string(value))),
    # Hashing
    _builtin("md5", _digest("md5")),
    _builtin("sha1", _digest("sha1")),
    _builtin("sha256", _digest("sha256")),
    _builtin("sha512", _digest("sha512")),
    _builtin("hmac", _hmac),
    # Identifiers
    _builtin("uuid", lambda: str(uuid.uuid4())),
    _builtin("guid", lambda: str(uuid.uuid4())),
    _builtin("shortId", _short_id),
    # Array
    _builtin("first", _first),
    _builtin("last", _last),
    _builtin("slice", _slice),
    _builtin("reverse", lambda items: list(reversed(_sequence(items)))),
    _builtin("sort", _sort),
    _builtin("unique", _unique),
    _builtin("filter", _filter, scoped=True),
    _builtin("map", _map, scoped=True),
    # Object
    _builtin("keys", lambda obj: list(_mapping(obj).keys())),
    _builtin("values", lambda obj: list(_mapping(obj).values())),
    _builtin("entries", lambda obj: [[key, value] for key, value in _mapping(obj).items()]),
    _builtin("merge", _merge),
    _builtin("pick", _pick),
    _builtin("omit", _omit),
    # Conditional
    _builtin("if", _if),
    _builtin("switch", _switch),
    _builtin("default", _default),
    _builtin("exists", lambda value: not is_missing(value)),
    # Type inspection
    _builtin("type", js_typeof),
    _builtin("isString", lambda value: isinstance(value, str)),
    _builtin("isNumber", lambda value: js_typeof(value) == "number"),
    _builtin("isBoolean", lambda value: isinstance(value, bool)),
    _builtin("isArray", lambda value: isinstance(value, (list, tuple))),
    _builtin("isObject", _is_object),
    _builtin("isNull", lambda value: value is None),
    _builtin("isUndefined", lambda value: value is UNDEFINED),
    # Fake test data
    _builtin("faker.name", _fake_name),
    _builtin("faker.email", _fake_email),
    _builtin("faker.phone", _fake_phone),
    _builtin("faker.address", _fake_address),
    _builtin("faker.company", _fake_company),
    _builtin("faker.lorem", _fake_lorem),
    _builtin("faker.number", _fake_number),
    _builtin("faker.boolean", lambda: random.random() > 0.5),
])


class FunctionRegistry:
    """Name to callable lookup across the built-in, context and transformer tiers.

    Context functions live on the PlaceholderContext (which can be swapped), so
    they are passed in per lookup rather than stored here.

    Example:
        registry = FunctionRegistry()
        registry.register_transformer("slugify", lambda s: s.lower().replace(" ", "-"))
        registry.call("slugify", ["Hello World"])  # "hello-world"
    """

    def __init__(self, builtins: Optional[Mapping[str, FunctionSpec]] = None):
        self._builtins: dict[str, FunctionSpec] = dict(
            BUILTIN_FUNCTIONS if builtins is None else builtins
        )
        self._transformers: dict[str, FunctionSpec] = {}

    @property
    def builtin_names(self) -> list[str]:
        return list(self._builtins)

    @property
    def transformer_names(self) -> list[str]:
        return list(self._transformers)

    def register_transformer(self, name: str, func: Callable[..., Any]) -> None:
        self._transformers[name] = FunctionSpec(
            name=name, func=func, tier=FunctionTier.TRANSFORMER
        )

    def lookup(
        self,
        name: str,
        context_functions: Optional[Mapping[str, Callable[..., Any]]] = None,
    ) -> FunctionSpec:
        """Find ``name`` in tier order.

        Raises:
            FunctionNotFoundError: If no tier knows the name
        """
        if name in self._builtins:
            return self._builtins[name]
        if context_functions and name in context_functions:
            return FunctionSpec(
                name=name, func=context_functions[name], tier=FunctionTier.CONTEXT
            )
        if name in self._transformers:
            return self._transformers[name]
        raise FunctionNotFoundError(name)

    def lookup_stage(
        self,
        name: str,
        context_functions: Optional[Mapping[str, Callable[..., Any]]] = None,
    ) -> Optional[FunctionSpec]:
        """Find a bare pipeline stage: transformer, then built-in, then context.

        Returns None for an unknown name so the stage can be skipped.
        """
        if name in self._transformers:
            return self._transformers[name]
        if name in self._builtins:
            return self._builtins[name]
        if context_functions and name in context_functions:
            return FunctionSpec(
                name=name, func=context_functions[name], tier=FunctionTier.CONTEXT
            )
        return None

    def has(
        self,
        name: str,
        context_functions: Optional[Mapping[str, Callable[..., Any]]] = None,
    ) -> bool:
        try:
            self.lookup(name, context_functions)
        except FunctionNotFoundError:
            return False
        return True

    def call(
        self,
        name: str,
        args: list[Any],
        context_functions: Optional[Mapping[str, Callable[..., Any]]] = None,
        evaluate: Optional[ScopeEvaluator] = None,
    ) -> Any:
        """Look up ``name`` and call it with ``args``.

        Engine errors raised inside the call (including a tripped depth guard
        from a nested evaluation) pass through unchanged; anything else the
        function raises is wrapped in FunctionCallError.
        """
        return self.invoke(self.lookup(name, context_functions), args, evaluate)

    def invoke(
        self,
        spec: FunctionSpec,
        args: list[Any],
        evaluate: Optional[ScopeEvaluator] = None,
    ) -> Any:
        """Call an already looked-up function, wrapping non-engine errors."""
        name = spec.name
        try:
            return spec.invoke(args, evaluate)
        except PlaceholderError:
            raise
        except Exception as e:
            logger.debug(
                "Template function raised",
                function=name,
                tier=spec.tier.value,
                error=str(e),
            )
            raise FunctionCallError(name, e) from e
