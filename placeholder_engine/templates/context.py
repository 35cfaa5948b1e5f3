"""Evaluation context for placeholder resolution.

A PlaceholderContext holds the layered value sources an expression can read:
user variables, an environment snapshot, prior responses, cookies, headers and
metadata, plus context-registered functions. Lookups are routed by prefix:

    env.HOME            -> env["HOME"]
    response.login.body -> responses["login"]["body"]
    cookie.session      -> cookies["session"]
    header.Accept       -> headers["Accept"]
    meta.run_id         -> metadata["run_id"]
    anything_else       -> variables[...]

A miss yields UNDEFINED, never an exception, so the placeholder is left as is.
"""

import os
from collections import ChainMap
from collections.abc import Callable, Mapping, MutableMapping
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Optional


class _Undefined:
    """Marker for "no value", distinct from ``None`` (which renders as null)."""

    _instance: Optional["_Undefined"] = None

    def __new__(cls) -> "_Undefined":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "undefined"

    def __copy__(self) -> "_Undefined":
        return self

    def __deepcopy__(self, memo: dict) -> "_Undefined":
        return self


UNDEFINED = _Undefined()


def is_missing(value: Any) -> bool:
    """True for ``None`` and UNDEFINED."""
    return value is None or value is UNDEFINED


def _environment_snapshot() -> Mapping[str, str]:
    return MappingProxyType(dict(os.environ))


@dataclass
class PlaceholderContext:
    """Value sources consulted while resolving placeholders.

    Attributes:
        variables: User variables (the default namespace)
        env: Read-only snapshot of the process environment
        functions: Context-registered callables, checked after built-ins
        responses: Named prior responses (dicts or objects with attributes)
        cookies: Cookie name to value
        headers: Header name to value
        metadata: Free-form metadata
    """

    variables: MutableMapping[str, Any] = field(default_factory=dict)
    env: Mapping[str, str] = field(default_factory=_environment_snapshot)
    functions: dict[str, Callable[..., Any]] = field(default_factory=dict)
    responses: dict[str, Any] = field(default_factory=dict)
    cookies: dict[str, str] = field(default_factory=dict)
    headers: dict[str, str] = field(default_factory=dict)
    metadata: dict[str, Any] = field(default_factory=dict)

    def namespace(self, prefix: str) -> Optional[Mapping[str, Any]]:
        """Return the map a routing prefix points at, or None for plain names."""
        namespaces: dict[str, Mapping[str, Any]] = {
            "env": self.env,
            "response": self.responses,
            "responses": self.responses,
            "cookie": self.cookies,
            "header": self.headers,
            "meta": self.metadata,
        }
        return namespaces.get(prefix)

    def lookup(self, name: str) -> Any:
        """Resolve a (possibly prefixed) name to its value or UNDEFINED."""
        prefix, dot, key = name.partition(".")
        if dot and key:
            source = self.namespace(prefix)
            if source is not None:
                return source.get(key, UNDEFINED)
        return self.variables.get(name, UNDEFINED)

    def child(self, **bindings: Any) -> "PlaceholderContext":
        """Create a scope whose variables shadow ``bindings`` over this one.

        Writes to the child's variables land in the child layer only; the
        other maps are shared with the parent.
        """
        return replace(self, variables=ChainMap(dict(bindings), self.variables))
