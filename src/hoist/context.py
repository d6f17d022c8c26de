"""Active host context and ``{{key}}`` template parsing."""

import re
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Iterator

if TYPE_CHECKING:
    from hoist.hosts import Host


TEMPLATE_PATTERN = re.compile(r"\{\{\s*([\w.-]+)\s*\}\}")

# Nested templates deeper than this are treated as a reference loop.
MAX_PARSE_DEPTH = 32


class NoActiveContext(Exception):
    """Raised when a deferred value asks for the current host outside a context."""

    pass


class UnknownVariable(Exception):
    """Raised when a template references a key the host does not define."""

    pass


@dataclass
class Context:
    """The host a deferred value or template is evaluated for.

    Attributes:
        host: The active host.
    """

    host: "Host"


_local = threading.local()


def _stack() -> list[Context]:
    stack = getattr(_local, "stack", None)
    if stack is None:
        stack = _local.stack = []
    return stack


def push(context: Context) -> None:
    """Make ``context`` the active context for this thread."""
    _stack().append(context)


def pop() -> Context:
    """Remove and return the active context."""
    return _stack().pop()


def current() -> Context:
    """Return the active context.

    Raises:
        NoActiveContext: If nothing has been pushed on this thread.
    """
    stack = _stack()
    if not stack:
        raise NoActiveContext("No host context is active.")
    return stack[-1]


@contextmanager
def bound(host: "Host") -> Iterator[Context]:
    """Push a context for ``host`` and pop it again, even on failure."""
    context = Context(host)
    push(context)
    try:
        yield context
    finally:
        pop()


def parse(value: Any, host: "Host", _depth: int = 0) -> Any:
    """Substitute ``{{key}}`` references in ``value`` with host attributes.

    Non-string values are returned unchanged. Substituted values are parsed
    again, so templates may reference other templates.

    Args:
        value: A string template or any other value.
        host: Host whose attributes provide the substitutions.

    Returns:
        Any: The resolved value.

    Raises:
        UnknownVariable: If a referenced key is not defined on the host, or
            templates reference each other in a loop.
    """
    if not isinstance(value, str) or "{{" not in value:
        return value
    if _depth > MAX_PARSE_DEPTH:
        raise UnknownVariable(f"Template nesting too deep while parsing '{value}'.")

    def _substitute(match: re.Match) -> str:
        key = match.group(1)
        if not host.has(key):
            raise UnknownVariable(
                f"Variable '{key}' is not defined for host '{host.alias}'."
            )
        resolved = parse(host.get(key), host, _depth + 1)
        if isinstance(resolved, (list, tuple)):
            return ", ".join(str(item) for item in resolved)
        return str(resolved)

    return TEMPLATE_PATTERN.sub(_substitute, value)
