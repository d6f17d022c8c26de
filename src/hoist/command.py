"""Shell command construction and argument escaping.

Commands are built as small immutable trees and rendered to POSIX sh text.
Three node kinds exist:

    Raw      literal shell syntax spliced verbatim (parens, operators, tokens)
    Nil      an empty placeholder, invisible inside argument lists
    Command  a command name followed by arguments, redirections and controls

String arguments are always escaped on render, so no argument value can leave
its quoting context no matter how deeply commands are nested.
"""

from dataclasses import dataclass, field
from typing import Union


# Remote utility used to turn hex text back into bytes.
HEX_DECODER = "xxd -r -p"

# No-op command, used as the fallback in ignore_error() and setopt().
TRUE_COMMAND = "true"


class _Node:
    """Behaviour shared by every node kind."""

    def ignore_error(self) -> "Raw":
        """Mask a non-zero exit status of this node.

        Returns:
            Raw: ``first(self, true)``.
        """
        return first(self, raw(TRUE_COMMAND))

    def __str__(self) -> str:
        return render(self)


@dataclass(frozen=True)
class Raw(_Node):
    """Literal text, never escaped.

    Attributes:
        parts: Strings and nested nodes, concatenated without separators.
    """

    parts: tuple = ()


@dataclass(frozen=True)
class Nil(_Node):
    """Renders as nothing."""


@dataclass(frozen=True)
class Command(_Node):
    """A command invocation.

    Attributes:
        name: Command name. Escaped like any other argument.
        args: Argument values (str, bytes, int, bool or node).
        redirections: Redirection tokens appended after the arguments.
        controls: Control suffixes appended after the redirections.
    """

    name: str
    args: tuple = ()
    redirections: tuple[str, ...] = field(default=())
    controls: tuple[str, ...] = field(default=())

    def with_redirection(self, redirection: str) -> "Command":
        """Return a copy with ``redirection`` appended (once)."""
        if redirection in self.redirections:
            return self
        return Command(
            self.name, self.args, self.redirections + (redirection,), self.controls
        )

    def with_control(self, control: str) -> "Command":
        """Return a copy with the control suffix ``control`` appended."""
        return Command(
            self.name, self.args, self.redirections, self.controls + (control,)
        )

    def pipe_out_to_err(self) -> "Command":
        """Return a copy that redirects stderr into stdout (``2>&1``)."""
        return self.with_redirection("2>&1")

    def bg(self) -> "Command":
        """Return a copy that runs in the background (``&``)."""
        return self.with_control("&")


Node = Union[Raw, Nil, Command]
ArgValue = Union[str, bytes, int, bool, Raw, Nil, Command]


def _check_arg(value: object) -> None:
    """Reject argument kinds that cannot be rendered.

    Raises:
        TypeError: If ``value`` is not a str, bytes, int, bool or node.
    """
    if isinstance(value, (str, bytes, int, _Node)):
        return
    raise TypeError(f"Unexpected argument: {value!r}")


def _check_raw_part(value: object) -> None:
    if isinstance(value, (str, _Node)):
        return
    raise TypeError(f"Unexpected raw fragment: {value!r}")


# ---------------------------------------------------------------------------
# Constructors
# ---------------------------------------------------------------------------


def raw(*parts: "str | Node") -> Raw:
    """Concatenate strings and nodes into literal shell text.

    Args:
        *parts: Strings (spliced verbatim) and nodes (rendered in place).

    Returns:
        Raw: The literal fragment.

    Raises:
        TypeError: If a part is neither a string nor a node.
    """
    for part in parts:
        _check_raw_part(part)
    return Raw(tuple(parts))


def nil() -> Nil:
    """Return the empty placeholder."""
    return Nil()


def raw_arg(*parts: "str | Node") -> Raw:
    """Literal text padded with spaces so it stands as its own token."""
    return raw(raw(" "), *parts, raw(" "))


def arg(name: str, *args: ArgValue) -> Command:
    """Build a command invocation.

    Args:
        name: Command name, e.g. ``"echo"``.
        *args: Argument values. Strings and bytes are escaped on render,
            integers render as decimal text, booleans as ``1``/``0`` and
            nodes render in place.

    Returns:
        Command: The command node.

    Raises:
        TypeError: If ``name`` is not a string or an argument has an
            unsupported type.
    """
    if not isinstance(name, str):
        raise TypeError(f"Command name must be a string, got {name!r}")
    for value in args:
        _check_arg(value)
    return Command(name, tuple(args))


# ---------------------------------------------------------------------------
# Combinators
# ---------------------------------------------------------------------------


def _join(operator: str, *commands: Node) -> Raw:
    """Wrap ``commands`` in one group, separated by ``operator``."""
    parts: list = [raw("( ")]
    for index, command in enumerate(commands):
        if not isinstance(command, _Node):
            raise TypeError(f"Expected a command node, got {command!r}")
        if index:
            parts.append(raw(f" {operator} "))
        parts.append(command)
    parts.append(raw(" )"))
    return raw(*parts)


def batch(*commands: Node) -> Raw:
    """Run commands in sequence: ``( a ; b )``."""
    return _join(";", *commands)


def all_of(*commands: Node) -> Raw:
    """Run commands while each one succeeds: ``( a && b )``."""
    return _join("&&", *commands)


def first(*commands: Node) -> Raw:
    """Run commands until one succeeds: ``( a || b )``."""
    return _join("||", *commands)


def pipe(*commands: Node) -> Raw:
    """Chain stdout to stdin: ``( a | b )``."""
    return _join("|", *commands)


def sub_shell(command: Node, quote: bool = False) -> Raw:
    """Capture the output of ``command``.

    Args:
        command: The node to substitute.
        quote: Wrap the substitution in double quotes.

    Returns:
        Raw: ``$( command )`` or ``"$( command )"``.
    """
    if quote:
        return raw('"$( ', command, ' )"')
    return raw("$( ", command, " )")


def setopt(
    verbose: bool | None = None,
    xtrace: bool | None = None,
    pipefail: bool | None = None,
    noglob: bool | None = None,
    errexit: bool | None = None,
) -> Raw:
    """Build a ``set`` command toggling shell options.

    Options left as None are not touched. Flags are emitted in the order
    errexit, noglob, pipefail, verbose, xtrace.

    Returns:
        Raw: e.g. ``set -e +o pipefail``, or ``true`` when nothing is set.
    """
    opts: list[str] = []
    if errexit is not None:
        opts.append("-e" if errexit else "+e")
    if noglob is not None:
        opts.append("-f" if noglob else "+f")
    if pipefail is not None:
        opts.append("-o pipefail" if pipefail else "+o pipefail")
    if verbose is not None:
        opts.append("-v" if verbose else "+v")
    if xtrace is not None:
        opts.append("-x" if xtrace else "+x")
    if not opts:
        return raw(TRUE_COMMAND)
    return raw("set " + " ".join(opts))


# ---------------------------------------------------------------------------
# Escaping and rendering
# ---------------------------------------------------------------------------


def _is_plain(data: bytes) -> bool:
    # Every byte is checked; NUL does not end the scan.
    return all(0x20 <= byte < 0x7F for byte in data)


def escape_arg(value: "str | bytes") -> str:
    """Escape an arbitrary byte string as one shell word.

    Printable ASCII is single-quoted. Anything else is hex-encoded and
    decoded on the remote side inside a quoted command substitution, so
    control bytes and non-ASCII content survive intact.

    Args:
        value: Text (encoded as UTF-8) or raw bytes.

    Returns:
        str: Shell text safe to splice into any command line.
    """
    data = value.encode("utf-8") if isinstance(value, str) else bytes(value)
    if _is_plain(data):
        text = data.decode("ascii")
        return "'" + text.replace("'", "'\\''") + "'"
    echo = arg("echo", data.hex())
    return '"$(' + render(echo) + " | " + HEX_DECODER + ')"'


def _render_arg(value: ArgValue) -> str:
    if isinstance(value, (str, bytes)):
        return escape_arg(value)
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, _Node):
        return render(value)
    raise TypeError(f"Unexpected argument: {value!r}")


def render(node: Node) -> str:
    """Render a node to shell text.

    Args:
        node: The node to render.

    Returns:
        str: POSIX sh text.

    Raises:
        RuntimeError: If ``node`` is not one of the known node kinds.
    """
    if isinstance(node, Raw):
        return "".join(
            part if isinstance(part, str) else render(part) for part in node.parts
        )
    if isinstance(node, Nil):
        return ""
    if not isinstance(node, Command):
        raise RuntimeError(f"Should never occur: cannot render {node!r}")

    result = ""
    last_is_raw = False
    for value in (node.name, *node.args):
        if isinstance(value, Nil):
            continue
        part = _render_arg(value)
        current_is_raw = isinstance(value, Raw)
        # Raw fragments carry their own spacing.
        if result and not last_is_raw and not current_is_raw:
            result += " "
        result += part
        last_is_raw = current_is_raw

    if node.redirections:
        result += " " + " ".join(node.redirections)
    if node.controls:
        result += " " + " ".join(node.controls)
    return result
