"""Hostname range expansion.

Expands bracket groups in host templates:

    web[1:3]          -> web1, web2, web3
    db-[a:c]          -> db-a, db-b, db-c
    node[01:03][a:b]  -> node01a, node01b, node02a, ...

Several groups in one template expand to their Cartesian product, in order.
"""

import itertools
import re


RANGE_PATTERN = re.compile(r"\[([^\[\]:]+):([^\[\]:]+)\]")


class InvalidRange(ValueError):
    """Raised when a bracket group does not describe a usable range."""

    pass


def _expand_group(start: str, end: str) -> list[str]:
    """Expand the bounds of a single bracket group.

    Numeric bounds keep the zero padding of the start bound when it has a
    leading zero (``[01:10]`` -> ``01 .. 10``). Alphabetic bounds must be
    single characters.

    Raises:
        InvalidRange: If the bounds are mixed, multi-letter, or descending.
    """
    if start.isdigit() and end.isdigit():
        low, high = int(start), int(end)
        if low > high:
            raise InvalidRange(f"Descending range [{start}:{end}].")
        width = len(start) if start.startswith("0") and len(start) > 1 else 0
        return [str(i).zfill(width) for i in range(low, high + 1)]

    if len(start) == 1 and len(end) == 1 and start.isalpha() and end.isalpha():
        if ord(start) > ord(end):
            raise InvalidRange(f"Descending range [{start}:{end}].")
        return [chr(c) for c in range(ord(start), ord(end) + 1)]

    raise InvalidRange(f"Cannot expand range [{start}:{end}].")


def expand_one(template: str) -> list[str]:
    """Expand every bracket group in a single hostname template.

    Args:
        template: Hostname possibly containing ``[start:end]`` groups.

    Returns:
        list[str]: Concrete hostnames in Cartesian-product order. A template
            without groups expands to itself.
    """
    groups = list(RANGE_PATTERN.finditer(template))
    if not groups:
        return [template]

    # Literal text around the groups: one more piece than there are groups.
    pieces: list[str] = []
    cursor = 0
    for match in groups:
        pieces.append(template[cursor:match.start()])
        cursor = match.end()
    pieces.append(template[cursor:])

    choices = [_expand_group(m.group(1), m.group(2)) for m in groups]

    hostnames: list[str] = []
    for combination in itertools.product(*choices):
        name = pieces[0]
        for value, piece in zip(combination, pieces[1:]):
            name += value + piece
        hostnames.append(name)
    return hostnames


def expand(templates: list[str]) -> list[str]:
    """Expand a list of hostname templates, preserving order.

    Args:
        templates: Hostname templates.

    Returns:
        list[str]: All expanded hostnames, template by template.
    """
    hostnames: list[str] = []
    for template in templates:
        hostnames.extend(expand_one(template))
    return hostnames
