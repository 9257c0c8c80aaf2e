"""Identifier naming: the default source-to-Elixir naming callback and the
per-compilation-unit fresh-name supply."""

from __future__ import annotations

import re

ELIXIR_RESERVED = frozenset(
    {
        "after",
        "and",
        "catch",
        "do",
        "else",
        "end",
        "false",
        "fn",
        "in",
        "nil",
        "not",
        "or",
        "rescue",
        "true",
        "when",
        "__MODULE__",
        "__FILE__",
        "__DIR__",
        "__ENV__",
        "__CALLER__",
        "__STACKTRACE__",
    }
)


def to_snake(name: str) -> str:
    """Convert camelCase/PascalCase to snake_case, keeping a leading underscore."""
    prefix = ""
    while name.startswith("_"):
        prefix += "_"
        name = name[1:]
    if "_" in name or name.islower():
        return prefix + name.lower()
    s1 = re.sub(r"(.)([A-Z][a-z]+)", r"\1_\2", name)
    return prefix + re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", s1).lower()


def elixir_name(name: str) -> str:
    """Map a source identifier to a valid Elixir variable/function name."""
    if name == "":
        return "_"
    result = to_snake(name)
    result = re.sub(r"[^A-Za-z0-9_?!]", "_", result)
    if result[0].isdigit():
        result = "_" + result
    if result in ELIXIR_RESERVED:
        return result + "_"
    return result


def module_name(path: str) -> str:
    """Map a dotted source type path to an Elixir module alias."""
    parts = [p for p in path.split(".") if p]
    out: list[str] = []
    for p in parts:
        out.append(p[0].upper() + p[1:])
    return ".".join(out)


class NameSupply:
    """Monotonic counter minting unique names for one compilation unit."""

    def __init__(self, start: int = 0) -> None:
        self._next = start

    def fresh(self, prefix: str) -> str:
        n = self._next
        self._next += 1
        return prefix + "_" + str(n)

    def fresh_avoiding(self, prefix: str, taken: set[str]) -> str:
        """Mint a name that is not in taken. The bare prefix is tried first."""
        if prefix not in taken:
            return prefix
        while True:
            candidate = self.fresh(prefix)
            if candidate not in taken:
                return candidate
