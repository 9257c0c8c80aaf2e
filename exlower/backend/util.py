"""Lexical helpers for the Elixir emitter."""

from __future__ import annotations

import re

_BARE_ATOM = re.compile(r"[A-Za-z_][A-Za-z0-9_]*[!?]?")


def escape_string(value: str) -> str:
    """Escape a string for use in a double-quoted literal (without quotes).

    Exactly backslash, double quote, newline, carriage return and tab are
    escaped; everything else is emitted as-is.
    """
    return (
        value.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\n", "\\n")
        .replace("\r", "\\r")
        .replace("\t", "\\t")
    )


def is_bare_atom(name: str) -> bool:
    return _BARE_ATOM.fullmatch(name) is not None


def format_atom(name: str) -> str:
    """:name, or :"name" when name is not a plain identifier."""
    if is_bare_atom(name):
        return ":" + name
    return ':"' + escape_string(name) + '"'


def format_key(name: str) -> str:
    """Keyword-list / map key: ``name:`` or ``"name":``."""
    if is_bare_atom(name):
        return name + ":"
    return '"' + escape_string(name) + '":'


def format_float(value: float) -> str:
    text = repr(float(value))
    if "e" in text:
        mantissa, exponent = text.split("e")
        if "." not in mantissa:
            mantissa += ".0"
        text = mantissa + "e" + exponent.lstrip("+")
    return text


def indent(text: str, levels: int = 1) -> str:
    """Indent every non-empty line of text by two spaces per level."""
    pad = "  " * levels
    return "\n".join(pad + line if line else line for line in text.split("\n"))
