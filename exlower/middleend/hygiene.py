"""Usage hygiene: underscore-prefix names that are bound but never read.

Analysis is per function definition, name-level: a name is read if some
EVar, pin or raw-code identifier mentions it, not counting reads inside the
right-hand side of an assignment to that same name (``x = x + 1`` alone
does not make ``x`` used). Unused names get a ``_`` prefix at every
occurrence. ``_``-prefixed names that are read lose the prefix unless the
bare name is already taken in the function. Running the pass twice is the
same as running it once.
"""

from __future__ import annotations

from ..ast import (
    EFunctionDef,
    EMatch,
    ERaw,
    EVar,
    Node,
    PVar,
    pattern_pins,
    pattern_vars,
)
from ..names import ELIXIR_RESERVED
from .traverse import children, rewrite, walk
from .usage import all_names, node_patterns, raw_identifiers, rename_vars


def apply_usage_hygiene(root: Node) -> Node:
    def fn(node: Node) -> Node:
        if isinstance(node, EFunctionDef):
            return _clean_function(node)
        return node

    return rewrite(root, fn)


def _bound_names(node: Node) -> set[str]:
    out: set[str] = set()
    _collect_bound(node, out)
    return out


def _collect_bound(node: Node, out: set[str]) -> None:
    for p in node_patterns(node):
        out.update(pattern_vars(p))
    for child in children(node):
        _collect_bound(child, out)


def _used_names(node: Node) -> set[str]:
    out: set[str] = set()
    _collect_used(node, frozenset(), out)
    return out


def _collect_used(node: Node, excluded: frozenset[str], out: set[str]) -> None:
    if isinstance(node, EVar):
        if node.name not in excluded:
            out.add(node.name)
        return
    if isinstance(node, ERaw):
        out.update(raw_identifiers(node.code))
        return
    for p in node_patterns(node):
        out.update(n for n in pattern_pins(p) if n not in excluded)
    if isinstance(node, EMatch) and isinstance(node.pattern, PVar):
        _collect_used(node.expr, excluded | {node.pattern.name}, out)
        return
    for child in children(node):
        _collect_used(child, excluded, out)


def _skippable(name: str) -> bool:
    return name == "_" or name.startswith("__")


def _raw_names(node: Node) -> set[str]:
    out: set[str] = set()
    for n in walk(node):
        if isinstance(n, ERaw):
            out.update(raw_identifiers(n.code))
    return out


def _clean_function(node: EFunctionDef) -> Node:
    bound = _bound_names(node)
    used = _used_names(node)
    taken = all_names(node)
    in_raw = _raw_names(node)
    mapping: dict[str, str] = {}
    for name in sorted(bound):
        if _skippable(name) or name.startswith("_") or name in used:
            continue
        prefixed = "_" + name
        if prefixed in taken:
            continue
        mapping[name] = prefixed
    for name in sorted(used):
        if _skippable(name) or not name.startswith("_") or name in in_raw:
            continue
        if name not in bound:
            continue
        stripped = name[1:]
        if not stripped or stripped[0].isdigit() or stripped in ELIXIR_RESERVED:
            continue
        if stripped in taken:
            continue
        mapping[name] = stripped
    return rename_vars(node, mapping)
