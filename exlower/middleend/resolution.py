"""Clause-local variable resolution.

A node carrying ``clause_vars`` ({source id: name}) renames, within its
subtree, every EVar whose ``source_id`` is in the map, and the binding
EMatch nodes tagged with the same id. Nested maps take precedence over
enclosing ones. The hint is dropped once applied.
"""

from __future__ import annotations

from dataclasses import replace

from ..ast import CLAUSE_VARS, SOURCE_ID, EMatch, EVar, Node, PVar, meta_get, without_meta
from .traverse import map_children


def resolve_clause_locals(root: Node) -> Node:
    return _resolve(root, {})


def _resolve(node: Node, env: dict[int, str]) -> Node:
    local = meta_get(node, CLAUSE_VARS)
    if isinstance(local, dict):
        env = {**env, **local}
        node = without_meta(node, CLAUSE_VARS)
    if env:
        node = _rename_leaf(node, env)
    return map_children(node, lambda child: _resolve(child, env))


def _rename_leaf(node: Node, env: dict[int, str]) -> Node:
    ident = meta_get(node, SOURCE_ID)
    if not isinstance(ident, int) or ident not in env:
        return node
    name = env[ident]
    if isinstance(node, EVar):
        return replace(node, name=name)
    if isinstance(node, EMatch) and isinstance(node.pattern, PVar):
        return replace(node, pattern=PVar(name))
    return node
