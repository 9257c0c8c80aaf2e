"""Reassignment cleanups over statement blocks.

Bindings made inside an ``if`` do not leak in Elixir, so a conditional
self-update has to be hoisted into the rebinding::

    if c do x = f(x) end    ->    x = if c do f(x) else x end

and ``x = nil`` placeholders that upstream emits for declared-but-not-yet-
assigned variables are deleted when the next thing that touches ``x`` is an
unconditional assignment that does not read it.
"""

from __future__ import annotations

import logging

from ..ast import EBlock, EIf, EMatch, ENil, EVar, Node, PVar, block_exprs
from .traverse import rewrite
from .usage import reads_name

logger = logging.getLogger(__name__)


def hoist_conditional_reassignment(root: Node) -> Node:
    def fn(node: Node) -> Node:
        if not isinstance(node, EBlock):
            return node
        exprs = list(node.exprs)
        for i in range(len(exprs) - 1):
            exprs[i] = _hoist(exprs[i])
        return EBlock(exprs, meta=node.meta)

    return rewrite(root, fn)


def _hoist(stmt: Node) -> Node:
    if not isinstance(stmt, EIf) or stmt.else_branch is not None:
        return stmt
    body = block_exprs(stmt.then_branch)
    if len(body) != 1:
        return stmt
    assign = body[0]
    if not isinstance(assign, EMatch) or not isinstance(assign.pattern, PVar):
        return stmt
    name = assign.pattern.name
    if not reads_name(assign.expr, name):
        return stmt
    return EMatch(
        PVar(name),
        EIf(stmt.cond, assign.expr, EVar(name), meta=stmt.meta),
        meta=assign.meta,
    )


# ── Redundant nil initialization ──


def remove_redundant_nil(root: Node) -> Node:
    def fn(node: Node) -> Node:
        if not isinstance(node, EBlock):
            return node
        kept: list[Node] = []
        for i, stmt in enumerate(node.exprs):
            if _nil_init(stmt) is not None and _overwritten(node.exprs, i):
                logger.debug("dropping nil initialization of %s", _nil_init(stmt))
                continue
            kept.append(stmt)
        if len(kept) == len(node.exprs):
            return node
        return EBlock(kept, meta=node.meta)

    return rewrite(root, fn)


def _nil_init(stmt: Node) -> str | None:
    if isinstance(stmt, EMatch) and isinstance(stmt.pattern, PVar) and isinstance(stmt.expr, ENil):
        return stmt.pattern.name
    return None


def _overwritten(exprs: list[Node], index: int) -> bool:
    """True if exprs[index] (x = nil) is overwritten before x is ever read."""
    name = _nil_init(exprs[index])
    for later in exprs[index + 1 :]:
        if _nil_init(later) == name:
            continue
        if isinstance(later, EMatch) and isinstance(later.pattern, PVar) and later.pattern.name == name:
            return not reads_name(later.expr, name)
        if reads_name(later, name):
            return False
    return False
