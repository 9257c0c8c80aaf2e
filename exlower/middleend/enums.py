"""Enum/tag pattern reconstruction.

Enum values are tagged tuples ``{index, payload...}``. Upstream switches on
the tag and then extracts the payload statement by statement::

    case elem(x, 0) do
      1 ->
        v = elem(x, 1)
        body
    end

This pass moves the extraction into the clause pattern::

    case x do
      {1, v} -> body
    end
"""

from __future__ import annotations

from ..ast import (
    ENUM_ARITY,
    ECall,
    ECase,
    ECaseClause,
    EInteger,
    EMatch,
    ENil,
    Node,
    PLiteral,
    PTuple,
    PVar,
    PWildcard,
    Pattern,
    block_exprs,
    make_block,
    meta_get,
)
from .traverse import rewrite


def reconstruct_enum_patterns(root: Node) -> Node:
    def fn(node: Node) -> Node:
        if isinstance(node, ECase):
            return _reconstruct_case(node)
        return node

    return rewrite(root, fn)


def _tag_subject(expr: Node) -> Node | None:
    """x from ``elem(x, 0)``."""
    if isinstance(expr, ECall) and expr.name == "elem" and len(expr.args) == 2:
        if expr.args[1] == EInteger(0):
            return expr.args[0]
    return None


def _payload_index(expr: Node, subject: Node) -> int | None:
    """k from ``elem(subject, k)`` with k >= 1."""
    if not isinstance(expr, ECall) or expr.name != "elem" or len(expr.args) != 2:
        return None
    if expr.args[0] != subject:
        return None
    index = expr.args[1]
    if isinstance(index, EInteger) and index.value >= 1:
        return index.value
    return None


def _reconstruct_case(node: ECase) -> Node:
    subject = _tag_subject(node.expr)
    if subject is None:
        return node
    for clause in node.clauses:
        if isinstance(clause.pattern, PWildcard):
            continue
        if not isinstance(clause.pattern, PLiteral) or not isinstance(clause.pattern.value, EInteger):
            return node
    arities = meta_get(node, ENUM_ARITY)
    if not isinstance(arities, dict):
        arities = {}
    clauses = [_reconstruct_clause(c, subject, arities) for c in node.clauses]
    return ECase(subject, clauses, meta=node.meta)


def _reconstruct_clause(clause: ECaseClause, subject: Node, arities: dict) -> ECaseClause:
    if not isinstance(clause.pattern, PLiteral):
        return clause
    tag = clause.pattern.value
    assert isinstance(tag, EInteger)
    bound: dict[int, str] = {}
    kept: list[Node] = []
    for stmt in block_exprs(clause.body):
        if isinstance(stmt, EMatch) and isinstance(stmt.pattern, PVar):
            k = _payload_index(stmt.expr, subject)
            if k is not None and k not in bound:
                bound[k] = stmt.pattern.name
                continue
        kept.append(stmt)
    arity = arities.get(tag.value, max(bound) if bound else 0)
    arity = max([arity] + list(bound))
    slots: list[Pattern] = [PLiteral(EInteger(tag.value))]
    for k in range(1, arity + 1):
        if k in bound:
            slots.append(PVar(bound[k]))
        else:
            slots.append(PWildcard())
    body = make_block(kept, like=clause.body) if kept else ENil()
    return ECaseClause(PTuple(slots), body, clause.guard)
