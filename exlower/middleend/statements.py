"""Statement-context propagation.

Functional-update calls (``Map.put(m, k, v)`` and friends) return the new
value; when one is evaluated only for effect, the result is lost. In
statement position such a call whose first argument is a plain variable is
rebound: ``m = Map.put(m, k, v)``.

Statement context: every block statement but the last. The last statement
inherits from the block. Branches of if/case/cond inherit from their
construct. Function bodies are value context.
"""

from __future__ import annotations

from ..ast import (
    EAlias,
    EBlock,
    ECase,
    ECaseClause,
    ECond,
    ECondClause,
    EFn,
    EFunctionDef,
    EIf,
    EMatch,
    ERemoteCall,
    EVar,
    Node,
    PVar,
)
from .traverse import map_children

IMMUTABLE_UPDATES: dict[str, frozenset[str]] = {
    "Map": frozenset(
        {"put", "delete", "merge", "update", "update!", "put_new", "put_new_lazy", "drop", "take"}
    ),
    "List": frozenset(
        {"insert_at", "delete_at", "replace_at", "update_at", "delete", "flatten", "wrap"}
    ),
    "String": frozenset(
        {"replace", "trim", "upcase", "downcase", "capitalize", "reverse", "pad_leading", "pad_trailing"}
    ),
    "MapSet": frozenset({"put", "delete", "union", "difference", "intersection"}),
    "Keyword": frozenset({"put", "delete", "merge", "put_new", "update", "drop", "take"}),
}


def propagate_statement_context(root: Node) -> Node:
    return _propagate(root, False)


def is_immutable_update(node: Node) -> bool:
    if not isinstance(node, ERemoteCall) or not isinstance(node.module, EAlias):
        return False
    family = IMMUTABLE_UPDATES.get(node.module.name)
    return family is not None and node.name in family


def _propagate(node: Node, statement: bool) -> Node:
    if isinstance(node, EBlock):
        last = len(node.exprs) - 1
        exprs = [_propagate(e, statement or i < last) for i, e in enumerate(node.exprs)]
        node = EBlock(exprs, meta=node.meta)
    elif isinstance(node, EIf):
        else_branch = None
        if node.else_branch is not None:
            else_branch = _propagate(node.else_branch, statement)
        node = EIf(
            _propagate(node.cond, False),
            _propagate(node.then_branch, statement),
            else_branch,
            meta=node.meta,
        )
    elif isinstance(node, ECase):
        clauses = [
            ECaseClause(
                c.pattern,
                _propagate(c.body, statement),
                None if c.guard is None else _propagate(c.guard, False),
            )
            for c in node.clauses
        ]
        node = ECase(_propagate(node.expr, False), clauses, meta=node.meta)
    elif isinstance(node, ECond):
        clauses = [
            ECondClause(_propagate(c.cond, False), _propagate(c.body, statement))
            for c in node.clauses
        ]
        node = ECond(clauses, meta=node.meta)
    elif isinstance(node, (EFunctionDef, EFn)):
        return map_children(node, lambda child: _propagate(child, False))
    else:
        node = map_children(node, lambda child: _propagate(child, False))
    if statement and is_immutable_update(node):
        assert isinstance(node, ERemoteCall)
        first = node.args[0] if node.args else None
        if isinstance(first, EVar):
            return EMatch(PVar(first.name), node)
    return node

