"""Unrolled map/filter loops over arrays.

Front-ends expand ``arr.map(f)`` and ``arr.filter(p)`` into an index loop::

    while (i < arr.length) {
        var v = arr[i];
        ++i;
        res.push(e);            // or: if (c) res.push(e);
    }

which becomes ``res = Enum.map(arr, fn v -> e end)``, ``Enum.filter`` when
the pushed value is the element itself, or a filter piped into a map.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..ast import EAlias, EFn, EFnClause, EMatch, EPipe, ERemoteCall, EVar, Node, PVar
from ..typed import (
    TArrayAccess,
    TBinop,
    TBlock,
    TCall,
    TExpr,
    TField,
    TIf,
    TLocal,
    TUnop,
    TVar,
    TVarDecl,
    TWhile,
)
from .base import LoweringContext, is_local


@dataclass
class ArrayLoopFields:
    source: TVar
    item: TVar
    result: TVar
    mapped: TExpr
    filter: TExpr | None


def _bound(cond: TExpr) -> tuple[TVar, TVar] | None:
    """(index, array) from ``i < arr.length``."""
    if not isinstance(cond, TBinop) or cond.op != "<":
        return None
    if not isinstance(cond.left, TLocal):
        return None
    right = cond.right
    if not isinstance(right, TField) or right.name != "length":
        return None
    if not isinstance(right.target, TLocal):
        return None
    return cond.left.var, right.target.var


def _push(expr: TExpr) -> tuple[TVar, TExpr] | None:
    """(result, value) from ``res.push(value)``."""
    if not isinstance(expr, TCall) or len(expr.args) != 1:
        return None
    target = expr.target
    if not isinstance(target, TField) or target.name != "push":
        return None
    if not isinstance(target.target, TLocal):
        return None
    return target.target.var, expr.args[0]


def _is_increment(expr: TExpr, var: TVar) -> bool:
    return isinstance(expr, TUnop) and expr.op == "++" and is_local(expr.operand, var)


def extract_array_loop(expr: TExpr) -> ArrayLoopFields | None:
    if not isinstance(expr, TWhile):
        return None
    bound = _bound(expr.cond)
    if bound is None:
        return None
    index, source = bound
    if index.id == source.id:
        return None
    body = expr.body
    if not isinstance(body, TBlock) or len(body.exprs) != 3:
        return None
    decl, step, last = body.exprs
    if not isinstance(decl, TVarDecl) or not isinstance(decl.init, TArrayAccess):
        return None
    access = decl.init
    if not is_local(access.target, source) or not is_local(access.index, index):
        return None
    if not _is_increment(step, index):
        return None
    condition: TExpr | None = None
    if isinstance(last, TIf):
        if last.else_ is not None:
            return None
        condition = last.cond
        last = last.then
    pushed = _push(last)
    if pushed is None:
        return None
    result, value = pushed
    if result.id in (source.id, index.id, decl.var.id):
        return None
    return ArrayLoopFields(source, decl.var, result, value, condition)


def is_array_loop(expr: TExpr) -> bool:
    return extract_array_loop(expr) is not None


def _lambda(item: str, body: Node) -> EFn:
    return EFn([EFnClause([PVar(item)], body)])


def transform_array_loop(fields: ArrayLoopFields, ctx: LoweringContext) -> Node:
    enum = EAlias("Enum")
    source = EVar(ctx.name(fields.source.name))
    item = ctx.name(fields.item.name)
    keeps_item = is_local(fields.mapped, fields.item)
    if fields.filter is None:
        value = ERemoteCall(enum, "map", [source, _lambda(item, ctx.build(fields.mapped))])
    elif keeps_item:
        value = ERemoteCall(enum, "filter", [source, _lambda(item, ctx.build(fields.filter))])
    else:
        kept = ERemoteCall(enum, "filter", [source, _lambda(item, ctx.build(fields.filter))])
        mapped = ERemoteCall(enum, "map", [_lambda(item, ctx.build(fields.mapped))])
        value = EPipe(kept, mapped)
    return EMatch(PVar(ctx.name(fields.result.name)), value)
