"""Key-value iterator protocol.

    {
        var it = m.keyValueIterator();
        while (it.hasNext()) {
            var kv = it.next();
            var k = kv.key;
            var v = kv.value;
            body...
        }
    }

becomes ``Enum.each(m, fn {k, v} -> body end)``.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..ast import EAlias, EAtom, EFn, EFnClause, ERemoteCall, Node, PTuple, PVar, make_block
from ..typed import TBlock, TCall, TExpr, TField, TVar, TVarDecl, TWhile
from .base import LoweringContext, is_local


@dataclass
class IteratorFields:
    collection: TExpr
    key: TVar
    value: TVar
    body: list[TExpr]


def _method_call(expr: TExpr | None, name: str) -> TExpr | None:
    """Receiver of a zero-argument ``recv.name()`` call, else None."""
    if not isinstance(expr, TCall) or expr.args:
        return None
    target = expr.target
    if not isinstance(target, TField) or target.name != name:
        return None
    return target.target


def _field_of(expr: TExpr | None, var: TVar, name: str) -> bool:
    return isinstance(expr, TField) and expr.name == name and is_local(expr.target, var)


def is_key_value_iterator(expr: TExpr) -> bool:
    if not isinstance(expr, TBlock) or len(expr.exprs) != 2:
        return False
    decl, loop = expr.exprs
    if not isinstance(decl, TVarDecl) or _method_call(decl.init, "keyValueIterator") is None:
        return False
    if not isinstance(loop, TWhile):
        return False
    recv = _method_call(loop.cond, "hasNext")
    if recv is None or not is_local(recv, decl.var):
        return False
    body = loop.body
    if not isinstance(body, TBlock) or len(body.exprs) < 3:
        return False
    step, key, value = body.exprs[:3]
    if not isinstance(step, TVarDecl):
        return False
    nxt = _method_call(step.init, "next")
    if nxt is None or not is_local(nxt, decl.var):
        return False
    if not isinstance(key, TVarDecl) or not _field_of(key.init, step.var, "key"):
        return False
    return isinstance(value, TVarDecl) and _field_of(value.init, step.var, "value")


def extract_key_value_iterator(expr: TExpr) -> IteratorFields | None:
    if not is_key_value_iterator(expr):
        return None
    assert isinstance(expr, TBlock)
    decl = expr.exprs[0]
    loop = expr.exprs[1]
    assert isinstance(decl, TVarDecl) and isinstance(loop, TWhile)
    assert isinstance(loop.body, TBlock)
    key = loop.body.exprs[1]
    value = loop.body.exprs[2]
    assert isinstance(key, TVarDecl) and isinstance(value, TVarDecl)
    collection = _method_call(decl.init, "keyValueIterator")
    if collection is None:
        return None
    return IteratorFields(collection, key.var, value.var, loop.body.exprs[3:])


def transform_key_value_iterator(fields: IteratorFields, ctx: LoweringContext) -> Node:
    pattern = PTuple([PVar(ctx.name(fields.key.name)), PVar(ctx.name(fields.value.name))])
    stmts = [ctx.build(e) for e in fields.body]
    body = make_block(stmts) if stmts else EAtom("ok")
    return ERemoteCall(
        EAlias("Enum"),
        "each",
        [ctx.build(fields.collection), EFn([EFnClause([pattern], body)])],
    )
