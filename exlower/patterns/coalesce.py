"""Null coalescing: ``{ var t = A; t ?? B }``."""

from __future__ import annotations

from dataclasses import dataclass

from ..ast import EBinary, EIf, EMatch, ENil, EParen, EVar, Node, PVar
from ..typed import TBinop, TBlock, TExpr, TVar, TVarDecl
from .base import LoweringContext, is_local


@dataclass
class CoalesceFields:
    temp: TVar
    source: TExpr
    fallback: TExpr


def is_null_coalesce(expr: TExpr) -> bool:
    if not isinstance(expr, TBlock) or len(expr.exprs) != 2:
        return False
    decl, use = expr.exprs
    if not isinstance(decl, TVarDecl) or decl.init is None:
        return False
    return isinstance(use, TBinop) and use.op == "??" and is_local(use.left, decl.var)


def extract_null_coalesce(expr: TExpr) -> CoalesceFields | None:
    if not isinstance(expr, TBlock) or len(expr.exprs) != 2:
        return None
    decl = expr.exprs[0]
    use = expr.exprs[1]
    if not isinstance(decl, TVarDecl) or decl.init is None:
        return None
    if not isinstance(use, TBinop) or use.op != "??":
        return None
    if not is_local(use.left, decl.var):
        return None
    return CoalesceFields(decl.var, decl.init, use.right)


def transform_null_coalesce(fields: CoalesceFields, ctx: LoweringContext) -> Node:
    """if (t = A) != nil, do: t, else: B"""
    name = ctx.name(fields.temp.name)
    bind = EParen(EMatch(PVar(name), ctx.build(fields.source)))
    return EIf(EBinary("!=", bind, ENil()), EVar(name), ctx.build(fields.fallback))
