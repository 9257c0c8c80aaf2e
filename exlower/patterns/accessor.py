"""Inlined null-guarded accessors.

Front-ends inline ``a?.b`` style accessors as a temporary plus a null test::

    { var t = A; if (t != null) X else Y }

which reads best in Elixir as ``case A do nil -> Y; t -> X end``. The
``==`` orientation swaps the branches.

Two such accessors combined in one comparison (the multi-temporary form) are
not reconstructed; see ``transform_multi_temp_accessor``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..ast import ECase, ECaseClause, ENil, Node, PLiteral, PVar
from ..typed import TBinop, TBlock, TExpr, TIf, TVar, TVarDecl
from .base import LoweringContext, null_check_of

logger = logging.getLogger(__name__)


@dataclass
class AccessorFields:
    temp: TVar
    source: TExpr
    present: TExpr
    absent: TExpr


def is_inlined_accessor(expr: TExpr) -> bool:
    if not isinstance(expr, TBlock) or len(expr.exprs) != 2:
        return False
    decl, test = expr.exprs
    if not isinstance(decl, TVarDecl) or decl.init is None:
        return False
    if not isinstance(test, TIf) or test.else_ is None:
        return False
    return null_check_of(test.cond, decl.var) is not None


def extract_inlined_accessor(expr: TExpr) -> AccessorFields | None:
    if not isinstance(expr, TBlock) or len(expr.exprs) != 2:
        return None
    decl = expr.exprs[0]
    test = expr.exprs[1]
    if not isinstance(decl, TVarDecl) or decl.init is None:
        return None
    if not isinstance(test, TIf) or test.else_ is None:
        return None
    op = null_check_of(test.cond, decl.var)
    if op == "!=":
        return AccessorFields(decl.var, decl.init, test.then, test.else_)
    if op == "==":
        return AccessorFields(decl.var, decl.init, test.else_, test.then)
    return None


def transform_inlined_accessor(fields: AccessorFields, ctx: LoweringContext) -> Node:
    return ECase(
        ctx.build(fields.source),
        [
            ECaseClause(PLiteral(ENil()), ctx.build(fields.absent)),
            ECaseClause(PVar(ctx.name(fields.temp.name)), ctx.build(fields.present)),
        ],
    )


# ── Multi-temporary form ──


@dataclass
class MultiTempFields:
    temps: list[TVar]
    final: TExpr


def _guards(expr: TExpr, var: TVar) -> bool:
    return isinstance(expr, TIf) and null_check_of(expr.cond, var) is not None


def is_multi_temp_accessor(expr: TExpr) -> bool:
    if not isinstance(expr, TBlock) or len(expr.exprs) != 3:
        return False
    first, second, final = expr.exprs
    if not isinstance(first, TVarDecl) or not isinstance(second, TVarDecl):
        return False
    if first.init is None or second.init is None:
        return False
    if not isinstance(final, TBinop):
        return False
    return _guards(final.left, first.var) and _guards(final.right, second.var)


def extract_multi_temp_accessor(expr: TExpr) -> MultiTempFields | None:
    if not is_multi_temp_accessor(expr):
        return None
    assert isinstance(expr, TBlock)
    first = expr.exprs[0]
    second = expr.exprs[1]
    assert isinstance(first, TVarDecl) and isinstance(second, TVarDecl)
    return MultiTempFields([first.var, second.var], expr.exprs[2])


def transform_multi_temp_accessor(fields: MultiTempFields, ctx: LoweringContext) -> Node:
    """Fallback: emit only the final comparison; the temporaries are dropped."""
    logger.debug(
        "multi-temporary accessor not reconstructed, discarding bindings of %s",
        ", ".join(t.name for t in fields.temps),
    )
    return ctx.build(fields.final)
