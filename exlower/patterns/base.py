"""Shared plumbing for idiom recognizers.

An idiom is a triple of plain functions over the typed tree:

- ``is_<idiom>(subtree) -> bool``: cheap shape check, never raises;
- ``extract_<idiom>(subtree) -> Fields | None``: pulls the parts out;
- ``transform_<idiom>(fields, ctx) -> Node``: builds the replacement.

``apply_idiom`` couples the three. A predicate that accepts a subtree its
extractor then rejects is a recognizer bug and raises ``ExtractionError``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, TypeVar

from ..ast import Node
from ..errors import ExtractionError
from ..typed import TBinop, TConst, TExpr, TLocal, TVar

F = TypeVar("F")


@dataclass
class LoweringContext:
    """Callbacks the transformers use to lower sub-expressions.

    build lowers a typed sub-expression to an intermediate node; name maps a
    source identifier to its target spelling.
    """

    build: Callable[[TExpr], Node]
    name: Callable[[str], str]


def apply_idiom(
    idiom: str,
    is_fn: Callable[[TExpr], bool],
    extract_fn: Callable[[TExpr], F | None],
    transform_fn: Callable[[F, LoweringContext], Node],
    subtree: TExpr,
    ctx: LoweringContext,
) -> Node | None:
    """Return the rewritten node, or None when the idiom does not apply."""
    if not is_fn(subtree):
        return None
    fields = extract_fn(subtree)
    if fields is None:
        raise ExtractionError(
            "extractor rejected a subtree its predicate accepted: " + idiom,
            subtree=type(subtree).__name__,
        )
    return transform_fn(fields, ctx)


# ── Shape helpers ──


def is_local(expr: TExpr, var: TVar | None = None) -> bool:
    """True if expr reads a local (the given one, when var is set)."""
    if not isinstance(expr, TLocal):
        return False
    return var is None or expr.var.id == var.id


def is_null(expr: TExpr) -> bool:
    return isinstance(expr, TConst) and expr.value is None


def null_check_of(cond: TExpr, var: TVar) -> str | None:
    """Return "!=" or "==" when cond compares var against null, else None.

    Both operand orders are accepted.
    """
    if not isinstance(cond, TBinop) or cond.op not in ("!=", "=="):
        return None
    if is_local(cond.left, var) and is_null(cond.right):
        return cond.op
    if is_null(cond.left) and is_local(cond.right, var):
        return cond.op
    return None
