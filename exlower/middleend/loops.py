"""Loop passes: range-comprehension reconstruction and while-loop naming.

Upstream unrolls fixed-count loops into an accumulator block::

    g = []
    g = g ++ [e0]
    g = g ++ [e1]
    ...
    g

When the block is tagged ``unrolled_loop`` and the elements differ only by
the loop counter (``0`` in ``e0`` where ``e1`` has ``1``), the block becomes
``for i <- 0..N-1, do: tmpl``. Elements that are themselves lists get one
level of inner reconstruction first, yielding nested comprehensions.
"""

from __future__ import annotations

import logging
from typing import Iterator

from ..ast import (
    LOOP_NAME,
    UNROLLED_LOOP,
    WHILE_LOOP,
    EBinary,
    EBlock,
    ECall,
    EFor,
    EGenerator,
    EInteger,
    EList,
    EMatch,
    ENil,
    ERange,
    EVar,
    Node,
    PVar,
    meta_get,
    with_meta,
)
from ..names import NameSupply
from .traverse import children, map_children, rewrite
from .usage import all_names, substitute

logger = logging.getLogger(__name__)

_INNER_VAR = "j"
_OUTER_VAR = "i"


def reconstruct_loops(root: Node, names: NameSupply) -> Node:
    def fn(node: Node) -> Node:
        if isinstance(node, EBlock) and meta_get(node, UNROLLED_LOOP):
            return _reconstruct_block(node, names)
        return node

    return rewrite(root, fn)


def _accumulated(block: EBlock) -> list[Node] | None:
    """Elements appended by ``g = []; g = g ++ [e]...; g``, else None."""
    exprs = block.exprs
    if len(exprs) < 2:
        return None
    head, tail = exprs[0], exprs[-1]
    if not isinstance(head, EMatch) or not isinstance(head.pattern, PVar):
        return None
    acc = head.pattern.name
    if head.expr != EList([]) or tail != EVar(acc):
        return None
    elements: list[Node] = []
    for stmt in exprs[1:-1]:
        if not isinstance(stmt, EMatch) or stmt.pattern != PVar(acc):
            return None
        rhs = stmt.expr
        if not isinstance(rhs, EBinary) or rhs.op != "++" or rhs.left != EVar(acc):
            return None
        if not isinstance(rhs.right, EList) or len(rhs.right.elements) != 1:
            return None
        elements.append(rhs.right.elements[0])
    return elements


def _reconstruct_block(block: EBlock, names: NameSupply) -> Node:
    elements = _accumulated(block)
    if elements is None:
        return block
    taken = all_names(block)
    outer = names.fresh_avoiding(_OUTER_VAR, taken)
    inner = names.fresh_avoiding(_INNER_VAR, taken | {outer})
    rows = _inner_rows(elements, inner)
    loop = _range_for(rows, outer)
    if loop is None:
        logger.debug("unrolled loop of %d elements kept as a list literal", len(elements))
        return EList(elements)
    return loop


def _inner_rows(elements: list[Node], var: str) -> list[Node]:
    """Replace list elements by inner comprehensions when every row allows it."""
    if not all(isinstance(e, EList) for e in elements):
        return elements
    rows: list[Node] = []
    for e in elements:
        assert isinstance(e, EList)
        row = _range_for(e.elements, var)
        if row is None:
            return elements
        rows.append(row)
    return rows


def _range_for(elements: list[Node], var: str) -> EFor | None:
    if len(elements) < 2:
        return None
    template = _template(elements[0], elements[1], var)
    if template is None:
        return None
    for k, element in enumerate(elements):
        if substitute(template, var, EInteger(k)) != element:
            return None
    generator = EGenerator(PVar(var), ERange(EInteger(0), EInteger(len(elements) - 1)))
    return EFor([generator], template)


def _template(first: Node, second: Node, var: str) -> Node | None:
    """Generalize two consecutive iterations, or None if they differ otherwise."""
    if first == second:
        return first
    if first == EInteger(0) and second == EInteger(1):
        return EVar(var)
    kids_a = children(first)
    kids_b = children(second)
    if type(first) is not type(second) or len(kids_a) != len(kids_b) or not kids_a:
        return None
    if _shell(first) != _shell(second):
        return None
    merged: list[Node] = []
    for a, b in zip(kids_a, kids_b):
        t = _template(a, b, var)
        if t is None:
            return None
        merged.append(t)
    it: Iterator[Node] = iter(merged)
    return map_children(first, lambda _: next(it))


def _shell(node: Node) -> Node:
    """node with every child blanked, to compare the non-child fields."""
    return map_children(node, lambda _: ENil())


# ── While-loop naming ──


def name_while_loops(root: Node, names: NameSupply) -> Node:
    taken = all_names(root)

    def fn(node: Node) -> Node:
        if isinstance(node, ECall) and node.name == WHILE_LOOP and not meta_get(node, LOOP_NAME):
            name = names.fresh_avoiding("loop", taken)
            taken.add(name)
            return with_meta(node, **{LOOP_NAME: name})
        return node

    return rewrite(root, fn)
