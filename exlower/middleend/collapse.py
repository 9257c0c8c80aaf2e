"""Temporary-binding collapse.

A block ``tmp = A; B`` sitting in an expression slot, where B reads tmp
exactly once, becomes ``B[tmp := (A)]``. Only these slots qualify: map,
struct, list and tuple elements, call arguments, binary operands,
parenthesized expressions and match right-hand sides. Blocks in clause
bodies, function bodies, if branches, while-loop bodies or other block
statements are never touched, since evaluation order or scoping there is
observable.
"""

from __future__ import annotations

from ..ast import (
    WHILE_LOOP,
    EApply,
    EBinary,
    EBlock,
    ECall,
    EFn,
    EList,
    EMap,
    EMatch,
    EParen,
    ERemoteCall,
    EStruct,
    ETuple,
    Node,
    PVar,
    is_var,
)
from .traverse import map_children, rewrite, walk
from .usage import binds, count_reads, mentioned_in_raw, substitute

_EXPRESSION_SLOTS = (EMap, EStruct, EList, ETuple, ECall, ERemoteCall, EApply, EBinary, EParen, EMatch)


def collapse_temp_bindings(root: Node) -> Node:
    def fn(node: Node) -> Node:
        if isinstance(node, ECall) and node.name == WHILE_LOOP:
            return node
        if isinstance(node, _EXPRESSION_SLOTS):
            return map_children(node, _collapse_slot)
        return node

    return rewrite(root, fn)


def _collapse_slot(node: Node) -> Node:
    if not isinstance(node, EBlock) or len(node.exprs) != 2:
        return node
    bind, body = node.exprs
    if not isinstance(bind, EMatch) or not isinstance(bind.pattern, PVar):
        return node
    name = bind.pattern.name
    if count_reads(body, name) != 1 or binds(body, name) or mentioned_in_raw(body, name):
        return node
    if not any(is_var(n, name) for n in walk(body)):
        return node
    if any(isinstance(n, EFn) and count_reads(n, name) for n in walk(body)):
        return node
    return substitute(body, name, EParen(bind.expr))
