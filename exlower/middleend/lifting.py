"""Effect lifting out of data literals.

A literal whose element binds (``[a = f(), a]``) or runs several statements
is valid in neither the target's grammar nor its scoping rules. The effects
are hoisted in front of the literal::

    [a = f(), a]          ->    a = f()
                                [a, a]

Every slot keeps its final value, so the literal never loses an element:
the result is ``[a, a]``, not the shorter ``[a]``.

Evaluation order is preserved: impure elements to the left of the last
hoisted one are bound to fresh temporaries first. The hoisted statements and
the literal form a block, which is then spliced into the enclosing block
(directly, or through the right-hand side of a match).
"""

from __future__ import annotations

from ..ast import (
    EBinary,
    EBlock,
    EKeywordList,
    EList,
    EMap,
    EMatch,
    EStruct,
    ETuple,
    EVar,
    Node,
    PVar,
)
from ..names import NameSupply
from .traverse import children, map_children, rewrite
from .usage import all_names, is_pure

_LITERALS = (EList, ETuple, EMap, EStruct, EKeywordList)


def lift_effects(root: Node, names: NameSupply) -> Node:
    lifter = _Lifter(names, all_names(root))
    return rewrite(root, lifter.lift)


def _effectful(node: Node) -> bool:
    if isinstance(node, EMatch):
        return True
    return isinstance(node, EBlock) and len(node.exprs) > 1


class _Lifter:
    def __init__(self, names: NameSupply, taken: set[str]) -> None:
        self.names = names
        self.taken = taken

    def fresh(self) -> str:
        name = self.names.fresh_avoiding("tmp", self.taken)
        self.taken.add(name)
        return name

    def lift(self, node: Node) -> Node:
        if isinstance(node, _LITERALS):
            return self._lift_literal(node)
        if isinstance(node, EBinary) and node.op == "++":
            return self._lift_append(node)
        if isinstance(node, EBlock):
            return self._splice(node)
        return node

    def _lift_literal(self, node: Node) -> Node:
        slots = children(node)
        effect_positions = [i for i, s in enumerate(slots) if _effectful(s)]
        if not effect_positions:
            return node
        last = effect_positions[-1]
        hoisted: list[Node] = []
        replaced: list[Node] = []
        for i, slot in enumerate(slots):
            if i > last:
                replaced.append(slot)
            elif _effectful(slot):
                replaced.append(self._hoist(slot, hoisted))
            elif is_pure(slot):
                replaced.append(slot)
            else:
                tmp = self.fresh()
                hoisted.append(EMatch(PVar(tmp), slot))
                replaced.append(EVar(tmp))
        it = iter(replaced)
        literal = map_children(node, lambda _: next(it))
        return EBlock(hoisted + [literal])

    def _hoist(self, slot: Node, hoisted: list[Node]) -> Node:
        """Append slot's effects to hoisted; return what stays in the slot."""
        if isinstance(slot, EBlock):
            hoisted.extend(slot.exprs[:-1])
            value = slot.exprs[-1]
            if _effectful(value):
                return self._hoist(value, hoisted)
            if is_pure(value):
                return value
            tmp = self.fresh()
            hoisted.append(EMatch(PVar(tmp), value))
            return EVar(tmp)
        assert isinstance(slot, EMatch)
        if isinstance(slot.pattern, PVar):
            hoisted.append(slot)
            return EVar(slot.pattern.name)
        tmp = self.fresh()
        hoisted.append(EMatch(PVar(tmp), slot.expr))
        hoisted.append(EMatch(slot.pattern, EVar(tmp), meta=slot.meta))
        return EVar(tmp)

    def _lift_append(self, node: EBinary) -> Node:
        right = node.right
        if not isinstance(right, EBlock) or len(right.exprs) < 2 or not is_pure(node.left):
            return node
        appended = EBinary("++", node.left, right.exprs[-1], meta=node.meta)
        return EBlock(right.exprs[:-1] + [appended])

    def _splice(self, node: EBlock) -> Node:
        out: list[Node] = []
        changed = False
        for stmt in node.exprs:
            if isinstance(stmt, EBlock) and len(stmt.exprs) > 1:
                out.extend(stmt.exprs)
                changed = True
            elif isinstance(stmt, EMatch) and isinstance(stmt.expr, EBlock) and len(stmt.expr.exprs) > 1:
                inner = stmt.expr.exprs
                out.extend(inner[:-1])
                out.append(EMatch(stmt.pattern, inner[-1], meta=stmt.meta))
                changed = True
            else:
                out.append(stmt)
        if not changed:
            return node
        return EBlock(out, meta=node.meta)
