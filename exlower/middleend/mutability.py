"""Mutable-to-immutable lowering.

Imperative shapes left by the builder are rewritten into rebindings:

    struct.items.push(v)   ->  struct = %{struct | items: struct.items ++ [v]}
    a.push(v)              ->  a = a ++ [v]
    a.pop()  (statement)   ->  a = List.delete_at(a, -1)
    i++      (statement)   ->  i = i + 1
    if c do i++ end        ->  if c do i = i + 1 end
    ++i      (value)       ->  (i = i + 1)
    i++      (value)       ->  (i = i + 1) - 1
    a % b                  ->  rem(a, b)
    struct.f = v           ->  struct = %{struct | f: v}

Field assignment on any receiver other than the instance parameter is left
as EFieldAssign for ``lower_field_assignments``.
"""

from __future__ import annotations

from dataclasses import replace

from ..ast import (
    INCREMENT_OPS,
    WHILE_LOOP,
    EAlias,
    EAtom,
    EBinary,
    EBlock,
    ECall,
    EField,
    EFieldAssign,
    EIf,
    EInteger,
    EList,
    EMatch,
    EParen,
    ERemoteCall,
    EStructUpdate,
    EUnary,
    EVar,
    Node,
    PVar,
    is_var,
)
from ..names import NameSupply
from .traverse import rewrite
from .usage import all_names


def lower_mutation(root: Node, instance_param: str, names: NameSupply) -> Node:
    lowering = _MutationLowering(instance_param, names, all_names(root))
    root = rewrite(root, lowering.statements)
    return rewrite(root, lowering.values)


def _step_op(op: str) -> str:
    return "+" if op.endswith("++") else "-"


def _undo_op(op: str) -> str:
    return "-" if op.endswith("++") else "+"


class _MutationLowering:
    def __init__(self, instance_param: str, names: NameSupply, taken: set[str]) -> None:
        self.instance_param = instance_param
        self.names = names
        self.taken = taken

    # ── Statement position: non-last block statements ──

    def statements(self, node: Node) -> Node:
        if isinstance(node, ECall) and node.name == WHILE_LOOP and len(node.args) == 2:
            return self._loop_body(node)
        if not isinstance(node, EBlock):
            return node
        exprs = list(node.exprs)
        for i in range(len(exprs) - 1):
            exprs[i] = self._statement(exprs[i])
        return EBlock(exprs, meta=node.meta)

    def _loop_body(self, node: ECall) -> Node:
        """Every statement of a while body, the last included, runs for effect."""
        cond, body = node.args
        if isinstance(body, EBlock):
            body = EBlock([self._statement(s) for s in body.exprs], meta=body.meta)
        else:
            body = self._statement(body)
        return replace(node, args=[cond, body])

    def _statement(self, stmt: Node) -> Node:
        if isinstance(stmt, EIf):
            else_branch = None if stmt.else_branch is None else self._branch(stmt.else_branch)
            return replace(stmt, then_branch=self._branch(stmt.then_branch), else_branch=else_branch)
        if isinstance(stmt, EUnary) and stmt.op in INCREMENT_OPS:
            stepped = self._step(stmt.operand, _step_op(stmt.op))
            if stepped is not None:
                return stepped
            return stmt
        if isinstance(stmt, ERemoteCall) and stmt.name == "pop" and not stmt.args:
            target = stmt.module
            if isinstance(target, (EVar, EField)):
                return self._assign(target, _delete_last(target))
        return stmt

    def _branch(self, node: Node) -> Node:
        """A branch of a statement-position if is itself in statement position."""
        if isinstance(node, EBlock) and node.exprs:
            return EBlock(node.exprs[:-1] + [self._statement(node.exprs[-1])], meta=node.meta)
        return self._statement(node)

    def _step(self, target: Node, op: str) -> Node | None:
        """target = target op 1, as a rebinding."""
        if not isinstance(target, (EVar, EField)):
            return None
        return self._assign(target, EBinary(op, target, EInteger(1)))

    def _assign(self, target: Node, value: Node) -> Node:
        """Rebind a variable, or update a field of the instance parameter."""
        if isinstance(target, EVar):
            return EMatch(PVar(target.name), value)
        assert isinstance(target, EField)
        if is_var(target.target, self.instance_param):
            owner = target.target
            return EMatch(PVar(self.instance_param), EStructUpdate(owner, [(target.field, value)]))
        return EFieldAssign(target.target, target.field, value)

    # ── Everything else, bottom-up ──

    def values(self, node: Node) -> Node:
        if isinstance(node, ERemoteCall) and isinstance(node.module, (EVar, EField)):
            target = node.module
            if node.name == "push" and len(node.args) == 1:
                return self._assign(target, EBinary("++", target, EList([node.args[0]])))
            if node.name == "pop" and not node.args:
                return self._pop_value(target)
        if isinstance(node, EUnary) and node.op in INCREMENT_OPS:
            return self._increment_value(node)
        if isinstance(node, EBinary) and node.op == "%":
            return ECall("rem", [node.left, node.right], meta=node.meta)
        if isinstance(node, EFieldAssign) and is_var(node.target, self.instance_param):
            return EMatch(
                PVar(self.instance_param),
                EStructUpdate(node.target, [(node.field, node.value)]),
                meta=node.meta,
            )
        return node

    def _increment_value(self, node: EUnary) -> Node:
        stepped = self._step(node.operand, _step_op(node.op))
        if stepped is None:
            return node
        if isinstance(node.operand, EField) and isinstance(stepped, EMatch):
            new_value: Node = EField(EParen(stepped), node.operand.field)
        else:
            new_value = EParen(stepped)
        if node.op.startswith("pre"):
            return new_value
        return EBinary(_undo_op(node.op), new_value, EInteger(1))

    def _pop_value(self, target: Node) -> Node:
        """last = List.last(a); a = List.delete_at(a, -1); last"""
        last = self.names.fresh_avoiding("last", self.taken)
        self.taken.add(last)
        return EBlock(
            [
                EMatch(PVar(last), ERemoteCall(EAlias("List"), "last", [target])),
                self._assign(target, _delete_last(target)),
                EVar(last),
            ]
        )


def _delete_last(target: Node) -> Node:
    return ERemoteCall(EAlias("List"), "delete_at", [target, EUnary("-", EInteger(1))])


# ============================================================
# FIELD ASSIGNMENT ON OTHER RECEIVERS
# ============================================================


def lower_field_assignments(root: Node) -> Node:
    """obj.f = v -> obj = Map.put(obj, :f, v); root.a.b = v -> root = put_in(root.a.b, v)"""

    def fn(node: Node) -> Node:
        if not isinstance(node, EFieldAssign):
            return node
        target = node.target
        if isinstance(target, EVar):
            put = ERemoteCall(EAlias("Map"), "put", [target, EAtom(node.field), node.value])
            return EMatch(PVar(target.name), put, meta=node.meta)
        root_var = _chain_root(target)
        if root_var is not None:
            path = EField(target, node.field)
            return EMatch(PVar(root_var.name), ECall("put_in", [path, node.value]), meta=node.meta)
        return ERemoteCall(EAlias("Map"), "put", [target, EAtom(node.field), node.value])

    return rewrite(root, fn)


def _chain_root(node: Node) -> EVar | None:
    """The variable at the base of a field chain a.b.c, else None."""
    while isinstance(node, EField):
        node = node.target
    if isinstance(node, EVar):
        return node
    return None
