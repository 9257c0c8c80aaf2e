"""Generic traversal over the intermediate AST.

``children`` / ``map_children`` are the only functions that know the shape of
every node. Everything else (``visit``, ``rewrite``, ``walk``) is built on
them. Both are total over the node classes in ``exlower.ast``: a class with
no arm here raises ``UnhandledNodeError``. When a node class is added, add it
to both functions and to the coverage test in ``tests/test_02_traverse.py``.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Callable, Iterator

from ..ast import (
    EAccess,
    EAlias,
    EApply,
    EAtom,
    EBinary,
    EBitSegment,
    EBitstring,
    EBlock,
    EBoolean,
    ECall,
    ECase,
    ECaseClause,
    ECatchClause,
    ECond,
    ECondClause,
    EField,
    EFieldAssign,
    EFilter,
    EFloat,
    EFn,
    EFnClause,
    EFor,
    EFunctionDef,
    EGenerator,
    EIf,
    EImport,
    EInteger,
    EKeywordList,
    EList,
    EMap,
    EMatch,
    EModule,
    EModuleAttribute,
    ENil,
    EParen,
    EPipe,
    ERange,
    ERaw,
    EReceive,
    EReceiveAfter,
    ERemoteCall,
    ERescueClause,
    EString,
    EStruct,
    EStructUpdate,
    ETry,
    ETuple,
    EUnary,
    EUnderscore,
    EVar,
    EWith,
    EWithClause,
    Node,
    describe,
)
from ..errors import UnhandledNodeError

Fn = Callable[[Node], Node]

_LEAVES = (EVar, EInteger, EFloat, EString, EBoolean, EAtom, ENil, EUnderscore, EAlias, EImport)


def _opt(node: Node | None, out: list[Node]) -> None:
    if node is not None:
        out.append(node)


def children(node: Node) -> list[Node]:
    """Direct structural children, in evaluation order."""
    out: list[Node] = []
    if isinstance(node, _LEAVES) or isinstance(node, ERaw):
        return out
    if isinstance(node, EModule):
        out.extend(node.body)
    elif isinstance(node, EModuleAttribute):
        out.append(node.value)
    elif isinstance(node, EFunctionDef):
        _opt(node.guard, out)
        out.append(node.body)
    elif isinstance(node, EIf):
        out.append(node.cond)
        out.append(node.then_branch)
        _opt(node.else_branch, out)
    elif isinstance(node, ECase):
        out.append(node.expr)
        for c in node.clauses:
            _opt(c.guard, out)
            out.append(c.body)
    elif isinstance(node, ECond):
        for c in node.clauses:
            out.append(c.cond)
            out.append(c.body)
    elif isinstance(node, ETry):
        out.append(node.body)
        for r in node.rescue:
            out.extend(r.exceptions)
            out.append(r.body)
        for k in node.catch:
            out.append(k.body)
        for c in node.else_clauses:
            _opt(c.guard, out)
            out.append(c.body)
        _opt(node.after, out)
    elif isinstance(node, EWith):
        for w in node.clauses:
            out.append(w.expr)
        out.append(node.body)
        for c in node.else_clauses:
            _opt(c.guard, out)
            out.append(c.body)
    elif isinstance(node, EReceive):
        for c in node.clauses:
            _opt(c.guard, out)
            out.append(c.body)
        if node.after is not None:
            out.append(node.after.timeout)
            out.append(node.after.body)
    elif isinstance(node, (EList, ETuple)):
        out.extend(node.elements)
    elif isinstance(node, EMap):
        for k, v in node.pairs:
            out.append(k)
            out.append(v)
    elif isinstance(node, (EKeywordList, EStruct)):
        pairs = node.pairs if isinstance(node, EKeywordList) else node.fields
        for _, v in pairs:
            out.append(v)
    elif isinstance(node, EStructUpdate):
        out.append(node.target)
        for _, v in node.fields:
            out.append(v)
    elif isinstance(node, EBitstring):
        for s in node.segments:
            out.append(s.value)
            _opt(s.size, out)
    elif isinstance(node, ECall):
        out.extend(node.args)
    elif isinstance(node, ERemoteCall):
        out.append(node.module)
        out.extend(node.args)
    elif isinstance(node, EApply):
        out.append(node.fn)
        out.extend(node.args)
    elif isinstance(node, EBinary):
        out.append(node.left)
        out.append(node.right)
    elif isinstance(node, EUnary):
        out.append(node.operand)
    elif isinstance(node, EField):
        out.append(node.target)
    elif isinstance(node, EAccess):
        out.append(node.target)
        out.append(node.key)
    elif isinstance(node, ERange):
        out.append(node.start)
        out.append(node.end)
        _opt(node.step, out)
    elif isinstance(node, EPipe):
        out.append(node.left)
        out.append(node.right)
    elif isinstance(node, EFor):
        for g in node.generators:
            if isinstance(g, EGenerator):
                out.append(g.source)
            else:
                out.append(g.cond)
        _opt(node.into, out)
        out.append(node.body)
    elif isinstance(node, EParen):
        out.append(node.expr)
    elif isinstance(node, EBlock):
        out.extend(node.exprs)
    elif isinstance(node, EMatch):
        out.append(node.expr)
    elif isinstance(node, EFn):
        for c in node.clauses:
            _opt(c.guard, out)
            out.append(c.body)
    elif isinstance(node, EFieldAssign):
        out.append(node.target)
        out.append(node.value)
    else:
        raise UnhandledNodeError("no traversal case for node", subtree=describe(node))
    return out


def visit(node: Node, fn: Callable[[Node], None]) -> None:
    """Call fn on every direct child of node (non-recursive)."""
    for child in children(node):
        fn(child)


def _mopt(node: Node | None, fn: Fn) -> Node | None:
    if node is None:
        return None
    return fn(node)


def _case_clauses(clauses: list[ECaseClause], fn: Fn) -> list[ECaseClause]:
    out: list[ECaseClause] = []
    for c in clauses:
        guard = _mopt(c.guard, fn)
        out.append(ECaseClause(c.pattern, fn(c.body), guard))
    return out


def map_children(node: Node, fn: Fn) -> Node:
    """Rebuild node with fn applied to each direct child. Metadata is kept.

    fn is called on the children in exactly the order ``children`` lists them.
    """
    if isinstance(node, _LEAVES) or isinstance(node, ERaw):
        return node
    if isinstance(node, EModule):
        return replace(node, body=[fn(n) for n in node.body])
    if isinstance(node, EModuleAttribute):
        return replace(node, value=fn(node.value))
    if isinstance(node, EFunctionDef):
        return replace(node, guard=_mopt(node.guard, fn), body=fn(node.body))
    if isinstance(node, EIf):
        return replace(
            node,
            cond=fn(node.cond),
            then_branch=fn(node.then_branch),
            else_branch=_mopt(node.else_branch, fn),
        )
    if isinstance(node, ECase):
        return replace(node, expr=fn(node.expr), clauses=_case_clauses(node.clauses, fn))
    if isinstance(node, ECond):
        return replace(
            node, clauses=[ECondClause(fn(c.cond), fn(c.body)) for c in node.clauses]
        )
    if isinstance(node, ETry):
        body = fn(node.body)
        rescue: list[ERescueClause] = []
        for r in node.rescue:
            exceptions = [fn(e) for e in r.exceptions]
            rescue.append(ERescueClause(r.pattern, fn(r.body), exceptions))
        return replace(
            node,
            body=body,
            rescue=rescue,
            catch=[ECatchClause(k.pattern, fn(k.body), k.kind) for k in node.catch],
            else_clauses=_case_clauses(node.else_clauses, fn),
            after=_mopt(node.after, fn),
        )
    if isinstance(node, EWith):
        return replace(
            node,
            clauses=[EWithClause(w.pattern, fn(w.expr)) for w in node.clauses],
            body=fn(node.body),
            else_clauses=_case_clauses(node.else_clauses, fn),
        )
    if isinstance(node, EReceive):
        clauses = _case_clauses(node.clauses, fn)
        after = None
        if node.after is not None:
            timeout = fn(node.after.timeout)
            after = EReceiveAfter(timeout, fn(node.after.body))
        return replace(node, clauses=clauses, after=after)
    if isinstance(node, EList):
        return replace(node, elements=[fn(e) for e in node.elements])
    if isinstance(node, ETuple):
        return replace(node, elements=[fn(e) for e in node.elements])
    if isinstance(node, EMap):
        return replace(node, pairs=[(fn(k), fn(v)) for k, v in node.pairs])
    if isinstance(node, EKeywordList):
        return replace(node, pairs=[(k, fn(v)) for k, v in node.pairs])
    if isinstance(node, EStruct):
        return replace(node, fields=[(k, fn(v)) for k, v in node.fields])
    if isinstance(node, EStructUpdate):
        return replace(
            node, target=fn(node.target), fields=[(k, fn(v)) for k, v in node.fields]
        )
    if isinstance(node, EBitstring):
        return replace(
            node,
            segments=[
                EBitSegment(fn(s.value), _mopt(s.size, fn), s.kind) for s in node.segments
            ],
        )
    if isinstance(node, ECall):
        return replace(node, args=[fn(a) for a in node.args])
    if isinstance(node, ERemoteCall):
        return replace(node, module=fn(node.module), args=[fn(a) for a in node.args])
    if isinstance(node, EApply):
        return replace(node, fn=fn(node.fn), args=[fn(a) for a in node.args])
    if isinstance(node, EBinary):
        return replace(node, left=fn(node.left), right=fn(node.right))
    if isinstance(node, EUnary):
        return replace(node, operand=fn(node.operand))
    if isinstance(node, EField):
        return replace(node, target=fn(node.target))
    if isinstance(node, EAccess):
        return replace(node, target=fn(node.target), key=fn(node.key))
    if isinstance(node, ERange):
        return replace(
            node, start=fn(node.start), end=fn(node.end), step=_mopt(node.step, fn)
        )
    if isinstance(node, EPipe):
        return replace(node, left=fn(node.left), right=fn(node.right))
    if isinstance(node, EFor):
        gens: list[EGenerator | EFilter] = []
        for g in node.generators:
            if isinstance(g, EGenerator):
                gens.append(EGenerator(g.pattern, fn(g.source)))
            else:
                gens.append(EFilter(fn(g.cond)))
        return replace(node, generators=gens, into=_mopt(node.into, fn), body=fn(node.body))
    if isinstance(node, EParen):
        return replace(node, expr=fn(node.expr))
    if isinstance(node, EBlock):
        return replace(node, exprs=[fn(e) for e in node.exprs])
    if isinstance(node, EMatch):
        return replace(node, expr=fn(node.expr))
    if isinstance(node, EFn):
        fn_clauses: list[EFnClause] = []
        for c in node.clauses:
            guard = _mopt(c.guard, fn)
            fn_clauses.append(EFnClause(c.params, fn(c.body), guard))
        return replace(node, clauses=fn_clauses)
    if isinstance(node, EFieldAssign):
        return replace(node, target=fn(node.target), value=fn(node.value))
    raise UnhandledNodeError("no rebuild case for node", subtree=describe(node))


def rewrite(node: Node, fn: Fn) -> Node:
    """Rewrite children bottom-up, rebuild, then apply fn to the rebuilt node.

    ERaw is opaque and returned as-is without calling fn.
    """
    if isinstance(node, ERaw):
        return node
    rebuilt = map_children(node, lambda child: rewrite(child, fn))
    return fn(rebuilt)


def walk(node: Node) -> Iterator[Node]:
    """Pre-order iterator over node and all its descendants."""
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        kids = children(current)
        kids.reverse()
        stack.extend(kids)
