"""Name-level read/bind queries shared by the passes."""

from __future__ import annotations

import re
from dataclasses import replace

from ..ast import (
    EAccess,
    EAlias,
    EAtom,
    EBinary,
    EBoolean,
    ECase,
    ECaseClause,
    ECatchClause,
    EField,
    EFloat,
    EFn,
    EFnClause,
    EFor,
    EFunctionDef,
    EGenerator,
    EInteger,
    EKeywordList,
    EList,
    EMap,
    EMatch,
    ENil,
    EParen,
    ERaw,
    EReceive,
    ERescueClause,
    EString,
    EStruct,
    ETry,
    ETuple,
    EUnary,
    EVar,
    EWith,
    EWithClause,
    Node,
    Pattern,
    pattern_pins,
    pattern_vars,
    rename_pattern,
)
from .traverse import children, rewrite, walk

_IDENT = re.compile(r"[a-z_][A-Za-z0-9_]*[?!]?")


def raw_identifiers(code: str) -> set[str]:
    """Lowercase identifiers mentioned in raw code. Over-approximates."""
    return set(_IDENT.findall(code))


def node_patterns(node: Node) -> list[Pattern]:
    """Patterns held directly by node (not by its children)."""
    if isinstance(node, EMatch):
        return [node.pattern]
    if isinstance(node, EFunctionDef):
        return list(node.params)
    if isinstance(node, (ECase, EReceive)):
        return [c.pattern for c in node.clauses]
    if isinstance(node, EFn):
        out: list[Pattern] = []
        for c in node.clauses:
            out.extend(c.params)
        return out
    if isinstance(node, EFor):
        return [g.pattern for g in node.generators if isinstance(g, EGenerator)]
    if isinstance(node, EWith):
        return [c.pattern for c in node.clauses] + [c.pattern for c in node.else_clauses]
    if isinstance(node, ETry):
        out = [r.pattern for r in node.rescue]
        for k in node.catch:
            out.append(k.pattern)
            if k.kind is not None:
                out.append(k.kind)
        out.extend(c.pattern for c in node.else_clauses)
        return out
    return []


def reads(node: Node) -> set[str]:
    """Every name read anywhere under node: variables, pins, raw identifiers."""
    out: set[str] = set()
    for n in walk(node):
        if isinstance(n, EVar):
            out.add(n.name)
        elif isinstance(n, ERaw):
            out |= raw_identifiers(n.code)
        for p in node_patterns(n):
            out.update(pattern_pins(p))
    return out


def reads_name(node: Node, name: str) -> bool:
    return name in reads(node)


def count_reads(node: Node, name: str) -> int:
    """Number of EVar/pin reads of name. Raw code is not counted."""
    total = 0
    for n in walk(node):
        if isinstance(n, EVar) and n.name == name:
            total += 1
        for p in node_patterns(n):
            total += pattern_pins(p).count(name)
    return total


def mentioned_in_raw(node: Node, name: str) -> bool:
    return any(isinstance(n, ERaw) and name in raw_identifiers(n.code) for n in walk(node))


def binds(node: Node, name: str) -> bool:
    """True if name is bound anywhere under node."""
    for n in walk(node):
        for p in node_patterns(n):
            if name in pattern_vars(p):
                return True
    return False


def all_names(node: Node) -> set[str]:
    """Every variable name read or bound under node."""
    out = reads(node)
    for n in walk(node):
        for p in node_patterns(n):
            out.update(pattern_vars(p))
    return out


def is_pure(node: Node) -> bool:
    """Conservative: no calls, no bindings, no blocks."""
    if isinstance(node, (EVar, EInteger, EFloat, EString, EBoolean, EAtom, ENil, EAlias)):
        return True
    if isinstance(node, (EList, ETuple, EMap, EKeywordList, EStruct, EField, EAccess, EParen)):
        return all(is_pure(c) for c in children(node))
    if isinstance(node, (EBinary, EUnary)):
        return all(is_pure(c) for c in children(node))
    return False


def substitute(node: Node, name: str, replacement: Node) -> Node:
    """Replace every EVar read of name with replacement."""

    def fn(n: Node) -> Node:
        if isinstance(n, EVar) and n.name == name:
            return replacement
        return n

    return rewrite(node, fn)


def rename_vars(node: Node, mapping: dict[str, str]) -> Node:
    """Rename reads and bindings of the mapped names everywhere under node."""
    if not mapping:
        return node

    def case_clauses(clauses: list[ECaseClause]) -> list[ECaseClause]:
        return [ECaseClause(rename_pattern(c.pattern, mapping), c.body, c.guard) for c in clauses]

    def fn(n: Node) -> Node:
        if isinstance(n, EVar):
            if n.name in mapping:
                return replace(n, name=mapping[n.name])
            return n
        if isinstance(n, EMatch):
            return replace(n, pattern=rename_pattern(n.pattern, mapping))
        if isinstance(n, EFunctionDef):
            return replace(n, params=[rename_pattern(p, mapping) for p in n.params])
        if isinstance(n, (ECase, EReceive)):
            return replace(n, clauses=case_clauses(n.clauses))
        if isinstance(n, EFn):
            return replace(
                n,
                clauses=[
                    EFnClause([rename_pattern(p, mapping) for p in c.params], c.body, c.guard)
                    for c in n.clauses
                ],
            )
        if isinstance(n, EFor):
            gens = []
            for g in n.generators:
                if isinstance(g, EGenerator):
                    gens.append(EGenerator(rename_pattern(g.pattern, mapping), g.source))
                else:
                    gens.append(g)
            return replace(n, generators=gens)
        if isinstance(n, EWith):
            return replace(
                n,
                clauses=[EWithClause(rename_pattern(c.pattern, mapping), c.expr) for c in n.clauses],
                else_clauses=case_clauses(n.else_clauses),
            )
        if isinstance(n, ETry):
            return replace(
                n,
                rescue=[
                    ERescueClause(rename_pattern(r.pattern, mapping), r.body, r.exceptions)
                    for r in n.rescue
                ],
                catch=[
                    ECatchClause(
                        rename_pattern(k.pattern, mapping),
                        k.body,
                        None if k.kind is None else rename_pattern(k.kind, mapping),
                    )
                    for k in n.catch
                ],
                else_clauses=case_clauses(n.else_clauses),
            )
        return n

    return rewrite(node, fn)
