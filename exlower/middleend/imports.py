"""Module-level directives: ``require Bitwise`` and unused-private suppression."""

from __future__ import annotations

from dataclasses import replace

from ..ast import (
    BITWISE_OPS,
    UNUSED_PRIVATE_FUNCTIONS,
    EAtom,
    EBinary,
    ECall,
    EDefp,
    EFunctionDef,
    EImport,
    EInteger,
    EKeywordList,
    EModule,
    EModuleAttribute,
    ERaw,
    ETuple,
    EUnary,
    Node,
    meta_get,
)
from .traverse import rewrite, walk
from .usage import raw_identifiers

NOWARN_UNUSED = "nowarn_unused_function"


def _uses_bitwise(module: EModule) -> bool:
    for n in walk(module):
        if isinstance(n, EBinary) and n.op in BITWISE_OPS:
            return True
        if isinstance(n, EUnary) and n.op == "bnot":
            return True
    return False


def _has_import(module: EModule, name: str) -> bool:
    return any(isinstance(n, EImport) and n.module == name for n in module.body)


def add_bitwise_import(root: Node) -> Node:
    def fn(node: Node) -> Node:
        if isinstance(node, EModule) and _uses_bitwise(node) and not _has_import(node, "Bitwise"):
            return replace(node, body=[EImport("Bitwise", "require")] + node.body)
        return node

    return rewrite(root, fn)


# ── Unused private functions ──


def _called(module: EModule) -> set[tuple[str, int]]:
    """(name, arity) of local calls made outside the callee's own body."""
    out: set[tuple[str, int]] = set()
    raw: set[str] = set()
    for item in module.body:
        owner = item.name if isinstance(item, EFunctionDef) else None
        for n in walk(item):
            if isinstance(n, ECall) and n.name != owner:
                out.add((n.name, len(n.args)))
            elif isinstance(n, ERaw):
                raw |= raw_identifiers(n.code)
    for item in module.body:
        if isinstance(item, EDefp) and item.name in raw:
            out.add((item.name, len(item.params)))
    return out


def _has_suppression(module: EModule) -> bool:
    for n in module.body:
        if isinstance(n, EModuleAttribute) and n.name == "compile":
            value = n.value
            if isinstance(value, ETuple) and value.elements and value.elements[0] == EAtom(NOWARN_UNUSED):
                return True
    return False


def unused_private_functions(module: EModule) -> list[tuple[str, int]]:
    called = _called(module)
    unused: list[tuple[str, int]] = []
    for item in module.body:
        if isinstance(item, EDefp):
            key = (item.name, len(item.params))
            if key not in called and key not in unused:
                unused.append(key)
    listed = meta_get(module, UNUSED_PRIVATE_FUNCTIONS)
    if not isinstance(listed, list):
        listed = []
    for name, arity in listed:
        if (name, arity) not in unused:
            unused.append((name, arity))
    return unused


def suppress_unused_private(root: Node) -> Node:
    """@compile {:nowarn_unused_function, [name: arity, ...]}"""

    def fn(node: Node) -> Node:
        if not isinstance(node, EModule) or _has_suppression(node):
            return node
        unused = unused_private_functions(node)
        if not unused:
            return node
        listing = EKeywordList([(name, EInteger(arity)) for name, arity in unused])
        directive = EModuleAttribute("compile", ETuple([EAtom(NOWARN_UNUSED), listing]))
        body = list(node.body)
        at = 0
        while at < len(body) and isinstance(body[at], (EImport, EModuleAttribute)):
            at += 1
        body.insert(at, directive)
        return replace(node, body=body)

    return rewrite(root, fn)
