"""Elixir emitter: intermediate AST -> source text.

Output uses two-space indentation and follows ``mix format`` conventions
closely enough to read naturally. Inline forms (``if c, do: a, else: b``,
``fn x -> e end``, ``pat -> e``) are used only for simple expressions; see
``is_simple``.
"""

from __future__ import annotations

from ..ast import (
    BITWISE_OPS,
    CALL_OPS,
    EXCEPTION,
    EXCEPTION_FIELDS,
    INCREMENT_OPS,
    IMPERATIVE_BINARY_OPS,
    KEEP_INLINE,
    LOOP_NAME,
    WHILE_LOOP,
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
    ECond,
    EDef,
    EDefmacro,
    EDefp,
    EField,
    EFieldAssign,
    EFilter,
    EFloat,
    EFn,
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
    ERemoteCall,
    EString,
    EStruct,
    EStructUpdate,
    ETry,
    ETuple,
    EUnary,
    EUnderscore,
    EVar,
    EWith,
    Node,
    PBitstring,
    PCons,
    PList,
    PLiteral,
    PMap,
    PPin,
    PStruct,
    PTuple,
    PVar,
    PWildcard,
    Pattern,
    block_exprs,
    describe,
    meta_get,
)
from ..errors import UnhandledNodeError
from ..middleend.traverse import walk
from ..middleend.usage import all_names
from ..names import NameSupply
from .util import escape_string, format_atom, format_float, format_key, indent, is_bare_atom

_PRECEDENCE: dict[str, int] = {
    "||": 1,
    "or": 1,
    "&&": 2,
    "and": 2,
    "==": 3,
    "!=": 3,
    "===": 3,
    "!==": 3,
    "=~": 3,
    "<": 4,
    ">": 4,
    "<=": 4,
    ">=": 4,
    "in": 6,
    "++": 7,
    "--": 7,
    "<>": 7,
    "+": 8,
    "-": 8,
    "*": 9,
    "/": 9,
}

_LEAVES = (EVar, EInteger, EFloat, EString, EBoolean, EAtom, ENil, EUnderscore, EAlias)

# Module-body macros printed without call parentheses.
_MODULE_MACROS = frozenset({"defstruct", "use", "defexception"})

# Slots for value-position rendering.
_OPERAND = "operand"
_ARG = "arg"
_LITERAL = "literal"


def _needs_parens(child_op: str, parent_op: str, is_left: bool) -> bool:
    if child_op == "-":
        return True
    child_prec = _PRECEDENCE.get(child_op, 0)
    parent_prec = _PRECEDENCE.get(parent_op, 0)
    if child_prec < parent_prec:
        return True
    return child_prec == parent_prec and not is_left


def _atom_keys(keys: list[Node]) -> list[str] | None:
    """Key names when every key is a bare atom (so `key: v` syntax applies)."""
    out: list[str] = []
    for k in keys:
        if not isinstance(k, EAtom) or not is_bare_atom(k.value):
            return None
        out.append(k.value)
    return out


def is_simple(node: Node) -> bool:
    """Small enough to print on one line inside an inline form."""
    if isinstance(node, _LEAVES):
        return True
    if isinstance(node, EField):
        return is_simple(node.target)
    if isinstance(node, EAccess):
        return is_simple(node.target) and is_simple(node.key)
    if isinstance(node, (ETuple, EList)):
        return all(is_simple(e) for e in node.elements)
    if isinstance(node, EMap):
        return all(is_simple(k) and is_simple(v) for k, v in node.pairs)
    if isinstance(node, EKeywordList):
        return all(is_simple(v) for _, v in node.pairs)
    if isinstance(node, ECall):
        if node.name == WHILE_LOOP:
            return False
        return len(node.args) <= 2 and all(is_simple(a) for a in node.args)
    if isinstance(node, ERemoteCall):
        return (
            is_simple(node.module)
            and len(node.args) <= 2
            and all(is_simple(a) for a in node.args)
        )
    if isinstance(node, EUnary):
        return is_simple(node.operand)
    if isinstance(node, EBinary):
        return is_simple(node.left) and is_simple(node.right)
    if isinstance(node, EParen):
        return is_simple(node.expr)
    return False


class _ElixirEmitter:
    def __init__(self, taken: set[str] | None = None) -> None:
        self.indent: int = 0
        self.lines: list[str] = []
        self.taken: set[str] = set() if taken is None else taken
        self._names = NameSupply()

    def _line(self, text: str = "") -> None:
        if not text:
            self.lines.append("")
            return
        for part in text.split("\n"):
            self.lines.append(("  " * self.indent + part) if part else "")

    def output(self) -> str:
        return "\n".join(self.lines)

    # ── Module ────────────────────────────────────────────────

    def emit_module(self, module: EModule) -> None:
        self._line("defmodule " + module.name + " do")
        self.indent += 1
        directives: list[Node] = []
        definitions: list[Node] = []
        for item in module.body:
            if isinstance(item, (EImport, EModuleAttribute)):
                directives.append(item)
            else:
                definitions.append(item)
        for item in directives:
            self._line(self._module_item(item))
        if meta_get(module, EXCEPTION):
            fields = meta_get(module, EXCEPTION_FIELDS)
            if not isinstance(fields, list) or not fields:
                fields = ["message"]
            atoms = ", ".join(format_atom(str(f)) for f in fields)
            self._line("defexception [" + atoms + "]")
        need_blank = len(self.lines) > 1
        for item in definitions:
            if need_blank:
                self._line()
            self._line(self._module_item(item))
            need_blank = True
        self.indent -= 1
        self._line("end")

    def _module_item(self, item: Node) -> str:
        if isinstance(item, EImport):
            return item.directive + " " + item.module
        if isinstance(item, EModuleAttribute):
            return "@" + item.name + " " + self._expr(item.value)
        if isinstance(item, EFunctionDef):
            return self._def(item)
        if isinstance(item, ECall) and item.name in _MODULE_MACROS:
            return item.name + " " + self._args(item.args)
        if isinstance(item, EModule):
            sub = _ElixirEmitter(self.taken)
            sub.emit_module(item)
            return sub.output()
        return self._stmt(item)

    def _def(self, node: EFunctionDef) -> str:
        if isinstance(node, EDefp):
            keyword = "defp"
        elif isinstance(node, EDefmacro):
            keyword = "defmacro"
        elif isinstance(node, EDef):
            keyword = "def"
        else:
            raise UnhandledNodeError("bare function definition", subtree=describe(node))
        head = keyword + " " + node.name
        if node.params:
            head += "(" + ", ".join(self._pattern(p) for p in node.params) + ")"
        if node.guard is not None:
            head += " when " + self._expr(node.guard)
        if meta_get(node, KEEP_INLINE) and is_simple(node.body):
            return head + ", do: " + self._expr(node.body)
        return head + " do\n" + indent(self._body(node.body)) + "\nend"

    # ── Statements ────────────────────────────────────────────

    def _body(self, node: Node) -> str:
        stmts = block_exprs(node)
        if not stmts:
            return "nil"
        return "\n".join(self._stmt(s) for s in stmts)

    def _stmt(self, node: Node) -> str:
        """Render node in statement position (a line of a body)."""
        if isinstance(node, EBlock):
            return self._body(node)
        if isinstance(node, EIf):
            return self._if(node, inline_ok=bool(meta_get(node, KEEP_INLINE)))
        if isinstance(node, ECall) and node.name == WHILE_LOOP:
            return self._while(node, wrap=False)
        return self._expr(node)

    # ── Expressions ───────────────────────────────────────────

    def _expr(self, node: Node, slot: str | None = None) -> str:
        """Render node in value position. slot says where it is embedded."""
        if isinstance(node, EVar):
            return node.name
        if isinstance(node, EInteger):
            return str(node.value)
        if isinstance(node, EFloat):
            return format_float(node.value)
        if isinstance(node, EString):
            return '"' + escape_string(node.value) + '"'
        if isinstance(node, EBoolean):
            return "true" if node.value else "false"
        if isinstance(node, EAtom):
            return format_atom(node.value)
        if isinstance(node, ENil):
            return "nil"
        if isinstance(node, EUnderscore):
            return "_"
        if isinstance(node, EAlias):
            return node.name
        if isinstance(node, ERaw):
            return node.code
        if isinstance(node, EIf):
            text = self._if(node, inline_ok=True)
            if slot is not None:
                return "(" + text + ")"
            return text
        if isinstance(node, EBlock):
            return self._value_block(node, slot)
        if isinstance(node, EMatch):
            text = self._pattern(node.pattern) + " = " + self._expr(node.expr, slot)
            if slot == _OPERAND:
                return "(" + text + ")"
            return text
        if isinstance(node, ECall):
            return self._call(node)
        if isinstance(node, ERemoteCall):
            return self._remote_module(node.module) + "." + node.name + "(" + self._args(node.args) + ")"
        if isinstance(node, EApply):
            target = self._expr(node.fn)
            if not isinstance(node.fn, (EVar, EField, EParen)):
                target = "(" + target + ")"
            return target + ".(" + self._args(node.args) + ")"
        if isinstance(node, EBinary):
            return self._binary(node)
        if isinstance(node, EUnary):
            return self._unary(node)
        if isinstance(node, EField):
            return self._postfix_target(node.target) + "." + node.field
        if isinstance(node, EAccess):
            return self._postfix_target(node.target) + "[" + self._expr(node.key) + "]"
        if isinstance(node, ERange):
            text = self._range_bound(node.start) + ".." + self._range_bound(node.end)
            if node.step is not None:
                text += "//" + self._range_bound(node.step)
            return text
        if isinstance(node, EPipe):
            text = self._expr(node.left, _OPERAND) + " |> " + self._expr(node.right, _OPERAND)
            if slot == _OPERAND:
                return "(" + text + ")"
            return text
        if isinstance(node, EParen):
            if isinstance(node.expr, EBlock) and len(node.expr.exprs) > 1:
                return self._value_block(node.expr, None)
            return "(" + self._expr(node.expr) + ")"
        if isinstance(node, EList):
            return "[" + self._elements(node.elements) + "]"
        if isinstance(node, ETuple):
            return "{" + self._elements(node.elements) + "}"
        if isinstance(node, EMap):
            return "%{" + self._map_pairs(node.pairs) + "}"
        if isinstance(node, EKeywordList):
            return "[" + self._keyword_pairs(node.pairs) + "]"
        if isinstance(node, EStruct):
            return "%" + node.module + "{" + self._keyword_pairs(node.fields) + "}"
        if isinstance(node, EStructUpdate):
            return "%{" + self._expr(node.target) + " | " + self._keyword_pairs(node.fields) + "}"
        if isinstance(node, EBitstring):
            return "<<" + ", ".join(self._segment(s) for s in node.segments) + ">>"
        if isinstance(node, EFn):
            return self._fn(node)
        if isinstance(node, EFor):
            return self._for(node, slot)
        if isinstance(node, ECase):
            return self._wrap(self._case(node), slot)
        if isinstance(node, ECond):
            return self._wrap(self._cond(node), slot)
        if isinstance(node, ETry):
            return self._wrap(self._try(node), slot)
        if isinstance(node, EWith):
            return self._wrap(self._with(node), slot)
        if isinstance(node, EReceive):
            return self._wrap(self._receive(node), slot)
        if isinstance(node, EFieldAssign):
            raise UnhandledNodeError("field assignment reached the printer", subtree=describe(node))
        if isinstance(node, (EModule, EFunctionDef, EImport, EModuleAttribute)):
            return self._module_item(node)
        raise UnhandledNodeError("unknown expression", subtree=describe(node))

    def _wrap(self, text: str, slot: str | None) -> str:
        if slot == _OPERAND:
            return "(" + text + ")"
        return text

    def _value_block(self, node: EBlock, slot: str | None) -> str:
        if not node.exprs:
            return "nil"
        if len(node.exprs) == 1:
            return self._expr(node.exprs[0], slot)
        body = indent(self._body(node))
        if slot in (_ARG, _LITERAL):
            return "(fn ->\n" + body + "\nend).()"
        return "(\n" + body + "\n)"

    def _args(self, args: list[Node]) -> str:
        return ", ".join(self._expr(a, _ARG) for a in args)

    def _elements(self, elements: list[Node]) -> str:
        return ", ".join(self._expr(e, _LITERAL) for e in elements)

    def _map_pairs(self, pairs: list[tuple[Node, Node]]) -> str:
        keys = _atom_keys([k for k, _ in pairs])
        if keys is not None:
            return ", ".join(
                format_key(key) + " " + self._expr(v, _LITERAL) for key, (_, v) in zip(keys, pairs)
            )
        return ", ".join(
            self._expr(k, _LITERAL) + " => " + self._expr(v, _LITERAL) for k, v in pairs
        )

    def _keyword_pairs(self, pairs: list[tuple[str, Node]]) -> str:
        return ", ".join(format_key(k) + " " + self._expr(v, _LITERAL) for k, v in pairs)

    def _segment(self, seg: EBitSegment) -> str:
        text = self._expr(seg.value)
        mods: list[str] = []
        if seg.size is not None:
            mods.append("size(" + self._expr(seg.size) + ")")
        if seg.kind is not None:
            mods.append(seg.kind)
        if mods:
            text += "::" + "-".join(mods)
        return text

    def _remote_module(self, module: Node) -> str:
        if isinstance(module, (EAlias, EAtom, EVar)):
            return self._expr(module)
        return "(" + self._expr(module) + ")"

    def _postfix_target(self, target: Node) -> str:
        text = self._expr(target)
        if isinstance(target, (EVar, EField, EAccess, ECall, ERemoteCall, EApply, EParen, EAlias)):
            return text
        return "(" + text + ")"

    def _range_bound(self, node: Node) -> str:
        if isinstance(node, (EBinary, EMatch, EIf)):
            return "(" + self._expr(node) + ")"
        return self._expr(node)

    # ── Operators ─────────────────────────────────────────────

    def _call(self, node: ECall) -> str:
        if node.name == WHILE_LOOP:
            return self._while(node, wrap=True)
        return node.name + "(" + self._args(node.args) + ")"

    def _binary(self, node: EBinary) -> str:
        if node.op in IMPERATIVE_BINARY_OPS:
            raise UnhandledNodeError("imperative operator " + node.op, subtree=describe(node))
        if node.op in BITWISE_OPS:
            return "Bitwise." + BITWISE_OPS[node.op] + "(" + self._args([node.left, node.right]) + ")"
        if node.op in CALL_OPS:
            return node.op + "(" + self._args([node.left, node.right]) + ")"
        left = self._operand(node.left, node.op, True)
        right = self._operand(node.right, node.op, False)
        return left + " " + node.op + " " + right

    def _operand(self, operand: Node, parent_op: str, is_left: bool) -> str:
        if isinstance(operand, EBinary):
            text = self._expr(operand)
            if operand.op in BITWISE_OPS or operand.op in CALL_OPS:
                return text
            if _needs_parens(operand.op, parent_op, is_left):
                return "(" + text + ")"
            return text
        return self._expr(operand, _OPERAND)

    def _unary(self, node: EUnary) -> str:
        if node.op in INCREMENT_OPS:
            raise UnhandledNodeError("imperative operator " + node.op, subtree=describe(node))
        if node.op == "bnot":
            return "Bitwise.bnot(" + self._expr(node.operand, _ARG) + ")"
        operand = self._expr(node.operand, _OPERAND)
        if isinstance(node.operand, EBinary) or (node.op == "-" and operand.startswith("-")):
            operand = "(" + operand + ")"
        if node.op == "not":
            return "not " + operand
        return node.op + operand

    # ── Control forms ─────────────────────────────────────────

    def _if(self, node: EIf, inline_ok: bool) -> str:
        cond = self._expr(node.cond)
        simple = is_simple(node.cond) and is_simple(node.then_branch)
        if node.else_branch is not None:
            simple = simple and is_simple(node.else_branch)
        if inline_ok and simple:
            text = "if " + cond + ", do: " + self._expr(node.then_branch)
            if node.else_branch is not None:
                text += ", else: " + self._expr(node.else_branch)
            return text
        text = "if " + cond + " do\n" + indent(self._body(node.then_branch))
        if node.else_branch is not None:
            text += "\nelse\n" + indent(self._body(node.else_branch))
        return text + "\nend"

    def _clause(self, head: str, body: Node) -> str:
        if is_simple(body):
            return head + " -> " + self._expr(body)
        return head + " ->\n" + indent(self._body(body))

    def _case_clauses(self, clauses: list[ECaseClause]) -> str:
        out: list[str] = []
        for c in clauses:
            head = self._pattern(c.pattern)
            if c.guard is not None:
                head += " when " + self._expr(c.guard)
            out.append(self._clause(head, c.body))
        return "\n".join(out)

    def _case(self, node: ECase) -> str:
        return "case " + self._expr(node.expr) + " do\n" + indent(self._case_clauses(node.clauses)) + "\nend"

    def _cond(self, node: ECond) -> str:
        clauses = "\n".join(self._clause(self._expr(c.cond), c.body) for c in node.clauses)
        return "cond do\n" + indent(clauses) + "\nend"

    def _try(self, node: ETry) -> str:
        text = "try do\n" + indent(self._body(node.body))
        if node.rescue:
            clauses: list[str] = []
            for r in node.rescue:
                head = self._pattern(r.pattern)
                if r.exceptions:
                    kinds = ", ".join(self._expr(e) for e in r.exceptions)
                    if len(r.exceptions) == 1:
                        head += " in " + kinds
                    else:
                        head += " in [" + kinds + "]"
                clauses.append(self._clause(head, r.body))
            text += "\nrescue\n" + indent("\n".join(clauses))
        if node.catch:
            clauses = []
            for k in node.catch:
                head = self._pattern(k.pattern)
                if k.kind is not None:
                    head = self._pattern(k.kind) + ", " + head
                clauses.append(self._clause(head, k.body))
            text += "\ncatch\n" + indent("\n".join(clauses))
        if node.else_clauses:
            text += "\nelse\n" + indent(self._case_clauses(node.else_clauses))
        if node.after is not None:
            text += "\nafter\n" + indent(self._body(node.after))
        return text + "\nend"

    def _with(self, node: EWith) -> str:
        heads = ", ".join(self._pattern(c.pattern) + " <- " + self._expr(c.expr) for c in node.clauses)
        text = "with " + heads + " do\n" + indent(self._body(node.body))
        if node.else_clauses:
            text += "\nelse\n" + indent(self._case_clauses(node.else_clauses))
        return text + "\nend"

    def _receive(self, node: EReceive) -> str:
        text = "receive do"
        if node.clauses:
            text += "\n" + indent(self._case_clauses(node.clauses))
        if node.after is not None:
            text += "\nafter\n" + indent(self._clause(self._expr(node.after.timeout), node.after.body))
        return text + "\nend"

    def _fn(self, node: EFn) -> str:
        heads: list[str] = []
        for c in node.clauses:
            head = ", ".join(self._pattern(p) for p in c.params)
            if c.guard is not None:
                head += " when " + self._expr(c.guard)
            heads.append(head)
        if len(node.clauses) == 1:
            clause = node.clauses[0]
            prefix = "fn " + heads[0] + " ->" if heads[0] else "fn ->"
            if is_simple(clause.body):
                return prefix + " " + self._expr(clause.body) + " end"
            return prefix + "\n" + indent(self._body(clause.body)) + "\nend"
        parts = [self._clause(h, c.body) for h, c in zip(heads, node.clauses)]
        return "fn\n" + indent("\n".join(parts)) + "\nend"

    def _for(self, node: EFor, slot: str | None) -> str:
        parts: list[str] = []
        for g in node.generators:
            if isinstance(g, EGenerator):
                parts.append(self._pattern(g.pattern) + " <- " + self._expr(g.source))
            elif isinstance(g, EFilter):
                parts.append(self._expr(g.cond))
        if node.into is not None:
            parts.append("into: " + self._expr(node.into))
        head = "for " + ", ".join(parts)
        if is_simple(node.body):
            text = head + ", do: " + self._expr(node.body)
        elif isinstance(node.body, EFor) and self._inline_for(node.body):
            text = head + ", do: (" + self._expr(node.body) + ")"
        else:
            text = head + " do\n" + indent(self._body(node.body)) + "\nend"
        return self._wrap(text, slot)

    def _inline_for(self, node: EFor) -> bool:
        if is_simple(node.body):
            return True
        return isinstance(node.body, EFor) and self._inline_for(node.body)

    def _while(self, node: ECall, wrap: bool) -> str:
        """__while__(cond, body) as a self-applied recursive anonymous function."""
        if len(node.args) != 2:
            raise UnhandledNodeError("malformed while loop", subtree=describe(node))
        cond, body = node.args
        name = meta_get(node, LOOP_NAME)
        if not isinstance(name, str):
            name = self._names.fresh_avoiding("loop", self.taken)
            self.taken.add(name)
        step = self._body(body)
        iteration = (
            "if "
            + self._expr(cond)
            + " do\n"
            + indent(step + "\n" + name + ".(" + name + ")")
            + "\nelse\n  :ok\nend"
        )
        text = name + " = fn " + name + " ->\n" + indent(iteration) + "\nend\n" + name + ".(" + name + ")"
        if wrap:
            return "(\n" + indent(text) + "\n)"
        return text

    # ── Patterns ──────────────────────────────────────────────

    def _pattern(self, p: Pattern) -> str:
        if isinstance(p, PVar):
            return p.name
        if isinstance(p, PWildcard):
            return "_"
        if isinstance(p, PLiteral):
            return self._expr(p.value)
        if isinstance(p, PPin):
            return "^" + p.name
        if isinstance(p, PTuple):
            return "{" + ", ".join(self._pattern(e) for e in p.elements) + "}"
        if isinstance(p, PList):
            return "[" + ", ".join(self._pattern(e) for e in p.elements) + "]"
        if isinstance(p, PCons):
            heads = ", ".join(self._pattern(h) for h in p.heads)
            return "[" + heads + " | " + self._pattern(p.tail) + "]"
        if isinstance(p, PMap):
            keys = _atom_keys([k for k, _ in p.pairs])
            if keys is not None:
                inner = ", ".join(
                    format_key(key) + " " + self._pattern(v) for key, (_, v) in zip(keys, p.pairs)
                )
            else:
                inner = ", ".join(self._expr(k) + " => " + self._pattern(v) for k, v in p.pairs)
            return "%{" + inner + "}"
        if isinstance(p, PStruct):
            inner = ", ".join(format_key(f) + " " + self._pattern(v) for f, v in p.fields)
            return "%" + p.module + "{" + inner + "}"
        if isinstance(p, PBitstring):
            segs: list[str] = []
            for s in p.segments:
                text = self._pattern(s.pattern)
                mods: list[str] = []
                if s.size is not None:
                    mods.append("size(" + self._expr(s.size) + ")")
                if s.kind is not None:
                    mods.append(s.kind)
                if mods:
                    text += "::" + "-".join(mods)
                segs.append(text)
            return "<<" + ", ".join(segs) + ">>"
        raise UnhandledNodeError("unknown pattern", subtree=describe(p))


def _taken_names(node: Node) -> set[str]:
    """Variables and named loops, which printer-minted loop names must avoid."""
    taken = all_names(node)
    for n in walk(node):
        name = meta_get(n, LOOP_NAME)
        if isinstance(name, str):
            taken.add(name)
    return taken


def emit_elixir(node: Node) -> str:
    """Render node as Elixir source.

    A module renders as a full ``defmodule`` with a trailing newline; any
    other node renders as statement text without one.
    """
    emitter = _ElixirEmitter(_taken_names(node))
    if isinstance(node, EModule):
        emitter.emit_module(node)
        return emitter.output() + "\n"
    return emitter._stmt(node)
