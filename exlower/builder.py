"""Reference lowering from the typed input tree to the intermediate AST.

The builder is deliberately literal: it produces imperative shapes
(``EFieldAssign``, ``a.push(v)``, ``i++``, ``%``, ``__while__``) and leaves
them to the pipeline. Along the way it:

- tries the pattern library on every block and while loop;
- tags variable reads and declarations with ``source_id``;
- tags switch-case bodies that extract enum payloads with ``clause_vars``;
- tags enum switches with ``enum_arity`` and unrolled blocks with
  ``unrolled_loop``.
"""

from __future__ import annotations

import logging

from .ast import (
    CLAUSE_VARS,
    ENUM_ARITY,
    EXCEPTION,
    EXCEPTION_FIELDS,
    KEEP_INLINE,
    SOURCE_ID,
    UNROLLED_LOOP,
    WHILE_LOOP,
    EAlias,
    EApply,
    EAtom,
    EBinary,
    EBlock,
    EBoolean,
    ECall,
    ECase,
    ECaseClause,
    ECatchClause,
    EDef,
    EDefp,
    EField,
    EFieldAssign,
    EFloat,
    EFn,
    EFnClause,
    EIf,
    EInteger,
    EKeywordList,
    EList,
    EMap,
    EMatch,
    EModule,
    ENil,
    EParen,
    ERaw,
    ERemoteCall,
    EString,
    ETry,
    ETuple,
    EUnary,
    EVar,
    Node,
    PLiteral,
    PVar,
    PWildcard,
    make_block,
    with_meta,
)
from .errors import UnhandledNodeError
from .names import elixir_name, module_name
from .patterns import BLOCK_IDIOMS, LOOP_IDIOMS, LoweringContext, apply_idiom
from .typed import (
    TArrayAccess,
    TArrayDecl,
    TBinop,
    TBlock,
    TCall,
    TConst,
    TEnumIndex,
    TEnumParameter,
    TEnumValue,
    TExpr,
    TField,
    TFunction,
    TFunctionDecl,
    TIf,
    TLocal,
    TMeta,
    TModuleDecl,
    TNew,
    TObjectDecl,
    TParenthesis,
    TRaw,
    TReturn,
    TSwitch,
    TSwitchCase,
    TThis,
    TThrow,
    TTry,
    TTypeExpr,
    TUnop,
    TVarDecl,
    TWhile,
)

logger = logging.getLogger(__name__)

_BINARY_OPS: dict[str, str] = {
    "+": "+",
    "-": "-",
    "*": "*",
    "/": "/",
    "%": "%",
    "==": "==",
    "!=": "!=",
    "<": "<",
    ">": ">",
    "<=": "<=",
    ">=": ">=",
    "&&": "&&",
    "||": "||",
    "&": "band",
    "|": "bor",
    "^": "bxor",
    "<<": "bsl",
    ">>": "bsr",
}

_COMPOUND_OPS = {op + "=": op for op in ("+", "-", "*", "/", "%", "&", "|", "^", "<<", ">>")}


def _is_string(typ: str) -> bool:
    return typ == "String"


def _is_array(typ: str) -> bool:
    return typ.startswith("Array")


class Builder:
    """Lowers one module. instance_param names the receiver of instance methods."""

    def __init__(self, module_path: str, instance_param: str = "struct") -> None:
        self.module_path = module_path
        self.instance_param = instance_param
        self.ctx = LoweringContext(build=self.expr, name=elixir_name)

    # ── Module ────────────────────────────────────────────────

    def module(self, decl: TModuleDecl) -> EModule:
        body: list[Node] = []
        meta: dict[str, object] = {}
        field_names = [elixir_name(f.name) for f in decl.fields]
        if decl.is_exception:
            meta[EXCEPTION] = True
            meta[EXCEPTION_FIELDS] = field_names or ["message"]
        elif decl.fields:
            defaults = [
                (elixir_name(f.name), ENil() if f.default is None else self.expr(f.default))
                for f in decl.fields
            ]
            body.append(ECall("defstruct", [EKeywordList(defaults)]))
        for fn in decl.functions:
            body.append(self.function(fn))
        return EModule(module_name(decl.path), body, meta=meta or None)

    def function(self, decl: TFunctionDecl) -> Node:
        params = [PVar(elixir_name(p.name)) for p in decl.params]
        if not decl.static:
            params.insert(0, PVar(self.instance_param))
        body = self.expr(decl.body)
        name = elixir_name(decl.name)
        if decl.public:
            return EDef(name, params, body)
        return EDefp(name, params, body)

    # ── Expressions ───────────────────────────────────────────

    def expr(self, e: TExpr) -> Node:
        if isinstance(e, TConst):
            return self._const(e.value)
        if isinstance(e, TLocal):
            return EVar(elixir_name(e.var.name), meta={SOURCE_ID: e.var.id})
        if isinstance(e, TThis):
            return EVar(self.instance_param)
        if isinstance(e, TTypeExpr):
            return EAlias(module_name(e.path))
        if isinstance(e, TRaw):
            return ERaw(e.code)
        if isinstance(e, TVarDecl):
            value = ENil() if e.init is None else self.expr(e.init)
            return EMatch(PVar(elixir_name(e.var.name)), value, meta={SOURCE_ID: e.var.id})
        if isinstance(e, TBlock):
            return self._block(e)
        if isinstance(e, TIf):
            else_branch = None if e.else_ is None else self.expr(e.else_)
            return EIf(self.expr(e.cond), self.expr(e.then), else_branch)
        if isinstance(e, TWhile):
            return self._while(e)
        if isinstance(e, TReturn):
            return ENil() if e.value is None else self.expr(e.value)
        if isinstance(e, TThrow):
            return ECall("throw", [self.expr(e.expr)])
        if isinstance(e, TTry):
            catches = [
                ECatchClause(PVar(elixir_name(c.var.name)), self.expr(c.body)) for c in e.catches
            ]
            return ETry(self.expr(e.body), catch=catches)
        if isinstance(e, TSwitch):
            return self._switch(e)
        if isinstance(e, TBinop):
            return self._binop(e)
        if isinstance(e, TUnop):
            return self._unop(e)
        if isinstance(e, TField):
            return self._field(e)
        if isinstance(e, TArrayAccess):
            return ERemoteCall(EAlias("Enum"), "at", [self.expr(e.target), self.expr(e.index)])
        if isinstance(e, TCall):
            return self._call(e)
        if isinstance(e, TNew):
            return ERemoteCall(EAlias(module_name(e.path)), "new", [self.expr(a) for a in e.args])
        if isinstance(e, TParenthesis):
            return EParen(self.expr(e.expr))
        if isinstance(e, TArrayDecl):
            return EList([self.expr(x) for x in e.elements])
        if isinstance(e, TObjectDecl):
            return EMap([(EAtom(elixir_name(k)), self.expr(v)) for k, v in e.fields])
        if isinstance(e, TFunction):
            params = [PVar(elixir_name(p.name)) for p in e.params]
            return EFn([EFnClause(params, self.expr(e.body))])
        if isinstance(e, TMeta):
            return self._meta(e)
        if isinstance(e, TEnumValue):
            return ETuple([EInteger(e.index)] + [self.expr(a) for a in e.args])
        if isinstance(e, TEnumIndex):
            return ECall("elem", [self.expr(e.expr), EInteger(0)])
        if isinstance(e, TEnumParameter):
            return ECall("elem", [self.expr(e.expr), EInteger(e.index + 1)])
        raise UnhandledNodeError("unknown typed expression", subtree=type(e).__name__)

    def _const(self, value: object) -> Node:
        if value is None:
            return ENil()
        if isinstance(value, bool):
            return EBoolean(value)
        if isinstance(value, int):
            return EInteger(value)
        if isinstance(value, float):
            return EFloat(value)
        if isinstance(value, str):
            return EString(value)
        raise UnhandledNodeError("unsupported constant", subtree=repr(value))

    def _block(self, e: TBlock) -> Node:
        for name, is_fn, extract_fn, transform_fn in BLOCK_IDIOMS:
            node = apply_idiom(name, is_fn, extract_fn, transform_fn, e, self.ctx)
            if node is not None:
                logger.debug("recognized %s", name)
                return node
        stmts = [self.expr(x) for x in e.exprs]
        if not stmts:
            return EBlock([])
        return make_block(stmts)

    def _while(self, e: TWhile) -> Node:
        for name, is_fn, extract_fn, transform_fn in LOOP_IDIOMS:
            node = apply_idiom(name, is_fn, extract_fn, transform_fn, e, self.ctx)
            if node is not None:
                logger.debug("recognized %s", name)
                return node
        return ECall(WHILE_LOOP, [self.expr(e.cond), self.expr(e.body)])

    def _meta(self, e: TMeta) -> Node:
        node = self.expr(e.expr)
        if e.name == "unrolled" and isinstance(node, EBlock):
            return with_meta(node, **{UNROLLED_LOOP: True})
        if e.name == "inline":
            return with_meta(node, **{KEEP_INLINE: True})
        return node

    # ── Switch ────────────────────────────────────────────────

    def _switch(self, e: TSwitch) -> Node:
        clauses: list[ECaseClause] = []
        for case in e.cases:
            body = self._case_body(case)
            for value in case.values:
                clauses.append(ECaseClause(PLiteral(self.expr(value)), body))
        if e.default is not None:
            clauses.append(ECaseClause(PWildcard(), self.expr(e.default)))
        meta = None
        if isinstance(e.subject, TEnumIndex) and e.subject.arities:
            meta = {ENUM_ARITY: dict(e.subject.arities)}
        return ECase(self.expr(e.subject), clauses, meta=meta)

    def _case_body(self, case: TSwitchCase) -> Node:
        """Lower a case body; payload extractions named after the constructor
        parameter get a clause-local rename."""
        body = self.expr(case.body)
        stmts = case.body.exprs if isinstance(case.body, TBlock) else [case.body]
        renames: dict[int, str] = {}
        for stmt in stmts:
            if isinstance(stmt, TVarDecl) and isinstance(stmt.init, TEnumParameter):
                hint = stmt.init.name
                if hint is not None and elixir_name(hint) != elixir_name(stmt.var.name):
                    renames[stmt.var.id] = elixir_name(hint)
        if renames:
            return with_meta(body, **{CLAUSE_VARS: renames})
        return body

    # ── Operators ─────────────────────────────────────────────

    def _binop(self, e: TBinop) -> Node:
        if e.op == "=":
            return self._assign(e.left, self.expr(e.right))
        if e.op in _COMPOUND_OPS:
            op = _COMPOUND_OPS[e.op]
            value = self._binary(op, e.left, e.right, e.left.typ)
            return self._assign(e.left, value)
        if e.op == "??":
            left = self.expr(e.left)
            return EIf(EBinary("!=", left, ENil()), left, self.expr(e.right))
        return self._binary(e.op, e.left, e.right, e.typ)

    def _binary(self, op: str, left: TExpr, right: TExpr, typ: str) -> Node:
        if op == "+" and (_is_string(typ) or _is_string(left.typ) or _is_string(right.typ)):
            return EBinary("<>", self.expr(left), self.expr(right))
        if op == "+" and (_is_array(typ) or _is_array(left.typ)):
            return EBinary("++", self.expr(left), self.expr(right))
        if op not in _BINARY_OPS:
            raise UnhandledNodeError("unsupported operator " + op)
        return EBinary(_BINARY_OPS[op], self.expr(left), self.expr(right))

    def _assign(self, target: TExpr, value: Node) -> Node:
        if isinstance(target, TLocal):
            return EMatch(
                PVar(elixir_name(target.var.name)), value, meta={SOURCE_ID: target.var.id}
            )
        if isinstance(target, TField):
            return EFieldAssign(self.expr(target.target), elixir_name(target.name), value)
        if isinstance(target, TArrayAccess) and isinstance(target.target, TLocal):
            arr = self.expr(target.target)
            replaced = ERemoteCall(EAlias("List"), "replace_at", [arr, self.expr(target.index), value])
            return self._assign(target.target, replaced)
        raise UnhandledNodeError("unsupported assignment target", subtree=type(target).__name__)

    def _unop(self, e: TUnop) -> Node:
        operand = self.expr(e.operand)
        if e.op in ("++", "--"):
            prefix = "post" if e.postfix else "pre"
            return EUnary(prefix + e.op, operand)
        if e.op == "!":
            return EUnary("not", operand)
        if e.op == "~":
            return EUnary("bnot", operand)
        if e.op == "-":
            return EUnary("-", operand)
        raise UnhandledNodeError("unsupported unary operator " + e.op)

    # ── Fields and calls ──────────────────────────────────────

    def _field(self, e: TField) -> Node:
        if e.name == "length" and (_is_array(e.target.typ) or _is_string(e.target.typ)):
            if _is_string(e.target.typ):
                return ERemoteCall(EAlias("String"), "length", [self.expr(e.target)])
            return ECall("length", [self.expr(e.target)])
        return EField(self.expr(e.target), elixir_name(e.name))

    def _call(self, e: TCall) -> Node:
        args = [self.expr(a) for a in e.args]
        target = e.target
        if not isinstance(target, TField):
            return EApply(self.expr(target), args)
        name = elixir_name(target.name)
        recv = target.target
        if isinstance(recv, TTypeExpr):
            if recv.path == self.module_path:
                return ECall(name, args)
            return ERemoteCall(EAlias(module_name(recv.path)), name, args)
        if isinstance(recv, TThis):
            return ECall(name, [EVar(self.instance_param)] + args)
        if _is_array(recv.typ) and target.name in ("push", "pop"):
            return ERemoteCall(self.expr(recv), target.name, args)
        return ERemoteCall(EAlias(module_name(recv.typ)), name, [self.expr(recv)] + args)


def build_module(decl: TModuleDecl, instance_param: str = "struct") -> EModule:
    return Builder(decl.path, instance_param).module(decl)
