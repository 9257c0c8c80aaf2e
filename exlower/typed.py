"""Typed input tree handed over by the upstream type-checker.

Every expression carries ``typ``, the checker's rendering of its static type
(``"Int"``, ``"String"``, ``"Array<Int>"``, ``"my.pkg.User"``, ...). Local
bindings are identified by ``TVar.id``, which is stable across the tree; two
``TLocal`` nodes refer to the same binding iff their ids are equal.

The shapes mirror what object-oriented front-ends emit after desugaring:
blocks of statements, while loops, null comparisons, enum index/parameter
access. The pattern library matches on these shapes directly.
"""

from __future__ import annotations

from dataclasses import dataclass, field

DYNAMIC = "Dynamic"


@dataclass
class TVar:
    """A local binding."""

    id: int
    name: str
    typ: str = DYNAMIC


@dataclass
class TExpr:
    """Base for typed expressions."""


# --- leaves ---


@dataclass
class TConst(TExpr):
    """Literal: None, bool, int, float or str."""

    value: object
    typ: str = DYNAMIC


@dataclass
class TLocal(TExpr):
    """Read of a local binding."""

    var: TVar
    typ: str = DYNAMIC


@dataclass
class TThis(TExpr):
    """The method receiver."""

    typ: str = DYNAMIC


@dataclass
class TTypeExpr(TExpr):
    """A class or module used as a value, e.g. the target of a static call."""

    path: str
    typ: str = DYNAMIC


@dataclass
class TRaw(TExpr):
    """Target-language code injected verbatim."""

    code: str
    typ: str = DYNAMIC


# --- statements ---


@dataclass
class TVarDecl(TExpr):
    """var name = init. init None means declared without a value."""

    var: TVar
    init: TExpr | None = None
    typ: str = DYNAMIC


@dataclass
class TBlock(TExpr):
    """{ e1; e2; ... }. The value is the last expression."""

    exprs: list[TExpr]
    typ: str = DYNAMIC


@dataclass
class TIf(TExpr):
    cond: TExpr
    then: TExpr
    else_: TExpr | None = None
    typ: str = DYNAMIC


@dataclass
class TWhile(TExpr):
    cond: TExpr
    body: TExpr
    typ: str = DYNAMIC


@dataclass
class TReturn(TExpr):
    value: TExpr | None = None
    typ: str = DYNAMIC


@dataclass
class TThrow(TExpr):
    expr: TExpr
    typ: str = DYNAMIC


@dataclass
class TCatch:
    var: TVar
    body: TExpr


@dataclass
class TTry(TExpr):
    body: TExpr
    catches: list[TCatch] = field(default_factory=list)
    typ: str = DYNAMIC


@dataclass
class TSwitchCase:
    """values are the constants this case matches; body runs on match."""

    values: list[TExpr]
    body: TExpr


@dataclass
class TSwitch(TExpr):
    subject: TExpr
    cases: list[TSwitchCase]
    default: TExpr | None = None
    typ: str = DYNAMIC


# --- expressions ---


@dataclass
class TBinop(TExpr):
    """Binary operator, including assignment ``=`` and compound ``+=``."""

    op: str
    left: TExpr
    right: TExpr
    typ: str = DYNAMIC


@dataclass
class TUnop(TExpr):
    """Unary operator. postfix distinguishes ``i++`` from ``++i``."""

    op: str
    operand: TExpr
    postfix: bool = False
    typ: str = DYNAMIC


@dataclass
class TField(TExpr):
    target: TExpr
    name: str
    typ: str = DYNAMIC


@dataclass
class TArrayAccess(TExpr):
    target: TExpr
    index: TExpr
    typ: str = DYNAMIC


@dataclass
class TCall(TExpr):
    """Call. target is a TField for method/static calls, else a function value."""

    target: TExpr
    args: list[TExpr]
    typ: str = DYNAMIC


@dataclass
class TNew(TExpr):
    path: str
    args: list[TExpr]
    typ: str = DYNAMIC


@dataclass
class TParenthesis(TExpr):
    expr: TExpr
    typ: str = DYNAMIC


@dataclass
class TArrayDecl(TExpr):
    elements: list[TExpr]
    typ: str = DYNAMIC


@dataclass
class TObjectDecl(TExpr):
    """Anonymous structure literal { a: 1, b: 2 }."""

    fields: list[tuple[str, TExpr]]
    typ: str = DYNAMIC


@dataclass
class TFunction(TExpr):
    """Anonymous function."""

    params: list[TVar]
    body: TExpr
    typ: str = DYNAMIC


@dataclass
class TMeta(TExpr):
    """Compiler metadata wrapper, e.g. ``unrolled`` or ``inline``."""

    name: str
    expr: TExpr
    typ: str = DYNAMIC


# --- enums ---


@dataclass
class TEnumValue(TExpr):
    """Construction of an enum value: constructor index plus payload."""

    path: str
    index: int
    args: list[TExpr] = field(default_factory=list)
    typ: str = DYNAMIC


@dataclass
class TEnumIndex(TExpr):
    """Constructor index of an enum value, used as a switch subject.

    arities maps constructor index to payload count when the enum is known.
    """

    expr: TExpr
    arities: dict[int, int] = field(default_factory=dict)
    typ: str = "Int"


@dataclass
class TEnumParameter(TExpr):
    """Payload slot ``index`` (0-based) of an enum value.

    name is the parameter's declared name, used for clause-local naming.
    """

    expr: TExpr
    index: int
    name: str | None = None
    typ: str = DYNAMIC


# ============================================================
# MODULE-LEVEL DECLARATIONS
# ============================================================


@dataclass
class TFieldDecl:
    name: str
    default: TExpr | None = None


@dataclass
class TFunctionDecl:
    """Method or static function. Instance methods receive the struct first."""

    name: str
    params: list[TVar]
    body: TExpr
    public: bool = True
    static: bool = True


@dataclass
class TModuleDecl:
    """A class compiled to one Elixir module."""

    path: str
    functions: list[TFunctionDecl] = field(default_factory=list)
    fields: list[TFieldDecl] = field(default_factory=list)
    is_exception: bool = False
