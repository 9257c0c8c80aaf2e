"""Typed tree to intermediate AST lowering."""

import pytest

from exlower.ast import (
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
    EBinary,
    EBlock,
    ECall,
    ECase,
    ECatchClause,
    EDef,
    EDefp,
    EField,
    EFieldAssign,
    EIf,
    EInteger,
    EKeywordList,
    EList,
    EMap,
    EAtom,
    EMatch,
    EModule,
    ENil,
    ERemoteCall,
    EString,
    ETry,
    ETuple,
    EUnary,
    EVar,
    PLiteral,
    PVar,
    PWildcard,
    meta_get,
)
from exlower.builder import Builder, build_module
from exlower.errors import UnhandledNodeError
from exlower.typed import (
    TArrayAccess,
    TArrayDecl,
    TBinop,
    TBlock,
    TCall,
    TCatch,
    TConst,
    TEnumIndex,
    TEnumParameter,
    TEnumValue,
    TField,
    TFieldDecl,
    TFunctionDecl,
    TLocal,
    TMeta,
    TModuleDecl,
    TNew,
    TObjectDecl,
    TSwitch,
    TSwitchCase,
    TThis,
    TThrow,
    TTry,
    TTypeExpr,
    TUnop,
    TVar,
    TVarDecl,
    TWhile,
)

X = TVar(1, "x")
Y = TVar(2, "y")
ARR = TVar(3, "arr", "Array<Int>")
S = TVar(4, "s", "String")


def _expr(e):
    return Builder("app.Main").expr(e)


# ── Modules and functions ──


def test_struct_module_with_instance_method() -> None:
    decl = TModuleDecl(
        "app.Counter",
        functions=[TFunctionDecl("getCount", [], TField(TThis(), "count"), static=False)],
        fields=[TFieldDecl("count", TConst(0)), TFieldDecl("label")],
    )
    assert build_module(decl) == EModule(
        "App.Counter",
        [
            ECall("defstruct", [EKeywordList([("count", EInteger(0)), ("label", ENil())])]),
            EDef("get_count", [PVar("struct")], EField(EVar("struct"), "count")),
        ],
    )


def test_instance_param_is_configurable() -> None:
    decl = TModuleDecl("app.Box", functions=[TFunctionDecl("get", [], TThis(), static=False)])
    module = build_module(decl, instance_param="self")
    assert module.body == [EDef("get", [PVar("self")], EVar("self"))]


def test_private_function() -> None:
    decl = TModuleDecl("app.Util", functions=[TFunctionDecl("helper", [X], TLocal(X), public=False)])
    assert build_module(decl).body == [EDefp("helper", [PVar("x")], EVar("x"))]


def test_exception_module() -> None:
    decl = TModuleDecl("app.ParseError", fields=[TFieldDecl("message"), TFieldDecl("line")], is_exception=True)
    module = build_module(decl)
    assert module.body == []
    assert meta_get(module, EXCEPTION) is True
    assert meta_get(module, EXCEPTION_FIELDS) == ["message", "line"]


def test_exception_module_defaults_to_message_field() -> None:
    module = build_module(TModuleDecl("app.Failure", is_exception=True))
    assert meta_get(module, EXCEPTION_FIELDS) == ["message"]


# ── Bindings ──


def test_locals_carry_source_ids() -> None:
    read = _expr(TLocal(X))
    assert read == EVar("x")
    assert meta_get(read, SOURCE_ID) == 1
    decl = _expr(TVarDecl(Y, TConst(2)))
    assert decl == EMatch(PVar("y"), EInteger(2))
    assert meta_get(decl, SOURCE_ID) == 2


def test_declaration_without_value_binds_nil() -> None:
    assert _expr(TVarDecl(X)) == EMatch(PVar("x"), ENil())


def test_compound_assignment() -> None:
    node = _expr(TBinop("+=", TLocal(X, "Int"), TConst(1)))
    assert node == EMatch(PVar("x"), EBinary("+", EVar("x"), EInteger(1)))


def test_field_assignment_is_left_imperative() -> None:
    node = _expr(TBinop("=", TField(TLocal(X), "name"), TConst("a")))
    assert node == EFieldAssign(EVar("x"), "name", EString("a"))


def test_array_element_assignment() -> None:
    node = _expr(TBinop("=", TArrayAccess(TLocal(ARR, ARR.typ), TConst(0)), TConst(9)))
    assert node == EMatch(
        PVar("arr"),
        ERemoteCall(EAlias("List"), "replace_at", [EVar("arr"), EInteger(0), EInteger(9)]),
    )


# ── Operators ──


def test_string_concatenation() -> None:
    node = _expr(TBinop("+", TLocal(S, "String"), TConst("!", "String"), "String"))
    assert node == EBinary("<>", EVar("s"), EString("!"))


def test_array_concatenation() -> None:
    node = _expr(TBinop("+", TLocal(ARR, ARR.typ), TArrayDecl([TConst(1)]), ARR.typ))
    assert node == EBinary("++", EVar("arr"), EList([EInteger(1)]))


@pytest.mark.parametrize(
    "op,expected",
    [("&", "band"), ("|", "bor"), ("^", "bxor"), ("<<", "bsl"), (">>", "bsr")],
)
def test_bitwise_operators(op: str, expected: str) -> None:
    assert _expr(TBinop(op, TLocal(X), TLocal(Y))) == EBinary(expected, EVar("x"), EVar("y"))


def test_unary_operators() -> None:
    assert _expr(TUnop("++", TLocal(X), postfix=True)) == EUnary("post++", EVar("x"))
    assert _expr(TUnop("--", TLocal(X))) == EUnary("pre--", EVar("x"))
    assert _expr(TUnop("!", TLocal(X))) == EUnary("not", EVar("x"))
    assert _expr(TUnop("~", TLocal(X))) == EUnary("bnot", EVar("x"))


def test_plain_null_coalesce() -> None:
    node = _expr(TBinop("??", TLocal(X), TConst(0)))
    assert node == EIf(EBinary("!=", EVar("x"), ENil()), EVar("x"), EInteger(0))


def test_unsupported_constant_raises() -> None:
    with pytest.raises(UnhandledNodeError):
        _expr(TConst(object()))


# ── Fields and calls ──


def test_length() -> None:
    assert _expr(TField(TLocal(ARR, ARR.typ), "length")) == ECall("length", [EVar("arr")])
    assert _expr(TField(TLocal(S, "String"), "length")) == ERemoteCall(
        EAlias("String"), "length", [EVar("s")]
    )


def test_array_index() -> None:
    node = _expr(TArrayAccess(TLocal(ARR, ARR.typ), TConst(2)))
    assert node == ERemoteCall(EAlias("Enum"), "at", [EVar("arr"), EInteger(2)])


def test_static_calls() -> None:
    local = _expr(TCall(TField(TTypeExpr("app.Main"), "run"), [TConst(1)]))
    assert local == ECall("run", [EInteger(1)])
    remote = _expr(TCall(TField(TTypeExpr("app.Other"), "run"), []))
    assert remote == ERemoteCall(EAlias("App.Other"), "run", [])


def test_instance_calls() -> None:
    own = _expr(TCall(TField(TThis(), "helper"), [TConst(1)]))
    assert own == ECall("helper", [EVar("struct"), EInteger(1)])
    user = TVar(5, "u", "app.User")
    other = _expr(TCall(TField(TLocal(user, "app.User"), "greet"), []))
    assert other == ERemoteCall(EAlias("App.User"), "greet", [EVar("u")])


def test_array_push_is_left_for_mutable_lowering() -> None:
    node = _expr(TCall(TField(TLocal(ARR, ARR.typ), "push"), [TConst(1)]))
    assert node == ERemoteCall(EVar("arr"), "push", [EInteger(1)])


def test_function_value_application() -> None:
    f = TVar(6, "callback")
    assert _expr(TCall(TLocal(f), [TConst(1)])) == EApply(EVar("callback"), [EInteger(1)])


def test_constructors_and_literals() -> None:
    assert _expr(TNew("app.User", [TConst("ann")])) == ERemoteCall(
        EAlias("App.User"), "new", [EString("ann")]
    )
    assert _expr(TObjectDecl([("firstName", TConst("a"))])) == EMap(
        [(EAtom("first_name"), EString("a"))]
    )


# ── Control flow ──


def test_plain_while_becomes_placeholder() -> None:
    node = _expr(TWhile(TBinop("<", TLocal(X), TConst(3)), TUnop("++", TLocal(X))))
    assert node == ECall(
        WHILE_LOOP,
        [EBinary("<", EVar("x"), EInteger(3)), EUnary("pre++", EVar("x"))],
    )


def test_throw_and_catch() -> None:
    err = TVar(7, "err")
    node = _expr(TTry(TThrow(TConst("bad")), [TCatch(err, TLocal(err))]))
    assert node == ETry(
        ECall("throw", [EString("bad")]),
        catch=[ECatchClause(PVar("err"), EVar("err"))],
    )


def test_switch_with_default() -> None:
    switch = TSwitch(
        TLocal(X),
        [TSwitchCase([TConst(1), TConst(2)], TConst("low"))],
        TConst("other"),
    )
    node = _expr(switch)
    assert isinstance(node, ECase)
    assert [c.pattern for c in node.clauses] == [
        PLiteral(EInteger(1)),
        PLiteral(EInteger(2)),
        PWildcard(),
    ]
    assert node.clauses[2].body == EString("other")


def test_enum_switch_carries_arity_and_clause_names() -> None:
    payload = TVar(8, "p")
    body = TBlock(
        [TVarDecl(payload, TEnumParameter(TLocal(X), 0, name="value")), TLocal(payload)]
    )
    switch = TSwitch(TEnumIndex(TLocal(X), {1: 2}), [TSwitchCase([TConst(1)], body)])
    node = _expr(switch)
    assert isinstance(node, ECase)
    assert node.expr == ECall("elem", [EVar("x"), EInteger(0)])
    assert meta_get(node, ENUM_ARITY) == {1: 2}
    clause_body = node.clauses[0].body
    assert clause_body == EBlock(
        [EMatch(PVar("p"), ECall("elem", [EVar("x"), EInteger(1)])), EVar("p")]
    )
    assert meta_get(clause_body, CLAUSE_VARS) == {8: "value"}


def test_enum_value() -> None:
    node = _expr(TEnumValue("app.Shape", 2, [TConst(1), TConst(2)]))
    assert node == ETuple([EInteger(2), EInteger(1), EInteger(2)])


def test_unrolled_and_inline_markers() -> None:
    block = _expr(TMeta("unrolled", TBlock([TVarDecl(X, TConst(1)), TLocal(X)])))
    assert meta_get(block, UNROLLED_LOOP) is True
    inline = _expr(TMeta("inline", TLocal(X)))
    assert meta_get(inline, KEEP_INLINE) is True
