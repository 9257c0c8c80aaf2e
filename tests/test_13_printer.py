"""Elixir printer: lexical rules, operators, layout and well-formedness."""

import re

import pytest

from exlower.ast import (
    EXCEPTION,
    KEEP_INLINE,
    LOOP_NAME,
    WHILE_LOOP,
    EAlias,
    EAtom,
    EBinary,
    EBlock,
    ECall,
    ECase,
    ECaseClause,
    ECatchClause,
    ECond,
    ECondClause,
    EDef,
    EDefp,
    EField,
    EFieldAssign,
    EFloat,
    EFn,
    EFnClause,
    EFor,
    EGenerator,
    EIf,
    EImport,
    EInteger,
    EKeywordList,
    EList,
    EMap,
    EMatch,
    EModule,
    ENil,
    ERange,
    EReceive,
    EReceiveAfter,
    ERemoteCall,
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
    PCons,
    PLiteral,
    PMap,
    PPin,
    PStruct,
    PTuple,
    PVar,
    PWildcard,
    with_meta,
)
from exlower.backend import emit_elixir
from exlower.backend.util import escape_string, format_atom, format_float, format_key
from exlower.errors import UnhandledNodeError


def a() -> EVar:
    return EVar("a")


def b() -> EVar:
    return EVar("b")


def c() -> EVar:
    return EVar("c")


def _balanced(text: str) -> bool:
    for open_, close in ("()", "[]", "{}"):
        if text.count(open_) != text.count(close):
            return False
    openers = len(re.findall(r"\bdo$", text, re.M)) + len(re.findall(r"\bfn\b", text))
    return openers == len(re.findall(r"\bend\b", text))


# ── Atoms, keys and strings ──


@pytest.mark.parametrize("name", ["valid?", "save!", "ok", "_private", "Elixir"])
def test_bare_atoms(name: str) -> None:
    assert format_atom(name) == ":" + name
    assert emit_elixir(EAtom(name)) == ":" + name


@pytest.mark.parametrize(
    "name,expected",
    [
        ("My.Module", ':"My.Module"'),
        ("123abc", ':"123abc"'),
        ("", ':""'),
        ("a-b", ':"a-b"'),
        ("a?b", ':"a?b"'),
        ("ok\n", ':"ok\\n"'),
    ],
)
def test_quoted_atoms(name: str, expected: str) -> None:
    assert format_atom(name) == expected


def test_keys() -> None:
    assert format_key("name") == "name:"
    assert format_key("first name") == '"first name":'
    assert format_key("ok\n") == '"ok\\n":'


def test_string_escaping() -> None:
    assert escape_string('a"b\\c\nd\te\rf') == 'a\\"b\\\\c\\nd\\te\\rf'


def test_interpolation_and_unicode_are_not_escaped() -> None:
    assert escape_string("#{x} é") == "#{x} é"


def test_string_literal() -> None:
    assert emit_elixir(EString('say "hi"\n')) == '"say \\"hi\\"\\n"'


def test_floats() -> None:
    assert format_float(1.5) == "1.5"
    assert format_float(1e20) == "1.0e20"
    assert emit_elixir(EFloat(2.0)) == "2.0"


# ── Operators ──


@pytest.mark.parametrize("op", ["band", "bor", "bxor", "bsl", "bsr"])
def test_bitwise_prints_as_qualified_call(op: str) -> None:
    text = emit_elixir(EBinary(op, a(), b()))
    assert text == "Bitwise." + op + "(a, b)"
    for symbol in ("&&&", "|||", "^^^", "<<<", ">>>"):
        assert symbol not in text


def test_nested_bitwise_keeps_operand_order() -> None:
    node = EBinary("bor", EBinary("band", a(), b()), c())
    assert emit_elixir(node) == "Bitwise.bor(Bitwise.band(a, b), c)"


def test_bnot() -> None:
    assert emit_elixir(EUnary("bnot", a())) == "Bitwise.bnot(a)"


def test_remainder_prints_as_call() -> None:
    assert emit_elixir(EBinary("rem", a(), b())) == "rem(a, b)"
    assert emit_elixir(EBinary("+", EBinary("rem", a(), b()), c())) == "rem(a, b) + c"


def test_precedence_parentheses() -> None:
    assert emit_elixir(EBinary("*", EBinary("+", a(), b()), c())) == "(a + b) * c"
    assert emit_elixir(EBinary("+", a(), EBinary("*", b(), c()))) == "a + b * c"
    assert emit_elixir(EBinary("+", EBinary("+", a(), b()), c())) == "a + b + c"
    assert emit_elixir(EBinary("+", a(), EBinary("+", b(), c()))) == "a + (b + c)"


def test_subtraction_is_always_parenthesized_as_operand() -> None:
    assert emit_elixir(EBinary("-", a(), EBinary("-", b(), c()))) == "a - (b - c)"
    assert emit_elixir(EBinary("+", EBinary("-", a(), b()), c())) == "(a - b) + c"


def test_unary() -> None:
    assert emit_elixir(EUnary("not", a())) == "not a"
    assert emit_elixir(EUnary("-", EBinary("+", a(), b()))) == "-(a + b)"
    assert emit_elixir(EUnary("-", EInteger(1))) == "-1"
    assert emit_elixir(EUnary("-", EInteger(-1))) == "-(-1)"
    assert emit_elixir(EUnary("-", EUnary("-", a()))) == "-(-a)"


def test_if_as_operand_is_parenthesized() -> None:
    cond = EIf(c(), EInteger(1), EInteger(2))
    assert emit_elixir(EBinary("+", cond, a())) == "(if c, do: 1, else: 2) + a"
    assert emit_elixir(EMap([(EAtom("k"), cond)])) == "%{k: (if c, do: 1, else: 2)}"


def test_match_with_if_as_argument_is_parenthesized() -> None:
    match = EMatch(PVar("x"), EIf(c(), EInteger(1), EInteger(2)))
    assert emit_elixir(ECall("foo", [match])) == "foo(x = (if c, do: 1, else: 2))"
    assert emit_elixir(match) == "x = if c, do: 1, else: 2"


# ── Imperative leftovers are defects ──


@pytest.mark.parametrize(
    "node",
    [
        EFieldAssign(a(), "f", b()),
        EBinary("%", a(), b()),
        EUnary("post++", a()),
        EUnary("pre--", a()),
    ],
    ids=["field_assign", "percent", "post_increment", "pre_decrement"],
)
def test_imperative_shapes_raise(node: Node) -> None:
    with pytest.raises(UnhandledNodeError):
        emit_elixir(node)


def test_unknown_node_raises() -> None:
    with pytest.raises(UnhandledNodeError):
        emit_elixir(Node())


# ── Blocks in single-expression slots ──


def _two_statements() -> EBlock:
    return EBlock([ECall("log", []), EInteger(1)])


def test_block_in_list_becomes_immediately_invoked_fn() -> None:
    assert emit_elixir(EList([_two_statements()])) == "[(fn ->\n  log()\n  1\nend).()]"


def test_block_as_argument_becomes_immediately_invoked_fn() -> None:
    assert emit_elixir(ECall("f", [_two_statements()])) == "f((fn ->\n  log()\n  1\nend).())"


def test_block_as_operand_is_parenthesized() -> None:
    assert emit_elixir(EBinary("+", _two_statements(), EInteger(2))) == "(\n  log()\n  1\n) + 2"


# ── Control forms ──


def test_if_forms() -> None:
    node = EIf(c(), EInteger(1), EInteger(2))
    assert emit_elixir(node) == "if c do\n  1\nelse\n  2\nend"
    assert emit_elixir(with_meta(node, **{KEEP_INLINE: True})) == "if c, do: 1, else: 2"
    assert emit_elixir(EIf(c(), ECall("go", []))) == "if c do\n  go()\nend"


def test_case() -> None:
    node = ECase(
        a(),
        [
            ECaseClause(PTuple([PLiteral(EInteger(1)), PVar("v")]), EVar("v")),
            ECaseClause(PVar("n"), EAtom("big"), EBinary(">", EVar("n"), EInteger(9))),
            ECaseClause(PWildcard(), ENil()),
        ],
    )
    assert emit_elixir(node) == (
        "case a do\n  {1, v} -> v\n  n when n > 9 -> :big\n  _ -> nil\nend"
    )


def test_cond() -> None:
    node = ECond([ECondClause(EBinary("<", a(), EInteger(0)), EAtom("neg")), ECondClause(EAtom("true"), EAtom("pos"))])
    assert emit_elixir(node) == "cond do\n  a < 0 -> :neg\n  :true -> :pos\nend"


def test_try() -> None:
    node = ETry(
        ECall("risky", []),
        rescue=[ERescueClause(PVar("e"), ECall("handle", [EVar("e")]), [EAlias("ArgumentError")])],
        catch=[ECatchClause(PVar("v"), EVar("v"))],
        after=ECall("cleanup", []),
    )
    assert emit_elixir(node) == (
        "try do\n  risky()\nrescue\n  e in ArgumentError -> handle(e)\n"
        "catch\n  v -> v\nafter\n  cleanup()\nend"
    )


def test_with() -> None:
    node = EWith(
        [EWithClause(PTuple([PLiteral(EAtom("ok")), PVar("x")]), ECall("fetch", []))],
        EVar("x"),
        [ECaseClause(PWildcard(), ENil())],
    )
    assert emit_elixir(node) == "with {:ok, x} <- fetch() do\n  x\nelse\n  _ -> nil\nend"


def test_receive() -> None:
    node = EReceive(
        [ECaseClause(PTuple([PLiteral(EAtom("msg")), PVar("m")]), EVar("m"))],
        EReceiveAfter(EInteger(100), EAtom("timeout")),
    )
    assert emit_elixir(node) == (
        "receive do\n  {:msg, m} -> m\nafter\n  100 -> :timeout\nend"
    )


def test_anonymous_functions() -> None:
    assert emit_elixir(EFn([EFnClause([PVar("x")], EVar("x"))])) == "fn x -> x end"
    assert emit_elixir(EFn([EFnClause([], EAtom("ok"))])) == "fn -> :ok end"
    multi = EFn(
        [
            EFnClause([PLiteral(EInteger(0))], EAtom("zero")),
            EFnClause([PWildcard()], EAtom("other")),
        ]
    )
    assert emit_elixir(multi) == "fn\n  0 -> :zero\n  _ -> :other\nend"
    long_body = EFn([EFnClause([PVar("x")], _two_statements())])
    assert emit_elixir(long_body) == "fn x ->\n  log()\n  1\nend"


def test_comprehension() -> None:
    node = EFor([EGenerator(PVar("i"), ERange(EInteger(0), EInteger(2)))], EVar("i"))
    assert emit_elixir(node) == "for i <- 0..2, do: i"
    into = EFor([EGenerator(PVar("x"), a())], EVar("x"), into=EMap([]))
    assert emit_elixir(into) == "for x <- a, into: %{}, do: x"


def test_while_loop_prints_as_recursive_fn() -> None:
    cond = EBinary("<", EVar("i"), EInteger(10))
    body = ECall("tick", [EVar("i")])
    node = ECall(WHILE_LOOP, [cond, body], meta={LOOP_NAME: "loop"})
    assert emit_elixir(node) == (
        "loop = fn loop ->\n"
        "  if i < 10 do\n"
        "    tick(i)\n"
        "    loop.(loop)\n"
        "  else\n"
        "    :ok\n"
        "  end\n"
        "end\n"
        "loop.(loop)"
    )


def test_unnamed_while_loops_get_distinct_names() -> None:
    loop = ECall(WHILE_LOOP, [EVar("go"), ECall("tick", [])])
    text = emit_elixir(EBlock([loop, loop]))
    assert "loop = fn loop ->" in text
    assert "loop_0 = fn loop_0 ->" in text


def test_unnamed_while_loop_avoids_existing_names() -> None:
    loop = ECall(WHILE_LOOP, [EVar("go"), ECall("tick", [])])
    named = ECall(WHILE_LOOP, [EVar("go"), ECall("tick", [])], meta={LOOP_NAME: "loop_1"})
    body = EBlock(
        [
            EMatch(PVar("loop"), EInteger(1)),
            EMatch(PVar("loop_0"), EInteger(2)),
            named,
            loop,
            EVar("loop_0"),
        ]
    )
    text = emit_elixir(body)
    assert "loop_2 = fn loop_2 ->" in text
    assert "loop = fn" not in text
    assert "loop_0 = fn" not in text


def test_while_loop_in_value_position_is_wrapped() -> None:
    loop = ECall(WHILE_LOOP, [EVar("go"), ECall("tick", [])], meta={LOOP_NAME: "w"})
    text = emit_elixir(EMatch(PVar("r"), loop))
    assert text.startswith("r = (\n  w = fn w ->")
    assert text.endswith("  w.(w)\n)")


# ── Data and patterns ──


def test_data_literals() -> None:
    assert emit_elixir(EMap([(EAtom("a"), EInteger(1))])) == "%{a: 1}"
    assert emit_elixir(EMap([(EString("k"), EInteger(1))])) == '%{"k" => 1}'
    assert emit_elixir(EKeywordList([("a", EInteger(1)), ("b c", EInteger(2))])) == '[a: 1, "b c": 2]'
    assert emit_elixir(EStruct("User", [("name", EString("x"))])) == '%User{name: "x"}'
    assert emit_elixir(ETuple([])) == "{}"


def test_patterns() -> None:
    node = EMatch(PCons([PVar("h")], PWildcard()), a())
    assert emit_elixir(node) == "[h | _] = a"
    node = EMatch(PMap([(EAtom("id"), PPin("id"))]), a())
    assert emit_elixir(node) == "%{id: ^id} = a"
    node = EMatch(PStruct("User", [("name", PVar("n"))]), a())
    assert emit_elixir(node) == "%User{name: n} = a"


def test_calls_and_access() -> None:
    assert emit_elixir(ERemoteCall(EAlias("Enum"), "at", [a(), EInteger(0)])) == "Enum.at(a, 0)"
    assert emit_elixir(EField(ECall("f", []), "x")) == "f().x"
    assert emit_elixir(EField(EMap([]), "x")) == "(%{}).x"


# ── Modules ──


def test_module_layout() -> None:
    module = EModule(
        "App.Main",
        [
            EImport("Bitwise", "require"),
            EDef("f", [], EAtom("ok")),
            EDefp("g", [PVar("x")], EVar("x")),
        ],
    )
    assert emit_elixir(module) == (
        "defmodule App.Main do\n"
        "  require Bitwise\n"
        "\n"
        "  def f do\n"
        "    :ok\n"
        "  end\n"
        "\n"
        "  defp g(x) do\n"
        "    x\n"
        "  end\n"
        "end\n"
    )


def test_inline_def() -> None:
    fn = with_meta(EDef("id", [PVar("x")], EVar("x")), **{KEEP_INLINE: True})
    assert emit_elixir(fn) == "def id(x), do: x"


def test_exception_module() -> None:
    module = EModule("App.Oops", [], meta={EXCEPTION: True})
    assert emit_elixir(module) == "defmodule App.Oops do\n  defexception [:message]\nend\n"


def test_defstruct_prints_without_parens() -> None:
    module = EModule("S", [ECall("defstruct", [EKeywordList([("n", EInteger(0))])])])
    assert emit_elixir(module) == "defmodule S do\n  defstruct [n: 0]\nend\n"


def test_output_is_balanced() -> None:
    loop = ECall(WHILE_LOOP, [EVar("go"), EBlock([ECall("a", []), ECall("b", [])])])
    body = EBlock(
        [
            EMatch(PVar("x"), ECase(a(), [ECaseClause(PVar("y"), EBlock([ECall("p", []), EVar("y")]))])),
            ETry(EBlock([ECall("q", []), EVar("x")]), catch=[ECatchClause(PVar("e"), EVar("e"))]),
            loop,
            EList([_two_statements(), EFn([EFnClause([PVar("z")], _two_statements())])]),
            ECond([ECondClause(EVar("x"), EBlock([ECall("r", []), EAtom("ok")]))]),
            EFor([EGenerator(PVar("i"), a())], EBlock([ECall("s", []), EVar("i")])),
            EIf(EVar("x"), EBlock([ECall("t", []), EInteger(1)]), EInteger(2)),
        ]
    )
    module = EModule("M", [EDef("run", [PVar("a")], body)])
    text = emit_elixir(module)
    assert _balanced(text), text
