"""Conditional reassignment hoisting and redundant nil removal."""

from exlower.ast import (
    EBinary,
    EBlock,
    ECall,
    EIf,
    EInteger,
    EMatch,
    ENil,
    EString,
    EVar,
    PVar,
)
from exlower.backend import emit_elixir
from exlower.middleend.reassign import hoist_conditional_reassignment, remove_redundant_nil


def _nil(name: str) -> EMatch:
    return EMatch(PVar(name), ENil())


# ── Conditional reassignment ──


def test_conditional_self_update_is_hoisted() -> None:
    update = EMatch(PVar("x"), ECall("f", [EVar("x")]))
    block = EBlock([EIf(EVar("c"), update), EVar("x")])
    result = hoist_conditional_reassignment(block)
    assert result == EBlock(
        [EMatch(PVar("x"), EIf(EVar("c"), ECall("f", [EVar("x")]), EVar("x"))), EVar("x")]
    )
    assert emit_elixir(result) == "x = if c, do: f(x), else: x\nx"


def test_assignment_not_reading_itself_is_not_hoisted() -> None:
    block = EBlock([EIf(EVar("c"), EMatch(PVar("x"), EInteger(1))), EVar("x")])
    assert hoist_conditional_reassignment(block) == block


def test_if_with_else_is_not_hoisted() -> None:
    update = EMatch(PVar("x"), ECall("f", [EVar("x")]))
    block = EBlock([EIf(EVar("c"), update, EVar("x")), EVar("x")])
    assert hoist_conditional_reassignment(block) == block


def test_last_statement_is_not_hoisted() -> None:
    update = EMatch(PVar("x"), ECall("f", [EVar("x")]))
    block = EBlock([EVar("x"), EIf(EVar("c"), update)])
    assert hoist_conditional_reassignment(block) == block


# ── Redundant nil ──


def test_nil_overwritten_before_read_is_removed() -> None:
    block = EBlock([_nil("x"), ECall("log", [EString("hi")]), EMatch(PVar("x"), EInteger(5)), EVar("x")])
    assert remove_redundant_nil(block) == EBlock(
        [ECall("log", [EString("hi")]), EMatch(PVar("x"), EInteger(5)), EVar("x")]
    )


def test_nil_read_before_overwrite_is_kept() -> None:
    block = EBlock(
        [_nil("x"), EMatch(PVar("y"), EVar("x")), EMatch(PVar("x"), EInteger(5)), EVar("y")]
    )
    assert remove_redundant_nil(block) == block


def test_nil_kept_when_overwrite_reads_it() -> None:
    update = EMatch(PVar("x"), EBinary("+", EVar("x"), EInteger(1)))
    block = EBlock([_nil("x"), update, EVar("x")])
    assert remove_redundant_nil(block) == block


def test_nil_never_overwritten_is_kept() -> None:
    block = EBlock([_nil("x"), ECall("log", []), EVar("x")])
    assert remove_redundant_nil(block) == block


def test_trailing_nil_is_kept() -> None:
    block = EBlock([ECall("log", []), _nil("x")])
    assert remove_redundant_nil(block) == block
