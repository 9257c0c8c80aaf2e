"""Pass pipeline configuration, ordering and error annotation."""

import logging

import pytest

from exlower.ast import (
    LOOP_NAME,
    WHILE_LOOP,
    EAlias,
    EAtom,
    EBlock,
    EBoolean,
    ECall,
    EDef,
    EIf,
    EInteger,
    EMatch,
    EModule,
    ERemoteCall,
    EUnary,
    EVar,
    Node,
    PVar,
    meta_get,
)
from exlower.backend import emit_elixir
from exlower.errors import InternalError, UnhandledNodeError
from exlower.middleend import PASS_NAMES, Pass, PassConfig, Pipeline, default_passes, transform
from exlower.names import NameSupply


def _unused_param_module() -> EModule:
    return EModule("M", [EDef("f", [PVar("y")], EAtom("ok"))])


def _raises(node: Node) -> Node:
    raise UnhandledNodeError("no case for shape")


def test_default_pass_order() -> None:
    passes = default_passes(PassConfig(), NameSupply())
    assert [p.name for p in passes] == list(PASS_NAMES)
    assert len(passes) == 14
    assert all(p.enabled for p in passes)


def test_unknown_pass_name_is_rejected() -> None:
    with pytest.raises(ValueError, match="no_such_pass"):
        PassConfig(disabled={"no_such_pass"})


def test_disabled_is_normalized_to_frozenset() -> None:
    config = PassConfig(disabled=["usage_hygiene"])
    assert config.disabled == frozenset({"usage_hygiene"})
    assert not config.enabled("usage_hygiene")
    assert config.enabled("effect_lifting")


def test_all_passes_enabled_runs_hygiene() -> None:
    result = transform(_unused_param_module())
    assert isinstance(result, EModule)
    assert result.body[0] == EDef("f", [PVar("_y")], EAtom("ok"))


def test_disabled_pass_is_skipped() -> None:
    config = PassConfig(disabled=frozenset({"usage_hygiene"}))
    assert transform(_unused_param_module(), config) == _unused_param_module()


def test_disabled_pass_logs_skip(caplog: pytest.LogCaptureFixture) -> None:
    config = PassConfig(disabled=frozenset({"usage_hygiene"}))
    with caplog.at_level(logging.DEBUG, logger="exlower.middleend.pipeline"):
        transform(EAtom("ok"), config)
    assert "skipping disabled pass usage_hygiene" in caplog.text
    assert "running pass effect_lifting" in caplog.text


def test_internal_error_is_tagged_with_pass_name() -> None:
    pipeline = Pipeline([Pass("identity", lambda n: n), Pass("broken", _raises)])
    with pytest.raises(InternalError) as info:
        pipeline.transform(EAtom("ok"))
    assert info.value.pass_name == "broken"
    assert str(info.value).startswith("internal compiler error: [broken] no case for shape")


def test_existing_pass_name_is_preserved() -> None:
    def fails(node: Node) -> Node:
        raise InternalError("inner", pass_name="inner_pass")

    with pytest.raises(InternalError) as info:
        Pipeline([Pass("outer_pass", fails)]).transform(EAtom("ok"))
    assert info.value.pass_name == "inner_pass"


def test_disabled_custom_pass_never_runs() -> None:
    pipeline = Pipeline([Pass("broken", _raises, enabled=False)])
    assert pipeline.transform(EAtom("ok")) == EAtom("ok")


def test_name_supply_is_per_transform() -> None:
    loop = ECall(WHILE_LOOP, [EBoolean(True), EAtom("ok")])
    module = EModule("M", [EDef("f", [], EBlock([loop, loop, EAtom("ok")]))])
    first = transform(module)
    second = transform(module)
    assert first == second

    def loop_names(root: Node) -> list[object]:
        assert isinstance(root, EModule)
        fn = root.body[0]
        assert isinstance(fn, EDef) and isinstance(fn.body, EBlock)
        return [meta_get(n, LOOP_NAME) for n in fn.body.exprs[:2]]

    assert loop_names(first) == ["loop", "loop_0"]
    assert loop_names(second) == ["loop", "loop_0"]


def _body_of(root: Node) -> Node:
    assert isinstance(root, EModule)
    fn = root.body[0]
    assert isinstance(fn, EDef)
    return fn.body


def test_update_inside_if_escapes_the_branch() -> None:
    put = ERemoteCall(EAlias("Map"), "put", [EVar("m"), EAtom("k"), EInteger(1)])
    fn = EDef("f", [PVar("c"), PVar("m")], EBlock([EIf(EVar("c"), put), EVar("m")]))
    result = transform(EModule("M", [fn]))
    assert _body_of(result) == EBlock(
        [EMatch(PVar("m"), EIf(EVar("c"), put, EVar("m"))), EVar("m")]
    )


def test_increment_inside_if_escapes_the_branch() -> None:
    body = EBlock([EIf(EVar("c"), EUnary("post++", EVar("i"))), EVar("i")])
    text = emit_elixir(transform(EModule("M", [EDef("f", [PVar("c"), PVar("i")], body)])))
    assert "  def f(c, i) do\n    i = if c, do: i + 1, else: i\n    i\n  end\n" in text
