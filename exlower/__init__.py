"""exlower: lower a typed object-oriented expression tree to idiomatic Elixir."""

from __future__ import annotations

from .ast import Node
from .backend import emit_elixir
from .builder import build_module
from .middleend import PassConfig, transform
from .typed import TModuleDecl


def compile_module(decl: TModuleDecl, config: PassConfig | None = None) -> str:
    """Build, transform and print one module."""
    if config is None:
        config = PassConfig()
    root: Node = build_module(decl, config.instance_param)
    return emit_elixir(transform(root, config))


__all__ = ["PassConfig", "build_module", "compile_module", "emit_elixir", "transform"]
