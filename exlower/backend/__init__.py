"""Code emitters for the intermediate AST."""

from .elixir import emit_elixir, is_simple

__all__ = ["emit_elixir", "is_simple"]
