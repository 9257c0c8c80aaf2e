"""Transformation engine: traversal combinators and the pass pipeline."""

from .pipeline import PASS_NAMES, Pass, PassConfig, Pipeline, default_passes, transform
from .traverse import children, map_children, rewrite, visit, walk

__all__ = [
    "PASS_NAMES",
    "Pass",
    "PassConfig",
    "Pipeline",
    "children",
    "default_passes",
    "map_children",
    "rewrite",
    "transform",
    "visit",
    "walk",
]
