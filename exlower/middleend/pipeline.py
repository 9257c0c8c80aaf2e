"""Ordered pass pipeline over the intermediate AST.

Each pass is a pure ``Node -> Node`` function. ``Pipeline.transform`` folds
the enabled passes in order. A fresh ``NameSupply`` is created per call so
that compilation units never share counters.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable

from ..ast import Node
from ..errors import InternalError
from ..names import NameSupply
from .collapse import collapse_temp_bindings
from .enums import reconstruct_enum_patterns
from .hygiene import apply_usage_hygiene
from .imports import add_bitwise_import, suppress_unused_private
from .lifting import lift_effects
from .loops import name_while_loops, reconstruct_loops
from .mutability import lower_field_assignments, lower_mutation
from .reassign import hoist_conditional_reassignment, remove_redundant_nil
from .resolution import resolve_clause_locals
from .statements import propagate_statement_context

logger = logging.getLogger(__name__)

PASS_NAMES = (
    "clause_local_resolution",
    "loop_reconstruction",
    "enum_pattern_reconstruction",
    "mutable_lowering",
    "field_assignment_lowering",
    "statement_context",
    "conditional_reassignment",
    "redundant_nil_removal",
    "temp_binding_collapse",
    "effect_lifting",
    "while_loop_naming",
    "usage_hygiene",
    "bitwise_import",
    "unused_private_suppression",
)


@dataclass
class PassConfig:
    """Pipeline configuration.

    disabled names passes to skip; instance_param is the conventional name of
    the receiver parameter of instance methods.
    """

    disabled: frozenset[str] = field(default_factory=frozenset)
    instance_param: str = "struct"

    def __post_init__(self) -> None:
        self.disabled = frozenset(self.disabled)
        unknown = sorted(self.disabled - set(PASS_NAMES))
        if unknown:
            raise ValueError("unknown pass name(s): " + ", ".join(unknown))

    def enabled(self, name: str) -> bool:
        return name not in self.disabled


@dataclass
class Pass:
    name: str
    run: Callable[[Node], Node]
    enabled: bool = True


def default_passes(config: PassConfig, names: NameSupply) -> list[Pass]:
    """The standard pass list, in order."""
    runs: dict[str, Callable[[Node], Node]] = {
        "clause_local_resolution": resolve_clause_locals,
        "loop_reconstruction": lambda n: reconstruct_loops(n, names),
        "enum_pattern_reconstruction": reconstruct_enum_patterns,
        "mutable_lowering": lambda n: lower_mutation(n, config.instance_param, names),
        "field_assignment_lowering": lower_field_assignments,
        "statement_context": propagate_statement_context,
        "conditional_reassignment": hoist_conditional_reassignment,
        "redundant_nil_removal": remove_redundant_nil,
        "temp_binding_collapse": collapse_temp_bindings,
        "effect_lifting": lambda n: lift_effects(n, names),
        "while_loop_naming": lambda n: name_while_loops(n, names),
        "usage_hygiene": apply_usage_hygiene,
        "bitwise_import": add_bitwise_import,
        "unused_private_suppression": suppress_unused_private,
    }
    return [Pass(name, runs[name], config.enabled(name)) for name in PASS_NAMES]


class Pipeline:
    def __init__(self, passes: list[Pass]) -> None:
        self.passes = passes

    def transform(self, root: Node) -> Node:
        for p in self.passes:
            if not p.enabled:
                logger.debug("skipping disabled pass %s", p.name)
                continue
            logger.debug("running pass %s", p.name)
            try:
                root = p.run(root)
            except InternalError as e:
                if e.pass_name is None:
                    e.pass_name = p.name
                raise
        return root


def transform(root: Node, config: PassConfig | None = None) -> Node:
    """Run the default pipeline over root."""
    if config is None:
        config = PassConfig()
    names = NameSupply()
    return Pipeline(default_passes(config, names)).transform(root)
