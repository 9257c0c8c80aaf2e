"""Idiom recognizers over the typed input tree."""

from .accessor import (
    extract_inlined_accessor,
    extract_multi_temp_accessor,
    is_inlined_accessor,
    is_multi_temp_accessor,
    transform_inlined_accessor,
    transform_multi_temp_accessor,
)
from .array_loops import extract_array_loop, is_array_loop, transform_array_loop
from .base import LoweringContext, apply_idiom
from .coalesce import extract_null_coalesce, is_null_coalesce, transform_null_coalesce
from .iterators import (
    extract_key_value_iterator,
    is_key_value_iterator,
    transform_key_value_iterator,
)

# (name, predicate, extractor, transformer), tried in order on TBlock.
BLOCK_IDIOMS = [
    (
        "multi_temp_accessor",
        is_multi_temp_accessor,
        extract_multi_temp_accessor,
        transform_multi_temp_accessor,
    ),
    ("inlined_accessor", is_inlined_accessor, extract_inlined_accessor, transform_inlined_accessor),
    ("null_coalesce", is_null_coalesce, extract_null_coalesce, transform_null_coalesce),
    (
        "key_value_iterator",
        is_key_value_iterator,
        extract_key_value_iterator,
        transform_key_value_iterator,
    ),
]

# Tried on TWhile.
LOOP_IDIOMS = [
    ("array_loop", is_array_loop, extract_array_loop, transform_array_loop),
]

__all__ = [
    "BLOCK_IDIOMS",
    "LOOP_IDIOMS",
    "LoweringContext",
    "apply_idiom",
]
