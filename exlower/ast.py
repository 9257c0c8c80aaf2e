"""Intermediate AST: the Elixir-shaped tree every pass reads and writes.

Nodes are dataclasses. Passes never mutate a node in place; they build a new
one (usually with ``dataclasses.replace``, which carries ``meta`` forward).

Each node has a ``meta`` property bag used to pass provenance and hints
between passes without changing the node shape. It is excluded from equality
and ``repr`` so that structural comparisons in passes and tests ignore it.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Union

Meta = dict[str, object]


def _meta():
    return field(default=None, compare=False, repr=False)


# ============================================================
# METADATA KEYS
# ============================================================

SOURCE_ID = "source_id"
"""int: id of the input-tree binding an EVar reads or an EMatch binds."""

CLAUSE_VARS = "clause_vars"
"""dict[int, str]: id -> name map for clause-local resolution."""

KEEP_INLINE = "keep_inline"
"""bool: render on one line when the node is simple."""

EXCEPTION = "exception"
"""bool: module represents an error/exception type."""

EXCEPTION_FIELDS = "exception_fields"
"""list[str]: field names emitted in ``defexception``."""

UNUSED_PRIVATE_FUNCTIONS = "unused_private_functions"
"""list[tuple[str, int]]: private functions to list in a suppression directive."""

UNROLLED_LOOP = "unrolled_loop"
"""bool: block came from unrolling a loop upstream."""

ENUM_ARITY = "enum_arity"
"""dict[int, int]: constructor index -> payload count for tag switches."""

LOOP_NAME = "loop_name"
"""str: fresh function name for a while-loop placeholder."""


# ============================================================
# OPERATORS
# ============================================================

WHILE_LOOP = "__while__"
"""Name of the placeholder call ``__while__(cond, body)`` the printer expands."""

BITWISE_OPS: dict[str, str] = {
    "band": "band",
    "bor": "bor",
    "bxor": "bxor",
    "bsl": "bsl",
    "bsr": "bsr",
}

ARITH_OPS = frozenset({"+", "-", "*", "/"})
COMPARE_OPS = frozenset({"==", "!=", "===", "!==", "<", ">", "<=", ">="})
BOOL_OPS = frozenset({"and", "or", "&&", "||"})
LIST_OPS = frozenset({"++", "--", "<>", "in"})
CALL_OPS = frozenset({"rem", "div"})

INCREMENT_OPS = frozenset({"pre++", "post++", "pre--", "post--"})
"""Imperative unary operators; mutable lowering rewrites them away."""

IMPERATIVE_BINARY_OPS = frozenset({"%"})
"""Imperative binary operators; mutable lowering rewrites them away."""


# ============================================================
# PATTERNS
# ============================================================


@dataclass
class Pattern:
    """Base for patterns in binding positions."""


@dataclass
class PVar(Pattern):
    """Binds a name."""

    name: str


@dataclass
class PLiteral(Pattern):
    """Matches a literal leaf (EInteger, EString, EAtom, ENil, ...)."""

    value: Node


@dataclass
class PTuple(Pattern):
    """{a, b, ...}."""

    elements: list[Pattern]


@dataclass
class PList(Pattern):
    """[a, b, ...]."""

    elements: list[Pattern]


@dataclass
class PCons(Pattern):
    """[head1, head2 | tail]."""

    heads: list[Pattern]
    tail: Pattern


@dataclass
class PMap(Pattern):
    """%{key => pattern}."""

    pairs: list[tuple[Node, Pattern]]


@dataclass
class PStruct(Pattern):
    """%Module{field: pattern}."""

    module: str
    fields: list[tuple[str, Pattern]]


@dataclass
class PPin(Pattern):
    """^name, matching the current value of an existing binding."""

    name: str


@dataclass
class PWildcard(Pattern):
    """_."""


@dataclass
class PBitSegment:
    """One segment of a bit-string pattern."""

    pattern: Pattern
    size: Node | None = None
    kind: str | None = None


@dataclass
class PBitstring(Pattern):
    """<<seg, seg::size(8), ...>>."""

    segments: list[PBitSegment]


# ============================================================
# NODES
# ============================================================


@dataclass
class Node:
    """Base for all intermediate AST nodes."""


# --- leaves ---


@dataclass
class EVar(Node):
    """Variable reference."""

    name: str
    meta: Meta | None = _meta()


@dataclass
class EInteger(Node):
    """Integer literal."""

    value: int
    meta: Meta | None = _meta()


@dataclass
class EFloat(Node):
    """Float literal."""

    value: float
    meta: Meta | None = _meta()


@dataclass
class EString(Node):
    """String literal (unescaped value)."""

    value: str
    meta: Meta | None = _meta()


@dataclass
class EBoolean(Node):
    """true or false."""

    value: bool
    meta: Meta | None = _meta()


@dataclass
class EAtom(Node):
    """:atom. value excludes the colon."""

    value: str
    meta: Meta | None = _meta()


@dataclass
class ENil(Node):
    """nil."""

    meta: Meta | None = _meta()


@dataclass
class EUnderscore(Node):
    """_ in expression position (discarded result)."""

    meta: Meta | None = _meta()


@dataclass
class EAlias(Node):
    """Module name reference, e.g. Map or MyApp.User."""

    name: str
    meta: Meta | None = _meta()


@dataclass
class ERaw(Node):
    """Raw target code injected verbatim. Never rewritten."""

    code: str
    meta: Meta | None = _meta()


# --- module / definition forms ---


@dataclass
class EModule(Node):
    """defmodule Name do body end."""

    name: str
    body: list[Node]
    meta: Meta | None = _meta()


@dataclass
class EModuleAttribute(Node):
    """@name value."""

    name: str
    value: Node
    meta: Meta | None = _meta()


@dataclass
class EImport(Node):
    """import/require/alias Module."""

    module: str
    directive: str = "import"
    meta: Meta | None = _meta()


@dataclass
class EFunctionDef(Node):
    """Shared shape of def/defp/defmacro. Not used directly."""

    name: str
    params: list[Pattern]
    body: Node
    guard: Node | None = None
    meta: Meta | None = _meta()


@dataclass
class EDef(EFunctionDef):
    """def name(params) do body end."""


@dataclass
class EDefp(EFunctionDef):
    """defp name(params) do body end."""


@dataclass
class EDefmacro(EFunctionDef):
    """defmacro name(params) do body end."""


# --- control forms ---


@dataclass
class EIf(Node):
    """if cond do then else else end. else_branch None means no else."""

    cond: Node
    then_branch: Node
    else_branch: Node | None = None
    meta: Meta | None = _meta()


@dataclass
class ECaseClause:
    """pattern when guard -> body."""

    pattern: Pattern
    body: Node
    guard: Node | None = None


@dataclass
class ECase(Node):
    """case expr do clauses end."""

    expr: Node
    clauses: list[ECaseClause]
    meta: Meta | None = _meta()


@dataclass
class ECondClause:
    """cond -> body."""

    cond: Node
    body: Node


@dataclass
class ECond(Node):
    """cond do clauses end."""

    clauses: list[ECondClause]
    meta: Meta | None = _meta()


@dataclass
class ERescueClause:
    """pattern in [Exceptions] -> body. Empty exceptions means any."""

    pattern: Pattern
    body: Node
    exceptions: list[Node] = field(default_factory=list)


@dataclass
class ECatchClause:
    """kind, pattern -> body. kind None means :throw."""

    pattern: Pattern
    body: Node
    kind: Pattern | None = None


@dataclass
class ETry(Node):
    """try do body rescue ... catch ... else ... after ... end."""

    body: Node
    rescue: list[ERescueClause] = field(default_factory=list)
    catch: list[ECatchClause] = field(default_factory=list)
    else_clauses: list[ECaseClause] = field(default_factory=list)
    after: Node | None = None
    meta: Meta | None = _meta()


@dataclass
class EWithClause:
    """pattern <- expr."""

    pattern: Pattern
    expr: Node


@dataclass
class EWith(Node):
    """with clauses do body else else_clauses end."""

    clauses: list[EWithClause]
    body: Node
    else_clauses: list[ECaseClause] = field(default_factory=list)
    meta: Meta | None = _meta()


@dataclass
class EReceiveAfter:
    """after timeout -> body."""

    timeout: Node
    body: Node


@dataclass
class EReceive(Node):
    """receive do clauses after timeout -> body end."""

    clauses: list[ECaseClause]
    after: EReceiveAfter | None = None
    meta: Meta | None = _meta()


# --- data literals ---


@dataclass
class EList(Node):
    """[elements]."""

    elements: list[Node]
    meta: Meta | None = _meta()


@dataclass
class ETuple(Node):
    """{elements}."""

    elements: list[Node]
    meta: Meta | None = _meta()


@dataclass
class EMap(Node):
    """%{key => value}."""

    pairs: list[tuple[Node, Node]]
    meta: Meta | None = _meta()


@dataclass
class EKeywordList(Node):
    """[key: value]."""

    pairs: list[tuple[str, Node]]
    meta: Meta | None = _meta()


@dataclass
class EStruct(Node):
    """%Module{field: value}."""

    module: str
    fields: list[tuple[str, Node]]
    meta: Meta | None = _meta()


@dataclass
class EStructUpdate(Node):
    """%{target | field: value}."""

    target: Node
    fields: list[tuple[str, Node]]
    meta: Meta | None = _meta()


@dataclass
class EBitSegment:
    """value::size(n)-kind."""

    value: Node
    size: Node | None = None
    kind: str | None = None


@dataclass
class EBitstring(Node):
    """<<segments>>."""

    segments: list[EBitSegment]
    meta: Meta | None = _meta()


# --- expressions ---


@dataclass
class ECall(Node):
    """name(args), a local call."""

    name: str
    args: list[Node]
    meta: Meta | None = _meta()


@dataclass
class ERemoteCall(Node):
    """Module.name(args). module is usually an EAlias or EAtom."""

    module: Node
    name: str
    args: list[Node]
    meta: Meta | None = _meta()


@dataclass
class EApply(Node):
    """fun.(args), anonymous function application."""

    fn: Node
    args: list[Node]
    meta: Meta | None = _meta()


@dataclass
class EBinary(Node):
    """left op right."""

    op: str
    left: Node
    right: Node
    meta: Meta | None = _meta()


@dataclass
class EUnary(Node):
    """op operand."""

    op: str
    operand: Node
    meta: Meta | None = _meta()


@dataclass
class EField(Node):
    """target.field."""

    target: Node
    field: str
    meta: Meta | None = _meta()


@dataclass
class EAccess(Node):
    """target[key]."""

    target: Node
    key: Node
    meta: Meta | None = _meta()


@dataclass
class ERange(Node):
    """start..end or start..end//step."""

    start: Node
    end: Node
    step: Node | None = None
    meta: Meta | None = _meta()


@dataclass
class EPipe(Node):
    """left |> right."""

    left: Node
    right: Node
    meta: Meta | None = _meta()


@dataclass
class EGenerator:
    """pattern <- source, inside a comprehension."""

    pattern: Pattern
    source: Node


@dataclass
class EFilter:
    """Boolean filter inside a comprehension."""

    cond: Node


@dataclass
class EFor(Node):
    """for generators, into: into do body end."""

    generators: list[Union[EGenerator, EFilter]]
    body: Node
    into: Node | None = None
    meta: Meta | None = _meta()


@dataclass
class EParen(Node):
    """(expr)."""

    expr: Node
    meta: Meta | None = _meta()


@dataclass
class EBlock(Node):
    """Statement sequence; the value is the last expression."""

    exprs: list[Node]
    meta: Meta | None = _meta()


# --- binding forms ---


@dataclass
class EMatch(Node):
    """pattern = expr."""

    pattern: Pattern
    expr: Node
    meta: Meta | None = _meta()


@dataclass
class EFnClause:
    """params when guard -> body."""

    params: list[Pattern]
    body: Node
    guard: Node | None = None


@dataclass
class EFn(Node):
    """fn clauses end."""

    clauses: list[EFnClause]
    meta: Meta | None = _meta()


@dataclass
class EFieldAssign(Node):
    """target.field = value. Imperative; lowered before printing."""

    target: Node
    field: str
    value: Node
    meta: Meta | None = _meta()


# ============================================================
# HELPERS
# ============================================================


def meta_get(node: Node, key: str, default: object = None) -> object:
    """Read a metadata key, tolerating an absent bag."""
    bag = getattr(node, "meta", None)
    if bag is None:
        return default
    return bag.get(key, default)


def with_meta(node: Node, **updates: object) -> Node:
    """Return a copy of node with metadata keys added or replaced."""
    bag: Meta = dict(getattr(node, "meta", None) or {})
    bag.update(updates)
    return replace(node, meta=bag)


def without_meta(node: Node, key: str) -> Node:
    """Return a copy of node with one metadata key dropped."""
    bag = getattr(node, "meta", None)
    if bag is None or key not in bag:
        return node
    new_bag = {k: v for k, v in bag.items() if k != key}
    return replace(node, meta=new_bag or None)


def block_exprs(node: Node) -> list[Node]:
    """Statements of a node viewed as a block."""
    if isinstance(node, EBlock):
        return node.exprs
    return [node]


def make_block(exprs: list[Node], like: Node | None = None) -> Node:
    """Build a block, unwrapping the single-statement case."""
    if len(exprs) == 1:
        return exprs[0]
    meta = getattr(like, "meta", None) if like is not None else None
    return EBlock(exprs, meta=meta)


def is_var(node: Node, name: str | None = None) -> bool:
    return isinstance(node, EVar) and (name is None or node.name == name)


def describe(node: object, limit: int = 80) -> str:
    """Short one-line rendering for diagnostics."""
    text = repr(node)
    if len(text) > limit:
        text = text[: limit - 3] + "..."
    return text


# ============================================================
# PATTERN HELPERS
# ============================================================


def pattern_vars(pattern: Pattern) -> list[str]:
    """Names bound by a pattern, in order of appearance."""
    out: list[str] = []
    _collect_pattern_vars(pattern, out)
    return out


def _collect_pattern_vars(pattern: Pattern, out: list[str]) -> None:
    if isinstance(pattern, PVar):
        out.append(pattern.name)
    elif isinstance(pattern, (PTuple, PList)):
        for p in pattern.elements:
            _collect_pattern_vars(p, out)
    elif isinstance(pattern, PCons):
        for p in pattern.heads:
            _collect_pattern_vars(p, out)
        _collect_pattern_vars(pattern.tail, out)
    elif isinstance(pattern, PMap):
        for _, p in pattern.pairs:
            _collect_pattern_vars(p, out)
    elif isinstance(pattern, PStruct):
        for _, p in pattern.fields:
            _collect_pattern_vars(p, out)
    elif isinstance(pattern, PBitstring):
        for seg in pattern.segments:
            _collect_pattern_vars(seg.pattern, out)


def pattern_pins(pattern: Pattern) -> list[str]:
    """Names read through ^pins inside a pattern."""
    out: list[str] = []
    _collect_pattern_pins(pattern, out)
    return out


def _collect_pattern_pins(pattern: Pattern, out: list[str]) -> None:
    if isinstance(pattern, PPin):
        out.append(pattern.name)
    elif isinstance(pattern, (PTuple, PList)):
        for p in pattern.elements:
            _collect_pattern_pins(p, out)
    elif isinstance(pattern, PCons):
        for p in pattern.heads:
            _collect_pattern_pins(p, out)
        _collect_pattern_pins(pattern.tail, out)
    elif isinstance(pattern, PMap):
        for _, p in pattern.pairs:
            _collect_pattern_pins(p, out)
    elif isinstance(pattern, PStruct):
        for _, p in pattern.fields:
            _collect_pattern_pins(p, out)
    elif isinstance(pattern, PBitstring):
        for seg in pattern.segments:
            _collect_pattern_pins(seg.pattern, out)


def rename_pattern(pattern: Pattern, mapping: dict[str, str]) -> Pattern:
    """Rename bound and pinned names in a pattern."""
    if isinstance(pattern, PVar):
        if pattern.name in mapping:
            return PVar(mapping[pattern.name])
        return pattern
    if isinstance(pattern, PPin):
        if pattern.name in mapping:
            return PPin(mapping[pattern.name])
        return pattern
    if isinstance(pattern, PTuple):
        return PTuple([rename_pattern(p, mapping) for p in pattern.elements])
    if isinstance(pattern, PList):
        return PList([rename_pattern(p, mapping) for p in pattern.elements])
    if isinstance(pattern, PCons):
        return PCons(
            [rename_pattern(p, mapping) for p in pattern.heads],
            rename_pattern(pattern.tail, mapping),
        )
    if isinstance(pattern, PMap):
        return PMap([(k, rename_pattern(p, mapping)) for k, p in pattern.pairs])
    if isinstance(pattern, PStruct):
        return PStruct(
            pattern.module, [(f, rename_pattern(p, mapping)) for f, p in pattern.fields]
        )
    if isinstance(pattern, PBitstring):
        return PBitstring(
            [
                PBitSegment(rename_pattern(s.pattern, mapping), s.size, s.kind)
                for s in pattern.segments
            ]
        )
    return pattern
