"""
AST Node Definitions for the layer DSL

A parsed source is a list of ``AddStatement`` nodes, one per
``model.add(...)`` statement, in source order.
"""

from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple, Union

from .errors import SourceLocation


# =============================================================================
# Base Node Types
# =============================================================================


@dataclass
class ASTNode:
    """Base class for all AST nodes."""

    # kw_only=True allows subclasses to have required positional fields
    location: Optional[SourceLocation] = field(default=None, repr=False, compare=False, kw_only=True)


# =============================================================================
# Values
# =============================================================================


@dataclass
class Literal(ASTNode):
    """Integer, float or quoted string literal."""

    value: Union[int, float, str]

    @property
    def is_int(self) -> bool:
        return isinstance(self.value, int) and not isinstance(self.value, bool)


@dataclass
class Identifier(ASTNode):
    """Bare name used as a value, e.g. ``activation=relu``."""

    name: str


@dataclass
class TupleLiteral(ASTNode):
    """Parenthesized value list, e.g. ``(3, 3)``."""

    items: List["Value"] = field(default_factory=list)


Value = Union[Literal, Identifier, TupleLiteral]


# =============================================================================
# Calls and Statements
# =============================================================================


@dataclass
class Keyword(ASTNode):
    """``name=value`` argument."""

    name: str
    value: Value


@dataclass
class LayerCall(ASTNode):
    """Layer constructor call, e.g. ``layers.Conv2D(filters=6, ...)``."""

    constructor: Tuple[str, ...]
    args: List[Value] = field(default_factory=list)
    kwargs: List[Keyword] = field(default_factory=list)

    @property
    def name(self) -> str:
        """Constructor name without any module prefix."""
        return self.constructor[-1]

    @property
    def qualified_name(self) -> str:
        return ".".join(self.constructor)


@dataclass
class AddStatement(ASTNode):
    """``model.add(<call>)`` statement."""

    call: LayerCall
    text: str = ""


@dataclass
class SourceFile(ASTNode):
    """Parsed DSL source."""

    statements: List[AddStatement] = field(default_factory=list)
    source_file: Optional[str] = None
    skipped_lines: int = 0


def value_to_python(value: Value) -> Any:
    """Plain Python rendering of a value node (for messages and summaries)."""
    if isinstance(value, Literal):
        return value.value
    if isinstance(value, Identifier):
        return value.name
    return tuple(value_to_python(item) for item in value.items)
