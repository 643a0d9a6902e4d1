"""
DSL Error definitions and error codes.

Error codes:
- E001-E021: Errors (generation is refused while any is present)
- W001-W006: Warnings
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, List, Optional


logger = logging.getLogger(__name__)


class ErrorCode(str, Enum):
    """Error codes reported by the parser, the inference passes and the generator."""

    # Source errors
    E001 = "E001"  # Syntax error in a model.add statement
    E002 = "E002"  # Source unreadable

    # Declaration errors
    E003 = "E003"  # Unknown layer constructor
    E004 = "E004"  # Unknown keyword argument
    E005 = "E005"  # Invalid keyword value
    E006 = "E006"  # Keyword not applicable to the layer type
    E007 = "E007"  # Stride pair with different values
    E008 = "E008"  # Non-square kernel

    # Shape inference errors
    E009 = "E009"  # First layer without an input shape
    E010 = "E010"  # Layer geometry cannot be inferred
    E011 = "E011"  # Invalid layer sequence (Flatten must feed Dense)
    E012 = "E012"  # Conv2D without filter count
    E013 = "E013"  # Even kernel with SAME padding

    # Pooling errors
    E014 = "E014"  # Unsupported pooling type
    E015 = "E015"  # Pooling stride differs from pooling window
    E016 = "E016"  # Pooling seed cannot be derived

    # Generation errors
    E017 = "E017"  # Unsupported loop order
    E018 = "E018"  # Non-positive dimension
    E019 = "E019"  # Unsupported hook combination

    # Configuration errors
    E020 = "E020"  # Invalid option value

    # Activation errors
    E021 = "E021"  # Softmax on a non-final layer


class WarningCode(str, Enum):
    """Warning codes."""

    W001 = "W001"  # Unaligned stride under SAME padding
    W002 = "W002"  # Loop order replaced by the default
    W003 = "W003"  # Loop-order list ignored (count mismatch)
    W004 = "W004"  # Option disabled by another option
    W005 = "W005"  # Duplicate keyword argument
    W006 = "W006"  # Approximate multiplier configuration length mismatch


@dataclass
class SourceLocation:
    """Source location for error reporting."""

    file: Optional[str]
    line: int
    column: int
    end_line: Optional[int] = None
    end_column: Optional[int] = None

    def __str__(self) -> str:
        if self.file:
            return f"{self.file}:{self.line}:{self.column}"
        return f"line {self.line}, column {self.column}"


class DSLError(Exception):
    """Base exception for all DSL errors."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        location: Optional[SourceLocation] = None,
        hint: Optional[str] = None,
    ):
        self.code = code
        self.message = message
        self.location = location
        self.hint = hint
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        parts = [f"[{self.code.value}]"]
        if self.location:
            parts.append(f" at {self.location}:")
        parts.append(f" {self.message}")
        if self.hint:
            parts.append(f"\n  hint: {self.hint}")
        return "".join(parts)

    def to_dict(self) -> dict:
        return {
            "code": self.code.value,
            "severity": "error",
            "message": self.message,
            "location": str(self.location) if self.location else None,
            "hint": self.hint,
        }


class DSLSyntaxError(DSLError):
    """Syntax error in DSL source."""

    def __init__(
        self,
        message: str,
        location: Optional[SourceLocation] = None,
        hint: Optional[str] = None,
    ):
        super().__init__(ErrorCode.E001, message, location, hint)


class DSLSourceError(DSLError):
    """The DSL source could not be read."""

    def __init__(
        self,
        message: str,
        location: Optional[SourceLocation] = None,
        hint: Optional[str] = None,
    ):
        super().__init__(ErrorCode.E002, message, location, hint)


class DSLDeclarationError(DSLError):
    """Malformed layer declaration (constructor, keyword or value)."""


class DSLShapeError(DSLError):
    """Layer geometry could not be completed."""


class DSLValidationError(DSLError):
    """Structural invariant of the network is violated."""


class DSLGenerationError(DSLError):
    """The generator cannot emit code for the requested combination."""


class DSLConfigError(DSLError):
    """Invalid generation option."""

    def __init__(
        self,
        message: str,
        location: Optional[SourceLocation] = None,
        hint: Optional[str] = None,
    ):
        super().__init__(ErrorCode.E020, message, location, hint)


@dataclass
class DSLWarning:
    """Warning message from compilation."""

    code: WarningCode
    message: str
    location: Optional[SourceLocation] = None

    def __str__(self) -> str:
        loc_str = f" at {self.location}" if self.location else ""
        return f"[{self.code.value}]{loc_str}: {self.message}"

    def to_dict(self) -> dict:
        return {
            "code": self.code.value,
            "severity": "warning",
            "message": self.message,
            "location": str(self.location) if self.location else None,
        }


class WarningCollector:
    """Collects warnings during compilation."""

    def __init__(self):
        self.warnings: list[DSLWarning] = []

    def warn(
        self,
        code: WarningCode,
        message: str,
        location: Optional[SourceLocation] = None,
    ):
        warning = DSLWarning(code, message, location)
        logger.warning(str(warning))
        self.warnings.append(warning)

    def clear(self):
        self.warnings.clear()

    def has_warnings(self) -> bool:
        return len(self.warnings) > 0

    def codes(self) -> List[WarningCode]:
        return [w.code for w in self.warnings]

    def __iter__(self) -> Iterator[DSLWarning]:
        return iter(self.warnings)

    def __len__(self) -> int:
        return len(self.warnings)


class DiagnosticCollector(WarningCollector):
    """Collects recoverable errors alongside warnings.

    Passes keep going after recording an error so that a single run reports
    as many problems as possible; the pipeline checks ``has_errors()`` before
    generating any code.
    """

    def __init__(self):
        super().__init__()
        self.errors: list[DSLError] = []

    def error(self, error: DSLError) -> DSLError:
        logger.error(str(error))
        self.errors.append(error)
        return error

    def has_errors(self) -> bool:
        return len(self.errors) > 0

    def error_codes(self) -> List[ErrorCode]:
        return [e.code for e in self.errors]

    def raise_if_errors(self):
        """Raise the first recorded error, if any."""
        if self.errors:
            raise self.errors[0]

    def clear(self):
        super().clear()
        self.errors.clear()

    def messages(self) -> List[str]:
        return [str(e) for e in self.errors] + [str(w) for w in self.warnings]
