"""
Network builder

Turns parsed ``model.add`` statements into the Network Model. A layer is
appended as soon as its constructor is recognized; its arguments are then
applied one at a time. A malformed argument is recorded as an error
diagnostic and the remaining arguments are still processed, so one run
reports every problem in the source.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

from .ast_nodes import AddStatement, Identifier, Keyword, LayerCall, Literal, SourceFile, TupleLiteral, Value, value_to_python
from .errors import DiagnosticCollector, DSLDeclarationError, ErrorCode, SourceLocation, WarningCode
from .layers import Conv2D, Dense, Flatten, Layer, Network, Pooling2D
from .types import Activation, Padding, PoolType, Volume


logger = logging.getLogger(__name__)


# =============================================================================
# Constructor Table
# =============================================================================


@dataclass(frozen=True)
class ConstructorSpec:
    """How a DSL constructor maps onto a layer variant."""

    factory: Callable[[], Layer]
    keywords: Tuple[str, ...]
    # Keyword names bound to positional arguments, in order
    positional: Tuple[str, ...] = ()


_CONV2D = ConstructorSpec(
    factory=Conv2D,
    keywords=("filters", "kernel_size", "activation", "padding", "strides", "input_shape"),
    positional=("filters", "kernel_size"),
)
_MAX_POOLING = ConstructorSpec(
    factory=lambda: Pooling2D(pool_type=PoolType.MAX),
    keywords=("pool_size", "strides", "padding"),
    positional=("pool_size", "strides"),
)
_AVERAGE_POOLING = ConstructorSpec(
    factory=lambda: Pooling2D(pool_type=PoolType.AVERAGE),
    keywords=("pool_size", "strides", "padding"),
    positional=("pool_size", "strides"),
)
_FLATTEN = ConstructorSpec(factory=Flatten, keywords=("input_shape",))
_DENSE = ConstructorSpec(
    factory=Dense,
    keywords=("units", "activation", "input_shape"),
    positional=("units",),
)

CONSTRUCTORS: Dict[str, ConstructorSpec] = {
    "Conv2D": _CONV2D,
    "Convolution2D": _CONV2D,
    "MaxPool2D": _MAX_POOLING,
    "MaxPooling2D": _MAX_POOLING,
    "AveragePooling2D": _AVERAGE_POOLING,
    "AvgPool2D": _AVERAGE_POOLING,
    "Flatten": _FLATTEN,
    "Dense": _DENSE,
}

KNOWN_KEYWORDS = frozenset(k for spec in CONSTRUCTORS.values() for k in spec.keywords)

_ACTIVATIONS = {a.value: a for a in (Activation.RELU, Activation.SOFTMAX, Activation.LINEAR)}
_PADDINGS = {p.value: p for p in (Padding.VALID, Padding.SAME)}


# =============================================================================
# Value Coercion
# =============================================================================


def _invalid(message: str, location: Optional[SourceLocation], hint: Optional[str] = None) -> DSLDeclarationError:
    return DSLDeclarationError(ErrorCode.E005, message, location, hint)


def _positive_int(name: str, value: Value, location) -> int:
    if isinstance(value, Literal) and value.is_int:
        if value.value <= 0:
            raise _invalid(f"'{name}' must be a positive integer, got {value.value}", location)
        return value.value
    raise _invalid(f"'{name}' expects an integer, got {value_to_python(value)!r}", location)


def _int_tuple(name: str, value: Value, location) -> Tuple[int, ...]:
    """Accept ``n`` or ``(a, b, ...)`` and return a tuple of positive integers."""
    if isinstance(value, TupleLiteral):
        items = value.items
    else:
        items = [value]
    if not items:
        raise _invalid(f"'{name}' must not be empty", location)
    return tuple(_positive_int(name, item, location) for item in items)


def _word(name: str, value: Value, location) -> str:
    if isinstance(value, Literal) and isinstance(value.value, str):
        return value.value
    if isinstance(value, Identifier):
        return value.name
    raise _invalid(f"'{name}' expects a string, got {value_to_python(value)!r}", location)


def _square_pair(name: str, value: Value, location) -> Tuple[int, int]:
    dims = _int_tuple(name, value, location)
    if len(dims) == 1:
        return dims[0], dims[0]
    if len(dims) != 2:
        raise _invalid(f"'{name}' expects one or two integers, got {len(dims)}", location)
    return dims


# =============================================================================
# Builder
# =============================================================================


class NetworkBuilder:
    """Builds a Network Model from parsed statements."""

    def __init__(self, diagnostics: Optional[DiagnosticCollector] = None):
        self.diagnostics = diagnostics if diagnostics is not None else DiagnosticCollector()

    def build(self, source: SourceFile) -> Network:
        network = Network(source_file=source.source_file)
        for statement in source.statements:
            self.add(network, statement)
        logger.debug("built network with %d layer(s)", len(network))
        return network

    def add(self, network: Network, statement: AddStatement) -> Optional[Layer]:
        call = statement.call
        spec = CONSTRUCTORS.get(call.name)
        if spec is None:
            self.diagnostics.error(DSLDeclarationError(
                ErrorCode.E003,
                f"unknown layer constructor '{call.qualified_name}'",
                call.location or statement.location,
                hint=f"Supported constructors: {', '.join(sorted(CONSTRUCTORS))}",
            ))
            return None

        layer = spec.factory()
        layer.location = call.location or statement.location
        network.append(layer)

        seen: Dict[str, SourceLocation] = {}
        for name, value, location in self._bound_arguments(call, spec):
            if name in seen:
                self.diagnostics.warn(
                    WarningCode.W005,
                    f"keyword '{name}' given more than once for layer {layer.index}; the last value is used",
                    location,
                )
            seen[name] = location
            try:
                self._apply(layer, spec, name, value, location)
            except DSLDeclarationError as e:
                self.diagnostics.error(e)
        return layer

    def _bound_arguments(self, call: LayerCall, spec: ConstructorSpec) -> List[Tuple[str, Value, Optional[SourceLocation]]]:
        bound = []
        for position, value in enumerate(call.args):
            location = value.location or call.location
            if position >= len(spec.positional):
                self.diagnostics.error(_invalid(
                    f"{call.name} takes at most {len(spec.positional)} positional argument(s)",
                    location,
                ))
                continue
            bound.append((spec.positional[position], value, location))
        for keyword in call.kwargs:
            bound.append((keyword.name, keyword.value, keyword.location or call.location))
        return bound

    def _apply(self, layer: Layer, spec: ConstructorSpec, name: str, value: Value, location) -> None:
        if name not in KNOWN_KEYWORDS:
            raise DSLDeclarationError(ErrorCode.E004, f"unknown keyword '{name}'", location)
        if name not in spec.keywords:
            raise DSLDeclarationError(
                ErrorCode.E006,
                f"keyword '{name}' is not valid for {layer.kind.value}",
                location,
            )

        if name == "filters":
            layer.filters = _positive_int(name, value, location)
        elif name == "units":
            layer.node_count = _positive_int(name, value, location)
        elif name in ("kernel_size", "pool_size"):
            layer.kernel_rows, layer.kernel_cols = _square_pair(name, value, location)
        elif name == "strides":
            self._apply_strides(layer, value, location)
        elif name == "activation":
            word = _word(name, value, location).lower()
            if word not in _ACTIVATIONS:
                raise _invalid(
                    f"unknown activation '{word}'",
                    location,
                    hint=f"Supported activations: {', '.join(_ACTIVATIONS)}",
                )
            layer.activation = _ACTIVATIONS[word]
        elif name == "padding":
            self._apply_padding(layer, _word(name, value, location).lower(), location)
        elif name == "input_shape":
            layer.input_volume = self._input_volume(layer, value, location)

    def _apply_strides(self, layer: Layer, value: Value, location) -> None:
        dims = _int_tuple("strides", value, location)
        if len(dims) > 2:
            raise _invalid(f"'strides' expects one or two integers, got {len(dims)}", location)
        if len(dims) == 2 and dims[0] != dims[1]:
            raise DSLDeclarationError(
                ErrorCode.E007,
                f"strides {dims} differ; only symmetric strides are supported",
                location,
            )
        layer.stride = dims[0]

    def _apply_padding(self, layer: Layer, word: str, location) -> None:
        if word not in _PADDINGS:
            raise _invalid(f"unknown padding '{word}'", location, hint="Use 'same' or 'valid'")
        if isinstance(layer, Conv2D):
            layer.padding = _PADDINGS[word]
        elif _PADDINGS[word] != Padding.VALID:
            raise _invalid("pooling layers support only 'valid' padding", location)

    def _input_volume(self, layer: Layer, value: Value, location) -> Volume:
        dims = _int_tuple("input_shape", value, location)
        if isinstance(layer, Conv2D) and len(dims) != 3:
            raise _invalid(f"Conv2D input_shape needs 3 dimensions, got {len(dims)}", location)
        if isinstance(layer, Dense):
            if len(dims) not in (1, 3):
                raise _invalid(f"Dense input_shape needs 1 or 3 dimensions, got {len(dims)}", location)
            # A volume reaches a Dense layer in row-major order
            nodes = 1
            for dim in dims:
                nodes *= dim
            return Volume(nodes, 1, 1)
        if len(dims) > 3:
            raise _invalid(f"input_shape has {len(dims)} dimensions; at most 3 are supported", location)
        padded = dims + (1,) * (3 - len(dims))
        return Volume(*padded)


def build_network(source: SourceFile, diagnostics: Optional[DiagnosticCollector] = None) -> Network:
    """Build the Network Model for a parsed source."""
    return NetworkBuilder(diagnostics).build(source)
