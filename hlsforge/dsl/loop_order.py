"""
Loop-Order Normalizer

A loop order is a dash-separated permutation of the iteration axes of a
layer, outermost first, e.g. ``oz-oy-ox-iz-kx-ky``. ``default``, ``*``
or an empty string select the canonical order of the layer type. An order
that fails validation is replaced by the canonical order with a warning;
normalization never fails the pipeline.
"""

import logging
from dataclasses import dataclass
from enum import IntEnum
from typing import Dict, List, Optional, Sequence, Tuple, Union

from .errors import DiagnosticCollector, DSLGenerationError, ErrorCode, WarningCode
from .layers import Layer, Network
from .types import LayerKind


logger = logging.getLogger(__name__)


CANONICAL_ORDERS: Dict[LayerKind, Tuple[str, ...]] = {
    LayerKind.CONV2D: ("oz", "oy", "ox", "iz", "kx", "ky"),
    LayerKind.POOLING2D: ("oz", "oy", "ox", "kx", "ky"),
    # Flatten iterates its input; the names follow the output-volume convention
    LayerKind.FLATTEN: ("oz", "oy", "ox"),
    LayerKind.DENSE: ("ox", "ix"),
}

DEFAULT_MARKERS = ("default", "*", "")


@dataclass(frozen=True)
class LoopOrder:
    """Normalized loop order of one layer."""

    kind: LayerKind
    axes: Tuple[str, ...]

    @classmethod
    def default(cls, kind: LayerKind) -> "LoopOrder":
        return cls(kind, CANONICAL_ORDERS[kind])

    @property
    def is_default(self) -> bool:
        return self.axes == CANONICAL_ORDERS[self.kind]

    @property
    def middle(self) -> Tuple[str, ...]:
        """Axes between the outermost ``oz`` and the trailing ``kx-ky`` of a Conv2D order."""
        return self.axes[1:-2]

    def __str__(self) -> str:
        return "-".join(self.axes)


def split_loop_orders(value: Union[None, str, Sequence[str]]) -> List[str]:
    """Split a ``#``- or newline-joined option value into per-layer strings."""
    if value is None:
        return []
    if isinstance(value, str):
        parts = value.replace("#", "\n").splitlines()
    else:
        parts = [str(item) for item in value]
    return [part.strip() for part in parts if part.strip()]


def check_loop_order(kind: LayerKind, text: str) -> Optional[str]:
    """Return the reason a loop order is invalid for ``kind``, or None."""
    canonical = CANONICAL_ORDERS[kind]
    axes = tuple(token.strip() for token in text.strip().lower().split("-"))

    if len(axes) != len(canonical):
        return f"expected {len(canonical)} axes, got {len(axes)}"
    unknown = [axis for axis in axes if axis not in canonical]
    if unknown:
        return f"unknown axes {', '.join(unknown)}"
    if len(set(axes)) != len(axes):
        return "axes repeat"
    if kind == LayerKind.CONV2D and axes[0] != "oz":
        return "only oz is supported as the outermost loop"
    if kind in (LayerKind.CONV2D, LayerKind.POOLING2D) and axes[-2:] != ("kx", "ky"):
        return "the order must end with kx-ky"
    if kind == LayerKind.DENSE and axes != canonical:
        return "Dense has a single reduction axis and supports only ox-ix"
    return None


def normalize_loop_order(
    layer: Layer,
    text: Optional[str],
    diagnostics: Optional[DiagnosticCollector] = None,
) -> LoopOrder:
    """Validate and normalize the loop order of one layer."""
    if text is None or text.strip().lower() in DEFAULT_MARKERS:
        return LoopOrder.default(layer.kind)

    reason = check_loop_order(layer.kind, text)
    if reason is not None:
        if diagnostics is not None:
            diagnostics.warn(
                WarningCode.W002,
                f"loop order '{text}' of layer {layer.index} ({layer.kind.value}) ignored: {reason}; "
                f"using '{'-'.join(CANONICAL_ORDERS[layer.kind])}'",
                layer.location,
            )
        return LoopOrder.default(layer.kind)

    axes = tuple(token.strip() for token in text.strip().lower().split("-"))
    return LoopOrder(layer.kind, axes)


def normalize_loop_orders(
    network: Network,
    orders: Sequence[str] = (),
    diagnostics: Optional[DiagnosticCollector] = None,
) -> List[LoopOrder]:
    """Normalize the per-layer loop orders of a network.

    A list whose length differs from the layer count is ignored as a whole.
    """
    orders = list(orders)
    if orders and len(orders) != len(network):
        if diagnostics is not None:
            diagnostics.warn(
                WarningCode.W003,
                f"loop-orders ignored: {len(orders)} order(s) given for {len(network)} layer(s)",
            )
        orders = []

    normalized = []
    for position, layer in enumerate(network):
        text = orders[position] if orders else None
        normalized.append(normalize_loop_order(layer, text, diagnostics))

    logger.debug("loop orders: %s", ", ".join(str(o) for o in normalized))
    return normalized


# =============================================================================
# Accumulator Strategy
# =============================================================================


class AccumulatorStrategy(IntEnum):
    """Shape of the Conv2D accumulator implied by the loop order.

    SCALAR keeps one partial sum per output element, VECTOR one per element
    of the spatial axis nested inside the input-channel loop, TILE one per
    element of both spatial axes.
    """

    SCALAR = 1
    VECTOR = 2
    TILE = 3


_STRATEGIES: Dict[Tuple[str, ...], AccumulatorStrategy] = {
    ("oy", "ox", "iz"): AccumulatorStrategy.SCALAR,
    ("ox", "oy", "iz"): AccumulatorStrategy.SCALAR,
    ("ox", "iz", "oy"): AccumulatorStrategy.VECTOR,
    ("oy", "iz", "ox"): AccumulatorStrategy.VECTOR,
    ("iz", "ox", "oy"): AccumulatorStrategy.TILE,
    ("iz", "oy", "ox"): AccumulatorStrategy.TILE,
}


def accumulator_strategy(order: LoopOrder, layer: Optional[Layer] = None) -> AccumulatorStrategy:
    """Select the accumulator strategy of a Conv2D loop order.

    Raises:
        DSLGenerationError: If the middle axes form no supported nesting
    """
    strategy = _STRATEGIES.get(order.middle)
    if order.kind != LayerKind.CONV2D or strategy is None:
        index = f" of layer {layer.index}" if layer is not None else ""
        raise DSLGenerationError(
            ErrorCode.E017,
            f"unsupported loop order '{order}'{index}",
            layer.location if layer is not None else None,
            hint="Supported Conv2D orders: "
            + ", ".join("oz-" + "-".join(middle) + "-kx-ky" for middle in _STRATEGIES),
        )
    return strategy
