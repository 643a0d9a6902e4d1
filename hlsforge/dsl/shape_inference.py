"""
Shape Inference Engine

Walks the network once, front to back, completing every layer's geometry
in place. Each layer's output volume is known before its successor is
processed.

Rules per layer:
1. stride defaults to 1 (pooling with only a window uses the window as stride)
2. Conv2D padding defaults to VALID
3. an unset kernel takes the stride as its size
4. an unset input volume is the predecessor's output volume
5. an unset pooling channel count is the predecessor's channel count
6. Flatten node count is the product of its input dimensions
7. Flatten/Dense output is (node_count, 1, 1)
8. Conv2D/Pooling spatial extents follow VALID or SAME arithmetic
"""

import logging
from typing import Optional, Tuple

from .errors import DiagnosticCollector, DSLShapeError, ErrorCode, WarningCode
from .layers import Conv2D, Dense, Flatten, Layer, Network, Pooling2D
from .types import Padding, Volume


logger = logging.getLogger(__name__)


def valid_extent(size: int, kernel: int, stride: int) -> int:
    """Output extent of a VALID window: ``floor((size - kernel) / stride) + 1``."""
    return (size - kernel) // stride + 1


def same_padding(kernel: int) -> int:
    return (kernel - 1) // 2


def same_extent(size: int, kernel: int, stride: int) -> int:
    """Output extent under SAME padding for an odd kernel."""
    if stride == 1:
        return size
    return (size + 2 * same_padding(kernel) - kernel) // stride + 1


def is_unaligned_same_stride(size: int, kernel: int, stride: int) -> bool:
    return stride != 1 and (size + 2 * same_padding(kernel) - kernel) % stride != 0


class ShapeInference:
    """Completes layer geometry for a network."""

    def __init__(self, diagnostics: Optional[DiagnosticCollector] = None):
        self.diagnostics = diagnostics if diagnostics is not None else DiagnosticCollector()

    def run(self, network: Network) -> bool:
        """Infer all layers; return False after the first fatal inference error.

        Later layers depend on earlier outputs, so inference stops at the
        first layer that cannot be completed.
        """
        for layer in network:
            try:
                self.infer_layer(network, layer)
            except DSLShapeError as e:
                self.diagnostics.error(e)
                return False
            logger.debug(
                "layer %d %s: %s -> %s", layer.index, layer.kind.value, layer.input_volume, layer.output_volume
            )
        return True

    def infer_layer(self, network: Network, layer: Layer) -> None:
        # Rule 1
        if layer.stride is None:
            if isinstance(layer, Pooling2D) and layer.kernel_rows is not None:
                layer.stride = layer.kernel_rows
            else:
                layer.stride = 1

        # Rule 2
        if isinstance(layer, Conv2D) and layer.padding == Padding.NONE:
            layer.padding = Padding.VALID

        # Rule 3
        if isinstance(layer, (Conv2D, Pooling2D)) and layer.kernel_rows is None:
            layer.kernel_rows = layer.kernel_cols = layer.stride

        # Rule 4
        predecessor = network.predecessor(layer)
        if layer.input_volume is None:
            if predecessor is None:
                raise DSLShapeError(
                    ErrorCode.E009,
                    f"first layer ({layer.kind.value}) has no input shape",
                    layer.location,
                    hint="Add input_shape=(x, y, z) to the first layer",
                )
            layer.input_volume = predecessor.output_volume

        # Rule 5
        if isinstance(layer, Pooling2D) and layer.channels is None:
            layer.channels = layer.input_volume.z

        # Rules 6 and 7
        if isinstance(layer, Flatten):
            layer.node_count = layer.input_volume.size
        if isinstance(layer, (Flatten, Dense)):
            if layer.node_count is None:
                raise DSLShapeError(
                    ErrorCode.E010,
                    f"cannot infer the output of layer {layer.index} ({layer.kind.value}): no unit count",
                    layer.location,
                    hint="Give Dense a unit count, e.g. Dense(10)",
                )
            layer.output_volume = Volume.flat(layer.node_count)
        # Rule 8
        elif isinstance(layer, (Conv2D, Pooling2D)):
            layer.output_volume = self._windowed_output(layer)
        # Rule 9
        else:
            raise DSLShapeError(
                ErrorCode.E010,
                f"cannot infer the output of layer {layer.index} ({layer.kind.value})",
                layer.location,
            )

        if not layer.output_volume.is_positive():
            raise DSLShapeError(
                ErrorCode.E018,
                f"layer {layer.index} ({layer.kind.value}) has non-positive output volume "
                f"{layer.output_volume} for input {layer.input_volume}",
                layer.location,
            )

    def _windowed_output(self, layer: Layer) -> Volume:
        if layer.kernel_rows != layer.kernel_cols:
            raise DSLShapeError(
                ErrorCode.E008,
                f"layer {layer.index} has a non-square kernel "
                f"({layer.kernel_rows}, {layer.kernel_cols})",
                layer.location,
            )

        source = layer.input_volume
        if isinstance(layer, Conv2D):
            if layer.filters is None:
                raise DSLShapeError(
                    ErrorCode.E012,
                    f"Conv2D layer {layer.index} has no filter count",
                    layer.location,
                    hint="Add filters=<n>",
                )
            channels = layer.filters
        else:
            channels = layer.channels

        if isinstance(layer, Conv2D) and layer.padding == Padding.SAME:
            x, y = self._same_extents(layer, source)
        else:
            x = valid_extent(source.x, layer.kernel_rows, layer.stride)
            y = valid_extent(source.y, layer.kernel_cols, layer.stride)
        return Volume(x, y, channels)

    def _same_extents(self, layer: Conv2D, source: Volume) -> Tuple[int, int]:
        if layer.kernel_rows % 2 == 0:
            raise DSLShapeError(
                ErrorCode.E013,
                f"SAME padding needs an odd kernel, layer {layer.index} has {layer.kernel_rows}",
                layer.location,
            )
        for axis, size in (("X", source.x), ("Y", source.y)):
            if is_unaligned_same_stride(size, layer.kernel_rows, layer.stride):
                self.diagnostics.warn(
                    WarningCode.W001,
                    f"unaligned stride {layer.stride} on axis {axis} of layer {layer.index} "
                    f"(input {size}, kernel {layer.kernel_rows})",
                    layer.location,
                )
        return (
            same_extent(source.x, layer.kernel_rows, layer.stride),
            same_extent(source.y, layer.kernel_cols, layer.stride),
        )


def infer_shapes(network: Network, diagnostics: Optional[DiagnosticCollector] = None) -> bool:
    """Complete every layer's geometry in place."""
    return ShapeInference(diagnostics).run(network)
