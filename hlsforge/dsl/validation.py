"""
Network validation

Structural checks that run after shape inference and before code
generation. Every violation is recorded as an error diagnostic; the
pipeline refuses to generate while any is present.
"""

import logging
from typing import TYPE_CHECKING, Optional, Sequence

from .errors import DiagnosticCollector, DSLError, DSLValidationError, ErrorCode, WarningCode
from .layers import Conv2D, Dense, Flatten, Layer, Network, Pooling2D
from .loop_order import AccumulatorStrategy, LoopOrder, accumulator_strategy
from .types import Activation, PoolType

if TYPE_CHECKING:
    from hlsforge.config.generation_config import GenerationConfig


logger = logging.getLogger(__name__)

# Lowest value of a signed 8-bit activation
INT8_MIN = -128


def pooling_seed(network: Network, layer: Pooling2D, config: "GenerationConfig") -> int:
    """Initial running maximum of a max-pooling layer.

    The value is the floor of the predecessor's activation range: 0 after
    ReLU, -128 after a linear layer under 8-bit quantization. Any other
    predecessor needs the ``pooling-seed`` option.

    Raises:
        DSLValidationError: If no seed can be derived
    """
    predecessor = network.predecessor(layer)
    activation = network.emitted_activation(predecessor) if predecessor is not None else Activation.NONE

    if activation == Activation.RELU:
        return 0
    if activation == Activation.LINEAR and config.quantized:
        return INT8_MIN
    if config.pooling_seed is not None:
        return config.pooling_seed

    producer = f"layer {predecessor.index} ({activation.value})" if predecessor is not None else "the network input"
    raise DSLValidationError(
        ErrorCode.E016,
        f"cannot derive the max-pooling seed of layer {layer.index} from {producer}",
        layer.location,
        hint="Set the pooling-seed option to the lowest value the input can take",
    )


def approximate_multiplier_mask(network: Network, config: "GenerationConfig") -> str:
    """Per Conv2D/Dense bitmask, padded with '0' to the number of such layers."""
    count = len(network.quantizable_layers())
    mask = config.approximate_multipliers_configuration
    return (mask + "0" * count)[:count]


class NetworkValidator:
    """Checks a shape-complete network against the generator's constraints."""

    def __init__(self, diagnostics: Optional[DiagnosticCollector] = None):
        self.diagnostics = diagnostics if diagnostics is not None else DiagnosticCollector()

    def validate(
        self,
        network: Network,
        config: "GenerationConfig",
        loop_orders: Optional[Sequence[LoopOrder]] = None,
    ) -> bool:
        """Record every violation; return True when the network can be generated."""
        errors_before = len(self.diagnostics.errors)

        if len(network) == 0:
            self.diagnostics.error(DSLValidationError(
                ErrorCode.E010,
                "the source declares no layers",
                hint="Add model.add(...) statements",
            ))
            return False

        for layer in network:
            self._check(self._sequence, network, layer)
            self._check(self._activation, network, layer)
            if isinstance(layer, Pooling2D):
                self._check(self._pooling, network, layer, config)

        if loop_orders is not None:
            for layer, order in zip(network, loop_orders):
                if isinstance(layer, Conv2D):
                    self._check(self._loop_order, layer, order, config)

        self._check(self._options, network, config)

        valid = len(self.diagnostics.errors) == errors_before
        logger.debug("validation %s for %d layer(s)", "passed" if valid else "failed", len(network))
        return valid

    def _check(self, check, *args) -> None:
        try:
            check(*args)
        except DSLError as e:
            self.diagnostics.error(e)

    def _sequence(self, network: Network, layer: Layer) -> None:
        successor = network.successor(layer)
        if isinstance(layer, Flatten) and successor is not None and not isinstance(successor, Dense):
            raise DSLValidationError(
                ErrorCode.E011,
                f"Flatten layer {layer.index} must be followed by Dense, "
                f"found {successor.kind.value}",
                successor.location or layer.location,
            )
        if isinstance(layer, Dense) and layer.input_volume is not None and not layer.input_volume.is_flat:
            raise DSLValidationError(
                ErrorCode.E011,
                f"Dense layer {layer.index} needs a flat input, got {layer.input_volume}",
                layer.location,
                hint="Insert model.add(Flatten()) before the Dense layer",
            )

    def _activation(self, network: Network, layer: Layer) -> None:
        if layer.activation == Activation.SOFTMAX and not network.is_last(layer):
            raise DSLValidationError(
                ErrorCode.E021,
                f"softmax is only supported on the final layer, found on layer {layer.index}",
                layer.location,
            )

    def _pooling(self, network: Network, layer: Pooling2D, config: "GenerationConfig") -> None:
        if layer.pool_type != PoolType.MAX:
            raise DSLValidationError(
                ErrorCode.E014,
                f"{layer.pool_type.value} pooling (layer {layer.index}) is not supported",
                layer.location,
                hint="Use MaxPool2D",
            )
        if layer.stride != layer.kernel_rows:
            raise DSLValidationError(
                ErrorCode.E015,
                f"pooling layer {layer.index} has stride {layer.stride} but window {layer.kernel_rows}; "
                "only non-overlapping windows are supported",
                layer.location,
            )
        pooling_seed(network, layer, config)

    def _loop_order(self, layer: Conv2D, order: LoopOrder, config: "GenerationConfig") -> None:
        strategy = accumulator_strategy(order, layer)
        if config.quantized and strategy != AccumulatorStrategy.SCALAR:
            raise DSLValidationError(
                ErrorCode.E019,
                f"quantization of layer {layer.index} needs a scalar accumulator, "
                f"loop order '{order}' selects strategy {strategy.value}",
                layer.location,
                hint="Use oz-oy-ox-iz-kx-ky or oz-ox-oy-iz-kx-ky",
            )

    def _options(self, network: Network, config: "GenerationConfig") -> None:
        if config.single_layer > len(network):
            raise DSLValidationError(
                ErrorCode.E020,
                f"single-layer {config.single_layer} is out of range 1..{len(network)}",
            )

        if config.approximate_multipliers:
            expected = len(network.quantizable_layers())
            given = len(config.approximate_multipliers_configuration)
            if given < expected:
                self.diagnostics.warn(
                    WarningCode.W006,
                    f"approximate-multipliers-configuration has {given} entries "
                    f"for {expected} Conv2D/Dense layer(s); missing entries select the exact multiplier",
                )
            elif given > expected:
                logger.debug("ignoring %d extra multiplier mask entries", given - expected)


def validate_network(
    network: Network,
    config: "GenerationConfig",
    loop_orders: Optional[Sequence[LoopOrder]] = None,
    diagnostics: Optional[DiagnosticCollector] = None,
) -> bool:
    """Validate a shape-complete network."""
    return NetworkValidator(diagnostics).validate(network, config, loop_orders)
