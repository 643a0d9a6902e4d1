"""
Forward-Pass Generator

Assembles main.cpp: the prologue, the activation functions, the
quantization and approximate-multiplier macros, the InputType/OutputType
typedefs and the forward() function holding one loop nest per layer.
"""

import logging
from typing import List, Sequence

from hlsforge.config.generation_config import GenerationConfig
from hlsforge.dsl.layers import Layer, Network
from hlsforge.dsl.loop_order import LoopOrder
from hlsforge.dsl.types import LayerKind

from .context import LayerContext
from .hooks import (
    HLS_GUARD_BEGIN,
    HLS_GUARD_END,
    emit_activation_functions,
    emit_approximate_multipliers,
    emit_quantization_macros,
    fault_injection,
    store_data,
)
from .headers import channel_count
from .layers import emit_layer
from .placement import layer_data_location
from .writer import CodeWriter

logger = logging.getLogger(__name__)

PARAMETER_INDENT = "\t\t\t"


def _input_dims(layer: Layer) -> str:
    volume = layer.input_volume
    if layer.kind == LayerKind.DENSE:
        return f"[{volume.x}]"
    return f"[{volume.x}][{volume.y}][{volume.z}]"


def _output_dims(layer: Layer) -> str:
    volume = layer.output_volume
    if layer.kind in (LayerKind.FLATTEN, LayerKind.DENSE):
        return f"[{volume.x}]"
    return f"[{volume.x}][{volume.y}][{volume.z}]"


class ForwardGenerator:
    """Emits main.cpp for a shape-complete, validated network."""

    def __init__(
        self,
        network: Network,
        config: GenerationConfig,
        loop_orders: Sequence[LoopOrder],
        network_guess: str = "",
    ):
        if len(loop_orders) != len(network):
            raise ValueError(f"{len(loop_orders)} loop order(s) for {len(network)} layer(s)")
        self.network = network
        self.config = config
        self.loop_orders = list(loop_orders)
        self.network_guess = network_guess
        self.writer = CodeWriter()

    def placement(self, layer: Layer) -> str:
        return layer_data_location(layer.index, self.network_guess, self.config.layer_data_location)

    def context(self, layer: Layer) -> LayerContext:
        return LayerContext(
            network=self.network,
            layer=layer,
            config=self.config,
            loop_order=self.loop_orders[layer.index - 1],
            placement=self.placement(layer),
        )

    @property
    def emitted_layers(self) -> List[Layer]:
        if self.config.isolated:
            return [self.network.layer(self.config.single_layer)]
        return list(self.network)

    # =========================================================================
    # Sections
    # =========================================================================

    def emit_prologue(self) -> None:
        w, config = self.writer, self.config
        if not config.add_main_function:
            w.line("#define _HLS_RUN")
            w.blank()
            w.line('#include "param-list.h"')
            w.blank(2)
            return

        w.line("//#define _HLS_RUN")
        w.blank()
        w.line(HLS_GUARD_BEGIN)
        w.extend([
            '#include "stdlib.h"',
            '#include "stdio.h"',
            '#include "time.h"',
            "#include <typeinfo>",
            "#include <thread>",
        ])
        w.line("#endif //_HLS_RUN")
        w.blank()

        w.line('#include "param-list.h"')
        w.line(HLS_GUARD_BEGIN)
        w.line('#include "fixed-point-analysis.h"')
        if config.fault_simulation:
            w.line('#include "fault_simulation.h"')
        if config.quantized:
            w.line('#include "quantization.h"')
        if config.store_analysis_data:
            w.line("int RunCounter = 0;")
            w.line("#define STORE_DATA(p1, p2, p3, p4, p5, p6) {StoreData(p1, p2, p3, RunCounter < 1, p4, p5, p6);}")
        w.line("extern map<string, string> arguments;")
        w.line("#else")
        if config.store_analysis_data:
            w.line("#define STORE_DATA(p1, p2, p3, p4, p5, p6)")
        if config.quantized:
            w.line("void quantize_layer_output(void *layer_data_base, void *layer_data_quantized, int size, int config = 0) {};")
        if config.fault_simulation:
            w.line("void fault_injection(void *activation, int current_layer, int faulty_layer, int faulty_fmap, int faulty_bit) {};")
        w.line(HLS_GUARD_END)
        w.blank()

        w.line(HLS_GUARD_BEGIN)
        w.extend([
            '#include "datainterface.h"',
            '#include "paraminterface.h"',
            "#ifndef __linux__",
            "#pragma warning(disable: 4102) //To suppress unused label warnings",
            "#endif //__linux__",
        ])
        w.line("#endif //_HLS_RUN")
        w.blank(2)

    def emit_macros(self) -> None:
        w, config = self.writer, self.config
        activations = self.network.emitted_activations()
        if activations:
            emit_activation_functions(w, activations)
            w.blank()
        if config.quantized:
            emit_quantization_macros(w)
            w.blank()
        if config.approximate_multipliers:
            emit_approximate_multipliers(w, self.network, config)
            w.blank()

    def emit_typedefs(self) -> None:
        layers = self.emitted_layers
        first, last = layers[0], layers[-1]
        suffix = "_short" if self.config.quantized else ""
        self.writer.line(f"typedef DataType_input InputType{_input_dims(first)};")
        self.writer.line(f"typedef DataType_output{suffix} OutputType{_output_dims(last)};")
        self.writer.blank()

    def signature_parameters(self) -> List[str]:
        """forward() parameters after ``inputs`` and ``outputs``, one group per entry."""
        network, config = self.network, self.config
        quantizable = network.quantizable_layers()
        parameters = []

        if config.fault_simulation:
            parameters.append("int faulty_layer, int faulty_fmap, int faulty_bit")

        if config.quantized and quantizable:
            count = len(quantizable)
            parameters.append(
                f"DataType_IZP input_zero_points[{count}], DataType_OZP output_zero_points[{count}], "
                f"DataType_ISF input_scale_factors[{count}], DataType_OSF output_scale_factors[{count}]"
            )
            parameters.append(", ".join(
                f"DataType_WSF weight_scales_{layer.index}[{channel_count(layer)}]" for layer in quantizable
            ))

        for layer in quantizable:
            if layer.kind == LayerKind.CONV2D:
                weights = (
                    f"DataType_weights weights_{layer.index}[{layer.kernel_rows}][{layer.kernel_cols}]"
                    f"[{layer.input_volume.z}][{layer.output_volume.z}]"
                )
            else:
                weights = f"DataType_weights weights_{layer.index}[{layer.input_volume.x}][{layer.output_volume.x}]"
            group = weights
            if config.biases_enabled:
                group += f", DataType_biases biases_{layer.index}[{channel_count(layer)}]"
            if config.isolated and layer.index != config.single_layer:
                group = f"/*{group}*/"
            parameters.append(group)

        if not config.isolated:
            for layer in network.layers[:-1]:
                ctx = self.context(layer)
                datatype = ctx.short_datatype if config.quantized else ctx.datatype
                buffer = f"{datatype} l{layer.index}{_output_dims(layer)}"
                if ctx.is_local:
                    buffer = f"/*{buffer}*/"
                parameters.append(buffer)

        return parameters

    def emit_signature(self) -> None:
        w = self.writer
        w.line("void forward(InputType inputs, OutputType &outputs")
        for group in self.signature_parameters():
            if group.startswith("/*"):
                w.line(f"{PARAMETER_INDENT} /*, {group[2:]}")
            else:
                w.line(f"{PARAMETER_INDENT}, {group}")
        w.line(")")

    def emit_input_capture(self, first: Layer) -> None:
        w = self.writer
        volume = first.input_volume
        w.line(HLS_GUARD_BEGIN)
        if first.kind == LayerKind.DENSE:
            with w.nested([f"for (int input_x = 0; input_x < {volume.x}; input_x++)"]):
                w.line(store_data(first.index, "inputs", "inputs[input_x]", "input_x"))
        else:
            loops = [
                f"for (int input_x = 0; input_x < {volume.x}; input_x++)",
                f"for (int input_y = 0; input_y < {volume.y}; input_y++)",
                f"for (int input_z = 0; input_z < {volume.z}; input_z++)",
            ]
            with w.nested(loops):
                w.line(store_data(
                    first.index, "inputs", "inputs[input_x][input_y][input_z]",
                    "input_x", "input_y", "input_z",
                ))
        w.line(HLS_GUARD_END)
        w.blank(2)

    def emit_body(self) -> None:
        w, config = self.writer, self.config
        layers = self.emitted_layers
        with w.block():
            if config.store_analysis_data:
                self.emit_input_capture(layers[0])

            for layer in layers:
                emit_layer(w, self.context(layer))
                if layer is layers[-1] or config.isolated:
                    continue
                w.blank()
                if config.fault_simulation:
                    w.line(fault_injection(layer.index))
                    w.blank()
                else:
                    w.blank()

    def generate(self) -> str:
        self.writer = CodeWriter()
        self.emit_prologue()
        self.emit_macros()
        self.emit_typedefs()
        self.emit_signature()
        self.emit_body()
        logger.debug("generated forward() for %d layer(s)", len(self.emitted_layers))
        return self.writer.render()


def generate_forward(
    network: Network,
    config: GenerationConfig,
    loop_orders: Sequence[LoopOrder],
    network_guess: str = "",
) -> str:
    """Return the text of main.cpp for a shape-complete, validated network.

    The output depends only on the arguments; identical inputs yield
    byte-identical text.
    """
    return ForwardGenerator(network, config, loop_orders, network_guess).generate()
