"""
Cross-cutting emission hooks: activation functions, quantization,
approximate multipliers, fault injection and analysis-data capture.

Each hook is a small text builder; the layer emitters compose them
rather than substituting placeholders into templates.
"""

from typing import Iterable, List, Optional, Sequence

from hlsforge.config.generation_config import GenerationConfig
from hlsforge.dsl.layers import Network
from hlsforge.dsl.types import Activation
from hlsforge.dsl.validation import approximate_multiplier_mask

from .context import LayerContext
from .writer import CodeWriter

HLS_GUARD_BEGIN = "#ifndef _HLS_RUN"
HLS_GUARD_END = "#endif"

MULTIPLIER_BASE = "mul_base"
MULTIPLIER_EXACT = "mul8s_1KV6"


# =============================================================================
# Activation Functions
# =============================================================================


_ACTIVATION_BODIES = {
    Activation.RELU: "return x > 0 ? x : (DataType_relu)0;",
    Activation.LINEAR: "return x;",
}


def emit_activation_functions(writer: CodeWriter, activations: Iterable[Activation]) -> None:
    """One small function per activation kind, in enum order."""
    emitted = 0
    for activation in Activation.sorted_unique(activations):
        body = _ACTIVATION_BODIES.get(activation)
        if body is None:
            continue
        if emitted:
            writer.blank()
        with writer.block(f"DataType_relu {activation.value}(DataType_relu x)"):
            writer.line(body)
        emitted += 1


# =============================================================================
# Quantization
# =============================================================================


def emit_quantization_macros(writer: CodeWriter) -> None:
    writer.extend([
        "#define Q_MAX(x, y) (x>y?x:y)",
        "#define Q_MIN(x, y) (x>y?y:x)",
        "#define Q_MIN_MAX(x) ( Q_MIN(Q_MAX(x, -128), 127) )",
    ])


def base_name(ctx: LayerContext) -> str:
    """Buffer receiving the wide accumulator result."""
    if ctx.quantized and ctx.layer.is_quantizable:
        return f"{ctx.output_name}_base"
    return ctx.output_name


def requantize(ctx: LayerContext, index: str, scale_axis: str) -> str:
    """Affine rescale of the wide result into the narrow output buffer."""
    q = ctx.quant_index
    return (
        f"{ctx.output_name}{index} = {ctx.short_datatype}(Q_MIN_MAX("
        f"{base_name(ctx)}{index}*input_scale_factors[{q}]*weight_scales_{ctx.number}[{scale_axis}]"
        f"/output_scale_factors[{q}] + output_zero_points[{q}]));"
    )


def buffer_declarations(ctx: LayerContext, dims: str) -> List[str]:
    """Body declarations of the layer's output buffer(s).

    A non-local buffer is commented out; it arrives as a forward() parameter.
    The wide ``_base`` buffer of a quantized layer is always local.
    """
    quantized_weights = ctx.quantized and ctx.layer.is_quantizable
    if not ctx.declares_buffer:
        if quantized_weights:
            return [f"{ctx.datatype} outputs_base{dims};"]
        return []

    prefix = "" if ctx.is_local else "//"
    if quantized_weights:
        return [
            f"{ctx.datatype} l{ctx.number}_base{dims};",
            f"{prefix}{ctx.short_datatype} l{ctx.number}{dims};",
        ]
    if ctx.quantized:
        return [f"{prefix}{ctx.short_datatype} l{ctx.number}{dims};"]
    return [f"{prefix}{ctx.datatype} l{ctx.number}{dims};"]


def emit_layer_header(writer: CodeWriter, ctx: LayerContext) -> None:
    source, target = ctx.input_volume, ctx.output_volume
    writer.line(f"//Layer {ctx.number}: {ctx.layer.describe()}")
    writer.line(f"//Input: X:{source.x}, Y: {source.y}, Z: {source.z}")
    writer.line(f"//Output: X:{target.x}, Y: {target.y}, Z: {target.z}")


# =============================================================================
# Approximate Multipliers
# =============================================================================


def multiplier_name(multiplier_type: str) -> str:
    if multiplier_type == "base":
        return "MULTIPLIER_BASE"
    if multiplier_type == "exact":
        return "MULTIPLIER_EXACT"
    return multiplier_type


def emit_approximate_multipliers(writer: CodeWriter, network: Network, config: GenerationConfig) -> None:
    """Per-layer ``MUL_LAYER_<n>`` selection.

    Outside of synthesis every layer goes through the runtime-configurable
    ``mul_general``; under synthesis the bitmask picks the approximate
    ('1') or the exact ('0') multiplier for each Conv2D/Dense layer.
    """
    mask = approximate_multiplier_mask(network, config)
    layers = network.quantizable_layers()

    writer.line('#include "multipliers.h"')
    writer.blank()
    writer.line(f"#define MULTIPLIER_BASE {MULTIPLIER_BASE}")
    writer.line(f"#define MULTIPLIER_EXACT {MULTIPLIER_EXACT}")
    writer.blank()
    writer.line(f"#define MULTIPLIER_NAME {multiplier_name(config.approximate_multipliers_type)}")
    writer.blank()

    writer.line(HLS_GUARD_BEGIN)
    writer.line(
        '#define MUL_LAYER(a, b, layer_id) (mul_general<int16_t>(a, b, layer_id, '
        'arguments["mul-name"], arguments["mul-layers-config"]))'
    )
    for layer in layers:
        writer.line(f"#define MUL_LAYER_{layer.index}(a, b) MUL_LAYER(a, b, {layer.index})")
    writer.line("#else //_HLS_RUN")
    for bit, layer in zip(mask, layers):
        comment = "" if bit == "1" else "//"
        writer.line(f"{comment}#define MUL_LAYER_{layer.index} MULTIPLIER_NAME")
    for bit, layer in zip(mask, layers):
        comment = "//" if bit == "1" else ""
        writer.line(f"{comment}#define MUL_LAYER_{layer.index} MULTIPLIER_EXACT")
    writer.line("#endif //_HLS_RUN")


# =============================================================================
# Fault Simulation
# =============================================================================


def fault_injection(number: int) -> str:
    return f"fault_injection(&l{number}, {number}, faulty_layer, faulty_fmap, faulty_bit);"


# =============================================================================
# Analysis-Data Capture
# =============================================================================


def store_data(number: int, name: str, value: str, x: str = "-1", y: str = "-1", z: str = "-1") -> str:
    return f'STORE_DATA({number}, "{name}", (float){value}, {x}, {y}, {z});'


def emit_with_capture(writer: CodeWriter, statements: Sequence[str], captures: Sequence[str]) -> None:
    """Statements followed by capture calls, braced only outside of synthesis."""
    writer.extend([HLS_GUARD_BEGIN, "{", HLS_GUARD_END])
    with writer.indented():
        writer.extend(statements)
        writer.line(HLS_GUARD_BEGIN)
        writer.extend(captures)
    writer.extend(["}", HLS_GUARD_END])


def emit_guarded(writer: CodeWriter, lines: Sequence[str]) -> None:
    writer.line(HLS_GUARD_BEGIN)
    writer.extend(lines)
    writer.line(HLS_GUARD_END)


def output_captures(ctx: LayerContext, index: str, x: str, y: str = "-1", z: str = "-1") -> List[str]:
    """Capture calls for one written output element."""
    if not ctx.capture:
        return []
    captures = []
    if ctx.quantized and ctx.layer.is_quantizable:
        captures.append(store_data(ctx.number, "LayerOutputBase", f"{base_name(ctx)}{index}", x, y, z))
    captures.append(store_data(ctx.number, "LayerOutput", f"{ctx.output_name}{index}", x, y, z))
    return captures


def weight_captures(ctx: LayerContext, weight: str) -> List[str]:
    return [
        store_data(ctx.number, "weights", weight),
        store_data(ctx.number, "temp_element", ctx.temp_name),
    ]


def bias_capture(ctx: LayerContext, axis: str, x: str = "-1", z: str = "-1") -> Optional[str]:
    if not (ctx.capture and ctx.config.biases_enabled):
        return None
    return store_data(ctx.number, "biases", f"{ctx.biases_name}[{axis}]", x, "-1", z)
