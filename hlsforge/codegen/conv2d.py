"""
Conv2D emission.

The loop order picks one of three accumulator strategies:

    SCALAR  oz-{oy,ox}-{ox,oy}-iz-kx-ky   one partial sum per output element
    VECTOR  oz-{ox,oy}-iz-{oy,ox}-kx-ky   one partial sum per element of the inner axis
    TILE    oz-iz-{ox,oy}-{oy,ox}-kx-ky   one partial sum per spatial output element

All three reduce the same products over (iz, kx, ky); only SCALAR supports
quantization and analysis-data capture.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence

from hlsforge.dsl.errors import DSLGenerationError, ErrorCode
from hlsforge.dsl.loop_order import AccumulatorStrategy, accumulator_strategy
from hlsforge.dsl.types import Padding

from .context import LayerContext
from .hooks import (
    base_name,
    bias_capture,
    buffer_declarations,
    emit_guarded,
    emit_layer_header,
    emit_with_capture,
    output_captures,
    requantize,
    weight_captures,
)
from .loops import axis_bound, axis_variable, inline_loop, loop_header, stride_text
from .writer import CodeWriter

OUTPUT_INDEX = "[output_x][output_y][output_z]"


@dataclass(frozen=True)
class Operands:
    """Input and weight element read by one multiply-accumulate."""

    input: str
    weight: str
    # SAME padding only
    index_definitions: Sequence[str] = ()
    bounds_check: Optional[str] = None


def conv_operands(ctx: LayerContext) -> Operands:
    layer = ctx.layer
    stride = stride_text(layer.stride)
    weight = f"{ctx.weights_name}[kernel_x][kernel_y][input_z][output_z]"

    if layer.padding != Padding.SAME:
        return Operands(
            input=f"{ctx.input_name}[output_x{stride} + kernel_x][output_y{stride} + kernel_y][input_z]",
            weight=weight,
        )

    pad_x = (layer.kernel_rows - 1) // 2
    pad_y = (layer.kernel_cols - 1) // 2
    source = layer.input_volume
    return Operands(
        input=f"{ctx.input_name}[row_index][col_index][input_z]",
        weight=weight,
        index_definitions=(
            f"int row_index = output_x{stride} + kernel_x - {pad_x};",
            f"int col_index = output_y{stride} + kernel_y - {pad_y};",
        ),
        bounds_check=(
            f"if (row_index >= 0 && row_index < {source.x} && col_index >= 0 && col_index < {source.y})"
        ),
    )


def emit_mac(writer: CodeWriter, ctx: LayerContext, accumulator: str, operands: Operands) -> None:
    """Multiply-accumulate of the innermost loop, with its capture calls."""
    mac = f"{accumulator} += {ctx.product(operands.input, operands.weight)};"
    captures = weight_captures(ctx, operands.weight) if ctx.capture else []

    if operands.bounds_check is None:
        if captures:
            emit_with_capture(writer, [mac], captures)
        else:
            with writer.indented():
                writer.line(mac)
        return

    with writer.block():
        writer.extend(operands.index_definitions)
        writer.line(operands.bounds_check)
        with writer.indented():
            writer.line(mac)
        if ctx.quantized:
            # An out-of-bounds element is a real zero, i.e. the input zero point
            writer.line("else")
            with writer.indented():
                writer.line(f"{accumulator} += input_zero_points[{ctx.quant_index}] * {operands.weight};")
        if captures:
            emit_guarded(writer, captures)


def _emit_reduction(writer: CodeWriter, ctx: LayerContext, axes: Sequence[str], accumulator: str) -> None:
    with writer.nested(loop_header(ctx, axis) for axis in axes[:-1]):
        writer.line(loop_header(ctx, axes[-1]))
        emit_mac(writer, ctx, accumulator, conv_operands(ctx))


# =============================================================================
# Strategies
# =============================================================================


def _emit_scalar(writer: CodeWriter, ctx: LayerContext) -> None:
    axes = ctx.loop_order.axes
    temp = ctx.temp_name

    with writer.nested(loop_header(ctx, axis) for axis in axes[:2]):
        writer.line(loop_header(ctx, axes[2]))
        with writer.block():
            bias = bias_capture(ctx, "output_z", z="output_z")
            if bias:
                writer.line(bias)
            writer.line(f"{ctx.temp_datatype} {temp};")
            writer.line(f"{temp} = {ctx.bias_initializer('output_z')};")
            _emit_reduction(writer, ctx, axes[3:], temp)
            writer.line(f"{base_name(ctx)}{OUTPUT_INDEX} = {ctx.activate(temp)};")
            if ctx.quantized:
                writer.line(requantize(ctx, OUTPUT_INDEX, "output_z"))
            writer.extend(output_captures(ctx, OUTPUT_INDEX, "output_x", "output_y", "output_z"))


def _emit_vector(writer: CodeWriter, ctx: LayerContext) -> None:
    axes = ctx.loop_order.axes
    inner = axes[3]
    variable = axis_variable(ctx.layer, inner)
    temp = f"{ctx.temp_name}[{variable}]"

    writer.line(loop_header(ctx, axes[0]))
    with writer.indented():
        writer.line(loop_header(ctx, axes[1]))
        with writer.block():
            writer.line(f"{ctx.temp_datatype} {ctx.temp_name}[{axis_bound(ctx.layer, inner)}];")
            writer.blank()
            writer.line(f"{inline_loop(ctx, inner, 'I')} {temp} = {ctx.bias_initializer('output_z')};")
            writer.blank()
            _emit_reduction(writer, ctx, axes[2:], temp)
            writer.blank()
            writer.line(f"{inline_loop(ctx, inner, 'O')} {ctx.output_name}{OUTPUT_INDEX} = {ctx.activate(temp)};")


def _emit_tile(writer: CodeWriter, ctx: LayerContext) -> None:
    axes = ctx.loop_order.axes
    out = ctx.output_volume
    temp = f"{ctx.temp_name}[output_x][output_y]"

    writer.line(loop_header(ctx, axes[0]))
    with writer.block():
        writer.line(f"{ctx.temp_datatype} {ctx.temp_name}[{out.x}][{out.y}];")
        writer.blank()
        with writer.nested([inline_loop(ctx, "ox", "I"), inline_loop(ctx, "oy", "I")]):
            writer.line(f"{temp} = {ctx.bias_initializer('output_z')};")
        writer.blank()
        _emit_reduction(writer, ctx, axes[1:], temp)
        writer.blank()
        with writer.nested([inline_loop(ctx, "ox", "O"), inline_loop(ctx, "oy", "O")]):
            writer.line(f"{ctx.output_name}{OUTPUT_INDEX} = {ctx.activate(temp)};")


_STRATEGY_EMITTERS = {
    AccumulatorStrategy.SCALAR: _emit_scalar,
    AccumulatorStrategy.VECTOR: _emit_vector,
    AccumulatorStrategy.TILE: _emit_tile,
}


def emit_conv2d(writer: CodeWriter, ctx: LayerContext) -> AccumulatorStrategy:
    """Emit one Conv2D layer and return the accumulator strategy used.

    Raises:
        DSLGenerationError: On an unsupported loop order (E017), or when
            quantization or capture meet a non-scalar accumulator (E019)
    """
    strategy = accumulator_strategy(ctx.loop_order, ctx.layer)
    if strategy != AccumulatorStrategy.SCALAR:
        unsupported: List[str] = []
        if ctx.quantized:
            unsupported.append("quantization")
        if ctx.capture:
            unsupported.append("analysis-data capture")
        if unsupported:
            raise DSLGenerationError(
                ErrorCode.E019,
                f"{' and '.join(unsupported)} not supported with loop order '{ctx.loop_order}' "
                f"of layer {ctx.number}",
                ctx.layer.location,
                hint="Use oz-oy-ox-iz-kx-ky or oz-ox-oy-iz-kx-ky",
            )

    out = ctx.output_volume
    emit_layer_header(writer, ctx)
    writer.extend(buffer_declarations(ctx, f"[{out.x}][{out.y}][{out.z}]"))
    _STRATEGY_EMITTERS[strategy](writer, ctx)
    return strategy
