"""
Pooling2D, Flatten and Dense emission.
"""

from hlsforge.dsl.types import LayerKind
from hlsforge.dsl.validation import pooling_seed

from .context import LayerContext
from .conv2d import OUTPUT_INDEX, emit_conv2d
from .hooks import (
    base_name,
    bias_capture,
    buffer_declarations,
    emit_layer_header,
    emit_with_capture,
    output_captures,
    requantize,
    store_data,
    weight_captures,
)
from .loops import loop_header, stride_text
from .writer import CodeWriter

# Fixed nests, outermost first; loop orders only reorder Conv2D.
# Channels sit inside the spatial loops of a pooling window.
POOLING_NEST = ("ox", "oy", "oz", "kx", "ky")
FLATTEN_NEST = ("ox", "oy", "oz")


# =============================================================================
# Pooling2D
# =============================================================================


def emit_pooling(writer: CodeWriter, ctx: LayerContext) -> None:
    """Non-overlapping max pooling seeded with the floor of the input range."""
    layer = ctx.layer
    out = ctx.output_volume
    axes = POOLING_NEST
    stride = stride_text(layer.stride)
    value_type = ctx.short_datatype if ctx.quantized else ctx.datatype
    seed = pooling_seed(ctx.network, layer, ctx.config)

    emit_layer_header(writer, ctx)
    writer.extend(buffer_declarations(ctx, f"[{out.x}][{out.y}][{out.z}]"))

    with writer.nested(loop_header(ctx, axis) for axis in axes[:2]):
        writer.line(loop_header(ctx, axes[2]))
        with writer.block():
            writer.line(f"{value_type} current_cell, max_value;")
            writer.blank()
            writer.line(f"max_value = {seed};")
            writer.line(loop_header(ctx, axes[3]))
            with writer.indented():
                writer.line(loop_header(ctx, axes[4]))
                with writer.block():
                    writer.line(
                        f"current_cell = {ctx.input_name}"
                        f"[output_x{stride} + kernel_x][output_y{stride} + kernel_y][output_z];"
                    )
                    writer.line("if (current_cell > max_value) max_value = current_cell;")
            writer.line(f"{ctx.output_name}{OUTPUT_INDEX} = max_value;")
            if ctx.capture:
                writer.line(store_data(ctx.number, "LayerOutput", "max_value", "output_x", "output_y", "output_z"))


# =============================================================================
# Flatten
# =============================================================================


def emit_flatten(writer: CodeWriter, ctx: LayerContext) -> None:
    """Row-major copy of the input volume into a vector."""
    source = ctx.input_volume
    axes = FLATTEN_NEST
    formula = f"input_x * {source.y} * {source.z} + input_y * {source.z} + input_z"
    target = f"{ctx.output_name}[{formula}]"
    copy = f"{target} = {ctx.input_name}[input_x][input_y][input_z];"

    emit_layer_header(writer, ctx)
    writer.extend(buffer_declarations(ctx, f"[{ctx.output_volume.x}]"))

    with writer.nested(loop_header(ctx, axis) for axis in axes[:-1]):
        writer.line(loop_header(ctx, axes[-1]))
        if ctx.capture:
            emit_with_capture(writer, [copy], [store_data(ctx.number, "LayerOutput", target, formula)])
        else:
            with writer.indented():
                writer.line(copy)


# =============================================================================
# Dense
# =============================================================================


def emit_dense(writer: CodeWriter, ctx: LayerContext) -> None:
    """One accumulator per output unit, reduced over the whole input vector."""
    temp = ctx.temp_name
    index = "[output_x]"
    weight = f"{ctx.weights_name}[input_x][output_x]"
    mac = f"{temp} += {ctx.product(f'{ctx.input_name}[input_x]', weight)};"

    emit_layer_header(writer, ctx)
    writer.extend(buffer_declarations(ctx, f"[{ctx.output_volume.x}]"))

    writer.line(loop_header(ctx, "ox"))
    with writer.block():
        writer.line(f"{ctx.temp_datatype} {temp};")
        writer.line(f"{temp} = {ctx.bias_initializer('output_x')};")
        bias = bias_capture(ctx, "output_x", x="output_x")
        if bias:
            writer.line(bias)
        writer.line(loop_header(ctx, "ix"))
        if ctx.capture:
            emit_with_capture(writer, [mac], weight_captures(ctx, weight))
        else:
            with writer.indented():
                writer.line(mac)
        writer.line(f"{base_name(ctx)}{index} = {ctx.activate(temp)};")
        if ctx.quantized:
            writer.line(requantize(ctx, index, "output_x"))
        writer.extend(output_captures(ctx, index, "output_x"))


def emit_layer(writer: CodeWriter, ctx: LayerContext) -> None:
    kind = ctx.layer.kind
    if kind == LayerKind.CONV2D:
        emit_conv2d(writer, ctx)
    elif kind == LayerKind.POOLING2D:
        emit_pooling(writer, ctx)
    elif kind == LayerKind.FLATTEN:
        emit_flatten(writer, ctx)
    elif kind == LayerKind.DENSE:
        emit_dense(writer, ctx)
    else:
        raise ValueError(f"no emitter for layer kind {kind}")
