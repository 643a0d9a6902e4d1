"""
Loop headers and deterministic loop labels.

Labels are a contract with downstream synthesis tooling, which attaches
directives to them: ``for<N>`` (``for<N>t`` from layer 10 on) followed
by an axis suffix. The suffix depends only on the layer kind, the axis
and the label style, never on the position the axis takes in a
reordered loop nest.
"""

from typing import Dict, Tuple

from hlsforge.dsl.layers import Layer
from hlsforge.dsl.types import LayerKind

from .context import LayerContext


# Suffix per axis: (named, numbered)
_SUFFIXES: Dict[LayerKind, Dict[str, Tuple[str, str]]] = {
    LayerKind.CONV2D: {
        "oz": ("Oz", ""),
        "oy": ("Oy", "1"),
        "ox": ("Ox", "2"),
        "iz": ("Iz", "3"),
        "kx": ("Kx", "4"),
        "ky": ("Ky", "5"),
    },
    LayerKind.POOLING2D: {
        "ox": ("", ""),
        "oy": ("1", "1"),
        "oz": ("2", "2"),
        "kx": ("3", "3"),
        "ky": ("4", "4"),
    },
    # Flatten walks its input volume
    LayerKind.FLATTEN: {
        "ox": ("Ix", ""),
        "oy": ("Iy", "1"),
        "oz": ("Iz", "2"),
    },
    LayerKind.DENSE: {
        "ox": ("Ox", ""),
        "ix": ("Ix", "1"),
    },
}

_OUTPUT_VARIABLES = {
    "oz": "output_z",
    "oy": "output_y",
    "ox": "output_x",
    "iz": "input_z",
    "ix": "input_x",
    "kx": "kernel_x",
    "ky": "kernel_y",
}

_INPUT_VARIABLES = {
    "oz": "input_z",
    "oy": "input_y",
    "ox": "input_x",
}


def axis_variable(layer: Layer, axis: str) -> str:
    if layer.kind == LayerKind.FLATTEN:
        return _INPUT_VARIABLES[axis]
    return _OUTPUT_VARIABLES[axis]


def axis_bound(layer: Layer, axis: str) -> int:
    """Trip count of ``axis`` for ``layer``."""
    source, target = layer.input_volume, layer.output_volume
    if layer.kind == LayerKind.FLATTEN:
        target = source
    bounds = {
        "oz": target.z,
        "oy": target.y,
        "ox": target.x,
        "iz": source.z,
        "ix": source.x,
        "kx": getattr(layer, "kernel_rows", None),
        "ky": getattr(layer, "kernel_cols", None),
    }
    return bounds[axis]


def axis_label(ctx: LayerContext, axis: str) -> str:
    named, numbered = _SUFFIXES[ctx.layer.kind][axis]
    return ctx.label(numbered if ctx.config.numbered_loop_labels else named)


def loop_header(ctx: LayerContext, axis: str) -> str:
    variable = axis_variable(ctx.layer, axis)
    bound = axis_bound(ctx.layer, axis)
    return f"{axis_label(ctx, axis)}: for (int {variable} = 0; {variable} < {bound}; {variable}++)"


def inline_loop(ctx: LayerContext, axis: str, suffix: str) -> str:
    """Header of an accumulator initialization/write-back loop (``OxI``, ``OyO``, ...)."""
    variable = axis_variable(ctx.layer, axis)
    bound = axis_bound(ctx.layer, axis)
    return f"{ctx.label(axis.capitalize() + suffix)}: for(int {variable} = 0; {variable} < {bound}; {variable}++)"


def stride_text(stride: int) -> str:
    """Stride factor of an input index; a unit stride is left out."""
    return "" if stride == 1 else f" * {stride}"
