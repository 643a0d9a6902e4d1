"""
data-types.h and param-list.h emitters.

data-types.h defines every ``DataType_*`` name main.cpp refers to, for
each enabled data-type mode; param-list.h declares the host-side source
buffers of the weights and quantization factors.
"""

from typing import Dict, List, Tuple

from hlsforge.config.generation_config import GenerationConfig
from hlsforge.dsl.layers import Layer, Network
from hlsforge.dsl.types import LayerKind

from .placement import ALEXNET, LENET, VGG, VGG_SCALEHLS
from .writer import CodeWriter

# (FX_SIZE_W, FX_SIZE_I) per network identity
FIXED_POINT_SIZES: Dict[str, Tuple[int, int]] = {
    LENET: (16, 7),
    VGG: (26, 16),
    VGG_SCALEHLS: (8, 8),
}
DEFAULT_FIXED_POINT_SIZE = (16, 16)


def fixed_point_size(network_guess: str) -> Tuple[int, int]:
    return FIXED_POINT_SIZES.get(network_guess, DEFAULT_FIXED_POINT_SIZE)


def _output_suffix(network: Network, layer: Layer) -> str:
    return "output" if network.is_last(layer) else f"Layer{layer.index}"


def _emit_ap_fixed_include(w: CodeWriter, config: GenerationConfig) -> None:
    if config.add_main_function:
        w.extend(["#ifndef __linux__", "#pragma warning(push, 0)", "#endif"])
    w.line("#include <ap_fixed.h>")
    if config.add_main_function:
        w.extend(["#ifndef __linux__", "#pragma warning(pop)", "#endif"])
    w.blank()


def _emit_fx_sizes(w: CodeWriter, network_guess: str) -> None:
    width, integer = fixed_point_size(network_guess)
    w.line(f"#define FX_SIZE_W {width}")
    w.line(f"#define FX_SIZE_I {integer}")


# =============================================================================
# data-types.h
# =============================================================================


def _floating_point(w: CodeWriter, network: Network) -> None:
    w.line("typedef float DataType_relu;")
    w.blank()
    w.line("typedef float DataType_input;")
    w.line("typedef float DataType_biases;")
    w.line("typedef float DataType_weights;")
    for layer in network:
        if layer.is_quantizable:
            w.blank()
            w.line(f"typedef float DataType_temp_element{layer.index};")
        w.line(f"typedef float DataType_{_output_suffix(network, layer)};")


def _fixed_point_single(w: CodeWriter, network: Network, config: GenerationConfig, network_guess: str) -> None:
    if config.quantized:
        w.line("#include <stdint.h>")
        w.blank()
        w.line("typedef int8_t DataType_short;")
        wide = "int32_t" if network_guess == ALEXNET and config.data_type_mode_detail == "eight-bit-int" else "int64_t"
        w.line(f"typedef {wide} DataType;")
    else:
        _emit_ap_fixed_include(w, config)
        _emit_fx_sizes(w, network_guess)
        w.blank()
        w.line("typedef ap_fixed<FX_SIZE_W,FX_SIZE_I> DataType; //Total: FX_SIZE_W bits, integer: FX_SIZE_I bits")

    w.blank()
    w.line("typedef DataType DataType_relu;")
    w.blank()
    narrow = "DataType_short" if config.quantized else "DataType"
    w.line(f"typedef {narrow} DataType_input;")
    w.line(f"typedef {narrow} DataType_weights;")
    w.line("typedef DataType DataType_biases;")

    for layer in network:
        name = _output_suffix(network, layer)
        w.blank()
        if layer.is_quantizable:
            w.line(f"typedef DataType DataType_temp_element{layer.index};")
            w.line(f"typedef DataType DataType_{name};")
        elif config.quantized:
            w.line(f"typedef DataType_short DataType_{name};")
        else:
            w.line(f"typedef DataType DataType_{name};")
        if config.quantized:
            w.line(f"typedef DataType_short DataType_{name}_short;")

    if config.quantized:
        w.blank()
        w.extend([
            "#define QUANTIZATION_FACTORS",
            "typedef DataType_short DataType_IZP;",
            "typedef DataType_short DataType_OZP;",
            "typedef float DataType_ISF;",
            "typedef float DataType_OSF;",
            "typedef float DataType_WSF;",
        ])


def _fixed_point_multi(w: CodeWriter, network: Network, config: GenerationConfig, network_guess: str) -> None:
    _emit_ap_fixed_include(w, config)
    _emit_fx_sizes(w, network_guess)
    w.blank()
    fixed = "ap_fixed<FX_SIZE_W, FX_SIZE_I>"
    w.line(f"typedef {fixed} DataType_relu;")
    w.blank()
    w.line(f"typedef {fixed} DataType_input;")
    w.line(f"typedef {fixed} DataType_weights;")
    w.line(f"typedef {fixed} DataType_biases;")
    for layer in network:
        if layer.is_quantizable:
            w.blank()
            w.line(f"typedef {fixed} DataType_temp_element{layer.index};")
        w.line(f"typedef {fixed} DataType_{_output_suffix(network, layer)};")


def emit_data_types_header(network: Network, config: GenerationConfig, network_guess: str = "") -> str:
    """Text of data-types.h."""
    w = CodeWriter()
    guarded = config.all_modes

    w.line("#ifndef _DATA_TYPES_H")
    w.line("#define _DATA_TYPES_H")
    w.blank()

    if guarded:
        w.extend([
            "#define FLOAT_DATATYPE",
            "//#define FIXEDPOINT_DATATYPE_SINGLE",
            "//#define FIXEDPOINT_DATATYPE_MULTI",
        ])
        w.blank()

    if config.add_main_function and (config.fixed_point_single or config.fixed_point_multi) and not config.quantized:
        w.extend(["#ifdef _MSC_VER", "#include <algorithm>", "#endif"])
        w.blank()

    sections = []
    if config.floating_point:
        sections.append(("FLOAT_DATATYPE", lambda: _floating_point(w, network)))
    if config.fixed_point_single:
        sections.append(("FIXEDPOINT_DATATYPE_SINGLE", lambda: _fixed_point_single(w, network, config, network_guess)))
    if config.fixed_point_multi:
        sections.append(("FIXEDPOINT_DATATYPE_MULTI", lambda: _fixed_point_multi(w, network, config, network_guess)))

    for selector, emit in sections:
        if guarded:
            w.line(f"#ifdef {selector}")
        emit()
        if guarded:
            w.line("#endif")
        w.blank()

    w.line("#endif //_DATA_TYPES_H")
    return w.render()


# =============================================================================
# param-list.h
# =============================================================================


def channel_count(layer: Layer) -> int:
    """Length of the per-output-channel vectors (biases, weight scales)."""
    return layer.output_volume.z if layer.kind == LayerKind.CONV2D else layer.output_volume.x


def _source_buffers(layer: Layer, quantized: bool) -> List[str]:
    n = layer.index
    if layer.kind == LayerKind.CONV2D:
        weights_dims = f"[{layer.kernel_rows}][{layer.kernel_cols}][{layer.input_volume.z}][{layer.output_volume.z}]"
    elif layer.kind == LayerKind.DENSE:
        weights_dims = f"[{layer.input_volume.x}][{layer.output_volume.x}]"
    else:
        lines = [f"void *weights_{n}_src;", f"void *biases_{n}_src;"]
        if quantized:
            lines.append(f"void *weight_scales_{n}_src;")
        return lines

    lines = [
        f"DataType_weights weights_{n}_src{weights_dims};",
        f"DataType_biases biases_{n}_src[{channel_count(layer)}];",
    ]
    if quantized:
        lines.append(f"DataType_WSF weight_scales_{n}_src[{channel_count(layer)}];")
    return lines


def emit_param_list_header(network: Network, config: GenerationConfig) -> str:
    """Text of param-list.h."""
    w = CodeWriter()
    w.line("#ifndef _PARAM_LIST_H")
    w.line("#define _PARAM_LIST_H")
    w.blank()
    w.line('#include "data-types.h"')
    w.blank()

    if config.add_main_function:
        w.line("#ifndef _HLS_RUN")
        if config.quantized:
            count = len(network.quantizable_layers())
            w.extend([
                f"DataType_IZP input_zero_points_src[{count}];",
                f"DataType_OZP output_zero_points_src[{count}];",
                f"DataType_ISF input_scale_factors_src[{count}];",
                f"DataType_OSF output_scale_factors_src[{count}];",
            ])
            w.blank()
        for layer in network:
            w.line(f"//{layer.kind.value}")
            w.extend(_source_buffers(layer, config.quantized))
            w.blank()
        w.line("#endif //_HLS_RUN")
        w.blank()

    w.line("#endif //_PARAM_LIST_H")
    return w.render()
