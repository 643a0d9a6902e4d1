from hlsforge.codegen.context import LayerContext
from hlsforge.codegen.hooks import (
    base_name,
    bias_capture,
    buffer_declarations,
    emit_activation_functions,
    emit_approximate_multipliers,
    emit_with_capture,
    fault_injection,
    multiplier_name,
    output_captures,
    requantize,
    store_data,
)
from hlsforge.codegen.loops import axis_bound, inline_loop, loop_header, stride_text
from hlsforge.codegen.placement import LOCAL, PORT
from hlsforge.codegen.writer import CodeWriter
from hlsforge.config.generation_config import GenerationConfig
from hlsforge.dsl.builder import build_network
from hlsforge.dsl.loop_order import LoopOrder
from hlsforge.dsl.parser import parse_source
from hlsforge.dsl.shape_inference import infer_shapes
from hlsforge.dsl.types import Activation

QUANTIZED = GenerationConfig(data_type_mode="fixed-point-single", data_type_mode_detail="eight-bit-int")


def _network(source):
    network = build_network(parse_source(source))
    assert infer_shapes(network)
    return network


def _context(network, number, config=None, placement=LOCAL):
    layer = network.layer(number)
    return LayerContext(
        network=network,
        layer=layer,
        config=config or GenerationConfig(),
        loop_order=LoopOrder.default(layer.kind),
        placement=placement,
    )


# -----------------------------------------------------------------------------
# CodeWriter
# -----------------------------------------------------------------------------


def test_writer_blocks_and_nesting():
    w = CodeWriter()
    with w.nested(["for a", "for b"]):
        w.line("x;")
    with w.block("if (c)"):
        w.line("y;")
    w.blank()
    w.line("z;")
    assert w.render() == "for a\n\tfor b\n\t\tx;\nif (c)\n{\n\ty;\n}\n\nz;\n"


# -----------------------------------------------------------------------------
# Loop labels
# -----------------------------------------------------------------------------


def test_loop_labels_named_and_numbered(lenet_source):
    network = _network(lenet_source)
    conv = _context(network, 1)
    assert loop_header(conv, "oz") == "for1Oz: for (int output_z = 0; output_z < 6; output_z++)"
    assert loop_header(conv, "ky") == "for1Ky: for (int kernel_y = 0; kernel_y < 5; kernel_y++)"

    numbered = _context(network, 1, GenerationConfig(numbered_loop_labels=True))
    assert loop_header(numbered, "oz").startswith("for1: ")
    assert loop_header(numbered, "iz").startswith("for13: ")

    pool = _context(network, 2)
    assert loop_header(pool, "ox") == "for2: for (int output_x = 0; output_x < 12; output_x++)"
    assert loop_header(pool, "oz") == "for22: for (int output_z = 0; output_z < 6; output_z++)"
    assert loop_header(pool, "kx") == "for23: for (int kernel_x = 0; kernel_x < 2; kernel_x++)"

    flatten = _context(network, 3)
    assert loop_header(flatten, "oz") == "for3Iz: for (int input_z = 0; input_z < 6; input_z++)"

    dense = _context(network, 4)
    assert loop_header(dense, "ix") == "for4Ix: for (int input_x = 0; input_x < 864; input_x++)"


def test_loop_labels_from_layer_ten():
    source = ["model.add(Dense(4, activation='relu', input_shape=(8,)))"]
    source += ["model.add(Dense(4, activation='relu'))"] * 10
    network = _network(source)
    assert loop_header(_context(network, 9), "ox").startswith("for9Ox: ")
    assert loop_header(_context(network, 10), "ox").startswith("for10tOx: ")
    assert loop_header(_context(network, 11), "ix").startswith("for11tIx: ")


def test_inline_loop_and_bounds(lenet_source):
    network = _network(lenet_source)
    conv = _context(network, 1)
    assert inline_loop(conv, "oy", "I") == "for1OyI: for(int output_y = 0; output_y < 24; output_y++)"
    assert axis_bound(network.layer(1), "iz") == 1
    assert stride_text(1) == ""
    assert stride_text(2) == " * 2"


# -----------------------------------------------------------------------------
# Hooks
# -----------------------------------------------------------------------------


def test_activation_functions():
    w = CodeWriter()
    emit_activation_functions(w, [Activation.LINEAR, Activation.RELU, Activation.RELU, Activation.NONE])
    assert w.lines == [
        "DataType_relu relu(DataType_relu x)",
        "{",
        "\treturn x > 0 ? x : (DataType_relu)0;",
        "}",
        "",
        "DataType_relu linear(DataType_relu x)",
        "{",
        "\treturn x;",
        "}",
    ]


def test_buffer_declarations(lenet_source):
    network = _network(lenet_source)
    dims = "[24][24][6]"
    assert buffer_declarations(_context(network, 1), dims) == ["DataType_Layer1 l1[24][24][6];"]
    assert buffer_declarations(_context(network, 1, placement=PORT), dims) == ["//DataType_Layer1 l1[24][24][6];"]
    assert buffer_declarations(_context(network, 1, QUANTIZED, placement=PORT), dims) == [
        "DataType_Layer1 l1_base[24][24][6];",
        "//DataType_Layer1_short l1[24][24][6];",
    ]
    assert buffer_declarations(_context(network, 2, QUANTIZED), "[12][12][6]") == [
        "DataType_Layer2_short l2[12][12][6];",
    ]
    # The final layer writes the outputs parameter
    assert buffer_declarations(_context(network, 4), "[10]") == []
    assert buffer_declarations(_context(network, 4, QUANTIZED), "[10]") == ["DataType_output outputs_base[10];"]


def test_requantize(lenet_source):
    network = _network(lenet_source)
    dense = _context(network, 4, QUANTIZED)
    assert base_name(dense) == "outputs_base"
    assert requantize(dense, "[output_x]", "output_x") == (
        "outputs[output_x] = DataType_output_short(Q_MIN_MAX(outputs_base[output_x]"
        "*input_scale_factors[1]*weight_scales_4[output_x]/output_scale_factors[1] + output_zero_points[1]));"
    )
    assert base_name(_context(network, 4)) == "outputs"


def test_capture_calls(lenet_source):
    network = _network(lenet_source)
    capture = GenerationConfig(store_analysis_data=True, add_main_function=True)
    conv = _context(network, 1, capture)
    assert store_data(1, "LayerOutput", "l1[x]", "x") == 'STORE_DATA(1, "LayerOutput", (float)l1[x], x, -1, -1);'
    assert output_captures(conv, "[i]", "i", "j", "k") == ['STORE_DATA(1, "LayerOutput", (float)l1[i], i, j, k);']
    assert output_captures(_context(network, 1), "[i]", "i") == []
    assert bias_capture(conv, "output_z", z="output_z") == (
        'STORE_DATA(1, "biases", (float)biases_1[output_z], -1, -1, output_z);'
    )
    assert bias_capture(_context(network, 1, capture.replace(biases_enabled=False)), "output_z") is None

    quantized = _context(network, 1, QUANTIZED.replace(store_analysis_data=True))
    assert [line.split(",")[1].strip() for line in output_captures(quantized, "[i]", "i")] == [
        '"LayerOutputBase"', '"LayerOutput"',
    ]


def test_capture_block():
    w = CodeWriter(indent_level=1)
    emit_with_capture(w, ["a += b;"], ["STORE_DATA(...);"])
    assert w.lines == [
        "\t#ifndef _HLS_RUN",
        "\t{",
        "\t#endif",
        "\t\ta += b;",
        "\t\t#ifndef _HLS_RUN",
        "\t\tSTORE_DATA(...);",
        "\t}",
        "\t#endif",
    ]


def test_fault_injection():
    assert fault_injection(3) == "fault_injection(&l3, 3, faulty_layer, faulty_fmap, faulty_bit);"


def test_approximate_multipliers(lenet_source):
    network = _network(lenet_source)
    config = GenerationConfig(approximate_multipliers=True, approximate_multipliers_configuration="10")
    w = CodeWriter()
    emit_approximate_multipliers(w, network, config)
    text = w.render()
    assert "#define MULTIPLIER_NAME MULTIPLIER_BASE" in text
    assert "#define MUL_LAYER_1(a, b) MUL_LAYER(a, b, 1)" in text
    assert "#define MUL_LAYER_4(a, b) MUL_LAYER(a, b, 4)" in text
    after_else = text.split("#else //_HLS_RUN")[1].splitlines()
    assert after_else[1:5] == [
        "#define MUL_LAYER_1 MULTIPLIER_NAME",
        "//#define MUL_LAYER_4 MULTIPLIER_NAME",
        "//#define MUL_LAYER_1 MULTIPLIER_EXACT",
        "#define MUL_LAYER_4 MULTIPLIER_EXACT",
    ]
    assert _context(network, 1, config).product("x", "w") == "MUL_LAYER_1(x, w)"
    assert multiplier_name("exact") == "MULTIPLIER_EXACT"
    assert multiplier_name("mul8s_1L2H") == "mul8s_1L2H"
