import pytest

from hlsforge.codegen.context import LayerContext
from hlsforge.codegen.conv2d import conv_operands, emit_conv2d
from hlsforge.codegen.writer import CodeWriter
from hlsforge.config.generation_config import GenerationConfig
from hlsforge.dsl.builder import build_network
from hlsforge.dsl.errors import DSLGenerationError, ErrorCode
from hlsforge.dsl.loop_order import AccumulatorStrategy, normalize_loop_order
from hlsforge.dsl.parser import parse_source
from hlsforge.dsl.shape_inference import infer_shapes

SMALL_CONV = "model.add(Conv2D(2, kernel_size=(3,3), activation='relu', input_shape=(5,5,1)))"

HEADER = [
    "//Layer 1: Conv2D(Padding: valid, Stride: 1)",
    "//Input: X:5, Y: 5, Z: 1",
    "//Output: X:3, Y: 3, Z: 2",
]
MAC = "temp_element1{acc} += inputs[output_x + kernel_x][output_y + kernel_y][input_z] * weights_1[kernel_x][kernel_y][input_z][output_z];"


def _emit(source, order=None, config=None):
    network = build_network(parse_source(source))
    assert infer_shapes(network)
    layer = network.layer(1)
    ctx = LayerContext(
        network=network,
        layer=layer,
        config=config or GenerationConfig(),
        loop_order=normalize_loop_order(layer, order),
    )
    w = CodeWriter()
    strategy = emit_conv2d(w, ctx)
    return w.lines, strategy, ctx


def test_scalar_accumulator():
    lines, strategy, _ = _emit(SMALL_CONV)
    assert strategy == AccumulatorStrategy.SCALAR
    assert lines == HEADER + [
        "for1Oz: for (int output_z = 0; output_z < 2; output_z++)",
        "\tfor1Oy: for (int output_y = 0; output_y < 3; output_y++)",
        "\t\tfor1Ox: for (int output_x = 0; output_x < 3; output_x++)",
        "\t\t{",
        "\t\t\tDataType_temp_element1 temp_element1;",
        "\t\t\ttemp_element1 = biases_1[output_z];",
        "\t\t\tfor1Iz: for (int input_z = 0; input_z < 1; input_z++)",
        "\t\t\t\tfor1Kx: for (int kernel_x = 0; kernel_x < 3; kernel_x++)",
        "\t\t\t\t\tfor1Ky: for (int kernel_y = 0; kernel_y < 3; kernel_y++)",
        "\t\t\t\t\t\t" + MAC.format(acc=""),
        "\t\t\toutputs[output_x][output_y][output_z] = relu(temp_element1);",
        "\t\t}",
    ]


def test_scalar_accumulator_with_swapped_spatial_loops():
    lines, strategy, _ = _emit(SMALL_CONV, "oz-ox-oy-iz-kx-ky")
    assert strategy == AccumulatorStrategy.SCALAR
    assert lines[4].startswith("\tfor1Ox: ")
    assert lines[5].startswith("\t\tfor1Oy: ")


def test_vector_accumulator():
    lines, strategy, _ = _emit(SMALL_CONV, "oz-ox-iz-oy-kx-ky")
    assert strategy == AccumulatorStrategy.VECTOR
    assert lines == HEADER + [
        "for1Oz: for (int output_z = 0; output_z < 2; output_z++)",
        "\tfor1Ox: for (int output_x = 0; output_x < 3; output_x++)",
        "\t{",
        "\t\tDataType_temp_element1 temp_element1[3];",
        "",
        "\t\tfor1OyI: for(int output_y = 0; output_y < 3; output_y++) temp_element1[output_y] = biases_1[output_z];",
        "",
        "\t\tfor1Iz: for (int input_z = 0; input_z < 1; input_z++)",
        "\t\t\tfor1Oy: for (int output_y = 0; output_y < 3; output_y++)",
        "\t\t\t\tfor1Kx: for (int kernel_x = 0; kernel_x < 3; kernel_x++)",
        "\t\t\t\t\tfor1Ky: for (int kernel_y = 0; kernel_y < 3; kernel_y++)",
        "\t\t\t\t\t\t" + MAC.format(acc="[output_y]"),
        "",
        "\t\tfor1OyO: for(int output_y = 0; output_y < 3; output_y++) "
        "outputs[output_x][output_y][output_z] = relu(temp_element1[output_y]);",
        "\t}",
    ]


def test_tile_accumulator():
    lines, strategy, _ = _emit(SMALL_CONV, "oz-iz-ox-oy-kx-ky")
    assert strategy == AccumulatorStrategy.TILE
    assert lines == HEADER + [
        "for1Oz: for (int output_z = 0; output_z < 2; output_z++)",
        "{",
        "\tDataType_temp_element1 temp_element1[3][3];",
        "",
        "\tfor1OxI: for(int output_x = 0; output_x < 3; output_x++)",
        "\t\tfor1OyI: for(int output_y = 0; output_y < 3; output_y++)",
        "\t\t\ttemp_element1[output_x][output_y] = biases_1[output_z];",
        "",
        "\tfor1Iz: for (int input_z = 0; input_z < 1; input_z++)",
        "\t\tfor1Ox: for (int output_x = 0; output_x < 3; output_x++)",
        "\t\t\tfor1Oy: for (int output_y = 0; output_y < 3; output_y++)",
        "\t\t\t\tfor1Kx: for (int kernel_x = 0; kernel_x < 3; kernel_x++)",
        "\t\t\t\t\tfor1Ky: for (int kernel_y = 0; kernel_y < 3; kernel_y++)",
        "\t\t\t\t\t\t" + MAC.format(acc="[output_x][output_y]"),
        "",
        "\tfor1OxO: for(int output_x = 0; output_x < 3; output_x++)",
        "\t\tfor1OyO: for(int output_y = 0; output_y < 3; output_y++)",
        "\t\t\toutputs[output_x][output_y][output_z] = relu(temp_element1[output_x][output_y]);",
        "}",
    ]


@pytest.mark.parametrize("order", ["oz-oy-ox-iz-kx-ky", "oz-oy-iz-ox-kx-ky", "oz-iz-oy-ox-kx-ky"])
def test_labels_do_not_depend_on_loop_position(order):
    lines, _, _ = _emit(SMALL_CONV, order)
    kx = [line for line in lines if "kernel_x = 0" in line and "for1Kx:" in line]
    iz = [line for line in lines if "for1Iz:" in line]
    assert len(kx) == 1 and len(iz) == 1


def test_disabled_biases_start_from_zero():
    lines, _, _ = _emit(SMALL_CONV, config=GenerationConfig(biases_enabled=False))
    assert "\t\t\ttemp_element1 = 0;" in lines


def test_same_padding_operands():
    source = "model.add(Conv2D(2, kernel_size=(3,3), strides=2, padding='same', input_shape=(7,7,1)))"
    lines, _, ctx = _emit(source)
    operands = conv_operands(ctx)
    assert operands.input == "inputs[row_index][col_index][input_z]"
    assert operands.index_definitions == (
        "int row_index = output_x * 2 + kernel_x - 1;",
        "int col_index = output_y * 2 + kernel_y - 1;",
    )
    assert operands.bounds_check == "if (row_index >= 0 && row_index < 7 && col_index >= 0 && col_index < 7)"
    assert lines[0] == "//Layer 1: Conv2D(Padding: same, Stride: 2)"
    assert "else" not in [line.strip() for line in lines]


def test_same_padding_quantized_adds_zero_point_term():
    source = [
        "model.add(Conv2D(2, kernel_size=(3,3), padding='same', activation='relu', input_shape=(5,5,1)))",
        "model.add(Flatten())",
        "model.add(Dense(2))",
    ]
    config = GenerationConfig(data_type_mode="fixed-point-single", data_type_mode_detail="eight-bit-int")
    lines, _, _ = _emit(source, config=config)
    stripped = [line.strip() for line in lines]
    index = stripped.index("else")
    assert stripped[index + 1] == (
        "temp_element1 += input_zero_points[0] * weights_1[kernel_x][kernel_y][input_z][output_z];"
    )
    assert "DataType_Layer1 l1_base[5][5][2];" in stripped
    assert "l1_base[output_x][output_y][output_z] = relu(temp_element1);" in stripped
    assert stripped[-2].startswith("l1[output_x][output_y][output_z] = DataType_Layer1_short(Q_MIN_MAX(")


def test_capture_in_scalar_accumulator():
    config = GenerationConfig(store_analysis_data=True, add_main_function=True)
    lines, _, _ = _emit(SMALL_CONV, config=config)
    stripped = [line.strip() for line in lines]
    assert 'STORE_DATA(1, "biases", (float)biases_1[output_z], -1, -1, output_z);' in stripped
    assert 'STORE_DATA(1, "weights", (float)weights_1[kernel_x][kernel_y][input_z][output_z], -1, -1, -1);' in stripped
    assert 'STORE_DATA(1, "temp_element", (float)temp_element1, -1, -1, -1);' in stripped
    assert stripped[-2] == (
        'STORE_DATA(1, "LayerOutput", (float)outputs[output_x][output_y][output_z], output_x, output_y, output_z);'
    )


@pytest.mark.parametrize("config", [
    GenerationConfig(data_type_mode="fixed-point-single", data_type_mode_detail="eight-bit-int"),
    GenerationConfig(store_analysis_data=True, add_main_function=True),
])
def test_hooks_need_scalar_accumulator(config):
    with pytest.raises(DSLGenerationError) as excinfo:
        _emit(SMALL_CONV, "oz-ox-iz-oy-kx-ky", config)
    assert excinfo.value.code == ErrorCode.E019
