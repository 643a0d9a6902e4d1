import json

import pytest

from hlsforge.compiler import (
    DATA_TYPES_FILE,
    DUMP_FILE,
    MAIN_FILE,
    PARAM_LIST_FILE,
    CompilationResult,
    Compiler,
    compile_source,
    validate_source,
)
from hlsforge.config.generation_config import GenerationConfig
from hlsforge.dsl.errors import DiagnosticCollector, ErrorCode, WarningCode
from hlsforge.dsl.types import DataTypeMode

SOFTMAX_FIRST = [
    "model.add(Dense(4, activation='softmax', input_shape=(8,)))",
    "model.add(Dense(2))",
]


def _dense_stack(count, width=32):
    lines = [f"model.add(Dense({width}, activation='relu', input_shape=({width},)))"]
    lines += [f"model.add(Dense({width}, activation='relu'))"] * (count - 1)
    return lines


def test_compile_lenet(lenet_source):
    result = compile_source(lenet_source, GenerationConfig(data_type_mode="floating-point"))
    assert result.success
    assert result.errors == []
    assert result.network_guess == "lenet"
    assert len(result.network) == 4
    assert [str(order) for order in result.loop_orders] == [
        "oz-oy-ox-iz-kx-ky", "oz-oy-ox-kx-ky", "oz-oy-ox", "ox-ix",
    ]
    assert set(result.sources.files()) == {MAIN_FILE, DATA_TYPES_FILE, PARAM_LIST_FILE}
    assert "void forward(InputType inputs, OutputType &outputs" in result.sources.main_cpp
    assert "typedef float DataType_output;" in result.sources.data_types_h


def test_validation_errors_refuse_generation():
    result = compile_source(SOFTMAX_FIRST)
    assert not result.success
    assert result.sources is None
    assert result.diagnostics.error_codes() == [ErrorCode.E021]
    with pytest.raises(RuntimeError):
        result.write("unused")


def test_shape_errors_stop_the_pipeline():
    result = compile_source(["model.add(Dense(4))"])
    assert not result.success
    assert result.diagnostics.error_codes() == [ErrorCode.E009]
    assert result.loop_orders == []


def test_generate_false_stops_after_validation(lenet_source):
    result = Compiler().compile_source(lenet_source, generate=False)
    assert result.success
    assert result.sources is None
    assert len(result.loop_orders) == 4


def test_compile_file(tmp_path, lenet_source):
    path = tmp_path / "lenet.py"
    path.write_text(lenet_source)
    result = Compiler().compile_file(path)
    assert result.success
    assert result.source_file == str(path)

    missing = Compiler().compile_file(tmp_path / "missing.py")
    assert not missing.success
    assert missing.diagnostics.error_codes() == [ErrorCode.E002]


def test_customized_loop_orders_disable_capture(lenet_source):
    config = GenerationConfig(
        add_main_function=True,
        store_analysis_data=True,
        loop_orders=("oz-ox-iz-oy-kx-ky", "default", "default", "default"),
    )
    result = compile_source(lenet_source, config)
    assert result.success
    assert WarningCode.W004 in result.diagnostics.codes()
    assert not result.config.store_analysis_data
    assert "STORE_DATA(1" not in result.sources.main_cpp


def test_option_warnings_are_kept(lenet_source):
    diagnostics = DiagnosticCollector()
    diagnostics.warn(WarningCode.W004, "fault-simulation will be ignored")
    result = Compiler().compile_source(lenet_source, diagnostics=diagnostics)
    assert result.success
    assert result.diagnostics is diagnostics
    assert result.warnings[0].code == WarningCode.W004


def test_vgg_scalehls_profile():
    result = compile_source(_dense_stack(16))
    assert result.success
    assert result.network_guess == "vgg-scalehls"
    assert not result.config.biases_enabled
    assert result.config.data_type_mode == DataTypeMode.FIXED_POINT_SINGLE
    assert "biases_" not in result.sources.main_cpp
    assert "#define FX_SIZE_W 8" in result.sources.data_types_h


def test_network_name_overrides_the_guess():
    result = compile_source(_dense_stack(16), GenerationConfig(network_name="vgg"))
    assert result.network_guess == "vgg"
    assert result.config.biases_enabled
    assert "\t\t\t, DataType_Layer1 l1[32]" in result.sources.main_cpp.splitlines()


def test_write_and_dump(tmp_path, lenet_source):
    result = compile_source(lenet_source)
    written = result.write(tmp_path / "out", dump_layers=True)
    assert [path.name for path in written] == [MAIN_FILE, DATA_TYPES_FILE, PARAM_LIST_FILE, DUMP_FILE]
    assert (tmp_path / "out" / MAIN_FILE).read_text() == result.sources.main_cpp
    assert (tmp_path / "out" / DUMP_FILE).read_text() == result.network.dump()


def test_to_dict_and_json(lenet_source):
    result = compile_source(lenet_source)
    data = result.to_dict()
    assert data["success"] is True
    assert data["layers"][0] == {
        "index": 1,
        "kind": "Conv2D",
        "input": [28, 28, 1],
        "output": [24, 24, 6],
        "loop_order": "oz-oy-ox-iz-kx-ky",
    }
    assert json.loads(result.to_json()) == data

    failed = compile_source(SOFTMAX_FIRST).to_dict()
    assert failed["errors"][0]["code"] == "E021"
    assert failed["errors"][0]["severity"] == "error"


def test_empty_result_to_dict():
    assert CompilationResult().to_dict()["layers"] == []


def test_validate_source(lenet_source):
    assert validate_source(lenet_source) == (True, [])
    valid, messages = validate_source(SOFTMAX_FIRST)
    assert not valid
    assert messages[0].startswith("[E021]")


def test_print_summary(capsys, lenet_source):
    compile_source(lenet_source).print_summary()
    out = capsys.readouterr().out
    assert out.startswith("Compilation succeeded")
    assert "Layers: 4 (1 Conv2D, 1 Pooling2D, 1 Flatten, 1 Dense)" in out
    assert "Network: lenet" in out

    compile_source(SOFTMAX_FIRST).print_summary()
    out = capsys.readouterr().out
    assert out.startswith("Compilation failed")
    assert "Errors: 1" in out
