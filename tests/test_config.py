import pytest

from hlsforge.config.generation_config import GenerationConfig, parse_flag, parse_int
from hlsforge.config.loader import load_config, load_options
from hlsforge.config.source_options import INLINE_SOURCE_NAME, SourceOptions
from hlsforge.dsl.errors import DiagnosticCollector, DSLConfigError, DSLSourceError, ErrorCode, WarningCode
from hlsforge.dsl.types import DataTypeMode
from hlsforge.utils.dict import DictDefault


def _config(diagnostics=None, **options):
    return GenerationConfig.from_options(DictDefault(options), diagnostics)


def test_dict_default_returns_none_for_missing_keys():
    cfg = DictDefault({"a": 1})
    assert cfg["a"] == 1
    assert cfg["missing"] is None


@pytest.mark.parametrize("value,expected", [
    ("ACTIVE", True), (True, True), ("yes", True), (1, True),
    (None, False), (False, False), ("", False), ("off", False),
])
def test_parse_flag(value, expected):
    assert parse_flag("add-main-function", value) is expected


def test_parse_flag_rejects_other_words():
    with pytest.raises(DSLConfigError) as excinfo:
        parse_flag("add-main-function", "maybe")
    assert excinfo.value.code == ErrorCode.E020


def test_parse_int():
    assert parse_int("single-layer", None, 0) == 0
    assert parse_int("single-layer", " 3 ") == 3
    with pytest.raises(DSLConfigError):
        parse_int("single-layer", "three")
    with pytest.raises(DSLConfigError):
        parse_int("single-layer", True)


def test_defaults():
    config = _config()
    assert config.data_type_mode == DataTypeMode.ALL_MODES
    assert config.floating_point and config.fixed_point_single and config.fixed_point_multi
    assert config.biases_enabled
    assert config.approximate_multipliers_type == "base"
    assert not config.quantized
    assert not config.isolated
    assert config.loop_orders == ()


def test_options_are_read():
    config = _config(**{
        "data-type-mode": "Fixed-Point-Single",
        "data-type-mode-detail": "eight-bit-int",
        "disable-biases": "ACTIVE",
        "loop-orders": "oz-ox-oy-iz-kx-ky#default",
        "loop-hierarchy-labels": "numbers",
        "approximate-multipliers": True,
        "approximate-multipliers-configuration": "10",
        "network-name": "lenet",
        "layer-data-location": "port",
        "pooling-seed": "-5",
    })
    assert config.data_type_mode == DataTypeMode.FIXED_POINT_SINGLE
    assert config.quantized
    assert not config.floating_point
    assert not config.biases_enabled
    assert config.loop_orders == ("oz-ox-oy-iz-kx-ky", "default")
    assert config.numbered_loop_labels
    assert config.approximate_multipliers
    assert config.approximate_multipliers_configuration == "10"
    assert config.network_name == "lenet"
    assert config.layer_data_location == "port"
    assert config.pooling_seed == -5


def test_quantization_detail_applies_in_all_modes():
    assert _config(**{"data-type-mode-detail": "default_int8_t"}).quantized
    assert not _config(**{"data-type-mode": "fixed-point-multi", "data-type-mode-detail": "eight-bit-int"}).quantized


def test_capture_and_faults_need_main_function():
    diagnostics = DiagnosticCollector()
    config = _config(diagnostics, **{"store-analysis-data": "ACTIVE", "fault-simulation": "ACTIVE"})
    assert not config.store_analysis_data
    assert not config.fault_simulation
    assert diagnostics.codes() == [WarningCode.W004, WarningCode.W004]

    config = _config(**{"store-analysis-data": True, "fault-simulation": True, "add-main-function": True})
    assert config.store_analysis_data and config.fault_simulation


def test_single_layer_disables_main_function():
    diagnostics = DiagnosticCollector()
    config = _config(diagnostics, **{"single-layer": 2, "add-main-function": True})
    assert config.isolated
    assert config.single_layer == 2
    assert not config.add_main_function
    assert diagnostics.codes() == [WarningCode.W004]


@pytest.mark.parametrize("options", [
    {"data-type-mode": "double"},
    {"loop-hierarchy-labels": "letters"},
    {"approximate-multipliers-configuration": "012"},
    {"single-layer": -1},
    {"layer-data-location": "  "},
])
def test_invalid_options_are_e020(options):
    with pytest.raises(DSLConfigError) as excinfo:
        _config(**options)
    assert excinfo.value.code == ErrorCode.E020


def test_replace_returns_new_config():
    config = GenerationConfig()
    changed = config.replace(biases_enabled=False, data_type_mode=DataTypeMode.FIXED_POINT_SINGLE)
    assert config.biases_enabled
    assert not changed.biases_enabled
    assert changed.fixed_point_single and not changed.floating_point


def test_load_options_from_yaml_with_env_and_overrides(tmp_path, monkeypatch):
    monkeypatch.setenv("HLSFORGE_TEST_OUT", "/tmp/generated")
    path = tmp_path / "options.yaml"
    path.write_text(
        "keras-source-file: lenet.py\n"
        "output-directory: ${HLSFORGE_TEST_OUT}\n"
        "data-type-mode: floating-point\n"
        "loop-orders:\n"
        "  - oz-ox-oy-iz-kx-ky\n"
        "  - default\n"
    )
    cfg = load_options(str(path), {"data-type-mode": "fixed-point-multi", "network-name": None})
    assert cfg["output-directory"] == "/tmp/generated"
    assert cfg["data-type-mode"] == "fixed-point-multi"
    assert cfg["network-name"] is None

    source, config = load_config(str(path))
    assert source.keras_source_file == "lenet.py"
    assert source.output_directory == "/tmp/generated"
    assert config.loop_orders == ("oz-ox-oy-iz-kx-ky", "default")


def test_load_options_accepts_json(tmp_path):
    path = tmp_path / "options.json"
    path.write_text('{"add-main-function": "ACTIVE", "single-layer": 0}')
    _, config = load_config(str(path))
    assert config.add_main_function


def test_load_options_errors(tmp_path):
    with pytest.raises(DSLConfigError):
        load_options(str(tmp_path / "missing.yaml"))
    path = tmp_path / "list.yaml"
    path.write_text("- a\n- b\n")
    with pytest.raises(DSLConfigError):
        load_options(str(path))


def test_source_options_inline_text_wins(tmp_path):
    source = SourceOptions(DictDefault({
        "keras-source-file": str(tmp_path / "unused.py"),
        "keras-source-text": ["model.add(Dense(2, input_shape=(4,)))", "model.add(Dense(1))"],
        "dump-layers": "ACTIVE",
    }))
    text, name = source.read_source()
    assert name == INLINE_SOURCE_NAME
    assert text.splitlines() == ["model.add(Dense(2, input_shape=(4,)))", "model.add(Dense(1))"]
    assert source.dump_layers
    assert source.output_directory == "."


def test_source_options_read_file(tmp_path, lenet_source):
    path = tmp_path / "lenet.py"
    path.write_text(lenet_source)
    source = SourceOptions(DictDefault({"keras-source-file": str(path)}))
    assert source.has_source
    assert source.read_source() == (lenet_source, str(path))


def test_source_options_errors(tmp_path):
    with pytest.raises(DSLConfigError):
        SourceOptions(DictDefault({})).read_source()
    with pytest.raises(DSLSourceError):
        SourceOptions(DictDefault({"keras-source-file": str(tmp_path / "missing.py")})).read_source()
    with pytest.raises(DSLConfigError):
        SourceOptions(DictDefault({"log-level": "loud"}))
