import dataclasses
from dataclasses import dataclass, field
from typing import Any, Optional, Tuple

from hlsforge.dsl.errors import DiagnosticCollector, DSLConfigError, WarningCode
from hlsforge.dsl.loop_order import split_loop_orders
from hlsforge.dsl.types import DataTypeMode, QUANTIZED_DETAILS
from hlsforge.utils.dict import DictDefault

_TRUE_WORDS = ("active", "true", "yes", "on", "1")
_FALSE_WORDS = ("false", "no", "off", "0", "")


def parse_flag(key: str, value: Any) -> bool:
    """Options accept booleans or the ``"ACTIVE"`` marker string."""
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    word = str(value).strip().lower()
    if word in _TRUE_WORDS:
        return True
    if word in _FALSE_WORDS:
        return False
    raise DSLConfigError(f"option '{key}' expects a flag, got {value!r}")


def parse_int(key: str, value: Any, default: Optional[int] = None) -> Optional[int]:
    if value is None:
        return default
    if isinstance(value, bool):
        raise DSLConfigError(f"option '{key}' expects an integer, got {value!r}")
    try:
        return int(str(value).strip())
    except ValueError as e:
        raise DSLConfigError(f"option '{key}' expects an integer, got {value!r}") from e


@dataclass(frozen=True)
class GenerationConfig:
    """
    Immutable options that shape the generated code.

    Args:
        data_type_mode (DataTypeMode): Numeric representation. Default is all-modes.
        data_type_mode_detail (str): Sub-mode, e.g. 'eight-bit-int' or 'default_int8_t'.
        biases_enabled (bool): Emit bias tensors and bias initialization. Default is True.
        approximate_multipliers (bool): Replace products with MUL_LAYER_<n>() calls.
        approximate_multipliers_configuration (str): One '0'/'1' per Conv2D/Dense layer.
        approximate_multipliers_type (str): Multiplier selected by MULTIPLIER_NAME. Default is 'base'.
        fault_simulation (bool): Insert fault_injection() after every non-final layer.
        store_analysis_data (bool): Insert STORE_DATA() capture calls.
        single_layer (int): 1-based index of the only layer to emit; 0 emits the whole network.
        numbered_loop_labels (bool): Use numbered instead of named loop-label suffixes.
        add_main_function (bool): Emit the simulation prologue instead of '#define _HLS_RUN'.
        network_name (str): Network identity; guessed from the layers when empty.
        layer_data_location (Optional[str]): Placement override for every intermediate buffer.
        loop_orders (Tuple[str, ...]): Per-layer loop-order strings.
        pooling_seed (Optional[int]): Max-pooling seed when the predecessor's activation gives none.
    """
    data_type_mode: DataTypeMode = DataTypeMode.ALL_MODES
    data_type_mode_detail: str = ""
    biases_enabled: bool = True
    approximate_multipliers: bool = False
    approximate_multipliers_configuration: str = ""
    approximate_multipliers_type: str = "base"
    fault_simulation: bool = False
    store_analysis_data: bool = False
    single_layer: int = 0
    numbered_loop_labels: bool = False
    add_main_function: bool = False
    network_name: str = ""
    layer_data_location: Optional[str] = None
    loop_orders: Tuple[str, ...] = field(default_factory=tuple)
    pooling_seed: Optional[int] = None

    def __post_init__(self):
        if not isinstance(self.data_type_mode, DataTypeMode):
            object.__setattr__(self, "data_type_mode", _data_type_mode(self.data_type_mode))
        if self.single_layer < 0:
            raise DSLConfigError(f"single-layer must be 0 or a 1-based layer index, got {self.single_layer}")
        invalid = set(self.approximate_multipliers_configuration) - {"0", "1"}
        if invalid:
            raise DSLConfigError(
                f"approximate-multipliers-configuration may only contain '0' and '1', "
                f"got {self.approximate_multipliers_configuration!r}"
            )
        if self.layer_data_location is not None and not self.layer_data_location.strip():
            raise DSLConfigError("layer-data-location must not be empty")
        if not isinstance(self.loop_orders, tuple):
            object.__setattr__(self, "loop_orders", tuple(self.loop_orders))

    @property
    def floating_point(self) -> bool:
        return self.data_type_mode in (DataTypeMode.FLOATING_POINT, DataTypeMode.ALL_MODES)

    @property
    def fixed_point_single(self) -> bool:
        return self.data_type_mode in (DataTypeMode.FIXED_POINT_SINGLE, DataTypeMode.ALL_MODES)

    @property
    def fixed_point_multi(self) -> bool:
        return self.data_type_mode in (DataTypeMode.FIXED_POINT_MULTI, DataTypeMode.ALL_MODES)

    @property
    def all_modes(self) -> bool:
        return self.data_type_mode == DataTypeMode.ALL_MODES

    @property
    def quantized(self) -> bool:
        """8-bit affine quantization of Conv2D/Dense outputs."""
        return self.fixed_point_single and self.data_type_mode_detail in QUANTIZED_DETAILS

    @property
    def isolated(self) -> bool:
        return self.single_layer != 0

    def replace(self, **changes) -> "GenerationConfig":
        return dataclasses.replace(self, **changes)

    @classmethod
    def from_options(
        cls,
        cfg: DictDefault,
        diagnostics: Optional[DiagnosticCollector] = None,
    ) -> "GenerationConfig":
        """Build the config from kebab-case options and apply option dependencies."""
        diagnostics = diagnostics if diagnostics is not None else DiagnosticCollector()

        add_main_function = parse_flag("add-main-function", cfg['add-main-function'])
        store_analysis_data = parse_flag("store-analysis-data", cfg['store-analysis-data'])
        fault_simulation = parse_flag("fault-simulation", cfg['fault-simulation'])
        single_layer = parse_int("single-layer", cfg['single-layer'], 0)

        if store_analysis_data and not add_main_function:
            diagnostics.warn(
                WarningCode.W004,
                "store-analysis-data will be ignored since add-main-function is not active",
            )
            store_analysis_data = False

        if fault_simulation and not add_main_function:
            diagnostics.warn(
                WarningCode.W004,
                "fault-simulation will be ignored since add-main-function is not active",
            )
            fault_simulation = False

        if single_layer and add_main_function:
            diagnostics.warn(
                WarningCode.W004,
                "add-main-function will be ignored because single-layer is active",
            )
            add_main_function = False

        labels = (cfg['loop-hierarchy-labels'] or "names").strip().lower()
        if labels not in ("names", "numbers"):
            raise DSLConfigError(f"loop-hierarchy-labels must be 'names' or 'numbers', got {labels!r}")

        return cls(
            data_type_mode=_data_type_mode(cfg['data-type-mode'] or DataTypeMode.ALL_MODES.value),
            data_type_mode_detail=str(cfg['data-type-mode-detail'] or ""),
            biases_enabled=not parse_flag("disable-biases", cfg['disable-biases']),
            approximate_multipliers=parse_flag("approximate-multipliers", cfg['approximate-multipliers']),
            approximate_multipliers_configuration=str(cfg['approximate-multipliers-configuration'] or "").strip(),
            approximate_multipliers_type=str(cfg['approximate-multipliers-type'] or "base").strip(),
            fault_simulation=fault_simulation,
            store_analysis_data=store_analysis_data,
            single_layer=single_layer,
            numbered_loop_labels=labels == "numbers",
            add_main_function=add_main_function,
            network_name=str(cfg['network-name'] or "").strip(),
            layer_data_location=cfg['layer-data-location'] or None,
            loop_orders=tuple(split_loop_orders(cfg['loop-orders'])),
            pooling_seed=parse_int("pooling-seed", cfg['pooling-seed']),
        )


def _data_type_mode(value: Any) -> DataTypeMode:
    try:
        return DataTypeMode(str(value).strip().lower())
    except ValueError as e:
        choices = ", ".join(m.value for m in DataTypeMode)
        raise DSLConfigError(
            f"unknown data-type-mode {value!r}",
            hint=f"Use one of: {choices}",
        ) from e
