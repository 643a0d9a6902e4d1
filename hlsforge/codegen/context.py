from dataclasses import dataclass
from typing import Optional

from hlsforge.config.generation_config import GenerationConfig
from hlsforge.dsl.layers import Layer, Network
from hlsforge.dsl.loop_order import LoopOrder
from hlsforge.dsl.types import Activation, Volume

from .placement import LOCAL


@dataclass(frozen=True)
class LayerContext:
    """Names and switches shared by the emitters of one layer."""

    network: Network
    layer: Layer
    config: GenerationConfig
    loop_order: LoopOrder
    placement: str = LOCAL

    @property
    def number(self) -> int:
        return self.layer.index

    @property
    def is_last(self) -> bool:
        return self.network.is_last(self.layer)

    @property
    def isolated(self) -> bool:
        return self.config.isolated

    @property
    def is_local(self) -> bool:
        return self.placement == LOCAL

    @property
    def quantized(self) -> bool:
        return self.config.quantized

    @property
    def capture(self) -> bool:
        return self.config.store_analysis_data

    @property
    def input_name(self) -> str:
        if self.number == 1 or self.isolated:
            return "inputs"
        return f"l{self.number - 1}"

    @property
    def output_name(self) -> str:
        if self.is_last or self.isolated:
            return "outputs"
        return f"l{self.number}"

    @property
    def declares_buffer(self) -> bool:
        """Only intermediate outputs need a declaration; inputs/outputs are forward() parameters."""
        return not (self.is_last or self.isolated)

    @property
    def label_base(self) -> str:
        base = f"for{self.number}"
        if self.number >= 10:
            base += "t"
        return base

    def label(self, suffix: str) -> str:
        return self.label_base + suffix

    @property
    def datatype_suffix(self) -> str:
        return "output" if self.is_last else f"Layer{self.number}"

    @property
    def datatype(self) -> str:
        return f"DataType_{self.datatype_suffix}"

    @property
    def short_datatype(self) -> str:
        return f"{self.datatype}_short"

    @property
    def weights_name(self) -> str:
        return f"weights_{self.number}"

    @property
    def biases_name(self) -> str:
        return f"biases_{self.number}"

    @property
    def temp_name(self) -> str:
        return f"temp_element{self.number}"

    @property
    def temp_datatype(self) -> str:
        return f"DataType_temp_element{self.number}"

    @property
    def quant_index(self) -> Optional[int]:
        if not self.layer.is_quantizable:
            return None
        return self.network.quant_index(self.layer)

    @property
    def activation(self) -> Activation:
        return self.network.emitted_activation(self.layer)

    def activate(self, expression: str) -> str:
        if self.activation in (Activation.NONE, Activation.SOFTMAX):
            return expression
        return f"{self.activation.value}({expression})"

    def product(self, value: str, weight: str) -> str:
        if self.config.approximate_multipliers:
            return f"MUL_LAYER_{self.number}({value}, {weight})"
        return f"{value} * {weight}"

    def bias_initializer(self, axis: str) -> str:
        return f"{self.biases_name}[{axis}]" if self.config.biases_enabled else "0"

    @property
    def output_volume(self) -> Volume:
        return self.layer.output_volume

    @property
    def input_volume(self) -> Volume:
        return self.layer.input_volume
