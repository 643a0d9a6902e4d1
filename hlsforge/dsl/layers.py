"""
Network Model

A network is a strictly linear, ordered sequence of layers. Each layer kind
is its own dataclass carrying only the fields that apply to it; geometry
fields start out unset (None) and are completed in place by shape
inference.
"""

from dataclasses import dataclass, field
from typing import ClassVar, Dict, Iterator, List, Optional

from .errors import SourceLocation
from .types import Activation, LayerKind, Padding, PoolType, Volume


# =============================================================================
# Layer Variants
# =============================================================================


@dataclass(kw_only=True)
class Layer:
    """Fields common to every layer kind."""

    kind: ClassVar[LayerKind]

    # 1-based position in the network, assigned on insertion
    index: int = 0
    input_volume: Optional[Volume] = None
    output_volume: Optional[Volume] = None
    stride: Optional[int] = None
    activation: Activation = Activation.NONE

    location: Optional[SourceLocation] = field(default=None, repr=False, compare=False)

    @property
    def is_quantizable(self) -> bool:
        """Layers that carry weights and quantization factors."""
        return False

    def describe(self) -> str:
        return self.kind.value


@dataclass(kw_only=True)
class Conv2D(Layer):
    kind: ClassVar[LayerKind] = LayerKind.CONV2D

    filters: Optional[int] = None
    kernel_rows: Optional[int] = None
    kernel_cols: Optional[int] = None
    padding: Padding = Padding.NONE

    @property
    def is_quantizable(self) -> bool:
        return True

    def describe(self) -> str:
        return f"Conv2D(Padding: {self.padding.value}, Stride: {self.stride})"


@dataclass(kw_only=True)
class Pooling2D(Layer):
    kind: ClassVar[LayerKind] = LayerKind.POOLING2D

    pool_type: PoolType = PoolType.MAX
    channels: Optional[int] = None
    kernel_rows: Optional[int] = None
    kernel_cols: Optional[int] = None

    def describe(self) -> str:
        return f"{self.pool_type.label} Pooling"


@dataclass(kw_only=True)
class Flatten(Layer):
    kind: ClassVar[LayerKind] = LayerKind.FLATTEN

    node_count: Optional[int] = None


@dataclass(kw_only=True)
class Dense(Layer):
    kind: ClassVar[LayerKind] = LayerKind.DENSE

    node_count: Optional[int] = None

    @property
    def is_quantizable(self) -> bool:
        return True

    def describe(self) -> str:
        return "Dense(Fully connected)"


# =============================================================================
# Network
# =============================================================================


_DUMP_COLUMNS = (
    "type", "", "padding", "filters", "k(rows)", "k(cols)", "activ", "nodes",
    "stride", "in_x", "in_y", "in_z", "out_x", "out_y", "out_z",
)


@dataclass
class Network:
    """Ordered layer sequence; insertion order is depth order."""

    layers: List[Layer] = field(default_factory=list)
    source_file: Optional[str] = None

    def append(self, layer: Layer) -> Layer:
        layer.index = len(self.layers) + 1
        self.layers.append(layer)
        return layer

    def __len__(self) -> int:
        return len(self.layers)

    def __iter__(self) -> Iterator[Layer]:
        return iter(self.layers)

    def __getitem__(self, position: int) -> Layer:
        return self.layers[position]

    def layer(self, number: int) -> Layer:
        """Return the layer with the given 1-based index."""
        if number < 1 or number > len(self.layers):
            raise IndexError(f"layer {number} out of range 1..{len(self.layers)}")
        return self.layers[number - 1]

    def predecessor(self, layer: Layer) -> Optional[Layer]:
        if layer.index <= 1:
            return None
        return self.layers[layer.index - 2]

    def successor(self, layer: Layer) -> Optional[Layer]:
        if layer.index >= len(self.layers):
            return None
        return self.layers[layer.index]

    def is_last(self, layer: Layer) -> bool:
        return layer.index == len(self.layers)

    @property
    def first(self) -> Optional[Layer]:
        return self.layers[0] if self.layers else None

    @property
    def last(self) -> Optional[Layer]:
        return self.layers[-1] if self.layers else None

    def quantizable_layers(self) -> List[Layer]:
        return [layer for layer in self.layers if layer.is_quantizable]

    def quant_index(self, layer: Layer) -> int:
        """0-based position of a Conv2D/Dense layer among the quantizable layers."""
        for position, candidate in enumerate(self.quantizable_layers()):
            if candidate is layer:
                return position
        raise ValueError(f"layer {layer.index} ({layer.kind.value}) carries no weights")

    def emitted_activation(self, layer: Layer) -> Activation:
        """Activation used in generated code; a final softmax is emitted as relu."""
        if layer.activation == Activation.SOFTMAX and self.is_last(layer):
            return Activation.RELU
        return layer.activation

    def emitted_activations(self) -> List[Activation]:
        used = [self.emitted_activation(layer) for layer in self.layers]
        return [a for a in Activation.sorted_unique(used) if a in (Activation.RELU, Activation.LINEAR)]

    def kind_counts(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for layer in self.layers:
            counts[layer.kind.value] = counts.get(layer.kind.value, 0) + 1
        return counts

    def dump(self) -> str:
        """Tab-separated layer table (one row per layer)."""
        d = "\t"
        rows = [d.join(_DUMP_COLUMNS), ""]
        for layer in self.layers:
            kind = layer.kind.value
            if isinstance(layer, Pooling2D):
                kind += f"({layer.pool_type.label})"
            padding = getattr(layer, "padding", Padding.NONE)
            filters = getattr(layer, "filters", None) or getattr(layer, "channels", None)
            rows_k = getattr(layer, "kernel_rows", None)
            cols_k = getattr(layer, "kernel_cols", None)
            nodes = getattr(layer, "node_count", None)
            cells = [
                kind,
                "",
                padding.value if padding != Padding.NONE else "",
                str(filters) if filters else "",
                str(rows_k) if rows_k else "",
                str(cols_k) if cols_k else "",
                layer.activation.value if layer.activation != Activation.NONE else "",
                str(nodes) if nodes else "",
                str(layer.stride) if layer.stride else "",
            ]
            for volume in (layer.input_volume, layer.output_volume):
                if volume is not None:
                    cells.extend(str(v) for v in volume.as_tuple())
                else:
                    cells.extend(["", "", ""])
            rows.append(d.join(cells))
        return "\n".join(rows) + "\n"
