"""
Enumerations and value types shared by the layer model, the inference
passes and the code generator.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Tuple


class LayerKind(str, Enum):
    """Layer variants understood by the generator."""

    CONV2D = "Conv2D"
    POOLING2D = "Pooling2D"
    FLATTEN = "Flatten"
    DENSE = "Dense"


class Activation(str, Enum):
    """Activation functions.

    Declaration order is significant: generated activation functions are
    emitted in this order.
    """

    NONE = "none"
    RELU = "relu"
    SOFTMAX = "softmax"
    LINEAR = "linear"

    @classmethod
    def sorted_unique(cls, activations: Iterable["Activation"]) -> List["Activation"]:
        order = list(cls)
        return sorted(set(activations), key=order.index)


class Padding(str, Enum):
    """Convolution padding modes."""

    NONE = "none"
    VALID = "valid"
    SAME = "same"


class PoolType(str, Enum):
    """Pooling reductions."""

    MAX = "max"
    AVERAGE = "average"

    @property
    def label(self) -> str:
        """Name used in generated comments and the layer dump."""
        return _POOL_LABELS[self]


_POOL_LABELS = {PoolType.MAX: "MAX", PoolType.AVERAGE: "AVG"}


class DataTypeMode(str, Enum):
    """Numeric representation of the generated code."""

    FLOATING_POINT = "floating-point"
    FIXED_POINT_SINGLE = "fixed-point-single"
    FIXED_POINT_MULTI = "fixed-point-multi"
    ALL_MODES = "all-modes"


# Data-type detail values that select 8-bit affine quantization
QUANTIZED_DETAILS = ("eight-bit-int", "default_int8_t")


@dataclass(frozen=True)
class Volume:
    """A 3-D tensor extent (X, Y, Z). 1-D tensors are stored as (n, 1, 1)."""

    x: int
    y: int
    z: int

    @classmethod
    def flat(cls, count: int) -> "Volume":
        return cls(count, 1, 1)

    @property
    def size(self) -> int:
        return self.x * self.y * self.z

    @property
    def is_flat(self) -> bool:
        return self.y == 1 and self.z == 1

    def is_positive(self) -> bool:
        return self.x > 0 and self.y > 0 and self.z > 0

    def as_tuple(self) -> Tuple[int, int, int]:
        return (self.x, self.y, self.z)

    def __str__(self) -> str:
        return f"({self.x}, {self.y}, {self.z})"
