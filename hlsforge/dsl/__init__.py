"""
Layer DSL - Keras-style network descriptions

This package reads ``model.add(<Layer>(...))`` statements, builds the
network model and completes it for code generation:

    model.add(Conv2D(6, kernel_size=(5,5), activation='relu', input_shape=(28,28,1)))
    model.add(MaxPool2D(pool_size=(2,2)))
    model.add(Flatten())
    model.add(Dense(10, activation='softmax'))

Key components:
- Tokenizer/Parser: line selection and a Lark grammar for the statements
- Builder: statements -> Network of typed layer dataclasses
- Shape inference: input/output volumes, strides, kernels, paddings
- Loop orders: per-layer iteration orders and accumulator strategies
- Validation: structural checks before code generation
- Errors: coded errors and warnings collected in one DiagnosticCollector
"""

from .types import (
    Activation,
    DataTypeMode,
    LayerKind,
    Padding,
    PoolType,
    Volume,
)

from .layers import (
    Layer,
    Conv2D,
    Pooling2D,
    Flatten,
    Dense,
    Network,
)

from .parser import (
    parse_source,
    parse_file,
    LayerDSLParser,
)

from .builder import build_network, NetworkBuilder

from .shape_inference import infer_shapes, ShapeInference

from .loop_order import (
    AccumulatorStrategy,
    LoopOrder,
    accumulator_strategy,
    normalize_loop_order,
    normalize_loop_orders,
)

from .validation import validate_network, NetworkValidator

from .errors import (
    DiagnosticCollector,
    DSLError,
    DSLSyntaxError,
    DSLSourceError,
    DSLDeclarationError,
    DSLShapeError,
    DSLValidationError,
    DSLGenerationError,
    DSLConfigError,
    DSLWarning,
    ErrorCode,
    WarningCode,
)
