"""
hlsforge Compiler

Main entry point for turning Keras-style ``model.add(...)`` source into
HLS C++.

The compilation pipeline is:
1. Parse: source text -> model.add statements
2. Build: statements -> Network (layer declarations)
3. Infer: complete every layer's geometry
4. Normalize: per-layer loop orders, network identity
5. Validate: structural checks; generation is refused on any error
6. Generate: main.cpp, data-types.h, param-list.h

Example usage:
    from hlsforge.compiler import compile_source

    result = compile_source(
        "model.add(Conv2D(6, kernel_size=(5,5), activation='relu', input_shape=(28,28,1)))"
    )
    if result.success:
        print(result.sources.main_cpp)
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Union

from hlsforge.codegen.forward import generate_forward
from hlsforge.codegen.headers import emit_data_types_header, emit_param_list_header
from hlsforge.codegen.placement import VGG_SCALEHLS, guess_network
from hlsforge.config.generation_config import GenerationConfig
from hlsforge.dsl.builder import build_network
from hlsforge.dsl.errors import DiagnosticCollector, DSLError, DSLWarning, WarningCode
from hlsforge.dsl.layers import Network
from hlsforge.dsl.loop_order import LoopOrder, normalize_loop_orders
from hlsforge.dsl.parser import parse_file, parse_source
from hlsforge.dsl.shape_inference import infer_shapes
from hlsforge.dsl.types import DataTypeMode
from hlsforge.dsl.validation import validate_network
from hlsforge.utils.logger import get_logger

logger = get_logger()

MAIN_FILE = "main.cpp"
DATA_TYPES_FILE = "data-types.h"
PARAM_LIST_FILE = "param-list.h"
DUMP_FILE = "DumpLayers.txt"


# =============================================================================
# Compilation Result
# =============================================================================


@dataclass
class GeneratedSources:
    """Text of the generated files."""

    main_cpp: str
    data_types_h: str
    param_list_h: str

    def files(self) -> Dict[str, str]:
        return {
            MAIN_FILE: self.main_cpp,
            DATA_TYPES_FILE: self.data_types_h,
            PARAM_LIST_FILE: self.param_list_h,
        }


@dataclass
class CompilationResult:
    """Result of compiling DSL source."""

    # Completed network (None if nothing could be parsed)
    network: Optional[Network] = None

    # Effective options after option dependencies and the network profile
    config: Optional[GenerationConfig] = None

    # One normalized loop order per layer
    loop_orders: List[LoopOrder] = field(default_factory=list)

    network_guess: str = ""

    # Generated text (None when generation was refused or skipped)
    sources: Optional[GeneratedSources] = None

    diagnostics: DiagnosticCollector = field(default_factory=DiagnosticCollector)

    source_file: Optional[str] = None

    success: bool = False

    @property
    def errors(self) -> List[DSLError]:
        return self.diagnostics.errors

    @property
    def warnings(self) -> List[DSLWarning]:
        return self.diagnostics.warnings

    def write(self, output_directory: Union[str, Path], dump_layers: bool = False) -> List[Path]:
        """Write the generated files; return the written paths."""
        if self.sources is None:
            raise RuntimeError("nothing to write: compilation did not generate code")

        directory = Path(output_directory)
        directory.mkdir(parents=True, exist_ok=True)
        written = []
        for name, text in self.sources.files().items():
            path = directory / name
            path.write_text(text, encoding="utf-8")
            written.append(path)
        if dump_layers and self.network is not None:
            path = directory / DUMP_FILE
            path.write_text(self.network.dump(), encoding="utf-8")
            written.append(path)

        logger.info(f"Wrote {len(written)} file(s) to {directory}")
        return written

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "source_file": self.source_file,
            "network_guess": self.network_guess,
            "layers": [
                {
                    "index": layer.index,
                    "kind": layer.kind.value,
                    "input": list(layer.input_volume.as_tuple()) if layer.input_volume else None,
                    "output": list(layer.output_volume.as_tuple()) if layer.output_volume else None,
                    "loop_order": str(order) if order is not None else None,
                }
                for layer, order in zip(
                    self.network or [],
                    self.loop_orders or [None] * len(self.network or []),
                )
            ],
            "errors": [e.to_dict() for e in self.errors],
            "warnings": [w.to_dict() for w in self.warnings],
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)

    def print_summary(self):
        """Print a summary of compilation results."""
        print(f"Compilation {'succeeded' if self.success else 'failed'}")
        if self.network is not None:
            counts = ", ".join(f"{count} {kind}" for kind, count in self.network.kind_counts().items())
            print(f"  Layers: {len(self.network)} ({counts})")
            for layer, order in zip(self.network, self.loop_orders):
                print(
                    f"    {layer.index}: {layer.describe()} {layer.input_volume} -> {layer.output_volume}"
                    f" [{order}]"
                )
        if self.network_guess:
            print(f"  Network: {self.network_guess}")

        if self.warnings:
            print(f"  Warnings: {len(self.warnings)}")
            for warning in self.warnings:
                print(f"    {warning}")

        if self.errors:
            print(f"  Errors: {len(self.errors)}")
            for error in self.errors:
                print(f"    {error}")


# =============================================================================
# Compiler Class
# =============================================================================


class Compiler:
    """Runs the parse / infer / validate / generate pipeline."""

    def __init__(self, config: Optional[GenerationConfig] = None):
        self.config = config or GenerationConfig()

    def compile_source(
        self,
        source: Union[str, List[str]],
        filename: Optional[str] = None,
        generate: bool = True,
        diagnostics: Optional[DiagnosticCollector] = None,
    ) -> CompilationResult:
        """Compile DSL source code.

        Args:
            source: DSL source as one string or as a list of lines
            filename: Optional filename for error messages
            generate: Stop after validation when False
            diagnostics: Collector to record into (e.g. holding option warnings)

        Returns:
            CompilationResult; ``success`` is False if any error was recorded
        """
        result = CompilationResult(source_file=filename, config=self.config)
        if diagnostics is not None:
            result.diagnostics = diagnostics

        try:
            logger.info(f"Parsing source{f' from {filename}' if filename else ''}")
            parsed = parse_source(source, filename, result.diagnostics)
            self._run(parsed, result, generate)
        except DSLError as e:
            logger.error(f"Compilation error: {e}")
            result.diagnostics.error(e)

        result.success = not result.diagnostics.has_errors()
        return result

    def compile_file(
        self,
        filepath: Union[str, Path],
        generate: bool = True,
        diagnostics: Optional[DiagnosticCollector] = None,
    ) -> CompilationResult:
        """Compile a DSL file."""
        result = CompilationResult(source_file=str(filepath), config=self.config)
        if diagnostics is not None:
            result.diagnostics = diagnostics

        try:
            logger.info(f"Parsing {filepath}")
            parsed = parse_file(filepath, result.diagnostics)
            self._run(parsed, result, generate)
        except DSLError as e:
            logger.error(f"Compilation error: {e}")
            result.diagnostics.error(e)

        result.success = not result.diagnostics.has_errors()
        return result

    def _run(self, parsed, result: CompilationResult, generate: bool) -> None:
        diagnostics = result.diagnostics
        config = self.config

        network = build_network(parsed, diagnostics)
        result.network = network
        logger.info(f"Declared {len(network)} layer(s)")

        if not infer_shapes(network, diagnostics):
            return

        guess = guess_network(network, config.network_name)
        result.network_guess = guess
        if guess == VGG_SCALEHLS:
            logger.info("Network profile vgg-scalehls: biases disabled, fixed-point-single data types")
            config = config.replace(biases_enabled=False, data_type_mode=DataTypeMode.FIXED_POINT_SINGLE)

        loop_orders = normalize_loop_orders(network, config.loop_orders, diagnostics)
        result.loop_orders = loop_orders

        if config.store_analysis_data and not all(order.is_default for order in loop_orders):
            diagnostics.warn(
                WarningCode.W004,
                "store-analysis-data will be ignored since loop orders are customized",
            )
            config = config.replace(store_analysis_data=False)
        result.config = config

        validate_network(network, config, loop_orders, diagnostics)
        if diagnostics.has_errors():
            logger.error(f"Generation refused: {len(diagnostics.errors)} error(s)")
            return
        if not generate:
            return

        logger.info("Generating forward pass")
        result.sources = GeneratedSources(
            main_cpp=generate_forward(network, config, loop_orders, guess),
            data_types_h=emit_data_types_header(network, config, guess),
            param_list_h=emit_param_list_header(network, config),
        )


# =============================================================================
# Convenience Functions
# =============================================================================


def compile_source(
    source: Union[str, List[str]],
    config: Optional[GenerationConfig] = None,
    filename: Optional[str] = None,
) -> CompilationResult:
    """Compile DSL source with the given options."""
    return Compiler(config).compile_source(source, filename)


def validate_source(
    source: Union[str, List[str]],
    config: Optional[GenerationConfig] = None,
) -> tuple[bool, List[str]]:
    """Validate DSL source without generating code.

    Returns:
        Tuple of (is_valid, list of diagnostic messages)
    """
    result = Compiler(config).compile_source(source, generate=False)
    return result.success, result.diagnostics.messages()
