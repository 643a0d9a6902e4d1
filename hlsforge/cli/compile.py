"""
Compile Command

Generates main.cpp, data-types.h and param-list.h from a Keras-style
layer description.

Usage:
    hlsforge compile model.py
    hlsforge compile --options lenet.yaml
    hlsforge compile --text "model.add(Dense(10, input_shape=(16,)))" --output code
    hlsforge compile model.py --loop-orders "oz-ox-oy-iz-kx-ky#default#default"
    hlsforge compile model.py --validate-only
"""

import argparse
import sys
from typing import Any, Dict

from hlsforge.dsl.types import DataTypeMode

OUTPUT_FORMATS = ("summary", "json", "code")


def prepare_command_parser(parser: argparse.ArgumentParser = None):
    """Prepare the compile command argument parser."""
    if parser is None:
        parser = argparse.ArgumentParser()

    parser.add_argument(
        "source",
        type=str,
        nargs="?",
        default=None,
        help="Path to the file holding the model.add(...) statements",
    )
    parser.add_argument(
        "--options", "-c",
        type=str,
        default=None,
        help="YAML/JSON options file; command-line flags override its values",
    )
    parser.add_argument(
        "--text",
        type=str,
        default=None,
        help="Inline model.add(...) statements separated by '#'",
    )
    parser.add_argument(
        "--output-dir", "-d",
        type=str,
        default=None,
        help="Directory receiving the generated files (default: .)",
    )
    parser.add_argument(
        "--output", "-o",
        type=str,
        choices=OUTPUT_FORMATS,
        default="summary",
        help="What to print after compiling (default: summary)",
    )
    parser.add_argument(
        "--validate-only", "-v",
        action="store_true",
        help="Check the source without generating code",
    )
    parser.add_argument(
        "--show-warnings", "-w",
        action="store_true",
        help="Also print warnings with --validate-only",
    )

    generation = parser.add_argument_group("generation options")
    generation.add_argument("--network-name", type=str, default=None,
                            help="Network identity (lenet, alexnet, vgg, vgg-scalehls)")
    generation.add_argument("--layer-data-location", type=str, default=None,
                            help="Placement of every intermediate buffer (local, port, ...)")
    generation.add_argument("--data-type-mode", type=str, default=None,
                            choices=[m.value for m in DataTypeMode])
    generation.add_argument("--data-type-mode-detail", type=str, default=None,
                            help="e.g. eight-bit-int for 8-bit quantization")
    generation.add_argument("--loop-orders", type=str, default=None,
                            help="Per-layer loop orders separated by '#'")
    generation.add_argument("--loop-hierarchy-labels", type=str, default=None, choices=["names", "numbers"])
    generation.add_argument("--single-layer", type=int, default=None,
                            help="Emit only the layer with this 1-based index")
    generation.add_argument("--pooling-seed", type=int, default=None,
                            help="Max-pooling seed when the producing activation gives none")
    generation.add_argument("--approximate-multipliers-configuration", type=str, default=None,
                            help="One 0/1 per Conv2D/Dense layer")
    generation.add_argument("--approximate-multipliers-type", type=str, default=None)
    for flag in (
        "--approximate-multipliers",
        "--store-analysis-data",
        "--disable-biases",
        "--add-main-function",
        "--fault-simulation",
        "--dump-layers",
    ):
        # None keeps the options-file value
        generation.add_argument(flag, action="store_true", default=None)

    logging_group = parser.add_argument_group("logging")
    logging_group.add_argument("--log-level", type=str, default=None)
    logging_group.add_argument("--log-location", type=str, default=None, help="Log file path")

    parser.set_defaults(func=run_compile)
    return parser


def collect_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    """Option overrides given on the command line, keyed like the options file."""
    overrides = {
        "keras-source-file": args.source,
        "keras-source-text": args.text.replace("#", "\n") if args.text else None,
        "output-directory": args.output_dir,
    }
    for key in (
        "network_name",
        "layer_data_location",
        "data_type_mode",
        "data_type_mode_detail",
        "loop_orders",
        "loop_hierarchy_labels",
        "single_layer",
        "pooling_seed",
        "approximate_multipliers_configuration",
        "approximate_multipliers_type",
        "approximate_multipliers",
        "store_analysis_data",
        "disable_biases",
        "add_main_function",
        "fault_simulation",
        "dump_layers",
        "log_level",
        "log_location",
    ):
        overrides[key.replace("_", "-")] = getattr(args, key)
    return overrides


def run_compile(args: argparse.Namespace) -> int:
    """Run the compile command; return the process exit code."""
    from hlsforge.compiler import Compiler
    from hlsforge.config.loader import load_config
    from hlsforge.dsl.errors import DiagnosticCollector, DSLError
    from hlsforge.utils.logger import get_logger, intercept_stdlib_logging, setup_logger

    setup_logger(args.log_level or "info", args.log_location)
    logger = get_logger()

    diagnostics = DiagnosticCollector()
    try:
        source_options, config = load_config(args.options, collect_overrides(args), diagnostics)
    except DSLError as e:
        print(f"Invalid options: {e}", file=sys.stderr)
        return 1

    setup_logger(source_options.log_level, source_options.log_location, append=True)
    intercept_stdlib_logging(source_options.log_level)

    if not source_options.has_source:
        print("No DSL source given: pass a file, --text or keras-source-file in --options", file=sys.stderr)
        return 1

    try:
        source, name = source_options.read_source()
    except DSLError as e:
        print(f"Cannot read source: {e}", file=sys.stderr)
        return 1

    compiler = Compiler(config)

    if args.validate_only:
        print(f"Validating: {name}")
        result = compiler.compile_source(source, name, generate=False, diagnostics=diagnostics)
        if result.success:
            print("✓ Validation successful")
            if args.show_warnings:
                for warning in result.warnings:
                    print(f"  {warning}")
            return 0
        print("✗ Validation failed", file=sys.stderr)
        for message in result.diagnostics.messages():
            print(f"  {message}", file=sys.stderr)
        return 1

    logger.info(f"Compiling: {name}")
    result = compiler.compile_source(source, name, diagnostics=diagnostics)

    if source_options.dump_layers and result.network is not None:
        print(result.network.dump())

    if args.output == "json":
        print(result.to_json())
    elif args.output == "code" and result.sources is not None:
        print(result.sources.main_cpp)
    else:
        result.print_summary()

    if not result.success:
        return 1

    for path in result.write(source_options.output_directory, dump_layers=source_options.dump_layers):
        logger.info(f"  {path}")
    return 0


def main():
    """Main entry point when run directly."""
    parser = argparse.ArgumentParser(
        description="Generate HLS C++ from a Keras-style layer description",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m hlsforge.cli.compile model.py
  python -m hlsforge.cli.compile model.py --output json
  python -m hlsforge.cli.compile --options lenet.yaml --add-main-function
  python -m hlsforge.cli.compile model.py --validate-only
        """,
    )
    prepare_command_parser(parser)
    args = parser.parse_args()
    sys.exit(args.func(args))


if __name__ == "__main__":
    main()
