import argparse
import sys


def _get_version() -> str:
    try:
        from importlib.metadata import PackageNotFoundError, version
        return version("hlsforge")
    except PackageNotFoundError:
        return "unknown"


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description=f"hlsforge v{_get_version()}: Keras-style layers to HLS C++")
    parser.add_argument('--version', action='version', version=_get_version())
    subparsers = parser.add_subparsers(dest='command', metavar='<command>')

    # compile command
    from hlsforge.cli.compile import prepare_command_parser as compile_prepare_command_parser
    compile_prepare_command_parser(subparsers.add_parser('compile', help="Generate the HLS forward pass"))

    args = parser.parse_args(sys.argv[1:] if argv is None else argv)
    if args.command is None:
        parser.print_help()
        sys.exit(1)

    return args


def cli_main(argv=None) -> int:
    """Main CLI entry point for installed 'hlsforge' command."""
    args = parse_args(argv)
    return args.func(args)


if __name__ == '__main__':
    sys.exit(cli_main())
