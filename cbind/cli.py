"""
Command-line interface for cbind.

Provides the main entry point with subcommands for inspecting the
declarations in a header and binding them against a shared library.
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from .core import Loader, LoaderError, ParseError
from .frontend import Lexer
from .ir import DeclRegistry
from .utils.settings import Settings


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI.

    Returns:
        argparse.ArgumentParser: The configured argument parser
    """
    parser = argparse.ArgumentParser(
        prog="cbind",
        description="cbind: C declaration parser for FFI bindings",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m cbind parse mylib.h
  python -m cbind parse mylib.h --json
  python -m cbind tokens mylib.h --no-whitespace
  python -m cbind bind mylib.h ./libmylib.so
        """
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # Parse command
    parse_parser = subparsers.add_parser(
        "parse",
        help="Parse a header and print its declarations"
    )
    parse_parser.add_argument(
        "header",
        type=str,
        help="Header file to parse"
    )
    parse_parser.add_argument(
        "--json",
        action="store_true",
        help="Print the registry as JSON"
    )

    # Tokens command
    tokens_parser = subparsers.add_parser(
        "tokens",
        help="Print the token stream of a header"
    )
    tokens_parser.add_argument(
        "header",
        type=str,
        help="Header file to tokenize"
    )
    tokens_parser.add_argument(
        "--no-whitespace",
        action="store_true",
        help="Drop whitespace tokens"
    )

    # Bind command
    bind_parser = subparsers.add_parser(
        "bind",
        help="Bind a header's functions against a shared library"
    )
    bind_parser.add_argument(
        "header",
        type=str,
        help="Header file declaring the functions"
    )
    bind_parser.add_argument(
        "library",
        type=str,
        help="Shared library path or bare name (e.g. 'c', 'm')"
    )

    # Version command
    subparsers.add_parser(
        "version",
        help="Show version information"
    )

    return parser


def format_registry(registry: DeclRegistry) -> str:
    """Render a registry as a human-readable summary."""
    lines = []

    lines.append(f"structs ({len(registry.structs)}):")
    for name, struct in registry.structs.items():
        fields = ", ".join(f"{f.name}: {f.type}" for f in struct.fields)
        tag = f" (struct {struct.name})" if struct.name and struct.name != name else ""
        lines.append(f"  {name}{tag} {{ {fields} }}")

    lines.append(f"type aliases ({len(registry.type_aliases)}):")
    for name, pack in registry.type_aliases.items():
        lines.append(f"  {name} = {pack}")

    lines.append(f"function types ({len(registry.function_types)}):")
    for name, signature in registry.function_types.items():
        lines.append(f"  {name} = {_format_signature('(*)', signature)}")

    lines.append(f"functions ({len(registry.functions)}):")
    for name, signature in registry.functions.items():
        lines.append(f"  {_format_signature(name, signature)}")

    return "\n".join(lines)


def _format_signature(name: str, signature) -> str:
    args = [f"{a.type} {a.name}" if a.name else str(a.type) for a in signature.args]
    if signature.variadic:
        args.append("...")
    return f"{name}({', '.join(args)}) -> {signature.returns}"


def handle_parse(args: argparse.Namespace, loader: Loader) -> int:
    """Handle the parse command.

    Args:
        args: Parsed command-line arguments
        loader: Configured loader

    Returns:
        int: Exit code (0 for success, non-zero for failure)
    """
    try:
        registry = loader.parse_file(Path(args.header))
    except (LoaderError, ParseError) as e:
        print(f"[cbind] Error: {e}", file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps(registry.to_dict(), indent=loader.settings.json_indent))
    else:
        print(format_registry(registry))
    return 0


def handle_tokens(args: argparse.Namespace, loader: Loader) -> int:
    """Handle the tokens command.

    Args:
        args: Parsed command-line arguments
        loader: Configured loader

    Returns:
        int: Exit code (0 for success, non-zero for failure)
    """
    path = Path(args.header)
    if not path.is_file():
        print(f"[cbind] Error: Header file not found: {path}", file=sys.stderr)
        return 1

    include_whitespace = loader.settings.include_whitespace and not args.no_whitespace
    lexer = Lexer()
    for token in lexer.tokenize(path.read_text(encoding="utf-8"), include_whitespace):
        print(f"{token.lineno}:{token.col_offset}\t{token.type.name}\t{token.value!r}")
    for lineno, col_offset, char in lexer.skipped:
        print(f"[cbind] Skipped unrecognized character {char!r} at {lineno}:{col_offset}",
              file=sys.stderr)
    return 0


def handle_bind(args: argparse.Namespace, loader: Loader) -> int:
    """Handle the bind command.

    Args:
        args: Parsed command-line arguments
        loader: Configured loader

    Returns:
        int: Exit code (0 if every function was bound)
    """
    try:
        bound = loader.load_file(Path(args.header), args.library)
    except (LoaderError, ParseError) as e:
        # ResolveError is a ParseError
        print(f"[cbind] Error: {e}", file=sys.stderr)
        return 1

    for name in bound.functions:
        print(f"[cbind] Bound: {name}")
    for name in bound.missing:
        print(f"[cbind] Missing: {name}", file=sys.stderr)
    print(f"[cbind] {len(bound.functions)} bound, {len(bound.missing)} missing, "
          f"{len(bound.structs)} structs")
    return 1 if bound.missing else 0


def handle_version(args: argparse.Namespace) -> int:
    """Handle the version command.

    Args:
        args: Parsed command-line arguments

    Returns:
        int: Exit code (always 0 for version)
    """
    from . import __version__, __author__
    print(f"cbind version {__version__}")
    print(f"Author: {__author__}")
    return 0


def main(argv: list = None) -> int:
    """Main entry point for the CLI.

    Args:
        argv: Optional command-line arguments (defaults to sys.argv)

    Returns:
        int: Exit code
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    settings = Settings.from_env()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else settings.log_level,
        format="%(asctime)s - %(levelname)s - %(message)s",
        datefmt="%H:%M:%S"
    )
    loader = Loader(settings)

    if args.command == "parse":
        return handle_parse(args, loader)
    elif args.command == "tokens":
        return handle_tokens(args, loader)
    elif args.command == "bind":
        return handle_bind(args, loader)
    elif args.command == "version":
        return handle_version(args)
    else:
        parser.print_help()
        return 2


if __name__ == "__main__":
    sys.exit(main())
