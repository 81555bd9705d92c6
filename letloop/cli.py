"""
letloop.cli - letloop Command Line Interface

- letloop <file>          Execute a letloop file
- letloop -c <code>       Execute code directly
- letloop -e <file>       Export a letloop file to Python
- letloop export <file>   Same as -e
- letloop check <file>    Compile a file without running it and report errors

Settings come from the nearest letloop.it (or --config PATH).
"""

import argparse
import logging
import os
import sys
import traceback
from typing import Optional

from letloop.project import CompilerConfig, load_config

SUBCOMMANDS = {"export", "check"}

# Options that take a value, so their argument is never a file to run
_VALUE_OPTIONS = {"-c", "--command", "-e", "--export", "--config"}

logger = logging.getLogger("letloop")


def _report(e: BaseException, verbose: bool):
    print(f"Error: {e}", file=sys.stderr)
    if verbose:
        traceback.print_exc(file=sys.stderr)


def _load_settings(args: argparse.Namespace, start: Optional[str] = None) -> CompilerConfig:
    """Load letloop.it and configure logging from it and --verbose."""
    if args.config:
        config = load_config(args.config)
    elif start and os.path.exists(start):
        config = load_config(os.path.dirname(os.path.abspath(start)))
    else:
        config = load_config()
    level = logging.DEBUG if args.verbose else config.log_level_value
    logging.basicConfig(
        level=level,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    if config.config_file:
        logger.debug("using settings from %s", config.config_file)
    return config


def cmd_exec_file(filepath: str, config: CompilerConfig, verbose: bool = False) -> int:
    """Execute a letloop file."""
    from letloop.compiler import exec_file

    try:
        exec_file(filepath, config=config)
    except Exception as e:
        _report(e, verbose)
        return 1
    return 0


def cmd_exec_code(code: str, config: CompilerConfig, verbose: bool = False) -> int:
    """Execute letloop code directly."""
    from letloop.compiler import compile_forms_to_code
    from letloop.runtime import setup_runtime_env

    env = {
        "__name__": "__main__",
        "__file__": "<command>",
    }
    setup_runtime_env(env)

    try:
        compiled = compile_forms_to_code(code, "<command>", config)
        exec(compiled, env, env)
    except Exception as e:
        _report(e, verbose)
        return 1
    return 0


def cmd_export_file(filepath: str, config: CompilerConfig, verbose: bool = False) -> int:
    """Export a letloop file to Python code."""
    from letloop.compiler import export_file

    try:
        export_file(filepath, config=config)
        return 0
    except Exception as e:
        _report(e, verbose)
        return 1


def cmd_check(filepath: str, config: CompilerConfig, verbose: bool = False) -> int:
    """Compile a letloop file without running it."""
    from letloop.compiler import check_str

    try:
        with open(filepath, encoding="utf-8") as f:
            src = f.read()
    except OSError as e:
        _report(e, verbose)
        return 1

    errors = check_str(src, filepath, config)
    for e in errors:
        print(f"{filepath}: {e}", file=sys.stderr)
    if errors:
        return 1
    print(f"{filepath}: ok")
    return 0


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser with all subcommands."""
    parser = argparse.ArgumentParser(
        prog="letloop",
        description="letloop - destructuring and loop/recur for a Lisp on Python",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
examples:
  letloop script.ll                 Execute a letloop file
  letloop -c "(println (+ 1 2 3))"  Evaluate letloop code directly
  letloop -e script.ll              Export letloop file to Python code
  letloop check script.ll           Report compile errors without running
        """,
    )

    parser.add_argument(
        "-c",
        "--command",
        metavar="CODE",
        help="Execute letloop code directly (like python -c)",
    )

    parser.add_argument(
        "-e",
        "--export",
        metavar="FILE",
        help="Export letloop file to Python code and print to stdout",
    )

    parser.add_argument(
        "--config",
        metavar="PATH",
        help="Path to a letloop.it file (default: search upward from the file or cwd)",
    )

    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log compiler passes and print tracebacks on errors",
    )

    # Subcommands
    subparsers = parser.add_subparsers(dest="subcommand", help="Available commands")

    export_parser = subparsers.add_parser("export", help="Print the Python for a file")
    export_parser.add_argument("file", help="letloop source file")

    check_parser = subparsers.add_parser("check", help="Compile a file without running it")
    check_parser.add_argument("file", help="letloop source file")

    return parser


def _split_file_arg(argv: list[str]) -> tuple[Optional[str], list[str]]:
    """
    Pull out the file to run, if any.

    The first argument that is neither an option, an option's value nor a
    subcommand is taken as the file, so `letloop -v script.ll` works.
    """
    skip_next = False
    for i, arg in enumerate(argv):
        if skip_next:
            skip_next = False
            continue
        if arg in _VALUE_OPTIONS:
            skip_next = True
            continue
        if arg.startswith("-"):
            continue
        if arg in SUBCOMMANDS:
            return None, argv
        return arg, argv[:i] + argv[i + 1 :]
    return None, argv


def main(argv: Optional[list[str]] = None) -> None:
    """Main entry point for the letloop CLI. Calls sys.exit with return code."""
    sys.exit(_main(argv))


def _main(argv: Optional[list[str]] = None) -> int:
    """Internal main that returns exit code."""
    if argv is None:
        argv = sys.argv[1:]

    file_to_run, argv = _split_file_arg(list(argv))

    parser = create_parser()
    args = parser.parse_args(argv)

    target = file_to_run or getattr(args, "file", None) or args.export
    try:
        config = _load_settings(args, target)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error in letloop.it: {e}", file=sys.stderr)
        return 1

    if args.subcommand == "export":
        return cmd_export_file(args.file, config, args.verbose)
    elif args.subcommand == "check":
        return cmd_check(args.file, config, args.verbose)

    if args.command:
        return cmd_exec_code(args.command, config, args.verbose)

    if args.export:
        return cmd_export_file(args.export, config, args.verbose)

    if file_to_run:
        return cmd_exec_file(file_to_run, config, args.verbose)

    parser.print_help()
    return 2


if __name__ == "__main__":
    main()
