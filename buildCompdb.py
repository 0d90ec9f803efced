#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# ****************************************************************************************************************************************************
# * BSD 3-Clause License
# *
# * Copyright (c) 2025, Mana Battery
# * All rights reserved.
# *
# * Redistribution and use in source and binary forms, with or without modification, are permitted provided that the following conditions are met:
# *
# * 1. Redistributions of source code must retain the above copyright notice, this list of conditions and the following disclaimer.
# * 2. Redistributions in binary form must reproduce the above copyright notice, this list of conditions and the following disclaimer in the
# *    documentation and/or other materials provided with the distribution.
# * 3. Neither the name of the copyright holder nor the names of its contributors may be used to endorse or promote products derived from this
# *    software without specific prior written permission.
# *
# * THIS SOFTWARE IS PROVIDED BY THE COPYRIGHT HOLDERS AND CONTRIBUTORS "AS IS" AND ANY EXPRESS OR IMPLIED WARRANTIES, INCLUDING, BUT NOT LIMITED TO,
# * THE IMPLIED WARRANTIES OF MERCHANTABILITY AND FITNESS FOR A PARTICULAR PURPOSE ARE DISCLAIMED. IN NO EVENT SHALL THE COPYRIGHT HOLDER OR
# * CONTRIBUTORS BE LIABLE FOR ANY DIRECT, INDIRECT, INCIDENTAL, SPECIAL, EXEMPLARY, OR CONSEQUENTIAL DAMAGES (INCLUDING, BUT NOT LIMITED TO,
# * PROCUREMENT OF SUBSTITUTE GOODS OR SERVICES; LOSS OF USE, DATA, OR PROFITS; OR BUSINESS INTERRUPTION) HOWEVER CAUSED AND ON ANY THEORY OF
# * LIABILITY, WHETHER IN CONTRACT, STRICT LIABILITY, OR TORT (INCLUDING NEGLIGENCE OR OTHERWISE) ARISING IN ANY WAY OUT OF THE USE OF THIS SOFTWARE,
# * EVEN IF ADVISED OF THE POSSIBILITY OF SUCH DAMAGE.
# ****************************************************************************************************************************************************
"""Build a JSON compilation database from the process events of a traced build.

Version: 1.0.0

PURPOSE:
    Turns the log of processes started during a native build into a
    compile_commands.json with one entry per compiled source file, as consumed
    by clang tooling, static analyzers and language servers.

WHAT IT DOES:
    - Recognizes compiler calls, also behind ccache/distcc and MPI wrappers
    - Drops preprocessing-only and informational compiler calls
    - Removes dependency-file and linker flags from the recorded commands
    - Writes one "-c" compile command per source file
    - Merges with an existing database (--append), newest entry per file wins
    - Re-normalizes an existing database without a build (--transform)

Usage:
    buildCompdb.py events.jsonl
    buildCompdb.py trace_dir/ -o build/compile_commands.json --append
    buildCompdb.py --transform -o compile_commands.json --include-linking

Exit Codes:
    0: Success
    1: Invalid arguments, configuration or event input
    2: Reading or writing the compilation database failed
    130: Interrupted
"""

import sys
import signal
import logging
import argparse
from typing import Any, Dict

__version__ = "1.0.0"
__author__ = "Mana Battery"

from compdb.builder import BuildReport, DatabaseBuilder
from compdb.color_utils import Colors, format_count, print_error, print_success, print_warning, should_use_color
from compdb.config import load_config_file, resolve_settings
from compdb.constants import (
    COMPILE_COMMANDS_JSON,
    EXIT_INVALID_ARGS,
    EXIT_KEYBOARD_INTERRUPT,
    EXIT_RUNTIME_ERROR,
    EXIT_SUCCESS,
    CompdbError,
)
from compdb.database import CompilationDatabase
from compdb.events import read_events

# Export for tests
__all__ = ["EXIT_SUCCESS", "main", "run", "parse_args", "format_report"]

logger = logging.getLogger(__name__)


def signal_handler(signum: int, frame: Any) -> None:
    """Handle interrupt signals gracefully."""
    print_warning("\nInterrupted by user. Exiting...", prefix=False)
    sys.exit(EXIT_KEYBOARD_INTERRUPT)


def parse_args(argv: Any = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Build a JSON compilation database from traced process events.",
        epilog=f"Version {__version__}\n\nExamples:\n"
        f"  %(prog)s events.jsonl\n"
        f"  %(prog)s trace_dir/ -o build/compile_commands.json --append\n"
        f"  %(prog)s --transform -o compile_commands.json --include-linking\n",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    parser.add_argument("events", nargs="?", metavar="EVENTS", help="Event log (JSON lines) or trace directory of the build")

    parser.add_argument("--output", "-o", metavar="FILE", default=COMPILE_COMMANDS_JSON, help=f"The compilation database file (default: {COMPILE_COMMANDS_JSON})")

    parser.add_argument("--transform", action="store_true", help="Re-filter the commands of the existing database instead of reading events")

    parser.add_argument("--append", dest="append_to_existing", action="store_true", default=None, help="Merge into the existing database")

    parser.add_argument(
        "--include-linking", dest="include_linking", action="store_true", default=None, help="Also record calls which compile and link in one step"
    )

    parser.add_argument("--use-cc", dest="c_compilers", action="append", metavar="COMPILER", help="Treat COMPILER as a C compiler (repeatable)")

    parser.add_argument("--use-c++", dest="cxx_compilers", action="append", metavar="COMPILER", help="Treat COMPILER as a C++ compiler (repeatable)")

    parser.add_argument("--only-use", dest="only_use", action="store_true", default=None, help="Recognize only the compilers given with --use-cc/--use-c++")

    parser.add_argument(
        "--skip-compiler-children",
        dest="skip_compiler_children",
        action="store_true",
        default=None,
        help="Ignore compiler calls started by another compiler process (ccache, driver internals)",
    )

    parser.add_argument(
        "--command-as-string", dest="command_as_array", action="store_const", const=False, default=None, help='Write "command" strings instead of "arguments" lists'
    )

    parser.add_argument("--drop-output-field", dest="drop_output_field", action="store_true", default=None, help='Omit the "output" field')

    parser.add_argument("--config", metavar="FILE", help="JSON config file with default settings")

    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    parser.add_argument("--no-color", action="store_true", help="Disable colored output")

    return parser.parse_args(argv)


def format_report(report: BuildReport, transform: bool = False) -> str:
    """Format the counters of a run as a multi-line summary."""
    title = "Transform Summary" if transform else "Build Summary"
    source_label = "Entries re-read" if transform else "Events read"
    lines = [
        f"{Colors.BRIGHT}{Colors.CYAN}=== {title} ==={Colors.RESET}",
        format_count(source_label, report.events),
        format_count("Process executions", report.executions),
        format_count("Compiler calls", report.compiler_calls),
        format_count("Calls recorded", report.included_calls),
    ]
    if report.skipped_children:
        lines.append(format_count("Compiler children skipped", report.skipped_children))
    lines.extend(
        [
            format_count("Previous entries", report.previous_entries),
            format_count("New entries", report.new_entries),
            format_count("Entries written", report.merged_entries),
        ]
    )
    return "\n".join(lines)


def main(argv: Any = None) -> int:
    """Main entry point for the script and the console script.

    Installs the SIGINT and SIGTERM handlers for the duration of the run and
    restores the previous ones afterwards.

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    previous_handlers = {sig: signal.signal(sig, signal_handler) for sig in (signal.SIGINT, signal.SIGTERM)}
    try:
        return run(argv)
    except KeyboardInterrupt:
        logging.info("Interrupted by user")
        print_warning("\nInterrupted by user", prefix=False)
        return EXIT_KEYBOARD_INTERRUPT
    finally:
        for sig, handler in previous_handlers.items():
            if handler is not None:
                signal.signal(sig, handler)


def run(argv: Any = None) -> int:
    """Parse the arguments, build the database and print the summary."""
    logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")

    args = parse_args(argv)

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logging.debug("Verbose logging enabled")

    if not should_use_color(args.no_color):
        Colors.disable()

    if args.transform and args.events:
        print_error("EVENTS cannot be combined with --transform")
        return EXIT_INVALID_ARGS
    if not args.transform and not args.events:
        print_error("Either EVENTS or --transform is required")
        return EXIT_INVALID_ARGS

    overrides: Dict[str, Any] = {
        "append_to_existing": args.append_to_existing,
        "include_linking": args.include_linking,
        "only_use": args.only_use,
        "skip_compiler_children": args.skip_compiler_children,
        "command_as_array": args.command_as_array,
        "drop_output_field": args.drop_output_field,
        "c_compilers": args.c_compilers,
        "cxx_compilers": args.cxx_compilers,
    }

    try:
        file_values = load_config_file(args.config) if args.config else None
        policy, output_format = resolve_settings(file_values, overrides)
        database = CompilationDatabase(args.output, output_format)
        builder = DatabaseBuilder(policy)

        if args.transform:
            report = builder.transform(database)
        else:
            report = builder.build(read_events(args.events), database)

    except CompdbError as e:
        logging.debug("Run failed", exc_info=True)
        print_error(str(e))
        return e.exit_code

    except OSError as e:
        logging.error("Runtime error: %s", e)
        print_error(f"Runtime error: {e}")
        print_warning("Run with --verbose for more details", prefix=False)
        return EXIT_RUNTIME_ERROR

    print(format_report(report, transform=args.transform))
    if report.new_entries == 0:
        print_warning("No compilation found in the input", prefix=False)
    print_success(f"Compilation database written to {database.path}")
    return EXIT_SUCCESS


if __name__ == "__main__":
    sys.exit(main())
