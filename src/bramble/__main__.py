#!/usr/bin/env python3
"""Bramble CLI - Command-line interface for the Bramble language.

Usage:
    bramble <file.bram>                 # Run a program
    bramble <file.bram> --lark          # Show Lark parse tree
    bramble <file.bram> --ast           # Show AST structure
    bramble <file.bram> --unparse       # Show normalized source
    bramble <file.bram> --trace         # Run, showing each statement
    bramble "print 1" --text            # Run source given on the command line
"""

import argparse
import logging
import pathlib
import sys

from lark import Token, Tree, UnexpectedInput

import bramble


def prettylark(node, indent=0, show_positions=False):
    """Pretty-print a Lark parse tree.

    More readable than Lark's built-in pretty() for the Bramble language.
    Shows tree structure with clear indentation and token values.
    """
    prefix = "  " * indent

    if isinstance(node, Token):
        pos = f" @{node.line}:{node.column}" if show_positions else ""
        print(f"{prefix}{node.type}: {node.value!r}{pos}")

    elif isinstance(node, Tree):
        pos = ""
        if show_positions and not node.meta.empty:
            pos = f" @{node.meta.line}:{node.meta.column}"

        if len(node.children) == 0:
            print(f"{prefix}{node.data}(){pos}")
        elif len(node.children) == 1 and isinstance(node.children[0], Token):
            # Compact single-token nodes
            print(f"{prefix}{node.data}: {node.children[0].value!r}{pos}")
        else:
            print(f"{prefix}{node.data}:{pos}")
            for child in node.children:
                prettylark(child, indent + 1, show_positions)


def trace_statement(node, depth):
    """Print a statement before it executes."""
    line = node.position[0]
    where = f"{line:>4}" if line is not None else "   ?"
    text = node.unparse().splitlines()[0]
    print(f"[{where}] {'  ' * depth}{text}", file=sys.stderr)


def main(argv=None):
    parser = argparse.ArgumentParser(
        prog="bramble",
        description="Run a Bramble program")
    parser.add_argument("source",
        help="Path to a .bram file (or program text with --text)")
    parser.add_argument("--text", action="store_true",
        help="Treat source as program text instead of a file path")
    parser.add_argument("--lark", action="store_true",
        help="Show the Lark parse tree and exit")
    parser.add_argument("--ast", action="store_true",
        help="Show the AST structure and exit")
    parser.add_argument("--unparse", action="store_true",
        help="Show the program as normalized source and exit")
    parser.add_argument("--pos", action="store_true",
        help="Show line:column positions in the Lark tree")
    parser.add_argument("--trace", action="store_true",
        help="Show each statement on stderr as it executes")
    parser.add_argument("--shared-writes", action="store_true",
        help="Commit let inside branches directly instead of staging it")
    parser.add_argument("--no-snapshot", action="store_true",
        help="Do not print the world before and after execution")
    parser.add_argument("-v", "--verbose", action="store_true",
        help="Log branch and merge diagnostics to stderr")

    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            stream=sys.stderr,
            format="%(levelname)s %(name)s: %(message)s")

    if args.text:
        source = args.source
    else:
        filepath = pathlib.Path(args.source)
        try:
            source = filepath.read_text(encoding="utf-8")
        except OSError as e:
            print(f"Error reading {filepath}:", file=sys.stderr)
            print(f"  {type(e).__name__}: {e.strerror or e}", file=sys.stderr)
            return 1

    if args.lark:
        try:
            tree = bramble._parse._lark_parser("bramble").parse(source)
        except UnexpectedInput as e:
            print(f"Parse error: {e}", file=sys.stderr)
            return 1
        prettylark(tree, show_positions=args.pos)
        return 0

    try:
        program = bramble.parse(source)
    except bramble.ParseError as e:
        print(f"Parse error in {args.source if not args.text else '<text>'}:",
              file=sys.stderr)
        print(f"  {e}", file=sys.stderr)
        return 1

    if args.ast:
        program.tree()
        return 0
    if args.unparse:
        print(program.unparse(), end="")
        return 0

    executor = bramble.Executor(
        stage_writes=not args.shared_writes,
        trace=trace_statement if args.trace else None)

    if not args.no_snapshot:
        print(f"Before execution: {executor.world.format()}")
    executor.run(program)
    if not args.no_snapshot:
        print(f"After execution: {executor.world.format()}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
