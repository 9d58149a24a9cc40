"""Parse bramble source into AST nodes.

Parsing happens in two steps. The lark LALR parser builds a parse tree
from the grammar in `lark/bramble.lark`, then a thin transformer routes
each grammar rule to the `fromLark` constructor of the matching AST node.
Literal values become `Value` objects right away, so the executor never
sees lark tokens.

The intermediate lark tree is not part of the api, although it can be
printed from the command line for debugging the grammar.
"""

__all__ = ["parse"]

import ast as python_ast

import lark

import bramble
from bramble import ast


def parse(source):
    """Parse source text into a Program node.

    Args:
        source: (str) Bramble source code
    Returns:
        (ast.Program) Root node holding the top level statements
    Raises:
        ParseError: If the source is not valid bramble
    """
    parser = _lark_parser("bramble")
    try:
        tree = parser.parse(source)
    except lark.exceptions.UnexpectedInput as e:
        message = str(e).strip().splitlines()[0]
        raise bramble.ParseError(message, (e.line, e.column)) from e

    try:
        return _Transformer().transform(tree)
    except lark.exceptions.VisitError as e:
        if isinstance(e.orig_exc, bramble.ParseError):
            raise e.orig_exc from None
        raise


def _position(treetoken):
    """Create the (line, column) tuple from a lark Token or Meta."""
    return (treetoken.line, treetoken.column)


def _int_literal(token):
    try:
        return bramble.Value.from_python(int(token))
    except ValueError as e:
        raise bramble.ParseError(str(e), _position(token)) from e


def _string_literal(token):
    # Python's literal_eval decodes the escape sequences
    try:
        text = python_ast.literal_eval(str(token))
    except (ValueError, SyntaxError) as e:
        raise bramble.ParseError(
            f"Invalid string literal: {token}", _position(token)) from e
    return bramble.Value.from_python(text)


@lark.v_args(meta=True)
class _Transformer(lark.Transformer):
    """Thin transformer that routes lark trees to AST node fromLark methods."""

    def start(self, meta, children):
        return ast.Program.fromLark(meta, children)

    # Statements
    def let_stmt(self, meta, children):
        return ast.Let.fromLark(meta, children)

    def branch_stmt(self, meta, children):
        return ast.Branch.fromLark(meta, children)

    def merge_stmt(self, meta, children):
        return ast.Merge.fromLark(meta, children)

    def print_stmt(self, meta, children):
        return ast.Print.fromLark(meta, children)

    def input_stmt(self, meta, children):
        children = [
            _string_literal(kid) if kid.type == "STRING" else kid
            for kid in children
        ]
        return ast.Input.fromLark(meta, children)

    def listpush_stmt(self, meta, children):
        return ast.ListPush.fromLark(meta, children)

    def setinsert_stmt(self, meta, children):
        return ast.SetInsert.fromLark(meta, children)

    # Literals
    def int_value(self, meta, children):
        return _int_literal(children[0])

    def float_value(self, meta, children):
        return bramble.Value.from_python(float(children[0]))

    def true_value(self, meta, children):
        return bramble.Value.from_python(True)

    def false_value(self, meta, children):
        return bramble.Value.from_python(False)

    def string_value(self, meta, children):
        return _string_literal(children[0])

    def list_value(self, meta, children):
        return bramble.Value.new_list(children)

    def set_value(self, meta, children):
        return bramble.Value.new_set(children)


_parsers = {}


def _lark_parser(name):
    """Get globally shared lark parser.

    Args:
        name: (str) name of the grammar file (without .lark)

    Returns:
        (lark.Lark) Parser instance
    """
    parser = _parsers.get(name)
    if parser is not None:
        return parser

    path = f"lark/{name}.lark"
    parser = lark.Lark.open(
        path, rel_to=__file__, parser="lalr", propagate_positions=True
    )
    _parsers[name] = parser
    return parser
