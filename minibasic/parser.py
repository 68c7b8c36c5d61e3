# -*- coding: utf-8 -*-
"""
BASIC parser: lark LALR grammar + Transformer -> tuple IR (see ast_nodes).

The grammar has one rule per precedence level (comparison < additive <
multiplicative < power < primary), every level left-associative. Tokens
come from our own lexer and are fed into lark's interactive parser, so
the grammar only *declares* its terminals. LALR resolves shift/reduce
conflicts by shifting, which gives the greedy behaviour of a hand-written
descent: ``NAME (`` is always a call and ELSE binds to the nearest IF.
PRINT keeps taking expressions until ``;`` or the end of the line (ELSE
ends it inside an IF); any other token after its items is a parse error.
"""

import logging

from lark import Lark, Token, Transformer, v_args
from lark.exceptions import UnexpectedInput

from . import ast_nodes as A
from .errors import ParseError
from .lexer import OPERATORS, PUNCTUATION, RESERVED_WORDS, TOKEN_TYPES, tokenize

logger = logging.getLogger(__name__)

# -----------------------------
# 1) Grammar
# -----------------------------
GRAMMAR = r"""
start: _item* [open_stmt] EOF
_item: statement
     | EOL
     | open_stmt EOL

// a PRINT without a trailing ';' runs to the end of the line (or to ELSE
// inside an IF); an IF whose last branch is such a PRINT inherits that
?statement: let_stmt
          | assign_stmt
          | call_stmt
          | print_stmt
          | if_stmt
          | input_stmt
          | for_stmt
          | next_stmt
          | end_stmt
?open_stmt: open_print
          | open_if

let_stmt: LET IDENT EQUAL expr
assign_stmt: IDENT EQUAL expr
// NAME(args) on its own assigns the call's value to a variable called NAME
call_stmt: IDENT LPAREN [arguments] RPAREN
print_stmt: PRINT _print_items? SEMICOLON
open_print: PRINT _print_items?
_print_items: print_item+
print_item: expr [COMMA]
if_stmt: IF expr THEN statement ELSE statement
       | IF expr THEN open_stmt ELSE statement
       | IF expr THEN statement
open_if: IF expr THEN statement ELSE open_stmt
       | IF expr THEN open_stmt ELSE open_stmt
       | IF expr THEN open_stmt
input_stmt: INPUT IDENT
for_stmt: FOR IDENT EQUAL expr TO expr [STEP expr]
next_stmt: NEXT IDENT
end_stmt: END

arguments: expr (COMMA expr)* COMMA?

?expr: comparison
?comparison: additive
           | comparison compare_op additive        -> binary
?additive: multiplicative
         | additive add_op multiplicative          -> binary
?multiplicative: power
               | multiplicative mul_op power       -> binary
?power: primary
      | power CARET primary                        -> binary
?primary: NUMBER                                   -> number
        | STRING                                   -> string
        | IDENT                                    -> variable
        | IDENT LPAREN [arguments] RPAREN          -> call
        | LPAREN expr RPAREN                       -> group

?compare_op: EQUAL | NE | LT | GT | LE | GE
?add_op: PLUS | MINUS
?mul_op: STAR | SLASH

%declare """ + " ".join(TOKEN_TYPES) + "\n"


# -----------------------------
# 2) Transformer (tuple IR)
# -----------------------------
@v_args(inline=True)
class BasicTransformer(Transformer):
    def start(self, *items):
        # EOL / EOF tokens are str subclasses; statements are tuples
        return A.program(it for it in items if isinstance(it, tuple))

    # statements
    def let_stmt(self, _let, name, _eq, expr):
        return A.let(str(name), expr)

    def assign_stmt(self, name, _eq, expr):
        return A.let(str(name), expr)

    def call_stmt(self, name, _lp, args, _rp):
        return A.let(str(name), A.call(str(name), args or ()))

    def print_stmt(self, _print, *rest):
        # the last child is the ';' token
        return A.print_(rest[:-1], True)

    def open_print(self, _print, *items):
        return A.print_(items, False)

    def print_item(self, expr, _comma=None):
        return expr

    def if_stmt(self, _if, cond, _then, then_stmt, _else=None, else_stmt=None):
        return A.if_(cond, then_stmt, else_stmt)

    def open_if(self, _if, cond, _then, then_stmt, _else=None, else_stmt=None):
        return A.if_(cond, then_stmt, else_stmt)

    def input_stmt(self, _input, name):
        return A.input_(str(name))

    def for_stmt(self, _for, name, _eq, start, _to, end, _step=None, step=None):
        return A.for_(str(name), start, end, step)

    def next_stmt(self, _next, name):
        return A.next_(str(name))

    def end_stmt(self, _end):
        return A.end()

    # expressions
    def arguments(self, *items):
        return tuple(it for it in items if isinstance(it, tuple))

    def binary(self, left, op, right):
        return A.binary(op.value, left, right)

    def number(self, tok):
        return A.number(tok.value)

    def string(self, tok):
        return A.string(tok.value)

    def variable(self, tok):
        return A.variable(tok.value)

    def call(self, name, _lp, args, _rp):
        return A.call(name.value, args or ())

    def group(self, _lp, expr, _rp):
        return expr


# -----------------------------
# 3) Diagnostics
# -----------------------------
_SYMBOLS = {name: text for text, name in list(OPERATORS.items()) + list(PUNCTUATION.items())}


def _describe_kind(kind):
    if kind in _SYMBOLS:
        return f"'{_SYMBOLS[kind]}'"
    return {
        'NUMBER': 'number',
        'IDENT': 'identifier',
        'STRING': 'string',
        'EOL': 'end of line',
        'EOF': 'end of input',
        '$END': 'end of input',
    }.get(kind, kind)


def _describe_token(tok):
    kind = tok.type
    if kind == 'NUMBER':
        return f"number {A.format_literal(tok.value)}"
    if kind == 'IDENT':
        return f"identifier '{tok.value}'"
    if kind == 'STRING':
        return f'string "{tok.value}"'
    if kind in _SYMBOLS or kind in ('EOL', 'EOF', '$END'):
        return _describe_kind(kind)
    return f"keyword {kind}"


def _lex_window(text, pos, width=80):
    a = max(0, pos - width // 2)
    b = min(len(text), pos + width // 2)
    nl = text.rfind('\n', a, pos)
    if nl >= 0:
        a = nl + 1
    nl = text.find('\n', pos, b)
    if nl >= 0:
        b = nl
    caret = ' ' * (pos - a) + '^'
    return text[a:b] + "\n" + caret


# -----------------------------
# 4) Parser front end
# -----------------------------
class Parser:
    def __init__(self):
        self.lark = Lark(GRAMMAR, parser="lalr", start="start", lexer="basic",
                         maybe_placeholders=True)
        self.transformer = BasicTransformer()

    def parse(self, tokens, source=None):
        """Parse a token list into a program; raise ParseError on the first bad token."""
        interactive = self.lark.parse_interactive()
        line_head = None
        at_line_start = True
        last = None
        try:
            for tok in tokens:
                if at_line_start and tok.type != 'EOL':
                    line_head = tok
                at_line_start = tok.type == 'EOL'
                last = tok
                interactive.feed_token(tok)
            eof = Token.new_borrow_pos('$END', '', last) if last is not None else Token('$END', '')
            tree = interactive.feed_token(eof)
        except UnexpectedInput as e:
            raise self._error(e, line_head, source) from None
        program = self.transformer.transform(tree)
        logger.debug("parsed %d lines", len(program))
        return program

    def _error(self, exc, line_head, source):
        tok = getattr(exc, 'token', None)
        if tok is None or tok.type in ('EOF', '$END'):
            message = "Unexpected end of input"
        else:
            message = f"Unexpected {_describe_token(tok)}"
        line = getattr(tok, 'line', None)
        column = getattr(tok, 'column', None)
        if line is not None and tok.type not in ('EOF', '$END'):
            message += f" at line {line}, column {column}"
        expected = sorted(_describe_kind(k) for k in (getattr(exc, 'expected', None) or ()))
        if expected:
            message += "; expected " + ", ".join(expected)
        if line_head is not None and line_head.type == 'IDENT' and line_head.value in RESERVED_WORDS:
            message += f" ({line_head.value} is not supported)"
        start_pos = getattr(tok, 'start_pos', None)
        if source is not None and start_pos is not None:
            message += "\n" + _lex_window(source, min(start_pos, len(source)))
        logger.debug("parse failed: %s", message)
        return ParseError(message, token=tok, line=line, column=column)


_default_parser = None


def _parser():
    global _default_parser
    if _default_parser is None:
        _default_parser = Parser()
    return _default_parser


def parse(tokens, source=None):
    return _parser().parse(tokens, source=source)


def parse_source(text):
    return parse(tokenize(text), source=text)
