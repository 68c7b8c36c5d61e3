"""
Tuple IR shared by the interpreter and the compiler.

Every node is a tuple whose first element is its tag::

    ('NUM', 3.0)                      number literal
    ('STR', 'HELLO')                  string literal
    ('VAR', 'X')                      variable reference
    ('BIN', '+', left, right)         binary operation
    ('CALL', 'SQR', (arg, ...))       built-in function call

    ('LET', 'X', expr)
    ('PRINT', (expr, ...), semicolon)
    ('IF', cond, then_stmt, else_stmt_or_None)
    ('INPUT', 'X')
    ('FOR', ForLoop(...))
    ('NEXT', 'X')
    ('END',)
    ('GOTO', target), ('REM', text)   reserved; the parser never builds them

A program is a tuple of ``(index, statement)`` lines, indexed 0, 1, 2, ...
in parse order.
"""

from collections import namedtuple
from typing import Any, Iterator, Tuple

ForLoop = namedtuple('ForLoop', 'variable start end step')

Expr = Tuple[Any, ...]
Stmt = Tuple[Any, ...]
Line = Tuple[int, Stmt]

ARITHMETIC_OPS = ('+', '-', '*', '/', '^')
COMPARISON_OPS = ('=', '<', '>', '<=', '>=', '<>')
BINARY_OPS = ARITHMETIC_OPS + COMPARISON_OPS

STATEMENT_TAGS = ('LET', 'PRINT', 'IF', 'INPUT', 'FOR', 'NEXT', 'END', 'GOTO', 'REM')


# -----------------------------
# constructors
# -----------------------------
def number(value): return ('NUM', float(value))
def string(text): return ('STR', text)
def variable(name): return ('VAR', name)
def call(name, args=()): return ('CALL', name, tuple(args))


def binary(op, left, right):
    if op not in BINARY_OPS:
        raise ValueError(f"unknown operator {op!r}")
    return ('BIN', op, left, right)


def let(name, expr): return ('LET', name, expr)
def print_(exprs=(), semicolon=False): return ('PRINT', tuple(exprs), bool(semicolon))
def if_(cond, then_stmt, else_stmt=None): return ('IF', cond, then_stmt, else_stmt)
def input_(name): return ('INPUT', name)
def next_(name): return ('NEXT', name)
def end(): return ('END',)


def for_(name, start, end_, step=None):
    if step is None:
        step = number(1.0)
    return ('FOR', ForLoop(name, start, end_, step))


def program(statements):
    return tuple((i, st) for i, st in enumerate(statements))


# -----------------------------
# traversal / rendering
# -----------------------------
def tag(node) -> str:
    return node[0]


def walk_expressions(stmt: Stmt) -> Iterator[Expr]:
    """Yield every expression (recursively) reachable from ``stmt``."""
    def expr_nodes(e):
        yield e
        if e[0] == 'BIN':
            yield from expr_nodes(e[2])
            yield from expr_nodes(e[3])
        elif e[0] == 'CALL':
            for a in e[2]:
                yield from expr_nodes(a)

    t = stmt[0]
    if t == 'LET':
        yield from expr_nodes(stmt[2])
    elif t == 'PRINT':
        for e in stmt[1]:
            yield from expr_nodes(e)
    elif t == 'IF':
        yield from expr_nodes(stmt[1])
        yield from walk_expressions(stmt[2])
        if stmt[3] is not None:
            yield from walk_expressions(stmt[3])
    elif t == 'FOR':
        loop = stmt[1]
        for e in (loop.start, loop.end, loop.step):
            yield from expr_nodes(e)


def assigned_names(stmt: Stmt) -> Iterator[str]:
    """Names a statement may store into (LET/INPUT/FOR, also inside IF)."""
    t = stmt[0]
    if t in ('LET', 'INPUT'):
        yield stmt[1]
    elif t == 'FOR':
        yield stmt[1].variable
    elif t == 'NEXT':
        yield stmt[1]
    elif t == 'IF':
        yield from assigned_names(stmt[2])
        if stmt[3] is not None:
            yield from assigned_names(stmt[3])


def format_literal(value: float) -> str:
    return str(int(value)) if value.is_integer() else repr(value)


def expression_repr(e: Expr) -> str:
    t = e[0]
    if t == 'NUM':
        return format_literal(e[1])
    if t == 'STR':
        return f'"{e[1]}"'
    if t == 'VAR':
        return e[1]
    if t == 'BIN':
        return f"({expression_repr(e[2])} {e[1]} {expression_repr(e[3])})"
    if t == 'CALL':
        return f"{e[1]}({', '.join(expression_repr(a) for a in e[2])})"
    raise ValueError(f"not an expression: {e!r}")


def statement_repr(st: Stmt) -> str:
    t = st[0]
    if t == 'LET':
        return f"LET {st[1]} = {expression_repr(st[2])}"
    if t == 'PRINT':
        body = ', '.join(expression_repr(e) for e in st[1])
        return ('PRINT ' + body).rstrip() + (';' if st[2] else '')
    if t == 'IF':
        text = f"IF {expression_repr(st[1])} THEN {statement_repr(st[2])}"
        if st[3] is not None:
            text += f" ELSE {statement_repr(st[3])}"
        return text
    if t == 'INPUT':
        return f"INPUT {st[1]}"
    if t == 'FOR':
        loop = st[1]
        return (f"FOR {loop.variable} = {expression_repr(loop.start)} TO {expression_repr(loop.end)}"
                f" STEP {expression_repr(loop.step)}")
    if t == 'NEXT':
        return f"NEXT {st[1]}"
    if t == 'END':
        return "END"
    if t == 'GOTO':
        return f"GOTO {st[1]}"
    if t == 'REM':
        return f"REM {st[1]}"
    raise ValueError(f"not a statement: {st!r}")
