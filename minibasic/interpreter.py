import logging
import math
import random
import re
import sys
from decimal import Decimal

from .ast_nodes import statement_repr
from .errors import BasicRuntimeError

logger = logging.getLogger(__name__)


# =========================
# Number formatting
# =========================
def format_number(n):
    """Shortest round-trip digits, positional notation, no trailing '.0'."""
    n = float(n)
    if math.isnan(n):
        return 'NaN'
    if math.isinf(n):
        return 'inf' if n > 0 else '-inf'
    if n == 0:
        return '-0' if math.copysign(1.0, n) < 0 else '0'
    # repr gives the shortest round-trip digits; str(int(1e23)) would not
    s = format(Decimal(repr(n)), 'f')
    if '.' in s:
        s = s.rstrip('0').rstrip('.')
    return s


# =========================
# Built-in functions
# =========================
def _checked(fn):
    # math.sin(inf) and friends raise instead of returning NaN
    def wrapper(n):
        try:
            return fn(n)
        except ValueError:
            return math.nan
    return wrapper


def _sqr(n):
    if n < 0:
        raise BasicRuntimeError("Cannot take square root of negative number")
    return math.sqrt(n)


def _int(n):
    return float(math.floor(n)) if math.isfinite(n) else n


BUILTINS = {
    'ABS': abs,
    'SQR': _sqr,
    'SIN': _checked(math.sin),
    'COS': _checked(math.cos),
    'TAN': _checked(math.tan),
    'INT': _int,
}

# RND ignores whatever it is given
NULLARY_BUILTINS = {'RND'}

INPUT_NUMBER_RE = re.compile(
    r'[+-]?([0-9]+\.?[0-9]*|\.[0-9]+)([eE][+-]?[0-9]+)?|[+-]?(inf|infinity|nan)', re.IGNORECASE)


def _odd_integer(x):
    return float(x).is_integer() and x % 2 == 1


def power(a, b):
    """``a ^ b`` with C ``pow`` results where math.pow raises."""
    try:
        return math.pow(a, b)
    except OverflowError:
        return -math.inf if a < 0 and _odd_integer(b) else math.inf
    except ValueError:
        if a == 0:
            # zero to a negative power keeps the zero's sign for odd exponents
            return math.copysign(math.inf, a) if _odd_integer(b) else math.inf
        return math.nan


def parse_input_number(text):
    s = text.strip()
    if not INPUT_NUMBER_RE.fullmatch(s):
        raise BasicRuntimeError("Invalid number input")
    return float(s)


# =========================
# Interpreter
# =========================
class Interpreter:
    def __init__(self, stdout=None, stdin=None, rng=None):
        self.stdout = stdout if stdout is not None else sys.stdout
        self.stdin = stdin if stdin is not None else sys.stdin
        self.rng = rng if rng is not None else random.Random()
        self.reset()

    def reset(self):
        self.variables = {}
        self.loops = []        # active ForLoop records
        self.loop_stack = []   # line index of each loop's FOR statement
        self.current_line = 0
        self.running = True
        self.program = ()

    def run(self, program):
        self.reset()
        self.program = program
        while self.running and self.current_line < len(self.program):
            _, statement = self.program[self.current_line]
            if logger.isEnabledFor(logging.DEBUG):
                logger.debug("%4d  %s", self.current_line, statement_repr(statement))
            try:
                self.execute(statement)
            except BasicRuntimeError as e:
                e.line = self.current_line
                raise
            self.current_line += 1

    # ----- statements -----
    def execute(self, st):
        typ = st[0]
        if typ == 'PRINT':
            _, exprs, semicolon = st
            out = self.stdout
            for i, expr in enumerate(exprs):
                if i > 0:
                    out.write(' ')
                value = self.evaluate(expr)
                out.write(value if isinstance(value, str) else format_number(value))
            if not semicolon:
                out.write('\n')
            out.flush()
        elif typ == 'LET':
            _, name, expr = st
            value = self.evaluate(expr)
            if isinstance(value, str):
                raise BasicRuntimeError("Can only store numbers in variables")
            self.variables[name] = value
        elif typ == 'IF':
            _, cond, then_stmt, else_stmt = st
            value = self.evaluate(cond)
            if isinstance(value, str):
                raise BasicRuntimeError("Condition must evaluate to a number")
            if value != 0.0:
                self.execute(then_stmt)
            elif else_stmt is not None:
                self.execute(else_stmt)
        elif typ == 'INPUT':
            name = st[1]
            self.stdout.write(f"Enter {name}: ")
            self.stdout.flush()
            self.variables[name] = parse_input_number(self.stdin.readline())
        elif typ == 'FOR':
            loop = st[1]
            start = self.evaluate(loop.start)
            end = self.evaluate(loop.end)
            step = self.evaluate(loop.step)
            if isinstance(start, str) or isinstance(end, str) or isinstance(step, str):
                raise BasicRuntimeError("Loop bounds must be numbers")
            self.variables[loop.variable] = start
            self.loops.append(loop)
            self.loop_stack.append(self.current_line)
        elif typ == 'NEXT':
            self.next_loop(st[1])
        elif typ == 'END':
            self.running = False
        else:
            raise BasicRuntimeError("Statement not implemented yet")

    def next_loop(self, name):
        if not self.loops:
            raise BasicRuntimeError("NEXT without FOR")
        loop = self.loops[-1]
        if loop.variable != name:
            raise BasicRuntimeError(f"NEXT {name} doesn't match FOR {loop.variable}")
        current = self.variables[name]
        step = self.evaluate(loop.step)
        if isinstance(step, str):
            raise BasicRuntimeError("Step must be a number")
        next_val = current + step
        end = self.evaluate(loop.end)
        if isinstance(end, str):
            raise BasicRuntimeError("End must be a number")
        if (step > 0.0 and next_val <= end) or (step < 0.0 and next_val >= end):
            self.variables[name] = next_val
            # the driver's increment lands on the first line of the body
            self.current_line = self.loop_stack[-1]
        else:
            self.loops.pop()
            self.loop_stack.pop()

    # ----- expressions -----
    def evaluate(self, node):
        typ = node[0]
        if typ == 'NUM':
            return node[1]
        if typ == 'STR':
            return node[1]
        if typ == 'VAR':
            try:
                return self.variables[node[1]]
            except KeyError:
                raise BasicRuntimeError(f"Undefined variable: {node[1]}") from None
        if typ == 'BIN':
            _, op, left, right = node
            return self.binary(op, self.evaluate(left), self.evaluate(right))
        if typ == 'CALL':
            return self.call(node[1], node[2])
        raise BasicRuntimeError(f"Unknown expression node {typ}")

    def binary(self, op, a, b):
        if isinstance(a, str) or isinstance(b, str):
            raise BasicRuntimeError("Invalid operation or type mismatch")
        if op == '+': return a + b
        if op == '-': return a - b
        if op == '*': return a * b
        if op == '/':
            if b == 0.0:
                raise BasicRuntimeError("Division by zero")
            return a / b
        if op == '^': return power(a, b)
        if op == '=': return 1.0 if a == b else 0.0
        if op == '<>': return 1.0 if a != b else 0.0
        if op == '<': return 1.0 if a < b else 0.0
        if op == '<=': return 1.0 if a <= b else 0.0
        if op == '>': return 1.0 if a > b else 0.0
        if op == '>=': return 1.0 if a >= b else 0.0
        raise BasicRuntimeError("Invalid operation or type mismatch")

    def call(self, name, args):
        if name in NULLARY_BUILTINS:
            return self.rng.random()
        fn = BUILTINS.get(name)
        if fn is None:
            raise BasicRuntimeError(f"Unknown function: {name}")
        if len(args) != 1:
            raise BasicRuntimeError(f"{name} expects 1 argument, got {len(args)}")
        value = self.evaluate(args[0])
        if isinstance(value, str):
            raise BasicRuntimeError(f"{name} requires a number argument")
        return float(fn(value))


def run_program(program, stdout=None, stdin=None):
    interp = Interpreter(stdout=stdout, stdin=stdin)
    interp.run(program)
    return interp
