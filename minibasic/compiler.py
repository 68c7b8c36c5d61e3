"""
BASIC -> C99 source translator.

The emitted program mirrors the interpreter statement for statement:
variables live in a slot table with "defined" flags, every non-literal
sub-expression is bound to its own ``tN`` temporary so evaluation runs
left to right, and ``basic_line`` tracks the current program line so
runtime failures report ``Error at line N: ...`` like the interpreter.
FOR/NEXT pairs become ``for (;;)`` blocks whose exit test re-evaluates the
loop's real STEP and end expressions after each pass. Type errors
become ``basic_fail`` calls at the point the interpreter would raise them;
only structural problems (unbalanced NEXT, FOR/NEXT inside IF) are
``CompileError``s.
"""

import logging
import math

from .ast_nodes import assigned_names, statement_repr, walk_expressions
from .errors import CompileError

logger = logging.getLogger(__name__)

INDENT = "    "
# operand standing in for a value whose evaluation already called basic_fail
FAILED = "0.0"

C_COMPARISONS = {'=': '==', '<>': '!=', '<': '<', '<=': '<=', '>': '>', '>=': '>='}
C_FUNCTIONS = {'ABS': 'fabs', 'SQR': 'basic_sqr', 'SIN': 'sin', 'COS': 'cos', 'TAN': 'tan', 'INT': 'floor'}

C_HEADER = """\
/* Generated by minibasic. */
#include <ctype.h>
#include <math.h>
#include <stdio.h>
#include <stdlib.h>
#include <string.h>
#include <time.h>
"""

C_RUNTIME = r"""
static int basic_line = 0;

static void basic_fail(const char *message)
{
    fflush(stdout);
    fprintf(stderr, "Error at line %d: %s\n", basic_line, message);
    exit(1);
}

/* shortest round-trip digits, written out positionally */
static void basic_format_number(double x, char *out, size_t size)
{
    char buf[64];
    char digits[32];
    int precision, exponent, ndigits = 0, pos = 0, i;
    const char *p;

    if (isnan(x)) {
        snprintf(out, size, "NaN");
        return;
    }
    if (isinf(x)) {
        snprintf(out, size, x > 0 ? "inf" : "-inf");
        return;
    }
    if (x == 0.0) {
        snprintf(out, size, signbit(x) ? "-0" : "0");
        return;
    }
    for (precision = 1; precision < 17; precision++) {
        snprintf(buf, sizeof buf, "%.*e", precision - 1, x);
        if (strtod(buf, NULL) == x)
            break;
    }
    snprintf(buf, sizeof buf, "%.*e", precision - 1, x);

    p = buf;
    if (*p == '-') {
        out[pos++] = '-';
        p++;
    }
    for (; *p && *p != 'e'; p++)
        if (isdigit((unsigned char) *p))
            digits[ndigits++] = *p;
    exponent = atoi(p + 1);
    while (ndigits > 1 && digits[ndigits - 1] == '0')
        ndigits--;

    if (exponent < 0) {
        out[pos++] = '0';
        out[pos++] = '.';
        for (i = -1; i > exponent; i--)
            out[pos++] = '0';
        for (i = 0; i < ndigits; i++)
            out[pos++] = digits[i];
    } else {
        for (i = 0; i < ndigits || i <= exponent; i++) {
            if (i == exponent + 1)
                out[pos++] = '.';
            out[pos++] = i < ndigits ? digits[i] : '0';
        }
    }
    out[pos] = '\0';
    (void) size;
}

static void basic_print_number(double x)
{
    char text[400];
    basic_format_number(x, text, sizeof text);
    fputs(text, stdout);
}

static double basic_get(int slot)
{
    char message[300];
    if (!basic_defined[slot]) {
        snprintf(message, sizeof message, "Undefined variable: %s", basic_names[slot]);
        basic_fail(message);
    }
    return basic_vars[slot];
}

static void basic_set(int slot, double value)
{
    basic_vars[slot] = value;
    basic_defined[slot] = 1;
}

static double basic_div(double a, double b)
{
    if (b == 0.0)
        basic_fail("Division by zero");
    return a / b;
}

static double basic_sqr(double x)
{
    if (x < 0)
        basic_fail("Cannot take square root of negative number");
    return sqrt(x);
}

static double basic_rnd(void)
{
    return rand() / ((double) RAND_MAX + 1.0);
}

static int basic_word_is(const char *text, const char *word)
{
    for (; *text && *word; text++, word++)
        if (tolower((unsigned char) *text) != *word)
            return 0;
    return *text == '\0' && *word == '\0';
}

static int basic_parse_number(const char *line, double *value)
{
    char buf[4096];
    const char *start = line, *end, *p;
    size_t n;
    int digits = 0;

    while (*start && isspace((unsigned char) *start))
        start++;
    end = start + strlen(start);
    while (end > start && isspace((unsigned char) end[-1]))
        end--;
    n = (size_t) (end - start);
    if (n == 0 || n >= sizeof buf)
        return 0;
    memcpy(buf, start, n);
    buf[n] = '\0';

    p = buf;
    if (*p == '+' || *p == '-')
        p++;
    if (basic_word_is(p, "inf") || basic_word_is(p, "infinity") || basic_word_is(p, "nan")) {
        *value = strtod(buf, NULL);
        return 1;
    }
    while (isdigit((unsigned char) *p)) {
        p++;
        digits++;
    }
    if (*p == '.') {
        p++;
        while (isdigit((unsigned char) *p)) {
            p++;
            digits++;
        }
    }
    if (digits == 0)
        return 0;
    if (*p == 'e' || *p == 'E') {
        p++;
        if (*p == '+' || *p == '-')
            p++;
        if (!isdigit((unsigned char) *p))
            return 0;
        while (isdigit((unsigned char) *p))
            p++;
    }
    if (*p != '\0')
        return 0;
    *value = strtod(buf, NULL);
    return 1;
}

static void basic_input(int slot)
{
    char line[4096];
    double value;
    printf("Enter %s: ", basic_names[slot]);
    fflush(stdout);
    if (fgets(line, sizeof line, stdin) == NULL || !basic_parse_number(line, &value))
        basic_fail("Invalid number input");
    basic_set(slot, value);
}
"""


def c_string(text):
    """C string literal for ``text`` (UTF-8, trigraph-safe)."""
    out = ['"']
    for byte in text.encode('utf-8'):
        ch = chr(byte)
        if ch == '"':
            out.append('\\"')
        elif ch == '\\':
            out.append('\\\\')
        elif ch == '?':
            out.append('\\?')
        elif ch == '\n':
            out.append('\\n')
        elif 32 <= byte < 127:
            out.append(ch)
        else:
            out.append('\\%03o' % byte)
    out.append('"')
    return ''.join(out)


def c_number(value):
    if math.isinf(value):
        return '(HUGE_VAL)' if value > 0 else '(-HUGE_VAL)'
    return repr(float(value))


def c_comment(text):
    return "/* " + text.replace('*/', '* /') + " */"


class CompileContext:
    """Translation state for one compile run."""

    def __init__(self, slots):
        self.slots = slots
        self.indent = 1
        self.temp_count = 0
        self.lines = []
        self.open_loops = []   # ForLoop records still waiting for their NEXT
        self.line = None

    def emit(self, text):
        self.lines.append(INDENT * self.indent + text)

    def temp(self):
        self.temp_count += 1
        return f"t{self.temp_count}"

    def fail(self, message):
        self.emit(f"basic_fail({c_string(message)});")

    def error(self, message):
        return CompileError(message, line=self.line)


class Compiler:
    def compile_program(self, program):
        ctx = CompileContext(self.slot_table(program))
        for index, statement in program:
            ctx.line = index
            ctx.emit(c_comment(f"{index}: {statement_repr(statement)}"))
            ctx.emit(f"basic_line = {index};")
            self.compile_statement(statement, ctx)
        # a FOR that never meets its NEXT runs its body once
        while ctx.open_loops:
            ctx.open_loops.pop()
            ctx.emit("break;")
            ctx.indent -= 1
            ctx.emit("}")
        ctx.emit("return 0;")
        logger.debug("compiled %d lines, %d variables, %d temporaries",
                     len(program), len(ctx.slots), ctx.temp_count)
        return self.render(ctx)

    def slot_table(self, program):
        slots = {}
        for _, statement in program:
            for name in assigned_names(statement):
                slots.setdefault(name, len(slots))
            for expr in walk_expressions(statement):
                if expr[0] == 'VAR':
                    slots.setdefault(expr[1], len(slots))
        return slots

    def render(self, ctx):
        count = max(1, len(ctx.slots))
        names = [c_string(name) for name in ctx.slots] or ['""']
        parts = [
            C_HEADER,
            f"#define BASIC_VAR_COUNT {count}",
            "static const char *basic_names[BASIC_VAR_COUNT] = {" + ", ".join(names) + "};",
            "static double basic_vars[BASIC_VAR_COUNT];",
            "static int basic_defined[BASIC_VAR_COUNT];",
            C_RUNTIME,
            "int main(void)",
            "{",
            INDENT + "srand((unsigned) time(NULL));",
        ]
        parts.extend(ctx.lines)
        parts.append("}")
        return "\n".join(parts) + "\n"

    # ----- statements -----
    def compile_statement(self, st, ctx, nested=False):
        typ = st[0]
        if typ == 'PRINT':
            _, exprs, semicolon = st
            for i, expr in enumerate(exprs):
                if i > 0:
                    ctx.emit("putchar(' ');")
                if expr[0] == 'STR':
                    ctx.emit(f"fputs({c_string(expr[1])}, stdout);")
                else:
                    ctx.emit(f"basic_print_number({self.compile_expression(expr, ctx)});")
            if not semicolon:
                ctx.emit("putchar('\\n');")
        elif typ == 'LET':
            _, name, expr = st
            value = self.compile_expression(expr, ctx)
            if value is None:
                ctx.fail("Can only store numbers in variables")
            else:
                ctx.emit(f"basic_set({ctx.slots[name]}, {value});")
        elif typ == 'INPUT':
            ctx.emit(f"basic_input({ctx.slots[st[1]]});")
        elif typ == 'IF':
            _, cond, then_stmt, else_stmt = st
            value = self.compile_expression(cond, ctx)
            if value is None:
                ctx.fail("Condition must evaluate to a number")
                return
            ctx.emit(f"if ({value} != 0.0) {{")
            self._compile_branch(then_stmt, ctx)
            if else_stmt is not None:
                ctx.emit("} else {")
                self._compile_branch(else_stmt, ctx)
            ctx.emit("}")
        elif typ == 'FOR':
            if nested:
                raise ctx.error("FOR cannot be compiled inside IF")
            self.compile_for(st[1], ctx)
        elif typ == 'NEXT':
            if nested:
                raise ctx.error("NEXT cannot be compiled inside IF")
            self.compile_next(st[1], ctx)
        elif typ == 'END':
            ctx.emit("return 0;")
        else:
            raise ctx.error(f"Statement not implemented for compilation: {typ}")

    def _compile_branch(self, st, ctx):
        ctx.indent += 1
        self.compile_statement(st, ctx, nested=True)
        ctx.indent -= 1

    def compile_for(self, loop, ctx):
        # end and step are evaluated for their errors only; NEXT re-evaluates both
        start, end, step = (self.compile_expression(e, ctx) for e in (loop.start, loop.end, loop.step))
        if None in (start, end, step):
            ctx.fail("Loop bounds must be numbers")
            start = FAILED
        for expr, value in ((loop.end, end), (loop.step, step)):
            if expr[0] not in ('NUM', 'STR'):
                ctx.emit(f"(void) {value};")
        ctx.emit(f"basic_set({ctx.slots[loop.variable]}, {start});")
        ctx.emit("for (;;) {")
        ctx.indent += 1
        ctx.open_loops.append(loop)

    def compile_next(self, name, ctx):
        if not ctx.open_loops:
            raise ctx.error("NEXT without FOR")
        loop = ctx.open_loops[-1]
        if loop.variable != name:
            raise ctx.error(f"NEXT {name} doesn't match FOR {loop.variable}")
        slot = ctx.slots[name]
        current = ctx.temp()
        ctx.emit(f"double {current} = basic_get({slot});")
        step = self.compile_expression(loop.step, ctx)
        if step is None:
            ctx.fail("Step must be a number")
            step = FAILED
        following = ctx.temp()
        ctx.emit(f"double {following} = {current} + {step};")
        end = self.compile_expression(loop.end, ctx)
        if end is None:
            ctx.fail("End must be a number")
            end = FAILED
        ctx.emit(f"if (!(({step} > 0.0 && {following} <= {end}) || ({step} < 0.0 && {following} >= {end})))")
        ctx.emit(INDENT + "break;")
        ctx.emit(f"basic_set({slot}, {following});")
        ctx.open_loops.pop()
        ctx.indent -= 1
        ctx.emit("}")

    # ----- expressions -----
    def compile_expression(self, node, ctx):
        """Emit the statements computing ``node``; return a C operand for its value.

        String literals have no C operand: they yield None and the caller
        emits the type error a number context raises at run time.
        """
        typ = node[0]
        if typ == 'NUM':
            return c_number(node[1])
        if typ == 'STR':
            return None
        if typ == 'VAR':
            t = ctx.temp()
            ctx.emit(f"double {t} = basic_get({ctx.slots[node[1]]});")
            return t
        if typ == 'BIN':
            _, op, left, right = node
            a = self.compile_expression(left, ctx)
            b = self.compile_expression(right, ctx)
            if a is None or b is None:
                ctx.fail("Invalid operation or type mismatch")
                return FAILED
            t = ctx.temp()
            if op in ('+', '-', '*'):
                ctx.emit(f"double {t} = {a} {op} {b};")
            elif op == '/':
                ctx.emit(f"double {t} = basic_div({a}, {b});")
            elif op == '^':
                ctx.emit(f"double {t} = pow({a}, {b});")
            elif op in C_COMPARISONS:
                ctx.emit(f"double {t} = ({a} {C_COMPARISONS[op]} {b}) ? 1.0 : 0.0;")
            else:
                raise ctx.error(f"Operator not implemented for compilation: {op}")
            return t
        if typ == 'CALL':
            _, name, args = node
            if name == 'RND':
                t = ctx.temp()
                ctx.emit(f"double {t} = basic_rnd();")
                return t
            fn = C_FUNCTIONS.get(name)
            if fn is None:
                ctx.fail(f"Unknown function: {name}")
                return FAILED
            if len(args) != 1:
                ctx.fail(f"{name} expects 1 argument, got {len(args)}")
                return FAILED
            value = self.compile_expression(args[0], ctx)
            if value is None:
                ctx.fail(f"{name} requires a number argument")
                return FAILED
            t = ctx.temp()
            ctx.emit(f"double {t} = {fn}({value});")
            return t
        raise ctx.error(f"Unknown expression node {typ}")


def compile_program(program):
    return Compiler().compile_program(program)
