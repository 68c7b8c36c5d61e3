import io
import os
import shutil
import subprocess

import pytest

from minibasic import ast_nodes as A
from minibasic.compiler import Compiler, c_number, c_string, compile_program
from minibasic.errors import BasicRuntimeError, CompileError
from minibasic.interpreter import Interpreter
from minibasic.parser import parse_source
from minibasic.toolchain import build_executable


def compile_text(text):
    return compile_program(parse_source(text))


def main_body(c_source):
    return c_source[c_source.index("int main(void)"):]


# ----- generated source -----
def test_program_shape():
    c = compile_text("LET X = 5\nPRINT X\nEND\n")
    assert c.startswith("/* Generated by minibasic. */")
    assert "#include <math.h>" in c
    assert 'static const char *basic_names[BASIC_VAR_COUNT] = {"X"};' in c
    body = main_body(c)
    assert "basic_line = 0;" in body
    assert "basic_set(0, 5.0);" in body
    assert "basic_print_number(t1);" in body
    assert body.rstrip().endswith("return 0;\n}")


def test_empty_program_still_has_one_slot():
    c = compile_text("")
    assert "#define BASIC_VAR_COUNT 1" in c
    assert "return 0;" in main_body(c)


def test_each_compile_gets_fresh_context():
    program = parse_source("X = 1 + Y")
    compiler = Compiler()
    assert compiler.compile_program(program) == compiler.compile_program(program)


def test_temporaries_follow_evaluation_order():
    body = main_body(compile_text("X = 1\nY = 2\nZ = X - Y"))
    first = body.index("double t1 = basic_get(0);")
    second = body.index("double t2 = basic_get(1);")
    assert first < second
    assert "double t3 = t1 - t2;" in body


def test_operators_map_to_runtime_helpers():
    body = main_body(compile_text("X = 1\nY = X / 2 + X ^ 2\nZ = X <> 2"))
    assert "basic_div(t" in body
    assert "= pow(t" in body
    assert "!= 2.0) ? 1.0 : 0.0;" in body


def test_functions_map_to_c():
    body = main_body(compile_text("X = ABS(1) + SQR(4) + INT(2.5) + RND(9)"))
    assert "fabs(1.0)" in body
    assert "basic_sqr(4.0)" in body
    assert "floor(2.5)" in body
    assert "basic_rnd()" in body


def test_print_strings_and_separators():
    body = main_body(compile_text('PRINT "A?", 1;'))
    assert 'fputs("A\\?", stdout);' in body
    assert "putchar(' ');" in body
    assert "putchar('\\n');" not in body


def test_for_next_uses_real_step():
    body = main_body(compile_text("FOR I = 10 TO 1 STEP 0 - 3\nPRINT I\nNEXT I\n"))
    assert "for (;;) {" in body
    assert "+= 1.0" not in body
    assert "> 0.0 &&" in body and "< 0.0 &&" in body
    assert "break;" in body


def test_unclosed_for_runs_once():
    body = main_body(compile_text("FOR I = 1 TO 3\nPRINT I\n"))
    assert body.count("for (;;) {") == 1
    assert body.count("break;") == 1


def test_if_else_blocks():
    body = main_body(compile_text("X = 1\nIF X THEN PRINT 1 ELSE END"))
    assert "!= 0.0) {" in body
    assert "} else {" in body


def test_input_statement():
    assert "basic_input(0);" in main_body(compile_text("INPUT N"))


def test_comments_cannot_close_early():
    c = compile_text('PRINT "*/"')
    assert "/* 0: PRINT \"* /\" */" in c


# ----- compile errors -----
@pytest.mark.parametrize("text, message", [
    ("NEXT I", "NEXT without FOR"),
    ("FOR I = 1 TO 2\nFOR J = 1 TO 2\nNEXT I", "NEXT I doesn't match FOR J"),
    ("X = 1\nIF X THEN NEXT X", "NEXT cannot be compiled inside IF"),
    ("X = 1\nIF X THEN FOR I = 1 TO 2", "FOR cannot be compiled inside IF"),
])
def test_compile_errors(text, message):
    with pytest.raises(CompileError) as info:
        compile_text(text)
    assert info.value.message == message
    assert str(info.value).startswith("Compile error at line")


def test_reserved_statements_do_not_compile():
    with pytest.raises(CompileError, match="Statement not implemented for compilation: GOTO"):
        compile_program(A.program([('GOTO', 10.0)]))


# type errors only fail when the line actually runs
@pytest.mark.parametrize("text, message", [
    ('X = "A"', "Can only store numbers in variables"),
    ('PRINT "A" + 1', "Invalid operation or type mismatch"),
    ("PRINT LOG(2)", "Unknown function: LOG"),
    ("PRINT ABS(1, 2)", "ABS expects 1 argument, got 2"),
    ('PRINT ABS("X")', "ABS requires a number argument"),
    ('IF "A" THEN END', "Condition must evaluate to a number"),
    ('FOR I = "A" TO 2', "Loop bounds must be numbers"),
    ('FOR I = 1 TO 2\nNEXT I\nFOR J = 1 TO 2 STEP "S"\nNEXT J', "Step must be a number"),
])
def test_type_errors_fail_at_run_time(text, message):
    body = main_body(compile_text(text))
    assert f'basic_fail("{message}");' in body


# ----- helpers -----
def test_c_string_escaping():
    assert c_string('say "hi"\\') == '"say \\"hi\\"\\\\"'
    assert c_string("a\nb") == '"a\\nb"'
    assert c_string("é") == '"\\303\\251"'


def test_c_number():
    assert c_number(5.0) == "5.0"
    assert c_number(1e23) == "1e+23"
    assert c_number(float('inf')) == "(HUGE_VAL)"


# ----- compiled output matches the interpreter -----
needs_cc = pytest.mark.skipif(shutil.which(os.environ.get('CC') or 'cc') is None,
                              reason="no C compiler on PATH")

PROGRAMS = [
    "LET X = 5\nPRINT X\nEND\n",
    "FOR I = 1 TO 3\nPRINT I\nNEXT I\nEND\n",
    "PRINT 3 > 2\nEND\n",
    'PRINT "A", 1;\nPRINT "B"\nPRINT\n',
    "FOR I = 3 TO 1 STEP 0 - 1\nPRINT I;\nNEXT I\nPRINT\n",
    "FOR I = 0 TO 1 STEP 0.25\nPRINT I, I * I\nNEXT I\n",
    "FOR I = 5 TO 1\nPRINT I\nNEXT I\nPRINT I\n",
    "N = 3\nFOR I = 1 TO N\nN = 2\nPRINT I\nNEXT I\n",
    "FOR I = 1 TO 2\nFOR J = 1 TO 3\nPRINT I * 10 + J\nNEXT J\nNEXT I\n",
    "X = 7\nIF X > 5 THEN PRINT \"BIG\" ELSE PRINT \"SMALL\"\nIF X < 5 THEN PRINT 1 ELSE PRINT 0\n",
    "PRINT 1 / 3, 2 / 3, 0.1 + 0.2, 2 ^ 0.5, 1000\n",
    "PRINT 2 ^ 80, 0.001 / 7, 0 - 0, (0 - 1) * 0\n",
    "PRINT ABS(0 - 2.5), SQR(2), INT(0 - 1.5), SIN(0), COS(0)\n",
    "PRINT 1 = 1, 1 <> 1, 2 <= 1, 2 >= 1\n",
    "PRINT \"caf\xe9?\"\nEND\nPRINT 9\n",
    "FOR I = 1 TO 3\nPRINT I\n",
    "PRINT 1\nIF 0 THEN LET X = \"A\"\nPRINT 2\nEND\n",
    "PRINT 1\nEND\nPRINT \"A\" + 1\n",
    "PRINT 1\nEND\nPRINT LOG(2), ABS(1, 2)\n",
    "PRINT (0 - 1) ^ 0.5, 10 ^ 400, 0 ^ (0 - 1), (0 - 10) ^ 401\n",
]


def build(tmp_path, text):
    exe = str(tmp_path / "prog")
    build_executable(compile_text(text), exe)
    return exe


def interpret(text, stdin=""):
    out = io.StringIO()
    try:
        Interpreter(stdout=out, stdin=io.StringIO(stdin)).run(parse_source(text))
    except BasicRuntimeError as e:
        return out.getvalue(), str(e)
    return out.getvalue(), None


@needs_cc
@pytest.mark.parametrize("text", PROGRAMS)
def test_compiled_output_matches_interpreter(tmp_path, text):
    exe = build(tmp_path, text)
    result = subprocess.run([exe], capture_output=True, text=True, encoding='utf-8')
    expected, error = interpret(text)
    assert error is None
    assert result.returncode == 0
    assert result.stdout == expected


@needs_cc
@pytest.mark.parametrize("text, stdin", [
    ("PRINT 1\nPRINT 1 / 0\nPRINT 2\n", ""),
    ("X = 1\nPRINT Y\n", ""),
    ("PRINT SQR(0 - 4)\n", ""),
    ("X = 1\nY = \"A\" + X\n", ""),
    ("PRINT 1\nFOR I = 1 TO \"X\"\nNEXT I\n", ""),
    ("PRINT 2\nPRINT ABS(1, 2)\n", ""),
    ("INPUT N\nPRINT N * 2\n", "21\n"),
    ("INPUT N\nPRINT N\n", "  -2.5e1 \n"),
    ("INPUT N\nPRINT N\n", "abc\n"),
    ("INPUT N\nPRINT N\n", ""),
])
def test_compiled_errors_and_input_match_interpreter(tmp_path, text, stdin):
    exe = build(tmp_path, text)
    result = subprocess.run([exe], input=stdin, capture_output=True, text=True)
    expected, error = interpret(text, stdin)
    assert result.stdout == expected
    if error is None:
        assert result.returncode == 0
    else:
        assert result.returncode == 1
        assert result.stderr.strip() == error
