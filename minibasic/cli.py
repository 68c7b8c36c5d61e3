import argparse
import logging
import sys

from .compiler import compile_program
from .errors import BasicError
from .interpreter import Interpreter
from .parser import parse_source
from .toolchain import build_executable

logger = logging.getLogger(__name__)

DEFAULT_SOURCE = 'code.bs'
DEFAULT_OUTPUT = 'code.exe'


def build_arg_parser():
    ap = argparse.ArgumentParser(prog='minibasic', description="Run or compile a BASIC program.")
    ap.add_argument('source', nargs='?', default=DEFAULT_SOURCE,
                    help=f"BASIC source file (default: {DEFAULT_SOURCE})")
    ap.add_argument('--compile', action='store_true',
                    help="translate to C and build a native executable instead of interpreting")
    ap.add_argument('-o', '--output', default=DEFAULT_OUTPUT,
                    help=f"executable to build in compile mode (default: {DEFAULT_OUTPUT})")
    ap.add_argument('--emit-c', metavar='FILE',
                    help="write the generated C source to FILE and skip the C compiler")
    ap.add_argument('--cc', help="C compiler to use (default: $CC or cc)")
    ap.add_argument('-v', '--verbose', action='count', default=0,
                    help="log progress (-v) or parser/interpreter traces (-vv)")
    return ap


def _log_level(verbose):
    if verbose >= 2:
        return logging.DEBUG
    if verbose == 1:
        return logging.INFO
    return logging.WARNING


def run(args, stdout=None, stdin=None):
    logger.info("Reading BASIC code from %s", args.source)
    with open(args.source, encoding='utf-8') as f:
        text = f.read()
    program = parse_source(text)

    if args.compile or args.emit_c:
        logger.info("Compiling %d lines", len(program))
        c_source = compile_program(program)
        if args.emit_c:
            with open(args.emit_c, 'w', encoding='utf-8') as f:
                f.write(c_source)
            logger.info("C source written to %s", args.emit_c)
            return
        build_executable(c_source, args.output, cc=args.cc)
        logger.info("Compiled executable: %s", args.output)
        return

    Interpreter(stdout=stdout, stdin=stdin).run(program)
    logger.info("Program execution completed.")


def main(argv=None):
    args = build_arg_parser().parse_args(argv)
    logging.basicConfig(level=_log_level(args.verbose), format="%(levelname)s %(name)s: %(message)s")
    try:
        run(args)
    except BasicError as e:
        print(f"error: {e}", file=sys.stderr)
        stderr = getattr(e, 'stderr', '')
        if stderr:
            print(stderr, file=sys.stderr, end='' if stderr.endswith('\n') else '\n')
        return 1
    except OSError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    return 0
