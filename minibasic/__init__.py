"""A small BASIC: lexer, lark-based parser, tree-walking interpreter and C back end."""

import logging

from .compiler import Compiler, compile_program
from .errors import BasicError, BasicRuntimeError, CompileError, ParseError, ToolchainError
from .interpreter import Interpreter, format_number, run_program
from .lexer import Lexer, tokenize
from .parser import Parser, parse, parse_source

__version__ = "0.1.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())
