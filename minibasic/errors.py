class BasicError(Exception):
    """Base class for every failure raised by the lexer/parser/back ends."""


class ParseError(BasicError):
    def __init__(self, message, token=None, line=None, column=None):
        super().__init__(message)
        self.message = message
        self.token = token
        self.line = line
        self.column = column


class BasicRuntimeError(BasicError):
    """Raised while a program is running.

    The interpreter stamps ``line`` with the index of the failing line
    before the error leaves :meth:`Interpreter.run`.
    """

    def __init__(self, message, line=None):
        super().__init__(message)
        self.message = message
        self.line = line

    def __str__(self):
        if self.line is None:
            return self.message
        return f"Error at line {self.line}: {self.message}"


class CompileError(BasicError):
    def __init__(self, message, line=None):
        super().__init__(message)
        self.message = message
        self.line = line

    def __str__(self):
        if self.line is None:
            return self.message
        return f"Compile error at line {self.line}: {self.message}"


class ToolchainError(BasicError):
    """The external C compiler could not be run or rejected the source."""

    def __init__(self, message, stderr=""):
        super().__init__(message)
        self.stderr = stderr
