import logging
import re

from lark import Token

logger = logging.getLogger(__name__)

# =========================
# Token tables
# =========================
KEYWORDS = {
    'LET', 'PRINT', 'IF', 'THEN', 'ELSE', 'FOR', 'TO', 'STEP', 'NEXT', 'INPUT', 'END',
}

# Classic BASIC words the dialect reserves but never wires up. They are
# scanned as plain identifiers; the parser only uses them to explain errors.
RESERVED_WORDS = {
    'GOTO', 'GOSUB', 'RETURN', 'REM', 'STOP', 'DIM', 'READ', 'DATA', 'RESTORE',
    'LOG', 'EXP', 'LEN', 'MID', 'LEFT', 'RIGHT',
}

OPERATORS = {
    '+': 'PLUS', '-': 'MINUS', '*': 'STAR', '/': 'SLASH', '^': 'CARET',
    '=': 'EQUAL', '<': 'LT', '>': 'GT',
    '<=': 'LE', '>=': 'GE', '<>': 'NE',
}

PUNCTUATION = {
    '(': 'LPAREN', ')': 'RPAREN', ',': 'COMMA', ';': 'SEMICOLON', ':': 'COLON',
}

TOKEN_TYPES = (
    ['NUMBER', 'IDENT', 'STRING', 'EOL', 'EOF']
    + sorted(set(OPERATORS.values()))
    + sorted(PUNCTUATION.values())
    + sorted(KEYWORDS)
)

NUMBER_RE = re.compile(r'[0-9.]+')
IDENT_START_RE = re.compile(r'[A-Za-z_]')


class Lexer:
    """Turns source text into a flat list of lark tokens.

    Never raises: characters that match no rule are dropped, malformed
    numbers produce no token and an unterminated string runs to the end
    of input.
    """

    def __init__(self, text):
        self.text = text
        self.i = 0
        self.line = 1
        self.line_start = 0

    def _token(self, typ, value, start):
        return Token(typ, value, start_pos=start, line=self.line,
                     column=start - self.line_start + 1)

    def tokenize(self):
        s = self.text
        last = None
        for tok in self._scan():
            last = tok
            yield tok
        if last is not None and last.type != 'EOL':
            yield self._token('EOL', '', len(s))
        yield self._token('EOF', '', len(s))

    def _scan(self):
        s = self.text
        while self.i < len(s):
            ch = s[self.i]
            start = self.i
            if ch == '\n':
                yield self._token('EOL', '\n', start)
                self.i += 1
                self.line += 1
                self.line_start = self.i
                continue
            if ch.isspace():
                self.i += 1
                continue
            if '0' <= ch <= '9':
                m = NUMBER_RE.match(s, self.i)
                self.i = m.end()
                try:
                    value = float(m.group(0))
                except ValueError:
                    logger.debug("dropping malformed number %r at offset %d", m.group(0), start)
                    continue
                yield self._token('NUMBER', value, start)
                continue
            if IDENT_START_RE.match(ch):
                j = self.i + 1
                while j < len(s) and (s[j].isalnum() or s[j] == '_'):
                    j += 1
                ident = s[self.i:j].upper()
                self.i = j
                typ = ident if ident in KEYWORDS else 'IDENT'
                yield self._token(typ, ident, start)
                continue
            if ch == '"':
                end = s.find('"', self.i + 1)
                if end < 0:
                    end = len(s)
                value = s[self.i + 1:end]
                tok = self._token('STRING', value, start)
                # strings may span lines; keep the line counter honest
                newlines = value.count('\n')
                if newlines:
                    self.line += newlines
                    self.line_start = self.i + 1 + value.rfind('\n') + 1
                self.i = end + 1
                yield tok
                continue
            two = s[self.i:self.i + 2]
            if two in ('<=', '>=', '<>'):
                yield self._token(OPERATORS[two], two, start)
                self.i += 2
                continue
            if ch in OPERATORS:
                yield self._token(OPERATORS[ch], ch, start)
                self.i += 1
                continue
            if ch in PUNCTUATION:
                yield self._token(PUNCTUATION[ch], ch, start)
                self.i += 1
                continue
            logger.debug("skipping unknown character %r at line %d", ch, self.line)
            self.i += 1


def tokenize(text):
    return list(Lexer(text).tokenize())
