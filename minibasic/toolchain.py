import logging
import os
import subprocess
import tempfile

from .errors import ToolchainError

logger = logging.getLogger(__name__)

DEFAULT_CC = 'cc'
CFLAGS = ['-std=c99', '-O2']
LIBS = ['-lm']


def default_cc():
    return os.environ.get('CC') or DEFAULT_CC


def build_executable(c_source, output, cc=None, keep_source=False):
    """Write ``c_source`` to an intermediate .c file and build ``output`` from it.

    Returns the path of the intermediate file when ``keep_source`` is set,
    otherwise None.
    """
    cc = cc or default_cc()
    out_dir = os.path.dirname(os.path.abspath(output))
    try:
        fd, src = tempfile.mkstemp(suffix='.c', prefix='minibasic_', dir=out_dir)
        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            f.write(c_source)
    except OSError as e:
        raise ToolchainError(f"cannot write intermediate C file: {e}") from e

    cmd = [cc] + CFLAGS + [src, '-o', output] + LIBS
    logger.info("running %s", ' '.join(cmd))
    try:
        result = subprocess.run(cmd, capture_output=True, text=True)
    except OSError as e:
        os.remove(src)
        raise ToolchainError(f"cannot run C compiler {cc!r}: {e}") from e

    if result.returncode != 0:
        logger.debug("compiler stderr:\n%s", result.stderr)
        raise ToolchainError(
            f"C compiler exited with status {result.returncode} (source kept at {src})",
            stderr=result.stderr,
        )
    if keep_source:
        return src
    os.remove(src)
    return None
