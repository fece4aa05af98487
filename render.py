"""Rasterize generated PostScript with one long-lived Ghostscript process."""
import logging
import os
import subprocess
import tempfile
from pathlib import Path
from typing import Callable, List, Optional, Union

import config
from errors import InterpreterFatal, RenderFailed, RenderFatal

logger = logging.getLogger(__name__)

STATUS_MARK = '@@render-status@@'


def ps_string(value: Union[str, Path]) -> str:
    """Quote a path as a PostScript string literal."""
    text = str(value)
    if os.sep != '/':
        text = text.replace(os.sep, '/')
    text = text.replace('\\', '\\\\').replace('(', '\\(').replace(')', '\\)')
    return f'({text})'


class GhostscriptInterpreter:
    """A ``gs`` process reading PostScript from stdin.

    Each ``run_string`` call is wrapped in ``stopped`` so a PostScript
    error only fails that call; gs then prints a status line which tells
    us the call is over and whether it succeeded. If gs goes away the
    call raises InterpreterFatal.
    """

    def __init__(self, gs_path: str = None, dpi: int = None, device: str = 'png16m'):
        self.gs_path = gs_path or config.GS_PATH
        self.args: List[str] = [
            self.gs_path, '-q', '-dNOPAUSE', '-dNOPROMPT', '-dNOSAFER',
            f'-sDEVICE={device}', f'-r{dpi or config.RENDER_DPI}',
            '-dGraphicsAlphaBits=4', '-dTextAlphaBits=4', '-',
        ]
        self._proc: Optional[subprocess.Popen] = None

    def start(self):
        logger.debug('starting %s', ' '.join(self.args))
        try:
            self._proc = subprocess.Popen(
                self.args, stdin=subprocess.PIPE, stdout=subprocess.PIPE, stderr=subprocess.STDOUT,
                text=True, encoding='latin-1', errors='replace')
        except OSError as e:
            raise InterpreterFatal(f'could not start {self.gs_path}: {e}') from e

    def run_string(self, source: str) -> int:
        proc = self._proc
        if proc is None or proc.poll() is not None:
            raise InterpreterFatal('Ghostscript is not running')
        program = (f'{{ {source}\n}} stopped '
                   f'{{ clear cleardictstack (\\n{STATUS_MARK} -1\\n) }} '
                   f'{{ (\\n{STATUS_MARK} 0\\n) }} ifelse print flush\n')
        try:
            proc.stdin.write(program)
            proc.stdin.flush()
        except OSError as e:
            raise InterpreterFatal(f'lost connection to Ghostscript: {e}') from e
        while True:
            line = proc.stdout.readline()
            if not line:
                raise InterpreterFatal(f'Ghostscript exited with status {proc.poll()}')
            line = line.strip()
            if line.startswith(STATUS_MARK):
                return int(line[len(STATUS_MARK):])
            if line:
                logger.debug('gs: %s', line)

    def exit(self):
        proc, self._proc = self._proc, None
        if proc is None:
            return
        try:
            proc.stdin.write('quit\n')
            proc.stdin.close()
        except OSError as e:
            logger.debug('Ghostscript stdin already closed: %s', e)
        try:
            proc.wait(timeout=config.GS_EXIT_TIMEOUT)
        except subprocess.TimeoutExpired:
            logger.warning('Ghostscript did not quit, terminating it')
            proc.terminate()
            try:
                proc.wait(timeout=config.GS_EXIT_TIMEOUT)
            except subprocess.TimeoutExpired:
                logger.warning('Ghostscript ignored terminate, killing it')
                proc.kill()
                proc.wait()
        proc.stdout.close()


def _temp_image() -> Path:
    fd, name = tempfile.mkstemp(prefix='preview-', suffix='.png')
    os.close(fd)
    return Path(name)


class RenderBackend:

    def __init__(self, interpreter_factory: Callable[[], GhostscriptInterpreter] = GhostscriptInterpreter,
                 new_image: Callable[[], Path] = None):
        self._factory = interpreter_factory
        self._new_image = new_image or _temp_image
        self._interpreter = None

    @property
    def started(self) -> bool:
        return self._interpreter is not None

    def ensure_started(self):
        if self._interpreter is not None:
            return
        interpreter = self._factory()
        try:
            interpreter.start()
        except InterpreterFatal as e:
            raise RenderFatal(str(e)) from e
        self._interpreter = interpreter
        logger.info('renderer started')

    def render(self, postscript_path: Union[str, Path]) -> Path:
        """Rasterize ``postscript_path`` into a new image file and return its path."""
        if self._interpreter is None:
            raise RenderFatal('renderer is not started')
        try:
            image = self._new_image()
        except OSError as e:
            raise RenderFailed(f'could not allocate an image file: {e}') from e
        # the instance is reused, so the page must be erased before drawing
        commands = [
            f'<< /OutputFile {ps_string(image)} >> setpagedevice',
            'erasepage',
            f'{ps_string(postscript_path)} run',
        ]
        try:
            for command in commands:
                code = self._interpreter.run_string(command)
                if code != 0:
                    image.unlink(missing_ok=True)
                    raise RenderFailed(f'Ghostscript failed ({code}) on: {command}')
        except InterpreterFatal as e:
            logger.error('Ghostscript raised a fatal error, shutting it down: %s', e)
            self.shutdown()
            image.unlink(missing_ok=True)
            raise RenderFatal(str(e)) from e
        logger.debug('rendered %s -> %s', postscript_path, image)
        return image

    def shutdown(self):
        interpreter, self._interpreter = self._interpreter, None
        if interpreter is not None:
            interpreter.exit()
            logger.info('renderer stopped')
