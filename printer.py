import locale, logging, subprocess, sys
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional, Sequence, Union
import config
from errors import LaunchFailed, NoPrintersFound, ReadFailed, SubprocessFailed

logger = logging.getLogger(__name__)

POSIX_LIST_CMD = ['lpstat', '-e']
WINDOWS_LIST_CMD = ['wmic', 'printer', 'get', 'name']


def _decode(raw: bytes) -> str:
    # wmic writes UTF-16 when its output is redirected
    if raw.startswith((b'\xff\xfe', b'\xfe\xff')):
        return raw.decode('utf-16', errors='replace')
    return raw.decode(locale.getpreferredencoding(False), errors='replace')


def parse_printer_lines(text: str) -> List[str]:
    """`lpstat -e`: one destination per line."""
    return [line.strip() for line in text.splitlines() if line.strip()]


def parse_printer_table(text: str) -> List[str]:
    """`wmic printer get name`: a "Name" header line, then one padded name per line."""
    lines = [line.strip() for line in text.splitlines()]
    lines = [line for line in lines if line]
    return lines[1:]


class ProcessLauncher(ABC):
    list_command: Sequence[str] = ()

    @abstractmethod
    def print_command(self, file_path: str, printer_name: str) -> List[str]:
        """Command line submitting `file_path` to `printer_name`."""

    @abstractmethod
    def parse_printers(self, text: str) -> List[str]:
        """Turn status command output into printer names."""

    @abstractmethod
    def launch(self, argv: Sequence[str], timeout: Optional[float] = None) -> None:
        """Start a print submission; raise LaunchFailed if it could not be started."""

    def capture(self, argv: Sequence[str], limit: int, timeout: Optional[float] = None) -> str:
        """Run a read-only command; return the complete lines in the first `limit` bytes of stdout."""
        logger.debug('running %s', ' '.join(argv))
        try:
            proc = subprocess.Popen(list(argv), stdin=subprocess.DEVNULL, stdout=subprocess.PIPE,
                                    stderr=subprocess.DEVNULL)
        except OSError as e:
            raise SubprocessFailed(f'could not run {argv[0]}: {e}') from e
        try:
            out, _ = proc.communicate(timeout=timeout)
        except subprocess.TimeoutExpired as e:
            proc.kill()
            proc.communicate()
            raise SubprocessFailed(f'{argv[0]} did not finish within {timeout}s') from e
        except OSError as e:
            proc.kill()
            proc.wait()
            raise ReadFailed(f'could not read output of {argv[0]}: {e}') from e
        if proc.returncode != 0:
            if not out.strip():
                raise SubprocessFailed(f'{argv[0]} exited with status {proc.returncode}')
            logger.debug('%s exited with status %s', argv[0], proc.returncode)
        if len(out) <= limit:
            return _decode(out)
        logger.warning('%s output exceeded %d bytes, truncating', argv[0], limit)
        # decode before cutting: a UTF-16 newline is two bytes
        text = _decode(out[:limit])
        end = text.rfind('\n')
        if end < 0:
            raise ReadFailed(f'first line of {argv[0]} output is longer than {limit} bytes')
        return text[:end + 1]


class PosixLauncher(ProcessLauncher):
    list_command = POSIX_LIST_CMD

    def print_command(self, file_path: str, printer_name: str) -> List[str]:
        return ['lp', '-d', printer_name, file_path]

    def parse_printers(self, text: str) -> List[str]:
        return parse_printer_lines(text)

    def launch(self, argv: Sequence[str], timeout: Optional[float] = None) -> None:
        # fire and forget: lp only queues the job, we don't wait for it
        try:
            subprocess.Popen(list(argv), stdin=subprocess.DEVNULL, stdout=subprocess.DEVNULL,
                             stderr=subprocess.DEVNULL, start_new_session=True)
        except OSError as e:
            raise LaunchFailed(f'could not run {argv[0]}: {e}') from e


class WindowsLauncher(ProcessLauncher):
    list_command = WINDOWS_LIST_CMD

    def __init__(self, gs_path: str = None):
        self.gs_path = gs_path or config.GS_PATH

    def print_command(self, file_path: str, printer_name: str) -> List[str]:
        # Ghostscript's mswinpr2 device sends the page to the named Windows printer
        return [self.gs_path, '-dBATCH', '-dNOPAUSE', '-dNumCopies=1', '-sDEVICE=mswinpr2',
                f'-sOutputFile=%printer%{printer_name}', file_path]

    def parse_printers(self, text: str) -> List[str]:
        return parse_printer_table(text)

    def launch(self, argv: Sequence[str], timeout: Optional[float] = None) -> None:
        try:
            proc = subprocess.run(list(argv), capture_output=True, text=True, timeout=timeout)
        except (OSError, subprocess.TimeoutExpired) as e:
            raise LaunchFailed(f'could not run {argv[0]}: {e}') from e
        if proc.returncode != 0:
            out = (proc.stdout or '') + (proc.stderr or '')
            raise LaunchFailed(f'{argv[0]} failed (rc={proc.returncode}): {out.strip()}')


def default_launcher() -> ProcessLauncher:
    if sys.platform == 'win32':
        return WindowsLauncher()
    return PosixLauncher()


class PrintDispatch:

    def __init__(self, launcher: ProcessLauncher = None, bufsize: int = None, timeout: float = None):
        self.launcher = launcher or default_launcher()
        self.bufsize = bufsize or config.PRINTER_LIST_BUFSIZE
        self.timeout = timeout if timeout is not None else config.SUBPROCESS_TIMEOUT

    @property
    def list_command(self) -> str:
        return ' '.join(self.launcher.list_command)

    def list_printers(self) -> List[str]:
        text = self.launcher.capture(self.launcher.list_command, self.bufsize, timeout=self.timeout)
        printers = self.launcher.parse_printers(text)
        if not printers:
            raise NoPrintersFound(f'no printers reported by {self.list_command}')
        return printers

    def print_file(self, file_path: Union[str, Path], printer_name: str) -> None:
        if not printer_name:
            raise LaunchFailed('no printer selected')
        argv = self.launcher.print_command(str(file_path), printer_name)
        logger.info('sending %s to %s', file_path, printer_name)
        self.launcher.launch(argv, timeout=self.timeout)
