"""Process-lifetime temporary directory holding the generated PostScript.

The scope owns one directory and one backing file inside it. Generation
never writes the backing file in place: it writes a staging file next to
it and swaps it in with ``os.replace``, so readers only ever see a
complete document. Render outputs are allocated inside the same directory
and disappear with it.
"""
import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import BinaryIO, List, Union

import config
from errors import CloseFailed, RemoveFailed, ResourceError, TempCreationFailed

logger = logging.getLogger(__name__)

BACKING_NAME = 'barcodes.ps'


class ResourceScope:

    def __init__(self, directory: Path):
        self._directory = directory
        self._path = directory / BACKING_NAME
        self._staging: List[BinaryIO] = []
        self._closed = False

    @classmethod
    def open(cls, prefix: str = None, base_dir: Union[str, Path, None] = None) -> 'ResourceScope':
        try:
            directory = Path(tempfile.mkdtemp(prefix=prefix or config.TEMP_PREFIX, dir=base_dir))
        except OSError as exc:
            raise TempCreationFailed(f'could not create temporary directory: {exc}') from exc
        scope = cls(directory.resolve())
        try:
            scope._path.touch(exist_ok=False)
        except OSError as exc:
            shutil.rmtree(directory, ignore_errors=True)
            raise TempCreationFailed(f'could not create {scope._path}: {exc}') from exc
        logger.debug('opened resource scope %s', directory)
        return scope

    @property
    def path(self) -> Path:
        return self._path

    @property
    def directory(self) -> Path:
        return self._directory

    @property
    def closed(self) -> bool:
        return self._closed

    def open_staging(self) -> BinaryIO:
        handle = tempfile.NamedTemporaryFile(
            mode='wb', dir=self._directory, prefix='.staging-', suffix='.ps', delete=False)
        self._staging.append(handle)
        return handle

    def commit_staging(self, handle: BinaryIO) -> Path:
        """Close a staging file and move it over the backing file."""
        self._release(handle)
        handle.close()
        os.replace(handle.name, self._path)
        return self._path

    def discard_staging(self, handle: BinaryIO) -> None:
        # leftovers are swept up by close()
        self._release(handle)
        try:
            handle.close()
            Path(handle.name).unlink(missing_ok=True)
        except OSError as exc:
            logger.warning('could not discard staging file %s: %s', handle.name, exc)

    def new_image_path(self, suffix: str = '.png') -> Path:
        """Reserve a fresh, empty file inside the scope and return its path."""
        fd, name = tempfile.mkstemp(prefix='preview-', suffix=suffix, dir=self._directory)
        os.close(fd)
        return Path(name)

    def _release(self, handle: BinaryIO) -> None:
        if handle in self._staging:
            self._staging.remove(handle)

    def close(self) -> List[ResourceError]:
        """Release everything the scope owns.

        Teardown carries on past failures; the problems are logged and
        returned instead of raised. Calling close twice is a no-op.
        """
        if self._closed:
            return []
        self._closed = True
        problems: List[ResourceError] = []

        for handle in list(self._staging):
            try:
                handle.close()
            except OSError as exc:
                problems.append(CloseFailed(f'could not close {handle.name}: {exc}'))
        self._staging.clear()

        if self._directory.exists():
            for entry in self._directory.iterdir():
                try:
                    if entry.is_dir() and not entry.is_symlink():
                        shutil.rmtree(entry)
                    else:
                        entry.unlink()
                except OSError as exc:
                    problems.append(RemoveFailed(f'could not remove {entry}: {exc}'))
            try:
                self._directory.rmdir()
            except OSError as exc:
                problems.append(RemoveFailed(f'could not remove {self._directory}: {exc}'))

        for problem in problems:
            logger.warning('%s: %s', problem.code, problem)
        return problems

    def __enter__(self) -> 'ResourceScope':
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def __repr__(self):
        state = 'closed' if self._closed else 'open'
        return f'<ResourceScope {self._directory} {state}>'
