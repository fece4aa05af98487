"""Barcode requests -> encoded symbols -> PostScript -> backing file."""
import logging
import os
from pathlib import Path
from typing import BinaryIO, List, Sequence

from errors import FileResetFailed, FileWriteFailed, FlushFailed, LayoutError
from models import BarcodeRequest, Layout, PSProperties
from scope import ResourceScope

logger = logging.getLogger(__name__)


def expand_requests(requests: Sequence[BarcodeRequest]) -> List[str]:
    """One entry per barcode instance; empty text and zero quantities contribute nothing."""
    texts = []
    for request in requests:
        if request.text and request.quantity > 0:
            texts.extend([request.text] * request.quantity)
    return texts


class SymbolBatch:
    """Symbols encoded during one generation call.

    Leaving the ``with`` block releases every symbol, whether the block
    finished or raised half way through encoding.
    """

    def __init__(self):
        self._symbols = []

    def add(self, symbol) -> None:
        self._symbols.append(symbol)

    def symbols(self) -> list:
        return list(self._symbols)

    def __len__(self) -> int:
        return len(self._symbols)

    def __enter__(self) -> 'SymbolBatch':
        return self

    def __exit__(self, exc_type, exc, tb):
        for symbol in self._symbols:
            release = getattr(symbol, 'release', None)
            if release is not None:
                release()
        self._symbols.clear()


class GenerationPipeline:

    def __init__(self, encoder, composer):
        self.encoder = encoder
        self.composer = composer

    def generate(self, requests: Sequence[BarcodeRequest], props: PSProperties,
                 layout: Layout, scope: ResourceScope) -> Path:
        texts = expand_requests(requests)
        with SymbolBatch() as batch:
            for text in texts:
                batch.add(self.encoder.encode(text))
            document = self.composer.layout(batch.symbols(), len(batch), props, layout)
        try:
            data = document.encode('latin-1')
        except UnicodeEncodeError as exc:
            raise LayoutError(f'PostScript output is not 8-bit text: {exc}') from exc
        self._persist(scope, data)
        logger.info('generated %d barcodes (%d bytes) into %s', len(texts), len(data), scope.path)
        return scope.path

    @staticmethod
    def _persist(scope: ResourceScope, data: bytes) -> None:
        # the backing file is only ever replaced by a fully synced staging file
        try:
            handle: BinaryIO = scope.open_staging()
        except OSError as exc:
            raise FileResetFailed(f'could not prepare output file: {exc}') from exc
        try:
            try:
                handle.write(data)
            except OSError as exc:
                raise FileWriteFailed(f'could not write PostScript: {exc}') from exc
            try:
                handle.flush()
                os.fsync(handle.fileno())
            except OSError as exc:
                raise FlushFailed(f'could not flush PostScript: {exc}') from exc
            try:
                scope.commit_staging(handle)
            except OSError as exc:
                raise FileWriteFailed(f'could not replace {scope.path}: {exc}') from exc
        except BaseException:
            scope.discard_staging(handle)
            raise
