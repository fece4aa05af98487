"""Code 128 encoding and PostScript page layout on top of reportlab.

``Code128Encoder.encode`` turns one string into an ``EncodedSymbol``;
``PostScriptLayout.layout`` arranges a batch of symbols in a rows x cols
grid and returns the page as PostScript text.
"""
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from reportlab.graphics import renderPS
from reportlab.graphics.barcode import code128, createBarcodeDrawing
from reportlab.graphics.shapes import Drawing, Group
from reportlab.lib.units import cm, inch, mm

import config
from errors import (ArgumentError, DataLengthError, InvalidCharacterError,
                    InvalidCodeSetError, InvalidLayoutError, LayoutError)
from models import Layout, PSProperties

logger = logging.getLogger(__name__)

UNIT_SCALE = {'p': 1.0, 'mm': mm, 'cm': cm, 'in': inch}


@dataclass
class EncodedSymbol:
    text: str
    codes: List[str] = field(default_factory=list)

    def release(self) -> None:
        self.codes = []


def _fits_code_set(text: str, code_set: str) -> bool:
    if code_set == 'A':
        return all(ord(c) < 96 for c in text)
    if code_set == 'B':
        return all(31 < ord(c) < 128 for c in text)
    if code_set == 'C':
        return text.isdigit() and len(text) % 2 == 0
    return False


class Code128Encoder:
    """Validate and encode barcode text as Code 128.

    ``code_set`` restricts input to a single Code 128 character set
    ('A', 'B' or 'C'); the default accepts any 7-bit ASCII text.
    """

    def __init__(self, max_length: int = config.BARCODE_ENTRY_MAX_LENGTH, code_set: Optional[str] = None):
        if code_set not in (None, 'A', 'B', 'C'):
            raise ArgumentError(f'unknown Code 128 code set: {code_set!r}')
        self.max_length = max_length
        self.code_set = code_set

    def encode(self, text: str) -> EncodedSymbol:
        if not isinstance(text, str):
            raise ArgumentError(f'barcode text must be a string, got {type(text).__name__}')
        if not 0 < len(text) <= self.max_length:
            raise DataLengthError(f'barcode text must be 1-{self.max_length} characters, got {len(text)}')
        bad = [c for c in text if ord(c) > 127]
        if bad:
            raise InvalidCharacterError(f'invalid character {bad[0]!r} in {text!r}')
        if self.code_set and not _fits_code_set(text, self.code_set):
            raise InvalidCodeSetError(f'{text!r} cannot be encoded in code set {self.code_set}')

        symbol = code128.Code128(text, humanReadable=False)
        symbol.validate()
        if not symbol.valid:
            raise InvalidCharacterError(f'{text!r} is not valid Code 128 data')
        symbol.encode()
        return EncodedSymbol(text, list(symbol.encoded))


class PostScriptLayout:
    """Lay symbols out row by row, left to right, on a single page."""

    def layout(self, symbols: Sequence[EncodedSymbol], count: int, props: PSProperties, layout: Layout) -> str:
        if count != len(symbols):
            raise ArgumentError(f'expected {count} symbols, got {len(symbols)}')
        if layout.cells != count:
            raise InvalidLayoutError(
                f'{layout.rows} rows x {layout.cols} columns does not fit {count} barcodes')

        unit = UNIT_SCALE[props.units]
        column_width = props.column_width * unit
        padding = props.padding * unit
        drawings = [self._draw_symbol(symbol, props, unit) for symbol in symbols]

        widest = max((cell.width for cell in drawings), default=0)
        if widest > column_width:
            raise LayoutError(f'barcode is {widest / unit:.2f}{props.units} wide, '
                              f'column is {props.column_width}{props.units}')
        row_height = max((cell.height for cell in drawings), default=0)

        width = (props.lmargin + props.rmargin) * unit + layout.cols * column_width
        height = ((props.tmargin + props.bmargin) * unit
                  + layout.rows * row_height + (layout.rows - 1) * padding)
        page = Drawing(width, height)
        for index, cell in enumerate(drawings):
            row, col = divmod(index, layout.cols)
            x = props.lmargin * unit + col * column_width
            y = height - props.tmargin * unit - (row + 1) * row_height - row * padding
            page.add(Group(cell, transform=(1, 0, 0, 1, x, y)))

        logger.debug('laid out %d barcodes on a %.1fx%.1fpt page', count, width, height)
        document = renderPS.drawToString(page)
        if isinstance(document, bytes):
            document = document.decode('latin-1')
        return document

    @staticmethod
    def _draw_symbol(symbol: EncodedSymbol, props: PSProperties, unit: float) -> Drawing:
        try:
            return createBarcodeDrawing(
                'Code128',
                value=symbol.text,
                barWidth=props.bar_width * unit,
                barHeight=props.bar_height * unit,
                humanReadable=True,
                fontSize=props.fontsize,
            )
        except ValueError as exc:
            raise LayoutError(f'could not draw {symbol.text!r}: {exc}') from exc
