import re
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List, Literal
import config
from errors import InvalidEntryError

Unit = Literal['p', 'mm', 'cm', 'in']
UNITS = ('p', 'mm', 'cm', 'in')

# digits with at most one decimal point, no sign or exponent
_DECIMAL_RE = re.compile(r'^(\d+\.?\d*|\.\d+)$')


def parse_entry_number(text: str) -> float:
    """Parse the text of a numeric form entry, raising InvalidEntryError if it is not a decimal literal."""
    stripped = (text or '').strip()
    if not _DECIMAL_RE.match(stripped):
        raise InvalidEntryError(f'not a decimal number: {text!r}')
    return float(stripped)


class BarcodeRequest(BaseModel):
    text: str = Field('', max_length=config.BARCODE_ENTRY_MAX_LENGTH)
    quantity: int = Field(1, ge=0)


class PSProperties(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    units: Unit = config.DEFAULT_UNIT
    lmargin: float = Field(10.0, ge=0)
    rmargin: float = Field(10.0, ge=0)
    tmargin: float = Field(10.0, ge=0)
    bmargin: float = Field(10.0, ge=0)
    bar_width: float = Field(0.33, ge=0)
    bar_height: float = Field(15.0, ge=0)
    padding: float = Field(5.0, ge=0)
    column_width: float = Field(60.0, ge=0)
    fontsize: float = Field(10.0, ge=0)

    def set_from_text(self, name: str, text: str) -> None:
        """Update one field from form text. On invalid input the previous value is kept."""
        if name == 'units':
            unit = (text or '').strip()
            if unit not in UNITS:
                raise InvalidEntryError(f'unknown unit: {text!r}')
            self.units = unit
            return
        if name not in NUMERIC_PROPERTIES:
            raise KeyError(name)
        setattr(self, name, parse_entry_number(text))


NUMERIC_PROPERTIES = tuple(n for n in PSProperties.model_fields if n != 'units')


class Layout(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    rows: int = Field(config.DEFAULT_ROWS, ge=1)
    cols: int = Field(config.DEFAULT_COLS, ge=1)

    @property
    def cells(self) -> int:
        return self.rows * self.cols

    def set_from_text(self, name: str, text: str) -> None:
        if name not in ('rows', 'cols'):
            raise KeyError(name)
        value = int(parse_entry_number(text))
        if value < 1:
            raise InvalidEntryError(f'{name} must be at least 1: {text!r}')
        setattr(self, name, value)


class GenerateRequest(BaseModel):
    barcodes: List[BarcodeRequest] = Field(default_factory=list, max_length=config.MAX_BARCODES)
    properties: Optional[PSProperties] = None
    layout: Optional[Layout] = None


class PrintRequest(GenerateRequest):
    printer: str


class SettingUpdate(BaseModel):
    value: str
