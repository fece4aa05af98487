"""Tests for Code 128 encoding and the reportlab page layout."""

from __future__ import annotations

import pytest

from errors import (ArgumentError, DataLengthError, InvalidCharacterError,
                    InvalidCodeSetError, InvalidLayoutError, LayoutError)
from models import Layout, PSProperties
from symbology import Code128Encoder, PostScriptLayout


@pytest.fixture
def encoder():
    return Code128Encoder()


def test_encode_returns_symbol(encoder):
    symbol = encoder.encode("ABC123")
    assert symbol.text == "ABC123"
    assert symbol.codes
    symbol.release()
    assert symbol.codes == []


@pytest.mark.parametrize("text", ["", "X" * 21])
def test_encode_length_limits(encoder, text):
    with pytest.raises(DataLengthError):
        encoder.encode(text)


def test_encode_rejects_non_ascii(encoder):
    with pytest.raises(InvalidCharacterError):
        encoder.encode("café")


def test_encode_rejects_non_string(encoder):
    with pytest.raises(ArgumentError):
        encoder.encode(123)


@pytest.mark.parametrize(
    "code_set, text",
    [("C", "123"), ("C", "12AB"), ("A", "abc"), ("B", "\t")],
)
def test_code_set_mismatch(code_set, text):
    with pytest.raises(InvalidCodeSetError):
        Code128Encoder(code_set=code_set).encode(text)


def test_code_set_c_accepts_digit_pairs():
    assert Code128Encoder(code_set="C").encode("123456").text == "123456"


def test_unknown_code_set():
    with pytest.raises(ArgumentError):
        Code128Encoder(code_set="D")


def test_layout_produces_postscript(encoder):
    symbols = [encoder.encode("ABC123"), encoder.encode("XYZ999")]
    document = PostScriptLayout().layout(symbols, 2, PSProperties(), Layout(rows=1, cols=2))
    assert isinstance(document, str)
    assert document.startswith("%!PS")
    assert "%%BoundingBox" in document


def test_layout_grid_must_match_count(encoder):
    symbols = [encoder.encode("A"), encoder.encode("B")]
    with pytest.raises(InvalidLayoutError):
        PostScriptLayout().layout(symbols, 2, PSProperties(), Layout(rows=2, cols=2))


def test_layout_count_must_match_symbols(encoder):
    with pytest.raises(ArgumentError):
        PostScriptLayout().layout([encoder.encode("A")], 2, PSProperties(), Layout(rows=1, cols=2))


def test_layout_rejects_barcode_wider_than_column(encoder):
    props = PSProperties(column_width=5)
    with pytest.raises(LayoutError):
        PostScriptLayout().layout([encoder.encode("ABCDEFGHIJ")], 1, props, Layout(rows=1, cols=1))
