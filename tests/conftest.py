"""Shared fakes for the preview core.

    - CountingEncoder: records encode calls and how many symbols are still alive
    - RecordingComposer: checks rows x cols like the real layout, emits tiny PostScript
    - FakeInterpreter: keeps a page buffer the way a reused gs instance does
    - ScriptedLauncher: canned status output, records print submissions
"""

from __future__ import annotations

import re
import weakref
from pathlib import Path
from typing import List, Optional

import pytest

import context
from errors import InterpreterFatal, InvalidLayoutError
from printer import PosixLauncher
from scope import ResourceScope


class CountingSymbol:

    def __init__(self, owner: "CountingEncoder", text: str) -> None:
        self.owner = owner
        self.text = text
        self.released = False

    def release(self) -> None:
        if not self.released:
            self.released = True
            self.owner.live -= 1


class CountingEncoder:

    def __init__(self, fail_at: Optional[int] = None, error: Optional[Exception] = None) -> None:
        self.fail_at = fail_at
        self.error = error
        self.calls: List[str] = []
        self.live = 0
        self.refs: List[weakref.ref] = []

    def encode(self, text: str) -> CountingSymbol:
        self.calls.append(text)
        if self.fail_at is not None and len(self.calls) == self.fail_at:
            raise self.error
        symbol = CountingSymbol(self, text)
        self.live += 1
        self.refs.append(weakref.ref(symbol))
        return symbol


class RecordingComposer:

    def __init__(self, error: Optional[Exception] = None) -> None:
        self.error = error
        self.calls: list = []

    def layout(self, symbols, count, props, layout) -> str:
        texts = [s.text for s in symbols]
        self.calls.append({"texts": texts, "count": count, "rows": layout.rows, "cols": layout.cols})
        if layout.rows * layout.cols != count:
            raise InvalidLayoutError(f"{layout.rows}x{layout.cols} != {count}")
        if self.error is not None:
            raise self.error
        return "%!PS-Adobe-3.0\n% " + " ".join(texts) + "\nshowpage\n"


_OUTPUT_RE = re.compile(r"^<< /OutputFile \((.*)\) >> setpagedevice$")
_RUN_RE = re.compile(r"^\((.*)\) run$")


class FakeInterpreter:
    """Page state survives between runs unless erasepage is issued."""

    def __init__(self, fatal_on: Optional[str] = None, error_on: Optional[str] = None) -> None:
        self.fatal_on = fatal_on
        self.error_on = error_on
        self.commands: List[str] = []
        self.page: List[str] = []
        self.output: Optional[str] = None
        self.started = False
        self.exit_calls = 0

    def start(self) -> None:
        self.started = True

    def run_string(self, source: str) -> int:
        self.commands.append(source)
        if self.fatal_on and self.fatal_on in source:
            raise InterpreterFatal("interpreter crashed")
        if self.error_on and self.error_on in source:
            return -1
        match = _OUTPUT_RE.match(source)
        if match:
            self.output = match.group(1)
        elif source == "erasepage":
            self.page = []
        else:
            match = _RUN_RE.match(source)
            if match:
                self.page.append(Path(match.group(1)).read_text())
                Path(self.output).write_text("".join(self.page))
        return 0

    def exit(self) -> None:
        self.exit_calls += 1


class InterpreterFactory:

    def __init__(self, **kwargs) -> None:
        self.kwargs = kwargs
        self.created: List[FakeInterpreter] = []

    def __call__(self) -> FakeInterpreter:
        interp = FakeInterpreter(**self.kwargs)
        self.created.append(interp)
        return interp


class ScriptedLauncher(PosixLauncher):

    def __init__(self, output: str = "", error: Optional[Exception] = None) -> None:
        self.output = output
        self.error = error
        self.captured: list = []
        self.launched: list = []

    def capture(self, argv, limit, timeout=None) -> str:
        self.captured.append(list(argv))
        if self.error is not None:
            raise self.error
        return self.output

    def launch(self, argv, timeout=None) -> None:
        self.launched.append(list(argv))


@pytest.fixture
def scope(tmp_path):
    with ResourceScope.open(base_dir=tmp_path) as s:
        yield s


@pytest.fixture
def interpreter_factory():
    return InterpreterFactory()


@pytest.fixture
def launcher():
    return ScriptedLauncher("office\nlabels\n")


@pytest.fixture
def preview_context(tmp_path, interpreter_factory, launcher):
    ctx = context.open_context(
        launcher=launcher,
        encoder=CountingEncoder(),
        composer=RecordingComposer(),
        interpreter_factory=interpreter_factory,
        base_dir=tmp_path,
    )
    yield ctx
    ctx.close()
