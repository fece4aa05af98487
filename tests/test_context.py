"""Tests for the per-process preview context."""

from __future__ import annotations

import pytest

import context
from conftest import CountingEncoder, InterpreterFactory, RecordingComposer
from errors import RenderFatal
from models import BarcodeRequest, Layout, PSProperties


def test_only_one_context_per_process(preview_context, tmp_path):
    with pytest.raises(RuntimeError):
        context.open_context(base_dir=tmp_path)


def test_close_removes_scope_and_stops_renderer(preview_context, interpreter_factory):
    directory = preview_context.scope.directory
    preview_context.render()

    assert preview_context.close() == []
    assert preview_context.closed
    assert not directory.exists()
    assert interpreter_factory.created[0].exit_calls == 1
    assert context._active is None
    assert preview_context.close() == []


def test_build_failure_removes_scope(tmp_path, monkeypatch):
    def broken_dispatch(launcher):
        raise RuntimeError("no dispatcher")

    monkeypatch.setattr(context, "PrintDispatch", broken_dispatch)
    with pytest.raises(RuntimeError, match="no dispatcher"):
        context.open_context(encoder=CountingEncoder(), composer=RecordingComposer(), base_dir=tmp_path)

    assert list(tmp_path.iterdir()) == []
    assert context._active is None


def test_preview_generates_then_renders(preview_context):
    image = preview_context.preview(
        [BarcodeRequest(text="ABC123", quantity=2)], PSProperties(), Layout(rows=1, cols=2))

    assert image.parent == preview_context.scope.directory
    assert "ABC123 ABC123" in image.read_text()


def test_render_restarts_after_fatal_error(tmp_path, launcher):
    factory = InterpreterFactory(fatal_on="crash.ps")
    ctx = context.open_context(launcher=launcher, encoder=CountingEncoder(), composer=RecordingComposer(),
                               interpreter_factory=factory, base_dir=tmp_path)
    try:
        crash = ctx.scope.directory / "crash.ps"
        crash.write_text("%!PS\n")
        with pytest.raises(RenderFatal):
            ctx.render(crash)
        ctx.render()
        assert len(factory.created) == 2
    finally:
        ctx.close()


def test_printer_passthrough(preview_context, launcher):
    assert preview_context.list_printers() == ["office", "labels"]
    preview_context.print_file("labels")
    assert launcher.launched == [["lp", "-d", "labels", str(preview_context.scope.path)]]
