"""The objects a running preview service shares, built once per process.

``open_context`` creates the temporary scope first and tears it down again
if anything after it fails, then registers ``close`` with atexit so the
scope and the interpreter are released however the process ends.
"""
import atexit
import logging
from functools import partial
from pathlib import Path
from typing import List, Optional, Sequence, Union

from errors import ResourceError
from models import BarcodeRequest, Layout, PSProperties
from pipeline import GenerationPipeline
from printer import PrintDispatch, ProcessLauncher
from render import GhostscriptInterpreter, RenderBackend
from scope import ResourceScope
from symbology import Code128Encoder, PostScriptLayout

logger = logging.getLogger(__name__)

_active: Optional['PreviewContext'] = None


class PreviewContext:

    def __init__(self, scope: ResourceScope, pipeline: GenerationPipeline,
                 renderer: RenderBackend, dispatcher: PrintDispatch):
        self.scope = scope
        self.pipeline = pipeline
        self.renderer = renderer
        self.dispatcher = dispatcher
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def generate(self, requests: Sequence[BarcodeRequest], props: PSProperties, layout: Layout) -> Path:
        return self.pipeline.generate(requests, props, layout, self.scope)

    def render(self, postscript_path: Union[str, Path, None] = None) -> Path:
        # restarts the interpreter if a fatal error took it down
        self.renderer.ensure_started()
        return self.renderer.render(postscript_path or self.scope.path)

    def preview(self, requests: Sequence[BarcodeRequest], props: PSProperties, layout: Layout) -> Path:
        return self.render(self.generate(requests, props, layout))

    def list_printers(self) -> List[str]:
        return self.dispatcher.list_printers()

    def print_file(self, printer_name: str, file_path: Union[str, Path, None] = None) -> None:
        self.dispatcher.print_file(file_path or self.scope.path, printer_name)

    def close(self) -> List[ResourceError]:
        global _active
        if self._closed:
            return []
        self._closed = True
        try:
            self.renderer.shutdown()
        finally:
            problems = self.scope.close()
            atexit.unregister(self.close)
            if _active is self:
                _active = None
        return problems

    def __enter__(self) -> 'PreviewContext':
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


def open_context(gs_path: str = None, launcher: ProcessLauncher = None, encoder=None, composer=None,
                 interpreter_factory=None, base_dir: Union[str, Path, None] = None) -> PreviewContext:
    global _active
    if _active is not None:
        raise RuntimeError('a preview context is already open in this process')
    scope = ResourceScope.open(base_dir=base_dir)
    try:
        pipeline = GenerationPipeline(encoder or Code128Encoder(), composer or PostScriptLayout())
        renderer = RenderBackend(interpreter_factory or partial(GhostscriptInterpreter, gs_path),
                                 new_image=scope.new_image_path)
        dispatcher = PrintDispatch(launcher)
    except BaseException:
        scope.close()
        raise
    ctx = PreviewContext(scope, pipeline, renderer, dispatcher)
    atexit.register(ctx.close)
    _active = ctx
    logger.info('preview context ready in %s', scope.directory)
    return ctx
