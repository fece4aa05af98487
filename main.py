import threading
from contextlib import asynccontextmanager
from typing import Callable
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, FileResponse
from fastapi.middleware.cors import CORSMiddleware
from starlette.background import BackgroundTask
import config, models, context
from errors import (PreviewError, DataLengthError, InvalidCharacterError, InvalidCodeSetError, ArgumentError,
                    InvalidLayoutError, LayoutError, FileResetFailed, FileWriteFailed, FlushFailed,
                    PipelineError, RenderFailed, RenderFatal, RenderError, NoPrintersFound, SubprocessFailed,
                    ReadFailed, LaunchFailed, DispatchError, InvalidEntryError)

# user-facing text for each error kind, most specific class first
HINTS = {
    DataLengthError: 'INTERNAL ERROR: Invalid text length',
    InvalidCodeSetError: 'INTERNAL ERROR: Invalid Code-128 code set',
    ArgumentError: 'INTERNAL ERROR: Argument error',
    InvalidCharacterError: 'Invalid character: Text includes an invalid character - please remove before regenerating',
    InvalidLayoutError: 'Invalid layout: Number of rows and columns does not match the number of barcodes',
    LayoutError: 'Invalid layout: The barcodes do not fit the page settings',
    FileResetFailed: 'INTERNAL ERROR: Could not reset file contents - no PostScript written',
    FileWriteFailed: 'INTERNAL ERROR: Could not write to file - no PostScript written',
    FlushFailed: 'INTERNAL ERROR: Could not flush output - printed barcodes may be clipped',
    RenderFailed: 'ERROR: The print preview could not be rendered',
    RenderFatal: 'ERROR: The renderer stopped unexpectedly - it will be restarted on the next preview',
    NoPrintersFound: 'No printers found - check the output of {command}',
    SubprocessFailed: 'ERROR: Could not get list of printers - check the output of {command}',
    ReadFailed: 'ERROR: Could not get list of printers - check the output of {command}',
    LaunchFailed: 'ERROR: Could not send the barcodes to the printer',
    InvalidEntryError: 'Invalid value: Enter a number such as 12 or 12.5',
}


def hint_for(exc: Exception, command: str = '') -> str:
    for cls in type(exc).__mro__:
        if cls in HINTS:
            return HINTS[cls].format(command=command)
    return f'UNKNOWN ERROR: Received unknown error: {exc}'


def create_app(context_factory: Callable[[], context.PreviewContext] = context.open_context) -> FastAPI:

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        config.setup_logging()
        app.state.ctx = context_factory()
        app.state.properties = models.PSProperties()
        app.state.layout = models.Layout()
        # sync endpoints run on a thread pool; the scope and interpreter are shared
        app.state.lock = threading.Lock()
        try:
            yield
        finally:
            app.state.ctx.close()

    app = FastAPI(title="Barcode Print Preview", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # change in production
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def require_token(request: Request):
        token = request.headers.get('X-API-Token') or request.query_params.get('token')
        if token != config.API_TOKEN:
            raise HTTPException(status_code=401, detail='unauthorized')

    def fail(status: int, exc: Exception, command: str = ''):
        code = getattr(exc, 'code', 'error')
        raise HTTPException(status_code=status, detail={'code': code, 'hint': hint_for(exc, command), 'message': str(exc)})

    def generate(request: Request, body: models.GenerateRequest):
        props = body.properties or request.app.state.properties
        layout = body.layout or request.app.state.layout
        try:
            return request.app.state.ctx.generate(body.barcodes, props, layout)
        except PipelineError as e:
            fail(422, e)

    @app.get('/printers')
    def api_printers(request: Request):
        require_token(request)
        ctx = request.app.state.ctx
        with request.app.state.lock:
            try:
                printers = ctx.list_printers()
            except NoPrintersFound as e:
                fail(404, e, ctx.dispatcher.list_command)
            except DispatchError as e:
                fail(502, e, ctx.dispatcher.list_command)
        return JSONResponse({'printers': printers})

    @app.get('/settings')
    def api_settings(request: Request):
        require_token(request)
        return JSONResponse({'properties': request.app.state.properties.model_dump(),
                             'layout': request.app.state.layout.model_dump()})

    @app.put('/settings/{name}')
    def api_update_setting(request: Request, name: str, body: models.SettingUpdate):
        require_token(request)
        state = request.app.state
        target = state.layout if name in ('rows', 'cols') else state.properties
        with state.lock:
            try:
                target.set_from_text(name, body.value)
            except KeyError:
                raise HTTPException(status_code=404, detail=f'unknown setting: {name}')
            except ValueError as e:
                # InvalidEntryError and pydantic's ValidationError; the old value is kept either way
                fail(400, e if isinstance(e, InvalidEntryError) else InvalidEntryError(str(e)))
        return JSONResponse({name: getattr(target, name)})

    @app.post('/generate')
    def api_generate(request: Request, body: models.GenerateRequest):
        require_token(request)
        with request.app.state.lock:
            path = generate(request, body)
        return JSONResponse({'path': str(path)})

    @app.post('/preview')
    def api_preview(request: Request, body: models.GenerateRequest):
        require_token(request)
        ctx = request.app.state.ctx
        with request.app.state.lock:
            path = generate(request, body)
            try:
                image = ctx.render(path)
            except RenderError as e:
                fail(500, e)
        return FileResponse(image, media_type='image/png', background=BackgroundTask(image.unlink, missing_ok=True))

    @app.post('/print')
    def api_print(request: Request, body: models.PrintRequest):
        require_token(request)
        ctx = request.app.state.ctx
        with request.app.state.lock:
            path = generate(request, body)
            try:
                ctx.print_file(body.printer, path)
            except DispatchError as e:
                fail(502, e)
        return JSONResponse({'status': 'submitted', 'printer': body.printer, 'path': str(path)})

    @app.exception_handler(PreviewError)
    async def preview_error_handler(request: Request, exc: PreviewError):
        return JSONResponse(status_code=500, content={'detail': {'code': exc.code, 'hint': hint_for(exc), 'message': str(exc)}})

    return app


app = create_app()

if __name__ == '__main__':
    import uvicorn
    uvicorn.run('main:app', host=config.HOST, port=config.PORT, reload=False)
