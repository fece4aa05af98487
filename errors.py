"""Typed errors raised by the preview core.

Every error carries a stable ``code`` string so callers can report it
without matching on class names.
"""


class PreviewError(Exception):
    code = 'error'


# -- resource setup / teardown --

class ResourceError(PreviewError):
    code = 'resource_error'


class TempCreationFailed(ResourceError):
    code = 'temp_creation_failed'


class CloseFailed(ResourceError):
    code = 'close_failed'


class RemoveFailed(ResourceError):
    code = 'remove_failed'


# -- generation --

class PipelineError(PreviewError):
    code = 'pipeline_error'


class EncodeError(PipelineError):
    code = 'encode_error'


class DataLengthError(EncodeError):
    code = 'data_length'


class InvalidCharacterError(EncodeError):
    code = 'invalid_character'


class InvalidCodeSetError(EncodeError):
    code = 'invalid_code_set'


class ArgumentError(EncodeError):
    code = 'argument_error'


class LayoutError(PipelineError):
    code = 'layout_error'


class InvalidLayoutError(LayoutError):
    code = 'invalid_layout'


class FileResetFailed(PipelineError):
    code = 'file_reset_failed'


class FileWriteFailed(PipelineError):
    code = 'file_write_failed'


class FlushFailed(PipelineError):
    code = 'flush_failed'


# -- rendering --

class RenderError(PreviewError):
    code = 'render_error'


class RenderFailed(RenderError):
    """The interpreter reported an error but is still usable."""
    code = 'render_failed'


class RenderFatal(RenderError):
    """The interpreter is gone; ensure_started() must run before the next render."""
    code = 'render_fatal'


class InterpreterFatal(Exception):
    """Raised by an interpreter when its process can no longer be talked to."""


# -- printing --

class DispatchError(PreviewError):
    code = 'dispatch_error'


class SubprocessFailed(DispatchError):
    code = 'subprocess_failed'


class ReadFailed(DispatchError):
    code = 'read_failed'


class NoPrintersFound(DispatchError):
    code = 'no_printers'


class LaunchFailed(DispatchError):
    code = 'launch_failed'


# -- form input --

class InvalidEntryError(ValueError):
    """Text typed into a numeric field is not a decimal literal."""
    code = 'invalid_entry'
