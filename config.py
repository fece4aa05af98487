import os, sys, logging
# API token for simple auth. Change this to a strong secret.
API_TOKEN = os.environ.get('PREVIEW_API_TOKEN', 'change_this_token')
# GhostScript executable path (console). Used for previews everywhere and for printing on Windows.
GS_PATH = os.environ.get('GS_PATH', 'gswin64c.exe' if sys.platform == 'win32' else 'gs')
# Resolution of preview images
RENDER_DPI = int(os.environ.get('PREVIEW_RENDER_DPI', '150'))
# Prefix for the process-lifetime temporary directory
TEMP_PREFIX = os.environ.get('PREVIEW_TEMP_PREFIX', 'barcode')
# Max bytes read from the printer status command (1 KB holds a handful of printers)
PRINTER_LIST_BUFSIZE = int(os.environ.get('PREVIEW_PRINTER_BUFSIZE', '1024'))
# Seconds to wait on printer status / synchronous print commands
SUBPROCESS_TIMEOUT = float(os.environ.get('PREVIEW_SUBPROCESS_TIMEOUT', '30'))
# Seconds given to Ghostscript to quit before it is killed
GS_EXIT_TIMEOUT = 5.0
LOG_LEVEL = os.environ.get('PREVIEW_LOG_LEVEL', 'INFO')
HOST = os.environ.get('PREVIEW_HOST', '127.0.0.1')
PORT = int(os.environ.get('PREVIEW_PORT', '8899'))

# Entry limits carried over from the desktop form
MAX_BARCODES = 128
BARCODE_ENTRY_MAX_LENGTH = 20
DEFAULT_ROWS = 1
DEFAULT_COLS = 2
DEFAULT_UNIT = 'mm'


def setup_logging(level: str = None):
    logging.basicConfig(
        level=(level or LOG_LEVEL).upper(),
        format='%(asctime)s | %(levelname)-8s | %(name)s | %(message)s',
    )
