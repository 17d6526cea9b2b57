import re
import logging
import posixpath
from pathlib import Path
from urllib.parse import urlparse

VECTOR_FORMATS = ('svg', 'pdf')
DEFAULT_EXTENSION = 'png'

_INVALID_NAME_CHARS = re.compile(r'[^a-z0-9-]')


def to_kebab_case(value: str) -> str:
    """Lowercase, hyphen-separated form with everything outside [a-z0-9-] dropped"""
    value = value.lower().replace(' ', '-').replace('_', '-')
    return _INVALID_NAME_CHARS.sub('', value)


def format_scale(scale: float) -> str:
    """Shortest representation of a scale factor (2.0 -> '2', 1.5 -> '1.5')"""
    return f"{scale:g}"


def is_vector_format(fmt: str) -> bool:
    return fmt in VECTOR_FORMATS


def build_file_name(node_name: str, node_id: str, fmt: str, scale: float) -> str:
    """Create a sanitized file name for an exported node.

    Falls back to the node ID when the name is empty and to "asset" when
    sanitizing leaves nothing. Raster formats rendered above 1x get an
    ``@{scale}x`` suffix.
    """
    name = to_kebab_case(node_name or node_id)
    if not name:
        name = "asset"

    scale_suffix = ""
    if scale > 1 and not is_vector_format(fmt):
        scale_suffix = f"@{format_scale(scale)}x"

    return f"{name}{scale_suffix}.{fmt}"


def detect_extension_from_url(url: str) -> str:
    """Extract the file extension from an image URL path, defaulting to png"""
    if not url:
        return DEFAULT_EXTENSION
    try:
        parsed_url = urlparse(url)
    except ValueError:
        return DEFAULT_EXTENSION

    extension = posixpath.splitext(parsed_url.path)[1]
    if len(extension) > 1:
        return extension[1:].lower()
    return DEFAULT_EXTENSION


def setup_logging(log_level: str = 'INFO', log_file: str = None):
    """Setup logging configuration"""
    log_format = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

    handlers = [logging.StreamHandler()]

    if log_file:
        log_dir = Path(log_file).parent
        log_dir.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        format=log_format,
        handlers=handlers
    )
