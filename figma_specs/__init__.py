"""Extract design specifications and image assets from Figma files."""

__version__ = "1.0.0"

from .config import Config, ExportConfig
from .extraction import Options, Result, parse_node_ids, parse_scales, run
from .figma_client import FigmaAPIError, FigmaClient, extract_file_key, extract_node_ids
from .imager import ExportError
from .models import ErrorRecord, ExportedAsset, ImageFillNode, PipelineResult
from .pipeline import ExportPipeline
