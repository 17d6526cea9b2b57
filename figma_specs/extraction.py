"""
End-to-end extraction run.

Resolves the file key and target nodes from a Figma URL, fetches the design,
extracts tokens, optionally runs the image export pipeline and renders the
markdown report.
"""

import math
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .config import ExportConfig
from .downloader import Downloader
from .extractor import DesignSpecs, attach_assets_to_node_tree, extract, extract_nodes
from .figma_client import FigmaAPIError, FigmaClient, extract_file_key, extract_node_ids
from .markdown import to_markdown
from .models import PipelineResult
from .pipeline import ExportPipeline, roots_for, screenshot_nodes_for

logger = logging.getLogger(__name__)


@dataclass
class Options:
    access_token: str
    file_url: str
    node_ids: List[str] = field(default_factory=list)
    inherit_file_context: bool = False
    export_images: bool = False
    image_format: str = 'png'
    image_scales: List[float] = field(default_factory=lambda: [1.0])
    image_dir: str = 'figma-assets'
    component_tree: bool = False
    max_retries: int = 3
    request_timeout: float = 600

    def export_config(self) -> ExportConfig:
        return ExportConfig(
            format=self.image_format or 'png',
            scales=list(self.image_scales) or [1.0],
            output_dir=self.image_dir or 'figma-assets',
            component_tree=self.component_tree
        )


@dataclass
class Result:
    specs: DesignSpecs
    file_name: str
    markdown: str
    export_result: Optional[PipelineResult] = None
    api_stats: Dict[str, int] = field(default_factory=dict)


def parse_scales(value: str) -> List[float]:
    """Parse "1,2,3" into scale factors; an empty value means [1.0]"""
    scales = []
    for part in (value or '').split(','):
        part = part.strip()
        if not part:
            continue
        try:
            scale = float(part)
        except ValueError:
            raise ValueError(f"invalid scale value {part!r}") from None
        if not math.isfinite(scale):
            raise ValueError(f"scale value must be finite, got {part!r}")
        if scale <= 0:
            raise ValueError(f"scale value must be positive, got {scale:g}")
        scales.append(scale)
    return scales or [1.0]


def parse_node_ids(value: str) -> List[str]:
    return [part.strip() for part in (value or '').split(',') if part.strip()]


def run(options: Options, client: Optional[FigmaClient] = None,
        downloader: Optional[Downloader] = None) -> Result:
    """Execute the extraction and return specs plus the rendered markdown.

    Raises ValueError for bad input (URL, format, scales) and FigmaAPIError /
    ExportError for fatal remote or export failures.
    """
    config = options.export_config()
    if options.export_images:
        config.validate()

    logger.info("📋 Extracting file key from URL...")
    file_key = extract_file_key(options.file_url)
    logger.info(f"File key: {file_key}")

    if options.node_ids:
        target_node_ids = list(options.node_ids)
        logger.info(f"🎯 Using {len(target_node_ids)} explicit node ID(s)")
    else:
        target_node_ids = extract_node_ids(options.file_url)
        if target_node_ids:
            logger.info(f"🔍 Found {len(target_node_ids)} node(s) in URL")
        else:
            logger.info("No node IDs found, will extract entire file")

    client = client or FigmaClient(
        options.access_token,
        max_retries=options.max_retries,
        timeout=options.request_timeout
    )

    logger.info("🔐 Validating Figma API token...")
    if not client.validate_token():
        raise FigmaAPIError("Figma API token was rejected")

    nodes_data: Optional[Dict] = None
    if target_node_ids:
        logger.info(f"📦 Extracting {len(target_node_ids)} specific node(s)...")
        nodes_data = client.get_file_nodes(file_key, target_node_ids)
        file_data = client.get_file(file_key)
        specs = extract_nodes(file_data, nodes_data, target_node_ids, options.inherit_file_context)
    else:
        logger.info("📄 Extracting entire file...")
        file_data = client.get_file(file_key)
        specs = extract(file_data)

    file_name = file_data.get('name', '')

    export_result = None
    if options.export_images:
        roots = roots_for(file_data, nodes_data, target_node_ids)
        pipeline = ExportPipeline(
            client, file_key, roots, config,
            screenshot_nodes=screenshot_nodes_for(roots),
            downloader=downloader or Downloader(timeout=options.request_timeout)
        )
        export_result = pipeline.run()

        for error in export_result.errors:
            logger.warning(f"⚠️ {error}")
        for fill_node in export_result.unresolved:
            logger.warning(f"⚠️ Could not export embedded image {fill_node.node_name or fill_node.node_id}")

        specs.exported_assets.extend(export_result.assets)

    if options.component_tree:
        attach_assets_to_node_tree(specs.node_tree, specs.exported_assets)
    else:
        specs.node_tree = []

    logger.info("📝 Generating markdown documentation...")
    markdown = to_markdown(specs, file_name, config.output_dir)

    return Result(specs=specs, file_name=file_name, markdown=markdown, export_result=export_result,
                  api_stats=client.get_stats())
