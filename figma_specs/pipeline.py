"""
Image export pipeline.

One run captures a screenshot of the targeted design, exports nodes the
designer flagged for export, downloads embedded image fills (rendering the
ones the file images API cannot resolve) and finally drops any regular asset
that duplicates a screenshot node.
"""

import logging
from dataclasses import replace
from pathlib import Path
from typing import Dict, List, Optional

from .config import ExportConfig
from .downloader import Downloader
from .figma_client import FigmaAPIError
from .imager import ExportError, NameRegistry, ensure_output_dir, export_image_fills, export_images
from .models import ExportResult, ImageFillNode, PipelineResult
from .node_selector import (
    collect_exportable_nodes,
    collect_image_fill_nodes,
    image_fill_nodes_to_map,
    immediate_children,
)

logger = logging.getLogger(__name__)

SCREENSHOT_BASENAME = 'complete_design_screenshot'


def screenshot_nodes_for(roots: List[Dict]) -> Dict[str, str]:
    """Node ID -> name for the screenshot: every root plus its immediate children"""
    nodes = {}
    for root in roots:
        nodes[root.get('id', '')] = root.get('name', '')
    for root in roots:
        for child_id, child_name in immediate_children(root).items():
            nodes.setdefault(child_id, child_name)
    return nodes


def roots_for(file_data: Optional[Dict], nodes_data: Optional[Dict] = None,
              target_node_ids: Optional[List[str]] = None) -> List[Dict]:
    """Subtrees the pipeline walks: the targeted nodes, or the whole document"""
    if target_node_ids:
        nodes = (nodes_data or {}).get('nodes') or {}
        roots = []
        for node_id in target_node_ids:
            node_data = nodes.get(node_id)
            if node_data and node_data.get('document'):
                roots.append(node_data['document'])
        return roots
    document = (file_data or {}).get('document')
    return [document] if document else []


class ExportPipeline:
    """Runs the export phases for one file, in order, sharing one naming registry"""

    def __init__(self, client, file_key: str, roots: List[Dict], config: ExportConfig,
                 screenshot_nodes: Optional[Dict[str, str]] = None,
                 downloader: Optional[Downloader] = None):
        self.client = client
        self.file_key = file_key
        self.roots = roots
        self.config = config
        self.screenshot_nodes = screenshot_nodes if screenshot_nodes is not None else screenshot_nodes_for(roots)
        self.downloader = downloader or Downloader()
        self.registry = NameRegistry()
        self.result = PipelineResult()
        self._unresolved: List[ImageFillNode] = []

        self.phases = (
            self._capture_screenshot,
            self._export_flagged_nodes,
            self._resolve_image_fills,
            self._render_unresolved_fills,
            self._reconcile,
        )

    @property
    def output_dir(self) -> Path:
        return Path(self.config.output_dir)

    def run(self) -> PipelineResult:
        self.config.validate()
        ensure_output_dir(self.config.output_dir)

        for phase in self.phases:
            phase()

        logger.info(
            f"🎯 Image export finished: {len(self.result.assets)} asset(s), "
            f"{len(self.result.errors)} error(s), {len(self.result.unresolved)} unresolved"
        )
        return self.result

    def _merge(self, result: ExportResult):
        self.result.assets.extend(result.assets)
        self.result.errors.extend(result.errors)

    def _without_screenshot_nodes(self, nodes: Dict[str, str]) -> Dict[str, str]:
        return {node_id: name for node_id, name in nodes.items() if node_id not in self.screenshot_nodes}

    def _capture_screenshot(self):
        if not self.screenshot_nodes:
            return

        screenshot_name = f"{SCREENSHOT_BASENAME}.{self.config.format}"
        logger.info(f"📸 Capturing design screenshot to {screenshot_name}...")

        try:
            shot = export_images(
                self.client, self.file_key, self.screenshot_nodes,
                replace(self.config, scales=[1.0]),
                registry=self.registry, downloader=self.downloader
            )
        except ExportError as e:
            logger.warning(f"⚠️ Screenshot failed: {e}")
            return

        if not shot.assets:
            for error in shot.errors:
                logger.warning(f"⚠️ Screenshot: {error}")
            return
        for error in shot.errors:
            logger.debug(f"Screenshot: {error}")

        # Roots come first in the screenshot set, so the first root gets the well-known name
        order = {node_id: index for index, node_id in enumerate(self.screenshot_nodes)}
        for asset in sorted(shot.assets, key=lambda a: order.get(a.node_id, len(order))):
            target_name = self.registry.claim(screenshot_name)
            try:
                (self.output_dir / asset.file_name).rename(self.output_dir / target_name)
                file_name = target_name
            except OSError as e:
                logger.warning(f"⚠️ Could not rename screenshot {asset.file_name}: {e}")
                file_name = asset.file_name
            self.result.assets.append(replace(asset, file_name=file_name, is_screenshot=True))

        logger.info(f"✅ Captured {len(shot.assets)} screenshot image(s)")

    def _export_flagged_nodes(self):
        export_nodes = {}
        for root in self.roots:
            export_nodes.update(self._without_screenshot_nodes(collect_exportable_nodes(root)))

        if not export_nodes:
            logger.info("No additional exportable nodes")
            return

        logger.info(f"🖼️ Found {len(export_nodes)} exportable node(s), exporting to {self.config.output_dir}...")
        try:
            result = export_images(
                self.client, self.file_key, export_nodes, self.config,
                registry=self.registry, downloader=self.downloader
            )
        except ExportError as e:
            raise ExportError(f"export images: {e}") from e

        logger.info(f"✅ Exported {len(result.assets)} image(s)")
        self._merge(result)

    def _resolve_image_fills(self):
        fill_nodes = []
        seen = set()
        for root in self.roots:
            for fill_node in collect_image_fill_nodes(root):
                if fill_node.node_id in self.screenshot_nodes or fill_node.node_id in seen:
                    continue
                seen.add(fill_node.node_id)
                fill_nodes.append(fill_node)

        if not fill_nodes:
            return

        logger.info(f"🖼️ Found {len(fill_nodes)} embedded image(s), fetching download URLs...")
        try:
            file_images = self.client.get_file_images(self.file_key)
        except FigmaAPIError as e:
            logger.warning(f"⚠️ File images API failed: {e}")
            self._unresolved = fill_nodes
            return

        result = export_image_fills(
            file_images, fill_nodes, self.config,
            registry=self.registry, downloader=self.downloader
        )
        if result.assets:
            logger.info(f"✅ Exported {len(result.assets)} embedded image(s)")
        self._merge(result)
        self._unresolved = result.unresolved

    def _render_unresolved_fills(self):
        if not self._unresolved:
            return

        render_nodes = self._without_screenshot_nodes(image_fill_nodes_to_map(self._unresolved))
        self.result.unresolved = list(self._unresolved)
        if not render_nodes:
            return

        logger.info(f"🖼️ Rendering {len(render_nodes)} image(s) via render API (no file image URLs)...")
        try:
            result = export_images(
                self.client, self.file_key, render_nodes, self.config,
                registry=self.registry, downloader=self.downloader
            )
        except ExportError as e:
            logger.error(f"❌ Rendering images failed: {e}")
            return

        logger.info(f"✅ Rendered {len(result.assets)} image(s)")
        self._merge(result)
        rendered_ids = {asset.node_id for asset in result.assets}
        self.result.unresolved = [node for node in self._unresolved if node.node_id not in rendered_ids]

    def _reconcile(self):
        if not self.screenshot_nodes:
            return

        exclude_ids = set(self.screenshot_nodes)
        exclude_names = {name for name in self.screenshot_nodes.values() if name}

        kept = []
        for asset in self.result.assets:
            if not asset.is_screenshot and (asset.node_id in exclude_ids or asset.node_name in exclude_names):
                logger.info(f"🧹 Removing {asset.file_name}: duplicates a screenshot node")
                try:
                    (self.output_dir / asset.file_name).unlink()
                except FileNotFoundError:
                    pass
                except OSError as e:
                    logger.warning(f"⚠️ Could not remove {asset.file_name}: {e}")
                continue
            kept.append(asset)

        self.result.assets = kept
