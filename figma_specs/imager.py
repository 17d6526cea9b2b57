import logging
import posixpath
import threading
from pathlib import Path
from typing import Dict, List, Optional

from .config import ExportConfig
from .downloader import Downloader, DownloadError
from .figma_client import FigmaAPIError, MAX_NODES_PER_REQUEST
from .models import ErrorRecord, ExportedAsset, ExportResult, ImageFillNode
from .utils import build_file_name, detect_extension_from_url

logger = logging.getLogger(__name__)


class ExportError(Exception):
    """Fatal export failure that aborts the run."""


class NameRegistry:
    """Per-run record of claimed file names; hands out a unique name for every claim."""

    def __init__(self):
        self._lock = threading.Lock()
        self._used: Dict[str, int] = {}

    def claim(self, file_name: str) -> str:
        """Register ``file_name`` and return it, or a ``{base}-{n}{ext}`` variant if it is taken."""
        with self._lock:
            count = self._used.get(file_name)
            if count is None:
                self._used[file_name] = 1
                return file_name

            base, ext = posixpath.splitext(file_name)
            candidate = file_name
            while candidate in self._used:
                count += 1
                candidate = f"{base}-{count}{ext}"

            self._used[file_name] = count
            self._used[candidate] = 1
            return candidate

    def __contains__(self, file_name: str) -> bool:
        with self._lock:
            return file_name in self._used


def ensure_output_dir(output_dir) -> Path:
    path = Path(output_dir)
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise ExportError(f"failed to create output directory {str(path)!r}: {e}") from e
    return path


def export_images(client, file_key: str, nodes: Dict[str, str], config: ExportConfig,
                  registry: Optional[NameRegistry] = None,
                  downloader: Optional[Downloader] = None) -> ExportResult:
    """Render nodes through the images API and download them.

    Loops scales (outer) and batches of at most 100 node IDs (inner). A failed
    render request raises ExportError; a node without a URL in an otherwise
    successful batch and a failed transfer are recorded as errors.
    """
    registry = registry or NameRegistry()
    downloader = downloader or Downloader()
    output_dir = Path(config.output_dir)

    result = ExportResult()
    lock = threading.Lock()
    node_ids = list(nodes)
    if not node_ids:
        return result

    for scale in config.effective_scales():
        for i in range(0, len(node_ids), MAX_NODES_PER_REQUEST):
            batch = node_ids[i:i + MAX_NODES_PER_REQUEST]

            try:
                image_urls = client.get_images(file_key, batch, config.format, scale)
            except FigmaAPIError as e:
                raise ExportError(f"failed to get images from Figma API: {e}") from e

            jobs = []
            for node_id in batch:
                node_name = nodes[node_id]
                image_url = image_urls.get(node_id)
                if not image_url:
                    result.errors.append(ErrorRecord(
                        node_id, node_name, f"no image URL returned for node {node_id} ({node_name})"
                    ))
                    continue

                def job(node_id=node_id, node_name=node_name, image_url=image_url, scale=scale):
                    file_name = registry.claim(build_file_name(node_name, node_id, config.format, scale))
                    try:
                        size = downloader.download(image_url, output_dir / file_name)
                    except DownloadError as e:
                        with lock:
                            result.errors.append(ErrorRecord(
                                node_id, node_name, f"failed to download {node_name or node_id}: {e}"
                            ))
                        return

                    logger.info(f"✅ Downloaded: {node_name or node_id} → {file_name} ({size / 1024:.1f} KB)")
                    with lock:
                        result.assets.append(ExportedAsset(
                            node_id=node_id,
                            node_name=node_name,
                            file_name=file_name,
                            format=config.format,
                            scale=scale
                        ))

                jobs.append(job)

            downloader.run(jobs)

    return result


def export_image_fills(file_images: Dict[str, str], fill_nodes: List[ImageFillNode],
                       config: ExportConfig, registry: Optional[NameRegistry] = None,
                       downloader: Optional[Downloader] = None) -> ExportResult:
    """Download embedded image fills using the file's imageRef -> URL table.

    Fills whose imageRef has no URL are returned as unresolved so the caller
    can fall back to the render API. The format comes from the URL and the
    scale is always 1.
    """
    registry = registry or NameRegistry()
    downloader = downloader or Downloader()
    output_dir = Path(config.output_dir)

    result = ExportResult()
    lock = threading.Lock()
    jobs = []

    for fill_node in fill_nodes:
        download_url = file_images.get(fill_node.image_ref)
        if not download_url:
            result.unresolved.append(fill_node)
            continue

        def job(fill_node=fill_node, download_url=download_url):
            extension = detect_extension_from_url(download_url)
            file_name = registry.claim(
                build_file_name(fill_node.node_name, fill_node.node_id, extension, 1)
            )
            try:
                size = downloader.download(download_url, output_dir / file_name)
            except DownloadError as e:
                with lock:
                    result.errors.append(ErrorRecord(
                        fill_node.node_id, fill_node.node_name,
                        f"failed to download image fill {fill_node.node_name or fill_node.node_id}: {e}"
                    ))
                return

            logger.info(f"✅ Downloaded image fill: {fill_node.image_ref} → {file_name} ({size / 1024:.1f} KB)")
            with lock:
                result.assets.append(ExportedAsset(
                    node_id=fill_node.node_id,
                    node_name=fill_node.node_name,
                    file_name=file_name,
                    format=extension,
                    scale=1
                ))

        jobs.append(job)

    downloader.run(jobs)
    return result
