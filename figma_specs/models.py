"""Data models shared by the image export pipeline and the report."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List


@dataclass(frozen=True)
class ImageFillNode:
    """A node carrying an embedded IMAGE fill."""

    node_id: str
    node_name: str
    image_ref: str


@dataclass(frozen=True)
class ExportedAsset:
    """An image that was downloaded into the output directory."""

    node_id: str
    node_name: str
    file_name: str
    format: str
    scale: float
    is_screenshot: bool = False


@dataclass(frozen=True)
class ErrorRecord:
    """Non-fatal failure for a single asset."""

    node_id: str
    node_name: str
    message: str

    def __str__(self) -> str:
        return self.message


@dataclass
class ExportResult:
    """Outcome of one render or embedded-image export call."""

    assets: List[ExportedAsset] = field(default_factory=list)
    errors: List[ErrorRecord] = field(default_factory=list)
    unresolved: List[ImageFillNode] = field(default_factory=list)


@dataclass
class PipelineResult:
    """Manifest produced by a full export pipeline run."""

    assets: List[ExportedAsset] = field(default_factory=list)
    errors: List[ErrorRecord] = field(default_factory=list)
    unresolved: List[ImageFillNode] = field(default_factory=list)

    @property
    def screenshot(self):
        for asset in self.assets:
            if asset.is_screenshot:
                return asset
        return None
