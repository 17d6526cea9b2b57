import os
import math
import logging
from dataclasses import dataclass, field
from typing import List

from .utils import is_vector_format

logger = logging.getLogger(__name__)

VALID_IMAGE_FORMATS = ('png', 'svg', 'jpg', 'pdf')


class Config:
    """Configuration management using environment variables"""

    def __init__(self):
        # Figma configuration
        self.figma_token = os.getenv('FIGMA_API_TOKEN')

        # Image export defaults
        self.image_format = os.getenv('IMAGE_FORMAT', 'png')
        self.image_scales = os.getenv('IMAGE_SCALES', '1')
        self.image_dir = os.getenv('IMAGE_DIR', 'figma-assets')
        self.output_file = os.getenv('OUTPUT_FILE', 'FIGMA_DESIGN_SPECIFICATIONS.md')

        # Optional configurations
        self.log_level = os.getenv('LOG_LEVEL', 'INFO')
        self.max_retries = int(os.getenv('MAX_RETRIES', '3'))
        self.request_timeout = int(os.getenv('REQUEST_TIMEOUT', '600'))

    def validate(self) -> bool:
        """Validate that required configuration is present"""
        required_vars = [
            ('FIGMA_API_TOKEN', self.figma_token),
        ]

        missing_vars = [var_name for var_name, var_value in required_vars if not var_value]

        if missing_vars:
            logger.error(f"Missing required environment variables: {', '.join(missing_vars)}")
            return False

        if self.max_retries < 1:
            logger.error(f"MAX_RETRIES must be at least 1, got {self.max_retries}")
            return False

        return True


@dataclass
class ExportConfig:
    """Settings for one image export run."""

    format: str = 'png'
    scales: List[float] = field(default_factory=lambda: [1.0])
    output_dir: str = 'figma-assets'
    component_tree: bool = False

    def validate(self):
        """Reject unsupported formats and non-positive scales before any request is made."""
        if self.format not in VALID_IMAGE_FORMATS:
            raise ValueError(
                f"invalid image format {self.format!r} (must be {', '.join(VALID_IMAGE_FORMATS)})"
            )
        for scale in self.scales:
            if not math.isfinite(scale):
                raise ValueError(f"scale value must be finite, got {scale}")
            if scale <= 0:
                raise ValueError(f"scale value must be positive, got {scale:g}")

    def effective_scales(self) -> List[float]:
        """Vector formats are resolution independent and always render once at 1x."""
        if is_vector_format(self.format):
            return [1.0]
        return list(self.scales) or [1.0]
