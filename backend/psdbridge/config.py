"""
Application configuration settings.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    # API Settings
    api_v1_prefix: str = "/api/v1"
    debug: bool = False

    # Upload Limits
    max_file_size_mb: int = 100
    allowed_content_types: list[str] = [
        "image/vnd.adobe.photoshop",
        "image/photoshop",
        "image/x-photoshop",
        "application/photoshop",
        "application/psd",
        "application/octet-stream",
    ]
    allowed_extensions: list[str] = [".psd"]

    # ============================================================
    # CONVERSION SETTINGS
    # ============================================================

    # Import text layers as rasterized images (exact look, not editable)
    # instead of editable text elements (approximated metrics)
    rasterize_text: bool = True

    # Imported elements always get opacity 1.0; the source value is kept
    # in element metadata
    force_full_opacity: bool = True

    # --- Image Enhancement ---
    enhance_images: bool = True
    quality_mode: bool = False
    upscale_factor: int = 2           # Baseline upscale before sharpening
    quality_upscale_factor: int = 3   # Upscale used when quality_mode is on

    # Largest canvas edge accepted on import (pixels)
    max_canvas_size: int = 5000

    # --- Fonts ---
    # Extra directories searched for font files before the system ones
    font_dirs: List[Path] = []

    # --- Export ---
    default_export_filename: str = "design"

    @property
    def max_file_size_bytes(self) -> int:
        return self.max_file_size_mb * 1024 * 1024

    class Config:
        env_prefix = "PSDBRIDGE_"
        env_file = ".env"
        extra = "ignore"


# Global settings instance
settings = Settings()


@dataclass
class ConversionConfig:
    """
    Explicit configuration passed into the import/export entry points.

    Defaults mirror the global settings; callers override per request.
    """
    rasterize_text: bool = True
    force_full_opacity: bool = True
    enhance_images: bool = True
    quality_mode: bool = False
    upscale_factor: int = 2
    quality_upscale_factor: int = 3
    max_canvas_size: int = 5000

    @property
    def effective_upscale(self) -> int:
        return self.quality_upscale_factor if self.quality_mode else self.upscale_factor

    @classmethod
    def from_settings(cls, source: Optional[Settings] = None, **overrides) -> "ConversionConfig":
        """Build a config from settings, applying non-None overrides."""
        source = source or settings
        values = {
            "rasterize_text": source.rasterize_text,
            "force_full_opacity": source.force_full_opacity,
            "enhance_images": source.enhance_images,
            "quality_mode": source.quality_mode,
            "upscale_factor": source.upscale_factor,
            "quality_upscale_factor": source.quality_upscale_factor,
            "max_canvas_size": source.max_canvas_size,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
