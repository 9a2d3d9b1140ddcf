"""
Font resolution service.

Maps family names (as found in documents or CSS font-family chains) to
font files on disk and loads them with Pillow. A family that cannot be
found or loaded falls through to the next one, then to Pillow's bundled
default font, so text rendering never fails for lack of a font.
"""

import logging
import os
import sys
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

from PIL import ImageFont

from psdbridge.config import settings
from psdbridge.services.styles import split_font_family

logger = logging.getLogger(__name__)

FONT_EXTENSIONS = (".ttf", ".otf", ".ttc")

# Shorter family names only match exactly
MIN_PREFIX_LENGTH = 3


def normalize_font_name(name: str) -> str:
    """Lowercase and drop separators so 'Segoe UI' matches 'segoeui.ttf'."""
    return "".join(ch for ch in name.lower() if ch.isalnum())


def platform_font_dirs() -> List[Path]:
    """Font directories of the current platform."""
    home = Path.home()
    if sys.platform.startswith("win"):
        windir = os.environ.get("WINDIR") or os.environ.get("SystemRoot") or r"C:\Windows"
        dirs = [Path(windir) / "Fonts"]
        local = os.environ.get("LOCALAPPDATA")
        if local:
            dirs.append(Path(local) / "Microsoft" / "Windows" / "Fonts")
        return dirs
    if sys.platform == "darwin":
        return [
            Path("/System/Library/Fonts"),
            Path("/Library/Fonts"),
            home / "Library" / "Fonts",
        ]
    return [
        Path("/usr/share/fonts"),
        Path("/usr/local/share/fonts"),
        home / ".fonts",
        home / ".local" / "share" / "fonts",
    ]


class FontResolver:
    """Finds and loads fonts by family name."""

    def __init__(self, font_dirs: Optional[Iterable[Union[str, Path]]] = None):
        self.font_dirs = [Path(d) for d in (font_dirs if font_dirs is not None else settings.font_dirs)]
        self._index: Optional[Dict[str, Path]] = None

    def search_dirs(self) -> List[Path]:
        """Configured dirs first, then FONT_PATH entries, then platform dirs."""
        dirs = list(self.font_dirs)
        env_paths = os.environ.get("FONT_PATH", "")
        dirs.extend(Path(p) for p in env_paths.split(os.pathsep) if p.strip())
        dirs.extend(platform_font_dirs())
        return dirs

    def _build_index(self) -> Dict[str, Path]:
        index: Dict[str, Path] = {}
        for base in self.search_dirs():
            if not base.is_dir():
                continue
            for root, _, files in os.walk(base):
                for fname in files:
                    path = Path(root) / fname
                    if path.suffix.lower() not in FONT_EXTENSIONS:
                        continue
                    # Earlier directories win
                    index.setdefault(normalize_font_name(path.stem), path)
        logger.debug(f"Indexed {len(index)} font files")
        return index

    @property
    def index(self) -> Dict[str, Path]:
        if self._index is None:
            self._index = self._build_index()
        return self._index

    def refresh(self) -> None:
        """Forget the cached font index."""
        self._index = None

    def find_font_path(self, name: str) -> Optional[Path]:
        """
        Locate a font file for a family name.

        Absolute paths are accepted as-is. Otherwise an exact (normalized)
        file-name match is preferred, then the first file whose name starts
        with the family name (e.g. 'Arial' -> 'arialbd.ttf' only when no
        'arial.ttf' exists).
        """
        if not name:
            return None
        candidate = Path(name)
        if candidate.is_absolute() and candidate.exists():
            return candidate

        key = normalize_font_name(name)
        if not key:
            return None
        if key in self.index:
            return self.index[key]
        if len(key) < MIN_PREFIX_LENGTH:
            return None
        for stem in sorted(self.index):
            if stem.startswith(key):
                return self.index[stem]
        return None

    def is_available(self, name: Optional[str]) -> bool:
        """True when a font file for the family can be found."""
        if not name:
            return False
        try:
            return self.find_font_path(name) is not None
        except OSError as e:
            logger.debug(f"Font lookup for {name!r} failed: {e}")
            return False

    def load(self, names: Union[str, Iterable[str], None], size: float) -> ImageFont.ImageFont:
        """
        Load the first loadable family at the given pixel size.

        Args:
            names: A CSS font-family chain or an iterable of family names
            size: Font size in pixels

        Returns:
            A Pillow font; Pillow's default font when nothing else loads
        """
        pixel_size = max(1, int(round(size)))
        families = split_font_family(names) if isinstance(names, str) or names is None else list(names)

        for family in families:
            path = self.find_font_path(family)
            if path is None:
                continue
            try:
                return ImageFont.truetype(str(path), pixel_size)
            except OSError as e:
                logger.debug(f"Cannot load font {path}: {e}")

        if families:
            logger.debug(f"No font found for {families}, using default font")
        return ImageFont.load_default(size=pixel_size)


# Global service instance
font_resolver = FontResolver()
