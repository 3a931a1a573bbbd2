"""Conversion of finished pixel grids to image files."""

from __future__ import annotations

import io
from pathlib import Path

import numpy as np
import PIL.Image

from .errors import EncodeError


def _pil_format_name(ext: str) -> str:
    upper = ext.upper().lstrip(".")
    if upper == "JPG":
        return "JPEG"
    if upper == "TIF":
        return "TIFF"
    return upper


def to_image(grid: np.ndarray) -> PIL.Image.Image:
    """Wrap a ``(height, width)`` uint8 grid as a grayscale image."""

    if grid.ndim != 2 or grid.dtype != np.uint8:
        raise EncodeError(f"expected a 2-D uint8 grid, got {grid.ndim}-D {grid.dtype}")
    return PIL.Image.fromarray(grid)


def encode_png(grid: np.ndarray) -> bytes:
    """Encode ``grid`` as an 8-bit grayscale PNG."""

    image = to_image(grid)
    buffer = io.BytesIO()
    try:
        image.save(buffer, format="PNG")
    except (OSError, ValueError) as exc:
        raise EncodeError(f"could not encode {image.size[0]}x{image.size[1]} PNG: {exc}") from exc
    return buffer.getvalue()


def write_single_image(grid: np.ndarray, output_path: Path, image_format: str = "png") -> None:
    """Write ``grid`` to ``output_path`` using the provided format."""

    image = to_image(grid)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    try:
        image.save(str(output_path), format=_pil_format_name(image_format))
    except (OSError, ValueError, KeyError) as exc:
        raise EncodeError(f"could not write {output_path}: {exc}") from exc
