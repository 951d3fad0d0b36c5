# bead_pattern/image_io.py
from __future__ import annotations

"""
Image input: any Pillow-readable file as an (H, W, 4) sRGB uint8 buffer.

EXIF orientation is applied and embedded ICC profiles are converted to sRGB,
so the pixels match what an image viewer shows.
"""

import io
from pathlib import Path

import numpy as np
from PIL import Image, ImageCms, ImageOps, UnidentifiedImageError

from .core_types import InputShapeError, U8Image
from .utils import warn


def _to_srgb(im: Image.Image, name: str) -> Image.Image:
    icc = im.info.get("icc_profile")
    if not icc:
        return im.convert("RGBA")
    try:
        converted = ImageCms.profileToProfile(
            im.convert("RGBA"),
            ImageCms.ImageCmsProfile(io.BytesIO(icc)),
            ImageCms.createProfile("sRGB"),
            renderingIntent=ImageCms.Intent.PERCEPTUAL,
            outputMode="RGBA",
        )
    except (ImageCms.PyCMSError, OSError) as e:
        warn(f"{name}: ignoring unusable colour profile ({e})")
        return im.convert("RGBA")
    return converted if converted is not None else im.convert("RGBA")


def load_image_rgba(path: Path) -> U8Image:
    path = Path(path)
    try:
        with Image.open(path) as src:
            im = _to_srgb(ImageOps.exif_transpose(src), path.name)
    except UnidentifiedImageError as e:
        raise InputShapeError(f"not a readable image: {path}") from e
    arr = np.array(im, dtype=np.uint8)
    if arr.shape[0] == 0 or arr.shape[1] == 0:
        raise InputShapeError(f"zero-area image: {path}")
    return arr


def is_image_file(path: Path) -> bool:
    """True when Pillow can open and decode the first frame."""
    try:
        with Image.open(path) as im:
            im.load()
    except (UnidentifiedImageError, OSError):
        return False
    return True


__all__ = ["load_image_rgba", "is_image_file"]
