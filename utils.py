"""
Utility functions for getting an image ready for Braille conversion:
classifying the input argument, reading or fetching image bytes, picking a
frame, and sizing/adjusting the result.
"""

import argparse
import io
import logging
import math
import os
import sys
from dataclasses import dataclass
from typing import Optional, Tuple
from urllib.parse import urlparse

import numpy as np
import requests
from PIL import Image, ImageSequence, UnidentifiedImageError

from braille_lib import __version__

__all__ = [
    # Constants
    'DEFAULT_WIDTH',
    'ACCEPTED_IMAGE_TYPES',
    # Errors
    'ImageLoadError',
    'NoSuchFrameError',
    'InvalidImageError',
    'FetchError',
    # Functions
    'classify_input',
    'read_input_bytes',
    'fetch_image_bytes',
    'format_from_mime',
    'load_frame',
    'load_source_image',
    'compute_target_dimensions',
    'adjust_contrast',
    'brighten',
    'prepare_image',
    # Classes
    'InputSource',
]

logger = logging.getLogger(__name__)

DEFAULT_WIDTH = 64
ACCEPTED_IMAGE_TYPES = "image/png,image/jpeg,image/webp,image/gif,image/tiff"
FETCH_TIMEOUT = 30


# -------------------- Errors --------------------

class ImageLoadError(Exception):
    """Raised when an input image cannot be obtained or decoded."""
    pass


class NoSuchFrameError(ImageLoadError):
    """Raised when the requested frame is past the end of the image."""
    def __init__(self, frame: int):
        self.frame = frame
        super().__init__(f"the image doesn't have a frame of number {frame}")


class InvalidImageError(ImageLoadError):
    """Raised when the bytes are not a decodable image."""
    pass


class FetchError(ImageLoadError):
    """Raised when an image URL cannot be fetched."""
    pass


# -------------------- Input Classification --------------------

@dataclass(frozen=True)
class InputSource:
    """Where the image comes from: kind is 'stdin', 'file' or 'url'."""
    kind: str
    value: str


def classify_input(value: str) -> InputSource:
    """
    Classify the positional input argument. Used as an argparse type.

    Args:
        value: "-" for stdin, a path to an image file, or an http(s) URL

    Returns:
        InputSource describing the input

    Raises:
        argparse.ArgumentTypeError: If the value is none of the above
    """
    if value == "-":
        return InputSource("stdin", value)

    if os.path.exists(value):
        if os.path.isfile(value):
            return InputSource("file", value)
        raise argparse.ArgumentTypeError("the given path exists but is not a file")

    parsed = urlparse(value)
    if not parsed.scheme or not parsed.netloc:
        raise argparse.ArgumentTypeError("the given input was not a valid argument")
    if parsed.scheme.lower() not in ("http", "https"):
        raise argparse.ArgumentTypeError("the given URL must be either http or https")
    return InputSource("url", value)


# -------------------- Loading --------------------

def read_input_bytes(source: InputSource) -> bytes:
    """Read raw bytes from a file or stdin source."""
    if source.kind == "stdin":
        logger.debug("reading image from stdin")
        return sys.stdin.buffer.read()
    if source.kind == "file":
        logger.debug("opening image as file")
        with open(source.value, 'rb') as f:
            return f.read()
    raise ValueError(f"Cannot read bytes from a {source.kind} source")


def format_from_mime(mime: Optional[str]) -> Optional[str]:
    """
    Map a Content-Type value to a Pillow format name.

    Args:
        mime: Header value such as "image/png; charset=binary"

    Returns:
        Format name like "PNG", or None if unknown
    """
    if not mime:
        return None
    mime = mime.split(';', 1)[0].strip().lower()
    Image.init()
    for fmt, fmt_mime in Image.MIME.items():
        if fmt_mime == mime:
            return fmt
    return None


def fetch_image_bytes(url: str) -> Tuple[bytes, Optional[str]]:
    """
    Download an image over HTTP(S).

    Args:
        url: http or https URL

    Returns:
        Tuple of (payload bytes, Pillow format name from Content-Type or None)
    """
    host = urlparse(url).hostname
    if not host:
        raise FetchError("the provided URL was not valid")

    headers = {
        "Accept": ACCEPTED_IMAGE_TYPES,
        "Referer": host,
        "Cache-Control": "no-cache",
        "User-Agent": f"braille-pie/{__version__}",
    }

    logger.debug("trying to fetch image as URL")
    try:
        response = requests.get(url, headers=headers, timeout=FETCH_TIMEOUT)
        response.raise_for_status()
    except requests.RequestException as e:
        raise FetchError(str(e)) from e

    logger.debug("response info: %s %s", response.status_code, dict(response.headers))

    payload = response.content
    if not payload:
        raise FetchError("the server's response was bad")
    return payload, format_from_mime(response.headers.get("Content-Type"))


def load_frame(data: bytes, frame: int = 0, image_format: Optional[str] = None) -> Image.Image:
    """
    Decode image bytes and return one frame as RGBA.

    Args:
        data: Encoded image
        frame: Zero-based frame number (animated GIF/WebP/PNG); 0 for stills
        image_format: Pillow format to decode with; guessed when None

    Returns:
        The selected frame in RGBA mode

    Raises:
        InvalidImageError: If the data cannot be decoded
        NoSuchFrameError: If the image has no such frame
    """
    formats = [image_format] if image_format else None
    try:
        img = Image.open(io.BytesIO(data), formats=formats)
    except UnidentifiedImageError as e:
        raise InvalidImageError(str(e)) from e

    logger.debug("image format: %s, mode: %s, frames: %s",
                 img.format, img.mode, getattr(img, 'n_frames', 1))

    for index, current in enumerate(ImageSequence.Iterator(img)):
        if index == frame:
            return current.convert('RGBA')
    raise NoSuchFrameError(frame)


def load_source_image(source: InputSource, frame: int = 0) -> Image.Image:
    """Obtain and decode the image for any kind of input source."""
    if source.kind == "url":
        data, image_format = fetch_image_bytes(source.value)
        return load_frame(data, frame, image_format)
    return load_frame(read_input_bytes(source), frame)


# -------------------- Sizing & Adjustment --------------------

def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def compute_target_dimensions(orig_w: int, orig_h: int,
                              width: Optional[int] = None,
                              height: Optional[int] = None) -> Tuple[int, int]:
    """
    Compute output dimensions in dots, keeping the aspect ratio for
    whichever side is not given.

    Args:
        orig_w: Source image width
        orig_h: Source image height
        width: Requested width in dots, or None
        height: Requested height in dots, or None

    Returns:
        Tuple of (target_width, target_height), each at least 1
    """
    aspect_ratio = orig_w / orig_h
    if width is None and height is None:
        width = DEFAULT_WIDTH
        height = _round_half_up(DEFAULT_WIDTH / aspect_ratio)
    elif width is None:
        width = _round_half_up(height * aspect_ratio)
    elif height is None:
        height = _round_half_up(width / aspect_ratio)
    return max(1, width), max(1, height)


def adjust_contrast(image: Image.Image, contrast: float) -> Image.Image:
    """
    Adjust contrast of the RGB channels; positive values increase it.
    Alpha is left untouched.
    """
    arr = np.asarray(image.convert('RGBA'), dtype=np.float32).copy()
    percent = ((100.0 + contrast) / 100.0) ** 2
    rgb = arr[..., :3] / 255.0
    rgb = ((rgb - 0.5) * percent + 0.5) * 255.0
    arr[..., :3] = np.clip(rgb, 0, 255)
    return Image.fromarray(arr.astype(np.uint8), 'RGBA')


def brighten(image: Image.Image, value: int) -> Image.Image:
    """Add value to every RGB channel, clamped to [0, 255]."""
    arr = np.asarray(image.convert('RGBA'), dtype=np.int32).copy()
    arr[..., :3] = np.clip(arr[..., :3] + value, 0, 255)
    return Image.fromarray(arr.astype(np.uint8), 'RGBA')


def prepare_image(image: Image.Image, width: int, height: int,
                  contrast: float = 0.0, brightness: int = 0) -> Image.Image:
    """
    Resize to the target dot dimensions and apply contrast/brightness.

    Args:
        image: Source image
        width: Target width in dots
        height: Target height in dots
        contrast: Contrast adjustment, 0 for none
        brightness: Brightness offset, 0 for none

    Returns:
        RGBA image of exactly (width, height)
    """
    image = image.convert('RGBA')
    if image.size != (width, height):
        image = image.resize((width, height), Image.Resampling.BILINEAR)
    if contrast != 0.0:
        image = adjust_contrast(image, contrast)
    if brightness != 0:
        image = brighten(image, brightness)
    return image
