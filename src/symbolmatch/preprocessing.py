"""Image validation, grayscale conversion and binarization."""

from pathlib import Path
from typing import Any

import cv2
import numpy as np
import numpy.typing as npt

# Constants for magic values
_GRAYSCALE_DIMS = 2
_COLOR_DIMS = 3
_BGR_CHANNELS = 3
_BGRA_CHANNELS = 4
DEFAULT_CUTOFF = 127


def validate_image(img: Any) -> None:
    """Check that an image handle can be compared.

    Args:
        img: Candidate image array (H, W) or (H, W, C).

    Raises:
        ValueError: If the image is missing, empty or has an unsupported layout.
    """
    if img is None:
        msg = "Image is None"
        raise ValueError(msg)
    if not isinstance(img, np.ndarray):
        msg = f"Image must be a numpy array, got {type(img).__name__}"
        raise ValueError(msg)
    if img.ndim not in (_GRAYSCALE_DIMS, _COLOR_DIMS):
        msg = f"Image must have 2 or 3 dimensions, got shape {img.shape}"
        raise ValueError(msg)
    if img.shape[0] == 0 or img.shape[1] == 0:
        msg = f"Image has zero area: shape {img.shape}"
        raise ValueError(msg)
    if img.ndim == _COLOR_DIMS and img.shape[2] not in (1, _BGR_CHANNELS, _BGRA_CHANNELS):
        msg = f"Unsupported channel count {img.shape[2]}, expected 1, 3 or 4"
        raise ValueError(msg)


def _as_uint8(img: npt.NDArray[Any]) -> npt.NDArray[np.uint8]:
    if img.dtype == np.uint8:
        return img
    return np.clip(img, 0, 255).astype(np.uint8)


def to_grayscale(img: npt.NDArray[Any]) -> npt.NDArray[np.uint8]:
    """Collapse an image to single-channel luminance.

    Args:
        img: Grayscale, BGR or BGRA image.

    Returns:
        2-D uint8 intensity image. Grayscale input is returned without copying.

    Raises:
        ValueError: If the image is malformed (see validate_image).
    """
    validate_image(img)
    local_img = _as_uint8(img)

    if local_img.ndim == _GRAYSCALE_DIMS:
        return local_img
    channels = local_img.shape[2]
    if channels == 1:
        return np.ascontiguousarray(local_img[:, :, 0])
    if channels == _BGR_CHANNELS:
        return cv2.cvtColor(local_img, cv2.COLOR_BGR2GRAY)
    return cv2.cvtColor(local_img, cv2.COLOR_BGRA2GRAY)


def to_binary_mask(gray: npt.NDArray[Any], cutoff: int = DEFAULT_CUTOFF) -> npt.NDArray[np.uint8]:
    """Inverted binary threshold: dark strokes become foreground.

    Args:
        gray: Image to threshold; converted to grayscale first if needed.
        cutoff: Intensities strictly below this value map to 255, the rest to 0.

    Returns:
        uint8 mask with values in {0, 255}.
    """
    local_gray = to_grayscale(gray)
    # THRESH_BINARY_INV zeroes pixels > thresh, so cutoff - 1 keeps "< cutoff" as foreground
    _, mask = cv2.threshold(local_gray, cutoff - 1, 255, cv2.THRESH_BINARY_INV)
    return mask


def load_image(path: str | Path) -> npt.NDArray[np.uint8]:
    """Read an image from disk keeping its channels (gray, BGR or BGRA).

    Args:
        path: Image file path.

    Returns:
        Decoded image array.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If OpenCV cannot decode the file.
    """
    image_path = Path(path)
    if not image_path.is_file():
        msg = f"Image file not found: {image_path}"
        raise FileNotFoundError(msg)

    img = cv2.imread(str(image_path), cv2.IMREAD_UNCHANGED)
    if img is None:
        msg = f"Could not decode image: {image_path}"
        raise ValueError(msg)
    validate_image(img)
    return img
