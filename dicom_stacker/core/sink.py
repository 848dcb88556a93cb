"""Volume sink: encode an assembled volume to a file with SimpleITK.

The file format follows the output extension (.mha, .nrrd, .nii,
.nii.gz, ...). Pixels are written as 32-bit float. The image is
first written to a hidden sibling file and then renamed over the
target, so an interrupted run never leaves a truncated volume behind.
"""

from __future__ import annotations

import math
import os
from pathlib import Path

import numpy as np
import SimpleITK as sitk

from dicom_stacker.utils.logger import get_logger

from .constants import PARTIAL_FILE_PREFIX
from .exceptions import EncodeError
from .types import Volume

logger = get_logger(__name__)

# Header + detached data file formats; renaming the header alone would break them
DETACHED_FORMATS = (".mhd", ".hdr", ".img", ".img.gz", ".nhdr")


def is_detached_format(output_path: Path) -> bool:
    """Whether ``output_path`` names a header that points at a second file."""
    suffixes = [s.lower() for s in output_path.suffixes]
    return any(
        "".join(suffixes[i:]) in DETACHED_FORMATS for i in range(len(suffixes))
    )


def partial_path(output_path: Path) -> Path:
    """Sibling path used while ``output_path`` is being written.

    The full file name is kept as suffix so SimpleITK picks the same
    writer for both (``volume.nii.gz`` -> ``.partial-volume.nii.gz``).
    """
    return output_path.with_name(f"{PARTIAL_FILE_PREFIX}{output_path.name}")


def to_image(volume: Volume) -> sitk.Image:
    """Convert ``volume`` into a float32 SimpleITK image with its geometry."""
    if volume.pixels.ndim != 3 or 0 in volume.pixels.shape:
        raise EncodeError(
            f"Cannot encode volume of shape {volume.pixels.shape}",
            error_code="UNSUPPORTED_GEOMETRY",
            context={"shape": volume.pixels.shape},
        )
    if any(not math.isfinite(s) or s <= 0 for s in volume.spacing):
        raise EncodeError(
            f"Cannot encode volume with spacing {volume.spacing}",
            error_code="UNSUPPORTED_GEOMETRY",
            context={"spacing": volume.spacing},
        )

    # GetImageFromArray reads (z, y, x) arrays, matching the volume layout
    image = sitk.GetImageFromArray(volume.pixels.astype(np.float32))
    image.SetOrigin(tuple(float(v) for v in volume.origin))
    image.SetSpacing(tuple(float(v) for v in volume.spacing))
    return image


class VolumeSink:
    """Write volumes to disk."""

    def __init__(self, use_compression: bool = False):
        self.use_compression = use_compression

    def encode(self, volume: Volume, output_path: str | Path) -> Path:
        """Write ``volume`` to ``output_path``.

        Args:
            volume: Assembled volume
            output_path: Target file; its extension selects the format

        Returns:
            The path written

        Raises:
            EncodeError: If the geometry is unsupported or the file
                cannot be written

        """
        output_path = Path(output_path)
        if is_detached_format(output_path):
            raise EncodeError(
                f"Detached header formats are not supported: {output_path}; "
                "use a single file format such as .mha or .nrrd",
                error_code="UNSUPPORTED_FORMAT",
                context={"output_path": str(output_path)},
            )
        image = to_image(volume)
        temp_path = partial_path(output_path)
        context = {"output_path": str(output_path)}

        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            sitk.WriteImage(image, str(temp_path), self.use_compression)
            os.replace(temp_path, output_path)
        except Exception as e:
            if temp_path.exists():
                temp_path.unlink()
            raise EncodeError(
                f"Error while writing the volume as {output_path}: {e}",
                error_code="WRITE_FAILED",
                context=context,
            ) from e

        logger.info(
            "volume_written",
            output_path=str(output_path),
            size=volume.size,
            spacing=volume.spacing,
        )
        return output_path
