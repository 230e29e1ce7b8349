"""Output naming and the download trigger."""

import logging
import re
from dataclasses import dataclass
from pathlib import Path

from engine.codec import JPEG, PNG
from errors import ValidationError
from security import validate_output_path

logger = logging.getLogger(__name__)

OUTPUT_SUFFIX = "-duotone"
FALLBACK_BASE = "image"

_SOURCE_EXT = re.compile(r"\.(png|jpg|jpeg)$", re.IGNORECASE)
_UNSAFE_RUN = re.compile(r"[^a-z0-9\-_]+")

_EXTENSIONS = {PNG: "png", JPEG: "jpg"}


@dataclass(frozen=True)
class Download:
    """An encoded output ready to hand to the user."""

    file_name: str
    kind: str
    data: bytes


def file_base(name: str | None) -> str:
    """Strip a trailing .png/.jpg/.jpeg (any case) from a file name."""
    return _SOURCE_EXT.sub("", name or FALLBACK_BASE)


def sanitize_file_name(base: str | None, ext: str) -> str:
    """``My Photo!! (2024)`` + ``png`` -> ``my-photo-2024-duotone.png``."""
    clean = _UNSAFE_RUN.sub("-", (base or FALLBACK_BASE).lower()).strip("-")
    return f"{clean or FALLBACK_BASE}{OUTPUT_SUFFIX}.{ext}"


def extension_for(kind: str) -> str:
    try:
        return _EXTENSIONS[kind]
    except KeyError:
        raise ValueError(f"no output extension for kind {kind!r}") from None


def output_file_name(source_name: str | None, kind: str) -> str:
    return sanitize_file_name(file_base(source_name), extension_for(kind))


def save_download(download: Download, directory: str | Path) -> Path:
    """Write an encoded output into ``directory`` under its file name.

    Raises:
        ValidationError: If the destination fails validate_output_path.
    """
    target = Path(directory).expanduser().resolve() / download.file_name
    errors = validate_output_path(str(target))
    if errors:
        raise ValidationError(errors)
    target.write_bytes(download.data)
    logger.info("Saved %s (%d bytes)", target.name, len(download.data))
    return target
