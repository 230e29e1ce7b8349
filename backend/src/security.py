"""Security validation gates for file intake and export."""

import json
import os
import re
from pathlib import Path

from engine.codec import JPEG, PNG

# Intake: upload validation
MAX_UPLOAD_SIZE = 50 * 1024 * 1024  # 50 MB
ALLOWED_EXTENSIONS = {".png", ".jpg", ".jpeg"}

# image/jpg is not registered but browsers and OSes still report it
_KIND_ALIASES = {"image/jpg": JPEG, "image/pjpeg": JPEG}
ALLOWED_KINDS = {PNG, JPEG}

_EXT_KINDS = {".png": PNG, ".jpg": JPEG, ".jpeg": JPEG}


def normalize_kind(kind: str | None) -> str:
    """Lower-case a declared MIME kind and fold JPEG aliases."""
    k = (kind or "").split(";", 1)[0].strip().lower()
    return _KIND_ALIASES.get(k, k)


def kind_from_name(name: str | None) -> str | None:
    """Infer a MIME kind from a file extension, or None if unknown."""
    return _EXT_KINDS.get(Path(name or "").suffix.lower())


def _unsafe_name(name: str) -> bool:
    return "/" in name or "\\" in name or "\x00" in name


def validate_kind(kind: str | None) -> list[str]:
    """Validate a declared MIME kind. Returns list of errors (empty = valid)."""
    k = normalize_kind(kind)
    if k not in ALLOWED_KINDS:
        return [f"Kind '{kind}' not allowed. Allowed: {sorted(ALLOWED_KINDS)}"]
    return []


def validate_intake(name: str | None, kind: str | None, size: int) -> list[str]:
    """Validate a file handed over by the intake collaborator.

    Checks:
    - Declared kind (or, if none is declared, the extension) is PNG/JPEG
    - Size is non-zero and <= MAX_UPLOAD_SIZE
    - Name carries no path components
    """
    errors = validate_kind(kind if kind else kind_from_name(name))

    if size <= 0:
        errors.append("File is empty")
    elif size > MAX_UPLOAD_SIZE:
        size_mb = size / (1024 * 1024)
        errors.append(
            f"File too large: {size_mb:.1f} MB (max {MAX_UPLOAD_SIZE // (1024 * 1024)} MB)"
        )

    if name and _unsafe_name(name):
        errors.append(f"Unsafe filename: {name}")

    return errors


def validate_upload(path: str) -> list[str]:
    """Validate an image file path from the command line. Returns list of errors.

    Checks:
    - File exists and is a regular file
    - Not a symlink
    - Extension in whitelist
    - File size <= MAX_UPLOAD_SIZE
    """
    errors: list[str] = []
    p = Path(path)

    if p.is_symlink():
        errors.append("Symlinks are not allowed")
        return errors

    if not p.is_file():
        errors.append(f"File not found: {path}")
        return errors

    ext = p.suffix.lower()
    if ext not in ALLOWED_EXTENSIONS:
        errors.append(
            f"Extension '{ext}' not allowed. Allowed: {sorted(ALLOWED_EXTENSIONS)}"
        )

    size = p.stat().st_size
    if size > MAX_UPLOAD_SIZE:
        size_mb = size / (1024 * 1024)
        errors.append(
            f"File too large: {size_mb:.1f} MB (max {MAX_UPLOAD_SIZE // (1024 * 1024)} MB)"
        )

    return errors


ALLOWED_OUTPUT_EXTENSIONS = {".png", ".jpg"}
BLOCKED_OUTPUT_PREFIXES = (
    "/System",
    "/Library",
    "/usr",
    "/bin",
    "/sbin",
    "/etc",
    "/private/var",
    "/private/etc",
)


def validate_output_path(path: str) -> list[str]:
    """Validate an export output path. Returns list of errors (empty = valid).

    Checks:
    - Path is absolute
    - Not a system directory
    - Extension in whitelist
    - Parent directory exists and is writable
    - Filename is safe (no traversal)
    """
    errors: list[str] = []
    p = Path(path)

    if not p.is_absolute():
        errors.append("Output path must be absolute")
        return errors

    resolved = str(p.resolve())
    for prefix in BLOCKED_OUTPUT_PREFIXES:
        if resolved == prefix or resolved.startswith(prefix + "/"):
            errors.append(f"Cannot write to system directory: {prefix}")
            return errors

    ext = p.suffix.lower()
    if ext not in ALLOWED_OUTPUT_EXTENSIONS:
        errors.append(f"Output extension '{ext}' not allowed.")

    parent = p.parent
    if not parent.is_dir():
        errors.append(f"Output directory does not exist: {parent}")
    elif not os.access(str(parent), os.W_OK):
        errors.append(f"Output directory is not writable: {parent}")

    if ".." in p.name or _unsafe_name(p.name):
        errors.append(f"Unsafe output filename: {p.name}")

    return errors


# --- PII stripping for Sentry and crash dumps ---

_HOME = os.path.expanduser("~")
_USERNAME = os.path.basename(_HOME)
_PATH_PATTERN = re.compile(r"/Users/[^/\s]+|/home/[^/\s]+|C:\\Users\\[^\\\s]+")
_SENSITIVE_KEYS = {"token", "auth", "key", "secret", "password", "dsn"}


def _scrub_dict(d: dict):
    """Redact values for keys that look sensitive."""
    for key in list(d.keys()):
        if any(s in key.lower() for s in _SENSITIVE_KEYS):
            d[key] = "<REDACTED>"


def strip_pii(event: dict, hint: dict) -> dict:
    """Sentry before_send hook. Strips file paths and credentials.

    Also usable for crash dump sanitization.
    """
    event_str = json.dumps(event)
    if _HOME and _HOME != "/":
        event_str = event_str.replace(_HOME, "<HOME>")
    if _USERNAME:
        event_str = event_str.replace(_USERNAME, "<USER>")
    event_str = _PATH_PATTERN.sub("<REDACTED_PATH>", event_str)
    event = json.loads(event_str)

    _scrub_dict(event.get("extra", {}))
    for ctx in event.get("contexts", {}).values():
        if isinstance(ctx, dict):
            _scrub_dict(ctx)
    return event
