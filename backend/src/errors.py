"""Exception taxonomy for the duotone pipeline."""


class DuotoneError(Exception):
    """Base class for recoverable pipeline failures."""


class ValidationError(DuotoneError):
    """Input rejected before any decode work (unsupported kind, size, name)."""

    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


class DecodeError(DuotoneError):
    """Raw bytes could not be decoded into a bitmap."""


class EncodeError(DuotoneError):
    """Pixel buffer could not be encoded to the output format."""
