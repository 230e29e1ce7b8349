"""duotone: convert a PNG/JPEG into a two-color image from the command line."""

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path

import sentry_sdk

from _version import __version__
from color.srgb import hex_to_rgb
from diagnostics import init_diagnostics
from engine.export import save_download
from engine.renderer import BRAVE_PINK, HERO_GREEN, DuotoneRenderer
from engine.session import DuotoneSession
from errors import ValidationError
from security import strip_pii, validate_upload

logger = logging.getLogger(__name__)

CONSENT_PATH = "~/.duotone/telemetry_consent"


def _init_sentry():
    """Consent-gated Sentry init: no DSN, no events."""
    consent_path = Path(os.path.expanduser(CONSENT_PATH))
    dsn = ""
    if consent_path.exists() and consent_path.read_text().strip() == "yes":
        dsn = os.environ.get("SENTRY_DSN", "")

    sentry_sdk.init(
        dsn=dsn,
        release=f"duotone@{__version__}",
        environment=os.environ.get("SENTRY_ENV", "development"),
        traces_sample_rate=0.1,
        before_send=strip_pii,
        max_breadcrumbs=50,
    )


def _percent(value: str) -> int:
    try:
        n = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not an integer: {value!r}") from None
    if not 0 <= n <= 100:
        raise argparse.ArgumentTypeError(f"intensity must be 0-100, got {n}")
    return n


def _hex_color(value: str) -> tuple[int, int, int]:
    try:
        return hex_to_rgb(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="duotone",
        description="Map an image's luminance onto a two-color gradient.",
    )
    parser.add_argument("input", help="PNG or JPEG file")
    parser.add_argument(
        "--intensity",
        type=_percent,
        default=100,
        help="blend between grayscale (0) and full duotone (100), default 100",
    )
    parser.add_argument(
        "--low", type=_hex_color, default=HERO_GREEN, help="shadow color, #rrggbb"
    )
    parser.add_argument(
        "--high", type=_hex_color, default=BRAVE_PINK, help="highlight color, #rrggbb"
    )
    parser.add_argument(
        "--output-dir",
        default=None,
        help="where to write the result (default: next to the input)",
    )
    parser.add_argument(
        "--no-diagnostics",
        action="store_true",
        help="skip log files, faulthandler and crash dumps",
    )
    parser.add_argument("--version", action="version", version=__version__)
    return parser


async def run(args: argparse.Namespace) -> int:
    """Drive one session: load, set intensity, commit, save. Returns exit code."""
    errors = validate_upload(args.input)
    if errors:
        print(f"duotone: {'; '.join(errors)}", file=sys.stderr)
        return 1

    path = Path(args.input)
    session = DuotoneSession(DuotoneRenderer(args.low, args.high))
    session.set_intensity_percent(args.intensity)

    if not await session.load(path.read_bytes(), path.name):
        message = session.alert.message if session.alert else session.note
        print(f"duotone: {message}", file=sys.stderr)
        return 1

    download = await session.download()
    if download is None:
        message = session.alert.message if session.alert else "no output produced"
        print(f"duotone: {message}", file=sys.stderr)
        return 1

    output_dir = args.output_dir or path.resolve().parent
    try:
        target = save_download(download, output_dir)
    except ValidationError as e:
        print(f"duotone: {e}", file=sys.stderr)
        return 1
    except OSError as e:
        logger.error("Could not write output: %s", type(e).__name__)
        print(f"duotone: could not write output: {e.strerror or e}", file=sys.stderr)
        return 1

    print(target)
    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    _init_sentry()
    if not args.no_diagnostics:
        init_diagnostics()
    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
