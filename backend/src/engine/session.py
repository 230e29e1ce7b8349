"""Interactive session controller: one loaded image, live intensity, export.

States:
    EMPTY      no bitmap, output disabled
    LOADED     bitmap present, last render + encode completed
    RENDERING  a render is scheduled for the next frame tick
    ENCODING   an encode is in flight

Renders are coalesced through a single-slot FrameScheduler. Encodes are
serialized: one in flight at a time, overlapping requests collapse into a
single pending re-run that fires only if the buffer is still dirty.

Every load bumps a generation counter. Async decode/encode completions
check it before committing, so a late result from a superseded load never
overwrites newer state.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum

import numpy as np
import sentry_sdk

from engine.codec import JPEG_QUALITY, decode_image_async, encode_image_async
from engine.compare import ComparisonView
from engine.export import Download, output_file_name
from engine.renderer import DuotoneRenderer, clamp_intensity
from engine.scheduler import FRAME_INTERVAL_S, FrameScheduler
from security import kind_from_name, normalize_kind, validate_intake, validate_kind

logger = logging.getLogger(__name__)

NOTE_EMPTY = "No image yet. Drop a JPG/PNG above or click to browse."
NOTE_PROCESSING = "Processing image…"
NOTE_READY = "Ready. Download to save your duotone image."
NOTE_UPLOAD_FAILED = "Upload failed. Please try a different file."
NOTE_CONVERSION_FAILED = "Conversion failed. Please try again."

ALERT_UNSUPPORTED = "Unsupported file type. Please use JPG/JPEG or PNG."
ALERT_PROCESS_FAILED = "Failed to process the image. Try a different file."
ALERT_ENCODE_FAILED = "Failed to encode the image. Try downloading again."


class SessionState(Enum):
    EMPTY = "empty"
    LOADED = "loaded"
    RENDERING = "rendering"
    ENCODING = "encoding"


@dataclass(frozen=True)
class Alert:
    message: str
    is_error: bool = False


@dataclass(frozen=True)
class SourceDescriptor:
    """Immutable per loaded image."""

    name: str
    kind: str
    width: int
    height: int
    bitmap: np.ndarray = field(repr=False, compare=False)


@dataclass
class RenderState:
    """Mutable render/encode bookkeeping, replaced wholesale on teardown."""

    dirty: bool = False
    encoding: bool = False
    encode_pending: bool = False
    idle: asyncio.Event = field(default_factory=asyncio.Event, repr=False)

    def __post_init__(self):
        self.idle.set()


class DuotoneSession:
    """Owns the source bitmap, the live pixel buffer and the encoded output."""

    def __init__(
        self,
        renderer: DuotoneRenderer | None = None,
        *,
        frame_interval: float = FRAME_INTERVAL_S,
        quality: float = JPEG_QUALITY,
    ):
        self.renderer = renderer or DuotoneRenderer()
        self.scheduler = FrameScheduler(frame_interval)
        self.quality = quality
        self.intensity = 1.0
        self.generation = 0
        self.busy = False
        self.note = NOTE_EMPTY
        self.alert: Alert | None = None
        self.render_count = 0
        self._clear()

    def _clear(self):
        self.source: SourceDescriptor | None = None
        self.buffer: np.ndarray | None = None
        self.blob: bytes | None = None
        self.comparison: ComparisonView | None = None
        self.render_state = RenderState()
        self._luminance: np.ndarray | None = None
        self._rendered_intensity: float | None = None
        self._render_seq = 0

    # --- status ---

    @property
    def state(self) -> SessionState:
        if self.source is None:
            return SessionState.EMPTY
        if self.render_state.encoding:
            return SessionState.ENCODING
        if self.scheduler.pending:
            return SessionState.RENDERING
        return SessionState.LOADED

    @property
    def dirty(self) -> bool:
        return self.render_state.dirty

    @property
    def output_enabled(self) -> bool:
        """The encoded output matches the visible buffer and may be offered."""
        return (
            not self.busy
            and self.source is not None
            and self.blob is not None
            and not self.render_state.dirty
        )

    def _show_alert(self, message: str, is_error: bool = False):
        self.alert = Alert(message, is_error)

    def clear_alert(self):
        self.alert = None

    # --- lifecycle ---

    def _teardown(self):
        """Discard the mounted view, bitmap, buffer and encoded output."""
        self.scheduler.cancel()
        self._clear()

    def reset(self):
        """Back to EMPTY. Any in-flight decode/encode result is discarded."""
        self.generation += 1
        self._teardown()
        self.busy = False
        self.clear_alert()
        self.note = NOTE_EMPTY
        logger.debug("Session reset (generation %d)", self.generation)

    async def load(
        self, data: bytes, name: str | None, kind: str | None = None
    ) -> bool:
        """Validate, decode, render and encode a new source image.

        Returns True once the image is LOADED. Failures never raise: a
        rejected kind leaves the prior state untouched; a decode or encode
        failure leaves the session EMPTY with output disabled.
        """
        self.clear_alert()
        declared = kind if kind else kind_from_name(name)
        errors = validate_intake(name, declared, len(data or b""))
        if errors:
            logger.warning("Rejected intake %r: %s", name, "; ".join(errors))
            if validate_kind(declared):
                self._show_alert(ALERT_UNSUPPORTED, is_error=True)
            else:
                self._show_alert("; ".join(errors), is_error=True)
            self.note = NOTE_UPLOAD_FAILED
            return False

        self.generation += 1
        gen = self.generation
        self._teardown()
        self.busy = True
        self.note = NOTE_PROCESSING
        source_kind = normalize_kind(declared)

        try:
            bitmap = await decode_image_async(data)
            if gen != self.generation:
                logger.info("Discarding stale decode (generation %d)", gen)
                return False

            bitmap.flags.writeable = False
            height, width = bitmap.shape[:2]
            luminance = self.renderer.luminance(bitmap)
            intensity = self.intensity
            buffer = self.renderer.render(bitmap, intensity, luminance=luminance)

            blob = await encode_image_async(buffer, source_kind, self.quality)
            if gen != self.generation:
                logger.info("Discarding stale encode (generation %d)", gen)
                return False
        except Exception as e:
            if gen != self.generation:
                return False
            sentry_sdk.capture_exception(e)
            logger.error("Failed to load %r: %s", name, type(e).__name__)
            logger.debug("Load failure detail: %s", e)
            self._teardown()
            self._show_alert(ALERT_PROCESS_FAILED, is_error=True)
            self.note = NOTE_CONVERSION_FAILED
            self.busy = False
            return False

        self.source = SourceDescriptor(
            name=name or "image",
            kind=source_kind,
            width=width,
            height=height,
            bitmap=bitmap,
        )
        self._luminance = luminance
        self.buffer = buffer
        self._rendered_intensity = intensity
        self.render_count += 1
        self.blob = blob
        self.comparison = ComparisonView(bitmap, buffer)
        self.busy = False
        self.note = NOTE_READY
        logger.info("Loaded %dx%d %s (generation %d)", width, height, source_kind, gen)

        # The slider may have moved while decode/encode were suspended
        if self.intensity != intensity:
            self.scheduler.schedule(self._render_frame)
        return True

    # --- intensity / rendering ---

    def set_intensity(self, value: float):
        """Live intensity change in [0, 1]; renders on the next frame tick."""
        self.intensity = clamp_intensity(value)
        if self.source is None or self.busy:
            return
        self.scheduler.schedule(self._render_frame)

    def set_intensity_percent(self, percent: int | float):
        """Intensity control reports integer percent 0-100."""
        self.set_intensity(float(percent) / 100.0)

    def _render_frame(self):
        if self.source is None or self.buffer is None:
            return
        intensity = self.intensity
        if intensity == self._rendered_intensity:
            return
        self.renderer.render(
            self.source.bitmap, intensity, out=self.buffer, luminance=self._luminance
        )
        self._rendered_intensity = intensity
        self._render_seq += 1
        self.render_count += 1
        self.render_state.dirty = True
        if self.comparison is not None:
            self.comparison.sync(self.buffer)

    def flush_render(self) -> bool:
        """Run a pending render immediately."""
        return self.scheduler.flush()

    # --- encoding ---

    async def commit_intensity(self) -> bool:
        """Interaction ended: settle the render and refresh the output."""
        self.flush_render()
        if not self.render_state.dirty:
            return self.blob is not None
        return await self.request_encode()

    async def request_encode(self) -> bool:
        """Encode the current buffer unless an encode is already in flight.

        Returns True when this call encoded successfully. An overlapping call
        returns False at once and leaves a pending flag; the in-flight encode
        re-runs once on completion if the buffer is still dirty.
        """
        if self.source is None or self.buffer is None:
            return False
        state = self.render_state
        if state.encoding:
            state.encode_pending = True
            return False

        gen = self.generation
        state.encoding = True
        state.idle.clear()
        try:
            while True:
                state.encode_pending = False
                seq = self._render_seq
                data = await encode_image_async(
                    self.buffer, self.source.kind, self.quality
                )
                if gen != self.generation:
                    logger.info("Discarding stale encode (generation %d)", gen)
                    return False
                self.blob = data
                state.dirty = self._render_seq != seq
                if not (state.encode_pending and state.dirty):
                    break
            if self.alert is not None and self.alert.message == ALERT_ENCODE_FAILED:
                self.clear_alert()
            return True
        except Exception as e:
            if gen != self.generation:
                return False
            sentry_sdk.capture_exception(e)
            logger.error("Encode failed: %s", type(e).__name__)
            logger.debug("Encode failure detail: %s", e)
            self.blob = None
            state.dirty = True
            self._show_alert(ALERT_ENCODE_FAILED, is_error=True)
            return False
        finally:
            state.encoding = False
            state.encode_pending = False
            state.idle.set()

    async def download(self) -> Download | None:
        """Return the freshest encoded output, re-encoding if dirty.

        Returns None when nothing is loaded, a load is in progress, or the
        encode failed (the alert says so; calling again retries).
        """
        if self.source is None or self.busy:
            return None
        self.flush_render()
        gen = self.generation
        while True:
            state = self.render_state
            if gen != self.generation or self.source is None:
                return None
            if state.encoding:
                await state.idle.wait()
                self.flush_render()
                continue
            if not state.dirty and self.blob is not None:
                break
            if not await self.request_encode():
                return None

        return Download(
            file_name=output_file_name(self.source.name, self.source.kind),
            kind=self.source.kind,
            data=self.blob,
        )
