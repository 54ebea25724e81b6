"""Client for the screenshot scam classifier inference endpoint."""

from __future__ import annotations

import io
import logging

import httpx
from PIL import Image, UnidentifiedImageError

from .decision import ClassifierVerdict

logger = logging.getLogger(__name__)

INPUT_WIDTH = 1280
INPUT_HEIGHT = 1280


class ClassifierError(Exception):
    """The classifier could not produce a verdict."""


def prepare_image(image_bytes: bytes) -> bytes:
    """Resize a screenshot to the model input size as RGB PNG."""
    try:
        with Image.open(io.BytesIO(image_bytes)) as img:
            resized = img.convert("RGB").resize((INPUT_WIDTH, INPUT_HEIGHT), Image.Resampling.BILINEAR)
    except (UnidentifiedImageError, OSError) as exc:
        raise ClassifierError(f"Unreadable screenshot: {exc}") from exc

    out = io.BytesIO()
    resized.save(out, format="PNG")
    return out.getvalue()


def parse_verdict(payload: dict) -> ClassifierVerdict:
    if not isinstance(payload, dict):
        raise ClassifierError("Classifier response is not an object")
    is_scam = payload.get("isScam", payload.get("is_scam"))
    confidence = payload.get("confidence", payload.get("confidenceScore"))
    if is_scam is None or confidence is None:
        raise ClassifierError(f"Classifier response missing fields: {sorted(payload)}")
    try:
        confidence = float(confidence)
    except (TypeError, ValueError) as exc:
        raise ClassifierError(f"Invalid confidence: {confidence!r}") from exc
    return ClassifierVerdict(is_scam=bool(is_scam), confidence=max(0.0, min(1.0, confidence)))


class ScreenshotClassifier:
    """classify(image_bytes) -> ClassifierVerdict over HTTP."""

    def __init__(self, endpoint: str, timeout: float = 30.0):
        self.endpoint = endpoint
        self.timeout = timeout

    async def classify(self, image_bytes: bytes) -> ClassifierVerdict:
        if not self.endpoint:
            raise ClassifierError("CLASSIFIER_URL is not configured")

        prepared = prepare_image(image_bytes)
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(
                    self.endpoint,
                    files={"image": ("screenshot.png", prepared, "image/png")},
                )
                resp.raise_for_status()
                payload = resp.json()
        except httpx.HTTPError as exc:
            raise ClassifierError(f"Classifier request failed: {exc}") from exc
        except ValueError as exc:
            raise ClassifierError(f"Classifier returned invalid JSON: {exc}") from exc

        verdict = parse_verdict(payload)
        logger.debug(
            "Classifier verdict: %s (%.2f%%)",
            "SCAM" if verdict.is_scam else "NON_SCAM",
            verdict.confidence * 100,
        )
        return verdict
