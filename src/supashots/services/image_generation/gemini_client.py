"""Gemini image generation backend with error classification."""

import base64
from typing import Optional, Protocol

import structlog
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from supashots.models.shot import AspectRatio
from supashots.services.exceptions import (
    GenerationError,
    GenerationFailedError,
    RateLimitedError,
)

logger = structlog.get_logger(__name__)

DEFAULT_IMAGE_MODEL = "gemini-2.5-flash-image"
SOURCE_MIME_TYPE = "image/jpeg"

# Ratios the image model does not accept, mapped to the nearest supported one.
# Supported ratios (1:1, 3:4, 4:3, 9:16, 16:9) pass through unchanged.
ASPECT_RATIO_FALLBACKS: dict[AspectRatio, AspectRatio] = {
    AspectRatio.PORTRAIT_2_3: AspectRatio.PORTRAIT_3_4,
    AspectRatio.LANDSCAPE_3_2: AspectRatio.LANDSCAPE_4_3,
    AspectRatio.ULTRAWIDE_21_9: AspectRatio.LANDSCAPE_16_9,
}


class GenerationBackend(Protocol):
    """Anything that can render a prompt (optionally conditioned on an image)."""

    async def generate(
        self, image: Optional[str], prompt: str, aspect_ratio: AspectRatio
    ) -> bytes: ...


def map_aspect_ratio(ratio: AspectRatio) -> AspectRatio:
    """Map a user-selected ratio to the nearest backend-supported ratio."""
    return ASPECT_RATIO_FALLBACKS.get(ratio, ratio)


def strip_data_url(image: str) -> str:
    """Return the base64 payload of a data URL (or the input if it has no header)."""
    if "," in image:
        return image.split(",", 1)[1]
    return image


def to_data_url(image_bytes: bytes, mime_type: str = "image/jpeg") -> str:
    """Encode rendered image bytes as a data URL."""
    return f"data:{mime_type};base64,{base64.b64encode(image_bytes).decode('ascii')}"


def classify_error(exception: Exception) -> GenerationError:
    """Classify exception into retry category.

    Args:
        exception: Original exception from the Gemini SDK or network layer

    Returns:
        Classified GenerationError subclass instance

    Classification rules:
        - HTTP 429 / RESOURCE_EXHAUSTED / "rate limit" → RateLimitedError
        - Everything else → GenerationFailedError
    """
    if isinstance(exception, GenerationError):
        return exception

    error_message = str(exception)

    if isinstance(exception, genai_errors.APIError):
        if exception.code == 429 or exception.status == "RESOURCE_EXHAUSTED":
            return RateLimitedError(f"Rate limit exceeded: {error_message}")

    if (
        "429" in error_message
        or "RESOURCE_EXHAUSTED" in error_message
        or "rate limit" in error_message.lower()
    ):
        return RateLimitedError(f"Rate limit exceeded: {error_message}")

    return GenerationFailedError(f"Generation failed: {error_message}")


def extract_image(response: types.GenerateContentResponse) -> bytes:
    """Return the first inline image in a response.

    Raises:
        GenerationFailedError: If the response carries no image data
    """
    candidates = response.candidates or []
    if candidates and candidates[0].content and candidates[0].content.parts:
        for part in candidates[0].content.parts:
            if part.inline_data and part.inline_data.data:
                return part.inline_data.data
    raise GenerationFailedError("No image data found in response")


class GeminiImageBackend:
    """Generation backend calling a Gemini image model.

    Each call is a single request; retrying is the scheduler's business.
    """

    def __init__(self, client: genai.Client, model: str = DEFAULT_IMAGE_MODEL):
        self.client = client
        self.model = model

    async def generate(
        self, image: Optional[str], prompt: str, aspect_ratio: AspectRatio
    ) -> bytes:
        """Render one image.

        Args:
            image: Source image as base64 or data URL; None for text-only calls
            prompt: Full prompt text
            aspect_ratio: Requested ratio, mapped to a supported one

        Returns:
            Raw image bytes

        Raises:
            RateLimitedError: Backend rate limited the call
            GenerationFailedError: Any other failure
        """
        try:
            contents: list = []
            if image:
                contents.append(
                    types.Part.from_bytes(
                        data=base64.b64decode(strip_data_url(image)),
                        mime_type=SOURCE_MIME_TYPE,
                    )
                )
            contents.append(types.Part.from_text(text=prompt))

            response = await self.client.aio.models.generate_content(
                model=self.model,
                contents=contents,
                config=types.GenerateContentConfig(
                    response_modalities=["IMAGE"],
                    image_config=types.ImageConfig(
                        aspect_ratio=map_aspect_ratio(aspect_ratio).value
                    ),
                ),
            )
            return extract_image(response)

        except GenerationError:
            raise

        except Exception as e:
            classified = classify_error(e)
            logger.debug(
                "backend.call_failed",
                model=self.model,
                error_type=type(classified).__name__,
                error_message=str(e),
            )
            raise classified from e
