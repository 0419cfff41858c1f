"""Source image analysis via a Gemini multimodal model.

The analyzer never raises: any transport failure or malformed reply yields
the default descriptor so generation can proceed with generic prompts.
"""

import base64
import re
from typing import Optional

import structlog
from google import genai
from google.genai import types
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from supashots.models.batch import SubjectDescriptor
from supashots.models.shot import FramingQuality
from supashots.services.exceptions import AnalysisError
from supashots.services.image_generation.gemini_client import SOURCE_MIME_TYPE, strip_data_url

logger = structlog.get_logger(__name__)

DEFAULT_ANALYSIS_MODEL = "gemini-2.5-flash"

ANALYSIS_PROMPT = """Analyze this image and provide a JSON output. STRICTLY JSON.
1. Identify the specific product or subject name.
2. Provide a concise but detailed visual description of the subject (colors, materials,
   features, pose if human).
3. Identify the category.
4. Detect if the subject is a human (true/false).
5. Evaluate framing quality for a portrait/product shot: 'ok', 'too_far' (subject too small),
   'cut_off' (important parts missing), or 'empty'.

Output format:
{
  "productName": "string",
  "description": "string",
  "category": "string",
  "confidence": number,
  "isHuman": boolean,
  "framingQuality": "string",
  "recommendations": ["string"]
}"""

FRAMING_WARNINGS: dict[FramingQuality, str] = {
    FramingQuality.TOO_FAR: (
        "Subject appears too far away. For best portrait results, use a closer shot."
    ),
    FramingQuality.CUT_OFF: (
        "Subject's face or key features appear cut off. Please use a well-framed photo."
    ),
    FramingQuality.EMPTY: "No clear subject detected. Please try another photo.",
}

_FENCE_PATTERN = re.compile(r"```(?:json)?")


class _AnalysisPayload(BaseModel):
    """Wire shape of the model's JSON reply."""

    model_config = ConfigDict(populate_by_name=True)

    product_name: Optional[str] = Field(default=None, alias="productName")
    description: Optional[str] = None
    category: Optional[str] = None
    confidence: Optional[float] = None
    is_human: Optional[bool] = Field(default=None, alias="isHuman")
    framing_quality: Optional[FramingQuality] = Field(default=None, alias="framingQuality")
    recommendations: list[str] = Field(default_factory=list)


def default_descriptor() -> SubjectDescriptor:
    """Descriptor used whenever analysis is unavailable."""
    return SubjectDescriptor()


def parse_analysis(text: str) -> SubjectDescriptor:
    """Decode the model's reply into a descriptor.

    Missing fields fall back individually; a reply that is not valid JSON
    of the expected shape raises AnalysisError.
    """
    payload_text = _FENCE_PATTERN.sub("", text).strip()
    try:
        payload = _AnalysisPayload.model_validate_json(payload_text)
    except ValidationError as e:
        raise AnalysisError(f"Malformed analysis output: {e.error_count()} error(s)") from e

    defaults = SubjectDescriptor()
    return SubjectDescriptor(
        name=payload.product_name or defaults.name,
        description=payload.description or defaults.description,
        category=payload.category or defaults.category,
        confidence=payload.confidence if payload.confidence is not None else 0.8,
        is_human=bool(payload.is_human),
        framing_quality=payload.framing_quality or FramingQuality.OK,
        recommendations=payload.recommendations,
    )


def framing_warning(subject: SubjectDescriptor) -> Optional[str]:
    """Return a user-facing warning for badly framed human subjects."""
    if not subject.is_human:
        return None
    return FRAMING_WARNINGS.get(subject.framing_quality)


class GeminiAnalyzer:
    """Classifies a source image with a Gemini multimodal model."""

    def __init__(self, client: genai.Client, model: str = DEFAULT_ANALYSIS_MODEL):
        self.client = client
        self.model = model

    async def analyze(self, image: str) -> SubjectDescriptor:
        try:
            response = await self.client.aio.models.generate_content(
                model=self.model,
                contents=[
                    types.Part.from_bytes(
                        data=base64.b64decode(strip_data_url(image)),
                        mime_type=SOURCE_MIME_TYPE,
                    ),
                    types.Part.from_text(text=ANALYSIS_PROMPT),
                ],
            )
            subject = parse_analysis(response.text or "")

        except AnalysisError as e:
            logger.warning("analysis.parse_failed", error=str(e))
            return default_descriptor()

        except Exception as e:
            logger.error(
                "analysis.failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            return default_descriptor()

        logger.info(
            "analysis.completed",
            subject_name=subject.name,
            category=subject.category,
            is_human=subject.is_human,
            framing_quality=subject.framing_quality.value,
        )
        return subject
