"""
Inference orchestrator for dish and menu scans.

Builds the scan-type specific prompt and strict response schema, calls the
Gemini vision model and parses its answer into ``InferenceResult``.
"""

import asyncio
import json
import logging
import re
from typing import Any, Optional

from google import genai
from google.genai import types
from pydantic import ValidationError

from dishscan.config.settings import InferenceSettings, get_settings
from dishscan.core.exceptions import (
    InferenceParseError,
    InferenceServiceError,
    QuotaExceededError,
    is_quota_error,
)
from dishscan.models.api_models import InferencePayload
from dishscan.models.internal_models import EncodedImage, InferenceResult, ScanType

_FENCE_OPEN = re.compile(r"^```(?:json)?\s?")
_FENCE_CLOSE = re.compile(r"```\s*$")

MENU_ACCURACY_RULE = (
    "ACCURACY RULE: Since this is a menu (text), you CANNOT see the food. "
    "You MUST infer 'spiceLevel', 'allergens', and 'tags' solely based on your "
    "CULINARY KNOWLEDGE of the dish name. Do not guess visual features. "
    "If a dish is listed under a section header (e.g. 'Noodles', 'Soups'), use the "
    "header to infer the dish's full name."
)

DISH_ACCURACY_RULE = (
    "ACCURACY RULE: Infer 'spiceLevel' and 'allergens' based on VISUAL INSPECTION of the food."
)


def build_prompt(scan_type: ScanType, target_language: str) -> str:
    """Build the text prompt for a scan"""
    accuracy_rule = MENU_ACCURACY_RULE if scan_type == ScanType.MENU else DISH_ACCURACY_RULE
    subject = "menu image" if scan_type == ScanType.MENU else "food photo"
    return (
        f"Analyze this {subject}.\n"
        f"Identify all distinct dishes.\n"
        f"Translate details to {target_language}.\n\n"
        "IMPORTANT: Return PURE JSON adhering to the schema.\n"
        "- 'originalName': The exact text as it appears on the menu (e.g., \"宫保鸡丁\").\n"
        "- 'spiceLevel': 'None', 'Mild', 'Medium', 'Hot'.\n"
        "- 'category': e.g., 'Appetizer', 'Main', 'Dessert'.\n"
        "- 'tags': Array of strings like \"Spicy\", \"Vegetarian\".\n"
        "- 'boundingBox': [0,0,0,0] if the dish is only text "
        "(placeholder, OCR will be used for location).\n\n"
        f"{accuracy_rule}"
    )


def build_response_schema(target_language: str) -> types.Schema:
    """Strict response schema: an isMenu flag plus fully populated dish records"""
    dish_schema = types.Schema(
        type=types.Type.OBJECT,
        properties={
            "name": types.Schema(
                type=types.Type.STRING,
                description=f"Name of the dish translated to {target_language}",
            ),
            "originalName": types.Schema(
                type=types.Type.STRING,
                description="Original name of the dish in its native language",
            ),
            "englishName": types.Schema(
                type=types.Type.STRING,
                description="Name of the dish in English (for image search purposes)",
            ),
            "description": types.Schema(
                type=types.Type.STRING,
                description=f"Description of ingredients and taste profile in {target_language}",
            ),
            "tags": types.Schema(
                type=types.Type.ARRAY,
                items=types.Schema(type=types.Type.STRING),
                description=f"Top 3 dominant flavor profile words (e.g. Sweet, Salty, Umami) in {target_language}",
            ),
            "allergens": types.Schema(
                type=types.Type.ARRAY,
                items=types.Schema(type=types.Type.STRING),
                description=f"List 1 to 5 potential allergens (e.g. Peanuts, Gluten, Dairy, Shellfish) in {target_language}",
            ),
            "spiceLevel": types.Schema(
                type=types.Type.STRING,
                enum=["None", "Mild", "Medium", "Hot"],
                description="None=Not Spicy, Mild=1 chili, Medium=2 chilies, Hot=3 chilies",
            ),
            "category": types.Schema(
                type=types.Type.STRING,
                description="Broad category like Soup, Main, Dessert",
            ),
            "boundingBox": types.Schema(
                type=types.Type.ARRAY,
                items=types.Schema(type=types.Type.NUMBER),
                description="Bounding box of the dish [ymin, xmin, ymax, xmax] in 0-1000 scale.",
            ),
        },
        required=[
            "name", "originalName", "englishName", "description", "tags",
            "allergens", "spiceLevel", "category", "boundingBox",
        ],
    )
    return types.Schema(
        type=types.Type.OBJECT,
        properties={
            "isMenu": types.Schema(
                type=types.Type.BOOLEAN,
                description="True if the image is a menu (text list), False if it is a photo of real food.",
            ),
            "dishes": types.Schema(type=types.Type.ARRAY, items=dish_schema),
        },
        required=["isMenu", "dishes"],
    )


def strip_code_fence(text: str) -> str:
    """Remove a surrounding markdown code fence, if any"""
    text = text.strip()
    if text.startswith("```"):
        text = _FENCE_OPEN.sub("", text, count=1)
        text = _FENCE_CLOSE.sub("", text)
    return text.strip()


def parse_inference_response(text: Optional[str]) -> InferenceResult:
    """
    Parse raw service text into an ``InferenceResult``.

    An empty response counts as ``{}``. A missing dish list degrades to no
    dishes; malformed JSON or an incomplete dish record does not.

    Raises:
        InferenceParseError: If the payload is not valid against the schema
    """
    cleaned = strip_code_fence(text or "") or "{}"

    try:
        raw = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise InferenceParseError(f"Inference response is not valid JSON: {e}", details={"preview": cleaned[:200]})

    if not isinstance(raw, dict):
        raise InferenceParseError(
            f"Inference response must be a JSON object, got {type(raw).__name__}",
            details={"preview": cleaned[:200]}
        )

    try:
        payload = InferencePayload.model_validate(raw)
    except ValidationError as e:
        raise InferenceParseError(
            f"Inference response does not match the dish schema: {e.error_count()} errors",
            details={"errors": e.errors(include_url=False, include_input=False)}
        )

    return InferenceResult(
        is_menu=bool(payload.is_menu),
        dishes=[dish.to_inferred_dish() for dish in payload.dishes],
    )


class InferenceService:
    """Gemini-backed dish identification"""

    def __init__(self, client: Optional[Any] = None, config: Optional[InferenceSettings] = None):
        self.config = config or get_settings().inference
        self.model = self.config.model
        self.logger = logging.getLogger(__name__)
        if client is not None:
            self.client = client
        elif self.config.api_key:
            self.client = genai.Client(api_key=self.config.api_key)
        else:
            self.client = None
            self.logger.warning("No GEMINI_API_KEY configured; scans will fail until one is set")

    async def analyze(self, image: EncodedImage, scan_type: ScanType, target_language: str) -> InferenceResult:
        """
        Identify dishes in an encoded image.

        Raises:
            QuotaExceededError: The service reported rate limiting or quota exhaustion
            InferenceServiceError: Any other failure of the call
            InferenceParseError: The response did not match the schema
        """
        if self.client is None:
            raise InferenceServiceError("Inference service is not configured (missing API key)")

        config = types.GenerateContentConfig(
            response_mime_type="application/json",
            response_schema=build_response_schema(target_language),
        )
        contents = [
            types.Part.from_bytes(data=image.data, mime_type=image.mime_type),
            build_prompt(scan_type, target_language),
        ]

        self.logger.info(
            f"Sending {len(image.data) / 1024:.1f}kb image to model={self.model}",
            extra={'scan_type': scan_type.value}
        )

        try:
            # Run the sync client in a worker thread to keep the loop free
            response = await asyncio.wait_for(
                asyncio.to_thread(
                    self.client.models.generate_content,
                    model=self.model,
                    contents=contents,
                    config=config,
                ),
                timeout=self.config.timeout_seconds,
            )
        except asyncio.TimeoutError:
            raise InferenceServiceError(f"Inference call timed out after {self.config.timeout_seconds}s")
        except Exception as e:
            if is_quota_error(e):
                self.logger.warning(f"Inference quota exhausted: {e}")
                raise QuotaExceededError(str(e))
            self.logger.error(f"Inference call failed: {e}")
            raise InferenceServiceError(f"Inference call failed: {e}")

        result = parse_inference_response(getattr(response, "text", None))
        self.logger.info(
            f"Inference identified {len(result.dishes)} dishes (isMenu={result.is_menu})",
            extra={'items_count': len(result.dishes)}
        )
        return result
