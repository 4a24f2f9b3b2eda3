"""Output processor for structured backend responses.

This module turns the raw text returned by the backend into translated cues.
Only two response item shapes are accepted, each validated at the boundary:

- ``{"id": ..., "translatedText": ...}`` (the shape requested in the prompt)
- ``{"id": ..., "translated_text": ...}`` (snake case, produced by some models)
"""

import json
import logging
from typing import Any, List, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from ..errors import ResponseFormatError
from ..models.cue import TranslatedCue
from subflow.utils.text import safe_truncate

logger = logging.getLogger(__name__)


class CamelCaseCue(BaseModel):
    """Response item in the requested shape."""

    model_config = ConfigDict(extra="ignore", strict=False)

    id: Union[str, int]
    translatedText: str = Field(...)

    def to_translated_cue(self) -> TranslatedCue:
        return TranslatedCue(id=str(self.id), translated_text=self.translatedText)


class SnakeCaseCue(BaseModel):
    """Response item using snake case field names."""

    model_config = ConfigDict(extra="ignore", strict=False)

    id: Union[str, int]
    translated_text: str = Field(...)

    def to_translated_cue(self) -> TranslatedCue:
        return TranslatedCue(id=str(self.id), translated_text=self.translated_text)


ResponseCue = Union[CamelCaseCue, SnakeCaseCue]
_response_cue_adapter: TypeAdapter[ResponseCue] = TypeAdapter(ResponseCue)


class OutputProcessor:
    """Processes raw backend text into translated cues.

    Responsibilities:
    1. Locate the JSON object in the response (models sometimes add prose or
       code fences around it)
    2. Validate the ``cues`` array
    3. Validate each item against the known response shapes
    """

    PREVIEW_CHARS = 300

    def parse(self, content: str, provider: str = "unknown") -> List[TranslatedCue]:
        """Parse a structured response.

        Args:
            content: Raw response text
            provider: Provider name for log context

        Returns:
            Translated cues in response order (invalid items dropped)

        Raises:
            ResponseFormatError: If the response is not a usable structured response
        """
        if not content or not content.strip():
            raise ResponseFormatError("empty response")

        payload = self._load_json_object(content, provider)

        raw_cues = payload.get("cues")
        if not isinstance(raw_cues, list):
            logger.error(
                f"Invalid JSON structure from {provider}: missing 'cues' array. "
                f"Preview: {safe_truncate(content, self.PREVIEW_CHARS)}"
            )
            raise ResponseFormatError("missing 'cues' array")

        if not raw_cues:
            logger.warning(f"{provider} returned an empty 'cues' array")
            raise ResponseFormatError("empty 'cues' array")

        cues, invalid = self._validate_items(raw_cues)
        if invalid:
            logger.warning(
                f"{provider}: dropped {invalid} cue(s) that match no known response shape"
            )
        return cues

    def _load_json_object(self, content: str, provider: str) -> dict:
        text = content.strip()
        start = text.find("{")
        end = text.rfind("}")
        if start == -1 or end == -1 or end <= start:
            logger.error(
                f"No JSON object in {provider} response. "
                f"Preview: {safe_truncate(text, self.PREVIEW_CHARS)}"
            )
            raise ResponseFormatError("no JSON object found")

        try:
            payload = json.loads(text[start:end + 1])
        except json.JSONDecodeError as e:
            logger.error(
                f"JSON parse error in {provider} response: {e}. "
                f"Preview: {safe_truncate(text[start:end + 1], self.PREVIEW_CHARS)}"
            )
            raise ResponseFormatError(f"malformed JSON: {e}") from e

        if not isinstance(payload, dict):
            raise ResponseFormatError("top-level JSON value is not an object")
        return payload

    def _validate_items(self, raw_cues: List[Any]) -> Tuple[List[TranslatedCue], int]:
        cues: List[TranslatedCue] = []
        invalid = 0
        for item in raw_cues:
            try:
                cue = _response_cue_adapter.validate_python(item)
            except ValidationError:
                invalid += 1
                continue
            cues.append(cue.to_translated_cue())
        return cues, invalid
