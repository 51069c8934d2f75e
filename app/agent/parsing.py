"""
Structured output from free-text model responses.

Models are asked to answer with a JSON object but often wrap it in prose or code fences.
extract_json_object finds the first decodable JSON object in the text and validates it
against a pydantic model; anything else raises ModelOutputParseError.
"""

import json
import logging
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from app.core.errors import ModelOutputParseError

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

_decoder = json.JSONDecoder()


def find_json_object(text: str) -> dict[str, Any]:
    """Return the first JSON object embedded in text. Raises ModelOutputParseError if none decodes."""
    text = text or ""
    start = text.find("{")
    while start != -1:
        try:
            value, _end = _decoder.raw_decode(text, start)
        except json.JSONDecodeError:
            value = None
        if isinstance(value, dict):
            return value
        start = text.find("{", start + 1)
    raise ModelOutputParseError("No JSON object found in model output", raw_text=text)


def extract_json_object(text: str, model: type[ModelT]) -> ModelT:
    """Extract the first JSON object from text and validate it as model."""
    data = find_json_object(text)
    try:
        return model.model_validate(data)
    except ValidationError as e:
        logger.warning("[parsing] %s validation failed: %s", model.__name__, e.errors())
        raise ModelOutputParseError(
            f"Model output did not match {model.__name__}: {e.error_count()} error(s)",
            raw_text=text,
        ) from e
