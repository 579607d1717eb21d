"""Helpers for reading structured replies from Gemini."""
import json
import re
from typing import Any


def parse_json_object(text: str) -> dict[str, Any]:
    """
    Extract the JSON object from a model reply.

    Tolerates Markdown fences and chatter around the object.

    Raises:
        ValueError: no JSON object could be decoded.
    """
    json_match = re.search(r"\{.*\}", text or "", re.DOTALL)
    if not json_match:
        raise ValueError("Model reply contains no JSON object")
    try:
        data = json.loads(json_match.group())
    except json.JSONDecodeError as e:
        raise ValueError(f"Model reply is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ValueError("Model reply JSON is not an object")
    return data
