import json
import re

# Gemini likes to wrap its JSON in ```json ... ``` even when told not to
FENCE_PATTERN = re.compile(r"```(?:json)?", re.IGNORECASE)


def _load_object(text):
    try:
        value = json.loads(text)
    except (ValueError, RecursionError):
        # RecursionError: pathologically nested replies
        return None
    return value if isinstance(value, dict) else None


def extract_json(text):
    """
    Recover the structured record from a model reply.

    Strips markdown fences, tries a strict parse, then falls back to the
    span between the first "{" and the last "}". Returns a dict, or None
    when nothing parses to a JSON object. Never raises.
    """
    if not text:
        return None

    cleaned = FENCE_PATTERN.sub("", text).strip()

    parsed = _load_object(cleaned)
    if parsed is not None:
        return parsed

    start = cleaned.find("{")
    end = cleaned.rfind("}")
    if start == -1 or end <= start:
        return None
    return _load_object(cleaned[start:end + 1])
