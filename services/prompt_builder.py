import base64
import json
import os
import re
from enum import Enum
from urllib.parse import unquote, urlparse

PROMPT_TEMPLATE = """
Return ONLY valid JSON. No explanation.

Format:
{
  "alt_text": "SEO friendly alt text under 100 characters including keyword and brand",
  "score": number from 0-100,
  "issues": "short issue description or None",
  "filename": "seo-optimized-file-name.jpg"
}
"""


class PromptMode(str, Enum):
    VISION = "vision"
    TEXT_ONLY = "text-only"


def derive_product_name(url):
    """
    Turn the last path segment of an image URL into a readable name:
    "https://x/shop/red-running_shoe.jpg" -> "red running shoe".
    """
    try:
        path = unquote(urlparse(url).path)
    except ValueError:
        # e.g. "https://[x/a.jpg" (unbalanced IPv6 bracket)
        return ""
    segment = path.rstrip("/").rsplit("/", 1)[-1]
    stem, _ = os.path.splitext(segment)
    stem = re.sub(r"[-_+]+", " ", stem)
    return re.sub(r"\s+", " ", stem).strip()


def build_instruction(image_url, context=None):
    sections = [PROMPT_TEMPLATE.strip()]

    if context:
        sections.append(f"Context:\n{json.dumps(context, ensure_ascii=False)}")
    else:
        product_name = derive_product_name(image_url)
        if product_name:
            sections.append(f"Product name:\n{product_name}")

    sections.append(f"Image URL:\n{image_url}")
    return "\n\n".join(sections) + "\n"


def build_prompt(image_url, context=None, mode=PromptMode.TEXT_ONLY, image=None):
    """
    Build a Gemini generateContent body for one image.

    VISION mode sends the fetched bytes inline next to the instruction and
    requires `image` (a FetchedImage); TEXT_ONLY sends the instruction alone.
    """
    parts = [{"text": build_instruction(image_url, context)}]

    if mode == PromptMode.VISION:
        if image is None:
            raise ValueError("Vision prompt needs the image bytes")
        parts.append({
            "inline_data": {
                "mime_type": image.mime_type,
                "data": base64.b64encode(image.data).decode("ascii"),
            }
        })

    return {"contents": [{"parts": parts}]}
