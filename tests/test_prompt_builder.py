import base64

import pytest

from services.image_fetcher import FetchedImage
from services.prompt_builder import PromptMode, build_instruction, build_prompt, derive_product_name


@pytest.mark.parametrize("url, expected", [
    ("https://x/shop/red-running_shoe.jpg", "red running shoe"),
    ("https://x/a.jpg", "a"),
    ("https://x/images/Blue%20Mug--Large.png?w=400", "Blue Mug Large"),
    ("https://x/", ""),
    ("https://x/photos/summer+hat", "summer hat"),
])
def test_derive_product_name(url, expected):
    assert derive_product_name(url) == expected


def test_instruction_demands_json_fields():
    text = build_instruction("https://x/a.jpg")

    assert "Return ONLY valid JSON" in text
    for key in ('"alt_text"', '"score"', '"issues"', '"filename"'):
        assert key in text
    assert "under 100 characters" in text
    assert "Image URL:\nhttps://x/a.jpg" in text


def test_context_is_embedded_as_json():
    text = build_instruction("https://x/a.jpg", {"brand": "Acme", "keyword": "shoes"})

    assert 'Context:\n{"brand": "Acme", "keyword": "shoes"}' in text
    assert "Product name" not in text


def test_product_name_used_without_context():
    text = build_instruction("https://x/red-running-shoe.jpg", {})

    assert "Product name:\nred running shoe" in text
    assert "Context" not in text


def test_text_only_payload_has_single_text_part():
    payload = build_prompt("https://x/a.jpg", None, PromptMode.TEXT_ONLY)

    parts = payload["contents"][0]["parts"]
    assert len(parts) == 1
    assert "https://x/a.jpg" in parts[0]["text"]


def test_vision_payload_inlines_image_bytes():
    image = FetchedImage(data=b"\xff\xd8\xff", mime_type="image/jpeg")

    payload = build_prompt("https://x/a.jpg", None, PromptMode.VISION, image=image)

    parts = payload["contents"][0]["parts"]
    assert "text" in parts[0]
    assert parts[1]["inline_data"] == {
        "mime_type": "image/jpeg",
        "data": base64.b64encode(b"\xff\xd8\xff").decode("ascii"),
    }


def test_vision_without_image_is_rejected():
    with pytest.raises(ValueError):
        build_prompt("https://x/a.jpg", None, PromptMode.VISION)


def test_malformed_host_gives_empty_product_name():
    assert derive_product_name("https://[x/a.jpg") == ""


def test_malformed_host_still_builds_text_only_prompt():
    payload = build_prompt("https://[x/a.jpg", None, PromptMode.TEXT_ONLY)

    assert "Image URL:\nhttps://[x/a.jpg" in payload["contents"][0]["parts"][0]["text"]


def test_non_ascii_context_is_embedded_verbatim():
    text = build_instruction("https://x/a.jpg", {"brand": "Café Señor"})

    assert 'Context:\n{"brand": "Café Señor"}' in text
