import logging
import time
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union

from services.gemini_client import ProviderError
from services.image_fetcher import FetchError
from services.prompt_builder import PromptMode, build_prompt
from services.quota import QuotaExceeded
from services.response_parser import extract_json

logger = logging.getLogger(__name__)

MSG_GENERATION_FAILED = "Error generating alt text"
MSG_NOT_GENERATED = "Alt text not generated"
ISSUE_PROVIDER_FAILED = "Gemini request failed"
ISSUE_INVALID_RESPONSE = "Invalid AI response format"


@dataclass(frozen=True)
class BatchRequest:
    images: Tuple[str, ...]
    caller_identity: str
    is_privileged: bool = False
    context: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ImageResult:
    image: str
    alt_text: str
    score: Union[int, float, str] = ""
    issues: str = ""
    filename: str = ""

    def to_dict(self):
        return asdict(self)


def _text_field(parsed, key):
    value = parsed.get(key)
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def result_from_reply(image_url, raw_text):
    parsed = extract_json(raw_text)
    if parsed is None:
        return ImageResult(
            image=image_url,
            alt_text=raw_text or MSG_NOT_GENERATED,
            issues=ISSUE_INVALID_RESPONSE,
        )

    score = parsed.get("score")
    return ImageResult(
        image=image_url,
        alt_text=_text_field(parsed, "alt_text"),
        score="" if score is None else score,
        issues=_text_field(parsed, "issues"),
        filename=_text_field(parsed, "filename"),
    )


def failed_result(image_url):
    return ImageResult(image=image_url, alt_text=MSG_GENERATION_FAILED, issues=ISSUE_PROVIDER_FAILED)


class AltTextGenerator:
    """
    Runs a batch: one quota check for the whole batch, then each image in
    order through vision -> text-only -> extraction.

    Per-image failures become placeholder results; only QuotaExceeded
    leaves generate().
    """

    def __init__(self, quota, fetcher, client, image_delay=0.0, vision_enabled=True):
        self.quota = quota
        self.fetcher = fetcher
        self.client = client
        self.image_delay = image_delay
        self.vision_enabled = vision_enabled

    def generate(self, request: BatchRequest) -> List[ImageResult]:
        decision = self.quota.check_and_consume(
            request.caller_identity, len(request.images), request.is_privileged
        )
        if not decision.allowed:
            raise QuotaExceeded(self.quota.daily_limit)

        results = []
        for index, image_url in enumerate(request.images):
            if index and self.image_delay:
                time.sleep(self.image_delay)
            results.append(self._process_image(image_url, request.context))
        return results

    def _process_image(self, image_url, context):
        try:
            raw_text = self._invoke_vision(image_url, context)
            if raw_text is None:
                raw_text = self.client.invoke(build_prompt(image_url, context, PromptMode.TEXT_ONLY))
            return result_from_reply(image_url, raw_text)
        except ProviderError as e:
            logger.warning("Alt text generation failed for %s: %s", image_url, e)
            return failed_result(image_url)
        except Exception:
            logger.exception("Unexpected error while processing %s", image_url)
            return failed_result(image_url)

    def _invoke_vision(self, image_url, context) -> Optional[str]:
        """Return the vision reply, or None when the caller should fall back to text-only."""
        if not self.vision_enabled:
            return None
        try:
            image = self.fetcher.fetch_image(image_url)
            return self.client.invoke(build_prompt(image_url, context, PromptMode.VISION, image=image))
        except FetchError as e:
            logger.warning("Falling back to text-only for %s: %s", image_url, e)
        except ProviderError as e:
            logger.warning("Vision request failed for %s, retrying text-only: %s", image_url, e)
        return None
