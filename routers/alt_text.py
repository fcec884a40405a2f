import hmac
import logging
from functools import lru_cache
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Header, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from config import get_settings
from services.alt_text_generator import AltTextGenerator, BatchRequest
from services.gemini_client import GeminiClient
from services.image_fetcher import ImageFetcher
from services.quota import InMemoryUsageStore, QuotaExceeded, QuotaTracker

logger = logging.getLogger(__name__)

router = APIRouter()


class GenerateAltRequest(BaseModel):
    images: List[str] = []
    context: Dict[str, Any] = {}


@lru_cache(maxsize=1)
def get_generator() -> AltTextGenerator:
    settings = get_settings()
    return AltTextGenerator(
        quota=QuotaTracker(InMemoryUsageStore(), settings.daily_image_limit),
        fetcher=ImageFetcher(timeout=settings.fetch_timeout),
        client=GeminiClient(
            api_key=settings.gemini_api_key,
            api_base=settings.gemini_api_base,
            model=settings.gemini_model,
            timeout=settings.gemini_timeout,
            retry_delay=settings.gemini_retry_delay,
        ),
        image_delay=settings.image_delay,
        vision_enabled=settings.vision_enabled,
    )


def caller_identity(request: Request, forwarded_for: Optional[str]) -> str:
    if forwarded_for:
        first_hop = forwarded_for.split(",")[0].strip()
        if first_hop:
            return first_hop
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def is_privileged(internal_key: Optional[str]) -> bool:
    secret = get_settings().internal_key
    if not secret or not internal_key:
        return False
    return hmac.compare_digest(internal_key.encode(), secret.encode())


@router.post("/generate-alt")
def generate_alt(
    body: GenerateAltRequest,
    request: Request,
    x_forwarded_for: Optional[str] = Header(None),
    x_internal_key: Optional[str] = Header(None),
    generator: AltTextGenerator = Depends(get_generator),
):
    """
    Generate alt text, an SEO score, issues and a filename for each image URL.
    """
    try:
        batch = BatchRequest(
            images=tuple(body.images),
            caller_identity=caller_identity(request, x_forwarded_for),
            is_privileged=is_privileged(x_internal_key),
            context=body.context,
        )
        results = generator.generate(batch)
        return {"results": [r.to_dict() for r in results]}
    except QuotaExceeded as e:
        return JSONResponse(status_code=429, content={"error": str(e)})
    except Exception:
        logger.exception("generate-alt failed")
        return JSONResponse(status_code=500, content={"error": "Server error"})
