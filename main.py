import logging

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from config import get_settings
from routers import alt_text

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

app = FastAPI(title="Alt Text Generator")

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_origins),
    allow_methods=["*"],
    allow_headers=["*"],
)

# ✅ Register routers
app.include_router(alt_text.router, tags=["Alt Text Generator"])


@app.get("/", response_class=PlainTextResponse)
def root():
    return "Alt Text Generator Backend Running"


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=settings.port)
