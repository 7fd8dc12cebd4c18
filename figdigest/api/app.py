"""
Digest HTTP entrypoint — FastAPI app for schedulers and manual triggers.

Endpoints:
  GET/POST /api/run-figma-digest → run one digest, return the run summary
  GET      /health               → liveness

Status is 200 whenever the run got past configuration checks, even if some
accounts failed (``success`` is false and ``errors`` lists them); 500 only
when the encryption key or Slack webhook URL is missing or invalid.

Start:
  uvicorn figdigest.api.app:app --host 0.0.0.0 --port 8080
"""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from figdigest.config import get_config
from figdigest.digest.orchestrator import run_digest
from figdigest.errors import ConfigError
from figdigest.log import configure_logging

# An invalid setting is reported by the run endpoint as a 500.
try:
    configure_logging(get_config().log_level)
except ConfigError:
    configure_logging()

app = FastAPI(
    title="figdigest",
    description="Figma activity digests delivered to Slack.",
    version="0.1.0",
)


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


@app.api_route("/api/run-figma-digest", methods=["GET", "POST"])
async def run_figma_digest() -> JSONResponse:
    status, result = await run_digest()
    return JSONResponse(content=result.to_dict(), status_code=status)
