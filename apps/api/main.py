"""FastAPI application for multi-room building registration.

Accepts an ordered list of captured rooms, runs the registration pipeline
and serves the resulting building model and its alignment quality.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from pydantic import BaseModel as PydanticBaseModel
from pydantic import Field

from packages.core.config import RegistrationConfig
from packages.core.types import CapturedRoom, CombinedBuildingModel
from packages.registration.process import align_rooms

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    datefmt='%H:%M:%S'
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Building Registration API", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # permissive for local development; tighten for production
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── In-memory store (last run only) ──────────────────────────────────
_state: dict = {
    "model": None,  # CombinedBuildingModel or None
}


class AlignRequest(PydanticBaseModel):
    """Body for the align endpoint."""
    rooms: list[CapturedRoom] = Field(min_length=1)
    config: Optional[RegistrationConfig] = None


def _json(model: PydanticBaseModel) -> Response:
    # model_dump_json keeps ``Infinity`` errors that JSONResponse would reject
    return Response(content=model.model_dump_json(), media_type="application/json")


@app.get("/health")
def health():
    return {"status": "ok"}


@app.post("/align")
def align(req: AlignRequest):
    """Register the rooms in order and store the combined building model."""
    logger.info(f"📥 Received {len(req.rooms)} rooms for alignment")
    try:
        model = align_rooms(req.rooms, req.config)
    except Exception as e:
        logger.exception("❌ Alignment failed")
        raise HTTPException(500, f"Alignment failed: {e}")

    _state["model"] = model
    logger.info(
        f"🎉 Alignment done: score {model.alignment_quality.overall_score:.3f}, "
        f"{len(model.alignment_quality.issues)} issue(s)"
    )
    return _json(model)


@app.get("/model")
def get_model():
    """Return the last combined building model."""
    if _state["model"] is None:
        raise HTTPException(404, "No alignment run yet")

    model: CombinedBuildingModel = _state["model"]
    logger.info(f"🏠 Sending building model with {len(model.rooms)} rooms")
    return _json(model)


@app.get("/quality")
def get_quality():
    """Return the alignment quality of the last run."""
    if _state["model"] is None:
        raise HTTPException(404, "No alignment run yet")

    model: CombinedBuildingModel = _state["model"]
    return _json(model.alignment_quality)
