"""FastAPI main application."""

from typing import Any, Dict, List, Optional, Tuple

import structlog
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from ..config import IslandConfig, settings
from ..core.contours import RockPrototype
from ..core.session import GenerationInProgressError, IslandSession

# Configure logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer() if settings.log_format == "json"
        else structlog.dev.ConsoleRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()

# Initialize FastAPI app
app = FastAPI(
    title="Island Generator API",
    description="Procedural island terrain, placement, paths and water",
    version="0.1.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

session = IslandSession()


# Request/Response models
class RockPrototypeModel(BaseModel):
    """A rock source asset described by its bounding box."""

    name: str
    size: Tuple[float, float, float] = Field(..., description="Bounding box size (x, y, z)")
    min_y: float = Field(0.0, description="Bounding box bottom")


class GenerateRequest(BaseModel):
    """Request to generate a new island."""

    seed: Optional[str] = Field(None, description="Random seed for reproducible generation")
    config: IslandConfig = Field(default_factory=IslandConfig)
    rock_prototypes: List[RockPrototypeModel] = Field(default_factory=list)
    foliage_prototypes: List[str] = Field(default_factory=list, description="Foliage asset names")


class GenerateResponse(BaseModel):
    """Outcome of a generation request."""

    success: bool
    duration_seconds: float
    summary: Dict[str, Any]


@app.get("/")
async def root():
    return {
        "message": "Island Generator API",
        "version": "0.1.0",
        "docs": "/docs",
    }


@app.get("/health")
async def health_check():
    return {"status": "healthy", "busy": session.busy, "has_island": session.latest is not None}


@app.post("/island/generate", response_model=GenerateResponse)
def generate(request: GenerateRequest):
    """Run a generation pass; only one pass runs at a time."""
    seed = request.seed or settings.default_seed
    rocks = [RockPrototype(name=r.name, size=tuple(r.size), min_y=r.min_y)
             for r in request.rock_prototypes]

    try:
        outcome = session.regenerate(request.config, rocks, request.foliage_prototypes, seed=seed)
    except GenerationInProgressError as e:
        raise HTTPException(status_code=409, detail=str(e))

    if not outcome.success:
        raise HTTPException(status_code=500, detail=f"Generation failed: {outcome.error}")

    logger.info("Island generation request completed", seed=seed,
                duration=round(outcome.duration_seconds, 3))
    return GenerateResponse(
        success=True,
        duration_seconds=outcome.duration_seconds,
        summary=outcome.bundle.summary(),
    )


@app.get("/island")
async def get_island():
    """Summary of the most recently generated island."""
    bundle = session.latest
    if bundle is None:
        raise HTTPException(status_code=404, detail="No island generated yet")
    return bundle.summary()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
