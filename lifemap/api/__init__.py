"""API router for v1 endpoints."""

from fastapi import APIRouter

from lifemap.api import generation, missions, prompts, timelines

router = APIRouter()

# Timeline, branch and user event routes
router.include_router(timelines.router, tags=["timelines"])

# Mission, metric and step routes
router.include_router(missions.router, tags=["missions"])

# Prediction/step generation and adaptation routes
router.include_router(generation.router, tags=["generation"])

# Custom prompt override routes
router.include_router(prompts.router, tags=["prompts"])
