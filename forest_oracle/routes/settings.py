"""Health check and static registry endpoints."""

from fastapi import APIRouter

from forest_oracle.classes import CLASS_DESCRIPTIONS, starting_inventory, stats_for
from forest_oracle.models import CharacterClass
from forest_oracle.worlds import WORLDS

router = APIRouter()


@router.get("/health")
async def health():
    """Health check."""
    return {"status": "ok"}


@router.get("/worlds")
async def list_worlds():
    """List the built-in world settings."""
    return list(WORLDS.values())


@router.get("/classes")
async def list_classes():
    """List character classes with base stats and starting kits."""
    return [
        {
            "cls": cls.value,
            "description": CLASS_DESCRIPTIONS[cls],
            "stats": stats_for(cls),
            "inventory": starting_inventory(cls),
        }
        for cls in CharacterClass
    ]
