"""
Business directory endpoints (v1).
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Query

from api.dependencies import Directory
from models.records import Business
from models.schemas.requests import CreateBusinessRequest

router = APIRouter()


@router.post(
    "/businesses",
    response_model=Business,
    status_code=201,
    summary="Create a business profile",
    description="The owner must be an existing business-kind user.",
)
async def create_business(body: CreateBusinessRequest, directory: Directory) -> Business:
    return await directory.register_business(
        body.user_id,
        description=body.description,
        category=body.category,
        location=body.location,
        services=body.services,
    )


@router.get(
    "/businesses/search",
    response_model=list[Business],
    summary="Search businesses",
    description=(
        "Rank businesses by how well they meet a free-text need. "
        "When ranking is unavailable the unranked candidates are returned."
    ),
)
async def search_businesses(
    directory: Directory,
    q: Annotated[str, Query(max_length=500, description="What the consumer is looking for")] = "",
) -> list[Business]:
    return await directory.search_businesses(q)
