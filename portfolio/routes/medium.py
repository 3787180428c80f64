"""
Medium mirror routes.
"""

from fastapi import APIRouter, HTTPException, Query, Request
from fastapi.responses import JSONResponse

from portfolio.services.medium import FEED_SEARCH_WINDOW, MediumFeed

router = APIRouter(prefix="/api/medium", tags=["medium"])


def get_medium_feed(request: Request) -> MediumFeed:
    return request.app.state.medium_feed


@router.get("/posts")
async def list_medium_posts(
    request: Request,
    limit: int = Query(6, ge=1, le=FEED_SEARCH_WINDOW),
):
    """Latest Medium articles; empty when the feed is unreachable."""
    posts = await get_medium_feed(request).list_medium_posts(limit=limit)
    response = JSONResponse({"posts": [post.to_dict() for post in posts]})
    response.headers["Cache-Control"] = "public, max-age=300"
    return response


@router.get("/posts/{slug}")
async def get_medium_post(request: Request, slug: str):
    """Single Medium article, from the feed or the article page."""
    post = await get_medium_feed(request).get_medium_post_by_slug(slug)
    if not post:
        raise HTTPException(status_code=404, detail="Post not found")
    return {"post": post.to_dict()}
