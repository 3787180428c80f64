"""
Blog post API.
Reads are public (published posts only); writes need an admin session.
"""

from typing import Any, Optional

from fastapi import APIRouter, Body, HTTPException, Query, Request

from portfolio.routes.auth import get_current_admin, require_admin
from portfolio.services.posts import PostStore, render_markdown

router = APIRouter(prefix="/api/blog/posts", tags=["blog"])

TRUTHY_PARAMS = ("1", "true", "yes")


def get_post_store(request: Request) -> PostStore:
    return request.app.state.post_store


def parse_boolean_param(value: Optional[str]) -> bool:
    return value in TRUTHY_PARAMS


@router.get("")
async def list_posts(
    request: Request,
    include_drafts: Optional[str] = Query(None, alias="includeDrafts"),
    include_archived: Optional[str] = Query(None, alias="includeArchived"),
):
    """List posts; drafts and archived posts only for admins who ask."""
    is_admin = get_current_admin(request)
    posts = await get_post_store(request).list_posts(
        include_drafts=is_admin and parse_boolean_param(include_drafts),
        include_archived=is_admin and parse_boolean_param(include_archived),
    )
    return {"posts": [post.to_dict() for post in posts]}


@router.post("", status_code=201)
async def create_post(request: Request, fields: dict[str, Any] = Body(...)):
    """Create a new post."""
    require_admin(request)
    post = await get_post_store(request).add_post(fields)
    return {"post": post.to_dict()}


@router.get("/{slug}")
async def get_post(request: Request, slug: str):
    """Single post with rendered HTML."""
    is_admin = get_current_admin(request)
    post = await get_post_store(request).get_post_by_slug(
        slug, include_drafts=is_admin, include_archived=is_admin
    )
    if not post:
        raise HTTPException(status_code=404, detail="Post not found")

    return {
        "post": {
            **post.to_dict(),
            "contentHtml": render_markdown(post.content),
            "readingTime": post.reading_time,
        }
    }


@router.patch("/{slug}")
async def update_post(request: Request, slug: str, fields: dict[str, Any] = Body(...)):
    """Update a post; omitted fields are left unchanged."""
    require_admin(request)
    post = await get_post_store(request).update_post(slug, fields)
    return {"post": post.to_dict()}


@router.delete("/{slug}")
async def delete_post(request: Request, slug: str):
    """Delete a post."""
    require_admin(request)
    await get_post_store(request).delete_post(slug)
    return {"success": True}
