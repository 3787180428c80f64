"""
Medium integration for the portfolio blog.

Posts come from the author's RSS feed. Articles that have fallen out of the
feed window are fetched from the JSON that Medium serves for an article page
when ``?format=json`` is appended. That endpoint is undocumented, so it sits
behind ArticleScraper and can be swapped out without touching the feed path.

Nothing in this module raises to its callers: every failed fetch is logged
and the caller gets an empty list or None.
"""

import asyncio
import html
import json
import logging
import re
from calendar import timegm
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional
from urllib.parse import unquote, urlparse

import feedparser
import httpx

from portfolio.config import MediumConfig
from portfolio.services.posts import format_date, slugify

logger = logging.getLogger(__name__)

EXCERPT_LENGTH = 260
FEED_SEARCH_WINDOW = 30

FEED_ACCEPT = "application/rss+xml, application/xml"
JSON_ACCEPT = "application/json"

# Medium prefixes its JSON responses to defeat JSON hijacking
JSON_HIJACKING_PREFIX = "])}while(1);</x>"

ARTICLE_ID_PATTERN = re.compile(r"(?:^|-)([0-9a-f]{12})$")
IMG_SRC_PATTERN = re.compile(r"<img[^>]+src=[\"']([^\"']+)[\"']", re.IGNORECASE)
TAG_PATTERN = re.compile(r"<[^>]+>")
IMAGE_CDN_URL = "https://miro.medium.com/max/1400/"

# Paragraph type codes in Medium's article body model
PARAGRAPH_IMAGE = 4
PARAGRAPH_TAGS = {
    2: "h1",
    3: "h2",
    13: "h3",
    6: "blockquote",
    7: "blockquote",
}

FETCH_ERRORS = (httpx.HTTPError, asyncio.TimeoutError, ValueError)


@dataclass
class MediumPost:
    slug: str
    title: str
    link: str
    published_at: Optional[str] = None
    excerpt: str = ""
    content: Optional[str] = None
    image: Optional[str] = None
    categories: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "slug": self.slug,
            "title": self.title,
            "link": self.link,
            "publishedAt": self.published_at,
            "excerpt": self.excerpt,
            "content": self.content,
            "image": self.image,
            "categories": list(self.categories),
        }


# =============================================================================
# NORMALIZATION HELPERS
# =============================================================================

def strip_html(value: str) -> str:
    """Drop tags, decode entities and collapse whitespace."""
    text = TAG_PATTERN.sub(" ", value or "")
    text = html.unescape(text)
    return " ".join(text.split())


def make_excerpt(snippet: Optional[str], content: Optional[str]) -> str:
    text = " ".join((snippet or "").split()) or strip_html(content or "")
    return text[:EXCERPT_LENGTH].rstrip()


def normalize_image_url(url: Optional[str], profile_domain: str) -> Optional[str]:
    if not url:
        return None
    url = url.strip()
    if url.startswith("//"):
        return f"https:{url}"
    if url.startswith("/"):
        return f"https://{profile_domain}{url}"
    return url


def first_image(content: Optional[str]) -> Optional[str]:
    match = IMG_SRC_PATTERN.search(content or "")
    return match.group(1) if match else None


def unique_strings(values) -> list[str]:
    result: list[str] = []
    for value in values:
        text = str(value).strip() if value else ""
        if text and text not in result:
            result.append(text)
    return result


def last_path_segment(url: Optional[str]) -> str:
    if not url:
        return ""
    path = urlparse(url).path or url
    return unquote(path.rstrip("/").rsplit("/", 1)[-1])


def derive_slug(link: Optional[str], guid: Optional[str], title: Optional[str], index: int) -> str:
    """Slug from the article URL, else the guid, else the title, else position."""
    for candidate in (last_path_segment(link), last_path_segment(guid), title):
        slug = slugify(candidate or "")
        if slug:
            return slug
    return f"medium-post-{index + 1}"


def strip_hijacking_prefix(body: str) -> str:
    text = body.lstrip()
    if text.startswith(JSON_HIJACKING_PREFIX):
        text = text[len(JSON_HIJACKING_PREFIX):]
    return text


async def fetch(url: str, config: MediumConfig, accept: str) -> httpx.Response:
    """GET a URL, bounded by the configured timeout as a whole."""
    headers = {"Accept": accept, "User-Agent": config.user_agent}
    async with httpx.AsyncClient(timeout=config.timeout, follow_redirects=True) as client:
        response = await asyncio.wait_for(
            client.get(url, headers=headers), timeout=config.timeout
        )
        response.raise_for_status()
        return response


# =============================================================================
# ARTICLE SCRAPER
# =============================================================================

def render_paragraphs(paragraphs: list[dict]) -> str:
    """Rebuild article HTML from Medium's typed paragraph list."""
    parts: list[str] = []
    for paragraph in paragraphs:
        kind = paragraph.get("type")
        text = html.escape(paragraph.get("text") or "")

        if kind == PARAGRAPH_IMAGE:
            asset_id = (paragraph.get("metadata") or {}).get("id")
            if not asset_id:
                continue
            caption = f"<figcaption>{text}</figcaption>" if text else ""
            parts.append(
                f'<figure><img src="{IMAGE_CDN_URL}{html.escape(asset_id)}" alt="{text}" />'
                f"{caption}</figure>"
            )
            continue

        if not text:
            continue
        tag = PARAGRAPH_TAGS.get(kind, "p")
        parts.append(f"<{tag}>{text}</{tag}>")

    return "\n".join(parts)


def article_value(payload: Any) -> Optional[dict]:
    """Locate the post record inside a ?format=json response."""
    if not isinstance(payload, dict):
        return None
    body = payload.get("payload") or {}
    value = body.get("value")
    if isinstance(value, dict):
        return value
    references = (body.get("references") or {}).get("Post") or {}
    return next(iter(references.values()), None) if isinstance(references, dict) else None


class ArticleScraper:
    """Fetches a single article through Medium's ?format=json pages."""

    def __init__(self, config: MediumConfig):
        self.config = config

    def candidate_urls(self, slug: str) -> list[str]:
        domain = self.config.profile_domain
        paths = [
            f"https://{domain}/{slug}",
            f"https://medium.com/@{self.config.username}/{slug}",
        ]
        match = ARTICLE_ID_PATTERN.search(slug)
        if match:
            article_id = match.group(1)
            paths.append(f"https://{domain}/p/{article_id}")
            paths.append(f"https://medium.com/p/{article_id}")
        return [f"{path}?format=json" for path in unique_strings(paths)]

    async def fetch_article(self, slug: str) -> Optional[MediumPost]:
        for url in self.candidate_urls(slug):
            try:
                response = await fetch(url, self.config, accept=JSON_ACCEPT)
                payload = json.loads(strip_hijacking_prefix(response.text))
            except FETCH_ERRORS as exc:
                logger.warning(f"Medium article attempt failed for {url}: {exc!r}")
                continue

            try:
                post = self.payload_to_post(payload, slug, url)
            except (TypeError, AttributeError, ValueError) as exc:
                logger.warning(f"Medium article payload at {url} was malformed: {exc!r}")
                continue

            if post:
                return post
            logger.warning(f"Medium article response at {url} had no usable body")

        return None

    def payload_to_post(self, payload: Any, slug: str, url: str) -> Optional[MediumPost]:
        value = article_value(payload)
        if not value:
            return None

        content_model = value.get("content") or {}
        paragraphs = (content_model.get("bodyModel") or {}).get("paragraphs") or []
        title = (value.get("title") or "").strip()
        if not title or not paragraphs:
            return None

        content = render_paragraphs(paragraphs)
        virtuals = value.get("virtuals") or {}
        subtitle = virtuals.get("subtitle") or content_model.get("subtitle")

        image_id = (virtuals.get("previewImage") or {}).get("imageId")
        published_ms = value.get("firstPublishedAt") or value.get("latestPublishedAt")
        published_at = None
        if published_ms:
            published_at = format_date(
                datetime.fromtimestamp(published_ms / 1000, tz=timezone.utc)
            )

        return MediumPost(
            slug=slug,
            title=title,
            link=value.get("mediumUrl") or value.get("canonicalUrl") or url.split("?", 1)[0],
            published_at=published_at,
            excerpt=make_excerpt(subtitle, content),
            content=content,
            image=f"{IMAGE_CDN_URL}{image_id}" if image_id else None,
            categories=unique_strings(
                tag.get("name") or tag.get("slug") for tag in virtuals.get("tags") or []
            ),
        )


# =============================================================================
# FEED
# =============================================================================

class MediumFeed:
    """Reads the author's Medium RSS feed with fallback URLs."""

    def __init__(self, config: MediumConfig, scraper: Optional[ArticleScraper] = None):
        self.config = config
        self.scraper = scraper or ArticleScraper(config)

    async def _fetch_feed(self, url: str) -> feedparser.FeedParserDict:
        response = await fetch(url, self.config, accept=FEED_ACCEPT)
        # Image URLs are normalized against the profile domain, not the feed URL
        feed = feedparser.parse(response.content, resolve_relative_uris=False)
        if feed.bozo and not feed.entries:
            raise ValueError(f"Unparseable feed: {feed.get('bozo_exception')}")
        return feed

    async def list_medium_posts(self, limit: int = 6, include_content: bool = False) -> list[MediumPost]:
        """Newest feed items from the first candidate URL that has any."""
        for url in self.config.candidate_feed_urls():
            try:
                feed = await self._fetch_feed(url)
            except FETCH_ERRORS as exc:
                logger.warning(f"Medium feed attempt failed for {url}: {exc!r}")
                continue

            if not feed.entries:
                logger.warning(f"Medium feed at {url} has no items")
                continue

            return [
                self._entry_to_post(entry, index, include_content)
                for index, entry in enumerate(feed.entries[:max(limit, 0)])
            ]

        logger.warning("No Medium feed candidate returned posts")
        return []

    async def get_medium_post_by_slug(self, slug: str) -> Optional[MediumPost]:
        posts = await self.list_medium_posts(limit=FEED_SEARCH_WINDOW, include_content=True)
        for post in posts:
            if post.slug == slug:
                return post

        logger.info(f"Medium post {slug} not in feed window; trying article scrape")
        return await self.scraper.fetch_article(slug)

    def _entry_to_post(
        self,
        entry: feedparser.FeedParserDict,
        index: int,
        include_content: bool,
    ) -> MediumPost:
        link = entry.get("link", "")
        title = entry.get("title", "")
        raw_content = self._entry_content(entry)

        return MediumPost(
            slug=derive_slug(link, entry.get("id"), title, index),
            title=title,
            link=link,
            published_at=self._entry_date(entry),
            excerpt=make_excerpt(strip_html(entry.get("summary", "")), raw_content),
            content=raw_content if include_content else None,
            image=normalize_image_url(
                self._enclosure_url(entry) or first_image(raw_content),
                self.config.profile_domain,
            ),
            categories=unique_strings(tag.get("term") for tag in entry.get("tags", [])),
        )

    @staticmethod
    def _entry_content(entry: feedparser.FeedParserDict) -> str:
        content_list = entry.get("content", [])
        if content_list:
            best = max(content_list, key=lambda c: len(c.get("value", "")))
            return best.get("value", "")
        return entry.get("summary", "")

    @staticmethod
    def _enclosure_url(entry: feedparser.FeedParserDict) -> Optional[str]:
        for enclosure in entry.get("enclosures", []):
            if enclosure.get("href"):
                return enclosure["href"]
        for key in ("media_content", "media_thumbnail"):
            for media in entry.get(key, []):
                if media.get("url"):
                    return media["url"]
        return None

    @staticmethod
    def _entry_date(entry: feedparser.FeedParserDict) -> Optional[str]:
        for key in ("published_parsed", "updated_parsed"):
            time_struct = entry.get(key)
            if time_struct:
                try:
                    return format_date(datetime.fromtimestamp(timegm(time_struct), tz=timezone.utc))
                except (ValueError, OverflowError):
                    continue
        return entry.get("published") or entry.get("updated")
