"""
Posts service for the portfolio blog.
CRUD operations over a JSON document on disk, with a read-only seed fallback.
"""

import copy
import errno
import json
import logging
import os
import re
import shutil
import unicodedata
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Optional, Union

import markdown

from portfolio.errors import (
    ConflictError,
    NotFoundError,
    StorageUnavailableError,
    ValidationError,
)

logger = logging.getLogger(__name__)

SEED_FILE = Path(__file__).parent.parent / "data" / "posts.seed.json"
POSTS_FILENAME = "posts.json"

STATUSES = ("draft", "published", "archived")
DEFAULT_STATUS = "draft"
EXCERPT_LENGTH = 240

UNWRITABLE_ERRNOS = {errno.EACCES, errno.EPERM, errno.EROFS}
STORAGE_HINT = (
    "Blog storage is read-only. Configure BLOG_DATA_DIR to point at a writable location."
)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def slugify(value: Any) -> str:
    """Lowercase ASCII slug: letters, digits and single hyphens."""
    text = unicodedata.normalize("NFKD", str(value)).encode("ascii", "ignore").decode("ascii")
    text = text.strip().lower()
    text = re.sub(r"[^a-z0-9\s-]", "", text)
    text = re.sub(r"\s+", "-", text)
    text = re.sub(r"-+", "-", text)
    return text.strip("-")


def normalize_tags(value: Union[str, list, tuple, None]) -> list[str]:
    """Accept a list or a comma-separated string; keep first occurrences."""
    if value is None:
        return []
    items = value if isinstance(value, (list, tuple)) else str(value).split(",")

    tags: list[str] = []
    for item in items:
        tag = str(item).strip()
        if tag and tag not in tags:
            tags.append(tag)
    return tags


def normalize_status(value: Any, default: str = DEFAULT_STATUS) -> str:
    if isinstance(value, str) and value.strip().lower() in STATUSES:
        return value.strip().lower()
    return default


def text_field(fields: dict, name: str) -> str:
    """A trimmed string field; absent or null counts as empty."""
    value = fields.get(name)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValidationError(f"{name.capitalize()} must be a string")
    return value.strip()


def derive_excerpt(excerpt: Optional[str], content: str) -> str:
    return (excerpt or "").strip() or content[:EXCERPT_LENGTH].strip()


def parse_date(value: Union[str, datetime, None]) -> Optional[datetime]:
    """Parse a stored ISO timestamp to an aware datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value)
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_date(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def render_markdown(content: str) -> str:
    """Convert markdown to HTML."""
    md = markdown.Markdown(extensions=['extra', 'codehilite', 'toc'])
    return md.convert(content)


@dataclass
class Post:
    """A blog post as stored in the posts document."""

    slug: str
    title: str
    content: str
    excerpt: str = ""
    tags: list[str] = field(default_factory=list)
    status: str = DEFAULT_STATUS
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    published_at: Optional[datetime] = None

    @property
    def effective_date(self) -> datetime:
        return (
            self.published_at
            or self.updated_at
            or self.created_at
            or datetime.min.replace(tzinfo=timezone.utc)
        )

    @property
    def reading_time(self) -> int:
        """Calculate reading time in minutes (~200 words/min)."""
        if not self.content:
            return 1
        word_count = len(self.content.split())
        return max(1, round(word_count / 200))

    @classmethod
    def from_dict(cls, data: dict) -> "Post":
        content = data.get("content") or ""
        return cls(
            slug=data.get("slug") or slugify(data.get("title", "")),
            title=data.get("title") or "",
            content=content,
            excerpt=derive_excerpt(data.get("excerpt"), content),
            tags=normalize_tags(data.get("tags")),
            status=normalize_status(data.get("status"), default="published"),
            created_at=parse_date(data.get("createdAt")),
            updated_at=parse_date(data.get("updatedAt")),
            published_at=parse_date(data.get("publishedAt")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "slug": self.slug,
            "title": self.title,
            "excerpt": self.excerpt,
            "content": self.content,
            "tags": list(self.tags),
            "status": self.status,
            "createdAt": format_date(self.created_at),
            "updatedAt": format_date(self.updated_at),
            "publishedAt": format_date(self.published_at),
        }

    def __repr__(self):
        return f"<Post {self.slug} [{self.status}]>"


def is_visible(post: Post, include_drafts: bool, include_archived: bool) -> bool:
    if post.status == "draft":
        return include_drafts
    if post.status == "archived":
        return include_archived
    return True


class PostStore:
    """Blog posts persisted as a single JSON array.

    The document is re-read on every operation. When it is missing it is
    created from the bundled seed; when it can be neither created nor read,
    reads are served from the seed. Any unwritable location makes writes
    raise StorageUnavailableError while reads keep working.

    File I/O is synchronous and never awaits between read and write, so
    mutations within one event loop do not interleave.
    """

    def __init__(
        self,
        data_dir: Union[str, Path],
        seed_file: Path = SEED_FILE,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.path = Path(data_dir) / POSTS_FILENAME
        self.seed_file = Path(seed_file)
        self.clock = clock
        self.read_only = False
        self.serving_seed = False
        self._seed_cache: Optional[list[dict]] = None

    # =========================================================================
    # STORAGE
    # =========================================================================

    def _seed_documents(self) -> list[dict]:
        if self._seed_cache is None:
            try:
                self._seed_cache = json.loads(self.seed_file.read_text(encoding="utf-8"))
            except FileNotFoundError:
                logger.warning(f"Seed document missing: {self.seed_file}")
                self._seed_cache = []
        return copy.deepcopy(self._seed_cache)

    def _fall_back_to_seed(self, exc: OSError) -> list[dict]:
        if not self.serving_seed:
            logger.warning(
                f"Blog storage at {self.path} is not writable ({exc}); "
                f"serving bundled seed posts read-only"
            )
        self.read_only = True
        self.serving_seed = True
        return self._seed_documents()

    def _ensure_file(self) -> None:
        if self.path.exists():
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        if self.seed_file.exists():
            shutil.copyfile(self.seed_file, self.path)
        else:
            self.path.write_text("[]", encoding="utf-8")
        logger.info(f"Initialized posts document at {self.path}")

    def _read_documents(self) -> list[dict]:
        if self.serving_seed:
            return self._seed_documents()
        try:
            self._ensure_file()
            raw = self.path.read_text(encoding="utf-8")
        except OSError as exc:
            if not _is_unwritable(exc):
                raise
            return self._fall_back_to_seed(exc)

        try:
            documents = json.loads(raw)
        except json.JSONDecodeError as exc:
            logger.error(f"Posts document {self.path} is not valid JSON: {exc}")
            raise StorageUnavailableError(f"Posts document is corrupt: {exc}") from exc
        if not isinstance(documents, list):
            raise StorageUnavailableError("Posts document must contain a JSON array")
        return documents

    def _load(self) -> list[Post]:
        return [Post.from_dict(doc) for doc in self._read_documents()]

    def _save(self, posts: list[Post]) -> None:
        if self.read_only:
            raise StorageUnavailableError(STORAGE_HINT)

        payload = json.dumps([post.to_dict() for post in posts], indent=2)
        tmp_path = self.path.with_suffix(".json.tmp")
        try:
            tmp_path.write_text(payload, encoding="utf-8")
            os.replace(tmp_path, self.path)
        except OSError as exc:
            try:
                tmp_path.unlink(missing_ok=True)
            except OSError:
                logger.debug(f"Could not remove {tmp_path}")
            if _is_unwritable(exc):
                self.read_only = True
                logger.warning(f"Failed to write {self.path}: {exc}")
                raise StorageUnavailableError(STORAGE_HINT) from exc
            raise

    # =========================================================================
    # READ OPERATIONS
    # =========================================================================

    async def list_posts(
        self,
        include_drafts: bool = False,
        include_archived: bool = False,
    ) -> list[Post]:
        """List posts newest first, filtered by status."""
        posts = [
            post for post in self._load()
            if is_visible(post, include_drafts, include_archived)
        ]
        return sorted(posts, key=lambda post: post.effective_date, reverse=True)

    async def get_post_by_slug(
        self,
        slug: str,
        include_drafts: bool = False,
        include_archived: bool = False,
    ) -> Optional[Post]:
        posts = await self.list_posts(include_drafts, include_archived)
        return next((post for post in posts if post.slug == slug), None)

    # =========================================================================
    # WRITE OPERATIONS
    # =========================================================================

    async def add_post(self, fields: dict) -> Post:
        """Create a new post; drafts unless a valid status is given."""
        title = text_field(fields, "title")
        content = text_field(fields, "content")
        excerpt = text_field(fields, "excerpt")
        if not title or not content:
            raise ValidationError("Title and content are required")

        slug = slugify(fields.get("slug") or title)
        if not slug:
            raise ConflictError("Unable to generate a slug for this post")

        posts = self._load()
        if any(post.slug == slug for post in posts):
            raise ConflictError("A post with this slug already exists")

        now = self.clock()
        status = normalize_status(fields.get("status"))
        post = Post(
            slug=slug,
            title=title,
            content=content,
            excerpt=derive_excerpt(excerpt, content),
            tags=normalize_tags(fields.get("tags")),
            status=status,
            created_at=now,
            updated_at=now,
            published_at=now if status == "published" else None,
        )

        self._save([post, *posts])
        logger.info(f"Created post {slug} ({status})")
        return post

    async def update_post(self, slug: str, fields: dict) -> Post:
        """Merge the supplied fields into an existing post."""
        posts = self._load()
        index = next((i for i, post in enumerate(posts) if post.slug == slug), None)
        if index is None:
            raise NotFoundError("Post not found")
        post = posts[index]

        if "slug" in fields:
            new_slug = slugify(fields.get("slug") or "")
            if not new_slug:
                raise ConflictError("Unable to generate a slug for this post")
            if any(other.slug == new_slug for i, other in enumerate(posts) if i != index):
                raise ConflictError("A post with this slug already exists")
            post.slug = new_slug

        if "title" in fields:
            title = text_field(fields, "title")
            if not title:
                raise ValidationError("Title cannot be empty")
            post.title = title

        if "content" in fields:
            content = text_field(fields, "content")
            if not content:
                raise ValidationError("Content cannot be empty")
            post.content = content

        if "excerpt" in fields:
            post.excerpt = derive_excerpt(text_field(fields, "excerpt"), post.content)

        if "tags" in fields:
            post.tags = normalize_tags(fields.get("tags"))

        now = self.clock()
        if "status" in fields:
            status = normalize_status(fields.get("status"), default=post.status)
            if status == "draft":
                post.published_at = None
            elif status == "published" and post.published_at is None:
                post.published_at = now
            post.status = status

        post.updated_at = now

        self._save(posts)
        logger.info(f"Updated post {slug} -> {post.slug} ({post.status})")
        return post

    async def delete_post(self, slug: str) -> None:
        posts = self._load()
        remaining = [post for post in posts if post.slug != slug]
        if len(remaining) == len(posts):
            raise NotFoundError("Post not found")

        self._save(remaining)
        logger.info(f"Deleted post {slug}")


def _is_unwritable(exc: OSError) -> bool:
    return isinstance(exc, PermissionError) or exc.errno in UNWRITABLE_ERRNOS
