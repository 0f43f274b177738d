"""
Query layer over the key-value store for users, posts and comments.

The store has no secondary indexes, so every listing, filter and aggregate is
derived by prefix-scanning a whole record kind and working in memory. Each
record lives under `{kind}:{id}`.

Read-modify-write sequences (likes, role changes, profile and post updates)
are not guarded against concurrent writers: two requests racing on the same
key can lose an update. This matches the store's single-key guarantees and is
accepted for the write volumes involved.
"""

from __future__ import annotations

import logging
import time
from dataclasses import asdict, replace
from typing import Any, Optional

from dacite import Config, from_dict

from blog_backend.errors import (
    AuthenticationError,
    AuthorizationError,
    NotFoundError,
    ValidationError,
)
from blog_backend.identity import AuthSession, IdentityProvider
from blog_backend.kv import KvStore
from blog_backend.storage import StorageClient
from blog_shared.constants import (
    COMMENTS_PREFIX,
    EXCERPT_MAX_LENGTH,
    MAX_UPLOAD_BYTES,
    POST_STATUSES,
    POSTS_PREFIX,
    ROLE_ADMIN,
    ROLE_USER,
    ROLES,
    STATUS_DRAFT,
    STATUS_PUBLISHED,
    USERS_PREFIX,
)
from blog_shared.json_utils import convert_keys
from blog_shared.types import Comment, Post, User
from blog_shared.utils import get_unique_id, parse_timestamp, utc_now_iso

logger = logging.getLogger(__name__)

USER_EDITABLE_FIELDS = ("email", "username", "avatar", "bio")
POST_EDITABLE_FIELDS = (
    "title",
    "content",
    "excerpt",
    "image",
    "tags",
    "categories",
    "status",
    "featured",
)
SIGNED_URL_TTL_SECONDS = 7 * 24 * 3600

_DACITE_CONFIG = Config(check_types=False)


def _to_record(record_type, data: dict):
    return from_dict(
        data_class=record_type,
        data=convert_keys(data, "camel_to_snake"),
        config=_DACITE_CONFIG,
    )


def _to_json(record) -> dict:
    return convert_keys(asdict(record), "snake_to_camel")


def _contains(value: Optional[str], needle: str) -> bool:
    return needle in (value or "").lower()


class ContentStore:
    """CRUD, filtering and authorization for blog records.

    Holds no state of its own; collaborators are injected once per process.
    `caller_id` arguments are the verified subject id of the requester, or
    None for anonymous requests.
    """

    def __init__(
        self,
        kv: KvStore,
        identity: IdentityProvider,
        storage: StorageClient,
        *,
        max_upload_bytes: int = MAX_UPLOAD_BYTES,
        signed_url_ttl_seconds: int = SIGNED_URL_TTL_SECONDS,
    ):
        self.kv = kv
        self.identity = identity
        self.storage = storage
        self.max_upload_bytes = max_upload_bytes
        self.signed_url_ttl_seconds = signed_url_ttl_seconds

    # ---- record access ----

    def _load(self, prefix: str, record_type, record_id: str):
        data = self.kv.get(f"{prefix}{record_id}")
        if data is None:
            return None
        return _to_record(record_type, data)

    def _scan(self, prefix: str, record_type) -> list:
        return [_to_record(record_type, data) for data in self.kv.get_by_prefix(prefix)]

    def _save(self, prefix: str, record) -> None:
        self.kv.set(f"{prefix}{record.id}", _to_json(record))

    # ---- caller checks ----

    @staticmethod
    def _require_caller(caller_id: Optional[str], message: str = "Unauthorized") -> str:
        if not caller_id:
            raise AuthenticationError(message)
        return caller_id

    def _is_admin(self, caller_id: str) -> bool:
        caller = self._load(USERS_PREFIX, User, caller_id)
        return caller is not None and caller.role == ROLE_ADMIN

    def _require_admin(self, caller_id: Optional[str]) -> str:
        # The role comes from the stored profile, never from token claims.
        caller_id = self._require_caller(caller_id)
        if not self._is_admin(caller_id):
            raise AuthorizationError("Forbidden - admin access only")
        return caller_id

    def _require_owner_or_admin(self, caller_id: str, owner_id: str) -> None:
        if owner_id != caller_id and not self._is_admin(caller_id):
            raise AuthorizationError("Forbidden")

    # ---- users ----

    def create_user(
        self,
        email: Optional[str],
        password: Optional[str],
        username: Optional[str],
        avatar: Optional[str] = None,
    ) -> str:
        """Registers an account with the identity provider and stores a profile.

        Returns:
            The new user's subject id.

        Raises:
            ValidationError: If email, password or username is missing.
            AuthProviderError: If the identity provider rejects the account.
        """
        if not email or not password or not username:
            raise ValidationError("Email, password, and username are required")

        user_id = self.identity.create_account(email, password, {"username": username})
        user = User(
            id=user_id,
            email=email,
            username=username,
            role=ROLE_USER,
            avatar=avatar or "",
            bio="",
            created_at=utc_now_iso(),
        )
        self._save(USERS_PREFIX, user)
        logger.info("User created: %s", user_id)
        return user_id

    def get_user(self, user_id: str) -> User:
        user = self._load(USERS_PREFIX, User, user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    def get_user_by_email(self, email: str) -> User:
        # Email is not part of the key, so this is a scan over every user.
        for user in self._scan(USERS_PREFIX, User):
            if user.email == email:
                return user
        raise NotFoundError("User not found")

    def update_user(
        self, caller_id: Optional[str], user_id: str, updates: dict[str, Any]
    ) -> User:
        caller_id = self._require_caller(caller_id)
        if caller_id != user_id:
            raise AuthorizationError("Forbidden")
        user = self.get_user(user_id)

        changes = {
            name: value
            for name, value in updates.items()
            if name in USER_EDITABLE_FIELDS and value is not None
        }
        user = replace(user, **changes)
        self._save(USERS_PREFIX, user)
        return user

    def login(self, email: Optional[str], password: Optional[str]) -> AuthSession:
        if not email or not password:
            raise ValidationError("Email and password are required")
        return self.identity.sign_in(email, password)

    def logout(self, caller_id: Optional[str]) -> None:
        caller_id = self._require_caller(caller_id)
        self.identity.sign_out(caller_id)

    # ---- posts ----

    def list_posts(
        self,
        caller_id: Optional[str] = None,
        *,
        category: Optional[str] = None,
        tag: Optional[str] = None,
        search: Optional[str] = None,
        featured: Optional[bool] = None,
    ) -> list[Post]:
        """Lists posts, newest first.

        Anonymous callers only see published posts. Any signed-in caller sees
        every status, including other authors' drafts.
        """
        posts = self._scan(POSTS_PREFIX, Post)

        if not caller_id:
            posts = [p for p in posts if p.status == STATUS_PUBLISHED]
        if category:
            posts = [p for p in posts if category in (p.categories or [])]
        if tag:
            posts = [p for p in posts if tag in (p.tags or [])]
        if search:
            needle = search.lower()
            posts = [
                p
                for p in posts
                if _contains(p.title, needle)
                or _contains(p.content, needle)
                or _contains(p.excerpt, needle)
            ]
        if featured:
            posts = [p for p in posts if p.featured is True]

        posts.sort(key=lambda p: parse_timestamp(p.created_at), reverse=True)
        return posts

    def get_post(self, post_id: str) -> Post:
        post = self._load(POSTS_PREFIX, Post, post_id)
        if post is None:
            raise NotFoundError("Post not found")
        return post

    def create_post(self, caller_id: Optional[str], fields: dict[str, Any]) -> Post:
        caller_id = self._require_caller(
            caller_id, "Unauthorized - please log in to create posts"
        )
        status = fields.get("status") or STATUS_PUBLISHED
        if status not in POST_STATUSES:
            raise ValidationError(f"Invalid status: {status}")

        author = self._load(USERS_PREFIX, User, caller_id)
        content = fields.get("content") or ""
        now = utc_now_iso()
        post = Post(
            id=get_unique_id("post"),
            title=fields.get("title") or "",
            content=content,
            excerpt=fields.get("excerpt") or content[:EXCERPT_MAX_LENGTH],
            author_id=caller_id,
            author_name=(author.username or author.email) if author else "",
            image=fields.get("image") or "",
            tags=list(fields.get("tags") or []),
            categories=list(fields.get("categories") or []),
            status=status,
            featured=bool(fields.get("featured", False)),
            likes=0,
            created_at=now,
            updated_at=now,
        )
        self._save(POSTS_PREFIX, post)
        logger.info("Post created: %s", post.id)
        return post

    def update_post(
        self, caller_id: Optional[str], post_id: str, updates: dict[str, Any]
    ) -> Post:
        caller_id = self._require_caller(caller_id)
        post = self.get_post(post_id)
        self._require_owner_or_admin(caller_id, post.author_id)

        changes = {
            name: value
            for name, value in updates.items()
            if name in POST_EDITABLE_FIELDS and value is not None
        }
        if "status" in changes and changes["status"] not in POST_STATUSES:
            raise ValidationError(f"Invalid status: {changes['status']}")

        post = replace(post, **changes, updated_at=utc_now_iso())
        self._save(POSTS_PREFIX, post)
        logger.info("Post updated: %s", post_id)
        return post

    def delete_post(self, caller_id: Optional[str], post_id: str) -> None:
        caller_id = self._require_caller(caller_id)
        post = self.get_post(post_id)
        self._require_owner_or_admin(caller_id, post.author_id)
        self.kv.delete(f"{POSTS_PREFIX}{post_id}")
        logger.info("Post deleted: %s", post_id)

    def like_post(self, post_id: str) -> int:
        post = self.get_post(post_id)
        post.likes = (post.likes or 0) + 1
        self._save(POSTS_PREFIX, post)
        return post.likes

    def list_categories(self) -> list[str]:
        categories: set[str] = set()
        for post in self._scan(POSTS_PREFIX, Post):
            categories.update(post.categories or [])
        return sorted(categories)

    def list_tags(self) -> list[str]:
        tags: set[str] = set()
        for post in self._scan(POSTS_PREFIX, Post):
            tags.update(post.tags or [])
        return sorted(tags)

    # ---- comments ----

    def list_comments(self, post_id: str) -> list[Comment]:
        """Comments on one post, oldest first."""
        comments = [
            c for c in self._scan(COMMENTS_PREFIX, Comment) if c.post_id == post_id
        ]
        comments.sort(key=lambda c: parse_timestamp(c.created_at))
        return comments

    def create_comment(
        self,
        caller_id: Optional[str],
        post_id: Optional[str],
        content: Optional[str],
        parent_id: Optional[str] = None,
    ) -> Comment:
        caller_id = self._require_caller(
            caller_id, "Unauthorized - please log in to comment"
        )
        if not post_id or not content:
            raise ValidationError("Post ID and content are required")

        author = self._load(USERS_PREFIX, User, caller_id)
        comment = Comment(
            id=get_unique_id("comment"),
            post_id=post_id,
            user_id=caller_id,
            username=(author.username or author.email) if author else "",
            avatar=(author.avatar or "") if author else "",
            content=content,
            parent_id=parent_id or None,
            likes=0,
            created_at=utc_now_iso(),
        )
        self._save(COMMENTS_PREFIX, comment)
        logger.info("Comment created: %s", comment.id)
        return comment

    def get_comment(self, comment_id: str) -> Comment:
        comment = self._load(COMMENTS_PREFIX, Comment, comment_id)
        if comment is None:
            raise NotFoundError("Comment not found")
        return comment

    def delete_comment(self, caller_id: Optional[str], comment_id: str) -> None:
        caller_id = self._require_caller(caller_id)
        comment = self.get_comment(comment_id)
        self._require_owner_or_admin(caller_id, comment.user_id)
        self.kv.delete(f"{COMMENTS_PREFIX}{comment_id}")
        logger.info("Comment deleted: %s", comment_id)

    def like_comment(self, comment_id: str) -> int:
        comment = self.get_comment(comment_id)
        comment.likes = (comment.likes or 0) + 1
        self._save(COMMENTS_PREFIX, comment)
        return comment.likes

    # ---- admin ----

    def admin_stats(self, caller_id: Optional[str]) -> dict[str, int]:
        self._require_admin(caller_id)
        posts = self._scan(POSTS_PREFIX, Post)
        users = self.kv.get_by_prefix(USERS_PREFIX)
        comments = self.kv.get_by_prefix(COMMENTS_PREFIX)
        return {
            "totalPosts": len(posts),
            "totalUsers": len(users),
            "totalComments": len(comments),
            "publishedPosts": sum(1 for p in posts if p.status == STATUS_PUBLISHED),
            "draftPosts": sum(1 for p in posts if p.status == STATUS_DRAFT),
        }

    def admin_list_users(self, caller_id: Optional[str]) -> list[User]:
        self._require_admin(caller_id)
        return self._scan(USERS_PREFIX, User)

    def admin_list_comments(self, caller_id: Optional[str]) -> list[Comment]:
        self._require_admin(caller_id)
        return self._scan(COMMENTS_PREFIX, Comment)

    def admin_set_role(
        self, caller_id: Optional[str], user_id: str, role: Optional[str]
    ) -> User:
        self._require_admin(caller_id)
        if role not in ROLES:
            raise ValidationError(f"Invalid role: {role}")
        user = self.get_user(user_id)
        user.role = role
        self._save(USERS_PREFIX, user)
        logger.info("User role updated: %s %s", user_id, role)
        return user

    # ---- files ----

    def upload_file(
        self,
        caller_id: Optional[str],
        filename: Optional[str],
        data: bytes,
        content_type: Optional[str],
    ) -> str:
        """Stores an image in the private bucket and returns a signed URL."""
        caller_id = self._require_caller(caller_id)
        if not filename:
            raise ValidationError("No file provided")
        if len(data) > self.max_upload_bytes:
            max_mb = self.max_upload_bytes // (1024 * 1024)
            raise ValidationError(f"File size too large (max {max_mb}MB)")

        extension = filename.rsplit(".", 1)[-1]
        object_name = f"{caller_id}_{int(time.time() * 1000)}.{extension}"
        self.storage.upload_bytes(
            object_name, data, content_type or "application/octet-stream"
        )
        return self.storage.presign_get(
            object_name, expires_in=self.signed_url_ttl_seconds
        )
