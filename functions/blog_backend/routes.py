"""
HTTP routes for the blog API.
"""

from __future__ import annotations

import logging
from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile

from blog_backend.content_store import ContentStore
from blog_backend.dependencies import get_caller_id, get_content_store
from blog_backend.schemas import (
    CommentCreate,
    CommentResponse,
    HealthResponse,
    LikesResponse,
    LoginRequest,
    MessageResponse,
    PostCreate,
    PostResponse,
    PostUpdate,
    RoleUpdate,
    SessionResponse,
    SignupRequest,
    SignupResponse,
    StatsResponse,
    UploadResponse,
    UserResponse,
    UserUpdate,
)
from blog_shared.json_utils import convert_keys

logger = logging.getLogger(__name__)

router = APIRouter()


def _as_json(record) -> dict:
    return convert_keys(asdict(record), "snake_to_camel")


@router.get("/health", response_model=HealthResponse)
def health():
    return HealthResponse(status="ok")


# ---- auth and users ----


@router.post("/signup", response_model=SignupResponse)
def signup(
    payload: SignupRequest, store: ContentStore = Depends(get_content_store)
):
    user_id = store.create_user(
        payload.email, payload.password, payload.username, payload.avatar
    )
    return SignupResponse(message="User created successfully", userId=user_id)


@router.post("/auth/login", response_model=SessionResponse)
def login(payload: LoginRequest, store: ContentStore = Depends(get_content_store)):
    session = store.login(payload.email, payload.password)
    return session.as_dict()


@router.post("/auth/logout", response_model=MessageResponse)
def logout(
    caller_id: Optional[str] = Depends(get_caller_id),
    store: ContentStore = Depends(get_content_store),
):
    store.logout(caller_id)
    return MessageResponse(message="Signed out")


@router.get("/user/{user_id}", response_model=UserResponse)
def get_user(user_id: str, store: ContentStore = Depends(get_content_store)):
    return _as_json(store.get_user(user_id))


@router.get("/user-by-email/{email}", response_model=UserResponse)
def get_user_by_email(email: str, store: ContentStore = Depends(get_content_store)):
    return _as_json(store.get_user_by_email(email))


@router.put("/user/{user_id}", response_model=UserResponse)
def update_user(
    user_id: str,
    payload: UserUpdate,
    caller_id: Optional[str] = Depends(get_caller_id),
    store: ContentStore = Depends(get_content_store),
):
    updates = payload.model_dump(exclude_unset=True)
    return _as_json(store.update_user(caller_id, user_id, updates))


# ---- posts ----


@router.get("/posts", response_model=list[PostResponse])
def list_posts(
    category: Optional[str] = Query(None),
    tag: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    featured: Optional[bool] = Query(None),
    caller_id: Optional[str] = Depends(get_caller_id),
    store: ContentStore = Depends(get_content_store),
):
    posts = store.list_posts(
        caller_id, category=category, tag=tag, search=search, featured=featured
    )
    return [_as_json(post) for post in posts]


@router.get("/posts/{post_id}", response_model=PostResponse)
def get_post(post_id: str, store: ContentStore = Depends(get_content_store)):
    return _as_json(store.get_post(post_id))


@router.post("/posts", response_model=PostResponse)
def create_post(
    payload: PostCreate,
    caller_id: Optional[str] = Depends(get_caller_id),
    store: ContentStore = Depends(get_content_store),
):
    return _as_json(store.create_post(caller_id, payload.model_dump()))


@router.put("/posts/{post_id}", response_model=PostResponse)
def update_post(
    post_id: str,
    payload: PostUpdate,
    caller_id: Optional[str] = Depends(get_caller_id),
    store: ContentStore = Depends(get_content_store),
):
    updates = payload.model_dump(exclude_unset=True)
    return _as_json(store.update_post(caller_id, post_id, updates))


@router.delete("/posts/{post_id}", response_model=MessageResponse)
def delete_post(
    post_id: str,
    caller_id: Optional[str] = Depends(get_caller_id),
    store: ContentStore = Depends(get_content_store),
):
    store.delete_post(caller_id, post_id)
    return MessageResponse(message="Post deleted successfully")


@router.post("/posts/{post_id}/like", response_model=LikesResponse)
def like_post(post_id: str, store: ContentStore = Depends(get_content_store)):
    return LikesResponse(likes=store.like_post(post_id))


@router.get("/categories", response_model=list[str])
def list_categories(store: ContentStore = Depends(get_content_store)):
    return store.list_categories()


@router.get("/tags", response_model=list[str])
def list_tags(store: ContentStore = Depends(get_content_store)):
    return store.list_tags()


# ---- comments ----


@router.get("/comments/{post_id}", response_model=list[CommentResponse])
def list_comments(post_id: str, store: ContentStore = Depends(get_content_store)):
    return [_as_json(comment) for comment in store.list_comments(post_id)]


@router.post("/comments", response_model=CommentResponse)
def create_comment(
    payload: CommentCreate,
    caller_id: Optional[str] = Depends(get_caller_id),
    store: ContentStore = Depends(get_content_store),
):
    comment = store.create_comment(
        caller_id, payload.postId, payload.content, payload.parentId
    )
    return _as_json(comment)


@router.delete("/comments/{comment_id}", response_model=MessageResponse)
def delete_comment(
    comment_id: str,
    caller_id: Optional[str] = Depends(get_caller_id),
    store: ContentStore = Depends(get_content_store),
):
    store.delete_comment(caller_id, comment_id)
    return MessageResponse(message="Comment deleted successfully")


@router.post("/comments/{comment_id}/like", response_model=LikesResponse)
def like_comment(comment_id: str, store: ContentStore = Depends(get_content_store)):
    return LikesResponse(likes=store.like_comment(comment_id))


# ---- admin ----


@router.get("/admin/stats", response_model=StatsResponse)
def admin_stats(
    caller_id: Optional[str] = Depends(get_caller_id),
    store: ContentStore = Depends(get_content_store),
):
    return store.admin_stats(caller_id)


@router.get("/admin/users", response_model=list[UserResponse])
def admin_users(
    caller_id: Optional[str] = Depends(get_caller_id),
    store: ContentStore = Depends(get_content_store),
):
    return [_as_json(user) for user in store.admin_list_users(caller_id)]


@router.put("/admin/users/{user_id}/role", response_model=UserResponse)
def admin_set_role(
    user_id: str,
    payload: RoleUpdate,
    caller_id: Optional[str] = Depends(get_caller_id),
    store: ContentStore = Depends(get_content_store),
):
    return _as_json(store.admin_set_role(caller_id, user_id, payload.role))


@router.get("/admin/all-comments", response_model=list[CommentResponse])
def admin_all_comments(
    caller_id: Optional[str] = Depends(get_caller_id),
    store: ContentStore = Depends(get_content_store),
):
    return [_as_json(comment) for comment in store.admin_list_comments(caller_id)]


# ---- files ----


@router.post("/upload", response_model=UploadResponse)
def upload(
    file: Optional[UploadFile] = File(None),
    caller_id: Optional[str] = Depends(get_caller_id),
    store: ContentStore = Depends(get_content_store),
):
    # Sync handler: FastAPI runs it in the threadpool, so the blocking
    # storage upload does not stall the event loop.
    data = file.file.read() if file else b""
    url = store.upload_file(
        caller_id,
        file.filename if file else None,
        data,
        file.content_type if file else None,
    )
    return UploadResponse(url=url)
