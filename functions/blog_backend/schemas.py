"""
Pydantic schemas for the blog API.

Response models use the camelCase field names the stored JSON uses.
"""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class SignupRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None
    username: Optional[str] = Field(default=None, max_length=64)
    avatar: Optional[str] = None


class SignupResponse(BaseModel):
    message: str
    userId: str


class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class SessionResponse(BaseModel):
    accessToken: str
    refreshToken: str
    userId: str
    expiresIn: int


class UserUpdate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    email: Optional[str] = None
    username: Optional[str] = Field(default=None, max_length=64)
    avatar: Optional[str] = None
    bio: Optional[str] = None


class UserResponse(BaseModel):
    id: str
    email: str
    username: str
    role: str
    avatar: str
    bio: str
    createdAt: str


class PostCreate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    title: str = ""
    content: str = ""
    excerpt: Optional[str] = None
    image: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    categories: list[str] = Field(default_factory=list)
    status: Literal["draft", "published"] = "published"
    featured: bool = False


class PostUpdate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    title: Optional[str] = None
    content: Optional[str] = None
    excerpt: Optional[str] = None
    image: Optional[str] = None
    tags: Optional[list[str]] = None
    categories: Optional[list[str]] = None
    status: Optional[Literal["draft", "published"]] = None
    featured: Optional[bool] = None


class PostResponse(BaseModel):
    id: str
    title: str
    content: str
    excerpt: str
    authorId: str
    authorName: str
    image: str
    tags: list[str]
    categories: list[str]
    status: Literal["draft", "published"]
    featured: bool
    likes: int
    createdAt: str
    updatedAt: str


class CommentCreate(BaseModel):
    postId: Optional[str] = None
    content: Optional[str] = None
    parentId: Optional[str] = None


class CommentResponse(BaseModel):
    id: str
    postId: str
    userId: str
    username: str
    avatar: str
    content: str
    parentId: Optional[str] = None
    likes: int
    createdAt: str


class RoleUpdate(BaseModel):
    role: Optional[str] = None


class LikesResponse(BaseModel):
    likes: int


class MessageResponse(BaseModel):
    message: str


class StatsResponse(BaseModel):
    totalPosts: int
    totalUsers: int
    totalComments: int
    publishedPosts: int
    draftPosts: int


class UploadResponse(BaseModel):
    url: str


class HealthResponse(BaseModel):
    status: Literal["ok"]
