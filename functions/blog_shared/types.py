# Copyright 2025 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ==============================================================================

from dataclasses import dataclass, field
from typing import List, Optional

from blog_shared.constants import ROLE_USER, STATUS_PUBLISHED


@dataclass
class User:
    """A user profile. The id is the identity provider's subject id."""

    id: str
    email: str
    username: str
    role: str = ROLE_USER
    avatar: str = ""
    bio: str = ""
    created_at: str = ""


@dataclass
class Post:
    """A blog post.

    `author_name` is a snapshot of the author's username taken when the post
    was created; later profile edits do not change it.
    """

    id: str
    title: str
    content: str
    excerpt: str
    author_id: str
    author_name: str
    image: str = ""
    tags: List[str] = field(default_factory=list)
    categories: List[str] = field(default_factory=list)
    status: str = STATUS_PUBLISHED
    featured: bool = False
    likes: int = 0
    created_at: str = ""
    updated_at: str = ""


@dataclass
class Comment:
    """A comment on a post. `parent_id` is None for top-level comments.

    `username` and `avatar` are snapshots of the commenter's profile.
    """

    id: str
    post_id: str
    user_id: str
    username: str
    content: str
    avatar: str = ""
    parent_id: Optional[str] = None
    likes: int = 0
    created_at: str = ""
