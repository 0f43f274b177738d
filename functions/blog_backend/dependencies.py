"""
Dependency wiring for the FastAPI app.

Collaborators are built once by `create_app` and kept on `app.state`; route
dependencies read them from there instead of from module globals.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import Depends, Header, Request

from blog_backend.config import Settings
from blog_backend.content_store import ContentStore
from blog_backend.identity import (
    FirebaseIdentityProvider,
    IdentityProvider,
    InMemoryIdentityProvider,
)
from blog_backend.kv import InMemoryKvStore, KvStore, RedisKvStore, SqlKvStore
from blog_backend.storage import InMemoryStorageClient, S3StorageClient, StorageClient

logger = logging.getLogger(__name__)


def build_kv_store(settings: Settings) -> KvStore:
    if settings.use_in_memory_backends:
        return InMemoryKvStore()
    if settings.database_url:
        return SqlKvStore(settings.database_url)
    if settings.redis_url:
        return RedisKvStore(settings.redis_url, key_prefix=settings.redis_key_prefix)
    logger.warning("No DATABASE_URL or REDIS_URL set; using in-memory KV store")
    return InMemoryKvStore()


def build_identity_provider(settings: Settings) -> IdentityProvider:
    if settings.use_in_memory_backends:
        return InMemoryIdentityProvider()
    if not settings.firebase_credentials_path:
        logger.warning(
            "No FIREBASE_CREDENTIALS_PATH set; using in-memory identity provider"
        )
        return InMemoryIdentityProvider()
    return FirebaseIdentityProvider(
        credentials_path=settings.firebase_credentials_path,
        web_api_key=settings.firebase_web_api_key,
    )


def build_storage_client(settings: Settings) -> StorageClient:
    if settings.use_in_memory_backends:
        return InMemoryStorageClient()
    if not settings.s3_bucket:
        logger.warning("No S3_BUCKET set; using in-memory image storage")
        return InMemoryStorageClient()
    client = S3StorageClient(
        bucket=settings.s3_bucket,
        region=settings.s3_region or "",
        endpoint=settings.s3_endpoint or "",
        access_key_id=settings.aws_access_key_id or "",
        secret_access_key=settings.aws_secret_access_key or "",
    )
    client.ensure_bucket()
    return client


def build_content_store(settings: Settings) -> ContentStore:
    return ContentStore(
        kv=build_kv_store(settings),
        identity=build_identity_provider(settings),
        storage=build_storage_client(settings),
        max_upload_bytes=settings.max_upload_bytes,
        signed_url_ttl_seconds=settings.signed_url_ttl_seconds,
    )


def get_content_store(request: Request) -> ContentStore:
    return request.app.state.content_store


def get_caller_id(
    authorization: Optional[str] = Header(default=None),
    store: ContentStore = Depends(get_content_store),
) -> Optional[str]:
    """
    Resolve the caller's subject id from a bearer token.

    A missing or unverifiable token means an anonymous caller; anonymous
    clients may still send a public key as their bearer token.
    """
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return store.identity.verify_token(token.strip())
