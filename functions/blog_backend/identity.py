"""
Identity provider abstraction for Firebase Auth and in-memory testing.

The API only needs "create account", "verify token -> subject id", and
password session issuance/teardown from the provider.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Optional, Protocol

import firebase_admin
import requests
from firebase_admin import auth, credentials
from firebase_admin import exceptions as firebase_exceptions

from blog_backend.errors import AuthProviderError

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 30  # seconds
SIGN_IN_URL = (
    "https://identitytoolkit.googleapis.com/v1/accounts:signInWithPassword"
)


@dataclass
class AuthSession:
    access_token: str
    refresh_token: str
    user_id: str
    expires_in: int = 3600

    def as_dict(self) -> dict:
        return {
            "accessToken": self.access_token,
            "refreshToken": self.refresh_token,
            "userId": self.user_id,
            "expiresIn": self.expires_in,
        }


class IdentityProvider(Protocol):
    """Defines the operations the API needs from the identity provider."""

    def create_account(self, email: str, password: str, metadata: dict) -> str:
        ...

    def verify_token(self, token: str) -> Optional[str]:
        ...

    def sign_in(self, email: str, password: str) -> AuthSession:
        ...

    def sign_out(self, user_id: str) -> None:
        ...


@dataclass
class _Account:
    user_id: str
    email: str
    password: str
    metadata: dict


@dataclass
class InMemoryIdentityProvider:
    """Test double for identity interactions."""

    accounts: dict = field(default_factory=dict)
    tokens: dict = field(default_factory=dict)

    def create_account(self, email: str, password: str, metadata: dict) -> str:
        if email in self.accounts:
            raise AuthProviderError(
                "A user with this email address has already been registered"
            )
        if len(password) < 6:
            raise AuthProviderError("Password should be at least 6 characters")
        user_id = uuid.uuid4().hex
        self.accounts[email] = _Account(
            user_id=user_id, email=email, password=password, metadata=metadata
        )
        return user_id

    def issue_token(self, user_id: str) -> str:
        token = uuid.uuid4().hex
        self.tokens[token] = user_id
        return token

    def verify_token(self, token: str) -> Optional[str]:
        return self.tokens.get(token)

    def sign_in(self, email: str, password: str) -> AuthSession:
        account = self.accounts.get(email)
        if account is None or account.password != password:
            raise AuthProviderError("Invalid login credentials")
        return AuthSession(
            access_token=self.issue_token(account.user_id),
            refresh_token=uuid.uuid4().hex,
            user_id=account.user_id,
        )

    def sign_out(self, user_id: str) -> None:
        self.tokens = {
            token: owner for token, owner in self.tokens.items() if owner != user_id
        }

    def reset(self) -> None:
        self.accounts.clear()
        self.tokens.clear()


class FirebaseIdentityProvider:
    """
    Firebase Auth client. Admin SDK calls cover account creation, token
    verification and revocation; password sign-in goes through the Identity
    Toolkit REST endpoint, which needs the project's web API key.
    """

    def __init__(
        self,
        credentials_path: Optional[str] = None,
        web_api_key: Optional[str] = None,
    ):
        self.web_api_key = web_api_key
        try:
            self.app = firebase_admin.get_app()
        except ValueError:
            cred = (
                credentials.Certificate(credentials_path)
                if credentials_path
                else None
            )
            self.app = firebase_admin.initialize_app(cred)

    def create_account(self, email: str, password: str, metadata: dict) -> str:
        try:
            # Email confirmation is skipped; no mail server is configured.
            record = auth.create_user(
                email=email,
                password=password,
                display_name=metadata.get("username"),
                email_verified=True,
                app=self.app,
            )
        except (ValueError, firebase_exceptions.FirebaseError) as exc:
            logger.warning("Account creation rejected for %s: %s", email, exc)
            raise AuthProviderError(str(exc)) from exc
        return record.uid

    def verify_token(self, token: str) -> Optional[str]:
        try:
            decoded = auth.verify_id_token(token, app=self.app, check_revoked=True)
        except (ValueError, firebase_exceptions.FirebaseError) as exc:
            logger.debug("Token verification failed: %s", exc)
            return None
        return decoded.get("uid")

    def sign_in(self, email: str, password: str) -> AuthSession:
        if not self.web_api_key:
            raise AuthProviderError("Password sign-in is not configured")
        try:
            response = requests.post(
                SIGN_IN_URL,
                params={"key": self.web_api_key},
                json={
                    "email": email,
                    "password": password,
                    "returnSecureToken": True,
                },
                timeout=REQUEST_TIMEOUT,
            )
        except requests.RequestException as exc:
            raise AuthProviderError(str(exc)) from exc

        try:
            payload = response.json() if response.content else {}
        except ValueError:
            # Proxies in front of the endpoint can answer with HTML.
            payload = {}
        if not isinstance(payload, dict):
            payload = {}
        if not response.ok:
            message = payload.get("error", {}).get("message", "Sign-in failed")
            raise AuthProviderError(message)
        if "idToken" not in payload or "localId" not in payload:
            raise AuthProviderError("Sign-in failed")
        return AuthSession(
            access_token=payload["idToken"],
            refresh_token=payload.get("refreshToken", ""),
            user_id=payload["localId"],
            expires_in=int(payload.get("expiresIn", 3600)),
        )

    def sign_out(self, user_id: str) -> None:
        try:
            auth.revoke_refresh_tokens(user_id, app=self.app)
        except (ValueError, firebase_exceptions.FirebaseError) as exc:
            raise AuthProviderError(str(exc)) from exc
