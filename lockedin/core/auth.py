import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional, Protocol

import httpx
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import jwt, JWTError

from lockedin.core.config import settings
from lockedin.core.errors import (
    InvalidCredentials,
    Unauthenticated,
    UpstreamFailure,
    VerifierUnavailable,
)

log = logging.getLogger("lockedin.auth")

security = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class AuthUser:
    id: str
    email: Optional[str] = None


class TokenVerifier(Protocol):
    def verify(self, token: str) -> AuthUser: ...


class JwtTokenVerifier:
    """Verifica localmente un access token HS256 (sub = user id)."""

    def __init__(self, secret: str, algorithm: str = "HS256"):
        self.secret = secret
        self.algorithm = algorithm

    def verify(self, token: str) -> AuthUser:
        try:
            payload = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                options={"verify_aud": False},
            )
        except JWTError as e:
            raise InvalidCredentials(str(e)) from e

        sub = payload.get("sub")
        if not sub:
            raise InvalidCredentials("token without sub")
        return AuthUser(id=str(sub), email=payload.get("email"))


class SupabaseTokenVerifier:
    """Introspección remota: GET {base_url}/auth/v1/user con el token del usuario."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = 5.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.transport = transport

    def verify(self, token: str) -> AuthUser:
        url = f"{self.base_url}/auth/v1/user"
        headers = {"Authorization": f"Bearer {token}", "apikey": self.api_key}
        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                resp = client.get(url, headers=headers)
        except httpx.RequestError as e:
            log.warning("auth verifier unreachable: %s", e)
            raise VerifierUnavailable(str(e)) from e

        if resp.status_code in (400, 401, 403, 404, 422):
            raise InvalidCredentials(f"verifier rejected token ({resp.status_code})")
        if not resp.is_success:
            raise VerifierUnavailable(f"verifier status {resp.status_code}")

        try:
            data = resp.json()
        except ValueError as e:
            raise VerifierUnavailable("verifier returned invalid JSON") from e

        user_id = data.get("id") if isinstance(data, dict) else None
        if not user_id:
            raise InvalidCredentials("verifier returned no user")
        return AuthUser(id=str(user_id), email=data.get("email"))


@lru_cache
def get_token_verifier() -> TokenVerifier:
    if settings.AUTH_VERIFIER == "supabase":
        return SupabaseTokenVerifier(
            settings.SUPABASE_URL,
            settings.SUPABASE_SERVICE_ROLE_KEY,
            timeout=settings.AUTH_TIMEOUT_SECONDS,
        )
    return JwtTokenVerifier(settings.SECRET_KEY, settings.ALGORITHM)


def resolve_identity(
    verifier: TokenVerifier,
    creds: HTTPAuthorizationCredentials | None,
) -> Optional[AuthUser]:
    # ✅ Sin token → None (quien llama decide si es 401)
    if creds is None:
        return None
    try:
        return verifier.verify(creds.credentials)
    except InvalidCredentials:
        return None
    except VerifierUnavailable as e:
        raise UpstreamFailure("Authentication service unavailable") from e


def get_current_user_optional(
    creds: HTTPAuthorizationCredentials | None = Depends(security),
    verifier: TokenVerifier = Depends(get_token_verifier),
) -> Optional[AuthUser]:
    return resolve_identity(verifier, creds)


def get_current_user(
    user: Optional[AuthUser] = Depends(get_current_user_optional),
) -> AuthUser:
    if user is None:
        raise Unauthenticated("Unauthorized")
    return user
