"""Authentication gate in front of every route.

Each request is checked against an ``AccessPolicy``: public routes pass
untouched, everything else needs a valid access token whose role satisfies
the longest matching entry of the protected-route table. An expired or
invalid access token gets exactly one silent refresh through the configured
``IdentityProvider`` before the request is turned away.
"""
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from urllib.parse import urlencode

from fastapi import Request
from fastapi.responses import RedirectResponse
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from app.core.config import Settings
from app.core.errors import error_response
from app.core.identity import IdentityProvider, RefreshRejected
from app.core.security import Identity, decode_access_token
from app.schemas.auth import TokenPair

logger = logging.getLogger(__name__)

ACCESS_COOKIE = "access_token"
REFRESH_COOKIE = "refresh_token"

# Request headers handed to downstream handlers; stripped from inbound requests first.
IDENTITY_HEADERS = {
    "x-user-id": "sub",
    "x-user-role": "role",
    "x-user-email": "email",
    "x-user-status": "status",
}

_STAFF = ("SUPER_ADMIN", "ADMIN")

DEFAULT_PUBLIC_ROUTES = (
    "/",
    "/login",
    "/register",
    "/forgot-password",
    "/reset-password",
    "/unauthorized",
    "/about",
    "/contact",
    "/courses",
    "/health",
    "/docs*",
    "/openapi.json",
    "/api/auth/login",
    "/api/auth/register",
    "/api/auth/refresh",
    "/api/auth/verify",
    "/api/courses/public",
)

DEFAULT_PROTECTED_ROUTES = {
    "/admin": frozenset(_STAFF),
    "/teacher": frozenset(_STAFF + ("TEACHER",)),
    "/student": frozenset(_STAFF + ("STUDENT",)),
    "/staff": frozenset(_STAFF + ("STAFF",)),
    "/api/admin": frozenset(_STAFF),
    "/api/teacher": frozenset(_STAFF + ("TEACHER",)),
    "/api/student": frozenset(_STAFF + ("STUDENT",)),
}


def _route_matches(path: str, route: str) -> bool:
    if route.endswith("*"):
        return path.startswith(route[:-1])
    if route == "/":
        return path == "/"
    return path == route or path.startswith(route + "/")


@dataclass(frozen=True)
class AccessPolicy:
    """Which paths are public and which roles each protected prefix admits.

    Routes match a path exactly or as a parent segment (``/admin`` matches
    ``/admin/users`` but not ``/administrators``); a trailing ``*`` turns a
    route into a plain string prefix.
    """

    public_routes: tuple[str, ...] = ()
    protected_routes: Mapping[str, frozenset[str]] = field(default_factory=dict)

    def is_public(self, path: str) -> bool:
        return any(_route_matches(path, route) for route in self.public_routes)

    def required_roles(self, path: str) -> frozenset[str] | None:
        """Roles admitted on ``path``; None when any authenticated user is."""
        matched = [route for route in self.protected_routes if _route_matches(path, route)]
        if not matched:
            return None
        return self.protected_routes[max(matched, key=len)]


def default_access_policy() -> AccessPolicy:
    return AccessPolicy(
        public_routes=DEFAULT_PUBLIC_ROUTES,
        protected_routes=dict(DEFAULT_PROTECTED_ROUTES),
    )


@dataclass(frozen=True)
class CookieSettings:
    secure: bool = False
    access_max_age: int = 15 * 60
    refresh_max_age: int = 7 * 24 * 60 * 60

    @classmethod
    def from_settings(cls, settings: Settings) -> "CookieSettings":
        return cls(
            secure=settings.is_production,
            access_max_age=settings.access_token_expire_minutes * 60,
            refresh_max_age=settings.refresh_token_expire_days * 24 * 60 * 60,
        )

    def set_tokens(self, response: Response, tokens: TokenPair) -> None:
        response.set_cookie(
            ACCESS_COOKIE,
            tokens.access_token,
            max_age=self.access_max_age,
            path="/",
            secure=self.secure,
            httponly=True,
            samesite="lax",
        )
        response.set_cookie(
            REFRESH_COOKIE,
            tokens.refresh_token,
            max_age=self.refresh_max_age,
            path="/",
            secure=self.secure,
            httponly=True,
            samesite="lax",
        )

    def clear(self, response: Response) -> None:
        for name in (ACCESS_COOKIE, REFRESH_COOKIE):
            response.delete_cookie(name, path="/", secure=self.secure, httponly=True, samesite="lax")


class AuthMiddleware(BaseHTTPMiddleware):
    def __init__(
        self,
        app,
        policy: AccessPolicy,
        identity_provider: IdentityProvider,
        cookies: CookieSettings | None = None,
        verify_access_token: Callable[[str], Identity | None] = decode_access_token,
        api_prefix: str = "/api",
        login_path: str = "/login",
        unauthorized_path: str = "/unauthorized",
    ):
        super().__init__(app)
        self.policy = policy
        self.identity_provider = identity_provider
        self.cookies = cookies or CookieSettings()
        self.verify_access_token = verify_access_token
        self.api_prefix = api_prefix
        self.login_path = login_path
        self.unauthorized_path = unauthorized_path

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        path = request.url.path
        if request.method == "OPTIONS" or self.policy.is_public(path):
            return await call_next(request)

        access_token = request.cookies.get(ACCESS_COOKIE) or _bearer_token(request)
        if not access_token:
            return self._unauthenticated(request, "No token provided")

        identity = self.verify_access_token(access_token)
        if identity is not None:
            return await self._authorize(request, call_next, identity)

        response = await self._refresh_and_authorize(request, call_next)
        if response is not None:
            return response

        response = self._unauthenticated(request, "Invalid or expired token")
        self.cookies.clear(response)
        return response

    async def _refresh_and_authorize(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response | None:
        """The single refresh attempt. None means the caller must re-authenticate."""
        refresh_token = request.cookies.get(REFRESH_COOKIE)
        if not refresh_token:
            return None
        try:
            tokens = await run_in_threadpool(self.identity_provider.refresh, refresh_token)
        except RefreshRejected as exc:
            logger.info("Token refresh rejected for %s: %s", request.url.path, exc)
            return None

        identity = self.verify_access_token(tokens.access_token)
        if identity is None:
            logger.warning("Identity provider returned an unusable access token")
            return None

        response = await self._authorize(request, call_next, identity)
        self.cookies.set_tokens(response, tokens)
        return response

    async def _authorize(
        self, request: Request, call_next: RequestResponseEndpoint, identity: Identity
    ) -> Response:
        required = self.policy.required_roles(request.url.path)
        if required is not None and identity.role not in required:
            logger.info(
                "Role %s denied on %s (requires %s)",
                identity.role,
                request.url.path,
                ", ".join(sorted(required)),
            )
            if self._is_api(request):
                return error_response("FORBIDDEN", "Access denied", 403)
            return RedirectResponse(str(request.url.replace(path=self.unauthorized_path, query="")))

        _inject_identity(request, identity)
        return await call_next(request)

    def _unauthenticated(self, request: Request, message: str) -> Response:
        if self._is_api(request):
            return error_response("UNAUTHORIZED", message, 401)
        login_url = request.url.replace(
            path=self.login_path, query=urlencode({"redirect": request.url.path})
        )
        return RedirectResponse(str(login_url))

    def _is_api(self, request: Request) -> bool:
        path = request.url.path
        return path == self.api_prefix or path.startswith(self.api_prefix + "/")


def _bearer_token(request: Request) -> str | None:
    header = request.headers.get("authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token:
        return None
    return token.strip()


def _inject_identity(request: Request, identity: Identity) -> None:
    request.state.identity = identity
    headers = [
        (name, value)
        for name, value in request.scope["headers"]
        if name.decode("latin-1") not in IDENTITY_HEADERS
    ]
    for header, attr in IDENTITY_HEADERS.items():
        headers.append((header.encode("latin-1"), getattr(identity, attr).encode("utf-8")))
    request.scope["headers"] = headers
