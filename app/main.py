"""Entry point for the FastAPI-powered Stremio addon."""

from __future__ import annotations

import logging
from contextlib import AsyncExitStack, asynccontextmanager
from typing import Any

import httpx
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse

from .config import Settings, settings
from .models import ContentType
from .security import SessionCipher
from .services.addon import SUPPORTED_TYPES, AddonService, parse_catalog_extra
from .services.browser import PlaywrightCookieHarvester
from .services.credentials import (
    CookieFileNamer,
    CredentialMaterializer,
    GoogleCookieJarSource,
)
from .services.google import GoogleOAuthClient, GoogleOAuthError
from .services.ytdlp import YtDlpRunner
from .web import render_config_page

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app: FastAPI


def build_addon_service(
    config: Settings, oauth: GoogleOAuthClient
) -> AddonService:
    """Wire the addon service and its collaborators from ``config``."""

    source = GoogleCookieJarSource(
        oauth, PlaywrightCookieHarvester.from_settings(config)
    )
    materializer = CredentialMaterializer(
        source, config.cookie_dir, namer=CookieFileNamer()
    )
    return AddonService(
        config,
        SessionCipher.from_settings(config),
        materializer,
        YtDlpRunner.from_settings(config),
    )


@asynccontextmanager
async def lifespan(fastapi_app: FastAPI):
    exit_stack = AsyncExitStack()
    google_http_client = await exit_stack.enter_async_context(
        httpx.AsyncClient(timeout=httpx.Timeout(20.0, connect=10.0))
    )
    oauth = GoogleOAuthClient(settings, google_http_client)
    fastapi_app.state.google_oauth = oauth
    fastapi_app.state.addon_service = build_addon_service(settings, oauth)

    if not oauth.configured:
        logger.warning(
            "GOOGLE_CLIENT_ID/GOOGLE_CLIENT_SECRET are not set; account linking is disabled"
        )
    logger.info(
        "Access the configuration page at http://localhost:%s/configure",
        settings.server_port,
    )

    try:
        yield
    finally:  # pragma: no cover - teardown path exercised at runtime
        await exit_stack.aclose()


def create_app() -> FastAPI:
    fastapi_app = FastAPI(
        title=settings.app_name,
        description="YouTube catalogs and metadata for Stremio powered by yt-dlp",
        version="1.0.0",
        lifespan=lifespan,
    )

    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    @fastapi_app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error while serving %s", request.url.path)
        return JSONResponse(
            {"error": "Internal server error", "message": str(exc)},
            status_code=500,
        )

    register_routes(fastapi_app)
    return fastapi_app


def get_addon_service(app: FastAPI) -> AddonService:
    service = getattr(app.state, "addon_service", None)
    if not isinstance(service, AddonService):
        raise RuntimeError("Addon service not initialised")
    return service


def get_google_oauth(app: FastAPI) -> GoogleOAuthClient:
    oauth = getattr(app.state, "google_oauth", None)
    if not isinstance(oauth, GoogleOAuthClient):
        raise RuntimeError("Google OAuth client not initialised")
    return oauth


def _validate_type(content_type: str) -> ContentType:
    if content_type not in SUPPORTED_TYPES:
        raise HTTPException(status_code=400, detail="Unsupported content type")
    return content_type  # type: ignore[return-value]


def register_routes(fastapi_app: FastAPI) -> None:
    def _config_page(request: Request, config: str | None) -> HTMLResponse:
        service = get_addon_service(fastapi_app)
        envelope = service.decode(config, decrypt_secret=False)
        origin, base = _resolve_external_base(request)
        return HTMLResponse(
            render_config_page(
                settings, envelope, origin=origin, base_path=base[len(origin):]
            )
        )

    async def _catalog_endpoint(
        request: Request,
        config: str | None,
        content_type: str,
        catalog_id: str,
        extra: str | None = None,
    ) -> JSONResponse:
        resolved_type = _validate_type(content_type)
        service = get_addon_service(fastapi_app)
        scheme = _resolve_external_base(request)[0].split("://", 1)[0]
        try:
            payload = await service.get_catalog(
                config,
                resolved_type,
                catalog_id,
                parse_catalog_extra(extra),
                scheme=scheme,
            )
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return JSONResponse(payload)

    async def _meta_endpoint(
        request: Request, config: str | None, content_type: str, meta_id: str
    ) -> JSONResponse:
        resolved_type = _validate_type(content_type)
        service = get_addon_service(fastapi_app)
        origin, base = _resolve_external_base(request)
        manifest_path = f"/{config}/manifest.json" if config else "/manifest.json"
        payload = await service.get_meta(
            config,
            resolved_type,
            meta_id,
            scheme=origin.split("://", 1)[0],
            manifest_url=f"{base}{manifest_path}",
        )
        return JSONResponse(payload)

    @fastapi_app.get("/healthz")
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    @fastapi_app.get("/", response_class=HTMLResponse)
    async def index(request: Request) -> HTMLResponse:
        return _config_page(request, None)

    @fastapi_app.get("/configure", response_class=HTMLResponse)
    async def configure(request: Request) -> HTMLResponse:
        return _config_page(request, None)

    @fastapi_app.get("/{config}/configure", response_class=HTMLResponse)
    async def configure_with_config(request: Request, config: str) -> HTMLResponse:
        return _config_page(request, config)

    @fastapi_app.get("/manifest.json")
    async def manifest() -> dict[str, Any]:
        return get_addon_service(fastapi_app).build_manifest(None)

    @fastapi_app.get("/{config}/manifest.json")
    async def manifest_with_config(config: str) -> dict[str, Any]:
        return get_addon_service(fastapi_app).build_manifest(config)

    @fastapi_app.get("/catalog/{content_type}/{catalog_id}.json")
    async def catalog(
        request: Request, content_type: str, catalog_id: str
    ) -> JSONResponse:
        return await _catalog_endpoint(request, None, content_type, catalog_id)

    @fastapi_app.get("/catalog/{content_type}/{catalog_id}/{extra}.json")
    async def catalog_with_extra(
        request: Request, content_type: str, catalog_id: str, extra: str
    ) -> JSONResponse:
        return await _catalog_endpoint(request, None, content_type, catalog_id, extra)

    @fastapi_app.get("/{config}/catalog/{content_type}/{catalog_id}.json")
    async def catalog_with_config(
        request: Request, config: str, content_type: str, catalog_id: str
    ) -> JSONResponse:
        return await _catalog_endpoint(request, config, content_type, catalog_id)

    @fastapi_app.get("/{config}/catalog/{content_type}/{catalog_id}/{extra}.json")
    async def catalog_with_config_and_extra(
        request: Request, config: str, content_type: str, catalog_id: str, extra: str
    ) -> JSONResponse:
        return await _catalog_endpoint(
            request, config, content_type, catalog_id, extra
        )

    @fastapi_app.get("/meta/{content_type}/{meta_id}.json")
    async def meta(request: Request, content_type: str, meta_id: str) -> JSONResponse:
        return await _meta_endpoint(request, None, content_type, meta_id)

    @fastapi_app.get("/{config}/meta/{content_type}/{meta_id}.json")
    async def meta_with_config(
        request: Request, config: str, content_type: str, meta_id: str
    ) -> JSONResponse:
        return await _meta_endpoint(request, config, content_type, meta_id)

    @fastapi_app.get("/auth")
    async def google_login(request: Request, state: str | None = None) -> RedirectResponse:
        oauth = get_google_oauth(fastapi_app)
        if not oauth.configured:
            raise HTTPException(
                status_code=500, detail="Google OAuth credentials not configured."
            )
        redirect_uri = _resolve_google_redirect(request)
        return RedirectResponse(oauth.authorization_url(redirect_uri, state or ""))

    @fastapi_app.get("/callback", name="google_oauth_callback")
    async def google_oauth_callback(
        request: Request,
        code: str | None = None,
        state: str | None = None,
        error: str | None = None,
    ) -> RedirectResponse:
        if error:
            raise HTTPException(
                status_code=400, detail=f"Google reported an error: {error}"
            )
        if not code:
            raise HTTPException(status_code=400, detail="Authorization code missing.")

        oauth = get_google_oauth(fastapi_app)
        service = get_addon_service(fastapi_app)
        try:
            tokens = await oauth.exchange_code(code, _resolve_google_redirect(request))
        except GoogleOAuthError as exc:
            logger.error("OAuth callback error: %s", exc)
            raise HTTPException(
                status_code=500, detail="Failed to process OAuth callback."
            ) from exc
        if not tokens.refresh_token:
            raise HTTPException(status_code=400, detail="Refresh token not received.")

        token = service.link_account(tokens.refresh_token, state)
        origin, base = _resolve_external_base(request)
        return RedirectResponse(f"{base[len(origin):]}/{token}/configure")


def _resolve_google_redirect(request: Request) -> str:
    if settings.google_redirect_uri:
        return str(settings.google_redirect_uri)
    _, base = _resolve_external_base(request)
    path = request.app.url_path_for("google_oauth_callback")
    return f"{base}{path}"


def _resolve_external_base(request: Request) -> tuple[str, str]:
    headers = request.headers
    scheme = _first_forwarded_value(headers.get("x-forwarded-proto")) or request.url.scheme

    host = _first_forwarded_value(headers.get("x-forwarded-host"))
    if not host:
        host_header = headers.get("host")
        host = _first_forwarded_value(host_header) if host_header else None
    if not host:
        host = request.url.netloc

    port = _first_forwarded_value(headers.get("x-forwarded-port"))
    if port and ":" not in host:
        default_port = "443" if scheme == "https" else "80"
        if port != default_port:
            host = f"{host}:{port}"

    origin = f"{scheme}://{host}".rstrip("/")

    prefix = (
        _first_forwarded_value(headers.get("x-forwarded-prefix"))
        or request.scope.get("root_path")
        or ""
    )
    if prefix and not prefix.startswith("/"):
        prefix = f"/{prefix}"
    prefix = prefix.rstrip("/")

    base = f"{origin}{prefix}" if prefix else origin
    return origin, base


def _first_forwarded_value(header_value: str | None) -> str | None:
    if not header_value:
        return None
    return header_value.split(",", 1)[0].strip()


app = create_app()


if __name__ == "__main__":  # pragma: no cover - manual execution
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.server_host,
        port=settings.server_port,
        reload=settings.environment == "development",
    )
