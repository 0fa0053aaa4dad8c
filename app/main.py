"""Entry point for the FastAPI-powered catalog API."""

from __future__ import annotations

import json
import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response

from .config import settings
from .database import Database
from .errors import (
    BackendError,
    CatalogError,
    CatalogValidationError,
    MetadataImportError,
    NotFoundError,
)
from .models import CatalogItem, Series
from .services.auth import AdminSessionStore
from .services.catalog import CatalogService
from .services.curation import FeaturedService, SiteSettingsService, ViewsService
from .services.importer import payload_from_tmdb
from .services.streams import StreamSelector, effective_servers

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

PATH_KINDS: dict[str, str] = {"movies": "movie", "series": "series"}
HOME_SECTION_SIZE = 20

app: FastAPI


@asynccontextmanager
async def lifespan(fastapi_app: FastAPI):
    database = Database(settings.database_url)
    await database.create_all()
    install_services(fastapi_app, database)

    try:
        yield
    finally:  # pragma: no cover - teardown path exercised at runtime
        await database.dispose()


def install_services(fastapi_app: FastAPI, database: Database) -> None:
    """Attach the catalog services for ``database`` to the application state."""

    session_factory = database.session_factory
    fastapi_app.state.database = database
    fastapi_app.state.catalog_service = CatalogService(
        session_factory, search_limit=settings.search_result_limit
    )
    fastapi_app.state.featured_service = FeaturedService(session_factory)
    fastapi_app.state.settings_service = SiteSettingsService(
        session_factory,
        default_name=settings.app_name,
        default_description=settings.site_description,
    )
    fastapi_app.state.views_service = ViewsService(session_factory)
    fastapi_app.state.admin_sessions = AdminSessionStore(
        settings.admin_email,
        settings.admin_password_hash,
        ttl_seconds=settings.admin_session_ttl_seconds,
    )


def create_app() -> FastAPI:
    fastapi_app = FastAPI(
        title=settings.app_name,
        description="Catálogo de películas y series en streaming",
        version="1.0.0",
        lifespan=lifespan,
    )

    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["*"],
    )

    register_routes(fastapi_app)
    return fastapi_app


def _state_service(fastapi_app: FastAPI, name: str, expected: type) -> Any:
    service = getattr(fastapi_app.state, name, None)
    if not isinstance(service, expected):
        raise RuntimeError(f"{name} not initialised")
    return service


def get_catalog_service(fastapi_app: FastAPI) -> CatalogService:
    return _state_service(fastapi_app, "catalog_service", CatalogService)


def get_featured_service(fastapi_app: FastAPI) -> FeaturedService:
    return _state_service(fastapi_app, "featured_service", FeaturedService)


def get_settings_service(fastapi_app: FastAPI) -> SiteSettingsService:
    return _state_service(fastapi_app, "settings_service", SiteSettingsService)


def get_views_service(fastapi_app: FastAPI) -> ViewsService:
    return _state_service(fastapi_app, "views_service", ViewsService)


def get_admin_sessions(fastapi_app: FastAPI) -> AdminSessionStore:
    return _state_service(fastapi_app, "admin_sessions", AdminSessionStore)


def _http_error(exc: CatalogError) -> HTTPException:
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, CatalogValidationError):
        return HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, MetadataImportError):
        return HTTPException(status_code=422, detail=str(exc))
    if isinstance(exc, BackendError):
        return HTTPException(status_code=502, detail=str(exc))
    return HTTPException(status_code=500, detail=str(exc))


def _resolve_kind(path_kind: str) -> str:
    kind = PATH_KINDS.get(path_kind)
    if kind is None:
        raise HTTPException(status_code=404, detail="Unsupported content type")
    return kind


def _item_payload(item: CatalogItem) -> dict[str, Any]:
    payload = item.model_dump(mode="json")
    payload["slug"] = item.public_slug()
    payload["year"] = item.year
    return payload


def _cards(items: list[CatalogItem]) -> list[dict[str, Any]]:
    return [item.to_card() for item in items]


async def _json_body(request: Request) -> dict[str, Any]:
    try:
        payload = await request.json()
    except json.JSONDecodeError as exc:
        raise HTTPException(status_code=400, detail="Invalid JSON body") from exc
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Invalid payload")
    return payload


def _bearer_token(request: Request) -> str | None:
    header = request.headers.get("authorization") or ""
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def register_routes(fastapi_app: FastAPI) -> None:
    def _require_admin(request: Request) -> None:
        store = get_admin_sessions(fastapi_app)
        if store.authenticate(_bearer_token(request)) is None:
            raise HTTPException(status_code=401, detail="Sesión de administrador requerida")

    @fastapi_app.get("/healthz")
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    # Admin -----------------------------------------------------------------

    @fastapi_app.post("/api/admin/login")
    async def admin_login(request: Request) -> dict[str, object]:
        payload = await _json_body(request)
        store = get_admin_sessions(fastapi_app)
        session = store.login(
            str(payload.get("email") or ""), str(payload.get("password") or "")
        )
        if session is None:
            raise HTTPException(status_code=401, detail="Credenciales incorrectas")
        return session.to_payload()

    @fastapi_app.post("/api/admin/logout", status_code=204)
    async def admin_logout(request: Request) -> Response:
        get_admin_sessions(fastapi_app).logout(_bearer_token(request))
        return Response(status_code=204)

    @fastapi_app.get("/api/admin/stats")
    async def admin_stats(request: Request) -> dict[str, int]:
        _require_admin(request)
        service = get_catalog_service(fastapi_app)
        try:
            return {
                "movies": await service.count_items("movie"),
                "series": await service.count_items("series"),
            }
        except CatalogError as exc:
            raise _http_error(exc) from exc

    @fastapi_app.post("/api/admin/fix-slugs")
    async def admin_fix_slugs(request: Request) -> dict[str, int]:
        _require_admin(request)
        try:
            return await get_catalog_service(fastapi_app).fix_missing_slugs()
        except CatalogError as exc:
            raise _http_error(exc) from exc

    @fastapi_app.put("/api/admin/settings")
    async def admin_update_settings(request: Request) -> dict[str, Any]:
        _require_admin(request)
        payload = await _json_body(request)
        try:
            site = await get_settings_service(fastapi_app).update_settings(payload)
        except CatalogError as exc:
            raise _http_error(exc) from exc
        return site.model_dump(mode="json")

    @fastapi_app.post("/api/admin/featured", status_code=201)
    async def admin_add_featured(request: Request) -> dict[str, Any]:
        _require_admin(request)
        payload = await _json_body(request)
        kind = _resolve_kind(str(payload.get("type") or ""))
        try:
            entry = await get_featured_service(fastapi_app).add_featured(
                kind, str(payload.get("id") or "")
            )
        except CatalogError as exc:
            raise _http_error(exc) from exc
        return {"id": entry.id, "display_order": entry.display_order, "item": entry.item.to_card()}

    @fastapi_app.put("/api/admin/featured/order")
    async def admin_reorder_featured(request: Request) -> dict[str, Any]:
        _require_admin(request)
        payload = await _json_body(request)
        slot_ids = payload.get("ids")
        if not isinstance(slot_ids, list):
            raise HTTPException(status_code=400, detail="ids must be a list")
        try:
            entries = await get_featured_service(fastapi_app).reorder(
                [str(slot_id) for slot_id in slot_ids]
            )
        except CatalogError as exc:
            raise _http_error(exc) from exc
        return {"featured": [entry.id for entry in entries]}

    @fastapi_app.delete("/api/admin/featured/{slot_id}", status_code=204)
    async def admin_remove_featured(slot_id: str, request: Request) -> Response:
        _require_admin(request)
        try:
            await get_featured_service(fastapi_app).remove_featured(slot_id)
        except CatalogError as exc:
            raise _http_error(exc) from exc
        return Response(status_code=204)

    @fastapi_app.post("/api/admin/{path_kind}/import-tmdb", status_code=201)
    async def admin_import_tmdb(path_kind: str, request: Request) -> dict[str, Any]:
        _require_admin(request)
        kind = _resolve_kind(path_kind)
        payload = await _json_body(request)
        try:
            item = await get_catalog_service(fastapi_app).create_item(
                kind, payload_from_tmdb(kind, payload)
            )
        except CatalogError as exc:
            raise _http_error(exc) from exc
        return _item_payload(item)

    @fastapi_app.post("/api/admin/{path_kind}", status_code=201)
    async def admin_create(path_kind: str, request: Request) -> dict[str, Any]:
        _require_admin(request)
        kind = _resolve_kind(path_kind)
        payload = await _json_body(request)
        try:
            item = await get_catalog_service(fastapi_app).create_item(kind, payload)
        except CatalogError as exc:
            raise _http_error(exc) from exc
        return _item_payload(item)

    @fastapi_app.put("/api/admin/{path_kind}/{item_id}")
    async def admin_update(path_kind: str, item_id: str, request: Request) -> dict[str, Any]:
        _require_admin(request)
        kind = _resolve_kind(path_kind)
        payload = await _json_body(request)
        try:
            item = await get_catalog_service(fastapi_app).update_item(
                kind, item_id, payload
            )
        except CatalogError as exc:
            raise _http_error(exc) from exc
        return _item_payload(item)

    @fastapi_app.delete("/api/admin/{path_kind}/{item_id}", status_code=204)
    async def admin_delete(path_kind: str, item_id: str, request: Request) -> Response:
        _require_admin(request)
        kind = _resolve_kind(path_kind)
        try:
            await get_catalog_service(fastapi_app).delete_item(kind, item_id)
        except CatalogError as exc:
            raise _http_error(exc) from exc
        return Response(status_code=204)

    # Public catalog ------------------------------------------------------

    @fastapi_app.get("/api/home")
    async def home() -> dict[str, Any]:
        service = get_catalog_service(fastapi_app)
        views = get_views_service(fastapi_app)
        try:
            featured = await get_featured_service(fastapi_app).list_featured()
            movies = await service.list_items("movie", limit=HOME_SECTION_SIZE)
            series = await service.list_items("series", limit=HOME_SECTION_SIZE)
            top_movies = await views.most_viewed("movie", limit=settings.most_viewed_limit)
            top_series = await views.most_viewed("series", limit=settings.most_viewed_limit)
        except CatalogError as exc:
            raise _http_error(exc) from exc
        site = await get_settings_service(fastapi_app).get_settings()
        return {
            "settings": site.model_dump(mode="json"),
            "featured": [
                {"id": entry.id, "item": entry.item.to_card()} for entry in featured
            ],
            "movies": _cards(movies),
            "series": _cards(series),
            "most_viewed_movies": _cards(top_movies),
            "most_viewed_series": _cards(top_series),
        }

    @fastapi_app.get("/api/genres")
    async def genres() -> dict[str, list[str]]:
        try:
            labels = await get_catalog_service(fastapi_app).list_genres()
        except CatalogError as exc:
            raise _http_error(exc) from exc
        return {"genres": labels}

    @fastapi_app.get("/api/genre/{genre}")
    async def genre_page(genre: str) -> dict[str, Any]:
        service = get_catalog_service(fastapi_app)
        try:
            movies = await service.list_items("movie", genre=genre)
            series = await service.list_items("series", genre=genre)
        except CatalogError as exc:
            raise _http_error(exc) from exc
        return {"genre": genre, "movies": _cards(movies), "series": _cards(series)}

    @fastapi_app.get("/api/search")
    async def search(q: str = "") -> dict[str, Any]:
        results = await get_catalog_service(fastapi_app).search_all(q)
        return {"query": q, "results": [hit.model_dump(mode="json") for hit in results]}

    @fastapi_app.get("/api/featured")
    async def featured() -> dict[str, Any]:
        try:
            entries = await get_featured_service(fastapi_app).list_featured()
        except CatalogError as exc:
            raise _http_error(exc) from exc
        return {
            "featured": [
                {
                    "id": entry.id,
                    "display_order": entry.display_order,
                    "item": _item_payload(entry.item),
                }
                for entry in entries
            ]
        }

    @fastapi_app.get("/api/settings")
    async def site_settings() -> dict[str, Any]:
        site = await get_settings_service(fastapi_app).get_settings()
        return site.model_dump(mode="json")

    @fastapi_app.get("/api/{path_kind}")
    async def list_items(
        path_kind: str, search: str = "", genre: str | None = None
    ) -> dict[str, Any]:
        kind = _resolve_kind(path_kind)
        try:
            items = await get_catalog_service(fastapi_app).list_items(
                kind, search=search, genre=genre
            )
        except CatalogError as exc:
            raise _http_error(exc) from exc
        return {"items": _cards(items)}

    @fastapi_app.get("/api/{path_kind}/{slug}")
    async def item_detail(path_kind: str, slug: str) -> dict[str, Any]:
        kind = _resolve_kind(path_kind)
        service = get_catalog_service(fastapi_app)
        try:
            item = await service.resolve_by_slug(kind, slug)
        except CatalogError as exc:
            raise _http_error(exc) from exc
        related = await service.find_related(
            kind, item.id, item.genres, limit=settings.related_limit
        )
        return {"item": _item_payload(item), "related": _cards(related)}

    @fastapi_app.get("/api/{path_kind}/{item_id}/related")
    async def related_items(
        path_kind: str, item_id: str, limit: int | None = None
    ) -> dict[str, Any]:
        kind = _resolve_kind(path_kind)
        service = get_catalog_service(fastapi_app)
        try:
            item = await service.get_item(kind, item_id)
        except CatalogError as exc:
            raise _http_error(exc) from exc
        effective_limit = settings.related_limit if limit is None else max(0, min(limit, 50))
        related = await service.find_related(
            kind, item.id, item.genres, limit=effective_limit
        )
        return {"items": _cards(related)}

    @fastapi_app.get("/api/{path_kind}/{slug}/player")
    async def player(
        path_kind: str,
        slug: str,
        server: int = 0,
        season: int | None = None,
        episode: int | None = None,
    ) -> dict[str, Any]:
        kind = _resolve_kind(path_kind)
        try:
            item = await get_catalog_service(fastapi_app).resolve_by_slug(kind, slug)
            if isinstance(item, Series) and season is None and item.seasons:
                first_season = item.seasons[0]
                season = first_season.season_number
                if first_season.episodes:
                    episode = first_season.episodes[0].episode_number
            servers = effective_servers(
                item,
                season=season,
                episode=episode,
                demo_url=settings.demo_stream_url,
            )
            selector = StreamSelector(
                servers, priority=settings.stream_language_priority
            )
            selector.select(server)
        except CatalogError as exc:
            raise _http_error(exc) from exc
        payload = selector.to_payload()
        payload["title"] = item.title
        if kind == "series":
            payload["season"] = season
            payload["episode"] = episode
        return payload

    @fastapi_app.post("/api/{path_kind}/{item_id}/views", status_code=202)
    async def record_view(path_kind: str, item_id: str, request: Request) -> dict[str, bool]:
        kind = _resolve_kind(path_kind)
        recorded = await get_views_service(fastapi_app).record_view(
            kind, item_id, user_agent=request.headers.get("user-agent")
        )
        return {"recorded": recorded}


app = create_app()


if __name__ == "__main__":  # pragma: no cover - manual execution
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.server_host,
        port=settings.server_port,
        reload=settings.environment == "development",
    )
