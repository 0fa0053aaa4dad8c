from __future__ import annotations

import asyncio
from datetime import date

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app import db_models
from app.database import Database
from app.main import install_services, register_routes
from app.services.auth import AdminSessionStore, hash_password

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "s3creto"


async def _prepare(database: Database) -> None:
    await database.create_all()
    async with database.session() as session:
        session.add_all(
            [
                db_models.MovieRecord(
                    id="m-matrix",
                    title="Matrix Reloaded",
                    release_date=date(2003, 5, 15),
                    genres=["Acción", "Ciencia Ficción"],
                    rating=7.2,
                    stream_servers=[
                        {"name": "Sub", "url": "https://streamtape.com/e/sub", "language": "Subtitulado"},
                        {"name": "Latino", "url": "https://cdn.example.com/latino.mp4"},
                    ],
                ),
                db_models.MovieRecord(
                    id="m-dune",
                    title="Dune",
                    slug="dune",
                    release_date=date(2021, 9, 15),
                    genres=["Ciencia Ficción"],
                    rating=8.0,
                    stream_servers=[{"name": "Roto", "url": ""}],
                ),
                db_models.SeriesRecord(
                    id="s-dark",
                    title="Dark",
                    slug="dark",
                    genres=["Drama"],
                    seasons=[
                        {
                            "season_number": 1,
                            "episodes": [
                                {
                                    "episode_number": 1,
                                    "stream_servers": [
                                        {"name": "Ep1", "url": "https://cdn.example.com/dark-1.mp4"}
                                    ],
                                }
                            ],
                        }
                    ],
                ),
            ]
        )
        await session.commit()
    await database.dispose()


@pytest.fixture
def client(database_url):
    database = Database(database_url)
    asyncio.run(_prepare(database))

    app = FastAPI()
    register_routes(app)
    install_services(app, database)
    app.state.admin_sessions = AdminSessionStore(
        ADMIN_EMAIL, hash_password(ADMIN_PASSWORD, rounds=4)
    )
    with TestClient(app) as test_client:
        yield test_client
        test_client.portal.call(database.dispose)


def _login(client: TestClient) -> dict[str, str]:
    response = client.post(
        "/api/admin/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD}
    )
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['token']}"}


def test_healthcheck(client) -> None:
    assert client.get("/healthz").json() == {"status": "ok"}


def test_movie_detail_resolves_slug_and_includes_related(client) -> None:
    response = client.get("/api/movies/matrix-reloaded-2003")

    assert response.status_code == 200
    body = response.json()
    assert body["item"]["id"] == "m-matrix"
    assert body["item"]["slug"] == "matrix-reloaded-2003"
    assert [card["id"] for card in body["related"]] == ["m-dune"]


def test_detail_with_year_suffix_finds_stored_slug(client) -> None:
    response = client.get("/api/movies/dune-2021")

    assert response.status_code == 200
    assert response.json()["item"]["id"] == "m-dune"


def test_unknown_slug_returns_404(client) -> None:
    response = client.get("/api/movies/no-existe")

    assert response.status_code == 404
    assert response.json()["detail"] == "Item not found"


def test_unknown_content_type_returns_404(client) -> None:
    assert client.get("/api/podcasts").status_code == 404


def test_player_groups_servers_by_language(client) -> None:
    response = client.get("/api/movies/matrix-reloaded-2003/player", params={"server": 1})

    assert response.status_code == 200
    body = response.json()
    assert [group["language"] for group in body["groups"]] == [
        "Español Latino",
        "Subtitulado",
    ]
    assert body["current"]["name"] == "Sub"
    assert body["playback"]["mode"] == "iframe"


def test_player_uses_demo_server_when_nothing_is_playable(client) -> None:
    body = client.get("/api/movies/dune/player").json()

    assert body["current"]["name"] == "Servidor Demo"
    assert body["playback"]["mode"] == "native"


def test_player_rejects_out_of_range_server(client) -> None:
    assert client.get("/api/movies/dune/player", params={"server": 5}).status_code == 400


def test_series_player_defaults_to_first_episode(client) -> None:
    body = client.get("/api/series/dark/player").json()

    assert (body["season"], body["episode"]) == (1, 1)
    assert body["current"]["name"] == "Ep1"


def test_search_and_genres(client) -> None:
    search = client.get("/api/search", params={"q": "dun"}).json()
    genres = client.get("/api/genres").json()

    assert [hit["id"] for hit in search["results"]] == ["m-dune"]
    assert genres["genres"] == ["Acción", "Ciencia Ficción", "Drama"]
    assert client.get("/api/search", params={"q": "d"}).json()["results"] == []


def test_genre_page_lists_both_kinds(client) -> None:
    body = client.get("/api/genre/drama").json()

    assert body["movies"] == []
    assert [card["id"] for card in body["series"]] == ["s-dark"]


def test_views_feed_most_viewed_on_home(client) -> None:
    assert client.post("/api/movies/m-dune/views").json() == {"recorded": True}
    assert client.post("/api/movies/missing/views").json() == {"recorded": False}

    home = client.get("/api/home").json()

    assert [card["id"] for card in home["most_viewed_movies"]] == ["m-dune"]
    assert home["settings"]["site_name"] == "Cine Explorer"


def test_related_endpoint_honours_limit(client) -> None:
    response = client.get("/api/movies/m-dune/related", params={"limit": 1})

    assert [card["id"] for card in response.json()["items"]] == ["m-matrix"]
    assert client.get("/api/movies/missing/related").status_code == 404


def test_admin_routes_require_session(client) -> None:
    assert client.get("/api/admin/stats").status_code == 401
    assert client.post("/api/admin/movies", json={"title": "X"}).status_code == 401
    assert (
        client.post(
            "/api/admin/login", json={"email": ADMIN_EMAIL, "password": "mal"}
        ).status_code
        == 401
    )


def test_admin_crud_flow(client) -> None:
    headers = _login(client)

    created = client.post(
        "/api/admin/movies",
        json={"title": "Ópera Nocturna", "releaseDate": "2019-02-01"},
        headers=headers,
    )
    assert created.status_code == 201
    movie = created.json()
    assert movie["slug"] == "opera-nocturna-2019"

    assert client.get("/api/movies/opera-nocturna-2019").status_code == 200

    invalid = client.post("/api/admin/movies", json={"title": " "}, headers=headers)
    assert invalid.status_code == 400

    updated = client.put(
        f"/api/admin/movies/{movie['id']}", json={"rating": 6.5}, headers=headers
    )
    assert updated.json()["rating"] == 6.5

    stats = client.get("/api/admin/stats", headers=headers).json()
    assert stats == {"movies": 3, "series": 1}

    deleted = client.delete(f"/api/admin/movies/{movie['id']}", headers=headers)
    assert deleted.status_code == 204
    assert client.get("/api/movies/opera-nocturna-2019").status_code == 404


def test_admin_featured_and_settings(client) -> None:
    headers = _login(client)

    first = client.post(
        "/api/admin/featured", json={"type": "movies", "id": "m-dune"}, headers=headers
    ).json()
    second = client.post(
        "/api/admin/featured", json={"type": "series", "id": "s-dark"}, headers=headers
    ).json()
    duplicate = client.post(
        "/api/admin/featured", json={"type": "movies", "id": "m-dune"}, headers=headers
    )
    assert duplicate.status_code == 400

    reordered = client.put(
        "/api/admin/featured/order", json={"ids": [second["id"], first["id"]]}, headers=headers
    ).json()
    assert reordered["featured"] == [second["id"], first["id"]]

    featured = client.get("/api/featured").json()["featured"]
    assert [entry["item"]["id"] for entry in featured] == ["s-dark", "m-dune"]

    settings = client.put(
        "/api/admin/settings", json={"siteName": "Mi Cine"}, headers=headers
    ).json()
    assert settings["site_name"] == "Mi Cine"
    assert client.get("/api/settings").json()["site_name"] == "Mi Cine"


def test_admin_import_tmdb_and_fix_slugs(client) -> None:
    headers = _login(client)

    imported = client.post(
        "/api/admin/series/import-tmdb",
        json={"id": 71446, "name": "La Casa de Papel", "first_air_date": "2017-05-02", "genre_ids": [80, 18]},
        headers=headers,
    )
    assert imported.status_code == 201
    assert imported.json()["slug"] == "la-casa-de-papel"
    assert imported.json()["genres"] == ["Crimen", "Drama"]

    rejected = client.post(
        "/api/admin/movies/import-tmdb", json={"success": False}, headers=headers
    )
    assert rejected.status_code == 422

    fixed = client.post("/api/admin/fix-slugs", headers=headers).json()
    assert fixed == {"movie": 2, "series": 0}


def test_logout_invalidates_token(client) -> None:
    headers = _login(client)

    assert client.post("/api/admin/logout", headers=headers).status_code == 204
    assert client.get("/api/admin/stats", headers=headers).status_code == 401
