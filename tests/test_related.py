from __future__ import annotations

from datetime import datetime

from app.services.related import RelatedContentMatcher


async def _seed_catalog(database, seed) -> None:
    await seed(
        database,
        "movie",
        id="target",
        title="Dune",
        genres=["Ciencia Ficción", "Aventura"],
        rating=8.0,
        created_at=datetime(2024, 1, 1),
    )
    await seed(
        database,
        "movie",
        id="interstellar",
        title="Interstellar",
        genres=["ciencia ficción", "Drama"],
        rating=8.6,
        created_at=datetime(2023, 1, 1),
    )
    await seed(
        database,
        "movie",
        id="indiana",
        title="Indiana Jones",
        genres=["Aventura"],
        rating=None,
        created_at=datetime(2023, 6, 1),
    )
    await seed(
        database,
        "movie",
        id="arrival",
        title="Arrival",
        genres=["Ciencia Ficción"],
        rating=7.9,
        created_at=datetime(2022, 1, 1),
    )
    await seed(
        database,
        "movie",
        id="notebook",
        title="El Diario de Noa",
        genres=["Romance"],
        rating=7.8,
        created_at=datetime(2024, 2, 1),
    )


def test_related_items_share_a_genre_and_exclude_the_source(run_scenario, seed) -> None:
    async def scenario(database):
        await _seed_catalog(database, seed)
        matcher = RelatedContentMatcher(database.session_factory)
        return await matcher.find_related(
            "movie", "target", ["Ciencia Ficción", "Aventura"]
        )

    related = run_scenario(scenario)

    assert [item.id for item in related] == ["interstellar", "arrival", "indiana"]
    assert all(item.id != "target" for item in related)


def test_related_items_respect_limit(run_scenario, seed) -> None:
    async def scenario(database):
        await _seed_catalog(database, seed)
        matcher = RelatedContentMatcher(database.session_factory)
        return await matcher.find_related(
            "movie", "target", ["Ciencia Ficción", "Aventura"], limit=2
        )

    assert [item.id for item in run_scenario(scenario)] == ["interstellar", "arrival"]


def test_empty_genres_disable_the_filter(run_scenario, seed) -> None:
    async def scenario(database):
        await _seed_catalog(database, seed)
        matcher = RelatedContentMatcher(database.session_factory)
        return await matcher.find_related("movie", "target", [])

    related = run_scenario(scenario)

    assert {item.id for item in related} == {
        "interstellar",
        "indiana",
        "arrival",
        "notebook",
    }


def test_falls_back_to_recent_items_without_shared_genres(run_scenario, seed) -> None:
    async def scenario(database):
        await _seed_catalog(database, seed)
        matcher = RelatedContentMatcher(database.session_factory)
        return await matcher.find_related("movie", "notebook", ["Musical"], limit=3)

    assert [item.id for item in run_scenario(scenario)] == [
        "target",
        "indiana",
        "interstellar",
    ]


def test_single_item_catalog_has_no_related_content(run_scenario, seed) -> None:
    async def scenario(database):
        await seed(database, "series", id="only", title="Dark", genres=["Drama"])
        matcher = RelatedContentMatcher(database.session_factory)
        return await matcher.find_related("series", "only", ["Drama"])

    assert run_scenario(scenario) == []


def test_non_positive_limit_returns_nothing(run_scenario, seed) -> None:
    async def scenario(database):
        await _seed_catalog(database, seed)
        matcher = RelatedContentMatcher(database.session_factory)
        return await matcher.find_related("movie", "target", ["Aventura"], limit=0)

    assert run_scenario(scenario) == []


def test_backend_failures_yield_empty_list(run_scenario) -> None:
    async def scenario(database):
        async with database.engine.begin() as connection:
            await connection.exec_driver_sql("DROP TABLE series")
        matcher = RelatedContentMatcher(database.session_factory)
        return await matcher.find_related("series", "missing", ["Drama"])

    assert run_scenario(scenario) == []


def test_two_items_without_shared_genres_still_relate(run_scenario, seed) -> None:
    async def scenario(database):
        await seed(database, "movie", id="a", title="A", genres=["Terror"])
        await seed(database, "movie", id="b", title="B", genres=["Comedia"])
        matcher = RelatedContentMatcher(database.session_factory)
        return await matcher.find_related("movie", "a", ["Terror"])

    assert [item.id for item in run_scenario(scenario)] == ["b"]


def test_unfiltered_results_never_exceed_limit(run_scenario, seed) -> None:
    async def scenario(database):
        await _seed_catalog(database, seed)
        matcher = RelatedContentMatcher(database.session_factory)
        return await matcher.find_related("movie", "target", [], limit=2)

    related = run_scenario(scenario)

    assert len(related) == 2
    assert all(item.id != "target" for item in related)
