"""Turn TMDB detail payloads into catalog create payloads."""

from __future__ import annotations

import logging
from typing import Any, Mapping

from pydantic import ValidationError

from ..errors import MetadataImportError
from ..models import MoviePayload, SeriesPayload

logger = logging.getLogger(__name__)

TMDB_GENRES: dict[int, str] = {
    28: "Acción",
    12: "Aventura",
    16: "Animación",
    35: "Comedia",
    80: "Crimen",
    99: "Documental",
    18: "Drama",
    10751: "Familia",
    14: "Fantasía",
    36: "Historia",
    27: "Terror",
    10402: "Música",
    9648: "Misterio",
    10749: "Romance",
    878: "Ciencia Ficción",
    10770: "Película de TV",
    53: "Suspense",
    10752: "Guerra",
    37: "Western",
    # TV-only genres
    10759: "Acción y Aventura",
    10762: "Infantil",
    10763: "Noticias",
    10764: "Reality",
    10765: "Ciencia Ficción y Fantasía",
    10766: "Telenovela",
    10767: "Talk Show",
    10768: "Guerra y Política",
}

YOUTUBE_WATCH_URL = "https://www.youtube.com/watch?v={key}"


def map_genres(payload: Mapping[str, Any]) -> list[str]:
    """Return Spanish genre labels from ``genres`` objects or ``genre_ids``."""

    labels: list[str] = []
    raw_genres = payload.get("genres") or []
    if isinstance(raw_genres, list) and raw_genres:
        for genre in raw_genres:
            if not isinstance(genre, Mapping):
                continue
            label = TMDB_GENRES.get(_as_int(genre.get("id"))) or genre.get("name")
            if label and label not in labels:
                labels.append(str(label))
        return labels
    for genre_id in payload.get("genre_ids") or []:
        label = TMDB_GENRES.get(_as_int(genre_id))
        if label and label not in labels:
            labels.append(label)
    return labels


def _as_int(value: Any) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _trailer_url(payload: Mapping[str, Any]) -> str | None:
    videos = payload.get("videos")
    results = videos.get("results") if isinstance(videos, Mapping) else None
    if not isinstance(results, list):
        return None
    for video in results:
        if not isinstance(video, Mapping):
            continue
        if video.get("site") == "YouTube" and video.get("type") == "Trailer" and video.get("key"):
            return YOUTUBE_WATCH_URL.format(key=video["key"])
    return None


def _require_mapping(payload: object) -> Mapping[str, Any]:
    if not isinstance(payload, Mapping):
        raise MetadataImportError("TMDB payload must be a JSON object")
    if payload.get("success") is False:
        raise MetadataImportError(
            str(payload.get("status_message") or "TMDB rejected the request")
        )
    if _as_int(payload.get("id")) is None:
        raise MetadataImportError("TMDB payload is missing its id")
    return payload


def movie_from_tmdb(payload: object) -> MoviePayload:
    """Build a movie payload from a TMDB ``/movie/{id}`` response."""

    data = _require_mapping(payload)
    title = data.get("title") or data.get("original_title")
    if not title:
        raise MetadataImportError(f"TMDB movie {data.get('id')} has no title")
    try:
        return MoviePayload(
            tmdb_id=_as_int(data.get("id")),
            title=title,
            original_title=data.get("original_title"),
            overview=data.get("overview"),
            poster_path=data.get("poster_path"),
            backdrop_path=data.get("backdrop_path"),
            release_date=data.get("release_date") or None,
            runtime=data.get("runtime") or None,
            rating=data.get("vote_average"),
            genres=map_genres(data),
            trailer_url=_trailer_url(data),
        )
    except ValidationError as exc:
        logger.warning("TMDB movie %s could not be mapped: %s", data.get("id"), exc)
        raise MetadataImportError(str(exc)) from exc


def series_from_tmdb(payload: object) -> SeriesPayload:
    """Build a series payload from a TMDB ``/tv/{id}`` response."""

    data = _require_mapping(payload)
    title = data.get("name") or data.get("original_name")
    if not title:
        raise MetadataImportError(f"TMDB series {data.get('id')} has no title")
    try:
        return SeriesPayload(
            tmdb_id=_as_int(data.get("id")),
            title=title,
            original_title=data.get("original_name"),
            overview=data.get("overview"),
            poster_path=data.get("poster_path"),
            backdrop_path=data.get("backdrop_path"),
            first_air_date=data.get("first_air_date") or None,
            rating=data.get("vote_average"),
            genres=map_genres(data),
            number_of_seasons=data.get("number_of_seasons"),
            number_of_episodes=data.get("number_of_episodes"),
            status=data.get("status"),
        )
    except ValidationError as exc:
        logger.warning("TMDB series %s could not be mapped: %s", data.get("id"), exc)
        raise MetadataImportError(str(exc)) from exc


def payload_from_tmdb(kind: str, payload: object) -> MoviePayload | SeriesPayload:
    if kind == "movie":
        return movie_from_tmdb(payload)
    if kind == "series":
        return series_from_tmdb(payload)
    raise MetadataImportError(f"Unsupported content type: {kind}")
