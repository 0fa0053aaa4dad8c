"""Stream server grouping, selection and playback planning."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Sequence

from ..config import DEFAULT_LANGUAGE_PRIORITY, DEFAULT_STREAM_LANGUAGE, DEMO_STREAM_URL
from ..errors import CatalogValidationError
from ..models import CatalogItem, Movie, Series, StreamServer

logger = logging.getLogger(__name__)

EMBED_HOSTS: tuple[str, ...] = (
    "swiftplayers.com",
    "streamtape.com",
    "doodstream.com",
    "mixdrop.co",
    "fembed.com",
    "jilliandescribecompany.com",
)
EMBED_MARKERS: tuple[str, ...] = ("embed", "player", "/e/", "iframe")
YOUTUBE_HOSTS: tuple[str, ...] = ("youtube.com", "youtu.be")
ARCHIVE_EXTENSIONS: tuple[str, ...] = (".mp4", ".mkv", ".avi", ".webm")
VIDEO_SOURCE_TYPES: tuple[str, ...] = ("video/mp4", "video/webm", "video/ogg")


def demo_server(url: str = DEMO_STREAM_URL) -> StreamServer:
    return StreamServer(
        name="Servidor Demo", url=url, language=DEFAULT_STREAM_LANGUAGE, quality="HD"
    )


def effective_servers(
    item: CatalogItem,
    *,
    season: int | None = None,
    episode: int | None = None,
    demo_url: str = DEMO_STREAM_URL,
) -> list[StreamServer]:
    """Return the servers that should be offered for ``item``.

    Episode servers win over series servers; a movie's legacy ``stream_url``
    is used when no server list exists, and a demo entry keeps the player
    usable when nothing playable is stored at all.
    """

    if isinstance(item, Series) and season is not None and episode is not None:
        found = item.find_episode(season, episode)
        if found is not None and found.stream_servers:
            return list(found.stream_servers)
    if item.stream_servers:
        return list(item.stream_servers)
    if isinstance(item, Movie) and item.stream_url and item.stream_url.strip():
        return [
            StreamServer(
                name="Servidor Principal",
                url=item.stream_url,
                language=DEFAULT_STREAM_LANGUAGE,
                quality="HD",
            )
        ]
    return [demo_server(demo_url)]


@dataclass(slots=True)
class ServerGroup:
    """Servers sharing one language label, in their stored order."""

    language: str
    servers: list[StreamServer] = field(default_factory=list)


def group_by_language(
    servers: Iterable[StreamServer],
    priority: Sequence[str] = DEFAULT_LANGUAGE_PRIORITY,
    *,
    default_language: str = DEFAULT_STREAM_LANGUAGE,
) -> list[ServerGroup]:
    """Group servers by language, prioritised languages first."""

    grouped: dict[str, ServerGroup] = {}
    for server in servers:
        language = server.language_label(default_language)
        group = grouped.get(language)
        if group is None:
            group = grouped[language] = ServerGroup(language=language)
        group.servers.append(server)

    ordered: list[ServerGroup] = []
    for language in priority:
        group = grouped.pop(language, None)
        if group is not None:
            ordered.append(group)
    ordered.extend(grouped.values())
    return ordered


class PlaybackMode(str, Enum):
    NATIVE = "native"
    IFRAME = "iframe"
    YOUTUBE = "youtube"
    VIDEO = "video"


@dataclass(slots=True)
class PlaybackPlan:
    """How the client should render a stream URL."""

    mode: PlaybackMode
    url: str
    sources: list[dict[str, str]] = field(default_factory=list)

    def to_payload(self) -> dict[str, object]:
        return {"mode": self.mode.value, "url": self.url, "sources": self.sources}


def classify_url(url: str) -> PlaybackPlan:
    """Decide between native video, iframe embed, YouTube or generic video."""

    if url.endswith(".mp4"):
        return PlaybackPlan(
            PlaybackMode.NATIVE, url, [{"src": url, "type": "video/mp4"}]
        )
    if any(host in url for host in EMBED_HOSTS) or any(
        marker in url for marker in EMBED_MARKERS
    ):
        return PlaybackPlan(PlaybackMode.IFRAME, url)
    if any(host in url for host in YOUTUBE_HOSTS):
        embed_url = url.replace("watch?v=", "embed/") if "watch?v=" in url else url
        return PlaybackPlan(PlaybackMode.YOUTUBE, embed_url)
    return PlaybackPlan(
        PlaybackMode.VIDEO,
        url,
        [{"src": url, "type": source_type} for source_type in VIDEO_SOURCE_TYPES],
    )


def archive_candidates(url: str) -> list[str]:
    """Expand an archive.org details page into direct download guesses."""

    if "/details/" not in url:
        return [url]
    identifier = url.split("/details/", 1)[1].split("/", 1)[0]
    identifier = identifier.split("?", 1)[0].split("#", 1)[0]
    if not identifier:
        return [url]
    return [
        f"https://archive.org/download/{identifier}/{identifier}{extension}"
        for extension in ARCHIVE_EXTENSIONS
    ]


class StreamSelector:
    """Index-addressable view over language-grouped servers."""

    def __init__(
        self,
        servers: Sequence[StreamServer],
        *,
        priority: Sequence[str] = DEFAULT_LANGUAGE_PRIORITY,
        default_language: str = DEFAULT_STREAM_LANGUAGE,
    ) -> None:
        if not servers:
            raise CatalogValidationError("At least one stream server is required")
        self.groups = group_by_language(
            servers, priority, default_language=default_language
        )
        self.servers: list[StreamServer] = [
            server for group in self.groups for server in group.servers
        ]
        self.selected_index = 0

    def select(self, index: int) -> StreamServer:
        if not 0 <= index < len(self.servers):
            raise CatalogValidationError(
                f"Server index {index} is out of range (0-{len(self.servers) - 1})"
            )
        self.selected_index = index
        return self.servers[index]

    @property
    def current(self) -> StreamServer:
        return self.servers[self.selected_index]

    def playback(self) -> PlaybackPlan:
        return classify_url(self.current.url)

    def to_payload(self) -> dict[str, object]:
        """Return the grouped view plus the active server and its plan."""

        groups: list[dict[str, object]] = []
        position = 0
        for group in self.groups:
            entries = []
            for server in group.servers:
                entries.append(
                    {
                        "index": position,
                        "name": server.name,
                        "quality": server.quality,
                        "url": server.url,
                    }
                )
                position += 1
            groups.append({"language": group.language, "servers": entries})

        return {
            "selected": self.selected_index,
            "current": self.current.model_dump(mode="json"),
            "groups": groups,
            "playback": self.playback().to_payload(),
            "candidates": archive_candidates(self.current.url),
        }


class PlaybackState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    PLAYING = "playing"
    PAUSED = "paused"
    ERROR = "error"


_TRANSITIONS: dict[PlaybackState, frozenset[PlaybackState]] = {
    PlaybackState.IDLE: frozenset({PlaybackState.LOADING}),
    PlaybackState.LOADING: frozenset({PlaybackState.READY, PlaybackState.ERROR}),
    PlaybackState.READY: frozenset(
        {PlaybackState.PLAYING, PlaybackState.LOADING, PlaybackState.ERROR}
    ),
    PlaybackState.PLAYING: frozenset(
        {
            PlaybackState.PAUSED,
            PlaybackState.READY,
            PlaybackState.LOADING,
            PlaybackState.ERROR,
        }
    ),
    PlaybackState.PAUSED: frozenset(
        {
            PlaybackState.PLAYING,
            PlaybackState.READY,
            PlaybackState.LOADING,
            PlaybackState.ERROR,
        }
    ),
    PlaybackState.ERROR: frozenset({PlaybackState.LOADING}),
}


class PlaybackSession:
    """Player lifecycle for one stream, retrying archive format guesses.

    ``idle -> loading -> ready <-> playing <-> paused``; a load error moves to
    the next candidate source and back to ``loading``. Once every candidate
    has failed the session stays in ``error``.
    """

    def __init__(self, url: str) -> None:
        self.candidates = archive_candidates(url)
        self.index = 0
        self.state = PlaybackState.IDLE

    @property
    def source(self) -> str:
        return self.candidates[self.index]

    @property
    def exhausted(self) -> bool:
        return self.state is PlaybackState.ERROR and self.index >= len(self.candidates) - 1

    def _move(self, target: PlaybackState) -> PlaybackState:
        if target not in _TRANSITIONS[self.state]:
            raise CatalogValidationError(
                f"Cannot move player from {self.state.value} to {target.value}"
            )
        self.state = target
        return target

    def load(self) -> PlaybackState:
        return self._move(PlaybackState.LOADING)

    def ready(self) -> PlaybackState:
        return self._move(PlaybackState.READY)

    def play(self) -> PlaybackState:
        return self._move(PlaybackState.PLAYING)

    def pause(self) -> PlaybackState:
        return self._move(PlaybackState.PAUSED)

    def stop(self) -> PlaybackState:
        return self._move(PlaybackState.READY)

    def fail(self) -> PlaybackState:
        """Record a load error and advance to the next candidate if any."""

        self._move(PlaybackState.ERROR)
        if self.index < len(self.candidates) - 1:
            self.index += 1
            logger.info("Playback failed, trying %s", self.source)
            return self._move(PlaybackState.LOADING)
        logger.info("All %d playback candidates failed", len(self.candidates))
        return self.state
