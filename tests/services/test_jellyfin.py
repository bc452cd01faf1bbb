"""Tests for the Jellyfin library client."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

import httpx
import pytest

from metadata_organiser.library.models import ItemKind
from metadata_organiser.services.jellyfin import JellyfinLibrary, _parse_date

VIRTUAL_FOLDERS = [
    {"Name": "Movies", "Locations": ["/media/movies"]},
    {"Name": "Shows", "Locations": ["/media/shows", "/media/shows/kids"]},
]

MOVIE = {
    "Id": "m1",
    "Name": "Heat",
    "Path": "/media/movies/Heat (1995)/Heat (1995).mkv",
    "Genres": ["Crime", "Drama"],
    "Studios": [{"Name": "Warner Bros.", "Id": "s1"}],
    "ProviderIds": {"Tmdb": "949", "Imdb": "tt0113277", "Tvdb": None},
    "Taglines": ["A Los Angeles crime saga"],
    "CriticRating": 87,
    "PremiereDate": "1995-12-15T00:00:00.0000000Z",
    "MediaStreams": [
        {"Index": 0, "Type": "Video", "Title": "Main"},
        {"Index": 1, "Type": "Audio"},
    ],
}

SERIES = {"Id": "sr1", "Name": "The Show", "Path": "/media/shows/The Show"}
SEASON = {"Id": "sn1", "Name": "Season 1", "Path": "/media/shows/The Show/Season 01", "IndexNumber": 1, "SeriesId": "sr1"}
EPISODES = [
    {
        "Id": f"e{number}",
        "Name": f"Episode {number}",
        "Path": f"/media/shows/The Show/Season 01/S01E0{number}.mkv",
        "IndexNumber": number,
        "ParentIndexNumber": 1,
        "SeriesName": "The Show",
        "SeasonId": "sn1",
    }
    for number in (1, 2)
]


class FakeJellyfin:
    """Request handler for httpx.MockTransport recording every request."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.items = {"Movie": [MOVIE], "Series": [SERIES], "Season": [SEASON], "Episode": EPISODES}
        self.extras = {"m1": [{"Id": "x1", "Name": "Trailer", "Path": "/media/movies/Heat (1995)/trailer.mkv"}]}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if request.headers.get("X-Emby-Token") != "secret":
            return httpx.Response(401)
        if path == "/Library/VirtualFolders":
            return httpx.Response(200, json=VIRTUAL_FOLDERS)
        if path == "/Items" and request.method == "GET":
            kind = request.url.params["IncludeItemTypes"]
            return httpx.Response(200, json={"Items": self.items.get(kind, []), "TotalRecordCount": 0})
        if path.endswith("/SpecialFeatures"):
            return httpx.Response(200, json=self.extras.get(path.split("/")[2], []))
        if path.startswith("/Items/") and request.method in {"DELETE", "POST"}:
            return httpx.Response(204)
        return httpx.Response(404)


@pytest.fixture
def server():
    return FakeJellyfin()


@pytest.fixture
def jellyfin(config, server):
    return JellyfinLibrary(config, transport=httpx.MockTransport(server))


class TestListItems:
    def test_movies(self, jellyfin, server):
        movies = jellyfin.list_items(ItemKind.MOVIE)

        assert len(movies) == 1
        movie = movies[0]
        assert movie.kind == ItemKind.MOVIE
        assert movie.name == "Heat"
        assert movie.path == Path("/media/movies/Heat (1995)/Heat (1995).mkv")
        assert movie.genres == ["Crime", "Drama"]
        assert movie.studios == ["Warner Bros."]
        assert movie.provider_ids == {"Tmdb": "949", "Imdb": "tt0113277"}
        assert movie.tagline == "A Los Angeles crime saga"
        assert movie.critic_rating == 87
        assert movie.premiere_date == datetime(1995, 12, 15, tzinfo=timezone.utc)
        assert [stream.index for stream in movie.streams] == [0, 1]
        assert movie.library_root == Path("/media/movies")

    def test_query_parameters(self, jellyfin, server):
        jellyfin.list_items(ItemKind.MOVIE)

        request = next(request for request in server.requests if request.url.path == "/Items")
        params = request.url.params
        assert params["IncludeItemTypes"] == "Movie"
        assert params["Recursive"] == "true"
        assert params["IsMissing"] == "false"
        assert params["SortBy"] == "SortName"
        assert params["SortOrder"] == "Ascending"
        assert "MediaStreams" in params["Fields"]

    def test_tv_hierarchy_linked(self, jellyfin):
        episodes = jellyfin.list_items(ItemKind.EPISODE)
        seasons = jellyfin.list_items(ItemKind.SEASON)
        series = jellyfin.list_items(ItemKind.SERIES)

        assert [episode.name for episode in episodes] == ["Episode 1", "Episode 2"]
        assert episodes[0].season is seasons[0]
        assert episodes[0].series is series[0]
        assert seasons[0].children == episodes
        assert series[0].children == seasons

    def test_episode_under_series_left_unlinked(self, jellyfin, server):
        loose = {**EPISODES[0], "Id": "e9", "Name": "Special", "ParentId": "sr1"}
        del loose["SeasonId"]
        server.items["Episode"] = [loose]

        episode = jellyfin.list_items(ItemKind.EPISODE)[0]
        seasons = jellyfin.list_items(ItemKind.SEASON)
        series = jellyfin.list_items(ItemKind.SERIES)[0]

        assert episode.parent is None
        assert episode.season is None
        assert series.children == seasons
        assert seasons[0].children == []

    def test_tv_items_loaded_once(self, jellyfin, server):
        jellyfin.list_items(ItemKind.EPISODE)
        jellyfin.list_items(ItemKind.SERIES)

        item_queries = [request for request in server.requests if request.url.path == "/Items"]
        assert len(item_queries) == 3

    def test_http_error_yields_no_items(self, config, server):
        library = JellyfinLibrary(
            config.model_copy(update={"jellyfin_api_key": "wrong"}),
            transport=httpx.MockTransport(server),
        )

        assert library.list_items(ItemKind.MOVIE) == []


class TestLibraryRoots:
    def test_deepest_root_wins(self, jellyfin):
        assert jellyfin.find_library_root(Path("/media/shows/kids/Bluey/S01E01.mkv")) == Path("/media/shows/kids")
        assert jellyfin.find_library_root(Path("/media/shows/The Show")) == Path("/media/shows")
        assert jellyfin.find_library_root(Path("/elsewhere/file.mkv")) is None

    def test_roots_cached(self, jellyfin, server):
        jellyfin.get_library_roots()
        jellyfin.get_library_roots()

        assert sum(request.url.path == "/Library/VirtualFolders" for request in server.requests) == 1


class TestItemOperations:
    def test_get_extras(self, jellyfin):
        movie = jellyfin.list_items(ItemKind.MOVIE)[0]

        extras = jellyfin.get_extras(movie)

        assert [extra.name for extra in extras] == ["Trailer"]
        assert extras[0].kind == ItemKind.EXTRA
        assert extras[0].library_root == Path("/media/movies")

    def test_delete_item(self, jellyfin, server):
        movie = jellyfin.list_items(ItemKind.MOVIE)[0]

        jellyfin.delete_item(movie)

        assert (server.requests[-1].method, server.requests[-1].url.path) == ("DELETE", "/Items/m1")

    def test_update_item_posts_edited_fields(self, jellyfin, server):
        movie = jellyfin.list_items(ItemKind.MOVIE)[0]
        movie.genres = ["Thriller"]

        jellyfin.update_item(movie)

        request = server.requests[-1]
        assert (request.method, request.url.path) == ("POST", "/Items/m1")
        body = httpx.Response(200, content=request.content).json()
        assert body["Genres"] == ["Thriller"]
        assert body["Studios"] == [{"Name": "Warner Bros."}]
        assert body["Path"] == MOVIE["Path"]

    def test_update_failure_raises(self, config, server):
        library = JellyfinLibrary(
            config.model_copy(update={"jellyfin_api_key": "wrong"}),
            transport=httpx.MockTransport(server),
        )
        movie = JellyfinLibrary(config, transport=httpx.MockTransport(server)).list_items(ItemKind.MOVIE)[0]

        with pytest.raises(httpx.HTTPStatusError):
            library.update_item(movie)


def test_is_configured(config):
    assert JellyfinLibrary(config).is_configured
    assert not JellyfinLibrary(config.model_copy(update={"jellyfin_url": None})).is_configured


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("2020-05-01T20:30:00.0000000Z", datetime(2020, 5, 1, 20, 30, tzinfo=timezone.utc)),
        ("2020-05-01T20:30:00", datetime(2020, 5, 1, 20, 30)),
        ("2020-05-01T20:30:00.1234567+02:00", datetime(2020, 5, 1, 20, 30, 0, 123456, tzinfo=timezone(timedelta(hours=2)))),
        ("not a date", None),
        (None, None),
    ],
)
def test_parse_date(value, expected):
    assert _parse_date(value) == expected
