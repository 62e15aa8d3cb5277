"""Tests for rebuilding graphs from persisted index records."""

import pytest

from komichi.core.errors import FetchError, InvalidRecordError
from komichi.core.records import IndexRecord, PostRecord, ProfileRecord, RepoRecord
from komichi.engine.index_loader import IndexGraphLoader
from komichi.engine.state import ExplorationSession
from komichi.semantic.strategy import FingerprintStrategy

ALICE = "did:plc:alice"
BOB = "did:plc:bob"
TID_1 = "3jzfcijpj2z2a"
TID_2 = "3jzfcijpj2z2b"


def post_uri(did, rkey):
    return f"at://{did}/app.bsky.feed.post/{rkey}"


def index_record(did, rkey, subjects, dropped=0):
    return RepoRecord(
        uri=f"at://{did}/blue.maril.komichi.index/{rkey}",
        cid=None,
        value=IndexRecord(created_at="2024-05-01T12:00:00.000Z",
                          subjects=tuple(subjects), dropped_subjects=dropped),
    )


class FakeRecordSource:
    """Repository reads served from dictionaries."""

    def __init__(self):
        self.records = {}
        self.posts = {}
        self.profiles = {}
        self.calls = []

    async def list_records(self, actor, collection, limit=100):
        self.calls.append(("list", actor, collection))
        if actor not in self.records:
            raise FetchError(f"no repo for {actor}", operation="com.atproto.repo.listRecords",
                             status=400)
        return list(self.records[actor])

    async def get_post(self, uri):
        self.calls.append(("post", uri))
        post = self.posts.get(uri)
        if isinstance(post, Exception):
            raise post
        if post is None:
            raise FetchError(f"{uri} not found", operation="com.atproto.repo.getRecord",
                             status=404)
        return post

    async def get_profile(self, actor):
        self.calls.append(("profile", actor))
        return self.profiles.get(actor, ProfileRecord())


@pytest.fixture
def source():
    source = FakeRecordSource()
    source.records[ALICE] = [
        index_record(ALICE, TID_1, [post_uri(BOB, TID_1), post_uri(ALICE, TID_2)], dropped=1),
        index_record(ALICE, TID_2, [post_uri(BOB, TID_2)]),
    ]
    source.records[BOB] = [
        index_record(BOB, TID_1, [post_uri(ALICE, TID_1)]),
    ]
    return source


@pytest.fixture
def loader(source):
    return IndexGraphLoader(source, ExplorationSession(FingerprintStrategy(3)))


class TestLoad:
    """Test turning index records into edge batches."""

    @pytest.mark.asyncio
    async def test_records_become_batches(self, loader, source):
        batches = await loader.load(ALICE)

        assert [b.source for b in batches] == [post_uri(ALICE, TID_1), post_uri(ALICE, TID_2)]
        assert batches[0].targets == (post_uri(BOB, TID_1), post_uri(ALICE, TID_2))
        assert loader.selected == post_uri(ALICE, TID_1)
        assert len(loader.graph) == 2
        assert source.calls == [("list", ALICE, "blue.maril.komichi.index")]

    @pytest.mark.asyncio
    async def test_second_load_is_noop(self, loader, source):
        await loader.load(ALICE)

        assert await loader.load(ALICE) == []
        assert len(source.calls) == 1
        assert len(loader.graph) == 2

    @pytest.mark.asyncio
    async def test_non_index_values_skipped(self, loader, source):
        source.records[ALICE].insert(0, RepoRecord(
            uri=post_uri(ALICE, "3jzfcijpj2z2c"), cid=None,
            value=PostRecord(text="stray", created_at="2024-05-01T12:00:00.000Z"),
        ))

        batches = await loader.load(ALICE)
        assert len(batches) == 2

    @pytest.mark.asyncio
    async def test_no_records(self, loader, source):
        source.records["did:plc:empty"] = []

        with pytest.raises(FetchError):
            await loader.load("did:plc:empty")
        assert "did:plc:empty" not in loader.loaded

    @pytest.mark.asyncio
    async def test_fetch_failure_propagates(self, loader):
        with pytest.raises(FetchError):
            await loader.load("did:plc:unknown")
        assert len(loader.graph) == 0


class TestExploreAndSelect:

    @pytest.mark.asyncio
    async def test_explore_loads_selected_author(self, loader):
        await loader.load(ALICE)
        assert loader.select(post_uri(BOB, TID_1))

        batches = await loader.explore()

        assert [b.source for b in batches] == [post_uri(BOB, TID_1)]
        assert loader.loaded == {ALICE, BOB}
        assert len(loader.graph) == 3

    @pytest.mark.asyncio
    async def test_explore_without_selection(self, loader):
        assert await loader.explore() == []

    @pytest.mark.asyncio
    async def test_select_requires_known_node(self, loader):
        await loader.load(ALICE)

        assert loader.select(post_uri(BOB, "3jzfcijpj2zzz")) is False
        assert loader.select(post_uri(ALICE, TID_1)) is False
        assert loader.select(post_uri(BOB, TID_2)) is True


class TestHydrate:
    """Test metadata hydration of loaded nodes."""

    @pytest.mark.asyncio
    async def test_hydrates_known_posts(self, loader, source):
        source.posts[post_uri(ALICE, TID_1)] = PostRecord(
            text="morning walk by the river", created_at="2024-05-01T08:00:00.000Z")
        source.posts[post_uri(BOB, TID_1)] = PostRecord(
            text="river walk at dawn", created_at="2024-05-01T09:00:00.000Z")
        source.profiles[BOB] = ProfileRecord(display_name="Bob", avatar_cid="bafkreibob")
        await loader.load(ALICE)

        hydrated = await loader.hydrate()

        assert hydrated == 2
        bob = loader.graph.get_metadata(post_uri(BOB, TID_1))
        assert bob.author_id == BOB
        assert bob.author_name == "Bob"
        assert bob.avatar_url == f"https://cdn.bsky.app/img/avatar/plain/{BOB}/bafkreibob"
        assert bob.keywords in {"river", "walk", "at", "dawn"}
        alice = loader.graph.get_metadata(post_uri(ALICE, TID_1))
        assert alice.avatar_url == ""
        assert not loader.graph.has_metadata(post_uri(ALICE, TID_2))

    @pytest.mark.asyncio
    async def test_profiles_fetched_once_per_author(self, loader, source):
        for did, rkey in [(ALICE, TID_1), (ALICE, TID_2), (BOB, TID_1), (BOB, TID_2)]:
            source.posts[post_uri(did, rkey)] = PostRecord(
                text=f"post {did} {rkey}", created_at="2024-05-01T08:00:00.000Z")
        await loader.load(ALICE)

        assert await loader.hydrate() == 4
        assert await loader.hydrate() == 0
        profile_calls = [c for c in source.calls if c[0] == "profile"]
        assert sorted(profile_calls) == [("profile", ALICE), ("profile", BOB)]

    @pytest.mark.asyncio
    async def test_short_text_kept_without_keywords(self, loader, source):
        source.posts[post_uri(ALICE, TID_1)] = PostRecord(
            text="ok", created_at="2024-05-01T08:00:00.000Z")
        await loader.load(ALICE)

        await loader.hydrate()

        node = loader.graph.get_metadata(post_uri(ALICE, TID_1))
        assert node.text == "ok"
        assert node.keywords is None

    @pytest.mark.asyncio
    async def test_invalid_post_skipped(self, loader, source):
        source.posts[post_uri(ALICE, TID_1)] = InvalidRecordError("not a post")
        await loader.load(ALICE)

        assert await loader.hydrate() == 0
        assert not loader.graph.has_metadata(post_uri(ALICE, TID_1))
