"""Tests for the local session cache and its stores."""

import json
import pytest

from petcare.services.session_cache import IDENTITY_KEY, PROFILE_KEY, SessionCache
from petcare.services.storage import JsonFileStore, MemoryStore, create_store
from petcare.models.auth import Identity

from tests.conftest import FailingStore, make_profile


class RecordingStore(MemoryStore):
    """Memory store that records every batch it receives."""

    def __init__(self):
        super().__init__()
        self.batches: list[tuple[str, list[str]]] = []

    async def multi_set(self, items):
        self.batches.append(("set", sorted(items)))
        await super().multi_set(items)

    async def multi_remove(self, keys):
        self.batches.append(("remove", sorted(keys)))
        await super().multi_remove(keys)


@pytest.fixture
def identity() -> Identity:
    return Identity(uid="u1", email="a@b.com", display_name="Ada")


class TestSessionCache:
    """Tests for SessionCache."""

    async def test_save_and_load(self, identity: Identity):
        cache = SessionCache(MemoryStore())
        profile = make_profile("u1")

        await cache.save(identity, profile)

        assert await cache.load() == (identity, profile)

    async def test_empty_cache(self):
        assert await SessionCache(MemoryStore()).load() is None

    async def test_pair_written_and_cleared_in_one_batch(self, identity: Identity):
        store = RecordingStore()
        cache = SessionCache(store)

        await cache.save(identity, make_profile("u1"))
        await cache.clear()

        assert store.batches == [
            ("set", sorted([IDENTITY_KEY, PROFILE_KEY])),
            ("remove", sorted([IDENTITY_KEY, PROFILE_KEY])),
        ]

    async def test_partial_entry_is_cleared(self, identity: Identity):
        store = MemoryStore({IDENTITY_KEY: identity.model_dump_json()})
        cache = SessionCache(store)

        assert await cache.load() is None
        assert await store.multi_get([IDENTITY_KEY, PROFILE_KEY]) == {
            IDENTITY_KEY: None,
            PROFILE_KEY: None,
        }

    async def test_unparseable_entry_is_cleared(self, identity: Identity):
        store = MemoryStore({
            IDENTITY_KEY: identity.model_dump_json(),
            PROFILE_KEY: "{not json",
        })

        assert await SessionCache(store).load() is None
        assert (await store.multi_get([IDENTITY_KEY]))[IDENTITY_KEY] is None

    async def test_mismatched_pair_is_cleared(self, identity: Identity):
        store = MemoryStore({
            IDENTITY_KEY: identity.model_dump_json(),
            PROFILE_KEY: make_profile("someone-else").model_dump_json(),
        })

        assert await SessionCache(store).load() is None

    async def test_store_errors_are_not_raised(self, identity: Identity):
        cache = SessionCache(FailingStore())

        await cache.save(identity, make_profile("u1"))
        await cache.clear()
        assert await cache.load() is None


class TestJsonFileStore:
    """Tests for the JSON file store."""

    async def test_survives_new_instance(self, tmp_path, identity: Identity):
        path = tmp_path / "session.json"
        profile = make_profile("u1")

        await SessionCache(JsonFileStore(path)).save(identity, profile)

        assert await SessionCache(JsonFileStore(path)).load() == (identity, profile)

    async def test_remove_keeps_other_keys(self, tmp_path):
        path = tmp_path / "store.json"
        store = JsonFileStore(path)
        await store.multi_set({"a": "1", "b": "2", "c": "3"})

        await store.multi_remove(["a", "b"])

        assert json.loads(path.read_text()) == {"c": "3"}

    async def test_missing_file_reads_empty(self, tmp_path):
        store = JsonFileStore(tmp_path / "nested" / "store.json")

        assert await store.multi_get(["a"]) == {"a": None}

    async def test_corrupt_file_degrades_to_no_session(self, tmp_path):
        path = tmp_path / "session.json"
        path.write_text("{ truncated")
        cache = SessionCache(JsonFileStore(path))

        assert await cache.load() is None
        # Clearing resets the unreadable file
        assert json.loads(path.read_text()) == {}

    async def test_no_temp_files_left(self, tmp_path):
        store = JsonFileStore(tmp_path / "store.json")
        await store.multi_set({"a": "1"})

        assert [p.name for p in tmp_path.iterdir()] == ["store.json"]


class TestCreateStore:
    def test_memory_when_no_path(self):
        assert isinstance(create_store(""), MemoryStore)

    def test_file_when_path(self, tmp_path):
        store = create_store(str(tmp_path / "s.json"))
        assert isinstance(store, JsonFileStore)
