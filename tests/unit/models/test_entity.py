"""Tests for datasource-backed Entity and EntityCollection."""

from __future__ import annotations

import logging
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from syncstore.datasources.base.exceptions import BackendOperationError
from syncstore.datasources.memory.datasource import MemoryDataSource
from syncstore.datasources.mongo.datasource import MongoDataSource
from syncstore.models.entity import Entity, EntityCollection
from syncstore.models.exceptions import NoDataError


class User(Entity):
    collection = "users"


# ── Construction ─────────────────────────────────────────────────────────────


class TestEntityConstruction:
    async def test_binds_collection_on_datasource(self, memory_ds: MemoryDataSource) -> None:
        await memory_ds.get_connection("memory://local")
        user = User({"name": "Ada"}, datasource=memory_ds)
        assert memory_ds.collection == "users"
        assert user.url == "memory://local"

    def test_explicit_collection_and_url(self, memory_ds: MemoryDataSource) -> None:
        entity = Entity(datasource=memory_ds, collection="orders", url="memory://other", id="o-1")
        assert memory_ds.collection == "orders"
        assert entity.url == "memory://other"
        assert entity.id == "o-1"
        assert "id" not in entity.attributes

    async def test_sync_without_datasource(self, caplog: pytest.LogCaptureFixture) -> None:
        success = MagicMock()
        with caplog.at_level(logging.WARNING):
            assert await User({"name": "Ada"}).save(success=success) == {}
        success.assert_not_called()
        assert "No datasource" in caplog.text

    async def test_unknown_verb_raises(self, connected_memory_ds: MemoryDataSource) -> None:
        with pytest.raises(ValueError, match="Unsupported sync method"):
            await User(datasource=connected_memory_ds).sync("upsert")

    def test_set_datasource(self, memory_ds: MemoryDataSource) -> None:
        user = User()
        user.set_datasource(memory_ds)
        assert user.datasource is memory_ds


# ── Verbs against the memory datasource ──────────────────────────────────────


class TestEntityMemorySync:
    async def test_save_then_fetch_round_trip(self, connected_memory_ds: MemoryDataSource) -> None:
        saved = {"id": 7, "name": "Ada", "langs": ["en", "fr"]}
        user = User(saved, datasource=connected_memory_ds, query={"id": 7})
        success = MagicMock()
        await user.save(success=success)
        success.assert_called_once_with()
        assert connected_memory_ds.records == [saved]

        fresh = User(datasource=connected_memory_ds, query={"id": 7})
        on_read = MagicMock()
        await fresh.fetch(success=on_read)
        assert fresh.attributes == saved
        on_read.assert_called_once_with([saved])

    async def test_fetch_no_match_empties_state(self, connected_memory_ds: MemoryDataSource) -> None:
        user = User({"stale": True}, datasource=connected_memory_ds, query={"id": 404})
        await user.fetch()
        assert user.is_empty()

    async def test_call_query_overrides_standing_query(self, connected_memory_ds: MemoryDataSource) -> None:
        await connected_memory_ds.insert([{"id": 1}, {"id": 2}])
        user = User(datasource=connected_memory_ds, query={"id": 1})
        await user.fetch(query={"id": 2})
        assert user.attributes == {"id": 2}

    async def test_callable_query_evaluated_per_call(self, connected_memory_ds: MemoryDataSource) -> None:
        await connected_memory_ds.insert([{"id": 1}, {"id": 2}])
        current = {"id": 1}
        user = User(datasource=connected_memory_ds, query=lambda: dict(current))
        await user.fetch()
        assert user.get("id") == 1
        current["id"] = 2
        await user.fetch()
        assert user.get("id") == 2

    async def test_update_keeps_state_and_calls_success(self, connected_memory_ds: MemoryDataSource) -> None:
        await connected_memory_ds.insert({"id": 1, "name": "Ada"})
        user = User({"name": "Ada Lovelace"}, datasource=connected_memory_ds, query={"id": 1})
        success = AsyncMock()
        await user.update(success=success)
        success.assert_awaited_once_with()
        assert user.attributes == {"name": "Ada Lovelace"}
        assert connected_memory_ds.records == [{"id": 1, "name": "Ada Lovelace"}]

    async def test_destroy_clears_state(self, connected_memory_ds: MemoryDataSource) -> None:
        await connected_memory_ds.insert({"id": 1})
        user = User({"id": 1}, datasource=connected_memory_ds, query={"id": 1})
        success = MagicMock()
        await user.destroy(success=success)
        success.assert_called_once_with()
        assert user.is_empty()
        assert connected_memory_ds.records == []

    async def test_shared_datasource_closed_by_another_holder(
        self, connected_memory_ds: MemoryDataSource, caplog: pytest.LogCaptureFixture
    ) -> None:
        first = User({"id": 1}, datasource=connected_memory_ds)
        second = User({"id": 2}, datasource=connected_memory_ds)
        await first.datasource.close_connection()

        success, error = MagicMock(), MagicMock()
        with caplog.at_level(logging.ERROR):
            assert await second.save(success=success, error=error) == {}
        success.assert_not_called()
        error.assert_not_called()
        assert "no collection defined or not connected" in caplog.text


# ── Verbs against the MongoDB datasource ─────────────────────────────────────


class TestEntityMongoSync:
    @pytest.fixture
    async def mongo_ds(self, mongo_client: MagicMock) -> MongoDataSource:
        ds = MongoDataSource(mongo_client)
        await ds.get_connection("mongodb://localhost:27017/app")
        return ds

    async def test_save_then_fetch_round_trip(self, mongo_ds: MongoDataSource, mongo_collection: MagicMock) -> None:
        user = User({"name": "Ada"}, datasource=mongo_ds, query={"name": "Ada"})
        await user.save()
        mongo_collection.insert_one.assert_awaited_once_with({"name": "Ada"})

        mongo_collection.find.return_value.to_list = AsyncMock(return_value=[{"_id": "id-1", "name": "Ada"}])
        fresh = User(datasource=mongo_ds, query={"name": "Ada"})
        await fresh.fetch()
        assert {k: v for k, v in fresh.attributes.items() if k != "_id"} == {"name": "Ada"}

    async def test_backend_error_goes_to_error_callback(
        self, mongo_ds: MongoDataSource, mongo_collection: MagicMock
    ) -> None:
        mongo_collection.insert_one.side_effect = RuntimeError("duplicate key")
        success, error = MagicMock(), MagicMock()
        assert await User({"name": "Ada"}, datasource=mongo_ds).save(success=success, error=error) == {}
        success.assert_not_called()
        error.assert_called_once()
        assert isinstance(error.call_args.args[0], BackendOperationError)

    async def test_backend_error_without_callback_is_logged(
        self, mongo_ds: MongoDataSource, mongo_collection: MagicMock, caplog: pytest.LogCaptureFixture
    ) -> None:
        mongo_collection.delete_many.side_effect = RuntimeError("boom")
        with caplog.at_level(logging.ERROR):
            await User(datasource=mongo_ds).destroy()
        assert "no error callback" in caplog.text


# ── Read reconciliation ──────────────────────────────────────────────────────


class TestEntityReconcile:
    @staticmethod
    def _datasource_returning(data: Any) -> MagicMock:
        async def query(_criterion: Any, callback: Any = None) -> Any:
            await callback(data)
            return data

        ds = MagicMock()
        ds.url = ""
        ds.query = AsyncMock(side_effect=query)
        return ds

    async def test_none_result_reports_no_data(self) -> None:
        error = MagicMock()
        await User(datasource=self._datasource_returning(None)).fetch(error=error)
        assert isinstance(error.call_args.args[0], NoDataError)

    async def test_single_mapping_result(self) -> None:
        user = User(datasource=self._datasource_returning({"id": 3}))
        await user.fetch()
        assert user.attributes == {"id": 3}


# ── Collections ──────────────────────────────────────────────────────────────


class TestEntityCollection:
    async def test_save_bulk_inserts_all_records(self, connected_memory_ds: MemoryDataSource) -> None:
        users = EntityCollection([{"id": 1}, {"id": 2}], datasource=connected_memory_ds, name="people")
        assert connected_memory_ds.collection == "people"
        await users.save()
        assert connected_memory_ds.records == [{"id": 1}, {"id": 2}]

    async def test_fetch_replaces_models(self, connected_memory_ds: MemoryDataSource) -> None:
        await connected_memory_ds.insert([{"id": 1, "team": "red"}, {"id": 2, "team": "blue"}])
        users = EntityCollection([{"stale": True}], datasource=connected_memory_ds, query={"team": "red"})
        success = MagicMock()
        await users.fetch(success=success)
        assert users.to_json() == [{"id": 1, "team": "red"}]
        success.assert_called_once_with([{"id": 1, "team": "red"}])

    async def test_bulk_insert_uses_insert_many(self, mongo_client: MagicMock, mongo_collection: MagicMock) -> None:
        ds = MongoDataSource(mongo_client)
        await ds.get_connection("mongodb://localhost:27017/app", "users")
        await EntityCollection([{"id": 1}, {"id": 2}], datasource=ds).save()
        mongo_collection.insert_many.assert_awaited_once_with([{"id": 1}, {"id": 2}])

    def test_set_datasource_collection_ignores_invalid(self, memory_ds: MemoryDataSource) -> None:
        users = EntityCollection(datasource=memory_ds, name="people")
        users.set_datasource_collection("")
        assert users.name == "people"
        assert memory_ds.collection == "people"

    def test_no_datasource_keeps_default_name(self) -> None:
        assert EntityCollection().name == "collection"


# ── Collection update / delete ───────────────────────────────────────────────


class TestEntityCollectionWrites:
    @pytest.fixture
    async def team_ds(self, connected_memory_ds: MemoryDataSource) -> MemoryDataSource:
        await connected_memory_ds.insert(
            [{"id": 1, "team": "red"}, {"id": 2, "team": "red"}, {"id": 3, "team": "green"}]
        )
        return connected_memory_ds

    async def test_update_writes_each_record_by_id(self, team_ds: MemoryDataSource) -> None:
        users = EntityCollection([{"id": 1, "team": "blue"}], datasource=team_ds, query={"id": 1})
        success, error = MagicMock(), MagicMock()

        await users.update(success=success, error=error)

        assert team_ds.records == [{"id": 1, "team": "blue"}, {"id": 2, "team": "red"}, {"id": 3, "team": "green"}]
        success.assert_called_once_with()
        error.assert_not_called()

    async def test_update_several_records(self, team_ds: MemoryDataSource) -> None:
        users = EntityCollection([{"id": 1, "team": "blue"}, {"id": 3, "team": "black"}], datasource=team_ds)
        success = MagicMock()

        await users.update(success=success)

        assert [r["team"] for r in team_ds.records] == ["blue", "red", "black"]
        success.assert_called_once_with()

    async def test_update_scoped_by_mapping_criterion(self, team_ds: MemoryDataSource) -> None:
        users = EntityCollection([{"id": 3, "team": "blue"}], datasource=team_ds, query={"team": "red"})
        await users.update()
        assert team_ds.records[2] == {"id": 3, "team": "green"}

    async def test_update_record_without_id_goes_to_error(self, team_ds: MemoryDataSource) -> None:
        users = EntityCollection([{"team": "blue"}], datasource=team_ds)
        success, error = MagicMock(), MagicMock()

        await users.update(success=success, error=error)

        success.assert_not_called()
        assert isinstance(error.call_args.args[0], ValueError)
        assert [r["team"] for r in team_ds.records] == ["red", "red", "green"]

    async def test_update_custom_id_attribute(self, mongo_client: MagicMock, mongo_collection: MagicMock) -> None:
        class Documents(EntityCollection):
            id_attribute = "_id"

        ds = MongoDataSource(mongo_client)
        await ds.get_connection("mongodb://localhost:27017/app", "docs")
        await Documents([{"_id": "a", "title": "x"}, {"_id": "b", "title": "y"}], datasource=ds).update()

        calls = [c.args for c in mongo_collection.update_many.await_args_list]
        assert calls == [({"_id": "a"}, {"$set": {"title": "x"}}), ({"_id": "b"}, {"$set": {"title": "y"}})]

    async def test_update_unconnected_skips_success(self, team_ds: MemoryDataSource) -> None:
        users = EntityCollection([{"id": 1, "team": "blue"}], datasource=team_ds)
        await team_ds.close_connection()
        success = MagicMock()
        await users.update(success=success)
        success.assert_not_called()

    async def test_destroy_removes_matching_and_clears(self, team_ds: MemoryDataSource) -> None:
        users = EntityCollection([{"id": 1}, {"id": 2}], datasource=team_ds, query={"team": "red"})
        success = MagicMock()

        await users.destroy(success=success)

        assert team_ds.records == [{"id": 3, "team": "green"}]
        assert users.is_empty()
        success.assert_called_once_with()


# ── Callback exclusivity ─────────────────────────────────────────────────────


class TestEntityCallbacks:
    async def test_raising_success_does_not_trigger_error(self, connected_memory_ds: MemoryDataSource) -> None:
        success = MagicMock(side_effect=RuntimeError("caller bug"))
        error = MagicMock()
        user = User({"a": 1}, datasource=connected_memory_ds)

        with pytest.raises(RuntimeError, match="caller bug"):
            await user.save(success=success, error=error)

        success.assert_called_once_with()
        error.assert_not_called()
        assert connected_memory_ds.records == [{"a": 1}]

    async def test_raising_error_callback_called_once(
        self, mongo_client: MagicMock, mongo_collection: MagicMock
    ) -> None:
        ds = MongoDataSource(mongo_client)
        await ds.get_connection("mongodb://localhost:27017/app", "users")
        mongo_collection.insert_one.side_effect = RuntimeError("duplicate key")
        error = MagicMock(side_effect=ValueError("handler bug"))

        with pytest.raises(ValueError, match="handler bug"):
            await User({"name": "Ada"}, datasource=ds).save(error=error)

        error.assert_called_once()

    async def test_reconcile_failure_only_calls_error(self) -> None:
        async def query(_criterion: Any, callback: Any = None) -> Any:
            await callback(None)

        ds = MagicMock()
        ds.url = ""
        ds.query = AsyncMock(side_effect=query)
        success, error = MagicMock(), MagicMock()

        await User(datasource=ds).fetch(success=success, error=error)

        success.assert_not_called()
        error.assert_called_once()
