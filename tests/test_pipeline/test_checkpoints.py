"""Tests for CheckpointStore."""

import pytest

from lxcspawn.pipeline.checkpoints import Checkpoint, CheckpointStore


class TestCheckpointStore:
    """Test checkpoint persistence."""

    @pytest.mark.asyncio
    async def test_load_missing(self, tmp_path):
        store = CheckpointStore(tmp_path)

        assert await store.load(100) is None

    @pytest.mark.asyncio
    async def test_mark_and_load(self, tmp_path):
        store = CheckpointStore(tmp_path / "state")

        await store.mark(100, Checkpoint.CREATED, config={"ctid": 100, "hostname": "app"})
        await store.mark(100, Checkpoint.STARTED)
        await store.mark(100, Checkpoint.STARTED)

        record = await store.load(100)
        assert record.completed == [Checkpoint.CREATED, Checkpoint.STARTED]
        assert record.config == {"ctid": 100, "hostname": "app"}
        assert record.has(Checkpoint.STARTED)
        assert not record.has(Checkpoint.REGISTERED)
        assert record.updated_at is not None
        assert store.path_for(100) == tmp_path / "state" / "100.json"
        assert not (tmp_path / "state" / "100.json.tmp").exists()

    @pytest.mark.asyncio
    async def test_records_are_per_container(self, tmp_path):
        store = CheckpointStore(tmp_path)

        await store.mark(100, Checkpoint.CREATED)

        assert await store.load(101) is None

    @pytest.mark.asyncio
    async def test_corrupt_record_ignored(self, tmp_path):
        store = CheckpointStore(tmp_path)
        store.path_for(100).write_text("{not json")

        assert await store.load(100) is None

    @pytest.mark.asyncio
    async def test_discard(self, tmp_path):
        store = CheckpointStore(tmp_path)
        await store.mark(100, Checkpoint.CREATED)

        await store.discard(100)
        await store.discard(100)

        assert await store.load(100) is None
        assert not store.path_for(100).exists()
