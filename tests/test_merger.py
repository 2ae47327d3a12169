"""Tests for ordered, exactly-once reassembly."""

import asyncio
import itertools
import random
from pathlib import Path

import aiofiles
import pytest

from chunked_upload.core.exceptions import (
    ChunkStorageException,
    MergeFailedException,
    SessionClosedException,
)
from chunked_upload.models.upload_session import SessionStatus

PAYLOADS = [b"one|", b"two-two|", b"3|", b"four-four-four|"]


def _count_merges(service, monkeypatch):
    calls = []
    original = service.merger.merge

    async def counting_merge(session):
        calls.append(session.upload_id)
        return await original(session)

    monkeypatch.setattr(service.merger, "merge", counting_merge)
    return calls


@pytest.mark.asyncio
@pytest.mark.parametrize("order", list(itertools.permutations(range(1, 5))))
async def test_arrival_order_never_leaks_into_output(service, order):
    session = await service.start_session("data.bin", 100, "application/octet-stream", 4)

    for chunk_number in order:
        await service.submit_chunk(session.upload_id, chunk_number, PAYLOADS[chunk_number - 1])

    assert Path(session.final_path).read_bytes() == b"".join(PAYLOADS)
    assert (await service.status(session.upload_id)).status == SessionStatus.COMPLETED


@pytest.mark.asyncio
async def test_merge_reclaims_chunk_storage(service, chunk_store):
    session = await service.start_session("data.bin", 100, "application/octet-stream", 2)

    await service.submit_chunk(session.upload_id, 1, PAYLOADS[0])
    assert chunk_store.list_chunks(session.upload_id) == [1]
    receipt = await service.submit_chunk(session.upload_id, 2, PAYLOADS[1])

    assert receipt.status == SessionStatus.COMPLETED
    assert not chunk_store.session_dir(session.upload_id).exists()
    state = await service.status(session.upload_id)
    assert state.completed_at is not None


@pytest.mark.asyncio
async def test_racing_last_chunks_merge_exactly_once(service, monkeypatch):
    merges = _count_merges(service, monkeypatch)
    session = await service.start_session("data.bin", 100, "application/octet-stream", 3)
    await service.submit_chunk(session.upload_id, 1, PAYLOADS[0])

    receipts = await asyncio.gather(
        service.submit_chunk(session.upload_id, 3, PAYLOADS[2]),
        service.submit_chunk(session.upload_id, 2, PAYLOADS[1]),
    )

    assert {r.chunk_number for r in receipts} == {2, 3}
    assert any(r.status == SessionStatus.COMPLETED for r in receipts)
    assert merges == [session.upload_id]
    assert (await service.status(session.upload_id)).status == SessionStatus.COMPLETED
    assert Path(session.final_path).read_bytes() == PAYLOADS[0] + PAYLOADS[1] + PAYLOADS[2]


@pytest.mark.asyncio
async def test_fully_concurrent_upload_merges_once(service, monkeypatch):
    merges = _count_merges(service, monkeypatch)
    payloads = [f"chunk-{n:02d};".encode() * n for n in range(1, 13)]
    session = await service.start_session("big.bin", 10000, "application/octet-stream", 12)

    order = list(range(1, 13))
    random.Random(7).shuffle(order)
    await asyncio.gather(
        *(service.submit_chunk(session.upload_id, n, payloads[n - 1]) for n in order)
    )

    assert merges == [session.upload_id]
    assert Path(session.final_path).read_bytes() == b"".join(payloads)


@pytest.mark.asyncio
async def test_finalize_ignores_incomplete_and_completed_sessions(service):
    session = await service.start_session("data.bin", 100, "application/octet-stream", 2)
    await service.submit_chunk(session.upload_id, 1, PAYLOADS[0])

    assert await service.merger.finalize_if_complete(session.upload_id) is None

    await service.submit_chunk(session.upload_id, 2, PAYLOADS[1])

    assert await service.merger.finalize_if_complete(session.upload_id) is None
    assert Path(session.final_path).read_bytes() == PAYLOADS[0] + PAYLOADS[1]


@pytest.mark.asyncio
async def test_io_failure_mid_merge_marks_session_failed(service, chunk_store, monkeypatch):
    session = await service.start_session("data.bin", 100, "application/octet-stream", 3)
    original_iter = chunk_store.iter_chunk

    async def failing_iter(upload_id, chunk_number):
        if chunk_number == 2:
            raise ChunkStorageException(
                "unreadable", upload_id=upload_id, chunk_number=chunk_number, operation="read"
            )
        async for block in original_iter(upload_id, chunk_number):
            yield block

    monkeypatch.setattr(chunk_store, "iter_chunk", failing_iter)

    await service.submit_chunk(session.upload_id, 1, PAYLOADS[0])
    await service.submit_chunk(session.upload_id, 2, PAYLOADS[1])
    with pytest.raises(MergeFailedException):
        await service.submit_chunk(session.upload_id, 3, PAYLOADS[2])

    state = await service.status(session.upload_id)
    assert state.status == SessionStatus.FAILED
    assert "chunk 2" in state.error_message
    # Chunk 1 was folded in and reclaimed before the failure; nothing is retried
    assert chunk_store.list_chunks(session.upload_id) == [2, 3]

    with pytest.raises(SessionClosedException):
        await service.submit_chunk(session.upload_id, 3, PAYLOADS[2])
    assert await service.merger.finalize_if_complete(session.upload_id) is None


class _FullDisk:
    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return False

    async def write(self, block):
        raise OSError(28, "No space left on device")

    async def flush(self):
        pass


@pytest.mark.asyncio
async def test_write_failure_closes_chunk_reader(service, chunk_store, monkeypatch):
    session = await service.start_session("data.bin", 100, "application/octet-stream", 2)
    await service.submit_chunk(session.upload_id, 1, PAYLOADS[0])

    closed = []
    original_iter = chunk_store.iter_chunk

    async def tracking_iter(upload_id, chunk_number):
        try:
            async for block in original_iter(upload_id, chunk_number):
                yield block
        finally:
            closed.append(chunk_number)

    real_open = aiofiles.open

    def open_with_full_disk(path, mode="r", *args, **kwargs):
        if Path(path) == Path(session.final_path):
            return _FullDisk()
        return real_open(path, mode, *args, **kwargs)

    monkeypatch.setattr(chunk_store, "iter_chunk", tracking_iter)
    monkeypatch.setattr(aiofiles, "open", open_with_full_disk)

    with pytest.raises(MergeFailedException):
        await service.submit_chunk(session.upload_id, 2, PAYLOADS[1])

    assert closed == [1]
    assert (await service.status(session.upload_id)).status == SessionStatus.FAILED


@pytest.mark.asyncio
async def test_cancelled_merge_marks_session_failed(service, chunk_store, monkeypatch):
    session = await service.start_session("data.bin", 100, "application/octet-stream", 2)
    await service.submit_chunk(session.upload_id, 1, PAYLOADS[0])

    reading = asyncio.Event()
    original_iter = chunk_store.iter_chunk

    async def stalled_iter(upload_id, chunk_number):
        if chunk_number == 2:
            reading.set()
            await asyncio.Event().wait()
        async for block in original_iter(upload_id, chunk_number):
            yield block

    monkeypatch.setattr(chunk_store, "iter_chunk", stalled_iter)

    task = asyncio.create_task(service.submit_chunk(session.upload_id, 2, PAYLOADS[1]))
    await reading.wait()
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    state = await service.status(session.upload_id)
    assert state.status == SessionStatus.FAILED
    assert "interrupted" in state.error_message

    # No longer stuck in completing, so the operator can clean it up
    await service.cancel(session.upload_id)
    assert not Path(session.final_path).exists()
    assert not chunk_store.session_dir(session.upload_id).exists()
