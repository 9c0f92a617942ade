import asyncio

import pytest

from bookingstore.core.locks import collection_lock


@pytest.mark.asyncio
async def test_one_lock_per_file(tmp_path):
    a = collection_lock(tmp_path / "cars.json")
    b = collection_lock(str(tmp_path / "sub" / ".." / "cars.json"))
    c = collection_lock(tmp_path / "cruises.json")

    assert a is b
    assert a is not c


@pytest.mark.asyncio
async def test_other_files_do_not_wait(tmp_path):
    cars = collection_lock(tmp_path / "cars.json")
    cruises = collection_lock(tmp_path / "cruises.json")

    async with cars:
        # would deadlock if the lock were global
        await asyncio.wait_for(cruises.acquire(), timeout=1)
        cruises.release()


def test_fresh_lock_per_event_loop(tmp_path):
    async def grab():
        lock = collection_lock(tmp_path / "cars.json")
        async with lock:
            await asyncio.sleep(0)
        return lock

    first = asyncio.run(grab())
    second = asyncio.run(grab())
    assert first is not second
