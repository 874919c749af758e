import asyncio

from kisanvaani.utils.locks import KeyedLocks


def test_waiters_share_the_lock_until_the_last_release():
    locks = KeyedLocks()
    order = []

    async def turn(name):
        async with locks.hold("c1"):
            order.append(("start", name))
            await asyncio.sleep(0.01)
            order.append(("end", name))

    async def run():
        await asyncio.gather(turn("a"), turn("b"))

    asyncio.run(run())
    assert order == [("start", "a"), ("end", "a"), ("start", "b"), ("end", "b")]
    assert len(locks) == 0


def test_keys_do_not_block_each_other():
    locks = KeyedLocks()

    async def run():
        async with locks.hold("a"):
            assert locks.locked("a")
            assert not locks.locked("b")
            async with locks.hold("b"):
                assert len(locks) == 2

    asyncio.run(run())
    assert len(locks) == 0


def test_entry_is_dropped_when_holder_raises():
    locks = KeyedLocks()

    async def run():
        try:
            async with locks.hold("a"):
                raise RuntimeError("boom")
        except RuntimeError:
            pass

    asyncio.run(run())
    assert "a" not in locks
