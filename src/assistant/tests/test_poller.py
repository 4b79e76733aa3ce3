import asyncio

import pytest

from assistant.poller import AllowancePoller, chunked, count_mined, preceding_heights
from assistant.snapshot_bus import SnapshotBus
from common.test_utils import FakeLedger, make_block
from common.utils.exceptions import LedgerRPCException
from common.utils.formulas import ROOT_ALLOWANCE, SHARD_ALLOWANCES

LATEST = 10_000


def make_poller(target, ledger, **kwargs):
    kwargs.setdefault("poll_interval", 0)
    kwargs.setdefault("retry_base_delay", 0)
    return AllowancePoller(target, ledger, SnapshotBus(), group="test", **kwargs)


def test_preceding_heights_cover_the_window_before_the_tip():
    heights = preceding_heights(LATEST, 256)
    assert len(heights) == 255
    assert heights[0] == LATEST - 255
    assert heights[-1] == LATEST - 1


def test_preceding_heights_clamp_at_genesis():
    assert preceding_heights(3, 256) == [0, 1, 2]


def test_chunked_splits_into_bounded_batches():
    batches = chunked(list(range(255)), 10)
    assert len(batches) == 26
    assert all(len(batch) == 10 for batch in batches[:-1])
    assert len(batches[-1]) == 5


def test_count_mined_matches_coinbase_prefix():
    coinbase = "0x" + "ab" * 20
    blocks = [
        make_block(1, coinbase + "00010000"),
        make_block(2, (coinbase + "00010000").upper().replace("0X", "0x")),
        make_block(3, "0x" + "cd" * 20),
    ]
    assert count_mined(blocks, coinbase) == 2


def test_shard_poll_counts_window_and_derives_difficulty(make_target):
    target = make_target(0xAB, priority=1, chain_id=2)
    miners = {height: target.address.coinbase for height in (LATEST, LATEST - 1, LATEST - 255, LATEST - 256)}
    ledger = FakeLedger(LATEST, miners=miners, difficulty=20 * 5_000_000_000)
    ledger.balance = SHARD_ALLOWANCES[2] * 7 + 1
    poller = make_poller(target, ledger)

    snapshot = asyncio.run(poller.poll_once())

    # LATEST - 256 lies outside the window.
    assert snapshot.used == 3
    assert snapshot.allowances == 7
    assert snapshot.difficulty == 5_000_000_000
    assert sorted(ledger.block_calls) == list(range(LATEST - 255, LATEST))


def test_root_poll_uses_stake_and_zero_difficulty(make_target):
    target = make_target(0xAB, priority=1, root_chain=True)
    ledger = FakeLedger(LATEST, miners={LATEST: target.address.coinbase}, difficulty=123_456)
    ledger.staked = ROOT_ALLOWANCE * 4
    poller = make_poller(target, ledger)

    snapshot = asyncio.run(poller.poll_once())

    assert snapshot.used == 1
    assert snapshot.allowances == 4
    assert snapshot.difficulty == 0
    assert ledger.staked_calls == 1
    assert ledger.balance_calls == 0


def test_capacity_is_computed_once_per_run(make_target):
    target = make_target(0xAB, priority=1, chain_id=1)
    ledger = FakeLedger(LATEST)
    ledger.balance = SHARD_ALLOWANCES[1] * 3
    poller = make_poller(target, ledger)

    first = asyncio.run(poller.poll_once())
    ledger.balance = SHARD_ALLOWANCES[1] * 100
    second = asyncio.run(poller.poll_once())

    assert first.allowances == second.allowances == 3
    assert ledger.balance_calls == 1


def test_zero_stake_is_fetched_again_until_nonzero(make_target):
    target = make_target(0xAB, priority=1, root_chain=True)
    ledger = FakeLedger(LATEST)
    poller = make_poller(target, ledger)

    unstaked = asyncio.run(poller.poll_once())
    ledger.staked = ROOT_ALLOWANCE * 5
    staked = asyncio.run(poller.poll_once())
    ledger.staked = ROOT_ALLOWANCE * 50
    later = asyncio.run(poller.poll_once())

    assert unstaked.allowances == 0
    assert staked.allowances == later.allowances == 5
    assert ledger.staked_calls == 2


def test_failed_batch_fails_the_whole_cycle(make_target):
    target = make_target(0xAB, priority=1, chain_id=1)
    ledger = FakeLedger(LATEST)
    ledger.failing_heights = {LATEST - 100}
    poller = make_poller(target, ledger)

    with pytest.raises(LedgerRPCException):
        asyncio.run(poller.poll_once())

    # Other batches still ran to completion before the cycle was discarded.
    assert len(ledger.block_calls) > 10


def test_run_retries_failed_cycles_without_publishing(make_target):
    target = make_target(0xAB, priority=1, chain_id=1)
    ledger = FakeLedger(LATEST)
    ledger.fail_latest = True
    poller = make_poller(target, ledger)

    async def scenario():
        task = asyncio.create_task(poller.run())
        for _ in range(20):
            await asyncio.sleep(0)
        failures_while_down = poller.failures
        ledger.fail_latest = False
        while not poller.bus.pending():
            await asyncio.sleep(0)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        return failures_while_down

    failures_while_down = asyncio.run(scenario())

    assert failures_while_down > 1
    assert poller.failures == 0
    assert len(poller.bus) >= 1


@pytest.mark.parametrize(
    "failures, expected",
    [(0, 0.0), (1, 1.0), (2, 2.0), (3, 4.0), (10, 30.0)],
)
def test_retry_delay_is_bounded_exponential(make_target, failures, expected):
    poller = make_poller(make_target(0xAB, priority=1), FakeLedger(LATEST), retry_base_delay=1, retry_max_delay=30)
    poller.failures = failures
    assert poller.retry_delay() == expected
