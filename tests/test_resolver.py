"""End-to-end tests of the resolver against an in-memory ledger."""

import pytest

from solana_deploy_finder.deployments.models import CacheEntry, TransactionRecord
from solana_deploy_finder.deployments.resolver import DeploymentResolver, validate_program_id
from solana_deploy_finder.errors import (
    BlockTimeUnavailable,
    CacheIOFailure,
    InvalidProgramId,
    NoDeploymentFound,
    NoTransactionsFound,
    ThrottlingRetryExhausted,
    TransactionUnavailable,
)
from solana_deploy_finder.utils.deployment_cache import InMemoryDeploymentCache, JsonFileDeploymentCache
from solana_deploy_finder.utils.rate_limiter import RateLimiter

from conftest import DEPLOY_TIME, PROGRAM_ID, FakeRpcClient, deployment_record, make_history, throttled


def _resolver(client, cache, sleep, **kwargs):
    kwargs.setdefault("base_delay", 1.0)
    kwargs.setdefault("request_interval", 8.0)
    return DeploymentResolver(client, cache, sleep=sleep, **kwargs)


def _ledger(count=1500, deploy_signature="sig-00002"):
    return FakeRpcClient(make_history(count), {deploy_signature: deployment_record(deploy_signature)})


def test_strict_finds_oldest_deployment(memory_cache, sleep):
    client = _ledger()
    # a later upgrade also goes through a loader; the first deployment wins
    client.transactions["sig-01200"] = deployment_record("sig-01200", DEPLOY_TIME + 5000)
    resolver = _resolver(client, memory_cache, sleep)

    result = resolver.resolve_first_deployment(PROGRAM_ID)

    assert result.earliest_signature == "sig-00002"
    assert result.block_time == DEPLOY_TIME
    assert result.timestamp == "2021-05-03T00:00:00.000Z"
    assert not result.from_cache
    assert client.transaction_calls == ["sig-00000", "sig-00001", "sig-00002"]
    assert memory_cache.read(PROGRAM_ID) == CacheEntry(DEPLOY_TIME, "sig-00002")


def test_strict_skips_failed_transactions(memory_cache, sleep):
    client = _ledger(deploy_signature="sig-00001")
    oldest = client.history[-1]
    client.history[-1] = type(oldest)(oldest.signature, oldest.slot, oldest.block_time, {"InstructionError": [0, "Custom"]})

    result = _resolver(client, memory_cache, sleep).resolve_first_deployment(PROGRAM_ID)

    assert result.earliest_signature == "sig-00001"
    assert client.transaction_calls == ["sig-00001"]


def test_strict_without_deployment_fails(memory_cache, sleep):
    client = FakeRpcClient(make_history(5))

    with pytest.raises(NoDeploymentFound) as excinfo:
        _resolver(client, memory_cache, sleep).resolve_first_deployment(PROGRAM_ID)

    assert excinfo.value.scanned == 5
    assert memory_cache.writes == 0


def test_best_effort_takes_oldest_signature(memory_cache, sleep):
    client = FakeRpcClient(make_history(3224))
    resolver = _resolver(client, memory_cache, sleep)

    result = resolver.resolve_first_deployment(PROGRAM_ID, strict=False)

    assert result.earliest_signature == "sig-00000"
    assert result.block_time == client.history[-1].block_time
    assert len(client.signature_calls) == 4
    assert client.transaction_calls == ["sig-00000"]


def test_repeated_resolution_is_idempotent(sleep):
    client = _ledger()
    first = _resolver(client, InMemoryDeploymentCache(), sleep).resolve_first_deployment(PROGRAM_ID, force_refresh=True)
    second = _resolver(client, InMemoryDeploymentCache(), sleep).resolve_first_deployment(PROGRAM_ID, force_refresh=True)

    assert (first.block_time, first.earliest_signature) == (second.block_time, second.earliest_signature)


def test_cached_answer_needs_no_remote_calls(memory_cache, sleep):
    client = _ledger()
    resolver = _resolver(client, memory_cache, sleep)
    first = resolver.resolve_first_deployment(PROGRAM_ID)
    calls_after_first = client.total_calls

    second = resolver.resolve_first_deployment(PROGRAM_ID)

    assert client.total_calls == calls_after_first
    assert second.from_cache
    assert (second.block_time, second.earliest_signature) == (first.block_time, first.earliest_signature)


def test_force_refresh_bypasses_and_corrects_cache(sleep):
    cache = InMemoryDeploymentCache({PROGRAM_ID: CacheEntry(1, "stale")})
    client = _ledger()

    result = _resolver(client, cache, sleep).resolve_first_deployment(PROGRAM_ID, force_refresh=True)

    assert result.earliest_signature == "sig-00002"
    assert client.signature_calls
    assert cache.read(PROGRAM_ID) == CacheEntry(DEPLOY_TIME, "sig-00002")


def test_unchanged_result_is_not_rewritten(sleep):
    cache = InMemoryDeploymentCache({PROGRAM_ID: CacheEntry(DEPLOY_TIME, "sig-00002")})

    _resolver(_ledger(), cache, sleep).resolve_first_deployment(PROGRAM_ID, force_refresh=True)

    assert cache.writes == 0


def test_missing_block_time_is_reported_and_not_cached(memory_cache, sleep):
    client = FakeRpcClient(make_history(3))
    client.transactions["sig-00000"] = TransactionRecord("sig-00000", block_time=None)

    with pytest.raises(BlockTimeUnavailable) as excinfo:
        _resolver(client, memory_cache, sleep).resolve_first_deployment(PROGRAM_ID, strict=False)

    assert excinfo.value.signature == "sig-00000"
    assert memory_cache.read(PROGRAM_ID) is None


def test_no_history(memory_cache, sleep):
    client = FakeRpcClient([])

    with pytest.raises(NoTransactionsFound):
        _resolver(client, memory_cache, sleep).resolve_first_deployment(PROGRAM_ID)
    assert client.total_calls == 1


@pytest.mark.parametrize("program_id", ["", "not-a-key", "0OIl" * 11, PROGRAM_ID + " ", PROGRAM_ID[:-3]])
def test_invalid_program_id_makes_no_calls(memory_cache, sleep, program_id):
    client = _ledger()

    with pytest.raises(InvalidProgramId):
        _resolver(client, memory_cache, sleep).resolve_first_deployment(program_id)
    assert client.total_calls == 0


def test_valid_program_id_passes_validation():
    assert validate_program_id(PROGRAM_ID) == PROGRAM_ID
    assert validate_program_id("11111111111111111111111111111111") == "11111111111111111111111111111111"


def test_throttling_while_fetching_transactions(memory_cache, sleep):
    client = _ledger(count=3, deploy_signature="sig-00000")
    resolver = _resolver(client, memory_cache, sleep, base_delay=0.5)
    real_get_transaction = client.get_transaction
    failures = [throttled(), throttled()]

    def flaky_get_transaction(signature):
        if failures:
            client.transaction_calls.append(signature)
            raise failures.pop(0)
        return real_get_transaction(signature)

    client.get_transaction = flaky_get_transaction

    result = resolver.resolve_first_deployment(PROGRAM_ID)

    assert result.earliest_signature == "sig-00000"
    assert sleep.delays == [0.5, 1.0]


def test_exhausted_retries_are_fatal(memory_cache, sleep):
    client = _ledger()
    client.failures = [throttled() for _ in range(5)]

    with pytest.raises(ThrottlingRetryExhausted):
        _resolver(client, memory_cache, sleep, max_attempts=5).resolve_first_deployment(PROGRAM_ID)
    assert client.total_calls == 5
    assert memory_cache.writes == 0


class BrokenCache(InMemoryDeploymentCache):
    def read(self, program_id):
        raise CacheIOFailure("/broken.json", OSError("disk gone"))

    def write(self, program_id, entry):
        raise CacheIOFailure("/broken.json", OSError("disk gone"))


def test_cache_failures_do_not_stop_resolution(sleep):
    result = _resolver(_ledger(), BrokenCache(), sleep).resolve_first_deployment(PROGRAM_ID)

    assert result.earliest_signature == "sig-00002"


def test_all_calls_share_the_gate(memory_cache, sleep):
    gate = RateLimiter()
    client = _ledger()
    resolver = _resolver(client, memory_cache, sleep, gate=gate)

    resolver.resolve_first_deployment(PROGRAM_ID)

    assert gate.completed == client.total_calls == resolver.remote_calls


def test_corrupt_cache_file_is_rewritten(tmp_path, sleep):
    path = tmp_path / "deployments.json"
    path.write_text("{not json", encoding="utf-8")
    cache = JsonFileDeploymentCache(path)

    result = _resolver(_ledger(), cache, sleep).resolve_first_deployment(PROGRAM_ID)

    assert cache.read(PROGRAM_ID) == CacheEntry(result.block_time, result.earliest_signature)
    client = _ledger()
    again = _resolver(client, JsonFileDeploymentCache(path), sleep).resolve_first_deployment(PROGRAM_ID)
    assert again.from_cache
    assert client.total_calls == 0


def test_unavailable_older_transaction_stops_strict_search(memory_cache, sleep):
    client = FakeRpcClient(make_history(10), {"sig-00008": deployment_record("sig-00008", DEPLOY_TIME + 99)})
    client.transactions["sig-00000"] = None

    with pytest.raises(TransactionUnavailable) as excinfo:
        _resolver(client, memory_cache, sleep).resolve_first_deployment(PROGRAM_ID)

    assert excinfo.value.signature == "sig-00000"
    assert client.transaction_calls == ["sig-00000"]
    assert memory_cache.writes == 0
