"""Shared fakes for the deployment lookup tests. Nothing here touches the network."""

import pytest

from solana_deploy_finder.constants import BPF_LOADER_PROGRAM_ID, TOKEN_PROGRAM_ID
from solana_deploy_finder.deployments.models import Instruction, SignatureInfo, TransactionRecord
from solana_deploy_finder.utils.deployment_cache import InMemoryDeploymentCache
from solana_deploy_finder.utils.solana_rpc import RpcError

PROGRAM_ID = TOKEN_PROGRAM_ID
SYSTEM_PROGRAM_ID = "11111111111111111111111111111111"
DEPLOY_TIME = 1620000000


def make_history(count, newest_time=DEPLOY_TIME + 100_000):
    """count signatures, newest first; the oldest one is sig-00000."""
    return [
        SignatureInfo(signature=f"sig-{i:05d}", slot=1000 + i, block_time=newest_time - (count - 1 - i))
        for i in range(count - 1, -1, -1)
    ]


def throttled(message="429 Too Many Requests"):
    return RpcError(message, http_status=429)


class FakeRpcClient:
    """
    In-memory stand-in for SolanaRpcClient.

    history is newest first. transactions maps signature -> TransactionRecord;
    signatures without an entry come back as plain non-deployment transactions.
    Queue exceptions in failures to have the next calls raise them.
    """

    def __init__(self, history=None, transactions=None):
        self.history = list(history or [])
        self.transactions = dict(transactions or {})
        self.failures = []
        self.signature_calls = []
        self.transaction_calls = []
        self.closed = False

    def _maybe_fail(self):
        if self.failures:
            raise self.failures.pop(0)

    def get_signatures_for_address(self, address, before=None, limit=1000):
        self.signature_calls.append({"address": address, "before": before, "limit": limit})
        self._maybe_fail()
        start = 0
        if before is not None:
            start = [info.signature for info in self.history].index(before) + 1
        return self.history[start:start + limit]

    def get_transaction(self, signature):
        self.transaction_calls.append(signature)
        self._maybe_fail()
        if signature in self.transactions:
            return self.transactions[signature]
        info = next((i for i in self.history if i.signature == signature), None)
        if info is None:
            return None
        return TransactionRecord(
            signature=signature,
            block_time=info.block_time,
            slot=info.slot,
            instructions=(Instruction(SYSTEM_PROGRAM_ID),),
        )

    @property
    def total_calls(self):
        return len(self.signature_calls) + len(self.transaction_calls)

    def close(self):
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


def deployment_record(signature, block_time=DEPLOY_TIME):
    return TransactionRecord(
        signature=signature,
        block_time=block_time,
        instructions=(Instruction(SYSTEM_PROGRAM_ID), Instruction(BPF_LOADER_PROGRAM_ID)),
    )


class RecordingSleep:
    def __init__(self):
        self.delays = []

    def __call__(self, seconds):
        self.delays.append(seconds)


@pytest.fixture
def sleep():
    return RecordingSleep()


@pytest.fixture
def memory_cache():
    return InMemoryDeploymentCache()
