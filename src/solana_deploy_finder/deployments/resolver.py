"""
resolver.py

Find the transaction that first deployed a Solana program and its block time.

Two strategies are available:

- strict (default): walk the whole signature history, then fetch and classify
  transactions oldest first until one carries a loader instruction.
- best-effort: walk the whole signature history and take the oldest
  signature. Only one transaction is fetched, but the answer is only right if
  the account's first transaction is its deployment. That holds for programs
  deployed once with the original BPF loader; it does not for upgradeable or
  redeployed programs.

Results are cached per program id. A cached block time is trusted until
force_refresh is requested.
"""

import time
import logging
from typing import Any, Callable, Optional

from solders.pubkey import Pubkey

from solana_deploy_finder.deployments.classifier import DeploymentClassifier
from solana_deploy_finder.deployments.models import CacheEntry, ResolutionResult, TransactionRecord
from solana_deploy_finder.deployments.signature_walker import SignatureWalker
from solana_deploy_finder.errors import (
    BlockTimeUnavailable,
    CacheIOFailure,
    InvalidProgramId,
    NoDeploymentFound,
    TransactionUnavailable,
)
from solana_deploy_finder.utils.deployment_cache import DeploymentCache, JsonFileDeploymentCache
from solana_deploy_finder.utils.rate_limiter import BackoffRetrier, RateLimiter, RemoteCallPolicy
from solana_deploy_finder.utils.solana_rpc import SolanaRpcClient

logger = logging.getLogger(__name__)


def validate_program_id(program_id: str) -> str:
    """
    Check that program_id is a base58 encoded 32 byte public key.

    Raises:
        InvalidProgramId: never coerces, not even surrounding whitespace.
    """
    if not isinstance(program_id, str) or not program_id:
        raise InvalidProgramId(str(program_id), "empty")
    try:
        pubkey = Pubkey.from_string(program_id)
    except ValueError as e:
        raise InvalidProgramId(program_id, str(e)) from e
    if str(pubkey) != program_id:
        raise InvalidProgramId(program_id, "not in canonical base58 form")
    return program_id


class DeploymentResolver:
    def __init__(
        self,
        client,
        cache: DeploymentCache,
        gate: Optional[RateLimiter] = None,
        max_attempts: int = 5,
        base_delay: float = 8.0,
        request_interval: float = 8.0,
        sleep: Callable[[float], Any] = time.sleep,
        classifier: Optional[DeploymentClassifier] = None,
    ):
        self.client = client
        self.cache = cache
        self.gate = gate or RateLimiter()
        self.policy = RemoteCallPolicy(self.gate, BackoffRetrier(max_attempts, base_delay, sleep=sleep))
        self.walker = SignatureWalker(client, self.policy, request_interval=request_interval, sleep=sleep)
        self.classifier = classifier or DeploymentClassifier()

    @classmethod
    def from_config(cls, config, client=None, cache: Optional[DeploymentCache] = None,
                    gate: Optional[RateLimiter] = None) -> "DeploymentResolver":
        """Wire a resolver from an auto_config.environment.Config."""
        if client is None:
            client = SolanaRpcClient(config.solana_rpc_url, timeout=config.rpc_timeout)
        if cache is None:
            cache = JsonFileDeploymentCache(config.cache_path)
        return cls(
            client,
            cache,
            gate=gate,
            max_attempts=config.max_retries,
            base_delay=config.backoff_base_delay,
            request_interval=config.request_interval,
        )

    @property
    def remote_calls(self) -> int:
        return self.policy.calls

    def fetch_transaction(self, signature: str) -> Optional[TransactionRecord]:
        return self.policy.call(self.client.get_transaction, signature)

    def resolve_first_deployment(self, program_id: str, force_refresh: bool = False,
                                 strict: bool = True) -> ResolutionResult:
        """
        Resolve when program_id was first deployed.

        Args:
            program_id (str): Base58 program address.
            force_refresh (bool): Ignore any cached answer and ask the node.
            strict (bool): Classify transactions instead of trusting the
                           oldest signature.

        Raises:
            InvalidProgramId, NoTransactionsFound, NoDeploymentFound,
            TransactionUnavailable, ThrottlingRetryExhausted, BlockTimeUnavailable,
            RpcError
        """
        validate_program_id(program_id)

        cached = None
        if not force_refresh:
            cached = self._read_cache(program_id)
            if cached is not None:
                logger.info(f"Using cached deployment for {program_id}: {cached.earliest_signature}")
                return ResolutionResult(program_id, cached.block_time, cached.earliest_signature, from_cache=True)

        logger.info(f"Resolving first deployment of {program_id} ({'strict' if strict else 'best-effort'})")
        if strict:
            record = self._find_deployment(program_id)
        else:
            record = self._oldest_transaction(program_id)

        if record.block_time is None:
            logger.warning(f"Block time is unavailable for {record.signature}")
            raise BlockTimeUnavailable(program_id, record.signature)

        entry = CacheEntry(block_time=record.block_time, earliest_signature=record.signature)
        try:
            self.cache.update(program_id, entry, current=cached)
        except CacheIOFailure as e:
            logger.warning(f"Could not update deployment cache: {e}")

        return ResolutionResult(program_id, record.block_time, record.signature)

    def _read_cache(self, program_id: str) -> Optional[CacheEntry]:
        try:
            return self.cache.read(program_id)
        except CacheIOFailure as e:
            logger.warning(f"Ignoring deployment cache: {e}")
            return None

    def _oldest_transaction(self, program_id: str) -> TransactionRecord:
        oldest = None
        for batch in self.walker.walk(program_id):
            oldest = batch[-1]
        logger.info(f"Oldest signature: {oldest.signature}")

        record = self.fetch_transaction(oldest.signature)
        if record is None:
            raise BlockTimeUnavailable(program_id, oldest.signature)
        return record

    def _find_deployment(self, program_id: str) -> TransactionRecord:
        # failed transactions are never candidates
        candidates = []
        for batch in self.walker.walk(program_id):
            candidates.extend(info.signature for info in batch if info.err is None)
        logger.info(f"Checking {len(candidates)} transactions for a deployment, oldest first")

        scanned = 0
        for signature in reversed(candidates):
            logger.debug(f"Checking transaction with signature: {signature}")
            record = self.fetch_transaction(signature)
            scanned += 1
            if record is None:
                logger.warning(f"Transaction {signature} not found on node")
                raise TransactionUnavailable(program_id, signature)
            if self.classifier.is_deployment(record):
                logger.info(f"Deployment transaction found: {signature}")
                return record
            logger.debug(f"Transaction {signature} is not a deployment transaction.")

        raise NoDeploymentFound(program_id, scanned)
