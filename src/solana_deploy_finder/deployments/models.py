"""
models.py

Plain data carried between the RPC client, the walker, the cache and the
resolver.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional


@dataclass(frozen=True)
class SignatureInfo:
    """One entry of a getSignaturesForAddress page."""
    signature: str
    slot: Optional[int] = None
    block_time: Optional[int] = None
    err: Any = None


@dataclass(frozen=True)
class Instruction:
    program_id: str


@dataclass(frozen=True)
class TransactionRecord:
    signature: str
    block_time: Optional[int]
    slot: Optional[int] = None
    instructions: tuple[Instruction, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class CacheEntry:
    block_time: int
    earliest_signature: str

    def to_json(self) -> dict:
        return {"blockTime": self.block_time, "earliestSignature": self.earliest_signature}

    @classmethod
    def from_json(cls, data: dict) -> "CacheEntry":
        return cls(block_time=int(data["blockTime"]), earliest_signature=str(data["earliestSignature"]))


def format_timestamp(block_time: int, human: bool = False) -> str:
    """
    Render a Unix block time.

    The default is an ISO-8601 instant with millisecond precision
    ('2021-05-03T00:00:00.000Z'). human=True gives '2021-05-03 00:00:00 UTC';
    both use numeric fields only, so the output does not depend on locale.
    """
    moment = datetime.fromtimestamp(block_time, tz=timezone.utc)
    if human:
        return moment.strftime("%Y-%m-%d %H:%M:%S UTC")
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass(frozen=True)
class ResolutionResult:
    program_id: str
    block_time: int
    earliest_signature: str
    from_cache: bool = False

    @property
    def timestamp(self) -> str:
        return format_timestamp(self.block_time)

    def render(self, human: bool = False) -> str:
        return format_timestamp(self.block_time, human=human)

    @property
    def explorer_url(self) -> str:
        return f"https://explorer.solana.com/tx/{self.earliest_signature}"
