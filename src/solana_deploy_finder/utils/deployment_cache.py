import os
import json
import logging
from pathlib import Path
from typing import Optional

from solana_deploy_finder.deployments.models import CacheEntry
from solana_deploy_finder.errors import CacheIOFailure

logger = logging.getLogger(__name__)


class DeploymentCache:
    """
    Program id -> resolved deployment. Subclasses provide read and write.

    A deployment time never changes once observed, so an entry with a block
    time is returned as-is until a forced refresh replaces it.
    """

    def read(self, program_id: str) -> Optional[CacheEntry]:
        raise NotImplementedError

    def write(self, program_id: str, entry: CacheEntry) -> None:
        raise NotImplementedError

    def update(self, program_id: str, entry: CacheEntry, current: Optional[CacheEntry] = None) -> bool:
        """
        Write entry unless the cache already holds exactly that value.

        Returns:
            True if a write happened.
        """
        if current is None:
            try:
                current = self.read(program_id)
            except CacheIOFailure as e:
                logger.warning(f"{e}; rewriting it")
                current = None
        if current == entry:
            logger.debug(f"Cache already up to date for {program_id}")
            return False
        self.write(program_id, entry)
        return True


class InMemoryDeploymentCache(DeploymentCache):
    """Process-local cache, used by tests and --no-cache runs."""

    def __init__(self, entries: Optional[dict[str, CacheEntry]] = None):
        self.entries = dict(entries or {})
        self.writes = 0

    def read(self, program_id):
        return self.entries.get(program_id)

    def write(self, program_id, entry):
        self.entries[program_id] = entry
        self.writes += 1


class JsonFileDeploymentCache(DeploymentCache):
    """
    Cache stored as a single JSON object:

        {"<program id>": {"blockTime": 1620000000, "earliestSignature": "..."}}

    Every write rewrites the whole file. There is no locking; two processes
    writing at once can lose one of the updates.
    """

    def __init__(self, path: Path | str):
        self.path = Path(path)

    def _load(self) -> dict:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise CacheIOFailure(self.path, e) from e
        if not isinstance(data, dict):
            raise CacheIOFailure(self.path, ValueError("top level is not an object"))
        return data

    def read(self, program_id):
        raw = self._load().get(program_id)
        if raw is None:
            return None
        try:
            entry = CacheEntry.from_json(raw)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Ignoring malformed cache entry for {program_id}: {e}")
            return None
        return entry

    def write(self, program_id, entry):
        try:
            data = self._load()
        except CacheIOFailure as e:
            logger.warning(f"{e}; starting a fresh cache file")
            data = {}
        data[program_id] = entry.to_json()

        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=4, sort_keys=True)
            os.replace(tmp_path, self.path)
        except OSError as e:
            raise CacheIOFailure(self.path, e) from e
        logger.info(f"Saved deployment of {program_id} to {self.path}")
