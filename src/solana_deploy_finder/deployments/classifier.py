from typing import Iterable

from solana_deploy_finder.constants import LOADER_PROGRAM_IDS
from solana_deploy_finder.deployments.models import TransactionRecord


class DeploymentClassifier:
    """Decides whether a fetched transaction deploys a program."""

    def __init__(self, loader_ids: Iterable[str] = LOADER_PROGRAM_IDS):
        self.loader_ids = frozenset(loader_ids)

    def is_deployment(self, transaction: TransactionRecord) -> bool:
        for instruction in transaction.instructions:
            if instruction.program_id in self.loader_ids:
                return True
        return False
