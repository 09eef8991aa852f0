"""
signature_walker.py

Page backwards through the signature history of an account.

Usage:
    walker = SignatureWalker(client, policy, request_interval=8.0)
    for batch in walker.walk(program_id):
        ...

Pages come newest first and each page is strictly older than the one before
it; the last signature of a page is the cursor for the next one. The walk
cannot be parallelised since every cursor depends on the previous page.
"""

import time
import logging
from typing import Any, Callable, Iterator, Optional

from solana_deploy_finder import constants
from solana_deploy_finder.deployments.models import SignatureInfo
from solana_deploy_finder.errors import NoTransactionsFound
from solana_deploy_finder.utils.rate_limiter import RemoteCallPolicy

logger = logging.getLogger(__name__)


class SignatureWalker:
    def __init__(
        self,
        client,
        policy: RemoteCallPolicy,
        request_interval: float = constants.REQUEST_INTERVAL_SECONDS,
        sleep: Callable[[float], Any] = time.sleep,
        page_size: int = constants.SIGNATURE_PAGE_SIZE,
    ):
        self.client = client
        self.policy = policy
        self.request_interval = request_interval
        self.sleep = sleep
        self.page_size = page_size

    def next_batch(self, program_id: str, cursor: Optional[str] = None) -> list[SignatureInfo]:
        """
        Fetch the page of signatures older than cursor (newest page if None).
        """
        return self.policy.call(
            self.client.get_signatures_for_address, program_id, before=cursor, limit=self.page_size
        )

    def walk(self, program_id: str) -> Iterator[list[SignatureInfo]]:
        """
        Yield every page of history, newest first.

        Stops after an empty page or a short page. Waits request_interval
        seconds before each follow-up request.

        Raises:
            NoTransactionsFound: the very first page is empty.
        """
        cursor = None
        total = 0

        while True:
            batch = self.next_batch(program_id, cursor)
            if not batch:
                if cursor is None:
                    raise NoTransactionsFound(program_id)
                logger.info("No more signatures found.")
                return

            total += len(batch)
            logger.info(f"Fetched {len(batch)} signatures, total so far: {total}")
            yield batch

            if len(batch) < self.page_size:
                logger.debug("Short page, reached the start of history")
                return

            cursor = batch[-1].signature
            logger.debug(f"Waiting {self.request_interval}s before requesting signatures before {cursor}")
            self.sleep(self.request_interval)
