"""
solana_rpc.py

Thin JSON-RPC client for the two Solana RPC methods the deployment lookup
needs: getSignaturesForAddress and getTransaction.
"""

import logging
from typing import Optional

import requests

from solana_deploy_finder import constants
from solana_deploy_finder.deployments.models import Instruction, SignatureInfo, TransactionRecord

logger = logging.getLogger(__name__)


class RpcError(Exception):
    """
    A failed RPC request, either at the HTTP level or as a JSON-RPC error
    object in an otherwise successful response.
    """

    def __init__(self, message: str, http_status: Optional[int] = None, code: Optional[int] = None):
        super().__init__(message)
        self.http_status = http_status
        self.code = code

    @property
    def is_throttling(self) -> bool:
        if self.http_status == 429 or self.code == 429:
            return True
        return "too many requests" in str(self).lower()


class SolanaRpcClient:
    """
    Blocking Solana JSON-RPC client built on a requests Session.

    The client makes exactly one HTTP request per call. Pacing and retries are
    the caller's business (see utils.rate_limiter).
    """

    def __init__(self, rpc_url: str = constants.DEFAULT_RPC_URL, timeout: float = 30.0,
                 commitment: str = constants.RPC_COMMITMENT, session: Optional[requests.Session] = None):
        self.rpc_url = rpc_url
        self.timeout = timeout
        self.commitment = commitment
        self.session = session or requests.Session()
        self._request_id = 0

    def close(self) -> None:
        self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def make_rpc_request(self, method: str, params: list):
        """
        Send a JSON-RPC request and return its 'result' member.

        Raises:
            RpcError: on HTTP errors, connection failures, undecodable bodies
                      and JSON-RPC error objects.
        """
        self._request_id += 1
        payload = {"jsonrpc": "2.0", "id": self._request_id, "method": method, "params": params}
        logger.debug(f"RPC {method} -> {self.rpc_url}")

        try:
            response = self.session.post(self.rpc_url, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            raise RpcError(f"{method} request failed: {e}") from e

        if response.status_code == 429:
            raise RpcError(f"{method}: 429 Too Many Requests", http_status=429)
        try:
            response.raise_for_status()
        except requests.HTTPError as e:
            raise RpcError(f"{method}: HTTP {response.status_code}", http_status=response.status_code) from e

        try:
            data = response.json()
        except ValueError as e:
            raise RpcError(f"{method}: response is not valid JSON", http_status=response.status_code) from e

        if 'error' in data:
            error = data['error'] or {}
            if not isinstance(error, dict):
                error = {"message": str(error)}
            raise RpcError(
                f"RPC error from {method}: {error.get('message', error)}",
                http_status=response.status_code,
                code=error.get('code'),
            )
        return data.get('result')

    def get_signatures_for_address(self, address: str, before: Optional[str] = None,
                                   limit: int = constants.SIGNATURE_PAGE_SIZE) -> list[SignatureInfo]:
        """
        One page of signatures for address, newest first.

        Args:
            address (str): Base58 account address.
            before (str, optional): Only return signatures older than this one.
            limit (int): Page size, at most 1000.
        """
        options = {"limit": limit, "commitment": self.commitment}
        if before is not None:
            options["before"] = before
        result = self.make_rpc_request("getSignaturesForAddress", [address, options]) or []
        return [
            SignatureInfo(
                signature=item["signature"],
                slot=item.get("slot"),
                block_time=item.get("blockTime"),
                err=item.get("err"),
            )
            for item in result
        ]

    def get_transaction(self, signature: str) -> Optional[TransactionRecord]:
        """
        Args:
            signature (str): The tx signature.

        Returns:
            TransactionRecord or None: None if the node does not know the tx.
        """
        params = [signature, {
            "encoding": "json",
            "maxSupportedTransactionVersion": 0,
            "commitment": self.commitment,
        }]
        result = self.make_rpc_request("getTransaction", params)
        if not result:
            return None
        return parse_transaction(signature, result)


def parse_transaction(signature: str, tx: dict) -> TransactionRecord:
    """
    Build a TransactionRecord from a getTransaction result.

    With the json encoding instructions name their program by programIdIndex,
    an index into the static account keys followed by the writable and then
    readonly addresses loaded from lookup tables. jsonParsed results carry a
    programId directly.
    """
    message = tx.get("transaction", {}).get("message", {})
    account_keys = [
        key["pubkey"] if isinstance(key, dict) else key
        for key in message.get("accountKeys", [])
    ]
    loaded = (tx.get("meta") or {}).get("loadedAddresses") or {}
    account_keys += loaded.get("writable", []) + loaded.get("readonly", [])

    instructions = []
    for ix in message.get("instructions", []):
        if "programId" in ix:
            instructions.append(Instruction(program_id=ix["programId"]))
            continue
        index = ix.get("programIdIndex")
        if index is None or index >= len(account_keys):
            logger.warning(f"Instruction in {signature} references unknown program index {index}")
            continue
        instructions.append(Instruction(program_id=account_keys[index]))

    return TransactionRecord(
        signature=signature,
        block_time=tx.get("blockTime"),
        slot=tx.get("slot"),
        instructions=tuple(instructions),
    )
