"""
errors.py

Exceptions raised while resolving a program's first deployment.
"""


class DeploymentLookupError(Exception):
    """Base class for every failure the resolver reports to its caller."""


class InvalidProgramId(DeploymentLookupError):
    def __init__(self, program_id: str, reason: str = ""):
        self.program_id = program_id
        message = f"Invalid program ID: {program_id!r}"
        if reason:
            message += f" ({reason})"
        super().__init__(message)


# Any malformed user input ends up here; the program id is the only input.
InvalidInput = InvalidProgramId


class NoTransactionsFound(DeploymentLookupError):
    def __init__(self, program_id: str):
        self.program_id = program_id
        super().__init__(f"No transactions found for the program ID: {program_id}")


class NoDeploymentFound(DeploymentLookupError):
    def __init__(self, program_id: str, scanned: int = 0):
        self.program_id = program_id
        self.scanned = scanned
        super().__init__(
            f"No deployment transaction found for {program_id} "
            f"after scanning {scanned} transactions"
        )


class ThrottlingRetryExhausted(DeploymentLookupError):
    def __init__(self, attempts: int, last_error: Exception | None = None):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Still rate limited after {attempts} attempts: {last_error}")


RetryExhausted = ThrottlingRetryExhausted


class BlockTimeUnavailable(DeploymentLookupError):
    """The chosen signature has no finalized block time yet."""

    def __init__(self, program_id: str, signature: str):
        self.program_id = program_id
        self.signature = signature
        super().__init__(
            f"Block time is unavailable for the earliest deployment transaction {signature}"
        )


class TransactionUnavailable(DeploymentLookupError):
    """
    The node could not return a transaction older than any deployment found
    so far, so the oldest deployment cannot be told apart from a later one.
    """

    def __init__(self, program_id: str, signature: str):
        self.program_id = program_id
        self.signature = signature
        super().__init__(
            f"Transaction {signature} for {program_id} is not available from the RPC node "
            f"(an archival node is needed to search the full history)"
        )


class CacheIOFailure(DeploymentLookupError):
    def __init__(self, path, cause: Exception):
        self.path = path
        self.cause = cause
        super().__init__(f"Deployment cache at {path} is unusable: {cause}")
