"""Failure kinds for swap and lending attempts.

Every step either returns a definite value or raises one of these. ``retryable``
says whether a fresh attempt (re-reading on-chain state) can succeed without
operator or user intervention.
"""

from __future__ import annotations


class ScrollPathsError(RuntimeError):
    retryable: bool = False


class ApprovalFailed(ScrollPathsError):
    """The approval transaction reverted or was never confirmed."""

    retryable = True

    def __init__(
        self,
        token_address: str,
        spender: str,
        message: str | None = None,
        txn_hash: str | None = None,
    ):
        self.token_address = token_address
        self.spender = spender
        self.txn_hash = txn_hash
        super().__init__(
            message or f"Approval of {spender} on {token_address} failed"
        )


class QuoteUnavailable(ScrollPathsError):
    """The aggregator returned an HTTP error or a quote without a transaction."""

    retryable = True

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class SigningFailed(ScrollPathsError):
    pass


class TransactionDataMissing(ScrollPathsError):
    pass


class BroadcastRejected(ScrollPathsError):
    """The node refused the signed transaction (nonce, gas or funds)."""

    retryable = True

    def __init__(self, message: str, chain_id: int | None = None):
        self.chain_id = chain_id
        super().__init__(message)


class ReserveNotFound(ScrollPathsError):
    def __init__(self, asset: str, pool: str):
        self.asset = asset
        self.pool = pool
        super().__init__(f"No reserve configured for {asset} on pool {pool}")


class SlippageExceeded(ScrollPathsError):
    retryable = True
