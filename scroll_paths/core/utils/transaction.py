import asyncio
import math
import weakref
from collections.abc import Callable, Mapping
from typing import Any

from loguru import logger
from web3 import AsyncWeb3
from web3.exceptions import Web3Exception

from scroll_paths.core.constants.base import (
    DEFAULT_CONFIRMATIONS,
    DEFAULT_TRANSACTION_TIMEOUT,
    GAS_BUFFER_MULTIPLIER,
    MAX_BASE_FEE_GROWTH_MULTIPLIER,
    SUGGESTED_GAS_PRICE_MULTIPLIER,
    SUGGESTED_PRIORITY_FEE_MULTIPLIER,
)
from scroll_paths.core.constants.chains import PRE_EIP_1559_CHAIN_IDS
from scroll_paths.core.errors import BroadcastRejected, SigningFailed
from scroll_paths.core.utils.web3 import (
    get_transaction_chain_id,
    web3_from_chain_id,
    web3s_from_chain_id,
)

# Fields of an aggregator transaction that are coerced to integers when present.
QUOTE_INTEGER_FIELDS = ("gas", "gasPrice", "value")

# Entries drop out once no attempt holds or waits on the lock.
_ACCOUNT_LOCKS: weakref.WeakValueDictionary[tuple[int, str], asyncio.Lock] = (
    weakref.WeakValueDictionary()
)


class TransactionRevertedError(RuntimeError):
    def __init__(
        self,
        txn_hash: str,
        receipt: dict[str, Any] | None = None,
        message: str | None = None,
    ):
        self.txn_hash = txn_hash
        self.receipt = receipt or {}
        super().__init__(message or f"Transaction reverted: {txn_hash}")


def _raise_revert_error(
    txn_hash: str,
    receipt: dict[str, Any],
    transaction: dict[str, Any],
    cause: Exception | None = None,
) -> None:
    gas_used = int(receipt.get("gasUsed") or 0)
    gas_limit = int(transaction.get("gas") or 0)

    oogs = bool(gas_used and gas_limit and gas_used >= gas_limit)
    suffix = (
        f" gasUsed={gas_used} gasLimit={gas_limit}"
        + (" (likely out of gas)" if oogs else "")
        if gas_used or gas_limit
        else ""
    )
    error = TransactionRevertedError(
        txn_hash,
        receipt,
        message=f"Transaction reverted (status=0): {txn_hash}{suffix}",
    )
    if cause:
        raise error from cause
    raise error


def account_lock(chain_id: int, address: str) -> asyncio.Lock:
    """Lock serializing transaction attempts for one account on one chain.

    Nonces are read from the node, so two attempts for the same account must not
    overlap between the nonce read and the broadcast.
    """
    key = (int(chain_id), address.lower())
    lock = _ACCOUNT_LOCKS.get(key)
    if lock is None:
        lock = asyncio.Lock()
        _ACCOUNT_LOCKS[key] = lock
    return lock


def _parse_int(value: int | str) -> int:
    if isinstance(value, int):
        return value
    s = str(value).strip()
    return int(s, 16) if s.lower().startswith("0x") else int(s)


def _is_present(value: Any) -> bool:
    return value is not None and not (isinstance(value, str) and not value.strip())


def build_transaction_from_quote(
    quote_transaction: Mapping[str, Any], *, chain_id: int, from_address: str
) -> dict[str, Any]:
    """Turn an aggregator transaction object into a web3 transaction dict.

    Only the fields the aggregator actually supplied are carried over (integer
    ones coerced); absent ones stay absent so they are filled from the network later rather
    than defaulted to zero.
    """
    transaction: dict[str, Any] = {
        "chainId": int(chain_id),
        "from": AsyncWeb3.to_checksum_address(from_address),
        "to": AsyncWeb3.to_checksum_address(str(quote_transaction["to"])),
    }
    if _is_present(quote_transaction.get("data")):
        transaction["data"] = quote_transaction["data"]
    for field in QUOTE_INTEGER_FIELDS:
        value = quote_transaction.get(field)
        if _is_present(value):
            transaction[field] = _parse_int(value)
    return transaction


def _get_transaction_from_address(transaction: dict) -> str:
    if "from" not in transaction:
        raise ValueError("Transaction does not contain from address")
    return AsyncWeb3.to_checksum_address(transaction["from"])


async def get_account_nonce(chain_id: int, address: str) -> int:
    from_address = AsyncWeb3.to_checksum_address(address)

    async def _get_nonce(web3: AsyncWeb3) -> int:
        return await web3.eth.get_transaction_count(
            from_address, block_identifier="pending"
        )

    async with web3s_from_chain_id(chain_id) as web3s:
        nonces = await asyncio.gather(*[_get_nonce(web3) for web3 in web3s])
    return max(nonces)


async def nonce_transaction(transaction: dict):
    transaction = transaction.copy()
    from_address = _get_transaction_from_address(transaction)
    transaction["nonce"] = await get_account_nonce(
        get_transaction_chain_id(transaction), from_address
    )
    return transaction


async def _legacy_fee_fields(web3s: list[AsyncWeb3]) -> dict[str, int]:
    async def _gas_price(web3: AsyncWeb3) -> int:
        return await web3.eth.gas_price

    quoted = await asyncio.gather(*[_gas_price(web3) for web3 in web3s])
    return {"gasPrice": int(max(quoted) * SUGGESTED_GAS_PRICE_MULTIPLIER)}


async def _eip1559_fee_fields(
    web3s: list[AsyncWeb3], lookback_blocks: int = 10, percentile: int = 80
) -> dict[str, int]:
    async def _fees(web3: AsyncWeb3) -> tuple[int, int]:
        block = await web3.eth.get_block("latest")
        history = await web3.eth.fee_history(lookback_blocks, "latest", [percentile])
        tips = [reward[0] for reward in history.reward] or [0]
        return block.baseFeePerGas, sum(tips) // len(tips)

    samples = await asyncio.gather(*[_fees(web3) for web3 in web3s])
    base_fee = max(base for base, _ in samples)
    tip = int(max(t for _, t in samples) * SUGGESTED_PRIORITY_FEE_MULTIPLIER)
    return {
        "maxFeePerGas": int(base_fee * MAX_BASE_FEE_GROWTH_MULTIPLIER) + tip,
        "maxPriorityFeePerGas": tip,
    }


async def gas_price_transaction(transaction: dict):
    """Price the transaction from the highest quote across RPCs.

    Chains in ``PRE_EIP_1559_CHAIN_IDS`` get a legacy ``gasPrice``; the rest get
    ``maxFeePerGas`` / ``maxPriorityFeePerGas``.
    """
    chain_id = get_transaction_chain_id(transaction)
    async with web3s_from_chain_id(chain_id) as web3s:
        if chain_id in PRE_EIP_1559_CHAIN_IDS:
            fees = await _legacy_fee_fields(web3s)
        else:
            fees = await _eip1559_fee_fields(web3s)
    return {**transaction, **fees}


async def gas_limit_transaction(transaction: dict):
    """Estimate gas on every RPC and keep the highest, plus ``GAS_BUFFER_MULTIPLIER``.

    A ``gas`` already on the transaction is dropped before estimating so the
    node does not treat it as a cap.
    """
    chain_id = get_transaction_chain_id(transaction)
    probe = {k: v for k, v in transaction.items() if k != "gas"}

    async def _estimate(web3: AsyncWeb3) -> int:
        try:
            return await web3.eth.estimate_gas(probe, block_identifier="latest")
        except (Web3Exception, ValueError) as exc:
            logger.info(f"Gas estimate failed on {web3.provider.endpoint_uri}: {exc}")
            return 0

    async with web3s_from_chain_id(chain_id) as web3s:
        estimate = max(await asyncio.gather(*[_estimate(web3) for web3 in web3s]))

    if estimate == 0:
        logger.error("Gas estimation failed on all RPCs")
        raise BroadcastRejected("Gas estimation failed on all RPCs", chain_id=chain_id)
    return {**probe, "gas": int(math.ceil(estimate * GAS_BUFFER_MULTIPLIER))}


async def fill_missing_transaction_fields(transaction: dict) -> dict:
    """Ask the network for gas and fees the caller did not supply."""
    if "gas" not in transaction:
        transaction = await gas_limit_transaction(transaction)
    if "gasPrice" not in transaction and "maxFeePerGas" not in transaction:
        transaction = await gas_price_transaction(transaction)
    return transaction


async def sign_transaction(transaction: dict, sign_callback: Callable) -> bytes:
    if sign_callback is None:
        raise SigningFailed("sign_callback must be provided to sign transaction")
    try:
        signed = await sign_callback(transaction)
    except SigningFailed:
        raise
    except Exception as exc:
        raise SigningFailed(f"Transaction signing failed: {exc}") from exc
    if isinstance(signed, str):
        signed = bytes.fromhex(signed.removeprefix("0x"))
    if not signed:
        raise SigningFailed("Signer returned an empty transaction")
    return bytes(signed)


async def broadcast_transaction(chain_id, signed_transaction: bytes) -> str:
    async with web3_from_chain_id(chain_id) as web3:
        try:
            tx_hash = await web3.eth.send_raw_transaction(signed_transaction)
        except (Web3Exception, ValueError) as exc:
            raise BroadcastRejected(
                f"Broadcast rejected on chain {chain_id}: {exc}", chain_id=chain_id
            ) from exc
    txn_hash = tx_hash.hex() if isinstance(tx_hash, bytes) else str(tx_hash)
    if not txn_hash.startswith("0x"):
        txn_hash = f"0x{txn_hash}"
    return txn_hash


async def wait_for_transaction_receipt(
    chain_id: int,
    txn_hash: str,
    poll_interval: float = 0.1,
    timeout: int = DEFAULT_TRANSACTION_TIMEOUT,
    confirmations: int = DEFAULT_CONFIRMATIONS,
) -> dict:
    """First receipt any RPC returns, then wait for ``confirmations`` blocks.

    Raises ``TransactionRevertedError`` for a status-0 receipt.
    """
    if not txn_hash.startswith("0x"):
        txn_hash = f"0x{txn_hash}"

    async with web3s_from_chain_id(chain_id) as web3s:
        waiters = [
            asyncio.create_task(
                web3.eth.wait_for_transaction_receipt(
                    txn_hash, poll_latency=poll_interval, timeout=timeout
                )
            )
            for web3 in web3s
        ]
        done, pending = await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
        for waiter in pending:
            waiter.cancel()
        receipt = done.pop().result()

        if receipt.get("status") == 0:
            raise TransactionRevertedError(txn_hash, receipt)

        async def _head() -> int:
            heights = await asyncio.gather(*[web3.eth.block_number for web3 in web3s])
            return max(heights)

        target_block = receipt["blockNumber"] + confirmations - 1
        while await _head() < target_block:
            await asyncio.sleep(poll_interval)
        return receipt


async def submit_transaction(transaction: dict, sign_callback: Callable) -> str:
    """Assign a nonce, sign and broadcast; returns the hash without waiting.

    Fields already on the transaction are kept as-is. No retry or nonce bump is
    attempted on rejection. Callers must hold ``account_lock`` for the sender
    when other attempts for the same account may be running.
    """
    chain_id = get_transaction_chain_id(transaction)
    transaction = await fill_missing_transaction_fields(transaction)
    transaction = await nonce_transaction(transaction)
    signed_transaction = await sign_transaction(transaction, sign_callback)
    logger.info(
        f"Broadcasting transaction to={transaction.get('to')} nonce={transaction['nonce']} chain={chain_id}"
    )
    txn_hash = await broadcast_transaction(chain_id, signed_transaction)
    logger.info(f"Transaction broadcasted: {txn_hash}")
    return txn_hash


async def send_transaction(
    transaction: dict,
    sign_callback: Callable,
    wait_for_receipt=True,
    confirmations: int = DEFAULT_CONFIRMATIONS,
) -> str:
    logger.info(f"Broadcasting transaction {transaction}...")
    chain_id = get_transaction_chain_id(transaction)
    transaction = await gas_limit_transaction(transaction)
    transaction = await gas_price_transaction(transaction)
    txn_hash = await submit_transaction(transaction, sign_callback)
    if wait_for_receipt:
        try:
            await wait_for_transaction_receipt(
                chain_id, txn_hash, confirmations=confirmations
            )
        except TransactionRevertedError as exc:
            _raise_revert_error(txn_hash, exc.receipt, transaction, cause=exc)
    return txn_hash


async def encode_call(
    *,
    target: str,
    abi: list[dict[str, Any]],
    fn_name: str,
    args: list[Any],
    from_address: str,
    chain_id: int,
    value: int = 0,
) -> dict[str, Any]:
    async with web3_from_chain_id(chain_id) as web3:
        try:
            contract = web3.eth.contract(
                address=web3.to_checksum_address(target),
                abi=abi,
            )
            data = contract.encode_abi(fn_name, args)
        except (ValueError, TypeError) as exc:
            raise ValueError(f"Failed to encode {fn_name}: {exc}") from exc

        return {
            "chainId": int(chain_id),
            "from": AsyncWeb3.to_checksum_address(from_address),
            "to": AsyncWeb3.to_checksum_address(target),
            "data": data,
            "value": int(value),
        }
