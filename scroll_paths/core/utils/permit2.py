"""Permit2 signature embedding for aggregator swap calldata.

The settler contract expects the taker's Permit2 signature appended to the
swap calldata as ``data || uint256(len(signature)) || signature``. The length
word is a 32-byte big-endian unsigned integer.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Annotated, Any, Literal, assert_never

from eth_utils import decode_hex, encode_hex
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from scroll_paths.core.clients.ZeroExClient import QuoteTransaction, SwapQuote
from scroll_paths.core.errors import SigningFailed, TransactionDataMissing

SIGNATURE_LENGTH_WORD_BYTES = 32

TypedDataSigner = Callable[[dict[str, Any]], Awaitable[bytes | str]]


class _Embedding(BaseModel):
    model_config = ConfigDict(frozen=True)


class NoPermitNeeded(_Embedding):
    kind: Literal["no_permit_needed"] = "no_permit_needed"
    transaction: QuoteTransaction


class PermitEmbedded(_Embedding):
    kind: Literal["permit_embedded"] = "permit_embedded"
    transaction: QuoteTransaction
    signature: str


class PermitSigningFailed(_Embedding):
    kind: Literal["signing_failed"] = "signing_failed"
    error: str


PermitEmbedding = Annotated[
    NoPermitNeeded | PermitEmbedded | PermitSigningFailed,
    Field(discriminator="kind"),
]


def encode_signature_length(signature: bytes) -> bytes:
    return len(signature).to_bytes(SIGNATURE_LENGTH_WORD_BYTES, "big", signed=False)


def append_signature(data: str | bytes, signature: bytes) -> str:
    raw = decode_hex(data) if isinstance(data, str) else bytes(data)
    return encode_hex(raw + encode_signature_length(signature) + signature)


def _signature_bytes(signature: bytes | str) -> bytes:
    if isinstance(signature, str):
        return decode_hex(signature)
    return bytes(signature)


def _parse_int(value: str) -> int:
    s = value.strip()
    return int(s, 16) if s.lower().startswith("0x") else int(s)


def _coerce_value(value: Any, type_name: str, types: dict[str, Any]) -> Any:
    if type_name.endswith("]"):
        inner = type_name[: type_name.rindex("[")]
        return [_coerce_value(v, inner, types) for v in value]
    if type_name in types:
        return _coerce_struct(value, type_name, types)
    if type_name.startswith(("uint", "int")) and isinstance(value, str):
        return _parse_int(value)
    return value


def _coerce_struct(
    values: dict[str, Any], type_name: str, types: dict[str, Any]
) -> dict[str, Any]:
    out = dict(values)
    for field in types[type_name]:
        name = field["name"]
        if name in out:
            out[name] = _coerce_value(out[name], field["type"], types)
    return out


def normalize_typed_data(typed_data: dict[str, Any]) -> dict[str, Any]:
    """Turn the aggregator's decimal-string integers into ints for EIP-712 hashing."""
    types = typed_data.get("types") or {}
    normalized = dict(typed_data)

    domain = dict(typed_data.get("domain") or {})
    if "EIP712Domain" in types:
        domain = _coerce_struct(domain, "EIP712Domain", types)
    elif isinstance(domain.get("chainId"), str):
        domain["chainId"] = _parse_int(domain["chainId"])
    normalized["domain"] = domain

    primary_type = typed_data.get("primaryType")
    if primary_type in types and isinstance(typed_data.get("message"), dict):
        normalized["message"] = _coerce_struct(
            typed_data["message"], primary_type, types
        )
    return normalized


async def sign_permit(
    quote: SwapQuote, sign_typed_data: TypedDataSigner | None
) -> PermitEmbedding:
    """Sign the quote's Permit2 payload and build the calldata carrying it.

    Returns a tagged result instead of raising on signing failure, so callers
    must inspect the outcome before they can get at a transaction.
    """
    if not quote.transaction.data:
        raise TransactionDataMissing("Quote transaction has no calldata")
    if not quote.requires_permit_signature:
        return NoPermitNeeded(transaction=quote.transaction)
    if sign_typed_data is None:
        return PermitSigningFailed(error="No typed data signer configured")
    if quote.transaction.permit_signature_embedded:
        raise ValueError("Permit2 signature already embedded in this quote")

    try:
        signature = _signature_bytes(
            await sign_typed_data(normalize_typed_data(quote.permit2.eip712))
        )
    except Exception as exc:  # noqa: BLE001
        logger.error(f"Error signing the permit2 payload: {exc}")
        return PermitSigningFailed(error=str(exc) or exc.__class__.__name__)
    if not signature:
        return PermitSigningFailed(error="Signer returned an empty signature")

    transaction = quote.transaction.model_copy(
        update={
            "data": append_signature(quote.transaction.data, signature),
            "permit_signature_embedded": True,
        }
    )
    logger.info("Signed the permit2 payload from the quote response")
    return PermitEmbedded(transaction=transaction, signature=encode_hex(signature))


def apply_permit_embedding(quote: SwapQuote, embedding: PermitEmbedding) -> SwapQuote:
    match embedding:
        case NoPermitNeeded():
            return quote
        case PermitEmbedded(transaction=transaction):
            return quote.model_copy(update={"transaction": transaction})
        case PermitSigningFailed(error=error):
            raise SigningFailed(f"Permit2 signing failed: {error}")
        case _:
            assert_never(embedding)


async def embed_permit_signature(
    quote: SwapQuote, sign_typed_data: TypedDataSigner
) -> SwapQuote:
    embedding = await sign_permit(quote, sign_typed_data)
    return apply_permit_embedding(quote, embedding)
