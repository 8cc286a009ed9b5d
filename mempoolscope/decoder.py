"""Schema-typed decoding of mempool.space JSON into domain records.

Every decoder raises DecodeError(path, reason) when a required field is absent
or has the wrong type. Paths use dotted keys and list indices, e.g.
``vin[2].prevout.value``. The normalization rules below compensate for
inconsistencies in the upstream API and are kept as-is for compatibility:

- fee values above 1.0 are taken to be satoshis, anything else BTC
- weight falls back to size * 4 when absent or zero (pre-SegWit convention)
- vsize falls back to size when absent or zero
- missing or empty vin/vout lists become a single placeholder entry
"""

import json
import math
import re
import time
from typing import Any, Callable, Dict, List, Optional, Tuple, Union
from .constants import (
    SATOSHIS_PER_BTC,
    WEIGHT_TO_VSIZE_RATIO,
    PLACEHOLDER_INPUT_LABEL,
    PLACEHOLDER_OUTPUT_LABEL,
    PLACEHOLDER_AMOUNT_SATS,
)
from .errors import DecodeError
from .logging import get_logger
from .models import (
    AddressInfo,
    AddressStats,
    AddressUtxo,
    Block,
    FeeHistogramBucket,
    MempoolStats,
    MempoolTx,
    PendingBlock,
    PrevOut,
    Transaction,
    TxInput,
    TxOutput,
    TxStatus,
    fee_rate,
)

logger = get_logger(__name__)

Payload = Union[bytes, bytearray, str, Any]

_MISSING = object()
_TXID_RE = re.compile(r"^[0-9a-fA-F]{64}$")

_TYPE_NAMES = {
    "int": "integer",
    "float": "number",
    "str": "string",
    "bool": "boolean",
    "dict": "object",
    "list": "array",
}


# ---------- Fee normalization ----------

def normalize_fee(fee: float) -> float:
    """
    Normalize a fee value to BTC.

    Values above 1.0 are assumed to already be satoshis and are divided by
    100,000,000; anything else is taken as BTC. The heuristic misreads a real
    fee above 1 BTC and a fee of exactly 1 satoshi.

    Args:
        fee: Raw fee value from the API

    Returns:
        Fee in BTC
    """
    if fee > 1.0:
        return fee / SATOSHIS_PER_BTC
    return fee


def fee_to_satoshis(fee: float) -> int:
    """Normalize a raw fee value and express it in whole satoshis."""
    return int(round(normalize_fee(fee) * SATOSHIS_PER_BTC))


# ---------- Schema helpers ----------

def _join(path: str, key: str) -> str:
    return f"{path}.{key}" if path else key


def _index(path: str, i: int) -> str:
    return f"{path}[{i}]"


def _matches(value: Any, kind: str) -> bool:
    if kind == "int":
        if isinstance(value, bool):
            return False
        return isinstance(value, int) or (isinstance(value, float) and value.is_integer())
    if kind == "float":
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    if kind == "str":
        return isinstance(value, str)
    if kind == "bool":
        return isinstance(value, bool)
    if kind == "dict":
        return isinstance(value, dict)
    if kind == "list":
        return isinstance(value, list)
    raise ValueError(f"Unknown schema kind: {kind}")


def _coerce(value: Any, kind: str) -> Any:
    if kind == "int":
        return int(value)
    if kind == "float":
        return float(value)
    return value


def _check(value: Any, kind: str, path: str) -> Any:
    if not _matches(value, kind):
        raise DecodeError(path, f"expected {_TYPE_NAMES[kind]}, got {type(value).__name__}")
    if kind in ("int", "float") and not math.isfinite(value):
        raise DecodeError(path, "must be finite")
    return _coerce(value, kind)


def _required(obj: Dict[str, Any], key: str, kind: str, path: str) -> Any:
    field_path = _join(path, key)
    value = obj.get(key, _MISSING)
    if value is _MISSING:
        raise DecodeError(field_path, "required field is missing")
    if value is None:
        raise DecodeError(field_path, "required field is null")
    return _check(value, kind, field_path)


def _optional(obj: Dict[str, Any], key: str, kind: str, path: str, default: Any = None) -> Any:
    value = obj.get(key)
    if value is None:
        return default
    return _check(value, kind, _join(path, key))


def _expect(value: Any, kind: str, path: str) -> Any:
    return _check(value, kind, path or "$")


def _rounded(value: float, path: str) -> int:
    # Products of large finite values can still overflow
    if not math.isfinite(value):
        raise DecodeError(path, "derived value out of range")
    return int(round(value))


def parse_json(data: Payload, path: str = "") -> Any:
    """
    Parse raw bytes or text into JSON. Already-parsed values pass through.

    Raises:
        DecodeError: Body is not valid UTF-8 or not valid JSON
    """
    if isinstance(data, (bytes, bytearray)):
        try:
            data = bytes(data).decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecodeError(path, f"invalid UTF-8: {e}") from e
    if isinstance(data, str):
        try:
            return json.loads(data)
        except json.JSONDecodeError as e:
            raise DecodeError(path, f"malformed JSON: {e.msg} (line {e.lineno}, column {e.colno})") from e
    return data


def _decode_list(data: Payload, item_decoder: Callable[[Any, str], Any]) -> List[Any]:
    items = _expect(parse_json(data), "list", "")
    return [item_decoder(item, _index("", i)) for i, item in enumerate(items)]


# ---------- Mempool ----------

def decode_mempool_stats(data: Payload) -> MempoolStats:
    """Decode /mempool into MempoolStats (total fee in canonical satoshis)."""
    obj = _expect(parse_json(data), "dict", "")
    count = _required(obj, "count", "int", "")
    vsize = _required(obj, "vsize", "int", "")
    if vsize < 0:
        raise DecodeError("vsize", "must be >= 0")
    total_fee = _required(obj, "total_fee", "float", "")

    histogram = None
    raw_histogram = _optional(obj, "fee_histogram", "list", "")
    if raw_histogram is not None:
        buckets = []
        for i, entry in enumerate(raw_histogram):
            entry_path = _index("fee_histogram", i)
            entry = _expect(entry, "list", entry_path)
            if len(entry) < 2:
                continue
            rate = _check(entry[0], "float", _index(entry_path, 0))
            bucket_vsize = _check(entry[1], "float", _index(entry_path, 1))
            buckets.append(FeeHistogramBucket(fee_rate=rate, vsize=int(bucket_vsize)))
        histogram = tuple(buckets)

    return MempoolStats(
        count=count,
        vsize=vsize,
        total_fee_sats=fee_to_satoshis(total_fee),
        fee_histogram=histogram,
    )


def decode_mempool_txs(data: Payload, now: Optional[float] = None) -> List[MempoolTx]:
    """
    Decode a pending-transaction listing into visualization items.

    Items carry either an explicit ``fee_rate`` or enough (fee, vsize/weight)
    to derive one; items with neither are skipped.
    """
    now = time.time() if now is None else now
    items = _expect(parse_json(data), "list", "")
    result = []
    for i, item in enumerate(items):
        path = _index("", i)
        item = _expect(item, "dict", path)
        txid = _required(item, "txid", "str", path)
        weight = _optional(item, "weight", "int", path, 0)
        vsize = _optional(item, "vsize", "float", path, 0.0)
        if not vsize and weight:
            vsize = weight / WEIGHT_TO_VSIZE_RATIO
        if not weight and vsize:
            weight = _rounded(vsize * WEIGHT_TO_VSIZE_RATIO, _join(path, "vsize"))

        raw_fee = _optional(item, "fee", "float", path)
        explicit_rate = _optional(item, "fee_rate", "float", path)
        if explicit_rate is None:
            explicit_rate = _optional(item, "feeRate", "float", path)

        if raw_fee is not None:
            fee_sats = fee_to_satoshis(raw_fee)
        elif explicit_rate is not None:
            fee_sats = _rounded(explicit_rate * vsize, _join(path, "fee_rate"))
        else:
            logger.debug(f"Skipping mempool item {txid}: no fee information")
            continue

        rate = explicit_rate if explicit_rate is not None else fee_rate(fee_sats, vsize)
        if explicit_rate is None and not vsize:
            logger.debug(f"Skipping mempool item {txid}: no size information")
            continue

        value = _optional(item, "value", "float", path, 0.0)
        result.append(MempoolTx(
            txid=txid,
            fee_rate=rate,
            weight=int(weight),
            vsize=float(vsize),
            fee_sats=fee_sats,
            amount_btc=value / SATOSHIS_PER_BTC,
            first_seen=float(_optional(item, "firstSeen", "int", path, now)),
        ))
    return result


# ---------- Blocks ----------

def decode_block(obj: Any, path: str = "") -> Block:
    """Decode one block object (from /block/{hash} or an element of /v1/blocks)."""
    obj = _expect(parse_json(obj, path), "dict", path)
    timestamp = _required(obj, "timestamp", "int", path)
    return Block(
        id=_required(obj, "id", "str", path),
        height=_required(obj, "height", "int", path),
        version=_optional(obj, "version", "int", path, 0),
        timestamp=timestamp,
        tx_count=_required(obj, "tx_count", "int", path),
        size=_required(obj, "size", "int", path),
        weight=_required(obj, "weight", "int", path),
        merkle_root=_optional(obj, "merkle_root", "str", path, ""),
        previous_block_hash=_optional(obj, "previousblockhash", "str", path),
        difficulty=_optional(obj, "difficulty", "float", path, 0.0),
        nonce=_optional(obj, "nonce", "int", path, 0),
        bits=_optional(obj, "bits", "int", path, 0),
        mediantime=_optional(obj, "mediantime", "int", path, timestamp),
    )


def decode_blocks(data: Payload) -> List[Block]:
    """Decode /v1/blocks into a list of blocks."""
    return _decode_list(data, decode_block)


def decode_txids(data: Payload) -> List[str]:
    """Decode /block/{hash}/txids."""
    return _decode_list(data, lambda item, path: _expect(item, "str", path))


def decode_height(data: Payload) -> int:
    """Decode a plain-text block height (/blocks/tip/height)."""
    text = data.decode("utf-8", errors="replace") if isinstance(data, (bytes, bytearray)) else str(data)
    text = text.strip()
    try:
        height = int(text)
    except ValueError as e:
        raise DecodeError("$", f"expected block height, got {text[:32]!r}") from e
    if height < 0:
        raise DecodeError("$", "block height must be >= 0")
    return height


def decode_block_hash(data: Payload) -> str:
    """Decode a plain-text block hash (/block-height/{height})."""
    text = data.decode("utf-8", errors="replace") if isinstance(data, (bytes, bytearray)) else str(data)
    text = text.strip()
    if not _TXID_RE.match(text):
        raise DecodeError("$", f"expected 64 hex characters, got {text[:32]!r}")
    return text.lower()


# ---------- Transactions ----------

def _decode_status(obj: Any, path: str) -> TxStatus:
    obj = _expect(obj, "dict", path)
    block_height = _optional(obj, "block_height", "int", path)
    confirmed = _optional(obj, "confirmed", "bool", path)
    if confirmed is None:
        confirmed = block_height is not None
    return TxStatus(
        confirmed=confirmed,
        block_height=block_height,
        block_hash=_optional(obj, "block_hash", "str", path),
        block_time=_optional(obj, "block_time", "int", path),
    )


def _decode_prevout(obj: Any, path: str) -> PrevOut:
    obj = _expect(obj, "dict", path)
    return PrevOut(
        value=_required(obj, "value", "int", path),
        scriptpubkey=_optional(obj, "scriptpubkey", "str", path),
        scriptpubkey_asm=_optional(obj, "scriptpubkey_asm", "str", path),
        scriptpubkey_type=_optional(obj, "scriptpubkey_type", "str", path),
        scriptpubkey_address=_optional(obj, "scriptpubkey_address", "str", path),
    )


def _decode_input(obj: Any, path: str) -> TxInput:
    obj = _expect(obj, "dict", path)
    prevout = obj.get("prevout")
    witness = _optional(obj, "witness", "list", path)
    if witness is not None:
        witness = tuple(_expect(w, "str", _index(_join(path, "witness"), i)) for i, w in enumerate(witness))
    return TxInput(
        txid=_optional(obj, "txid", "str", path),
        vout=_optional(obj, "vout", "int", path),
        prevout=_decode_prevout(prevout, _join(path, "prevout")) if prevout is not None else None,
        scriptsig=_optional(obj, "scriptsig", "str", path),
        scriptsig_asm=_optional(obj, "scriptsig_asm", "str", path),
        witness=witness,
        is_coinbase=_optional(obj, "is_coinbase", "bool", path, False),
        sequence=_optional(obj, "sequence", "int", path),
    )


def _decode_output(obj: Any, path: str) -> TxOutput:
    obj = _expect(obj, "dict", path)
    return TxOutput(
        value=_required(obj, "value", "int", path),
        scriptpubkey=_optional(obj, "scriptpubkey", "str", path),
        scriptpubkey_asm=_optional(obj, "scriptpubkey_asm", "str", path),
        scriptpubkey_type=_optional(obj, "scriptpubkey_type", "str", path),
        scriptpubkey_address=_optional(obj, "scriptpubkey_address", "str", path),
    )


def placeholder_input() -> TxInput:
    return TxInput(
        prevout=PrevOut(value=PLACEHOLDER_AMOUNT_SATS, scriptpubkey_address=PLACEHOLDER_INPUT_LABEL),
        placeholder=True,
    )


def placeholder_output() -> TxOutput:
    return TxOutput(
        value=PLACEHOLDER_AMOUNT_SATS,
        scriptpubkey_address=PLACEHOLDER_OUTPUT_LABEL,
        placeholder=True,
    )


def _resolve_status(obj: Dict[str, Any], path: str) -> Tuple[str, Optional[TxStatus]]:
    raw = obj.get("status")
    if raw is None:
        return "Unconfirmed", None
    try:
        info = _decode_status(raw, _join(path, "status"))
    except DecodeError as e:
        logger.debug(f"Unreadable transaction status ({e}), marking as Unknown")
        return "Unknown", None
    return ("Confirmed" if info.confirmed else "Unconfirmed"), info


def decode_transaction(obj: Any, path: str = "") -> Transaction:
    """Decode one transaction object (from /tx/{txid} or a listing)."""
    obj = _expect(parse_json(obj, path), "dict", path)
    txid = _required(obj, "txid", "str", path)

    raw_fee = _optional(obj, "fee", "float", path, 0.0)
    vsize = _optional(obj, "vsize", "int", path, 0)
    size = _optional(obj, "size", "int", path, vsize)
    weight = _optional(obj, "weight", "int", path)
    timestamp = _optional(obj, "blocktime", "int", path)

    status, status_info = _resolve_status(obj, path)
    block_height = status_info.block_height if status_info else None
    if timestamp is None and status_info is not None:
        timestamp = status_info.block_time

    raw_vin = _optional(obj, "vin", "list", path, [])
    raw_vout = _optional(obj, "vout", "list", path, [])
    inputs = tuple(_decode_input(item, _index(_join(path, "vin"), i)) for i, item in enumerate(raw_vin))
    outputs = tuple(_decode_output(item, _index(_join(path, "vout"), i)) for i, item in enumerate(raw_vout))

    value = _optional(obj, "value", "int", path)
    if value is None:
        value = sum(o.value for o in outputs)

    if not inputs:
        inputs = (placeholder_input(),)
    if not outputs:
        outputs = (placeholder_output(),)

    # Pre-SegWit transactions
    if not weight:
        weight = size * WEIGHT_TO_VSIZE_RATIO if size > 0 else None
    if vsize == 0 and size > 0:
        vsize = size

    return Transaction(
        txid=txid,
        fee_sats=fee_to_satoshis(raw_fee),
        vsize=vsize,
        value=value,
        size=size,
        weight=weight,
        status=status,
        status_info=status_info,
        timestamp=timestamp,
        block_height=block_height,
        inputs=inputs,
        outputs=outputs,
    )


def decode_transactions(data: Payload) -> List[Transaction]:
    """Decode a JSON array of transactions."""
    return _decode_list(data, decode_transaction)


# ---------- Addresses ----------

def _decode_address_stats(obj: Any, path: str) -> AddressStats:
    obj = _expect(obj, "dict", path)
    return AddressStats(
        funded_txo_count=_required(obj, "funded_txo_count", "int", path),
        funded_txo_sum=_required(obj, "funded_txo_sum", "int", path),
        spent_txo_count=_required(obj, "spent_txo_count", "int", path),
        spent_txo_sum=_required(obj, "spent_txo_sum", "int", path),
        tx_count=_required(obj, "tx_count", "int", path),
    )


def decode_address_info(data: Payload) -> AddressInfo:
    """Decode /address/{addr}."""
    obj = _expect(parse_json(data), "dict", "")
    return AddressInfo(
        address=_required(obj, "address", "str", ""),
        chain_stats=_decode_address_stats(_required(obj, "chain_stats", "dict", ""), "chain_stats"),
        mempool_stats=_decode_address_stats(_required(obj, "mempool_stats", "dict", ""), "mempool_stats"),
    )


def _decode_utxo(obj: Any, path: str) -> AddressUtxo:
    obj = _expect(obj, "dict", path)
    return AddressUtxo(
        txid=_required(obj, "txid", "str", path),
        vout=_required(obj, "vout", "int", path),
        status=_decode_status(_required(obj, "status", "dict", path), _join(path, "status")),
        value=_required(obj, "value", "int", path),
    )


def decode_utxos(data: Payload) -> List[AddressUtxo]:
    """Decode /address/{addr}/utxo."""
    return _decode_list(data, _decode_utxo)


# ---------- Fees & prices ----------

def _decode_number_map(data: Payload) -> Dict[str, float]:
    obj = _expect(parse_json(data), "dict", "")
    return {key: _check(value, "float", key) for key, value in obj.items()}


def decode_recommended_fees(data: Payload) -> Dict[str, float]:
    """Decode /v1/fees/recommended (fastestFee, halfHourFee, hourFee, ...)."""
    return _decode_number_map(data)


def decode_prices(data: Payload) -> Dict[str, float]:
    """Decode /v1/prices. A positive USD entry is required."""
    obj = _expect(parse_json(data), "dict", "")
    usd = _required(obj, "USD", "float", "")
    if usd <= 0:
        raise DecodeError("USD", "price must be positive")
    return {key: float(value) for key, value in obj.items() if _matches(value, "float") and math.isfinite(value)}


def _decode_pending_block(obj: Any, path: str, index: int) -> PendingBlock:
    obj = _expect(obj, "dict", path)
    block_fee_rate = _optional(obj, "blockFeeRate", "float", path, float(index + 1))
    median_fee_rate = _optional(obj, "medianFeeRate", "float", path)
    if median_fee_rate is None:
        median_fee_rate = _optional(obj, "medianFee", "float", path, block_fee_rate)
    total_fees = _optional(obj, "totalFees", "float", path, (index + 1) * 1_000_000.0)
    tx_count = _optional(obj, "nTx", "int", path, 50 * (index + 1))

    fee_range = (median_fee_rate, block_fee_rate)
    raw_range = _optional(obj, "feeRange", "list", path)
    if raw_range:
        rates = [_check(r, "float", _index(_join(path, "feeRange"), i)) for i, r in enumerate(raw_range)]
        fee_range = (min(rates), max(rates))

    return PendingBlock(
        block_fee_rate=block_fee_rate,
        fee_range=fee_range,
        total_btc=total_fees / SATOSHIS_PER_BTC,
        tx_count=tx_count,
        minutes_until_mining=(index + 1) * 10,  # ~10 min per block
    )


def decode_pending_blocks(data: Payload) -> List[PendingBlock]:
    """Decode /v1/mining/blocks/fees into projected blocks, soonest first."""
    items = _expect(parse_json(data), "list", "")
    blocks = [_decode_pending_block(item, _index("", i), i) for i, item in enumerate(items)]
    return sorted(blocks, key=lambda b: b.minutes_until_mining)


def is_txid(value: str) -> bool:
    """True for a 64-character hex string."""
    return bool(_TXID_RE.match(value or ""))


def is_bitcoin_address(value: str) -> bool:
    """Loose shape check for legacy (1...), P2SH (3...) and bech32 (bc1...) addresses."""
    value = value or ""
    if value[:1] in ("1", "3") and 26 <= len(value) <= 34:
        return True
    if value.startswith("bc1") and 42 <= len(value) <= 62:
        return True
    return False
