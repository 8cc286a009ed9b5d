"""Domain records produced by the data pipeline.

All records are immutable once constructed. Amounts are satoshis unless the
field name says otherwise.
"""

import math
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple
from .constants import SATOSHIS_PER_BTC


def fee_rate(fee_sats: float, vsize: float) -> float:
    """
    Fee rate in sat/vB, guarded against division by zero and non-finite values.

    Args:
        fee_sats: Fee in satoshis
        vsize: Virtual size in vB

    Returns:
        fee_sats / vsize, or 0.0 when vsize <= 0 or the result is not finite
    """
    if not vsize or vsize <= 0:
        return 0.0
    rate = fee_sats / vsize
    if not math.isfinite(rate):
        return 0.0
    return rate


@dataclass(frozen=True)
class FeeHistogramBucket:
    fee_rate: float  # sat/vB
    vsize: int  # vB at this fee rate


@dataclass(frozen=True)
class MempoolStats:
    """Snapshot of the pending transaction pool."""
    count: int
    vsize: int
    total_fee_sats: int
    fee_histogram: Optional[Tuple[FeeHistogramBucket, ...]] = None

    @property
    def mempool_size(self) -> int:
        return self.count

    @property
    def total_fee_in_satoshis(self) -> int:
        return self.total_fee_sats

    @property
    def average_fee_rate(self) -> float:
        return fee_rate(self.total_fee_sats, self.vsize)


@dataclass(frozen=True)
class Block:
    id: str  # block hash
    height: int
    version: int
    timestamp: int
    tx_count: int
    size: int
    weight: int
    merkle_root: str
    previous_block_hash: Optional[str]
    difficulty: float
    nonce: int
    bits: int
    mediantime: int
    synthetic: bool = False


@dataclass(frozen=True)
class TxStatus:
    confirmed: bool
    block_height: Optional[int] = None
    block_hash: Optional[str] = None
    block_time: Optional[int] = None


@dataclass(frozen=True)
class PrevOut:
    value: int
    scriptpubkey: Optional[str] = None
    scriptpubkey_asm: Optional[str] = None
    scriptpubkey_type: Optional[str] = None
    scriptpubkey_address: Optional[str] = None


@dataclass(frozen=True)
class TxInput:
    txid: Optional[str] = None
    vout: Optional[int] = None
    prevout: Optional[PrevOut] = None
    scriptsig: Optional[str] = None
    scriptsig_asm: Optional[str] = None
    witness: Optional[Tuple[str, ...]] = None
    is_coinbase: bool = False
    sequence: Optional[int] = None
    placeholder: bool = False

    @property
    def value(self) -> int:
        return self.prevout.value if self.prevout else 0

    @property
    def address(self) -> Optional[str]:
        return self.prevout.scriptpubkey_address if self.prevout else None


@dataclass(frozen=True)
class TxOutput:
    value: int
    scriptpubkey: Optional[str] = None
    scriptpubkey_asm: Optional[str] = None
    scriptpubkey_type: Optional[str] = None
    scriptpubkey_address: Optional[str] = None
    placeholder: bool = False

    @property
    def address(self) -> Optional[str]:
        return self.scriptpubkey_address


@dataclass(frozen=True)
class Transaction:
    """A Bitcoin transaction with normalized fee, size and status fields."""
    txid: str
    fee_sats: int
    vsize: int
    value: int
    size: int
    weight: Optional[int] = None
    status: str = "Unknown"
    status_info: Optional[TxStatus] = None
    timestamp: Optional[int] = None
    block_height: Optional[int] = None
    inputs: Tuple[TxInput, ...] = ()
    outputs: Tuple[TxOutput, ...] = ()
    synthetic: bool = False

    @property
    def fee_rate(self) -> float:
        return fee_rate(self.fee_sats, self.vsize)

    @property
    def fee_btc(self) -> float:
        return self.fee_sats / SATOSHIS_PER_BTC

    @property
    def total_input_value(self) -> int:
        return sum(i.value for i in self.inputs)

    @property
    def total_output_value(self) -> int:
        return sum(o.value for o in self.outputs)


@dataclass(frozen=True)
class AddressStats:
    funded_txo_count: int
    funded_txo_sum: int
    spent_txo_count: int
    spent_txo_sum: int
    tx_count: int

    @property
    def balance(self) -> int:
        return self.funded_txo_sum - self.spent_txo_sum


@dataclass(frozen=True)
class AddressInfo:
    address: str
    chain_stats: AddressStats
    mempool_stats: AddressStats

    @property
    def chain_balance(self) -> int:
        return self.chain_stats.balance

    @property
    def mempool_balance(self) -> int:
        return self.mempool_stats.balance

    @property
    def total_balance(self) -> int:
        return self.chain_balance + self.mempool_balance

    @property
    def tx_count(self) -> int:
        return self.chain_stats.tx_count + self.mempool_stats.tx_count


@dataclass(frozen=True)
class AddressUtxo:
    txid: str
    vout: int
    status: TxStatus
    value: int


@dataclass(frozen=True)
class AddressBalance:
    confirmed: int
    unconfirmed: int

    @property
    def total(self) -> int:
        return self.confirmed + self.unconfirmed

    @property
    def confirmed_btc(self) -> float:
        return self.confirmed / SATOSHIS_PER_BTC

    @property
    def unconfirmed_btc(self) -> float:
        return self.unconfirmed / SATOSHIS_PER_BTC

    @property
    def total_btc(self) -> float:
        return self.total / SATOSHIS_PER_BTC


@dataclass(frozen=True)
class BlockchainInfo:
    height: int
    difficulty: float
    best_block_hash: str
    synthetic: bool = False


@dataclass(frozen=True)
class PendingBlock:
    """Projected next block built from the mining fee aggregates."""
    block_fee_rate: float  # average sat/vB
    fee_range: Tuple[float, float]  # (min, max) sat/vB
    total_btc: float
    tx_count: int
    minutes_until_mining: int
    synthetic: bool = False


@dataclass(frozen=True)
class MempoolTx:
    """One pending transaction as shown by the mempool visualization."""
    txid: str
    fee_rate: float  # sat/vB
    weight: int
    vsize: float
    fee_sats: int
    amount_btc: float
    first_seen: float  # unix seconds
    synthetic: bool = False


@dataclass(frozen=True)
class FetchResult:
    """Pipeline outcome: the data plus an advisory flag when it was synthesized."""
    data: Any
    synthetic: bool = False
    source: str = ""
    error: Optional[BaseException] = field(default=None, compare=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "synthetic": self.synthetic,
            "source": self.source,
            "error": str(self.error) if self.error else None,
        }


@dataclass(frozen=True)
class TransactionPage:
    """One page of a block's transactions."""
    block_hash: str
    page: int
    total_pages: int
    total_count: int
    transactions: Tuple[Transaction, ...]


@dataclass(frozen=True)
class SearchResult:
    kind: str  # "transaction" or "address"
    query: str
    transaction: Optional[Transaction] = None
    address_info: Optional[AddressInfo] = None
    utxos: Tuple[AddressUtxo, ...] = ()
    transactions: Tuple[Transaction, ...] = ()
