"""Placeholder data generation for when live data cannot be fetched or decoded.

Synthesized records satisfy the same structural invariants as real ones
(64-hex txids, positive sizes, fee-band coverage) and carry ``synthetic=True``
so they can be told apart on inspection. Nothing here raises.
"""

import random
import time
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Sequence
from .bands import FEE_BANDS, FeeBand, classify_fee_band, count_by_band
from .constants import (
    AVG_TX_VSIZE,
    MAX_SYNTHETIC_ITEMS,
    MIN_ITEMS_PER_BAND,
    MIN_VISUALIZATION_ITEMS,
    SATOSHIS_PER_BTC,
    WEIGHT_TO_VSIZE_RATIO,
    PLACEHOLDER_AMOUNT_SATS,
)
from .decoder import placeholder_input
from .logging import get_logger
from .models import (
    Block,
    BlockchainInfo,
    FeeHistogramBucket,
    MempoolStats,
    MempoolTx,
    PendingBlock,
    Transaction,
    TxOutput,
    TxStatus,
)

logger = get_logger(__name__)

# Shape of the sample block used whenever block data is unavailable
SAMPLE_BLOCK_HEIGHT = 886_330
SAMPLE_DIFFICULTY = 110_568_428_300_952.69
SAMPLE_TX_COUNT = 1500
SAMPLE_BLOCK_SIZE = 1_250_000
SAMPLE_BLOCK_WEIGHT = 4_000_000


class ResourceKind(str, Enum):
    MEMPOOL_TXS = "mempool_txs"
    BLOCKS = "blocks"
    TRANSACTIONS = "transactions"
    PENDING_BLOCKS = "pending_blocks"
    MEMPOOL_STATS = "mempool_stats"
    RECOMMENDED_FEES = "recommended_fees"
    BLOCKCHAIN_INFO = "blockchain_info"


DEFAULT_KIND = ResourceKind.MEMPOOL_TXS


class Synthesizer:
    """Generates structurally valid placeholder records.

    Values come from an injectable ``random.Random`` so tests can seed it.
    """

    def __init__(self, rng: Optional[random.Random] = None, clock: Callable[[], float] = time.time):
        self.rng = rng or random.Random()
        self._clock = clock

    # ---------- identifiers ----------

    def random_hex(self, length: int = 64) -> str:
        return "".join(self.rng.choice("0123456789abcdef") for _ in range(length))

    # ---------- dispatch ----------

    def synthesize(self, kind, count: int = 1) -> List:
        """
        Produce ``count`` placeholder records of a resource kind.

        Counts are clamped to [1, 300]. Fee-bucketed kinds (mempool_txs) are
        topped up to at least 10 items per fee band.

        Args:
            kind: ResourceKind (or its string value); unknown kinds fall back
                to mempool_txs
            count: Requested number of records

        Returns:
            Non-empty list of records
        """
        try:
            kind = ResourceKind(kind)
        except ValueError:
            logger.warning(f"Unknown resource kind {kind!r}, synthesizing {DEFAULT_KIND.value}")
            kind = DEFAULT_KIND
        count = max(1, min(int(count), MAX_SYNTHETIC_ITEMS))
        logger.debug(f"Synthesizing {count} {kind.value} record(s)")

        if kind == ResourceKind.MEMPOOL_TXS:
            return self.mempool_txs(count)
        if kind == ResourceKind.BLOCKS:
            return [self.block(height=SAMPLE_BLOCK_HEIGHT - i) for i in range(count)]
        if kind == ResourceKind.TRANSACTIONS:
            return [self.transaction() for _ in range(count)]
        if kind == ResourceKind.PENDING_BLOCKS:
            return self.pending_blocks(count)
        if kind == ResourceKind.MEMPOOL_STATS:
            return [self.mempool_stats() for _ in range(count)]
        if kind == ResourceKind.RECOMMENDED_FEES:
            return [self.recommended_fees() for _ in range(count)]
        return [self.blockchain_info() for _ in range(count)]

    # ---------- mempool visualization ----------

    def mempool_tx(self, min_rate: float, max_rate: float, rate: Optional[float] = None) -> MempoolTx:
        """One synthetic pending transaction with a fee rate in [min_rate, max_rate]."""
        if rate is None:
            rate = self.rng.uniform(min_rate, max_rate)
        weight = self.rng.randint(2000, 8000)
        vsize = weight / WEIGHT_TO_VSIZE_RATIO
        return MempoolTx(
            txid=self.random_hex(64),
            fee_rate=rate,
            weight=weight,
            vsize=vsize,
            fee_sats=int(rate * vsize),
            amount_btc=self.rng.uniform(0.001, 1.0),
            first_seen=self._clock() - self.rng.uniform(60, 7200),
            synthetic=True,
        )

    def in_band(self, band: FeeBand, count: int) -> List[MempoolTx]:
        return [self.mempool_tx(band.gen_min_satvb, band.gen_max_satvb) for _ in range(max(0, count))]

    def mempool_txs(self, count: int) -> List[MempoolTx]:
        """Evenly spread items over the fee bands, at least 10 per band."""
        count = max(count, MIN_ITEMS_PER_BAND * len(FEE_BANDS))
        count = min(count, MAX_SYNTHETIC_ITEMS)
        per_band = count // len(FEE_BANDS)
        items = []
        for i, band in enumerate(FEE_BANDS):
            n = per_band if i < len(FEE_BANDS) - 1 else count - per_band * (len(FEE_BANDS) - 1)
            items.extend(self.in_band(band, n))
        return items

    def supplement(self, items: Sequence[MempoolTx], minimum: int = MIN_VISUALIZATION_ITEMS) -> List[MempoolTx]:
        """Top up a short real listing with synthetic items spread evenly over the bands."""
        result = list(items)[:MAX_SYNTHETIC_ITEMS]
        missing = minimum - len(result)
        if missing > 0:
            per_band = missing // len(FEE_BANDS)
            for i, band in enumerate(FEE_BANDS):
                n = per_band if i < len(FEE_BANDS) - 1 else missing - per_band * (len(FEE_BANDS) - 1)
                result.extend(self.in_band(band, n))
        return self.ensure_fee_band_coverage(result)

    def ensure_fee_band_coverage(self, items: Iterable[MempoolTx]) -> List[MempoolTx]:
        """
        Guarantee at least 10 items in each fee band without discarding real items,
        then trim back to the 300-item cap from the most populated band.
        """
        result = list(items)
        counts = count_by_band(item.fee_rate for item in result)
        for band in FEE_BANDS:
            deficit = MIN_ITEMS_PER_BAND - counts[band.name]
            if deficit > 0:
                result.extend(self.in_band(band, deficit))
        return self._trim_to_cap(result)

    def _trim_to_cap(self, items: List[MempoolTx]) -> List[MempoolTx]:
        excess = len(items) - MAX_SYNTHETIC_ITEMS
        if excess <= 0:
            return items
        counts = count_by_band(item.fee_rate for item in items)
        drop = {band.name: 0 for band in FEE_BANDS}
        for _ in range(excess):
            fullest = max(counts, key=lambda name: counts[name])
            counts[fullest] -= 1
            drop[fullest] += 1
        # Drop from the tail of each band so earlier (real) items survive
        kept = []
        for item in reversed(items):
            name = classify_fee_band(item.fee_rate).name
            if drop[name] > 0:
                drop[name] -= 1
                continue
            kept.append(item)
        kept.reverse()
        return kept

    def from_histogram(self, histogram: Sequence[FeeHistogramBucket], total_count: int) -> List[MempoolTx]:
        """
        Expand a fee histogram into visualization items.

        Each bucket contributes about vsize / 500 items (at least one) at its
        fee rate, up to min(total_count, 300) items overall.
        """
        remaining = min(max(total_count, 0), MAX_SYNTHETIC_ITEMS)
        items = []
        for bucket in histogram:
            if remaining <= 0:
                break
            estimated = max(1, int(bucket.vsize) // AVG_TX_VSIZE)
            n = min(estimated, remaining)
            remaining -= n
            items.extend(self.mempool_tx(bucket.fee_rate, bucket.fee_rate, rate=bucket.fee_rate) for _ in range(n))
        return self.ensure_fee_band_coverage(items)

    # ---------- blocks & transactions ----------

    def block(self, height: int = SAMPLE_BLOCK_HEIGHT, block_id: Optional[str] = None) -> Block:
        now = int(self._clock())
        return Block(
            id=block_id or self.random_hex(64),
            height=height,
            version=1,
            timestamp=now - 600,
            tx_count=SAMPLE_TX_COUNT,
            size=SAMPLE_BLOCK_SIZE,
            weight=SAMPLE_BLOCK_WEIGHT,
            merkle_root=self.random_hex(64),
            previous_block_hash=self.random_hex(64),
            difficulty=SAMPLE_DIFFICULTY,
            nonce=self.rng.randint(0, 2**32 - 1),
            bits=386_089_497,
            mediantime=now - 650,
            synthetic=True,
        )

    def transaction(self, block_height: Optional[int] = None, block_time: Optional[int] = None) -> Transaction:
        vsize = self.rng.randint(140, 1500)
        rate = self.rng.uniform(1.0, 20.0)
        value = self.rng.randint(10_000, SATOSHIS_PER_BTC)
        status_info = None
        status = "Unconfirmed"
        if block_height is not None:
            status_info = TxStatus(confirmed=True, block_height=block_height, block_time=block_time)
            status = "Confirmed"
        return Transaction(
            txid=self.random_hex(64),
            fee_sats=int(rate * vsize),
            vsize=vsize,
            value=value,
            size=vsize,
            weight=vsize * WEIGHT_TO_VSIZE_RATIO,
            status=status,
            status_info=status_info,
            timestamp=block_time,
            block_height=block_height,
            inputs=(placeholder_input(),),
            outputs=(TxOutput(value=max(value, PLACEHOLDER_AMOUNT_SATS), placeholder=True),),
            synthetic=True,
        )

    def pending_blocks(self, count: int = 10) -> List[PendingBlock]:
        blocks = []
        for i in range(1, count + 1):
            rate = self.rng.uniform(1.0, 15.0)
            blocks.append(PendingBlock(
                block_fee_rate=rate,
                fee_range=(rate, rate * self.rng.uniform(1.0, 5.0)),
                total_btc=self.rng.uniform(0.005, 0.05),
                tx_count=self.rng.randint(40, 2000),
                minutes_until_mining=i * 10,
                synthetic=True,
            ))
        return sorted(blocks, key=lambda b: b.minutes_until_mining)

    # ---------- aggregates ----------

    def mempool_stats(self) -> MempoolStats:
        return MempoolStats(
            count=15_254,
            vsize=21_450_789,
            total_fee_sats=123_456_000,
            fee_histogram=(
                FeeHistogramBucket(fee_rate=1.5, vsize=10_000),
                FeeHistogramBucket(fee_rate=3.0, vsize=20_000),
                FeeHistogramBucket(fee_rate=5.0, vsize=30_000),
            ),
        )

    def recommended_fees(self) -> Dict[str, float]:
        return {
            "fastestFee": 5.0,
            "halfHourFee": 4.0,
            "hourFee": 3.0,
            "economyFee": 2.0,
            "minimumFee": 1.0,
        }

    def blockchain_info(self) -> BlockchainInfo:
        return BlockchainInfo(
            height=SAMPLE_BLOCK_HEIGHT,
            difficulty=SAMPLE_DIFFICULTY,
            best_block_hash=self.random_hex(64),
            synthetic=True,
        )
