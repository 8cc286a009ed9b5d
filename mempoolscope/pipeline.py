"""Fetch, decode, and fall back: the data service behind every view."""

import math
import threading
import time
from typing import Callable, List, Optional
from .api import MempoolAPIClient
from .constants import BLOCK_TXS_PER_PAGE, DEFAULT_BTC_PRICE_USD, PRICE_UPDATE_INTERVAL_SECS
from .decoder import (
    decode_address_info,
    decode_block,
    decode_block_hash,
    decode_blocks,
    decode_height,
    decode_mempool_stats,
    decode_mempool_txs,
    decode_pending_blocks,
    decode_prices,
    decode_recommended_fees,
    decode_transaction,
    decode_transactions,
    decode_txids,
    decode_utxos,
    is_bitcoin_address,
    is_txid,
)
from .errors import MempoolError
from .logging import get_logger
from .models import (
    AddressBalance,
    AddressInfo,
    AddressUtxo,
    Block,
    BlockchainInfo,
    FetchResult,
    SearchResult,
    Transaction,
    TransactionPage,
)
from .notifications import NotificationManager
from .synthesizer import ResourceKind, Synthesizer

logger = get_logger(__name__)

SYNTHETIC_SOURCE = "synthetic"
# Guaranteed sample size when no live listing is available (30 per fee band)
SAMPLE_MEMPOOL_TXS = 90


class MempoolDataService:
    """Combines the fetcher, decoder and synthesizer into view-level operations.

    Aggregate operations (stats, block lists, fee listings) never fail: any
    fetch or decode error is logged and replaced with synthesized data, and the
    returned FetchResult carries ``synthetic=True``. Single-entity lookups
    (a transaction, an address) raise the underlying MempoolError instead.
    """

    def __init__(
        self,
        client: MempoolAPIClient,
        synthesizer: Optional[Synthesizer] = None,
        notifier: Optional[NotificationManager] = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize data service.

        Args:
            client: API client used for every fetch
            synthesizer: Placeholder generator for degraded results
            notifier: Optional notification triggers fed with live results
            clock: Time source (seconds since epoch)
        """
        self.client = client
        self.synthesizer = synthesizer or Synthesizer()
        self.notifier = notifier
        self._clock = clock
        self._lock = threading.Lock()
        self.tip_height_cache: Optional[int] = None
        self.btc_price_usd = DEFAULT_BTC_PRICE_USD
        self._price_updated_at: Optional[float] = None

    def _degraded(self, what: str, error: BaseException, data) -> FetchResult:
        logger.warning(f"Falling back to synthetic {what}: {error}")
        return FetchResult(data=data, synthetic=True, source=SYNTHETIC_SOURCE, error=error)

    # ---------- aggregate views ----------

    def mempool_stats(self) -> FetchResult:
        """Mempool count, vsize, total fee and fee histogram."""
        endpoint = "/mempool"
        try:
            stats = decode_mempool_stats(self.client.fetch_with_cache(endpoint))
        except MempoolError as e:
            return self._degraded("mempool stats", e, self.synthesizer.mempool_stats())

        if self.notifier is not None:
            self.notifier.check_congestion(stats)
        return FetchResult(data=stats, source=endpoint)

    def recent_blocks(self, limit: int = 10) -> FetchResult:
        """
        Latest blocks, newest first.

        Args:
            limit: Maximum number of blocks returned

        Returns:
            FetchResult with a list of Block; a single synthetic block on failure
        """
        endpoint = "/v1/blocks"
        try:
            blocks = decode_blocks(self.client.fetch_with_cache(endpoint))[:limit]
        except MempoolError as e:
            return self._degraded("blocks", e, self.synthesizer.synthesize(ResourceKind.BLOCKS, 1))

        if blocks and blocks[0].height > (self.tip_height_cache or 0):
            self.tip_height_cache = blocks[0].height
        if self.notifier is not None:
            self.notifier.check_new_block(blocks)
        return FetchResult(data=blocks, source=endpoint)

    def recommended_fees(self) -> FetchResult:
        endpoint = "/v1/fees/recommended"
        try:
            fees = decode_recommended_fees(self.client.fetch_with_cache(endpoint))
        except MempoolError as e:
            return self._degraded("recommended fees", e, self.synthesizer.recommended_fees())

        if self.notifier is not None:
            self.notifier.check_fee_change(fees)
        return FetchResult(data=fees, source=endpoint)

    def pending_blocks(self) -> FetchResult:
        """Projected next blocks from the mining fee aggregates."""
        endpoint = "/v1/mining/blocks/fees"
        try:
            blocks = decode_pending_blocks(self.client.fetch_with_cache(endpoint))
        except MempoolError as e:
            return self._degraded(
                "pending blocks", e, self.synthesizer.synthesize(ResourceKind.PENDING_BLOCKS, 10)
            )
        return FetchResult(data=blocks, source=endpoint)

    def mempool_transactions(self) -> FetchResult:
        """
        Pending transactions for the mempool visualization.

        Tries the recent-transaction listing first, then expands the fee
        histogram from /mempool, then falls back to a generated sample. Live
        listings shorter than 100 items are topped up with synthetic items;
        every result holds at least 10 items per fee band and at most 300.

        Returns:
            FetchResult with a list of MempoolTx
        """
        primary = "/mempool/recent"
        try:
            items = decode_mempool_txs(self.client.fetch_with_cache(primary), now=self._clock())
            items = self.synthesizer.supplement(items)
            return FetchResult(
                data=items,
                synthetic=any(item.synthetic for item in items),
                source=primary,
            )
        except MempoolError as e:
            logger.warning(f"Recent mempool listing unavailable, trying fee histogram: {e}")
            primary_error = e

        secondary = "/mempool"
        try:
            stats = decode_mempool_stats(self.client.fetch_with_cache(secondary))
        except MempoolError as e:
            return self._degraded(
                "mempool transactions", e, self.synthesizer.synthesize(ResourceKind.MEMPOOL_TXS, SAMPLE_MEMPOOL_TXS)
            )

        if not stats.fee_histogram:
            return self._degraded(
                "mempool transactions",
                primary_error,
                self.synthesizer.synthesize(ResourceKind.MEMPOOL_TXS, SAMPLE_MEMPOOL_TXS),
            )
        items = self.synthesizer.from_histogram(stats.fee_histogram, stats.count)
        logger.info(f"Built {len(items)} mempool items from fee histogram")
        return FetchResult(data=items, synthetic=True, source=secondary, error=primary_error)

    def recent_transactions(self, limit: int = 10) -> FetchResult:
        endpoint = "/mempool/recent"
        try:
            txs = decode_transactions(self.client.fetch_with_cache(endpoint))[:limit]
        except MempoolError as e:
            return self._degraded(
                "recent transactions", e, self.synthesizer.synthesize(ResourceKind.TRANSACTIONS, limit)
            )
        return FetchResult(data=txs, source=endpoint)

    def blockchain_info(self) -> FetchResult:
        """Tip height, tip hash and current difficulty."""
        try:
            height = self.tip_height()
            best_hash = decode_block_hash(self.client.fetch_text(f"/block-height/{height}"))
        except MempoolError as e:
            return self._degraded("blockchain info", e, self.synthesizer.blockchain_info())

        difficulty = 0.0
        try:
            data, _ = self.client.fetch(f"/block/{best_hash}")
            difficulty = decode_block(data).difficulty
        except MempoolError as e:
            logger.warning(f"Could not load difficulty for tip block {best_hash}: {e}")

        info = BlockchainInfo(height=height, difficulty=difficulty, best_block_hash=best_hash)
        return FetchResult(data=info, source="/blocks/tip/height")

    def block_transactions(self, block_hash: str, page: int = 1, per_page: int = BLOCK_TXS_PER_PAGE) -> FetchResult:
        """
        One page of a block's transactions.

        Transactions that fail to load are skipped. When the txid list cannot be
        loaded, or no transaction on the page loads, a synthetic page is returned.

        Args:
            block_hash: Block hash
            page: 1-based page number
            per_page: Transactions per page

        Returns:
            FetchResult with a TransactionPage

        Raises:
            ValueError: page or per_page below 1
        """
        if page < 1 or per_page < 1:
            raise ValueError(f"Invalid page {page} (per_page={per_page})")

        try:
            txids = self.block_txids(block_hash)
        except MempoolError as e:
            return self._degraded("block transactions", e, self._sample_page(block_hash, page, per_page))

        total_pages = max(1, math.ceil(len(txids) / per_page))
        page_txids = txids[(page - 1) * per_page:page * per_page]
        txs = []
        last_error = None
        for txid in page_txids:
            try:
                txs.append(self.transaction(txid))
            except MempoolError as e:
                logger.warning(f"Skipping transaction {txid} in block {block_hash}: {e}")
                last_error = e

        if page_txids and not txs:
            return self._degraded("block transactions", last_error, self._sample_page(block_hash, page, per_page))

        result = TransactionPage(
            block_hash=block_hash,
            page=page,
            total_pages=total_pages,
            total_count=len(txids),
            transactions=tuple(txs),
        )
        return FetchResult(data=result, source=f"/block/{block_hash}/txids", error=last_error)

    def _sample_page(self, block_hash: str, page: int, per_page: int) -> TransactionPage:
        txs = tuple(self.synthesizer.transaction(block_height=self.tip_height_cache) for _ in range(per_page))
        return TransactionPage(
            block_hash=block_hash,
            page=page,
            total_pages=page,
            total_count=len(txs),
            transactions=txs,
        )

    # ---------- single-entity lookups ----------

    def transaction(self, txid: str) -> Transaction:
        data, _ = self.client.fetch(f"/tx/{txid}")
        return decode_transaction(data)

    def address(self, address: str) -> AddressInfo:
        data, _ = self.client.fetch(f"/address/{address}")
        return decode_address_info(data)

    def address_utxos(self, address: str) -> List[AddressUtxo]:
        data, _ = self.client.fetch(f"/address/{address}/utxo")
        return decode_utxos(data)

    def address_transactions(self, address: str, limit: int = 10) -> List[Transaction]:
        data, _ = self.client.fetch(f"/address/{address}/txs/chain")
        return decode_transactions(data)[:limit]

    def address_balance(self, address: str) -> AddressBalance:
        """Confirmed and unconfirmed balance summed from the address UTXOs."""
        confirmed = 0
        unconfirmed = 0
        for utxo in self.address_utxos(address):
            if utxo.status.confirmed:
                confirmed += utxo.value
            else:
                unconfirmed += utxo.value
        return AddressBalance(confirmed=confirmed, unconfirmed=unconfirmed)

    def block_txids(self, block_hash: str) -> List[str]:
        data, _ = self.client.fetch(f"/block/{block_hash}/txids")
        return decode_txids(data)

    def tip_height(self) -> int:
        height = decode_height(self.client.fetch_text("/blocks/tip/height"))
        self.tip_height_cache = height
        return height

    def block(self, block_hash: str, height: Optional[int] = None) -> Block:
        """
        Load a block by hash, retrying by height when one is known.

        Args:
            block_hash: Block hash
            height: Block height used to re-resolve the hash if the first lookup fails

        Returns:
            Block; a synthetic placeholder when both lookups fail

        Raises:
            MempoolError: Lookup by hash failed and no height was given
        """
        try:
            data, _ = self.client.fetch(f"/block/{block_hash}")
            return decode_block(data)
        except MempoolError as e:
            if height is None:
                raise
            logger.warning(f"Block {block_hash} unavailable, retrying by height {height}: {e}")

        try:
            resolved = decode_block_hash(self.client.fetch_text(f"/block-height/{height}"))
            data, _ = self.client.fetch(f"/block/{resolved}")
            return decode_block(data)
        except MempoolError as e:
            logger.warning(f"Falling back to synthetic block at height {height}: {e}")
            return self.synthesizer.block(height=height, block_id=block_hash)

    # ---------- derived values ----------

    def bitcoin_price(self) -> float:
        """
        USD price of one bitcoin, refreshed at most every 5 minutes.

        The last known price (65000 until the first successful fetch) is kept
        when the price endpoint fails.
        """
        with self._lock:
            now = self._clock()
            if self._price_updated_at is not None and now - self._price_updated_at < PRICE_UPDATE_INTERVAL_SECS:
                return self.btc_price_usd
            self._price_updated_at = now

        try:
            data, _ = self.client.fetch("/v1/prices")
            price = decode_prices(data)["USD"]
        except MempoolError as e:
            logger.warning(f"Price update failed, keeping {self.btc_price_usd}: {e}")
            return self.btc_price_usd

        self.btc_price_usd = price
        logger.debug(f"Bitcoin price updated: {price}")
        return price

    def confirmations(self, block_height: Optional[int]) -> Optional[int]:
        """Confirmations for a block height, from the last known tip height."""
        tip = self.tip_height_cache
        if block_height is None or not tip or block_height > tip:
            return None
        return tip - block_height + 1

    def search(self, query: str) -> SearchResult:
        """
        Look up a transaction id or an address.

        Raises:
            ValueError: Query is neither a txid nor a Bitcoin address
            MempoolError: Lookup failed
        """
        query = (query or "").strip()
        if is_txid(query):
            return SearchResult(kind="transaction", query=query, transaction=self.transaction(query))
        if is_bitcoin_address(query):
            info = self.address(query)
            return SearchResult(
                kind="address",
                query=query,
                address_info=info,
                utxos=tuple(self.address_utxos(query)),
                transactions=tuple(self.address_transactions(query)),
            )
        raise ValueError("Enter a valid transaction ID or Bitcoin address")

