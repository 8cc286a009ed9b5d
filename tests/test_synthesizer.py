"""Tests for placeholder data generation."""

import random
import re
from mempoolscope.bands import count_by_band
from mempoolscope.models import FeeHistogramBucket, MempoolTx
from mempoolscope.synthesizer import ResourceKind, Synthesizer

HEX64 = re.compile(r"^[0-9a-f]{64}$")


def _synth(seed=42):
    return Synthesizer(rng=random.Random(seed), clock=lambda: 1_700_000_000.0)


def _real(rate, n=1):
    return [
        MempoolTx(txid=f"{i:064x}", fee_rate=rate, weight=800, vsize=200.0, fee_sats=int(rate * 200),
                  amount_btc=0.1, first_seen=0.0)
        for i in range(n)
    ]


def test_synthesized_ids_are_64_hex():
    synth = _synth()
    for item in synth.synthesize(ResourceKind.MEMPOOL_TXS, 30):
        assert HEX64.match(item.txid)
    assert HEX64.match(synth.synthesize(ResourceKind.BLOCKS)[0].id)
    assert HEX64.match(synth.synthesize(ResourceKind.TRANSACTIONS)[0].txid)


def test_synthesized_records_are_flagged():
    synth = _synth()
    assert all(item.synthetic for item in synth.synthesize(ResourceKind.MEMPOOL_TXS, 30))
    assert synth.synthesize(ResourceKind.BLOCKS)[0].synthetic
    assert synth.synthesize(ResourceKind.TRANSACTIONS)[0].synthetic
    assert synth.synthesize(ResourceKind.PENDING_BLOCKS, 3)[0].synthetic
    assert synth.synthesize(ResourceKind.BLOCKCHAIN_INFO)[0].synthetic


def test_synthesize_count_is_clamped():
    synth = _synth()
    assert len(synth.synthesize(ResourceKind.BLOCKS, 0)) == 1
    assert len(synth.synthesize(ResourceKind.TRANSACTIONS, 5)) == 5
    assert len(synth.synthesize(ResourceKind.MEMPOOL_TXS, 1000)) == 300


def test_synthesize_accepts_string_kind():
    assert len(_synth().synthesize("blocks", 2)) == 2


def test_synthesize_unknown_kind_falls_back_to_mempool_txs():
    items = _synth().synthesize("no-such-kind", 30)
    assert len(items) >= 30
    assert all(isinstance(item, MempoolTx) and item.synthetic for item in items)


def test_mempool_txs_cover_every_band():
    items = _synth().synthesize(ResourceKind.MEMPOOL_TXS, 1)
    counts = count_by_band(item.fee_rate for item in items)
    assert all(n >= 10 for n in counts.values())


def test_mempool_tx_sizes_are_positive():
    for item in _synth().synthesize(ResourceKind.MEMPOOL_TXS, 90):
        assert item.vsize > 0
        assert item.weight == item.vsize * 4
        assert item.fee_sats >= 0


def test_ensure_coverage_keeps_real_items():
    real = _real(12.0, 50)
    items = _synth().ensure_fee_band_coverage(real)
    assert items[:50] == real
    counts = count_by_band(item.fee_rate for item in items)
    assert counts["low"] >= 10
    assert counts["medium"] >= 10
    assert counts["high"] == 50


def test_ensure_coverage_caps_at_300():
    real = _real(12.0, 300)
    items = _synth().ensure_fee_band_coverage(real)
    assert len(items) == 300
    counts = count_by_band(item.fee_rate for item in items)
    assert all(n >= 10 for n in counts.values())
    # Trimmed from the most populated band
    assert counts["high"] == 280


def test_supplement_tops_up_short_listing():
    real = _real(5.0, 20)
    items = _synth().supplement(real)
    assert len(items) >= 100
    assert items[:20] == real
    assert all(item.synthetic for item in items[20:])


def test_from_histogram():
    histogram = [FeeHistogramBucket(1.5, 10_000), FeeHistogramBucket(5.0, 2_500), FeeHistogramBucket(9.0, 100)]
    items = _synth().from_histogram(histogram, total_count=1000)
    rates = [item.fee_rate for item in items]
    # 10000 / 500 = 20 items at 1.5, 5 at 5.0, at least one at 9.0
    assert rates.count(1.5) == 20
    assert rates.count(5.0) == 5
    assert rates.count(9.0) == 1
    counts = count_by_band(rates)
    assert all(n >= 10 for n in counts.values())
    assert len(items) <= 300


def test_from_histogram_respects_total_count():
    histogram = [FeeHistogramBucket(2.0, 50_000)]
    items = _synth().from_histogram(histogram, total_count=7)
    assert [item.fee_rate for item in items].count(2.0) == 7


def test_block_keeps_requested_id_and_height():
    block = _synth().block(height=800_000, block_id="f" * 64)
    assert block.id == "f" * 64
    assert block.height == 800_000
    assert block.size > 0
    assert block.weight > 0


def test_transaction_placeholders():
    tx = _synth().transaction(block_height=10)
    assert tx.status == "Confirmed"
    assert tx.inputs[0].placeholder
    assert tx.outputs[0].placeholder
    assert tx.vsize > 0


def test_pending_blocks_sorted():
    blocks = _synth().pending_blocks(5)
    assert [b.minutes_until_mining for b in blocks] == [10, 20, 30, 40, 50]
    for b in blocks:
        assert b.fee_range[0] <= b.fee_range[1]


def test_seeded_output_is_reproducible():
    a = _synth(7).synthesize(ResourceKind.MEMPOOL_TXS, 30)
    b = _synth(7).synthesize(ResourceKind.MEMPOOL_TXS, 30)
    assert a == b
