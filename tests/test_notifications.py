"""Tests for notification triggers."""

from unittest.mock import Mock, patch
from mempoolscope.models import Block, MempoolStats
from mempoolscope.notifications import NotificationManager


def _block(height, synthetic=False):
    return Block(
        id="b" * 64, height=height, version=1, timestamp=0, tx_count=1, size=1, weight=4,
        merkle_root="", previous_block_hash=None, difficulty=0.0, nonce=0, bits=0, mediantime=0,
        synthetic=synthetic,
    )


def test_send_no_webhook():
    """Test that notifications are logged and handed to listeners when no webhook is set."""
    manager = NotificationManager(True, "")
    listener = Mock()
    manager.add_listener(listener)

    manager.send({"type": "test", "title": "Test", "body": "hello"})
    payload = listener.call_args[0][0]
    assert payload["type"] == "test"
    assert "ts" in payload


def test_disabled_manager_is_silent():
    manager = NotificationManager(False, "")
    listener = Mock()
    manager.add_listener(listener)

    assert not manager.check_new_block([_block(100)])
    assert not manager.check_congestion(MempoolStats(count=50_000, vsize=1, total_fee_sats=1))
    manager.send({"type": "test"})
    listener.assert_not_called()


def test_failing_listener_is_logged():
    manager = NotificationManager(True, "")
    manager.add_listener(Mock(side_effect=RuntimeError("boom")))
    second = Mock()
    manager.add_listener(second)

    manager.send({"type": "test"})
    second.assert_called_once()


def test_new_block_only_once_per_height():
    manager = NotificationManager(True, "")
    assert manager.check_new_block([_block(100), _block(99)])
    assert not manager.check_new_block([_block(100)])
    assert not manager.check_new_block([_block(99)])
    assert manager.check_new_block([_block(101)])
    assert manager.last_notified_height == 101


def test_new_block_ignores_synthetic():
    manager = NotificationManager(True, "")
    assert not manager.check_new_block([_block(900_000, synthetic=True)])
    assert not manager.check_new_block([])


def test_congestion_threshold():
    manager = NotificationManager(True, "")
    listener = Mock()
    manager.add_listener(listener)

    assert not manager.check_congestion(MempoolStats(count=15_000, vsize=1000, total_fee_sats=5000))
    assert manager.check_congestion(MempoolStats(count=15_001, vsize=1000, total_fee_sats=5000))
    payload = listener.call_args[0][0]
    assert payload["type"] == "mempool_congestion"
    assert payload["avg_fee_rate"] == 5.0


def test_fee_change_threshold():
    manager = NotificationManager(True, "")
    assert not manager.check_fee_change({"fastestFee": 10})  # first sample only records
    assert not manager.check_fee_change({"fastestFee": 11})  # +10%
    assert manager.check_fee_change({"fastestFee": 15})  # +36%
    assert manager.check_fee_change({"fastestFee": 5})  # -67%
    assert not manager.check_fee_change({"hourFee": 3})


@patch("mempoolscope.notifications.HTTPSConnection")
def test_webhook_post(mock_conn_cls):
    response = Mock(status=200, reason="OK")
    mock_conn_cls.return_value.getresponse.return_value = response

    manager = NotificationManager(True, "https://hooks.example.com/notify?key=abc")
    manager.send({"type": "test"})

    mock_conn_cls.assert_called_once_with("hooks.example.com", 443, timeout=10)
    method, path = mock_conn_cls.return_value.request.call_args[0][:2]
    assert method == "POST"
    assert path == "/notify?key=abc"
    mock_conn_cls.return_value.close.assert_called_once()


@patch("mempoolscope.notifications.HTTPConnection")
def test_webhook_failure_is_swallowed(mock_conn_cls):
    mock_conn_cls.return_value.request.side_effect = OSError("refused")

    manager = NotificationManager(True, "http://localhost:9999/hook")
    manager.send({"type": "test"})
    mock_conn_cls.return_value.close.assert_called_once()
