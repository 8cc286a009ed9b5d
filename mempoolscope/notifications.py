"""Notification triggers for new blocks, mempool congestion, and fee changes."""

import json
from datetime import datetime
from http.client import HTTPSConnection, HTTPConnection
from urllib.parse import urlparse
from typing import Callable, Dict, List, Optional
from .constants import CONGESTION_TX_THRESHOLD, DEFAULT_HTTP_TIMEOUT_SECS, FEE_CHANGE_ALERT_PCT
from .logging import get_logger
from .models import Block, MempoolStats

logger = get_logger(__name__)


class NotificationManager:
    """Decides when a pipeline result deserves a notification and hands it off.

    Payloads go to registered listeners and, when configured, are POSTed as
    JSON to a webhook. Delivery failures are logged and never raised.
    """

    def __init__(
        self,
        enabled: bool,
        webhook_url: str = "",
        congestion_threshold: int = CONGESTION_TX_THRESHOLD,
        fee_change_pct: float = FEE_CHANGE_ALERT_PCT,
    ):
        """
        Initialize notification manager.

        Args:
            enabled: Master switch; when False nothing is emitted
            webhook_url: Webhook URL for notifications (empty string to disable)
            congestion_threshold: Mempool tx count above which congestion is reported
            fee_change_pct: Minimum absolute % change of the fastest fee to report
        """
        self.enabled = enabled
        self.webhook_url = webhook_url
        self.congestion_threshold = congestion_threshold
        self.fee_change_pct = fee_change_pct
        self._listeners: List[Callable[[Dict], None]] = []
        self.last_notified_height = 0
        self.previous_fastest_fee: Optional[float] = None

    def add_listener(self, listener: Callable[[Dict], None]) -> None:
        self._listeners.append(listener)

    def send(self, payload: Dict) -> None:
        """Deliver a payload to listeners and the webhook."""
        if not self.enabled:
            return
        payload.setdefault("ts", datetime.utcnow().isoformat() + "Z")
        logger.info(f"{payload.get('title', payload.get('type'))}: {payload.get('body', '')}")
        for listener in list(self._listeners):
            try:
                listener(payload)
            except Exception as e:
                logger.error(f"Notification listener failed: {e}", exc_info=True)
        if self.webhook_url:
            self.post_webhook(payload)

    def post_webhook(self, payload: Dict) -> None:
        """
        Post payload to webhook URL.

        Args:
            payload: Dictionary to send as JSON
        """
        url = urlparse(self.webhook_url)
        conn_cls = HTTPSConnection if url.scheme == "https" else HTTPConnection
        port = url.port or (443 if url.scheme == "https" else 80)

        conn = conn_cls(url.hostname, port, timeout=DEFAULT_HTTP_TIMEOUT_SECS)
        path = url.path or "/"
        if url.query:
            path += "?" + url.query

        try:
            conn.request("POST", path, body=json.dumps(payload), headers={"Content-Type": "application/json"})
            resp = conn.getresponse()
            resp.read()
            if resp.status >= 400:
                logger.warning(f"Webhook returned status {resp.status}: {resp.reason}")
            else:
                logger.debug(f"Webhook posted successfully: {payload.get('type')}")
        except Exception as e:
            logger.error(f"Failed to post webhook: {e}", exc_info=True)
        finally:
            conn.close()

    def check_new_block(self, blocks: List[Block]) -> bool:
        """Notify when the newest block is higher than the last one notified."""
        if not self.enabled or not blocks:
            return False
        latest = blocks[0]
        if latest.synthetic or latest.height <= self.last_notified_height:
            return False
        self.last_notified_height = latest.height
        self.send({
            "type": "new_block",
            "title": "New Bitcoin Block",
            "body": f"Block #{latest.height} has been mined and added to the blockchain.",
            "height": latest.height,
        })
        return True

    def check_congestion(self, stats: MempoolStats) -> bool:
        """Notify when the mempool holds more transactions than the threshold."""
        if not self.enabled or stats.count <= self.congestion_threshold:
            return False
        avg_fee_rate = stats.average_fee_rate
        self.send({
            "type": "mempool_congestion",
            "title": "Mempool Congestion Alert",
            "body": (
                f"The mempool has {stats.count} transactions with average fee of "
                f"{avg_fee_rate:.1f} sat/vB."
            ),
            "tx_count": stats.count,
            "avg_fee_rate": round(avg_fee_rate, 2),
        })
        return True

    def check_fee_change(self, fees: Dict[str, float]) -> bool:
        """Notify when the fastest recommended fee moved by more than the threshold."""
        if not self.enabled:
            return False
        fastest = fees.get("fastestFee")
        if fastest is None:
            return False

        previous = self.previous_fastest_fee
        self.previous_fastest_fee = fastest
        if not previous or previous <= 0:
            return False

        change_pct = (fastest - previous) / previous * 100
        if abs(change_pct) <= self.fee_change_pct:
            return False

        direction = "increased" if change_pct >= 0 else "decreased"
        self.send({
            "type": "fee_rate_change",
            "title": "Bitcoin Fee Rate Update",
            "body": (
                f"Transaction fees have {direction} by {abs(change_pct):.1f}%. "
                f"Current fastest rate: {fastest:.1f} sat/vB."
            ),
            "fastest_fee": fastest,
            "change_pct": round(change_pct, 2),
        })
        return True
