"""Wiring of the cache, client, synthesizer, notifier and refresh timer."""

from dataclasses import dataclass
from .api import MempoolAPIClient
from .cache import CacheStore
from .config import Config
from .logging import get_logger
from .notifications import NotificationManager
from .pipeline import MempoolDataService
from .refresh import RefreshCoordinator
from .synthesizer import Synthesizer

logger = get_logger(__name__)


@dataclass
class Services:
    """Everything a front end needs, built once per process."""
    config: Config
    cache: CacheStore
    client: MempoolAPIClient
    synthesizer: Synthesizer
    notifier: NotificationManager
    data: MempoolDataService
    refresh: RefreshCoordinator

    def close(self) -> None:
        self.refresh.stop()
        self.client.close()


def build_services(config: Config) -> Services:
    """
    Build the service graph from configuration.

    Args:
        config: Loaded configuration

    Returns:
        Services with the refresh timer created but not started
    """
    cache = CacheStore(config.cache_dir, config.cache_duration_mins)
    client = MempoolAPIClient(
        base_url=config.base_url,
        cache=cache,
        connect_timeout=config.connect_timeout_secs,
        resource_timeout=config.resource_timeout_secs,
    )
    synthesizer = Synthesizer()
    notifier = NotificationManager(config.notifications_enabled, config.notify_webhook_url)
    data = MempoolDataService(client, synthesizer, notifier)
    logger.info(f"Using API at {client.base_url} (network: {config.network})")
    return Services(
        config=config,
        cache=cache,
        client=client,
        synthesizer=synthesizer,
        notifier=notifier,
        data=data,
        refresh=RefreshCoordinator(),
    )
