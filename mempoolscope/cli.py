"""Command-line interface for mempoolscope."""

import sys
import json
import argparse
import time
from dataclasses import asdict, is_dataclass
from .app import build_services
from .config import Config
from .constants import NETWORK_ENDPOINTS
from .errors import MempoolError
from .logging import setup_logging, get_logger
from .models import FetchResult
from .refresh import RefreshTarget

logger = get_logger(__name__)

RESOURCES = ["mempool", "blocks", "fees", "pending", "mempool-txs", "recent-txs", "info", "price"]

# Resources re-fetched for each refresh family in --watch mode
WATCH_RESOURCES = {
    RefreshTarget.MEMPOOL: ["mempool", "fees"],
    RefreshTarget.BLOCKS: ["blocks", "pending"],
    RefreshTarget.SEARCH: [],
}


def to_jsonable(obj):
    """Convert records (dataclasses, tuples) into JSON-serializable structures."""
    if is_dataclass(obj) and not isinstance(obj, type):
        return asdict(obj)
    if isinstance(obj, (list, tuple)):
        return [to_jsonable(item) for item in obj]
    if isinstance(obj, dict):
        return {key: to_jsonable(value) for key, value in obj.items()}
    return obj


def fetch_resource(data, name: str) -> dict:
    """
    Run one aggregate view and shape it for output.

    Args:
        data: MempoolDataService instance
        name: One of RESOURCES

    Returns:
        Dictionary with the resource name, advisory flags and data
    """
    if name == "price":
        return {"resource": name, "synthetic": False, "data": {"USD": data.bitcoin_price()}}

    handlers = {
        "mempool": data.mempool_stats,
        "blocks": data.recent_blocks,
        "fees": data.recommended_fees,
        "pending": data.pending_blocks,
        "mempool-txs": data.mempool_transactions,
        "recent-txs": data.recent_transactions,
        "info": data.blockchain_info,
    }
    result: FetchResult = handlers[name]()
    output = {"resource": name}
    output.update(result.to_dict())
    output["data"] = to_jsonable(result.data)
    return output


def lookup(data, args) -> dict:
    """Single-entity lookups (--tx, --address, --block). Errors propagate."""
    if args.tx:
        tx = data.transaction(args.tx)
        output = {"transaction": to_jsonable(tx), "fee_rate": tx.fee_rate}
        if tx.block_height is not None:
            try:
                data.tip_height()
            except MempoolError as e:
                logger.warning(f"Tip height unavailable, skipping confirmations: {e}")
            output["confirmations"] = data.confirmations(tx.block_height)
        return output
    if args.address:
        return {
            "address": to_jsonable(data.address(args.address)),
            "balance": to_jsonable(data.address_balance(args.address)),
            "transactions": to_jsonable(data.address_transactions(args.address)),
        }
    block = data.block(args.block, args.height)
    output = {"block": to_jsonable(block), "synthetic": block.synthetic}
    if not block.synthetic:
        page = data.block_transactions(block.id, args.page)
        output["transactions"] = page.to_dict()
        output["transactions"]["data"] = to_jsonable(page.data)
    return output


def emit(output: dict, verbose: bool) -> None:
    if verbose:
        print(json.dumps(output, indent=2, default=str))
    else:
        print(json.dumps(output, default=str))
    sys.stdout.flush()


def main():
    """Main CLI entrypoint."""
    parser = argparse.ArgumentParser(
        description="Query mempool.space for mempool, block, fee and address data; "
                    "falls back to cached or synthesized data when the API is unavailable."
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to config.yaml (default: search for config.yaml)"
    )
    parser.add_argument(
        "--resource",
        choices=RESOURCES,
        default="mempool",
        help="Aggregate view to print (default: mempool)"
    )
    parser.add_argument("--tx", type=str, help="Look up a transaction by txid")
    parser.add_argument("--address", type=str, help="Look up an address")
    parser.add_argument("--block", type=str, help="Look up a block by hash")
    parser.add_argument(
        "--height",
        type=int,
        default=None,
        help="Block height used as fallback for --block"
    )
    parser.add_argument(
        "--page",
        type=int,
        default=1,
        help="Transaction page for --block (default: 1)"
    )
    parser.add_argument(
        "--network",
        choices=list(NETWORK_ENDPOINTS),
        default=None,
        help="Override the configured network"
    )
    parser.add_argument(
        "--clear-cache",
        action="store_true",
        help="Remove all cached responses before running"
    )
    parser.add_argument(
        "--watch",
        action="store_true",
        help="Keep running and print refreshed views on the configured interval"
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Pretty-print JSON output"
    )

    args = parser.parse_args()

    try:
        config = Config(args.config)
    except FileNotFoundError as e:
        # Initialize basic logging before setup_logging for error reporting
        import logging
        logging.basicConfig(level=logging.ERROR, format='[%(levelname)s] %(message)s')
        logger.error(f"Config file not found: {e}")
        sys.exit(1)
    except Exception as e:
        import logging
        logging.basicConfig(level=logging.ERROR, format='[%(levelname)s] %(message)s')
        logger.error(f"Error loading config: {e}")
        sys.exit(1)

    setup_logging(config)

    services = build_services(config)
    if args.network:
        services.client.update_base_url(NETWORK_ENDPOINTS[args.network])
    data = services.data

    if args.clear_cache:
        services.cache.clear()

    try:
        if args.tx or args.address or args.block:
            try:
                emit(lookup(data, args), args.verbose)
            except (MempoolError, ValueError) as e:
                logger.error(f"Lookup failed: {e}")
                print(f"Error: {e}", file=sys.stderr)
                sys.exit(1)
            return

        if not args.watch:
            emit(fetch_resource(data, args.resource), args.verbose)
            return

        watched = {family: list(names) for family, names in WATCH_RESOURCES.items()}
        if not any(args.resource in names for names in watched.values()):
            watched[RefreshTarget.MEMPOOL].append(args.resource)

        def on_refresh(family: RefreshTarget) -> None:
            for name in watched[family]:
                emit(fetch_resource(data, name), args.verbose)

        services.refresh.subscribe(RefreshTarget.ALL, on_refresh)
        services.refresh.trigger_now()
        services.refresh.start(config.refresh_interval_secs)
        if not services.refresh.running:
            return

        try:
            while services.refresh.running:
                time.sleep(1)
        except KeyboardInterrupt:
            logger.info("Shutting down...")
    finally:
        services.close()


if __name__ == "__main__":
    main()
