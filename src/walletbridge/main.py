"""Command-line entry point: run one widget session against the configured wallet.

Useful to check a provider configuration end to end:

    WALLETBRIDGE_PROVIDER=local python -m walletbridge GET_CHAIN_ID
    WALLETBRIDGE_RPC_URL=http://127.0.0.1:8545 python -m walletbridge GET_ACCOUNTS
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import Optional

from walletbridge.adapter import create_wallet_adapter
from walletbridge.client import WidgetClient
from walletbridge.config import get_settings
from walletbridge.errors import WalletBridgeError
from walletbridge.logging_config import configure_logging
from walletbridge.protocol.contracts import Action
from walletbridge.providers.factory import get_wallet_provider

logger = logging.getLogger(__name__)


async def run_session(actions: list[str], chain: str, params: Optional[dict]) -> int:
    """Exchange a secret, run each action in order and print the results."""
    settings = get_settings()
    provider = get_wallet_provider(settings)
    adapter = create_wallet_adapter(provider, settings=settings)
    client = WidgetClient(adapter.port2, max_message_age_ms=settings.max_message_age_ms)

    exit_code = 0
    async with adapter:
        client.start()
        try:
            await client.exchange_secret()
            for action in actions:
                try:
                    data = await client.request(action, chain=chain, params=params)
                    print(json.dumps({"action": action, "success": True, "data": data}))
                except WalletBridgeError as e:
                    print(json.dumps({"action": action, "success": False, "error": str(e)}))
                    exit_code = 1
        finally:
            await client.close()
            await provider.close()

    return exit_code


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Run wallet actions through an authenticated channel")
    parser.add_argument(
        "actions",
        nargs="*",
        default=[Action.GET_CHAIN_ID.value],
        help="Actions to run in order (default: GET_CHAIN_ID)",
    )
    parser.add_argument("--chain", default="ethereum", help="Chain name sent with each request")
    parser.add_argument("--params", default=None, help="JSON object sent as params")
    parser.add_argument("--debug", action="store_true", help="Verbose protocol tracing")
    parser.add_argument("--show-config", action="store_true", help="Print configuration and exit")
    args = parser.parse_args(argv)

    settings = get_settings()
    configure_logging(args.debug or settings.debug_mode)

    if args.show_config:
        print(json.dumps(settings.get_safe_dict(), indent=2))
        return 0

    params = json.loads(args.params) if args.params else None
    try:
        return asyncio.run(run_session(args.actions, args.chain, params))
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received")
        return 130


if __name__ == "__main__":
    sys.exit(main())
