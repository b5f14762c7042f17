# chainsync/run.py
from __future__ import annotations

import asyncio

from chainsync.configuration.config import build_default_core_settings
from chainsync.core.structures.structures import UnknownContractForChain
from chainsync.core.wallet_controller import WalletController
from chainsync.integrations.wallet.local_provider import build_default_local_provider
from chainsync.logging.logger import get_logger, init_logging

log = get_logger(__name__)


async def _run() -> None:
    provider = build_default_local_provider()
    controller = await WalletController.connect(provider, build_default_core_settings())
    try:
        for asset in controller.catalog:
            log.info("[RUN][CATALOG] %s", asset)
        log.info("[RUN] Selected asset: %s", controller.selected_asset)

        info = await controller.read_token_info()
        if isinstance(info, UnknownContractForChain):
            log.info("[RUN] %s", info)
        else:
            log.info("[RUN] %s (%s) supply=%s balance=%s", info.label, info.symbol, info.total_supply,
                     info.user_balance)
    finally:
        await controller.close()


def main() -> None:
    init_logging()
    asyncio.run(_run())


if __name__ == "__main__":
    main()
