from __future__ import annotations

import argparse
import logging
from pathlib import Path

from io_utils.symbol_directory import fetch_symbol_directory
from services.company import CompanyNameLookup
from services.config import load_config
from services.logging_setup import configure_logging
from services.pipeline import DashboardPipeline
from ui.main import run_app

logger = logging.getLogger(__name__)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Trading Assistant (Ichimoku / Prophet dashboard)")
    parser.add_argument("--config", type=Path, default=Path("config.yaml"), help="設定ファイル")
    parser.add_argument("--symbol", default=None, help="起動時に表示するティッカー")
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    configure_logging(args.config)
    config = load_config(args.config)
    if config.load_symbol_directory:
        directory = fetch_symbol_directory()
        logger.info("Symbol directory: %d entries", len(directory))
    else:
        directory = None
    pipeline = DashboardPipeline.from_config(config, company_lookup=CompanyNameLookup(directory))
    return run_app(pipeline, args.symbol)


if __name__ == "__main__":
    raise SystemExit(main())
