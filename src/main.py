from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path
from time import perf_counter
from typing import Sequence

from config import load_bank_config, load_crypto_config
from importers.cathay_bank import CathayBankImporter
from importers.ethereum.importer import build_default_importer

CRYPTO_COMMAND = "crypto"
CATHAY_BANK_COMMAND = "cathay-bank"

logger = logging.getLogger(__name__)


def run_crypto(config_path: Path, output_dir: Path) -> Path:
    settings = load_crypto_config(config_path)
    importer = build_default_importer(settings)

    started = perf_counter()
    content = asyncio.run(importer.roast())
    logger.info("Roasted %d connections in %.2fs", len(settings.connections), perf_counter() - started)

    # Written only once the whole pipeline succeeded.
    output_dir.mkdir(parents=True, exist_ok=True)
    target = output_dir / f"{CRYPTO_COMMAND}.bean"
    target.write_text(content, encoding="utf-8")
    return target


def run_cathay_bank(config_path: Path, input_file: Path, output_dir: Path) -> Path:
    settings = load_bank_config(config_path)
    return CathayBankImporter(settings, input_file).roast(output_dir)


def main(argv: Sequence[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Roast wallets and bank statements into beancount files.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    crypto = subparsers.add_parser(CRYPTO_COMMAND, help="Import tracked Ethereum wallets via Etherscan.")
    crypto.add_argument("-c", "--config", type=Path, required=True)
    crypto.add_argument("-o", "--output-dir", type=Path, default=Path.cwd())

    bank = subparsers.add_parser(CATHAY_BANK_COMMAND, help="Import a Cathay United Bank CSV statement.")
    bank.add_argument("-c", "--config", type=Path, required=True)
    bank.add_argument("-i", "--input-file", type=Path, required=True)
    bank.add_argument("-o", "--output-dir", type=Path, default=Path.cwd())

    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")

    if args.command == CRYPTO_COMMAND:
        target = run_crypto(args.config, args.output_dir)
    else:
        target = run_cathay_bank(args.config, args.input_file, args.output_dir)
    logger.info("Wrote %s", target)


if __name__ == "__main__":
    main()
