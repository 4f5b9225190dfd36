"""Importers turning external statements and wallets into beancount text."""

from importers.cathay_bank import CathayBankImporter
from importers.ethereum import EthereumImporter

__all__ = ["CathayBankImporter", "EthereumImporter"]
