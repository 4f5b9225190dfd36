from importers.ethereum.importer import EthereumImporter, build_default_importer

__all__ = ["EthereumImporter", "build_default_importer"]
