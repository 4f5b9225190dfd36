"""Domain models for the beancount roaster.

Ethereum records and their aggregated form, the beancount directive and
transaction model, and the directive rewrite rules. None of these modules
talk to the network.
"""

__all__ = [
    "beancount",
    "ethereum",
    "rules",
]
