"""Ledger client layer -- vault and strategy manager access via web3."""

from yieldbot.ledger.client import LedgerClient
from yieldbot.ledger.web3_client import Web3LedgerClient

__all__ = ["LedgerClient", "Web3LedgerClient"]
