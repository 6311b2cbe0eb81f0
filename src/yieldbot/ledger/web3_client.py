"""Vault and strategy manager client via web3 async.

Wraps AsyncWeb3 contract bindings with a local eth_account signer. Writes
follow build_transaction -> sign_transaction -> send_raw_transaction ->
wait_for_transaction_receipt. Only the ABI fragments the agent calls are
declared.
"""

from typing import Any

import aiohttp
from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import AsyncHTTPProvider, AsyncWeb3
from web3.exceptions import Web3Exception

from yieldbot.config import LedgerSettings
from yieldbot.exceptions import LedgerUnavailable, TransactionReverted
from yieldbot.ledger.client import LedgerClient
from yieldbot.logging import get_logger
from yieldbot.models import TransactionReceipt

logger = get_logger(__name__)

VAULT_ABI: list[dict[str, Any]] = [
    {
        "type": "function",
        "name": "userDeposits",
        "stateMutability": "view",
        "inputs": [{"name": "user", "type": "address"}],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "type": "function",
        "name": "allocateFunds",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "user", "type": "address"},
            {"name": "amount", "type": "uint256"},
            {"name": "strategy", "type": "address"},
        ],
        "outputs": [],
    },
]

STRATEGY_MANAGER_ABI: list[dict[str, Any]] = [
    {
        "type": "function",
        "name": "setUserStrategy",
        "stateMutability": "nonpayable",
        "inputs": [{"name": "strategy", "type": "address"}],
        "outputs": [],
    },
    {
        "type": "function",
        "name": "getUserStrategy",
        "stateMutability": "view",
        "inputs": [{"name": "user", "type": "address"}],
        "outputs": [{"name": "", "type": "address"}],
    },
]

_READ_ERRORS = (Web3Exception, aiohttp.ClientError, TimeoutError, ValueError)


class Web3LedgerClient(LedgerClient):
    """Concrete ledger client using web3 async.

    Args:
        settings: RPC endpoint, contract addresses, and signing key.
        w3: Pre-built AsyncWeb3 instance (defaults to an AsyncHTTPProvider on rpc_url).
        account: Signer (defaults to the account derived from settings.private_key).
    """

    def __init__(
        self,
        settings: LedgerSettings,
        w3: AsyncWeb3 | None = None,
        account: LocalAccount | None = None,
    ) -> None:
        self._settings = settings
        self._w3 = w3 or AsyncWeb3(AsyncHTTPProvider(settings.rpc_url))
        self._account = account or Account.from_key(settings.private_key.get_secret_value())
        self._vault = self._w3.eth.contract(
            address=AsyncWeb3.to_checksum_address(settings.vault_address),
            abi=VAULT_ABI,
        )
        self._strategy_manager = self._w3.eth.contract(
            address=AsyncWeb3.to_checksum_address(settings.strategy_manager_address),
            abi=STRATEGY_MANAGER_ABI,
        )

    @property
    def signer_address(self) -> str:
        return self._account.address

    async def close(self) -> None:
        disconnect = getattr(self._w3.provider, "disconnect", None)
        if disconnect is not None:
            await disconnect()
        logger.info("ledger_connection_closed")

    async def user_deposits(self, user_address: str) -> int:
        try:
            amount = await self._vault.functions.userDeposits(
                AsyncWeb3.to_checksum_address(user_address)
            ).call()
        except _READ_ERRORS as e:
            raise LedgerUnavailable(f"userDeposits({user_address}) failed: {e}") from e
        return int(amount)

    async def get_user_strategy(self, user_address: str) -> str:
        try:
            venue = await self._strategy_manager.functions.getUserStrategy(
                AsyncWeb3.to_checksum_address(user_address)
            ).call()
        except _READ_ERRORS as e:
            raise LedgerUnavailable(f"getUserStrategy({user_address}) failed: {e}") from e
        return str(venue)

    async def allocate_funds(
        self, user_address: str, amount: int, venue: str
    ) -> TransactionReceipt:
        call = self._vault.functions.allocateFunds(
            AsyncWeb3.to_checksum_address(user_address),
            amount,
            AsyncWeb3.to_checksum_address(venue),
        )
        return await self._transact(call, "allocateFunds")

    async def set_user_strategy(self, venue: str) -> TransactionReceipt:
        call = self._strategy_manager.functions.setUserStrategy(
            AsyncWeb3.to_checksum_address(venue)
        )
        return await self._transact(call, "setUserStrategy")

    async def _transact(self, call: Any, label: str) -> TransactionReceipt:
        """Sign, send, and wait for one confirmation of a contract call."""
        sender = self._account.address
        nonce = await self._w3.eth.get_transaction_count(sender, "pending")
        chain_id = await self._w3.eth.chain_id
        tx = await call.build_transaction(
            {"from": sender, "nonce": nonce, "chainId": chain_id}
        )
        signed = self._account.sign_transaction(tx)
        tx_hash = await self._w3.eth.send_raw_transaction(signed.raw_transaction)
        tx_hash_hex = AsyncWeb3.to_hex(tx_hash)
        logger.info("ledger_tx_sent", call=label, tx_hash=tx_hash_hex)

        raw_receipt = await self._w3.eth.wait_for_transaction_receipt(
            tx_hash, timeout=self._settings.confirmation_timeout
        )
        receipt = TransactionReceipt(
            tx_hash=tx_hash_hex,
            block_number=int(raw_receipt["blockNumber"]),
            status=int(raw_receipt["status"]),
            gas_used=int(raw_receipt.get("gasUsed", 0)),
        )
        if receipt.status != 1:
            raise TransactionReverted(f"{label} reverted in tx {tx_hash_hex}")

        logger.info(
            "ledger_tx_confirmed",
            call=label,
            tx_hash=tx_hash_hex,
            block_number=receipt.block_number,
            gas_used=receipt.gas_used,
        )
        return receipt
