from __future__ import annotations

import logging
from typing import Any

from web3 import Web3
from web3.exceptions import Web3Exception

from .amounts import Amount
from .errors import TransactionError

logger = logging.getLogger(__name__)

MAX_UINT256 = 2**256 - 1

COMET_WRITE_ABI = [
    {
        "name": "baseToken",
        "type": "function",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "address"}],
    },
    {
        "name": "supply",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [{"name": "asset", "type": "address"}, {"name": "amount", "type": "uint256"}],
        "outputs": [],
    },
    {
        "name": "withdraw",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [{"name": "asset", "type": "address"}, {"name": "amount", "type": "uint256"}],
        "outputs": [],
    },
]

ERC20_WRITE_ABI = [
    {
        "name": "allowance",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "owner", "type": "address"}, {"name": "spender", "type": "address"}],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "name": "approve",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [{"name": "spender", "type": "address"}, {"name": "amount", "type": "uint256"}],
        "outputs": [{"name": "", "type": "bool"}],
    },
]


class CometTransactor:
    """Signs and sends supply/withdraw transactions against a Comet market."""

    def __init__(
        self,
        rpc_url: str,
        market_address: str,
        private_key: str,
        chain_id: int = 1,
        timeout: float = 30.0,
        receipt_timeout: float = 300.0,
        w3: Web3 | None = None,
    ) -> None:
        self.w3 = w3 or Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": timeout}))
        try:
            self.account = self.w3.eth.account.from_key(private_key)
        except (ValueError, TypeError) as exc:
            raise TransactionError("Invalid private key") from exc
        self.chain_id = chain_id
        self.receipt_timeout = receipt_timeout
        self.market_address = Web3.to_checksum_address(market_address)
        self.comet = self.w3.eth.contract(address=self.market_address, abi=COMET_WRITE_ABI)

    def supply(self, amount: Amount) -> Any:
        logger.info("Supplying %s to Compound V3...", amount)
        try:
            base_token = self.comet.functions.baseToken().call()
            token = self.w3.eth.contract(address=base_token, abi=ERC20_WRITE_ABI)
            allowance = token.functions.allowance(self.account.address, self.market_address).call()
            if allowance < amount:
                logger.info("Approving Compound to spend tokens...")
                receipt = self._send(token.functions.approve(self.market_address, MAX_UINT256), "approve")
                logger.info("Approved! Transaction hash: %s", receipt["transactionHash"].hex())

            logger.info("Sending supply transaction...")
            receipt = self._send(self.comet.functions.supply(base_token, int(amount)), "supply")
        except (Web3Exception, ValueError) as exc:
            raise TransactionError(f"Supply failed: {exc}") from exc

        self._log_receipt("Supply", receipt)
        return receipt

    def withdraw(self, amount: Amount) -> Any:
        logger.info("Withdrawing %s from Compound V3...", amount)
        try:
            base_token = self.comet.functions.baseToken().call()
            logger.info("Sending withdraw transaction...")
            receipt = self._send(self.comet.functions.withdraw(base_token, int(amount)), "withdraw")
        except (Web3Exception, ValueError) as exc:
            raise TransactionError(f"Withdraw failed: {exc}") from exc

        self._log_receipt("Withdraw", receipt)
        return receipt

    def _send(self, call: Any, label: str) -> Any:
        tx = call.build_transaction(
            {
                "from": self.account.address,
                "nonce": self.w3.eth.get_transaction_count(self.account.address),
                "chainId": self.chain_id,
            }
        )
        signed = self.account.sign_transaction(tx)
        tx_hash = self.w3.eth.send_raw_transaction(signed.raw_transaction)
        receipt = self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self.receipt_timeout)
        if receipt["status"] != 1:
            raise TransactionError(f"{label} transaction {tx_hash.hex()} reverted")
        return receipt

    @staticmethod
    def _log_receipt(label: str, receipt: Any) -> None:
        logger.info("✓ %s successful!", label)
        logger.info("Transaction hash: %s", receipt["transactionHash"].hex())
        logger.info("Gas used: %s", receipt["gasUsed"])
