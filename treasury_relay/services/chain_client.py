"""
Treasury-side chain access used by the withdrawal relay.

ChainClient is the contract the relay depends on; Web3ChainClient implements it
for EVM chains with a locally held treasury key.
"""
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from web3 import Web3
from web3.exceptions import TimeExhausted, TransactionNotFound, Web3RPCError

from treasury_relay.config import settings
from treasury_relay.utils.constants import NATIVE_TRANSFER_GAS
from treasury_relay.utils.exceptions import (
    ChainTransferError,
    ChainTransferTimeoutError,
    TreasuryNotConfiguredError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConfirmationResult:
    success: bool
    block_number: Optional[int] = None


class ChainClient(ABC):
    """Capabilities the relay needs from the chain."""

    treasury_address: str = ""

    @abstractmethod
    def send_transfer(self, to_address: str, amount: Decimal) -> str:
        """Sign and broadcast a native transfer from the treasury. Returns the tx hash."""
        ...

    @abstractmethod
    def wait_for_confirmation(self, tx_hash: str, timeout: Optional[float] = None) -> ConfirmationResult:
        """
        Block until the transaction is mined.

        Raises ChainTransferTimeoutError when the outcome is still unknown
        after timeout seconds.
        """
        ...

    @abstractmethod
    def is_valid_address(self, value: str) -> bool:
        ...

    @abstractmethod
    def get_treasury_balance(self) -> Decimal:
        ...


class Web3ChainClient(ChainClient):
    def __init__(
        self,
        rpc_url: str,
        private_key: str,
        chain_id: Optional[int] = None,
        request_timeout: float = 10.0,
        poll_interval: float = 1.0,
    ):
        self.w3 = Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": request_timeout}))
        self.account = self.w3.eth.account.from_key(private_key)
        self.treasury_address = self.account.address
        self._chain_id = chain_id
        self._poll_interval = poll_interval
        # nonce allocation must not interleave between threads
        self._nonce_lock = threading.Lock()

    @property
    def chain_id(self) -> int:
        if self._chain_id is None:
            self._chain_id = self.w3.eth.chain_id
        return self._chain_id

    def is_valid_address(self, value: str) -> bool:
        return bool(value) and Web3.is_address(value.strip())

    def get_treasury_balance(self) -> Decimal:
        wei = self.w3.eth.get_balance(self.treasury_address)
        return Decimal(Web3.from_wei(wei, "ether"))

    def send_transfer(self, to_address: str, amount: Decimal) -> str:
        if not self.is_valid_address(to_address):
            raise ChainTransferError(f"Invalid destination address {to_address}")

        value = Web3.to_wei(amount, "ether")
        to_checksum = Web3.to_checksum_address(to_address.strip())

        with self._nonce_lock:
            try:
                gas_price = self.w3.eth.gas_price
                treasury_wei = self.w3.eth.get_balance(self.treasury_address)
                if treasury_wei < value + gas_price * NATIVE_TRANSFER_GAS:
                    raise ChainTransferError("Treasury balance cannot cover transfer and gas")

                tx = {
                    "chainId": self.chain_id,
                    "nonce": self.w3.eth.get_transaction_count(self.treasury_address, "pending"),
                    "to": to_checksum,
                    "value": value,
                    "gas": NATIVE_TRANSFER_GAS,
                    "gasPrice": gas_price,
                }
                signed = self.account.sign_transaction(tx)
            except ChainTransferError:
                raise
            except Exception as e:
                # nothing was broadcast yet
                logger.warning("Treasury transfer to %s could not be prepared: %s", to_checksum, e)
                raise ChainTransferError(f"Transfer could not be prepared: {e}")

            tx_hex = Web3.to_hex(signed.hash)
            try:
                self.w3.eth.send_raw_transaction(signed.raw_transaction)
            except Web3RPCError as e:
                logger.warning("Treasury transfer %s rejected by node: %s", tx_hex, e)
                raise ChainTransferError(f"Transfer rejected: {e}", tx_hash=tx_hex)
            except Exception as e:
                # the node may have accepted it before the connection failed
                logger.error("Treasury transfer %s broadcast status unknown: %s", tx_hex, e)
                raise ChainTransferTimeoutError(
                    f"Broadcast of {tx_hex} did not complete: {e}", tx_hash=tx_hex
                )

        logger.info("Submitted treasury transfer %s of %s to %s", tx_hex, amount, to_checksum)
        return tx_hex

    def wait_for_confirmation(self, tx_hash: str, timeout: Optional[float] = None) -> ConfirmationResult:
        timeout = timeout if timeout is not None else settings.CHAIN_CONFIRMATION_TIMEOUT
        try:
            receipt = self.w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=timeout, poll_latency=self._poll_interval
            )
        except (TimeExhausted, TransactionNotFound):
            raise ChainTransferTimeoutError(
                f"Transaction {tx_hash} not confirmed after {timeout}s", tx_hash=tx_hash
            )
        except Exception as e:
            # the transaction may still land; its status is unknown
            raise ChainTransferTimeoutError(
                f"Could not read receipt for {tx_hash}: {e}", tx_hash=tx_hash
            )
        return ConfirmationResult(
            success=receipt["status"] == 1,
            block_number=receipt.get("blockNumber"),
        )


_client: Optional[ChainClient] = None
_client_lock = threading.Lock()


def get_chain_client() -> ChainClient:
    """Build the treasury client on first use. FastAPI dependency."""
    global _client
    if not settings.treasury_configured:
        raise TreasuryNotConfiguredError(
            "Withdrawal relayer is not configured. Set TREASURY_PRIVATE_KEY and CHAIN_RPC_URL."
        )
    with _client_lock:
        if _client is None:
            _client = Web3ChainClient(
                rpc_url=settings.CHAIN_RPC_URL,
                private_key=settings.TREASURY_PRIVATE_KEY,
                chain_id=settings.CHAIN_ID,
                poll_interval=settings.CHAIN_POLL_INTERVAL,
            )
    return _client
