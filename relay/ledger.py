# relay/ledger.py
"""
Ledger Client

Boundary between the relay and the FlightSuretyApp contract. The relay
only depends on LedgerClient; ContractLedger implements it over JSON-RPC
with web3's async API.

Transactions are sent from node-managed accounts (eth_sendTransaction),
the same way the truffle/ganache development setup works. Anything the
node or the contract refuses comes back as LedgerRejected.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import AsyncIterator, Optional

from web3 import AsyncWeb3
from web3.exceptions import ContractLogicError, Web3Exception

from relay.abi import load_abi
from relay.errors import LedgerRejected

log = logging.getLogger("relay.ledger")

GENESIS = "genesis"
LATEST = "latest"


@dataclass(frozen=True)
class StatusRequestEvent:
    index: int
    airline: str
    flight: str
    timestamp: int
    block_number: Optional[int] = None
    tx_hash: Optional[str] = None

    @property
    def flight_key(self):
        return (self.airline, self.flight, self.timestamp)


class LedgerClient:
    """Method/event surface of the contract consumed by the relay."""

    async def get_accounts(self) -> list[str]:
        raise NotImplementedError

    async def get_registration_fee(self) -> int:
        raise NotImplementedError

    async def register_oracle(self, identity: str, fee: int) -> None:
        raise NotImplementedError

    async def get_assigned_indexes(self, identity: str) -> tuple:
        raise NotImplementedError

    async def submit_status_response(self, identity, index, airline, flight, timestamp, status_code) -> None:
        raise NotImplementedError

    def status_requests(self, from_block) -> AsyncIterator[StatusRequestEvent]:
        raise NotImplementedError


# === web3 implementation ===

LEDGER_ERRORS = (Web3Exception, ValueError, OSError, asyncio.TimeoutError)


def _reason(exc) -> str:
    if isinstance(exc, ContractLogicError) and getattr(exc, "message", None):
        return exc.message
    return str(exc) or exc.__class__.__name__


class ContractLedger(LedgerClient):
    def __init__(
        self,
        rpc_url,
        app_address,
        abi=None,
        registration_gas=5_000_000,
        response_gas=500_000,
        gas_price=20_000_000,
        poll_interval=2.0,
        request_timeout=30,
    ):
        self.w3 = AsyncWeb3(
            AsyncWeb3.AsyncHTTPProvider(rpc_url, request_kwargs={"timeout": request_timeout})
        )
        self.contract = self.w3.eth.contract(
            address=AsyncWeb3.to_checksum_address(app_address),
            abi=abi or load_abi(),
        )
        self.registration_gas = registration_gas
        self.response_gas = response_gas
        self.gas_price = gas_price
        self.poll_interval = poll_interval

    async def get_accounts(self):
        try:
            return list(await self.w3.eth.accounts)
        except LEDGER_ERRORS as e:
            raise LedgerRejected(_reason(e)) from e

    async def get_registration_fee(self):
        try:
            return await self.contract.functions.REGISTRATION_FEE().call()
        except LEDGER_ERRORS as e:
            raise LedgerRejected(_reason(e)) from e

    async def _transact(self, build, tx):
        """Build the contract call with `build()` and send it as a transaction."""
        try:
            tx_hash = await build().transact(tx)
            receipt = await self.w3.eth.wait_for_transaction_receipt(tx_hash)
        except LEDGER_ERRORS as e:
            raise LedgerRejected(_reason(e)) from e
        if receipt["status"] != 1:
            raise LedgerRejected(f"transaction {tx_hash.hex()} reverted")
        return receipt

    async def register_oracle(self, identity, fee):
        await self._transact(
            lambda: self.contract.functions.registerOracle(),
            {
                "from": identity,
                "value": fee,
                "gas": self.registration_gas,
                "gasPrice": self.gas_price,
            },
        )

    async def get_assigned_indexes(self, identity):
        try:
            result = await self.contract.functions.getMyIndexes().call({"from": identity})
        except LEDGER_ERRORS as e:
            raise LedgerRejected(_reason(e)) from e
        return tuple(result)

    async def submit_status_response(self, identity, index, airline, flight, timestamp, status_code):
        await self._transact(
            lambda: self.contract.functions.submitOracleResponse(
                index,
                AsyncWeb3.to_checksum_address(airline),
                flight,
                timestamp,
                int(status_code),
            ),
            {
                "from": identity,
                "gas": self.response_gas,
                "gasPrice": self.gas_price,
            },
        )

    async def _start_block(self, from_block):
        if from_block == GENESIS:
            return 0
        if from_block == LATEST:
            return await self.w3.eth.block_number
        return int(from_block)

    async def status_requests(self, from_block=LATEST):
        """Poll OracleRequest logs forever, oldest first.

        The starting block is resolved on the first successful poll. Any
        failed poll is logged and retried on the next interval; the stream
        only ends when the consuming task is cancelled.
        """
        next_block = None
        event = self.contract.events.OracleRequest
        while True:
            logs = []
            try:
                if next_block is None:
                    next_block = await self._start_block(from_block)
                    log.info(f"Watching OracleRequest from block {next_block}")
                head = await self.w3.eth.block_number
                if head >= next_block:
                    logs = await event.get_logs(from_block=next_block, to_block=head)
            except Exception as e:
                log.warning(f"OracleRequest poll failed: {_reason(e)}")
            else:
                for entry in sorted(logs, key=lambda l: (l["blockNumber"], l["logIndex"])):
                    args = entry["args"]
                    yield StatusRequestEvent(
                        index=int(args["index"]),
                        airline=args["airline"],
                        flight=args["flight"],
                        timestamp=int(args["timestamp"]),
                        block_number=entry["blockNumber"],
                        tx_hash=entry["transactionHash"].hex(),
                    )
                if head >= next_block:
                    next_block = head + 1
            await asyncio.sleep(self.poll_interval)
