"""ContractLedger against stubbed web3 eth/contract objects."""

import asyncio
from types import SimpleNamespace

import pytest
from web3.exceptions import ContractLogicError

from relay.errors import LedgerRejected
from relay.ledger import GENESIS, LATEST, ContractLedger
from relay.status import FlightStatus
from tests.fakes import address

APP = address(0xA11)
AIRLINE = address(2)
TX_HASH = bytes.fromhex("ab" * 32)


class StubEth:
    def __init__(self, heads=(0,), receipt_status=1, accounts=()):
        self.heads = list(heads)
        self.receipt_status = receipt_status
        self._accounts = list(accounts)
        self.head_reads = 0

    async def _head(self):
        self.head_reads += 1
        value = self.heads.pop(0) if len(self.heads) > 1 else self.heads[0]
        if isinstance(value, Exception):
            raise value
        return value

    @property
    def block_number(self):
        return self._head()

    async def _list_accounts(self):
        return list(self._accounts)

    @property
    def accounts(self):
        return self._list_accounts()

    async def wait_for_transaction_receipt(self, tx_hash):
        return {"status": self.receipt_status, "transactionHash": tx_hash}


class StubCall:
    def __init__(self, result=None, error=None, sent=None):
        self.result = result
        self.error = error
        self.sent = sent if sent is not None else []

    async def call(self, tx=None):
        if self.error:
            raise self.error
        return self.result

    async def transact(self, tx):
        if self.error:
            raise self.error
        self.sent.append(tx)
        return TX_HASH


class StubEvent:
    def __init__(self, batches):
        self.batches = list(batches)
        self.ranges = []

    async def get_logs(self, from_block=None, to_block=None):
        self.ranges.append((from_block, to_block))
        batch = self.batches.pop(0) if self.batches else []
        if isinstance(batch, Exception):
            raise batch
        return batch


def log_entry(block, log_index, flight, index=7):
    return {
        "args": {"index": index, "airline": AIRLINE, "flight": flight, "timestamp": 1544400000},
        "blockNumber": block,
        "logIndex": log_index,
        "transactionHash": TX_HASH,
    }


def make_ledger(eth=None, event=None, **functions):
    ledger = ContractLedger("http://127.0.0.1:9545", APP, poll_interval=0)
    ledger.w3 = SimpleNamespace(eth=eth or StubEth())
    ledger.contract = SimpleNamespace(
        functions=SimpleNamespace(**functions),
        events=SimpleNamespace(OracleRequest=event or StubEvent([])),
    )
    return ledger


async def take(stream, n):
    events = []
    async for item in stream:
        events.append(item)
        if len(events) == n:
            break
    await stream.aclose()
    return events


def collect(ledger, from_block, n):
    return asyncio.run(asyncio.wait_for(take(ledger.status_requests(from_block), n), timeout=5))


class TestCalls:
    def test_registration_fee(self):
        ledger = make_ledger(REGISTRATION_FEE=lambda: StubCall(result=10**18))
        assert asyncio.run(ledger.get_registration_fee()) == 10**18

    def test_accounts(self):
        ledger = make_ledger(eth=StubEth(accounts=[address(1), address(2)]))
        assert asyncio.run(ledger.get_accounts()) == [address(1), address(2)]

    def test_register_sends_fee_and_gas(self):
        sent = []
        ledger = make_ledger(registerOracle=lambda: StubCall(sent=sent))
        asyncio.run(ledger.register_oracle(address(21), 10**18))
        assert sent == [{"from": address(21), "value": 10**18, "gas": 5_000_000, "gasPrice": 20_000_000}]

    def test_reverted_receipt_is_rejected(self):
        ledger = make_ledger(eth=StubEth(receipt_status=0), registerOracle=lambda: StubCall())
        with pytest.raises(LedgerRejected) as info:
            asyncio.run(ledger.register_oracle(address(21), 1))
        assert "reverted" in info.value.reason

    def test_contract_logic_error_reason(self):
        error = ContractLogicError("execution reverted: Not registered as an oracle")
        ledger = make_ledger(getMyIndexes=lambda: StubCall(error=error))
        with pytest.raises(LedgerRejected) as info:
            asyncio.run(ledger.get_assigned_indexes(address(21)))
        assert "Not registered as an oracle" in info.value.reason

    def test_connection_error_is_rejected(self):
        ledger = make_ledger(REGISTRATION_FEE=lambda: StubCall(error=OSError("connection refused")))
        with pytest.raises(LedgerRejected) as info:
            asyncio.run(ledger.get_registration_fee())
        assert "connection refused" in info.value.reason

    def test_indexes_as_tuple(self):
        ledger = make_ledger(getMyIndexes=lambda: StubCall(result=[2, 5, 9]))
        assert asyncio.run(ledger.get_assigned_indexes(address(21))) == (2, 5, 9)

    def test_submit_response(self):
        sent, args = [], []

        def submit(*a):
            args.append(a)
            return StubCall(sent=sent)

        ledger = make_ledger(submitOracleResponse=submit)
        asyncio.run(ledger.submit_status_response(
            address(21), 7, AIRLINE, "ND1309", 1544400000, FlightStatus.LATE_AIRLINE,
        ))
        assert args[0][0] == 7
        assert args[0][1].lower() == AIRLINE
        assert args[0][2:] == ("ND1309", 1544400000, 20)
        assert sent == [{"from": address(21), "gas": 500_000, "gasPrice": 20_000_000}]

    def test_malformed_airline_is_rejected_before_sending(self):
        sent = []
        ledger = make_ledger(submitOracleResponse=lambda *a: StubCall(sent=sent))
        with pytest.raises(LedgerRejected):
            asyncio.run(ledger.submit_status_response(
                address(21), 7, "not-an-address", "ND1309", 1544400000, FlightStatus.LATE_AIRLINE,
            ))
        assert sent == []


class TestStatusRequests:
    def test_genesis_starts_at_block_zero(self):
        event = StubEvent([[log_entry(3, 0, "ND1309")]])
        ledger = make_ledger(eth=StubEth(heads=[5]), event=event)

        events = collect(ledger, GENESIS, 1)

        assert event.ranges[0] == (0, 5)
        assert events[0].flight == "ND1309"
        assert events[0].index == 7
        assert events[0].block_number == 3
        assert events[0].tx_hash == TX_HASH.hex()

    def test_latest_starts_at_head_and_advances(self):
        event = StubEvent([[], [log_entry(7, 0, "LATER")]])
        ledger = make_ledger(eth=StubEth(heads=[5, 5, 7]), event=event)

        events = collect(ledger, LATEST, 1)

        assert event.ranges == [(5, 5), (6, 7)]
        assert [e.flight for e in events] == ["LATER"]

    def test_orders_by_block_then_log_index(self):
        batch = [log_entry(4, 1, "C"), log_entry(2, 0, "A"), log_entry(4, 0, "B")]
        ledger = make_ledger(eth=StubEth(heads=[4]), event=StubEvent([batch]))

        events = collect(ledger, GENESIS, 3)

        assert [e.flight for e in events] == ["A", "B", "C"]

    def test_failed_poll_is_retried_from_same_block(self):
        event = StubEvent([OSError("connection reset"), [log_entry(1, 0, "ND1309")]])
        ledger = make_ledger(eth=StubEth(heads=[2]), event=event)

        events = collect(ledger, GENESIS, 1)

        assert event.ranges == [(0, 2), (0, 2)]
        assert events[0].flight == "ND1309"

    def test_start_block_failure_is_retried(self):
        eth = StubEth(heads=[OSError("connection refused"), 9, 9])
        event = StubEvent([[log_entry(9, 0, "ND1309")]])
        ledger = make_ledger(eth=eth, event=event)

        events = collect(ledger, LATEST, 1)

        assert event.ranges == [(9, 9)]
        assert events[0].flight == "ND1309"
