# relay/bootstrap.py
"""
Bootstrap Sequencer

Turns a slice of node accounts into registered oracles:

  1. Take accounts[offset : offset + pool_size] as candidates
  2. Read REGISTRATION_FEE once for this run
  3. Per candidate, concurrently: registerOracle (paying the fee),
     then getMyIndexes, then record in the registry

A candidate that fails at any step is logged and left out of the
registry. It is not retried and does not stop the other candidates.
"""

import asyncio
import logging
from dataclasses import dataclass, field

from relay.errors import DuplicateIdentity, IndexFetchFailed, LedgerRejected, RegistrationFailed
from relay.registry import IdentityStatus, IndexAssignment, OracleIdentity

log = logging.getLogger("relay.bootstrap")


@dataclass
class BootstrapReport:
    fee: int = 0
    identities: list = field(default_factory=list)
    failures: dict = field(default_factory=dict)

    @property
    def registered(self):
        return [i.address for i in self.identities if i.status == IdentityStatus.REGISTERED]

    @property
    def failed(self):
        return [i.address for i in self.identities if i.status == IdentityStatus.FAILED]


class BootstrapSequencer:
    def __init__(self, ledger, registry, pool_size=20, account_offset=20, max_concurrency=0):
        if pool_size < 1:
            raise ValueError(f"pool_size must be positive, got {pool_size}")
        self.ledger = ledger
        self.registry = registry
        self.pool_size = pool_size
        self.account_offset = account_offset
        self._semaphore = asyncio.Semaphore(max_concurrency) if max_concurrency > 0 else None

    async def acquire_candidates(self):
        try:
            accounts = await self.ledger.get_accounts()
        except LedgerRejected as e:
            raise RegistrationFailed("*", f"could not list accounts: {e.reason}") from e
        candidates = accounts[self.account_offset:self.account_offset + self.pool_size]
        if len(candidates) < self.pool_size:
            log.warning(
                f"Only {len(candidates)} accounts available for {self.pool_size} oracles "
                f"(offset {self.account_offset})"
            )
        return [OracleIdentity(address) for address in candidates]

    async def _register(self, identity, fee):
        try:
            await self.ledger.register_oracle(identity.address, fee)
        except LedgerRejected as e:
            raise RegistrationFailed(identity.address, e.reason) from e
        identity.status = IdentityStatus.FEE_PAID_PENDING

        try:
            raw = await self.ledger.get_assigned_indexes(identity.address)
            assignment = IndexAssignment.from_ledger(raw)
        except LedgerRejected as e:
            raise IndexFetchFailed(identity.address, e.reason) from e
        except (TypeError, ValueError) as e:
            raise IndexFetchFailed(identity.address, str(e)) from e

        self.registry.record(identity.address, assignment)
        identity.status = IdentityStatus.REGISTERED
        log.info(f"Oracle {identity.address} registered with indexes {list(assignment)}")

    async def _pipeline(self, identity, fee, report):
        try:
            if self._semaphore is None:
                await self._register(identity, fee)
            else:
                async with self._semaphore:
                    await self._register(identity, fee)
        except (RegistrationFailed, IndexFetchFailed) as e:
            identity.status = IdentityStatus.FAILED
            report.failures[identity.address] = e
            log.error(str(e))
        except DuplicateIdentity:
            raise
        except Exception as e:
            identity.status = IdentityStatus.FAILED
            failure = RegistrationFailed(identity.address, repr(e))
            failure.__cause__ = e
            report.failures[identity.address] = failure
            log.error(f"Unexpected error registering {identity.address}", exc_info=e)

    async def run(self) -> BootstrapReport:
        candidates = await self.acquire_candidates()
        try:
            fee = await self.ledger.get_registration_fee()
        except LedgerRejected as e:
            raise RegistrationFailed("*", f"could not read registration fee: {e.reason}") from e

        report = BootstrapReport(fee=fee, identities=candidates)
        log.info(f"Registering {len(candidates)} oracles (fee {fee} wei)")
        results = await asyncio.gather(
            *(self._pipeline(c, fee, report) for c in candidates),
            return_exceptions=True,
        )
        # every pipeline has settled; a duplicate record is a bootstrap bug
        for result in results:
            if isinstance(result, BaseException):
                raise result
        log.info(
            f"Bootstrap complete: {len(report.registered)} registered, "
            f"{len(report.failed)} failed"
        )
        return report
