# relay/dispatcher.py
"""
Event Dispatcher

Reads OracleRequest events in the order the ledger delivers them. For
each event the matching oracles are looked up immediately, then their
submissions go out as one batch task. Batches from different events may
overlap; a batch only ever carries its own event's flight.
"""

import asyncio
import logging
from dataclasses import asdict, dataclass

from relay.ledger import LATEST

log = logging.getLogger("relay.dispatcher")


@dataclass
class DispatchStats:
    events: int = 0
    unmatched: int = 0
    submitted: int = 0
    accepted: int = 0
    dropped: int = 0

    def as_dict(self):
        return asdict(self)


class EventDispatcher:
    def __init__(self, ledger, registry, submitter, from_block=LATEST, max_in_flight=0):
        self.ledger = ledger
        self.registry = registry
        self.submitter = submitter
        self.from_block = from_block
        self.stats = DispatchStats()
        self._pending: set[asyncio.Task] = set()
        self._semaphore = asyncio.Semaphore(max_in_flight) if max_in_flight > 0 else None

    def dispatch(self, event):
        """Match `event` against the registry and schedule its batch. Returns the matches."""
        self.stats.events += 1
        matches = self.registry.matching_identities(event.index)
        log.info(
            f"OracleRequest index={event.index} airline={event.airline} "
            f"flight={event.flight} timestamp={event.timestamp}: {len(matches)} oracle(s)"
        )
        if not matches:
            self.stats.unmatched += 1
            return matches

        for oracle in matches:
            log.info(f"Oracle {oracle} triggered. Indexes: {list(self.registry.indexes_for(oracle))}")

        task = asyncio.create_task(self._run_batch(event, tuple(matches)))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return matches

    async def _run_batch(self, event, oracles):
        if self._semaphore is None:
            await self._submit_all(event, oracles)
        else:
            async with self._semaphore:
                await self._submit_all(event, oracles)

    async def _submit_all(self, event, oracles):
        self.stats.submitted += len(oracles)
        results = await asyncio.gather(
            *(self.submitter.submit(oracle, event) for oracle in oracles),
            return_exceptions=True,
        )
        for oracle, result in zip(oracles, results):
            if result is True:
                self.stats.accepted += 1
                continue
            self.stats.dropped += 1
            if isinstance(result, BaseException):
                log.error(
                    f"Unexpected error submitting for {oracle} on {event.flight}",
                    exc_info=result,
                )

    async def drain(self):
        """Wait for every batch scheduled so far."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def run(self):
        """Consume the status request stream until it ends or this task is cancelled."""
        log.info(f"Dispatcher subscribing from '{self.from_block}' with {len(self.registry)} oracles")
        try:
            async for event in self.ledger.status_requests(self.from_block):
                self.dispatch(event)
        finally:
            await self.drain()
