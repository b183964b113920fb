# relay/submitter.py
"""
Response Submitter

Sends one submitOracleResponse transaction for one matched oracle. Bad
input and ledger rejections are logged and dropped here so they never
reach the dispatcher. No retries: at most one transaction per call.
"""

import logging

from relay.errors import InvalidSubmission, LedgerRejected
from relay.status import FlightStatus, fixed_status

log = logging.getLogger("relay.submitter")


def validate_submission(identity, event):
    if not isinstance(identity, str) or not identity.strip():
        raise InvalidSubmission("empty oracle identity")
    if isinstance(event.index, bool) or not isinstance(event.index, int) or event.index < 0:
        raise InvalidSubmission(f"invalid index: {event.index!r}")
    if not isinstance(event.airline, str) or not event.airline.strip():
        raise InvalidSubmission("empty airline")
    if not isinstance(event.flight, str) or not event.flight.strip():
        raise InvalidSubmission("empty flight code")
    if isinstance(event.timestamp, bool) or not isinstance(event.timestamp, int) or event.timestamp < 0:
        raise InvalidSubmission(f"invalid timestamp: {event.timestamp!r}")


class ResponseSubmitter:
    def __init__(self, ledger, resolver=None):
        self.ledger = ledger
        self.resolver = resolver or fixed_status(FlightStatus.LATE_AIRLINE)

    async def submit(self, identity, event) -> bool:
        """Submit `identity`'s answer to `event`. Returns True if the ledger accepted it."""
        try:
            validate_submission(identity, event)
            status = FlightStatus(self.resolver(event))
            await self.ledger.submit_status_response(
                identity,
                event.index,
                event.airline,
                event.flight,
                event.timestamp,
                status,
            )
        except InvalidSubmission as e:
            log.warning(f"Dropped submission from {identity!r}: {e}")
            return False
        except LedgerRejected as e:
            log.warning(
                f"Oracle {identity} response for {event.flight} (index {event.index}) "
                f"rejected: {e.reason}"
            )
            return False
        log.info(f"Oracle {identity} answered {event.flight} with {status.label} ({int(status)})")
        return True
