# relay/errors.py
"""Failure taxonomy for the relay."""


class RelayError(Exception):
    pass


class DuplicateIdentity(RelayError):
    """An identity was recorded twice. Indicates a bootstrap bug."""

    def __init__(self, identity):
        super().__init__(f"identity already registered: {identity}")
        self.identity = identity


class RegistrationFailed(RelayError):
    def __init__(self, identity, reason):
        super().__init__(f"registration failed for {identity}: {reason}")
        self.identity = identity
        self.reason = reason


class IndexFetchFailed(RelayError):
    def __init__(self, identity, reason):
        super().__init__(f"index fetch failed for {identity}: {reason}")
        self.identity = identity
        self.reason = reason


class InvalidSubmission(RelayError):
    pass


class LedgerRejected(RelayError):
    """The ledger refused a call or transaction. `reason` is the ledger's message."""

    def __init__(self, reason):
        super().__init__(reason)
        self.reason = reason
