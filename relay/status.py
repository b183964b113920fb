# relay/status.py
"""
Flight status codes and status resolution.

Codes mirror the FlightSuretyApp contract constants. A resolver is any
callable taking a StatusRequestEvent and returning a FlightStatus; the
relay ships only the fixed resolver, which simulates oracle judgment.
"""

from enum import IntEnum


class FlightStatus(IntEnum):
    UNKNOWN = 0
    ON_TIME = 10
    LATE_AIRLINE = 20
    LATE_WEATHER = 30
    LATE_TECHNICAL = 40
    LATE_OTHER = 50

    @property
    def label(self) -> str:
        return self.name.lower().replace("_", "-")

    @classmethod
    def parse(cls, value) -> "FlightStatus":
        """Accept a label ("late-airline"), a member name or a numeric code."""
        if isinstance(value, cls):
            return value
        text = str(value).strip()
        if text.isdigit():
            return cls(int(text))
        try:
            return cls[text.upper().replace("-", "_")]
        except KeyError:
            labels = ", ".join(s.label for s in cls)
            raise ValueError(f"unknown flight status '{value}' (expected one of: {labels})")


def fixed_status(status):
    """Resolver that answers every request with the same code."""
    status = FlightStatus.parse(status)

    def resolve(event):
        return status

    resolve.status = status
    return resolve
