"""Crowdshift error taxonomy."""


class CrowdshiftError(Exception):
    """Base class for errors raised by the scoring core."""


class SignalUnavailable(CrowdshiftError):
    """A single signal provider could not deliver a reading."""

    def __init__(self, factor: str, spot_id: str | None = None, reason: str = ""):
        self.factor = factor
        self.spot_id = spot_id
        self.reason = reason
        where = f" for {spot_id}" if spot_id else ""
        detail = f": {reason}" if reason else ""
        super().__init__(f"{factor} signal unavailable{where}{detail}")


class InvalidSpot(CrowdshiftError):
    """Unknown spot id or name. Surfaced to the caller, never retried."""

    def __init__(self, spot_id: str):
        self.spot_id = spot_id
        super().__init__(f"Spot not found: {spot_id}")


class MalformedSnapshot(CrowdshiftError):
    """A signal snapshot carries values that cannot be scored."""
