"""Exception types shared by the core and the shell.

A throttled check is not an error: it is reported through
ThrottleResult in exposure_watch.core.throttle.
"""


class ExposureWatchError(Exception):
    """Base class for all exposure-check failures."""


class FeedVerificationError(ExposureWatchError):
    """The sick-report feed could not be downloaded or its signature is invalid.

    Fatal for the current geo check only.
    """


class StorageError(ExposureWatchError):
    """A read or write against the local stores failed.

    Fatal for the check that hit it.
    """


class MalformedEncounterError(ExposureWatchError):
    """A single proximity encounter could not be normalised.

    Isolated per record; never aborts the batch.
    """

    def __init__(self, message: str, raw: object = None) -> None:
        super().__init__(message)
        self.raw = raw
