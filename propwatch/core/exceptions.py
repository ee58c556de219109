"""Custom exception classes for the application."""


class PropwatchError(Exception):
    """Base exception for all propwatch errors."""

    def __init__(self, message: str = "An unexpected error occurred"):
        self.message = message
        super().__init__(self.message)


class FetchError(PropwatchError):
    """Raised when a page cannot be fetched (timeout, navigation, HTTP status)."""

    def __init__(self, url: str, reason: str):
        self.url = url
        super().__init__(f"Failed to fetch {url}: {reason}")


class ParseError(PropwatchError):
    """Raised when a listing element lacks a required field."""

    def __init__(self, source: str, reason: str):
        self.source = source
        super().__init__(f"Parse error for {source}: {reason}")


class SourceError(PropwatchError):
    """Raised when a whole source cannot be scraped."""

    def __init__(self, source: str, reason: str):
        self.source = source
        super().__init__(f"Source error for {source}: {reason}")


class PersistenceError(PropwatchError):
    """Raised when a listing or run record cannot be written."""

    def __init__(self, reason: str):
        super().__init__(f"Persistence error: {reason}")


class RunAlreadyActiveError(PropwatchError):
    """Raised when a run is requested while another one is RUNNING."""

    def __init__(self):
        super().__init__("A scraper run is already in progress")


class UnknownSourceError(PropwatchError):
    """Raised when no scraper is registered for a source id."""

    def __init__(self, source: str):
        self.source = source
        super().__init__(f"No scraper registered for source '{source}'")
