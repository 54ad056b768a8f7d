"""Exceptions raised by grantgraph."""


class GrantGraphError(Exception):
    """Base class for pipeline errors."""


class DownloadError(GrantGraphError):
    """A bulk archive could not be downloaded completely."""


class ArchiveNotPublishedError(DownloadError):
    """The IRS has not published the archive for this month yet (HTTP 404)."""

    def __init__(self, url: str):
        super().__init__(f"Archive not published: {url}")
        self.url = url


class ExtractionError(GrantGraphError):
    """An archive produced no usable filings."""


class DatasetError(GrantGraphError):
    """A derived step is missing a required input."""


class NetworkDataUnavailable(GrantGraphError):
    """No source could supply the network document."""
