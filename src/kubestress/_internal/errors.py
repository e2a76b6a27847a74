"""Custom exception hierarchy for kubestress."""

from __future__ import annotations


class KubeStressError(Exception):
    """Base exception for all kubestress errors.

    Everything raised deliberately by kubestress derives from this class,
    so the CLI can report any of them with a single except clause.
    """


class ConfigError(KubeStressError):
    """Raised when configuration is invalid or missing.

    Examples:
        - ``--qps`` is zero or negative.
        - The client pool would be empty.
        - The kubeconfig cannot be found or names an unknown context.
        - The CSV output path cannot be opened for writing.
    """


class ListRequestError(KubeStressError):
    """Raised when the API server answers a LIST call with an error status.

    Attributes:
        status: HTTP status code returned by the API server.
        url: Request URL.
        detail: Excerpt of the response body.
    """

    def __init__(self, status: int, url: str, detail: str = "") -> None:
        self.status = status
        self.url = url
        self.detail = detail
        message = f"GET {url} returned HTTP {status}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class DispatchError(KubeStressError):
    """Raised when the dispatcher is misused, e.g. run twice."""
