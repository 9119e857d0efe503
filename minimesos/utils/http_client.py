"""Global HTTP client."""

import typing as tp

import requests

_session = None


def get_session() -> requests.Session:
    """Get a session object."""
    global _session  # noqa: PLW0603

    if _session is None:
        _session = requests.Session()
    return _session


def get_json(url: str, *, timeout: float = 5) -> tp.Any:
    """GET the `url` and return decoded JSON body.

    Raises `requests.RequestException` on connection failures and non-2xx responses, and
    `ValueError` when the body is not valid JSON.
    """
    response = get_session().get(url, timeout=timeout)
    response.raise_for_status()
    return response.json()
