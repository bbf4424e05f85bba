"""URL helpers for carrying the active save id in a shareable link."""

from typing import Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

SAVE_ID_PARAM = "saveId"


def _replace_query(url: str, params: list[tuple[str, str]]) -> str:
    parts = urlsplit(url)
    return urlunsplit(parts._replace(query=urlencode(params)))


def get_save_id_from_url(url: str) -> Optional[str]:
    """Return the saveId query parameter, or None if absent or empty."""
    for key, value in parse_qsl(urlsplit(url).query, keep_blank_values=True):
        if key == SAVE_ID_PARAM:
            return value or None
    return None


def set_save_id_in_url(url: str, save_id: str) -> str:
    """Return url with saveId set, keeping any other query parameters."""
    params = [
        (key, value)
        for key, value in parse_qsl(urlsplit(url).query, keep_blank_values=True)
        if key != SAVE_ID_PARAM
    ]
    params.append((SAVE_ID_PARAM, save_id))
    return _replace_query(url, params)


def remove_save_id_from_url(url: str) -> str:
    params = [
        (key, value)
        for key, value in parse_qsl(urlsplit(url).query, keep_blank_values=True)
        if key != SAVE_ID_PARAM
    ]
    return _replace_query(url, params)


def build_shareable_link(app_url: str, save_id: str) -> str:
    """Link to the application's origin with only the saveId parameter.

    Example:
        >>> build_shareable_link("https://cards.example.com/edit?step=2", "abc")
        'https://cards.example.com/?saveId=abc'
    """
    parts = urlsplit(app_url)
    origin = urlunsplit((parts.scheme, parts.netloc, "/", "", ""))
    return _replace_query(origin, [(SAVE_ID_PARAM, save_id)])
