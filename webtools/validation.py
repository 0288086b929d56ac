"""Pre-flight checks applied before any request leaves the process."""

from typing import Any

from pydantic import AnyUrl, TypeAdapter, ValidationError

from webtools.constants import MAX_QUERY_LENGTH

_URL_ADAPTER = TypeAdapter(AnyUrl)


def is_valid_url(url: Any) -> bool:
    """
    Check whether a string parses as an absolute URL.

    Any scheme the URL parser accepts is accepted.
    """
    if not isinstance(url, str) or not url.strip():
        return False

    try:
        _URL_ADAPTER.validate_python(url)
    except ValidationError:
        return False
    return True


def is_valid_query(query: Any) -> bool:
    if not isinstance(query, str):
        return False
    length = len(query.strip())
    return 0 < length <= MAX_QUERY_LENGTH
