import hashlib
import re


_QUERY_STRING = re.compile(r"\?.*$", re.DOTALL)
_SECURE_SCHEME = re.compile(r"^https://", re.IGNORECASE)


def canonical_locator(url: str, include_query_string: bool = True) -> str:
    """Canonical form of a page URL used for id derivation.

    ``https://`` is folded to ``http://`` so the same resource fetched over
    both schemes lands on one row. With ``include_query_string`` off,
    everything from the first ``?`` is dropped.
    """
    locator = _SECURE_SCHEME.sub("http://", str(url).strip())
    if not include_query_string:
        locator = _QUERY_STRING.sub("", locator)
    return locator


def document_id(url: str, include_query_string: bool = True) -> str:
    """md5 hex digest of the canonical locator.

    Note that ids are never rehashed: a store that switches
    ``include_query_string`` keeps the rows written under the old setting,
    so the same page can end up with two ids.
    """
    locator = canonical_locator(url, include_query_string)
    return hashlib.md5(locator.encode("utf-8")).hexdigest()
