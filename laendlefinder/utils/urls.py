import re

_QUERY_OR_FRAGMENT = re.compile(r"[?#]")


def canonicalize(url: str) -> str:
    """Listing identity: the URL without query string or fragment.

    >>> canonicalize("https://x/y?a=1#b")
    'https://x/y'
    """
    url = (url or "").strip()
    m = _QUERY_OR_FRAGMENT.search(url)
    return url[:m.start()] if m else url


def belongs_to(url: str, marker: str) -> bool:
    return marker in (url or "")


def unique_canonical(urls):
    """Canonicalize and drop repeats, keeping first-seen order."""
    seen = set()
    out = []
    for u in urls:
        c = canonicalize(u)
        if c and c not in seen:
            seen.add(c)
            out.append(c)
    return out
