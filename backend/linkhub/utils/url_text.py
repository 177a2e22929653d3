"""Parse pasted text into url drafts for the batch topic form.

Each non-empty line describes one bookmark, either a bare url or
`title | url`. The parser returns plain dictionaries with the keys of
`schemas.UrlDraft` (`title`, `url`) so the caller can validate them; a
bare url leaves `title` as `None` for the caller to fill in.
"""

from typing import Dict, List

from ..schemas import check_http_url

SEPARATOR = '|'


def parse_url_lines(text: str) -> List[Dict]:
    """Split `text` into `{title, url}` items, one per non-empty line.

    Raises `ValueError` naming the 1-based line number of the first line
    whose url is not a valid http(s) url.
    """
    out = []
    for lineno, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        if not line:
            continue
        title, url = _split_line(line)
        try:
            check_http_url(url)
        except ValueError:
            raise ValueError(f'line {lineno}: invalid url {url!r}')
        out.append({'title': title or None, 'url': url})
    return out


def _split_line(line: str):
    """Return `(title, url)`; a bare url yields an empty title."""
    if SEPARATOR not in line:
        return '', line
    # titles may contain the separator, urls may not
    title, _, url = line.rpartition(SEPARATOR)
    return title.strip(), url.strip()
