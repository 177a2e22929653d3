"""Extract bookmark metadata from a fetched html page.

`parse_page_meta` reads the page title, the site icon and the
description meta tag, returning a dictionary with the keys `url`,
`title`, `icon` and `description` used by the url resolver.
"""

from typing import Dict, Optional
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup

ICON_RELS = ('icon', 'shortcut icon', 'apple-touch-icon')


def parse_page_meta(html: str, page_url: str) -> Dict[str, Optional[str]]:
    """Return `{url, title, icon, description}` for the page at `page_url`.

    Falls back to `og:title`/`og:description` when the plain tags are
    missing, to the url itself for the title and to `/favicon.ico` for
    the icon. Relative icon links are resolved against `page_url`.
    """
    soup = BeautifulSoup(html, 'html.parser')
    title = None
    if soup.title and soup.title.string:
        title = soup.title.string.strip() or None
    meta = _meta_contents(soup)
    title = title or meta.get('og:title')
    description = meta.get('description') or meta.get('og:description')
    return {
        'url': page_url,
        'title': title or page_url,
        'icon': _icon_href(soup, page_url),
        'description': description,
    }


def _meta_contents(soup) -> Dict[str, str]:
    """Map lowercased meta `name`/`property` to the first non-empty content."""
    out = {}
    for tag in soup.find_all('meta'):
        key = (tag.get('name') or tag.get('property') or '').strip().lower()
        content = (tag.get('content') or '').strip()
        if key and content and key not in out:
            out[key] = content
    return out


def _icon_href(soup, page_url: str) -> Optional[str]:
    candidates = {}
    for link in soup.find_all('link', href=True):
        rel = ' '.join(link.get('rel') or []).lower()
        if rel in ICON_RELS and rel not in candidates:
            candidates[rel] = urljoin(page_url, link['href'].strip())
    for rel in ICON_RELS:
        href = candidates.get(rel)
        if href and urlparse(href).scheme in ('http', 'https'):
            return href
    # data: uris and missing links fall back to the conventional location
    return urljoin(page_url, '/favicon.ico')
