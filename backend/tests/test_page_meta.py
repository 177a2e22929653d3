import httpx
import pytest
from linkhub.errors import ResolveError
from linkhub.services import UrlResolver
from linkhub.utils.page_meta import parse_page_meta

DOCS_HTML = """
<html><head>
  <title> Python Docs </title>
  <meta name="description" content="The official reference">
  <link rel="shortcut icon" href="/static/py.ico">
  <link rel="apple-touch-icon" href="https://cdn.python.org/touch.png">
</head><body><title>not this one</title></body></html>
"""


def test_reads_title_description_and_icon():
    meta = parse_page_meta(DOCS_HTML, 'https://docs.python.org/3/')
    assert meta == {
        'url': 'https://docs.python.org/3/',
        'title': 'Python Docs',
        'icon': 'https://docs.python.org/static/py.ico',
        'description': 'The official reference',
    }


def test_open_graph_fallbacks():
    html = ('<head><meta property="og:title" content="OG title">'
            '<meta property="og:description" content="OG text"></head>')
    meta = parse_page_meta(html, 'https://a.dev/post/1')
    assert meta['title'] == 'OG title'
    assert meta['description'] == 'OG text'


def test_bare_page_uses_url_and_default_icon():
    meta = parse_page_meta('<p>hello</p>', 'https://a.dev/post/1')
    assert meta['title'] == 'https://a.dev/post/1'
    assert meta['description'] is None
    assert meta['icon'] == 'https://a.dev/favicon.ico'


def test_data_uri_icon_is_skipped():
    html = '<link rel="icon" href="data:image/png;base64,AAAA">'
    assert parse_page_meta(html, 'https://a.dev/x')['icon'] == 'https://a.dev/favicon.ico'


def _resolver(handler):
    return UrlResolver(httpx.Client(transport=httpx.MockTransport(handler), follow_redirects=True))


def test_resolver_fetches_and_parses_page():
    seen = []

    def handler(request):
        seen.append(str(request.url))
        return httpx.Response(200, html=DOCS_HTML)

    meta = _resolver(handler).resolve('https://docs.python.org/3/')
    assert seen == ['https://docs.python.org/3/']
    assert meta['url'] == 'https://docs.python.org/3/'
    assert meta['title'] == 'Python Docs'
    assert meta['icon'] == 'https://docs.python.org/static/py.ico'


def test_resolver_follows_redirects_for_relative_icons():
    def handler(request):
        if request.url.path == '/old':
            return httpx.Response(301, headers={'Location': 'https://b.dev/new/'})
        return httpx.Response(200, html='<title>New</title><link rel="icon" href="i.png">')

    meta = _resolver(handler).resolve('https://b.dev/old')
    assert meta['url'] == 'https://b.dev/old'
    assert meta['icon'] == 'https://b.dev/new/i.png'


def test_resolver_non_html_keeps_requested_url_as_title():
    def handler(request):
        return httpx.Response(200, json={'ok': True})

    meta = _resolver(handler).resolve('https://api.dev')
    assert meta['title'] == 'https://api.dev'
    assert meta['description'] is None


def test_resolver_errors():
    def handler(request):
        if request.url.host == 'down.dev':
            raise httpx.ConnectError('refused', request=request)
        return httpx.Response(404, text='missing')

    resolver = _resolver(handler)
    with pytest.raises(ResolveError):
        resolver.resolve('https://gone.dev/page')
    with pytest.raises(ResolveError):
        resolver.resolve('https://down.dev')
    with pytest.raises(ValueError):
        resolver.resolve('not a url')


def test_resolve_many_keeps_order():
    def handler(request):
        return httpx.Response(200, html=f'<title>{request.url.host}</title>')

    metas = _resolver(handler).resolve_many(['https://b.dev', 'https://a.dev'])
    assert [m['title'] for m in metas] == ['b.dev', 'a.dev']
