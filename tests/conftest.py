import pytest

import docs_mirror as dm


BASE = "https://docs.example.com"
PREFIX = f"{BASE}/en/docs/tool/"


class FakeResponse:
    def __init__(self, status: int, body: str):
        self.status = status
        self._body = body

    async def text(self):
        return self._body

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeSession:
    """In-memory stand-in for aiohttp.ClientSession keyed by URL.

    A route value may be a body string (200), a (status, body) tuple or an
    exception instance raised when the request is made.
    """

    def __init__(self, routes):
        self.routes = routes
        self.requested = []
        self.closed = False

    def get(self, url):
        self.requested.append(url)
        route = self.routes.get(url)
        if route is None:
            return FakeResponse(404, "not found")
        if isinstance(route, Exception):
            raise route
        if isinstance(route, tuple):
            return FakeResponse(*route)
        return FakeResponse(200, route)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.closed = True
        return False


def sitemap_xml(urls):
    entries = "\n".join(f"  <url><loc>{u}</loc></url>" for u in urls)
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">\n'
        f"{entries}\n"
        "</urlset>"
    )


def nav_html(groups):
    """Build a Mintlify-style sidebar from [(title, [(href, text), ...]), ...]."""
    blocks = []
    for title, links in groups:
        heading = f'<h5 id="sidebar-title">{title}</h5>' if title is not None else ""
        items = "".join(f'<li><a href="{href}">{text}</a></li>' for href, text in links)
        blocks.append(
            f'<div><div class="sidebar-group-header">{heading}</div>'
            f'<ul id="sidebar-group">{items}</ul></div>'
        )
    return f'<html><body><div id="navigation-items">{"".join(blocks)}</div></body></html>'


@pytest.fixture
def config(tmp_path):
    return dm.MirrorConfig(
        sitemap_url=f"{BASE}/sitemap.xml",
        nav_page_url=f"{PREFIX}overview",
        url_prefix=PREFIX,
        base_url=BASE,
        output_root=tmp_path,
    )


@pytest.fixture
def fake_session(monkeypatch):
    """Patch DocsMirror to use a FakeSession built from the routes passed in."""

    def install(routes):
        session = FakeSession(routes)
        monkeypatch.setattr(dm.DocsMirror, "_open_session", lambda self: session)
        return session

    return install
