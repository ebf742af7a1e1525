"""
FILE DESCRIPTION: Content processing collaborators: network fetching, link extraction, and URL resolution.
KEY FUNCTIONS/CLASSES: LinkUtility, PageFetcher, LinkExtractor
"""

import ipaddress
from urllib.parse import urljoin, urlparse, urlunparse, urldefrag

import requests
from bs4 import BeautifulSoup

from linkcrawler.core import USER_AGENT, REQUEST_TIMEOUT, logger
from linkcrawler.models import LinkResolutionError, InvalidRootUrl


# === LINK UTILITY ===

class LinkUtility:

    DEFAULT_PORTS = {"http": "80", "https": "443"}

    @staticmethod
    def resolve(base_url: str, href: str) -> str:
        """
        Resolve href against the page it was found on.
        The fragment is dropped so /a and /a#top count as one page.
        """
        try:
            # urlparse validates the netloc (e.g. unbalanced IPv6 brackets)
            urlparse(base_url)
            joined = urljoin(base_url, href.strip())
            parsed = urlparse(joined)
            parsed.port  # raises on a non-numeric / out-of-range port
        except ValueError as e:
            raise LinkResolutionError(base_url, href, str(e)) from e
        return LinkUtility.canonicalize(urldefrag(joined)[0])

    @staticmethod
    def canonicalize(url: str) -> str:
        """
        Lowercase scheme and host, drop the scheme's default port, and give an
        empty path a "/", so equivalent spellings of a page compare equal.
        """
        parsed = urlparse(url)
        scheme = parsed.scheme.lower()
        netloc = parsed.netloc
        if netloc:
            userinfo, at, hostport = netloc.rpartition("@")
            hostport = hostport.lower()
            default_port = LinkUtility.DEFAULT_PORTS.get(scheme)
            if default_port and hostport.endswith(":" + default_port):
                hostport = hostport[: -len(default_port) - 1]
            netloc = f"{userinfo}{at}{hostport}"
        path = parsed.path
        if netloc and not path:
            path = "/"
        return urlunparse((scheme, netloc, path, parsed.params, parsed.query, parsed.fragment))

    @staticmethod
    def domain_of(url: str):
        """
        Host name of an absolute URL, or None when it has no domain
        (no host at all, or a bare IP address).
        """
        host = urlparse(url).hostname
        if not host:
            return None
        try:
            ipaddress.ip_address(host)
            return None
        except ValueError:
            return host

    @staticmethod
    def validate_root(url: str) -> str:
        """Check a crawl root and return its domain. Raises InvalidRootUrl."""
        if not url:
            raise InvalidRootUrl("no URL given")
        try:
            parsed = urlparse(url)
            parsed.port
        except ValueError as e:
            raise InvalidRootUrl(f"invalid URL {url!r}: {e}") from e
        if parsed.scheme not in ("http", "https"):
            raise InvalidRootUrl(f"invalid URL {url!r}: expected an http(s) URL")
        domain = LinkUtility.domain_of(url)
        if domain is None:
            raise InvalidRootUrl(f"invalid URL {url!r}: no domain")
        return domain


# === PAGE FETCHER ===

class PageFetcher:
    """
    FLOW: Executes HTTP GET with a browser-like User-Agent -> follows redirects ->
    Returns the body text on 2xx, raises requests.HTTPError for any other status.
    Network problems surface as the matching requests exception.
    """
    def __init__(self, session=None, timeout=REQUEST_TIMEOUT, user_agent=USER_AGENT):
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "User-Agent": user_agent,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.9",
        })

    def fetch(self, url: str) -> str:
        r = self.session.get(url, timeout=self.timeout, allow_redirects=True)
        r.raise_for_status()
        return r.text

    def __call__(self, url: str) -> str:
        return self.fetch(url)

    def close(self):
        self.session.close()

    @staticmethod
    def is_not_found(error: Exception) -> bool:
        """True for the one failure the crawl classifies instead of aborting on."""
        response = getattr(error, "response", None)
        return (
            isinstance(error, requests.HTTPError)
            and response is not None
            and response.status_code == 404
        )


# === LINK EXTRACTOR ===

class LinkExtractor:
    """
    FLOW: Parses HTML using BeautifulSoup -> Collects every <a href> ->
    Drops mail/ftp/phone links and placeholder anchors -> Returns raw hrefs in document order.
    """
    DENIED_PROTOCOLS = ("mailto:", "ftp:", "tel:")
    DENIED_LINKS = ("#", "javascript:void(0)")

    @classmethod
    def is_denied(cls, href: str) -> bool:
        return href.startswith(cls.DENIED_PROTOCOLS) or href in cls.DENIED_LINKS

    @classmethod
    def extract_links(cls, html: str) -> list:
        soup = BeautifulSoup(html or "", "html.parser")
        links = []
        for a in soup.find_all("a", href=True):
            href = a["href"]
            if cls.is_denied(href):
                continue
            logger.debug(f"Adding link: {href}", extra={'context': 'extractor'})
            links.append(href)
        return links
