"""
FILE DESCRIPTION: Traversal engine: scope rules, frontier, and the crawler thread that feeds the supervisor.
KEY FUNCTIONS/CLASSES: ScopeRule, Frontier, CrawlStats, CrawlEngine, CrawlerThread
"""

import threading
from collections import deque
from dataclasses import dataclass, asdict
from typing import Optional

from linkcrawler.core import TRAVERSAL_ORDER, logger
from linkcrawler.models import CrawlState, Found, DONE, ChannelClosed
from linkcrawler.processor import LinkUtility, PageFetcher, LinkExtractor


# === SCOPE RULE ===

@dataclass(frozen=True)
class ScopeRule:
    """
    A link is followed when its domain equals the root domain, or when a fuzzy
    substring is configured and the domain contains it. Comparison is on the
    literal domain strings, without further normalization.
    """
    root_domain: str
    fuzzy: Optional[str] = None

    def allows(self, domain: Optional[str]) -> bool:
        if domain is None:
            return False
        if domain == self.root_domain:
            return True
        return bool(self.fuzzy) and self.fuzzy in domain


# === FRONTIER MANAGEMENT ===

class Frontier:
    """
    URLs waiting for a visit. "dfs" pops the newest entry, "bfs" the oldest.
    Owned by a single crawl; not thread-safe.
    """
    ORDERS = ("dfs", "bfs")

    def __init__(self, order="dfs"):
        if order not in self.ORDERS:
            raise ValueError(f"unknown traversal order {order!r}, expected one of {self.ORDERS}")
        self.order = order
        self._items = deque()

    def push(self, url):
        self._items.append(url)

    def pop(self):
        if not self._items:
            return None
        if self.order == "dfs":
            return self._items.pop()
        return self._items.popleft()

    def __len__(self):
        return len(self._items)


@dataclass
class CrawlStats:
    pages_fetched: int = 0
    links_seen: int = 0
    links_enqueued: int = 0
    links_out_of_scope: int = 0
    links_without_domain: int = 0
    not_found: int = 0


# === CRAWL ENGINE ===

class CrawlEngine:
    """
    FLOW: Pop URL -> skip if visited -> fetch -> on success extract, resolve, scope and enqueue links ->
    on 404 emit Found(url) -> on any other failure abort the run -> mark visited ->
    when the frontier is empty emit DONE.
    """
    def __init__(self, root_url, fuzzy=None, fetch=None, extract_links=None, order=None):
        root_domain = LinkUtility.validate_root(root_url)
        self.root_url = LinkUtility.canonicalize(root_url)
        self.scope = ScopeRule(root_domain, fuzzy or None)
        self._owned_fetcher = None if fetch else PageFetcher()
        self.fetch = fetch or self._owned_fetcher
        self.extract_links = extract_links or LinkExtractor.extract_links
        self.frontier = Frontier(order or TRAVERSAL_ORDER)
        self.visited = set()
        self.stats = CrawlStats()
        self.state = CrawlState.INIT

    def log(self, level, msg):
        getattr(logger, level)(msg, extra={'context': 'crawler'})

    def run(self, sender):
        """
        Crawl from the root until the frontier is exhausted, reporting 404s on sender.
        A fetch failure other than 404, or an unresolvable link, propagates and ends the run.
        """
        self.log("info", f"crawling and collecting 404s from {self.root_url}")
        self.frontier.push(self.root_url)
        self.state = CrawlState.RUNNING
        try:
            while True:
                url = self.frontier.pop()
                if url is None:
                    break
                if url in self.visited:
                    continue
                self._visit(url, sender)
                self.visited.add(url)
        except BaseException:
            self.state = CrawlState.ABORTED
            raise
        finally:
            if self._owned_fetcher is not None:
                self._owned_fetcher.close()

        self.log("info", f"Done crawling: {len(self.visited)} pages visited")
        self.state = CrawlState.DRAINING
        try:
            sender.send(DONE)
        except ChannelClosed as e:
            self.log("error", f"Failed to signal completion through the channel: {e}")
        self.state = CrawlState.DONE

    def _visit(self, url, sender):
        self.log("info", f"crawling {url}")
        try:
            html = self.fetch(url)
        except Exception as e:
            if not PageFetcher.is_not_found(e):
                raise
            self.stats.not_found += 1
            self.log("info", f"404: {url}")
            try:
                sender.send(Found(url))
            except ChannelClosed as send_err:
                self.log("error", f"Failed to send 404 URL through the channel: {send_err}")
            return

        self.stats.pages_fetched += 1
        for href in self.extract_links(html):
            self._consider(url, href)

    def snapshot(self):
        """Counters of this run, taken on the crawler's own thread."""
        return dict(asdict(self.stats), pages_visited=len(self.visited), state=self.state.value)

    def _consider(self, page_url, href):
        self.stats.links_seen += 1
        link = LinkUtility.resolve(page_url, href)
        domain = LinkUtility.domain_of(link)
        if domain is None:
            self.stats.links_without_domain += 1
            self.log("warning", f"Link '{link}' has no domain, skipping...")
            return
        if not self.scope.allows(domain):
            self.stats.links_out_of_scope += 1
            return
        if link not in self.visited:
            self.frontier.push(link)
            self.stats.links_enqueued += 1


# === CRAWLER THREAD ===

class CrawlerThread(threading.Thread):
    """
    Runs a CrawlEngine on its own daemon thread. The sender is closed when the
    crawl ends for any reason, so the consumer sees either DONE or closure.
    """
    def __init__(self, engine: CrawlEngine, sender, name="crawler"):
        super().__init__(name=name, daemon=True)
        self.engine = engine
        self.sender = sender
        self.error = None
        self.snapshot = None

    def run(self):
        try:
            self.engine.run(self.sender)
        except Exception as e:
            self.error = e
            logger.error(f"Crawler error: {e}", extra={'context': self.name})
        finally:
            # Published before the sender closes, so a consumer that saw DONE or closure can read it
            try:
                self.snapshot = self.engine.snapshot()
            finally:
                self.sender.close()
            logger.info("crawler thread is done...", extra={'context': self.name})
