import logging
import argparse
import threading

from linkcrawler.channel import InstrumentedChannel
from linkcrawler.core import CHANNEL_CAPACITY, TRAVERSAL_ORDER, RESULTS_DIR, setup_logger, logger
from linkcrawler.engine import CrawlEngine
from linkcrawler.metrics import RunSummary
from linkcrawler.models import InvalidRootUrl
from linkcrawler.processor import LinkUtility
from linkcrawler.storage import save_failures
from linkcrawler.supervisor import Supervisor, interrupt_handler


class CrawlSessionManager:
    """
    Runs one broken-link crawl: engine + supervisor, then persistence and the summary.
    """
    def __init__(self, root_url, fuzzy=None, capacity=CHANNEL_CAPACITY, order=TRAVERSAL_ORDER,
                 results_dir=RESULTS_DIR, fetch=None):
        self.domain = LinkUtility.validate_root(root_url)
        self.engine = CrawlEngine(root_url, fuzzy=fuzzy, fetch=fetch, order=order)
        self.cancel_event = threading.Event()
        self.supervisor = Supervisor(InstrumentedChannel(capacity), cancel_event=self.cancel_event)
        self.results_dir = results_dir
        self.summary = RunSummary()

    def run(self):
        logger.info(f"Starting to crawl: {self.engine.root_url}", extra={'context': 'root'})
        with interrupt_handler(self.cancel_event):
            records = self.supervisor.run(self.engine)

        save_failures(records, self.domain, self.results_dir)
        self.summary.print_final_summary(self.engine.root_url, self.supervisor)
        return records

    @property
    def exit_code(self):
        return 1 if self.supervisor.crawl_error is not None else 0


def build_parser():
    parser = argparse.ArgumentParser(
        prog="find-broken-links",
        description="Crawl a site from a root URL and report every page that answers 404.",
    )
    parser.add_argument("url", help="Root URL to start crawling from, e.g. https://example.com")
    parser.add_argument("fuzzy", nargs="?", default=None,
                        help="Also follow links whose domain contains this substring")
    parser.add_argument("--capacity", type=int, default=CHANNEL_CAPACITY,
                        help=f"Channel buffer size (default {CHANNEL_CAPACITY})")
    parser.add_argument("--order", choices=["dfs", "bfs"], default=TRAVERSAL_ORDER,
                        help="Traversal order of the frontier")
    parser.add_argument("--results-dir", default=RESULTS_DIR, help="Directory for the JSON report")
    parser.add_argument("--log-file", default=None, help="Also write logs to this file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.capacity < 1:
        parser.error("--capacity must be at least 1")
    try:
        LinkUtility.validate_root(args.url)
    except InvalidRootUrl as e:
        parser.error(str(e))

    setup_logger(log_file=args.log_file, level=logging.DEBUG if args.verbose else None)

    manager = CrawlSessionManager(
        args.url,
        fuzzy=args.fuzzy,
        capacity=args.capacity,
        order=args.order,
        results_dir=args.results_dir,
    )
    manager.run()
    return manager.exit_code

