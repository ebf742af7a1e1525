"""
End-of-run summary for a crawl: what was visited, what was reported,
and how full the channel got (for tuning CHANNEL_CAPACITY).

Crawler counters come from the snapshot the crawler thread publishes when it
finishes. After an interrupt that thread may still be running, so its
counters are shown as unavailable.
"""

import time
from datetime import timedelta

from tabulate import tabulate

CRAWLER_ROWS = [
    ("Pages Visited", "pages_visited"),
    ("Pages Fetched (2xx)", "pages_fetched"),
    ("Links Seen", "links_seen"),
    ("Links Enqueued", "links_enqueued"),
    ("Links Out Of Scope", "links_out_of_scope"),
    ("Links Without Domain", "links_without_domain"),
    ("Not Found Seen By Crawler", "not_found"),
]


class RunSummary:

    def __init__(self):
        self.start_time = time.time()

    def rows(self, root_url, supervisor):
        elapsed = time.time() - self.start_time
        outcome = supervisor.outcome.value if supervisor.outcome else "unknown"
        if supervisor.crawl_error is not None:
            outcome = f"{outcome} (crawl error: {supervisor.crawl_error})"

        snapshot = supervisor.crawl_snapshot
        rows = [
            ["Root URL", root_url],
            ["Outcome", outcome],
            ["Duration", str(timedelta(seconds=int(elapsed)))],
        ]
        for label, key in CRAWLER_ROWS:
            rows.append([label, snapshot[key] if snapshot else "n/a (crawler still running)"])
        rows += [
            ["Not Found (reported)", len(supervisor.results)],
            ["Channel Capacity", supervisor.channel.capacity],
            ["Channel Peak In-Flight", supervisor.channel.peak()],
        ]
        return rows

    def render(self, root_url, supervisor) -> str:
        return tabulate(self.rows(root_url, supervisor), headers=["Metric", "Value"], tablefmt="grid")

    def print_final_summary(self, root_url, supervisor):
        print("\n" + "=" * 60)
        print("CRAWL SESSION SUMMARY")
        print("=" * 60)
        print(self.render(root_url, supervisor))
        if supervisor.results:
            print("\nNOT FOUND:")
            print(tabulate([[i, r.url] for i, r in enumerate(supervisor.results, start=1)],
                           headers=["#", "URL"], tablefmt="simple"))
