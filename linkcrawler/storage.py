import json
from pathlib import Path

from linkcrawler.core import RESULTS_DIR, logger


def results_path(domain, results_dir=RESULTS_DIR) -> Path:
    return Path(results_dir) / f"{domain}.json"


def save_failures(records, domain, results_dir=RESULTS_DIR):
    """
    Write the not-found records as a pretty-printed JSON array to <results_dir>/<domain>.json.
    Nothing is written for an empty list; returns the path written, or None.
    """
    if not records:
        logger.info("No 404s found", extra={'context': 'storage'})
        return None

    path = results_path(domain, results_dir)
    path.parent.mkdir(parents=True, exist_ok=True)
    logger.info(f"Saving {len(records)} 404 urls to {path}...", extra={'context': 'storage'})
    with open(path, "w", encoding="utf-8") as f:
        json.dump([r.to_dict() for r in records], f, indent=2)
    return path


def load_failures(path):
    with open(path, encoding="utf-8") as f:
        return json.load(f)
