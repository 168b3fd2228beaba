"""CLI job that runs an extraction search and writes the leads to CSV."""

import argparse
import logging
import threading
from dataclasses import dataclass, field
from typing import List, Optional

from clientscout.core.config import ConfigError, Settings, get_settings
from clientscout.core.prompts import MODE_INITIAL, MODE_MORE, build_prompt
from clientscout.etl.dedupe import merge
from clientscout.etl.export import export_filename, write_csv
from clientscout.etl.transform import parse_reply
from clientscout.models import BusinessRecord
from clientscout.vendors import gemini
from clientscout.vendors.gemini import BackendError, ExtractionSession

logger = logging.getLogger(__name__)


class SearchBusyError(RuntimeError):
    """Raised when a search already has an extraction call in flight."""


@dataclass
class SearchRun:
    """One search: its query, backend session and accumulated results."""

    query: str
    session: ExtractionSession
    results: List[BusinessRecord] = field(default_factory=list)
    rounds: int = 0
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)


def _extract_round(run: SearchRun, mode: str, settings: Optional[Settings]) -> List[BusinessRecord]:
    # The backend conversation is not reentrant; refuse instead of interleaving turns.
    if not run.lock.acquire(blocking=False):
        raise SearchBusyError(f"An extraction call is already running for query={run.query!r}")
    try:
        text = gemini.send(run.session, build_prompt(run.query, mode), settings=settings)

        parsed = parse_reply(text)
        if parsed.skipped_rows:
            logger.warning("Dropped %d table rows with fewer than 5 cells", parsed.skipped_rows)

        merged = merge(run.results, parsed.records)
        logger.info(
            "Round %d (%s): parsed=%d new=%d total=%d",
            run.rounds + 1,
            mode,
            len(parsed.records),
            len(merged) - len(run.results),
            len(merged),
        )
        run.results = merged
        run.rounds += 1
        return merged
    finally:
        run.lock.release()


def run_initial_search(query: str, settings: Optional[Settings] = None) -> SearchRun:
    """Open a new session for `query` and return the first round of results."""
    query = (query or "").strip()
    if not query:
        raise ValueError("Query must be provided")

    settings = settings or get_settings()
    session = gemini.open_session(settings)
    run = SearchRun(query=query, session=session)
    logger.info("Starting search for query=%s", query)

    _extract_round(run, MODE_INITIAL, settings)
    return run


def run_more_search(run: SearchRun, settings: Optional[Settings] = None) -> List[BusinessRecord]:
    """Ask the run's session for more businesses and merge them in.

    The previous result list is left untouched; the merged list replaces it on the run.
    """
    return _extract_round(run, MODE_MORE, settings)


def run_search_job(query: str, more_rounds: int = 0, output: Optional[str] = None) -> SearchRun:
    settings = get_settings()
    run = run_initial_search(query, settings=settings)
    for _ in range(max(more_rounds, 0)):
        run_more_search(run, settings=settings)

    if run.results:
        write_csv(run.results, output or export_filename(query))
    else:
        logger.warning("No businesses found for query=%s. Skipping export.", query)
    logger.info("Completed search: rounds=%d businesses=%d", run.rounds, len(run.results))
    return run


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Find businesses matching a customer profile and export them to CSV")
    parser.add_argument("query", help="Customer profile, e.g. 'plumbers in Mesa, AZ'")
    parser.add_argument("--more", dest="more_rounds", type=int, default=0, help="Additional 'find more' rounds to run")
    parser.add_argument("--output", dest="output", default=None, help="CSV path (defaults to leads-<query>.csv)")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s - %(message)s")
    args = build_parser().parse_args(argv)

    try:
        run_search_job(args.query, more_rounds=args.more_rounds, output=args.output)
    except ConfigError as exc:
        logger.error("Configuration error: %s", exc)
        return 2
    except BackendError as exc:
        logger.error("Search failed: %s", exc)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
