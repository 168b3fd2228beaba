"""HTTP entrypoint that runs extraction searches (Cloud Run friendly)."""

from __future__ import annotations

import logging
import os
import threading
import uuid
from typing import Any, Dict, Optional

from flask import Flask, Response, jsonify, request

from clientscout.core.config import ConfigError, get_settings
from clientscout.etl.export import export_filename, to_csv
from clientscout.jobs.run_search import SearchBusyError, SearchRun, run_initial_search, run_more_search
from clientscout.vendors.gemini import BackendError

# ---------- Logging ----------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s - %(message)s",
)
logger = logging.getLogger(__name__)

# ---------- App & in-memory searches ----------
app = Flask(__name__)
_searches: Dict[str, SearchRun] = {}
_searches_lock = threading.Lock()
# Searches that are never DELETEd are evicted oldest-first past this many.
MAX_ACTIVE_SEARCHES = 100

# ---------- Routes ----------


@app.get("/healthz")
def healthcheck() -> Any:
    settings = get_settings()
    return (
        jsonify(
            {
                "status": "ok",
                "model": settings.gemini_model,
                "active_searches": len(_searches),
                "revision": os.getenv("K_REVISION", "unknown"),
            }
        ),
        200,
    )


@app.post("/search")
def start_search() -> Any:
    """
    Start a new search.
    Required JSON fields: query
    """
    payload: Dict[str, Any] = request.get_json(silent=True) or {}
    query = str(payload.get("query") or "").strip()
    if not query:
        return jsonify({"error": "missing fields: query"}), 400

    try:
        run = run_initial_search(query)
    except (ConfigError, BackendError) as exc:
        return _error_response(exc)

    search_id = uuid.uuid4().hex
    with _searches_lock:
        _searches[search_id] = run
        while len(_searches) > MAX_ACTIVE_SEARCHES:
            evicted = next(iter(_searches))
            _searches.pop(evicted)
            logger.info("Evicted search %s (limit=%d)", evicted, MAX_ACTIVE_SEARCHES)
    logger.info("Registered search %s for query=%s", search_id, query)
    return jsonify({"data": _serialize(search_id, run)}), 201


@app.post("/search/<search_id>/more")
def more_results(search_id: str) -> Any:
    run = _get_search(search_id)
    if run is None:
        return jsonify({"error": "search not found"}), 404

    try:
        run_more_search(run)
    except SearchBusyError as exc:
        return jsonify({"error": str(exc)}), 409
    except (ConfigError, BackendError) as exc:
        return _error_response(exc)

    # The caller may have discarded the search while the backend was answering.
    if _get_search(search_id) is not run:
        logger.info("Search %s was discarded; dropping late results", search_id)
        return jsonify({"error": "search not found"}), 404

    return jsonify({"data": _serialize(search_id, run)}), 200


@app.get("/search/<search_id>/export.csv")
def export_search(search_id: str) -> Any:
    run = _get_search(search_id)
    if run is None:
        return jsonify({"error": "search not found"}), 404

    filename = export_filename(run.query)
    return Response(
        to_csv(run.results),
        mimetype="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@app.delete("/search/<search_id>")
def discard_search(search_id: str) -> Any:
    with _searches_lock:
        _searches.pop(search_id, None)
    return "", 204


# ---------- Internals ----------


def _get_search(search_id: str) -> Optional[SearchRun]:
    with _searches_lock:
        return _searches.get(search_id)


def _serialize(search_id: str, run: SearchRun) -> Dict[str, Any]:
    return {
        "search_id": search_id,
        "query": run.query,
        "rounds": run.rounds,
        "count": len(run.results),
        "results": [record.to_dict() for record in run.results],
    }


def _error_response(exc: Exception) -> Any:
    if isinstance(exc, ConfigError):
        logger.error("Configuration error: %s", exc)
        return jsonify({"error": str(exc)}), 500
    logger.error("Backend error: %s", exc)
    return jsonify({"error": str(exc)}), 502


def main() -> None:
    """Bind to PORT when the platform injects it, WORKER_PORT otherwise."""
    port = int(os.getenv("PORT") or get_settings().worker_port)
    logger.info("[BOOT] Binding on 0.0.0.0:%d", port)
    app.run(host="0.0.0.0", port=port, threaded=True)


if __name__ == "__main__":
    main()
