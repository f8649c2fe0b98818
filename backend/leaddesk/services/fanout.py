"""Run independent read queries side by side, each on its own session."""
import logging
from collections.abc import Callable, Mapping
from concurrent.futures import ThreadPoolExecutor
from typing import Any

from sqlalchemy.orm import Session

from leaddesk.core.config import get_settings

logger = logging.getLogger(__name__)

Query = Callable[[Session], Any]


def _run_one(bind, query: Query) -> Any:
    # Sessions are not thread-safe; every query gets a fresh one on the shared engine.
    with Session(bind=bind, expire_on_commit=False) as session:
        return query(session)


def run_parallel(db: Session, queries: Mapping[str, Query], max_workers: int | None = None) -> dict[str, Any]:
    """Execute read-only ``queries`` concurrently and return their results by name.

    Results are awaited jointly; the first exception raised by any query
    propagates to the caller after the pool has shut down.
    """
    bind = db.get_bind()
    workers = max_workers or get_settings().REPORT_QUERY_WORKERS
    workers = max(1, min(workers, len(queries)))

    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="report_query") as executor:
        futures = {name: executor.submit(_run_one, bind, query) for name, query in queries.items()}
        results = {}
        for name, future in futures.items():
            try:
                results[name] = future.result()
            except Exception:
                logger.error("Parallel query %r failed", name)
                raise
    return results
