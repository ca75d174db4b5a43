"""FastAPI application exposing the bed analytics queries.

Usage
=====
1. Export the bed, event and cleaning records to a file the store loader
   understands (``.json``, ``.yaml`` or a pickled ``InMemoryEventStore``).

2. Point the API to that file via the ``BEDFLOW_STORE_PATH`` environment
   variable (or a YAML settings file via ``BEDFLOW_CONFIG``) before starting
   uvicorn, e.g.::

       export BEDFLOW_STORE_PATH=/path/to/beds.json
       uvicorn bedflow.api.main:app

3. Call the HTTP endpoints, for example::

       curl "http://localhost:8000/api/analytics/occupancy-trends?granularity=weekly"
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional

from fastapi import FastAPI, HTTPException, Query

from bedflow.config import Settings
from bedflow.engine import AnalyticsEngine
from bedflow.errors import InvalidArgument, NotFound, UpstreamUnavailable
from bedflow.store import load_store
from bedflow.utils import to_payload

LOGGER = logging.getLogger(__name__)

app = FastAPI(title="Bedflow Occupancy Analytics")

_engine: Optional[AnalyticsEngine] = None


def _load_engine(settings: Settings) -> AnalyticsEngine:
    if not settings.store_path:
        raise RuntimeError("BEDFLOW_STORE_PATH environment variable is not set")

    try:
        store = load_store(settings.store_path)
    except Exception as exc:
        LOGGER.exception("Failed to load store from %s", settings.store_path)
        raise RuntimeError("Unable to load bed store") from exc

    return AnalyticsEngine(store, settings=settings)


def set_engine(engine: Optional[AnalyticsEngine]) -> None:
    global _engine
    _engine = engine


def _get_engine() -> AnalyticsEngine:
    if _engine is None:
        raise HTTPException(
            status_code=503, detail={"message": "Analytics engine not initialised"}
        )
    return _engine


@app.on_event("startup")
def _on_startup() -> None:
    settings = Settings.from_env()
    logging.basicConfig(level=settings.log_level)
    set_engine(_load_engine(settings))


def _respond(operation: Callable[..., Any], *args, **kwargs) -> Dict[str, Any]:
    try:
        result = operation(*args, **kwargs)
    except InvalidArgument as exc:
        raise HTTPException(status_code=400, detail={"message": str(exc)}) from exc
    except NotFound as exc:
        raise HTTPException(status_code=404, detail={"message": str(exc)}) from exc
    except UpstreamUnavailable as exc:
        raise HTTPException(status_code=503, detail={"message": str(exc)}) from exc
    return {"data": to_payload(result)}


@app.get("/api/analytics/occupancy-summary")
def read_occupancy_summary() -> Dict[str, Any]:
    return _respond(_get_engine().occupancy_summary)


@app.get("/api/analytics/occupancy-by-ward")
def read_occupancy_by_ward() -> Dict[str, Any]:
    return _respond(_get_engine().occupancy_by_ward)


@app.get("/api/analytics/bed-history/{bed_id}")
def read_bed_history(
    bed_id: str,
    limit: Optional[int] = Query(None, description="Page size, at most 200"),
    skip: Optional[int] = Query(None, description="Number of newest events to skip"),
) -> Dict[str, Any]:
    return _respond(_get_engine().bed_history, bed_id, limit=limit, skip=skip)


@app.get("/api/analytics/occupancy-trends")
def read_occupancy_trends(
    start_date: Optional[str] = Query(None, description="ISO 8601 start instant"),
    end_date: Optional[str] = Query(None, description="ISO 8601 end instant"),
    granularity: str = Query("daily", description="hourly, daily or weekly"),
) -> Dict[str, Any]:
    return _respond(
        _get_engine().occupancy_trends,
        start_date=start_date,
        end_date=end_date,
        granularity=granularity,
    )


@app.get("/api/analytics/length-of-stay")
def read_length_of_stay() -> Dict[str, Any]:
    return _respond(_get_engine().length_of_stay)


@app.get("/api/analytics/forecasting")
def read_forecasting() -> Dict[str, Any]:
    return _respond(_get_engine().forecast)


@app.get("/api/analytics/cleaning-performance")
def read_cleaning_performance(
    ward: Optional[str] = None,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    period: Optional[int] = Query(None, description="Days back from now, default 7"),
) -> Dict[str, Any]:
    return _respond(
        _get_engine().cleaning_performance,
        ward=ward,
        start_date=start_date,
        end_date=end_date,
        period=period,
    )


@app.get("/api/beds")
def read_beds(status: Optional[str] = None, ward: Optional[str] = None) -> Dict[str, Any]:
    response = _respond(_get_engine().list_beds, status=status, ward=ward)
    response["count"] = len(response["data"])
    return response


@app.get("/health")
def health() -> Dict[str, Any]:
    if _engine is None:
        return {"status": "error", "details": "Store not loaded"}
    return {"status": "ok", "timestamp": _engine.now().isoformat()}
