from __future__ import annotations

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from vendor_request_app.core.repository_errors import PersistenceError, SchemaBootstrapRequiredError
from vendor_request_app.web.core.runtime import get_config, get_repo

router = APIRouter(prefix="/api")
LOGGER = logging.getLogger(__name__)


@router.get("/health")
def api_health():
    config = get_config()
    payload = {
        "ok": True,
        "env": config.env,
        "mode": "local" if config.use_local_db else "databricks",
        "schema": config.fq_schema,
    }
    try:
        payload.update(get_repo().health_check())
        return JSONResponse(payload, status_code=200)
    except SchemaBootstrapRequiredError as exc:
        payload["ok"] = False
        payload["error"] = str(exc)
        return JSONResponse(payload, status_code=503)
    except PersistenceError as exc:
        LOGGER.warning("Health check failed. %s", exc, extra={"event": "health_check_failed"})
        payload["ok"] = False
        payload["error"] = f"Connection check failed: {exc}"
        return JSONResponse(payload, status_code=503)
