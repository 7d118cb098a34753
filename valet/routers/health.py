# valet/routers/health.py
"""
System health check endpoint.
Returns status of backend + DB + NFC reader bridge + hook board.
"""

import requests
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from sqlalchemy import text
from valet.database import get_db
from valet.config import settings
from valet.services.orchestrator import Orchestrator, get_orchestrator
from valet.utils.clock import utcnow

router = APIRouter()


@router.get("/health", summary="System health check")
def health_check(db: Session = Depends(get_db), core: Orchestrator = Depends(get_orchestrator)):
    """
    Returns:
    - Backend status
    - Database connectivity
    - NFC bridge reachability (when one is configured)
    - Hook board occupancy
    """
    stats = core.hook_stats()
    result = {
        "status": "ok",
        "timestamp": utcnow().isoformat(),
        "backend": "ok",
        "database": "unknown",
        "nfc_bridge": "simulated",
        "hooks": {"total": stats.total, "available": stats.available, "occupied": stats.occupied},
    }

    try:
        db.execute(text("SELECT 1"))
        result["database"] = "ok"
    except Exception as e:
        result["database"] = f"error: {str(e)}"
        result["status"] = "degraded"

    if settings.NFC_BRIDGE_URL:
        try:
            resp = requests.get(f"{settings.NFC_BRIDGE_URL.rstrip('/')}/tag", timeout=settings.NFC_TIMEOUT_SECONDS)
            result["nfc_bridge"] = "ok" if resp.status_code == 200 else f"http_{resp.status_code}"
        except requests.exceptions.ConnectionError:
            result["nfc_bridge"] = "unreachable"
            result["status"] = "degraded"
        except requests.exceptions.RequestException as e:
            result["nfc_bridge"] = f"error: {str(e)}"
            result["status"] = "degraded"

    return result
