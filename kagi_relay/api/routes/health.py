from __future__ import annotations

from fastapi import APIRouter, Request

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check(request: Request) -> dict:
    """Health check endpoint.

    Reports liveness plus whether quota records are persisted and how many
    are currently held, which is enough to spot a store that failed to load.

    Returns:
        dict: ``status`` set to "ok" and a ``quota`` summary.
    """

    engine = request.app.state.quota_engine
    return {
        "status": "ok",
        "quota": {
            "persistence_enabled": engine.persistence_enabled,
            "records": len(engine.ledger),
        },
    }
