from __future__ import annotations

from fastapi import FastAPI, HTTPException

from app.api.routers import abilities, assets, equipment, identity, locations, lookups
from app.infra.audit import AuditMiddleware
from app.infra.db import check_db_ready
from app.infra.log import configure_logging

configure_logging()

app = FastAPI(
    title="asset-registry",
    description="Multi-tenant branch, location and asset registry with rule based authorization.",
    version="0.1.0",
)

app.add_middleware(AuditMiddleware)

app.include_router(identity.router, prefix="/api/identity", tags=["identity"])
app.include_router(abilities.router, prefix="/api/users/{user_id}/abilities", tags=["abilities"])
app.include_router(abilities.me_router, prefix="/api/abilities", tags=["abilities"])
app.include_router(locations.router, prefix="/api", tags=["locations"])
app.include_router(assets.router, prefix="/api/assets", tags=["assets"])
app.include_router(equipment.router, prefix="/api", tags=["equipment"])
app.include_router(lookups.router, prefix="/api/lookups", tags=["lookups"])


@app.get("/healthz")
def healthz() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/readyz")
def readyz() -> dict[str, object]:
    db_ok = check_db_ready()
    checks = {"db": "ok" if db_ok else "fail"}
    if not db_ok:
        raise HTTPException(
            status_code=503,
            detail={"status": "not_ready", "checks": checks},
        )
    return {"status": "ready", "checks": checks}
