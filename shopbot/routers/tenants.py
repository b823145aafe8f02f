from __future__ import annotations

from fastapi import APIRouter, Depends, Header, HTTPException, Query, status
from sqlalchemy.orm import Session

from shopbot.core import config as app_config
from shopbot.core.database import get_db
from shopbot.core.errors import NotFoundError, ValidationError
from shopbot.deps import get_runtime
from shopbot.runtime import Runtime
from shopbot.schemas.tenants import TenantCreate, TenantListResponse, TenantResponse, TenantUpdate
from shopbot.services.tenants import to_response


def _ensure_admin_security(x_admin_token: str | None = Header(default=None)) -> None:
    configured = (app_config.ADMIN_API_TOKEN or "").strip()
    incoming = (x_admin_token or "").strip()
    if not configured:
        if app_config.IS_PROD:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Tenant provisioning in production requires ADMIN_API_TOKEN",
            )
        return
    if incoming != configured:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid admin token")


router = APIRouter(prefix="/api/tenants", tags=["tenants"], dependencies=[Depends(_ensure_admin_security)])


@router.post("", response_model=TenantResponse, status_code=status.HTTP_201_CREATED)
def create_tenant(
    payload: TenantCreate,
    db: Session = Depends(get_db),
    runtime: Runtime = Depends(get_runtime),
):
    try:
        tenant = runtime.tenants.create(db, payload)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return to_response(tenant)


@router.get("", response_model=TenantListResponse)
def list_tenants(
    limit: int = Query(default=50, ge=1, le=200),
    skip: int = Query(default=0, ge=0),
    is_active: bool | None = Query(default=None),
    db: Session = Depends(get_db),
    runtime: Runtime = Depends(get_runtime),
):
    tenants, total = runtime.tenants.list_tenants(db, limit=limit, skip=skip, is_active=is_active)
    return TenantListResponse(items=[to_response(t) for t in tenants], total=total, limit=limit, skip=skip)


@router.get("/{tenant_id}", response_model=TenantResponse)
def get_tenant(tenant_id: str, db: Session = Depends(get_db), runtime: Runtime = Depends(get_runtime)):
    try:
        return to_response(runtime.tenants.get(db, tenant_id))
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Tenant not found")


@router.put("/{tenant_id}", response_model=TenantResponse)
def update_tenant(
    tenant_id: str,
    payload: TenantUpdate,
    db: Session = Depends(get_db),
    runtime: Runtime = Depends(get_runtime),
):
    try:
        tenant = runtime.tenants.update(db, tenant_id, payload)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Tenant not found")
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return to_response(tenant)


@router.delete("/{tenant_id}", response_model=TenantResponse)
def deactivate_tenant(tenant_id: str, db: Session = Depends(get_db), runtime: Runtime = Depends(get_runtime)):
    try:
        return to_response(runtime.tenants.set_active(db, tenant_id, False))
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Tenant not found")


@router.post("/{tenant_id}/activate", response_model=TenantResponse)
def activate_tenant(tenant_id: str, db: Session = Depends(get_db), runtime: Runtime = Depends(get_runtime)):
    try:
        return to_response(runtime.tenants.set_active(db, tenant_id, True))
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Tenant not found")
