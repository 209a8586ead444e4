"""Main router for API v1."""

from fastapi import APIRouter

from ipam_operator.api.v1.endpoints import (
    clusters,
    health,
    ipaddressclaims,
    ipclaims,
    ippools,
)

# Create main API v1 router
api_router = APIRouter()

# Include endpoint routers
api_router.include_router(
    health.router,
    prefix="/health",
    tags=["Health"],
)

api_router.include_router(
    ippools.router,
    prefix="/namespaces/{namespace}/ippools",
    tags=["IPPools"],
)

api_router.include_router(
    ipclaims.router,
    prefix="/namespaces/{namespace}/ipclaims",
    tags=["IPClaims"],
)

api_router.include_router(
    ipaddressclaims.router,
    prefix="/namespaces/{namespace}/ipaddressclaims",
    tags=["IPAddressClaims"],
)

api_router.include_router(
    clusters.router,
    prefix="/namespaces/{namespace}/clusters",
    tags=["Clusters"],
)
