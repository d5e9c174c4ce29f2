"""Aggregated router.

All endpoints are registered here and mounted at the app root in main.py;
MCP clients expect the tool surface at "/" and OAuth under "/oauth".
"""

from fastapi import APIRouter

from api.routes import account, admin, connect, health, mcp, oauth, register

api_router = APIRouter()

api_router.include_router(mcp.router, tags=["MCP"])
api_router.include_router(register.router, tags=["Registration"])
api_router.include_router(connect.router, tags=["Connect"])
api_router.include_router(oauth.router, tags=["OAuth"])
api_router.include_router(oauth.discovery_router, tags=["OAuth"])
api_router.include_router(account.router, tags=["Account"])
api_router.include_router(admin.router, tags=["Admin"])
api_router.include_router(health.router, tags=["Health"])
