from fastapi import APIRouter, Request

from actual_mcp.utils import log_transport

router = APIRouter()


@router.get("/health")
def health(request: Request):
    server_host = request.app.state.server_host
    log_transport(f"HEALTH [server:{server_host}]", {"type": "health_check", "server": server_host})
    return {"status": "ok"}
