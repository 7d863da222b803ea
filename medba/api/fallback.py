from fastapi import APIRouter, Depends
from starlette.exceptions import HTTPException as StarletteHTTPException

from medba.api.dependencies import enforce_rate_limit

router = APIRouter(prefix="/api", dependencies=[Depends(enforce_rate_limit)])


@router.api_route("/{path:path}", methods=["GET", "POST", "PUT", "PATCH", "DELETE"], include_in_schema=False)
async def api_not_found(path: str):
    """Unknown /api paths still spend the caller's rate budget"""
    raise StarletteHTTPException(status_code=404)
