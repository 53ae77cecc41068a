from fastapi import APIRouter, Depends

from auth import require_sync_secret
from config import settings
from schemas import ApiInfoResponse
from services.info_service import get_api_info

router = APIRouter(prefix="/api", tags=["info"], dependencies=[Depends(require_sync_secret)])


@router.get("/info", response_model=ApiInfoResponse)
async def read_info() -> ApiInfoResponse:
    return get_api_info(settings)
