"""
Health Controller
Handles health check API endpoints
"""

from fastapi import APIRouter

from ..services.health_service import health_service

router = APIRouter()


@router.get("")
async def health_check():
    """Complete health check"""
    return await health_service.check_all()


@router.get("/tally")
async def tally_health():
    """Tally gateway health check"""
    return await health_service.check_tally()


@router.get("/process")
async def process_health():
    """TallyPrime process health check"""
    return await health_service.check_process()
