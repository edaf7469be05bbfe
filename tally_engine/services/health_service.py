"""
Health Service Module
Handles health checks for the Tally gateway and process
"""

from datetime import datetime
from typing import Optional

from ..models.health import HealthCheckResponse, ProcessHealth, TallyHealth
from ..utils.constants import HealthStatus
from ..utils.logger import logger
from .dispatcher import TallySession, sessions


class HealthService:
    """Service for health monitoring"""

    def __init__(self, session: Optional[TallySession] = None):
        self._session = session

    @property
    def session(self) -> TallySession:
        return self._session or sessions.get()

    async def check_all(self) -> HealthCheckResponse:
        """Check health of all components"""
        tally_health = await self.check_tally()
        process_health = await self.check_process()

        # Overall status
        if tally_health.status == HealthStatus.HEALTHY:
            overall_status = HealthStatus.HEALTHY
        elif process_health.running:
            overall_status = HealthStatus.DEGRADED
        else:
            overall_status = HealthStatus.UNHEALTHY

        return HealthCheckResponse(
            status=overall_status,
            timestamp=datetime.now().isoformat(),
            components={"tally": tally_health, "process": process_health},
        )

    async def check_tally(self) -> TallyHealth:
        """Check the Tally HTTP gateway"""
        status = await self.session.tally.check_status()
        if status["responding"]:
            company = status["active_company"]
            return TallyHealth(
                status=HealthStatus.HEALTHY,
                server=status["server"],
                port=status["port"],
                company=company,
                message="Connected" if company else "Connected, no company open",
            )
        logger.warning(f"Tally health check failed: {status.get('error')}")
        return TallyHealth(
            status=HealthStatus.UNHEALTHY,
            server=status["server"],
            port=status["port"],
            message=status.get("error") or "Connection failed",
        )

    async def check_process(self) -> ProcessHealth:
        """Check the TallyPrime process"""
        try:
            process = await self.session.manager.is_running()
        except Exception as e:
            logger.error(f"Process check failed: {e}")
            return ProcessHealth(status=HealthStatus.UNHEALTHY, message=str(e))
        return ProcessHealth(
            status=HealthStatus.HEALTHY if process.running else HealthStatus.UNHEALTHY,
            running=process.running,
            pid=process.pid,
            message="Running" if process.running else "Not running",
        )


# Global service instance
health_service = HealthService()
