"""
Health checks for Kubernetes readiness/liveness probes.

Checks:
- Database connectivity (through the transaction store)
"""
from typing import Any, Dict, Protocol

import structlog

logger = structlog.get_logger(__name__)


class Pingable(Protocol):
    async def ping(self) -> None:
        ...


class HealthCheck:
    """Health check service for monitoring system dependencies."""

    def __init__(self, store: Pingable) -> None:
        self.store = store

    async def check_database(self) -> Dict[str, Any]:
        """
        Check database connectivity.

        Returns:
            Dict[str, Any]: Database health status
        """
        try:
            await self.store.ping()
        except Exception as e:
            logger.error("database_health_check_failed", error=str(e))
            return {
                "status": "unhealthy",
                "service": "database",
                "error": str(e),
            }

        return {
            "status": "healthy",
            "service": "database",
            "message": "Database connection successful",
        }

    async def check_all(self) -> Dict[str, Any]:
        """
        Run all health checks.

        Returns:
            Dict[str, Any]: Overall health status
        """
        checks = {"database": await self.check_database()}
        all_healthy = all(check["status"] == "healthy" for check in checks.values())

        return {
            "status": "healthy" if all_healthy else "unhealthy",
            "checks": checks,
        }

    async def liveness(self) -> Dict[str, Any]:
        """
        Liveness probe.

        Does not check external dependencies.
        """
        return {
            "status": "alive",
            "message": "Application is running",
        }

    async def readiness(self) -> Dict[str, Any]:
        """Readiness probe; verifies all dependencies are available."""
        return await self.check_all()
