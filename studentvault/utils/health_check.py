"""Health Check - liveness + readiness for the student API

K8s Integration:
- /health: Liveness probe (is service running?)
- /health/ready: Readiness probe (database reachable, keys loaded?)
"""

import time
from datetime import datetime, timezone
from typing import Dict

import structlog

from studentvault.records.database import Database
from studentvault.security.key_manager import KeyContext

logger = structlog.get_logger()


class HealthStatus:
    """Health status constants"""
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


class HealthChecker:
    """Dependency checks for one app instance"""

    def __init__(self, database: Database, keys: KeyContext):
        self.database = database
        self.keys = keys
        self.start_time = time.time()

    def check_database(self) -> Dict:
        """Check record store connectivity"""
        try:
            start = time.time()
            self.database.ping()
            latency_ms = (time.time() - start) * 1000
            return {
                "status": HealthStatus.HEALTHY,
                "latency_ms": round(latency_ms, 2),
                "message": "Database connection successful"
            }
        except Exception as e:
            logger.error("Database health check failed", error=str(e))
            return {
                "status": HealthStatus.UNHEALTHY,
                "error": str(e),
                "message": "Database connection failed"
            }

    def check_keys(self) -> Dict:
        """Key context is immutable once loaded; report its non-secret metadata"""
        return {"status": HealthStatus.HEALTHY, **self.keys.describe()}

    def liveness_check(self) -> Dict:
        return {
            "status": HealthStatus.HEALTHY,
            "uptime_seconds": round(time.time() - self.start_time, 1),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    def readiness_check(self) -> Dict:
        checks = {
            "database": self.check_database(),
            "keys": self.check_keys(),
        }
        healthy = all(c["status"] == HealthStatus.HEALTHY for c in checks.values())
        return {
            "status": HealthStatus.HEALTHY if healthy else HealthStatus.UNHEALTHY,
            "checks": checks,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
