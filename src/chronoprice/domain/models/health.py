from pydantic import BaseModel

HEALTHY = "healthy"
UNHEALTHY = "unhealthy"
DEGRADED = "degraded"


class HealthReport(BaseModel):
    status: str = HEALTHY
    components: dict[str, str] = {}
    errors: dict[str, str] = {}

    @property
    def healthy(self) -> bool:
        return self.status == HEALTHY
