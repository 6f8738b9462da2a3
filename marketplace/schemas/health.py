from pydantic import BaseModel, Field


class HealthStatus(BaseModel):
    status: str = Field(description="available or unavailable")
    environment: str
    version: str
    database: str = Field(description="connected or disconnected")
    background_tasks: int = Field(description="Background tasks currently queued or running")
    uptime_seconds: float


class HealthEnvelope(BaseModel):
    health: HealthStatus
