from pydantic import BaseModel


class HealthResponse(BaseModel):
    status: str
    version: str
    active_batches: int = 0
