from pydantic import BaseModel, Field


class EndpointMap(BaseModel):
    """known endpoint locations"""

    health: str = Field(description="health check path")
    slow: str = Field(description="slow demonstration path")
    error: str = Field(description="error demonstration path")
    metrics: str = Field(description="prometheus exposition url")


class RootResponse(BaseModel):
    """service banner"""

    message: str = Field(description="service banner")
    timestamp: str = Field(description="iso-8601 utc timestamp")
    endpoints: EndpointMap


class HealthResponse(BaseModel):
    """response model for health check"""

    status: str = Field(description="health status")
    timestamp: str = Field(description="iso-8601 utc timestamp")
    uptime: float = Field(ge=0.0, description="seconds since startup")
    service: str = Field(description="service name")


class SlowResponse(BaseModel):
    """response model for the slow endpoint"""

    message: str = Field(description="result message")
    delay: str = Field(description="human readable delay")
    timestamp: str = Field(description="iso-8601 utc timestamp")


class ErrorResponse(BaseModel):
    """error body"""

    error: str = Field(description="error title")
    message: str = Field(description="error detail")
    timestamp: str = Field(description="iso-8601 utc timestamp")
