"""pydantic models for response schemas"""

from .responses import EndpointMap, ErrorResponse, HealthResponse, RootResponse, SlowResponse

__all__ = ["EndpointMap", "ErrorResponse", "HealthResponse", "RootResponse", "SlowResponse"]
