from typing import List, Optional

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Health check response."""
    status: str = Field(..., description="Service status")
    profile: str = Field(..., description="Active configuration profile")
    binder: str = Field(..., description="Active binder type")
    connected: bool = Field(..., description="Whether the binder is connected")
    subscriptions: int = Field(..., description="Number of attached consumer handlers")


class BindingInfo(BaseModel):
    """One realized channel binding."""
    channel: str
    destination: str
    role: str
    group: Optional[str] = None
    subscribed: bool = Field(default=False, description="Whether a handler is attached")


class BindingsResponse(BaseModel):
    """Realized bindings of the active profile."""
    binder: str
    count: int
    bindings: List[BindingInfo]
