from pydantic import BaseModel
from typing import Optional, Literal


class StartRequest(BaseModel):
    url: Optional[str] = None


class StartResponse(BaseModel):
    success: bool = True
    pid: str
    title: str
    downloadUrl: Optional[str] = None


class StatusResponse(BaseModel):
    progress: int
    status: Literal["waiting", "ready"]
    downloadUrl: Optional[str] = None


class StreamRequest(BaseModel):
    downloadUrl: Optional[str] = None
    title: Optional[str] = None


class ErrorResponse(BaseModel):
    error: str
