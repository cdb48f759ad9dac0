"""
API response models for the frontend's JSON endpoints.

  /api/bird/{servers}/{command}        → BirdApiResponse
  /api/traceroute/{servers}/{target}   → TracerouteApiResponse
  /api/whois/{target}                  → WhoisApiResponse
"""

from typing import Optional

from pydantic import BaseModel, Field


class ServerResultModel(BaseModel):
    server: str
    result: Optional[str] = None   # raw daemon/tool output
    error: Optional[str] = None


class BirdApiResponse(BaseModel):
    servers: list[str] = Field(default_factory=list)
    command: str
    results: list[ServerResultModel] = Field(default_factory=list)


class TracerouteApiResponse(BaseModel):
    servers: list[str] = Field(default_factory=list)
    target: str
    results: list[ServerResultModel] = Field(default_factory=list)


class WhoisApiResponse(BaseModel):
    target: str
    result: Optional[str] = None
    error: Optional[str] = None
