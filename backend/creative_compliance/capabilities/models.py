"""Typed results returned by AI capability providers."""

from typing import Optional

from pydantic import BaseModel, Field


class PeopleDetection(BaseModel):
    detected: bool = False
    count: int = Field(default=0, ge=0)
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    provider: Optional[str] = None


class LockupVerification(BaseModel):
    valid: bool = False
    issues: list[str] = Field(default_factory=list)
    provider: Optional[str] = None


class PackshotAnalysis(BaseModel):
    count: int = Field(default=0, ge=0)
    has_lead: bool = False
    issues: list[str] = Field(default_factory=list)
    provider: Optional[str] = None


class EntailmentResult(BaseModel):
    entails: bool = False
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    provider: Optional[str] = None
