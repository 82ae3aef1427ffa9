"""Pydantic models for the destinations file."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class StorageSchema(BaseModel):
    """Remote storage settings for one destination."""

    type: Literal["s3", "local"] = "s3"
    bucket: str | None = None
    prefix: str = ""
    endpoint_url: str | None = None
    access_key: str | None = None
    secret_key: str | None = None
    region: str = "us-east-1"
    local_path: str | None = None


class DestinationSchema(BaseModel):
    """One replication destination."""

    id: str
    enabled: bool = True
    repositories: list[str] = Field(default_factory=list)
    exclusions: list[str] = Field(default_factory=list)
    storage: StorageSchema
    schedule: str | None = None


class DestinationsFile(BaseModel):
    """Top-level document of the destinations file."""

    destinations: list[DestinationSchema] = Field(default_factory=list)
