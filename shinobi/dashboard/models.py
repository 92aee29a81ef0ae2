#!/usr/bin/env python3
"""Shinobi Plan API — Pydantic Models.

CUI // SP-CTI
"""

from typing import Any, Dict, List
from pydantic import BaseModel, Field

from shinobi.core.models import ComplianceFramework


# ---- Request Models ----

class BindSpec(BaseModel):
    to: str = Field(..., min_length=1)
    capability: str = Field(..., pattern=r"^[a-z][a-z0-9-]*:[a-z][a-z0-9-]*$")
    access: str = Field(..., min_length=1)
    env: Dict[str, str] = {}
    options: Dict[str, Any] = {}


class ComponentModel(BaseModel):
    name: str = Field(..., min_length=1, max_length=63)
    type: str = Field(..., min_length=1)
    config: Dict[str, Any] = {}
    binds: List[BindSpec] = []


class PlanRequest(BaseModel):
    service: str = Field(..., min_length=1, max_length=63)
    owner: str = Field(..., min_length=1)
    complianceFramework: ComplianceFramework
    environment: str = "dev"
    region: str = "us-east-1"
    accountId: str = Field("000000000000", pattern=r"^\d{12}$")
    labels: Dict[str, str] = {}
    components: List[ComponentModel] = []

    def to_manifest(self) -> dict:
        """Manifest mapping in service.yml shape."""
        return self.model_dump(mode="json")


class ExplainRequest(PlanRequest):
    component: str = Field(..., min_length=1)

    def to_manifest(self) -> dict:
        return self.model_dump(mode="json", exclude={"component"})
