"""
Platform Factory
Code generation input/output models.

    PlatformSpec   — what to scaffold (wire: camelCase, ``hasCMS``)
    GeneratedFile  — one rendered file of the scaffold
"""

import re
from typing import Literal

from pydantic import ConfigDict, Field, field_validator

from platform_factory.analysis.schemas import WireModel

FileCategory = Literal["config", "shared", "backend", "frontend", "infrastructure", "docs"]

DEFAULT_PRIMARY_COLOR = "#2563eb"
DEFAULT_SECONDARY_COLOR = "#0f172a"

NAME_MAX_LENGTH = 120
DESCRIPTION_MAX_LENGTH = 2000

_HEX_COLOR = re.compile(r"^#[0-9a-fA-F]{6}$")


class PlatformSpec(WireModel):
    """Scaffold request. Only ``name``, ``description`` and ``sector`` are required."""

    name: str = Field(min_length=1, max_length=NAME_MAX_LENGTH)
    name_ar: str = ""
    description: str = Field(min_length=1, max_length=DESCRIPTION_MAX_LENGTH)
    description_ar: str = ""
    sector: str = Field(min_length=1, max_length=50)
    features: list[str] = Field(default_factory=list)
    has_auth: bool = True
    has_payments: bool = False
    has_subscriptions: bool = False
    has_cms: bool = Field(default=False, alias="hasCMS")
    has_analytics: bool = False
    primary_color: str = DEFAULT_PRIMARY_COLOR
    secondary_color: str = DEFAULT_SECONDARY_COLOR

    @field_validator("name", "description", "sector")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value.strip()

    @field_validator("primary_color", "secondary_color")
    @classmethod
    def _hex_color(cls, value: str) -> str:
        if not _HEX_COLOR.match(value):
            raise ValueError("must be a #rrggbb hex color")
        return value.lower()

    @field_validator("features")
    @classmethod
    def _clean_features(cls, value: list[str]) -> list[str]:
        return [f.strip() for f in value if f and f.strip()]


class GeneratedFile(WireModel):
    model_config = ConfigDict(frozen=True)

    file_name: str
    file_path: str
    content: str
    language: str
    category: FileCategory
