"""Tool definitions and typed parameter schemas for the tool server."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Type

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..config import ValidationOptions, normalize_validator_name
from ..validators import available_validators

VALIDATE_TOOL = "documentation_validate"
CHECK_TOOL = "documentation_check"


class ValidationOptionsModel(BaseModel):
    """Options bag accepted by ``documentation_validate``."""

    model_config = ConfigDict(strict=True, extra="forbid", populate_by_name=True)

    verbose: bool = Field(False, description="Include per-validator details in the report.")
    validators: Optional[List[str]] = Field(
        None,
        min_length=1,
        description="Validators to run (defaults to all).",
    )
    min_coverage_percentage: Optional[float] = Field(
        None,
        alias="minCoveragePercentage",
        ge=0,
        le=100,
        description="Minimum documented share of categories for coverage to pass.",
    )
    skip_external_links: Optional[bool] = Field(
        None,
        alias="skipExternalLinks",
        description="Skip well-formedness checks for external links.",
    )
    require_language: Optional[bool] = Field(
        None,
        alias="requireLanguage",
        description="Report code blocks without a language tag.",
    )
    include_empty: Optional[bool] = Field(
        None,
        alias="includeEmpty",
        description="Count coverage categories that have no matching source files.",
    )
    docs_dir: Optional[str] = Field(
        None,
        alias="docsDir",
        description="Documentation directory relative to the project root.",
    )

    @field_validator("validators")
    @classmethod
    def _known_validators(cls, value: Optional[List[str]]) -> Optional[List[str]]:
        if value is None:
            return value
        known = set(available_validators())
        unknown = sorted({name for name in value if normalize_validator_name(name) not in known})
        if unknown:
            raise ValueError(f"Unknown validators: {', '.join(unknown)}")
        return value

    def to_options(self) -> ValidationOptions:
        return ValidationOptions(
            validators=list(self.validators) if self.validators else None,
            verbose=self.verbose,
            skip_external_links=self.skip_external_links,
            require_language=self.require_language,
            include_empty=self.include_empty,
            min_coverage_percentage=self.min_coverage_percentage,
            docs_dir=self.docs_dir,
        )


class ValidateArguments(BaseModel):
    model_config = ConfigDict(strict=True, extra="forbid")

    path: str = Field(..., min_length=1, description="Path to the project root.")
    options: ValidationOptionsModel = Field(default_factory=ValidationOptionsModel)


class CheckArguments(BaseModel):
    model_config = ConfigDict(strict=True, extra="forbid")

    path: str = Field(..., min_length=1, description="Path to the project root.")


@dataclass(frozen=True)
class ToolSpec:
    """A tool published through ``tools/list``."""

    name: str
    description: str
    arguments: Type[BaseModel]

    def describe(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.arguments.model_json_schema(by_alias=True),
        }


TOOLS: Dict[str, ToolSpec] = {
    VALIDATE_TOOL: ToolSpec(
        name=VALIDATE_TOOL,
        description=(
            "Validate a project's documentation for freshness, consistency, best practices, "
            "coverage and code-style compliance."
        ),
        arguments=ValidateArguments,
    ),
    CHECK_TOOL: ToolSpec(
        name=CHECK_TOOL,
        description="Check whether a project has any documentation without running validators.",
        arguments=CheckArguments,
    ),
}


__all__ = [
    "CHECK_TOOL",
    "CheckArguments",
    "TOOLS",
    "ToolSpec",
    "VALIDATE_TOOL",
    "ValidateArguments",
    "ValidationOptionsModel",
]
