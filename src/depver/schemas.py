"""
Tool input schemas.

Pydantic models for arguments arriving from MCP tool calls or the CLI.
Both snake_case and the camelCase names used by existing MCP clients
("system", "includePrerelease") are accepted.
"""

from __future__ import annotations

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from depver.types import BatchRequest, Ecosystem


class PackageQuery(BaseModel):
    """One package reference in a tool call."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    ecosystem: Ecosystem = Field(
        validation_alias=AliasChoices("ecosystem", "system"),
        description="Package ecosystem (NPM, CARGO, PYPI, GO, RUBYGEMS, NUGET)",
    )
    name: str = Field(min_length=1, description="Package name")
    include_prerelease: bool = Field(
        default=False,
        validation_alias=AliasChoices("include_prerelease", "includePrerelease"),
        description="Include prerelease versions when resolving the latest",
    )
    version: str | None = Field(
        default=None, description="Explicit version (PURL generation only)"
    )

    @field_validator("ecosystem", mode="before")
    @classmethod
    def parse_ecosystem(cls, v: str | Ecosystem) -> Ecosystem:
        """Accept ecosystem tags in any letter case."""
        return Ecosystem.parse(v)

    def to_request(self) -> BatchRequest:
        return BatchRequest(
            ecosystem=self.ecosystem,
            name=self.name,
            include_prerelease=self.include_prerelease,
        )
