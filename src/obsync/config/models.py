"""Pydantic models for configuration schema."""

from typing import Optional
from pydantic import BaseModel, Field, field_validator, model_validator


def _validate_url(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    if not v.startswith(("http://", "https://")):
        raise ValueError(f"URL must start with http:// or https://: {v}")
    return v.rstrip("/")


class GrafanaConfig(BaseModel):
    """Grafana connection used by the dashboard and datasource providers."""

    url: Optional[str] = Field(None, description="Grafana base URL")
    token: Optional[str] = Field(None, description="API token or service account token")
    username: Optional[str] = Field(None, description="Basic auth user")
    password: Optional[str] = Field(None, description="Basic auth password")
    folder_id: int = Field(0, ge=0, description="Folder dashboards are placed in")
    org_id: Optional[int] = Field(None, ge=1, description="Organisation header value")

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: Optional[str]) -> Optional[str]:
        """Validate and normalise the base URL."""
        return _validate_url(v)

    @model_validator(mode="after")
    def validate_auth(self):
        """Token and basic auth are mutually exclusive."""
        if self.token and (self.username or self.password):
            raise ValueError("Cannot specify both 'token' and 'username'/'password'")
        if self.password and not self.username:
            raise ValueError("'username' is required when 'password' is set")
        return self


class RulerConfig(BaseModel):
    """Cortex/Mimir ruler connection used by the rule group provider."""

    url: Optional[str] = Field(None, description="Ruler base URL")
    tenant_id: Optional[str] = Field(None, description="X-Scope-OrgID tenant")
    api_key: Optional[str] = Field(None, description="Basic auth password or bearer key")
    username: Optional[str] = Field(None, description="Basic auth user, defaults to tenant")

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: Optional[str]) -> Optional[str]:
        """Validate and normalise the base URL."""
        return _validate_url(v)


class ReconcileConfig(BaseModel):
    """Behaviour of the reconciliation pass."""

    fail_fast: bool = False
    snapshot_expires: int = Field(
        3600, ge=0, description="Lifetime in seconds of dashboard preview snapshots"
    )


class Settings(BaseModel):
    """Top-level settings threaded into clients and providers."""

    grafana: GrafanaConfig = Field(default_factory=GrafanaConfig)
    ruler: RulerConfig = Field(default_factory=RulerConfig)
    reconcile: ReconcileConfig = Field(default_factory=ReconcileConfig)
