"""Application configuration loaded from environment variables."""

from __future__ import annotations

import re

from pydantic import AliasChoices, BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from filedesk.github.base import TargetDescriptor

TARGET_KEY_PATTERN = re.compile(r"^[a-z0-9][a-z0-9_-]*$")


class TargetConfig(BaseModel):
    """One managed file as written in the ``TARGETS`` JSON mapping."""

    repo: str = Field(min_length=1)
    path: str = Field(min_length=1)
    token: str = ""
    name: str = ""
    branch: str | None = None


class Settings(BaseSettings):
    """FileDesk application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Core
    secret_key: str = "change-me-in-production"
    debug: bool = False
    expose_docs: bool = False

    # Database
    database_url: str = "sqlite+aiosqlite:///data/db/filedesk.db"

    # Server
    host: str = "0.0.0.0"
    port: int = Field(default=8000, ge=1, le=65535)
    trusted_hosts: list[str] = Field(default_factory=list)
    trusted_proxy_ips: list[str] = Field(default_factory=list)

    # GitHub
    github_api_url: str = "https://api.github.com"
    github_timeout_seconds: float = Field(default=15.0, gt=0)
    history_page_size: int = Field(default=20, ge=1, le=100)

    # Targets (two-file form)
    github_token: str = ""
    github_repo: str = ""
    github_file_path: str = ""
    github_name: str = "Primary file"
    github_token2: str = ""
    github_repo2: str = ""
    github_file_path2: str = ""
    github_name2: str = "Secondary file"

    # Targets (mapping form, replaces the two-file form when set)
    targets: dict[str, TargetConfig] = Field(default_factory=dict)

    # Deploy
    deploy_hook_url: str = Field(
        default="",
        validation_alias=AliasChoices("deploy_hook_url", "deploy"),
    )

    # Admin
    admin_password: str = "admin"
    access_token_expire_minutes: int = Field(default=60, ge=1)
    auth_login_max_failures: int = Field(default=5, ge=1)
    auth_rate_limit_window_seconds: int = Field(default=300, ge=1)

    # Response hardening
    security_headers_enabled: bool = True
    content_security_policy: str = (
        "default-src 'self'; "
        "script-src 'self' 'unsafe-inline'; "
        "style-src 'self' 'unsafe-inline'; "
        "connect-src 'self'; "
        "base-uri 'self'; "
        "form-action 'self'; "
        "frame-ancestors 'none'"
    )

    def resolve_targets(self) -> dict[str, TargetDescriptor]:
        """Build the immutable target-key -> descriptor mapping.

        Raises ValueError when a configured key is not a valid slug.
        """
        if self.targets:
            resolved: dict[str, TargetDescriptor] = {}
            for key, cfg in self.targets.items():
                if not TARGET_KEY_PATTERN.match(key):
                    msg = f"Invalid target key {key!r}: use lowercase letters, digits, - and _"
                    raise ValueError(msg)
                resolved[key] = TargetDescriptor(
                    key=key,
                    repo=cfg.repo,
                    path=cfg.path,
                    token=cfg.token,
                    display_name=cfg.name or key,
                    branch=cfg.branch,
                )
            return resolved

        legacy = (
            (
                "primary",
                self.github_repo,
                self.github_file_path,
                self.github_token,
                self.github_name,
            ),
            (
                "secondary",
                self.github_repo2,
                self.github_file_path2,
                self.github_token2,
                self.github_name2,
            ),
        )
        return {
            key: TargetDescriptor(key=key, repo=repo, path=path, token=token, display_name=name)
            for key, repo, path, token, name in legacy
            if repo and path
        }

    def validate_runtime_security(self) -> None:
        """Validate security-critical production settings."""
        if self.debug:
            return

        violations: list[str] = []
        if self.secret_key == "change-me-in-production" or len(self.secret_key) < 32:
            violations.append(
                "SECRET_KEY must be overridden with a high-entropy value (>=32 chars)"
            )
        if self.admin_password == "admin" or len(self.admin_password) < 12:
            violations.append("ADMIN_PASSWORD must be overridden with a strong value (>=12 chars)")
        if not self.trusted_hosts:
            violations.append("TRUSTED_HOSTS must be configured in production")

        if violations:
            joined = "; ".join(violations)
            raise ValueError(f"Insecure production configuration: {joined}")
