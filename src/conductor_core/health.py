"""Layered health check for a Conductor installation.

Checks run in order, later ones only when earlier ones pass:
1. Configuration File   - present and parseable
2. Provider Configuration - a primary provider is configured
3. Provider Health      - the provider's own liveness probe
4. Environment Variables - informational, always runs, always passes

``healthy`` is False iff some check has status fail; warnings never flip it.
"""
import logging
import os
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

from pydantic import BaseModel, Field

from . import config as config_module
from .config import ConductorConfig, ConfigError, ConfigNotFoundError, ProviderConfig
from .providers import HealthCheckable, ProviderHealth, create_provider

logger = logging.getLogger("conductor.core.health")

HEALTH_TIMEOUT = 30

ENVIRONMENT_OVERRIDES = (
    "CONDUCTOR_ALLOWED_PATHS",
    "CONDUCTOR_PROVIDER",
    "CONDUCTOR_CONFIG",
)

ProviderFactory = Callable[[ProviderConfig], Optional[object]]


class CheckStatus(str, Enum):
    PASS = "pass"
    WARN = "warn"
    FAIL = "fail"


class HealthCheck(BaseModel):
    name: str
    status: CheckStatus
    message: str
    remediation: Optional[str] = None


class HealthReport(BaseModel):
    version: str
    checks: list[HealthCheck] = Field(default_factory=list)

    @property
    def healthy(self) -> bool:
        return all(check.status != CheckStatus.FAIL for check in self.checks)

    def to_payload(self) -> dict:
        return {
            "healthy": self.healthy,
            "version": self.version,
            "checks": [c.model_dump(mode="json", exclude_none=True) for c in self.checks],
        }


def sanitize_message(message: str) -> str:
    """Pass-through for provider messages.

    Providers only report flags, versions and fixed phrases, never credential
    values; this is the single place to tighten that if it ever changes.
    """
    return message


def provider_remediation(result: ProviderHealth) -> str:
    if not result.installed:
        return "Provider is not installed. Install the required provider binary."
    if not result.authenticated:
        return "Provider authentication failed. Check your credentials configuration."
    if not result.working:
        return "Provider is not working properly. Check provider logs for details."
    return "Run 'conductor health' CLI command for detailed diagnostics"


def check_config(path: Path) -> tuple[HealthCheck, Optional[ConductorConfig]]:
    name = "Configuration File"
    try:
        cfg = config_module.load_config(path)
    except ConfigNotFoundError:
        return HealthCheck(
            name=name,
            status=CheckStatus.FAIL,
            message="Config file not found",
            remediation="Run 'conductor setup' to create configuration",
        ), None
    except ConfigError as e:
        return HealthCheck(
            name=name,
            status=CheckStatus.FAIL,
            message=f"Config validation failed: {e}",
            remediation="Fix configuration errors or run 'conductor setup --force' to recreate",
        ), None

    return HealthCheck(name=name, status=CheckStatus.PASS, message=f"Config found and valid ({path})"), cfg


def check_provider_configured(cfg: ConductorConfig) -> HealthCheck:
    name = "Provider Configuration"
    provider_name = cfg.primary_provider()
    if not cfg.providers or provider_name is None:
        return HealthCheck(
            name=name,
            status=CheckStatus.FAIL,
            message="No providers configured",
            remediation="Run 'conductor provider add' to configure a provider",
        )
    if provider_name not in cfg.providers:
        return HealthCheck(
            name=name,
            status=CheckStatus.FAIL,
            message=f"Primary provider {provider_name!r} not found in configuration",
            remediation="Check the tiers section or run 'conductor provider add'",
        )

    via = " (via tiers)" if cfg.tiers else ""
    return HealthCheck(name=name, status=CheckStatus.PASS, message=f"Primary provider: {provider_name}{via}")


async def check_provider_health(cfg: ConductorConfig, factory: ProviderFactory) -> HealthCheck:
    name = "Provider Health"
    provider_name = cfg.primary_provider()
    provider_cfg = cfg.providers[provider_name]

    provider = factory(provider_cfg)
    if provider is None:
        return HealthCheck(name=name, status=CheckStatus.WARN,
                           message=f"Unknown provider type: {provider_cfg.type}")

    if not isinstance(provider, HealthCheckable):
        return HealthCheck(name=name, status=CheckStatus.PASS,
                           message="Provider does not support health checks (assumed working)")

    result = await provider.health_check()

    if not result.healthy:
        message = sanitize_message(result.message) if result.message else "Provider health check failed"
        return HealthCheck(
            name=name,
            status=CheckStatus.WARN if result.installed else CheckStatus.FAIL,
            message=message,
            remediation=provider_remediation(result),
        )

    message = f"Provider {provider_name} is healthy"
    if result.version:
        message += f" (version: {result.version})"
    return HealthCheck(name=name, status=CheckStatus.PASS, message=message)


def check_environment() -> HealthCheck:
    active = [var for var in ENVIRONMENT_OVERRIDES if os.getenv(var)]
    if active:
        message = f"Environment overrides: {len(active)} active"
    else:
        message = "No environment overrides detected"
    return HealthCheck(name="Environment Variables", status=CheckStatus.PASS, message=message)


async def run_health_checks(
    version: str,
    path: Optional[Path] = None,
    provider_factory: ProviderFactory = create_provider
) -> HealthReport:
    """Run the check chain. Callers bound it with a deadline (HEALTH_TIMEOUT)."""
    report = HealthReport(version=version)

    config_check, cfg = check_config(path or config_module.config_path())
    report.checks.append(config_check)

    if cfg is not None:
        provider_check = check_provider_configured(cfg)
        report.checks.append(provider_check)
        if provider_check.status == CheckStatus.PASS:
            report.checks.append(await check_provider_health(cfg, provider_factory))

    report.checks.append(check_environment())

    logger.info(f"Health check complete: healthy={report.healthy} checks={len(report.checks)}")
    return report
