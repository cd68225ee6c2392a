"""LLM provider liveness probes used by the health check.

Only a summary crosses this boundary: installed / authenticated / working
flags, a version string and a short message. Credentials are used for the
probe request itself and never placed in a message.
"""
import asyncio
import logging
import os
import shutil
from typing import Callable, Optional, Protocol, runtime_checkable

import httpx
from pydantic import BaseModel

from .config import ProviderConfig

logger = logging.getLogger("conductor.core.providers")

PROBE_TIMEOUT = 10.0
KILL_WAIT_TIMEOUT = 5.0


class ProviderHealth(BaseModel):
    """Summary returned by a provider probe."""

    installed: bool = False
    authenticated: bool = False
    working: bool = False
    message: str = ""
    version: str = ""

    @property
    def healthy(self) -> bool:
        return self.installed and self.authenticated and self.working


@runtime_checkable
class HealthCheckable(Protocol):
    """Providers that can report their own liveness."""

    async def health_check(self) -> ProviderHealth:
        ...


class ClaudeCodeProvider:
    """Claude Code CLI; healthy when the binary runs `--version` cleanly."""

    binary = "claude"

    def __init__(self, config: Optional[ProviderConfig] = None):
        self.config = config

    async def health_check(self) -> ProviderHealth:
        path = shutil.which(self.binary)
        if path is None:
            return ProviderHealth(message=f"{self.binary} CLI not found on PATH")

        proc = await asyncio.create_subprocess_exec(
            path, "--version",
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.DEVNULL,
        )
        try:
            stdout, _ = await proc.communicate()
        except asyncio.CancelledError:
            if proc.returncode is None:
                proc.kill()
            try:
                await asyncio.wait_for(proc.wait(), KILL_WAIT_TIMEOUT)
            except TimeoutError:
                logger.warning(f"{self.binary} --version did not exit within {KILL_WAIT_TIMEOUT}s of being killed")
            raise

        if proc.returncode != 0:
            return ProviderHealth(
                installed=True,
                authenticated=True,
                message=f"{self.binary} --version exited with status {proc.returncode}",
            )

        output = stdout.decode("utf-8", errors="replace").strip()
        version = output.split()[0] if output else ""
        return ProviderHealth(installed=True, authenticated=True, working=True, version=version)


class HTTPProvider:
    """Provider reachable over HTTP; probed with a single GET."""

    label = "provider"
    default_base_url = ""
    probe_path = "/"
    api_key_env: Optional[str] = None

    def __init__(self, config: ProviderConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config
        self.base_url = (config.base_url or self.default_base_url).rstrip("/")
        self._transport = transport

    def _api_key(self) -> Optional[str]:
        if self.config.api_key is not None:
            return self.config.api_key.get_secret_value()
        if self.api_key_env:
            return os.getenv(self.api_key_env)
        return None

    def _headers(self, api_key: Optional[str]) -> dict[str, str]:
        return {}

    async def health_check(self) -> ProviderHealth:
        api_key = self._api_key()
        if self.api_key_env and not api_key:
            return ProviderHealth(installed=True, message=f"No API key configured for {self.label}")

        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                timeout=PROBE_TIMEOUT,
                headers=self._headers(api_key),
                transport=self._transport,
            ) as client:
                response = await client.get(self.probe_path)
        except httpx.RequestError as e:
            logger.debug(f"{self.label} probe failed: {type(e).__name__}")
            return ProviderHealth(
                installed=True,
                authenticated=True,
                message=f"Cannot reach {self.label} API ({type(e).__name__})",
            )

        if response.status_code in (401, 403):
            return ProviderHealth(
                installed=True,
                message=f"{self.label} rejected the credentials (HTTP {response.status_code})",
            )
        if response.status_code >= 400:
            return ProviderHealth(
                installed=True,
                authenticated=True,
                message=f"{self.label} API returned HTTP {response.status_code}",
            )
        return ProviderHealth(installed=True, authenticated=True, working=True)


class AnthropicProvider(HTTPProvider):
    label = "Anthropic"
    default_base_url = "https://api.anthropic.com"
    probe_path = "/v1/models"
    api_key_env = "ANTHROPIC_API_KEY"

    def _headers(self, api_key: Optional[str]) -> dict[str, str]:
        return {"x-api-key": api_key or "", "anthropic-version": "2023-06-01"}


class OpenAIProvider(HTTPProvider):
    label = "OpenAI"
    default_base_url = "https://api.openai.com"
    probe_path = "/v1/models"
    api_key_env = "OPENAI_API_KEY"

    def _headers(self, api_key: Optional[str]) -> dict[str, str]:
        return {"Authorization": f"Bearer {api_key}"}


class OllamaProvider(HTTPProvider):
    label = "Ollama"
    default_base_url = "http://localhost:11434"
    probe_path = "/api/tags"


PROVIDER_TYPES: dict[str, Callable[[ProviderConfig], object]] = {
    "claude-code": ClaudeCodeProvider,
    "anthropic": AnthropicProvider,
    "openai": OpenAIProvider,
    "ollama": OllamaProvider,
}


def create_provider(config: ProviderConfig) -> Optional[object]:
    """Instantiate a provider by type tag; None for unknown types."""
    factory = PROVIDER_TYPES.get(config.type)
    if factory is None:
        return None
    return factory(config)
