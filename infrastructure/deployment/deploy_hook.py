# infrastructure/deployment/deploy_hook.py
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

import httpx

from shared.logging import logger

DEFAULT_TIMEOUT_SECONDS = 30.0


@dataclass(frozen=True)
class DeploymentConfig:
    webhook_url: str
    environment: str = "development"
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS


@dataclass(frozen=True)
class DeploymentResult:
    success: bool
    message: str
    status_code: Optional[int] = None


class DeployHookClient:
    """Fires a single deploy-hook POST; failures are reported, never raised or retried"""

    def __init__(self, config: DeploymentConfig, client: Optional[httpx.AsyncClient] = None):
        self.config = config
        self._client = client

    async def deploy(self) -> DeploymentResult:
        if not self.config.webhook_url:
            return DeploymentResult(success=False, message="Deploy hook URL not configured")

        payload = {
            "environment": self.config.environment,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

        try:
            if self._client is not None:
                response = await self._client.post(self.config.webhook_url, json=payload)
            else:
                async with httpx.AsyncClient(timeout=self.config.timeout_seconds) as client:
                    response = await client.post(self.config.webhook_url, json=payload)
        except httpx.TimeoutException:
            logger.warning("Deployment hook timed out", environment=self.config.environment)
            return DeploymentResult(success=False, message="Deployment failed: timeout")
        except httpx.HTTPError as e:
            logger.warning("Deployment hook error", environment=self.config.environment, error=str(e))
            return DeploymentResult(success=False, message=f"Deployment failed: {e}")

        if not response.is_success:
            return DeploymentResult(
                success=False,
                message=f"Deployment failed: HTTP {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
            )

        return DeploymentResult(
            success=True,
            message=f"Deployment triggered successfully for {self.config.environment}",
            status_code=response.status_code,
        )
