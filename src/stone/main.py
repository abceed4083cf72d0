"""FastAPI application entry point for Stone.

This module exposes the GitHub webhook receiver. Deliveries are
acknowledged immediately and processed in the background, so GitHub
never retries a delivery because Stone was slow or failed internally.
"""

import asyncio
import hashlib
import hmac
import logging
from contextlib import asynccontextmanager
from typing import Optional, Set

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import PlainTextResponse

from .config import StoneSettings, get_settings
from .github.client import GitHubClient
from .metrics import generate_metrics_output
from .orchestrator import StoneOrchestrator, build_orchestrator

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Global instances, initialized during lifespan startup
settings: Optional[StoneSettings] = None
orchestrator: Optional[StoneOrchestrator] = None
github_client: Optional[GitHubClient] = None

# Strong references so background tasks are not garbage collected mid-run
_background_tasks: Set[asyncio.Task] = set()


def _redact_secret(value: Optional[str], visible_chars: int = 4) -> str:
    """Redact a secret value, showing only the first few characters."""
    if not value:
        return "<unset>"
    if len(value) <= visible_chars:
        return "*" * len(value)
    return value[:visible_chars] + "*" * (len(value) - visible_chars)


def _log_configuration(cfg: StoneSettings) -> None:
    """Log configuration values with secrets redacted."""
    logger.info("Stone configuration:")
    logger.info(f"  Repository: {cfg.github_owner}/{cfg.github_repo}")
    logger.info(f"  GitHub Base URL: {cfg.github_base_url}")
    logger.info(f"  GitHub Token: {_redact_secret(cfg.github_token)}")
    logger.info(
        f"  GitHub Webhook Secret: {_redact_secret(cfg.github_webhook_secret)}"
    )
    logger.info(f"  Test Command: {cfg.test_command}")
    logger.info(f"  Test Stages: {', '.join(cfg.test_stages)}")
    logger.info(f"  Build Command: {cfg.build_command}")
    logger.info(f"  Deploy Command: {cfg.deploy_command}")
    logger.info(f"  Command Timeout Seconds: {cfg.command_timeout_seconds}")
    logger.info(
        f"  Retry: {cfg.retry_max_attempts} attempts, "
        f"{cfg.retry_initial_delay_ms}ms initial delay"
    )
    logger.info(f"  Host: {cfg.host}")
    logger.info(f"  Port: {cfg.port}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Load settings, wire the orchestrator and close the client on exit."""
    global settings, orchestrator, github_client

    logger.info("Stone starting up...")

    settings = get_settings()
    _log_configuration(settings)

    github_client = GitHubClient(
        token=settings.github_token,
        owner=settings.github_owner,
        repo=settings.github_repo,
        base_url=settings.github_base_url,
    )
    orchestrator = build_orchestrator(settings, github_client)

    logger.info("Stone started successfully")

    yield

    logger.info("Stone shutting down...")

    if github_client is not None:
        await github_client.close()

    logger.info("Stone shutdown complete")


def verify_signature(secret: str, body: bytes, signature: Optional[str]) -> bool:
    """Check a GitHub X-Hub-Signature-256 header against the raw body."""
    if not signature or not signature.startswith("sha256="):
        return False
    expected = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(f"sha256={expected}", signature)


def event_type_for(github_event: str, action: Optional[str]) -> str:
    """Combine the X-GitHub-Event header and payload action.

    e.g. ("issues", "labeled") -> "issues.labeled".
    """
    if action:
        return f"{github_event}.{action}"
    return github_event


app = FastAPI(
    title="Stone",
    description="Label-driven delivery workflow automation for GitHub",
    version="1.0.0",
    lifespan=lifespan,
)


@app.get("/health")
async def health():
    """Liveness probe endpoint."""
    return {"status": "healthy"}


@app.get("/metrics", response_class=PlainTextResponse)
async def metrics():
    """Prometheus metrics endpoint."""
    return generate_metrics_output().decode("utf-8")


@app.post("/webhooks/github")
async def github_webhook(request: Request):
    """GitHub webhook receiver endpoint.

    Verifies the delivery signature when a webhook secret is configured,
    then schedules processing and acknowledges immediately.
    """
    body = await request.body()

    if settings is not None and settings.github_webhook_secret:
        signature = request.headers.get("x-hub-signature-256")
        if not verify_signature(settings.github_webhook_secret, body, signature):
            logger.warning("Rejected webhook with invalid signature")
            raise HTTPException(status_code=401, detail="Invalid signature")

    if orchestrator is None:
        logger.error("Stone not initialized")
        return {"status": "error", "message": "Stone not initialized"}

    github_event = request.headers.get("x-github-event", "")

    try:
        payload = await request.json()
    except ValueError:
        # Form-encoded or otherwise non-JSON deliveries
        logger.warning(
            "Ignoring webhook with non-JSON body",
            extra={
                "github_event": github_event,
                "content_type": request.headers.get("content-type"),
            },
        )
        return {"status": "ignored", "message": "Payload is not JSON"}

    action = payload.get("action") if isinstance(payload, dict) else None
    event_type = event_type_for(github_event, action)

    task = asyncio.create_task(orchestrator.process_webhook(event_type, payload))
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)

    return {"status": "accepted", "event_type": event_type}


if __name__ == "__main__":
    import uvicorn

    dev_settings = get_settings()
    uvicorn.run(
        "src.stone.main:app",
        host=dev_settings.host,
        port=dev_settings.port,
        reload=True,
    )
