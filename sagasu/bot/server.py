"""
Assistant Server

FastAPI server receiving Slack Events API webhooks.

Endpoints:
- POST /slack/events: Slack webhook endpoint
- GET /health: Health check

Pipeline:
1. Verify the request signature
2. Answer URL verification challenges
3. Parse the event into an AssistantEvent
4. Acknowledge immediately, handle the event in the background
"""

import json
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import BackgroundTasks, FastAPI, Header, HTTPException, Request
from fastapi.responses import JSONResponse

from ..common.config import SagasuConfig, load_config, setup_logging
from ..common.llm_client import LLMClient
from ..common.slack_client import SlackClient
from ..fuzzy.pipeline import FuzzySearchPipeline
from .assistant import Assistant
from .handlers import SlackHandler

logger = logging.getLogger("sagasu.bot.server")


# Global state
config: Optional[SagasuConfig] = None
slack_handler: Optional[SlackHandler] = None
slack_client: Optional[SlackClient] = None
llm_client: Optional[LLMClient] = None
assistant: Optional[Assistant] = None


def init_components(cfg: SagasuConfig) -> None:
    """Build the shared clients and the assistant from configuration"""
    global config, slack_handler, slack_client, llm_client, assistant

    config = cfg
    slack_handler = SlackHandler(signing_secret=cfg.slack.signing_secret)
    slack_client = SlackClient.from_config(cfg.slack)

    llm_client = LLMClient.from_config(cfg.llm)
    if llm_client.is_available:
        logger.info("LLM client ready (%s, %s)", llm_client.provider, llm_client.model)
    else:
        logger.warning("LLM client not available, every LLM-backed reply will fail")

    if not cfg.slack.user_token:
        logger.warning("SLACK_USER_TOKEN not set, fuzzy search cannot query search.messages")

    pipeline = FuzzySearchPipeline.from_config(cfg, llm_client, slack_client)
    assistant = Assistant(
        slack_client,
        llm_client,
        pipeline,
        config=cfg.assistant,
        command_prefix=cfg.fuzzy.command_prefix,
        language=cfg.fuzzy.default_language,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize components on startup"""
    cfg = load_config()
    setup_logging(cfg.server.log_level)
    logger.info("Starting up...")

    init_components(cfg)
    logger.info("Ready to receive events")

    yield

    logger.info("Shutting down...")
    if slack_client:
        await slack_client.aclose()


app = FastAPI(
    title="Sagasu Assistant",
    description="Slack assistant with LLM-backed fuzzy message search",
    version="0.1.0",
    lifespan=lifespan,
)


# =============================================================================
# Endpoints
# =============================================================================

@app.get("/health")
async def health():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "service": "sagasu",
        "initialized": assistant is not None,
        "llm_available": llm_client.is_available if llm_client else False,
        "llm_provider": llm_client.provider if llm_client else None,
        "search_enabled": bool(config and config.slack.user_token),
    }


@app.post("/slack/events")
async def slack_events(
    request: Request,
    background_tasks: BackgroundTasks,
    x_slack_signature: Optional[str] = Header(None),
    x_slack_request_timestamp: Optional[str] = Header(None),
    x_slack_retry_num: Optional[str] = Header(None),
):
    """
    Handle Slack webhook events.

    This is the main entry point for Slack integration.
    """
    if not slack_handler or not assistant:
        raise HTTPException(status_code=503, detail="Handler not initialized")

    body = await request.body()

    if not slack_handler.verify_signature(
        body,
        x_slack_signature or "",
        x_slack_request_timestamp or "",
    ):
        raise HTTPException(status_code=401, detail="Invalid signature")

    try:
        data = json.loads(body)
    except json.JSONDecodeError:
        raise HTTPException(status_code=400, detail="Invalid JSON")

    if slack_handler.is_url_verification(data):
        return JSONResponse({"challenge": slack_handler.get_challenge(data)})

    # Slack redelivers events it thinks timed out; the first delivery is already being handled
    if x_slack_retry_num:
        logger.debug("Ignoring Slack retry #%s", x_slack_retry_num)
        return JSONResponse({"ok": True})

    event = slack_handler.parse_event(data)
    if event is not None:
        background_tasks.add_task(assistant.handle, event)

    return JSONResponse({"ok": True})


# =============================================================================
# CLI Entry Point
# =============================================================================

def run_server():
    """Run the assistant server"""
    import uvicorn

    cfg = load_config()
    logger.info("Starting server on %s:%d", cfg.server.host, cfg.server.port)
    uvicorn.run(
        "sagasu.bot.server:app",
        host=cfg.server.host,
        port=cfg.server.port,
        log_level=cfg.server.log_level.lower(),
        reload=False,
    )


if __name__ == "__main__":
    run_server()
