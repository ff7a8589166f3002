"""
FastAPI Main Application
Entry point for the API server
"""

from dotenv import load_dotenv
load_dotenv()

from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from logpilot.agents.log_query_agent import AnthropicToolAgent, ToolCallingAgent
from logpilot.config import AppConfig, config_from_env
from logpilot.orchestrator import QueryOrchestrator
from logpilot.services.query_service import QueryService
from logpilot.stores import LogStoreClient, build_store
from logpilot.tools.tool_executor import ToolExecutor
from logpilot.utils.logger import get_logger

from .routes import router

logger = get_logger("main")


def create_app(
    config: Optional[AppConfig] = None,
    store: Optional[LogStoreClient] = None,
    agent: Optional[ToolCallingAgent] = None,
) -> FastAPI:
    """Create and configure FastAPI application.

    Components are built once here and shared by every request. Tests pass
    their own store and agent in place of CloudWatch and Anthropic.
    """
    config = config or config_from_env()
    store = store or build_store(config)
    query_service = QueryService(store, config)

    if agent is None and config.is_llm_configured():
        agent = AnthropicToolAgent(config, ToolExecutor(query_service))
    orchestrator = QueryOrchestrator(agent, query_service, config) if agent is not None else None

    app = FastAPI(
        title="LogPilot API",
        description="Conversational CloudWatch log search",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc"
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://localhost:5173",
            "http://localhost:3000",
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.config = config
    app.state.store = store
    app.state.query_service = query_service
    app.state.orchestrator = orchestrator

    app.include_router(router)

    @app.on_event("shutdown")
    async def shutdown():
        await store.close()

    errors = config.validate()
    if errors:
        logger.warning("Configuration problems", extra={"action": "config_invalid", "extra": errors})
    logger.info("API ready", extra={
        "action": "startup",
        "extra": {"log_store": config.log_store, "agent": type(agent).__name__ if agent else None},
    })
    return app


def run(host: str = "0.0.0.0", port: int = 8000, reload: bool = False) -> None:
    import uvicorn

    uvicorn.run(
        "logpilot.api.main:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level="info"
    )


if __name__ == "__main__":
    run(reload=True)
