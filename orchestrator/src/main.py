"""HTTP API entry point: workflow creation, status and results."""

import argparse
import logging
import os
import sys

import redis
import uvicorn
from fastapi import FastAPI

from api.app import OrchestratorAPI
from services.log_service import configure_logging
from services.state_store import RedisTaskStore, RedisWorkflowStore
from services.workflow_engine import WorkflowEngine
from services.workflow_parser import WorkflowParser

logger = logging.getLogger(__name__)

DEFAULT_REDIS_URL = "redis://localhost:6379"
DEFAULT_WORKFLOW_DIR = os.path.join(
    os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "workflows"
)


def get_redis_client(redis_url: str) -> redis.Redis:
    return redis.Redis.from_url(redis_url, decode_responses=True)


def create_app(redis_client: redis.Redis, workflow_dir: str) -> FastAPI:
    """Wire the Redis stores and workflow definitions into the API."""
    engine = WorkflowEngine(RedisTaskStore(redis_client), RedisWorkflowStore(redis_client))
    return OrchestratorAPI(engine, WorkflowParser(workflow_dir)).create_app()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Workflow orchestrator API server")
    parser.add_argument("--host", default=os.environ.get("HOST", "0.0.0.0"))
    parser.add_argument("--port", type=int, default=int(os.environ.get("PORT", "8000")))
    parser.add_argument(
        "--redis-url",
        default=os.environ.get("REDIS_URL", DEFAULT_REDIS_URL),
        help=f"Redis connection URL (default: $REDIS_URL or {DEFAULT_REDIS_URL})",
    )
    parser.add_argument(
        "--workflow-dir",
        default=os.environ.get("WORKFLOW_DIR", DEFAULT_WORKFLOW_DIR),
        help="Directory holding workflow definition files (default: $WORKFLOW_DIR)",
    )
    parser.add_argument(
        "--log-level",
        choices=["debug", "info", "warning", "error"],
        default=os.environ.get("LOG_LEVEL", "info").lower(),
    )
    return parser


def main() -> int:
    args = build_parser().parse_args()
    configure_logging("orchestrator", level=args.log_level)

    logger.info(f"Starting orchestrator API on {args.host}:{args.port}")
    logger.info(f"Redis: {args.redis_url}, workflow definitions: {args.workflow_dir}")

    app = create_app(get_redis_client(args.redis_url), args.workflow_dir)
    uvicorn.run(app, host=args.host, port=args.port, log_level=args.log_level)
    return 0


if __name__ == "__main__":
    sys.exit(main())
