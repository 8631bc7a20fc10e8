import asyncio
import json
import logging
import sys
import time

import httpx
import uvicorn

from ragchat.config.settings import settings
from ragchat.container import configure_container, container
from ragchat.core.models.chat import ChatRequest
from ragchat.core.services.chat_service import ChatService
from ragchat.core.services.projection_service import ProjectionService

logging.basicConfig(level=settings.log_level, format="%(message)s")
logger = logging.getLogger(__name__)


def wait_for_service(name: str, url: str, attempts: int = 30, **kwargs) -> bool:
    """Poll a backing service until it answers.

    Returns:
        True if the service responded, False otherwise.
    """
    logger.info(f"Checking {name}: {url}")

    for attempt in range(attempts):
        try:
            resp = httpx.get(url, timeout=5, **kwargs)
            if resp.status_code < 500:
                logger.info(f"{name} is ready")
                return True
        except httpx.HTTPError:
            pass
        logger.info(f"Waiting for {name}... ({attempt + 1}/{attempts})")
        time.sleep(2)

    logger.error(f"{name} not available")
    return False


def cmd_serve():
    """Serve command - wait for stores, run the API server."""
    logger.info("Starting ragchat...")

    qdrant_headers = {"api-key": settings.qdrant_api_key} if settings.qdrant_api_key else {}
    if not wait_for_service("Qdrant", f"{settings.qdrant_url}/collections", headers=qdrant_headers):
        sys.exit(1)

    opensearch_auth = (
        (settings.opensearch_username, settings.opensearch_password)
        if settings.opensearch_username
        else None
    )
    if not wait_for_service(
        "OpenSearch",
        settings.opensearch_url,
        auth=opensearch_auth,
        verify=settings.opensearch_verify_tls,
    ):
        sys.exit(1)

    uvicorn.run(
        "ragchat.presentation.api:create_app",
        factory=True,
        host=settings.server_host,
        port=settings.server_port,
        log_level=settings.log_level.lower(),
    )


def cmd_chat(question: str):
    """Chat command - answer one question and print sources."""
    configure_container(settings)
    chat_service = container.resolve(ChatService)

    response = asyncio.run(chat_service.chat(ChatRequest(message=question, top_k=settings.rag_top_k)))

    print(response.answer)
    if response.sources:
        print("\nSources:")
        for doc in response.sources:
            print(f"  [{doc.score:.3f}] {doc.id}")
    logger.info(f"Tokens used: {response.tokens_used}")


def cmd_project(limit: int | None):
    """Project command - print one page of 2-D points as JSON."""
    configure_container(settings)
    projection = container.resolve(ProjectionService)

    result = projection.project_vectors(limit=limit, with_payload=False)
    points = [{"id": p.id, "x": p.x, "y": p.y, "magnitude": p.magnitude} for p in result.points]
    print(json.dumps({"points": points, "hasMore": result.has_more, "nextOffset": result.next_cursor}, indent=2))
    if result.degraded:
        logger.warning("Projection fell back to raw coordinates")


def main():
    """CLI entry point."""
    if len(sys.argv) < 2:
        print("Usage: ragchat <command> [args]")
        print("Commands: serve, chat <question>, project [limit]")
        sys.exit(1)

    command = sys.argv[1]

    if command == "serve":
        cmd_serve()
    elif command == "chat":
        if len(sys.argv) < 3:
            print("Usage: ragchat chat <question>")
            sys.exit(1)
        cmd_chat(" ".join(sys.argv[2:]))
    elif command == "project":
        cmd_project(int(sys.argv[2]) if len(sys.argv) > 2 else None)
    else:
        print(f"Unknown command: {command}")
        sys.exit(1)


if __name__ == "__main__":
    main()
