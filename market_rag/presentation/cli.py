import logging
import sys
import time

import httpx

from market_rag.config.settings import settings
from market_rag.container import configure_container, container
from market_rag.core.services.ingest_service import IngestService
from market_rag.core.services.retrieval_orchestrator import RetrievalOrchestrator

logging.basicConfig(level=logging.INFO, format="%(message)s")
logger = logging.getLogger(__name__)


def ensure_chroma(attempts: int = 30) -> bool:
    """Wait for the Chroma server to answer its heartbeat.

    Returns:
        True if the server is up (or the in-memory store is used), False otherwise.
    """
    if settings.vector_store == "memory":
        return True

    url = f"http://{settings.chroma_host}:{settings.chroma_port}/api/v2/heartbeat"
    logger.info(f"Checking Chroma at {url}")

    for attempt in range(attempts):
        try:
            resp = httpx.get(url, timeout=5)
            if resp.status_code == 200:
                logger.info("Chroma is ready")
                return True
        except httpx.HTTPError:
            pass
        logger.info(f"Waiting for Chroma... ({attempt + 1}/{attempts})")
        time.sleep(2)

    logger.error("Chroma not available")
    return False


def cmd_ingest(paths: list[str]):
    """Ingest command - index the docs folder or the given files."""
    if not ensure_chroma():
        sys.exit(1)

    configure_container(settings)
    ingest_service = container.resolve(IngestService)
    count = ingest_service.run(paths or None)
    logger.info(f"Indexed {count} paragraphs")


def cmd_search(query: str):
    """Search command - print ranked passages for a query."""
    if not ensure_chroma():
        sys.exit(1)

    configure_container(settings)
    orchestrator = container.resolve(RetrievalOrchestrator)
    result = orchestrator.retrieve_sync(query)

    if result.is_empty:
        print("No results")
        return

    for i, candidate in enumerate(result.results, 1):
        print(f"[{i}] {candidate.score:.3f} {candidate.link or candidate.source_id}")
        print(f"    {candidate.text[:200]}")
    if result.failed_queries:
        logger.warning(f"Failed sub-queries: {result.failed_queries}")


def main():
    """CLI entry point."""
    if len(sys.argv) < 2:
        print("Usage: python -m market_rag.presentation.cli <command>")
        print("Commands: ingest [files...], search <query>")
        sys.exit(1)

    command = sys.argv[1]

    if command == "ingest":
        cmd_ingest(sys.argv[2:])
    elif command == "search":
        if len(sys.argv) < 3:
            print("Usage: python -m market_rag.presentation.cli search <query>")
            sys.exit(1)
        cmd_search(" ".join(sys.argv[2:]))
    else:
        print(f"Unknown command: {command}")
        sys.exit(1)


if __name__ == "__main__":
    main()
