"""Retrieval runner entry point.

Ingests text or markdown files through the worker pool, then optionally
runs one retrieval query or one grounded chat turn and prints the result
as JSON.

Usage:
    python -m services.rag_runner docs/*.md --query "requisiti di sistema"
    python -m services.rag_runner docs/*.md --chat "Quali sono i requisiti di sistema?"
"""

import argparse
import asyncio
import json
import os
import sys

from services.chat.ChatService import ChatService
from services.ingestion.IngestionQueue import IngestionQueue
from services.ingestion.IngestionService import IngestionService
from services.ingestion.TextChunker import TextChunker
from services.retrieval.QueryService import QueryService
from services.retrieval.SemanticCache import SemanticCache
from services.retrieval.SimilarityRanker import SimilarityRanker
from shared.clients.llm.EmbeddingGateway import EmbeddingGateway
from shared.clients.llm.LLMClientManager import LLMClientManager
from shared.clients.store.memory.StoreClientMemory import StoreClientMemory
from shared.exceptions import RagError
from shared.helper.HelperConfig import HelperConfig
from shared.logging.logging_setup import setup_logging
from shared.models.chat import ChatRequest
from shared.models.document import DocumentStatus
from shared.models.search import SearchRequest


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Ingest documents and query them.")
    parser.add_argument("files", nargs="+", help="UTF-8 text or markdown files to ingest")
    action = parser.add_mutually_exclusive_group()
    action.add_argument("--query", help="retrieval query to run after ingestion")
    action.add_argument("--chat", help="question to answer from the ingested documents")
    parser.add_argument("--top-k", type=int, default=None, help="number of results (clamped server side)")
    parser.add_argument("--threshold", type=float, default=None, help="minimum similarity in [0, 1]")
    return parser.parse_args(argv)


async def main(argv: list[str] | None = None) -> int:
    """Run ingestion and the requested query. Returns the process exit code."""
    args = parse_args(argv)
    logger = setup_logging()
    config = HelperConfig(logger=logger)

    llm_manager = LLMClientManager(helper_config=config)
    llm_client = llm_manager.get_client()
    store = StoreClientMemory(helper_config=config)
    gateway = EmbeddingGateway(helper_config=config, client=llm_client)
    ingestion = IngestionService(
        helper_config=config,
        store=store,
        gateway=gateway,
        chunker=TextChunker(helper_config=config),
    )
    queue = IngestionQueue(helper_config=config, ingestion_service=ingestion)
    query_service = QueryService(
        helper_config=config,
        store=store,
        gateway=gateway,
        ranker=SimilarityRanker(helper_config=config),
        cache=SemanticCache(helper_config=config),
    )

    try:
        try:
            await llm_client.boot()
            await llm_client.do_healthcheck()
        except Exception as e:
            logger.error("Error booting LLM client %s: %s. Aborting.", llm_client.get_engine_name(), e)
            return 1

        await queue.start()
        for path in args.files:
            try:
                with open(path, encoding="utf-8") as handle:
                    content = handle.read()
            except OSError as e:
                logger.error("Cannot read %s: %s. Skipping this file.", path, e)
                continue
            document = await ingestion.create_document(name=os.path.basename(path), path=path, content=content)
            queue.submit(document.id)
        await queue.join()

        documents = await ingestion.list_documents()
        failed = [d for d in documents if d.status == DocumentStatus.FAILED]
        for document in failed:
            logger.warning("Document %s failed: %s", document.name, document.error_message)
        if not documents or len(failed) == len(documents):
            logger.error("No document ingested successfully. Aborting.")
            return 1

        if args.query:
            response = await query_service.search(
                SearchRequest(query=args.query, top_k=args.top_k, similarity_threshold=args.threshold)
            )
            print(response.model_dump_json(indent=2))
        elif args.chat:
            chat_service = ChatService(helper_config=config, query_service=query_service, gateway=gateway)
            answer = await chat_service.do_chat(
                ChatRequest(message=args.chat, top_k=args.top_k, similarity_threshold=args.threshold)
            )
            print(answer.model_dump_json(indent=2))
        else:
            print(json.dumps([d.model_dump(mode="json", exclude={"content"}) for d in documents], indent=2))
        return 0
    except RagError as e:
        logger.error("Request failed (%s): %s", e.reason, e)
        return 2
    finally:
        await queue.stop()
        await llm_client.close()


def cli() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
