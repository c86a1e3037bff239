import hashlib
import math
import re

import httpx
from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.chat import ChatMessage, TaskKind
from shared.models.config import EnvConfig

_TOKEN_PATTERN = re.compile(r"\w+", re.UNICODE)
_CONTEXT_SEPARATOR = re.compile(r"\n---(?:\n|$)")
_SNIPPET_CHARS = 200


class LLMClientMock(LLMClientInterface):
    """Offline provider for development and tests.

    Embeddings are lexical: every token is hashed into one of `dimension`
    buckets with a hash-derived sign, and the result is L2-normalised. The
    same text always yields the same vector, and texts sharing words are
    close in cosine space. Chat replies quote the first two context blocks
    of the prompt. Requests never leave the process.
    """

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self.dimension = int(self.get_config_val("DIMENSION", default=256, val_type="number"))
        if self.dimension <= 0:
            raise ValueError("LLM_MOCK_DIMENSION must be > 0, got %d." % self.dimension)

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Mock"

    def get_model_for_task(self, task_kind: TaskKind) -> str:
        if task_kind == TaskKind.EMBEDDING:
            return "mock-embedding-%d" % self.dimension
        return "mock-chat"

    def get_default_max_tokens(self) -> int:
        return 1000

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [EnvConfig(env_key="DIMENSION", val_type="number", default=256)]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        return {}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return "http://mock.local"

    def _get_endpoint_healthcheck(self) -> str:
        return "/health"

    def get_endpoint_embedding(self, model: str) -> str:
        return "/embeddings"

    def _get_endpoint_chat(self, model: str) -> str:
        return "/chat"

    ################ PAYLOAD BUILDER ##################
    def get_embed_payload(self, text: str, model: str) -> dict:
        return {"model": model, "input": text}

    def get_chat_payload(self, messages: list[ChatMessage], model: str, max_tokens: int, temperature: float) -> dict:
        return {"model": model, "messages": [m.model_dump() for m in messages]}

    ##########################################
    ################# OTHER ##################
    ##########################################

    def extract_embeddings_from_response(self, response_data: dict) -> list[float]:
        embedding = response_data.get("embedding")
        if not isinstance(embedding, list) or not embedding:
            raise ValueError("Mock response does not contain an embedding.")
        return embedding

    def extract_chat_response(self, response_data: dict) -> str:
        content = response_data.get("content")
        if content is None:
            raise ValueError("Mock chat response does not contain content.")
        return content

    def embed_text(self, text: str) -> list[float]:
        """Hash the tokens of a text into a normalised vector."""
        vector = [0.0] * self.dimension
        for token in _TOKEN_PATTERN.findall(text.casefold()):
            digest = hashlib.blake2b(token.encode("utf-8"), digest_size=8).digest()
            value = int.from_bytes(digest, "big")
            bucket = value % self.dimension
            sign = 1.0 if (value >> 63) & 1 == 0 else -1.0
            vector[bucket] += sign
        norm = math.sqrt(sum(v * v for v in vector))
        if norm == 0.0:
            return vector
        return [v / norm for v in vector]

    def compose_reply(self, messages: list[dict]) -> str:
        """Build the canned answer from the last user message.

        A prompt of the form "Context:\\n...\\n\\nQuestion: ..." is answered
        by quoting up to two context blocks with their header and source.
        """
        prompt = next((m["content"] for m in reversed(messages) if m.get("role") == "user"), "")
        question = prompt
        context = ""
        if "\n\nQuestion:" in prompt:
            context, question = prompt.rsplit("\n\nQuestion:", 1)
            context = context.removeprefix("Context:").strip()
        question = question.strip()

        lines = [f"Based on the available documents, here's what I found regarding '{question}':", ""]
        blocks = [b.strip() for b in _CONTEXT_SEPARATOR.split(context) if b.strip()]
        if not blocks:
            lines.append(
                "I couldn't find specific information about your question in the uploaded documents. "
                "Please try rephrasing your question or check if relevant documents have been uploaded."
            )
        for block in blocks[:2]:
            header, content, source = None, "", None
            for line in block.splitlines():
                if line.startswith("Header: "):
                    header = line.removeprefix("Header: ")
                elif line.startswith("Content: "):
                    content = line.removeprefix("Content: ")
                elif line.startswith("Source: "):
                    source = line.removeprefix("Source: ")
                elif source is None and content:
                    content += "\n" + line
            if header:
                lines.append(f"**{header}**")
            lines.append(content[:_SNIPPET_CHARS] + "..." if len(content) > _SNIPPET_CHARS else content)
            if source:
                lines.append(f"*(Source: {source})*")
            lines.append("")
        return "\n".join(lines).rstrip() + "\n"

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_healthcheck(self) -> httpx.Response:
        return httpx.Response(200, json={"status": "ok"})

    async def _do_provider_request(self, endpoint: str, body: dict, action: str) -> dict:
        if endpoint == self._get_endpoint_chat(body.get("model", "")):
            return {"content": self.compose_reply(body.get("messages", []))}
        return {"embedding": self.embed_text(body.get("input", ""))}
