from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.chat import ChatMessage, TaskKind
from shared.models.config import EnvConfig


class LLMClientOpenai(LLMClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default="https://api.openai.com/v1", val_type="string")
        self._api_key = self.get_config_val("API_KEY", default=None, val_type="string")
        self._organization_id = self.get_config_val("ORGANIZATION_ID", default="", val_type="string")
        self.embed_model = self.get_config_val("EMBED_MODEL", default="text-embedding-3-small", val_type="string")
        self.chat_model = self.get_config_val("CHAT_MODEL", default="gpt-4o-mini", val_type="string")
        self.max_tokens = int(self.get_config_val("MAX_TOKENS", default=4096, val_type="number"))

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "OpenAI"

    def get_model_for_task(self, task_kind: TaskKind) -> str:
        if task_kind == TaskKind.EMBEDDING:
            return self.embed_model
        return self.chat_model

    def get_default_max_tokens(self) -> int:
        return self.max_tokens

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="API_KEY", val_type="string", default=None),
            EnvConfig(env_key="BASE_URL", val_type="string", default="https://api.openai.com/v1"),
            EnvConfig(env_key="MAX_TOKENS", val_type="number", default=4096),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        headers = {"Authorization": f"Bearer {self._api_key}"}
        if self._organization_id:
            headers["OpenAI-Organization"] = self._organization_id
        return headers

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return "/models"

    def get_endpoint_embedding(self, model: str) -> str:
        return "/embeddings"

    def _get_endpoint_chat(self, model: str) -> str:
        return "/chat/completions"

    ################ PAYLOAD BUILDER ##################
    def get_embed_payload(self, text: str, model: str) -> dict:
        """Build the OpenAI embedding request body.

        Returns:
            dict: {"model": "...", "input": "..."}
        """
        return {"model": model, "input": text}

    def get_chat_payload(self, messages: list[ChatMessage], model: str, max_tokens: int, temperature: float) -> dict:
        return {
            "model": model,
            "messages": [m.model_dump() for m in messages],
            "max_tokens": max_tokens,
            "temperature": temperature,
        }

    ##########################################
    ################# OTHER ##################
    ##########################################

    def extract_embeddings_from_response(self, response_data: dict) -> list[float]:
        """Extract the embedding vector from an OpenAI /embeddings response.

        Args:
            response_data (dict): {"data": [{"embedding": [...], "index": 0}], ...}

        Raises:
            ValueError: If the response does not contain a valid embedding.
        """
        data = response_data.get("data")
        if not isinstance(data, list) or not data:
            raise ValueError(
                "OpenAI response does not contain embedding data. "
                "Response keys: %s" % list(response_data.keys())
            )
        embedding = data[0].get("embedding") if isinstance(data[0], dict) else None
        if not isinstance(embedding, list) or not embedding:
            raise ValueError("OpenAI response does not contain a valid embedding vector.")
        return embedding

    def extract_chat_response(self, response_data: dict) -> str:
        choices = response_data.get("choices")
        if not isinstance(choices, list) or not choices:
            raise ValueError(
                "OpenAI chat response does not contain choices. "
                "Response keys: %s" % list(response_data.keys())
            )
        message = choices[0].get("message") if isinstance(choices[0], dict) else None
        content = message.get("content") if isinstance(message, dict) else None
        if not isinstance(content, str):
            raise ValueError("OpenAI chat response does not contain a valid message.")
        return content
