from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.chat import ChatMessage, TaskKind
from shared.models.config import EnvConfig


class LLMClientAzure(LLMClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._endpoint = self.get_config_val("ENDPOINT", default=None, val_type="string")
        self._api_key = self.get_config_val("API_KEY", default=None, val_type="string")
        self._api_version = self.get_config_val("API_VERSION", default="2024-02-15-preview", val_type="string")
        self.embed_deployment = self.get_config_val("EMBED_DEPLOYMENT", default="text-embedding-ada-002", val_type="string")
        self.chat_deployment = self.get_config_val("CHAT_DEPLOYMENT", default="gpt-4", val_type="string")
        self.max_tokens = int(self.get_config_val("MAX_TOKENS", default=4096, val_type="number"))

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Azure"

    def get_model_for_task(self, task_kind: TaskKind) -> str:
        if task_kind == TaskKind.EMBEDDING:
            return self.embed_deployment
        return self.chat_deployment

    def get_default_max_tokens(self) -> int:
        return self.max_tokens

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="API_KEY", val_type="string", default=None),
            EnvConfig(env_key="ENDPOINT", val_type="string", default=None),
            EnvConfig(env_key="API_VERSION", val_type="string", default="2024-02-15-preview"),
            EnvConfig(env_key="MAX_TOKENS", val_type="number", default=4096),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        return {"api-key": self._api_key}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._endpoint

    def _get_endpoint_healthcheck(self) -> str:
        return "/openai/deployments"

    def get_endpoint_embedding(self, model: str) -> str:
        return f"/openai/deployments/{model}/embeddings"

    def _get_endpoint_chat(self, model: str) -> str:
        return f"/openai/deployments/{model}/chat/completions"

    def _get_request_params(self) -> dict | None:
        return {"api-version": self._api_version}

    ################ PAYLOAD BUILDER ##################
    def get_embed_payload(self, text: str, model: str) -> dict:
        # the deployment in the URL selects the model
        return {"input": text}

    def get_chat_payload(self, messages: list[ChatMessage], model: str, max_tokens: int, temperature: float) -> dict:
        return {
            "messages": [m.model_dump() for m in messages],
            "max_tokens": max_tokens,
            "temperature": temperature,
        }

    ##########################################
    ################# OTHER ##################
    ##########################################

    def extract_embeddings_from_response(self, response_data: dict) -> list[float]:
        data = response_data.get("data")
        if not isinstance(data, list) or not data or not isinstance(data[0], dict):
            raise ValueError(
                "Azure OpenAI response does not contain embedding data. "
                "Response keys: %s" % list(response_data.keys())
            )
        embedding = data[0].get("embedding")
        if not isinstance(embedding, list) or not embedding:
            raise ValueError("Azure OpenAI response does not contain a valid embedding vector.")
        return embedding

    def extract_chat_response(self, response_data: dict) -> str:
        choices = response_data.get("choices")
        if not isinstance(choices, list) or not choices:
            raise ValueError(
                "Azure OpenAI chat response does not contain choices. "
                "Response keys: %s" % list(response_data.keys())
            )
        message = choices[0].get("message") if isinstance(choices[0], dict) else None
        content = message.get("content") if isinstance(message, dict) else None
        if not isinstance(content, str):
            raise ValueError("Azure OpenAI chat response does not contain a valid message.")
        return content
