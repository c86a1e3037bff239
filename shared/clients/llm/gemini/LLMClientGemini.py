from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.chat import ChatMessage, TaskKind
from shared.models.config import EnvConfig


class LLMClientGemini(LLMClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default="https://generativelanguage.googleapis.com/v1beta", val_type="string")
        self._api_key = self.get_config_val("API_KEY", default=None, val_type="string")
        self.embed_model = self.get_config_val("EMBED_MODEL", default="models/embedding-001", val_type="string")
        self.chat_model = self.get_config_val("CHAT_MODEL", default="models/gemini-1.5-pro-latest", val_type="string")
        self.max_tokens = int(self.get_config_val("MAX_TOKENS", default=8192, val_type="number"))
        self.top_p = float(self.get_config_val("TOP_P", default=0.95, val_type="number"))
        self.top_k = int(self.get_config_val("TOP_K", default=40, val_type="number"))

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Gemini"

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
            EnvConfig(env_key="MAX_TOKENS", val_type="number", default=8192),
            EnvConfig(env_key="TOP_P", val_type="number", default=0.95),
            EnvConfig(env_key="TOP_K", val_type="number", default=40),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        return {"x-goog-api-key": self._api_key}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return "/models"

    def get_endpoint_embedding(self, model: str) -> str:
        return f"/{model}:embedContent"

    def _get_endpoint_chat(self, model: str) -> str:
        return f"/{model}:generateContent"

    ################ PAYLOAD BUILDER ##################
    def get_embed_payload(self, text: str, model: str) -> dict:
        return {"model": model, "content": {"parts": [{"text": text}]}}

    def get_chat_payload(self, messages: list[ChatMessage], model: str, max_tokens: int, temperature: float) -> dict:
        """Build the Gemini generateContent request body.

        System messages become the systemInstruction; assistant turns are
        sent with the "model" role.
        """
        system_parts = [{"text": m.content} for m in messages if m.role == "system"]
        contents = [
            {
                "role": "model" if m.role == "assistant" else "user",
                "parts": [{"text": m.content}],
            }
            for m in messages
            if m.role != "system"
        ]
        payload = {
            "contents": contents,
            "generationConfig": {
                "temperature": temperature,
                "topP": self.top_p,
                "topK": self.top_k,
                "maxOutputTokens": max_tokens,
            },
        }
        if system_parts:
            payload["systemInstruction"] = {"parts": system_parts}
        return payload

    ##########################################
    ################# OTHER ##################
    ##########################################

    def extract_embeddings_from_response(self, response_data: dict) -> list[float]:
        """Extract the vector from {"embedding": {"values": [...]}}."""
        embedding = response_data.get("embedding")
        values = embedding.get("values") if isinstance(embedding, dict) else None
        if not isinstance(values, list) or not values:
            raise ValueError(
                "Gemini response does not contain valid embedding values. "
                "Response keys: %s" % list(response_data.keys())
            )
        return values

    def extract_chat_response(self, response_data: dict) -> str:
        candidates = response_data.get("candidates")
        if not isinstance(candidates, list) or not candidates:
            raise ValueError(
                "Gemini chat response does not contain candidates. "
                "Response keys: %s" % list(response_data.keys())
            )
        content = candidates[0].get("content") if isinstance(candidates[0], dict) else None
        parts = content.get("parts") if isinstance(content, dict) else None
        text = parts[0].get("text") if isinstance(parts, list) and parts and isinstance(parts[0], dict) else None
        if not isinstance(text, str):
            raise ValueError("Gemini chat response does not contain a text part.")
        return text
