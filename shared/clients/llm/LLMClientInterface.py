from abc import abstractmethod

import httpx
from shared.clients.ClientInterface import ClientInterface
from shared.exceptions import FatalProviderError, ProviderTimeoutError, TransientProviderError
from shared.helper.HelperConfig import HelperConfig
from shared.models.chat import ChatMessage, TaskKind

# upstream statuses worth retrying (rate limit, bad gateway, unavailable)
TRANSIENT_STATUS_CODES = frozenset({429, 502, 503})


class LLMClientInterface(ClientInterface):
    """Embedding and chat capability of one provider.

    Concrete variants only describe the provider: endpoints, payloads,
    response extraction and the model used per task kind. Transport and
    error classification live here so that every variant fails the same way.
    """

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        return "llm"

    @abstractmethod
    def get_model_for_task(self, task_kind: TaskKind) -> str:
        """Returns the model or deployment name used for the given task kind."""
        pass

    @abstractmethod
    def get_default_max_tokens(self) -> int:
        """Returns the completion token limit used when the caller sets none."""
        pass

    ################ ENDPOINTS ##################
    @abstractmethod
    def get_endpoint_embedding(self, model: str) -> str:
        """Returns the endpoint path for embedding requests (e.g. "/embeddings")."""
        pass

    @abstractmethod
    def _get_endpoint_chat(self, model: str) -> str:
        """Returns the endpoint path for chat/completion requests (e.g. "/chat/completions")."""
        pass

    def _get_request_params(self) -> dict | None:
        """Returns query parameters added to every provider request, if any."""
        return None

    ################ PAYLOAD BUILDER ##################
    @abstractmethod
    def get_embed_payload(self, text: str, model: str) -> dict:
        """Build the backend-specific request body for an embedding request.

        Args:
            text (str): The text to embed.
            model (str): Model or deployment name for the embedding task.

        Returns:
            dict: JSON-serialisable request body.
        """
        pass

    @abstractmethod
    def get_chat_payload(self, messages: list[ChatMessage], model: str, max_tokens: int, temperature: float) -> dict:
        """Build the backend-specific request body for a chat/completion request.

        Args:
            messages (list[ChatMessage]): OpenAI-format messages.
            model (str): Model or deployment name for the chat task.
            max_tokens (int): Upper bound of generated tokens.
            temperature (float): Sampling temperature.

        Returns:
            dict: JSON-serialisable request body.
        """
        pass

    ##########################################
    ################# OTHER ##################
    ##########################################

    @abstractmethod
    def extract_embeddings_from_response(self, response_data: dict) -> list[float]:
        """Extract the embedding vector from a raw embedding API response.

        Raises:
            ValueError: If the response does not contain a valid embedding.
        """
        pass

    @abstractmethod
    def extract_chat_response(self, response_data: dict) -> str:
        """Extract the assistant reply text from a raw chat API response.

        Raises:
            ValueError: If the response does not contain a valid reply.
        """
        pass

    def _raise_for_status(self, response: httpx.Response, action: str) -> None:
        """Map a non-2xx response to a transient or fatal provider error."""
        if response.is_success:
            return
        self.logging.error(
            "%s request to %s failed: status %d, body: %s",
            action,
            self.get_engine_name(),
            response.status_code,
            response.text[:200],
            extra={"stage": "provider"},
        )
        message = "%s request to %s failed with status %d." % (action, self.get_engine_name(), response.status_code)
        if response.status_code in TRANSIENT_STATUS_CODES:
            raise TransientProviderError(message, status_code=response.status_code)
        raise FatalProviderError(message, status_code=response.status_code)

    def _parse_json(self, response: httpx.Response, action: str) -> dict:
        try:
            data = response.json()
        except ValueError as e:
            raise FatalProviderError("%s response from %s is not valid JSON: %s" % (action, self.get_engine_name(), e))
        if not isinstance(data, dict):
            raise FatalProviderError("%s response from %s is not a JSON object." % (action, self.get_engine_name()))
        return data

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def _do_provider_request(self, endpoint: str, body: dict, action: str) -> dict:
        """POST a request and return the parsed body, raising provider errors."""
        try:
            response = await self.do_request(
                method="POST",
                endpoint=endpoint,
                json=body,
                params=self._get_request_params(),
            )
        except httpx.TimeoutException as e:
            raise ProviderTimeoutError("%s request to %s timed out: %s" % (action, self.get_engine_name(), e))
        except httpx.TransportError as e:
            raise TransientProviderError("%s request to %s could not be sent: %s" % (action, self.get_engine_name(), e))
        self._raise_for_status(response, action)
        return self._parse_json(response, action)

    async def do_embed(self, text: str, task_kind: TaskKind = TaskKind.EMBEDDING) -> list[float]:
        """Send an embedding request and return the extracted vector.

        Args:
            text (str): The text to embed.
            task_kind (TaskKind): Selects the model used for the request.

        Returns:
            list[float]: The embedding vector.

        Raises:
            TransientProviderError: On rate limiting, unavailability or timeout.
            FatalProviderError: On any other failure or a malformed response.
        """
        model = self.get_model_for_task(task_kind)
        data = await self._do_provider_request(
            endpoint=self.get_endpoint_embedding(model),
            body=self.get_embed_payload(text, model),
            action="Embedding",
        )
        try:
            return self.extract_embeddings_from_response(data)
        except ValueError as e:
            raise FatalProviderError(str(e))

    async def do_chat(
        self,
        messages: list[ChatMessage],
        max_tokens: int | None = None,
        temperature: float = 0.7,
        task_kind: TaskKind = TaskKind.CHAT,
    ) -> str:
        """Send a chat/completion request and return the assistant reply text.

        Args:
            messages (list[ChatMessage]): OpenAI-format messages.
            max_tokens (int | None): Token limit, the provider default if None.
            temperature (float): Sampling temperature.
            task_kind (TaskKind): Selects the model used for the request.

        Returns:
            str: The assistant reply text.

        Raises:
            TransientProviderError: On rate limiting, unavailability or timeout.
            FatalProviderError: On any other failure or a malformed response.
        """
        model = self.get_model_for_task(task_kind)
        body = self.get_chat_payload(
            messages,
            model=model,
            max_tokens=max_tokens or self.get_default_max_tokens(),
            temperature=temperature,
        )
        data = await self._do_provider_request(endpoint=self._get_endpoint_chat(model), body=body, action="Chat")
        try:
            return self.extract_chat_response(data)
        except ValueError as e:
            raise FatalProviderError(str(e))
