from enum import Enum

import httpx
from shared.exceptions import ProviderError
from shared.helper.HelperConfig import HelperConfig
from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.clients.llm.azure.LLMClientAzure import LLMClientAzure
from shared.clients.llm.gemini.LLMClientGemini import LLMClientGemini
from shared.clients.llm.mock.LLMClientMock import LLMClientMock
from shared.clients.llm.openai.LLMClientOpenai import LLMClientOpenai
from shared.models.chat import ChatMessage, ProviderCheckResult, TaskKind


class LLMProvider(str, Enum):
    OPENAI = "openai"
    GEMINI = "gemini"
    AZURE = "azure"
    MOCK = "mock"


_REGISTRY: dict[LLMProvider, type[LLMClientInterface]] = {
    LLMProvider.OPENAI: LLMClientOpenai,
    LLMProvider.GEMINI: LLMClientGemini,
    LLMProvider.AZURE: LLMClientAzure,
    LLMProvider.MOCK: LLMClientMock,
}


class LLMClientManager:
    """Manager class to instantiate the configured LLM client."""

    def __init__(self, helper_config: HelperConfig):
        self.helper_config = helper_config
        self.logging = helper_config.get_logger()
        self.provider = self._get_engine_from_env()
        self.client = self._initialize_client()

    def _get_engine_from_env(self) -> LLMProvider:
        """Read the LLM engine name from env configuration.

        Returns:
            LLMProvider: The configured provider.

        Raises:
            ValueError: If LLM_ENGINE is not set or names an unknown provider.
        """
        engine = self.helper_config.get_string_val("LLM_ENGINE")
        try:
            return LLMProvider(engine.strip().lower())
        except ValueError:
            supported = ", ".join(p.value for p in LLMProvider)
            raise ValueError("Unsupported LLM engine '%s'. Supported engines: %s." % (engine, supported))

    def _initialize_client(self) -> LLMClientInterface:
        """Instantiate the LLM client for the configured engine.

        Raises:
            ValueError: If the provider configuration is incomplete.
        """
        client = _REGISTRY[self.provider](helper_config=self.helper_config)
        self.logging.debug("Instantiated LLM client for engine: %s", self.provider.value)
        return client

    def get_client(self) -> LLMClientInterface:
        """Return the instantiated LLM client."""
        return self.client

    def is_provider_configured(self, provider: LLMProvider | str) -> bool:
        """Check whether all required settings of a provider are present.

        Builds a throwaway client, which validates its configuration in the
        constructor, and reports the outcome instead of raising.
        """
        try:
            provider = LLMProvider(provider.lower())
        except ValueError:
            return False
        try:
            _REGISTRY[provider](helper_config=self.helper_config)
        except ValueError as e:
            self.logging.debug("Provider %s is not configured: %s", provider.value, e)
            return False
        return True

    def get_available_providers(self) -> list[LLMProvider]:
        """Return every provider whose configuration is complete."""
        return [p for p in LLMProvider if self.is_provider_configured(p)]

    ##########################################
    ############## SELF CHECK ################
    ##########################################

    async def check_provider(
        self,
        provider: LLMProvider | str,
        text: str = "Hello, this is a test.",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> ProviderCheckResult:
        """Run one embedding and one chat call against a provider.

        Failures are reported in the result instead of raised.

        Args:
            provider (LLMProvider | str): Provider to check.
            text (str): Input for both calls.
            transport (httpx.AsyncBaseTransport | None): Optional transport for the HTTP client.

        Returns:
            ProviderCheckResult: Models used, vector length and reply, or the error.
        """
        name = provider.value if isinstance(provider, LLMProvider) else str(provider).lower()
        try:
            client = _REGISTRY[LLMProvider(name)](helper_config=self.helper_config)
        except ValueError as e:
            self.logging.warning("Provider %s cannot be checked: %s", name, e, extra={"stage": "provider"})
            return ProviderCheckResult(provider=name, success=False, error=str(e))

        result = ProviderCheckResult(
            provider=name,
            success=False,
            embedding_model=client.get_model_for_task(TaskKind.EMBEDDING),
            chat_model=client.get_model_for_task(TaskKind.CHAT),
        )
        await client.boot(transport=transport)
        try:
            vector = await client.do_embed(text, TaskKind.EMBEDDING)
            result.embedding_dimensions = len(vector)
            result.response = await client.do_chat([ChatMessage(role="user", content=text)], task_kind=TaskKind.CHAT)
            result.success = True
        except ProviderError as e:
            self.logging.error("Provider check of %s failed: %s", name, e, extra={"stage": "provider"})
            result.error = str(e)
        finally:
            await client.close()
        self.logging.info("Provider check of %s: %s", name, "ok" if result.success else "failed")
        return result

    async def check_all_providers(self, text: str = "Hello, this is a test.") -> list[ProviderCheckResult]:
        """Check every provider whose configuration is complete."""
        return [await self.check_provider(p, text=text) for p in self.get_available_providers()]
