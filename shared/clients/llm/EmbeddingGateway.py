import asyncio
from functools import partial
from typing import Awaitable, Callable, TypeVar

from tenacity import AsyncRetrying, RetryCallState, retry_if_exception_type, stop_after_attempt, wait_exponential

from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.exceptions import DataIntegrityError, FatalProviderError, ProviderTimeoutError, TransientProviderError
from shared.helper.HelperConfig import HelperConfig
from shared.helper.HelperVector import to_array
from shared.models.chat import ChatMessage, TaskKind

T = TypeVar("T")


class EmbeddingGateway:
    """Provider-agnostic embedding and completion calls with retry.

    Wraps exactly one LLMClientInterface chosen by LLMClientManager. Every
    call is bounded by the client timeout. Transient failures (HTTP
    429/502/503, connection errors, timeouts) are retried with exponential
    backoff, base_delay * 2**attempt; once the retry budget is spent the
    last error is raised. Fatal failures are raised immediately.
    """

    def __init__(
        self,
        helper_config: HelperConfig,
        client: LLMClientInterface,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.logging = helper_config.get_logger()
        self.client = client
        self.timeout = client.timeout
        self.max_retries = helper_config.get_int_val("LLM_MAX_RETRIES", default=3, min_val=0)
        self.retry_base_delay = helper_config.get_float_val("LLM_RETRY_BASE_DELAY", default=1.0, min_val=0.0)
        self._sleep = sleep

    ##########################################
    ################ GETTER ##################
    ##########################################

    def get_engine_name(self) -> str:
        return self.client.get_engine_name()

    def get_model_for_task(self, task_kind: TaskKind) -> str:
        return self.client.get_model_for_task(task_kind)

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def embed(self, text: str, task_kind: TaskKind = TaskKind.EMBEDDING) -> list[float]:
        """Turn a text into its embedding vector.

        Raises:
            TransientProviderError: If the provider stayed unavailable after all retries.
            FatalProviderError: On non-retryable failures, including vectors
                that are empty or contain non-finite values.
        """
        vector = await self._call_with_retry(lambda: self.client.do_embed(text, task_kind), action="embed")
        try:
            arr = to_array(vector)
        except (DataIntegrityError, TypeError, ValueError) as e:
            raise FatalProviderError("Provider %s returned an invalid embedding: %s" % (self.get_engine_name(), e))
        return arr.tolist()

    async def complete(
        self,
        messages: list[ChatMessage],
        max_tokens: int | None = None,
        temperature: float = 0.7,
        task_kind: TaskKind = TaskKind.CHAT,
    ) -> str:
        """Generate a completion for a chat message list."""
        return await self._call_with_retry(
            lambda: self.client.do_chat(messages, max_tokens=max_tokens, temperature=temperature, task_kind=task_kind),
            action="complete",
        )

    async def _attempt(self, call: Callable[[], Awaitable[T]], action: str) -> T:
        try:
            return await asyncio.wait_for(call(), timeout=self.timeout)
        except asyncio.TimeoutError:
            raise ProviderTimeoutError("%s call to %s exceeded %.1fs." % (action, self.get_engine_name(), self.timeout))

    def _log_retry(self, action: str, retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception()
        self.logging.warning(
            "%s call to %s failed (%s), retry %d/%d in %.1fs",
            action,
            self.get_engine_name(),
            getattr(error, "reason", error),
            retry_state.attempt_number,
            self.max_retries,
            retry_state.next_action.sleep,
            extra={"stage": "provider"},
        )

    async def _call_with_retry(self, call: Callable[[], Awaitable[T]], action: str) -> T:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_retries + 1),
            wait=wait_exponential(multiplier=self.retry_base_delay, exp_base=2),
            retry=retry_if_exception_type(TransientProviderError),
            before_sleep=partial(self._log_retry, action),
            sleep=self._sleep,
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    result = await self._attempt(call, action)
        except TransientProviderError as e:
            self.logging.error(
                "%s call to %s failed after %d attempt(s): %s",
                action,
                self.get_engine_name(),
                self.max_retries + 1,
                e,
                extra={"stage": "provider"},
            )
            raise
        return result
