import time
from anthropic import AsyncAnthropic
from logpilot.config import AppConfig
from logpilot.models.schemas import TokenUsage
from logpilot.utils.logger import get_logger

logger = get_logger(__name__)


class AnthropicClient:
    """Anthropic API client with cumulative token tracking."""

    def __init__(self, config: AppConfig, agent_name: str = "log_query_agent", client: AsyncAnthropic | None = None):
        self.agent_name = agent_name
        self.model = config.llm_model
        self.temperature = config.llm_temperature
        self.max_tokens = config.llm_max_tokens
        self._client = client or AsyncAnthropic(api_key=config.llm_api_key or None)
        self._total_input_tokens = 0
        self._total_output_tokens = 0

    async def chat_with_tools(
        self,
        system: str,
        messages: list[dict],
        tools: list[dict] | None = None,
    ):
        """Send a message with tool definitions. Returns raw Anthropic response object."""
        kwargs = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "system": system,
            "messages": messages,
            "temperature": self.temperature,
        }
        if tools:
            kwargs["tools"] = tools
            kwargs["tool_choice"] = {"type": "auto"}

        logger.info("LLM call", extra={
            "agent_name": self.agent_name,
            "action": "llm_call",
            "tool": self.model,
            "extra": {
                "message_count": len(messages),
                "tool_count": len(tools) if tools else 0,
            },
        })

        start = time.monotonic()
        try:
            response = await self._client.messages.create(**kwargs)
        except Exception as e:
            logger.error("LLM call failed", extra={
                "agent_name": self.agent_name, "action": "llm_error", "extra": str(e)
            })
            raise

        elapsed_ms = round((time.monotonic() - start) * 1000)
        self._total_input_tokens += response.usage.input_tokens
        self._total_output_tokens += response.usage.output_tokens

        tool_names = [b.name for b in response.content if b.type == "tool_use"]
        logger.info("LLM response", extra={
            "agent_name": self.agent_name,
            "action": "llm_response",
            "tokens": {"input": response.usage.input_tokens, "output": response.usage.output_tokens},
            "duration_ms": elapsed_ms,
            "extra": {
                "stop_reason": response.stop_reason,
                "tool_calls": tool_names if tool_names else None,
            },
        })

        return response

    def get_total_usage(self) -> TokenUsage:
        """Get cumulative token usage for this client instance."""
        return TokenUsage(
            agent_name=self.agent_name,
            input_tokens=self._total_input_tokens,
            output_tokens=self._total_output_tokens,
            total_tokens=self._total_input_tokens + self._total_output_tokens,
        )
