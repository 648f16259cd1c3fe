"""Tests for LLMGateway -- ordered failover, fatal short-circuit and JSON retry."""

import asyncio
import pytest

from decision_memory.common.errors import (
    LLMConfigurationError,
    LLMParseError,
    NoProviderAvailableError,
)
from decision_memory.common.llm_gateway import (
    JSON_REMINDER,
    LLMGateway,
    is_retryable_error,
)


class FakeAPIError(Exception):
    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.status_code = status_code


class FakeBackend:
    """Back end that replays scripted results (strings or exceptions)."""

    def __init__(self, name, results, delay=0.0):
        self.name = name
        self.model = f"{name.lower()}-model"
        self._results = list(results)
        self._delay = delay
        self.calls = []

    async def complete(self, system, user, *, max_tokens, temperature):
        self.calls.append({"system": system, "user": user, "max_tokens": max_tokens, "temperature": temperature})
        if self._delay:
            await asyncio.sleep(self._delay)
        result = self._results.pop(0) if len(self._results) > 1 else self._results[0]
        if isinstance(result, BaseException):
            raise result
        return result


class TestRetryableClassification:
    def test_status_codes(self):
        assert is_retryable_error(FakeAPIError("x", status_code=429))
        assert is_retryable_error(FakeAPIError("x", status_code=401))
        assert is_retryable_error(FakeAPIError("x", status_code=400))
        assert not is_retryable_error(FakeAPIError("x", status_code=500))

    def test_message_patterns(self):
        assert is_retryable_error(RuntimeError("You exceeded your current quota"))
        assert is_retryable_error(RuntimeError("Rate limit reached for model"))
        assert is_retryable_error(RuntimeError("Your credit balance is too low"))
        assert is_retryable_error(RuntimeError("Incorrect API key provided"))
        assert not is_retryable_error(RuntimeError("connection reset by peer"))

    def test_timeout_is_retryable(self):
        assert is_retryable_error(asyncio.TimeoutError())


class TestAvailability:
    def test_no_backends_unavailable(self):
        gateway = LLMGateway([])
        assert not gateway.is_available
        assert gateway.primary is None

    @pytest.mark.asyncio
    async def test_complete_without_backends_raises(self):
        gateway = LLMGateway([])
        with pytest.raises(LLMConfigurationError):
            await gateway.complete("sys", "user")

    def test_from_config_priority(self):
        from decision_memory.common.config import LLMConfig
        config = LLMConfig(groq_api_key="gsk-test", anthropic_api_key="sk-ant-test", openai_api_key="sk-test")
        gateway = LLMGateway.from_config(config)
        assert [b.name for b in gateway.backends] == ["Groq", "OpenAI", "Anthropic"]
        assert gateway.primary == "Groq/llama-3.3-70b-versatile"
        assert gateway.describe()["available"] is True

    def test_from_config_without_keys_warns(self, caplog):
        import logging
        from decision_memory.common.config import LLMConfig
        with caplog.at_level(logging.WARNING, logger="decision_memory.common.llm_gateway"):
            gateway = LLMGateway.from_config(LLMConfig())
        assert not gateway.is_available
        assert "No LLM API key found" in caplog.text


class TestFailover:
    @pytest.mark.asyncio
    async def test_third_backend_serves_after_two_rate_limits(self):
        first = FakeBackend("Groq", [FakeAPIError("rate limited", status_code=429)])
        second = FakeBackend("OpenAI", [FakeAPIError("rate limited", status_code=429)])
        third = FakeBackend("Anthropic", ["answer"])
        gateway = LLMGateway([first, second, third])

        assert await gateway.complete("sys", "user") == "answer"
        assert len(first.calls) == 1
        assert len(second.calls) == 1
        assert len(third.calls) == 1

    @pytest.mark.asyncio
    async def test_fatal_error_short_circuits(self):
        first = FakeBackend("Groq", [ValueError("boom")])
        second = FakeBackend("OpenAI", ["never"])
        gateway = LLMGateway([first, second])

        with pytest.raises(ValueError, match="boom"):
            await gateway.complete("sys", "user")
        assert second.calls == []

    @pytest.mark.asyncio
    async def test_all_exhausted_surfaces_last_error(self):
        last = FakeAPIError("quota exceeded", status_code=429)
        gateway = LLMGateway([
            FakeBackend("Groq", [FakeAPIError("rate limited", status_code=429)]),
            FakeBackend("OpenAI", [last]),
        ])

        with pytest.raises(NoProviderAvailableError) as exc_info:
            await gateway.complete("sys", "user")
        assert exc_info.value.last_error is last
        assert exc_info.value.__cause__ is last

    @pytest.mark.asyncio
    async def test_deadline_expiry_fails_over(self):
        slow = FakeBackend("Groq", ["too late"], delay=1.0)
        fast = FakeBackend("OpenAI", ["on time"])
        gateway = LLMGateway([slow, fast], timeout=0.05)

        assert await gateway.complete("sys", "user") == "on time"

    @pytest.mark.asyncio
    async def test_options_passed_through(self):
        backend = FakeBackend("Groq", ["ok"])
        gateway = LLMGateway([backend], max_tokens=100, temperature=0.5)

        await gateway.complete("sys", "user")
        await gateway.complete("sys", "user", max_tokens=512, temperature=0.1)

        assert backend.calls[0]["max_tokens"] == 100
        assert backend.calls[0]["temperature"] == 0.5
        assert backend.calls[1]["max_tokens"] == 512
        assert backend.calls[1]["temperature"] == 0.1


class TestCompleteJson:
    @pytest.mark.asyncio
    async def test_fenced_json_parsed(self):
        gateway = LLMGateway([FakeBackend("Groq", ['```json\n{"a": 1}\n```'])])
        assert await gateway.complete_json("sys", "user") == {"a": 1}

    @pytest.mark.asyncio
    async def test_retries_once_with_reminder(self):
        backend = FakeBackend("Groq", ["Sure! Here it is", '{"a": 2}'])
        gateway = LLMGateway([backend])

        assert await gateway.complete_json("sys", "user") == {"a": 2}
        assert len(backend.calls) == 2
        assert backend.calls[1]["user"] == "user" + JSON_REMINDER

    @pytest.mark.asyncio
    async def test_second_parse_failure_raises(self):
        backend = FakeBackend("Groq", ["nope", "still nope"])
        gateway = LLMGateway([backend])

        with pytest.raises(LLMParseError) as exc_info:
            await gateway.complete_json("sys", "user")
        assert exc_info.value.raw == "still nope"
        assert len(backend.calls) == 2
