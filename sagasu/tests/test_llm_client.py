"""Tests for LLMClient provider abstraction."""

import pytest
from unittest.mock import Mock

from sagasu.common.config import LLMConfig
from sagasu.common.llm_client import CompletionError, LLMClient, resolve_provider


def _with_fake_sdk(provider, model="test-model"):
    """Unavailable client with a mocked SDK object swapped in."""
    client = LLMClient(provider=provider, model=model)
    client._client = Mock()
    if provider == "google":
        client._google_models = {}
    return client


class TestLLMClientInit:
    def test_missing_anthropic_key_logs_info(self, caplog):
        import logging
        with caplog.at_level(logging.INFO, logger="sagasu.common.llm_client"):
            client = LLMClient(provider="anthropic")
        assert not client.is_available
        assert "API key not provided" in caplog.text

    def test_missing_openai_key_logs_info(self, caplog):
        import logging
        with caplog.at_level(logging.INFO, logger="sagasu.common.llm_client"):
            client = LLMClient(provider="openai")
        assert not client.is_available
        assert "API key not provided" in caplog.text

    def test_missing_google_key_logs_info(self, caplog):
        import logging
        with caplog.at_level(logging.INFO, logger="sagasu.common.llm_client"):
            client = LLMClient(provider="google")
        assert not client.is_available
        assert "API key not provided" in caplog.text

    def test_unsupported_provider_logs_warning(self, caplog):
        import logging
        with caplog.at_level(logging.WARNING, logger="sagasu.common.llm_client"):
            client = LLMClient(provider="unsupported_xyz")
        assert not client.is_available
        assert "Unsupported" in caplog.text


class TestResolveProvider:
    def test_explicit_provider_is_kept(self):
        assert resolve_provider("Anthropic") == "anthropic"

    def test_auto_picks_first_provider_with_key(self):
        assert resolve_provider("auto", google_api_key="g") == "google"
        assert resolve_provider("auto", anthropic_api_key="a", google_api_key="g") == "anthropic"

    def test_auto_without_keys_defaults_to_openai(self):
        assert resolve_provider("auto") == "openai"

    def test_from_config_uses_provider_model(self):
        config = LLMConfig(provider="anthropic", anthropic_model="claude-test")
        client = LLMClient.from_config(config)
        assert client.provider == "anthropic"
        assert client.model == "claude-test"
        assert not client.is_available

    def test_from_config_auto_uses_resolved_provider_model(self):
        config = LLMConfig(
            provider="auto",
            anthropic_api_key="sk-ant-test",
            anthropic_model="claude-test",
            google_model="gemini-test",
        )
        client = LLMClient.from_config(config)
        assert client.provider == "anthropic"
        assert client.model == "claude-test"


class TestLLMClientGenerate:
    def test_generate_raises_when_unavailable(self):
        client = LLMClient(provider="anthropic")
        with pytest.raises(CompletionError, match="not available"):
            client.generate("test")

    def test_openai_request_shape(self):
        client = _with_fake_sdk("openai")
        response = Mock()
        response.choices = [Mock()]
        response.choices[0].message.content = "  1, 2  "
        client._client.chat.completions.create.return_value = response

        assert client.generate("rank these", system="be brief", max_tokens=64, timeout=5.0) == "1, 2"

        kwargs = client._client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "test-model"
        assert kwargs["n"] == 1
        assert kwargs["max_tokens"] == 64
        assert kwargs["timeout"] == 5.0
        assert kwargs["messages"] == [
            {"role": "system", "content": "be brief"},
            {"role": "user", "content": "rank these"},
        ]
        assert "temperature" not in kwargs

    def test_anthropic_passes_system_separately(self):
        client = _with_fake_sdk("anthropic")
        client.temperature = 0.2
        response = Mock()
        response.content = [Mock(text="answer")]
        client._client.messages.create.return_value = response

        assert client.chat(
            [{"role": "user", "content": "hi"}, {"role": "assistant", "content": "hello"}],
            system="sys",
        ) == "answer"

        kwargs = client._client.messages.create.call_args.kwargs
        assert kwargs["system"] == "sys"
        assert kwargs["temperature"] == 0.2
        assert kwargs["messages"][1]["role"] == "assistant"

    def test_google_maps_assistant_role_to_model(self):
        client = _with_fake_sdk("google")
        model = client._client.GenerativeModel.return_value
        model.generate_content.return_value = Mock(text="ok")

        client.chat(
            [{"role": "user", "content": "a"}, {"role": "assistant", "content": "b"}],
            system="sys",
        )
        client.generate("again", system="sys")

        contents = model.generate_content.call_args_list[0].args[0]
        assert [c["role"] for c in contents] == ["user", "model"]
        # Same system prompt reuses the cached model
        client._client.GenerativeModel.assert_called_once_with(
            model_name="test-model", system_instruction="sys"
        )

    def test_sdk_errors_become_completion_errors(self):
        client = _with_fake_sdk("openai")
        client._client.chat.completions.create.side_effect = TimeoutError("read timeout")

        with pytest.raises(CompletionError, match="openai completion failed"):
            client.generate("test")
