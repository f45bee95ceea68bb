"""
Ollama 客户端回归用例

所有请求经 httpx.MockTransport 拦截，不访问网络。
"""

import asyncio
import json

import httpx
import pytest

from promptier.config.config import LLMSettings
from promptier.core.errors import ConfigError, ProviderError
from promptier.core.prompt import prompt
from promptier.lint.linter import Linter
from promptier.llm.ollama import OllamaClient
from promptier.llm.registry import ProviderRegistry, create_llm_client


def tags(*names):
    return httpx.Response(200, json={"models": [{"name": n} for n in names]})


def make_client(handler, **kwargs):
    return OllamaClient(transport=httpx.MockTransport(handler), **kwargs)


class TestGenerate:
    def test_payload(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"response": "[]", "done": True})

        client = make_client(handler, model="qwen2.5:7b")
        assert asyncio.run(client.generate("analyze this")) == "[]"
        assert seen["url"] == "http://localhost:11434/api/generate"
        assert seen["body"] == {
            "model": "qwen2.5:7b",
            "prompt": "analyze this",
            "stream": False,
            "options": {"temperature": 0.1, "num_predict": 2048},
        }

    def test_system_included(self):
        client = OllamaClient()
        assert client.build_payload("p", "be strict")["system"] == "be strict"
        assert "system" not in client.build_payload("p")

    def test_status_error(self):
        client = make_client(lambda request: httpx.Response(500, text="model crashed"))
        with pytest.raises(ProviderError, match="Ollama returned 500: model crashed"):
            asyncio.run(client.generate("p"))

    def test_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = make_client(handler, host="http://gpu-box:11434/")
        with pytest.raises(ProviderError, match="Cannot connect to Ollama at http://gpu-box:11434"):
            asyncio.run(client.generate("p"))

    def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(ProviderError, match="timed out"):
            asyncio.run(make_client(handler).generate("p"))

    def test_missing_response_field(self):
        client = make_client(lambda request: httpx.Response(200, json={"done": True}))
        with pytest.raises(ProviderError, match="'response'"):
            asyncio.run(client.generate("p"))


class TestHealthCheck:
    def test_exact_match(self):
        status = asyncio.run(make_client(lambda r: tags("llama3.2:3b")).health_check())
        assert status.ok

    def test_tag_suffix_match(self):
        status = asyncio.run(make_client(lambda r: tags("mistral:latest"), model="mistral").health_check())
        assert status.ok

    def test_model_not_found(self):
        status = asyncio.run(make_client(lambda r: tags("phi3:mini", "qwen2.5:7b")).health_check())
        assert not status.ok
        assert status.error == (
            'Model "llama3.2:3b" not found. Available: phi3:mini, qwen2.5:7b. Run: ollama pull llama3.2:3b'
        )

    def test_no_models(self):
        status = asyncio.run(make_client(lambda r: tags()).health_check())
        assert "Available: (none)." in status.error

    def test_unreachable(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        status = asyncio.run(make_client(handler).health_check())
        assert status.error == "Cannot connect to Ollama at http://localhost:11434. Is it running? Start with: ollama serve"

    def test_tags_request_path(self):
        paths = []

        def handler(request):
            paths.append(request.url.path)
            return tags("llama3.2:3b")

        asyncio.run(make_client(handler).health_check())
        assert paths == ["/api/tags"]


class TestProviderFactory:
    def test_ollama_registered(self):
        client = create_llm_client(LLMSettings(model="phi3:mini", host="http://box:11434", timeout_s=5))
        assert isinstance(client, OllamaClient)
        assert client.model_name == "phi3:mini"
        assert client.timeout_s == 5
        assert ProviderRegistry.has_provider("ollama")

    def test_planned_provider(self):
        with pytest.raises(ConfigError, match="not yet built-in"):
            create_llm_client(LLMSettings(provider="openai"))

    def test_unknown_provider(self):
        with pytest.raises(ConfigError, match="Unknown LLM provider"):
            create_llm_client(LLMSettings(provider="carrier-pigeon"))

    def test_linter_builds_client_from_settings(self):
        linter = Linter(llm={"enabled": True, "model": "phi3:mini"})
        assert linter.semantic_enabled


class TestLinterWithOllama:
    def test_end_to_end(self):
        requests = []

        def handler(request):
            requests.append(request.url.path)
            if request.url.path == "/api/tags":
                return tags("llama3.2:3b")
            body = json.loads(request.content)
            assert "=== SYSTEM PROMPT TO ANALYZE ===" in body["prompt"]
            assert body["system"]
            answer = [{"id": "semantic-verbosity", "severity": "info", "message": "Repeats itself."}]
            return httpx.Response(200, json={"response": "```json\n" + json.dumps(answer) + "\n```"})

        p = prompt("support").identity("You are helpful.").format("Respond in JSON.").build()
        result = Linter(client=make_client(handler)).lint_sync(p)
        assert requests == ["/api/tags", "/api/generate"]
        assert [(f.id, f.category) for f in result.info] == [("semantic-verbosity", "token-budget")]
        assert result.stats.llm_calls == 1

    def test_ollama_down(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        p = prompt("support").identity("You are helpful.").build()
        result = Linter(client=make_client(handler)).lint_sync(p)
        assert result.passed
        assert [f.id for f in result.info] == ["semantic-unavailable"]
        assert "ollama serve" in result.info[0].message
        assert result.stats.llm_calls == 0
