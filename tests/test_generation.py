import pytest

from needlepoint.core.errors import ProviderError
from needlepoint.core.graph import GraphModel
from needlepoint.core.model import LLMConfig, LLMProvider
from needlepoint.llm.generation import make_generator
from needlepoint.llm.providers import BaseProvider, GenerationResponse
from needlepoint.settings import ApiKeys, Settings


class FakeProvider(BaseProvider):
    calls = []

    @property
    def is_configured(self) -> bool:
        return True

    async def _generate(self, request):
        FakeProvider.calls.append(request)
        if "fail" in request.prompt:
            raise ProviderError("Rate limited")
        return GenerationResponse(content="```ts\nexport const x = 1;\n```", model=self.model)


def _factory(config, api_key=None, **kwargs):
    _factory.seen = (config.provider, api_key, kwargs)
    return FakeProvider(model=config.model)


@pytest.mark.anyio
async def test_generator_builds_prompt_and_strips_fences():
    g = GraphModel()
    node = g.add_node(name="x", file_path="src/x.ts", llm_config=LLMConfig(provider=LLMProvider.OPENAI))
    settings = Settings(max_tokens=256, temperature=0.1)
    generate_one = make_generator(g, settings, api_keys=ApiKeys(openai="sk"), provider_factory=_factory)

    res = await generate_one(node.id)
    assert res.ok
    assert res.value == "export const x = 1;"
    req = FakeProvider.calls[-1]
    assert "## File: src/x.ts" in req.prompt
    assert (req.max_tokens, req.temperature) == (256, 0.1)
    assert _factory.seen[:2] == (LLMProvider.OPENAI, "sk")


@pytest.mark.anyio
async def test_provider_error_becomes_failure():
    g = GraphModel()
    node = g.add_node(name="x", file_path="src/x.ts", description="please fail")
    generate_one = make_generator(g, Settings(), api_keys=ApiKeys(), provider_factory=_factory)
    res = await generate_one(node.id)
    assert not res.ok
    assert res.message == "Rate limited"


@pytest.mark.anyio
async def test_unknown_node():
    generate_one = make_generator(GraphModel(), Settings(), provider_factory=_factory)
    res = await generate_one("ghost")
    assert not res.ok
