"""Tests for the text request builder and the multi-step tool loop."""

from contextlib import aclosing

import pytest

from conftest import FakeProvider, RerankOnlyProvider
from llm_conduit import Conduit, PendingTextRequest, Tool
from llm_conduit.errors import (
    ConfigurationError,
    MissingRequiredFieldError,
    MutuallyExclusiveInputError,
    ProviderNotFoundError,
    ToolCallError,
    UnsupportedProviderActionError,
)
from llm_conduit.events import ProviderRequestCompleted, ProviderRequestStarted, ToolCallStarted
from llm_conduit.types import (
    AssistantMessage,
    FinishReason,
    Image,
    SystemMessage,
    Text,
    ToolResultMessage,
    UserMessage,
)
from llm_conduit.types.response import Chunk, ChunkType, Step, Usage
from llm_conduit.types.tool import ToolCall, ToolChoice


class Greeting:
    def __init__(self, name):
        self.name = name
        self.renders = 0

    def render(self) -> str:
        self.renders += 1
        return f"Hello {self.name}"


def weather_tool() -> Tool:
    return (
        Tool.as_("weather")
        .for_("Current weather for a city")
        .with_string_parameter("city", "City name")
        .using(lambda city: f"Sunny in {city}")
    )


class TestToRequest:
    def test_prompt_becomes_single_user_message(self):
        request = PendingTextRequest().with_prompt("Hello AI").to_request()

        assert len(request.messages) == 1
        message = request.messages[0]
        assert isinstance(message, UserMessage)
        assert message.content == "Hello AI"
        assert request.prompt == "Hello AI"

    def test_media_follows_prompt_text_in_caller_order(self):
        first = Image.from_url("https://example.com/a.png")
        second = Image.from_base64("aGVsbG8=", "image/jpeg")

        request = PendingTextRequest().with_prompt("Describe", [first, second]).to_request()

        assert request.messages[0].additional_content == (Text("Describe"), first, second)

    def test_prompt_then_messages_is_rejected(self):
        builder = PendingTextRequest().with_prompt("Hi").with_messages([UserMessage("Hi")])

        with pytest.raises(MutuallyExclusiveInputError) as exc_info:
            builder.to_request()
        assert exc_info.value.fields == ("prompt", "messages")

    def test_messages_then_prompt_is_rejected(self):
        builder = PendingTextRequest().with_messages([UserMessage("Hi")]).with_prompt("Hi")

        with pytest.raises(MutuallyExclusiveInputError):
            builder.to_request()

    def test_setters_do_not_validate_across_fields(self):
        # conflict is only detected at finalization
        builder = PendingTextRequest().with_prompt("Hi").with_messages([UserMessage("Hi")])
        assert isinstance(builder, PendingTextRequest)

    def test_to_request_is_idempotent(self):
        tool = weather_tool()
        builder = (
            PendingTextRequest()
            .using(FakeProvider(), "fake-model")
            .with_system_prompt("Be brief")
            .with_prompt("Hello")
            .with_tools([tool])
            .with_tool_choice(ToolChoice.AUTO)
            .with_max_tokens(50)
            .using_temperature(0.2)
            .using_top_p(0.9)
            .with_max_steps(3)
            .with_client_options({"timeout": 5})
            .with_client_retry(2, 100)
            .with_provider_options({"reasoning": {"effort": "low"}})
        )

        assert builder.to_request() == builder.to_request()

    def test_renderable_prompt_is_rendered_at_finalization(self):
        greeting = Greeting("Ada")
        builder = PendingTextRequest().with_prompt(greeting).with_system_prompt(Greeting("system"))

        assert greeting.renders == 0
        request = builder.to_request()

        assert greeting.renders == 1
        assert request.messages[0].content == "Hello Ada"
        assert request.system_prompts == (SystemMessage("Hello system"),)

    def test_non_renderable_prompt_is_rejected(self):
        with pytest.raises(ConfigurationError):
            PendingTextRequest().with_prompt(42)

    def test_system_prompts_and_sampling_are_snapshotted(self):
        request = (
            PendingTextRequest()
            .with_system_prompts(["one", SystemMessage("two")])
            .with_messages([UserMessage("Hi")])
            .with_max_tokens(10)
            .using_temperature(0.5)
            .to_request()
        )

        assert request.system_prompts == (SystemMessage("one"), SystemMessage("two"))
        assert request.max_tokens == 10
        assert request.temperature == 0.5
        assert request.top_p is None
        assert request.prompt is None

    def test_provider_option_dot_path(self):
        builder = PendingTextRequest().with_provider_options({"thinking": {"budget": 1024}})
        request = builder.with_prompt("x").to_request()

        assert builder.provider_option("thinking.budget") == 1024
        assert request.provider_option("thinking.budget") == 1024
        assert request.provider_option("thinking.missing", "dflt") == "dflt"
        assert request.provider_option() == {"thinking": {"budget": 1024}}


class TestSetters:
    def test_client_retry_is_stored_as_four_tuple(self):
        request = PendingTextRequest().with_prompt("x").with_client_retry(3, 100).to_request()

        assert request.client_retry == (3, 100, None, True)

    def test_client_retry_accepts_backoff_list(self):
        request = PendingTextRequest().with_prompt("x").with_client_retry([100, 200]).to_request()

        assert request.client_retry[0] == [100, 200]

    @pytest.mark.parametrize(
        "args",
        [(-1,), ("3",), ([100, -5],), (3, -1), (3, 0, "not callable"), (3, 0, None, "yes")],
    )
    def test_client_retry_rejects_bad_shapes(self, args):
        with pytest.raises(ConfigurationError):
            PendingTextRequest().with_client_retry(*args)

    def test_max_steps_must_be_positive(self):
        with pytest.raises(ConfigurationError):
            PendingTextRequest().with_max_steps(0)

    def test_with_tools_rejects_non_tools(self):
        with pytest.raises(ConfigurationError):
            PendingTextRequest().with_tools(["weather"])


class TestProviderSelection:
    def test_unknown_provider_key(self):
        with pytest.raises(ProviderNotFoundError) as exc_info:
            PendingTextRequest().using("nope", "model")
        assert "nope" in str(exc_info.value)

    def test_builtin_provider_is_resolved_without_network(self):
        builder = PendingTextRequest().using("openai", "gpt-4o-mini", {"api_key": "sk-test"})

        assert builder.provider_key == "openai"
        assert builder.model == "gpt-4o-mini"
        assert builder.provider().api_key == "sk-test"

    def test_using_provider_config_merges_over_inline_config(self, registry):
        seen = []

        def factory(config):
            seen.append(config)
            return FakeProvider()

        registry.extend("custom", factory)
        (
            PendingTextRequest(registry=registry)
            .using("custom", "m", {"api_key": "a", "url": "u"})
            .using_provider_config({"url": "v"})
        )

        assert seen[-1] == {"api_key": "a", "url": "v"}

    def test_using_provider_config_requires_provider(self):
        with pytest.raises(MissingRequiredFieldError):
            PendingTextRequest().using_provider_config({"url": "v"})

    @pytest.mark.asyncio
    async def test_as_text_requires_provider(self):
        with pytest.raises(MissingRequiredFieldError):
            await PendingTextRequest().with_prompt("Hi").as_text()


class TestAsText:
    @pytest.mark.asyncio
    async def test_single_step(self, telemetry, events):
        provider = FakeProvider(
            [Step(text="Hi there", finish_reason=FinishReason.STOP, usage=Usage(3, 2))]
        )

        response = await (
            PendingTextRequest(telemetry=telemetry)
            .using(provider, "fake-model")
            .with_prompt("Hello AI")
            .as_text()
        )

        assert response.text == "Hi there"
        assert response.finish_reason == FinishReason.STOP
        assert len(response.steps) == 1
        assert response.usage.total_tokens == 5
        assert isinstance(events[0], ProviderRequestStarted)
        assert isinstance(events[-1], ProviderRequestCompleted)
        assert events[-1].exception is None
        assert events[-1].attributes["response"] is response

    @pytest.mark.asyncio
    async def test_tool_loop_runs_tools_between_steps(self, telemetry, events):
        call = ToolCall(id="call_1", name="weather", arguments={"city": "Paris"})
        provider = FakeProvider(
            [
                Step(finish_reason=FinishReason.TOOL_CALLS, tool_calls=(call,), usage=Usage(10, 5)),
                Step(text="It is sunny in Paris", finish_reason=FinishReason.STOP, usage=Usage(20, 7)),
            ]
        )

        response = await (
            PendingTextRequest(telemetry=telemetry)
            .using(provider, "fake-model")
            .with_prompt("Weather in Paris?")
            .with_tools([weather_tool()])
            .with_max_steps(3)
            .as_text()
        )

        assert response.text == "It is sunny in Paris"
        assert len(response.steps) == 2
        assert response.steps[0].tool_results[0].result == "Sunny in Paris"
        assert response.usage == Usage(30, 12)

        # second turn sees the assistant tool call and its result
        second = provider.requests[1].messages
        assert isinstance(second[1], AssistantMessage)
        assert second[1].tool_calls == (call,)
        assert isinstance(second[2], ToolResultMessage)
        assert second[2].tool_results[0].tool_call_id == "call_1"

        assert any(isinstance(e, ToolCallStarted) and e.tool_name == "weather" for e in events)

    @pytest.mark.asyncio
    async def test_stops_at_max_steps_with_tool_results(self):
        call = ToolCall(id="call_1", name="weather", arguments={"city": "Oslo"})
        provider = FakeProvider([Step(finish_reason=FinishReason.TOOL_CALLS, tool_calls=(call,))])

        response = await (
            PendingTextRequest()
            .using(provider, "fake-model")
            .with_prompt("Weather?")
            .with_tools([weather_tool()])
            .as_text()
        )

        assert len(provider.requests) == 1
        assert response.tool_results[0].result == "Sunny in Oslo"
        assert isinstance(response.messages[-1], ToolResultMessage)

    @pytest.mark.asyncio
    async def test_tool_failure_is_reported_on_completed_event(self, telemetry, events):
        def explode(city):
            raise ValueError("boom")

        tool = Tool.as_("weather").with_string_parameter("city").using(explode)
        call = ToolCall(id="c", name="weather", arguments={"city": "Rome"})
        provider = FakeProvider([Step(tool_calls=(call,))])

        with pytest.raises(ToolCallError) as exc_info:
            await (
                PendingTextRequest(telemetry=telemetry)
                .using(provider, "fake-model")
                .with_prompt("x")
                .with_tools([tool])
                .as_text()
            )

        assert isinstance(exc_info.value.original_exc, ValueError)
        assert events[-1].exception is exc_info.value

    @pytest.mark.asyncio
    async def test_unsupported_capability(self):
        with pytest.raises(UnsupportedProviderActionError) as exc_info:
            await (
                PendingTextRequest()
                .using(RerankOnlyProvider(name="reranker"), "m")
                .with_prompt("Hello")
                .as_text()
            )
        assert exc_info.value.provider == "reranker"


class TestAsStream:
    @pytest.mark.asyncio
    async def test_streams_text_and_tool_results(self):
        call = ToolCall(id="call_1", name="weather", arguments={"city": "Lima"})
        provider = FakeProvider(
            streams=[
                [
                    Chunk(text="Let me check. "),
                    Chunk(tool_calls=(call,), chunk_type=ChunkType.TOOL_CALL),
                    Chunk(finish_reason=FinishReason.TOOL_CALLS, chunk_type=ChunkType.META),
                ],
                [
                    Chunk(text="Sunny."),
                    Chunk(finish_reason=FinishReason.STOP, chunk_type=ChunkType.META),
                ],
            ]
        )

        chunks = [
            chunk
            async for chunk in (
                PendingTextRequest()
                .using(provider, "fake-model")
                .with_prompt("Weather in Lima?")
                .with_tools([weather_tool()])
                .with_max_steps(2)
                .as_stream()
            )
        ]

        types = [chunk.chunk_type for chunk in chunks]
        assert types == [
            ChunkType.TEXT,
            ChunkType.TOOL_CALL,
            ChunkType.META,
            ChunkType.TOOL_RESULT,
            ChunkType.TEXT,
            ChunkType.META,
        ]
        assert chunks[3].tool_results[0].result == "Sunny in Lima"
        assert provider.requests[1].messages[1] == AssistantMessage("Let me check. ", (call,))

    @pytest.mark.asyncio
    async def test_closing_early_closes_provider_stream(self, telemetry, events):
        provider = FakeProvider(
            streams=[[Chunk(text="a"), Chunk(text="b"), Chunk(chunk_type=ChunkType.META)]]
        )
        stream = PendingTextRequest(telemetry=telemetry).using(provider, "m").with_prompt("x").as_stream()

        first = await stream.__anext__()
        await stream.aclose()

        assert first.text == "a"
        assert provider.stream_closed
        completed = [e for e in events if isinstance(e, ProviderRequestCompleted)]
        assert len(completed) == 1
        assert completed[0].exception is None

    @pytest.mark.asyncio
    async def test_breaking_out_of_loop_closes_provider_stream(self, telemetry, events):
        provider = FakeProvider(streams=[[Chunk(text="a"), Chunk(text="b")]])
        stream = PendingTextRequest(telemetry=telemetry).using(provider, "m").with_prompt("x").as_stream()

        async with aclosing(stream):
            async for chunk in stream:
                break

        assert chunk.text == "a"
        assert provider.stream_closed
        assert [type(e) for e in events] == [ProviderRequestStarted, ProviderRequestCompleted]

    def test_stream_validates_eagerly(self):
        builder = PendingTextRequest().with_prompt("a").with_messages([UserMessage("b")])

        with pytest.raises(MutuallyExclusiveInputError):
            builder.as_stream()


class TestConduit:
    @pytest.mark.asyncio
    async def test_builders_share_registry_and_telemetry(self, events):
        conduit = Conduit()
        conduit.subscribe(events.append)
        conduit.extend("fake", lambda config: FakeProvider([Step(text="ok")]))

        response = await conduit.text().using("fake", "m").with_prompt("hi").as_text()

        assert response.text == "ok"
        assert isinstance(events[0], ProviderRequestStarted)
        assert events[0].provider == "fake"
