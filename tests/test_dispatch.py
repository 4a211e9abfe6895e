import pytest

from llm_conduit.dispatch import call_tools, resolve_tool
from llm_conduit.errors import (
    AmbiguousToolError,
    ConfigurationError,
    ToolCallError,
    ToolNotFoundError,
)
from llm_conduit.events import Telemetry, ToolCallStarted
from llm_conduit.tool import Tool
from llm_conduit.types.tool import ToolCall


def make_tool(name, handler=None):
    return Tool.as_(name).with_string_parameter("value").using(handler or (lambda value: f"{name}:{value}"))


@pytest.mark.asyncio
async def test_results_match_calls_in_order():
    tools = [make_tool("a"), make_tool("b")]
    calls = [
        ToolCall(id="1", name="b", arguments={"value": "x"}, result_id="r1"),
        ToolCall(id="2", name="a", arguments={"value": "y"}),
        ToolCall(id="3", name="b", arguments={"value": "z"}),
    ]

    results = await call_tools(tools, calls)

    assert len(results) == len(calls)
    for result, call in zip(results, calls):
        assert result.tool_call_id == call.id
        assert result.tool_name == call.name
        assert result.args == call.arguments
    assert [r.result for r in results] == ["b:x", "a:y", "b:z"]
    assert results[0].tool_call_result_id == "r1"


@pytest.mark.asyncio
async def test_parameter_named_self_reaches_handler():
    tool = Tool.as_("shout").with_string_parameter("self").using(lambda self: self.upper())

    results = await call_tools([tool], [ToolCall(id="1", name="shout", arguments={"self": "hi"})])

    assert results[0].result == "HI"


@pytest.mark.asyncio
async def test_empty_call_list():
    assert await call_tools([make_tool("a")], []) == []


def test_resolve_not_found_carries_name():
    with pytest.raises(ToolNotFoundError) as exc_info:
        resolve_tool("missing", [make_tool("a")])
    assert exc_info.value.tool_name == "missing"
    assert str(exc_info.value) == "Tool (missing) not found"


def test_resolve_ambiguous():
    with pytest.raises(AmbiguousToolError) as exc_info:
        resolve_tool("dup", [make_tool("dup"), make_tool("dup"), make_tool("other")])
    assert exc_info.value.tool_name == "dup"


@pytest.mark.asyncio
async def test_handler_exception_is_wrapped_once():
    def fail(value):
        raise KeyError("nope")

    call = ToolCall(id="1", name="bad", arguments={"value": "x"})

    with pytest.raises(ToolCallError) as exc_info:
        await call_tools([make_tool("bad", fail)], [call])

    error = exc_info.value
    assert error.tool_call is call
    assert isinstance(error.original_exc, KeyError)
    assert error.__cause__ is error.original_exc
    assert "Calling bad tool failed" in str(error)


@pytest.mark.asyncio
async def test_domain_errors_propagate_unchanged():
    domain_error = ConfigurationError("already ours")

    def fail(value):
        raise domain_error

    with pytest.raises(ConfigurationError) as exc_info:
        await call_tools([make_tool("t", fail)], [ToolCall(id="1", name="t", arguments={"value": "x"})])
    assert exc_info.value is domain_error


@pytest.mark.asyncio
async def test_nested_tool_call_error_is_not_rewrapped():
    inner = ToolCallError(ToolCall(id="0", name="inner"), RuntimeError("deep"))

    def fail(value):
        raise inner

    with pytest.raises(ToolCallError) as exc_info:
        await call_tools([make_tool("outer", fail)], [ToolCall(id="1", name="outer", arguments={"value": "x"})])
    assert exc_info.value is inner


@pytest.mark.asyncio
async def test_failure_aborts_batch():
    ran = []

    def record(value):
        ran.append(value)
        return value

    def fail(value):
        raise RuntimeError("stop")

    tools = [make_tool("ok", record), make_tool("bad", fail)]
    calls = [
        ToolCall(id="1", name="ok", arguments={"value": "first"}),
        ToolCall(id="2", name="bad", arguments={"value": "x"}),
        ToolCall(id="3", name="ok", arguments={"value": "never"}),
    ]

    with pytest.raises(ToolCallError):
        await call_tools(tools, calls)
    assert ran == ["first"]


@pytest.mark.asyncio
async def test_bad_arguments_surface_as_tool_call_error():
    call = ToolCall(id="1", name="t", arguments={"wrong": "x"})

    with pytest.raises(ToolCallError) as exc_info:
        await call_tools([make_tool("t")], [call])
    assert isinstance(exc_info.value.original_exc, TypeError)


@pytest.mark.asyncio
async def test_async_handlers_are_awaited():
    async def handler(value):
        return {"echo": value}

    results = await call_tools([make_tool("t", handler)], [ToolCall(id="1", name="t", arguments={"value": "v"})])

    assert results[0].result == {"echo": "v"}
    assert results[0].content() == '{"echo": "v"}'


@pytest.mark.asyncio
async def test_emits_tool_call_started_before_each_call():
    events = []
    order = []

    def handler(value):
        order.append(("handled", value))
        return value

    telemetry = Telemetry([lambda event: order.append(("event", event.tool_name)) or events.append(event)])
    calls = [ToolCall(id=str(i), name="t", arguments={"value": str(i)}) for i in range(2)]

    await call_tools([make_tool("t", handler)], calls, telemetry=telemetry)

    assert order == [("event", "t"), ("handled", "0"), ("event", "t"), ("handled", "1")]
    assert all(isinstance(e, ToolCallStarted) for e in events)
    assert events[0].attributes["tool_call"] is calls[0]
