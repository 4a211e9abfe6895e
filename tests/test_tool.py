import pytest

from llm_conduit.errors import ConfigurationError
from llm_conduit.tool import Tool, ToolParameter


def test_fluent_construction():
    tool = (
        Tool.as_("search")
        .for_("Search the web")
        .with_string_parameter("query", "What to look for")
        .with_integer_parameter("limit", "Max results", required=False)
        .using(lambda query, limit=5: [query] * limit)
    )

    assert tool.name() == "search"
    assert tool.description() == "Search the web"
    assert [p.name for p in tool.parameters()] == ["query", "limit"]
    assert tool.required_parameters() == ["query"]
    assert tool.has_handler()


def test_parameters_schema():
    tool = (
        Tool.as_("pick")
        .with_enum_parameter("color", ["red", "green"], "A color")
        .with_array_parameter("tags", items={"type": "integer"})
        .with_object_parameter("point", {"x": {"type": "number"}}, required_properties=["x"])
        .with_boolean_parameter("strict", required=False)
        .with_parameter(ToolParameter("raw", {"type": "string", "format": "date"}))
    )

    schema = tool.parameters_schema()

    assert schema["type"] == "object"
    assert schema["properties"]["color"] == {
        "enum": ["red", "green"],
        "type": "string",
        "description": "A color",
    }
    assert schema["properties"]["tags"] == {"type": "array", "items": {"type": "integer"}}
    assert schema["properties"]["point"]["required"] == ["x"]
    assert schema["properties"]["raw"]["format"] == "date"
    assert schema["required"] == ["color", "tags", "point", "raw"]


def test_empty_name_is_rejected():
    with pytest.raises(ConfigurationError):
        Tool.as_("")


def test_duplicate_parameter_is_rejected():
    with pytest.raises(ConfigurationError):
        Tool.as_("t").with_string_parameter("a").with_number_parameter("a")


def test_handler_must_accept_declared_parameters():
    with pytest.raises(ConfigurationError):
        Tool.as_("t").with_string_parameter("city").using(lambda town: town)


def test_handler_must_not_require_undeclared_parameters():
    with pytest.raises(ConfigurationError):
        Tool.as_("t").with_string_parameter("city").using(lambda city, country: city)


def test_handler_with_var_kwargs_is_accepted():
    tool = Tool.as_("t").with_string_parameter("city").using(lambda **kwargs: kwargs)
    assert tool.has_handler()


def test_handler_must_be_callable():
    with pytest.raises(ConfigurationError):
        Tool.as_("t").using("not a function")


@pytest.mark.asyncio
async def test_handle_sync_and_async_handlers():
    async def shout(text):
        return text.upper()

    sync_tool = Tool.as_("echo").with_string_parameter("text").using(lambda text: text)
    async_tool = Tool.as_("shout").with_string_parameter("text").using(shout)

    assert await sync_tool.handle(text="hi") == "hi"
    assert await async_tool.handle(text="hi") == "HI"


@pytest.mark.asyncio
async def test_handle_surfaces_arity_mismatch_from_handler():
    tool = Tool.as_("echo").with_string_parameter("text").using(lambda text: text)

    with pytest.raises(TypeError):
        await tool.handle(text="hi", extra=1)


@pytest.mark.asyncio
async def test_handle_without_handler():
    with pytest.raises(ConfigurationError):
        await Tool.as_("t").handle()
