from __future__ import annotations

import argparse
import asyncio
import logging

from llm_conduit import Conduit, Provider, Tool
from llm_conduit.events import ToolCallStarted

logger = logging.getLogger(__name__)
logging.basicConfig(level=logging.INFO)


def get_weather(location: str, unit: str = "celsius") -> str:
    """Stub implementation of get_weather."""
    # imagine we call a real weather API here
    return "15 °C, mostly cloudy" if unit == "celsius" else "59 °F, mostly cloudy"


WEATHER_TOOL = (
    Tool.as_("get_weather")
    .for_("Get the current weather in a given location")
    .with_string_parameter("location", "City and state, e.g. San Francisco, CA")
    .with_enum_parameter("unit", ["celsius", "fahrenheit"], required=False)
    .using(get_weather)
)


async def tool_roundtrip(provider: Provider, model: str) -> None:
    """
    Let the model call a local tool and answer with its result.

    The builder runs the loop: send prompt, run requested tools, send
    results back, stop once the model answers (or after three steps).
    """
    conduit = Conduit()
    conduit.subscribe(
        lambda event: logger.info("Running tool %s", event.tool_name)
        if isinstance(event, ToolCallStarted)
        else None
    )

    response = await (
        conduit.text()
        .using(provider, model)
        .with_prompt("What's the weather in San Francisco?")
        .with_tools([WEATHER_TOOL])
        .with_max_steps(3)
        .as_text()
    )

    logger.info("%s says: %s", provider.value.capitalize(), response.text)
    logger.info("Steps: %d, tokens: %d", len(response.steps), response.usage.total_tokens)


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    parser.add_argument(
        "--provider",
        choices=[p.value for p in Provider if p != Provider.VOYAGEAI],
        default=Provider.ANTHROPIC.value,
    )
    parser.add_argument(
        "--model",
        default="claude-3-5-haiku-20241022",  # "gpt-4.1-nano-2025-04-14", "gemini-2.0-flash-lite"
    )
    args = parser.parse_args()

    asyncio.run(tool_roundtrip(Provider(args.provider), args.model))
