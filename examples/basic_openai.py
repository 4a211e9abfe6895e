"""Basic OpenAI examples: a plain request, a caller-built client, and streaming."""

import asyncio
from openai import AsyncOpenAI
from llm_conduit import OpenAIProvider, PendingTextRequest, Provider, get_api_key
from llm_conduit.types import ChunkType

MODEL_NAME = "gpt-4.1-nano"


async def basic_openai_example():
    """Simple request using the provider resolved from the environment."""
    print("=== Basic OpenAI Example ===")

    response = await (
        PendingTextRequest()
        .using(Provider.OPENAI, MODEL_NAME)
        .with_system_prompt("You are a helpful assistant.")
        .with_prompt("What is the capital of Italy?")
        .with_max_tokens(150)
        .using_temperature(0.7)
        .with_client_retry(3, 200)
        .as_text()
    )

    print(f"🤖 OpenAI Response: {response.text}")
    print(f"📊 Usage: {response.usage}")


async def custom_openai_client_example():
    """Request through a custom configured OpenAI client."""
    print("\n=== Custom OpenAI Client Example ===")

    custom_client = AsyncOpenAI(
        api_key=get_api_key(Provider.OPENAI),
        timeout=30.0,
        max_retries=3,
    )

    response = await (
        PendingTextRequest()
        .using(OpenAIProvider.from_client(custom_client), MODEL_NAME)
        .with_prompt("What is the capital of Spain?")
        .with_max_tokens(200)
        .using_temperature(0.3)
        .as_text()
    )

    print(f"🤖 OpenAI Response: {response.text}")


async def streaming_openai_example():
    """Demonstrate streaming responses with OpenAI."""
    print("\n=== Streaming OpenAI Example ===")

    stream = (
        PendingTextRequest()
        .using(Provider.OPENAI, MODEL_NAME)
        .with_prompt("Write a short poem about coding.")
        .using_temperature(0.8)
        .as_stream()
    )

    print("🎵 Streaming poem: ", end="")
    async for chunk in stream:
        if chunk.chunk_type == ChunkType.TEXT:
            print(chunk.text, end="", flush=True)
    print()  # New line after streaming


async def main():
    """Run all examples in sequence."""
    await basic_openai_example()
    await custom_openai_client_example()
    await streaming_openai_example()

if __name__ == "__main__":
    asyncio.run(main())
