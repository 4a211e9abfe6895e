"""
This example demonstrates how to get structured JSON output from LLMs
by solving a mathematical equation step-by-step.
"""

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional

from pydantic import BaseModel

from llm_conduit import Conduit, Provider, StructuredDecodingError

logging.basicConfig(level=logging.INFO, format="%(message)s")
logger = logging.getLogger(__name__)


class Step(BaseModel):
    explanation: str
    output: str


class MathResponse(BaseModel):
    steps: List[Step]
    final_answer: str


# OpenAI strict mode wants additionalProperties: false everywhere
MATH_RESPONSE_SCHEMA = {
    "type": "object",
    "properties": {
        "steps": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "explanation": {"type": "string"},
                    "output": {"type": "string"},
                },
                "required": ["explanation", "output"],
                "additionalProperties": False,
            },
        },
        "final_answer": {"type": "string"},
    },
    "required": ["steps", "final_answer"],
    "additionalProperties": False,
}


async def solve_math_with_json_output(conduit: Conduit, equation: str) -> Optional[MathResponse]:
    """Solve a mathematical equation with structured JSON output."""
    logger.info(f"Solving '{equation}' with structured JSON output")

    try:
        response = await (
            conduit.structured()
            .using(Provider.OPENAI, "gpt-4o-mini")
            .with_system_prompt("You are a mathematical assistant. Solve the given equation step by step.")
            .with_prompt(f"Solve this equation step by step: {equation}")
            .with_schema(MATH_RESPONSE_SCHEMA, "math_solution")
            .using_temperature(0.1)  # Lower temperature for more consistent output
            .with_max_tokens(1000)
            .as_structured()
        )
    except StructuredDecodingError as e:
        logger.error(f"Failed to decode structured response: {e}")
        logger.error(f"Raw response: {e.text}")
        return None

    math_response = MathResponse.model_validate(response.structured)

    print(f"\nSolution for: {equation}")
    print("Steps:")
    for i, step in enumerate(math_response.steps, 1):
        print(f"  {i}. {step.explanation}")
        print(f"     Result: {step.output}")

    print(f"\nFinal Answer: {math_response.final_answer}")

    return math_response


async def main():
    conduit = Conduit()

    # Example 1: Linear equation
    await solve_math_with_json_output(conduit, "3x + 7 = 16")

    print("\n" + "=" * 50 + "\n")

    # Example 2: Quadratic equation
    await solve_math_with_json_output(conduit, "x^2 - 5x + 6 = 0")


if __name__ == "__main__":
    asyncio.run(main())
