"""
Tests for the Calculator tool and the shared tool input validation.
"""

import pytest

from app.agent.tools import CalculatorTool, safe_calculate
from app.core.errors import ToolInputValidationError


@pytest.mark.parametrize(
    "expression,expected",
    [
        ("2+3*4", 14),
        ("(2+3)*4", 20),
        ("10/4", 2.5),
        ("7 // 2", 3),
        ("7 % 3", 1),
        ("2**10", 1024),
        ("-3 + +5", 2),
        ("0.1+0.2", 0.3),
    ],
)
def test_safe_calculate(expression, expected) -> None:
    assert safe_calculate(expression) == expected


@pytest.mark.parametrize(
    "expression",
    [
        "",
        "   ",
        "1/0",
        "2**1000",
        "(10**100)**50",
        "(2**100)**100",
        "9" * 1200,
        "(-8)**0.5",
        "2 +",
        "__import__('os').system('ls')",
        "abs(-3)",
        "1e5",
    ],
)
def test_safe_calculate_rejects(expression) -> None:
    with pytest.raises(ToolInputValidationError):
        safe_calculate(expression)


@pytest.mark.asyncio
async def test_calculator_tool_returns_text() -> None:
    assert await CalculatorTool().run({"expression": "1450.5*2"}) == "2901.0"


@pytest.mark.asyncio
async def test_huge_integer_is_a_tool_failure() -> None:
    with pytest.raises(ToolInputValidationError):
        await CalculatorTool().run({"expression": "(10**100)**50"})


@pytest.mark.asyncio
async def test_large_integer_within_limit_is_printed() -> None:
    assert await CalculatorTool().run({"expression": "(10**99)**10 * 10**9"}) == "1" + "0" * 999


@pytest.mark.asyncio
async def test_missing_field_names_it() -> None:
    with pytest.raises(ToolInputValidationError) as exc_info:
        await CalculatorTool().run({})
    assert "expression" in str(exc_info.value)


def test_spec_is_openai_function_definition() -> None:
    spec = CalculatorTool().spec()
    assert spec["type"] == "function"
    assert spec["function"]["name"] == "Calculator"
    assert "expression" in spec["function"]["parameters"]["properties"]
