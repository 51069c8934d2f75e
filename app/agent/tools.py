"""
Agent tools: definitions and execution for tool-calling (agentic) mode.

Tools: Calculator, FlightCostLookup, FlightBooking, ReminderTool. Each tool validates its
arguments with a pydantic model, exposes an OpenAI function schema, and raises a ToolError
subclass on failure so the runtime can retry the step.
"""

import ast
import logging
import operator
import re
from typing import Any, Awaitable, Callable

import httpx
from pydantic import BaseModel, ValidationError

from app.agent.llm import complete
from app.core.errors import ToolInputValidationError
from app.schemas.tools import CalculatorInput, FlightBookingInput, FlightCostLookupInput, ReminderInput
from app.services.flight_service import book_flight, lookup_flight_cost
from app.services.reminder_service import ReminderService

logger = logging.getLogger(__name__)


class BaseTool:
    """A capability the agent can call: name, description for the planner, validated input."""

    name: str = ""
    description: str = ""
    input_model: type[BaseModel] = BaseModel

    def spec(self) -> dict[str, Any]:
        """OpenAI function-calling definition."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description.strip(),
                "parameters": self.input_model.model_json_schema(),
            },
        }

    async def run(self, arguments: dict[str, Any]) -> str:
        logger.info("[tools] run name=%r arguments=%r", self.name, arguments)
        try:
            payload = self.input_model.model_validate(arguments or {})
        except ValidationError as e:
            fields = ", ".join(".".join(str(p) for p in err["loc"]) or "input" for err in e.errors())
            raise ToolInputValidationError(f"Invalid input for {self.name}: {fields}") from e
        return await self._run(payload)

    async def _run(self, payload: Any) -> str:
        raise NotImplementedError


_CALC_PATTERN = re.compile(r"^[\d\s+\-*/%().]+$")
_BIN_OPS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
}
_UNARY_OPS = {ast.UAdd: operator.pos, ast.USub: operator.neg}
MAX_EXPONENT = 100
# Integers beyond ~1000 digits are rejected before they get too large to print.
MAX_INT_BITS = 3322


def _check_size(value: int | float) -> int | float:
    if isinstance(value, int) and value.bit_length() > MAX_INT_BITS:
        raise ToolInputValidationError("Result is too large")
    return value


def _eval_node(node: ast.AST) -> int | float:
    if isinstance(node, ast.Expression):
        return _eval_node(node.body)
    if isinstance(node, ast.Constant) and type(node.value) in (int, float):
        return _check_size(node.value)
    if isinstance(node, ast.BinOp) and type(node.op) in _BIN_OPS:
        left = _eval_node(node.left)
        right = _eval_node(node.right)
        if isinstance(node.op, ast.Pow) and abs(right) > MAX_EXPONENT:
            raise ToolInputValidationError(f"Exponent too large (max {MAX_EXPONENT})")
        return _check_size(_BIN_OPS[type(node.op)](left, right))
    if isinstance(node, ast.UnaryOp) and type(node.op) in _UNARY_OPS:
        return _UNARY_OPS[type(node.op)](_eval_node(node.operand))
    raise ToolInputValidationError(f"Unsupported expression element: {type(node).__name__}")


def safe_calculate(expression: str) -> int | float:
    """Evaluate a math expression (numbers and + - * / // % ** ( ) only)."""
    expr = (expression or "").strip()
    if not expr:
        raise ToolInputValidationError("Expression is required")
    if not _CALC_PATTERN.match(expr):
        raise ToolInputValidationError("Only numbers and + - * / % ( ) . are allowed")
    try:
        tree = ast.parse(expr, mode="eval")
    except (SyntaxError, ValueError) as e:
        raise ToolInputValidationError(f"Malformed expression: {expr[:100]}") from e
    try:
        result = _eval_node(tree)
    except ZeroDivisionError as e:
        raise ToolInputValidationError("Division by zero") from e
    except OverflowError as e:
        raise ToolInputValidationError("Result is too large") from e
    if isinstance(result, complex):
        raise ToolInputValidationError("Result is not a real number")
    if isinstance(result, float):
        result = round(result, 10)
    return result


class CalculatorTool(BaseTool):
    name = "Calculator"
    description = (
        "Evaluate an arithmetic expression. Use for numeric calculations such as totals, differences or "
        "per-person prices (e.g. 2+3*4, (1450.5*2)/3). Only numbers and + - * / % ( ) . are allowed."
    )
    input_model = CalculatorInput

    async def _run(self, payload: CalculatorInput) -> str:
        return str(safe_calculate(payload.expression))


class FlightCostLookupTool(BaseTool):
    name = "FlightCostLookup"
    description = (
        "This tool will look up the cost and other information about flights you might want to book based on "
        "your details. Don't assume the missing details and ask the user for the details if missing. "
        "Dates must be provided in YYYY-MM-DD format."
    )
    input_model = FlightCostLookupInput

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.transport = transport

    async def _run(self, payload: FlightCostLookupInput) -> str:
        result = await lookup_flight_cost(payload, transport=self.transport)
        return result.model_dump_json()


class FlightBookingTool(BaseTool):
    name = "FlightBooking"
    description = (
        "This is a tool that books the flight using the flight id. Itinerary details should be included as a "
        "metadata for generating description of the transaction, and it must be as detailed as possible."
    )
    input_model = FlightBookingInput

    def __init__(self, llm: Callable[..., Awaitable[str]] = complete) -> None:
        self.llm = llm

    async def _run(self, payload: FlightBookingInput) -> str:
        result = await book_flight(payload.flight_id, payload.itinerary_details, llm=self.llm)
        return result.model_dump_json()


class ReminderTool(BaseTool):
    name = "ReminderTool"
    description = """
Manages and executes reminder operations on reminder.db with dynamic SQL generation.
Your input must be a SINGLE complete natural language instruction describing the reminder task to perform."""
    input_model = ReminderInput

    def __init__(self, service: ReminderService | None = None) -> None:
        self.service = service or ReminderService()

    async def _run(self, payload: ReminderInput) -> str:
        return await self.service.handle(payload.naturalLanguageInput)
