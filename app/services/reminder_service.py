"""
Reminder pipeline: natural language -> classified task -> validated target -> SQL -> confirmation.

Stages:
  1. classify the instruction (add / delete / snooze / check) and rephrase it;
  2. validate the referenced reminder id against the current table contents;
  3. generate a parameterized statement from fixed example templates;
  4. execute it against reminder.db and ask the LLM for a short confirmation.
Every model answer that must be JSON goes through extract_json_object.
"""

import asyncio
import json
import logging
import re
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Awaitable, Callable

from pydantic import BaseModel, ConfigDict, Field

from app.agent.llm import complete
from app.agent.parsing import extract_json_object
from app.core import reminder_db
from app.core.config import MAX_REMINDERS, REMINDER_LLM_MODEL, SQL_LLM_MODEL
from app.core.errors import ModelOutputParseError, ReminderCapacityError

logger = logging.getLogger(__name__)

NO_INPUT_MESSAGE = "⚠️ No input was found, nothing was done."
CAPACITY_MESSAGE = "⚠️ You have too many reminders... As per the limit you set, try to complete other tasks first!"

ALLOWED_VERBS = frozenset({"SELECT", "INSERT", "UPDATE", "DELETE"})

EXAMPLE_QUERIES = """
Example SQL queries:
1. Add Reminder:
   INSERT INTO reminders (name, created_date, original_due_date, active_due_date, priority, description)
   VALUES (?, ?, ?, ?, ?, ?);

2. Delete Reminder:
   DELETE FROM reminders WHERE id = ?;

3. Snooze Reminder:
   UPDATE reminders SET snoozed_count = snoozed_count + 1, active_due_date = datetime(active_due_date, '+30 minutes') WHERE id = ?;

4. Check Reminders:
   SELECT * FROM reminders;
"""


class ReminderAction(str, Enum):
    ADD = "add"
    DELETE = "delete"
    SNOOZE = "snooze"
    CHECK = "check"


# Table names following FROM/INTO/UPDATE/JOIN; string literals are blanked first.
_TABLE_REF = re.compile(r"\b(?:FROM|INTO|UPDATE|JOIN)\s+[\"`\[]?(\w+)", re.IGNORECASE)
_STRING_LITERAL = re.compile(r"'(?:[^']|'')*'")

_CATEGORY_PATTERNS = [
    (ReminderAction.ADD, re.compile(r"add\s+a\s+reminder", re.IGNORECASE)),
    (ReminderAction.DELETE, re.compile(r"delete\s+a\s+reminder", re.IGNORECASE)),
    (ReminderAction.SNOOZE, re.compile(r"snooze\s+a\s+reminder", re.IGNORECASE)),
    (ReminderAction.CHECK, re.compile(r"check\s+reminders", re.IGNORECASE)),
]


class ClassifiedTask(BaseModel):
    action: ReminderAction
    description: str


class ValidationVerdict(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    valid_id: int | None = Field(None, alias="validId")
    notes: str | None = None


class GeneratedStatement(BaseModel):
    query: str = Field(..., min_length=1)
    params: list[str | int | float | None] = Field(default_factory=list)


def parse_classification(text: str) -> ClassifiedTask:
    """Map the classifier's answer to an action; the earliest category label in the text wins."""
    text = (text or "").strip()
    found = []
    for action, pattern in _CATEGORY_PATTERNS:
        m = pattern.search(text)
        if m:
            found.append((m.start(), action))
    if not found:
        raise ModelOutputParseError("Reminder task could not be classified", raw_text=text)
    _, action = min(found, key=lambda item: item[0])
    return ClassifiedTask(action=action, description=text)


def check_statement(statement: GeneratedStatement) -> str:
    """Allow one SELECT/INSERT/UPDATE/DELETE on the reminders table. Returns the verb."""
    query = statement.query.strip().rstrip(";").strip()
    verb = reminder_db.statement_verb(query)
    if verb not in ALLOWED_VERBS:
        raise ModelOutputParseError(f"Generated statement type {verb or '(empty)'} is not allowed", raw_text=statement.query)
    if ";" in query:
        raise ModelOutputParseError("Generated output contains more than one statement", raw_text=statement.query)
    tables = {t.lower() for t in _TABLE_REF.findall(_STRING_LITERAL.sub("''", query))}
    if tables != {"reminders"}:
        raise ModelOutputParseError("Generated statement does not target the reminders table", raw_text=statement.query)
    return verb


class ReminderService:
    """Runs the reminder pipeline against one SQLite file."""

    def __init__(
        self,
        db_path: str | Path | None = None,
        llm: Callable[..., Awaitable[str]] = complete,
        max_reminders: int = MAX_REMINDERS,
    ) -> None:
        self.db_path = db_path
        self.llm = llm
        self.max_reminders = max_reminders

    async def handle(self, instruction: str) -> str:
        task = (instruction or "").strip()
        if not task:
            return NO_INPUT_MESSAGE
        logger.info("[reminder_service:handle] IN  task=%r", task)

        classified = await self.classify(task)
        logger.info("[reminder_service:handle] action=%s description=%r", classified.action.value, classified.description)
        if classified.action is ReminderAction.ADD:
            total = await asyncio.to_thread(reminder_db.count_reminders, self.db_path)
            if total >= self.max_reminders:
                logger.info("[reminder_service:handle] capacity reached total=%d", total)
                return CAPACITY_MESSAGE

        verdict = await self.validate_target(classified.description)
        task_description = classified.description
        if verdict.valid_id is not None:
            task_description = f"{task_description} (Validated Target ID: {verdict.valid_id})"

        statement = await self.generate_statement(task_description)
        check_statement(statement)
        try:
            rows = await asyncio.to_thread(
                reminder_db.execute_statement,
                statement.query,
                statement.params,
                self.db_path,
                self.max_reminders,
            )
        except ReminderCapacityError:
            return CAPACITY_MESSAGE
        sql_result = rows_as_json(rows)
        logger.info("[reminder_service:handle] sql_result_len=%d", len(sql_result))

        return await self.summarize(task, statement.query, sql_result)

    async def classify(self, task: str) -> ClassifiedTask:
        prompt = "\n".join(
            [
                "You are an orchestrator that converts natural language reminder requests into structured task descriptions.",
                "Your goal is to classify the user's intent into one of the following categories, prefixed exactly as shown:",
                "",
                "1. Add a Reminder:",
                "2. Delete a Reminder:",
                "3. Snooze a Reminder:",
                "4. Check Reminders:",
                "",
                "Respond with the most appropriate category and rephrase the task clearly.",
                "Do NOT add any extra explanations or text.",
                "",
                "User Task: ",
                task,
                "Structured Rephrased Task: ",
            ]
        )
        text = await self.llm(prompt, model=REMINDER_LLM_MODEL)
        return parse_classification(text)

    async def validate_target(self, structured_task: str) -> ValidationVerdict:
        rows = await asyncio.to_thread(reminder_db.list_reminders, self.db_path)
        divider = "------------------------------------------------------"
        db_context = f"\n{divider}\n{rows_as_json(rows)}\n{divider}\n"
        prompt = "\n".join(
            [
                "You are a validator ensuring that the structured task refers to valid reminders in the database.",
                "If the task references an ID that doesn't exist, find the closest valid ID or entry.",
                "Provide ONLY the validated ID if applicable, or null if none.",
                "",
                "# Current Database:",
                db_context,
                "",
                "# Structured Task:",
                structured_task,
                "",
                "Respond ONLY with the JSON format:",
                '{"validId": number | null, "notes": "optional notes if correction was applied"}',
            ]
        )
        text = await self.llm(prompt, model=REMINDER_LLM_MODEL)
        verdict = extract_json_object(text, ValidationVerdict)
        logger.info("[reminder_service:validate] valid_id=%s notes=%r", verdict.valid_id, verdict.notes)
        return verdict

    async def generate_statement(self, task_description: str) -> GeneratedStatement:
        now = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        prompt = f"""
You are an expert SQL generator for a reminders database. Based on the task description and the following example queries, generate the appropriate SQL query and parameters.

{EXAMPLE_QUERIES}

Current date and time: {now}

Task: {task_description}

Respond ONLY with JSON in the following format:
{{
  "query": "SQL QUERY HERE",
  "params": [PARAMETERS_ARRAY_HERE]
}}
"""
        text = await self.llm(prompt.strip(), model=SQL_LLM_MODEL)
        statement = extract_json_object(text, GeneratedStatement)
        logger.info("[reminder_service:generate] query=%r params=%r", statement.query, statement.params)
        return statement

    async def summarize(self, task: str, query: str, sql_result: str) -> str:
        prompt = "\n".join(
            [
                "You are an assistant providing a clear success confirmation for reminder tasks.",
                "",
                "# Original Task",
                task,
                "",
                "# Generated SQL Query",
                query,
                "",
                "# SQL Result",
                sql_result,
                "",
                "Based on this information, reply to the user confirming the outcome of their request in a friendly "
                "and helpful way. Avoid technical details about SQL and keep the response clear and simple.",
                "Only mention reminders that appear in the SQL Result; if it is an empty list, say there are none.",
            ]
        )
        return (await self.llm(prompt, model=REMINDER_LLM_MODEL)).strip()


def rows_as_json(rows: list[dict[str, Any]]) -> str:
    return json.dumps(rows, default=str)
