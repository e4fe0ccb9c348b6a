"""
Cron scheduling of crawl passes.

A crawl pass re-checks every registration whose last read is older than the
registration TTL. Passes are triggered by a cron expression, evaluated in
UTC once per minute.

Expressions have five fields (minute, hour, day of month, month, day of
week) or six, in which case the leading seconds field is ignored. Fields
accept ``*``, numbers, names (``jan``, ``mon``), ranges, lists and
``/step``. Day of week counts from 0 = Monday. When both day fields are
restricted, a day matching either of them matches, as in cron.
"""

import asyncio
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Optional

from .audit_logger import AuditLogger
from .crawler import Crawler
from .enums import LogLevel

TaskCallback = Callable[[], Awaitable[object]]


class CronParseError(Exception):
    """Raised when a cron expression cannot be parsed."""

    def __init__(self, message: str, expression: str) -> None:
        self.message = message
        self.expression = expression
        super().__init__(f"{message}: '{expression}'")


@dataclass(frozen=True)
class FieldSpec:
    """Bounds of one cron field; ``aliases`` name the values from ``low`` upwards."""

    name: str
    low: int
    high: int
    aliases: tuple[str, ...] = ()


FIELDS = (
    FieldSpec("minute", 0, 59),
    FieldSpec("hour", 0, 23),
    FieldSpec("day_of_month", 1, 31),
    FieldSpec("month", 1, 12, ("jan", "feb", "mar", "apr", "may", "jun",
                               "jul", "aug", "sep", "oct", "nov", "dec")),
    FieldSpec("day_of_week", 0, 6, ("mon", "tue", "wed", "thu", "fri", "sat", "sun")),
)

PART_PATTERN = re.compile(r"^(?:(?P<any>\*)|(?P<start>\w+)(?:-(?P<end>\w+))?)(?:/(?P<step>\d+))?$")


@dataclass(frozen=True)
class CronField:
    """The values one field of a schedule accepts."""

    values: frozenset
    min_value: int
    max_value: int

    def matches(self, value: int) -> bool:
        return value in self.values

    @property
    def is_wildcard(self) -> bool:
        return len(self.values) == self.max_value - self.min_value + 1


def _field_value(token: str, field_def: FieldSpec) -> int:
    if token in field_def.aliases:
        return field_def.low + field_def.aliases.index(token)
    if not token.isdigit():
        raise ValueError(f"Invalid value: {token}")
    value = int(token)
    if not field_def.low <= value <= field_def.high:
        raise ValueError(f"Value {value} out of bounds [{field_def.low}-{field_def.high}]")
    return value


def parse_field(text: str, field_def: FieldSpec) -> CronField:
    """
    Expand one cron field into the set of values it accepts.

    Raises:
        ValueError: If a part of the field is malformed or out of bounds
    """
    values: set[int] = set()
    for part in text.lower().split(","):
        match = PART_PATTERN.match(part.strip())
        if match is None:
            raise ValueError(f"Invalid part: {part!r}")

        step = int(match["step"]) if match["step"] else 1
        if step < 1:
            raise ValueError(f"Step must be >= 1, got {step}")

        if match["any"]:
            start, end = field_def.low, field_def.high
        else:
            start = _field_value(match["start"], field_def)
            if match["end"]:
                end = _field_value(match["end"], field_def)
            else:
                # "5/15" runs from 5 to the end of the range
                end = field_def.high if match["step"] else start
            if start > end:
                raise ValueError(f"Range start {start} > end {end}")

        values.update(range(start, end + 1, step))

    return CronField(values=frozenset(values), min_value=field_def.low, max_value=field_def.high)


@dataclass(frozen=True)
class CronSchedule:
    """A parsed cron expression."""

    minute: CronField
    hour: CronField
    day_of_month: CronField
    month: CronField
    day_of_week: CronField
    original_expression: str

    def day_matches(self, moment: datetime) -> bool:
        by_date = self.day_of_month.matches(moment.day)
        by_weekday = self.day_of_week.matches(moment.weekday())
        if self.day_of_month.is_wildcard or self.day_of_week.is_wildcard:
            return by_date and by_weekday
        return by_date or by_weekday

    def matches(self, moment: datetime) -> bool:
        """Whether the minute containing ``moment`` is scheduled."""
        return (
            self.minute.matches(moment.minute)
            and self.hour.matches(moment.hour)
            and self.month.matches(moment.month)
            and self.day_matches(moment)
        )


class CronParser:
    """Parser for 5- and 6-field cron expressions."""

    def parse(self, expression: str) -> CronSchedule:
        """
        Parse a cron expression.

        Raises:
            CronParseError: If the expression is invalid
        """
        expression = expression.strip()
        fields = expression.split()
        if not fields:
            raise CronParseError("Empty cron expression", expression)
        if len(fields) == 6:
            fields = fields[1:]
        if len(fields) != 5:
            raise CronParseError(f"Expected 5 or 6 fields, got {len(fields)}", expression)

        parsed = {}
        for text, field_def in zip(fields, FIELDS):
            try:
                parsed[field_def.name] = parse_field(text, field_def)
            except ValueError as e:
                raise CronParseError(f"Invalid {field_def.name} field: {e}", expression) from e

        return CronSchedule(original_expression=expression, **parsed)


@dataclass
class ScheduledTask:
    """A named callback and the schedule it runs on."""

    name: str
    schedule: CronSchedule
    callback: TaskCallback
    last_run: Optional[datetime] = None
    enabled: bool = True

    def is_due(self, minute: datetime) -> bool:
        if not self.enabled or not self.schedule.matches(minute):
            return False
        return self.last_run is None or self.last_run < minute


class Scheduler:
    """Runs named tasks on cron schedules."""

    COMPONENT = "Scheduler"

    def __init__(self, logger: Optional[AuditLogger] = None) -> None:
        self._parser = CronParser()
        self._tasks: dict[str, ScheduledTask] = {}
        self._logger = logger
        self._stop_event: Optional[asyncio.Event] = None
        self._running = False

    def schedule(self, name: str, cron_expression: str, callback: TaskCallback) -> CronSchedule:
        """
        Run ``callback`` whenever ``cron_expression`` matches.

        Raises:
            CronParseError: If the cron expression is invalid
            ValueError: If a task named ``name`` is already scheduled
        """
        if name in self._tasks:
            raise ValueError(f"Task '{name}' already exists")
        schedule = self._parser.parse(cron_expression)
        self._tasks[name] = ScheduledTask(name=name, schedule=schedule, callback=callback)
        return schedule

    def schedule_crawl(
        self,
        crawler: Crawler,
        cron_expression: str,
        ttl_seconds: int,
        name: str = "crawl",
    ) -> CronSchedule:
        """Schedule crawl passes over registrations read more than ``ttl_seconds`` ago."""

        async def crawl_stale() -> None:
            await crawler.crawl(datetime.now(timezone.utc) - timedelta(seconds=ttl_seconds))

        return self.schedule(name, cron_expression, crawl_stale)

    def unschedule(self, name: str) -> bool:
        return self._tasks.pop(name, None) is not None

    def get_task(self, name: str) -> Optional[ScheduledTask]:
        return self._tasks.get(name)

    def list_tasks(self) -> list[ScheduledTask]:
        return list(self._tasks.values())

    def parse_cron(self, expression: str) -> CronSchedule:
        return self._parser.parse(expression)

    async def run_due(self, now: datetime) -> list[str]:
        """
        Run the tasks scheduled for the minute containing ``now``.

        Each task runs at most once per minute. A failing task is logged and
        does not keep the others from running.

        Returns:
            Names of the tasks that were started
        """
        minute = now.replace(second=0, microsecond=0)
        due = [task for task in self._tasks.values() if task.is_due(minute)]

        for task in due:
            task.last_run = minute
            try:
                await task.callback()
            except Exception as e:
                if self._logger:
                    self._logger.log_error(self.COMPONENT, f"Scheduled task '{task.name}' failed", error=e)

        return [task.name for task in due]

    async def run(self, stop_event: Optional[asyncio.Event] = None) -> None:
        """
        Check for due tasks at the start of every minute until stopped.

        Due tasks are checked once more after ``stop_event`` is set
        before the loop exits.
        """
        self._stop_event = stop_event or asyncio.Event()
        self._running = True
        if self._logger:
            self._logger.log(
                LogLevel.INFO,
                self.COMPONENT,
                "Scheduler started",
                {"tasks": {t.name: t.schedule.original_expression for t in self._tasks.values()}},
            )

        try:
            while True:
                now = datetime.now(timezone.utc)
                await self.run_due(now)
                if self._stop_event.is_set():
                    break
                next_minute = now.replace(second=0, microsecond=0) + timedelta(minutes=1)
                wait = (next_minute - datetime.now(timezone.utc)).total_seconds()
                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=max(wait, 0.0))
                except asyncio.TimeoutError:
                    pass
        finally:
            self._running = False

    def stop(self) -> None:
        """Ask a running loop to exit."""
        if self._stop_event is not None:
            self._stop_event.set()

    def is_running(self) -> bool:
        return self._running
