"""Startup metrics: named, tagged steps recorded while the container bootstraps.

The container opens a step around each unit of bootstrap work (the whole refresh,
and each processor invocation) and tags it with a description of what ran. Three
recorders are provided:

    - :class:`DefaultStartup` discards everything and never evaluates tag values.
    - :class:`BufferingStartup` keeps every step in memory.
    - :class:`TracingStartup` turns each step into an OpenTelemetry span.
"""

from dataclasses import dataclass, field
from itertools import count
from typing import Callable, Optional, Protocol, Union

from opentelemetry import trace

__all__ = [
    "StartupStep",
    "ApplicationStartup",
    "DefaultStartup",
    "DEFAULT_STARTUP",
    "RecordedStep",
    "BufferingStartup",
    "TracingStartup",
]

TagValue = Union[str, Callable[[], str]]


def _evaluate(value: TagValue) -> str:
    return value() if callable(value) else value


class StartupStep(Protocol):
    def tag(self, key: str, value: TagValue) -> "StartupStep":
        ...

    def end(self) -> None:
        ...


class ApplicationStartup(Protocol):
    def start(self, name: str) -> StartupStep:
        ...


class _DefaultStep:
    def tag(self, key: str, value: TagValue) -> "_DefaultStep":
        return self

    def end(self) -> None:
        pass


class DefaultStartup:
    """Startup recorder that records nothing."""

    _step = _DefaultStep()

    def start(self, name: str) -> StartupStep:
        return self._step


DEFAULT_STARTUP = DefaultStartup()


@dataclass
class RecordedStep:
    """A step kept by :class:`BufferingStartup`.

    Attributes:
        id: Sequential id, unique within the recorder.
        name: The step name, e.g. ``"sprig.context.refresh"``.
        parent_id: Id of the step that was open when this one started.
        tags: Tag values, evaluated when the tag was added.
        ended: Whether :meth:`end` has been called.
    """

    id: int
    name: str
    parent_id: Optional[int]
    tags: dict[str, str] = field(default_factory=dict)
    ended: bool = False


class _BufferedStep:
    def __init__(self, startup: "BufferingStartup", recorded: RecordedStep):
        self._startup = startup
        self.recorded = recorded

    def tag(self, key: str, value: TagValue) -> "_BufferedStep":
        self.recorded.tags[key] = _evaluate(value)
        return self

    def end(self) -> None:
        self.recorded.ended = True
        self._startup._finish(self.recorded)


class BufferingStartup:
    """Startup recorder that keeps every step in memory, in start order."""

    def __init__(self):
        self.steps: list[RecordedStep] = []
        self._ids = count(1)
        self._open: list[RecordedStep] = []

    def start(self, name: str) -> StartupStep:
        parent_id = self._open[-1].id if self._open else None
        recorded = RecordedStep(next(self._ids), name, parent_id)
        self.steps.append(recorded)
        self._open.append(recorded)
        return _BufferedStep(self, recorded)

    def steps_named(self, name: str) -> list[RecordedStep]:
        return [step for step in self.steps if step.name == name]

    def _finish(self, recorded: RecordedStep) -> None:
        if recorded in self._open:
            self._open.remove(recorded)


class _SpanStep:
    def __init__(self, startup: "TracingStartup", span: trace.Span):
        self._startup = startup
        self._span = span

    def tag(self, key: str, value: TagValue) -> "_SpanStep":
        if self._span.is_recording():
            self._span.set_attribute(key, _evaluate(value))
        return self

    def end(self) -> None:
        self._span.end()
        self._startup._finish(self._span)


class TracingStartup:
    """Startup recorder that reports each step as an OpenTelemetry span.

    Steps started while another step is open become child spans of it.

    Args:
        tracer: The tracer to create spans with. Defaults to the tracer named
            ``"sprig"`` from the globally configured tracer provider.
    """

    def __init__(self, tracer: Optional[trace.Tracer] = None):
        self._tracer = tracer or trace.get_tracer("sprig")
        self._open: list[trace.Span] = []

    def start(self, name: str) -> StartupStep:
        context = trace.set_span_in_context(self._open[-1]) if self._open else None
        span = self._tracer.start_span(name, context=context)
        self._open.append(span)
        return _SpanStep(self, span)

    def _finish(self, span: trace.Span) -> None:
        if span in self._open:
            self._open.remove(span)
