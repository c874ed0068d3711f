from collections.abc import Callable
from contextlib import contextmanager
from threading import Lock
import time
from typing import Any, TypeVar
from urllib.parse import urlparse

from .logging_config import get_logger
from .schemas import TraceStep
from .settings import settings

logger = get_logger(__name__)

T = TypeVar('T')


def _configure_tracer() -> Any:
    if not settings.dd_trace_enabled:
        return None
    try:
        from ddtrace import tracer
    except ImportError as exc:
        logger.warning('ddtrace_unavailable', error=str(exc))
        return None

    if settings.dd_trace_agent_url:
        parsed = urlparse(settings.dd_trace_agent_url)
        if parsed.scheme in {'http', 'https'} and parsed.hostname:
            tracer.configure(
                hostname=parsed.hostname,
                port=parsed.port or 8126,
                https=(parsed.scheme == 'https'),
            )
        elif parsed.scheme == 'unix' and parsed.path:
            tracer.configure(uds_path=parsed.path)
    return tracer


tracer = _configure_tracer()


class TraceCollector:
    """
    Per-request timings, one step per upstream call or scoring pass.

    Steps may be recorded from the snapshot worker threads, so appends are
    locked and the resulting order follows completion, not submission.
    """

    def __init__(self, wallet: str | None = None) -> None:
        self.wallet = wallet
        self.steps: list[TraceStep] = []
        self._lock = Lock()

    def _open_span(self, name: str, detail: str | None) -> Any:
        if tracer is None:
            return None
        span = tracer.trace(f'solanascope.{name}', service=settings.dd_service, resource=name)
        span.set_tag('env', settings.dd_env)
        span.set_tag('version', settings.dd_version)
        if self.wallet:
            span.set_tag('wallet', self.wallet)
        if detail:
            span.set_tag('detail', detail)
        return span

    @contextmanager
    def step(self, name: str, detail: str | None = None):
        started = time.perf_counter()
        span = self._open_span(name, detail)
        error: str | None = None
        try:
            yield
        except Exception as exc:
            error = str(exc)
            if span is not None:
                span.set_tag('error', 1)
                span.set_tag('error.msg', error)
            raise
        finally:
            duration_ms = int((time.perf_counter() - started) * 1000)
            ok = error is None
            with self._lock:
                self.steps.append(
                    TraceStep(step=name, duration_ms=duration_ms, ok=ok, detail=detail if ok else error)
                )
            logger.debug('trace_step', step=name, wallet=self.wallet, duration_ms=duration_ms, ok=ok)
            if span is not None:
                span.finish()

    def call(self, name: str, fn: Callable[..., T], *args: Any, detail: str | None = None) -> T:
        with self.step(name, detail=detail):
            return fn(*args)

    def as_list(self) -> list[TraceStep]:
        return list(self.steps)
