# src/sinkhub/dispatch/dispatcher.py
"""Dispatcher fans one log call out to every configured sink.

The Dispatcher is the central hub of sinkhub:
1. Loads the sink set from a ConfigurationProvider at construction
2. Skips sinks whose kind fails the HandlerDiagnosis capability check
3. Normalizes the message and context, then adds the fixed fields
4. Hands the record to each sink with failure isolation
5. Counts every call per level in the process context (self-metrics)

Design principles:
- log() never raises; a failed write becomes a False return
- One sink failing never prevents the others from receiving the record
- Python warnings raised while writing count as a failure
- Internal diagnostics go to structlog, except the skipped/unloadable sink
  reports, which pass through the re-entrance guard

Thread Safety:
    Not thread-safe. The re-entrance guard lives on the shared
    ProcessContext and assumes one logical thread of control.
"""

import warnings
from collections.abc import Callable, Mapping
from typing import Any

import structlog

from sinkhub.contracts.config import SinkConfig
from sinkhub.contracts.enums import Level, SinkOutcome
from sinkhub.contracts.events import ComponentIdentity, EventRecord
from sinkhub.core.config import ConfigurationProvider
from sinkhub.core.context import ProcessContext
from sinkhub.core.text import normalize_string, normalize_value
from sinkhub.dispatch.build import BuildEnvironment
from sinkhub.dispatch.catalog import SinkKindCatalog
from sinkhub.dispatch.diagnosis import HandlerDiagnosis
from sinkhub.dispatch.protocols import Sink

logger = structlog.get_logger(__name__)

UNLOADABLE_SINK_CODE = 666

# Alert callback: (sink_id, record, reason)
FailureCallback = Callable[[str, EventRecord, str], None]


class Dispatcher:
    """Multi-sink log dispatcher for one component.

    Args:
        identity: Component emitting the records (class/name/version fields).
        context: Process-wide state shared by all dispatchers.
        provider: Source of sink configs and global flags.
        catalog: Sink kinds by name.
        diagnosis: Capability gate consulted before each sink is built.
        environment: Collaborators handed to sink build functions.
        only: Build only the sink with this id (test mode).
        allowed: When False, log() always returns False.
        instance_name: Value of the fixed ``instance`` context field.
        on_failure: Called for failed writes above DEBUG.

    Example:
        >>> dispatcher = create_dispatcher(settings, ComponentIdentity("plugin", "shop", "2.1.0"))
        >>> dispatcher.error("Payment gateway unreachable", code=503)
        True
    """

    def __init__(
        self,
        identity: ComponentIdentity,
        *,
        context: ProcessContext,
        provider: ConfigurationProvider,
        catalog: SinkKindCatalog,
        diagnosis: HandlerDiagnosis,
        environment: BuildEnvironment,
        only: str | None = None,
        allowed: bool = True,
        instance_name: str = "",
        on_failure: FailureCallback | None = None,
    ) -> None:
        self._identity = identity
        self._context = context
        self._provider = provider
        self._allowed = allowed
        self._instance_name = instance_name
        self._on_failure = on_failure
        self._sinks: list[Sink] = []
        self._skipped: dict[str, str] = {}
        self._unloadable: dict[str, str] = {}

        # Trace id is process-wide; define it before any sink captures it
        _ = context.trace_id

        for config in provider.get_sink_configs():
            if only is not None and config.id != only:
                continue
            if not config.enabled:
                logger.debug("Sink disabled, skipped", sink_id=config.id, kind=config.kind)
                continue
            if not diagnosis.check(config.kind):
                reason = diagnosis.error_string(config.kind)
                self._skipped[config.id] = reason
                logger.debug("Sink skipped", sink_id=config.id, kind=config.kind, reason=reason)
                continue
            self._build(config, catalog, environment)

        logger.debug(
            "A new dispatcher instance is initialized and operational",
            component=identity.name,
            sinks=[s.id for s in self._sinks],
            skipped=sorted(self._skipped),
            unloadable=sorted(self._unloadable),
        )
        for sink_id, reason in self._skipped.items():
            # A missing capability is process-wide: report it once
            if context.once(f"skipped:{sink_id}"):
                self.log(
                    Level.ERROR,
                    f"Unable to run sink {sink_id}: {reason}",
                    code=UNLOADABLE_SINK_CODE,
                    phase="bootstrap",
                )
        for sink_id, reason in self._unloadable.items():
            self.log(
                Level.ERROR,
                f"Unable to load sink {sink_id}: {reason}",
                code=UNLOADABLE_SINK_CODE,
                phase="bootstrap",
            )

    def _build(self, config: SinkConfig, catalog: SinkKindCatalog, environment: BuildEnvironment) -> None:
        kind = catalog.get(config.kind)
        if kind is None:
            self._unloadable[config.id] = f"unknown sink kind {config.kind}"
            logger.error("Sink kind not in catalog", sink_id=config.id, kind=config.kind)
            return
        try:
            sink = kind.build(config, environment)
        except Exception as e:
            self._unloadable[config.id] = str(e)
            logger.error("Unable to load sink", sink_id=config.id, kind=config.kind, error=str(e))
            return
        self._sinks.append(sink)

    # =========================================================================
    # Introspection
    # =========================================================================

    @property
    def identity(self) -> ComponentIdentity:
        return self._identity

    @property
    def context(self) -> ProcessContext:
        return self._context

    @property
    def sinks(self) -> list[Sink]:
        """Active sinks, in configuration order."""
        return list(self._sinks)

    @property
    def skipped(self) -> dict[str, str]:
        """Sink id -> capability failure reason."""
        return dict(self._skipped)

    @property
    def unloadable(self) -> dict[str, str]:
        """Sink id -> build error."""
        return dict(self._unloadable)

    def sink(self, sink_id: str) -> Sink | None:
        for sink in self._sinks:
            if sink.id == sink_id:
                return sink
        return None

    def channel_tag(self) -> str:
        return self._context.channel.value

    def count(self, level: Level | str | int) -> int:
        """Process-wide number of log calls at level."""
        return self._context.count(Level.coerce(level))

    # =========================================================================
    # Logging
    # =========================================================================

    def _fixed_fields(self, code: int, phase: str) -> dict[str, Any]:
        return {
            "class": self._identity.kind,
            "component": self._identity.name,
            "version": self._identity.version,
            "phase": phase,
            "code": code,
            "environment": self._context.environment,
            "trace_id": self._context.trace_id,
            "instance": self._instance_name,
        }

    def _debug_suppressed(self) -> bool:
        return self._provider.get_global_flag("respect_debug_flag") and not self._provider.get_global_flag(
            "debug_flag"
        )

    def log(
        self,
        level: Level | str | int,
        message: str,
        code: int = 0,
        phase: str = "",
        context: Mapping[str, Any] | None = None,
    ) -> bool:
        """Deliver one record to every sink.

        Returns:
            False if the call was refused (invalid level, dispatcher not
            allowed, debug suppressed, re-entrant call) or if any sink failed
            to write. True otherwise, including when no sink was interested.
        """
        try:
            lvl = Level.coerce(level)
        except ValueError:
            logger.warning("Invalid log level", level=level)
            return False

        self._context.increment(lvl)
        channel = self._context.channel
        if not self._allowed:
            return False
        if lvl is Level.DEBUG and self._debug_suppressed():
            return False
        if self._context.dispatching:
            return False

        self._context.dispatching = True
        try:
            record = EventRecord(
                level=lvl,
                channel=channel,
                message=normalize_string(str(message)),
                context={**normalize_value(dict(context or {})), **self._fixed_fields(code, phase)},
                code=code,
            )
            failed = [sink_id for sink_id, reason in self._fan_out(record) if reason]
        finally:
            self._context.dispatching = False
        return not failed

    def _fan_out(self, record: EventRecord) -> list[tuple[str, str]]:
        results: list[tuple[str, str]] = []
        for sink in self._sinks:
            reason = self._write(sink, record)
            results.append((sink.id, reason))
            if reason and record.level > Level.DEBUG:
                self._alert(sink.id, record, reason)
        return results

    def _write(self, sink: Sink, record: EventRecord) -> str:
        """Write to one sink; return the failure reason or ""."""
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            try:
                outcome = sink.handle(record)
            except Exception as e:
                logger.warning("Sink raised while writing", sink_id=sink.id, error=str(e), error_type=type(e).__name__)
                return f"{type(e).__name__}: {e}"
        if caught:
            logger.warning("Sink raised warnings while writing", sink_id=sink.id, warnings=[str(w.message) for w in caught])
            return f"warning: {caught[0].message}"
        if outcome is SinkOutcome.FAILED:
            return "write failed"
        return ""

    def _alert(self, sink_id: str, record: EventRecord, reason: str) -> None:
        if self._on_failure is None:
            return
        try:
            self._on_failure(sink_id, record, reason)
        except Exception as e:
            logger.error("Failure callback raised", sink_id=sink_id, error=str(e))

    def debug(self, message: str, code: int = 0) -> bool:
        return self.log(Level.DEBUG, message, code)

    def info(self, message: str, code: int = 0) -> bool:
        return self.log(Level.INFO, message, code)

    def notice(self, message: str, code: int = 0) -> bool:
        return self.log(Level.NOTICE, message, code)

    def warning(self, message: str, code: int = 0) -> bool:
        return self.log(Level.WARNING, message, code)

    def error(self, message: str, code: int = 0) -> bool:
        return self.log(Level.ERROR, message, code)

    def critical(self, message: str, code: int = 0) -> bool:
        return self.log(Level.CRITICAL, message, code)

    def alert(self, message: str, code: int = 0) -> bool:
        return self.log(Level.ALERT, message, code)

    def emergency(self, message: str, code: int = 0) -> bool:
        return self.log(Level.EMERGENCY, message, code)

    def finalize(self) -> None:
        """Run process-end callbacks (flush buffers, render traces and metrics)."""
        self._context.lifecycle.finalize()
