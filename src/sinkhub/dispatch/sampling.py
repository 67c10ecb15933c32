# src/sinkhub/dispatch/sampling.py
"""Per-sink, per-process sampling election.

The draw happens at most once per (sink, process): a trace or metrics
snapshot is a single process-wide artifact, and sampling individual spans
would produce an incoherent partial trace. Elections are independent across
processes; there is no cross-request correlation.
"""

import structlog

from sinkhub.core.context import ProcessContext

logger = structlog.get_logger(__name__)

ALWAYS = 1000
NEVER = 0


class SamplingGate:
    """Election for one sink instance, cached on the process context.

    Args:
        sink_id: Key of the cached election.
        context: Process context holding elections and the random source.
        per_mille: Default probability used when elect() gets none.
    """

    def __init__(self, sink_id: str, context: ProcessContext, per_mille: int = ALWAYS) -> None:
        _check_range(per_mille)
        self._sink_id = sink_id
        self._context = context
        self._per_mille = per_mille

    @property
    def per_mille(self) -> int:
        return self._per_mille

    def elect(self, per_mille: int | None = None) -> bool:
        """True if this process reports to the sink.

        The first evaluation wins; later calls return the cached election
        whatever per_mille they pass. 1000 is always elected and 0 never,
        without drawing.
        """
        cached = self._context.election(self._sink_id)
        if cached is not None:
            return cached
        rate = self._per_mille if per_mille is None else per_mille
        _check_range(rate)
        if rate >= ALWAYS:
            elected = True
        elif rate <= NEVER:
            elected = False
        else:
            elected = self._context.rng.randint(1, 1000) <= rate
        logger.debug("Sampling election", sink_id=self._sink_id, per_mille=rate, elected=elected)
        return self._context.record_election(self._sink_id, elected)


def _check_range(per_mille: int) -> None:
    if not NEVER <= per_mille <= ALWAYS:
        raise ValueError(f"per_mille must be within 0..1000, got {per_mille}")
