# tests/property/test_dispatch_properties.py
"""Property-based tests for Dispatcher accounting.

DISPATCH INVARIANTS:
1. Every call with a valid level is counted, whatever happens next
2. Invalid levels are never counted and always return False
3. log() returns False exactly when a sink failed or the call was refused
4. Every sink sees every delivered record, whatever the other sinks did
"""

from collections import Counter
from dataclasses import dataclass, field

from hypothesis import given
from hypothesis import strategies as st

from sinkhub.contracts.config import SinkConfig
from sinkhub.contracts.enums import Level, SinkClass, SinkOutcome
from sinkhub.contracts.events import ComponentIdentity, EventRecord
from sinkhub.dispatch.build import BuildEnvironment
from sinkhub.dispatch.catalog import SinkKind, SinkKindCatalog
from sinkhub.dispatch.diagnosis import HandlerDiagnosis
from sinkhub.dispatch.dispatcher import Dispatcher
from tests.fixtures.dispatch import make_context


class FlakySink:
    """Sink whose outcomes follow a script, cycling."""

    def __init__(self, sink_id: str, script: list[str]) -> None:
        self._id = sink_id
        self._script = script or ["accepted"]
        self.seen = 0

    @property
    def id(self) -> str:
        return self._id

    @property
    def sink_class(self) -> SinkClass:
        return SinkClass.LOGGING

    def handle(self, record: EventRecord) -> SinkOutcome:
        step = self._script[self.seen % len(self._script)]
        self.seen += 1
        if step == "raise":
            raise RuntimeError("flaky")
        return SinkOutcome(step)


@dataclass
class Provider:
    configs: list[SinkConfig]
    flags: dict[str, bool] = field(default_factory=dict)

    def get_sink_configs(self) -> list[SinkConfig]:
        return self.configs

    def get_global_flag(self, name: str) -> bool:
        return self.flags.get(name, False)


steps = st.sampled_from(["accepted", "skipped", "failed", "raise"])
levels = st.one_of(st.sampled_from(list(Level)), st.sampled_from(["verbose", 42, "", "trace"]))


@given(
    scripts=st.lists(st.lists(steps, max_size=5), max_size=4),
    calls=st.lists(levels, max_size=30),
    respect_debug=st.booleans(),
)
def test_counting_and_results(scripts: list[list[str]], calls: list[Level | str | int], respect_debug: bool) -> None:
    context = make_context()
    catalog = SinkKindCatalog(
        [SinkKind("flaky", SinkClass.LOGGING, Level.DEBUG, lambda config, env: FlakySink(config.id, config.options["script"]))]
    )
    configs = [SinkConfig(id=f"s{i}", kind="flaky", options={"script": script}) for i, script in enumerate(scripts)]
    dispatcher = Dispatcher(
        ComponentIdentity("plugin", "prop"),
        context=context,
        provider=Provider(configs, {"respect_debug_flag": respect_debug}),
        catalog=catalog,
        diagnosis=HandlerDiagnosis(),
        environment=BuildEnvironment(context=context),
    )
    sinks = [s for s in dispatcher.sinks if isinstance(s, FlakySink)]

    expected_counts: Counter[Level] = Counter()
    delivered = 0
    for level in calls:
        before = [sink.seen for sink in sinks]
        result = dispatcher.log(level, "event")
        if not isinstance(level, Level):
            assert result is False
            continue
        expected_counts[level] += 1
        if level is Level.DEBUG and respect_debug:
            assert result is False
            assert [sink.seen for sink in sinks] == before
            continue
        delivered += 1
        outcomes = [sink._script[b % len(sink._script)] for sink, b in zip(sinks, before, strict=True)]
        assert result is not any(step in ("failed", "raise") for step in outcomes)

    for level in Level:
        assert context.count(level) == expected_counts[level]
    assert all(sink.seen == delivered for sink in sinks)
