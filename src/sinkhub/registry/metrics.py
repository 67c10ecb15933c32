# src/sinkhub/registry/metrics.py
"""Metric aggregation across a whole process lifetime.

Two independent prometheus_client collector registries are kept:

- production: coarse, stable labels (environment)
- development: fine-grained labels (channel, environment, trace_id)

Metrics are keyed by (class, profile, type, fully-qualified name) and the
namespace of a metric is ``<prefix>_<class>_<component>`` of the identity
that registered it. Registering twice is a no-op; mutating a metric that
was never registered is reported through structlog and returns False.
"""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

import structlog
from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram
from prometheus_client.metrics import MetricWrapperBase

from sinkhub.contracts.enums import Channel, Level, MetricProfile
from sinkhub.contracts.events import SELF_IDENTITY, ComponentIdentity
from sinkhub.dispatch.errors import MetricNotRegisteredError

logger = structlog.get_logger(__name__)

PRODUCTION_LABELS: tuple[str, ...] = ("environment",)
DEVELOPMENT_LABELS: tuple[str, ...] = ("channel", "environment", "trace_id")

_TYPES: dict[str, type[MetricWrapperBase]] = {
    "counter": Counter,
    "gauge": Gauge,
    "histogram": Histogram,
}


@dataclass(frozen=True, slots=True)
class MetricKey:
    component_class: str
    profile: MetricProfile
    type: str
    fqname: str


class MetricsRegistry:
    """Production and development collector sets for one process.

    Args:
        channel: Resolved execution channel (development label).
        environment: Environment stage (label on both profiles).
        trace_id: Process trace id (development label).
        prefix: Namespace prefix.
    """

    def __init__(
        self,
        *,
        channel: Channel,
        environment: str,
        trace_id: str,
        prefix: str = "wordpress",
    ) -> None:
        self._prefix = prefix
        self._label_values: dict[MetricProfile, dict[str, str]] = {
            MetricProfile.PRODUCTION: {"environment": environment},
            MetricProfile.DEVELOPMENT: {
                "channel": str(channel).lower(),
                "environment": environment,
                "trace_id": trace_id,
            },
        }
        self.init()

    def init(self) -> None:
        """(Re)create both collector registries, dropping every metric."""
        self._registries: dict[MetricProfile, CollectorRegistry] = {
            MetricProfile.PRODUCTION: CollectorRegistry(auto_describe=True),
            MetricProfile.DEVELOPMENT: CollectorRegistry(auto_describe=True),
        }
        self._metrics: dict[MetricKey, MetricWrapperBase] = {}

    def reset(self) -> None:
        self.init()

    def registry(self, profile: MetricProfile) -> CollectorRegistry:
        return self._registries[_concrete(profile)]

    def fqname(self, name: str, identity: ComponentIdentity) -> str:
        return f"{identity.metric_namespace(self._prefix)}_{name}"

    def _register(
        self,
        metric_type: str,
        name: str,
        help_text: str,
        *,
        profile: MetricProfile,
        identity: ComponentIdentity,
        buckets: Sequence[float] | None = None,
    ) -> bool:
        profile = _concrete(profile)
        fqname = self.fqname(name, identity)
        key = MetricKey(identity.kind, profile, metric_type, fqname)
        if key in self._metrics:
            return True
        labels = PRODUCTION_LABELS if profile is MetricProfile.PRODUCTION else DEVELOPMENT_LABELS
        kwargs: dict[str, Any] = {"labelnames": labels, "registry": self._registries[profile]}
        if metric_type == "histogram" and buckets:
            kwargs["buckets"] = tuple(buckets)
        try:
            self._metrics[key] = _TYPES[metric_type](fqname, help_text or name, **kwargs)
        except ValueError as e:
            # Same fqname already registered under another type
            logger.error(
                "Metric registration rejected",
                metric=fqname,
                type=metric_type,
                profile=str(profile),
                error=str(e),
            )
            return False
        return True

    def register_counter(
        self,
        name: str,
        help_text: str = "",
        *,
        profile: MetricProfile = MetricProfile.PRODUCTION,
        identity: ComponentIdentity = SELF_IDENTITY,
    ) -> bool:
        return self._register("counter", name, help_text, profile=profile, identity=identity)

    def register_gauge(
        self,
        name: str,
        help_text: str = "",
        *,
        profile: MetricProfile = MetricProfile.PRODUCTION,
        identity: ComponentIdentity = SELF_IDENTITY,
    ) -> bool:
        return self._register("gauge", name, help_text, profile=profile, identity=identity)

    def register_histogram(
        self,
        name: str,
        help_text: str = "",
        *,
        buckets: Sequence[float] | None = None,
        profile: MetricProfile = MetricProfile.PRODUCTION,
        identity: ComponentIdentity = SELF_IDENTITY,
    ) -> bool:
        return self._register("histogram", name, help_text, profile=profile, identity=identity, buckets=buckets)

    def _lookup(self, metric_type: str, name: str, profile: MetricProfile, identity: ComponentIdentity) -> Any:
        profile = _concrete(profile)
        key = MetricKey(identity.kind, profile, metric_type, self.fqname(name, identity))
        try:
            metric = self._metrics[key]
        except KeyError:
            raise MetricNotRegisteredError(key.fqname, metric_type, str(profile)) from None
        return metric.labels(**self._label_values[profile])

    def _mutate(self, metric_type: str, method: str, name: str, value: float, profile: MetricProfile, identity: ComponentIdentity) -> bool:
        try:
            child = self._lookup(metric_type, name, profile, identity)
            getattr(child, method)(value)
        except MetricNotRegisteredError as e:
            logger.error("Metric not registered", metric=e.fqname, type=e.metric_type, profile=e.profile)
            return False
        except ValueError as e:
            # prometheus_client rejects negative counter increments
            logger.error("Metric update rejected", metric=name, type=metric_type, error=str(e))
            return False
        return True

    def inc_counter(
        self,
        name: str,
        value: float = 1,
        *,
        profile: MetricProfile = MetricProfile.PRODUCTION,
        identity: ComponentIdentity = SELF_IDENTITY,
    ) -> bool:
        return self._mutate("counter", "inc", name, value, profile, identity)

    def set_gauge(
        self,
        name: str,
        value: float,
        *,
        profile: MetricProfile = MetricProfile.PRODUCTION,
        identity: ComponentIdentity = SELF_IDENTITY,
    ) -> bool:
        return self._mutate("gauge", "set", name, value, profile, identity)

    def inc_gauge(
        self,
        name: str,
        value: float = 1,
        *,
        profile: MetricProfile = MetricProfile.PRODUCTION,
        identity: ComponentIdentity = SELF_IDENTITY,
    ) -> bool:
        return self._mutate("gauge", "inc", name, value, profile, identity)

    def observe_histogram(
        self,
        name: str,
        value: float,
        *,
        profile: MetricProfile = MetricProfile.PRODUCTION,
        identity: ComponentIdentity = SELF_IDENTITY,
    ) -> bool:
        return self._mutate("histogram", "observe", name, value, profile, identity)

    def family_names(self, profile: MetricProfile) -> list[str]:
        profile = _concrete(profile)
        return sorted(key.fqname for key in self._metrics if key.profile is profile)

    def snapshot(self, profile: MetricProfile) -> list[Any]:
        """Collected metric families of one profile, for rendering."""
        return list(self.registry(profile).collect())

    def record_self_metrics(self, identity: ComponentIdentity, level_counts: Mapping[Level, int]) -> None:
        """Record per-level event counts and family counts under identity.

        The identity is explicit, so no shared "current component" state is
        touched.
        """
        family_counts = {
            profile: len(self.family_names(profile)) for profile in (MetricProfile.PRODUCTION, MetricProfile.DEVELOPMENT)
        }
        for level, count in level_counts.items():
            name = f"events_{level.name.lower()}"
            help_text = f"Number of {level.name.lower()} events emitted during this process"
            for profile in (MetricProfile.PRODUCTION, MetricProfile.DEVELOPMENT):
                self.register_counter(name, help_text, profile=profile, identity=identity)
                if count:
                    self.inc_counter(name, count, profile=profile, identity=identity)
        for profile, count in family_counts.items():
            self.register_gauge("metric_families", "Number of registered metric families", profile=profile, identity=identity)
            self.set_gauge("metric_families", count, profile=profile, identity=identity)


def _concrete(profile: MetricProfile) -> MetricProfile:
    if profile is MetricProfile.AUTO:
        raise ValueError("MetricProfile.AUTO must be resolved before reaching the registry")
    return profile
