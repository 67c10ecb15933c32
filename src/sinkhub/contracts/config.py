# src/sinkhub/contracts/config.py
"""Runtime sink configuration.

SinkConfig is the immutable, already-normalized view of one configured sink.
It is built from validated SinkSettings via from_settings(), and is never
mutated during a process's lifetime.
"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from sinkhub.contracts.enums import HttpVerb, Level

if TYPE_CHECKING:
    from sinkhub.core.config import SinkSettings


@dataclass(frozen=True, slots=True)
class PrivacyFlags:
    """Independent redaction modes for network-address and user-identity fields."""

    obfuscation: bool = False
    pseudonymization: bool = False


@dataclass(frozen=True, slots=True)
class SinkConfig:
    """Configuration bundle for one sink.

    Attributes:
        id: Stable identifier, unique within a configuration.
        kind: Sink kind name, resolved against the sink kind catalog.
        name: Human-readable name, used in diagnostics only.
        enabled: Disabled sinks are never instantiated.
        min_level: Records below this level are skipped.
        sampling_per_mille: 0..1000 election probability.
        format_id: Encoder selector for kinds offering several encodings.
        endpoint: Destination URL, host:port or storage engine.
        verb: HTTP verb for HTTP-backed kinds.
        headers: Extra transport headers (credentials go here).
        privacy: Redaction flags.
        processors: Ordered processor inclusion list.
        options: Kind-specific options, already defaulted.
    """

    id: str
    kind: str
    name: str = ""
    enabled: bool = True
    min_level: Level = Level.DEBUG
    sampling_per_mille: int = 1000
    format_id: str = ""
    endpoint: str = ""
    verb: HttpVerb = HttpVerb.POST
    headers: dict[str, str] = field(default_factory=dict)
    privacy: PrivacyFlags = field(default_factory=PrivacyFlags)
    processors: tuple[str, ...] = ()
    options: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("sink id cannot be empty")
        if not 0 <= self.sampling_per_mille <= 1000:
            raise ValueError(f"sampling_per_mille must be within 0..1000, got {self.sampling_per_mille}")

    def option(self, key: str, default: Any = None) -> Any:
        return self.options.get(key, default)

    @classmethod
    def from_settings(cls, settings: "SinkSettings") -> "SinkConfig":
        """Factory from a normalized SinkSettings model.

        Field Mapping:
            settings.level -> min_level (coerced to Level)
            settings.sampling -> sampling_per_mille (direct)
            settings.format -> format_id (direct)
            settings.privacy -> privacy (PrivacyFlags)
            settings.processors -> processors (tuple)

        Args:
            settings: Sink settings that went through normalize_sink_config().

        Returns:
            SinkConfig with mapped values
        """
        return cls(
            id=settings.id,
            kind=settings.kind,
            name=settings.name,
            enabled=settings.enabled,
            min_level=Level.coerce(settings.level),
            sampling_per_mille=settings.sampling,
            format_id=settings.format,
            endpoint=settings.endpoint,
            verb=HttpVerb(settings.verb.upper()),
            headers=dict(settings.headers),
            privacy=PrivacyFlags(
                obfuscation=settings.privacy.obfuscation,
                pseudonymization=settings.privacy.pseudonymization,
            ),
            processors=tuple(settings.processors),
            options=dict(settings.options),
        )
