# src/sinkhub/dispatch/factory.py
"""Factory functions for creating a Dispatcher from settings.

This module provides the glue between configuration (DispatchSettings)
and the runtime Dispatcher. It handles:
1. Discovering sink kinds via pluggy hooks
2. Building the shared ProcessContext when the caller has none
3. Creating the Dispatcher with a settings-backed configuration provider

Usage:
    from sinkhub.contracts.events import ComponentIdentity
    from sinkhub.core.config import load_settings
    from sinkhub.dispatch.factory import create_dispatcher

    settings = load_settings(Path("sinkhub.yaml"))
    dispatcher = create_dispatcher(settings, ComponentIdentity("plugin", "shop", "2.1.0"))
    dispatcher.info("Order placed")
    dispatcher.finalize()
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import Any

import httpx
import pluggy
import structlog

from sinkhub.contracts.events import ComponentIdentity
from sinkhub.contracts.storage import StorageProtocol
from sinkhub.core.config import DispatchSettings, SettingsConfigurationProvider
from sinkhub.core.context import ProcessContext
from sinkhub.core.hashing import PrivacyHasher
from sinkhub.dispatch.build import BuildEnvironment, SocketConnector
from sinkhub.dispatch.catalog import SinkKind, SinkKindCatalog
from sinkhub.dispatch.diagnosis import HandlerDiagnosis
from sinkhub.dispatch.dispatcher import Dispatcher, FailureCallback
from sinkhub.dispatch.errors import SinkConfigurationError
from sinkhub.dispatch.hookspecs import PROJECT_NAME, SinkhubSinkKindSpec
from sinkhub.dispatch.kinds import BuiltinSinkKindsPlugin
from sinkhub.dispatch.processors import InfoProvider, cgi_request_info, no_site_info
from sinkhub.dispatch.transports.console import stdout_writer

logger = structlog.get_logger(__name__)

_DISCOVERY = "sink_kind_plugins"


def discover_sink_kinds(kind_plugins: Iterable[Any] = ()) -> SinkKindCatalog:
    """Discover sink kinds via pluggy hooks.

    Registers the built-in kinds plus any additional plugin objects provided
    by the caller, then calls ``sinkhub_get_sink_kinds`` hooks to build the
    catalog.

    Args:
        kind_plugins: Optional additional plugin objects implementing
            ``sinkhub_get_sink_kinds``.

    Returns:
        Catalog of every discovered kind.

    Raises:
        SinkConfigurationError: If plugin registration fails, a hook returns
            something other than an iterable of SinkKind, or two kinds share
            a name.
    """
    plugin_manager = pluggy.PluginManager(PROJECT_NAME)
    plugin_manager.add_hookspecs(SinkhubSinkKindSpec)

    for plugin in [BuiltinSinkKindsPlugin(), *list(kind_plugins)]:
        try:
            plugin_manager.register(plugin)
            plugin_manager.check_pending()
        except (pluggy.PluginValidationError, ValueError) as e:
            # PluginValidationError: hook spec mismatch, raised before or after registration
            # ValueError: plugin object or name already registered
            if isinstance(e, pluggy.PluginValidationError) and plugin_manager.is_registered(plugin):
                plugin_manager.unregister(plugin=plugin)
            raise SinkConfigurationError(_DISCOVERY, f"Invalid sink kind plugin {type(plugin).__name__}: {e}") from e

    catalog = SinkKindCatalog()
    for hook_impl in plugin_manager.hook.sinkhub_get_sink_kinds.get_hookimpls():
        plugin_name = type(hook_impl.plugin).__name__
        try:
            kinds = hook_impl.function()
        except Exception as e:
            raise SinkConfigurationError(
                _DISCOVERY, f"Sink kind plugin {plugin_name} failed in sinkhub_get_sink_kinds: {e}"
            ) from e

        if kinds is None or type(kinds) in (str, bytes):
            raise SinkConfigurationError(
                _DISCOVERY,
                f"sinkhub_get_sink_kinds in plugin {plugin_name} returned {type(kinds).__name__}; "
                "expected iterable of SinkKind",
            )
        try:
            kind_iter = iter(kinds)
        except TypeError as e:
            raise SinkConfigurationError(
                _DISCOVERY,
                f"sinkhub_get_sink_kinds in plugin {plugin_name} returned {type(kinds).__name__}; "
                "expected iterable of SinkKind",
            ) from e

        for kind in kind_iter:
            if not isinstance(kind, SinkKind):
                raise SinkConfigurationError(
                    _DISCOVERY, f"Plugin {plugin_name} returned {kind!r}; expected SinkKind"
                )
            catalog.add(kind)

    logger.debug("Sink kinds discovered", kinds=catalog.names)
    return catalog


def create_context(settings: DispatchSettings, **overrides: Any) -> ProcessContext:
    """ProcessContext configured from settings; keyword overrides win."""
    kwargs: dict[str, Any] = {
        "environment": settings.environment,
        "namespace_prefix": settings.namespace_prefix,
        "hasher": PrivacyHasher(settings.privacy_key),
    }
    kwargs.update(overrides)
    return ProcessContext(**kwargs)


def create_dispatcher(
    settings: DispatchSettings,
    identity: ComponentIdentity,
    *,
    context: ProcessContext | None = None,
    catalog: SinkKindCatalog | None = None,
    diagnosis: HandlerDiagnosis | None = None,
    kind_plugins: Iterable[Any] = (),
    storage: StorageProtocol | None = None,
    http_client: httpx.Client | None = None,
    request_info: InfoProvider = cgi_request_info,
    site_info: InfoProvider = no_site_info,
    content_type_provider: Callable[[], str | None] = lambda: None,
    console_writer: Callable[[str], None] = stdout_writer,
    socket_connector: SocketConnector | None = None,
    only: str | None = None,
    on_failure: FailureCallback | None = None,
) -> Dispatcher:
    """Create a Dispatcher from settings.

    Args:
        settings: Validated dispatch settings.
        identity: Component the dispatcher logs for.
        context: Shared process state; a new one is built from settings when
            omitted. Pass the same context to every dispatcher of a process.
        catalog: Sink kinds; discovered via pluggy when omitted.
        diagnosis: Capability gate; defaults to HandlerDiagnosis.with_defaults().
        kind_plugins: Extra pluggy plugins, used only when catalog is omitted.
        only: Build only this sink id (send a test event to one sink).
        on_failure: Alert callback for failed writes above DEBUG.

    Remaining arguments are collaborators forwarded to sink builders.
    """
    if catalog is None:
        catalog = discover_sink_kinds(kind_plugins)
    if context is None:
        context = create_context(settings)
    environment = BuildEnvironment(
        context=context,
        storage=storage,
        http_client=http_client,
        request_info=request_info,
        site_info=site_info,
        content_type_provider=content_type_provider,
        console_writer=console_writer,
        socket_connector=socket_connector,
    )
    return Dispatcher(
        identity,
        context=context,
        provider=SettingsConfigurationProvider(settings, catalog),
        catalog=catalog,
        diagnosis=diagnosis if diagnosis is not None else HandlerDiagnosis.with_defaults(),
        environment=environment,
        only=only,
        allowed=settings.enabled,
        instance_name=settings.instance_name,
        on_failure=on_failure,
    )
