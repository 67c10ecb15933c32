# src/sinkhub/dispatch/hookspecs.py
"""pluggy hook specifications for sink kinds.

Plugins implement these hooks to contribute sink kinds without touching
the catalog or the dispatcher.

Usage (implementing a sink kind plugin):
    from sinkhub.dispatch.hookspecs import hookimpl

    class MySinkKindsPlugin:
        @hookimpl
        def sinkhub_get_sink_kinds(self):
            return [SinkKind(name="my_intake", ...)]
"""

from typing import TYPE_CHECKING

import pluggy

if TYPE_CHECKING:
    from sinkhub.dispatch.catalog import SinkKind

PROJECT_NAME = "sinkhub"

hookspec = pluggy.HookspecMarker(PROJECT_NAME)

hookimpl = pluggy.HookimplMarker(PROJECT_NAME)


class SinkhubSinkKindSpec:
    """Hook specifications for sink kind plugins."""

    @hookspec
    def sinkhub_get_sink_kinds(self) -> list["SinkKind"]:  # type: ignore[empty-body]
        """Return sink kind definitions.

        Called once per catalog discovery. Kind names must be unique
        across all registered plugins.

        Returns:
            List of SinkKind instances
        """
