"""Delivery transports. Transports never raise out of write()."""

from sinkhub.dispatch.transports.console import ConsoleScriptTransport
from sinkhub.dispatch.transports.http import BufferedHttpTransport, HttpTransport
from sinkhub.dispatch.transports.socket import SocketTransport
from sinkhub.dispatch.transports.storage import StorageWriteTransport

__all__ = [
    "BufferedHttpTransport",
    "ConsoleScriptTransport",
    "HttpTransport",
    "SocketTransport",
    "StorageWriteTransport",
]
