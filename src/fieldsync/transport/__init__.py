"""HTTP transports for the WebDAV store and the sync API."""

from fieldsync.transport.api import PhotoApiClient
from fieldsync.transport.base import DatabaseTransport, UploadTransport
from fieldsync.transport.webdav import WebDavClient

__all__ = ["DatabaseTransport", "PhotoApiClient", "UploadTransport", "WebDavClient"]
