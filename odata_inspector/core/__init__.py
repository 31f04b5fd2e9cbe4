"""
odata_inspector.core - Connectivity and authentication
=======================================================

- ODataAuth: Authentication configuration (basic, bearer or none)
- ODataConfig: Full connection configuration
- ODataSession: Low-level HTTP session with retry, CSRF handling
- ConnectionContext: Environment-driven connection manager

"""

from odata_inspector.core.session import (
    ODataAuth,
    ODataConfig,
    ODataSession,
    ODataUpstreamError,
    version_headers,
)

from odata_inspector.core.connection import ConnectionContext

__all__ = [
    "ODataAuth",
    "ODataConfig",
    "ODataSession",
    "ODataUpstreamError",
    "ConnectionContext",
    "version_headers",
]
