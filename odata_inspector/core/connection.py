"""
odata_inspector.core.connection - High-level connection management
===================================================================

Environment-driven connection setup for one OData service.
"""

from __future__ import annotations

import os
from typing import TYPE_CHECKING, Optional

from odata_inspector.core.session import ODataAuth, ODataConfig, ODataSession

if TYPE_CHECKING:
    from odata_inspector.odata.service import ODataService


class ConnectionContext:
    """
    Connection manager for an OData service.

    Supports environment variable configuration and context manager usage.
    Without credentials the service is accessed anonymously, which is how
    most public demo services are reached.

    Parameters
    ----------
    service_url : str, optional
        Service root URL. Falls back to ODATA_SERVICE_URL env var.
    user : str, optional
        Username for basic auth. Falls back to ODATA_USER env var.
    password : str, optional
        Password for basic auth. Falls back to ODATA_PASS env var.
    bearer_token : str, optional
        Bearer token. Falls back to ODATA_BEARER_TOKEN env var.
    verify : bool, optional
        SSL verification. Falls back to ODATA_VERIFY_TLS env var.
    timeout : float
        Request timeout in seconds.
    version : str, optional
        Protocol version for request headers. Detected from ``$metadata``
        by :class:`ODataService` when omitted.

    Examples
    --------
    >>> with ConnectionContext("https://services.odata.org/V2/Northwind/Northwind.svc/") as conn:
    ...     service = conn.get_service()
    ...     service.list_entity_sets()
    """

    def __init__(
        self,
        service_url: Optional[str] = None,
        user: Optional[str] = None,
        password: Optional[str] = None,
        bearer_token: Optional[str] = None,
        verify: Optional[bool] = None,
        timeout: float = 60.0,
        version: Optional[str] = None,
    ) -> None:
        self._service_url = (service_url or os.environ.get("ODATA_SERVICE_URL", "")).rstrip("/") + "/"
        self._user = user or os.environ.get("ODATA_USER", "")
        self._password = password or os.environ.get("ODATA_PASS", "")
        self._bearer_token = bearer_token or os.environ.get("ODATA_BEARER_TOKEN", "")

        if verify is not None:
            self._verify = verify
        else:
            self._verify = os.environ.get("ODATA_VERIFY_TLS", "true").lower() != "false"

        self._timeout = timeout
        self._version = version

        if not self._service_url or self._service_url == "/":
            raise ValueError(
                "Missing service_url. Set ODATA_SERVICE_URL environment variable "
                "or pass service_url parameter."
            )

        if self._user and not self._password:
            raise ValueError(
                "Missing credentials. ODATA_USER is set but ODATA_PASS is not."
            )

        self._session: Optional[ODataSession] = None

    @property
    def session(self) -> ODataSession:
        """Get or create the underlying OData session."""
        if self._session is None:
            self._session = self._build_session()
        return self._session

    def _build_session(self) -> ODataSession:
        if self._bearer_token:
            auth = ODataAuth("bearer", self._bearer_token)
        elif self._user:
            auth = ODataAuth("basic", (self._user, self._password))
        else:
            auth = ODataAuth("none")

        cfg = ODataConfig(
            service_url=self._service_url,
            auth=auth,
            verify=self._verify,
            timeout=self._timeout,
            version=self._version or "V2",
        )
        return ODataSession(cfg)

    def close(self) -> None:
        """Close the connection."""
        if self._session is not None:
            self._session.close()
            self._session = None

    def __enter__(self) -> "ConnectionContext":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def get_service(self) -> "ODataService":
        """
        Get an ODataService for the configured service root.

        Returns
        -------
        ODataService
            Service client for metadata, reads and entity actions
        """
        # Import here to avoid circular imports
        from odata_inspector.odata.service import ODataService
        return ODataService(self.session, version=self._version)

    @property
    def service_url(self) -> str:
        """The configured service root URL."""
        return self._service_url
