"""
odata_inspector.core.session - OData HTTP Session Management
=============================================================

Low-level session handling for OData V2/V3/V4 services with:
- Basic, Bearer or anonymous access
- Automatic retry with exponential backoff
- CSRF token handling for write operations
- Protocol version headers
- Error extraction from OData error bodies
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple, Union
import json
import logging
import threading
import time

import requests
from requests import Response, Session
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry


class ODataUpstreamError(RuntimeError):
    """
    Exception raised when the OData service returns an error status.

    Attributes
    ----------
    status : int
        HTTP status code
    body : str
        Extracted error text (truncated in the message)
    url : str
        The URL that was called
    headers : dict
        Response headers
    """

    def __init__(
        self,
        status: int,
        body: str,
        url: str,
        headers: Optional[Dict[str, str]] = None
    ):
        snippet = (body or "")[:1200]
        super().__init__(f"OData upstream error {status} for {url}: {snippet}")
        self.status = status
        self.body = body or ""
        self.url = url
        self.headers = headers or {}


@dataclass
class ODataAuth:
    """
    Authentication configuration.

    Parameters
    ----------
    kind : str
        "basic", "bearer" or "none"
    value : tuple or str, optional
        For basic: (username, password); for bearer: access token

    Examples
    --------
    >>> auth = ODataAuth("basic", ("USER", "PASSWORD"))
    >>> auth = ODataAuth("none")
    """
    kind: str  # "basic" | "bearer" | "none"
    value: Union[Tuple[str, str], str, None] = None


@dataclass
class ODataConfig:
    """
    Connection configuration for one OData service.

    Parameters
    ----------
    service_url : str
        Service root, e.g. "https://services.odata.org/V2/Northwind/Northwind.svc/"
    auth : ODataAuth
        Authentication configuration
    version : str
        Protocol version used for request headers: "V2", "V3" or "V4"
    lang : str
        Accept-Language value (default: "EN")
    timeout : float
        Request timeout in seconds (default: 60.0)
    retries : int
        Number of retry attempts (default: 3)
    backoff : float
        Backoff factor for retries (default: 0.5)
    verify : bool or str
        SSL verification (True, False, or path to CA bundle)
    user_agent : str
        User-Agent header value
    """
    service_url: str
    auth: ODataAuth
    version: str = "V2"
    lang: str = "EN"
    timeout: float = 60.0
    retries: int = 3
    backoff: float = 0.5
    verify: Union[bool, str] = True
    user_agent: str = "odata-inspector/0.1"


def version_headers(version: Optional[str]) -> Dict[str, str]:
    """Protocol negotiation headers for a service version."""
    if version == "V4":
        return {
            "Accept": "application/json",
            "OData-Version": "4.0",
            "OData-MaxVersion": "4.0",
        }
    if version == "V3":
        return {
            "Accept": "application/json;odata=verbose",
            "DataServiceVersion": "3.0",
            "MaxDataServiceVersion": "3.0",
        }
    return {
        "Accept": "application/json",
        "DataServiceVersion": "2.0",
        "MaxDataServiceVersion": "2.0",
    }


class ODataSession:
    """
    HTTP session bound to one OData service root.

    Use as a context manager for automatic cleanup.

    Parameters
    ----------
    cfg : ODataConfig
        Connection configuration

    Examples
    --------
    >>> with ODataSession(cfg) as sess:
    ...     xml_text = sess.get_text("$metadata")
    ...     sess.delete("https://host/svc/Orders(7)")
    """

    def __init__(self, cfg: ODataConfig) -> None:
        self.cfg = cfg
        self.base = cfg.service_url.rstrip("/") + "/"
        self.timeout = float(cfg.timeout)
        self.verify = cfg.verify
        self.logger = logging.getLogger("odata_inspector.odata")

        self.session = self._build_session()

        self._csrf_token: Optional[str] = None
        self._csrf_lock = threading.Lock()

    def close(self) -> None:
        """Close the underlying HTTP session."""
        try:
            self.session.close()
        except Exception:
            pass

    def __enter__(self) -> "ODataSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ---------------- auth/session ----------------

    def _build_session(self) -> Session:
        sess = requests.Session()

        if self.cfg.auth.kind == "basic":
            sess.auth = self.cfg.auth.value  # type: ignore[assignment]
        elif self.cfg.auth.kind == "bearer":
            sess.headers.update({"Authorization": f"Bearer {self.cfg.auth.value}"})
        elif self.cfg.auth.kind != "none":
            raise ValueError("auth.kind must be 'basic', 'bearer' or 'none'")

        sess.headers.update(version_headers(self.cfg.version))
        sess.headers.update({
            "Accept-Language": self.cfg.lang.lower(),
            "User-Agent": self.cfg.user_agent,
        })

        retry = Retry(
            total=self.cfg.retries,
            backoff_factor=self.cfg.backoff,
            status_forcelist=(429, 500, 502, 503, 504),
            allowed_methods=frozenset({"GET", "HEAD", "OPTIONS", "PATCH", "DELETE"}),
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retry, pool_connections=10, pool_maxsize=20)
        sess.mount("https://", adapter)
        sess.mount("http://", adapter)
        return sess

    # ---------------- helpers ----------------

    def url(self, path: str) -> str:
        return f"{self.base}{path.lstrip('/')}"

    def _json_or_text(self, r: Response) -> Dict[str, Any]:
        ctype = (r.headers.get("Content-Type") or "").lower()
        if "json" in ctype:
            try:
                return r.json()
            except ValueError:
                pass
        return {"raw": r.text, "content_type": r.headers.get("Content-Type", "")}

    def _extract_error(self, r: Response) -> str:
        try:
            data = r.json()
        except ValueError:
            return r.text
        if not isinstance(data, dict):
            return r.text
        err = data.get("error") or data.get("odata.error")
        if not isinstance(err, dict):
            return r.text

        code = err.get("code")
        message = None
        if isinstance(err.get("message"), dict):
            message = err["message"].get("value")
        elif isinstance(err.get("message"), str):
            message = err.get("message")

        inner = err.get("innererror") or err.get("innerError")
        txid = inner.get("transactionid") if isinstance(inner, dict) else None

        parts = []
        if code:
            parts.append(f"code={code}")
        if message:
            parts.append(f"message={message}")
        if txid:
            parts.append(f"txid={txid}")
        return " | ".join(parts) or r.text

    def raise_for_error(self, r: Response, url: str) -> None:
        if r.status_code >= 400:
            body = self._extract_error(r)
            raise ODataUpstreamError(r.status_code, body, url, dict(r.headers))

    def _request(
        self,
        method: str,
        url: str,
        *,
        params: Optional[Dict[str, str]] = None,
        headers: Optional[Dict[str, str]] = None,
        data: Optional[Union[str, bytes]] = None,
    ) -> Response:
        t0 = time.perf_counter()
        r = self.session.request(
            method=method,
            url=url,
            params=params,
            headers=headers,
            data=data,
            timeout=self.timeout,
            verify=self.verify,
        )
        self.raise_for_error(r, url)
        dt = (time.perf_counter() - t0) * 1000.0
        self.logger.debug("%s %s %sms", method.upper(), url, round(dt, 1))
        return r

    # ---------------- reads ----------------

    def get(
        self,
        path: str,
        params: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        """
        GET a path below the service root and decode the JSON body.

        Parameters
        ----------
        path : str
            Entity set or resource path, e.g. "Orders"
        params : dict, optional
            Raw query options, passed through unchanged

        Returns
        -------
        dict
            Parsed JSON response
        """
        r = self._request("GET", self.url(path), params=params)
        return self._json_or_text(r)

    def get_url(self, url: str) -> Dict[str, Any]:
        """GET an absolute URL (e.g. a ``__next`` link) and decode it."""
        r = self._request("GET", url)
        return self._json_or_text(r)

    def get_text(self, path: str) -> str:
        """
        GET a path and return the raw text.

        Used for ``$metadata``, which is always XML.
        """
        r = self._request("GET", self.url(path), headers={"Accept": "application/xml"})
        return r.text

    # ---------------- writes ----------------

    def _ensure_csrf(self) -> Optional[str]:
        if self._csrf_token is not None:
            return self._csrf_token or None

        with self._csrf_lock:
            if self._csrf_token is None:
                r = self._request(
                    "GET",
                    self.url("$metadata"),
                    headers={"X-CSRF-Token": "Fetch", "Accept": "application/xml"},
                )
                # services without CSRF protection answer without a token
                self._csrf_token = r.headers.get("x-csrf-token") or ""
        return self._csrf_token or None

    def _write_headers(self, etag: Optional[str]) -> Dict[str, str]:
        headers = {"If-Match": etag or "*"}
        token = self._ensure_csrf()
        if token:
            headers["X-CSRF-Token"] = token
        return headers

    def delete(self, uri: str, *, etag: Optional[str] = None) -> int:
        """
        DELETE the entity addressed by an absolute URI.

        Returns
        -------
        int
            HTTP status code (usually 204)
        """
        r = self._request("DELETE", uri, headers=self._write_headers(etag))
        return r.status_code

    def patch(self, uri: str, payload: Dict[str, Any], *, etag: Optional[str] = None) -> int:
        """
        PATCH (merge) properties of the entity addressed by an absolute URI.
        """
        headers = self._write_headers(etag)
        headers["Content-Type"] = "application/json"
        r = self._request(
            "PATCH",
            uri,
            headers=headers,
            data=json.dumps(payload, separators=(",", ":")),
        )
        return r.status_code
