"""
odata_inspector.api.gateway - FastAPI inspector gateway
========================================================

Optional REST surface over the metadata and addressing core.
"""

from __future__ import annotations

import logging
import os
import time
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, Header, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from odata_inspector.addressing.resolver import resolve
from odata_inspector.core.session import ODataAuth, ODataConfig, ODataSession, ODataUpstreamError
from odata_inspector.metadata.model import Schema
from odata_inspector.metadata.parser import MetadataParseError, SchemaParser
from odata_inspector.odata.actions import EntityActions
from odata_inspector.odata.service import ODataService
from odata_inspector.api.models import (
    ExecuteRequest,
    ExecuteResponse,
    ParseRequest,
    PlanRequest,
    PlanResponse,
    ResolveRequest,
    ResolveResponse,
    SchemaResponse,
)

logger = logging.getLogger("odata_inspector.api")


class ODataGateway:
    """
    Configuration and session factory for the API gateway.

    Reads configuration from environment variables by default.
    """

    def __init__(
        self,
        service_url: Optional[str] = None,
        user: Optional[str] = None,
        password: Optional[str] = None,
        bearer_token: Optional[str] = None,
        verify_tls: Optional[bool] = None,
        api_key: Optional[str] = None,
        meta_cache_ttl: Optional[int] = None,
    ):
        self.service_url = (service_url or os.environ.get("ODATA_SERVICE_URL", "")).rstrip("/") + "/"
        self.user = user or os.environ.get("ODATA_USER", "")
        self.password = password or os.environ.get("ODATA_PASS", "")
        self.bearer_token = bearer_token or os.environ.get("ODATA_BEARER_TOKEN", "")

        if verify_tls is not None:
            self.verify_tls = verify_tls
        else:
            self.verify_tls = os.environ.get("ODATA_VERIFY_TLS", "true").lower() != "false"

        self.api_key = api_key if api_key is not None else os.environ.get("ODATA_API_KEY", "")
        if meta_cache_ttl is None:
            meta_cache_ttl = int(os.environ.get("ODATA_META_TTL", "900"))
        self.meta_cache_ttl = meta_cache_ttl

        # service_url -> {"ts": epoch, "schema": Schema}
        self._schema_cache: Dict[str, Dict[str, Any]] = {}

    def validate(self) -> None:
        """Validate configuration. Raises RuntimeError if invalid."""
        if not self.service_url or self.service_url == "/":
            raise RuntimeError("Missing ODATA_SERVICE_URL environment variable")
        if not self.api_key:
            raise RuntimeError("Missing ODATA_API_KEY - required for security")

    def build_session(self, version: str = "V2") -> ODataSession:
        """Create a new OData session."""
        if self.bearer_token:
            auth = ODataAuth("bearer", self.bearer_token)
        elif self.user:
            auth = ODataAuth("basic", (self.user, self.password))
        else:
            auth = ODataAuth("none")

        cfg = ODataConfig(
            service_url=self.service_url,
            auth=auth,
            verify=self.verify_tls,
            timeout=float(os.environ.get("ODATA_TIMEOUT", "60")),
            retries=int(os.environ.get("ODATA_RETRIES", "3")),
            backoff=float(os.environ.get("ODATA_BACKOFF", "0.5")),
            version=version,
        )
        return ODataSession(cfg)

    def cached_schema(self) -> Optional[Schema]:
        cached = self._schema_cache.get(self.service_url)
        if cached and (time.time() - cached["ts"]) < self.meta_cache_ttl:
            return cached["schema"]
        return None

    def store_schema(self, schema: Schema) -> None:
        self._schema_cache[self.service_url] = {"ts": time.time(), "schema": schema}


_gateway: Optional[ODataGateway] = None


def get_gateway() -> ODataGateway:
    """Get or create the global gateway instance."""
    global _gateway
    if _gateway is None:
        _gateway = ODataGateway()
    return _gateway


def _schema_response(schema: Schema) -> SchemaResponse:
    data = schema.to_dict()
    return SchemaResponse(
        namespace=data["namespace"],
        version=data["version"],
        entities=data["entities"],
        entity_sets=data["entity_sets"],
    )


def _parse_or_422(xml_text: Optional[str]) -> Optional[Schema]:
    if not xml_text:
        return None
    try:
        return SchemaParser().parse(xml_text)
    except MetadataParseError as e:
        raise HTTPException(status_code=422, detail={"message": "no entities found", "error": str(e)})


def _upstream_502(e: ODataUpstreamError) -> HTTPException:
    return HTTPException(
        status_code=502,
        detail={"upstream_status": e.status, "url": e.url, "error": str(e)},
    )


def create_app(
    gateway: Optional[ODataGateway] = None,
    validate_on_startup: bool = True,
) -> FastAPI:
    """
    Create the FastAPI application.

    Parameters
    ----------
    gateway : ODataGateway, optional
        Custom gateway configuration. If None, reads from environment.
    validate_on_startup : bool
        If True, log configuration problems on startup.

    Returns
    -------
    FastAPI
        Configured FastAPI application
    """
    global _gateway
    _gateway = gateway or ODataGateway()

    if validate_on_startup:
        try:
            _gateway.validate()
        except RuntimeError as e:
            # pure endpoints stay usable without a configured service
            logger.warning("gateway configuration incomplete: %s", e)

    app = FastAPI(
        title="OData Inspector Gateway",
        description="Schema parsing, record addressing and batch entity actions for OData V2/V3/V4 services.",
        version="0.1.0",
        openapi_tags=[
            {"name": "Metadata", "description": "Parse and inspect $metadata documents"},
            {"name": "Addressing", "description": "Resource URIs and key predicates"},
            {"name": "Actions", "description": "Batch delete/update of selected records"},
        ],
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # -------------------------------------------------------------------------
    # Dependencies
    # -------------------------------------------------------------------------

    def require_api_key(x_api_key: str = Header(default="")) -> None:
        gw = get_gateway()
        if gw.api_key and x_api_key != gw.api_key:
            raise HTTPException(status_code=401, detail="Invalid API key")

    def load_schema() -> Schema:
        gw = get_gateway()
        schema = gw.cached_schema()
        if schema is not None:
            return schema
        try:
            with gw.build_session() as sess:
                schema = ODataService(sess).meta.refresh()
        except ODataUpstreamError as e:
            raise _upstream_502(e)
        except MetadataParseError as e:
            raise HTTPException(status_code=422, detail={"message": "no entities found", "error": str(e)})
        gw.store_schema(schema)
        return schema

    # -------------------------------------------------------------------------
    # Endpoints
    # -------------------------------------------------------------------------

    @app.get("/health")
    def health() -> Dict[str, Any]:
        """Health check endpoint."""
        return {"ok": True, "version": "0.1.0"}

    @app.post("/metadata/parse", response_model=SchemaResponse, tags=["Metadata"])
    def parse_metadata(
        req: ParseRequest,
        _: None = Depends(require_api_key),
    ) -> SchemaResponse:
        """Parse a posted $metadata document."""
        schema = _parse_or_422(req.xml)
        if schema is None:
            raise HTTPException(
                status_code=422,
                detail={"message": "no entities found", "error": "empty metadata document"},
            )
        return _schema_response(schema)

    @app.get("/metadata/schema", response_model=SchemaResponse, tags=["Metadata"])
    def service_schema(_: None = Depends(require_api_key)) -> SchemaResponse:
        """Schema of the configured service (cached)."""
        return _schema_response(load_schema())

    @app.post("/addressing/resolve", response_model=ResolveResponse, tags=["Addressing"])
    def resolve_address(
        req: ResolveRequest,
        _: None = Depends(require_api_key),
    ) -> ResolveResponse:
        """Compute URI and key predicate for one record."""
        schema = _parse_or_422(req.metadata_xml)
        entity_type = schema.entity_type_for_set(req.entity_set) if schema else None
        version = req.version or (schema.version if schema else None)
        address = resolve(req.item, req.base_url, req.entity_set, entity_type, version=version)
        return ResolveResponse(uri=address.uri, predicate=address.predicate, addressable=address.addressable)

    @app.post("/actions/plan", response_model=PlanResponse, tags=["Actions"])
    def plan_action(
        req: PlanRequest,
        _: None = Depends(require_api_key),
    ) -> PlanResponse:
        """Preview the requests a batch action would issue."""
        schema = _parse_or_422(req.metadata_xml)
        actions = EntityActions(None, schema, base_url=req.base_url, selection_key=req.selection_key)
        plan = actions.plan(req.data, req.entity_set, req.action)
        return PlanResponse(
            action=plan.action,
            entity_set=plan.entity_set,
            count=len(plan.requests),
            skipped=len(plan.skipped),
            lines=plan.lines(),
            predicates=plan.predicates(),
        )

    @app.post("/actions/execute", response_model=ExecuteResponse, tags=["Actions"])
    def execute_action(
        req: ExecuteRequest,
        _: None = Depends(require_api_key),
    ) -> ExecuteResponse:
        """Run a batch action against the configured service."""
        if req.action == "update" and not req.payload:
            raise HTTPException(status_code=400, detail="update requires a payload")
        schema = load_schema()
        gw = get_gateway()
        version = schema.version if schema.version in ("V2", "V3", "V4") else "V2"
        with gw.build_session(version) as sess:
            actions = EntityActions(sess, schema, selection_key=req.selection_key)
            plan = actions.plan(req.data, req.entity_set, req.action)
            report = actions.execute(plan, req.payload)
        return ExecuteResponse(
            succeeded=report.succeeded,
            failed=report.failed,
            skipped=report.skipped,
            lines=report.lines,
            report=report.render(),
        )

    return app
