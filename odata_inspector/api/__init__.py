"""
odata_inspector.api - Optional REST API Gateway
================================================

FastAPI gateway exposing metadata parsing, record addressing and batch
entity actions over HTTP.

Usage
-----
>>> from odata_inspector.api import create_app
>>> app = create_app()
>>> # Run with: uvicorn odata_inspector.api:app

Or run directly:
>>> python -m odata_inspector.api

"""

from pathlib import Path

from dotenv import load_dotenv

# Load .env before the gateway reads its configuration
env_path = Path.cwd() / ".env"
if env_path.exists():
    load_dotenv(env_path)

from odata_inspector.api.gateway import create_app, ODataGateway  # noqa: E402

# Create default app instance for uvicorn
app = create_app()

__all__ = [
    "create_app",
    "ODataGateway",
    "app",
]
