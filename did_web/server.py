"""HTTP server hosting published did:web documents.

Serves:
1. DID documents at /.well-known/did.json or /<path>/did.json
2. Certificate chains next to them (x509CertificateChain.pem)
3. /health, /api/did-info and a small HTML page at /

Documents are read from disk on every request, so a re-publish is visible
without a restart.
"""

import html
import json
import os
from datetime import datetime, timezone
from pathlib import Path

import structlog
import uvicorn
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, HTMLResponse, JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from did_web.canonical import hash_canonical
from did_web.config import Settings
from did_web.did import CERTIFICATE_CHAIN_FILENAME, DOCUMENT_FILENAME, WELL_KNOWN
from did_web.errors import SerializationError

logger = structlog.get_logger(__name__)

UNIVERSAL_RESOLVER = "https://dev.uniresolver.io/#"

AVAILABLE_ENDPOINTS = [
    "/",
    f"/{WELL_KNOWN}/{DOCUMENT_FILENAME}",
    f"/{WELL_KNOWN}/{CERTIFICATE_CHAIN_FILENAME}",
    "/health",
    "/api/did-info",
]


class DocumentStore:
    """Read-only view of the published tree below ``root``.

    ``excluded`` names top-level directories that are never served
    (key material, the private document archive).
    """

    def __init__(self, root: Path, excluded: frozenset[str] = frozenset()) -> None:
        self.root = Path(root)
        self.excluded = excluded

    def _directory(self, publication_root: str) -> Path | None:
        if publication_root == WELL_KNOWN:
            return self.root / WELL_KNOWN

        segments = publication_root.split("/")
        if segments[0] in self.excluded:
            return None
        for segment in segments:
            if not segment or segment.startswith("."):
                return None
        return self.root.joinpath(*segments)

    def _file(self, publication_root: str, filename: str) -> Path | None:
        directory = self._directory(publication_root)
        if directory is None:
            return None
        path = directory / filename
        if not path.is_file():
            return None
        return path

    def load_document(self, publication_root: str) -> dict | None:
        """Parsed did.json for ``publication_root``, or None if absent."""
        path = self._file(publication_root, DOCUMENT_FILENAME)
        if path is None:
            return None
        try:
            document = json.loads(path.read_text(encoding="utf-8"))
        except ValueError as exc:
            raise SerializationError(f"{path} is not valid JSON: {exc}") from exc
        if not isinstance(document, dict):
            raise SerializationError(f"{path} does not hold a JSON object")
        return document

    def certificate_path(self, publication_root: str) -> Path | None:
        return self._file(publication_root, CERTIFICATE_CHAIN_FILENAME)

    def publications(self) -> list[str]:
        """Publication roots holding a did.json, .well-known first."""
        found = []
        if self._file(WELL_KNOWN, DOCUMENT_FILENAME) is not None:
            found.append(WELL_KNOWN)

        custom = []
        for dirpath, dirnames, filenames in os.walk(self.root):
            relative = Path(dirpath).relative_to(self.root)
            # Prune in place so hidden and excluded trees are never walked.
            dirnames[:] = [
                name
                for name in dirnames
                if not name.startswith(".")
                and (relative.parts or name not in self.excluded)
            ]
            if relative.parts and DOCUMENT_FILENAME in filenames:
                custom.append("/".join(relative.parts))

        return found + sorted(custom)

    def primary(self) -> str | None:
        publications = self.publications()
        return publications[0] if publications else None


def _render_home(did: str | None, publication_root: str | None) -> str:
    if did is None:
        body = (
            "<p>No DID document published yet.</p>"
            "<pre>did-web generate-keys\ndid-web create-did &lt;domain&gt;</pre>"
        )
    else:
        base = f"/{html.escape(publication_root)}"
        body = (
            f"<p>DID: <code>{html.escape(did)}</code></p><ul>"
            f'<li><a href="{base}/{DOCUMENT_FILENAME}">DID document</a></li>'
            f'<li><a href="{base}/{CERTIFICATE_CHAIN_FILENAME}">Certificate chain</a></li>'
            '<li><a href="/api/did-info">DID info</a></li>'
            '<li><a href="/health">Health</a></li>'
            f'<li><a href="{UNIVERSAL_RESOLVER}{html.escape(did)}">Universal resolver</a></li>'
            "</ul>"
        )
    return (
        '<!DOCTYPE html><html lang="en"><head><meta charset="UTF-8">'
        "<title>DID:web Server</title></head>"
        f"<body><h1>DID:web Server</h1>{body}</body></html>"
    )


def create_app(settings: Settings) -> FastAPI:
    """Build the application for the tree below ``settings.root_dir``."""
    store = DocumentStore(
        settings.root_dir,
        excluded=frozenset({settings.keys_dir, settings.archive_dir}),
    )

    app = FastAPI(title="DID Web Server", description="Hosts did:web documents.")
    app.state.store = store
    app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["GET"])

    @app.exception_handler(StarletteHTTPException)
    async def not_found(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        if exc.status_code != 404:
            return JSONResponse({"error": exc.detail}, status_code=exc.status_code)
        return JSONResponse(
            {
                "error": "Not Found",
                "message": f"Endpoint {request.url.path} not found",
                "availableEndpoints": AVAILABLE_ENDPOINTS,
            },
            status_code=404,
        )

    @app.exception_handler(SerializationError)
    async def unreadable_document(request: Request, exc: SerializationError) -> JSONResponse:
        logger.error("did_document_unreadable", path=request.url.path, error=str(exc))
        return JSONResponse(
            {
                "error": "Invalid DID document",
                "message": "The published did.json could not be read",
            },
            status_code=500,
        )

    @app.get("/", response_class=HTMLResponse)
    async def home() -> str:
        publication_root = store.primary()
        did = None
        if publication_root is not None:
            did = store.load_document(publication_root).get("id")
        return _render_home(did, publication_root)

    @app.get("/health")
    async def health() -> dict:
        return {
            "status": "ok",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "port": settings.port,
        }

    @app.get("/api/did-info")
    async def did_info(request: Request):
        publication_root = store.primary()
        if publication_root is None:
            return JSONResponse(
                {
                    "error": "DID document not found",
                    "message": "Run 'did-web generate-keys' and 'did-web create-did' first",
                },
                status_code=404,
            )

        document = store.load_document(publication_root)
        base = str(request.base_url).rstrip("/")
        return {
            "did": document.get("id"),
            "document": document,
            "endpoints": {
                "didDocument": f"{base}/{publication_root}/{DOCUMENT_FILENAME}",
                "certificate": f"{base}/{publication_root}/{CERTIFICATE_CHAIN_FILENAME}",
                "resolver": f"{UNIVERSAL_RESOLVER}{document.get('id')}",
            },
        }

    @app.get(f"/{{publication_root:path}}/{DOCUMENT_FILENAME}")
    async def get_document(publication_root: str, request: Request) -> Response:
        document = store.load_document(publication_root)
        if document is None:
            raise HTTPException(status_code=404, detail="DID Not Found")

        etag = f'"{hash_canonical(document).hex()}"'
        if request.headers.get("if-none-match") == etag:
            return Response(status_code=304, headers={"ETag": etag})
        return JSONResponse(document, headers={"ETag": etag})

    @app.get(f"/{{publication_root:path}}/{CERTIFICATE_CHAIN_FILENAME}")
    async def get_certificate(publication_root: str) -> FileResponse:
        path = store.certificate_path(publication_root)
        if path is None:
            raise HTTPException(status_code=404, detail="Certificate Not Found")
        return FileResponse(path, media_type="application/x-pem-file")

    return app


def serve(settings: Settings) -> None:
    """Run the server until interrupted."""
    app = create_app(settings)
    store: DocumentStore = app.state.store
    publications = store.publications()

    logger.info("server_starting", host=settings.host, port=settings.port)
    for publication_root in publications:
        logger.info("serving_did_document", path=f"/{publication_root}/{DOCUMENT_FILENAME}")
    if not publications:
        logger.warning("no_did_document_published", root=str(settings.root_dir))

    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)
