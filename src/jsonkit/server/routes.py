"""FastAPI routes for the tree API, file operations and the change channel."""

from __future__ import annotations

import asyncio
import json
import logging
import os
import shutil
from pathlib import Path
from typing import Any

from fastapi import Body, FastAPI, HTTPException, Query, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from fastapi.staticfiles import StaticFiles

from jsonkit import __version__
from jsonkit.config.schema import Config
from jsonkit.errors import AccessDenied, MalformedContent, NotFound
from jsonkit.paths import has_json_extension
from jsonkit.server.websocket import ConnectionManager
from jsonkit.tree.scanner import DirectoryScanner

log = logging.getLogger(__name__)


def build_scanner(config: Config) -> DirectoryScanner:
    """Scanner rooted at the configured JSON directory, static dir excluded."""
    excluded = [config.server.static_files] if config.server.static_files else []
    return DirectoryScanner(
        root=config.navigation.json_directory,
        rules=config.navigation.ext_data,
        excluded_roots=excluded,
    )


def create_app(
    config: Config,
    connection_manager: ConnectionManager | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        config: Validated configuration
        connection_manager: Registry for /ws clients; a new one if omitted
    """
    app = FastAPI(
        title=config.app.title,
        description="Live tree of a JSON file directory",
        version=__version__,
    )
    app.state.config = config
    app.state.scanner = build_scanner(config)
    app.state.connection_manager = connection_manager or ConnectionManager()

    if config.server.cors.enabled:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=config.server.cors.origins or ["*"],
            allow_methods=["*"],
            allow_headers=["*"],
        )

    _register_routes(app)

    # Static files last, so API routes take precedence over "/"
    static_dir = config.server.static_files
    if static_dir and Path(static_dir).is_dir():
        app.mount("/", StaticFiles(directory=static_dir, html=True), name="static")

    return app


def _guard(scanner: DirectoryScanner, path: str | None) -> str:
    """Resolve a request path or raise the matching HTTP error."""
    if not path:
        raise HTTPException(status_code=400, detail="Missing path")
    try:
        return str(scanner.check_access(path))
    except AccessDenied as e:
        raise HTTPException(status_code=403, detail=str(e)) from e


def _require_json(path: str) -> None:
    if not has_json_extension(path):
        raise HTTPException(status_code=400, detail=f"Not a JSON file: {path}")


def _register_routes(app: FastAPI) -> None:
    """Register all API routes."""
    config: Config = app.state.config
    scanner: DirectoryScanner = app.state.scanner
    connection_manager: ConnectionManager = app.state.connection_manager

    @app.get("/config")
    async def api_config() -> dict[str, Any]:
        """Settings the client needs to build and filter its tree."""
        return {
            "title": config.app.title,
            "version": config.app.version,
            "jsonDirectory": config.navigation.json_directory,
            "jsonDirectoryFull": scanner.root,
            "extData": config.navigation.ext_data,
            "extDataFilterSize": config.navigation.ext_data_filter_size,
            "enableSplitPanel": config.app.enable_split_panel,
            "isDev": config.app.dev,
        }

    @app.get("/api/status")
    async def api_status() -> dict[str, Any]:
        return {"status": "ok", "connections": connection_manager.get_connection_count()}

    @app.get("/api/files")
    async def api_list(path: str | None = Query(default=None)) -> list[dict[str, Any]]:
        """List a directory (default: the root) as a tree."""
        target = _guard(scanner, path or scanner.root)
        try:
            return await asyncio.to_thread(scanner.scan_list, target)
        except NotFound as e:
            raise HTTPException(status_code=404, detail=str(e)) from e
        except OSError as e:
            log.error("Cannot read directory %s: %s", target, e)
            raise HTTPException(status_code=500, detail=f"Cannot read directory: {e}") from e

    @app.post("/api/files")
    async def api_mkdir(path: str | None = Query(default=None)) -> dict[str, Any]:
        """Create a directory, including missing parents."""
        target = _guard(scanner, path)
        try:
            os.makedirs(target, exist_ok=True)
        except OSError as e:
            raise HTTPException(status_code=500, detail=str(e)) from e
        return {"success": True, "path": target}

    @app.get("/api/file")
    async def api_read(path: str | None = Query(default=None)) -> Response:
        """Return a JSON file's content verbatim."""
        target = _guard(scanner, path)
        _require_json(target)
        try:
            content = await asyncio.to_thread(Path(target).read_bytes)
        except FileNotFoundError as e:
            raise HTTPException(status_code=404, detail=f"Not found: {target}") from e
        except OSError as e:
            raise HTTPException(status_code=500, detail=f"Cannot read {target}: {e}") from e
        try:
            json.loads(content.decode("utf-8"))
        except ValueError as e:
            error = MalformedContent(target, str(e))
            log.warning("%s", error)
            raise HTTPException(status_code=422, detail=str(error)) from e
        return Response(content=content, media_type="application/json")

    @app.post("/api/file")
    async def api_write(
        path: str | None = Query(default=None),
        body: Any = Body(...),
    ) -> dict[str, Any]:
        """Write a JSON document, pretty-printed."""
        target = _guard(scanner, path)
        _require_json(target)
        text = json.dumps(body, indent=2, ensure_ascii=False)
        try:
            await asyncio.to_thread(Path(target).write_text, text, "utf-8")
        except OSError as e:
            log.error("Cannot write %s: %s", target, e)
            raise HTTPException(status_code=500, detail=str(e)) from e
        return {"success": True}

    @app.post("/api/file/rename")
    async def api_rename(payload: dict[str, Any] = Body(...)) -> dict[str, Any]:
        """Rename or move a file or directory within the root."""
        old = _guard(scanner, payload.get("pathOld"))
        new = _guard(scanner, payload.get("pathNew"))
        try:
            os.rename(old, new)
        except FileNotFoundError as e:
            raise HTTPException(status_code=404, detail=f"Not found: {old}") from e
        except OSError as e:
            log.error("Cannot rename %s to %s: %s", old, new, e)
            raise HTTPException(status_code=500, detail=str(e)) from e
        return {"success": True, "pathOld": old, "pathNew": new}

    @app.delete("/api/file")
    async def api_delete(path: str | None = Query(default=None)) -> dict[str, Any]:
        """Delete a file, or a directory with everything below it."""
        target = _guard(scanner, path)
        if target == scanner.root:
            raise HTTPException(status_code=403, detail="Cannot delete the root directory")
        try:
            if os.path.isdir(target) and not os.path.islink(target):
                await asyncio.to_thread(shutil.rmtree, target)
            else:
                os.unlink(target)
        except FileNotFoundError as e:
            raise HTTPException(status_code=404, detail=f"Not found: {target}") from e
        except OSError as e:
            log.error("Cannot delete %s: %s", target, e)
            raise HTTPException(status_code=500, detail=str(e)) from e
        return {"success": True, "path": target}

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket) -> None:
        """Push channel for change events."""
        await connection_manager.connect(websocket)
        try:
            while True:
                try:
                    data = await websocket.receive_text()
                    if data == "ping":
                        await websocket.send_text("pong")
                except WebSocketDisconnect:
                    break
        finally:
            await connection_manager.disconnect(websocket)
