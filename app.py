from __future__ import annotations
import os
import json
import uuid
import logging
import sqlite3
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

from pydantic import BaseModel, Field, ValidationError
from fastapi import FastAPI, APIRouter, HTTPException, Query, Body, Request
from fastapi.responses import JSONResponse, FileResponse
from starlette.responses import StreamingResponse

import db

logger = logging.getLogger("homereel")

# Global server state
STATE: Dict[str, Any] = {}
STATE["root"] = Path(os.environ.get("MEDIA_ROOT", ".")).expanduser().resolve()
STATE["db_path"] = Path(os.environ["MEDIA_DB"]).expanduser() if os.environ.get("MEDIA_DB") else None
STATE.setdefault("config", {})
STATE.setdefault("config_path", os.environ.get("MEDIA_CONFIG") or None)
STATE.setdefault("db_ready", False)

# Every stream is announced as mp4; containers are not sniffed.
VIDEO_MEDIA_TYPE = "video/mp4"
API_PREFIX = os.environ.get("API_PREFIX", "/api").rstrip("/") or "/api"


def _config_defaults() -> Dict[str, Any]:
    """
    Server-side defaults. A JSON file named by MEDIA_CONFIG may override any key.
    """
    return {
        "stream_chunk_size": 1024 * 1024,
        "count_stream_views": True,
    }


def _load_config() -> Dict[str, Any]:
    raw: Dict[str, Any] = {}
    cfg_path = STATE.get("config_path")
    if cfg_path:
        try:
            data = json.loads(Path(str(cfg_path)).expanduser().read_text())
            if isinstance(data, dict):
                raw = data
            else:
                logger.warning("[config] ignoring %s: top level is not an object", cfg_path)
        except (OSError, ValueError) as e:
            logger.warning("[config] failed to load %s: %s", cfg_path, e)
    STATE["config"] = raw
    return raw


def _effective_config() -> Dict[str, Any]:
    eff = _config_defaults()
    for k, v in (STATE.get("config") or {}).items():
        if k in eff and v is not None:
            eff[k] = v
    try:
        eff["stream_chunk_size"] = max(4096, int(eff["stream_chunk_size"]))
    except (TypeError, ValueError):
        eff["stream_chunk_size"] = _config_defaults()["stream_chunk_size"]
    eff["count_stream_views"] = bool(eff["count_stream_views"])
    return eff


def _default_db_path() -> Path:
    return Path(STATE["root"]) / ".state" / "library.db"


def _ensure_db() -> None:
    """Point the db module at the configured file and apply the schema once."""
    want = Path(STATE.get("db_path") or _default_db_path())
    try:
        current: Optional[Path] = db.path()
    except RuntimeError:
        current = None
    if current != want or not STATE.get("db_ready"):
        db.configure(want)
        db.ensure_schema()
        STATE["db_path"] = want
        STATE["db_ready"] = True


def api_success(data=None, message: str = "OK", status_code: int = 200):
    return JSONResponse({"status": "success", "message": message, "data": data}, status_code=status_code)


def api_error(message: str, status_code: int = 400, data=None):
    return JSONResponse({"status": "error", "message": message, "data": data}, status_code=status_code)


def raise_api_error(message: str, status_code: int = 400, data=None, headers: Optional[Dict[str, str]] = None):
    raise HTTPException(
        status_code=status_code,
        detail={"status": "error", "message": message, "data": data},
        headers=headers,
    )


def safe_join(root: Path, rel: str) -> Path:
    p = (root / rel).resolve()
    root = root.resolve()
    try:
        p.relative_to(root)
    except ValueError:
        raise_api_error("Invalid path", status_code=400)
    return p


@asynccontextmanager
async def lifespan(app_obj: FastAPI):  # type: ignore[override]
    logger.info("[startup] MEDIA_ROOT=%s", STATE.get("root"))
    _load_config()
    try:
        _ensure_db()
    except (OSError, sqlite3.Error) as e:
        # Routes retry on first use; the server still comes up.
        logger.warning("[startup] database not ready: %s", e)
    yield


app = FastAPI(title="Home Reel", version="1.0", lifespan=lifespan)
api = APIRouter(prefix=API_PREFIX)


############################
# Item storage
############################

class Resolution(BaseModel):  # type: ignore
    quality: str = Field(..., min_length=1)
    path: str = Field(..., min_length=1)


class ItemCreate(BaseModel):  # type: ignore
    title: str = Field(..., min_length=1)
    video_path: str = Field(..., min_length=1)
    thumbnail_path: Optional[str] = None
    duration: Optional[float] = Field(None, ge=0)
    resolutions: List[Resolution] = Field(default_factory=list)


def get_item(item_id: str) -> Optional[Dict[str, Any]]:
    _ensure_db()
    with db.session() as conn:
        return db.fetch_item(conn, item_id)


def list_items() -> List[Dict[str, Any]]:
    _ensure_db()
    with db.session() as conn:
        return db.fetch_items(conn)


def create_item(payload: ItemCreate) -> Dict[str, Any]:
    """Register a file already present under MEDIA_ROOT."""
    root = Path(STATE["root"])
    video = safe_join(root, payload.video_path)
    if not video.is_file():
        raise_api_error(f"Video file not found: {payload.video_path}", status_code=400)
    for res in payload.resolutions:
        if not safe_join(root, res.path).is_file():
            raise_api_error(f"Variant file not found: {res.path}", status_code=400)
    if payload.thumbnail_path:
        safe_join(root, payload.thumbnail_path)
    _ensure_db()
    with db.session() as conn:
        return db.insert_item(
            conn,
            uuid.uuid4().hex,
            title=payload.title.strip(),
            video_path=payload.video_path,
            file_size=video.stat().st_size,
            thumbnail_path=payload.thumbnail_path,
            duration=payload.duration,
            resolutions=[(r.quality, r.path) for r in payload.resolutions],
        )


def increment_views(item_id: str) -> Optional[int]:
    """Atomically bump the view counter; None when the item does not exist."""
    _ensure_db()
    with db.session() as conn:
        return db.bump_views(conn, item_id)


def resolve_variant(item: Dict[str, Any], quality: Optional[str]) -> str:
    """Return the stored path for a quality label, falling back to the primary file."""
    if quality:
        for res in item.get("resolutions") or []:
            if res.get("quality") == quality:
                return res["path"]
    return item["video_path"]


############################
# Range serving
############################

def parse_range(range_header: str, file_size: int) -> tuple[int, int]:
    """Parse a single ``bytes=<start>-<end>`` spec into an inclusive span.

    ``end`` defaults to the last byte and is clamped to it; a suffix spec
    (``bytes=-500``) selects the final bytes. Raises ValueError when the
    header is malformed or the span cannot be satisfied.
    """
    unit, _, rng = range_header.strip().partition("=")
    if unit.strip().lower() != "bytes" or "," in rng:
        raise ValueError(f"unsupported range: {range_header}")
    start_s, sep, end_s = rng.strip().partition("-")
    if not sep:
        raise ValueError(f"malformed range: {range_header}")
    if not start_s:
        suffix = int(end_s)
        if suffix <= 0:
            raise ValueError(f"empty suffix range: {range_header}")
        return max(0, file_size - suffix), file_size - 1
    start = int(start_s)
    end = int(end_s) if end_s else file_size - 1
    end = min(end, file_size - 1)
    if start < 0 or start > end:
        raise ValueError(f"unsatisfiable range: {range_header}")
    return start, end


def _serve_range(request: Request, file_path: Path, media_type: str, chunk_size: int = 1024 * 1024):
    if not file_path.exists() or not file_path.is_file():
        raise_api_error("Not found", status_code=404)
    file_size = file_path.stat().st_size
    range_header = request.headers.get("range")

    def file_chunk(start: int, end: int) -> Iterator[bytes]:
        with open(file_path, "rb") as f:
            f.seek(start)
            remaining = end - start + 1
            while remaining > 0:
                data = f.read(min(chunk_size, remaining))
                if not data:
                    break
                remaining -= len(data)
                yield data

    if range_header:
        try:
            start, end = parse_range(range_header, file_size)
        except ValueError:
            raise_api_error(
                "Invalid Range",
                status_code=416,
                headers={"Content-Range": f"bytes */{file_size}"},
            )
        headers = {
            "Content-Range": f"bytes {start}-{end}/{file_size}",
            "Accept-Ranges": "bytes",
            "Content-Length": str(end - start + 1),
            "Content-Type": media_type,
        }
        logger.debug("[range][206] path=%s %d-%d/%d", file_path.name, start, end, file_size)
        return StreamingResponse(file_chunk(start, end), status_code=206, headers=headers)
    headers = {
        "Accept-Ranges": "bytes",
        "Content-Type": media_type,
        "Content-Length": str(file_size),
    }
    logger.debug("[range][200] path=%s full bytes size=%d", file_path.name, file_size)
    return StreamingResponse(file_chunk(0, file_size - 1), status_code=200, headers=headers)


############################
# Routes
############################

@api.get("/health")
def health():
    _ensure_db()
    with db.session() as conn:
        count = db.count_items(conn)
    return {"ok": True, "root": str(STATE.get("root")), "items": count}


@api.get("/config")
def config_info():
    return {
        "root": str(STATE.get("root")),
        "db_path": str(STATE.get("db_path") or _default_db_path()),
        "config_path": STATE.get("config_path"),
        "api_prefix": API_PREFIX,
        "env": {k: os.environ.get(k) for k in ["MEDIA_ROOT", "MEDIA_DB", "MEDIA_CONFIG"]},
        "raw": STATE.get("config") or {},
        "defaults": _config_defaults(),
        "effective": _effective_config(),
        "version": app.version,
    }


@api.get("/items")
def items_list():
    items = list_items()
    return api_success({"items": items, "total": len(items)})


@api.post("/items")
def items_create(payload: dict = Body(default_factory=dict)):
    try:
        body = ItemCreate(**payload)
    except ValidationError as e:
        raise_api_error(f"invalid payload: {e}")
    item = create_item(body)
    logger.info("[items] registered %s (%s)", item["id"], item["video_path"])
    return api_success(item, message="Created", status_code=201)


@api.get("/items/{item_id}")
def items_get(item_id: str):
    item = get_item(item_id)
    if item is None:
        raise_api_error("Item not found", status_code=404)
    return api_success(item)


@api.patch("/items/{item_id}/view")
def items_track_view(item_id: str):
    views = increment_views(item_id)
    if views is None:
        raise_api_error("Item not found", status_code=404)
    return api_success({"id": item_id, "views": views})


@api.get("/items/{item_id}/thumbnail")
def items_thumbnail(item_id: str):
    item = get_item(item_id)
    if item is None:
        raise_api_error("Item not found", status_code=404)
    rel = item.get("thumbnail_path")
    if not rel:
        raise_api_error("Thumbnail not found", status_code=404)
    p = safe_join(STATE["root"], rel)
    if not p.is_file():
        raise_api_error("Thumbnail not found", status_code=404)
    return FileResponse(str(p))


@api.get("/items/{item_id}/stream")
def items_stream(item_id: str, request: Request, quality: Optional[str] = Query(default=None)):
    item = get_item(item_id)
    if item is None:
        raise_api_error("Item not found", status_code=404)
    rel = resolve_variant(item, quality)
    file_path = safe_join(STATE["root"], rel)
    if not file_path.is_file():
        logger.warning("[stream] item %s points at missing file %s", item_id, rel)
        raise_api_error("Video file not found", status_code=404)
    cfg = _effective_config()
    resp = _serve_range(request, file_path, VIDEO_MEDIA_TYPE, chunk_size=cfg["stream_chunk_size"])
    # Counted per request, so seeks that reopen the stream count again.
    if cfg["count_stream_views"]:
        increment_views(item_id)
    logger.debug("[stream] GET item=%s quality=%s status=%s", item_id, quality, resp.status_code)
    return resp


app.include_router(api)


if __name__ == "__main__":  # pragma: no cover
    try:
        import uvicorn  # type: ignore
    except ImportError:
        sys.stderr.write("[app] Missing dependency: uvicorn. Install with: pip install uvicorn\n")
        sys.exit(1)
    # Require an explicit opt-in to start the server when running this file directly
    run_flag = os.environ.get("RUN_SERVER")
    if str(run_flag).strip().lower() not in {"1", "true", "yes", "y"}:
        sys.stderr.write("[app] Not starting server. To run directly, set RUN_SERVER=1.\n")
        sys.exit(0)
    logging.basicConfig(level=os.environ.get("LOG_LEVEL", "INFO").upper())
    host = os.environ.get("HOST", "127.0.0.1")
    try:
        port = int(os.environ.get("PORT", "9999") or 9999)
    except ValueError:
        port = 9999
    uvicorn.run("app:app", host=host, port=port)
