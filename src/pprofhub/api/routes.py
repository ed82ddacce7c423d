# api/routes.py
import base64
import pathlib
import tempfile
import time
from functools import lru_cache
from typing import List, Optional
from urllib.parse import urlparse

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Response, UploadFile
from fastapi.concurrency import run_in_threadpool
from pydantic import ValidationError

from ..schemas import (
    CliProfileRequest, Connection, ConnectionCreate, ConnectionUpdate, FetchProfileRequest,
    Profile, ProfileCreate, ProfileSummary, ProfileType, ProfileUpdate, ToolStatus,
)
from ..services.pprof_cli import CommandNotAllowedError, PprofCli
from ..services.pprof_parser import PprofFetchError, PprofParseError, PprofParser
from ..services.summary import summarize_profile
from ..storage.memory import MemStorage, storage
from ..utils.config import get_settings
from ..utils.logger import get_logger
from .errors import format_validation_error

log = get_logger("API")

router = APIRouter()
api = APIRouter(prefix="/api")


# --------------------------------------------------------------------------- #
# Dependencies
# --------------------------------------------------------------------------- #
def get_storage() -> MemStorage:
    return storage

@lru_cache
def get_parser() -> PprofParser:
    return PprofParser()

@lru_cache
def get_cli() -> PprofCli:
    return PprofCli()


def _millis() -> int:
    return int(time.time() * 1000)

def _invalid_profile(e: ValidationError) -> HTTPException:
    return HTTPException(400, {"message": "Invalid profile data", "errors": format_validation_error(e.errors())})

def _require_profile(store: MemStorage, profile_id: int) -> Profile:
    profile = store.get_profile(profile_id)
    if profile is None:
        raise HTTPException(404, "Profile not found")
    return profile


@router.get("/healthz")
async def health_check():
    log.info("Health check request received")
    return {
        "status": "healthy",
        "service": "pprofhub",
        "version": "1.0.0"
    }


# --------------------------------------------------------------------------- #
# Profiles
# --------------------------------------------------------------------------- #
@api.get("/profiles", response_model=List[Profile])
async def list_profiles(store: MemStorage = Depends(get_storage)):
    return store.get_profiles()

@api.get("/profiles/recent", response_model=List[Profile])
async def recent_profiles(limit: Optional[int] = Query(None), store: MemStorage = Depends(get_storage)):
    limit = get_settings().recent_limit if limit is None else limit
    return store.get_recent_profiles(limit)

@api.get("/profiles/saved", response_model=List[Profile])
async def saved_profiles(store: MemStorage = Depends(get_storage)):
    return store.get_saved_profiles()

@api.get("/profiles/{profile_id}", response_model=Profile)
async def get_profile(profile_id: int, store: MemStorage = Depends(get_storage)):
    return _require_profile(store, profile_id)

@api.get("/profiles/{profile_id}/summary", response_model=ProfileSummary)
async def profile_summary(profile_id: int, store: MemStorage = Depends(get_storage)):
    return summarize_profile(_require_profile(store, profile_id))

@api.get("/profiles/{profile_id}/download")
async def download_profile(profile_id: int, store: MemStorage = Depends(get_storage)):
    profile = _require_profile(store, profile_id)
    filename = profile.original_filename.replace('"', "")
    return Response(
        content=base64.b64decode(profile.data),
        media_type="application/octet-stream",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )

@api.get("/profiles/{profile_id}/svg")
async def profile_svg(
    profile_id: int,
    store: MemStorage = Depends(get_storage),
    cli: PprofCli = Depends(get_cli),
):
    profile = _require_profile(store, profile_id)
    with tempfile.TemporaryDirectory() as tmp:
        path = pathlib.Path(tmp) / "profile.pprof"
        path.write_bytes(base64.b64decode(profile.data))
        try:
            result = await run_in_threadpool(cli.generate_flamegraph, str(path))
        except CommandNotAllowedError as e:
            raise HTTPException(503, str(e)) from e

    if not result.ok:
        log.error(f"Graph generation failed for profile {profile_id}: {result.error}")
        raise HTTPException(503, {"message": "Failed to generate graph", "error": result.error, "exitCode": result.exit_code})
    return Response(content=result.output, media_type="image/svg+xml")

@api.post("/profiles/upload", status_code=201, response_model=Profile)
async def upload_profile(
    file: Optional[UploadFile] = File(None),
    description: str = Form(""),
    profile_type: ProfileType = Form(ProfileType.CPU, alias="profileType"),
    is_saved: bool = Form(False, alias="isSaved"),
    store: MemStorage = Depends(get_storage),
    parser: PprofParser = Depends(get_parser),
):
    if file is None:
        raise HTTPException(400, "No profile file uploaded")

    original = pathlib.Path(file.filename or "").name or "profile.pprof"
    uploads = pathlib.Path(get_settings().uploads_dir)
    uploads.mkdir(parents=True, exist_ok=True)
    dest = uploads / f"pprof_{_millis()}_{original}"
    log.info(f"Upload received: {original} ({profile_type.value}) -> {dest}")

    try:
        content = await file.read()
        dest.write_bytes(content)
        metadata, data = await run_in_threadpool(parser.parse_file, dest)
        payload = ProfileCreate(
            filename=dest.name,
            original_filename=original,
            profile_type=profile_type,
            size=len(content),
            description=description,
            metadata=metadata,
            data=data,
            is_saved=is_saved,
        )
    except ValidationError as e:
        raise _invalid_profile(e) from e
    except (PprofParseError, OSError) as e:
        log.error(f"Error uploading profile: {e}")
        log.error(f"Exception type: {type(e).__name__}")
        raise HTTPException(500, "Failed to upload and parse profile") from e
    finally:
        dest.unlink(missing_ok=True)

    return store.create_profile(payload)

@api.patch("/profiles/{profile_id}", response_model=Profile)
async def update_profile(profile_id: int, body: ProfileUpdate, store: MemStorage = Depends(get_storage)):
    updated = store.update_profile(profile_id, body.model_dump(exclude_none=True))
    if updated is None:
        raise HTTPException(404, "Profile not found")
    return updated

@api.delete("/profiles/{profile_id}", status_code=204)
async def delete_profile(profile_id: int, store: MemStorage = Depends(get_storage)):
    if not store.delete_profile(profile_id):
        raise HTTPException(404, "Profile not found")
    return Response(status_code=204)


# --------------------------------------------------------------------------- #
# Connections
# --------------------------------------------------------------------------- #
@api.get("/connections", response_model=List[Connection])
async def list_connections(store: MemStorage = Depends(get_storage)):
    return store.get_connections()

@api.post("/connections", status_code=201, response_model=Connection)
async def create_connection(body: ConnectionCreate, store: MemStorage = Depends(get_storage)):
    return store.create_connection(body)

@api.get("/connections/{connection_id}", response_model=Connection)
async def get_connection(connection_id: int, store: MemStorage = Depends(get_storage)):
    connection = store.get_connection(connection_id)
    if connection is None:
        raise HTTPException(404, "Connection not found")
    return connection

@api.patch("/connections/{connection_id}", response_model=Connection)
async def update_connection(connection_id: int, body: ConnectionUpdate, store: MemStorage = Depends(get_storage)):
    updated = store.update_connection(connection_id, body.model_dump(exclude_none=True))
    if updated is None:
        raise HTTPException(404, "Connection not found")
    return updated

@api.delete("/connections/{connection_id}", status_code=204)
async def delete_connection(connection_id: int, store: MemStorage = Depends(get_storage)):
    if not store.delete_connection(connection_id):
        raise HTTPException(404, "Connection not found")
    return Response(status_code=204)


# --------------------------------------------------------------------------- #
# Remote fetch & CLI capture
# --------------------------------------------------------------------------- #
@api.post("/fetch-profile", status_code=201, response_model=Profile)
async def fetch_profile(
    body: FetchProfileRequest,
    store: MemStorage = Depends(get_storage),
    parser: PprofParser = Depends(get_parser),
):
    if body.connection_id is not None and store.get_connection(body.connection_id) is None:
        raise HTTPException(404, "Connection not found")

    try:
        metadata, data = await parser.fetch_from_url(body.url, body.profile_type.value)
    except (PprofFetchError, PprofParseError, OSError) as e:
        log.error(f"Error fetching profile from URL: {e}")
        raise HTTPException(500, "Failed to fetch and parse profile from URL") from e

    host = urlparse(body.url).hostname or "unknown"
    try:
        payload = ProfileCreate(
            filename=f"remote_{_millis()}.pprof",
            original_filename=f"remote_{host}.pprof",
            profile_type=body.profile_type,
            size=len(base64.b64decode(data)),
            description=f"Fetched from {body.url}",
            metadata=metadata,
            data=data,
        )
    except ValidationError as e:
        raise _invalid_profile(e) from e

    profile = store.create_profile(payload)
    if body.connection_id is not None:
        store.touch_connection(body.connection_id)
    return profile

@api.post("/cli-profile", status_code=201, response_model=Profile)
async def cli_profile(
    body: CliProfileRequest,
    store: MemStorage = Depends(get_storage),
    parser: PprofParser = Depends(get_parser),
    cli: PprofCli = Depends(get_cli),
):
    try:
        result = await run_in_threadpool(cli.run_command, body.command, body.args)
    except CommandNotAllowedError as e:
        raise HTTPException(400, str(e)) from e

    if not result.ok:
        log.warning(f"CLI command failed with exit code {result.exit_code}")
        raise HTTPException(400, {
            "message": "Command execution failed",
            "error": result.error,
            "exitCode": result.exit_code,
        })

    try:
        metadata, data = await run_in_threadpool(parser.parse_data, result.output)
        payload = ProfileCreate(
            filename=f"cli_{_millis()}.pprof",
            original_filename="cli_output.pprof",
            profile_type=body.profile_type,
            size=len(result.output),
            description=f"Generated from CLI: {body.command} {' '.join(body.args)}".rstrip(),
            metadata=metadata,
            data=data,
        )
    except ValidationError as e:
        raise _invalid_profile(e) from e
    except (PprofParseError, OSError) as e:
        log.error(f"Error generating profile from CLI: {e}")
        raise HTTPException(500, "Failed to generate and parse profile from CLI") from e

    return store.create_profile(payload)

@api.get("/tools", response_model=ToolStatus)
async def tools(cli: PprofCli = Depends(get_cli)):
    return ToolStatus(**await run_in_threadpool(cli.check_tools))


router.include_router(api)
