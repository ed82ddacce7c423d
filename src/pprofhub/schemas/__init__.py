"""
pprofhub.schemas  •  Pydantic-v2 record and request contracts
-------------------------------------------------------------
These classes are the shapes exchanged between the FastAPI layer, the
in-memory store and the pprof services.  Field names are snake_case in
Python and camelCase on the wire; both spellings are accepted on input.
"""
from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional
from datetime import datetime, timezone

from pydantic import BaseModel, Field, ConfigDict, constr
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


# --------------------------------------------------------------------------- #
# 🔸 Enumerations
# --------------------------------------------------------------------------- #
class ProfileType(str, Enum):
    CPU           = "cpu"
    HEAP          = "heap"
    BLOCK         = "block"
    MUTEX         = "mutex"
    GOROUTINE     = "goroutine"
    THREADCREATE  = "threadcreate"


# --------------------------------------------------------------------------- #
# 🔸 Shared base
# --------------------------------------------------------------------------- #
class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --------------------------------------------------------------------------- #
# 🔸 Metadata pieces scraped from `go tool pprof`
# --------------------------------------------------------------------------- #
class TopFunction(_CamelModel):
    """One row of the `-top` table. Values are kept as pprof prints them."""
    flat: str
    flat_percent: str
    sum_percent: Optional[str]               = None
    cum: str
    cum_percent: str
    function_name: str


# --------------------------------------------------------------------------- #
# 🔸 Profile records
# --------------------------------------------------------------------------- #
class ProfileCreate(_CamelModel):
    filename: constr(min_length=1)
    original_filename: constr(min_length=1)
    profile_type: ProfileType                = ProfileType.CPU
    size: int                                = Field(..., ge=0, description="Size of the raw capture in bytes")
    description: Optional[str]               = None
    metadata: Dict[str, Any]                 = Field(
        default_factory=dict,
        description="duration, totalTime, sampleCount, period, topFunctions, error",
    )
    is_saved: bool                           = False
    data: str                                = Field(..., description="Raw capture, base64 encoded")


class Profile(ProfileCreate):
    id: int
    uploaded_at: datetime                    = Field(default_factory=utcnow)


class ProfileUpdate(_CamelModel):
    """Only these two fields of a stored profile are user-editable."""
    description: Optional[str]               = None
    is_saved: Optional[bool]                 = None


# --------------------------------------------------------------------------- #
# 🔸 Connections to remote /debug/pprof endpoints
# --------------------------------------------------------------------------- #
class ConnectionCreate(_CamelModel):
    name: constr(strip_whitespace=True, min_length=1)
    url: constr(strip_whitespace=True, min_length=1)
    is_active: bool                          = False


class Connection(ConnectionCreate):
    id: int
    last_connected: Optional[datetime]       = None


class ConnectionUpdate(_CamelModel):
    name: Optional[constr(strip_whitespace=True, min_length=1)] = None
    url: Optional[constr(strip_whitespace=True, min_length=1)]  = None
    is_active: Optional[bool]                = None


# --------------------------------------------------------------------------- #
# 🔸 Inbound requests
# --------------------------------------------------------------------------- #
class FetchProfileRequest(_CamelModel):
    url: constr(strip_whitespace=True, min_length=1)
    profile_type: ProfileType                = ProfileType.CPU
    connection_id: Optional[int]             = Field(
        None, description="Connection to mark as connected once the fetch succeeds"
    )


class CliProfileRequest(_CamelModel):
    command: constr(strip_whitespace=True, min_length=1)
    args: List[str]                          = Field(default_factory=list)
    profile_type: ProfileType                = ProfileType.CPU


# --------------------------------------------------------------------------- #
# 🔸 Outbound views
# --------------------------------------------------------------------------- #
class SummaryFunction(TopFunction):
    function_id: str


class ProfileSummary(_CamelModel):
    """Human-readable digest of a stored profile."""
    id: int
    title: str
    profile_type: ProfileType
    type_name: str
    type_color: str
    size_label: str
    uploaded_label: str
    duration_label: str
    total_time_label: str
    sample_count: Optional[int]              = None
    function_count: int                      = 0
    top_functions: List[SummaryFunction]     = Field(default_factory=list)
    error: Optional[str]                     = None


class ToolStatus(_CamelModel):
    go: bool
    pprof: bool
