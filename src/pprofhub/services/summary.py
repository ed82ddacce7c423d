# services/summary.py
from datetime import datetime
from typing import Optional
from pydantic import ValidationError
from ..schemas import Profile, ProfileSummary, SummaryFunction, TopFunction
from ..utils.formatting import (
    format_bytes, format_time, function_id, profile_type_color, profile_type_name, relative_time,
)
from ..utils.logger import get_logger

log = get_logger("Summary")

NOT_AVAILABLE = "N/A"


def summarize_profile(profile: Profile, now: Optional[datetime] = None) -> ProfileSummary:
    """Turn the opaque metadata bag into labelled, display-ready values."""
    metadata = profile.metadata or {}

    functions = []
    for raw in metadata.get("topFunctions") or []:
        try:
            fn = TopFunction.model_validate(raw)
        except ValidationError as e:
            log.warning(f"Skipping malformed top function in profile {profile.id}: {e.error_count()} errors")
            continue
        functions.append(SummaryFunction(**fn.model_dump(), function_id=function_id(fn.function_name)))

    duration = metadata.get("duration")
    total_time = metadata.get("totalTime")
    sample_count = metadata.get("sampleCount")

    return ProfileSummary(
        id=profile.id,
        title=profile.original_filename,
        profile_type=profile.profile_type,
        type_name=profile_type_name(profile.profile_type),
        type_color=profile_type_color(profile.profile_type),
        size_label=format_bytes(profile.size),
        uploaded_label=relative_time(profile.uploaded_at, now),
        duration_label=format_time(duration) if isinstance(duration, (int, float)) else NOT_AVAILABLE,
        total_time_label=format_time(total_time) if isinstance(total_time, (int, float)) else NOT_AVAILABLE,
        sample_count=sample_count if isinstance(sample_count, int) else None,
        function_count=len(functions),
        top_functions=functions,
        error=metadata.get("error"),
    )
