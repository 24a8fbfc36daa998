"""
Video Metadata Schemas - Validated shapes for the ai_metadata column
"""

from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field

from vidifolio.config.constants import STYLE_DESCRIPTIONS
from vidifolio.models.video import VideoStatus


class VisualStyle(str, Enum):
    """Visual styles a client may request"""

    TECH = "tech"
    CYBER = "cyber"
    ECO = "eco"

    @property
    def description(self) -> str:
        """Style description used in prompts"""
        return STYLE_DESCRIPTIONS[self.value]


class SegmentRecord(BaseModel):
    """One provider call within a generation job"""

    step: int
    operation_id: str
    duration_s: int
    status: str = "completed"
    provider_url: Optional[str] = None
    mock: bool = False


class ProcessingMetadata(BaseModel):
    """Metadata skeleton written at submit time"""

    # Client-editable keys (e.g. a display title) are carried through
    model_config = ConfigDict(extra="allow")

    model: str
    visual_style: VisualStyle
    style_description: str
    strategy: str
    segments: List[SegmentRecord] = Field(default_factory=list)
    extension_count: int = 0
    # Client-editable; filled from the storyboard on completion when unset
    prompt: Optional[str] = None


class CompletedMetadata(ProcessingMetadata):
    """Metadata of a job that produced a video"""

    prompt: str
    prompt_source: Literal["llm", "fallback", "none"] = "fallback"
    total_duration_s: int
    mock: bool = False


class FailedMetadata(ProcessingMetadata):
    """Metadata of a job that ended in FAILED"""

    error: str
    error_code: str = "UNKNOWN_ERROR"


# Keys owned by the generation pipeline; clients may only patch the prompt
SYSTEM_METADATA_KEYS = frozenset(
    (set(CompletedMetadata.model_fields) | set(FailedMetadata.model_fields)) - {"prompt"}
)

JobMetadata = Union[ProcessingMetadata, CompletedMetadata, FailedMetadata]

_METADATA_BY_STATUS = {
    VideoStatus.PROCESSING.value: ProcessingMetadata,
    VideoStatus.COMPLETED.value: CompletedMetadata,
    VideoStatus.FAILED.value: FailedMetadata,
}


def parse_job_metadata(status: str, data: Dict[str, Any]) -> JobMetadata:
    """
    Validate raw ai_metadata against the shape required by the status

    Args:
        status: Video status value
        data: Raw ai_metadata dict

    Returns:
        Metadata model for the status

    Raises:
        pydantic.ValidationError: If data does not match the status shape
    """
    return _METADATA_BY_STATUS[status].model_validate(data)


def dump_metadata(metadata: JobMetadata) -> Dict[str, Any]:
    """Serialize metadata for the JSON column"""
    return metadata.model_dump(mode="json", exclude_none=True)
