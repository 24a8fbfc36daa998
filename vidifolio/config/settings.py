"""
Application Settings Configuration
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, model_validator
from typing import List, Literal
import os

from vidifolio.config.constants import DOWNLOAD_TIMEOUT_S, JOB_TIMEOUT_MINUTES, SEGMENTED_PART_COUNT


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # DashScope API Key for video generation
    dashscope_api_key: str = Field(default="")

    # Text-to-video model and the model used for continuing an existing clip
    video_model: str = Field(default="wan2.6-t2v")
    extension_model: str = Field(default="wan2.1-vace-plus")
    video_size: str = Field(default="1280*720")

    # Generation strategy: "segmented", "single_shot" or "mock"
    generation_strategy: Literal["segmented", "single_shot", "mock"] = Field(default="segmented")

    # Segment durations for the segmented strategy (sum is the target length)
    segment_durations_s: List[int] = Field(default_factory=lambda: [8, 8, 4])

    # Provider operation polling
    poll_interval_s: float = Field(default=5.0)
    operation_timeout_s: float = Field(default=JOB_TIMEOUT_MINUTES * 60)

    # Mock strategy
    mock_delay_s: float = Field(default=15.0)
    mock_video_url: str = Field(
        default="https://storage.vidifolio.app/samples/portfolio_showcase.mp4"
    )

    # LLM used for storyboard derivation (OpenAI-compatible endpoint)
    llm_api_key: str = Field(default="")
    llm_base_url: str = Field(default="https://api-inference.modelscope.cn/v1")
    llm_model: str = Field(default="Qwen/Qwen3-235B-A22B-Instruct-2507")
    llm_timeout_s: float = Field(default=60.0)

    # Identity provider
    clerk_secret_key: str = Field(default="")
    clerk_jwks_url: str = Field(default="")
    jwt_algorithms: List[str] = Field(default_factory=lambda: ["RS256"])

    # Database
    database_url: str = Field(default="sqlite:///./data/vidifolio.db")

    # Background work
    task_backend: Literal["inline", "rq"] = Field(default="inline")
    redis_url: str = Field(default="redis://localhost:6379/0")
    rq_queue_name: str = Field(default="vidifolio-generation")

    # Blob storage
    static_root: str = Field(default="/var/lib/vidifolio/static")
    static_url_prefix: str = "/static"
    public_base_url: str = Field(default="http://localhost:8000")
    portfolio_bucket: str = "portfolios"
    video_bucket: str = "videos"
    blob_signing_secret: str = Field(default="change-me")
    signed_url_ttl_s: int = Field(default=3600)

    # CORS
    allowed_origins: List[str] = Field(
        default_factory=lambda: [
            "http://localhost:5173",
            "https://vidifolio.vercel.app",
        ]
    )

    # Application
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")

    @model_validator(mode="after")
    def validate_segment_durations(self) -> "Settings":
        """Segmented generation needs exactly one positive duration per chained call"""
        if any(duration <= 0 for duration in self.segment_durations_s):
            raise ValueError("segment_durations_s must contain positive durations")
        if (
            self.generation_strategy == "segmented"
            and len(self.segment_durations_s) != SEGMENTED_PART_COUNT
        ):
            raise ValueError(
                f"segment_durations_s must have {SEGMENTED_PART_COUNT} entries "
                f"for the segmented strategy, got {len(self.segment_durations_s)}"
            )
        return self

    @property
    def video_dir(self) -> str:
        return os.path.join(self.static_root, self.video_bucket)

    @property
    def target_duration_s(self) -> int:
        return sum(self.segment_durations_s)

    @property
    def pipeline_timeout_s(self) -> float:
        """Deadline for one pipeline run: derivation, every provider operation and the download"""
        operations = len(self.segment_durations_s)
        return (
            self.llm_timeout_s
            + operations * (self.operation_timeout_s + self.poll_interval_s)
            + DOWNLOAD_TIMEOUT_S
        )


# Global settings instance
settings = Settings()
