"""
Job Manager - Video generation job lifecycle
"""

import asyncio
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional
from pydantic import ValidationError
from sqlalchemy.orm import Session

from vidifolio.config.settings import settings
from vidifolio.core.dashscope_adapter import DashScopeVideoProvider, GenerationProvider
from vidifolio.core.errors import (
    InvalidArgument,
    NotFoundOrUnauthorized,
    OperationTimeoutError,
    UpstreamFailure,
)
from vidifolio.core.prompt_deriver import PromptDeriver
from vidifolio.core.strategies import (
    GenerationResult,
    GenerationRun,
    GenerationStrategy,
    PortfolioInput,
    build_strategy,
)
from vidifolio.models import SessionLocal
from vidifolio.models.metadata import (
    SYSTEM_METADATA_KEYS,
    CompletedMetadata,
    FailedMetadata,
    ProcessingMetadata,
    SegmentRecord,
    VisualStyle,
    dump_metadata,
    parse_job_metadata,
)
from vidifolio.models.video import VideoModel, VideoStatus
from vidifolio.services.asset_storage import AssetStorage
from vidifolio.services.error_classifier import ErrorClassifier
from vidifolio.services.job_state import is_terminal_state, transition_state
from vidifolio.services.observability import (
    logger,
    log_failure_classification,
    log_generation_duration,
)
from vidifolio.services.storage import PortfolioDB, VideoDB
from vidifolio.services.video_downloader import VideoDownloader
from vidifolio.workers.dispatcher import build_dispatcher


class JobManager:
    """
    Create generation jobs, run their pipelines and persist terminal state

    A job's record is committed in PROCESSING before its pipeline is
    dispatched. The pipeline owns the record from then on and always ends it
    in COMPLETED or FAILED.
    """

    def __init__(
        self,
        session_factory: Optional[Callable[[], Session]] = None,
        provider: Optional[GenerationProvider] = None,
        prompt_deriver: Optional[PromptDeriver] = None,
        asset_storage: Optional[AssetStorage] = None,
        downloader: Optional[VideoDownloader] = None,
        strategy: Optional[GenerationStrategy] = None,
        dispatcher=None,
        error_classifier: Optional[ErrorClassifier] = None,
        pipeline_timeout_s: Optional[float] = None,
    ):
        """Initialize job manager"""
        self.session_factory = session_factory or SessionLocal
        self.provider = provider or DashScopeVideoProvider()
        self.prompt_deriver = prompt_deriver or PromptDeriver()
        self.asset_storage = asset_storage or AssetStorage()
        self.downloader = downloader or VideoDownloader(self.asset_storage)
        self.strategy = strategy or build_strategy(
            provider=self.provider,
            prompt_deriver=self.prompt_deriver,
            asset_storage=self.asset_storage,
        )
        self.dispatcher = dispatcher or build_dispatcher(self.run_pipeline)
        self.error_classifier = error_classifier or ErrorClassifier()
        self.pipeline_timeout_s = (
            settings.pipeline_timeout_s if pipeline_timeout_s is None else pipeline_timeout_s
        )

    async def submit(
        self,
        db: Session,
        user_id: str,
        portfolio_id: str,
        visual_style: str,
    ) -> VideoModel:
        """
        Create a PROCESSING job and dispatch its pipeline

        Args:
            db: Database session
            user_id: Caller's user ID
            portfolio_id: Portfolio used as generation input
            visual_style: Requested visual style value

        Returns:
            VideoModel in PROCESSING

        Raises:
            InvalidArgument: If visual_style is not a known style
            NotFoundOrUnauthorized: If the portfolio is missing or not owned by the caller
            UpstreamFailure: If the pipeline could not be dispatched
        """
        try:
            style = VisualStyle(visual_style)
        except ValueError:
            allowed = ", ".join(s.value for s in VisualStyle)
            raise InvalidArgument(f"Invalid visual_style '{visual_style}'. Allowed: {allowed}")

        portfolio = PortfolioDB.get_owned(db, portfolio_id, user_id)
        if not portfolio:
            raise NotFoundOrUnauthorized("Portfolio not found or unauthorized.")

        metadata = ProcessingMetadata(
            model=self.strategy.model,
            visual_style=style,
            style_description=style.description,
            strategy=self.strategy.name,
        )
        video = VideoDB.create_video(
            db,
            user_id=user_id,
            portfolio_id=portfolio.id,
            ai_metadata=dump_metadata(metadata),
        )

        try:
            task_id = self.dispatcher.dispatch(video.id)
        except Exception as e:
            logger.error("video_dispatch_failed", video_id=video.id, error=str(e))
            failed = dict(video.ai_metadata)
            failed.update(error=f"Could not start generation: {e}", error_code="DISPATCH_FAILED")
            transition_state(db, video.id, VideoStatus.FAILED.value, ai_metadata=failed)
            raise UpstreamFailure("Could not start video generation.") from e

        logger.info(
            "video_submitted",
            video_id=video.id,
            user_id=user_id,
            portfolio_id=portfolio.id,
            visual_style=style.value,
            strategy=self.strategy.name,
            task_id=task_id,
        )
        return video

    def get_video(self, db: Session, video_id: str, user_id: str) -> VideoModel:
        """
        Get a video owned by the caller

        Raises:
            NotFoundOrUnauthorized: If the video is missing or owned by someone else
        """
        video = VideoDB.get_owned(db, video_id, user_id)
        if not video:
            raise NotFoundOrUnauthorized("Video not found or unauthorized")
        return video

    def list_videos(self, db: Session, user_id: str) -> List[VideoModel]:
        return VideoDB.list_videos(db, user_id)

    def update_video(
        self,
        db: Session,
        video_id: str,
        user_id: str,
        ai_metadata_patch: Dict[str, Any],
    ) -> VideoModel:
        """
        Merge client-editable keys into a video's ai_metadata

        Args:
            db: Database session
            video_id: Video ID
            user_id: Caller's user ID
            ai_metadata_patch: Keys to set

        Returns:
            Updated VideoModel

        Raises:
            NotFoundOrUnauthorized: If the video is missing or owned by someone else
            InvalidArgument: If the patch touches pipeline-owned keys
        """
        video = self.get_video(db, video_id, user_id)

        protected = sorted(set(ai_metadata_patch) & SYSTEM_METADATA_KEYS)
        if protected:
            raise InvalidArgument(f"Fields cannot be edited: {', '.join(protected)}")

        merged = dict(video.ai_metadata or {})
        merged.update(ai_metadata_patch)
        try:
            parse_job_metadata(video.status, merged)
        except ValidationError as e:
            raise InvalidArgument(f"Invalid ai_metadata: {e.errors()[0]['msg']}")

        updated = VideoDB.update_video(db, video.id, ai_metadata=merged)
        logger.info("video_updated", video_id=video.id, keys=sorted(ai_metadata_patch))
        return updated

    async def run_pipeline(self, video_id: str) -> None:
        """
        Generate the video for a PROCESSING job and persist the outcome

        Never raises. Jobs already in a terminal state are left untouched,
        so redelivered tasks are harmless.

        Args:
            video_id: Video ID
        """
        db = self.session_factory()
        run: Optional[GenerationRun] = None
        start_time = datetime.utcnow()
        try:
            video = VideoDB.get_video(db, video_id)
            if not video:
                logger.warning("pipeline_video_missing", video_id=video_id)
                return
            if is_terminal_state(video.status):
                logger.info("pipeline_skipped_terminal", video_id=video_id, status=video.status)
                return

            try:
                metadata = parse_job_metadata(video.status, video.ai_metadata or {})
                portfolio = PortfolioDB.get_owned(db, video.portfolio_id, video.user_id)
                if not portfolio:
                    raise NotFoundOrUnauthorized("Portfolio not found or unauthorized.")

                run = GenerationRun(
                    video_id=video.id,
                    portfolio=PortfolioInput(
                        id=portfolio.id,
                        title=portfolio.title,
                        raw_data=portfolio.raw_data,
                        pdf_path=portfolio.pdf_path,
                    ),
                    visual_style=metadata.visual_style,
                )
                logger.info(
                    "pipeline_started",
                    video_id=video.id,
                    strategy=self.strategy.name,
                    visual_style=metadata.visual_style.value,
                )

                try:
                    result, video_url = await asyncio.wait_for(
                        self._generate(video, run),
                        timeout=self.pipeline_timeout_s,
                    )
                except asyncio.TimeoutError:
                    raise OperationTimeoutError(f"pipeline-{video.id}", self.pipeline_timeout_s)
                self._complete(db, video, run, result, video_url)

            except Exception as e:
                self._fail(db, video_id, run.segments if run else [], e)
                return

            log_generation_duration(
                video_id=video_id,
                duration_s=(datetime.utcnow() - start_time).total_seconds(),
                segment_count=len(run.segments),
                strategy=self.strategy.name,
            )

        except Exception:
            logger.exception("pipeline_persist_failed", video_id=video_id)
        finally:
            db.close()

    async def _generate(self, video: VideoModel, run: GenerationRun):
        result = await self.strategy.generate(run)
        video_url = await self._store_result(video, result)
        return result, video_url

    async def _store_result(self, video: VideoModel, result: GenerationResult) -> str:
        """Copy the provider artifact into the video bucket unless already durable"""
        if result.stored:
            return result.video_url
        path = AssetStorage.build_video_path(video.user_id, video.id)
        return await self.downloader.download_to_storage(
            result.video_url,
            path,
            bucket=settings.video_bucket,
        )

    def _complete(
        self,
        db: Session,
        video: VideoModel,
        run: GenerationRun,
        result: GenerationResult,
        video_url: str,
    ) -> None:
        # Pick up client edits made while the job was running
        db.refresh(video)
        metadata = dict(video.ai_metadata or {})
        metadata.update(
            segments=_dump_segments(run.segments),
            extension_count=result.extension_count,
            prompt_source=result.prompt_source,
            total_duration_s=result.total_duration_s,
            mock=result.mock,
        )
        # A prompt the client set during generation is kept
        if not metadata.get("prompt"):
            metadata["prompt"] = result.prompt

        transition_state(
            db,
            video.id,
            VideoStatus.COMPLETED.value,
            video_url=video_url,
            ai_metadata=dump_metadata(CompletedMetadata.model_validate(metadata)),
        )
        logger.info("video_completed", video_id=video.id, video_url=video_url)

    def _fail(
        self,
        db: Session,
        video_id: str,
        segments: List[SegmentRecord],
        error: Exception,
    ) -> None:
        db.rollback()
        classification = self.error_classifier.classify(error)
        logger.error(
            "pipeline_failed",
            video_id=video_id,
            error=str(error),
            error_type=type(error).__name__,
        )

        video = VideoDB.get_video(db, video_id)
        if not video or is_terminal_state(video.status):
            return

        metadata = dict(video.ai_metadata or {})
        metadata.update(
            segments=_dump_segments(segments),
            error=classification["message"],
            error_code=classification["code"],
        )
        try:
            metadata = dump_metadata(FailedMetadata.model_validate(metadata))
        except ValidationError:
            # Stored skeleton was unreadable; persist the raw merge
            pass

        transition_state(db, video_id, VideoStatus.FAILED.value, ai_metadata=metadata)
        log_failure_classification(
            error_code=classification["code"],
            retryable=classification["retryable"],
            video_id=video_id,
        )

    async def close(self) -> None:
        """Release HTTP clients"""
        await self.downloader.close()

    async def shutdown(self) -> None:
        """Wait for dispatched pipelines, then release HTTP clients"""
        await self.dispatcher.drain()
        await self.close()


def _dump_segments(segments: List[SegmentRecord]) -> List[Dict[str, Any]]:
    return [segment.model_dump(mode="json", exclude_none=True) for segment in segments]
