"""
Generation Strategies - Ways of turning a portfolio into a provider video
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from vidifolio.config.settings import settings
from vidifolio.core.dashscope_adapter import (
    GenerationProvider,
    SegmentRequest,
    wait_for_operation,
)
from vidifolio.core.errors import BlobStorageError
from vidifolio.core.prompt_deriver import PromptDeriver, Storyboard
from vidifolio.models.metadata import SegmentRecord, VisualStyle
from vidifolio.services.asset_storage import AssetStorage
from vidifolio.services.observability import logger


@dataclass
class PortfolioInput:
    """Snapshot of the portfolio fields the pipeline reads"""

    id: str
    title: str
    raw_data: Optional[Dict[str, Any]] = None
    pdf_path: Optional[str] = None


@dataclass
class GenerationResult:
    """Outcome of a successful strategy run"""

    video_url: str
    prompt: str
    prompt_source: str
    total_duration_s: int
    extension_count: int = 0
    # True when video_url is already a durable public URL
    stored: bool = False
    mock: bool = False


@dataclass
class GenerationRun:
    """Per-job inputs plus the segments completed so far"""

    video_id: str
    portfolio: PortfolioInput
    visual_style: VisualStyle
    segments: List[SegmentRecord] = field(default_factory=list)


class GenerationStrategy:
    """
    Base strategy. Subclasses append a SegmentRecord to run.segments as each
    provider operation completes so partial progress survives a failure.
    """

    name = "base"

    def __init__(
        self,
        provider: Optional[GenerationProvider] = None,
        prompt_deriver: Optional[PromptDeriver] = None,
        asset_storage: Optional[AssetStorage] = None,
    ):
        self.provider = provider
        self.prompt_deriver = prompt_deriver
        self.asset_storage = asset_storage

    @property
    def model(self) -> str:
        return settings.video_model

    async def generate(self, run: GenerationRun) -> GenerationResult:
        raise NotImplementedError

    def _document_url(self, portfolio: PortfolioInput) -> Optional[str]:
        if not portfolio.pdf_path or self.asset_storage is None:
            return None
        try:
            return self.asset_storage.create_signed_url(settings.portfolio_bucket, portfolio.pdf_path)
        except BlobStorageError as e:
            logger.warning(
                "portfolio_document_unavailable",
                portfolio_id=portfolio.id,
                error=str(e),
            )
            return None

    async def _derive_storyboard(self, run: GenerationRun) -> Storyboard:
        return await self.prompt_deriver.derive(
            title=run.portfolio.title,
            style_description=run.visual_style.description,
            raw_data=run.portfolio.raw_data,
            document_url=self._document_url(run.portfolio),
        )

    async def _generate_segment(
        self,
        run: GenerationRun,
        step: int,
        prompt: str,
        duration: int,
        reference_video_url: Optional[str] = None,
    ) -> SegmentRecord:
        """Submit one segment and wait until its operation is done"""
        operation_id = await self.provider.submit(
            SegmentRequest(
                prompt=prompt,
                duration=duration,
                size=settings.video_size,
                reference_video_url=reference_video_url,
            )
        )
        logger.info(
            "segment_started",
            video_id=run.video_id,
            step=step,
            operation_id=operation_id,
            duration_s=duration,
        )

        status = await wait_for_operation(self.provider, operation_id)

        segment = SegmentRecord(
            step=step,
            operation_id=operation_id,
            duration_s=duration,
            status="completed",
            provider_url=status.video_url,
        )
        run.segments.append(segment)
        return segment


class SingleShotStrategy(GenerationStrategy):
    """One provider call for the full target duration"""

    name = "single_shot"

    async def generate(self, run: GenerationRun) -> GenerationResult:
        storyboard = await self._derive_storyboard(run)
        prompt = storyboard.combined
        duration = settings.target_duration_s

        segment = await self._generate_segment(run, step=1, prompt=prompt, duration=duration)

        return GenerationResult(
            video_url=segment.provider_url,
            prompt=prompt,
            prompt_source=storyboard.source,
            total_duration_s=duration,
            extension_count=0,
        )


class SegmentedExtensionStrategy(GenerationStrategy):
    """
    Builds one continuous video from sequential segments; every segment after
    the first continues the previous segment's output
    """

    name = "segmented"

    @property
    def model(self) -> str:
        return f"{settings.video_model}+{settings.extension_model}"

    async def generate(self, run: GenerationRun) -> GenerationResult:
        storyboard = await self._derive_storyboard(run)
        durations = list(settings.segment_durations_s)

        reference_url: Optional[str] = None
        for index, duration in enumerate(durations):
            prompt = storyboard.parts[min(index, len(storyboard.parts) - 1)]
            segment = await self._generate_segment(
                run,
                step=index + 1,
                prompt=prompt,
                duration=duration,
                reference_video_url=reference_url,
            )
            reference_url = segment.provider_url

        return GenerationResult(
            video_url=reference_url,
            prompt=storyboard.combined,
            prompt_source=storyboard.source,
            total_duration_s=sum(durations),
            extension_count=len(durations) - 1,
        )


class MockStrategy(GenerationStrategy):
    """Simulated generation with a fixed sample video and no provider cost"""

    name = "mock"

    @property
    def model(self) -> str:
        return "mock"

    async def generate(self, run: GenerationRun) -> GenerationResult:
        logger.info("mock_generation_wait", video_id=run.video_id, delay_s=settings.mock_delay_s)
        await asyncio.sleep(settings.mock_delay_s)

        durations = list(settings.segment_durations_s)
        for index, duration in enumerate(durations):
            run.segments.append(
                SegmentRecord(
                    step=index + 1,
                    operation_id=f"mock-{run.video_id}-{index + 1}",
                    duration_s=duration,
                    status="completed",
                    mock=True,
                )
            )

        return GenerationResult(
            video_url=settings.mock_video_url,
            prompt="",
            prompt_source="none",
            total_duration_s=sum(durations),
            extension_count=0,
            stored=True,
            mock=True,
        )


STRATEGIES = {
    SingleShotStrategy.name: SingleShotStrategy,
    SegmentedExtensionStrategy.name: SegmentedExtensionStrategy,
    MockStrategy.name: MockStrategy,
}


def build_strategy(
    name: Optional[str] = None,
    provider: Optional[GenerationProvider] = None,
    prompt_deriver: Optional[PromptDeriver] = None,
    asset_storage: Optional[AssetStorage] = None,
) -> GenerationStrategy:
    """
    Create the configured generation strategy

    Args:
        name: Strategy name (default: settings.generation_strategy)
        provider: Generation provider
        prompt_deriver: Storyboard deriver
        asset_storage: Blob store for signed document URLs

    Returns:
        GenerationStrategy instance

    Raises:
        ValueError: If the strategy name is unknown
    """
    name = name or settings.generation_strategy
    if name not in STRATEGIES:
        raise ValueError(f"Unknown generation strategy: {name}")
    return STRATEGIES[name](
        provider=provider,
        prompt_deriver=prompt_deriver,
        asset_storage=asset_storage,
    )
