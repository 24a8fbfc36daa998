"""
Prompt Deriver - LangChain storyboard generation for portfolio videos
"""

import asyncio
import json
import time
from typing import Any, Dict, List, Optional
from langchain_core.messages import HumanMessage, SystemMessage
from langchain_core.output_parsers import PydanticOutputParser
from pydantic import BaseModel, Field

from vidifolio.config.constants import STYLE_GUIDELINES
from vidifolio.config.settings import settings
from vidifolio.services.observability import logger


class StoryboardOutput(BaseModel):
    """Structured LLM output - one prompt per video part"""

    part1: str = Field(default="", description="Opening / hook scene prompt")
    part2: str = Field(default="", description="Core content scene prompt")
    part3: str = Field(default="", description="Ending / outro scene prompt")


class Storyboard(BaseModel):
    """Prompts for the three parts of a portfolio video"""

    parts: List[str]
    source: str  # "llm" or "fallback"

    @property
    def combined(self) -> str:
        """Single prompt describing the whole video"""
        if len(set(self.parts)) == 1:
            return self.parts[0]
        return " ".join(
            f"Part {index}: {part}" for index, part in enumerate(self.parts, start=1)
        )


def fallback_prompt(title: str, style_description: str) -> str:
    """Deterministic prompt used when the LLM is unavailable"""
    return f"Cinematic showcase of {title} with {style_description} aesthetic."


def fallback_storyboard(title: str, style_description: str) -> Storyboard:
    prompt = fallback_prompt(title, style_description)
    return Storyboard(parts=[prompt, prompt, prompt], source="fallback")


class PromptDeriver:
    """
    Derives a three-part storyboard from portfolio data using an LLM

    Never raises: any failure yields the templated fallback storyboard.
    """

    def __init__(self, llm: Optional[Any] = None, api_key: Optional[str] = None):
        """Initialize prompt deriver using an OpenAI-compatible endpoint."""
        self.llm = llm
        self.api_key = settings.llm_api_key if api_key is None else api_key
        self.parser = PydanticOutputParser(pydantic_object=StoryboardOutput)

    def _ensure_llm(self) -> None:
        if self.llm is None:
            from langchain_openai import ChatOpenAI
            self.llm = ChatOpenAI(
                model=settings.llm_model,
                api_key=self.api_key,
                base_url=settings.llm_base_url,
                temperature=0.7,
                timeout=settings.llm_timeout_s,
                # A failed call falls back to the templated storyboard
                max_retries=0,
            )

    def build_prompt(
        self,
        title: str,
        style_description: str,
        raw_data: Optional[Dict[str, Any]],
        document_url: Optional[str] = None,
    ) -> str:
        """Build the storyboard request for the LLM"""
        total_s = settings.target_duration_s
        guidelines = "\n".join(
            f"- {name}: {description}" for name, description in STYLE_GUIDELINES.items()
        )
        document_line = (
            f"Source Document (PDF, link valid for one hour): {document_url}\n"
            if document_url
            else ""
        )

        return f"""Task: Create a highly detailed 3-part cinematic video generation storyboard.
The goal is to create a {total_s}-second portfolio showcase video.

Portfolio Title: {title}
Target Visual Style: {style_description}
Portfolio Data: {json.dumps(raw_data or {}, ensure_ascii=False)}
{document_line}
Narrative Structure (Total {total_s} seconds):
1. Part 1: Opening / Hook. Introduce the portfolio's theme and the professional identity.
2. Part 2: Core Content. Showcase the key projects, skills, and major achievements. Ensure ALL significant information from the portfolio is visually represented here.
3. Part 3: Ending / Outro. A smooth concluding scene that provides a clear sense of completion and leaves a lasting professional impression.

Styling Guidelines:
{guidelines}

Prompt Requirements:
- Cinematic lighting and 4K resolution feel.
- Dynamic camera movements (slow pan, orbit, or zoom).
- Describe visuals and atmosphere vividly; do not just list text.
- Each part must flow logically from the previous one.

{self.parser.get_format_instructions()}

Return ONLY the JSON object with keys "part1", "part2", "part3". No conversational text."""

    async def derive(
        self,
        title: str,
        style_description: str,
        raw_data: Optional[Dict[str, Any]] = None,
        document_url: Optional[str] = None,
    ) -> Storyboard:
        """
        Derive storyboard prompts for a portfolio

        Args:
            title: Portfolio title
            style_description: Description of the requested visual style
            raw_data: Portfolio structured metadata
            document_url: Signed URL of the uploaded source document

        Returns:
            Storyboard from the LLM, or the fallback storyboard
        """
        if not self.api_key and self.llm is None:
            logger.warning("prompt_derivation_skipped", reason="missing_llm_api_key")
            return fallback_storyboard(title, style_description)

        start_time = time.time()
        prompt = self.build_prompt(title, style_description, raw_data, document_url)

        try:
            self._ensure_llm()
            messages = [
                SystemMessage(content="You are a cinematic video director writing prompts for a text-to-video model."),
                HumanMessage(content=prompt),
            ]

            response = await asyncio.to_thread(self.llm.invoke, messages)
            content = (getattr(response, "content", "") or "").strip()
            if not content:
                raise ValueError("LLM returned empty storyboard")

            output = self.parser.parse(content)
            if not any(part.strip() for part in (output.part1, output.part2, output.part3)):
                raise ValueError("LLM returned empty storyboard")

        except Exception as e:
            logger.warning(
                "prompt_derivation_fallback",
                error=str(e),
                error_type=type(e).__name__,
            )
            return fallback_storyboard(title, style_description)

        parts = [
            output.part1.strip() or f"Cinematic intro of {title} in {style_description} style.",
            output.part2.strip() or f"Showcasing work and skills of {title} in {style_description} style.",
            output.part3.strip() or f"Professional closing scene for {title} portfolio.",
        ]

        logger.info(
            "prompt_derivation_success",
            title=title,
            duration_s=time.time() - start_time,
        )
        return Storyboard(parts=parts, source="llm")
