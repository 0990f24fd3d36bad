"""
Insight Generator

Turns a page snapshot into a score, a list of issues and a narrative. The
inference service is a black box behind InferenceClient: any transport
failure, timeout or malformed answer produces the fixed fallback result, so
this stage always hands the orchestrator something to persist.
"""
import asyncio
from typing import Optional

from app.features.scan.exceptions import InferenceUnavailable
from app.features.scan.models.scan import ComplianceLevel
from app.features.scan.models.scan_issue import IssueSeverity
from app.features.scan.schemas.insight import InsightResult, IssueDraft
from app.features.scan.schemas.snapshot import PageSnapshot
from app.features.scan.services.analysis.inference_client import InferenceClient
from app.features.scan.services.analysis.prompt_builder import SYSTEM_PROMPT, build_prompt
from app.features.scan.services.analysis.response_decoder import (
    Decoded,
    DecodeResult,
    Malformed,
    decode_insight_response,
)
from app.platform.config import settings
from app.platform.logger import get_logger

logger = get_logger(__name__)

FALLBACK_SCORE = 75
FALLBACK_INSIGHTS = "AI analysis was unavailable. A basic scan was performed instead."


def fallback_result() -> InsightResult:
    return InsightResult(
        score=FALLBACK_SCORE,
        issues=[
            IssueDraft(
                type="AI Analysis Unavailable",
                severity=IssueSeverity.info,
                description="AI analysis could not be completed. Manual review recommended.",
                element="N/A",
                recommendation="Please try scanning again or contact support.",
                compliance_reference="N/A",
            )
        ],
        insights=FALLBACK_INSIGHTS,
        is_fallback=True,
    )


class InsightGenerator:
    def __init__(self, client: InferenceClient, timeout: Optional[float] = None):
        self.client = client
        self.timeout = settings.INFERENCE_TIMEOUT_SECONDS if timeout is None else timeout

    async def _invoke(self, prompt: str) -> DecodeResult:
        """Call the model and decode. Transport problems come back as Malformed too."""
        try:
            raw = await asyncio.wait_for(
                self.client.complete(SYSTEM_PROMPT, prompt), timeout=self.timeout
            )
        except asyncio.TimeoutError:
            return Malformed(raw_text="", reason=f"inference exceeded {self.timeout}s")
        except InferenceUnavailable as e:
            return Malformed(raw_text="", reason=str(e))
        except Exception as e:
            logger.exception(f"Inference client raised unexpectedly: {e}")
            return Malformed(raw_text="", reason=f"{type(e).__name__}: {e}")

        return decode_insight_response(raw)

    async def generate(
        self,
        snapshot: PageSnapshot,
        level: ComplianceLevel,
        scan_id: str = "-",
    ) -> InsightResult:
        prompt = build_prompt(snapshot, level)
        logger.info(
            f"[{scan_id}] Requesting WCAG {level.wcag_level} analysis "
            f"({snapshot.element_count} elements, {len(prompt)} prompt chars)"
        )

        outcome = await self._invoke(prompt)

        if isinstance(outcome, Decoded):
            payload = outcome.payload
            logger.info(f"[{scan_id}] Analysis decoded: score {payload.score}, {len(payload.issues)} issues")
            return InsightResult(score=payload.score, issues=payload.issues, insights=payload.insights)

        logger.warning(f"[{scan_id}] Using fallback analysis: {outcome.reason}")
        return fallback_result()
