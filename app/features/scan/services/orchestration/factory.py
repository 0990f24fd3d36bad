"""
Wiring for the scan pipeline.

Collaborators are constructed explicitly here and passed into the
orchestrator; tests build their own with fakes instead.
"""
from typing import Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from app.features.scan.services.analysis.inference_client import InferenceClient, OpenAIInferenceClient
from app.features.scan.services.analysis.insight_generator import InsightGenerator
from app.features.scan.services.extraction.page_extractor import PageExtractor
from app.features.scan.services.orchestration.orchestrator import ScanOrchestrator
from app.features.scan.services.store.scan_store import ScanStore
from app.platform.db.session import SessionLocal


def build_orchestrator(
    session_factory: async_sessionmaker = SessionLocal,
    extractor: Optional[PageExtractor] = None,
    inference_client: Optional[InferenceClient] = None,
) -> ScanOrchestrator:
    return ScanOrchestrator(
        store=ScanStore(session_factory),
        extractor=extractor or PageExtractor(),
        generator=InsightGenerator(inference_client or OpenAIInferenceClient()),
    )
