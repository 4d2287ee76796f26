"""Runtime wiring shared by Web API handlers."""

from __future__ import annotations

import json
import logging
from typing import Dict, List

from ..config import AppSettings
from ..observability import PipelineObserver
from ..pipeline import UploadOrchestrator
from ..providers import create_provider
from ..providers.feedback import DocumentFeedbackGenerator, FeedbackGenerator
from ..providers.types import GenerationConfig
from ..rasterizer import DocumentRasterizer, PdfRasterizer
from ..records import RECORD_KEY_PREFIX, AnalysisRecord, record_key
from ..storage.blob import BlobStore, FileBlob, InMemoryBlobStore, LocalBlobStore
from ..storage.kv import InMemoryKeyValueStore, KeyValueStore, SQLiteKeyValueStore
from .errors import APIError

logger = logging.getLogger("resume_analyzer.web.api")


class AnalysisRuntime:
    """Owns the storage and model clients, and one orchestrator per tenant."""

    def __init__(
        self,
        blob_store: BlobStore,
        kv_store: KeyValueStore,
        rasterizer: DocumentRasterizer,
        feedback_generator: FeedbackGenerator,
        provider_name: str = "stub",
        model_name: str = "stub-model",
        max_upload_bytes: int = 5 * 1024 * 1024,
        abort_on_checkpoint_failure: bool = False,
    ) -> None:
        self.blob_store = blob_store
        self.kv_store = kv_store
        self.rasterizer = rasterizer
        self.feedback_generator = feedback_generator
        self.provider_name = provider_name
        self.model_name = model_name
        self.max_upload_bytes = max_upload_bytes
        self.abort_on_checkpoint_failure = abort_on_checkpoint_failure
        self._orchestrators: Dict[str, UploadOrchestrator] = {}
        self._observers: Dict[str, PipelineObserver] = {}

    @classmethod
    def from_settings(cls, settings: AppSettings) -> "AnalysisRuntime":
        if settings.blob_backend == "memory":
            blob_store: BlobStore = InMemoryBlobStore()
        else:
            blob_store = LocalBlobStore(settings.blob_root)

        if settings.kv_backend == "sqlite":
            kv_store: KeyValueStore = SQLiteKeyValueStore(settings.kv_path.resolve())
        else:
            kv_store = InMemoryKeyValueStore()

        provider_settings = settings.provider
        provider = create_provider(
            provider_settings.provider,
            api_key=provider_settings.api_key,
            model=provider_settings.model,
            api_base=provider_settings.api_base,
        )
        generator = DocumentFeedbackGenerator(
            blob_store=blob_store,
            provider=provider,
            config=GenerationConfig(
                max_tokens=provider_settings.max_tokens,
                temperature=provider_settings.temperature,
            ),
        )
        return cls(
            blob_store=blob_store,
            kv_store=kv_store,
            rasterizer=PdfRasterizer(scale=settings.render_scale),
            feedback_generator=generator,
            provider_name=provider_settings.provider,
            model_name=provider.model,
            max_upload_bytes=settings.max_upload_bytes,
            abort_on_checkpoint_failure=settings.abort_on_checkpoint_failure,
        )

    async def start(self) -> None:
        await self.kv_store.start()

    async def stop(self) -> None:
        await self.kv_store.stop()

    def runtime_metadata(self) -> Dict[str, str]:
        """Static provider/model values used by API observability logs."""
        return {"provider": self.provider_name, "model": self.model_name}

    def orchestrator_for(self, tenant_id: str) -> UploadOrchestrator:
        orchestrator = self._orchestrators.get(tenant_id)
        if orchestrator is None:
            orchestrator = UploadOrchestrator(
                blob_store=self.blob_store,
                rasterizer=self.rasterizer,
                kv_store=self.kv_store,
                feedback_generator=self.feedback_generator,
                abort_on_checkpoint_failure=self.abort_on_checkpoint_failure,
            )
            observer = PipelineObserver(run_label=tenant_id)
            orchestrator.add_listener(observer)
            self._orchestrators[tenant_id] = orchestrator
            self._observers[tenant_id] = observer
        return orchestrator

    def observer_for(self, tenant_id: str) -> PipelineObserver:
        self.orchestrator_for(tenant_id)
        return self._observers[tenant_id]

    async def get_record(self, record_id: str) -> AnalysisRecord:
        raw = await self.kv_store.get(record_key(record_id))
        if raw is None:
            raise APIError(404, "RECORD_NOT_FOUND", f"Analysis '{record_id}' not found")
        try:
            return AnalysisRecord.from_json(raw)
        except (json.JSONDecodeError, KeyError, TypeError) as exc:
            logger.error("record_corrupt record_id=%s error=%s", record_id, exc)
            raise APIError(500, "RECORD_CORRUPT", f"Analysis '{record_id}' could not be read") from exc

    async def list_records(self) -> List[AnalysisRecord]:
        records: List[AnalysisRecord] = []
        for key in await self.kv_store.list_keys(RECORD_KEY_PREFIX):
            raw = await self.kv_store.get(key)
            if raw is None:
                continue
            try:
                records.append(AnalysisRecord.from_json(raw))
            except (json.JSONDecodeError, KeyError, TypeError) as exc:
                logger.warning("record_skipped key=%s error=%s", key, exc)
        return records

    async def read_file(self, path: str) -> FileBlob:
        blob = await self.blob_store.read(path)
        if blob is None:
            raise APIError(404, "FILE_NOT_FOUND", f"File '{path}' not found")
        return blob
