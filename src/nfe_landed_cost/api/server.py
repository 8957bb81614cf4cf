"""FastAPI application exposing the cost engine."""

from __future__ import annotations

from typing import List, Optional, Union

from fastapi import Depends, FastAPI, File, HTTPException, UploadFile
from pydantic import BaseModel

from ..config import Settings
from ..core.conversion import converted_cost, parse_conversion_factor
from ..core.pipeline import BatchProcessor, DocumentSource
from ..core.report import allocation_rows, group_payload, invoice_summary, totals_row


class ConvertRequest(BaseModel):
    final_unit_cost: float
    factor: Optional[Union[float, str]] = None


def create_app(settings: Settings) -> FastAPI:
    app = FastAPI(title="NF-e Landed Cost")
    processor = BatchProcessor(settings)

    def get_processor() -> BatchProcessor:
        return processor

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok"}

    @app.post("/analyze")
    async def analyze(file: UploadFile = File(...), pipeline: BatchProcessor = Depends(get_processor)) -> dict:
        content = await file.read()
        outcome = pipeline.process_document(DocumentSource(name=file.filename or "upload.xml", content=content))
        if not outcome.ok or outcome.invoice is None:
            raise HTTPException(status_code=422, detail=outcome.error or "NF-e inválida")
        invoice = outcome.invoice
        return {
            "invoice": invoice_summary(invoice),
            "lines": allocation_rows(invoice),
            "totals": totals_row(invoice),
        }

    @app.post("/compare")
    async def compare(
        files: List[UploadFile] = File(...),
        similar: bool = False,
        pipeline: BatchProcessor = Depends(get_processor),
    ) -> dict:
        sources = []
        for upload in files:
            sources.append(DocumentSource(name=upload.filename or f"upload_{len(sources) + 1}.xml", content=await upload.read()))
        batch = pipeline.process_sources(sources)
        grouper = pipeline.similarity_grouper() if similar else None
        groups = pipeline.compare(batch, grouper=grouper)
        return {
            "documents": [
                {
                    "source": outcome.source,
                    "status": outcome.status,
                    "error": outcome.error,
                    "invoice_id": outcome.invoice.invoice_id if outcome.invoice else None,
                }
                for outcome in batch.outcomes
            ],
            "groups": [group_payload(group) for group in groups],
        }

    @app.post("/convert")
    async def convert(request: ConvertRequest) -> dict:
        factor = parse_conversion_factor(request.factor)
        return {
            "final_unit_cost": request.final_unit_cost,
            "conversion_factor": factor,
            "converted_unit_cost": converted_cost(request.final_unit_cost, factor),
        }

    return app


__all__ = ["create_app"]
