from __future__ import annotations

from fastapi import APIRouter, HTTPException

from godeep.models.schemas import DocumentResponse
from godeep.services.documents import get_document_store

router = APIRouter(prefix="/api/documents", tags=["documents"])


@router.get("/{document_id}", response_model=DocumentResponse)
async def get_document(document_id: str):
    """Fetch a stored research report."""
    document = await get_document_store().get(document_id)
    if document is None:
        raise HTTPException(status_code=404, detail="Document not found")
    return DocumentResponse(**document.to_dict())
