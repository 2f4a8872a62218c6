from __future__ import annotations

from fastapi import APIRouter, HTTPException
from fastapi.responses import Response

from vendor_request_app.web.core.runtime import get_blob_store

router = APIRouter()


@router.get("/documents/{path:path}")
def serve_document(path: str):
    store = get_blob_store()
    try:
        if path.endswith(".meta.json") or not store.exists(path):
            raise HTTPException(status_code=404, detail="Document not found.")
        content = store.read(path)
    except (ValueError, FileNotFoundError) as exc:
        raise HTTPException(status_code=404, detail="Document not found.") from exc
    filename = path.rsplit("/", 1)[-1]
    return Response(
        content=content,
        media_type=store.content_type(path),
        headers={"Content-Disposition": f'inline; filename="{filename}"'},
    )
