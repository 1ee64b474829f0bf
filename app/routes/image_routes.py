import mimetypes
from typing import Optional

import aiofiles
from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from fastapi.responses import HTMLResponse, StreamingResponse

import config
from app.errors import ImageHostError, InternalError, ValidationError
from app.models.image import StatusOut, UploadOut
from app.services.auth import require_admin
from app.services.image_store import ImageStore, generate_id, is_valid_id
from app.services.pages import PageRenderer
from logger_config import get_logger

logger = get_logger()

# Older interpreters ship without a .webp entry
mimetypes.add_type("image/webp", ".webp")

router = APIRouter()


def get_store(request: Request) -> ImageStore:
    return request.app.state.image_store


def get_pages(request: Request) -> PageRenderer:
    return request.app.state.pages


def normalize_content_type(content_type: Optional[str]) -> str:
    return (content_type or "").split(";", 1)[0].strip().lower()


@router.post("/upload", response_model=UploadOut, dependencies=[Depends(require_admin)])
async def upload_image(
    request: Request,
    file: Optional[UploadFile] = File(None),
    form_id: Optional[str] = Form(None, alias="id"),
    store: ImageStore = Depends(get_store),
    pages: PageRenderer = Depends(get_pages),
):
    """Store an uploaded image under a caller supplied or generated identifier.

    The identifier may come from the "id" form field or the "id" query
    parameter; the form field wins when both are present.
    """
    if file is None or not file.filename:
        raise ValidationError("No file uploaded")

    content_type = normalize_content_type(file.content_type)
    if content_type not in config.ALLOWED_MIME_TYPES:
        logger.info(f"Rejected upload {file.filename!r} with content type {content_type!r}")
        raise ValidationError("Only image files are allowed")

    custom_id = form_id or request.query_params.get("id") or None
    if custom_id is not None and not is_valid_id(custom_id):
        raise ValidationError("Invalid ID")

    image_id = custom_id or generate_id()
    logger.info(f"Receiving upload request for image_id: {image_id}")

    # Raises ConflictError when the identifier is already taken
    record = await store.claim(image_id, file.filename)

    temp_path = None
    try:
        temp_path = await store.save_temp(file)
        record = await store.commit(record, temp_path)
    except Exception as e:
        await store.abort(record, temp_path)
        if isinstance(e, ImageHostError):
            raise
        logger.error(f"Error uploading image {image_id}: {str(e)}", exc_info=True)
        raise InternalError("Server error")

    logger.info(f"Stored image {image_id} as {record.filename}")
    return UploadOut(id=image_id, url=pages.image_url(image_id), view_url=pages.view_url(image_id))


@router.get("/i/{image_id}")
async def get_image(image_id: str, store: ImageStore = Depends(get_store)):
    """Stream the raw image bytes."""
    record = await store.get(image_id)
    blob_path = await store.get_blob_path(record)

    content_type, _ = mimetypes.guess_type(record.filename)

    async def file_iterator():
        async with aiofiles.open(blob_path, 'rb') as f:
            while chunk := await f.read(config.CHUNK_SIZE):
                yield chunk

    return StreamingResponse(
        file_iterator(),
        media_type=content_type or "application/octet-stream",
        headers={"Cache-Control": config.CACHE_CONTROL},
    )


@router.get("/view/{image_id}", response_class=HTMLResponse)
async def view_image(
    image_id: str,
    store: ImageStore = Depends(get_store),
    pages: PageRenderer = Depends(get_pages),
):
    record = await store.get(image_id)
    return pages.render("view.html", image=record, image_url=pages.image_url(record.id))


@router.get("/gallery", response_class=HTMLResponse)
async def gallery(
    store: ImageStore = Depends(get_store),
    pages: PageRenderer = Depends(get_pages),
):
    records = await store.list_records()
    images = [
        {"record": r, "image_url": pages.image_url(r.id), "view_url": pages.view_url(r.id)}
        for r in records
    ]
    return pages.render("gallery.html", images=images)


@router.get("/", response_class=HTMLResponse)
async def upload_page(pages: PageRenderer = Depends(get_pages)):
    return pages.render(
        "index.html",
        accepted_types=",".join(sorted(config.ALLOWED_MIME_TYPES)),
        max_id_length=config.MAX_ID_LENGTH,
    )


@router.delete("/delete/{image_id}", response_model=StatusOut, dependencies=[Depends(require_admin)])
async def delete_image(image_id: str, store: ImageStore = Depends(get_store)):
    logger.info(f"Receiving delete request for image_id: {image_id}")
    await store.delete(image_id)
    logger.info(f"Successfully deleted image: {image_id}")
    return StatusOut()


@router.get("/health", response_model=StatusOut)
async def health():
    return StatusOut()
