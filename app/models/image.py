from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ImageRecord(BaseModel):
    """Metadata record stored as <id>.json next to the blob."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str
    filename: str
    original_name: str = Field(alias="originalName")
    uploaded_at: datetime = Field(alias="uploadedAt")
    # Set while an upload is in flight; pending records are never served
    pending: bool = False

    @field_validator('uploaded_at')
    @classmethod
    def ensure_timezone(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    def to_json(self) -> str:
        exclude = None if self.pending else {"pending"}
        return self.model_dump_json(by_alias=True, exclude=exclude)


class UploadOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    url: str
    view_url: str = Field(alias="viewUrl")


class StatusOut(BaseModel):
    ok: bool = True
