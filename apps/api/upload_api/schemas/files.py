from __future__ import annotations

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class UploadOut(_CamelModel):
    file_id: str
    file_url: str
    message: str


class FileOut(_CamelModel):
    file_id: str
    file_url: str
    content_type: str | None
    extension: str


class FileByNameOut(_CamelModel):
    file_name: str
    file_url: str
    content_type: str | None


class ErrorOut(BaseModel):
    message: str
    error: str
