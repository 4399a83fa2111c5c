# scriptgate/app/schemas/script.py
from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional
from datetime import datetime

from app.models.script_version import ScriptVersion


class ScriptUploadRequest(BaseModel):
    version: str = Field(min_length=1, max_length=50)
    payload: str = Field(min_length=1)
    notes: Optional[str] = None
    token: Optional[str] = None


class ScriptInfo(BaseModel):
    """Versão de script sem o payload (listagens)."""
    model_config = ConfigDict(populate_by_name=True)

    id: int
    version: str
    checksum: str
    update_notes: Optional[str] = Field(default=None, alias="updateNotes")
    is_active: bool = Field(alias="isActive")
    file_size: int = Field(alias="fileSize")
    created_at: datetime = Field(alias="createdAt")

    @classmethod
    def from_script(cls, db_script: ScriptVersion) -> "ScriptInfo":
        return cls(
            id=db_script.id,
            version=db_script.version,
            checksum=db_script.checksum,
            update_notes=db_script.update_notes,
            is_active=db_script.is_active,
            file_size=db_script.file_size,
            created_at=db_script.created_at,
        )


class ScriptDetail(ScriptInfo):
    payload: str

    @classmethod
    def from_script(cls, db_script: ScriptVersion) -> "ScriptDetail":
        info = ScriptInfo.from_script(db_script)
        return cls(**info.model_dump(), payload=db_script.payload)


class ScriptResponse(BaseModel):
    success: bool = True
    script: ScriptInfo


class ScriptDetailResponse(BaseModel):
    success: bool = True
    script: ScriptDetail


class ScriptListResponse(BaseModel):
    success: bool = True
    scripts: List[ScriptInfo]


class ScriptMetaResponse(BaseModel):
    """Metadados do script ativo, para o loader verificar atualizações."""
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    version: str
    checksum: str
    file_size: int = Field(alias="fileSize")
    update_notes: Optional[str] = Field(default=None, alias="updateNotes")
    created_at: datetime = Field(alias="createdAt")
