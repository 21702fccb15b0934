from typing import Optional

from fastapi import HTTPException, UploadFile, status

from genorisk.core.settings import Settings, get_settings
from genorisk.exceptions import RecordDecodeError
from genorisk.services.llm.explanation_service import ExplanationGenerator, get_explanation_generator

ALLOWED_EXTENSIONS = (".vcf", ".txt")


def explanation_generator() -> Optional[ExplanationGenerator]:
    """FastAPI dependency providing the configured explanation generator."""
    return get_explanation_generator()


def runtime_settings() -> Settings:
    return get_settings()


async def read_record(upload: UploadFile, settings: Settings) -> str:
    """Read an uploaded record as text, enforcing extension and size limits."""
    filename = upload.filename or ""
    if not filename.lower().endswith(ALLOWED_EXTENSIONS):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid file format. Please upload a .vcf file."
        )

    content = await upload.read()
    if len(content) > settings.max_upload_mb * 1024 * 1024:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"File exceeds the {settings.max_upload_mb} MB upload limit."
        )

    try:
        return content.decode("utf-8")
    except UnicodeDecodeError:
        raise RecordDecodeError(f"{filename} is not a UTF-8 text record.") from None
