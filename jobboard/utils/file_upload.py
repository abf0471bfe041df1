"""
File Upload Utility - CV validation, storage and text extraction.

Supported formats:
- PDF (.pdf) text via PyPDF2
- Word (.docx) text via python-docx
- Legacy Word (.doc) stored only, no text extraction

Max file size: 10MB
"""

import io
import logging
import os
import time
from typing import Tuple

from docx import Document
from fastapi import UploadFile, HTTPException
from PyPDF2 import PdfReader

from jobboard.core.config import get_settings

logger = logging.getLogger(__name__)

MAX_FILE_SIZE_MB = 10
MAX_FILE_SIZE_BYTES = MAX_FILE_SIZE_MB * 1024 * 1024
ALLOWED_EXTENSIONS = {'.pdf', '.doc', '.docx'}

CONTENT_TYPES = {
    '.pdf': 'application/pdf',
    '.doc': 'application/msword',
    '.docx': 'application/vnd.openxmlformats-officedocument.wordprocessingml.document',
}


def get_file_extension(filename: str) -> str:
    """Get lowercase file extension."""
    if '.' not in filename:
        return ''
    return '.' + filename.rsplit('.', 1)[1].lower()


async def read_cv_upload(file: UploadFile) -> Tuple[bytes, str]:
    """
    Validate an uploaded CV and return (content, extension).

    Raises:
        HTTPException 400 for a missing name or wrong type, 413 when too large
    """
    if not file.filename:
        raise HTTPException(status_code=400, detail="No file uploaded")

    ext = get_file_extension(file.filename)
    if ext not in ALLOWED_EXTENSIONS:
        raise HTTPException(
            status_code=400,
            detail="Invalid file type. Only PDF, DOC, and DOCX files are allowed."
        )

    content = await file.read()

    if len(content) > MAX_FILE_SIZE_BYTES:
        raise HTTPException(
            status_code=413,
            detail=f"File too large. Maximum size: {MAX_FILE_SIZE_MB}MB"
        )
    if not content:
        raise HTTPException(status_code=400, detail="Uploaded file is empty")

    return content, ext


def build_cv_filename(user_id: int, ext: str) -> str:
    """{user_id}_{epoch millis}{ext}"""
    return f"{user_id}_{int(time.time() * 1000)}{ext}"


def cv_owner_id(filename: str):
    """User id encoded in a stored CV filename, or None."""
    prefix = filename.split('_', 1)[0]
    return int(prefix) if prefix.isdigit() else None


def save_cv(content: bytes, filename: str) -> str:
    """Write the file under upload_dir and return its path."""
    upload_dir = get_settings().upload_dir
    os.makedirs(upload_dir, exist_ok=True)
    path = os.path.join(upload_dir, filename)
    with open(path, 'wb') as fh:
        fh.write(content)
    return path


def delete_user_cvs(user_id: int) -> int:
    """Remove every stored CV owned by the user. Returns the number of files removed."""
    upload_dir = get_settings().upload_dir
    if not os.path.isdir(upload_dir):
        return 0
    removed = 0
    for name in os.listdir(upload_dir):
        if cv_owner_id(name) == user_id:
            os.remove(os.path.join(upload_dir, name))
            removed += 1
    return removed


def cv_path(filename: str) -> str:
    """Resolve a stored CV name, refusing anything that is not a bare filename."""
    if os.path.basename(filename) != filename or filename.startswith('.'):
        raise HTTPException(status_code=400, detail="Invalid filename")
    return os.path.join(get_settings().upload_dir, filename)


def extract_text(content: bytes, ext: str) -> str:
    """Best-effort text extraction. Returns '' when the format has no extractor."""
    if ext == '.pdf':
        return extract_from_pdf(content)
    if ext == '.docx':
        return extract_from_docx(content)
    return ''


def extract_from_pdf(content: bytes) -> str:
    """Extract text from PDF bytes."""
    reader = PdfReader(io.BytesIO(content))
    text_parts = []
    for page in reader.pages:
        page_text = page.extract_text()
        if page_text:
            text_parts.append(page_text)
    return '\n'.join(text_parts)


def extract_from_docx(content: bytes) -> str:
    """Extract text from DOCX bytes."""
    doc = Document(io.BytesIO(content))
    text_parts = []

    # Extract paragraphs
    for para in doc.paragraphs:
        if para.text.strip():
            text_parts.append(para.text)

    # Extract tables
    for table in doc.tables:
        for row in table.rows:
            row_text = [cell.text.strip() for cell in row.cells if cell.text.strip()]
            if row_text:
                text_parts.append(' | '.join(row_text))

    return '\n'.join(text_parts)
