from typing import List, Optional, Sequence

from .extractor import ExtractionError, extract_text
from .gateway import ModelGateway
from .logger import get_logger
from .models import UploadedFile, User

log = get_logger("pipeline")


def read_user_files(files: Sequence[UploadedFile]) -> List[str]:
    """Extract each stored file as `File: <name>` + text; unreadable ones are skipped."""
    contents: List[str] = []
    for f in files:
        try:
            text = extract_text(f.file_path)
        except (ExtractionError, OSError) as e:
            log.warning("Could not read file %s: %s", f.file_path, e)
            continue
        if text:
            contents.append(f"File: {f.filename}\n{text}")

    log.info("Files loaded: %d, with readable content: %d", len(files), len(contents))
    return contents


def generate_advice(
    gateway: ModelGateway,
    user: User,
    question: str,
    category: Optional[str],
    files: Sequence[UploadedFile],
) -> str:
    file_texts = read_user_files(files)
    return gateway.answer(
        question,
        category,
        user.username,
        user.business_name,
        user.specialization,
        file_texts,
    )
