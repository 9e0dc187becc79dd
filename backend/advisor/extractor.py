"""Plain-text extraction from uploaded business documents.

Word and Excel files are ZIP containers of XML. Only the text runs are
recovered (formatting, table structure and formulas are dropped), which is
enough for building a free-text prompt.
"""
import zipfile
import zlib
from pathlib import Path
from typing import List
from xml.etree import ElementTree as ET

from docx.oxml import parse_xml
from docx.oxml.ns import qn

MAX_TEXT_BYTES = 10000
MAX_DOCUMENT_CHARS = 15000

DOCX_BODY_ENTRY = "word/document.xml"
XLSX_ENTRY_PREFIXES = ("xl/sharedStrings.xml", "xl/worksheets/sheet")
XLSX_VALUE_TAGS = ("t", "v")
XLSX_SEPARATOR = " | "


class ExtractionError(Exception):
    """Raised when a stored file cannot be read or parsed at all."""


def extract_text(path) -> str:
    """Return the text of the file at `path`, dispatching on its extension."""
    lower = str(path).lower()
    if lower.endswith(".docx"):
        return read_docx(path)
    if lower.endswith((".xlsx", ".xls")):
        return read_excel(path)
    return read_plain(path)


def read_plain(path) -> str:
    try:
        data = Path(path).read_bytes()
    except OSError as e:
        raise ExtractionError(f"Cannot read file {path}: {e}") from e

    if len(data) > MAX_TEXT_BYTES:
        return (
            data[:MAX_TEXT_BYTES].decode("utf-8", errors="replace")
            + f"\n\n[File truncated, showing the first {MAX_TEXT_BYTES} bytes]"
        )
    return data.decode("utf-8", errors="replace")


def _truncate(text: str, marker: str) -> str:
    if len(text) > MAX_DOCUMENT_CHARS:
        return text[:MAX_DOCUMENT_CHARS] + f"\n\n[{marker}, showing the first {MAX_DOCUMENT_CHARS} characters]"
    return text


def _open_archive(path, kind: str) -> zipfile.ZipFile:
    try:
        return zipfile.ZipFile(path)
    except (zipfile.BadZipFile, OSError) as e:
        raise ExtractionError(f"Cannot open {kind} file {path} as ZIP: {e}") from e


# -------------------------------------------------------------------
# Word (.docx)
# -------------------------------------------------------------------
def docx_text_from_xml(xml_bytes: bytes) -> str:
    """Join every w:t run of a WordprocessingML body with single spaces."""
    try:
        root = parse_xml(xml_bytes)
    except (SyntaxError, ValueError) as e:
        raise ExtractionError(f"Malformed Word XML: {e}") from e

    fragments = []
    for node in root.iter(qn("w:t")):
        text = (node.text or "").strip()
        if text:
            fragments.append(text)
    return " ".join(fragments)


def read_docx(path) -> str:
    name = Path(path).name
    with _open_archive(path, "Word") as archive:
        try:
            xml_bytes = archive.read(DOCX_BODY_ENTRY)
        except KeyError:
            xml_bytes = None
        except (zipfile.BadZipFile, zlib.error, EOFError, OSError, RuntimeError) as e:
            raise ExtractionError(f"Cannot read {DOCX_BODY_ENTRY} from {path}: {e}") from e

    text = docx_text_from_xml(xml_bytes) if xml_bytes else ""
    if not text:
        return f"[Word document: {name}. Could not extract text. Try saving the file as .txt]"
    return _truncate(text, "Text truncated")


# -------------------------------------------------------------------
# Excel (.xlsx / .xls)
# -------------------------------------------------------------------
def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def excel_text_from_xml(xml_bytes: bytes) -> str:
    """Collect <t>/<v> values of a sheet or shared-strings part, pipe separated."""
    try:
        root = ET.fromstring(xml_bytes)
    except ET.ParseError as e:
        raise ExtractionError(f"Malformed Excel XML: {e}") from e

    values = []
    for node in root.iter():
        if _local_name(node.tag) in XLSX_VALUE_TAGS:
            text = (node.text or "").strip()
            if text:
                values.append(text)
    return XLSX_SEPARATOR.join(values)


def read_excel(path) -> str:
    name = Path(path).name
    parts: List[str] = []
    with _open_archive(path, "Excel") as archive:
        for info in archive.infolist():
            if not info.filename.startswith(XLSX_ENTRY_PREFIXES):
                continue
            try:
                xml_bytes = archive.read(info)
            except (zipfile.BadZipFile, zlib.error, EOFError, OSError, RuntimeError) as e:
                raise ExtractionError(f"Cannot read {info.filename} from {path}: {e}") from e
            text = excel_text_from_xml(xml_bytes)
            if text:
                parts.append(text + "\n")

    text = "".join(parts)
    if not text:
        return f"[Excel file: {name}. Could not extract data. Try exporting it to .csv or .txt]"
    return _truncate(text, "Data truncated")
