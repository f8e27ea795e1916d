"""Parsing and structured-extraction exports."""

from .contacts import extract_contacts
from .documents import extract_documents
from .entities import extract_entities
from .forms import extract_forms
from .navigation import extract_navigation
from .page import PageParser, PageParserConfig, ParsedPage, visible_text
from .pdf import ConvertedDocument, DocumentConverter, PdfConverterConfig, PdfTextConverter
from .pipeline import ExtractionConfig, ExtractionPipeline, build_extraction_pipeline
from .structured_data import extract_structured_data
from .tables import extract_tables

__all__ = [
    "ConvertedDocument",
    "DocumentConverter",
    "ExtractionConfig",
    "ExtractionPipeline",
    "PageParser",
    "PageParserConfig",
    "ParsedPage",
    "PdfConverterConfig",
    "PdfTextConverter",
    "build_extraction_pipeline",
    "extract_contacts",
    "extract_documents",
    "extract_entities",
    "extract_forms",
    "extract_navigation",
    "extract_structured_data",
    "extract_tables",
    "visible_text",
]
