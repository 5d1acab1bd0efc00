"""Controllers package initialization."""

from controllers.base_controller import BaseController
from controllers.document_controller import DocumentController, IncomingFile
from controllers.extraction_controller import ExtractionController
from controllers.session_controller import SessionController

__all__ = [
    "BaseController",
    "DocumentController",
    "ExtractionController",
    "IncomingFile",
    "SessionController",
]
