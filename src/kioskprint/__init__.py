# src/kioskprint/__init__.py
from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("kioskprint")
except PackageNotFoundError:
    __version__ = "0.0.0+local"

from .buffers import PixelBuffer, SourceImage
from .errors import (
    KioskPrintError, InvalidBuffer, DecodeError, RendererUnavailable, InvalidGeometry,
    InvalidSlot, IncompleteTemplate, TemplateNotFound,
)
from .analyze_core import PageAnalyzer, PageAnalysisResult, analyze_pdf
from .compose_core import Compositor, CompositeImage
from .templates import Template, TemplateCatalog, get_template, list_templates
