from .fetcher import FetchBlockedError, FetchedImage, ImageFetcher
from .pixel_exporter import PixelExporter
from .raster_surface import DisplayedImage
from .results import ExportFailure, ExportResult
from .sinks import DirectoryDownloadSink, DownloadRequest, QtClipboardSink

__all__ = [
    "DirectoryDownloadSink",
    "DisplayedImage",
    "DownloadRequest",
    "ExportFailure",
    "ExportResult",
    "FetchBlockedError",
    "FetchedImage",
    "ImageFetcher",
    "PixelExporter",
    "QtClipboardSink",
]
