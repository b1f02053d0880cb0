"""
Core building blocks: configuration, prompt preparation, attachments,
remote generation clients and downloads.
"""

from src.core.config import GenerationConfig, HistoryConfig, StudioConfig
from src.core.errors import ErrorKind, StudioError
from src.core.prompts import PreparedPrompt, prepare_prompt, is_infographic_prompt
from src.core.attachments import SourceImage, build_source_image
from src.core.image_generator import GenerationResponse, RemoteImageGenerator, create_image_generator
from src.core.downloads import DownloadedImage, fetch_image

__all__ = [
    "GenerationConfig",
    "HistoryConfig",
    "StudioConfig",
    "ErrorKind",
    "StudioError",
    "PreparedPrompt",
    "prepare_prompt",
    "is_infographic_prompt",
    "SourceImage",
    "build_source_image",
    "GenerationResponse",
    "RemoteImageGenerator",
    "create_image_generator",
    "DownloadedImage",
    "fetch_image",
]
