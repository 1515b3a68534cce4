# Utility functions

from genflow.utils.helpers import (
    get_data_uri_mime_type,
    is_remote_url,
    is_usable_image_source,
    truncate_text,
    format_prompt_preview,
    preview_image_source,
    SUPPORTED_MIME_TYPES,
)

__all__ = [
    # Validation
    "get_data_uri_mime_type",
    "is_remote_url",
    "is_usable_image_source",
    "SUPPORTED_MIME_TYPES",
    # Text formatting
    "truncate_text",
    "format_prompt_preview",
    "preview_image_source",
]
