"""
Helper utility functions for the generation workflow.

Contains image-source validation and the formatting used in log lines.
"""

from typing import Optional


# =============================================================================
# IMAGE SOURCE VALIDATION
# =============================================================================

# Supported MIME types for uploaded inputs
SUPPORTED_MIME_TYPES = frozenset({
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/webp",
})

DATA_URI_PREFIX = "data:"
REMOTE_URL_PREFIXES = ("http://", "https://")


def get_data_uri_mime_type(source: str) -> Optional[str]:
    """
    Extract the MIME type from a data URI.
    
    Args:
        source: Encoded image string
    
    Returns:
        Lower-cased MIME type, or None if ``source`` is not a data URI
    
    Examples:
        >>> get_data_uri_mime_type("data:image/png;base64,iVBORw0")
        'image/png'
        >>> get_data_uri_mime_type("https://cdn.example.com/a.png") is None
        True
    """
    if not source.startswith(DATA_URI_PREFIX):
        return None
    
    header, sep, _ = source[len(DATA_URI_PREFIX):].partition(",")
    if not sep:
        return None
    
    return header.split(";", 1)[0].lower() or None


def is_remote_url(source: str) -> bool:
    """Check whether the image source is an http(s) URL."""
    return source.startswith(REMOTE_URL_PREFIXES)


def is_usable_image_source(source: Optional[str]) -> bool:
    """
    Validate that an uploaded input can be sent to the generation service.
    
    Accepts ``data:image/...`` URIs of a supported MIME type and http(s)
    URLs (previously generated results, sample gallery images).
    
    Args:
        source: Encoded image string (data URI or remote URL)
    
    Returns:
        True if the source is usable, False otherwise
    
    Examples:
        >>> is_usable_image_source("data:image/webp;base64,UklGR")
        True
        >>> is_usable_image_source("data:application/pdf;base64,JVBER")
        False
        >>> is_usable_image_source("")
        False
    """
    if not source or not isinstance(source, str):
        return False
    
    if is_remote_url(source):
        return True
    
    mime_type = get_data_uri_mime_type(source)
    return mime_type in SUPPORTED_MIME_TYPES


# =============================================================================
# LOG FORMATTING
# =============================================================================

def truncate_text(text: str, max_length: int = 100, suffix: str = "...") -> str:
    """
    Truncate text to max_length characters.
    
    Args:
        text: Text to truncate
        max_length: Maximum length including suffix
        suffix: Suffix to add when truncated
    
    Returns:
        Truncated text
    """
    if not text:
        return ""
    
    if len(text) <= max_length:
        return text
    
    return text[:max_length - len(suffix)] + suffix


def format_prompt_preview(prompt: Optional[str], max_length: int = 100) -> str:
    """Format an instruction for logging."""
    if not prompt:
        return "<none>"
    return truncate_text(prompt.strip(), max_length)


def preview_image_source(source: Optional[str], max_length: int = 50) -> str:
    """
    Short, log-safe preview of an image source.
    
    Data URIs can be megabytes long, so only the header is kept.
    """
    if not source:
        return "<empty>"
    
    if is_remote_url(source):
        return truncate_text(source, max_length * 2)
    
    return f"{source[:max_length]}... ({len(source)} chars)"
