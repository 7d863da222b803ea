from .filename import build_content_disposition, build_download_name, sanitize_filename

__all__ = ["build_content_disposition", "build_download_name", "sanitize_filename"]
