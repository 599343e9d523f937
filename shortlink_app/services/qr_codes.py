"""
QR codes for short URLs.

Rendered as PNG data URLs so clients can drop them straight into an
``<img src=...>`` without a second request.
"""

import segno


def short_url(base_url: str, short_code: str) -> str:
    return f"{base_url.rstrip('/')}/{short_code}"


def qr_code_data_url(url: str, scale: int = 4) -> str:
    """
    Encode ``url`` as a regular (never Micro) QR code.

    Returns:
        ``data:image/png;base64,...``
    """
    qr = segno.make_qr(url, error="m")
    return qr.png_data_uri(scale=scale)
