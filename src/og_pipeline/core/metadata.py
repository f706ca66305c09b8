"""Camera/exposure summary and date formatting for the info panel."""

from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Optional, Union

from .models import CatalogItem, ExifMetadata, ExifSummary

_MONTHS = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)

_EXIF_DATE_FORMATS = ("%Y:%m:%d %H:%M:%S", "%Y:%m:%d %H:%M:%S%z", "%Y:%m:%d")

DateInput = Union[str, datetime, int, float, None]


def _format_number(value: Union[float, int, str]) -> str:
    if isinstance(value, float):
        return f"{value:g}"
    return str(value).strip()


def _format_focal_length(value: Union[float, str, None]) -> Optional[str]:
    if value is None or value == "" or value == 0:
        return None
    if isinstance(value, (int, float)):
        return f"{_format_number(value)}mm"
    return value.strip() or None


def _camera_name(exif: ExifMetadata) -> Optional[str]:
    make = (exif.make or "").strip()
    model = (exif.model or "").strip()
    if make and model:
        return f"{make} {model}"
    return model or make or None


def build_exif_summary(item: CatalogItem) -> Optional[ExifSummary]:
    """
    Derive the display summary of an item's EXIF block.

    The 35mm-equivalent focal length wins over the native one. Returns None
    when none of the five fields can be derived, so callers drop the whole
    EXIF block instead of rendering empty slots.
    """
    exif = item.exif
    if exif is None:
        return None

    focal_length = _format_focal_length(exif.focal_length_35mm) or _format_focal_length(
        exif.focal_length
    )
    aperture = f"f/{_format_number(exif.f_number)}" if exif.f_number else None
    iso = exif.iso if exif.iso not in (None, "", 0) else None
    shutter_speed = (
        f"{_format_number(exif.exposure_time)}s" if exif.exposure_time else None
    )
    camera = _camera_name(exif)

    if not any((focal_length, aperture, iso, shutter_speed, camera)):
        return None

    return ExifSummary(
        focal_length=focal_length,
        aperture=aperture,
        iso=iso,
        shutter_speed=shutter_speed,
        camera=camera,
    )


def parse_timestamp(value: DateInput) -> Optional[datetime]:
    """Parse ISO-8601, RFC 2822 or EXIF timestamps, datetimes and epoch seconds."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None

    text = value.strip()
    if not text:
        return None

    for fmt in _EXIF_DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue

    iso_text = text[:-1] + "+00:00" if text.endswith(("Z", "z")) else text
    try:
        return datetime.fromisoformat(iso_text)
    except ValueError:
        pass

    try:
        return parsedate_to_datetime(text)
    except (TypeError, ValueError, IndexError):
        return None


def format_date(value: DateInput) -> Optional[str]:
    """Render a timestamp as e.g. "Jul 4, 2023"; None when it cannot be parsed."""
    moment = parse_timestamp(value)
    if moment is None:
        return None
    return f"{_MONTHS[moment.month - 1]} {moment.day}, {moment.year}"


def item_date(item: CatalogItem) -> Optional[str]:
    """Formatted capture date, falling back to the modification time."""
    original = item.exif.date_time_original if item.exif else None
    return format_date(original or item.last_modified)
