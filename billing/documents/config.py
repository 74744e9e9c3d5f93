"""
billing/documents/config.py

RenderSettings: the explicit configuration value handed to every renderer.

It is merged ONCE at the call boundary:

    hardcoded defaults  ->  stored settings (Setting "appSettings")  ->  per-call overrides

Renderers never look at Flask config, the database or any module-level state; everything they
need is on the RenderSettings instance (plus the ImageLoader for asset bytes).

Stored settings use the nested camelCase shape the web UI saves:

    {"invoice": {"fontFamily": ..., "fontSize": ..., "topMargin": ...},
     "company": {"name": ..., "tagline": ..., "email": ..., "phone": ...},
     "pad": {"enabled": ..., "opacity": ..., "image": ...},
     "signature": {"enabled": ..., "image": ..., "width": ..., "height": ...},
     "dateFormat": {"format": "US" | "BD", "showPrefix": ..., "prefixText": ...}}

Per-call overrides are flat and accept snake_case field names or their camelCase aliases.
Values that cannot be coerced fall back to the lower layer (logged, never raised).
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, fields
from typing import Any, Dict, Mapping

from ..formatting import DATE_STYLES, format_date

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RenderSettings:
    # Typography
    font_family: str = "Segoe UI"
    font_size: float = 11
    font_color: str = "#1f2937"
    table_border_color: str = "#d1d5db"
    measurement_color: str = "#059669"

    # Page margins (mm)
    top_margin: float = 20
    bottom_margin: float = 20

    # Company
    company_name: str = "AMK Enterprise"
    company_tagline: str = "General Order & Supplier"
    company_email: str = "info@amkenterprise.com"
    company_phone: str = "+880 2 222 111 333"

    # Pad (full-page watermark)
    pad_enabled: bool = False
    pad_opacity: float = 0.15
    pad_image: str = "/images/AMK_PAD_A4.png"

    # Signature / seal
    signature_enabled: bool = False
    signature_image: str = "/images/Sig_Seal.png"
    signature_width: float = 120
    signature_height: float = 60

    # Dates
    date_style: str = "BD"
    date_show_prefix: bool = True
    date_prefix: str = "Date: "

    @property
    def contact_line(self) -> str:
        return f"Contact: {self.company_phone} | Email: {self.company_email}"

    def format_date(self, value, with_prefix: bool = True) -> str:
        return format_date(
            value,
            style=self.date_style,
            show_prefix=with_prefix and self.date_show_prefix,
            prefix=self.date_prefix,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# (section, key) in the stored JSON -> field name
STORED_FIELDS = {
    ("invoice", "fontFamily"): "font_family",
    ("invoice", "fontSize"): "font_size",
    ("invoice", "fontColor"): "font_color",
    ("invoice", "tableBorderColor"): "table_border_color",
    ("invoice", "measurementColor"): "measurement_color",
    ("invoice", "topMargin"): "top_margin",
    ("invoice", "bottomMargin"): "bottom_margin",
    ("company", "name"): "company_name",
    ("company", "tagline"): "company_tagline",
    ("company", "email"): "company_email",
    ("company", "phone"): "company_phone",
    ("pad", "enabled"): "pad_enabled",
    ("pad", "opacity"): "pad_opacity",
    ("pad", "image"): "pad_image",
    ("signature", "enabled"): "signature_enabled",
    ("signature", "image"): "signature_image",
    ("signature", "width"): "signature_width",
    ("signature", "height"): "signature_height",
    ("dateFormat", "format"): "date_style",
    ("dateFormat", "showPrefix"): "date_show_prefix",
    ("dateFormat", "prefixText"): "date_prefix",
}

OVERRIDE_ALIASES = {
    "fontFamily": "font_family",
    "fontSize": "font_size",
    "fontColor": "font_color",
    "tableBorderColor": "table_border_color",
    "measurementColor": "measurement_color",
    "topMargin": "top_margin",
    "bottomMargin": "bottom_margin",
    "companyName": "company_name",
    "companyTagline": "company_tagline",
    "companyEmail": "company_email",
    "companyPhone": "company_phone",
    "padEnabled": "pad_enabled",
    "includePad": "pad_enabled",
    "padOpacity": "pad_opacity",
    "padImage": "pad_image",
    "signatureEnabled": "signature_enabled",
    "includeSignature": "signature_enabled",
    "signatureImage": "signature_image",
    "signatureWidth": "signature_width",
    "signatureHeight": "signature_height",
    "dateFormat": "date_style",
    "showPrefix": "date_show_prefix",
    "prefixText": "date_prefix",
}

_FIELD_NAMES = {f.name for f in fields(RenderSettings)}
_DEFAULTS = RenderSettings()


def _coerce_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "1", "yes", "on"):
            return True
        if lowered in ("false", "0", "no", "off", ""):
            return False
    raise ValueError(f"not a boolean: {value!r}")


def _coerce(name: str, value):
    default = getattr(_DEFAULTS, name)
    if isinstance(default, bool):
        return _coerce_bool(value)
    if isinstance(default, (int, float)):
        number = float(value)
        if number < 0:
            raise ValueError(f"negative value: {value!r}")
        if name == "pad_opacity" and number > 1:
            raise ValueError(f"opacity out of range: {value!r}")
        return number
    text = str(value)
    if name == "date_style":
        text = text.upper()
        if text not in DATE_STYLES:
            raise ValueError(f"unknown date format: {value!r}")
    return text


def _flatten_stored(stored: Mapping | None) -> Dict[str, Any]:
    flat: Dict[str, Any] = {}
    if not stored:
        return flat
    for (section, key), name in STORED_FIELDS.items():
        block = stored.get(section)
        if isinstance(block, Mapping) and block.get(key) is not None:
            flat[name] = block[key]
    # Already-flat snake_case keys are accepted too.
    for name in _FIELD_NAMES:
        if stored.get(name) is not None:
            flat[name] = stored[name]
    return flat


def _normalize_overrides(overrides: Mapping | None) -> Dict[str, Any]:
    flat: Dict[str, Any] = {}
    for key, value in (overrides or {}).items():
        if value is None:
            continue
        name = OVERRIDE_ALIASES.get(key, key)
        if name in _FIELD_NAMES:
            flat[name] = value
    return flat


def _apply_layer(values: Dict[str, Any], layer: Dict[str, Any], source: str) -> None:
    for name, raw in layer.items():
        try:
            values[name] = _coerce(name, raw)
        except (TypeError, ValueError) as exc:
            logger.warning("Ignoring %s render setting %s=%r: %s", source, name, raw, exc)


def build_render_settings(stored: Mapping | None = None, overrides: Mapping | None = None) -> RenderSettings:
    """Merge defaults -> stored -> overrides into one immutable RenderSettings."""
    values = asdict(_DEFAULTS)
    _apply_layer(values, _flatten_stored(stored), "stored")
    _apply_layer(values, _normalize_overrides(overrides), "override")
    return RenderSettings(**values)


def to_stored_settings(settings: RenderSettings | None = None) -> Dict[str, Any]:
    """Nested camelCase shape written to the settings store (used by seeding)."""
    settings = settings or _DEFAULTS
    stored: Dict[str, Any] = {}
    for (section, key), name in STORED_FIELDS.items():
        stored.setdefault(section, {})[key] = getattr(settings, name)
    return stored
