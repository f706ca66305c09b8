"""Run-scoped dedup cache."""

import asyncio
from dataclasses import dataclass, field
from typing import Dict, Optional, Set

from .assets import FontCache
from .models import SiteMeta


@dataclass
class RunState:
    """
    Mutable state of one pipeline run.

    Holds the keys uploaded so far, resolved public URLs, the font bundle and
    site branding. Nothing here outlives the run: the owner drops the object
    (or calls ``reset()``) when the run ends.
    """

    uploaded_keys: Set[str] = field(default_factory=set)
    url_cache: Dict[str, str] = field(default_factory=dict)
    fonts: FontCache = field(default_factory=FontCache)
    fonts_checked: bool = False
    site_meta: Optional[SiteMeta] = None
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    def reset(self) -> None:
        self.uploaded_keys.clear()
        self.url_cache.clear()
        self.fonts.invalidate()
        self.fonts_checked = False
        self.site_meta = None
