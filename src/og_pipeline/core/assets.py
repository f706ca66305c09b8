"""Source asset resolution: thumbnails, avatars and the font bundle.

Every lookup is an ordered list of resolver attempts. Each attempt returns an
``AssetResult`` tagged as found or not found and leaves no state behind when
it fails, so the chain can be replayed deterministically.
"""

import asyncio
import base64
import os
import re
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable, Iterable, List, Optional, Sequence, Tuple

import httpx

from .logging_config import get_logger
from .models import CatalogItem, ThumbnailData

PACKAGE_FONT_DIR = Path(__file__).resolve().parent.parent / "assets" / "fonts"
FONT_DIR_ENV = "OG_FONT_DIR"
FONT_CACHE_TTL_SECONDS = 10 * 60

_ABSOLUTE_URL = re.compile(r"^https?://", re.IGNORECASE)


@dataclass(frozen=True)
class AssetResult:
    """Outcome of one resolver attempt."""

    found: bool
    value: Any = None
    source: str = ""
    reason: str = ""

    @classmethod
    def hit(cls, value: Any, source: str) -> "AssetResult":
        return cls(found=True, value=value, source=source)

    @classmethod
    def miss(cls, source: str, reason: str) -> "AssetResult":
        return cls(found=False, source=source, reason=reason)


# ---------------------------------------------------------------- fonts


@dataclass(frozen=True)
class FontSpec:
    family: str
    file_name: str


GEIST = FontSpec("Geist", "Geist-Medium.ttf")
HARMONY_SANS_SC = FontSpec("HarmonyOS Sans SC", "HarmonyOS_Sans_SC_Medium.ttf")
REQUIRED_FONTS: Tuple[FontSpec, ...] = (GEIST, HARMONY_SANS_SC)


@dataclass(frozen=True)
class LoadedFont:
    family: str
    data: bytes
    weight: int = 400
    style: str = "normal"


@dataclass(frozen=True)
class FontBundle:
    """The typefaces embedded into every rendered image."""

    fonts: Tuple[LoadedFont, ...]

    @property
    def primary(self) -> LoadedFont:
        return self.fonts[0]

    @property
    def families(self) -> List[str]:
        return [font.family for font in self.fonts]


def font_search_dirs(
    configured: Iterable[str] = (), cwd: Optional[Path] = None
) -> List[Path]:
    """Candidate font directories, most specific first."""
    base = cwd or Path.cwd()
    dirs = [Path(d) if Path(d).is_absolute() else base / d for d in configured]
    env_dir = os.getenv(FONT_DIR_ENV)
    if env_dir:
        dirs.append(Path(env_dir))
    dirs.append(base / "assets" / "fonts")
    dirs.append(PACKAGE_FONT_DIR)
    return dirs


async def find_font_file(file_name: str, directories: Sequence[Path]) -> AssetResult:
    """First existing regular file named ``file_name`` across ``directories``."""
    for directory in directories:
        candidate = directory / file_name
        if not await asyncio.to_thread(candidate.is_file):
            continue
        try:
            data = await asyncio.to_thread(candidate.read_bytes)
        except OSError as e:
            return AssetResult.miss(str(candidate), f"unreadable: {e}")
        return AssetResult.hit(data, str(candidate))
    return AssetResult.miss(file_name, "not found in any candidate directory")


async def load_font_bundle(directories: Sequence[Path]) -> Optional[FontBundle]:
    """
    Load the required fonts; None when any of them is missing.

    A missing font disables rendering for the whole run, so the warning is
    emitted once by the caller's single invocation.
    """
    logger = get_logger("og-pipeline.assets")
    fonts: List[LoadedFont] = []
    for spec in REQUIRED_FONTS:
        result = await find_font_file(spec.file_name, directories)
        if not result.found:
            logger.warning(
                f"OG image pipeline: font {spec.file_name} not found ({result.reason}); "
                "skip rendering for this run."
            )
            return None
        logger.debug(f"Loaded font {spec.family} from {result.source}")
        fonts.append(LoadedFont(family=spec.family, data=result.value))
    return FontBundle(fonts=tuple(fonts))


class FontCache:
    """
    Loaded font bundle with an explicit time-to-live.

    Expiry is checked on access; there is no background timer. Owners call
    ``invalidate()`` at their own lifecycle boundaries.
    """

    def __init__(
        self,
        ttl_seconds: float = FONT_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._ttl = ttl_seconds
        self._clock = clock
        self._bundle: Optional[FontBundle] = None
        self._last_access = 0.0
        self.expired = False

    def get(self) -> Optional[FontBundle]:
        if self._bundle is None:
            return None
        now = self._clock()
        if now - self._last_access > self._ttl:
            self.invalidate()
            self.expired = True
            return None
        self._last_access = now
        return self._bundle

    def set(self, bundle: FontBundle) -> None:
        self._bundle = bundle
        self._last_access = self._clock()
        self.expired = False

    def invalidate(self) -> None:
        self._bundle = None


# ---------------------------------------------------------------- images


def to_data_url(data: bytes, content_type: str) -> str:
    return f"data:{content_type};base64,{base64.b64encode(data).decode('ascii')}"


def guess_content_type(url: str) -> str:
    lowered = url.lower()
    if lowered.endswith(".png"):
        return "image/png"
    if lowered.endswith(".webp"):
        return "image/webp"
    return "image/jpeg"


def is_absolute_url(url: str) -> bool:
    return bool(_ABSOLUTE_URL.match(url))


@dataclass(frozen=True)
class ThumbnailRequest:
    item_id: str
    buffer: Optional[bytes] = None
    url: Optional[str] = None


ThumbnailResolver = Callable[[ThumbnailRequest], Awaitable[AssetResult]]


class AssetResolver:
    """Resolves thumbnails and avatars into embeddable ``data:`` URLs."""

    def __init__(
        self,
        http_client: Optional[httpx.AsyncClient] = None,
        public_root: Optional[Path] = None,
        timeout: float = 10.0,
    ):
        self._http_client = http_client
        self._public_root = (public_root or Path.cwd() / "public").resolve()
        self._timeout = timeout
        self._logger = get_logger("og-pipeline.assets")

    @property
    def public_root(self) -> Path:
        return self._public_root

    @property
    def thumbnail_resolvers(self) -> List[ThumbnailResolver]:
        return [self.from_memory, self.from_remote, self.from_public_root]

    async def fetch(self, url: str) -> Optional[Tuple[bytes, Optional[str]]]:
        """GET ``url``; (body, declared content type) or None on any failure."""
        try:
            if self._http_client is not None:
                response = await self._http_client.get(url)
            else:
                async with httpx.AsyncClient(
                    timeout=self._timeout, follow_redirects=True
                ) as client:
                    response = await client.get(url)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            self._logger.warning(f"OG image pipeline: failed to fetch {url}: {e}")
            return None

        if not response.is_success:
            self._logger.warning(
                f"OG image pipeline: failed to fetch {url}: HTTP {response.status_code}"
            )
            return None
        return response.content, response.headers.get("content-type")

    async def from_memory(self, request: ThumbnailRequest) -> AssetResult:
        if not request.buffer:
            return AssetResult.miss("memory", "no in-memory thumbnail")
        return AssetResult.hit(to_data_url(request.buffer, "image/jpeg"), "memory")

    async def from_remote(self, request: ThumbnailRequest) -> AssetResult:
        if not request.url or not is_absolute_url(request.url):
            return AssetResult.miss("remote", "no absolute thumbnail URL")
        fetched = await self.fetch(request.url)
        if fetched is None:
            return AssetResult.miss(request.url, "fetch failed")
        body, declared = fetched
        content_type = declared or guess_content_type(request.url)
        return AssetResult.hit(to_data_url(body, content_type), request.url)

    async def from_public_root(self, request: ThumbnailRequest) -> AssetResult:
        if not request.url:
            return AssetResult.miss("local", "no thumbnail URL")
        if is_absolute_url(request.url):
            return AssetResult.miss(request.url, "remote URL has no local counterpart")

        relative = request.url.split("?", 1)[0].lstrip("/")
        local_path = (self._public_root / relative).resolve()
        if not local_path.is_relative_to(self._public_root):
            return AssetResult.miss(str(local_path), "outside of the public root")

        try:
            data = await asyncio.to_thread(local_path.read_bytes)
        except OSError as e:
            self._logger.debug(
                f"OG image pipeline: could not read local thumbnail {local_path}: {e}"
            )
            return AssetResult.miss(str(local_path), str(e))
        return AssetResult.hit(to_data_url(data, guess_content_type(request.url)), str(local_path))

    async def resolve_thumbnail(
        self, item: CatalogItem, thumbnail: Optional[ThumbnailData] = None
    ) -> Optional[str]:
        """
        Embeddable thumbnail for ``item``; None means "render a placeholder".

        Order: in-memory bytes, absolute URL fetch, file under the public root.
        """
        request = ThumbnailRequest(
            item_id=item.id,
            buffer=thumbnail.buffer if thumbnail else None,
            url=(thumbnail.local_url if thumbnail else None) or item.thumbnail_url,
        )
        for resolver in self.thumbnail_resolvers:
            result = await resolver(request)
            if result.found:
                self._logger.debug(f"[{item.id}] thumbnail resolved from {result.source}")
                return result.value
        return None

    async def resolve_avatar(
        self, avatar_url: Optional[str], base_url: Optional[str] = None
    ) -> Optional[str]:
        """
        Embeddable author avatar.

        ``data:`` URLs pass through; otherwise the URL (or the path joined to
        ``base_url``) is fetched. When every attempt fails the original URL is
        returned so the rasterizer can still try to load it.
        """
        if not avatar_url:
            return None
        if avatar_url.startswith("data:"):
            return avatar_url

        candidates = [avatar_url] if is_absolute_url(avatar_url) else []
        if base_url and not is_absolute_url(avatar_url):
            candidates.append(f"{base_url.rstrip('/')}/{avatar_url.lstrip('/')}")

        for candidate in candidates:
            fetched = await self.fetch(candidate)
            if fetched is not None:
                body, declared = fetched
                return to_data_url(body, declared or guess_content_type(candidate))
        return avatar_url
