"""Wikipedia lookups for celebrity photos.

Two boundaries:
- the REST page summary, whose ``thumbnail.source`` becomes a photo URL
  during upserts;
- the action API search + pageimages, used to download a real image when
  caricature generation gives up.

Every call is best-effort: failures are logged and resolve to ``None``.
"""

from __future__ import annotations

import json
import logging
import re
import unicodedata
import urllib.error
import urllib.parse
import urllib.request
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

SUMMARY_URL = "https://en.wikipedia.org/api/rest_v1/page/summary/"
ACTION_API_URL = "https://en.wikipedia.org/w/api.php"
DEFAULT_USER_AGENT = "RogerThat/1.0 (https://roger-that.test)"

IMAGE_EXTENSIONS: tuple[str, ...] = ("png", "jpg", "jpeg", "webp")
MIN_IMAGE_BYTES = 100

_SLUG_RE = re.compile(r"[^a-z0-9]+")


def slugify(name: str) -> str:
    """Filename slug: "Beyoncé Knowles" -> "beyonce-knowles"."""
    ascii_name = unicodedata.normalize("NFKD", name).encode("ascii", "ignore").decode("ascii")
    slug = _SLUG_RE.sub("-", ascii_name.lower()).strip("-")
    return slug or "celebrity"


def guess_extension(url: str) -> str:
    """Extension of the URL path if it is a known image type, else ``jpg``."""
    path = urllib.parse.urlparse(url).path
    suffix = Path(path).suffix.lstrip(".").lower()
    return suffix if suffix in IMAGE_EXTENSIONS else "jpg"


class WikipediaClient:
    """Thin urllib client for the Wikipedia endpoints the pipeline needs."""

    def __init__(
        self,
        *,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout: float = 5,
        download_timeout: float = 15,
    ) -> None:
        self.user_agent = user_agent
        self.timeout = timeout
        self.download_timeout = download_timeout

    def _request(self, url: str) -> urllib.request.Request:
        return urllib.request.Request(url, headers={"User-Agent": self.user_agent})

    def _get_json(self, url: str, params: dict[str, Any] | None = None) -> Any:
        if params:
            url = f"{url}?{urllib.parse.urlencode(params)}"
        with urllib.request.urlopen(self._request(url), timeout=self.timeout) as resp:
            return json.loads(resp.read().decode("utf-8"))

    # -- Page summary thumbnail ----------------------------------------------

    def fetch_thumbnail_url(self, name: str) -> str | None:
        """Return the page summary thumbnail URL for *name*, or ``None``."""
        title = urllib.parse.quote(name.strip().replace(" ", "_"), safe="")
        url = SUMMARY_URL + title
        logger.debug("Fetching Wikipedia thumbnail for %s", name)
        try:
            data = self._get_json(url)
        except urllib.error.HTTPError as exc:
            logger.warning("Wikipedia returned %s for %s", exc.code, name)
            return None
        except Exception:
            logger.warning("Wikipedia request failed for %s", name, exc_info=True)
            return None

        if not isinstance(data, dict):
            return None
        thumbnail = data.get("thumbnail")
        source = thumbnail.get("source") if isinstance(thumbnail, dict) else None
        if not isinstance(source, str) or not source:
            logger.debug("Wikipedia had no thumbnail for %s", name)
            return None
        return source

    # -- Search + pageimages -------------------------------------------------

    def search_page_id(self, name: str) -> int | None:
        data = self._get_json(
            ACTION_API_URL,
            {
                "action": "query",
                "list": "search",
                "srsearch": name,
                "srlimit": 1,
                "format": "json",
            },
        )
        pages = (data.get("query") or {}).get("search") or []
        if not pages:
            return None
        page_id = pages[0].get("pageid")
        return int(page_id) if page_id is not None else None

    def page_image_url(self, page_id: int) -> str | None:
        data = self._get_json(
            ACTION_API_URL,
            {
                "action": "query",
                "pageids": page_id,
                "prop": "pageimages",
                "piprop": "thumbnail|original",
                "pithumbsize": 1024,
                "format": "json",
            },
        )
        page = ((data.get("query") or {}).get("pages") or {}).get(str(page_id)) or {}
        for key in ("thumbnail", "original"):
            source = (page.get(key) or {}).get("source")
            if isinstance(source, str) and source.startswith("http"):
                return source
        return None

    def download(self, url: str) -> bytes | None:
        """Download raw image bytes; bodies under 100 bytes count as invalid."""
        with urllib.request.urlopen(self._request(url), timeout=self.download_timeout) as resp:
            contents = resp.read()
        if len(contents) < MIN_IMAGE_BYTES:
            logger.warning("Discarding %d-byte image body from %s", len(contents), url)
            return None
        return contents

    def fetch_page_image(
        self,
        name: str,
        output_dir: Path,
        public_prefix: str = "celebrities",
    ) -> str | None:
        """Search *name*, download its page image into *output_dir*.

        Returns the relative path (``<public_prefix>/<slug>.<ext>``) or
        ``None`` when no usable image was found.
        """
        try:
            page_id = self.search_page_id(name)
            if page_id is None:
                logger.info("Wikipedia search found no page for %s", name)
                return None
            image_url = self.page_image_url(page_id)
            if image_url is None:
                logger.info("Wikipedia page %d has no image for %s", page_id, name)
                return None
            contents = self.download(image_url)
        except Exception:
            logger.warning("Wikipedia image fallback failed for %s", name, exc_info=True)
            return None

        if contents is None:
            return None

        filename = f"{slugify(name)}.{guess_extension(image_url)}"
        try:
            output_dir.mkdir(parents=True, exist_ok=True)
            (output_dir / filename).write_bytes(contents)
        except OSError:
            logger.warning("Could not save Wikipedia image for %s in %s", name, output_dir, exc_info=True)
            return None
        return f"{public_prefix}/{filename}" if public_prefix else filename
