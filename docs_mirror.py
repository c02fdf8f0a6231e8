from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import format_datetime
from typing import Dict, Optional, List, Tuple
from urllib.parse import urljoin, urlparse
from pathlib import Path, PurePosixPath
import asyncio
import logging
import re
import shutil
import time
import xml.etree.ElementTree as ET

import aiohttp
import markdownify
from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

SITEMAP_NS = "{http://www.sitemaps.org/schemas/sitemap/0.9}"


class MirrorError(Exception):
    """Fatal error that aborts a mirror run."""


def slugify_title(text: str) -> str:
    """Lowercase, collapse whitespace runs to a hyphen, drop anything outside [a-z0-9-]."""
    slug = re.sub(r"\s+", "-", text.lower())
    return re.sub(r"[^a-z0-9-]", "", slug)


def file_slug(url: str) -> str:
    """Last segment of the URL path, used as the markdown file name."""
    return PurePosixPath(urlparse(url).path).name or "index"


def parse_sitemap(xml_text: str, prefix: str) -> List[str]:
    """Return every <url><loc> starting with prefix, in document order."""
    root = ET.fromstring(xml_text.lstrip())
    urls = []
    for url_elem in root.iter():
        if url_elem.tag not in (f"{SITEMAP_NS}url", "url"):
            continue
        loc = url_elem.find(f"{SITEMAP_NS}loc")
        if loc is None:
            loc = url_elem.find("loc")
        if loc is not None and loc.text:
            urls.append(loc.text.strip())
    return [url for url in urls if url.startswith(prefix)]


@dataclass(frozen=True)
class MirrorConfig:
    sitemap_url: str = "https://docs.anthropic.com/sitemap.xml"
    nav_page_url: str = "https://docs.anthropic.com/en/docs/claude-code/overview"
    url_prefix: str = "https://docs.anthropic.com/en/docs/claude-code/"
    base_url: str = "https://docs.anthropic.com"
    output_root: Path = Path(".")
    docs_dir: str = "docs"
    readme_name: str = "README.md"
    title: str = "Claude Code Mirror Docs"
    description: Optional[str] = None
    others_slug: str = "others"
    concurrency: int = 10
    timeout: float = 60
    convert_html: bool = False

    @property
    def docs_path(self) -> Path:
        return Path(self.output_root) / self.docs_dir

    @property
    def readme_path(self) -> Path:
        return Path(self.output_root) / self.readme_name

    @property
    def readme_description(self) -> str:
        if self.description is not None:
            return self.description
        return (
            "This repository is a mirror of the official "
            f"[Claude Code]({self.url_prefix}) documentation. "
            "It is updated automatically."
        )

    def client_timeout(self) -> aiohttp.ClientTimeout:
        return aiohttp.ClientTimeout(
            total=self.timeout,
            connect=min(10, self.timeout),
            sock_read=min(30, self.timeout),
        )


@dataclass
class FileRef:
    slug: str
    title: str
    href: str


@dataclass
class Category:
    title: str
    slug: str
    files: List[FileRef] = field(default_factory=list)


@dataclass
class OtherFile:
    slug: str
    title: str


@dataclass
class Placement:
    url: str
    category_slug: str
    file_slug: str


class NavExtractor(ABC):
    """Turns a parsed navigation page into ordered categories."""

    @abstractmethod
    def can_handle(self, soup: BeautifulSoup) -> bool:
        """Return True if this extractor understands the page structure."""
        pass

    @abstractmethod
    def extract(self, soup: BeautifulSoup, base_url: str) -> List[Category]:
        pass


class MintlifyExtractor(NavExtractor):
    """Extractor for the Mintlify sidebar (#navigation-items groups)."""

    def can_handle(self, soup: BeautifulSoup) -> bool:
        return soup.find(id="navigation-items") is not None

    def extract(self, soup: BeautifulSoup, base_url: str) -> List[Category]:
        structure = []
        for group in soup.select("#navigation-items > div"):
            title_elem = group.select_one("h5#sidebar-title")
            category_title = title_elem.get_text().strip() if title_elem else ""
            if not category_title:
                continue

            category = Category(title=category_title, slug=slugify_title(category_title))
            for link in group.select("ul#sidebar-group li a"):
                href = link.get("href")
                if not href:
                    continue
                category.files.append(
                    FileRef(
                        slug=file_slug(href),
                        title=link.get_text().strip(),
                        href=urljoin(base_url, href),
                    )
                )
            structure.append(category)
        return structure


def categorize(
    urls: List[str], structure: List[Category], others_slug: str = "others"
) -> Tuple[List[Placement], List[OtherFile]]:
    """Assign each URL to the first category whose file href matches exactly."""
    placements = []
    other_files: List[OtherFile] = []
    for url in urls:
        slug = file_slug(url)
        category_slug = None
        for category in structure:
            if any(f.href == url for f in category.files):
                category_slug = category.slug
                break

        if category_slug is None:
            category_slug = others_slug
            if not any(f.slug == slug for f in other_files):
                other_files.append(OtherFile(slug=slug, title=slug))

        placements.append(Placement(url=url, category_slug=category_slug, file_slug=slug))
    return placements, other_files


def render_readme(
    config: MirrorConfig,
    structure: List[Category],
    other_files: List[OtherFile],
    now: Optional[datetime] = None,
) -> str:
    """Render the table-of-contents README; titles are written verbatim."""
    now = now or datetime.now(timezone.utc)
    stamp = format_datetime(now.astimezone(timezone.utc), usegmt=True)

    parts = [
        f"# {config.title}\n\n",
        f"_{config.readme_description}_\n\n",
        f"**Last updated:** {stamp}\n\n---\n\n",
    ]
    for category in structure:
        parts.append(f"## {category.title}\n\n")
        for f in category.files:
            parts.append(f"- [{f.title}](./{config.docs_dir}/{category.slug}/{f.slug}.md)\n")
        parts.append("\n")

    if other_files:
        parts.append("## Others\n\n")
        for f in other_files:
            parts.append(f"- [{f.title}](./{config.docs_dir}/{config.others_slug}/{f.slug}.md)\n")
        parts.append("\n")

    return "".join(parts)


def html_to_markdown(content: str) -> str:
    """Convert a rendered documentation page to markdown."""
    soup = BeautifulSoup(content, "html.parser")

    main_content = soup.find("article")
    if not main_content:
        # Mintlify pages keep the body in #content-area
        main_content = soup.find("div", {"id": "content-area"})
    if not main_content:
        main_content = soup.find("main")
    if not main_content:
        main_content = soup

    for nav in main_content.find_all(["nav", "aside", "header", "footer"]):
        nav.decompose()
    for sidebar in main_content.find_all(id=re.compile(r"sidebar|nav|menu", re.I)):
        sidebar.decompose()
    for tag in main_content.find_all(["script", "style"]):
        tag.decompose()

    md = markdownify.markdownify(str(main_content), heading_style="atx")
    md = re.sub(r"\n{3,}", "\n\n", md)
    # Permalink anchors like [](#anchor)
    md = re.sub(r"\[[\s\u200b]*\]\(#[^)]+\)\s*", "", md)
    return md.strip() + "\n"


@dataclass
class SyncStatus:
    status: str = "idle"
    error: Optional[str] = None
    start_time: Optional[float] = None
    total_urls: int = 0
    categories: int = 0
    files_written: List[str] = None
    failed_urls: List[str] = None
    other_files: int = 0

    def __post_init__(self):
        if self.files_written is None:
            self.files_written = []
        if self.failed_urls is None:
            self.failed_urls = []

    def to_dict(self) -> Dict:
        return {
            "status": self.status,
            "error": self.error,
            "elapsed_time": (
                round(time.time() - self.start_time, 2)
                if self.start_time
                else 0
            ),
            "total_urls": self.total_urls,
            "categories": self.categories,
            "files_written": self.files_written,
            "failed_urls": self.failed_urls,
            "other_files": self.other_files,
        }


class DocsMirror:
    def __init__(self, config: Optional[MirrorConfig] = None):
        self.config = config or MirrorConfig()
        self.status = SyncStatus()
        self.session = None
        # Navigation extractors in priority order
        self.extractors: List[NavExtractor] = [MintlifyExtractor()]

    def _open_session(self) -> aiohttp.ClientSession:
        connector = aiohttp.TCPConnector(limit=self.config.concurrency)
        return aiohttp.ClientSession(
            timeout=self.config.client_timeout(), connector=connector
        )

    async def run(self, now: Optional[datetime] = None) -> SyncStatus:
        """Clean, fetch sitemap and navigation, download everything, write the README."""
        try:
            self.status = SyncStatus(start_time=time.time(), status="cleaning")
            self.clean_previous_build()

            async with self._open_session() as self.session:
                self.status.status = "fetching"
                urls = await self.fetch_sitemap_urls()
                structure = await self.fetch_navigation_structure()

                self.status.status = "downloading"
                other_files = await self.download_and_save_docs(urls, structure)

            self.generate_readme(structure, other_files, now=now)
            self.status.status = "completed"
            logger.info("✅ Update process completed successfully!")
            return self.status

        except Exception as e:
            self.status.status = "error"
            self.status.error = str(e)
            raise

    def clean_previous_build(self):
        """Remove the docs tree and the root README, then recreate an empty docs dir."""
        docs_path = self.config.docs_path
        readme_path = self.config.readme_path
        logger.info("🧼 1. Cleaning up previous build...")

        if docs_path.is_symlink() or docs_path.is_file():
            docs_path.unlink()
        elif docs_path.exists():
            shutil.rmtree(docs_path)
        logger.info(f"   -> Directory '{docs_path}' removed.")

        readme_path.unlink(missing_ok=True)
        logger.info(f"   -> File '{readme_path}' removed.")

        docs_path.mkdir(parents=True, exist_ok=True)
        logger.info("   Cleanup complete.")

    async def _fetch_text(self, url: str) -> str:
        logger.debug(f"fetching {url}")
        async with self.session.get(url) as response:
            if response.status != 200:
                raise MirrorError(f"HTTP {response.status} for {url}")
            return await response.text()

    async def fetch_sitemap_urls(self) -> List[str]:
        logger.info("🗺️ 2. Fetching all URLs from the sitemap...")
        xml_text = await self._fetch_text(self.config.sitemap_url)
        urls = parse_sitemap(xml_text, self.config.url_prefix)
        self.status.total_urls = len(urls)
        logger.info(f"   {len(urls)} URLs found under {self.config.url_prefix}")
        return urls

    async def fetch_navigation_structure(self) -> List[Category]:
        logger.info("⛵️ 3. Analyzing navigation structure...")
        content = await self._fetch_text(self.config.nav_page_url)
        structure = self.extract_navigation(content)
        self.status.categories = len(structure)
        logger.info(f"   Structure extracted with {len(structure)} categories.")
        return structure

    def extract_navigation(self, content: str) -> List[Category]:
        """Extract categories using the first extractor that understands the page."""
        soup = BeautifulSoup(content, "html.parser")
        for extractor in self.extractors:
            if extractor.can_handle(soup):
                return extractor.extract(soup, self.config.base_url)

        logger.warning("No navigation extractor matched the page; every document goes to others")
        return []

    async def download_and_save_docs(
        self, urls: List[str], structure: List[Category]
    ) -> List[OtherFile]:
        logger.info("📖 4. Downloading and organizing documentation files...")
        placements, other_files = categorize(urls, structure, self.config.others_slug)
        self.status.other_files = len(other_files)

        targets = []
        for placement in placements:
            dir_path = self.config.docs_path / placement.category_slug
            dir_path.mkdir(parents=True, exist_ok=True)
            targets.append((placement.url, dir_path / f"{placement.file_slug}.md"))

        semaphore = asyncio.Semaphore(self.config.concurrency)
        tasks = [self._download_doc(url, path, semaphore) for url, path in targets]
        await asyncio.gather(*tasks)

        logger.info(
            f"   Download complete: {len(self.status.files_written)} written, "
            f"{len(self.status.failed_urls)} failed."
        )
        return other_files

    async def _download_doc(self, url: str, file_path: Path, semaphore: asyncio.Semaphore):
        async with semaphore:
            try:
                if self.config.convert_html:
                    html = await self._fetch_text(url)
                    content = html_to_markdown(html)
                else:
                    content = await self._fetch_text(f"{url}.md")

                with open(file_path, "w", encoding="utf-8", newline="") as f:
                    f.write(content)
                self.status.files_written.append(file_path.as_posix())
                logger.info(f"   -> {file_path.as_posix()}")

            except Exception as e:
                self.status.failed_urls.append(url)
                logger.error(f"   ! Failed to download {url}: {e}")

    def generate_readme(
        self,
        structure: List[Category],
        other_files: List[OtherFile],
        now: Optional[datetime] = None,
    ):
        logger.info(f"👓 5. Generating root {self.config.readme_name}...")
        content = render_readme(self.config, structure, other_files, now=now)
        with open(self.config.readme_path, "w", encoding="utf-8", newline="") as f:
            f.write(content)
        logger.info(f"   {self.config.readme_name} successfully generated at {self.config.readme_path}.")
