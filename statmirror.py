#!/usr/bin/env python3
import argparse
import codecs
import hashlib
import itertools
import json
import logging
import os
import re
import sys
import time
from collections import deque
from dataclasses import dataclass, field, replace
from enum import Enum
from html import escape as html_escape
from http.cookiejar import LoadError, MozillaCookieJar
from pathlib import Path
from typing import (
    Callable,
    Dict,
    Iterable,
    List,
    Mapping,
    Optional,
    Set,
    Tuple,
    Union,
)
from urllib.parse import urldefrag, urljoin, urlparse

import requests
import yaml
from bs4 import BeautifulSoup
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

# -------------------- Config --------------------

DEFAULT_HEADERS = {
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,"
    "image/avif,image/webp,image/apng,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
}

STAT_HOST = "stat.domeneshop.no"
SEED_FILE = "Webpage statistics.html"
COOKIES_FILE = "cookies.json"
RESOURCES_DIR = "resources"
DEFAULT_FILENAME = "index.html"
INDEX_FILENAME = "index.html"

MODES = ("full", "subpages", "overview", "list")

KIND_STYLESHEET = "stylesheet"
KIND_SCRIPT = "script"
KIND_IMAGE = "image"

CSS_URL_RE = re.compile(r"url\(\s*([\"']?)([^)\"']+)\1\s*\)", re.IGNORECASE)
PERIOD_RE = re.compile(r"/(\d{6})/")
INVALID_FILENAME_CHARS_RE = re.compile(r'[<>:"/\\|?*]')
# characters that may not touch a rewritten reference on either side
REF_BOUNDARY = r"[\w./-]"
# a query on the text means a different resource
REF_TRAIL = r"[\w./?-]"

# AWStats reports link to the project's own documentation site
DEFAULT_EXCLUDED_HOSTS = frozenset({"www.awstats.org", "awstats.sourceforge.net"})
DEFAULT_PAGE_PATTERN = r"^awstats\..+\.html$"
DEFAULT_LOGO_PATTERN = (
    r"[\"']([^\"'\s]*?/[\w.-]*logo[\w.-]*\.(?:svg|png|gif|jpe?g|webp))[\"']"
)
DEFAULT_LOGO_SELECTOR = "img[class*=logo], img[alt*=logo i], img[src*=logo]"
DEFAULT_STRIP_SELECTORS = (
    "a[href*=logout]",
    "a[href*=login]",
    "form[action*=logout]",
    "form[action*=login]",
    ".login",
    ".logout",
    ".noscript",
)

COOKIE_HELP = """To get cookies:
1. Log in to the statistics site in your browser
2. Open browser DevTools (F12) -> Network tab
3. Refresh the page and click on any request
4. Copy the Cookie header value
5. Create cookies.json with: {"cookies": "your_cookie_string_here"}

Or export cookies as JSON with a browser extension, or as a Netscape cookies.txt."""

# -------------------- Settings --------------------


@dataclass
class Settings:
    output_dir: str = "output"
    seed_file: str = SEED_FILE
    cookies_file: str = COOKIES_FILE
    stat_host: str = STAT_HOST

    # Fetch
    delay: float = 0.5
    timeout: Optional[float] = None

    # Crawl
    excluded_hosts: Set[str] = field(default_factory=lambda: set(DEFAULT_EXCLUDED_HOSTS))
    page_pattern: str = DEFAULT_PAGE_PATTERN
    refresh_subpages: bool = False

    # Overview
    overview_url: Optional[str] = None
    overview_snapshot: Optional[str] = None
    logo_pattern: str = DEFAULT_LOGO_PATTERN
    logo_selector: str = DEFAULT_LOGO_SELECTOR
    strip_selectors: List[str] = field(
        default_factory=lambda: list(DEFAULT_STRIP_SELECTORS)
    )

    def live_overview_url(self) -> str:
        return self.overview_url or f"https://{self.stat_host}/"


# -------------------- Errors --------------------


class MirrorError(Exception):
    pass


class ConfigError(MirrorError):
    pass


class FetchFailure(MirrorError):
    def __init__(self, url: str, status: Optional[int] = None, reason: str = ""):
        self.url = url
        self.status = status
        self.reason = reason
        label = f"HTTP {status}" if status is not None else "request failed"
        detail = f"{label}: {reason}" if reason else label
        super().__init__(f"{detail} ({url})")

    @classmethod
    def from_failure(cls, exc: "FetchFailure") -> "FetchFailure":
        return cls(exc.url, exc.status, exc.reason)


class AuthFailure(FetchFailure):
    pass


class ResourceFetchFailure(FetchFailure):
    pass


# -------------------- Models --------------------


@dataclass(frozen=True)
class SeedEntry:
    url: str
    label: str
    period: Optional[str]


@dataclass(frozen=True)
class PageTarget:
    domain: str
    period: str
    url: str

    @property
    def folder(self) -> str:
        return sanitize_filename(self.domain)

    @property
    def filename(self) -> str:
        return page_filename(self.url)

    def page_dir(self, output_root: Path) -> Path:
        return output_root / self.folder / self.period


@dataclass(frozen=True)
class Resource:
    kind: str
    absolute_url: str
    original_reference: str
    aliases: Tuple[str, ...] = ()

    @property
    def references(self) -> Tuple[str, ...]:
        return (self.original_reference,) + self.aliases


@dataclass
class PageResult:
    url: str
    path: Path
    resources: int
    failures: List[ResourceFetchFailure] = field(default_factory=list)


class PageState(Enum):
    UNVISITED = "unvisited"
    FETCHING = "fetching"
    DONE = "done"
    FAILED = "failed"


@dataclass
class CrawlResult:
    root_url: str
    states: Dict[str, PageState] = field(default_factory=dict)
    pages: List[PageResult] = field(default_factory=list)
    errors: Dict[str, FetchFailure] = field(default_factory=dict)

    def names(self, state: PageState) -> List[str]:
        return sorted(n for n, s in self.states.items() if s is state)

    @property
    def failed(self) -> List[str]:
        return self.names(PageState.FAILED)


@dataclass
class OverviewResult:
    path: Path
    links_rewritten: int
    stylesheets: int
    logo: Optional[str]
    failures: List[ResourceFetchFailure] = field(default_factory=list)


@dataclass
class RunStats:
    pages: int = 0
    pages_failed: int = 0
    subpages: int = 0
    subpages_failed: int = 0
    resources: int = 0
    resources_failed: int = 0
    overview: Optional[Path] = None

    def record_page(self, page: PageResult, *, subpage: bool = False) -> None:
        if subpage:
            self.subpages += 1
        else:
            self.pages += 1
        self.resources += page.resources
        self.resources_failed += len(page.failures)

    @property
    def failures(self) -> int:
        return self.pages_failed + self.subpages_failed + self.resources_failed


# -------------------- Utils --------------------


def sanitize_filename(name: str) -> str:
    name = INVALID_FILENAME_CHARS_RE.sub("_", name)
    name = name or "file"
    if name.startswith("."):
        name = "_" + name[1:]
    return name[:200]


def can_fetch_url(u: Optional[str]) -> bool:
    if not u:
        return False
    u = u.strip()
    if u.startswith(("#", "mailto:", "tel:", "javascript:", "data:", "blob:")):
        return False
    return True


def ensure_parent_dir(p: Path) -> None:
    p.parent.mkdir(parents=True, exist_ok=True)


def atomic_write_bytes(path: Path, data: bytes) -> None:
    ensure_parent_dir(path)
    tmp = path.with_name(path.name + ".tmp")
    tmp.write_bytes(data)
    os.replace(tmp, path)


def known_encoding(name: Optional[str]) -> bool:
    if not name:
        return False
    try:
        codecs.lookup(name)
    except LookupError:
        return False
    return True


def short_h(value: str) -> str:
    return hashlib.md5(value.encode("utf-8")).hexdigest()[:8]


def url_directory(u: str) -> Tuple[str, str, str]:
    p = urlparse(u)
    return p.scheme, p.netloc.lower(), p.path.rsplit("/", 1)[0]


# -------------------- HTML utils --------------------


def bs4_parse(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, "lxml")


def effective_base_url(soup: BeautifulSoup, fallback: str) -> str:
    tag = soup.find("base", href=True)
    if tag and tag.get("href"):
        try:
            return urljoin(fallback, tag["href"])
        except ValueError:
            pass
    return fallback


def serialize_html(soup: BeautifulSoup) -> str:
    return soup.decode(formatter="html")


def stylesheet_links(soup: BeautifulSoup) -> list:
    links = []
    for link in soup.select("link[href]"):
        rels = {r.lower() for r in (link.get("rel") or [])}
        if "stylesheet" in rels:
            links.append(link)
    return links


# -------------------- Output layout --------------------


def url_to_filename(url: str) -> str:
    p = urlparse(url)
    path = p.path[1:] if p.path.startswith("/") else p.path
    name = path.replace("/", "_")
    if p.query:
        stem, ext = os.path.splitext(name)
        name = f"{stem}_{short_h(p.query)}{ext}"
    if not name:
        return DEFAULT_FILENAME
    return sanitize_filename(name)


def page_filename(url: str) -> str:
    name = os.path.basename(urlparse(url).path)
    if not name:
        return DEFAULT_FILENAME
    return sanitize_filename(name)


# -------------------- Extraction --------------------


def resolve_reference(ref: Optional[str], base: str) -> Optional[str]:
    if not can_fetch_url(ref):
        return None
    ref = ref.strip()
    try:
        absolute = urljoin(base, ref)
        parsed = urlparse(absolute)
        parsed.port  # raises ValueError on a bad port
    except ValueError:
        logging.debug("dropping malformed reference: %r", ref)
        return None
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        logging.debug("dropping non-http reference: %r", ref)
        return None
    return absolute


def extract_resources(html: str, base_url: str) -> List[Resource]:
    soup = bs4_parse(html)
    base = effective_base_url(soup, base_url)
    found: Dict[Tuple[str, str], Resource] = {}

    def add(kind: str, ref: Optional[str]) -> None:
        absolute = resolve_reference(ref, base)
        if absolute is None:
            return
        key = (kind, absolute)
        ref = ref.strip()
        res = found.get(key)
        if res is None:
            found[key] = Resource(kind, absolute, ref)
        elif ref not in res.references:
            # same asset spelled differently elsewhere on the page
            found[key] = replace(res, aliases=res.aliases + (ref,))

    for link in stylesheet_links(soup):
        add(KIND_STYLESHEET, link.get("href"))
    for tag in soup.select("script[src]"):
        add(KIND_SCRIPT, tag.get("src"))
    for tag in soup.select("img[src]"):
        add(KIND_IMAGE, tag.get("src"))
    for tag in soup.select("[style]"):
        for m in CSS_URL_RE.finditer(tag.get("style") or ""):
            add(KIND_IMAGE, m.group(2))
    return list(found.values())


def extract_page_links(
    html: str,
    page_url: Optional[str] = None,
    excluded_hosts: Iterable[str] = DEFAULT_EXCLUDED_HOSTS,
    pattern: str = DEFAULT_PAGE_PATTERN,
) -> Set[str]:
    soup = bs4_parse(html)
    family = re.compile(pattern)
    excluded = {h.lower() for h in excluded_hosts}
    home = url_directory(page_url) if page_url else None
    names: Set[str] = set()
    for a in soup.select("a[href]"):
        href = a.get("href")
        if not can_fetch_url(href):
            continue
        href = href.strip()
        try:
            parsed = urlparse(href)
            host = (parsed.hostname or "").lower()
            if host in excluded:
                continue
            if page_url:
                target = urljoin(page_url, href)
                # sub-pages live next to the page that links them
                if url_directory(target) != home:
                    continue
                name = os.path.basename(urlparse(target).path)
            else:
                if parsed.scheme or parsed.netloc or "/" in parsed.path:
                    continue
                name = parsed.path
        except ValueError:
            continue
        if family.match(name):
            names.add(name)
    return names


# -------------------- HTTP --------------------


def build_session(headers: Optional[Dict[str, str]] = None) -> requests.Session:
    s = requests.Session()
    adapter = HTTPAdapter(max_retries=Retry(total=0, raise_on_status=False))
    s.mount("http://", adapter)
    s.mount("https://", adapter)
    s.headers.update(DEFAULT_HEADERS if headers is None else headers)
    return s


class FetchClient:
    def __init__(
        self,
        cookie: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout: Optional[float] = None,
    ):
        self.session = session if session is not None else build_session()
        self.cookie = cookie
        self.timeout = timeout

    def _get(self, url: str) -> requests.Response:
        headers = {"Cookie": self.cookie} if self.cookie else {}
        try:
            r = self.session.get(url, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise FetchFailure(url, None, str(e)) from e
        if not 200 <= r.status_code < 300:
            raise FetchFailure(url, r.status_code, r.reason or "")
        return r

    def fetch(self, url: str) -> bytes:
        return self._get(url).content

    def fetch_text(self, url: str) -> Tuple[str, str]:
        r = self._get(url)
        if not known_encoding(r.encoding):
            if r.encoding:
                logging.warning("unknown charset %r for %s", r.encoding, url)
            fallback = r.apparent_encoding
            r.encoding = fallback if known_encoding(fallback) else "utf-8"
        return r.text, r.encoding


# -------------------- Materializers --------------------


def materialize_resources(
    resources: Iterable[Resource], page_dir: Path, client: FetchClient
) -> Tuple[Dict[str, str], List[ResourceFetchFailure]]:
    table: Dict[str, str] = {}
    failures: List[ResourceFetchFailure] = []
    failed_urls: Set[str] = set()
    for res in resources:
        if res.absolute_url in failed_urls:
            continue
        filename = url_to_filename(res.absolute_url)
        local = f"{RESOURCES_DIR}/{filename}"
        dest = page_dir / RESOURCES_DIR / filename
        if dest.exists():
            logging.debug("resource present: %s", dest)
        else:
            try:
                data = client.fetch(res.absolute_url)
            except FetchFailure as e:
                failure = ResourceFetchFailure.from_failure(e)
                logging.warning("failed %s %s", res.kind, failure)
                failures.append(failure)
                failed_urls.add(res.absolute_url)
                continue
            atomic_write_bytes(dest, data)
            logging.info("downloaded %s: %s -> %s", res.kind, res.absolute_url, local)
        for ref in res.references:
            table[ref] = local
        table[res.absolute_url] = local
    return table, failures


def rewrite_references(html: str, table: Mapping[str, str]) -> str:
    lookup: Dict[str, str] = {}
    for original, local in table.items():
        if not original:
            continue
        lookup[original] = local
        # attribute values come back from the parser unescaped
        lookup.setdefault(html_escape(original, quote=False), local)
    if not lookup:
        return html
    alternation = "|".join(
        re.escape(k) for k in sorted(lookup, key=len, reverse=True)
    )
    pattern = re.compile(rf"(?<!{REF_BOUNDARY})(?:{alternation})(?!{REF_TRAIL})")
    return pattern.sub(lambda m: lookup[m.group(0)], html)


def materialize_page(page_url: str, page_dir: Path, client: FetchClient) -> PageResult:
    logging.info("fetching page: %s", page_url)
    try:
        html, encoding = client.fetch_text(page_url)
    except FetchFailure as e:
        raise AuthFailure.from_failure(e) from e
    resources = extract_resources(html, page_url)
    table, failures = materialize_resources(resources, page_dir, client)
    html = rewrite_references(html, table)
    html_path = page_dir / page_filename(page_url)
    atomic_write_bytes(html_path, html.encode(encoding, errors="xmlcharrefreplace"))
    logging.info(
        "saved page: %s (%d resources, %d failed)",
        html_path,
        len(resources),
        len(failures),
    )
    return PageResult(page_url, html_path, len(resources), failures)


# -------------------- Crawler --------------------


def crawl_subpages(
    root_url: str,
    page_dir: Path,
    client: FetchClient,
    *,
    excluded_hosts: Iterable[str] = DEFAULT_EXCLUDED_HOSTS,
    page_pattern: str = DEFAULT_PAGE_PATTERN,
    refresh: bool = False,
    pace: Callable[[], None] = lambda: None,
) -> CrawlResult:
    root_name = page_filename(root_url)
    html = (page_dir / root_name).read_text(encoding="utf-8", errors="replace")
    result = CrawlResult(root_url)

    # one discovery pass over the root page only
    links = extract_page_links(html, root_url, excluded_hosts, page_pattern)
    links.discard(root_name)
    for name in sorted(links):
        present = not refresh and (page_dir / name).exists()
        result.states[name] = PageState.DONE if present else PageState.UNVISITED

    queue = deque(result.names(PageState.UNVISITED))
    logging.info(
        "sub-pages of %s: %d linked, %d to fetch", root_name, len(links), len(queue)
    )
    while queue:
        name = queue.popleft()
        if result.states[name] is not PageState.UNVISITED:
            continue
        result.states[name] = PageState.FETCHING
        try:
            page = materialize_page(urljoin(root_url, name), page_dir, client)
        except FetchFailure as e:
            result.states[name] = PageState.FAILED
            result.errors[name] = e
            logging.error("sub-page failed: %s", e)
        else:
            result.states[name] = PageState.DONE
            result.pages.append(page)
        finally:
            pace()
    return result


# -------------------- Overview --------------------


def find_logo_url(client: FetchClient, overview_url: str, pattern: str) -> Optional[str]:
    html, _ = client.fetch_text(overview_url)
    soup = bs4_parse(html)
    rx = re.compile(pattern)
    for tag in soup.select("script[src]"):
        bundle_url = resolve_reference(tag.get("src"), overview_url)
        if bundle_url is None:
            continue
        try:
            bundle, _ = client.fetch_text(bundle_url)
        except FetchFailure as e:
            logging.warning("could not read script bundle %s", e)
            continue
        m = rx.search(bundle)
        if m:
            found = m.group(1) if m.groups() else m.group(0)
            logging.debug("logo reference %r in %s", found, bundle_url)
            return urljoin(overview_url, found)
    return None


def compose_overview(
    snapshot_html: str,
    targets: Iterable[PageTarget],
    output_root: Path,
    client: FetchClient,
    settings: Settings,
) -> OverviewResult:
    overview_url = settings.live_overview_url()
    soup = bs4_parse(snapshot_html)
    for tag in soup.find_all(["script", "noscript"]):
        tag.decompose()
    for selector in settings.strip_selectors:
        for tag in soup.select(selector):
            if not tag.decomposed:
                tag.decompose()

    base = effective_base_url(soup, overview_url)
    styles: List[Tuple[object, Resource]] = []
    for link in stylesheet_links(soup):
        absolute = resolve_reference(link.get("href"), base)
        if absolute:
            styles.append((link, Resource(KIND_STYLESHEET, absolute, link["href"])))
    table, failures = materialize_resources(
        [res for _, res in styles], output_root, client
    )
    for link, res in styles:
        local = table.get(res.absolute_url)
        if local:
            link["href"] = local

    logo_local: Optional[str] = None
    try:
        logo_url = find_logo_url(client, overview_url, settings.logo_pattern)
    except FetchFailure as e:
        logging.warning("could not read live overview: %s", e)
        logo_url = None
    if logo_url is None:
        logging.warning("logo not found, writing overview without it")
    else:
        logo_table, logo_failures = materialize_resources(
            [Resource(KIND_IMAGE, logo_url, logo_url)], output_root, client
        )
        failures.extend(logo_failures)
        img = soup.select_one(settings.logo_selector)
        if img is None:
            logging.warning("no logo element matches %r", settings.logo_selector)
        elif logo_url in logo_table:
            logo_local = logo_table[logo_url]
            img["src"] = logo_local
            img.attrs.pop("srcset", None)

    link_map: Dict[str, str] = {}
    for t in targets:
        if (t.page_dir(output_root) / t.filename).exists():
            link_map[urldefrag(t.url)[0]] = f"{t.folder}/{t.period}/{t.filename}"
    rewritten = 0
    for a in soup.select("a[href]"):
        try:
            key, frag = urldefrag(urljoin(overview_url, a["href"].strip()))
        except ValueError:
            continue
        local = link_map.get(key)
        if local:
            a["href"] = f"{local}#{frag}" if frag else local
            rewritten += 1

    index_path = output_root / INDEX_FILENAME
    atomic_write_bytes(index_path, serialize_html(soup).encode("utf-8"))
    logging.info("saved overview: %s (%d links)", index_path, rewritten)
    return OverviewResult(index_path, rewritten, len(styles), logo_local, failures)


# -------------------- Seed + credentials --------------------


def parse_seed(html: str, stat_host: str = STAT_HOST) -> Dict[str, List[SeedEntry]]:
    soup = bs4_parse(html)
    domains: Dict[str, List[SeedEntry]] = {}
    for li in soup.select(".tree > ul > li"):
        label = li.select_one(":scope > .domain")
        name = label.get_text(strip=True) if label else ""
        if not name:
            continue
        entries = domains.setdefault(name, [])
        for a in li.select("ul > li > a[href]"):
            href = a["href"].strip()
            if stat_host not in href:
                continue
            m = PERIOD_RE.search(href)
            entries.append(
                SeedEntry(href, a.get_text(strip=True), m.group(1) if m else None)
            )
    return domains


def load_seed(path: Union[str, Path], stat_host: str = STAT_HOST) -> Dict[str, List[SeedEntry]]:
    p = Path(path)
    try:
        html = p.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"cannot read seed file {p}: {e}") from e
    return parse_seed(html, stat_host)


def seed_targets(domains: Mapping[str, List[SeedEntry]]) -> List[PageTarget]:
    targets: List[PageTarget] = []
    seen: Set[Tuple[str, str]] = set()
    for domain, entries in domains.items():
        for entry in entries:
            if entry.period is None:
                logging.warning("no period in %s, skipping", entry.url)
                continue
            key = (sanitize_filename(domain), entry.period)
            if key in seen:
                logging.warning("duplicate %s/%s: skipping %s", domain, entry.period, entry.url)
                continue
            seen.add(key)
            targets.append(PageTarget(domain, entry.period, entry.url))
    return targets


def cookie_header_from_json(data: object) -> Optional[str]:
    if isinstance(data, str):
        return data.strip() or None
    if isinstance(data, list):
        pairs = [
            f"{c['name']}={c['value']}"
            for c in data
            if isinstance(c, dict) and "name" in c and "value" in c
        ]
        return "; ".join(pairs) or None
    if isinstance(data, dict):
        if "cookies" in data:
            return cookie_header_from_json(data["cookies"])
        pairs = [
            f"{k}={v}" for k, v in data.items() if isinstance(v, (str, int, float))
        ]
        return "; ".join(pairs) or None
    return None


def cookie_header_from_jar(path: Path) -> Optional[str]:
    jar = MozillaCookieJar()
    try:
        jar.load(str(path), ignore_discard=True, ignore_expires=True)
    except (LoadError, OSError) as e:
        raise ConfigError(f"unrecognized cookie file {path}: {e}") from e
    return "; ".join(f"{c.name}={c.value}" for c in jar) or None


def load_cookie_header(path: Union[str, Path]) -> str:
    p = Path(path)
    try:
        text = p.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"cannot read cookie file {p}: {e}") from e
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        header = cookie_header_from_jar(p)
    else:
        header = cookie_header_from_json(data)
    if not header:
        raise ConfigError(f"no cookies found in {p}")
    logging.info("loaded cookies: %s", p)
    return header


# -------------------- Main: run --------------------


def run_mirror(
    settings: Settings,
    targets: List[PageTarget],
    client: FetchClient,
    mode: str = "full",
    *,
    snapshot_html: Optional[str] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> RunStats:
    out_root = Path(settings.output_dir).resolve()
    out_root.mkdir(parents=True, exist_ok=True)
    stats = RunStats()

    def pace() -> None:
        if settings.delay > 0:
            sleep(settings.delay)

    if mode in {"full", "subpages"}:
        for domain, group in itertools.groupby(targets, key=lambda t: t.domain):
            group = list(group)
            logging.info("[%s] (%d pages)", domain, len(group))
            for target in group:
                page_dir = target.page_dir(out_root)
                if mode == "full":
                    try:
                        page = materialize_page(target.url, page_dir, client)
                    except AuthFailure as e:
                        logging.error("page failed: %s", e)
                        stats.pages_failed += 1
                        continue
                    finally:
                        pace()
                    stats.record_page(page)
                elif not (page_dir / target.filename).exists():
                    logging.warning("root page not mirrored yet: %s", target.url)
                    continue
                crawl = crawl_subpages(
                    target.url,
                    page_dir,
                    client,
                    excluded_hosts=settings.excluded_hosts,
                    page_pattern=settings.page_pattern,
                    refresh=settings.refresh_subpages,
                    pace=pace,
                )
                for page in crawl.pages:
                    stats.record_page(page, subpage=True)
                stats.subpages_failed += len(crawl.failed)

    if mode in {"full", "overview"}:
        if snapshot_html is None:
            logging.warning("no overview snapshot, skipping index")
        else:
            overview = compose_overview(snapshot_html, targets, out_root, client, settings)
            stats.overview = overview.path
            stats.resources_failed += len(overview.failures)

    return stats


# -------------------- Config loader --------------------


def load_config_file(path: str) -> Dict[str, Union[str, int, float, bool, List[str]]]:
    p = Path(path)
    suf = p.suffix.lower()
    try:
        if suf in {".toml", ".tml"}:
            with open(p, "rb") as f:
                return tomllib.load(f) or {}
        if suf in {".yaml", ".yml"}:
            with open(p, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
            if not isinstance(data, dict):
                raise ConfigError("Top-level YAML must be a mapping")
            return data
    except (OSError, tomllib.TOMLDecodeError, yaml.YAMLError) as e:
        raise ConfigError(f"cannot load config {p}: {e}") from e
    raise ConfigError("Unsupported config format. Use .toml or .yaml")


# -------------------- CLI --------------------


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        description="Mirror authenticated statistics report pages into a static tree.",
        add_help=True,
    )
    p.add_argument("--config", type=str, help="path to config.toml|.yaml", default=None)
    p.add_argument(
        "--mode",
        choices=MODES,
        default="full",
        help="full run, sub-pages only, overview only, or list the seed",
    )
    p.add_argument("--output", dest="output_dir", default="output", help="output directory")
    p.add_argument("--seed", dest="seed_file", default=SEED_FILE, help="seed document")
    p.add_argument(
        "--cookies",
        dest="cookies_file",
        default=COOKIES_FILE,
        help="cookies.json or Netscape cookies.txt",
    )
    p.add_argument("--stat-host", default=STAT_HOST, help="statistics host")
    p.add_argument("--verbose", action="store_true", help="debug logging")

    # fetch
    p.add_argument(
        "--delay", type=float, default=0.5, help="seconds to wait after each page"
    )
    p.add_argument(
        "--timeout", type=float, default=None, help="request timeout seconds"
    )

    # crawl
    p.add_argument(
        "--exclude-host",
        dest="exclude_hosts",
        action="append",
        default=[],
        help="extra host whose links are never followed",
    )
    p.add_argument(
        "--page-pattern",
        default=DEFAULT_PAGE_PATTERN,
        help="regex for sub-page filenames",
    )
    p.add_argument(
        "--refresh-subpages",
        action="store_true",
        help="re-fetch sub-pages that already exist on disk",
    )

    # overview
    p.add_argument("--overview-url", default=None, help="live overview page URL")
    p.add_argument(
        "--overview-snapshot",
        default=None,
        help="saved overview document (default: the seed file)",
    )
    p.add_argument(
        "--logo-pattern",
        default=DEFAULT_LOGO_PATTERN,
        help="regex locating the logo path inside script bundles",
    )
    p.add_argument(
        "--logo-selector",
        default=DEFAULT_LOGO_SELECTOR,
        help="CSS selector of the logo image in the snapshot",
    )
    p.add_argument(
        "--strip-selector",
        dest="strip_selectors",
        action="append",
        default=[],
        help="extra CSS selector removed from the overview",
    )
    return p


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = build_arg_parser()
    preliminary, _ = parser.parse_known_args(argv)
    if preliminary.config:
        try:
            cfg = load_config_file(preliminary.config)
        except ConfigError as e:
            parser.error(str(e))
        flat = dict(cfg)
        for g in ("general", "fetch", "crawl", "overview", "auth"):
            if isinstance(cfg.get(g), dict):
                flat.update(cfg[g])
        parser.set_defaults(**flat)
    return parser.parse_args(argv)


def settings_from_args(args: argparse.Namespace) -> Settings:
    return Settings(
        output_dir=args.output_dir,
        seed_file=args.seed_file,
        cookies_file=args.cookies_file,
        stat_host=args.stat_host,
        delay=max(0.0, args.delay),
        timeout=args.timeout,
        excluded_hosts=set(DEFAULT_EXCLUDED_HOSTS) | set(args.exclude_hosts or []),
        page_pattern=args.page_pattern,
        refresh_subpages=args.refresh_subpages,
        overview_url=args.overview_url,
        overview_snapshot=args.overview_snapshot,
        logo_pattern=args.logo_pattern,
        logo_selector=args.logo_selector,
        strip_selectors=list(DEFAULT_STRIP_SELECTORS) + list(args.strip_selectors or []),
    )


def print_seed(domains: Mapping[str, List[SeedEntry]]) -> None:
    print("Parsed statistics URLs:")
    total = 0
    for domain, entries in domains.items():
        print(f"\n{domain} ({len(entries)} entries):")
        for entry in entries:
            print(f"  - {entry.label}: {entry.url}")
            total += 1
    print(f"\nTotal: {total} URLs across {len(domains)} domains")


def main(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s: %(message)s",
    )
    settings = settings_from_args(args)

    try:
        domains = load_seed(settings.seed_file, settings.stat_host)
    except ConfigError as e:
        print(f"Critical error: {e}")
        sys.exit(1)
    if args.mode == "list":
        print_seed(domains)
        return
    targets = seed_targets(domains)

    try:
        cookie = load_cookie_header(settings.cookies_file)
    except ConfigError as e:
        print(f"Critical error: {e}")
        print(COOKIE_HELP)
        sys.exit(1)

    snapshot_html: Optional[str] = None
    if args.mode in {"full", "overview"}:
        snapshot = Path(settings.overview_snapshot or settings.seed_file)
        try:
            snapshot_html = snapshot.read_text(encoding="utf-8")
        except OSError as e:
            print(f"Critical error: cannot read overview snapshot {snapshot}: {e}")
            sys.exit(1)

    domain_count = len({t.domain for t in targets})
    logging.info("found %d pages across %d domains", len(targets), domain_count)
    client = FetchClient(cookie, timeout=settings.timeout)
    stats = run_mirror(settings, targets, client, args.mode, snapshot_html=snapshot_html)

    print("Mirroring complete")
    print(f"Pages saved: {stats.pages} ({stats.pages_failed} failed)")
    print(f"Sub-pages saved: {stats.subpages} ({stats.subpages_failed} failed)")
    print(f"Resources failed: {stats.resources_failed}")
    if stats.overview:
        print(f"Overview: {stats.overview}")
    print(f"Root: {Path(settings.output_dir).resolve()}")
    if stats.failures:
        sys.exit(1)


if __name__ == "__main__":
    main()
