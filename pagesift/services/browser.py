import asyncio
import logging
import random
from contextlib import asynccontextmanager
from dataclasses import dataclass, field

from browserforge.headers import Browser as ForgeBrowser, HeaderGenerator
from playwright.async_api import async_playwright, BrowserContext

from pagesift.config import settings
from pagesift.core.exceptions import ResourceError
from pagesift.core.metrics import active_browser_contexts, browser_release_failures_total

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Fingerprint data, drawn per session
# ---------------------------------------------------------------------------

VIEWPORTS = [
    {"width": 1920, "height": 1080},
    {"width": 1366, "height": 768},
    {"width": 1440, "height": 900},
    {"width": 1536, "height": 864},
    {"width": 1680, "height": 1050},
]

TIMEZONES = [
    "America/New_York",
    "America/Chicago",
    "America/Los_Angeles",
    "America/Denver",
    "Europe/London",
]

WEBGL_RENDERERS = [
    (
        "Google Inc. (NVIDIA)",
        "ANGLE (NVIDIA, NVIDIA GeForce RTX 3060 Direct3D11 vs_5_0 ps_5_0, D3D11)",
    ),
    (
        "Google Inc. (Intel)",
        "ANGLE (Intel, Intel(R) UHD Graphics 630 Direct3D11 vs_5_0 ps_5_0, D3D11)",
    ),
    (
        "Google Inc. (AMD)",
        "ANGLE (AMD, AMD Radeon RX 6700 XT Direct3D11 vs_5_0 ps_5_0, D3D11)",
    ),
    ("Google Inc. (Apple)", "ANGLE (Apple, Apple M1, OpenGL 4.1)"),
]

# Headers Playwright manages itself or that must match the real connection
_CONTEXT_MANAGED_HEADERS = frozenset(
    {"user-agent", "accept-encoding", "host", "connection", "content-length"}
)

AD_SERVING_DOMAINS = frozenset(
    {
        "doubleclick.net",
        "googlesyndication.com",
        "googletagservices.com",
        "google-analytics.com",
        "amazon-adsystem.com",
        "adnxs.com",
        "criteo.com",
        "outbrain.com",
        "taboola.com",
        "moatads.com",
        "scorecardresearch.com",
        "hotjar.com",
    }
)

_CHROMIUM_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-blink-features=AutomationControlled",
    "--disable-infobars",
    "--disable-extensions",
    "--no-first-run",
    "--no-default-browser-check",
    "--disable-background-networking",
    "--disable-sync",
    "--disable-features=TranslateUI",
    "--disable-gpu",
]

_header_gen = HeaderGenerator(
    browser=(ForgeBrowser(name="chrome", min_version=120),),
    device="desktop",
    locale=("en-US", "en"),
)


@dataclass(frozen=True)
class BrowserFingerprint:
    user_agent: str
    headers: dict[str, str] = field(default_factory=dict)
    viewport: dict = field(default_factory=lambda: dict(VIEWPORTS[0]))
    timezone_id: str = "America/New_York"
    webgl_vendor: str = WEBGL_RENDERERS[0][0]
    webgl_renderer: str = WEBGL_RENDERERS[0][1]
    hw_concurrency: int = 8
    device_memory: int = 8

    def context_kwargs(self, proxy: dict | None = None) -> dict:
        kwargs = dict(
            user_agent=self.user_agent,
            viewport=self.viewport,
            locale="en-US",
            timezone_id=self.timezone_id,
            ignore_https_errors=True,
            java_script_enabled=True,
            has_touch=False,
            is_mobile=False,
            color_scheme="light",
            extra_http_headers=self.headers,
        )
        if proxy:
            kwargs["proxy"] = proxy
        return kwargs

    def stealth_script(self) -> str:
        return _build_stealth_script(
            self.webgl_vendor,
            self.webgl_renderer,
            self.hw_concurrency,
            self.device_memory,
        )


def generate_fingerprint() -> BrowserFingerprint:
    """Draw a desktop Chrome fingerprint: browserforge headers plus random screen/GPU."""
    generated = _header_gen.generate()
    lowered = {k.lower(): v for k, v in generated.items()}
    user_agent = lowered.get("user-agent", "")
    headers = {
        k: v for k, v in generated.items() if k.lower() not in _CONTEXT_MANAGED_HEADERS
    }
    webgl_vendor, webgl_renderer = random.choice(WEBGL_RENDERERS)
    return BrowserFingerprint(
        user_agent=user_agent,
        headers=headers,
        viewport=dict(random.choice(VIEWPORTS)),
        timezone_id=random.choice(TIMEZONES),
        webgl_vendor=webgl_vendor,
        webgl_renderer=webgl_renderer,
        hw_concurrency=random.choice([4, 8, 12, 16]),
        device_memory=random.choice([4, 8, 16]),
    )


def _build_stealth_script(
    webgl_vendor: str,
    webgl_renderer: str,
    hw_concurrency: int,
    device_mem: int,
) -> str:
    """Init script patching the navigator properties headless Chrome gives away."""
    return f"""
Object.defineProperty(navigator, 'webdriver', {{ get: () => false }});
Object.defineProperty(navigator, 'languages', {{ get: () => ['en-US', 'en'] }});

const ua = navigator.userAgent;
if (ua.includes('Win')) {{
    Object.defineProperty(navigator, 'platform', {{ get: () => 'Win32' }});
}} else if (ua.includes('Mac')) {{
    Object.defineProperty(navigator, 'platform', {{ get: () => 'MacIntel' }});
}} else if (ua.includes('Linux')) {{
    Object.defineProperty(navigator, 'platform', {{ get: () => 'Linux x86_64' }});
}}

Object.defineProperty(navigator, 'hardwareConcurrency', {{ get: () => {hw_concurrency} }});
Object.defineProperty(navigator, 'deviceMemory', {{ get: () => {device_mem} }});
Object.defineProperty(navigator, 'maxTouchPoints', {{ get: () => 0 }});

window.chrome = window.chrome || {{ runtime: {{}}, loadTimes: function() {{}}, csi: function() {{}} }};

const glVendor = '{webgl_vendor}';
const glRenderer = '{webgl_renderer}';
const patchWebGL = (proto) => {{
    if (!proto) return;
    const orig = proto.getParameter;
    proto.getParameter = function(param) {{
        if (param === 37445) return glVendor;
        if (param === 37446) return glRenderer;
        return orig.call(this, param);
    }};
}};
patchWebGL(WebGLRenderingContext.prototype);
if (window.WebGL2RenderingContext) patchWebGL(WebGL2RenderingContext.prototype);

Object.defineProperty(document, 'hidden', {{ get: () => false }});
Object.defineProperty(document, 'visibilityState', {{ get: () => 'visible' }});
"""


async def _setup_route_blocking(context: BrowserContext):
    """Abort requests to ad and tracking hosts."""

    async def _route_handler(route, request):
        try:
            after_scheme = request.url.split("//", 1)[1]
            hostname = after_scheme.split("/", 1)[0].split(":")[0].lower()
        except IndexError:
            await route.continue_()
            return

        if any(domain in hostname for domain in AD_SERVING_DOMAINS):
            await route.abort()
            return
        await route.continue_()

    await context.route("**/*", _route_handler)


def _launch_kwargs() -> dict:
    kwargs = dict(headless=settings.BROWSER_HEADLESS, args=_CHROMIUM_ARGS)
    if settings.BROWSER_EXECUTABLE_PATH:
        kwargs["executable_path"] = settings.BROWSER_EXECUTABLE_PATH
    return kwargs


async def _close(closer, label: str) -> None:
    """Await one close coroutine; failures are logged, never raised."""
    try:
        await closer()
    except Exception as e:
        err = ResourceError(f"Failed to release {label}: {e}")
        browser_release_failures_total.inc()
        logger.warning(str(err), exc_info=e)


async def _release(playwright, browser, context) -> None:
    if context is not None:
        await _close(context.close, "browser context")
    if browser is not None:
        await _close(browser.close, "browser")
    await _close(playwright.stop, "playwright driver")


@asynccontextmanager
async def browser_page(fingerprint: BrowserFingerprint, proxy: dict | None = None):
    """Launch a private browser, yield one stealth-configured page, tear everything down.

    The context, browser and driver are each closed exactly once on every
    exit path, including cancellation. Close failures are logged as
    ResourceError and never replace the error raised inside the block.
    """
    playwright = await async_playwright().start()
    browser = None
    context = None
    active_browser_contexts.inc()
    try:
        browser = await playwright.chromium.launch(**_launch_kwargs())
        context = await browser.new_context(**fingerprint.context_kwargs(proxy))
        await _setup_route_blocking(context)
        await context.add_init_script(fingerprint.stealth_script())
        page = await context.new_page()
        yield page
    finally:
        active_browser_contexts.dec()
        # Shield cleanup so a cancelled extraction still releases the browser
        await asyncio.shield(_release(playwright, browser, context))
