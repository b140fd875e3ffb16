"""
Browser rendering with Playwright.

``BrowserRenderer`` launches Chromium once and opens one context per URL;
``PlaywrightPage`` adapts a Playwright page to the page-handle interface.
"""

from pathlib import Path
from typing import Optional, Sequence

from loguru import logger
from playwright.async_api import Browser, BrowserContext, Page, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError

from qabot.errors import EvidenceCaptureFailed, PageLoadFailed

DEFAULT_VIEWPORT = {"width": 1280, "height": 800}
CLOSE_UP_PADDING = 40

# Returns the anchors in document order with the same selector scheme as
# qabot.web.page.css_path.
ANCHOR_SCRIPT = """
() => {
  const cssPath = (el) => {
    const parts = [];
    while (el && el.nodeType === 1 && el !== document.documentElement) {
      if (el.id) {
        parts.unshift(/^[A-Za-z][\\w-]*$/.test(el.id) ? '#' + el.id : '[id="' + el.id + '"]');
        return parts.join(' > ');
      }
      let index = 1;
      let sibling = el;
      while ((sibling = sibling.previousElementSibling)) {
        if (sibling.tagName === el.tagName) index++;
      }
      parts.unshift(el.tagName.toLowerCase() + ':nth-of-type(' + index + ')');
      el = el.parentElement;
    }
    parts.unshift('html');
    return parts.join(' > ');
  };

  const isVisible = (el) => {
    if (el.closest('[aria-hidden="true"]')) return false;
    const rect = el.getBoundingClientRect();
    if (rect.width === 0 || rect.height === 0) return false;
    for (let node = el; node && node.nodeType === 1; node = node.parentElement) {
      const style = window.getComputedStyle(node);
      if (style.display === 'none' || style.visibility === 'hidden') return false;
      if (parseFloat(style.opacity) === 0) return false;
    }
    return true;
  };

  return Array.from(document.querySelectorAll('a[href]')).map((a) => ({
    href: a.getAttribute('href'),
    resolved: a.href,
    selector: cssPath(a),
    text: a.innerText || a.textContent || '',
    html: a.outerHTML.slice(0, 300),
    visible: isVisible(a),
  }));
}
"""

HIGHLIGHT_SCRIPT = """
(selectors) => {
  for (const selector of selectors) {
    for (const el of document.querySelectorAll(selector)) {
      el.dataset.qabotOutline = el.style.outline;
      el.style.outline = '3px solid red';
      el.style.outlineOffset = '2px';
    }
  }
}
"""

UNHIGHLIGHT_SCRIPT = """
() => {
  for (const el of document.querySelectorAll('[data-qabot-outline]')) {
    el.style.outline = el.dataset.qabotOutline;
    el.style.outlineOffset = '';
    delete el.dataset.qabotOutline;
  }
  for (const label of document.querySelectorAll('.qabot-label')) label.remove();
}
"""

LABEL_SCRIPT = """
([selector, text]) => {
  const el = document.querySelector(selector);
  if (!el || !text) return;
  const rect = el.getBoundingClientRect();
  const label = document.createElement('div');
  label.className = 'qabot-label';
  label.textContent = text;
  Object.assign(label.style, {
    position: 'absolute',
    left: (rect.left + window.scrollX) + 'px',
    top: Math.max(0, rect.top + window.scrollY - 22) + 'px',
    background: 'red',
    color: 'white',
    font: 'bold 12px sans-serif',
    padding: '2px 6px',
    zIndex: 2147483647,
  });
  document.body.appendChild(label);
}
"""


class PlaywrightPage:
    """Page handle backed by a live Playwright page."""

    def __init__(self, page: Page, context: Optional[BrowserContext] = None):
        self._page = page
        self._context = context

    @property
    def url(self) -> str:
        return self._page.url

    async def content(self) -> str:
        return await self._page.content()

    async def query_anchors(self) -> list[dict]:
        return await self._page.evaluate(ANCHOR_SCRIPT)

    async def screenshot(self, path: Path, highlight: Sequence[str] = ()) -> None:
        try:
            if highlight:
                await self._page.evaluate(HIGHLIGHT_SCRIPT, list(highlight))
            await self._page.screenshot(path=str(path), full_page=True)
        except PlaywrightError as e:
            raise EvidenceCaptureFailed(f"Full-page screenshot failed: {e.message}") from e
        finally:
            await self._restore()

    async def screenshot_element(self, selector: str, path: Path, label: str = "") -> None:
        locator = self._page.locator(selector).first
        try:
            if await locator.count() == 0:
                raise EvidenceCaptureFailed(f"Element no longer on page: {selector}")
            await locator.scroll_into_view_if_needed(timeout=2000)
            box = await locator.bounding_box()
            if box is None:
                raise EvidenceCaptureFailed(f"Element has no layout box: {selector}")

            await self._page.evaluate(HIGHLIGHT_SCRIPT, [selector])
            await self._page.evaluate(LABEL_SCRIPT, [selector, label])

            # The clip is in page coordinates when full_page is set.
            box = await locator.bounding_box() or box
            scroll = await self._page.evaluate("() => [window.scrollX, window.scrollY]")
            x = max(0, box["x"] + scroll[0] - CLOSE_UP_PADDING)
            y = max(0, box["y"] + scroll[1] - CLOSE_UP_PADDING)
            clip = {
                "x": x,
                "y": y,
                "width": box["width"] + 2 * CLOSE_UP_PADDING,
                "height": box["height"] + 2 * CLOSE_UP_PADDING,
            }
            await self._page.screenshot(path=str(path), clip=clip, full_page=True)
        except PlaywrightError as e:
            raise EvidenceCaptureFailed(f"Close-up of {selector} failed: {e.message}") from e
        finally:
            await self._restore()

    async def _restore(self) -> None:
        if self._page.is_closed():
            return
        try:
            await self._page.evaluate(UNHIGHLIGHT_SCRIPT)
        except PlaywrightError as e:
            logger.debug("Could not remove highlight: {}", e.message)

    def is_closed(self) -> bool:
        return self._page.is_closed()

    async def close(self) -> None:
        if self._context is not None:
            await self._context.close()
        elif not self._page.is_closed():
            await self._page.close()


class BrowserRenderer:
    """
    Render pages in headless Chromium.

    Usage:
        async with BrowserRenderer(headless=True) as renderer:
            page = await renderer.open("https://example.com")
    """

    def __init__(self, headless: bool = True, timeout: float = 60.0, viewport: Optional[dict] = None):
        self.headless = headless
        self.timeout = timeout
        self.viewport = viewport or DEFAULT_VIEWPORT
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None

    async def __aenter__(self) -> "BrowserRenderer":
        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(headless=self.headless)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._browser is not None:
            await self._browser.close()
            self._browser = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None

    async def open(self, url: str) -> PlaywrightPage:
        if self._browser is None:
            raise RuntimeError("BrowserRenderer must be used as an async context manager")

        context = await self._browser.new_context(viewport=self.viewport)
        page = await context.new_page()
        try:
            await page.goto(url, wait_until="domcontentloaded", timeout=self.timeout * 1000)
        except PlaywrightError as e:
            await context.close()
            raise PageLoadFailed(url, e.message) from e
        logger.debug("Rendered {}", page.url)
        return PlaywrightPage(page, context)
