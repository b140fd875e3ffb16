"""
Evidence capture for broken links.

Screenshots are best-effort: the page may have changed since the links were
extracted. A failed close-up is skipped, and capture as a whole never fails
the check.
"""

from datetime import datetime
from pathlib import Path
from typing import Optional, Sequence

from loguru import logger

from qabot.core.models import Evidence, LinkCheckResult
from qabot.errors import EvidenceCaptureFailed


def _stamp() -> str:
    return datetime.now().strftime("%Y%m%d-%H%M%S-%f")


class EvidenceCapturer:
    """Capture a full-page overview plus one close-up per broken element."""

    def __init__(self, output_dir: Path, enabled: bool = True):
        self.output_dir = Path(output_dir)
        self.enabled = enabled

    async def capture(self, page, broken: Sequence[LinkCheckResult]) -> Optional[Evidence]:
        """
        Screenshot a page's broken links.

        Returns:
            Evidence with the files that were written, or None when capture is
            disabled, nothing is broken, the page is gone or no file was written
        """
        if not self.enabled or not broken:
            return None
        if page.is_closed():
            logger.info("Page closed before evidence capture: {}", page.url)
            return None

        self.output_dir.mkdir(parents=True, exist_ok=True)
        stamp = _stamp()
        selectors = [element.selector for result in broken for element in result.elements]

        full_page = None
        full_page_path = self.output_dir / f"broken-links-fullpage-{stamp}.png"
        try:
            await page.screenshot(full_page_path, highlight=selectors)
            full_page = full_page_path
        except (EvidenceCaptureFailed, OSError) as e:
            logger.warning("Full-page screenshot failed for {}: {}", page.url, e)

        close_ups: list[Path] = []
        for link_index, result in enumerate(broken, start=1):
            for element_index, element in enumerate(result.elements, start=1):
                path = self.output_dir / f"broken-link-{link_index}-{element_index}-{stamp}.png"
                label = f"{result.probe.status} {result.probe.status_text}".strip()
                try:
                    await page.screenshot_element(element.selector, path, label=label)
                except (EvidenceCaptureFailed, OSError) as e:
                    logger.debug("Skipping close-up of {}: {}", element.selector, e)
                    continue
                close_ups.append(path)

        if full_page is None and not close_ups:
            return None

        logger.info("Captured {} screenshot(s) for {}", len(close_ups) + bool(full_page), page.url)
        return Evidence(full_page=full_page, close_ups=tuple(close_ups))

