"""
Broken link check for one rendered page.

Extract -> probe -> classify -> capture evidence -> aggregate. The caller
renders the page and owns the returned report; nothing is written here apart
from evidence screenshots.
"""

from typing import Optional

from loguru import logger

from qabot.core.checker import LinkChecker
from qabot.core.classifier import classify
from qabot.core.evidence import EvidenceCapturer
from qabot.core.extractor import LinkExtractor, group_by_target
from qabot.core.models import Disposition, LinkCheckConfig, LinkCheckResult, PageLinkReport
from qabot.core.report import aggregate
from qabot.core.transport import Transport


async def check_page_links(
    page,
    transport: Transport,
    config: Optional[LinkCheckConfig] = None,
) -> PageLinkReport:
    """
    Check every visible outbound link on a page.

    Args:
        page: Rendered page handle (DOM-ready or later)
        transport: Network layer used for the probes
        config: Explicit check settings; defaults when omitted

    Returns:
        PageLinkReport with BROKEN and REVIEW results in discovery order

    Raises:
        ExtractionFailed: if the page DOM cannot be queried
    """
    config = config or LinkCheckConfig()

    extractor = LinkExtractor(
        include_hidden=config.include_hidden,
        same_origin_only=config.same_origin_only,
    )
    targets = group_by_target(await extractor.extract(page))
    logger.info("Found {} unique link(s) on {}", len(targets), page.url)

    checker = LinkChecker(
        transport,
        concurrency=config.concurrency,
        timeout=config.timeout,
        policy=config.policy,
    )
    probes = await checker.check(target.url for target in targets)

    results = [
        LinkCheckResult(
            probe=probe,
            disposition=classify(probe, config.policy),
            elements=target.elements,
        )
        for target, probe in zip(targets, probes)
    ]

    broken = [result for result in results if result.disposition is Disposition.BROKEN]
    capturer = EvidenceCapturer(config.evidence_dir, enabled=config.capture_evidence)
    evidence = await capturer.capture(page, broken)

    report = aggregate(page.url, results, total_links=len(targets), evidence=evidence)
    logger.info(
        "{}: {} ok, {} broken, {} need review",
        page.url, report.ok_count, len(report.broken), len(report.review),
    )
    return report
