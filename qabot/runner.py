"""
Audit Runner
============

Audits a batch of URLs: render each page, run the SEO, link, accessibility
and GTM checks, merge and write the reports, and optionally push them to a
webhook. Pages are audited concurrently up to ``page_parallelism``; each page
runs its own bounded link-check pool.
"""

import asyncio
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Callable, Iterable, Optional

import aiohttp
from loguru import logger
from rich.console import Console
from rich.progress import Progress

from qabot.config import Settings
from qabot.core.broken_links import check_page_links
from qabot.core.models import LinkCheckConfig
from qabot.core.transport import AiohttpTransport
from qabot.errors import ExtractionFailed, ReportingDegraded, WebhookDeliveryError
from qabot.reporting.merger import MergedReport, merge_results
from qabot.reporting.paths import url_based_dir
from qabot.reporting.webhook import WebhookNotifier
from qabot.reporting.writers import write_error_report, write_html_report, write_json_report
from qabot.web.accessibility import AccessibilityChecker
from qabot.web.gtm import check_gtm
from qabot.web.page import StaticRenderer
from qabot.web.seo import SEOAnalyzer, SEOOptions

console = Console()


@dataclass
class AuditOptions:
    """Everything one audit run needs; built from Settings by the CLI."""
    renderer: str = "browser"
    headless: bool = True
    page_load_timeout: float = 60.0
    page_parallelism: int = 2
    reports_dir: Path = Path("reports")
    html_reports_dir: Path = Path("playwright-report")
    link_check: LinkCheckConfig = field(default_factory=LinkCheckConfig)
    seo: SEOOptions = field(default_factory=lambda: SEOOptions(check_robots=True))
    check_gtm: bool = True
    write_reports: bool = True
    webhook_url: Optional[str] = None
    webhook_method: str = "POST"

    @classmethod
    def from_settings(cls, settings: Settings, **overrides) -> "AuditOptions":
        options = cls(
            renderer=settings.renderer,
            headless=settings.headless,
            page_load_timeout=settings.page_load_timeout,
            page_parallelism=settings.page_parallelism,
            reports_dir=settings.reports_dir,
            html_reports_dir=settings.html_reports_dir,
            link_check=settings.link_check_config(),
            webhook_url=settings.n8n_webhook_url,
            webhook_method=settings.n8n_webhook_method,
        )
        return replace(options, **overrides)


@dataclass
class PageOutcome:
    """Result of auditing one URL: a report, or the error that prevented one."""
    url: str
    report: Optional[MergedReport] = None
    error: Optional[str] = None
    report_path: Optional[Path] = None
    html_path: Optional[Path] = None
    warnings: list[str] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return self.report is not None and self.report.passed


@dataclass
class AuditRun:
    outcomes: list[PageOutcome] = field(default_factory=list)
    webhook_status: Optional[int] = None

    @property
    def reports(self) -> list[MergedReport]:
        return [outcome.report for outcome in self.outcomes if outcome.report is not None]

    @property
    def passed(self) -> bool:
        return bool(self.outcomes) and all(outcome.passed for outcome in self.outcomes)


def default_renderer_factory(options: AuditOptions):
    if options.renderer == "static":
        return StaticRenderer(timeout=options.page_load_timeout)
    # Playwright is only imported when a browser is actually needed.
    from qabot.web.browser import BrowserRenderer
    return BrowserRenderer(headless=options.headless, timeout=options.page_load_timeout)


class AuditRunner:
    """
    Run full-page audits over many URLs.

    Usage:
        runner = AuditRunner(AuditOptions(renderer="static"))
        run = asyncio.run(runner.run(["https://example.com"]))
    """

    def __init__(
        self,
        options: Optional[AuditOptions] = None,
        renderer_factory: Optional[Callable] = None,
        transport_factory: Optional[Callable] = None,
    ):
        self.options = options or AuditOptions()
        self.renderer_factory = renderer_factory or default_renderer_factory
        self.transport_factory = transport_factory or AiohttpTransport
        self.seo_analyzer = SEOAnalyzer(self.options.seo)
        self.accessibility_checker = AccessibilityChecker()

    async def run(self, urls: Iterable[str]) -> AuditRun:
        """
        Audit each unique URL once.

        Returns:
            AuditRun with one PageOutcome per URL, in input order
        """
        unique_urls = list(dict.fromkeys(url.strip() for url in urls if url.strip()))
        run = AuditRun()
        if not unique_urls:
            return run

        console.print(f"[bold blue]Auditing {len(unique_urls)} URL(s)[/bold blue]")
        semaphore = asyncio.Semaphore(self.options.page_parallelism)

        async with self.renderer_factory(self.options) as renderer, self.transport_factory() as transport:
            with Progress(console=console, transient=True) as progress:
                task = progress.add_task("[cyan]Auditing pages...", total=len(unique_urls))

                async def audit_one(url: str) -> PageOutcome:
                    async with semaphore:
                        outcome = await self._audit_url(renderer, transport, url)
                    progress.update(task, advance=1)
                    return outcome

                run.outcomes = list(await asyncio.gather(*(audit_one(url) for url in unique_urls)))

        if self.options.webhook_url and run.reports:
            run.webhook_status = await self._notify(run.reports)

        return run

    async def _audit_url(self, renderer, transport, url: str) -> PageOutcome:
        try:
            report = await self.audit_page(renderer, transport, url)
        except Exception as e:
            # One unreachable page must not stop the batch.
            logger.error("Error auditing {}: {}", url, e)
            outcome = PageOutcome(url=url, error=str(e) or e.__class__.__name__)
            if self.options.write_reports:
                self._write(outcome, "error report", write_error_report, url, e, self.options.reports_dir)
            return outcome

        outcome = PageOutcome(url=url, report=report)
        if self.options.write_reports:
            outcome.report_path = self._write(
                outcome, "JSON report", write_json_report, report, self.options.reports_dir
            )
            outcome.html_path = self._write(
                outcome, "HTML report", write_html_report, report, self.options.html_reports_dir
            )
        try:
            self._print_outcome(report)
        except Exception as e:
            logger.warning("Could not print the summary for {}: {}", url, e)
        return outcome

    @staticmethod
    def _write(outcome: PageOutcome, what: str, writer: Callable, *args) -> Optional[Path]:
        """Run one report writer; a failure is kept on the outcome."""
        try:
            return writer(*args)
        except Exception as e:
            degraded = ReportingDegraded(f"Could not write {what} for {outcome.url}: {e}")
            logger.warning(str(degraded))
            outcome.warnings.append(str(degraded))
            return None

    async def audit_page(self, renderer, transport, url: str) -> MergedReport:
        """Render one page and run every check on it."""
        page = await renderer.open(url)
        try:
            page_url = page.url
            html = await page.content()
            warnings: list[str] = []

            seo_results = self.seo_analyzer.run_checks(html)
            metadata = self.seo_analyzer.extract_metadata(html)

            link_config = replace(
                self.options.link_check,
                evidence_dir=url_based_dir(page_url, self.options.link_check.evidence_dir),
            )
            try:
                links = await check_page_links(page, transport, link_config)
            except ExtractionFailed as e:
                logger.error(str(e))
                warnings.append(str(e))
                links = None

            accessibility = self.accessibility_checker.check(page_url, html)
            gtm = check_gtm(html) if self.options.check_gtm else None

            return merge_results(
                page_url,
                seo=seo_results,
                accessibility=accessibility,
                links=links,
                gtm=gtm,
                metadata=metadata,
                warnings=warnings,
            )
        finally:
            await page.close()

    async def _notify(self, reports: list[MergedReport]) -> Optional[int]:
        notifier = WebhookNotifier(self.options.webhook_url, self.options.webhook_method)
        try:
            return await notifier.send_reports(reports)
        except (WebhookDeliveryError, aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error("Webhook delivery failed: {}", e)
            return None

    @staticmethod
    def _print_outcome(report: MergedReport) -> None:
        data = report.to_dict()
        seo = data["seo"]
        style = "green" if report.passed else "red"
        console.print(f"\n[{style}]{report.overall_status.upper()}[/{style}] {report.url}")
        console.print(f"   SEO: {seo['passed_count']}/{seo['total_count']} passed")
        console.print(
            f"   Links: {report.broken_links_count} broken, {report.review_links_count} need review"
        )
        console.print(
            f"   Accessibility: {'PASSED' if report.accessibility.passed else 'FAILED'} "
            f"({report.accessibility.total_violations} violations)"
        )
        if report.gtm is not None:
            found = "FOUND" if report.gtm.has_gtm else "NOT FOUND"
            suffix = f" ({report.gtm.container_id})" if report.gtm.container_id else ""
            console.print(f"   GTM: {found}{suffix}")
