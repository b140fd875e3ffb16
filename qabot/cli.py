"""
Command Line Interface for Site QA Bot
======================================

Main CLI entry point for auditing pages, checking links, summarizing a
domain's reports and pushing reports to a webhook.
"""

import asyncio
import json
import sys
from pathlib import Path
from typing import Optional

import aiohttp
import click
from rich.console import Console
from rich.markup import escape

from qabot import __version__
from qabot.config import configure_logging, get_settings
from qabot.core.broken_links import check_page_links
from qabot.core.report import format_report
from qabot.core.transport import AiohttpTransport
from qabot.errors import ExtractionFailed, PageLoadFailed, WebhookDeliveryError
from qabot.reporting.webhook import WebhookNotifier, build_payload_from_dicts
from qabot.reporting.writers import write_domain_summary
from qabot.runner import AuditOptions, AuditRunner, default_renderer_factory

console = Console()


def _overrides(**values) -> dict:
    """Drop options the user did not pass so environment settings win."""
    return {key: value for key, value in values.items() if value is not None}


@click.group()
@click.version_option(version=__version__, prog_name="Site QA Bot")
def main():
    """
    Site QA Bot

    Audits web pages for broken links, SEO, accessibility and tag manager
    setup, and writes per-page JSON and HTML reports.
    """
    pass


# ============================================================================
# Audit Commands
# ============================================================================

@main.command()
@click.argument("urls", nargs=-1)
@click.option("--file", "-f", "url_file", type=click.Path(exists=True), help="Read URLs from a file, one per line")
@click.option("--renderer", type=click.Choice(["browser", "static"]), help="How pages are loaded")
@click.option("--concurrency", "-c", type=click.IntRange(1, 50), help="Concurrent link probes per page")
@click.option("--timeout", "-t", type=float, help="Per-link timeout in seconds")
@click.option("--parallel", "-p", type=click.IntRange(min=1), help="Pages audited at once")
@click.option("--no-gtm", is_flag=True, help="Skip the Google Tag Manager check")
@click.option("--no-screenshots", is_flag=True, help="Skip evidence screenshots")
@click.option("--notify/--no-notify", default=True, help="Send reports to N8N_WEBHOOK_URL when set")
def audit(
    urls: tuple,
    url_file: Optional[str],
    renderer: Optional[str],
    concurrency: Optional[int],
    timeout: Optional[float],
    parallel: Optional[int],
    no_gtm: bool,
    no_screenshots: bool,
    notify: bool,
):
    """Run the full audit on one or more URLs."""
    settings = get_settings(
        **_overrides(
            renderer=renderer,
            link_check_concurrency=concurrency,
            link_check_timeout=timeout,
            page_parallelism=parallel,
            capture_screenshots=False if no_screenshots else None,
        )
    )
    configure_logging(settings.log_level, settings.log_file)

    targets = list(urls)
    if url_file:
        lines = Path(url_file).read_text(encoding="utf-8").splitlines()
        targets.extend(line.strip() for line in lines if line.strip() and not line.startswith("#"))
    if not targets and settings.test_url:
        targets.append(settings.test_url)
    if not targets:
        console.print("[red]No URLs given. Pass URLs, --file, or set TEST_URL.[/red]")
        sys.exit(2)

    options = AuditOptions.from_settings(settings, check_gtm=not no_gtm)
    if not notify:
        options.webhook_url = None

    run = asyncio.run(AuditRunner(options).run(targets))

    failed = [outcome for outcome in run.outcomes if not outcome.passed]
    console.print(
        f"\n[bold]Audited {len(run.outcomes)} page(s): "
        f"{len(run.outcomes) - len(failed)} passed, {len(failed)} failed[/bold]"
    )
    for outcome in failed:
        reason = outcome.error or "checks failed"
        console.print(f"  [red]✗[/red] {outcome.url} ({reason})")
    for outcome in run.outcomes:
        for warning in outcome.warnings:
            console.print(f"  [yellow]![/yellow] {escape(warning)}")

    sys.exit(0 if run.passed else 1)


@main.command()
@click.argument("url")
@click.option("--renderer", type=click.Choice(["browser", "static"]), help="How the page is loaded")
@click.option("--concurrency", "-c", type=click.IntRange(1, 50), help="Concurrent link probes")
@click.option("--timeout", "-t", type=float, help="Per-link timeout in seconds")
@click.option("--include-hidden", is_flag=True, help="Also check links that are not visible")
@click.option("--no-screenshots", is_flag=True, help="Skip evidence screenshots")
@click.option("--output", "-o", type=click.Path(), help="Export the JSON link report to file")
def links(
    url: str,
    renderer: Optional[str],
    concurrency: Optional[int],
    timeout: Optional[float],
    include_hidden: bool,
    no_screenshots: bool,
    output: Optional[str],
):
    """Check every link on one page for broken targets."""
    settings = get_settings(
        **_overrides(
            renderer=renderer,
            link_check_concurrency=concurrency,
            link_check_timeout=timeout,
            include_hidden_links=True if include_hidden else None,
            capture_screenshots=False if no_screenshots else None,
        )
    )
    configure_logging(settings.log_level, settings.log_file)
    console.print(f"[bold blue]Checking links on: {url}[/bold blue]")

    options = AuditOptions.from_settings(settings)

    async def _check():
        async with default_renderer_factory(options) as page_renderer, AiohttpTransport() as transport:
            page = await page_renderer.open(url)
            try:
                return await check_page_links(page, transport, options.link_check)
            finally:
                await page.close()

    try:
        report = asyncio.run(_check())
    except (PageLoadFailed, ExtractionFailed) as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        sys.exit(2)

    # Plain print keeps the text block free of rich markup handling.
    click.echo(format_report(report))

    if output:
        Path(output).parent.mkdir(parents=True, exist_ok=True)
        Path(output).write_text(json.dumps(report.to_dict(), indent=2), encoding="utf-8")
        console.print(f"[green]Report exported to {output}[/green]")

    sys.exit(0 if report.passed else 1)


# ============================================================================
# Reporting Commands
# ============================================================================

@main.command()
@click.argument("domain")
@click.option("--reports-dir", "-d", type=click.Path(), help="Where the JSON reports live")
def summary(domain: str, reports_dir: Optional[str]):
    """Write a Markdown summary of every report for a domain."""
    settings = get_settings(**_overrides(reports_dir=reports_dir))
    configure_logging(settings.log_level, settings.log_file)

    try:
        path = write_domain_summary(domain, settings.reports_dir)
    except FileNotFoundError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(2)

    console.print(f"[green]Summary written to {path}[/green]")


@main.command()
@click.argument("report_files", nargs=-1, required=True, type=click.Path(exists=True))
@click.option("--url", "webhook_url", help="Webhook URL (defaults to N8N_WEBHOOK_URL)")
@click.option("--method", type=click.Choice(["GET", "POST"], case_sensitive=False), help="HTTP method")
def notify(report_files: tuple, webhook_url: Optional[str], method: Optional[str]):
    """Send saved JSON reports to the webhook."""
    settings = get_settings()
    configure_logging(settings.log_level, settings.log_file)

    webhook_url = webhook_url or settings.n8n_webhook_url
    if not webhook_url:
        console.print("[red]No webhook URL. Pass --url or set N8N_WEBHOOK_URL.[/red]")
        sys.exit(2)

    reports = [json.loads(Path(path).read_text(encoding="utf-8")) for path in report_files]
    notifier = WebhookNotifier(webhook_url, method or settings.n8n_webhook_method)

    try:
        status = asyncio.run(notifier.send(build_payload_from_dicts(reports)))
    except WebhookDeliveryError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        console.print(f"[red]Webhook unreachable: {e}[/red]")
        sys.exit(1)

    console.print(f"[green]Sent {len(reports)} report(s) (HTTP {status})[/green]")


if __name__ == "__main__":
    main()
