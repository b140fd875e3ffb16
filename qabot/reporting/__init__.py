"""Report merging, file layout, writers and webhook delivery."""

from qabot.reporting.merger import MergedReport, merge_results
from qabot.reporting.paths import report_path_for_url, unique_url_based_dir, url_based_dir
from qabot.reporting.webhook import WebhookNotifier, build_payload, build_payload_from_dicts
from qabot.reporting.writers import (
    build_domain_summary,
    render_summary_markdown,
    write_domain_summary,
    write_error_report,
    write_html_report,
    write_json_report,
)

__all__ = [
    "MergedReport",
    "merge_results",
    "report_path_for_url",
    "unique_url_based_dir",
    "url_based_dir",
    "WebhookNotifier",
    "build_payload",
    "build_payload_from_dicts",
    "build_domain_summary",
    "render_summary_markdown",
    "write_domain_summary",
    "write_error_report",
    "write_html_report",
    "write_json_report",
]
