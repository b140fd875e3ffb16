"""Google Tag Manager and landing-page tracking script detection."""

import re
from dataclasses import dataclass, field
from typing import Optional

from bs4 import BeautifulSoup

LP_TRACK_SCRIPT = "/members/scripts/lp_track.min.js"

SCRIPT_ID_PATTERN = re.compile(r"id=(GTM-[A-Z0-9]+)", re.I)
BARE_ID_PATTERN = re.compile(r"GTM-[A-Z0-9]{5,}", re.I)
NOSCRIPT_PATTERN = re.compile(r"googletagmanager\.com/ns\.html\?id=(GTM-[A-Z0-9]+)", re.I)
ANY_ID_PATTERN = re.compile(r"GTM-[A-Z0-9]+", re.I)


@dataclass
class GTMCheckResult:
    """Tag manager presence on one page."""
    has_gtm: bool
    container_id: Optional[str]
    has_lp_track_script: bool
    message: str
    details: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "has_gtm": self.has_gtm,
            "container_id": self.container_id,
            "has_lp_track_script": self.has_lp_track_script,
            "message": self.message,
            "details": dict(self.details),
        }


def check_gtm(html: str) -> GTMCheckResult:
    """
    Look for a GTM container in the page HTML.

    The container id comes from a googletagmanager script src, or failing
    that from the noscript iframe URL. GTM counts as present only when a
    container id is found.
    """
    soup = BeautifulSoup(html, "html.parser")
    gtm_sources = [
        script["src"] for script in soup.find_all("script", src=True)
        if "googletagmanager" in script["src"]
    ]

    container_id = None
    search_method = "none"
    for src in gtm_sources:
        match = SCRIPT_ID_PATTERN.search(src)
        if match:
            container_id = match.group(1).upper()
        else:
            bare = BARE_ID_PATTERN.search(src)
            container_id = bare.group(0).upper() if bare else None
        if container_id:
            search_method = "script-src"
            break

    noscript_match = NOSCRIPT_PATTERN.search(html)
    if container_id is None and noscript_match:
        container_id = noscript_match.group(1).upper()
        search_method = "noscript-iframe-pattern"

    lp_track = any(LP_TRACK_SCRIPT in script["src"] for script in soup.find_all("script", src=True))
    inline_scripts = " ".join(script.get_text() for script in soup.find_all("script", src=False))
    data_layer = "dataLayer" in inline_scripts

    has_gtm = container_id is not None
    lp_status = "Present" if lp_track else "Missing"
    message = (
        f"GTM found ({container_id}). LP Track Script: {lp_status}"
        if has_gtm
        else f"GTM not found. LP Track Script: {lp_status}"
    )

    return GTMCheckResult(
        has_gtm=has_gtm,
        container_id=container_id,
        has_lp_track_script=lp_track,
        message=message,
        details={
            "script_found": bool(gtm_sources) or "googletagmanager.com" in html,
            "gtm_js_loaded": any("googletagmanager.com/gtm.js" in src for src in gtm_sources),
            "data_layer_exists": data_layer,
            "lp_track_script_found": lp_track,
            "verification_status": "GTM Verified" if has_gtm else "GTM Missing",
            "search_method": search_method,
            "gtm_patterns_found": sorted({m.upper() for m in ANY_ID_PATTERN.findall(html)}),
        },
    )


def _mark(flag) -> str:
    return "✅" if flag else "❌"


def format_gtm_report(result: GTMCheckResult) -> str:
    lines = [
        f"{_mark(result.has_gtm)} GTM: {result.container_id if result.has_gtm else 'Not Found'}",
        f"{_mark(result.has_lp_track_script)} LP Track Script ({LP_TRACK_SCRIPT}): {'Found' if result.has_lp_track_script else 'Missing'}",
    ]
    if result.details:
        lines.append("")
        lines.append("   Verification Details:")
        lines.append(f"     - GTM Script tag: {_mark(result.details.get('script_found'))}")
        lines.append(f"     - GTM gtm.js loaded: {_mark(result.details.get('gtm_js_loaded'))}")
        lines.append(f"     - LP Track Script tag: {_mark(result.details.get('lp_track_script_found'))}")
        lines.append(f"     - dataLayer exists: {_mark(result.details.get('data_layer_exists'))}")
    return "\n".join(lines)
