"""Map probe outcomes to OK / BROKEN / REVIEW."""

from qabot.core.models import ClassificationPolicy, Disposition, ProbeResult

DEFAULT_POLICY = ClassificationPolicy()


def is_success_status(status: int) -> bool:
    return 200 <= status <= 399


def classify(result: ProbeResult, policy: ClassificationPolicy = DEFAULT_POLICY) -> Disposition:
    """
    Classify a probe outcome.

    Host matching takes precedence over the status code: a 403 from an
    allow-listed platform is REVIEW, the same 403 from any other host is
    BROKEN. Every ProbeResult yields exactly one Disposition.
    """
    if result.error is None:
        if is_success_status(result.status) or result.status in policy.accepted_statuses:
            return Disposition.OK

    if policy.is_review_host(result.url):
        if result.error is not None or result.status in policy.review_statuses:
            return Disposition.REVIEW

    return Disposition.BROKEN
