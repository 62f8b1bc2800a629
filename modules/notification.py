"""
Run summary notification.

Formats a RunResult as a Slack message and publishes it. The message
depends on the kind of run:

    Dry run    - only failing restaurants are listed, so people can fix
                 their orders before the real run
    Actual run - every restaurant is listed; successes link the confirmation
                 and name the callee, failures list reasons and the people
                 affected
"""

from __future__ import annotations

import re
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx

from core.exceptions import NotificationError
from logging_config import get_logger
from models.batch_result import BatchResult, RunResult


logger = get_logger(__name__)

Mention = Callable[[str], str]

GOOD = "good"
DANGER = "danger"
WARNING = "warning"


def _default_mention(identity: str) -> str:
    return f"@{identity}"


def join_names(names: List[str]) -> str:
    """'A', 'A and B', 'A, B and C'."""
    text = ", ".join(names)
    return re.sub(r",(?!.*,)", " and", text)


def confirmation_url(base_url: str, confirmation_ref: str) -> str:
    return f"{base_url.rstrip('/')}/confirmations/{confirmation_ref}"


def _fyi(result: BatchResult, mention: Mention) -> str:
    return f"FYI: {', '.join(mention(p) for p in result.participants)}"


def _warnings(result: BatchResult) -> str:
    return "\n".join(f"Note: {w}" for w in result.warnings)


def format_finished_message(
    run: RunResult,
    base_url: str = "",
    mention: Optional[Mention] = None,
) -> Tuple[str, List[Dict[str, Any]]]:
    """
    Build the summary text and attachments for a finished run.

    Args:
        run: Result of the run
        base_url: Public base URL serving ``/confirmations/<ref>``
        mention: Turns an identity into a chat mention

    Returns:
        (text, attachments) ready for a Slack incoming webhook
    """
    mention = mention or _default_mention
    attachments: List[Dict[str, Any]] = []

    if run.dry_run:
        for result in run.failures:
            attachments.append({
                "color": DANGER,
                "title": result.restaurant,
                "text": "\n".join(list(result.reasons) + [_fyi(result, mention)]),
            })
        for result in run.successes:
            if result.warnings:
                attachments.append({
                    "color": WARNING,
                    "title": result.restaurant,
                    "text": "\n".join([_warnings(result), _fyi(result, mention)]),
                })

        if not run.failures:
            text = "Everything looks good! I'll put in the order later today."
        else:
            good = join_names([r.restaurant for r in run.successes])
            count = len(run.failures)
            text = (f"Orders from {good} are good to go!\n" if good else "") + \
                f"There are problems with {'this order' if count == 1 else 'these orders'}:"
    else:
        for result in run.results:
            if result.successful:
                body = f"{mention(result.callee_identity)} will receive the call."
                if result.warnings:
                    body = f"{body}\n{_warnings(result)}"
                attachments.append({
                    "color": GOOD,
                    "title": result.restaurant,
                    "title_link": confirmation_url(base_url, result.confirmation_ref) if base_url else None,
                    "text": body,
                })
            else:
                attachments.append({
                    "color": DANGER,
                    "title": f"{result.restaurant} (failed)",
                    "text": "\n".join(list(result.reasons) + [_fyi(result, mention)]),
                })
        text = "I ordered from the following restaurants."
        if run.aborted_reason:
            text += f"\nThe run stopped early: {run.aborted_reason}"

    for attachment in attachments:
        if attachment.get("title_link") is None:
            attachment.pop("title_link", None)

    return text, attachments


# =============================================================================
# SINKS
# =============================================================================

class LogNotifier:
    """Writes the run summary to the log instead of chat."""

    def __init__(self, mention: Optional[Mention] = None, base_url: str = ""):
        self.mention = mention
        self.base_url = base_url

    def publish(self, run: RunResult) -> None:
        text, attachments = format_finished_message(run, self.base_url, self.mention)
        logger.info(text)
        for attachment in attachments:
            logger.info(f"  [{attachment['color']}] {attachment['title']}: {attachment['text']!r}")


class SlackNotifier:
    """
    Posts the run summary to a Slack incoming webhook.

    Raises NotificationError when Slack does not accept the message.
    """

    def __init__(
        self,
        webhook_url: str,
        channel: Optional[str] = None,
        mention: Optional[Mention] = None,
        base_url: str = "",
        timeout_seconds: float = 10.0,
        client: Optional[httpx.Client] = None,
    ):
        if not webhook_url:
            raise ValueError("webhook_url is required")
        self.webhook_url = webhook_url
        self.channel = channel
        self.mention = mention
        self.base_url = base_url
        self.timeout_seconds = timeout_seconds
        self._client = client

    def send_message(self, text: str, attachments: Optional[List[Dict[str, Any]]] = None) -> None:
        payload: Dict[str, Any] = {"text": text}
        if attachments:
            payload["attachments"] = attachments
        if self.channel:
            payload["channel"] = self.channel

        try:
            if self._client is not None:
                response = self._client.post(self.webhook_url, json=payload, timeout=self.timeout_seconds)
            else:
                response = httpx.post(self.webhook_url, json=payload, timeout=self.timeout_seconds)
        except httpx.TimeoutException:
            raise NotificationError(f"Slack did not answer within {self.timeout_seconds:.0f}s")
        except httpx.HTTPError as e:
            raise NotificationError(f"Could not reach Slack: {e}")

        if response.status_code != 200:
            raise NotificationError(
                f"Slack rejected the message with status {response.status_code}",
                {"body": response.text[:200]},
            )

    def publish(self, run: RunResult) -> None:
        text, attachments = format_finished_message(run, self.base_url, self.mention)
        self.send_message(text, attachments)
        logger.info(f"Posted summary of {len(run)} restaurant(s) to Slack")
