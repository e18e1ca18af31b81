"""
Movement alert delivery.

The pipeline only ever hands a triggering snapshot to an AlertDispatcher. The
dispatcher runs the actual Notifier on a worker thread, so a slow or broken
mail server never delays the device acknowledgment or the broadcast. Each
alert gets exactly one attempt; the outcome is logged and nothing is retried.
"""
from __future__ import annotations

import html
import logging
import smtplib
from abc import ABC, abstractmethod
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Optional

from .config import TrackerSettings
from .snapshot import LATITUDE_FIELD, LONGITUDE_FIELD, TelemetrySnapshot

logger = logging.getLogger(__name__)

MAPS_URL = "https://maps.google.com/?q={lat},{lon}"


@dataclass(frozen=True)
class AlertMessage:
    subject: str
    text: str
    html: str
    map_link: Optional[str] = None


def map_link_for(snapshot: TelemetrySnapshot) -> Optional[str]:
    """Google Maps link for the snapshot's position, or None if it has no lat/lon."""
    lat = snapshot.fields.get(LATITUDE_FIELD)
    lon = snapshot.fields.get(LONGITUDE_FIELD)
    if lat is None or lon is None or lat == "" or lon == "":
        return None
    return MAPS_URL.format(lat=lat, lon=lon)


def format_alert(snapshot: TelemetrySnapshot, subject: str = "GPS Tracker Movement Alert") -> AlertMessage:
    device_id = snapshot.device_id or "Unknown"
    when = snapshot.received_at.strftime("%Y-%m-%d %H:%M:%S %Z").strip()
    link = map_link_for(snapshot)

    text_lines = [
        "Your GPS tracker has detected continuous movement.",
        f"Device ID: {device_id}",
        f"Timestamp: {when}",
        f"Location: {link or 'Location data not available'}",
    ]

    if link:
        location_html = f'<a href="{html.escape(link)}">View on Google Maps</a>'
    else:
        location_html = "Location data not available"

    body_html = (
        "<h2>Movement Alert from GPS Tracker</h2>\n"
        "<p>Your GPS tracker has detected continuous movement.</p>\n"
        f"<p><strong>Device ID:</strong> {html.escape(device_id)}</p>\n"
        f"<p><strong>Timestamp:</strong> {html.escape(when)}</p>\n"
        f"<p><strong>Location:</strong> {location_html}</p>\n"
    )
    return AlertMessage(subject=subject, text="\n".join(text_lines), html=body_html, map_link=link)


class Notifier(ABC):
    @abstractmethod
    def send(self, snapshot: TelemetrySnapshot) -> None:
        """Deliver one alert for `snapshot`. Raise on failure."""


class LogNotifier(Notifier):
    """Writes the alert to the log. Used when email is not configured."""

    def __init__(self, subject: str = "GPS Tracker Movement Alert") -> None:
        self.subject = subject

    def send(self, snapshot: TelemetrySnapshot) -> None:
        alert = format_alert(snapshot, self.subject)
        logger.warning("%s: %s", alert.subject, alert.text.replace("\n", " | "))


class EmailNotifier(Notifier):
    """
    Sends the alert through an SMTP server (Gmail by default).

    One connection per alert; the SMTP timeout bounds how long an attempt can take.
    """

    def __init__(
        self,
        host: str,
        port: int,
        *,
        sender: str,
        recipient: str,
        subject: str = "GPS Tracker Movement Alert",
        user: Optional[str] = None,
        password: Optional[str] = None,
        starttls: bool = True,
        timeout: float = 10.0,
    ) -> None:
        self.host = host
        self.port = port
        self.sender = sender
        self.recipient = recipient
        self.subject = subject
        self.user = user
        self.password = password
        self.starttls = starttls
        self.timeout = timeout

    def build_message(self, snapshot: TelemetrySnapshot) -> EmailMessage:
        alert = format_alert(snapshot, self.subject)
        msg = EmailMessage()
        msg["Subject"] = alert.subject
        msg["From"] = self.sender
        msg["To"] = self.recipient
        msg.set_content(alert.text)
        msg.add_alternative(alert.html, subtype="html")
        return msg

    def send(self, snapshot: TelemetrySnapshot) -> None:
        msg = self.build_message(snapshot)
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
            if self.starttls:
                smtp.starttls()
            if self.user and self.password:
                smtp.login(self.user, self.password)
            smtp.send_message(msg)


def build_notifier(cfg: TrackerSettings) -> Notifier:
    if not cfg.email_enabled:
        logger.info("Email alerts not configured (ALERT_TO / SMTP_USER missing); alerts will be logged only")
        return LogNotifier(subject=cfg.alert_subject)

    return EmailNotifier(
        cfg.smtp_host,
        cfg.smtp_port,
        sender=cfg.alert_from or cfg.smtp_user,
        recipient=cfg.alert_to,
        subject=cfg.alert_subject,
        user=cfg.smtp_user,
        password=cfg.smtp_password,
        starttls=cfg.smtp_starttls,
        timeout=cfg.smtp_timeout_sec,
    )


class AlertDispatcher:
    """
    Fire-and-forget wrapper around a Notifier.

    dispatch() returns immediately; the send runs on a single worker thread and
    its outcome is only logged.
    """

    def __init__(self, notifier: Notifier) -> None:
        self.notifier = notifier
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="alert-notifier")

    def dispatch(self, snapshot: TelemetrySnapshot) -> Future:
        future = self._executor.submit(self.notifier.send, snapshot)
        future.add_done_callback(self._log_outcome)
        return future

    @staticmethod
    def _log_outcome(future: Future) -> None:
        if future.cancelled():
            logger.warning("Movement alert cancelled before it was sent")
            return
        error = future.exception()
        if error is not None:
            logger.error("Error sending movement alert: %s", error)
        else:
            logger.info("Movement alert sent")

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
