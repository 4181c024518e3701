# Copyright (c) Syntropy Systems
"""Best-effort end-of-run notifications."""
from __future__ import annotations

import logging
import shutil
import subprocess
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger(__name__)

NO_SENDER_WARNING = "No 'mail' or 'sendmail' found; cannot send email notification."

SEND_TIMEOUT = 60


class Sender(Protocol):
    """A notification mechanism that may or may not exist on this host."""

    name: str

    def available(self) -> bool:
        ...

    def send(self, subject: str, body: str) -> None:
        ...


def _pipe_to(argv: list[str], payload: str) -> None:
    """Feed payload to a command on stdin, logging but not raising failures."""
    try:
        result = subprocess.run(  # noqa: S603
            argv,
            input=payload,
            capture_output=True,
            text=True,
            timeout=SEND_TIMEOUT,
            check=False,
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.warning("%s failed: %s", argv[0], e)
        return
    if result.returncode != 0:
        logger.warning(
            "%s exited with code %d: %s",
            argv[0],
            result.returncode,
            result.stderr.strip(),
        )


class MailSender:
    """Sends through the ``mail`` command."""

    name: str = "mail"

    def __init__(self, recipient: str, command: str = "mail") -> None:
        self.recipient = recipient
        self.command = command

    def available(self) -> bool:
        return shutil.which(self.command) is not None

    def send(self, subject: str, body: str) -> None:
        path = shutil.which(self.command) or self.command
        _pipe_to([path, "-s", subject, self.recipient], body + "\n")


class SendmailSender:
    """Hands a complete message to a ``sendmail``-compatible transfer agent."""

    name: str = "sendmail"

    def __init__(self, recipient: str, command: str = "sendmail") -> None:
        self.recipient = recipient
        self.command = command

    def available(self) -> bool:
        return shutil.which(self.command) is not None

    def send(self, subject: str, body: str) -> None:
        path = shutil.which(self.command) or self.command
        message = f"To: {self.recipient}\nSubject: {subject}\n\n{body}\n"
        _pipe_to([path, "-t"], message)


def default_senders(recipient: str | None) -> list[Sender]:
    """Senders in preference order; empty when there is nobody to notify."""
    if not recipient:
        return []
    return [MailSender(recipient), SendmailSender(recipient)]


def notify(subject: str, body: str, senders: Sequence[Sender]) -> bool:
    """Deliver a notification through the first available sender.

    Returns True once a sender has been tried, whether or not delivery
    succeeded. Returns False, after logging a warning, when no sender is
    available. Never raises.
    """
    for sender in senders:
        if not sender.available():
            logger.debug("Notification sender %s not available", sender.name)
            continue
        try:
            sender.send(subject, body)
        except Exception:
            logger.exception("Notification via %s failed", sender.name)
        return True

    logger.warning(NO_SENDER_WARNING)
    return False
