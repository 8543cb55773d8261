"""
Notification Center - the blocking message modal and transient toasts.
"""
import logging
from typing import Optional

from ..models.session import ModalKind, ModalMessage, Toast

logger = logging.getLogger(__name__)

MAX_PENDING_TOASTS = 20


class NotificationCenter:
    """Holds what the views should show the user next."""

    def __init__(self):
        self.modal: Optional[ModalMessage] = None
        self._toasts: list[Toast] = []

    def show_modal(self, title: str, message: str, kind: ModalKind = ModalKind.INFO) -> ModalMessage:
        self.modal = ModalMessage(title=title, message=message, kind=kind)
        if kind == ModalKind.ERROR:
            logger.warning(f"{title}: {message}")
        return self.modal

    def close_modal(self):
        self.modal = None

    def toast(self, title: str, description: str = "") -> Toast:
        toast = Toast(title=title, description=description)
        self._toasts.append(toast)
        # Nobody is polling; keep only the most recent
        del self._toasts[:-MAX_PENDING_TOASTS]
        return toast

    @property
    def pending_toasts(self) -> list[Toast]:
        return list(self._toasts)

    def drain_toasts(self) -> list[Toast]:
        """Return pending toasts and forget them (each is shown once)."""
        toasts, self._toasts = self._toasts, []
        return toasts
