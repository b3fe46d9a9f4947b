from __future__ import annotations

from abc import ABC, abstractmethod

from coursetrack.notifications.models import MailResult


class MailTransport(ABC):
    name: str

    @abstractmethod
    async def send(self, from_address: str, to_addresses: list[str], subject: str, html_body: str) -> MailResult:
        raise NotImplementedError
