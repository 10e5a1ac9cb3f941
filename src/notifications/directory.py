"""Recipient directory — where the engine looks up contact addresses.

Users and their contact details belong to the host application; the engine
only needs the per-channel address for a user id. ``InMemoryDirectory`` is
the default and what tests use; a host application supplies its own
``RecipientDirectory`` backed by its user store.
"""

import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class Contact:
    user_id: str
    email: str | None = None
    chat_id: str | None = None
    phone: str | None = None

    def address_for(self, channel: str) -> str | None:
        """Address on ``channel``, or None if the user has none."""
        return {
            "Email": self.email,
            "Chat": self.chat_id,
            "SMS": self.phone,
        }.get(channel)


class RecipientDirectory(ABC):
    @abstractmethod
    def lookup(self, user_id: str) -> Contact:
        """Return the contact for ``user_id``; unknown users get an empty Contact."""
        ...


class InMemoryDirectory(RecipientDirectory):
    def __init__(self):
        self._contacts: dict[str, Contact] = {}
        self._lock = threading.Lock()

    def register(self, user_id, email=None, chat_id=None, phone=None) -> Contact:
        contact = Contact(user_id=str(user_id), email=email, chat_id=chat_id, phone=phone)
        with self._lock:
            self._contacts[contact.user_id] = contact
        return contact

    def remove(self, user_id):
        with self._lock:
            self._contacts.pop(str(user_id), None)

    def lookup(self, user_id):
        with self._lock:
            return self._contacts.get(str(user_id)) or Contact(user_id=str(user_id))

    def clear(self):
        with self._lock:
            self._contacts.clear()
