"""Domain-level request contracts shared by multiple layers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

from .account import Account


@dataclass(slots=True)
class RegisterAccountInput:
    """Validated inputs required to register an account."""

    name: str
    surname: str
    email: str
    password: str


@dataclass(slots=True)
class LoginInput:
    email: str
    password: str


class AccountStore(Protocol):
    """Storage operations the identity workflows depend on.

    ``create`` raises ``DuplicateEmail`` when the email is already registered;
    lookups raise ``AccountNotFound``; driver failures surface as
    ``AccountStoreError``.
    """

    def create(self, account: Account) -> Account: ...

    def get_by_email(self, email: str) -> Account: ...

    def get_by_verification_token(self, token: str) -> Account: ...

    def activate(self, account_id: str) -> bool: ...


class EventPublisher(Protocol):
    def send(self, topic: str, key: str, payload: Any) -> str: ...
