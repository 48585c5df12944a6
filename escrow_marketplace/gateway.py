"""Boundary to the external payment gateway."""

import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime

logger = logging.getLogger(__name__)


class PaymentGateway(ABC):
    """
    External charge capability.

    The core only asks for a charge; confirmation, failure and refunds come
    back later through the gateway callback.
    """

    @abstractmethod
    def charge(self, amount: int, currency: str, metadata: dict) -> str:
        """Start a charge and return the gateway's external reference."""


@dataclass
class SandboxCharge:
    """A charge recorded by the sandbox gateway."""
    reference: str
    amount: int
    currency: str
    metadata: dict
    created_at: datetime = field(default_factory=datetime.utcnow)


class SandboxGateway(PaymentGateway):
    """Gateway for local runs and tests: records charges, never settles them."""

    def __init__(self):
        self.charges: list[SandboxCharge] = []

    def charge(self, amount: int, currency: str, metadata: dict) -> str:
        reference = f"sbx_{uuid.uuid4().hex[:12]}"
        self.charges.append(SandboxCharge(reference, amount, currency, dict(metadata)))
        logger.info("Sandbox charge %s for %d %s", reference, amount, currency)
        return reference
