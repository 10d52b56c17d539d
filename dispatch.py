"""
Simulated order numbering and delivery-partner assignment.

These stand in for a real dispatch system. Randomness here is plain
`random`, not cryptographic; order numbers are unique in practice because
they embed the millisecond timestamp.
"""
import random
import time
from typing import Optional

import config
from schemas import DeliveryPartner

PARTNER_NAMES = [
    "Rajesh Kumar",
    "Amit Sharma",
    "Vikram Singh",
    "Priya Patel",
    "Suresh Reddy",
    "Arjun Mehta",
    "Neha Gupta",
    "Ravi Verma",
]


def generate_order_number(now_ms: Optional[int] = None, rng: Optional[random.Random] = None) -> str:
    """Prefix + epoch milliseconds + a suffix in [0, 1000), e.g. BUZZ1730912345678412."""
    rng = rng or random
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"{config.ORDER_NUMBER_PREFIX}{now_ms}{rng.randrange(1000)}"


class PartnerAssigner:
    """Picks the delivery partner for a new order."""

    def assign(self) -> DeliveryPartner:
        raise NotImplementedError


class RandomPartnerAssigner(PartnerAssigner):
    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    def assign(self) -> DeliveryPartner:
        name = self.rng.choice(PARTNER_NAMES)
        first = self.rng.randint(10000, 99999)
        second = self.rng.randint(10000, 99999)
        return DeliveryPartner(name=name, phone=f"+91 {first}-{second}")


class FixedPartnerAssigner(PartnerAssigner):
    """Always assigns the same partner."""

    def __init__(self, partner: DeliveryPartner):
        self.partner = partner

    def assign(self) -> DeliveryPartner:
        return self.partner
