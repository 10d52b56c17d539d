import random
import re

from dispatch import PARTNER_NAMES, RandomPartnerAssigner, generate_order_number


def test_order_number_shape():
    number = generate_order_number(now_ms=1730912345678, rng=random.Random(7))
    assert re.fullmatch(r"BUZZ1730912345678\d{1,3}", number)


def test_order_number_uses_current_time():
    assert re.fullmatch(r"BUZZ\d{14,16}", generate_order_number())


def test_random_partner():
    partner = RandomPartnerAssigner(random.Random(42)).assign()
    assert partner.name in PARTNER_NAMES
    assert re.fullmatch(r"\+91 \d{5}-\d{5}", partner.phone)
