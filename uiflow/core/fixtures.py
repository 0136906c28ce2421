"""
Fixture Data Generator

Produces randomized, valid-format inputs for workflow steps: CPF numbers
with correct check digits, synthetic names, emails and birth dates.

All randomness comes from one random.Random plus one Faker instance per
generator. The process-wide generator can be reseeded for reproducible runs.
"""

import random
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Callable

import structlog
from faker import Faker

logger = structlog.get_logger()

_CPF_NON_DIGITS = re.compile(r"[.\-\s]")


@dataclass(frozen=True)
class FixtureValue:
    """A generated input. Valid for its rule at creation time."""

    rule: str
    value: str


@dataclass(frozen=True)
class FixtureRef:
    """
    Placeholder for a value generated when the step runs.

    With a ``key``, the first generated value is remembered for the rest of
    the run so later steps can type or assert the same value.
    """

    rule: str
    key: str | None = None


def _cpf_check_digit(digits: list[int]) -> int:
    weight = len(digits) + 1
    total = sum(d * (weight - i) for i, d in enumerate(digits))
    remainder = (total * 10) % 11
    return 0 if remainder == 10 else remainder


def format_cpf(cpf: str) -> str:
    """Format 11 bare digits as ``000.000.000-00``."""
    return f"{cpf[:3]}.{cpf[3:6]}.{cpf[6:9]}-{cpf[9:]}"


def validate_cpf(value: str) -> bool:
    """
    Validate a CPF, bare (``12345678909``) or formatted (``123.456.789-09``).

    Repeated-digit sequences such as ``111.111.111-11`` pass the checksum
    but are not issued, so they are rejected.
    """
    if not isinstance(value, str):
        return False

    bare = _CPF_NON_DIGITS.sub("", value)
    if len(bare) != 11 or not bare.isdigit():
        return False
    if len(set(bare)) == 1:
        return False

    digits = [int(c) for c in bare]
    first = _cpf_check_digit(digits[:9])
    second = _cpf_check_digit(digits[:9] + [first])
    return digits[9] == first and digits[10] == second


class FixtureGenerator:
    """
    Generates fixture values by rule name.

    Usage:
        fixtures = FixtureGenerator(seed=42)
        cpf = fixtures.generate("cpf").value
        name = fixtures.generate("full_name").value
    """

    def __init__(self, seed: int | None = None, locale: str = "pt_BR"):
        self.locale = locale
        self._random = random.Random()
        self._faker = Faker(locale)
        self._rules: dict[str, Callable[[], str]] = {
            "cpf": self._cpf,
            "cpf_formatted": lambda: format_cpf(self._cpf()),
            "full_name": lambda: self._faker.name(),
            "email": lambda: self._faker.email(),
            "birth_date": self._birth_date,
            "protocol_number": lambda: str(self._random.randint(100, 9999)),
        }
        self.reseed(seed)

    @property
    def rules(self) -> list[str]:
        return sorted(self._rules)

    def reseed(self, seed: int | None) -> None:
        """Reset the random source. ``None`` reseeds from system entropy."""
        self._random.seed(seed)
        self._faker.seed_instance(seed)
        logger.debug("fixture_generator_seeded", seed=seed, locale=self.locale)

    def generate(self, rule: str) -> FixtureValue:
        try:
            producer = self._rules[rule]
        except KeyError:
            raise ValueError(
                f"Unknown fixture rule '{rule}'. Known rules: {', '.join(self.rules)}"
            ) from None

        return FixtureValue(rule=rule, value=producer())

    def _cpf(self) -> str:
        while True:
            digits = [self._random.randint(0, 9) for _ in range(9)]
            if len(set(digits)) > 1:
                break
        digits.append(_cpf_check_digit(digits))
        digits.append(_cpf_check_digit(digits))
        return "".join(str(d) for d in digits)

    def _birth_date(self) -> str:
        born = self._faker.date_of_birth(minimum_age=18, maximum_age=80)
        return born.strftime("%d%m%Y")


@lru_cache
def get_fixture_generator() -> FixtureGenerator:
    """Get the process-scoped generator, seeded from settings."""
    from uiflow.config import settings

    return FixtureGenerator(seed=settings.fixture_seed, locale=settings.fixture_locale)


def reseed(seed: int | None) -> None:
    """Reseed the process-scoped generator."""
    get_fixture_generator().reseed(seed)
