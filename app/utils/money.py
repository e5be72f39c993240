"""
utils/money.py
---------------

Fixed-point currency amounts and the es-AR input normalizer.

Amounts typed into the cost form arrive as a stream of keystrokes; the
form keeps a raw buffer of digits and renders it as
``<thousands-separated integer>,<two-digit fraction>``. The helpers
below reproduce that behaviour (``normalizar_entrada``) and provide
the inverse parse (``parsear_monto``). Internally every amount is a
:class:`Money`, an integer number of cents, so display strings are
always derived from the value and never parsed back to obtain it.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Annotated, Iterable, NamedTuple, Union

from pydantic import PlainSerializer

_NO_DIGITS = re.compile(r"\D")
CENT = Decimal("0.01")

Numeric = Union[int, float, str, Decimal]


@dataclass(frozen=True, order=True)
class Money:
    """Amount expressed in whole cents."""

    cents: int = 0

    @classmethod
    def from_value(cls, value: Numeric | "Money" | None) -> "Money":
        """Build a ``Money`` from a number, a ``Decimal`` or an es-AR string.

        Numbers are rounded half-up to the cent. Strings are read with
        :func:`parsear_monto`.
        """
        if value is None:
            return cls(0)
        if isinstance(value, Money):
            return value
        if isinstance(value, str):
            amount = parsear_monto(value)
        elif isinstance(value, float):
            amount = Decimal(repr(value))
        else:
            amount = Decimal(value)
        return cls(int((amount / CENT).to_integral_value(rounding=ROUND_HALF_UP)))

    @property
    def amount(self) -> Decimal:
        return (Decimal(self.cents) * CENT).quantize(CENT)

    def __add__(self, other: "Money") -> "Money":
        if not isinstance(other, Money):
            return NotImplemented
        return Money(self.cents + other.cents)

    def __str__(self) -> str:
        return formatear_monto(self.amount)

    @staticmethod
    def total(values: Iterable["Money"]) -> "Money":
        acc = Money(0)
        for v in values:
            acc = acc + v
        return acc


class EntradaNormalizada(NamedTuple):
    buffer: str
    display: str
    valor: Decimal


def _agrupar_miles(entero: int) -> str:
    return f"{entero:,}".replace(",", ".")


def formatear_digitos(raw: str) -> tuple[str, Decimal]:
    """Render a raw digit buffer as ``(display, value)``.

    Non-digits are discarded, the buffer is left-padded to three digits
    and the last two digits become the fraction.

    >>> formatear_digitos("123456")
    ('1.234,56', Decimal('1234.56'))
    >>> formatear_digitos("5")
    ('0,05', Decimal('0.05'))
    """
    digitos = _NO_DIGITS.sub("", raw or "")
    if not digitos:
        return "", Decimal("0")
    digitos = digitos.zfill(3)
    entero, fraccion = int(digitos[:-2]), digitos[-2:]
    return f"{_agrupar_miles(entero)},{fraccion}", Decimal(f"{entero}.{fraccion}")


def agregar_tecla(buffer: str, tecla: str) -> str:
    """Append a keystroke to the stored digit buffer.

    Leading zeros left over from the previous render are stripped first
    so the zero padding never accumulates.
    """
    return _NO_DIGITS.sub("", (buffer or "").lstrip("0") + (tecla or ""))


def normalizar_entrada(buffer: str, tecla: str = "") -> EntradaNormalizada:
    nuevo = agregar_tecla(buffer, tecla)
    display, valor = formatear_digitos(nuevo)
    return EntradaNormalizada(nuevo, display, valor)


def formatear_monto(value: Numeric) -> str:
    """Format an amount as ``1.234.567,89`` (two fraction digits, half-up)."""
    amount = Decimal(repr(value)) if isinstance(value, float) else Decimal(value)
    amount = amount.quantize(CENT, rounding=ROUND_HALF_UP)
    signo = "-" if amount < 0 else ""
    entero, _, fraccion = f"{abs(amount):f}".partition(".")
    return f"{signo}{_agrupar_miles(int(entero))},{fraccion or '00'}"


def parsear_monto(value: Numeric | None) -> Decimal:
    """Parse an es-AR formatted amount back into a ``Decimal``.

    Dots are thousands separators and the comma is the decimal mark.
    Blank input is zero; anything else that is not a number raises
    ``ValueError``.
    """
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, float)):
        return Decimal(repr(value)) if isinstance(value, float) else Decimal(value)
    texto = value.strip().replace("$", "").replace(" ", "")
    if not texto:
        return Decimal("0")
    texto = texto.replace(".", "").replace(",", ".")
    try:
        amount = Decimal(texto)
    except InvalidOperation as exc:
        raise ValueError(f"Monto inválido: {value!r}") from exc
    if not amount.is_finite():
        raise ValueError(f"Monto inválido: {value!r}")
    return amount


# Decimal amount that is rendered as a JSON number
Monto = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]
