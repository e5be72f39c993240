from __future__ import annotations

from decimal import Decimal

import pytest

from app.utils.money import (
    Money,
    agregar_tecla,
    formatear_digitos,
    formatear_monto,
    normalizar_entrada,
    parsear_monto,
)


def test_keystrokes_render_with_two_fraction_digits():
    buffer = ""
    displays = []
    for tecla in "123456":
        entrada = normalizar_entrada(buffer, tecla)
        buffer = entrada.buffer
        displays.append(entrada.display)
    assert displays == ["0,01", "0,12", "1,23", "12,34", "123,45", "1.234,56"]
    assert entrada.valor == Decimal("1234.56")


def test_non_digits_are_dropped():
    entrada = normalizar_entrada("12", "a")
    assert entrada.buffer == "12"
    assert entrada.display == "0,12"


def test_zero_padding_does_not_accumulate():
    # the padded render "0,05" must not feed back as "005"
    assert agregar_tecla("005", "1") == "51"
    assert formatear_digitos("51") == ("0,51", Decimal("0.51"))


def test_empty_buffer_is_blank_and_zero():
    assert formatear_digitos("") == ("", Decimal("0"))
    assert normalizar_entrada("", "").valor == Decimal("0")


def test_formatear_monto():
    assert formatear_monto(Decimal("2214000")) == "2.214.000,00"
    assert formatear_monto(1234.5) == "1.234,50"
    assert formatear_monto(Decimal("-1234567.891")) == "-1.234.567,89"
    assert formatear_monto(Decimal("0.005")) == "0,01"


def test_parsear_monto():
    assert parsear_monto("1.234,56") == Decimal("1234.56")
    assert parsear_monto("$ 2.214.000") == Decimal("2214000")
    assert parsear_monto("  ") == Decimal("0")
    assert parsear_monto(None) == Decimal("0")
    assert parsear_monto(10) == Decimal("10")


@pytest.mark.parametrize("value", ["abc", "NaN", "Infinity"])
def test_parsear_monto_rejects_garbage(value):
    with pytest.raises(ValueError):
        parsear_monto(value)


def test_money_is_exact_in_cents():
    assert Money.from_value(0.1) + Money.from_value(0.2) == Money(30)
    assert Money.from_value("1.234,56").cents == 123456
    assert Money.from_value(Decimal("0.125")).cents == 13
    assert str(Money(123456)) == "1.234,56"
    assert Money.total([Money(1), Money(2), Money(3)]).amount == Decimal("0.06")
