from decimal import Decimal, ROUND_HALF_UP

CENT = Decimal("0.01")


def to_decimal(value) -> Decimal:
    # str() first so 5.005 stays 5.005 instead of its binary expansion
    return Decimal(str(value))


def round_money(value) -> float:
    """Round half-up to cents: 5.005 -> 5.01."""
    return float(to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP))


def line_total(quantity: int, unit_price) -> Decimal:
    return Decimal(quantity) * to_decimal(unit_price)


def sum_lines(lines, price_key: str) -> float:
    total = sum(
        (line_total(int(line["quantity"]), line[price_key]) for line in lines),
        Decimal("0"),
    )
    return round_money(total)


def format_money(value) -> str:
    return f"${round_money(value):.2f}"
