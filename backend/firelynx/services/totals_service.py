# Overview: Pure monetary recalculation for invoices and variation cost breakdowns.

"""
Monetary Recalculator

Client-submitted subtotals, tax totals, totals and per-line amounts are
never trusted. Every write that carries line items is re-derived here from
the authoritative per-line fields:

    line_total = quantity * rate
    line_tax   = line_total * tax_percent / 100
    subtotal   = sum(line_total)
    tax_total  = sum(line_tax)
    total      = subtotal + tax_total

Missing, blank, non-numeric, boolean and non-finite inputs coerce to 0 so a
bad line can never poison the running totals. So does any input whose
magnitude exceeds MAX_INPUT. Arithmetic is Decimal in a 60-digit context;
values are rounded half-up to 2 places and persisted as fixed-point strings.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Context, Decimal, InvalidOperation, ROUND_HALF_UP, localcontext

ZERO = Decimal("0")
CENT = Decimal("0.01")
HUNDRED = Decimal("100")

# Largest accepted quantity / rate / percent / amount
MAX_INPUT = Decimal("1e15")

# Capped inputs keep every product and sum well inside 60 digits
MONEY_CONTEXT = Context(prec=60, rounding=ROUND_HALF_UP)


def safe_decimal(value, default: Decimal = ZERO) -> Decimal:
    """Coerce untrusted input to a finite, bounded Decimal, falling back to `default`."""
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, Decimal):
        parsed = value
    elif isinstance(value, (int, float)):
        # float -> str keeps the shortest repr (0.1 stays 0.1)
        parsed = Decimal(str(value))
    elif isinstance(value, str):
        stripped = value.strip().replace(",", "")
        if not stripped:
            return default
        try:
            parsed = Decimal(stripped)
        except InvalidOperation:
            return default
    else:
        return default
    if not parsed.is_finite() or abs(parsed) > MAX_INPUT:
        return default
    return parsed


def quantize_money(value: Decimal) -> Decimal:
    with localcontext(MONEY_CONTEXT):
        return value.quantize(CENT, rounding=ROUND_HALF_UP)


def money_str(value) -> str:
    """
    Fixed-point 2-dp string for persistence ("4005.25").

    Decimals are computed amounts and are only rounded; anything else is
    untrusted input and goes through safe_decimal first.
    """
    if not isinstance(value, Decimal) or not value.is_finite():
        value = safe_decimal(value)
    return str(quantize_money(value))


def _json_number(value: Decimal):
    """
    Store sanitized inputs as JSON numbers (int when integral).

    Values a float cannot hold exactly are kept as decimal strings so the
    stored line recomputes to the same amount.
    """
    if value == value.to_integral_value():
        return int(value)
    as_float = float(value)
    if Decimal(repr(as_float)) == value:
        return as_float
    return str(value)


def _pick(item: dict, *keys):
    for key in keys:
        if key in item:
            return item[key]
    return None


@dataclass
class Totals:
    items: list[dict] = field(default_factory=list)
    subtotal: Decimal = ZERO
    tax_total: Decimal = ZERO
    total: Decimal = ZERO

    def as_strings(self) -> dict:
        return {
            "subtotal": money_str(self.subtotal),
            "tax_total": money_str(self.tax_total),
            "total": money_str(self.total),
        }


def recalculate_line_items(line_items) -> Totals:
    """
    Sanitize invoice line items and derive subtotal / tax_total / total.

    Accepts the snake_case keys of the API and the camelCase `taxPercent`
    sent by the legacy browser UI. Any client `amount`, `subtotal`,
    `taxTotal` or `total` is discarded.
    """
    if not isinstance(line_items, (list, tuple)):
        return Totals()

    items: list[dict] = []
    subtotal = ZERO
    tax_total = ZERO

    with localcontext(MONEY_CONTEXT):
        for raw in line_items:
            if not isinstance(raw, dict):
                continue
            quantity = safe_decimal(raw.get("quantity"))
            rate = safe_decimal(raw.get("rate"))
            tax_percent = safe_decimal(_pick(raw, "tax_percent", "taxPercent"))

            line_total = quantity * rate
            line_tax = line_total * tax_percent / HUNDRED

            subtotal += line_total
            tax_total += line_tax

            items.append({
                "description": str(raw.get("description") or "").strip(),
                "quantity": _json_number(quantity),
                "rate": _json_number(rate),
                "tax_percent": _json_number(tax_percent),
                "amount": money_str(line_total),
            })

        # Round the parts first so total == subtotal + tax_total holds to the cent
        subtotal = quantize_money(subtotal)
        tax_total = quantize_money(tax_total)
        return Totals(items=items, subtotal=subtotal, tax_total=tax_total, total=subtotal + tax_total)


# =============================================================================
# VARIATION COST BREAKDOWN
# =============================================================================

@dataclass
class CostBreakdown:
    material_costs: list[dict] = field(default_factory=list)
    labor_costs: list[dict] = field(default_factory=list)
    additional_costs: list[dict] = field(default_factory=list)
    material_total: Decimal = ZERO
    labor_total: Decimal = ZERO
    additional_total: Decimal = ZERO

    @property
    def has_lines(self) -> bool:
        return bool(self.material_costs or self.labor_costs or self.additional_costs)

    @property
    def price_impact(self) -> Decimal:
        with localcontext(MONEY_CONTEXT):
            return self.material_total + self.labor_total + self.additional_total


def _as_lines(value) -> list[dict]:
    if not isinstance(value, (list, tuple)):
        return []
    return [item for item in value if isinstance(item, dict)]


def recalculate_cost_breakdown(material_costs=None, labor_costs=None, additional_costs=None) -> CostBreakdown:
    """
    Sanitize a variation's cost breakdown and derive each category total.

    material:   {description, quantity, unit_rate}  -> total = quantity * unit_rate
    labor:      {description, hours, hourly_rate}   -> total = hours * hourly_rate
    additional: {category, description, amount}     -> total = amount
    """
    breakdown = CostBreakdown()

    with localcontext(MONEY_CONTEXT):
        for raw in _as_lines(material_costs):
            quantity = safe_decimal(raw.get("quantity"))
            unit_rate = safe_decimal(_pick(raw, "unit_rate", "unitRate"))
            line_total = quantize_money(quantity * unit_rate)
            breakdown.material_total += line_total
            breakdown.material_costs.append({
                "description": str(raw.get("description") or "").strip(),
                "quantity": _json_number(quantity),
                "unit_rate": _json_number(unit_rate),
                "total": str(line_total),
            })

        for raw in _as_lines(labor_costs):
            hours = safe_decimal(raw.get("hours"))
            hourly_rate = safe_decimal(_pick(raw, "hourly_rate", "hourlyRate"))
            line_total = quantize_money(hours * hourly_rate)
            breakdown.labor_total += line_total
            breakdown.labor_costs.append({
                "description": str(raw.get("description") or "").strip(),
                "hours": _json_number(hours),
                "hourly_rate": _json_number(hourly_rate),
                "total": str(line_total),
            })

        for raw in _as_lines(additional_costs):
            amount = quantize_money(safe_decimal(raw.get("amount")))
            breakdown.additional_total += amount
            breakdown.additional_costs.append({
                "category": str(raw.get("category") or "").strip(),
                "description": str(raw.get("description") or "").strip(),
                "amount": str(amount),
            })

    return breakdown
