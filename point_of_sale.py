from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from dataclasses import dataclass, replace
from threading import RLock
from numbers import Real
from copy import deepcopy
import logging
import os
import re


logger = logging.getLogger(__name__)

DEFAULT_CURRENCY = "GBP"
DEFAULT_REF_START = 1

HUNDRED = Decimal("100")

# Minor units per major unit (pence per pound, yen per yen, fils per dinar)
CURRENCY_MULTIPLIERS: Dict[str, int] = {
    "GBP": 100,
    "USD": 100,
    "EUR": 100,
    "CAD": 100,
    "AUD": 100,
    "CHF": 100,
    "INR": 100,
    "ZWD": 100,
    "JPY": 1,
    "KRW": 1,
    "KWD": 1000,
    "BHD": 1000,
}


# ==================== Errors ====================

class CurrencyMismatchError(ValueError):
    """Raised when amounts or objects of two different currencies meet"""

    def __init__(self, expected: str, actual: str, context: str = ""):
        self.expected = expected
        self.actual = actual
        message = f"Currency mismatch: expected {expected}, got {actual}"
        if context:
            message = f"{context}: {message}"
        super().__init__(message)


class UnknownCurrencyError(ValueError):
    """Raised for a currency code missing from the currency table"""

    def __init__(self, code: str):
        self.code = code
        super().__init__(f"Unknown currency code: {code!r}")


# ==================== Enums ====================

class DiscountKind(Enum):
    """Quantity discount types"""
    FREE_UNITS = 0   # buy N get M free
    AMOUNT_OFF = 1   # buy N get M major units off


class RawKind(Enum):
    """Shapes of raw field input accepted at the item boundary"""
    NONE = "none"
    BOOLEAN = "boolean"
    NUMBER = "number"
    TEXT = "text"
    MONEY = "money"
    DISCOUNT_RULE = "discount_rule"
    SEQUENCE = "sequence"
    OTHER = "other"


# ==================== Core Models ====================

class Money:
    """Money value object: an integer amount of minor units with a currency"""

    def __init__(self, amount: int, currency: str = DEFAULT_CURRENCY):
        if isinstance(amount, bool) or not isinstance(amount, int):
            raise TypeError(f"Money amount must be an integer of minor units, got {amount!r}")
        self._amount = amount
        self._currency = currency.upper()

    @classmethod
    def zero(cls, currency: str = DEFAULT_CURRENCY) -> 'Money':
        return cls(0, currency)

    def get_amount(self) -> int:
        return self._amount

    def get_currency(self) -> str:
        return self._currency

    def _check_currency(self, other: 'Money', operation: str) -> None:
        if self._currency != other._currency:
            raise CurrencyMismatchError(self._currency, other._currency,
                                        f"Cannot {operation} money")

    def add(self, other: 'Money') -> 'Money':
        """Add two money values"""
        self._check_currency(other, "add")
        return Money(self._amount + other._amount, self._currency)

    def subtract(self, other: 'Money') -> 'Money':
        """Subtract two money values"""
        self._check_currency(other, "subtract")
        return Money(self._amount - other._amount, self._currency)

    def multiply(self, multiplier: int) -> 'Money':
        """Multiply money by a whole number of units"""
        if isinstance(multiplier, bool) or not isinstance(multiplier, int):
            raise TypeError(f"Money can only be multiplied by an integer, got {multiplier!r}")
        return Money(self._amount * multiplier, self._currency)

    def is_zero(self) -> bool:
        return self._amount == 0

    def is_positive(self) -> bool:
        return self._amount > 0

    def is_negative(self) -> bool:
        return self._amount < 0

    def to_major(self, multiplier: int) -> Decimal:
        """Amount in major units, e.g. pounds rather than pence"""
        return Decimal(self._amount) / Decimal(multiplier)

    def __str__(self) -> str:
        multiplier = CURRENCY_MULTIPLIERS.get(self._currency)
        if multiplier is None:
            return f"{self._currency} {self._amount} (minor units)"
        places = len(str(multiplier)) - 1
        return f"{self._currency} {self.to_major(multiplier):.{places}f}"

    def __repr__(self) -> str:
        return f"Money({self._amount}, '{self._currency}')"

    def __eq__(self, other) -> bool:
        if not isinstance(other, Money):
            return False
        return self._amount == other._amount and self._currency == other._currency

    def __hash__(self) -> int:
        return hash((self._amount, self._currency))

    def __lt__(self, other: 'Money') -> bool:
        self._check_currency(other, "compare")
        return self._amount < other._amount

    def __le__(self, other: 'Money') -> bool:
        self._check_currency(other, "compare")
        return self._amount <= other._amount


class CurrencyTable:
    """Lookup of currency code to minor-unit multiplier"""

    def __init__(self, extra: Optional[Mapping[str, int]] = None):
        self._multipliers: Dict[str, int] = dict(CURRENCY_MULTIPLIERS)
        for code, multiplier in (extra or {}).items():
            self.register(code, multiplier)

    def register(self, code: str, multiplier: int) -> None:
        """Add or replace a currency"""
        if isinstance(multiplier, bool) or not isinstance(multiplier, int) or multiplier < 1:
            raise ValueError(f"Minor-unit multiplier for {code} must be a positive integer")
        self._multipliers[code.upper()] = multiplier

    def get_multiplier(self, code: str) -> int:
        multiplier = self._multipliers.get(code.upper())
        if multiplier is None:
            raise UnknownCurrencyError(code)
        return multiplier

    def has_currency(self, code: str) -> bool:
        return code.upper() in self._multipliers

    def get_codes(self) -> List[str]:
        return sorted(self._multipliers)


@dataclass(frozen=True)
class DiscountRule:
    """
    Quantity discount attached to an item.
    threshold - units required to trigger the discount
    param     - free units (FREE_UNITS) or major currency units off (AMOUNT_OFF)
    """
    threshold: int
    param: Decimal
    kind: DiscountKind

    def as_tuple(self) -> Tuple[int, Decimal, int]:
        return (self.threshold, self.param, self.kind.value)


@dataclass(frozen=True)
class RawInput:
    """Raw field input tagged with its shape"""
    kind: RawKind
    value: Any


def classify(value: Any) -> RawInput:
    """Tag a raw value with the one RawKind it belongs to"""
    if value is None:
        return RawInput(RawKind.NONE, value)
    # bool is an int subclass, so it must be checked before NUMBER
    if isinstance(value, bool):
        return RawInput(RawKind.BOOLEAN, value)
    if isinstance(value, Money):
        return RawInput(RawKind.MONEY, value)
    if isinstance(value, DiscountRule):
        return RawInput(RawKind.DISCOUNT_RULE, value)
    if isinstance(value, (Real, Decimal)):
        return RawInput(RawKind.NUMBER, value)
    if isinstance(value, str):
        return RawInput(RawKind.TEXT, value)
    if isinstance(value, (list, tuple)):
        return RawInput(RawKind.SEQUENCE, value)
    return RawInput(RawKind.OTHER, value)


_WHITESPACE = re.compile(r"\s+")
_PERCENTAGE = re.compile(r"^\s*([+-]?(?:\d+(?:\.\d*)?|\.\d+))\s*%?\s*$")


def normalize_identifier(value: Any) -> str:
    """Turn a name or tag into a lower-case identifier with '_' for whitespace"""
    text = value if isinstance(value, str) else str(value)
    return _WHITESPACE.sub("_", text.strip()).lower()


def to_decimal(value: Any) -> Optional[Decimal]:
    """Exact decimal for a NUMBER or numeric TEXT input, None if not finite"""
    try:
        number = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    return number if number.is_finite() else None


def round_half_up(value: Decimal) -> int:
    """Round to a whole minor unit, halves away from zero"""
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


# ==================== Item ====================

class ItemSpec:
    """
    A validated catalog item.
    Every setter re-validates its own field; bad input is logged and
    replaced with a safe default rather than raised.
    """

    def __init__(self, name: Any, price: Any, currency: str = DEFAULT_CURRENCY,
                 multiplier: Optional[int] = None, tax: Any = 0, discount: Any = None,
                 tags: Any = None, price_include_vat: Any = True):
        self._currency = currency.upper()
        if multiplier is None:
            multiplier = CurrencyTable().get_multiplier(self._currency)
        self._multiplier = multiplier
        self._name = self._check_name(name)
        self._price = self._check_price(price)
        self._tax = self._check_tax(tax)
        self._discount = self._check_discount(discount)
        self._tags = self._check_tags(tags)
        self._price_include_vat = self._check_vat_flag(price_include_vat)

    # ---------- accessors ----------

    def get_name(self) -> str:
        return self._name

    def set_name(self, name: Any) -> None:
        self._name = self._check_name(name)

    def get_price(self) -> Money:
        return self._price

    def set_price(self, price: Any) -> None:
        self._price = self._check_price(price)

    def get_tax(self) -> float:
        return self._tax

    def set_tax(self, tax: Any) -> None:
        self._tax = self._check_tax(tax)

    def get_discount(self) -> Optional[DiscountRule]:
        return self._discount

    def set_discount(self, discount: Any) -> None:
        self._discount = self._check_discount(discount)

    def get_tags(self) -> List[str]:
        return self._tags.copy()

    def set_tags(self, tags: Any) -> None:
        self._tags = self._check_tags(tags)

    def add_tag(self, tag: Any) -> None:
        self._tags.append(normalize_identifier(tag))

    def get_price_include_vat(self) -> bool:
        return self._price_include_vat

    def set_price_include_vat(self, flag: Any) -> None:
        self._price_include_vat = self._check_vat_flag(flag)

    def get_currency(self) -> str:
        return self._currency

    def get_multiplier(self) -> int:
        return self._multiplier

    def clone(self) -> 'ItemSpec':
        """Independent copy, so later catalog edits never reach a bill"""
        return deepcopy(self)

    # ---------- validators ----------

    def _warn(self, field_name: str, value: Any) -> None:
        logger.warning("%s: bad value for %s %r", self._name, field_name, value)

    def _check_name(self, name: Any) -> str:
        return normalize_identifier(name)

    def _check_price(self, price: Any) -> Money:
        raw = classify(price)
        if raw.kind == RawKind.MONEY:
            if raw.value.get_currency() != self._currency:
                raise CurrencyMismatchError(self._currency, raw.value.get_currency(),
                                            f"{self._name}: price")
            return raw.value
        if raw.kind == RawKind.NUMBER:
            amount = to_decimal(raw.value)
            if amount is not None:
                # Truncated toward zero, so 3.559 GBP is 355 pence
                return Money(int(amount * self._multiplier), self._currency)
        self._warn("price", price)
        return Money.zero(self._currency)

    def _check_tax(self, tax: Any) -> float:
        raw = classify(tax)
        rate: Optional[Decimal] = None
        if raw.kind == RawKind.NUMBER:
            rate = to_decimal(raw.value)
        elif raw.kind == RawKind.TEXT:
            match = _PERCENTAGE.match(raw.value)
            if match:
                rate = to_decimal(match.group(1))
        if rate is None or rate < 0:
            self._warn("tax", tax)
            return 0.0
        return float(rate)

    def _check_discount(self, discount: Any) -> Optional[DiscountRule]:
        raw = classify(discount)
        if raw.kind == RawKind.NONE or (raw.kind == RawKind.BOOLEAN and raw.value is False):
            return None
        fields: Optional[Tuple[Any, Any, Any]] = None
        if raw.kind == RawKind.DISCOUNT_RULE:
            fields = (raw.value.threshold, raw.value.param, raw.value.kind)
        elif raw.kind == RawKind.SEQUENCE and len(raw.value) == 3:
            fields = tuple(raw.value)
        if fields is not None:
            rule = self._parse_discount(*fields)
            if rule is not None:
                return rule
        self._warn("discount", discount)
        return None

    @staticmethod
    def _parse_discount(threshold: Any, param: Any, kind: Any) -> Optional[DiscountRule]:
        raw_threshold = classify(threshold)
        if raw_threshold.kind != RawKind.NUMBER or not isinstance(threshold, int) or threshold < 1:
            return None

        if classify(param).kind != RawKind.NUMBER:
            return None
        amount = to_decimal(param)
        if amount is None or amount < 0:
            return None

        if isinstance(kind, DiscountKind):
            return DiscountRule(threshold, amount, kind)
        if classify(kind).kind == RawKind.NUMBER and isinstance(kind, int) and kind in (0, 1):
            return DiscountRule(threshold, amount, DiscountKind(kind))
        return None

    def _check_tags(self, tags: Any) -> List[str]:
        raw = classify(tags)
        if raw.kind == RawKind.NONE:
            return []
        if raw.kind == RawKind.SEQUENCE:
            return [normalize_identifier(tag) for tag in raw.value]
        return [normalize_identifier(raw.value)]

    def _check_vat_flag(self, flag: Any) -> bool:
        raw = classify(flag)
        if raw.kind != RawKind.BOOLEAN:
            self._warn("VAT flag", flag)
            return True
        return raw.value

    def __eq__(self, other) -> bool:
        if not isinstance(other, ItemSpec):
            return False
        return (self._name == other._name and
                self._price == other._price and
                self._tax == other._tax and
                self._discount == other._discount and
                sorted(self._tags) == sorted(other._tags) and
                self._price_include_vat == other._price_include_vat)

    __hash__ = None

    def __repr__(self) -> str:
        return (f"ItemSpec({self._name!r}, {self._price!r}, tax={self._tax}, "
                f"discount={self._discount}, tags={self._tags}, "
                f"price_include_vat={self._price_include_vat})")


# ==================== Discounts ====================

class DiscountEngine:
    """Works out how much a quantity discount takes off a line"""

    @staticmethod
    def compute(discount: Optional[DiscountRule], quantity: int,
                unit_price: Money, multiplier: int) -> Tuple[Money, int]:
        """
        Returns (discount_amount, triggered_units).
        The line discount is discount_amount * triggered_units; partial
        groups never trigger.
        """
        nothing = (Money.zero(unit_price.get_currency()), 0)
        if discount is None:
            return nothing

        if discount.kind == DiscountKind.FREE_UNITS:
            group_size = discount.threshold + discount.param
            if group_size > quantity:
                return nothing
            return unit_price, int(Decimal(quantity) // group_size)

        if discount.kind == DiscountKind.AMOUNT_OFF:
            if discount.threshold > quantity:
                return nothing
            amount = Money(round_half_up(discount.param * multiplier), unit_price.get_currency())
            return amount, quantity // discount.threshold

        return nothing


# ==================== Bill ====================

@dataclass(frozen=True)
class LineEntry:
    """An item snapshot and how many of it are on the bill"""
    spec: ItemSpec
    quantity: int

    def get_name(self) -> str:
        return self.spec.get_name()


@dataclass(frozen=True)
class LineTotals:
    """Per-line breakdown produced by a retotal"""
    name: str
    quantity: int
    unit_price: Money
    discount_amount: Money
    triggered_units: int
    line_discount: Money
    line_price: Money
    line_tax: Money

    @property
    def line_total(self) -> Money:
        return self.line_price.add(self.line_tax)


@dataclass(frozen=True)
class BillTotals:
    subtotal: Money
    tax: Money
    discount: Money


def extract_vat(price: Money, tax_rate: float) -> Money:
    """Tax-exclusive price from a VAT-inclusive one"""
    if tax_rate == 0:
        return price
    rate = Decimal(str(tax_rate))
    net = Decimal(price.get_amount()) * HUNDRED / (HUNDRED + rate)
    return Money(round_half_up(net), price.get_currency())


def compute_line(entry: LineEntry) -> LineTotals:
    """Price, discount and tax for a single bill line"""
    spec = entry.spec
    quantity = entry.quantity

    unit_price = spec.get_price()
    if spec.get_price_include_vat():
        unit_price = extract_vat(unit_price, spec.get_tax())

    # Discount is always applied before tax
    discount_amount, triggered = DiscountEngine.compute(
        spec.get_discount(), quantity, unit_price, spec.get_multiplier()
    )
    line_discount = discount_amount.multiply(triggered)
    line_price = unit_price.multiply(quantity).subtract(line_discount)

    rate = Decimal(str(spec.get_tax()))
    line_tax = Money(round_half_up(Decimal(line_price.get_amount()) * rate / HUNDRED),
                     line_price.get_currency())

    return LineTotals(
        name=spec.get_name(),
        quantity=quantity,
        unit_price=unit_price,
        discount_amount=discount_amount,
        triggered_units=triggered,
        line_discount=line_discount,
        line_price=line_price,
        line_tax=line_tax,
    )


def compute_totals(entries: Iterable[LineEntry], currency: str) -> BillTotals:
    """Bill totals computed from scratch over every entry"""
    subtotal = Money.zero(currency)
    tax = Money.zero(currency)
    discount = Money.zero(currency)

    for entry in entries:
        line = compute_line(entry)
        discount = discount.add(line.line_discount)
        tax = tax.add(line.line_tax)
        subtotal = subtotal.add(line.line_total)

    return BillTotals(subtotal, tax, discount)


def _copy_entry(entry: LineEntry) -> LineEntry:
    return LineEntry(entry.spec.clone(), entry.quantity)


class BillSnapshot:
    """Read-only copy of a submitted bill, as stored by the register"""

    def __init__(self, reference: int, currency: str, entries: Iterable[LineEntry],
                 subtotal: Money, tax: Money, discount: Money):
        self._reference = reference
        self._currency = currency.upper()
        self._entries: Tuple[LineEntry, ...] = tuple(_copy_entry(entry) for entry in entries)
        self._subtotal = subtotal
        self._tax = tax
        self._discount = discount

    @property
    def reference(self) -> int:
        return self._reference

    @property
    def currency(self) -> str:
        return self._currency

    @property
    def entries(self) -> Tuple[LineEntry, ...]:
        """Copies of the stored entries; the snapshot itself never changes"""
        return tuple(_copy_entry(entry) for entry in self._entries)

    @property
    def subtotal(self) -> Money:
        return self._subtotal

    @property
    def tax(self) -> Money:
        return self._tax

    @property
    def discount(self) -> Money:
        return self._discount

    def get_entry(self, name: Any) -> Optional[LineEntry]:
        key = normalize_identifier(name)
        for entry in self._entries:
            if entry.get_name() == key:
                return _copy_entry(entry)
        return None

    def __repr__(self) -> str:
        return (f"BillSnapshot({self._reference}, items={len(self._entries)}, "
                f"subtotal={self._subtotal!r})")


class Bill:
    """
    A bill opened by a register.
    Items are cloned on the way in and the totals are rebuilt from the
    entries after every change. Once submitted the bill is frozen.
    """

    def __init__(self, register: 'Register', reference: int, currency: str):
        self._register = register
        self._reference = reference
        self._currency = currency.upper()
        self._entries: Dict[str, LineEntry] = {}  # item name -> LineEntry
        self._subtotal = Money.zero(self._currency)
        self._tax = Money.zero(self._currency)
        self._discount = Money.zero(self._currency)
        self._submitted = False

    def get_reference(self) -> int:
        return self._reference

    def get_currency(self) -> str:
        return self._currency

    def get_entries(self) -> Dict[str, LineEntry]:
        """Copies of the entries, keyed by item name"""
        return {name: _copy_entry(entry) for name, entry in self._entries.items()}

    def get_entry(self, name: Any) -> Optional[LineEntry]:
        entry = self._entries.get(normalize_identifier(name))
        return _copy_entry(entry) if entry is not None else None

    def get_item_count(self) -> int:
        return sum(entry.quantity for entry in self._entries.values())

    def get_subtotal(self) -> Money:
        return self._subtotal

    def get_tax(self) -> Money:
        return self._tax

    def get_discount(self) -> Money:
        return self._discount

    def is_submitted(self) -> bool:
        return self._submitted

    def add_item(self, spec: ItemSpec, *, qty: int = 1) -> bool:
        """Add qty units of an item; an existing entry has its quantity raised"""
        if self._submitted:
            logger.warning("Bill %s has been submitted, cannot add %s",
                           self._reference, spec.get_name())
            return False

        if isinstance(qty, bool) or not isinstance(qty, int) or qty < 1:
            logger.warning("Bill %s: bad quantity %r for %s",
                           self._reference, qty, spec.get_name())
            return False

        if spec.get_currency() != self._currency:
            raise CurrencyMismatchError(self._currency, spec.get_currency(),
                                        f"Bill {self._reference}: item {spec.get_name()}")

        name = spec.get_name()
        entries = self._entries.copy()
        existing = entries.get(name)
        if existing is not None:
            entries[name] = replace(existing, quantity=existing.quantity + qty)
        else:
            entries[name] = LineEntry(spec.clone(), qty)

        # Totals first, so a failure leaves the bill as it was
        totals = compute_totals(entries.values(), self._currency)
        self._entries = entries
        self._apply_totals(totals)
        return True

    def remove_item(self, name: Any) -> bool:
        """Drop an entry from the bill"""
        if self._submitted:
            logger.warning("Bill %s has been submitted, cannot remove items", self._reference)
            return False

        key = normalize_identifier(name)
        if key not in self._entries:
            return False

        del self._entries[key]
        self.retotal()
        return True

    def reset(self) -> bool:
        """Clear the content of the bill"""
        if self._submitted:
            logger.warning("Bill %s has been submitted, cannot reset", self._reference)
            return False

        self._entries.clear()
        self.retotal()
        return True

    def retotal(self) -> bool:
        """Rebuild subtotal, tax and discount from the entries"""
        if self._submitted:
            return False
        self._apply_totals(compute_totals(self._entries.values(), self._currency))
        return True

    def _apply_totals(self, totals: BillTotals) -> None:
        self._subtotal = totals.subtotal
        self._tax = totals.tax
        self._discount = totals.discount

    def get_line_totals(self) -> List[LineTotals]:
        return [compute_line(entry) for entry in self._entries.values()]

    def snapshot(self) -> BillSnapshot:
        return BillSnapshot(self._reference, self._currency, self._entries.values(),
                            self._subtotal, self._tax, self._discount)

    def submit(self) -> bool:
        """Close the bill and record it with the register"""
        if self._submitted:
            logger.warning("Bill %s has already been submitted", self._reference)
            return False

        self.retotal()
        self._submitted = True
        self._register.submit(self.snapshot())
        logger.info("Bill %s submitted: %s", self._reference, self._subtotal)
        return True

    def __repr__(self) -> str:
        return (f"Bill({self._reference}, items={len(self._entries)}, "
                f"subtotal={self._subtotal!r}, submitted={self._submitted})")


# ==================== Register ====================

@dataclass(frozen=True)
class RegisterConfig:
    """Register settings"""
    currency: str = DEFAULT_CURRENCY
    ref_start: int = DEFAULT_REF_START

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'RegisterConfig':
        """Read POS_CURRENCY and POS_REF_START, falling back to defaults"""
        env = os.environ if environ is None else environ
        currency = env.get("POS_CURRENCY", "").strip() or DEFAULT_CURRENCY

        ref_start = DEFAULT_REF_START
        raw_start = env.get("POS_REF_START")
        if raw_start is not None:
            try:
                ref_start = int(raw_start)
            except ValueError:
                logger.warning("Ignoring bad POS_REF_START %r", raw_start)

        return cls(currency=currency.upper(), ref_start=ref_start)


class Register:
    """
    A self contained point of sale.
    Creates items and bills, and records bills once they are submitted.
    Features:
    - Sequential bill references starting at ref_start
    - Registry of submitted bills (first submission wins)
    - Running total of every accepted bill
    """

    def __init__(self, currency: str = DEFAULT_CURRENCY, ref_start: int = DEFAULT_REF_START,
                 currency_table: Optional[CurrencyTable] = None):
        if isinstance(ref_start, bool) or not isinstance(ref_start, int):
            raise ValueError(f"ref_start must be an integer, got {ref_start!r}")

        self._currency_table = currency_table or CurrencyTable()
        self._currency = currency.upper()
        self._multiplier = self._currency_table.get_multiplier(self._currency)

        # The first bill gets ref_start
        self._reference = ref_start - 1
        self._bills: Dict[int, BillSnapshot] = {}
        self._system_total = Money.zero(self._currency)

        # Thread safety
        self._lock = RLock()

    @classmethod
    def from_config(cls, config: RegisterConfig,
                    currency_table: Optional[CurrencyTable] = None) -> 'Register':
        return cls(config.currency, config.ref_start, currency_table)

    def get_currency(self) -> str:
        return self._currency

    def get_multiplier(self) -> int:
        return self._multiplier

    def get_last_reference(self) -> int:
        return self._reference

    def get_bill_registry(self) -> Dict[int, BillSnapshot]:
        return self._bills.copy()

    def get_bill(self, reference: int) -> Optional[BillSnapshot]:
        return self._bills.get(reference)

    def get_system_total(self) -> Money:
        return self._system_total

    def new_bill(self) -> Bill:
        """Open a new bill under the next reference"""
        with self._lock:
            self._reference += 1
            reference = self._reference
        logger.debug("Bill %s opened", reference)
        return Bill(self, reference, self._currency)

    def new_item(self, name: Any, price: Any, *, tax: Any = 0, discount: Any = None,
                 tags: Any = None, price_include_vat: Any = True) -> ItemSpec:
        """Create an item priced in this register's currency"""
        item = ItemSpec(name, price, currency=self._currency, multiplier=self._multiplier,
                        tax=tax, discount=discount, tags=tags,
                        price_include_vat=price_include_vat)
        logger.debug("Item created: %s at %s", item.get_name(), item.get_price())
        return item

    def submit(self, bill: BillSnapshot) -> bool:
        """Record a submitted bill; a reference already on file is discarded"""
        if bill.currency != self._currency:
            raise CurrencyMismatchError(self._currency, bill.currency,
                                        f"Bill {bill.reference}")

        with self._lock:
            if bill.reference in self._bills:
                logger.warning("Bill '%s' has already been submitted!", bill.reference)
                return False

            self._bills[bill.reference] = bill
            self._system_total = self._system_total.add(bill.subtotal)
        return True


# ==================== Demo ====================

def print_section(title: str) -> None:
    """Print section header"""
    print(f"\n{'=' * 70}")
    print(f" {title}")
    print('=' * 70)


def print_bill(bill: Bill) -> None:
    """Print bill details"""
    status = "submitted" if bill.is_submitted() else "open"
    print(f"\n🧾 BILL #{bill.get_reference()} ({status})")

    for line in bill.get_line_totals():
        print(f"   • {line.name} x{line.quantity}")
        print(f"     Unit (ex VAT): {line.unit_price}, Line: {line.line_price}")
        if line.line_discount.is_positive():
            print(f"     Discount: -{line.line_discount} "
                  f"({line.triggered_units} x {line.discount_amount})")
        if line.line_tax.is_positive():
            print(f"     Tax: {line.line_tax}")

    print(f"\n   Discount: -{bill.get_discount()}")
    print(f"   Tax: {bill.get_tax()}")
    print(f"   SUBTOTAL: {bill.get_subtotal()}")


def demo_point_of_sale():
    """Walk through the main billing scenarios"""

    print_section("POINT OF SALE DEMO")

    register = Register.from_config(RegisterConfig.from_env())

    print_section("1. Catalog")

    bread = register.new_item("Sourdough Loaf", 5.50, tags=["Bakery", "Fresh"])
    wine = register.new_item("House Red", 40, tax=12)
    soap = register.new_item("Hand Soap", 10.50, discount=[2, 1, 0])
    coffee = register.new_item("Coffee Beans", 20, discount=[3, 2.5, 1])
    cheese = register.new_item("Aged Cheddar", 37.30, tax=10, discount=[1, 1, 0])

    for item in (bread, wine, soap, coffee, cheese):
        print(f"   {item.get_name()}: {item.get_price()} tax {item.get_tax()}% "
              f"discount {item.get_discount()}")

    print_section("2. Building a bill")

    bill = register.new_bill()
    bill.add_item(bread)
    bill.add_item(wine)
    bill.add_item(soap, qty=4)
    bill.add_item(coffee, qty=7)
    bill.add_item(cheese, qty=3)
    print_bill(bill)

    print_section("3. Catalog changes do not reach open bills")

    soap.set_price(99)
    print(f"   Catalog soap is now {soap.get_price()}")
    print(f"   Bill still charges {bill.get_entry('hand soap').spec.get_price()}")

    print_section("4. Submit")

    bill.submit()
    bill.submit()
    bill.add_item(bread)
    print_bill(bill)

    second = register.new_bill()
    second.add_item(bread, qty=2)
    second.submit()

    print(f"\n📊 Register {register.get_currency()}")
    print(f"   Bills on file: {sorted(register.get_bill_registry())}")
    print(f"   System total: {register.get_system_total()}")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    try:
        demo_point_of_sale()
        print("\n✅ Point of sale demo completed successfully!")
    except KeyboardInterrupt:
        print("\n\n⚠️  Demo interrupted by user")


# Point of Sale - Low Level Design

# Key Design Decisions:
# 1. Money:
# Integer minor units (pence, cents) tagged with a currency code
# Mixing currencies raises CurrencyMismatchError, including item prices
# 2. Items:
# Raw input is classified (RawKind) before validation
# Bad values are logged and replaced with a safe default
# 3. Bills:
# Items are cloned on add, so catalog edits never change a bill
# Totals are rebuilt from the entries on every change
# Rounding is half-up to a whole minor unit at VAT extraction,
# line tax and AMOUNT_OFF conversion
# 4. Register:
# Reference allocation and registry insertion happen under one lock
# A duplicate reference is logged and discarded
