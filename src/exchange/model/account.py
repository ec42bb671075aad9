"""
Account balance models.

An Account maps each Currency to one SubAccount. Venues that report the
same currency in several wallets are folded according to the adapter's
AccountPolicy, so a currency never appears twice in a snapshot.
"""

from collections.abc import Iterable
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from src.exchange.enums import AccountPolicy
from src.exchange.errors import NormalizationError
from src.exchange.model.currency import Currency


class SubAccount(BaseModel):
    """Balance of one currency."""

    currency: Currency
    available: Decimal = Field(default=Decimal("0"), description="Free to trade")
    frozen: Decimal = Field(default=Decimal("0"), description="Held by orders")
    loan: Decimal = Field(default=Decimal("0"), description="Borrowed amount")

    model_config = ConfigDict(frozen=True)

    @property
    def total(self) -> Decimal:
        """Available plus frozen."""
        return self.available + self.frozen

    def merge(self, other: "SubAccount") -> "SubAccount":
        """Add another balance row of the same currency."""
        return SubAccount(
            currency=self.currency,
            available=self.available + other.available,
            frozen=self.frozen + other.frozen,
            loan=self.loan + other.loan,
        )


class Account(BaseModel):
    """Balance snapshot of one venue account."""

    venue: str
    sub_accounts: dict[Currency, SubAccount] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_balances(
        cls,
        venue: str,
        rows: Iterable[SubAccount],
        policy: AccountPolicy = AccountPolicy.REJECT,
    ) -> "Account":
        """
        Fold balance rows into an account snapshot.

        Args:
            venue: Venue name
            rows: Balance rows, possibly repeating a currency
            policy: How repeated currencies are combined

        Returns:
            Account with each currency at most once

        Raises:
            NormalizationError: If a currency repeats under REJECT

        """
        merged: dict[Currency, SubAccount] = {}
        for row in rows:
            existing = merged.get(row.currency)
            if existing is None:
                merged[row.currency] = row
            elif policy is AccountPolicy.SUM:
                merged[row.currency] = existing.merge(row)
            else:
                raise NormalizationError(
                    f"{venue} reported {row.currency} more than once"
                )
        return cls(venue=venue, sub_accounts=merged)

    def get(self, currency: Currency | str) -> SubAccount | None:
        """Look up a currency balance by Currency or symbol."""
        key = currency if isinstance(currency, Currency) else Currency.of(currency)
        return self.sub_accounts.get(key)

    def non_zero(self) -> dict[Currency, SubAccount]:
        """Balances with any available, frozen or borrowed amount."""
        return {
            c: s
            for c, s in self.sub_accounts.items()
            if s.available or s.frozen or s.loan
        }
