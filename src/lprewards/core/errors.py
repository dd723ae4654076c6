from __future__ import annotations


class AccrualError(Exception):
    """
    Base class for every failure raised by the accrual engine.

    All subclasses are fatal for the operation that raised them:
    the engine rolls back global state and touched positions before re-raising.
    """


class Overflow(AccrualError, ArithmeticError):
    """A checked add/mul result does not fit in the unsigned 256-bit domain."""


class Underflow(AccrualError, ArithmeticError):
    """A checked subtraction would go below zero (or an operand is negative)."""


class InvalidSplit(AccrualError, ValueError):
    """Malformed receivers/percentages for a payout split."""


class TransferFailed(AccrualError):
    """
    The reward-token collaborator refused a payout batch. Nothing in the batch moved.
    """

    def __init__(
        self,
        *,
        receivers: tuple[str | None, ...],
        amount: int,
        reason: str = "transfer returned false",
    ) -> None:
        self.receivers = receivers
        self.amount = amount
        self.reason = reason
        super().__init__(f"transfer of {amount} to {list(receivers)!r} failed: {reason}")


class ConfigError(AccrualError, ValueError):
    """Invalid one-time pool configuration."""
