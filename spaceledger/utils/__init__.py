from spaceledger.utils.money import ZERO, money_sum, percent_of, to_money

__all__ = [
    "ZERO",
    "money_sum",
    "percent_of",
    "to_money",
]
