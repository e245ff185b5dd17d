"""Utility functions for campaignledger."""

from campaignledger.utils.date_parser import parse_date, get_date_range
from campaignledger.utils.money import parse_amount, round_money

__all__ = ["parse_date", "get_date_range", "parse_amount", "round_money"]
