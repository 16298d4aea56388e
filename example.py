from datetime import date

from fx_cross import FxCross

print(FxCross.__version__)  # 0.1.0

# Default Usage (bundled SQLite cache, ECB data service)
fx = FxCross()

# One day, one pair
rates = fx.exchanges([("USD", "PLN")], date(2020, 11, 16), date(2020, 11, 16))
print(rates)
# => [{'date': '2020-11-16', 'from': 'USD', 'to': 'PLN', 'rate': 3.7753}]

# A weekend reuses Friday's rates
rates = fx.exchanges([("USD", "PLN")], date(2020, 11, 14), date(2020, 11, 15))
print(rates)
# => [{'date': '2020-11-14', ..., 'rate': 3.78}, {'date': '2020-11-15', ..., 'rate': 3.78}]

# Several pairs over a month; EUR is the reference currency
rates = fx.cross_rates(
    [("EUR", "USD"), ("GBP", "JPY")],
    date(2020, 12, 1),
    date(2020, 12, 31),
)
print(rates[:2])
# => [CrossRate(rate_date=datetime.date(2020, 12, 1), currency_from='EUR', currency_to='USD', rate=...), ...]

fx.close()
