from datetime import date

from fx_cross import FxCross

# MongoDB Usage
fx = FxCross(db_config="mongodb://127.0.0.1:27017/forex")

success, error = fx.connection()  # => to check the connectivity
if not success:
    print(error)
    exit(1)

# Christmas has no ECB fixing: the 24th is reused and the 25th is remembered
print(fx.exchanges([("CHF", "SEK")], date(2020, 12, 24), date(2020, 12, 28)))

fx.close()
