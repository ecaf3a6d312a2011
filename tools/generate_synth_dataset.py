from __future__ import annotations

import random
from datetime import date, timedelta
from pathlib import Path

import pandas as pd


def main(out_path: str = "test_data/synth_dataset.csv", n: int = 500, seed: int = 42) -> None:
    random.seed(seed)

    out = Path(out_path)
    out.parent.mkdir(parents=True, exist_ok=True)

    start = date(2024, 1, 1)
    channels = ["Web", "Store", "Partner"]

    rows = []
    for i in range(n):
        d = start + timedelta(days=random.randint(0, 364))
        channel = random.choices(channels, weights=[0.5, 0.35, 0.15], k=1)[0]
        amount = round(max(1.0, random.gauss(120, 35)), 2)

        # Missing amount edge case
        if random.random() < 0.03:
            amount = None

        rows.append(
            {
                "order_id": f"ORD-{i+1:05d}",
                "order_date": d.isoformat(),
                "channel": channel,
                "amount": amount,
                "is_repeat": random.random() < 0.3,
                "coupon_code": None,  # fully-null column
            }
        )

    # One extreme value so the IQR fences have something to flag
    rows[n // 2]["amount"] = 25_000.0

    # A duplicated record
    rows.append(dict(rows[0]))

    df = pd.DataFrame(rows)
    df.to_csv(out, index=False)
    print(f"Wrote {len(df):,} rows to {out.resolve()}")


if __name__ == "__main__":
    main()
