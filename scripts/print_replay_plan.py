from __future__ import annotations

import argparse
import pprint

from supertrend_sentinel.config import load_config
from supertrend_sentinel.errors import InsufficientData
from supertrend_sentinel.models import SignalCombination
from supertrend_sentinel.replay import ReplayEngine
from supertrend_sentinel.transitions import direction, signal_type


def main():
    p = argparse.ArgumentParser(description="Print replay sampling plan and signal tables for a config")
    p.add_argument("--config", required=True, help="Path to YAML config")
    p.add_argument("--master-len", type=int, default=None, help="15m candles to plan for (default: provider.limit)")
    args = p.parse_args()

    cfg = load_config(args.config)
    n = args.master_len if args.master_len is not None else cfg.provider.limit
    engine = ReplayEngine(
        None,
        stride=cfg.replay.stride,
        warmup_index=cfg.replay.warmup_index,
        tail_reserve=cfg.replay.tail_reserve,
        short_series=cfg.replay.short_series,
    )

    print("REPLAY CONFIG:")
    pprint.pprint(vars(cfg.replay))
    try:
        idx = engine.sample_indices(n)
    except InsufficientData as e:
        print(f"\nmaster_len={n}: replay would fail with InsufficientData ({e})")
    else:
        start = idx[0] if idx else n
        print(f"\nmaster_len={n} start={start} steps={len(idx)}")
        print(idx)

    print("\nSIGNAL TABLE (combination -> direction / type):")
    for combo in SignalCombination:
        print(f"  {combo.value:<28} {direction(combo).value:<8} {signal_type(combo)}")


if __name__ == "__main__":
    main()
