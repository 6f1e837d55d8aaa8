from __future__ import annotations

import argparse
import asyncio
import logging

from .config import load_config
from .errors import ConfigError
from .runner import SignalRunner


def _setup_logging(level: str) -> None:
    lvl = getattr(logging, (level or "INFO").upper(), logging.INFO)
    logging.basicConfig(
        level=lvl,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )


def main(argv=None) -> int:
    p = argparse.ArgumentParser(description="SuperTrend Sentinel - multi-TF signal replay")
    p.add_argument("--config", required=True, help="Path to YAML config")
    p.add_argument("--symbol", action="append", help="Symbol to analyze (repeatable, overrides config)")
    p.add_argument("--mode", choices=("historical", "current", "both"), default="historical")
    args = p.parse_args(argv)

    try:
        cfg = load_config(args.config)
    except (OSError, ConfigError) as e:
        _setup_logging("INFO")
        logging.getLogger("main").error("config_error path=%s err=%s", args.config, e)
        return 2
    _setup_logging(cfg.app.log_level)
    if args.symbol:
        cfg.provider.symbols = [s.strip().upper() for s in args.symbol if s.strip()]

    try:
        runner = SignalRunner(cfg)
    except ConfigError as e:
        logging.getLogger("main").error("config_error err=%s", e)
        return 2

    async def _run() -> None:
        try:
            await runner.run(args.mode)
        finally:
            await runner.provider.close()

    try:
        asyncio.run(_run())
        return 0
    except KeyboardInterrupt:
        runner.stop()
        return 0
    except Exception as e:
        logging.getLogger("main").exception("fatal err=%s", e)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
