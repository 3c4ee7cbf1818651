from __future__ import annotations

import argparse
import asyncio
import logging

from .config import Config, load_config
from .runner import SignalRunner

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def _setup_logging(level: str) -> None:
    lvl = getattr(logging, (level or "INFO").upper(), logging.INFO)
    logging.basicConfig(level=lvl, format=LOG_FORMAT)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="fibo-trend-bot",
        description="ADX / slope / GOG trend signals in Fibonacci retracement zones, alerted to Telegram",
    )
    p.add_argument("--config", required=True, help="Path to YAML config")
    p.add_argument("--once", action="store_true", help="Poll every symbol a single time and exit")
    p.add_argument("--symbols", help="Comma separated symbols, replaces provider.symbols")
    p.add_argument("--timeframe", help="Kline interval, replaces provider.timeframe (e.g. 1h)")
    p.add_argument("--log-level", help="Replaces app.log_level")
    return p


def apply_overrides(cfg: Config, args: argparse.Namespace) -> Config:
    if args.symbols:
        cfg.provider.symbols = [s.strip().upper() for s in args.symbols.split(",") if s.strip()]
    if args.timeframe:
        cfg.provider.timeframe = args.timeframe.strip()
    if args.log_level:
        cfg.app.log_level = args.log_level
    return cfg


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    try:
        cfg = apply_overrides(load_config(args.config), args)
        runner = SignalRunner(cfg)
    except (OSError, ValueError, TypeError) as e:
        _setup_logging("INFO")
        logging.getLogger("main").error("config_invalid path=%s err=%s", args.config, e)
        return 1

    _setup_logging(cfg.app.log_level)
    log = logging.getLogger("main")

    async def _run() -> None:
        try:
            if args.once:
                await runner.poll_all()
            else:
                await runner.run_forever()
        finally:
            await runner.provider.close()

    try:
        asyncio.run(_run())
        return 0
    except KeyboardInterrupt:
        log.info("stopped by user")
        return 0
    except Exception as e:
        log.exception("fatal err=%s", e)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
