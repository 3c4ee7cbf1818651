from __future__ import annotations

import argparse
import asyncio
import pprint

from fibo_trend_bot.config import load_config
from fibo_trend_bot.providers.binance import BinanceProvider
from fibo_trend_bot.strategy import compute


async def _fetch(cfg, symbol: str):
    provider = BinanceProvider(market=cfg.provider.market, rest_timeout_s=cfg.provider.rest_timeout_s)
    try:
        return await provider.fetch_klines(symbol, cfg.provider.timeframe, cfg.provider.candles)
    finally:
        await provider.close()


def main():
    p = argparse.ArgumentParser(description="Fetch candles once and print indicators and signals")
    p.add_argument("--config", required=True, help="Path to YAML config")
    p.add_argument("--symbol", help="Symbol override (defaults to the first configured symbol)")
    p.add_argument("--tail", type=int, default=10, help="How many enriched candles to print")
    args = p.parse_args()

    cfg = load_config(args.config)
    symbol = (args.symbol or (cfg.provider.symbols or ["BTCUSDT"])[0]).upper()
    candles = asyncio.run(_fetch(cfg, symbol))
    rows, signals = compute(candles, cfg.strategy.to_params())

    print(f"PARAMS ({symbol} {cfg.provider.timeframe}, {len(rows)} candles):")
    pprint.pprint(cfg.strategy.signature())
    print("\nLATEST CANDLES:")
    for r in rows[-args.tail:]:
        pprint.pprint(r.as_dict())
    print("\nSIGNALS (newest first):")
    for s in sorted(signals, key=lambda s: s.timestamp, reverse=True):
        pprint.pprint(s.as_dict())


if __name__ == "__main__":
    main()
