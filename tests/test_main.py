from fibo_trend_bot.config import TelegramConfig, load_config
from fibo_trend_bot.main import apply_overrides, build_parser, main
from fibo_trend_bot.notifier.telegram import TelegramNotifier, split_message


def _write(tmp_path, text: str) -> str:
    p = tmp_path / "config.yaml"
    p.write_text(text, encoding="utf-8")
    return str(p)


def test_cli_overrides_replace_config_values(tmp_path):
    path = _write(tmp_path, "provider:\n  symbols: [BTCUSDT]\n  timeframe: 15m\n")
    args = build_parser().parse_args(["--config", path, "--symbols", "ethusdt, solusdt", "--timeframe", "1h", "--log-level", "debug"])
    cfg = apply_overrides(load_config(path), args)
    assert cfg.provider.symbols == ["ETHUSDT", "SOLUSDT"]
    assert cfg.provider.timeframe == "1h"
    assert cfg.app.log_level == "debug"
    assert args.once is False


def test_bad_config_exits_with_error(tmp_path):
    assert main(["--config", _write(tmp_path, "alerts:\n  timezone: Europe/Lisbon\n")]) == 1
    assert main(["--config", str(tmp_path / "missing.yaml")]) == 1
    assert main(["--config", _write(tmp_path, ""), "--timeframe", "7x"]) == 1


def test_telegram_disabled_in_config_has_no_token():
    tg = TelegramNotifier.from_config(TelegramConfig(enabled=False, token="abc", chat_ids=["1"]))
    assert not tg.enabled()
    tg = TelegramNotifier.from_config(TelegramConfig(enabled=True, token=" abc ", chat_ids=[1, " "]))
    assert tg.enabled()
    assert tg.token == "abc"
    assert tg.chat_ids == ["1"]


def test_split_message_keeps_lines_together():
    assert split_message("short") == ["short"]
    text = "\n".join(["a" * 6, "b" * 6, "c" * 6])
    assert split_message(text, limit=13) == ["aaaaaa\nbbbbbb", "cccccc"]
    assert split_message("x" * 25, limit=10) == ["x" * 10, "x" * 10, "x" * 5]
