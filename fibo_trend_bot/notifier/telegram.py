from __future__ import annotations

import asyncio
import logging
from typing import List, Optional

import aiohttp

from ..config import TelegramConfig

log = logging.getLogger("telegram")

# Bot API rejects longer message bodies
MAX_MESSAGE_LEN = 4096


def split_message(text: str, limit: int = MAX_MESSAGE_LEN) -> List[str]:
    """Split on line boundaries so each part fits one sendMessage call."""
    if len(text) <= limit:
        return [text]
    parts: List[str] = []
    cur = ""
    for line in text.split("\n"):
        while len(line) > limit:
            if cur:
                parts.append(cur)
                cur = ""
            parts.append(line[:limit])
            line = line[limit:]
        candidate = f"{cur}\n{line}" if cur else line
        if len(candidate) > limit:
            parts.append(cur)
            cur = line
        else:
            cur = candidate
    if cur:
        parts.append(cur)
    return parts


class TelegramNotifier:
    def __init__(
        self,
        token: str,
        chat_ids: List[str],
        *,
        disable_web_page_preview: bool = True,
        timeout_s: float = 15.0,
    ):
        self.token = (token or "").strip()
        self.chat_ids = [str(x).strip() for x in (chat_ids or []) if str(x).strip()]
        self.disable_web_page_preview = disable_web_page_preview
        self.timeout_s = float(timeout_s)

    @classmethod
    def from_config(cls, cfg: TelegramConfig) -> "TelegramNotifier":
        return cls(
            token=cfg.token if cfg.enabled else "",
            chat_ids=cfg.chat_ids,
            disable_web_page_preview=cfg.disable_web_page_preview,
        )

    def enabled(self) -> bool:
        return bool(self.token) and bool(self.chat_ids)

    async def send(self, text: str, *, parse_mode: Optional[str] = None) -> int:
        """Send `text` to every chat; returns how many chats got all parts."""
        if not self.enabled():
            return 0
        url = f"https://api.telegram.org/bot{self.token}/sendMessage"
        parts = split_message(text)
        delivered = 0
        async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.timeout_s)) as sess:
            for chat_id in self.chat_ids:
                ok = True
                for part in parts:
                    payload = {
                        "chat_id": chat_id,
                        "text": part,
                        "disable_web_page_preview": self.disable_web_page_preview,
                    }
                    if parse_mode:
                        payload["parse_mode"] = parse_mode
                    try:
                        async with sess.post(url, json=payload) as resp:
                            if resp.status != 200:
                                body = await resp.text()
                                log.warning("telegram_send_failed chat_id=%s status=%s body=%s", chat_id, resp.status, body[:2000])
                                ok = False
                                break
                    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                        log.warning("telegram_send_exception chat_id=%s err=%r", chat_id, e)
                        ok = False
                        break
                if ok:
                    delivered += 1
        log.info("telegram_sent chats=%d delivered=%d parts=%d", len(self.chat_ids), delivered, len(parts))
        return delivered
