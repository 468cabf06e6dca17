from __future__ import annotations

import json
import logging
import random
from pathlib import Path
from typing import Any, Iterable

from .errors import TemplateNotFound
from .models import ThemeTemplate

logger = logging.getLogger(__name__)


DEFAULT_SYMBOLS = [
    "😀", "😂", "😊", "😎", "🥳", "🤯", "😱", "👻", "👽", "🤖", "👾", "🤠", "🧐", "🧑‍🚀", "🦸",
    "🧑‍🌾", "🧑‍🍳", "🧑‍🔧", "🧑‍🎨", "🧑‍🎤", "🐶", "🐱", "🐭", "🦊", "🐻", "🐼", "🐨", "🐵", "🦁", "🐸",
    "🐳", "🦋", "🦄", "🐞", "🐢", "🌵", "🌴", "🌸", "🍁", "🍄", "🍎", "🍌", "🍉", "🍕", "🍔",
    "🍟", "🍩", "🍿", "🍭", "🍹", "⚽️", "🏀", "🎯", "🎮", "🎲", "🚀", "⚓️", "💡", "💎", "🎁",
    "🎉", "🔑", "💰", "💣", "⚙️", "🧭", "🔭", "🔮", "🛡️", "🏳️", "❤️", "⭐", "☀️", "🌙", "⚡️",
    "🔥", "💧", "🌈", "✨", "⏳",
]

SYMBOL_FILE_SUFFIXES = (".png", ".svg", ".webp", ".jpg", ".jpeg", ".gif")


def _unique(items: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    out: list[str] = []
    for item in items:
        s = str(item).strip()
        if s and s not in seen:
            seen.add(s)
            out.append(s)
    return out


def _parse_template(raw: dict[str, Any]) -> ThemeTemplate:
    theme_id = str(raw["id"]).strip().upper()
    board_size = raw.get("boardSize")
    return ThemeTemplate(
        id=theme_id,
        display_name=str(raw.get("displayName") or theme_id),
        max_players=max(1, int(raw.get("maxPlayers", 4))),
        mode="alternating" if raw.get("mode") == "alternating" else "matching",
        board_size=int(board_size) if board_size else None,
        palette=dict(raw.get("palette") or {}),
        theme_folder=str(raw.get("themeFolder") or theme_id.lower()),
        symbols=tuple(_unique(raw.get("symbols") or [])),
    )


class ThemeCatalog:
    """Read-only lookup ``theme id -> template`` plus the symbol pool provider."""

    def __init__(
        self,
        templates: Iterable[ThemeTemplate],
        themes_dir: str | Path | None = None,
        default_symbols: Iterable[str] | None = None,
    ) -> None:
        self._templates = {t.id: t for t in templates}
        self._themes_dir = Path(themes_dir) if themes_dir else None
        self._default_symbols = _unique(DEFAULT_SYMBOLS if default_symbols is None else default_symbols)

    @classmethod
    def from_file(cls, path: str | Path, themes_dir: str | Path | None = None) -> "ThemeCatalog":
        p = Path(path)
        try:
            data = json.loads(p.read_text(encoding="utf-8"))
        except FileNotFoundError:
            logger.warning("[themes] catalogue %s not found, starting without templates", p)
            data = []
        entries = data.get("rooms", []) if isinstance(data, dict) else data
        templates = [_parse_template(raw) for raw in entries if isinstance(raw, dict) and raw.get("id")]
        logger.info("[themes] loaded %d templates from %s", len(templates), p)
        return cls(templates, themes_dir=themes_dir)

    def list_templates(self) -> list[ThemeTemplate]:
        return list(self._templates.values())

    def find_template(self, theme_id: str) -> ThemeTemplate | None:
        return self._templates.get((theme_id or "").strip().upper())

    def get_template(self, theme_id: str) -> ThemeTemplate:
        template = self.find_template(theme_id)
        if template is None:
            raise TemplateNotFound(f"Unknown theme: {theme_id}")
        return template

    def _folder_symbols(self, template: ThemeTemplate) -> list[str]:
        if not self._themes_dir or not template.theme_folder:
            return []
        folder = self._themes_dir / template.theme_folder / "symbols"
        if not folder.is_dir():
            return []
        return sorted(
            f.stem for f in folder.iterdir() if f.is_file() and f.suffix.lower() in SYMBOL_FILE_SUFFIXES
        )

    def get_symbols_for_theme(self, theme_id: str, minimum: int = 0) -> list[str]:
        """Ordered unique symbols for a theme.

        Falls back to the default pool when the themed pool is empty, or holds
        fewer than ``minimum`` symbols and the default pool is larger. Unknown
        themes use the default pool. May return an empty list.
        """
        template = self.find_template(theme_id)
        themed: list[str] = []
        if template is not None:
            themed = _unique(list(template.symbols) + self._folder_symbols(template))

        if not themed:
            return list(self._default_symbols)
        if len(themed) < minimum and len(self._default_symbols) > len(themed):
            logger.warning(
                "[themes] pool for %s has %d symbols, %d needed; using default pool",
                theme_id, len(themed), minimum,
            )
            return list(self._default_symbols)
        return themed


def draw_symbols(pool: list[str], count: int, rng: random.Random | None = None) -> list[str]:
    """Draw ``count`` symbols, repeating the pool first when it is too small."""
    rng = rng or random.Random()
    if not pool:
        return []
    source = list(pool)
    rng.shuffle(source)
    if len(source) >= count:
        return source[:count]

    logger.warning("[symbols] pool of %d extended by repetition to draw %d", len(source), count)
    repeats = -(-count // len(source))
    drawn = (source * repeats)[:count]
    rng.shuffle(drawn)
    return drawn


def template_payload(template: ThemeTemplate) -> dict[str, Any]:
    return {
        "id": template.id,
        "displayName": template.display_name,
        "maxPlayers": template.max_players,
        "mode": template.mode,
        "boardSize": template.board_size,
        "palette": dict(template.palette),
        "themeFolder": template.theme_folder,
    }
