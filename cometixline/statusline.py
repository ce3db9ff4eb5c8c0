"""Rendering collected segments into an ANSI-coloured statusline."""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from cometixline.config import AnsiColor, Config, SegmentConfig, StyleMode
from cometixline.segments.base import SegmentData

POWERLINE_ARROW = "\ue0b0"
_RESET = "\x1b[0m"


def visible_width(text: str) -> int:
    """Number of characters in ``text`` once ANSI escape sequences are removed."""
    width = 0
    in_escape = False
    chars = iter(text)
    pending: str | None = None
    while True:
        if pending is not None:
            ch, pending = pending, None
        else:
            ch = next(chars, None)
            if ch is None:
                break
        if ch == "\x1b":
            in_escape = True
            following = next(chars, None)
            if following is not None and following != "[":
                pending = following
        elif in_escape:
            if ch.isalpha():
                in_escape = False
        else:
            width += 1
    return width


def _fg_number(c16: int) -> int:
    return 30 + c16 if c16 < 8 else 90 + (c16 - 8)


def _bg_number(c16: int) -> int:
    return 40 + c16 if c16 < 8 else 100 + (c16 - 8)


def _fg_params(color: AnsiColor) -> list[str]:
    if color.c16 is not None:
        return [str(_fg_number(color.c16))]
    if color.c256 is not None:
        return ["38", "5", str(color.c256)]
    r, g, b = color.rgb  # type: ignore[misc]
    return ["38", "2", str(r), str(g), str(b)]


def _fg_code(color: AnsiColor) -> str:
    return f"\x1b[{';'.join(_fg_params(color))}m"


def _bg_code(color: AnsiColor) -> str:
    if color.c16 is not None:
        return f"\x1b[{_bg_number(color.c16)}m"
    if color.c256 is not None:
        return f"\x1b[48;5;{color.c256}m"
    r, g, b = color.rgb  # type: ignore[misc]
    return f"\x1b[48;2;{r};{g};{b}m"


def _apply_color(text: str, color: AnsiColor | None) -> str:
    if color is None:
        return text
    return f"{_fg_code(color)}{text}{_RESET}"


def _apply_style(text: str, color: AnsiColor | None, bold: bool) -> str:
    codes = ["1"] if bold else []
    if color is not None:
        codes.extend(_fg_params(color))
    if not codes:
        return text
    return f"\x1b[{';'.join(codes)}m{text}{_RESET}"


def _powerline_arrow(prev_bg: AnsiColor | None, curr_bg: AnsiColor | None) -> str:
    if prev_bg is not None and curr_bg is not None:
        return f"{_bg_code(curr_bg)}{_fg_code(prev_bg)}{POWERLINE_ARROW}{_RESET}"
    if prev_bg is not None:
        return f"{_fg_code(prev_bg)}{POWERLINE_ARROW}{_RESET}"
    if curr_bg is not None:
        return f"{_bg_code(curr_bg)}{POWERLINE_ARROW}{_RESET}"
    return POWERLINE_ARROW


Segments = Iterable[tuple[SegmentConfig, SegmentData]]


class StatusLineGenerator:
    """Turns segment data into a single statusline string."""

    def __init__(self, config: Config) -> None:
        self.config = config

    @property
    def _is_powerline(self) -> bool:
        return self.config.style.separator == POWERLINE_ARROW

    def _white_separator(self) -> str:
        return f"\x1b[37m{self.config.style.separator}{_RESET}"

    def generate(self, segments: Segments) -> str:
        """Render enabled segments joined by the configured separator."""
        enabled = [(cfg, data) for cfg, data in segments if cfg.enabled]
        rendered = [text for cfg, data in enabled if (text := self._render_segment(cfg, data))]
        if not rendered:
            return ""
        if self._is_powerline:
            return self._join_powerline(rendered, [cfg for cfg, _ in enabled])
        return self._white_separator().join(rendered)

    def preview_lines(self, segments: Segments, max_width: int) -> list[str]:
        """Render enabled segments wrapped by segment so lines fit ``max_width``."""
        rendered: list[str] = []
        configs: list[SegmentConfig] = []
        for cfg, data in segments:
            if not cfg.enabled:
                continue
            text = self._render_segment(cfg, data)
            if text:
                rendered.append(text)
                configs.append(cfg)
        if not rendered:
            return [""]

        if self._is_powerline:
            separators = [
                _powerline_arrow(prev.colors.background, curr.colors.background)
                for prev, curr in zip(configs, configs[1:])
            ]
        else:
            separators = [self._white_separator()] * (len(rendered) - 1)

        lines: list[str] = []
        current = ""
        width = 0
        for index, segment in enumerate(rendered):
            segment_width = visible_width(segment)
            if width > 0 and width + segment_width > max_width:
                lines.append(current)
                current, width = "", 0
            current += segment
            width += segment_width

            if index < len(separators):
                separator = separators[index]
                sep_width = visible_width(separator)
                next_width = visible_width(rendered[index + 1])
                if width + sep_width + next_width <= max_width:
                    current += separator
                    width += sep_width
                else:
                    lines.append(current)
                    current, width = "", 0
        if current:
            lines.append(current)

        result = [part for line in lines for part in line.split("\n")]
        return result or [""]

    def _icon(self, cfg: SegmentConfig) -> str:
        if self.config.style.mode is StyleMode.PLAIN:
            return cfg.icon.plain
        return cfg.icon.nerd_font

    def _render_segment(self, cfg: SegmentConfig, data: SegmentData) -> str:
        if self.config.style.mode is StyleMode.PLAIN:
            icon = self._icon(cfg)
        else:
            icon = data.metadata.get("dynamic_icon", self._icon(cfg))

        colors = cfg.colors
        bold = cfg.styles.text_bold
        if colors.background is not None:
            icon_part = _apply_color(icon, colors.icon).replace(_RESET, "")
            text_part = _apply_style(data.primary, colors.text, bold).replace(_RESET, "")
            content = f" {icon_part} {text_part} "
            if data.secondary:
                secondary = _apply_style(data.secondary, colors.text, bold).replace(_RESET, "")
                content += f"{secondary} "
            return f"{_bg_code(colors.background)}{content}\x1b[49m"

        segment = f"{_apply_color(icon, colors.icon)} {_apply_style(data.primary, colors.text, bold)}"
        if data.secondary:
            segment += f" {_apply_style(data.secondary, colors.text, bold)}"
        return segment

    def _join_powerline(self, rendered: Sequence[str], configs: Sequence[SegmentConfig]) -> str:
        if len(rendered) == 1:
            return rendered[0]

        def background(index: int) -> AnsiColor | None:
            return configs[index].colors.background if index < len(configs) else None

        parts = [rendered[0]]
        for index in range(1, len(rendered)):
            parts.append(_powerline_arrow(background(index - 1), background(index)))
            parts.append(rendered[index])
        parts.append(_RESET)
        return "".join(parts)