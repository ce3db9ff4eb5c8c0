# cometixline

A status line generator for Claude Code. It reads the session JSON that
Claude Code writes to the status line command's standard input and prints
one line of ANSI-coloured segments: model, directory, git branch, context
window usage, cost, session duration, output style and plan usage.

## Installation

```
pip install .
```

## Use with Claude Code

Point the status line command in your Claude Code settings at `ccline`:

```json
{
  "statusLine": {
    "type": "command",
    "command": "ccline"
  }
}
```

Each time the status line refreshes, Claude Code pipes its session data
into `ccline`, which prints the rendered line. If the input is not valid
session JSON, `ccline` writes an error to standard error and exits with
status 1. Run from a terminal with nothing piped in, it prints its help.

Options:

- `-t NAME`, `--theme NAME`: render with the configuration in
  `~/.claude/ccline/themes/NAME.toml` instead of `config.toml`. If that
  file is missing or invalid, the built-in default configuration is used.
- `-V`, `--version`: print the version.

```
ccline --theme minimal
```

## Configuration

The configuration is read from `~/.claude/ccline/config.toml`. When the
file is absent or cannot be parsed, a built-in default is used: nerd-font
icons, a ` | ` separator, and the model, directory, git and context window
segments enabled.

The file holds a `style` table (`mode` is `plain`, `nerd_font` or
`powerline`, plus a `separator`), a `theme` name and a list of `segments`.
Each segment has an `id`, an `enabled` flag, `icon` (`plain` and
`nerd_font`), `colors` (`icon`, `text`, `background`, each given as
`{ c16 = N }`, `{ c256 = N }` or `{ r = R, g = G, b = B }`), `styles`
(`text_bold`) and free-form `options`. Disabled segments are not collected
at all. When the separator is the powerline arrow `\ue0b0`, arrows take
their colours from the neighbouring segments' backgrounds.

Segment options that are read:

- `git`: `show_sha` (boolean) appends the short commit hash.
- `usage`: `cache_duration` (seconds, default 60), `api_base_url` and
  `timeout` (seconds, default 2).

Model display names and context window sizes come from
`~/.claude/ccline/models.toml`, which is created with commented examples
the first time it is needed; `./models.toml` is used if the user file
cannot be read. Claude models (Sonnet, Opus, Haiku) are recognised on
their own, with version numbers taken from the model id. `[[models]]`
entries take priority over this, and `[[context_modifiers]]` such as
`[1m]` override the context limit and add a suffix to the name.

## Segments

| Segment         | Shows                                                        |
|-----------------|--------------------------------------------------------------|
| model           | Display name of the current model                            |
| directory       | Name of the working directory                                |
| git             | Branch, clean/dirty/conflict marker, ahead/behind, short SHA |
| context_window  | Share of the context window in use, from the transcript      |
| cost            | Total cost of the session in USD                             |
| session         | Session duration and lines added/removed                     |
| output_style    | Name of the active output style                              |
| usage           | Five-hour plan usage and when it resets                      |
| usage7d         | Seven-day plan usage and when it resets                      |
| extra_usage     | Extra usage credits spent against the monthly limit          |

The git segment runs the `git` command in the session's working directory.
The usage segments read `~/.claude/ccline/.api_usage_cache.json`; the
five-hour segment also reads `/tmp/claude/statusline-usage-cache.json`.

## Library use

`cometixline.cli.render` takes a `Config` and an `InputData` and returns
the rendered status line:

```python
import json
from cometixline.cli import render
from cometixline.config import InputData
from cometixline.loader import load_from_path

config = load_from_path("config.toml")
input_data = InputData.from_dict(json.loads(session_json))
print(render(config, input_data))
```

Other pieces:

- `cometixline.loader`: `config_path`, `themes_path`, `load_from_path`,
  `load_config`, `save_config`, `config_to_toml`.
- `cometixline.config`: `Config` (with `from_dict`, `to_dict`, `check`,
  `merge_theme_visuals`), `InputData`, `RawUsage.normalize`.
- `cometixline.models.ModelConfig`: name and context-limit lookup.
- `cometixline.collect.collect_all_segments` and
  `cometixline.statusline.StatusLineGenerator` (`generate`, and
  `preview_lines` for wrapping to a width).
- `cometixline.segments.usage.UsageSegment` accepts a `token` (and
  optional `proxy`); with one, it fetches usage from the API when both
  caches are stale and writes the results back to them.

## What it does not do

- There is no interactive configurator and no built-in theme set; themes
  are TOML files you write yourself under `~/.claude/ccline/themes/`.
- It does not create `config.toml`; use `save_config` to write one.
- The `update` and `effort` segment ids are accepted in a configuration
  but produce no output.
- The `ccline` command does not read OAuth credentials, so from the
  command line the usage segments show cached figures only.

## Tests

```
pip install .[test]
pytest
```