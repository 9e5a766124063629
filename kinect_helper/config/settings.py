"""Configuration loading + normalization for the helper.

Values come from a ``config.txt`` style file, then CLI flags (which default to
the file's values), and are normalized into :class:`HelperSettings`.
"""

from __future__ import annotations

import argparse
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

from ..domain import StreamSelection, TrackingMode
from ..domain.constants import NAMED_COLORS, WHITE

AUDIO_BACKENDS: tuple[str, str] = ("simulated", "sounddevice")
DEFAULT_CONFIG_PATH = Path("config.txt")


@dataclass(slots=True)
class HelperSettings:
    """Normalized configuration derived from CLI args and config file."""

    color: bool = True
    depth: bool = True
    skeleton: bool = True
    audio: bool = False
    infrared: bool = False
    seated: bool = False
    elevation: int | None = None
    background: str = "white"
    reset_angle_on_startup: bool = True
    audio_backend: str = "simulated"
    audio_device: int | None = None
    fps: float = 30.0
    duration: float = 10.0
    watch_interval: float = 1.0
    audio_join_timeout: float = 2.0
    log_level: str = "info"
    log_file: Path | None = None
    console_output: bool = True

    @classmethod
    def from_args(cls, args: Any) -> "HelperSettings":
        """Create a settings instance from an argparse namespace."""

        defaults = cls()

        def _get(name: str, cast=None):
            value = getattr(args, name, None)
            if value is None:
                return getattr(defaults, name)
            return cast(value) if cast else value

        elevation = getattr(args, "elevation", None)
        log_file = getattr(args, "log_file", None)

        return cls(
            color=_get("color", bool),
            depth=_get("depth", bool),
            skeleton=_get("skeleton", bool),
            audio=_get("audio", bool),
            infrared=_get("infrared", bool),
            seated=_get("seated", bool),
            elevation=int(elevation) if elevation is not None else None,
            background=str(_get("background")).strip().lower(),
            reset_angle_on_startup=_get("reset_angle_on_startup", bool),
            audio_backend=_normalize_backend(_get("audio_backend")),
            audio_device=getattr(args, "audio_device", None),
            fps=max(1.0, _get("fps", float)),
            duration=max(0.0, _get("duration", float)),
            watch_interval=max(0.05, _get("watch_interval", float)),
            audio_join_timeout=max(0.1, _get("audio_join_timeout", float)),
            log_level=str(_get("log_level")),
            log_file=Path(log_file) if log_file else None,
            console_output=_get("console_output", bool),
        )

    def selection(self) -> StreamSelection:
        return StreamSelection(
            color=self.color,
            depth=self.depth,
            skeleton=self.skeleton,
            audio=self.audio,
            infrared=self.infrared,
        )

    @property
    def tracking_mode(self) -> TrackingMode:
        return TrackingMode.SEATED if self.seated else TrackingMode.DEFAULT

    def background_color(self) -> tuple[int, int, int]:
        return parse_color(self.background)


def parse_color(value: str | tuple[int, int, int]) -> tuple[int, int, int]:
    """Accept a color name (``"white"``) or ``"r,g,b"``; unknown values fall back to white."""

    if isinstance(value, tuple):
        return tuple(max(0, min(255, int(part))) for part in value[:3])  # type: ignore[return-value]
    text = str(value or "").strip().lower()
    if text in NAMED_COLORS:
        return NAMED_COLORS[text]
    parts = [part.strip() for part in text.split(",")]
    if len(parts) == 3:
        try:
            return tuple(max(0, min(255, int(part))) for part in parts)  # type: ignore[return-value]
        except ValueError:
            pass
    return WHITE


def read_config_file(path: Path) -> dict[str, object]:
    """Load key/value pairs from ``config.txt`` style files."""

    config: dict[str, object] = {}
    if not path.exists():
        return config

    for raw_line in path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = [part.strip() for part in line.split("=", 1)]
        if not key:
            continue
        lowered = value.lower()
        if lowered in {"true", "yes", "on"}:
            config[key] = True
        elif lowered in {"false", "no", "off"}:
            config[key] = False
        else:
            try:
                config[key] = float(value) if "." in value else int(value)
            except ValueError:
                config[key] = value
    return config


def _config_value(config: Mapping[str, object], key: str, fallback: Any) -> Any:
    value = config.get(key, fallback)
    if isinstance(value, str) and key.endswith("_file"):
        return Path(value)
    return value


def _add_toggle(parser: argparse.ArgumentParser, name: str, default: bool, help_text: str) -> None:
    dest = name.replace("-", "_")
    group = parser.add_mutually_exclusive_group()
    group.add_argument(f"--{name}", dest=dest, action="store_true", default=default, help=help_text)
    group.add_argument(f"--no-{name}", dest=dest, action="store_false", help=f"Disable: {help_text.lower()}")


def build_arg_parser(config: Mapping[str, object]) -> argparse.ArgumentParser:
    """Create the CLI parser with defaults sourced from the config file."""

    defaults = HelperSettings()
    parser = argparse.ArgumentParser(
        prog="kinect-helper",
        description="Run the depth-sensor stream helper against the simulated sensor",
    )

    _add_toggle(parser, "color", bool(_config_value(config, "color", defaults.color)), "Enable the RGB color stream")
    _add_toggle(parser, "depth", bool(_config_value(config, "depth", defaults.depth)), "Enable the depth stream")
    _add_toggle(
        parser, "skeleton", bool(_config_value(config, "skeleton", defaults.skeleton)), "Enable skeletal tracking"
    )
    _add_toggle(parser, "audio", bool(_config_value(config, "audio", defaults.audio)), "Enable audio capture")
    parser.add_argument(
        "--infrared",
        action="store_true",
        default=bool(_config_value(config, "infrared", defaults.infrared)),
        help="Use the infrared format on the color stream (turns RGB color off)",
    )
    parser.add_argument(
        "--seated",
        action="store_true",
        default=bool(_config_value(config, "seated", defaults.seated)),
        help="Use seated skeletal tracking",
    )
    parser.add_argument(
        "--elevation",
        type=int,
        default=_config_value(config, "elevation", defaults.elevation),
        help="Elevation angle to apply once running (clamped to the device range)",
    )
    parser.add_argument(
        "--background",
        type=str,
        default=_config_value(config, "background", defaults.background),
        help="Skeleton background: a color name or r,g,b",
    )
    _add_toggle(
        parser,
        "reset-angle-on-startup",
        bool(_config_value(config, "reset_angle_on_startup", defaults.reset_angle_on_startup)),
        "Reset the elevation angle to 0 when a device starts",
    )
    parser.add_argument(
        "--audio-backend",
        choices=AUDIO_BACKENDS,
        default=_normalize_backend(_config_value(config, "audio_backend", defaults.audio_backend)),
        help="Audio source: synthetic tone or a sounddevice microphone",
    )
    parser.add_argument(
        "--audio-device",
        type=int,
        default=_config_value(config, "audio_device", defaults.audio_device),
        help="sounddevice input device index",
    )
    parser.add_argument(
        "--fps",
        type=float,
        default=_config_value(config, "fps", defaults.fps),
        help="Frame rate of the simulated sensor",
    )
    parser.add_argument(
        "--duration",
        type=float,
        default=_config_value(config, "duration", defaults.duration),
        help="Seconds to run before shutting down (0 runs until interrupted)",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=_config_value(config, "log_level", defaults.log_level),
        help="Logging verbosity",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=_config_value(config, "log_file", defaults.log_file),
        help="Optional rotating log file path",
    )
    _add_toggle(
        parser,
        "console",
        bool(_config_value(config, "console_output", defaults.console_output)),
        "Log to the console",
    )
    parser.set_defaults(
        console_output=parser.get_default("console"),
        watch_interval=_config_value(config, "watch_interval", defaults.watch_interval),
        audio_join_timeout=_config_value(config, "audio_join_timeout", defaults.audio_join_timeout),
    )
    return parser


def parse_cli_args(
    argv: list[str] | None = None,
    *,
    config_path: Path = DEFAULT_CONFIG_PATH,
) -> argparse.Namespace:
    """Parse CLI arguments using configuration defaults."""

    parser = build_arg_parser(read_config_file(config_path))
    args = parser.parse_args(argv)
    args.console_output = args.console
    return args


def _normalize_backend(value: Any) -> str:
    text = str(value or "").strip().lower()
    if text in AUDIO_BACKENDS:
        return text
    return AUDIO_BACKENDS[0]


__all__ = [
    "AUDIO_BACKENDS",
    "DEFAULT_CONFIG_PATH",
    "HelperSettings",
    "parse_color",
    "read_config_file",
    "build_arg_parser",
    "parse_cli_args",
]
