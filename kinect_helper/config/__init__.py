from .settings import (
    AUDIO_BACKENDS,
    DEFAULT_CONFIG_PATH,
    HelperSettings,
    build_arg_parser,
    parse_cli_args,
    parse_color,
    read_config_file,
)

__all__ = [
    "AUDIO_BACKENDS",
    "DEFAULT_CONFIG_PATH",
    "HelperSettings",
    "build_arg_parser",
    "parse_cli_args",
    "parse_color",
    "read_config_file",
]
