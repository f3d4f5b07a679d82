"""Configuration: TOML sections, layered settings, logging setup."""
