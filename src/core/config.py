"""
Configuration layering for ledger processor services.
"""

from argparse import ArgumentParser
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

import dotenv
from dynaconf import Dynaconf, ValidationError, Validator

from .constants import DEFAULT_DATABASE_URL
from .errors import ConfigurationError
from .log import get_logger

logger = get_logger(__name__)

dotenv.load_dotenv()


@dataclass
class ConfigOpts:
    service_name: str
    settings_files: Optional[list[str]] = None
    validators: Optional[list[Validator]] = None


class Config:
    """Configurations

    Settings are read from TOML files (and DYNACONF_* environment variables)
    first; CLI arguments correspond to the TOML keys and win over them.
    """

    def __init__(self, opts: ConfigOpts, argv: Optional[Sequence[str]] = None):
        self.service_name = opts.service_name
        self._parser = ArgumentParser(prog=opts.service_name)

        # Add config argument first for early parsing
        self._parser.add_argument(
            "--config",
            "-c",
            type=str,
            help="Path to configuration file (TOML format)",
            default=None,
        )

        known_args, _ = self._parser.parse_known_args(argv)

        settings_files = ["settings.toml", ".secrets.toml"]
        if opts.settings_files:
            settings_files.extend(opts.settings_files)
        if known_args.config:
            config_path = Path(known_args.config)
            if not config_path.exists():
                raise FileNotFoundError(f"Config file not found: {known_args.config}")
            settings_files = [known_args.config]
            logger.info("Using custom config file: %s", known_args.config)

        self.settings: Dynaconf = Dynaconf(
            settings_files=settings_files,
            environments=False,
            load_dotenv=True,
            validators=opts.validators or [],
        )

        try:
            self.settings.validators.validate()
        except ValidationError as exc:
            raise ConfigurationError(str(exc)) from exc

        self.add_args()

        options = self._parser.parse_args(argv)
        option_vars = vars(options)
        logger.debug("Current config: %s", option_vars)

        for key, value in option_vars.items():
            self.settings[key] = value

    def add_args(self):
        """Add command line arguments shared by every service."""
        self._parser.add_argument(
            "--database-url",
            type=str,
            help="SQLAlchemy URL of the ledger database",
            default=self.settings.get("database_url", DEFAULT_DATABASE_URL),
        )
