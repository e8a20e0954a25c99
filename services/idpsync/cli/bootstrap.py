"""
One-shot identity provider bootstrap.

Idempotent: re-running with unchanged configuration creates no new records.
Run via: python -m idpsync.cli.bootstrap

Reads configuration from the idpsync settings (YAML file plus IDPSYNC_*
environment variables). Dotted environment variables such as ldap.base.url,
and disableInternalAuth, are read as properties.
"""

import os
import sys

from idpsync.config import settings
from idpsync.db.session import close_db, init_db, session_factory
from idpsync.logging_config import configure_logging, get_logger
from idpsync.provider.exceptions import ProviderConfigurationError
from idpsync.services.bootstrap import run_bootstrap
from idpsync.snapshot import ConfigSnapshot

logger = get_logger("idpsync.bootstrap")


def main() -> None:
    configure_logging(json_logs=settings.json_logs, log_level=settings.log_level)

    try:
        snapshot = ConfigSnapshot.from_settings(settings, os.environ)
        init_db()
        providers = run_bootstrap(session_factory, snapshot)
    except ProviderConfigurationError as e:
        logger.error("Identity provider configuration is invalid", error=str(e))
        sys.exit(1)
    finally:
        close_db()

    for provider in providers:
        logger.info(
            "Identity provider",
            identifier=provider.identifier,
            kind=provider.kind.value,
            active=provider.active,
            version=provider.version,
        )
    logger.info("Bootstrap complete", count=len(providers))


if __name__ == "__main__":
    main()
