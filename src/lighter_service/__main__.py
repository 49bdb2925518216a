"""Allow running the service as: python -m lighter_service [--config path]."""

from lighter_service.service.runner import cli

cli()
