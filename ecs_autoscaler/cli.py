"""
Command line entry point for ecs-autoscaler.

Takes the 16 positional values the GitHub Action passes (see action.yml),
runs one reconciliation and exits 0 when the service has converged.
"""
import sys
import logging
from typing import Optional

import click

from ecs_autoscaler import __version__
from ecs_autoscaler.backends import create_backends
from ecs_autoscaler.config import ARGUMENT_NAMES, LoggingConfig, Settings, configure_logging
from ecs_autoscaler.exceptions import AutoscalerError
from ecs_autoscaler.reconciler import Reconciler

logger = logging.getLogger("ecs_autoscaler.cli")


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(version=__version__, prog_name="ecs-autoscaler")
@click.option("--log-level", envvar="ECS_AUTOSCALER_LOG_LEVEL", default="INFO", show_default=True,
              type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
              help="Log level")
@click.option("--log-format", envvar="ECS_AUTOSCALER_LOG_FORMAT", default="text", show_default=True,
              type=click.Choice(["text", "json"], case_sensitive=False),
              help="Log line format on stderr")
@click.argument("values", nargs=len(ARGUMENT_NAMES))
def cli(log_level: str, log_format: str, values: tuple):
    """
    Reconcile ECS service auto-scaling with the desired configuration.

    \b
    VALUES, in order:
      aws-access-key-id aws-secret-access-key aws-region cluster-name
      service-name enabled min-capacity max-capacity scale-out-cooldown
      scale-in-cooldown target-cpu-utilization-out target-cpu-utilization-in
      target-memory-utilization-out target-memory-utilization-in
      default-policies scaling-policies

    Pass an empty string for any value to use its default.
    """
    run_logger = configure_logging(LoggingConfig(log_level=log_level.upper(), log_format=log_format.lower()))
    sys.exit(run(values, run_logger))


def run(values: tuple, run_logger: Optional[logging.Logger] = None) -> int:
    """Run one reconciliation, returns the process exit code"""
    try:
        settings = Settings.from_args(values)
        scaling, alarms = create_backends(settings)
        report = Reconciler(scaling, alarms, settings, logger=run_logger).run()
    except AutoscalerError as e:
        logger.error(f"auto-scaling run failed: {e}", extra={"context": e.to_dict()})
        return 1

    logger.info(f"run finished resource={report.resource_id} enabled={report.enabled} {report.summary()}")
    return 0


# Entry point
def main():
    """Main CLI entry point"""
    cli()


if __name__ == '__main__':
    main()
