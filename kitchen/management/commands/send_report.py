import json

from django.core.management.base import BaseCommand, CommandError

from aws_lib.exceptions import AWSError
from kitchen.context import kitchen_context
from kitchen.exceptions import KitchenError


class Command(BaseCommand):
    help = "Run the daily or weekly report job and email every active recipient."

    def add_arguments(self, parser):
        parser.add_argument("report", choices=["daily", "weekly"])
        parser.add_argument("--manual", action="store_true", help="Mark the run as manual instead of scheduled.")

    def handle(self, *args, **opts):
        try:
            result = kitchen_context().report_job(opts["report"]).run(
                scheduled=not opts["manual"], manual=opts["manual"]
            )
        except (KitchenError, AWSError) as e:
            raise CommandError(f"{opts['report'].capitalize()} report failed: {e}")

        if result.data is None:
            self.stdout.write(self.style.WARNING(result.message))
            return

        self.stdout.write(json.dumps(result.data, indent=2, default=str))
        style = self.style.SUCCESS if not result.failed else self.style.WARNING
        self.stdout.write(style(f"{result.message}: {result.successful} sent, {result.failed} failed"))
        for email, error in result.errors.items():
            self.stdout.write(self.style.ERROR(f"  {email}: {error}"))
