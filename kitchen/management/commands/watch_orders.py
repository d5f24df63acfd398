import logging

from django.core.management.base import BaseCommand

from kitchen.context import kitchen_context

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Long-poll the order change queue and keep the order list in sync."

    def add_arguments(self, parser):
        parser.add_argument("--wait", type=int, default=20, help="Long-poll wait in seconds (max 20).")
        parser.add_argument("--once", action="store_true", help="Poll a single batch and exit.")

    def handle(self, *args, **opts):
        ctx = kitchen_context()
        feed = ctx.change_feed()
        wait = max(0, min(opts["wait"], 20))

        def show(orders):
            self.stdout.write(f"{len(orders)} orders in sync")

        unsubscribe = ctx.orders.subscribe(show)
        ctx.orders.fetch_all()
        self.stdout.write(self.style.SUCCESS(f"Watching {feed.queue_url}"))
        try:
            while True:
                feed.poll(wait_seconds=wait)
                if opts["once"]:
                    break
        except KeyboardInterrupt:
            self.stdout.write("Stopped.")
        finally:
            unsubscribe()
