from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone

from triage.exceptions import InvariantViolation
from triage.models import Hospital
from triage.services.queue_cache import get_queue_cache
from triage.services.queue_store import check_invariants


class Command(BaseCommand):
    help = "Verify every hospital queue is densely positioned and severity ordered; optionally drop cached queues."

    def add_arguments(self, parser):
        parser.add_argument('--hospital', action='append', dest='hospitals', help='Only check these hospital ids')
        parser.add_argument('--invalidate-cache', action='store_true', help='Invalidate cached queues of checked hospitals')

    def handle(self, *args, **options):
        now = timezone.now()
        hospital_ids = options.get('hospitals') or list(Hospital.objects.order_by('id').values_list('id', flat=True))
        broken = []
        for hid in hospital_ids:
            try:
                n = check_invariants(hid)
            except InvariantViolation as exc:
                broken.append(hid)
                self.stderr.write(self.style.ERROR(f"{hid}: {exc.detail}"))
                continue
            self.stdout.write(f"{hid}: {n} queued")
            if options.get('invalidate_cache'):
                get_queue_cache().invalidate(hid)

        if broken:
            raise CommandError(f"{len(broken)} queue(s) violate ordering invariants: {', '.join(broken)}")
        self.stdout.write(self.style.SUCCESS(f"Checked {len(hospital_ids)} queue(s) at {now}"))
