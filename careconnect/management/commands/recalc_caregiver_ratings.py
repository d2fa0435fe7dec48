import uuid

from django.core.management.base import BaseCommand, CommandError

from careconnect.models import CaregiverProfile


class Command(BaseCommand):
    help = 'Rebuild caregiver rating average, count and star histogram from stored ratings.'

    def add_arguments(self, parser):
        parser.add_argument('--caregiver', help='Only rebuild this caregiver (profile id or username).')

    def handle(self, *args, **options):
        caregivers = CaregiverProfile.objects.select_related('user')
        target = options.get('caregiver')
        if target:
            try:
                lookup = {'pk': uuid.UUID(target)}
            except ValueError:
                lookup = {'user__username': target}
            caregivers = caregivers.filter(**lookup)
            if not caregivers:
                raise CommandError(f'No caregiver matches {target!r}')

        for caregiver in caregivers:
            caregiver.recalc_ratings()
            stars = ' '.join(f'{value}*:{count}' for value, count in sorted(caregiver.rating_histogram.items()))
            self.stdout.write(
                f'{caregiver.user.username}: {caregiver.rating_average} from {caregiver.rating_count} ratings ({stars})'
            )
        self.stdout.write(self.style.SUCCESS(f'Rebuilt ratings for {len(caregivers)} caregivers.'))
