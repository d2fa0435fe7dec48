import random
from datetime import time
from decimal import Decimal

from django.contrib.auth.models import User
from django.core.management.base import BaseCommand

from careconnect.models import CaregiverAvailability, CaregiverProfile, ClientProfile, Specialty

SPECIALTIES = [
    ('elderly_care', 'Elderly care'),
    ('child_care', 'Child care'),
    ('disability_support', 'Disability support'),
    ('post_surgery', 'Post-surgery recovery'),
    ('dementia_care', 'Dementia care'),
]


class Command(BaseCommand):
    help = 'Generate demo clients, caregivers, specialties and weekly availability.'

    def add_arguments(self, parser):
        parser.add_argument('--clients', type=int, default=3)
        parser.add_argument('--caregivers', type=int, default=3)

    def handle(self, *args, **options):
        for code, name in SPECIALTIES:
            Specialty.objects.get_or_create(code=code, defaults={'name': name, 'description': name})
        specialties = list(Specialty.objects.all())

        for idx in range(1, options['clients'] + 1):
            client_user, _ = User.objects.get_or_create(
                username=f'client{idx}', defaults={'first_name': 'Client', 'last_name': str(idx)}
            )
            client_user.set_password('password')
            client_user.save()
            ClientProfile.objects.get_or_create(
                user=client_user,
                defaults={'phone_number': f'+55119900000{idx:02d}', 'address': f'Rua Exemplo {idx}, São Paulo'},
            )

        for idx in range(1, options['caregivers'] + 1):
            caregiver_user, _ = User.objects.get_or_create(
                username=f'caregiver{idx}', defaults={'first_name': 'Caregiver', 'last_name': str(idx)}
            )
            caregiver_user.set_password('password')
            caregiver_user.save()
            caregiver, _ = CaregiverProfile.objects.get_or_create(
                user=caregiver_user,
                defaults={
                    'phone_number': f'+55119800000{idx:02d}',
                    'address': f'Avenida Cuidado {idx}, São Paulo',
                    'bio': 'Experienced and attentive caregiver',
                    'hourly_rate': Decimal(random.choice(['35.00', '45.00', '60.00'])),
                    'verified': True,
                },
            )
            caregiver.specialties.set(random.sample(specialties, k=2))
            for weekday in range(0, 5):
                CaregiverAvailability.objects.get_or_create(
                    caregiver=caregiver,
                    weekday=weekday,
                    defaults={'start_time': time(8), 'end_time': time(18)},
                )

        self.stdout.write(self.style.SUCCESS('Demo data generated.'))
