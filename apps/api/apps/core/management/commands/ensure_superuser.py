"""
Idempotent admin provisioning.

Run explicitly (deploy step, container entrypoint); nothing creates
accounts implicitly at process startup.
"""
import os

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand, CommandError


class Command(BaseCommand):
    help = 'Create the admin owner account if it does not exist'

    def add_arguments(self, parser):
        parser.add_argument(
            '--email',
            default=os.environ.get('DJANGO_SUPERUSER_EMAIL'),
            help='Admin email (default: $DJANGO_SUPERUSER_EMAIL)',
        )
        parser.add_argument(
            '--password',
            default=os.environ.get('DJANGO_SUPERUSER_PASSWORD'),
            help='Admin password (default: $DJANGO_SUPERUSER_PASSWORD)',
        )
        parser.add_argument(
            '--reset-password',
            action='store_true',
            help='Overwrite the password of an existing account',
        )

    def handle(self, *args, **options):
        User = get_user_model()
        email = options['email']
        password = options['password']

        if not email or not password:
            raise CommandError(
                'Both --email and --password are required '
                '(or DJANGO_SUPERUSER_EMAIL / DJANGO_SUPERUSER_PASSWORD)'
            )

        email = User.objects.normalize_email(email)
        user = User.objects.filter(email__iexact=email).first()

        if user is None:
            User.objects.create_superuser(email=email, password=password)
            self.stdout.write(self.style.SUCCESS(f'Superuser "{email}" created'))
            return

        changed = []
        if not (user.is_staff and user.is_superuser and user.is_active):
            user.is_staff = user.is_superuser = user.is_active = True
            changed += ['is_staff', 'is_superuser', 'is_active']
        if options['reset_password']:
            user.set_password(password)
            changed.append('password')

        if changed:
            user.save(update_fields=changed + ['updated_at'])
            self.stdout.write(self.style.SUCCESS(f'Superuser "{email}" updated: {", ".join(changed)}'))
        else:
            self.stdout.write(self.style.WARNING(f'Superuser "{email}" already exists'))
