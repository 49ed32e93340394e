"""
Tests for the ensure_superuser provisioning command.
"""
from io import StringIO

import pytest
from django.core.management import call_command
from django.core.management.base import CommandError

from apps.authz.models import User


@pytest.fixture(autouse=True)
def no_superuser_env(monkeypatch):
    monkeypatch.delenv('DJANGO_SUPERUSER_EMAIL', raising=False)
    monkeypatch.delenv('DJANGO_SUPERUSER_PASSWORD', raising=False)


def run(*args):
    out = StringIO()
    call_command('ensure_superuser', *args, stdout=out)
    return out.getvalue()


@pytest.mark.django_db
class TestEnsureSuperuser:

    def test_creates_superuser(self):
        output = run('--email', 'Admin@Example.com', '--password', 's3cret-pass')

        user = User.objects.get(email__iexact='admin@example.com')
        assert user.is_superuser and user.is_staff and user.is_active
        assert user.check_password('s3cret-pass')
        assert 'created' in output

    def test_idempotent(self):
        run('--email', 'admin@example.com', '--password', 's3cret-pass')

        output = run('--email', 'admin@example.com', '--password', 'other-pass')

        assert User.objects.filter(email__iexact='admin@example.com').count() == 1
        assert User.objects.get(email='admin@example.com').check_password('s3cret-pass')
        assert 'already exists' in output

    def test_reset_password(self):
        run('--email', 'admin@example.com', '--password', 's3cret-pass')

        output = run('--email', 'admin@example.com', '--password', 'new-pass', '--reset-password')

        assert User.objects.get(email='admin@example.com').check_password('new-pass')
        assert 'password' in output

    def test_promotes_existing_owner(self, owner):
        run('--email', owner.email, '--password', 'ignored')

        owner.refresh_from_db()
        assert owner.is_superuser and owner.is_staff
        assert owner.check_password('testpass123')

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv('DJANGO_SUPERUSER_EMAIL', 'env@example.com')
        monkeypatch.setenv('DJANGO_SUPERUSER_PASSWORD', 'env-pass')

        run()

        assert User.objects.get(email='env@example.com').is_superuser

    def test_missing_arguments(self):
        with pytest.raises(CommandError):
            run('--email', 'admin@example.com')
