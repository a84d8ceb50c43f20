import os
import secrets

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand, CommandError


class Command(BaseCommand):
    help = "Create (or update) the back-office superuser used by rental staff."

    def add_arguments(self, parser):
        parser.add_argument(
            "--username",
            default=os.getenv("ADMIN_USERNAME", "admin"),
            help="Username for the admin account.",
        )
        parser.add_argument(
            "--email",
            default=os.getenv("ADMIN_EMAIL", ""),
            help="Email for the account (optional).",
        )
        parser.add_argument(
            "--password",
            default=os.getenv("ADMIN_PASSWORD"),
            help="Password for the account. If omitted, a random password is generated.",
        )

    def handle(self, *args, **options):
        username = (options["username"] or "").strip()
        if not username:
            raise CommandError("A username is required.")

        User = get_user_model()
        password = options["password"] or secrets.token_urlsafe(12)
        user, created = User.objects.get_or_create(username=username)
        user.email = options["email"] or user.email
        user.is_staff = True
        user.is_superuser = True
        user.set_password(password)
        user.save()

        verb = "Created" if created else "Updated"
        self.stdout.write(self.style.SUCCESS(f"{verb} admin user '{username}'"))
        if not options["password"]:
            self.stdout.write(f"Generated password: {password}")
