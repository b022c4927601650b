"""Print the labelled sentiment chart for a period.

The command drives ``DashboardClient`` against a running API, exactly as
the dashboard does: it logs in, reads the sentiment table (served from
the local cache while it is fresh) and asks the topic labeler for one
label per sentiment.  Categories without responses, samples or a label
are left out of the report.

Usage::

    python manage.py sentiment_report --year 2024 --quarter 2 --username admin
"""

from __future__ import annotations

import getpass
import json

import requests
from django.core.management.base import BaseCommand, CommandError

from core.services.dashboard_client import DashboardClient


class Command(BaseCommand):
    help = "Fetch the sentiment table from the API and print the labelled chart."

    def add_arguments(self, parser) -> None:
        parser.add_argument('--year', type=int, default=None)
        parser.add_argument('--quarter', type=int, choices=[1, 2, 3, 4], default=None)
        parser.add_argument('--host', default=None, help='API base URL (defaults to DASHBOARD_API_HOST)')
        parser.add_argument('--username', required=True)
        parser.add_argument('--password', default=None, help='Prompted for when omitted')
        parser.add_argument('--json', action='store_true', help='Print the slices as JSON')

    def handle(self, *args, **options) -> None:
        client = DashboardClient(options['host'])
        password = options['password'] or getpass.getpass('Password: ')
        try:
            client.login(options['username'], password)
        except requests.RequestException as exc:
            raise CommandError(f'Login failed: {exc}') from exc

        chart = client.sentiment_chart(options['year'], options['quarter'])
        if not chart.ok:
            raise CommandError(f'Unable to load the sentiment table: {chart.error}')

        if options['json']:
            self.stdout.write(json.dumps([item.as_dict() for item in chart.slices], indent=2))
            return
        if not chart.slices:
            self.stdout.write(self.style.WARNING('No labelled sentiment for this period.'))
            return
        for item in chart.slices:
            self.stdout.write(f"{item.name}: {item.value}")
