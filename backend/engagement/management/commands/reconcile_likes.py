"""
Management command to reconcile likes_count for many articles at once.

Usage: python manage.py reconcile_likes [--article ID]

The stats read path already heals an article when it is viewed; this is
for articles nobody is looking at (list pages, dashboards summing the
denormalized field).
"""

from django.core.management.base import BaseCommand, CommandError

from engagement.counters import sync_likes_count
from engagement.models import Article


class Command(BaseCommand):
    help = 'Recompute Article.likes_count from the Like table'

    def add_arguments(self, parser):
        parser.add_argument(
            '--article',
            type=int,
            help='Only reconcile this article id'
        )

    def handle(self, *args, **options):
        articles = Article.objects.order_by('id')
        if options['article'] is not None:
            articles = articles.filter(id=options['article'])
            if not articles.exists():
                raise CommandError(f"Article {options['article']} does not exist")

        drifted = 0
        checked = 0
        for article_id, stored in articles.values_list('id', 'likes_count').iterator():
            fresh = sync_likes_count(article_id)
            checked += 1
            if fresh != stored:
                drifted += 1
                self.stdout.write(f'  article {article_id}: {stored} -> {fresh}')

        self.stdout.write(self.style.SUCCESS(
            f'Checked {checked} article(s), corrected {drifted}'
        ))
