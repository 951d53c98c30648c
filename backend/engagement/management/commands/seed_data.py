"""
Management command to seed the database with sample data.

Usage: python manage.py seed_data

Everything goes through the service layer, so seeded likes, comments and
follows produce notifications exactly like real traffic (and retention
trims the inboxes as it would in production).
"""

import random
from datetime import timedelta
from django.core.management.base import BaseCommand
from django.contrib.auth.models import User
from django.utils import timezone
from django.utils.text import slugify

from engagement.models import Article, Comment, Follow, Like, Notification, ViewReceipt
from engagement.services import like_article, add_comment
from engagement.follows import toggle_follow, check_follow


class Command(BaseCommand):
    help = 'Seed the database with sample data for testing'

    def add_arguments(self, parser):
        parser.add_argument(
            '--users',
            type=int,
            default=10,
            help='Number of users to create'
        )
        parser.add_argument(
            '--articles',
            type=int,
            default=20,
            help='Number of articles to create'
        )
        parser.add_argument(
            '--comments',
            type=int,
            default=60,
            help='Number of comments to create'
        )
        parser.add_argument(
            '--clear',
            action='store_true',
            help='Clear existing data before seeding'
        )

    def handle(self, *args, **options):
        if options['clear']:
            self.stdout.write('Clearing existing data...')
            Notification.objects.all().delete()
            ViewReceipt.objects.all().delete()
            Follow.objects.all().delete()
            Like.objects.all().delete()
            Comment.objects.all().delete()
            Article.objects.all().delete()
            User.objects.filter(is_superuser=False).delete()

        self.stdout.write('Creating users...')
        users = self._create_users(options['users'])

        self.stdout.write('Creating articles...')
        articles = self._create_articles(users, options['articles'])

        self.stdout.write('Creating comments...')
        comments = self._create_comments(users, articles, options['comments'])

        self.stdout.write('Creating likes...')
        likes = self._create_likes(users, articles)

        self.stdout.write('Creating follows...')
        follows = self._create_follows(users)

        self.stdout.write(self.style.SUCCESS(
            f'Successfully created:\n'
            f'  - {len(users)} users\n'
            f'  - {len(articles)} articles\n'
            f'  - {len(comments)} comments\n'
            f'  - {likes} likes\n'
            f'  - {follows} follows (plus their notifications)'
        ))

    def _create_users(self, count):
        users = []
        for i in range(count):
            username = f'writer{i+1}'
            user, created = User.objects.get_or_create(
                username=username,
                defaults={
                    'email': f'{username}@example.com',
                    'first_name': 'Writer',
                    'last_name': str(i + 1),
                }
            )
            if created:
                user.set_password('password123')
                user.save(update_fields=['password'])
            users.append(user)
        return users

    def _create_articles(self, users, count):
        articles = []
        titles = [
            "Senja di pelabuhan",
            "A letter to my younger self",
            "Notes on slow reading",
            "The last train home",
            "Why I keep a paper journal",
            "Rain over the rice fields",
            "Small rituals",
            "On rewriting",
        ]

        for i in range(count):
            title = f"{random.choice(titles)} #{i+1}"
            article = Article.objects.create(
                author=random.choice(users),
                title=title,
                slug=f"{slugify(title)}-{timezone.now().strftime('%Y%m%d%H%M%S%f')}",
                published=random.random() < 0.9,
                views=random.randint(0, 500),
                created_at=timezone.now() - timedelta(hours=random.randint(0, 240))
            )
            articles.append(article)
        return articles

    def _create_comments(self, users, articles, count):
        comments = []
        comment_texts = [
            "Beautifully written.",
            "This reminded me of my grandmother's stories.",
            "Thanks for sharing!",
            "Can you write a follow-up?",
            "The ending hit hard.",
            "I read this twice.",
        ]

        for _ in range(count):
            article = random.choice(articles)

            # 30% chance of being a reply to an existing comment
            parent_id = None
            existing = [c for c in comments if c.article_id == article.id]
            if existing and random.random() < 0.3:
                parent_id = random.choice(existing).id

            comment = add_comment(
                random.choice(users),
                article.id,
                random.choice(comment_texts),
                parent_id=parent_id
            )
            comments.append(comment)

        return comments

    def _create_likes(self, users, articles):
        created = 0
        for article in articles:
            likers = random.sample(users, k=len(users) // 2)
            for liker in likers:
                if liker.id == article.author_id:
                    continue
                if like_article(liker, article.id).action == 'created':
                    created += 1
        return created

    def _create_follows(self, users):
        created = 0
        for user in users:
            others = [u for u in users if u.id != user.id]
            for target in random.sample(others, k=min(3, len(others))):
                # toggle would unfollow an existing edge on a re-seed
                if check_follow(user.id, target.id):
                    continue
                toggle_follow(user.id, target.id)
                created += 1
        return created
