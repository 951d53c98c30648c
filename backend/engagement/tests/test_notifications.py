"""
Tests for notification fan-out

Focus areas:
1. One row per follow/like/comment, addressed to the right user
2. Retention keeps exactly the newest N per recipient
3. Read state is scoped to the recipient
4. Rows are published to the broker only after commit
"""

from datetime import timedelta
from unittest.mock import patch

from django.contrib.auth.models import User
from django.db import connection
from django.test import TestCase, override_settings
from django.test.utils import CaptureQueriesContext
from django.utils import timezone

from engagement.follows import toggle_follow
from engagement.models import Article, Notification
from engagement.notifications import (
    create_notification,
    list_notifications,
    mark_all_read,
    mark_read,
    prune_notifications,
    serialize_raw,
    unread_count,
)
from engagement.queries import get_enriched_notifications
from engagement.services import add_comment, like_article, toggle_like


class FanOutTestCase(TestCase):

    def setUp(self):
        self.author = User.objects.create_user('author', 'a@test.com', 'pass', first_name='Ada')
        self.reader = User.objects.create_user('reader', 'r@test.com', 'pass')
        self.article = Article.objects.create(author=self.author, title='Essay', slug='essay')

    def test_like_notifies_article_author(self):
        like_article(self.reader, self.article.id)

        notification = Notification.objects.get()
        self.assertEqual(notification.type, Notification.Type.LIKE)
        self.assertEqual(notification.actor_id, self.reader.id)
        self.assertEqual(notification.target_id, self.author.id)
        self.assertEqual(notification.article_id, self.article.id)

    def test_comment_notifies_article_author(self):
        add_comment(self.reader, self.article.id, 'Great read')

        notification = Notification.objects.get()
        self.assertEqual(notification.type, Notification.Type.COMMENT)
        self.assertEqual(notification.target_id, self.author.id)

    def test_duplicate_like_notifies_once(self):
        like_article(self.reader, self.article.id)
        result = like_article(self.reader, self.article.id)

        self.assertTrue(result.success)
        self.assertEqual(result.action, 'already_exists')
        self.assertEqual(Notification.objects.count(), 1)

    def test_unlike_does_not_notify(self):
        toggle_like(self.reader, self.article.id)
        toggle_like(self.reader, self.article.id)

        self.assertEqual(Notification.objects.count(), 1)

    def test_acting_on_own_content_notifies_nobody(self):
        like_article(self.author, self.article.id)
        add_comment(self.author, self.article.id, 'Author reply')

        self.assertEqual(Notification.objects.count(), 0)
        self.assertIsNone(create_notification('like', self.author.id, self.author.id))

    def test_one_row_per_event(self):
        """Three actions from three users produce three rows, no aggregation."""
        others = [User.objects.create_user(f'u{i}', f'u{i}@test.com', 'pass') for i in range(3)]
        for user in others:
            like_article(user, self.article.id)

        self.assertEqual(Notification.objects.filter(target=self.author).count(), 3)
        self.assertEqual(Notification.objects.filter(target=self.reader).count(), 0)

    def test_enriched_rows(self):
        toggle_follow(self.reader.id, self.author.id)
        like_article(self.reader, self.article.id)

        items = get_enriched_notifications(self.author.id)

        self.assertEqual([item['type'] for item in items], ['like', 'follow'])
        self.assertEqual(items[0]['actor']['username'], 'reader')
        self.assertEqual(items[0]['article'], {'id': self.article.id, 'title': 'Essay', 'slug': 'essay'})
        self.assertIsNone(items[1]['article'])

    def test_list_uses_page_size(self):
        for i in range(3):
            user = User.objects.create_user(f'liker{i}', f'liker{i}@test.com', 'pass')
            like_article(user, self.article.id)

        self.assertEqual(len(list_notifications(self.author.id, limit=2)), 2)
        self.assertEqual(len(list_notifications(self.author.id)), 3)

    def test_enriched_rows_single_query(self):
        for i in range(5):
            user = User.objects.create_user(f'fan{i}', f'fan{i}@test.com', 'pass')
            like_article(user, self.article.id)

        with CaptureQueriesContext(connection) as context:
            items = get_enriched_notifications(self.author.id)

        self.assertEqual(len(items), 5)
        self.assertEqual(len(context), 1)


class RetentionTestCase(TestCase):

    def setUp(self):
        self.actor = User.objects.create_user('actor', 'a@test.com', 'pass')
        self.target = User.objects.create_user('target', 't@test.com', 'pass')
        base = timezone.now() - timedelta(hours=1)
        self.old = [
            Notification.objects.create(
                type=Notification.Type.FOLLOW,
                actor=self.actor,
                target=self.target,
                created_at=base + timedelta(minutes=i)
            )
            for i in range(25)
        ]

    def test_ceiling_keeps_most_recent(self):
        """25 existing + 1 new leaves the 20 most recent."""
        newest = create_notification(Notification.Type.FOLLOW, self.actor.id, self.target.id)

        kept = list(
            Notification.objects
            .filter(target=self.target)
            .order_by('-created_at', '-id')
            .values_list('id', flat=True)
        )
        self.assertEqual(len(kept), 20)
        self.assertEqual(kept[0], newest.id)
        self.assertEqual(kept[1:], [n.id for n in reversed(self.old[6:])])

    def test_prune_returns_deleted_count(self):
        self.assertEqual(prune_notifications(self.target.id, ceiling=20), 5)
        self.assertEqual(prune_notifications(self.target.id, ceiling=20), 0)

    def test_ties_on_timestamp_broken_by_id(self):
        Notification.objects.filter(target=self.target).update(created_at=timezone.now())
        prune_notifications(self.target.id, ceiling=10)

        remaining = set(Notification.objects.filter(target=self.target).values_list('id', flat=True))
        self.assertEqual(remaining, {n.id for n in self.old[15:]})

    def test_other_recipients_untouched(self):
        other = User.objects.create_user('other', 'o@test.com', 'pass')
        create_notification(Notification.Type.FOLLOW, self.actor.id, other.id)
        prune_notifications(self.target.id, ceiling=1)

        self.assertEqual(Notification.objects.filter(target=other).count(), 1)

    @override_settings(ENGAGEMENT={
        'NOTIFICATION_RETENTION': 5,
        'NOTIFICATION_PAGE_SIZE': 20,
        'STREAM_KEEPALIVE_SECONDS': 15,
        'STREAM_QUEUE_SIZE': 200,
        'STREAM_BACKFILL_LIMIT': 200,
    })
    def test_ceiling_from_settings(self):
        create_notification(Notification.Type.FOLLOW, self.actor.id, self.target.id)
        self.assertEqual(Notification.objects.filter(target=self.target).count(), 5)

    def test_invalid_ceiling(self):
        with self.assertRaises(ValueError):
            prune_notifications(self.target.id, ceiling=0)


class ReadStateTestCase(TestCase):

    def setUp(self):
        self.actor = User.objects.create_user('actor', 'a@test.com', 'pass')
        self.target = User.objects.create_user('target', 't@test.com', 'pass')
        self.rows = [
            create_notification(Notification.Type.FOLLOW, self.actor.id, self.target.id)
            for _ in range(3)
        ]

    def test_new_rows_unread(self):
        self.assertEqual(unread_count(self.target.id), 3)

    def test_mark_read(self):
        self.assertTrue(mark_read(self.target.id, self.rows[0].id))
        self.assertEqual(unread_count(self.target.id), 2)
        # Idempotent
        self.assertTrue(mark_read(self.target.id, self.rows[0].id))
        self.assertEqual(unread_count(self.target.id), 2)

    def test_cannot_mark_someone_elses(self):
        self.assertFalse(mark_read(self.actor.id, self.rows[0].id))
        self.assertEqual(unread_count(self.target.id), 3)

    def test_mark_all_read_single_update(self):
        with CaptureQueriesContext(connection) as context:
            updated = mark_all_read(self.target.id)

        self.assertEqual(updated, 3)
        self.assertEqual(len(context), 1)
        self.assertEqual(unread_count(self.target.id), 0)
        self.assertEqual(mark_all_read(self.target.id), 0)


class PublishOnCommitTestCase(TestCase):

    def setUp(self):
        self.alice = User.objects.create_user('alice', 'alice@test.com', 'pass')
        self.bob = User.objects.create_user('bob', 'bob@test.com', 'pass')

    def test_published_after_commit(self):
        with patch('engagement.notifications.broker') as broker:
            with self.captureOnCommitCallbacks(execute=False) as callbacks:
                toggle_follow(self.alice.id, self.bob.id)
            broker.publish.assert_not_called()

            for callback in callbacks:
                callback()

        notification = Notification.objects.get()
        broker.publish.assert_called_once_with(self.bob.id, serialize_raw(notification))

    def test_raw_payload_shape(self):
        toggle_follow(self.alice.id, self.bob.id)
        payload = serialize_raw(Notification.objects.get())

        self.assertEqual(payload['type'], 'follow')
        self.assertEqual(payload['actor_id'], self.alice.id)
        self.assertEqual(payload['target_id'], self.bob.id)
        self.assertIsNone(payload['article_id'])
        self.assertFalse(payload['read'])
