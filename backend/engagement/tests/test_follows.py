"""
Tests for the follow graph

Focus areas:
1. Toggle semantics (twice is a round trip, duplicates are no-ops)
2. Self-follow rejected before any write
3. Counts, lists and recommendations
"""

from datetime import timedelta

from django.contrib.auth.models import User
from django.db import IntegrityError, transaction
from django.test import TestCase
from django.utils import timezone

from engagement.exceptions import SelfFollowError, UserNotFound
from engagement.follows import (
    batch_check_follow,
    check_follow,
    get_follow_counts,
    list_followers,
    list_following,
    recommend,
    toggle_follow,
)
from engagement.models import Article, Follow, Notification


class ToggleFollowTestCase(TestCase):

    def setUp(self):
        self.alice = User.objects.create_user('alice', 'alice@test.com', 'pass')
        self.bob = User.objects.create_user('bob', 'bob@test.com', 'pass')

    def test_follow_creates_edge(self):
        result = toggle_follow(self.alice.id, self.bob.id)

        self.assertTrue(result.success)
        self.assertTrue(result.is_following)
        self.assertTrue(check_follow(self.alice.id, self.bob.id))
        self.assertFalse(check_follow(self.bob.id, self.alice.id))

    def test_toggle_twice_is_round_trip(self):
        toggle_follow(self.alice.id, self.bob.id)
        result = toggle_follow(self.alice.id, self.bob.id)

        self.assertFalse(result.is_following)
        self.assertFalse(Follow.objects.exists())
        self.assertEqual(get_follow_counts(self.bob.id)['followers_count'], 0)

    def test_self_follow_rejected_without_writes(self):
        with self.assertRaises(SelfFollowError):
            toggle_follow(self.alice.id, self.alice.id)

        self.assertEqual(Follow.objects.count(), 0)
        self.assertEqual(Notification.objects.count(), 0)

    def test_self_follow_blocked_by_constraint(self):
        """The CHECK constraint backs up the service-level rejection."""
        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                Follow.objects.create(follower=self.alice, following=self.alice)

    def test_duplicate_edge_blocked_by_constraint(self):
        Follow.objects.create(follower=self.alice, following=self.bob)
        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                Follow.objects.create(follower=self.alice, following=self.bob)

    def test_unknown_target(self):
        with self.assertRaises(UserNotFound):
            toggle_follow(self.alice.id, 999999)

    def test_inactive_target(self):
        self.bob.is_active = False
        self.bob.save()
        with self.assertRaises(UserNotFound):
            toggle_follow(self.alice.id, self.bob.id)

    def test_follow_notifies_target(self):
        toggle_follow(self.alice.id, self.bob.id)

        notification = Notification.objects.get()
        self.assertEqual(notification.type, Notification.Type.FOLLOW)
        self.assertEqual(notification.actor_id, self.alice.id)
        self.assertEqual(notification.target_id, self.bob.id)
        self.assertIsNone(notification.article_id)
        self.assertFalse(notification.read)

    def test_unfollow_does_not_notify(self):
        toggle_follow(self.alice.id, self.bob.id)
        toggle_follow(self.alice.id, self.bob.id)

        self.assertEqual(Notification.objects.count(), 1)

    def test_batch_check(self):
        carol = User.objects.create_user('carol', 'carol@test.com', 'pass')
        toggle_follow(self.alice.id, carol.id)

        status = batch_check_follow(self.alice.id, [self.bob.id, carol.id])
        self.assertEqual(status, {self.bob.id: False, carol.id: True})


class FollowListsTestCase(TestCase):

    def setUp(self):
        self.star = User.objects.create_user('star', 's@test.com', 'pass', first_name='Sam', last_name='Star')
        self.fans = [
            User.objects.create_user(f'fan{i}', f'f{i}@test.com', 'pass')
            for i in range(3)
        ]
        base = timezone.now() - timedelta(hours=1)
        for i, fan in enumerate(self.fans):
            Follow.objects.create(follower=fan, following=self.star, created_at=base + timedelta(minutes=i))

    def test_counts(self):
        self.assertEqual(
            get_follow_counts(self.star.id),
            {'followers_count': 3, 'following_count': 0}
        )
        self.assertEqual(
            get_follow_counts(self.fans[0].id),
            {'followers_count': 0, 'following_count': 1}
        )

    def test_followers_newest_first(self):
        followers = list_followers(self.star.id)
        self.assertEqual([f['username'] for f in followers], ['fan2', 'fan1', 'fan0'])

    def test_followers_limit(self):
        self.assertEqual(len(list_followers(self.star.id, limit=2)), 2)

    def test_following_uses_display_name(self):
        following = list_following(self.fans[0].id)
        self.assertEqual(len(following), 1)
        self.assertEqual(following[0]['id'], self.star.id)
        self.assertEqual(following[0]['display_name'], 'Sam Star')


class RecommendTestCase(TestCase):

    def setUp(self):
        self.viewer = User.objects.create_user('viewer', 'v@test.com', 'pass')
        self.popular = User.objects.create_user('popular', 'p@test.com', 'pass')
        self.prolific = User.objects.create_user('prolific', 'pr@test.com', 'pass')
        self.quiet = User.objects.create_user('quiet', 'q@test.com', 'pass')
        self.followed = User.objects.create_user('followed', 'fo@test.com', 'pass')

        extra = User.objects.create_user('extra', 'e@test.com', 'pass')
        Follow.objects.create(follower=extra, following=self.popular)
        Follow.objects.create(follower=self.quiet, following=self.popular)
        Follow.objects.create(follower=self.viewer, following=self.followed)

        for i in range(2):
            Article.objects.create(author=self.prolific, title=f'P{i}', slug=f'p-{i}')
        # Drafts do not count
        Article.objects.create(author=self.quiet, title='Draft', slug='draft', published=False)

    def test_excludes_self_and_followed(self):
        ids = {user['id'] for user in recommend(self.viewer.id, limit=10)}

        self.assertNotIn(self.viewer.id, ids)
        self.assertNotIn(self.followed.id, ids)

    def test_ranking(self):
        ranked = recommend(self.viewer.id, limit=3)

        self.assertEqual(ranked[0]['username'], 'popular')
        self.assertEqual(ranked[0]['followers_count'], 2)
        self.assertEqual(ranked[1]['username'], 'prolific')
        self.assertEqual(ranked[1]['articles_count'], 2)

    def test_ties_broken_by_newest_account(self):
        User.objects.filter(id=self.quiet.id).update(date_joined=timezone.now() + timedelta(days=1))
        ranked = recommend(self.viewer.id, limit=10)
        zero_zero = [u['username'] for u in ranked if u['followers_count'] == 0 and u['articles_count'] == 0]

        self.assertEqual(zero_zero[0], 'quiet')

    def test_inactive_users_excluded(self):
        self.popular.is_active = False
        self.popular.save()
        ids = {user['id'] for user in recommend(self.viewer.id, limit=10)}
        self.assertNotIn(self.popular.id, ids)
