"""
Tests for the live notification stream: SSE framing, the in-process
broker, and the async stream view (auth, resume, live delivery).
"""

import asyncio
import json
import threading
from unittest import IsolatedAsyncioTestCase
from unittest.mock import patch

from django.contrib.auth.models import User
from django.test import AsyncRequestFactory, SimpleTestCase, TestCase

from engagement.models import Notification
from engagement.sse import NotificationBroker, format_sse
from engagement.views import notification_stream


class FormatSSETestCase(SimpleTestCase):

    def test_full_frame(self):
        frame = format_sse(data={'id': 7, 'type': 'follow'}, event_id=7)
        self.assertEqual(
            frame,
            'id: 7\nevent: notification\ndata: {"id":7,"type":"follow"}\n\n'
        )

    def test_without_id(self):
        frame = format_sse(data={'ok': True}, event='ping')
        self.assertEqual(frame, 'event: ping\ndata: {"ok":true}\n\n')


class BrokerTestCase(IsolatedAsyncioTestCase):

    async def test_publish_reaches_subscriber(self):
        broker = NotificationBroker()
        sub = broker.subscribe(1)

        self.assertEqual(broker.publish(1, {'id': 1}), 1)
        message = await asyncio.wait_for(sub.queue.get(), timeout=1)
        self.assertEqual(message, {'id': 1})

    async def test_publish_other_user_not_delivered(self):
        broker = NotificationBroker()
        sub = broker.subscribe(1)

        self.assertEqual(broker.publish(2, {'id': 1}), 0)
        await asyncio.sleep(0)
        self.assertTrue(sub.queue.empty())

    async def test_publish_from_another_thread(self):
        broker = NotificationBroker()
        sub = broker.subscribe(1)

        thread = threading.Thread(target=broker.publish, args=(1, {'id': 9}))
        thread.start()
        thread.join()

        message = await asyncio.wait_for(sub.queue.get(), timeout=1)
        self.assertEqual(message['id'], 9)

    async def test_full_queue_drops_oldest(self):
        broker = NotificationBroker()
        sub = broker.subscribe(1, max_queue_size=2)

        for i in range(3):
            broker.publish(1, {'id': i})
        await asyncio.sleep(0)

        received = [sub.queue.get_nowait()['id'] for _ in range(sub.queue.qsize())]
        self.assertEqual(received, [1, 2])

    async def test_unsubscribe(self):
        broker = NotificationBroker()
        sub = broker.subscribe(1)
        self.assertTrue(broker.has_subscribers(1))

        broker.unsubscribe(sub)
        broker.unsubscribe(sub)
        self.assertFalse(broker.has_subscribers(1))
        self.assertEqual(broker.publish(1, {'id': 1}), 0)


class NotificationStreamTestCase(TestCase):

    def setUp(self):
        self.factory = AsyncRequestFactory()
        self.actor = User.objects.create_user('actor', 'a@test.com', 'pass')
        self.target = User.objects.create_user('target', 't@test.com', 'pass')
        self.rows = [
            Notification.objects.create(type='follow', actor=self.actor, target=self.target)
            for _ in range(3)
        ]
        self.broker = NotificationBroker()
        patcher = patch('engagement.views.broker', self.broker)
        patcher.start()
        self.addCleanup(patcher.stop)

    async def test_requires_identity(self):
        response = await notification_stream(self.factory.get('/api/notifications/stream/'))
        self.assertEqual(response.status_code, 401)

    async def test_rejects_other_methods(self):
        request = self.factory.post('/api/notifications/stream/', headers={'X-User-Id': str(self.target.id)})
        response = await notification_stream(request)
        self.assertEqual(response.status_code, 405)

    async def test_resume_then_live(self):
        request = self.factory.get(
            '/api/notifications/stream/',
            headers={
                'X-User-Id': str(self.target.id),
                'Last-Event-ID': str(self.rows[0].id),
            },
        )
        response = await notification_stream(request)
        self.assertEqual(response['Content-Type'], 'text/event-stream')

        chunks = aiter(response.streaming_content)
        self.assertEqual(await anext(chunks), b'retry: 3000\n\n')

        # Backfill: everything after the last seen id, oldest first
        for row in self.rows[1:]:
            frame = (await anext(chunks)).decode()
            self.assertTrue(frame.startswith(f'id: {row.id}\n'))

        self.assertTrue(self.broker.has_subscribers(self.target.id))
        self.broker.publish(self.target.id, {'id': 99, 'type': 'like'})
        frame = (await asyncio.wait_for(anext(chunks), timeout=1)).decode()
        data_line = frame.strip().split('\n')[-1]
        self.assertEqual(json.loads(data_line[len('data: '):]), {'id': 99, 'type': 'like'})
        await chunks.aclose()

    async def test_keep_alive_when_idle(self):
        engagement = {
            'NOTIFICATION_RETENTION': 20,
            'NOTIFICATION_PAGE_SIZE': 20,
            'STREAM_KEEPALIVE_SECONDS': 0.01,
            'STREAM_QUEUE_SIZE': 200,
            'STREAM_BACKFILL_LIMIT': 200,
        }
        with self.settings(ENGAGEMENT=engagement):
            request = self.factory.get('/api/notifications/stream/', headers={'X-User-Id': str(self.target.id)})
            response = await notification_stream(request)

        chunks = aiter(response.streaming_content)
        self.assertEqual(await anext(chunks), b'retry: 3000\n\n')
        self.assertEqual(await asyncio.wait_for(anext(chunks), timeout=1), b': keep-alive\n\n')
        await chunks.aclose()
