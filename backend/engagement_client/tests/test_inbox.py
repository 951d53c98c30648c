"""
NotificationInbox: live events, unread bookkeeping, failure tolerance.
"""
from unittest import IsolatedAsyncioTestCase
from unittest.mock import AsyncMock, MagicMock

import httpx

from engagement_client.inbox import NotificationInbox

USER_ID = 2


def _item(notification_id, type="follow", read=False, actor="Alice"):
    return {
        "id": notification_id,
        "type": type,
        "actor": {"id": 1, "username": actor.lower(), "displayName": actor},
        "targetId": USER_ID,
        "article": None,
        "read": read,
    }


class NotificationInboxTestCase(IsolatedAsyncioTestCase):

    def setUp(self):
        self.api = MagicMock()
        self.api.list_notifications = AsyncMock(return_value={"items": [], "unreadCount": 0})
        self.api.mark_read = AsyncMock(return_value=None)
        self.api.mark_all_read = AsyncMock(return_value=0)
        self.notify = MagicMock()
        self.inbox = NotificationInbox(self.api, USER_ID, self.notify)

    async def test_refresh_derives_unread_from_page(self):
        self.api.list_notifications.return_value = {
            "items": [_item(3), _item(2, read=True), _item(1)],
            "unreadCount": 99,
        }

        self.assertTrue(await self.inbox.refresh())
        self.assertEqual(self.inbox.unread_count, 2)
        self.api.list_notifications.assert_awaited_once_with(limit=20)

    async def test_follow_event_scenario(self):
        """
        A follows B: B's open inbox gets the event, shows one unread, toasts.
        Opening it brings the count back to zero.
        """
        self.api.list_notifications.return_value = {"items": [_item(10)], "unreadCount": 1}

        handled = await self.inbox.handle_event({"id": 10, "type": "follow", "actor_id": 1, "target_id": USER_ID})

        self.assertTrue(handled)
        self.assertEqual(self.inbox.unread_count, 1)
        self.notify.assert_called_once_with("info", "Alice started following you")
        self.assertEqual(self.inbox.last_event_id, 10)

        await self.inbox.open(10)
        self.api.mark_read.assert_awaited_once_with(10)
        self.assertEqual(self.inbox.unread_count, 0)
        self.assertTrue(self.inbox.items[0]["read"])

    async def test_like_event_does_not_toast(self):
        self.api.list_notifications.return_value = {"items": [_item(4, type="like")], "unreadCount": 1}

        await self.inbox.handle_event({"id": 4, "type": "like", "target_id": USER_ID})

        self.notify.assert_not_called()
        self.assertEqual(self.inbox.unread_count, 1)

    async def test_duplicate_and_foreign_events_ignored(self):
        self.api.list_notifications.return_value = {"items": [_item(5)], "unreadCount": 1}
        await self.inbox.handle_event({"id": 5, "type": "follow", "target_id": USER_ID})

        self.assertFalse(await self.inbox.handle_event({"id": 5, "type": "follow", "target_id": USER_ID}))
        self.assertFalse(await self.inbox.handle_event({"id": 6, "type": "follow", "target_id": 99}))
        self.assertEqual(self.api.list_notifications.await_count, 1)

    async def test_seen_ids_bounded(self):
        inbox = NotificationInbox(self.api, USER_ID, self.notify, seen_window=3)
        for notification_id in range(1, 6):
            await inbox.handle_event({"id": notification_id, "type": "like", "target_id": USER_ID})

        self.assertEqual(list(inbox._seen_ids), [3, 4, 5])
        self.assertEqual(inbox.last_event_id, 5)
        self.assertFalse(await inbox.handle_event({"id": 5, "type": "like", "target_id": USER_ID}))

    async def test_open_never_goes_negative(self):
        await self.inbox.open(123)
        self.assertEqual(self.inbox.unread_count, 0)

    async def test_open_already_read_is_noop(self):
        self.api.list_notifications.return_value = {"items": [_item(1, read=True)], "unreadCount": 0}
        await self.inbox.refresh()

        await self.inbox.open(1)
        self.api.mark_read.assert_not_awaited()

    async def test_mark_all_read_zeroes(self):
        self.api.list_notifications.return_value = {"items": [_item(2), _item(1)], "unreadCount": 2}
        await self.inbox.refresh()

        await self.inbox.mark_all_read()

        self.assertEqual(self.inbox.unread_count, 0)
        self.assertTrue(all(item["read"] for item in self.inbox.items))

    async def test_fetch_failure_keeps_previous_list(self):
        self.api.list_notifications.return_value = {"items": [_item(1)], "unreadCount": 1}
        await self.inbox.refresh()

        self.api.list_notifications.side_effect = httpx.ConnectError("down")
        with self.assertLogs("engagement_client.inbox", level="WARNING"):
            self.assertFalse(await self.inbox.refresh())

        self.assertEqual([item["id"] for item in self.inbox.items], [1])
        self.assertEqual(self.inbox.unread_count, 1)

    async def test_listen_resumes_from_last_event(self):
        calls = []

        async def stream_notifications(last_event_id=None):
            calls.append(last_event_id)
            if len(calls) == 1:
                yield {"id": 7, "type": "like", "target_id": USER_ID}
                raise httpx.RemoteProtocolError("dropped")

        self.api.stream_notifications = stream_notifications

        with self.assertLogs("engagement_client.inbox", level="WARNING"):
            await self.inbox.listen(reconnect_delay=0, max_reconnects=1)

        self.assertEqual(calls, [None, 7])
