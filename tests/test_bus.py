from __future__ import annotations

import asyncio
import threading
import unittest

from docprovider.events.bus import ChangeBus, ChangeNotice, children_uri, subscribe


class ChangeBusTests(unittest.TestCase):
    def test_children_uri_quotes_the_document_id(self) -> None:
        self.assertEqual(
            children_uri("org.psr.gse.user", "root/saves/a b"),
            "content://org.psr.gse.user/document/root%2Fsaves%2Fa%20b/children",
        )

    def test_listeners_receive_notices_for_their_key_only(self) -> None:
        bus = ChangeBus("auth")
        seen: list[ChangeNotice] = []
        bus.add_listener("root/a", seen.append)

        bus.notify_change("root/b")
        notice = bus.notify_change("root/a")

        self.assertEqual(seen, [notice])
        self.assertEqual(notice.document_id, "root/a")
        self.assertEqual(notice.uri, children_uri("auth", "root/a"))
        self.assertEqual(notice.seq, 2)

    def test_remove_listener(self) -> None:
        bus = ChangeBus("auth")
        seen: list[ChangeNotice] = []
        bus.add_listener("root/", seen.append)
        bus.remove_listener("root/", seen.append)
        bus.remove_listener("root/never", seen.append)
        bus.notify_change("root/")
        self.assertEqual(seen, [])

    def test_arm_returns_uri_and_marks_key(self) -> None:
        bus = ChangeBus("auth")
        self.assertFalse(bus.is_armed("root/"))
        self.assertEqual(bus.arm("root/"), children_uri("auth", "root/"))
        self.assertTrue(bus.is_armed("root/"))

    def test_arming_twice_keeps_one_key(self) -> None:
        bus = ChangeBus("auth")
        self.assertEqual(bus.arm("root/a"), bus.arm("root/a"))
        self.assertTrue(bus.is_armed("root/a"))
        self.assertFalse(bus.is_armed("root/"))
        self.assertEqual(bus.armed_keys(), {"root/a"})

    def test_async_subscriber_gets_notices_from_other_threads(self) -> None:
        bus = ChangeBus("auth")

        async def scenario() -> ChangeNotice:
            stream = subscribe(bus, "root/x")
            first = asyncio.ensure_future(stream.__anext__())
            await asyncio.sleep(0)
            worker = threading.Thread(target=bus.notify_change, args=("root/x",))
            worker.start()
            notice = await asyncio.wait_for(first, timeout=5)
            worker.join()
            await stream.aclose()
            return notice

        notice = asyncio.run(scenario())
        self.assertEqual(notice.document_id, "root/x")
