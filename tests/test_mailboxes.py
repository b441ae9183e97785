"""Tests for shortmail.polling.mailboxes (MailboxBinding)."""

from __future__ import annotations

import threading

from shortmail.polling.packets import EventPacket
from shortmail.polling.sessions import SessionRegistry

from tests.conftest import FakeClock


class TestBind:
    def test_bind_adds_session(self, registry: SessionRegistry):
        sid = registry.create()
        assert registry.mailboxes.bind(sid, "box") is True
        assert registry.get(sid).mailbox_id == "box"
        assert registry.mailboxes.sessions_for("box") == {sid}

    def test_rebind_moves_session(self, registry: SessionRegistry):
        sid = registry.create()
        other = registry.create()
        registry.mailboxes.bind(sid, "a")
        registry.mailboxes.bind(other, "a")

        registry.mailboxes.bind(sid, "b")

        assert registry.mailboxes.sessions_for("a") == {other}
        assert registry.mailboxes.sessions_for("b") == {sid}
        assert registry.get(sid).mailbox_id == "b"

    def test_rebind_drops_empty_mailbox(self, registry: SessionRegistry):
        sid = registry.create()
        registry.mailboxes.bind(sid, "a")
        registry.mailboxes.bind(sid, "b")
        assert len(registry.mailboxes) == 1

    def test_bind_same_mailbox_twice(self, registry: SessionRegistry):
        sid = registry.create()
        registry.mailboxes.bind(sid, "a")
        registry.mailboxes.bind(sid, "a")
        assert registry.mailboxes.sessions_for("a") == {sid}

    def test_bind_unknown_session(self, registry: SessionRegistry):
        assert registry.mailboxes.bind("missing", "a") is False
        assert registry.mailboxes.sessions_for("a") == set()

    def test_unbind(self, registry: SessionRegistry):
        sid = registry.create()
        registry.mailboxes.bind(sid, "a")
        registry.mailboxes.unbind(sid)
        assert registry.get(sid).mailbox_id is None
        assert registry.mailboxes.sessions_for("a") == set()

    def test_sessions_for_returns_copy(self, registry: SessionRegistry):
        sid = registry.create()
        registry.mailboxes.bind(sid, "a")
        registry.mailboxes.sessions_for("a").clear()
        assert registry.mailboxes.sessions_for("a") == {sid}


class TestNotify:
    def test_delivers_to_bound_sessions_only(self, registry: SessionRegistry):
        first = registry.create()
        second = registry.create()
        outsider = registry.create()
        registry.mailboxes.bind(first, "box")
        registry.mailboxes.bind(second, "box")
        registry.mailboxes.bind(outsider, "elsewhere")

        delivered = registry.mailboxes.notify("box", {"subject": "hi"})

        assert delivered == 2
        expected = [EventPacket("mail", {"subject": "hi"})]
        assert registry.drain(first) == expected
        assert registry.drain(second) == expected
        assert registry.drain(outsider) == []

    def test_no_listeners_drops_notification(self, registry: SessionRegistry):
        sid = registry.create()
        assert registry.mailboxes.notify("box", {"subject": "hi"}) == 0

        registry.mailboxes.bind(sid, "box")
        assert registry.drain(sid) == []

    def test_previous_mailbox_no_longer_notified(self, registry: SessionRegistry):
        sid = registry.create()
        registry.mailboxes.bind(sid, "a")
        registry.mailboxes.bind(sid, "b")

        registry.mailboxes.notify("a", {"subject": "old"})

        assert registry.drain(sid) == []


class TestDeliver:
    def test_queues_for_bound_mailbox(self, registry: SessionRegistry):
        sid = registry.create()
        registry.mailboxes.bind(sid, "box")

        assert registry.mailboxes.deliver(sid, "box", {"subject": "hi"}) is True
        assert registry.drain(sid) == [EventPacket("mail", {"subject": "hi"})]

    def test_refuses_after_rebind(self, registry: SessionRegistry):
        sid = registry.create()
        registry.mailboxes.bind(sid, "a")
        registry.mailboxes.bind(sid, "b")

        assert registry.mailboxes.deliver(sid, "a", {"subject": "old"}) is False
        assert registry.drain(sid) == []

    def test_refuses_unknown_session(self, registry: SessionRegistry):
        assert registry.mailboxes.deliver("missing", "box", {}) is False


class TestConcurrency:
    def test_bind_sweep_notify_from_threads(self, registry: SessionRegistry, clock: FakeClock):
        stale = [registry.create() for _ in range(20)]
        clock.advance(4000)
        fresh = [registry.create() for _ in range(20)]
        mailboxes = ["a", "b", "c"]
        errors: list[BaseException] = []

        def binder(offset: int) -> None:
            try:
                for i in range(100):
                    for sid in stale + fresh:
                        registry.mailboxes.bind(sid, mailboxes[(i + offset) % 3])
            except BaseException as exc:
                errors.append(exc)

        def sweeper() -> None:
            try:
                for _ in range(300):
                    registry.sweep()
            except BaseException as exc:
                errors.append(exc)

        def notifier() -> None:
            try:
                for i in range(300):
                    registry.mailboxes.notify(mailboxes[i % 3], {"n": i})
            except BaseException as exc:
                errors.append(exc)

        threads = [threading.Thread(target=binder, args=(n,)) for n in range(3)]
        threads += [threading.Thread(target=sweeper), threading.Thread(target=notifier)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        assert all(sid not in registry for sid in stale)
        assert all(sid in registry for sid in fresh)

        memberships: dict[str, list[str]] = {}
        for mailbox_id in mailboxes:
            for sid in registry.mailboxes.sessions_for(mailbox_id):
                memberships.setdefault(sid, []).append(mailbox_id)

        assert set(memberships) == set(fresh)
        for sid, bound in memberships.items():
            assert len(bound) == 1
            assert registry.get(sid).mailbox_id == bound[0]
