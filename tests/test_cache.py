"""Tests for the local notification cache and unread counter."""


class TestNotificationCache:
    """Tests for NotificationCache."""

    def test_replace_all_orders_newest_first(self, make_notification):
        """Test wholesale replacement keeps newest-first order."""
        from notifysync.sync import NotificationCache

        cache = NotificationCache()
        cache.replace_all([
            make_notification("old", minutes=0),
            make_notification("new", minutes=10),
            make_notification("mid", minutes=5),
        ])

        assert [n.id for n in cache] == ["new", "mid", "old"]
        assert len(cache) == 3

    def test_replace_all_drops_duplicates(self, make_notification):
        """Test the cache never holds two entries with one id."""
        from notifysync.sync import NotificationCache

        cache = NotificationCache()
        cache.replace_all([
            make_notification("A", title="first"),
            make_notification("A", title="second"),
        ])

        assert len(cache) == 1
        assert cache.get("A").title == "first"

    def test_replace_all_copies_entries(self, make_notification):
        """Test the cache does not share objects with the snapshot."""
        from notifysync.sync import NotificationCache

        source = make_notification("A")
        cache = NotificationCache()
        cache.replace_all([source])

        source.is_read = True
        assert cache.get("A").is_read is False

    def test_set_read_unknown_is_noop(self):
        """Test setting read state on an unknown id."""
        from notifysync.sync import NotificationCache

        cache = NotificationCache()
        generation = cache.generation

        assert cache.set_read("missing", True) is None
        assert "missing" not in cache
        assert cache.generation == generation

    def test_set_read_returns_previous(self, make_notification):
        """Test set_read returns the entry as it was."""
        from notifysync.sync import NotificationCache

        cache = NotificationCache()
        cache.replace_all([make_notification("A")])

        previous = cache.set_read("A", True)

        assert previous.is_read is False
        assert cache.get("A").is_read is True
        assert cache.unread_count() == 0

    def test_restore_exact_copy(self, make_notification):
        """Test restoring a prior copy brings back every field."""
        from notifysync.sync import NotificationCache

        original = make_notification("A")
        cache = NotificationCache()
        cache.replace_all([original])
        previous = cache.set_read("A", True)

        assert cache.restore(previous)
        assert cache.get("A") == original

    def test_restore_unknown(self, make_notification):
        """Test restore refuses entries no longer cached."""
        from notifysync.sync import NotificationCache

        cache = NotificationCache()

        assert not cache.restore(make_notification("gone"))

    def test_returned_entries_are_copies(self, make_notification):
        """Test changing a returned entry does not change the cache."""
        from notifysync.sync import NotificationCache

        cache = NotificationCache()
        cache.replace_all([make_notification("A")])
        generation = cache.generation

        cache.get("A").is_read = True
        cache.items()[0].is_read = True
        for entry in cache:
            entry.is_read = True

        assert cache.unread_count() == 1
        assert cache.get("A").is_read is False
        assert cache.generation == generation

    def test_snapshot_is_independent(self, make_notification):
        """Test snapshots are deep enough for rollback."""
        from notifysync.sync import NotificationCache

        cache = NotificationCache()
        cache.replace_all([make_notification("A"), make_notification("B", minutes=1)])
        snapshot = cache.snapshot()

        cache.set_all_read()

        assert [n.is_read for n in snapshot] == [False, False]
        assert cache.unread_count() == 0

    def test_generation_changes_on_mutation(self, make_notification):
        """Test every mutation bumps the generation."""
        from notifysync.sync import NotificationCache

        cache = NotificationCache()
        start = cache.generation
        cache.replace_all([make_notification("A")])
        after_replace = cache.generation
        cache.set_read("A", True)

        assert start < after_replace < cache.generation


class TestUnreadCounter:
    """Tests for UnreadCounter."""

    def test_never_negative(self):
        """Test the counter clamps at zero."""
        from notifysync.sync import UnreadCounter

        counter = UnreadCounter()
        counter.decrement()
        assert counter.value == 0

        counter.set(-5)
        assert counter.value == 0

        assert UnreadCounter(-3).value == 0

    def test_increment_and_drift(self):
        """Test increments and drift against a derived count."""
        from notifysync.sync import UnreadCounter

        counter = UnreadCounter(2)
        counter.increment()

        assert counter.value == 3
        assert counter.drift(1) == 2
        assert int(counter) == 3

        counter.reset()
        assert counter.value == 0
