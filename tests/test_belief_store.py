"""Tests for the belief store.

Covers creation, the four revision operations, direct weight setting,
connections, queries, notifications and JSON round trips.
"""

import threading
from uuid import uuid4

import pytest

from sovern.belief_store import CORE_BELIEFS, BeliefStore, seed_core_beliefs
from sovern.errors import NotFoundError, ValidationError
from sovern.models import BeliefDomain, BeliefNode, RevisionType


def _id(store, stance):
    return store.find_by_stance(stance).id


class TestCreateCore:
    def test_creates_core_node(self, store):
        node = store.create_core("Authenticity", BeliefDomain.SELF, "Be real.", 7)

        assert node.is_core
        assert node.weight == 7
        assert node.revision_history == []
        assert len(store) == 1

    def test_accepts_domain_name(self, store):
        node = store.create_core("Curiosity", "knowledge", "Ask.", 5)
        assert node.domain == BeliefDomain.KNOWLEDGE

    @pytest.mark.parametrize("weight", [0, 11, -3])
    def test_rejects_weight_out_of_range(self, store, weight):
        with pytest.raises(ValidationError):
            store.create_core("Authenticity", BeliefDomain.SELF, "Be real.", weight)
        assert len(store) == 0

    def test_rejects_empty_stance(self, store):
        with pytest.raises(ValidationError):
            store.create_core("   ", BeliefDomain.SELF, "Be real.", 5)

    def test_rejects_unknown_domain(self, store):
        with pytest.raises(ValidationError):
            store.create_core("Authenticity", "POLITICS", "Be real.", 5)


class TestAddLearned:
    def test_appends_as_learned(self, store):
        node = BeliefNode(stance="Patience", domain=BeliefDomain.RELATIONAL, reasoning="Wait.", is_core=True)

        added = store.add_learned(node)

        assert added.is_core is False
        assert store.learned_beliefs()[0].id == node.id

    def test_is_idempotent_by_id(self, store):
        node = BeliefNode(stance="Patience", domain=BeliefDomain.RELATIONAL, reasoning="Wait.")
        store.add_learned(node)
        store.add_learned(node)
        assert len(store) == 1

    def test_links_back_to_existing_connections(self, populated_store):
        honesty = _id(populated_store, "Honesty")
        node = BeliefNode(
            stance="Candor",
            domain=BeliefDomain.ETHICS,
            reasoning="Speak plainly.",
            connection_ids=[honesty, uuid4()],
        )

        added = populated_store.add_learned(node)

        assert added.connection_ids == [honesty]
        assert node.id in populated_store.get(honesty).connection_ids


class TestRevisionOperations:
    def test_challenge_keeps_weight_but_records(self, populated_store):
        bid = _id(populated_store, "Authenticity")

        node = populated_store.challenge(bid, "User questioned whether this is performative")

        assert node.weight == 7
        assert len(node.revision_history) == 1
        rev = node.revision_history[0]
        assert rev.type == RevisionType.CHALLENGE
        assert rev.previous_weight == rev.new_weight == 7

    def test_strengthen_increments_and_replaces_reasoning(self, populated_store):
        bid = _id(populated_store, "Growth")

        node = populated_store.strengthen(bid, "Changed my mind on evidence twice today")

        assert node.weight == 7
        assert node.reasoning == "Changed my mind on evidence twice today"
        rev = node.latest_revision
        assert (rev.type, rev.previous_weight, rev.new_weight) == (RevisionType.STRENGTHEN, 6, 7)

    def test_strengthen_saturates_at_ten(self, store):
        bid = store.create_core("Honesty", BeliefDomain.ETHICS, "Do not mislead.", 10).id

        node = store.strengthen(bid, "Again")

        assert node.weight == 10
        assert node.revision_count == 1

    def test_weaken_saturates_at_one(self, store):
        bid = store.create_core("Doubt", BeliefDomain.META, "Question.", 1).id

        node = store.weaken(bid, "Less sure")

        assert node.weight == 1
        assert node.latest_revision.type == RevisionType.WEAKEN

    def test_revise_replaces_reasoning_only(self, populated_store):
        bid = _id(populated_store, "Honesty")

        node = populated_store.revise(bid, "Do not mislead, including by omission.")

        assert node.weight == 9
        assert node.reasoning == "Do not mislead, including by omission."
        rev = node.latest_revision
        assert rev.type == RevisionType.REVISE
        assert rev.previous_weight == rev.new_weight

    def test_empty_reason_applies_nothing(self, populated_store):
        bid = _id(populated_store, "Growth")
        with pytest.raises(ValidationError):
            populated_store.weaken(bid, "")
        node = populated_store.get(bid)
        assert node.weight == 6
        assert node.revision_history == []

    @pytest.mark.parametrize("op", ["challenge", "strengthen", "weaken", "revise"])
    def test_unknown_id_raises(self, store, op):
        with pytest.raises(NotFoundError):
            getattr(store, op)(uuid4(), "reason")

    def test_revisions_only_grow_one_at_a_time(self, populated_store):
        bid = _id(populated_store, "Authenticity")
        ops = [
            lambda: populated_store.challenge(bid, "a"),
            lambda: populated_store.strengthen(bid, "b"),
            lambda: populated_store.weaken(bid, "c"),
            lambda: populated_store.revise(bid, "d"),
            lambda: populated_store.set_weight(bid, 3, "e"),
        ]
        for expected, op in enumerate(ops, start=1):
            assert op().revision_count == expected

    def test_history_timestamps_ascend(self, populated_store):
        bid = _id(populated_store, "Authenticity")
        for i in range(5):
            populated_store.challenge(bid, f"round {i}")
        stamps = [r.timestamp for r in populated_store.get(bid).revision_history]
        assert stamps == sorted(stamps)

    def test_last_updated_tracks_mutation(self, populated_store):
        bid = _id(populated_store, "Authenticity")
        node = populated_store.challenge(bid, "hmm")
        assert node.last_updated == node.latest_revision.timestamp


class TestSetWeight:
    @pytest.mark.parametrize(
        "target,expected_weight,expected_type",
        [
            (9, 9, RevisionType.STRENGTHEN),
            (2, 2, RevisionType.WEAKEN),
            (7, 7, RevisionType.REVISE),
            (500, 10, RevisionType.STRENGTHEN),
            (-40, 1, RevisionType.WEAKEN),
            (8.6, 9, RevisionType.STRENGTHEN),
        ],
    )
    def test_clamps_and_infers_type(self, populated_store, target, expected_weight, expected_type):
        bid = _id(populated_store, "Authenticity")  # weight 7

        node = populated_store.set_weight(bid, target, "external update")

        assert node.weight == expected_weight
        assert node.latest_revision.type == expected_type
        assert node.latest_revision.previous_weight == 7

    @pytest.mark.parametrize("bad", ["seven", None, True, float("nan")])
    def test_rejects_unusable_weight(self, populated_store, bad):
        bid = _id(populated_store, "Authenticity")
        with pytest.raises(ValidationError):
            populated_store.set_weight(bid, bad, "x")
        assert populated_store.get(bid).revision_history == []

    def test_weight_bound_holds_under_extreme_sequences(self, populated_store):
        bid = _id(populated_store, "Growth")
        for i in range(15):
            populated_store.strengthen(bid, f"up {i}")
        assert populated_store.get(bid).weight == 10
        for i in range(25):
            populated_store.weaken(bid, f"down {i}")
        populated_store.set_weight(bid, -10**9, "floor")
        populated_store.set_weight(bid, 10**9, "ceiling")
        for node in populated_store.snapshot():
            assert 1 <= node.weight <= 10


class TestConnections:
    def test_connect_is_symmetric(self, populated_store):
        a, b = _id(populated_store, "Authenticity"), _id(populated_store, "Growth")

        populated_store.connect(a, b)

        assert b in populated_store.get(a).connection_ids
        assert a in populated_store.get(b).connection_ids

    def test_connect_twice_is_noop(self, populated_store):
        a, b = _id(populated_store, "Authenticity"), _id(populated_store, "Growth")
        populated_store.connect(a, b)
        populated_store.connect(b, a)
        assert populated_store.get(a).connection_ids == [b]
        assert populated_store.get(b).connection_ids == [a]

    def test_self_connection_rejected(self, populated_store):
        a = _id(populated_store, "Authenticity")
        with pytest.raises(ValidationError):
            populated_store.connect(a, a)

    def test_connect_unknown_raises(self, populated_store):
        with pytest.raises(NotFoundError):
            populated_store.connect(_id(populated_store, "Authenticity"), uuid4())

    def test_self_connection_of_unknown_id_is_not_found(self, populated_store):
        ghost = uuid4()
        with pytest.raises(NotFoundError):
            populated_store.connect(ghost, ghost)

    def test_disconnect_removes_both_sides(self, populated_store):
        a, b = _id(populated_store, "Authenticity"), _id(populated_store, "Growth")
        populated_store.connect(a, b)

        populated_store.disconnect(b, a)

        assert populated_store.get(a).connection_ids == []
        assert populated_store.get(b).connection_ids == []

    def test_disconnect_unconnected_is_noop(self, populated_store):
        a, b = _id(populated_store, "Authenticity"), _id(populated_store, "Growth")
        populated_store.disconnect(a, b)
        assert populated_store.get(a).connection_ids == []

    def test_connections_do_not_create_revisions(self, populated_store):
        a, b = _id(populated_store, "Authenticity"), _id(populated_store, "Growth")
        populated_store.connect(a, b)
        assert populated_store.get(a).revision_history == []


class TestQueries:
    def test_find_by_stance_is_case_insensitive(self, populated_store):
        assert populated_store.find_by_stance("  authenticity ").stance == "Authenticity"
        assert populated_store.find_by_stance("Authentic") is None

    def test_by_domain(self, populated_store):
        assert [n.stance for n in populated_store.by_domain("ETHICS")] == ["Honesty"]

    def test_core_and_learned(self, populated_store):
        populated_store.add_learned(
            BeliefNode(stance="Patience", domain=BeliefDomain.RELATIONAL, reasoning="Wait.")
        )
        assert len(populated_store.core_beliefs()) == 3
        assert [n.stance for n in populated_store.learned_beliefs()] == ["Patience"]

    def test_get_unknown_raises(self, store):
        with pytest.raises(NotFoundError):
            store.get(uuid4())

    def test_snapshot_is_detached(self, populated_store):
        snap = populated_store.snapshot()
        bid = snap[0].id
        populated_store.weaken(bid, "after snapshot")

        assert snap[0].revision_history == []
        snap[0].weight = 1
        assert populated_store.get(bid).weight == 6


class TestNotifications:
    def test_listener_receives_each_revision(self, populated_store):
        seen = []
        populated_store.subscribe(lambda node, rev: seen.append((node.stance, rev.type)))
        bid = _id(populated_store, "Growth")

        populated_store.strengthen(bid, "x")
        populated_store.challenge(bid, "y")

        assert seen == [("Growth", RevisionType.STRENGTHEN), ("Growth", RevisionType.CHALLENGE)]

    def test_unsubscribe(self, populated_store):
        seen = []
        unsubscribe = populated_store.subscribe(lambda node, rev: seen.append(rev))
        unsubscribe()
        populated_store.challenge(_id(populated_store, "Growth"), "x")
        assert seen == []

    def test_failing_listener_does_not_undo_mutation(self, populated_store):
        def broken(node, rev):
            raise RuntimeError("boom")

        populated_store.subscribe(broken)
        bid = _id(populated_store, "Growth")
        node = populated_store.weaken(bid, "x")

        assert node.weight == 5
        assert populated_store.get(bid).revision_count == 1


class TestSerialization:
    def test_json_round_trip_preserves_history(self, populated_store):
        a, b = _id(populated_store, "Authenticity"), _id(populated_store, "Growth")
        populated_store.connect(a, b)
        populated_store.weaken(a, "less sure")

        restored = BeliefStore.from_json(populated_store.export_json())

        assert restored.export_json() == populated_store.export_json()
        assert restored.get(a).latest_revision.reason == "less sure"

    def test_invalid_json_raises_validation_error(self):
        with pytest.raises(ValidationError):
            BeliefStore.from_json('[{"stance": "x"}]')

    def test_loading_repairs_one_sided_connections(self):
        a = BeliefNode(stance="A", domain=BeliefDomain.SELF, reasoning="a")
        b = BeliefNode(stance="B", domain=BeliefDomain.SELF, reasoning="b", connection_ids=[a.id, uuid4()])

        store = BeliefStore([a, b])

        assert store.get(a.id).connection_ids == [b.id]
        assert store.get(b.id).connection_ids == [a.id]


class TestSeed:
    def test_seeds_empty_store(self, store):
        assert seed_core_beliefs(store) is True
        assert len(store) == len(CORE_BELIEFS)
        assert all(n.is_core for n in store.snapshot())

    def test_does_not_reseed(self, store):
        seed_core_beliefs(store)
        assert seed_core_beliefs(store) is False
        assert len(store) == len(CORE_BELIEFS)


class TestConcurrency:
    def _assert_chain_intact(self, node):
        for prev, cur in zip(node.revision_history, node.revision_history[1:]):
            assert cur.previous_weight == prev.new_weight
            assert cur.timestamp >= prev.timestamp

    def test_parallel_mutations_keep_every_revision(self, store):
        bid = store.create_core("Contested", BeliefDomain.META, "r", 5).id
        threads_n, calls = 8, 50
        seen = []

        def worker(i):
            op = store.strengthen if i % 2 else store.weaken
            for j in range(calls):
                seen.append(op(bid, f"thread {i} call {j}").weight)

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(threads_n)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        node = store.get(bid)
        assert node.revision_count == threads_n * calls
        assert all(1 <= w <= 10 for w in seen)
        assert 1 <= node.weight <= 10
        self._assert_chain_intact(node)

    def test_batch_excludes_other_writers(self, populated_store):
        bid = _id(populated_store, "Growth")
        entered, release = threading.Event(), threading.Event()

        def hold_batch():
            with populated_store.batch():
                populated_store.strengthen(bid, "inside batch")
                entered.set()
                release.wait(timeout=5)
                populated_store.weaken(bid, "still inside batch")

        holder = threading.Thread(target=hold_batch)
        holder.start()
        entered.wait(timeout=5)
        writer = threading.Thread(target=populated_store.revise, args=(bid, "outside"))
        writer.start()
        release.set()
        holder.join()
        writer.join()

        reasons = [r.reason for r in populated_store.get(bid).revision_history]
        assert reasons == ["inside batch", "still inside batch", "outside"]
