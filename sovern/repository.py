"""Repository — PostgreSQL persistence for beliefs and tensions.

The engine itself never touches the database. Callers load a store at
startup and save it after each turn.
"""

import logging
from collections import defaultdict

from sovern import db
from sovern.belief_store import BeliefStore
from sovern.models import BeliefNode, BeliefRevision, TensionRecord
from sovern.tension_tracker import TensionTracker

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS belief_nodes (
    id UUID PRIMARY KEY,
    position INTEGER NOT NULL,
    stance TEXT NOT NULL,
    domain TEXT NOT NULL,
    reasoning TEXT NOT NULL,
    weight INTEGER NOT NULL CHECK (weight BETWEEN 1 AND 10),
    is_core BOOLEAN NOT NULL,
    created_at TIMESTAMPTZ NOT NULL,
    last_updated TIMESTAMPTZ NOT NULL
);

CREATE TABLE IF NOT EXISTS belief_revisions (
    id UUID PRIMARY KEY,
    belief_id UUID NOT NULL REFERENCES belief_nodes(id),
    seq INTEGER NOT NULL,
    timestamp TIMESTAMPTZ NOT NULL,
    type TEXT NOT NULL,
    reason TEXT NOT NULL,
    previous_weight INTEGER NOT NULL,
    new_weight INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS belief_connections (
    belief_a UUID NOT NULL REFERENCES belief_nodes(id),
    belief_b UUID NOT NULL REFERENCES belief_nodes(id),
    PRIMARY KEY (belief_a, belief_b)
);

CREATE TABLE IF NOT EXISTS epistemic_tensions (
    id UUID PRIMARY KEY,
    belief1 TEXT NOT NULL,
    belief2 TEXT NOT NULL,
    description TEXT NOT NULL,
    encounter_count INTEGER NOT NULL,
    resolved BOOLEAN NOT NULL,
    resolution_reasoning TEXT,
    resolution_date TIMESTAMPTZ,
    first_noticed TIMESTAMPTZ NOT NULL,
    last_encountered TIMESTAMPTZ NOT NULL
);
"""


async def init_schema():
    await db.execute(SCHEMA)


# --- Beliefs ---

async def save_beliefs(store: BeliefStore):
    """Write the whole network. Revisions are immutable, so existing ones are left as they are."""
    nodes = store.snapshot()

    async with db.transaction() as conn:
        for position, node in enumerate(nodes):
            await conn.execute(
                """
                INSERT INTO belief_nodes
                    (id, position, stance, domain, reasoning, weight, is_core, created_at, last_updated)
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
                ON CONFLICT (id) DO UPDATE SET
                    position = $2, reasoning = $5, weight = $6, last_updated = $9
                """,
                node.id, position, node.stance, node.domain.value, node.reasoning,
                node.weight, node.is_core, node.created_at, node.last_updated,
            )

        await conn.executemany(
            """
            INSERT INTO belief_revisions
                (id, belief_id, seq, timestamp, type, reason, previous_weight, new_weight)
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
            ON CONFLICT (id) DO NOTHING
            """,
            [
                (r.id, node.id, seq, r.timestamp, r.type.value, r.reason, r.previous_weight, r.new_weight)
                for node in nodes
                for seq, r in enumerate(node.revision_history)
            ],
        )

        # Store each undirected edge once
        edges = {
            tuple(sorted((node.id, cid), key=str))
            for node in nodes
            for cid in node.connection_ids
        }
        await conn.execute("DELETE FROM belief_connections")
        await conn.executemany(
            "INSERT INTO belief_connections (belief_a, belief_b) VALUES ($1, $2)",
            sorted(edges, key=lambda e: (str(e[0]), str(e[1]))),
        )

    logger.debug("Saved %d beliefs", len(nodes))


async def load_beliefs() -> BeliefStore:
    node_rows = await db.fetch("SELECT * FROM belief_nodes ORDER BY position")
    revision_rows = await db.fetch("SELECT * FROM belief_revisions ORDER BY belief_id, seq")
    edge_rows = await db.fetch("SELECT belief_a, belief_b FROM belief_connections")

    history = defaultdict(list)
    for r in revision_rows:
        row = dict(r)
        belief_id = row.pop("belief_id")
        row.pop("seq", None)
        history[belief_id].append(BeliefRevision(**row))

    connections = defaultdict(list)
    for e in edge_rows:
        connections[e["belief_a"]].append(e["belief_b"])
        connections[e["belief_b"]].append(e["belief_a"])

    nodes = []
    for r in node_rows:
        row = dict(r)
        row.pop("position", None)
        nodes.append(BeliefNode(
            **row,
            revision_history=history[row["id"]],
            connection_ids=connections[row["id"]],
        ))
    return BeliefStore(nodes)


# --- Tensions ---

async def save_tensions(tracker: TensionTracker):
    records = tracker.all()
    async with db.transaction() as conn:
        await conn.executemany(
            """
            INSERT INTO epistemic_tensions
                (id, belief1, belief2, description, encounter_count, resolved,
                 resolution_reasoning, resolution_date, first_noticed, last_encountered)
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10)
            ON CONFLICT (id) DO UPDATE SET
                encounter_count = $5, resolved = $6, resolution_reasoning = $7,
                resolution_date = $8, last_encountered = $10
            """,
            [
                (t.id, t.belief1, t.belief2, t.description, t.encounter_count, t.resolved,
                 t.resolution_reasoning, t.resolution_date, t.first_noticed, t.last_encountered)
                for t in records
            ],
        )
    logger.debug("Saved %d tensions", len(records))


async def load_tensions() -> TensionTracker:
    rows = await db.fetch("SELECT * FROM epistemic_tensions ORDER BY first_noticed")
    return TensionTracker([TensionRecord(**dict(r)) for r in rows])
