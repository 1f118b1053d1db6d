"""Tests for persona events, sinks and the witness chain."""
import json
import logging
import sqlite3

import pytest

from persona_registry.events import (
    EVENT_PREFIX,
    PERSONA_SET_ACTION,
    CallLog,
    FanoutSink,
    LoggerSink,
    PersonaSetEvent,
    WitnessSink,
    parse_event_logs,
)
from persona_registry.witness import WitnessChain


@pytest.fixture
def chain(tmp_path):
    return WitnessChain(tmp_path / "witness_test.db")


class TestEventFormat:
    def test_log_line(self):
        line = PersonaSetEvent(account_id="alice", cid="bafy1").to_log()
        assert line == 'EVENT_JSON:{"account_id":"alice","cid":"bafy1"}'

    def test_payload_has_exactly_two_fields(self):
        line = PersonaSetEvent(account_id="alice", cid="bafy1").to_log()
        payload = json.loads(line[len(EVENT_PREFIX):])
        assert set(payload) == {"account_id", "cid"}

    def test_parse_skips_other_lines(self):
        lines = [
            "some unrelated log",
            PersonaSetEvent("alice", "bafy1").to_log(),
            "EVENT_JSON_NOT:{}",
            PersonaSetEvent("bob", "bafy2").to_log(),
        ]
        assert parse_event_logs(lines) == [
            PersonaSetEvent("alice", "bafy1"),
            PersonaSetEvent("bob", "bafy2"),
        ]

    def test_parse_skips_other_standards_on_shared_prefix(self):
        lines = [
            'EVENT_JSON:{"standard":"nep171","version":"1.0.0","event":"nft_mint","data":[]}',
            PersonaSetEvent("alice", "bafy1").to_log(),
        ]
        assert parse_event_logs(lines) == [PersonaSetEvent("alice", "bafy1")]

    def test_parse_skips_non_json_payload(self):
        lines = ["EVENT_JSON:not json", PersonaSetEvent("alice", "bafy1").to_log()]
        assert parse_event_logs(lines) == [PersonaSetEvent("alice", "bafy1")]

    @pytest.mark.parametrize("payload", [
        '["alice","bafy1"]',
        '{"account_id":"alice"}',
        '{"account_id":"alice","cid":"bafy1","extra":1}',
        '{"account_id":"alice","cid":null}',
    ])
    def test_parse_skips_malformed_records(self, payload):
        assert parse_event_logs([EVENT_PREFIX + payload]) == []

    def test_parse_handles_quotes_in_cid(self):
        event = PersonaSetEvent("alice", 'weird "cid"')
        assert parse_event_logs([event.to_log()]) == [event]


class TestSinks:
    def test_logger_sink(self, caplog):
        with caplog.at_level(logging.INFO, logger="persona_registry.events"):
            LoggerSink().emit(PersonaSetEvent("alice", "bafy1"))
        assert 'EVENT_JSON:{"account_id":"alice","cid":"bafy1"}' in caplog.messages

    def test_fanout_preserves_order(self):
        first, second = CallLog(), CallLog()
        FanoutSink(first, second).emit(PersonaSetEvent("alice", "bafy1"))
        assert first.logs == second.logs
        assert len(first.logs) == 1

    def test_witness_sink_records_event(self, chain):
        WitnessSink(chain).emit(PersonaSetEvent("alice", "bafy1"))
        entries = chain.list_entries(action=PERSONA_SET_ACTION)
        assert len(entries) == 1
        assert entries[0]["account_id"] == "alice"
        assert entries[0]["details"] == {"account_id": "alice", "cid": "bafy1"}


class TestWitnessChain:
    def test_first_entry_has_no_prev_hash(self, chain):
        entry = chain.record("persona_set", "alice", {"cid": "bafy1"})
        assert entry["prev_hash"] is None
        assert len(entry["hash"]) == 64

    def test_entries_are_linked(self, chain):
        first = chain.record("persona_set", "alice", {"cid": "bafy1"})
        second = chain.record("persona_set", "bob", {"cid": "bafy2"})
        assert second["prev_hash"] == first["hash"]

    def test_verify_chain_valid(self, chain):
        for i in range(5):
            chain.record("persona_set", f"agent_{i}", {"cid": f"bafy{i}"})
        assert chain.verify_chain() is True

    def test_verify_empty_chain(self, chain):
        assert chain.verify_chain() is True

    def test_tampering_detected(self, chain):
        chain.record("persona_set", "alice", {"cid": "bafy1"})
        chain.record("persona_set", "bob", {"cid": "bafy2"})
        conn = sqlite3.connect(chain.db_path)
        conn.execute("UPDATE witness_chain SET details=? WHERE id=1", (json.dumps({"cid": "evil"}),))
        conn.commit()
        conn.close()
        assert chain.verify_chain() is False

    def test_list_filters_and_order(self, chain):
        chain.record("agent_registered", "alice", {"name": "a"})
        chain.record("persona_set", "alice", {"cid": "bafy1"})
        chain.record("persona_set", "bob", {"cid": "bafy2"})

        newest_first = chain.list_entries(action="persona_set")
        assert [e["account_id"] for e in newest_first] == ["bob", "alice"]

        only_alice = chain.list_entries(account_id="alice")
        assert {e["action"] for e in only_alice} == {"agent_registered", "persona_set"}

        paged = chain.list_entries(limit=1, offset=1, ascending=True)
        assert paged[0]["action"] == "persona_set"
        assert paged[0]["account_id"] == "alice"
