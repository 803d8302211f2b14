from __future__ import annotations

import pytest

from securetrace.core.events import LogEventType, Severity
from securetrace.forensics.chain import ForensicLogChain
from securetrace.session.dlp import KeywordPolicy


def test_scan_is_case_insensitive_substring() -> None:
    policy = KeywordPolicy(["confidential"])
    assert policy.scan("this is CONFIDENTIAL info") == ["confidential"]
    assert policy.scan("nothing to see") == []


def test_scan_reports_in_policy_order() -> None:
    policy = KeywordPolicy(["leak", "bribe", "off the record"])
    assert policy.scan("Off The Record: the BRIBE and the leak") == ["leak", "bribe", "off the record"]


def test_edits_apply_to_later_scans_only(chain: ForensicLogChain) -> None:
    policy = KeywordPolicy(["leak"], chain=chain, user_id="alice")
    text = "send the invoice"
    before = policy.scan(text)

    assert policy.add("  INVOICE ") == "invoice"
    assert before == []
    assert policy.scan(text) == ["invoice"]

    policy.remove("leak")
    assert policy.keywords() == ("invoice",)
    assert "INVOICE" in policy

    added, removed = chain.entries()
    assert added.event_type is LogEventType.ANOMALY_DETECTED
    assert added.severity is Severity.INFO
    assert added.metadata == {"action": "DLP_RULE_ADDED", "keyword": "invoice"}
    assert added.user_id == "alice"
    assert removed.severity is Severity.WARNING
    assert removed.metadata == {"action": "DLP_RULE_REMOVED", "keyword": "leak"}


def test_duplicates_and_empties_rejected(chain: ForensicLogChain) -> None:
    policy = KeywordPolicy(["leak"], chain=chain)
    with pytest.raises(ValueError):
        policy.add("LEAK")
    with pytest.raises(ValueError):
        policy.add("   ")
    with pytest.raises(ValueError):
        policy.remove("absent")
    assert len(chain) == 0
    assert len(policy) == 1


def test_initial_keywords_normalized() -> None:
    assert KeywordPolicy(["Leak", "leak", " HACK "]).keywords() == ("leak", "hack")
