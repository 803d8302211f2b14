from __future__ import annotations

import random

import pytest

from securetrace.core.config import Config
from securetrace.core.events import LogEventType, Severity
from securetrace.core.exceptions import (
    AuthenticationError,
    EnvelopeFormatError,
    HandshakeFailure,
    LogChainError,
    SessionNotSecureError,
)
from securetrace.forensics.chain import ForensicLogChain
from securetrace.security.symmetric import encrypt
from securetrace.session.context import REMOTE_SENDER, SecureSession
from securetrace.session.handshake import HandshakeState
from securetrace.session.pipeline import WELCOME_NOTICE


def _quiet(cfg: Config) -> Config:
    return cfg.model_copy(update={"echo": cfg.echo.model_copy(update={"enabled": False})})


@pytest.fixture()
def session(test_config: Config, fast_handshake) -> SecureSession:
    s = SecureSession(_quiet(test_config), user_id="alice", handshake_factory=fast_handshake)
    yield s
    s.close()


def test_send_before_handshake_is_rejected(session: SecureSession) -> None:
    assert session.state is HandshakeState.INIT
    with pytest.raises(SessionNotSecureError):
        session.send_message("hello")
    with pytest.raises(SessionNotSecureError):
        session.on_incoming_ciphertext("AAAA:AAAA")
    assert session.messages() == ()
    assert len(session.get_log_entries()) == 0


def test_full_flow(session: SecureSession) -> None:
    session.login()
    result = session.start_handshake()
    assert result.is_secure
    assert session.is_secure
    assert session.fingerprint == result.fingerprint

    notice = session.messages()[0]
    assert notice.is_system_notice and notice.plaintext == WELCOME_NOTICE

    sent = session.send_message("the leak is ready")
    assert sent.plaintext == "the leak is ready"

    types = [e.event_type for e in session.get_log_entries()]
    assert types == [
        LogEventType.LOGIN,
        LogEventType.KEY_EXCHANGE,
        LogEventType.SUSPICIOUS_KEYWORD,
        LogEventType.MESSAGE_SENT,
    ]
    assert session.verify_chain_integrity()

    analysis = session.compute_risk_analysis()
    assert analysis.score == 15 + 10


def test_handshake_twice_requires_new_session(session: SecureSession) -> None:
    session.start_handshake()
    with pytest.raises(HandshakeFailure):
        session.start_handshake()


def test_failed_handshake_blocks_messaging(test_config: Config, rsa_keypair) -> None:
    def factory(chain, **kwargs):
        from securetrace.session.handshake import Handshake

        def unwrap_fn(*_a):
            raise ValueError("corrupt")

        return Handshake(chain, keypair_factory=lambda: rsa_keypair, unwrap_fn=unwrap_fn, **kwargs)

    with SecureSession(_quiet(test_config), handshake_factory=factory) as s:
        with pytest.raises(HandshakeFailure):
            s.start_handshake()
        assert s.state is HandshakeState.FAILED
        with pytest.raises(SessionNotSecureError):
            s.send_message("hello")
        last = s.get_log_entries()[-1]
        assert last.severity is Severity.CRITICAL
        assert last.metadata["error"] == "RSA Key Exchange Failed"


def test_incoming_wire_string(session: SecureSession) -> None:
    session.start_handshake()
    key = session._key
    wire = encrypt(key, "from bob").to_wire()
    msg = session.on_incoming_ciphertext(wire, "bob")
    assert msg.plaintext == "from bob"
    assert session.messages()[-1] == msg


def test_incoming_tampered_is_rejected_and_session_continues(session: SecureSession) -> None:
    session.start_handshake()
    env = encrypt(session._key, "from bob")
    bad = type(env)(nonce=env.nonce, ciphertext=bytes([env.ciphertext[0] ^ 1]) + env.ciphertext[1:])

    with pytest.raises(AuthenticationError):
        session.on_incoming_ciphertext(bad, "bob")
    with pytest.raises(EnvelopeFormatError):
        session.on_incoming_ciphertext("garbage", "bob")

    anomalies = [e.metadata["type"] for e in session.get_log_entries() if e.event_type is LogEventType.ANOMALY_DETECTED]
    assert anomalies == ["DECRYPTION_FAILED", "MALFORMED_ENVELOPE"]
    assert len(session.messages()) == 1  # welcome notice only

    session.send_message("still here")


def test_report_incident_and_keywords(session: SecureSession) -> None:
    session.start_handshake()
    entry = session.report_incident("suspicious request")
    assert entry.severity is Severity.CRITICAL
    assert entry.metadata == {
        "type": "USER_REPORTED_INCIDENT",
        "reason": "suspicious request",
        "sessionFingerprint": session.fingerprint,
    }

    session.add_keyword("invoice")
    assert "invoice" in session.keywords()
    session.remove_keyword("invoice")
    assert "invoice" not in session.keywords()


def test_close_logs_logout_destroys_key_and_closes_chain(session: SecureSession) -> None:
    session.start_handshake()
    key = session._key
    session.close()
    session.close()  # idempotent

    assert session.closed
    assert not session.is_secure
    assert key.destroyed
    assert session.get_log_entries()[-1].event_type is LogEventType.LOGOUT
    assert session.verify_chain_integrity()
    with pytest.raises(SessionNotSecureError):
        session.send_message("too late")
    with pytest.raises(SessionNotSecureError):
        session.start_handshake()
    with pytest.raises(LogChainError):
        session.log_event(LogEventType.LOGIN, {})


def test_shared_chain_is_left_open(test_config: Config, fast_handshake) -> None:
    shared = ForensicLogChain()
    with SecureSession(_quiet(test_config), chain=shared, handshake_factory=fast_handshake) as s:
        s.start_handshake()
    assert not shared.closed
    assert shared.entries()[-1].event_type is LogEventType.LOGOUT


def test_echo_reply_flows_through_receive_path(test_config: Config, fast_handshake) -> None:
    cfg = test_config.model_copy(update={"echo": test_config.echo.model_copy(update={"delay_s": 0.01})})
    with SecureSession(cfg, handshake_factory=fast_handshake, rng=random.Random(1)) as s:
        s.start_handshake()
        s.send_message("ping")
        s.echo.flush(timeout=5.0)

        reply = s.messages()[-1]
        assert reply.sender_id == REMOTE_SENDER
        assert reply.plaintext in cfg.echo.responses
        assert s.get_log_entries()[-1].event_type is LogEventType.MESSAGE_DECRYPTED
        assert s.verify_chain_integrity()


def test_echo_after_close_is_noop(test_config: Config, fast_handshake) -> None:
    cfg = test_config.model_copy(update={"echo": test_config.echo.model_copy(update={"delay_s": 30.0})})
    s = SecureSession(cfg, handshake_factory=fast_handshake)
    s.start_handshake()
    s.send_message("ping")
    assert s.echo.pending == 1
    s.close()
    assert s.echo.pending == 0
    assert s._echo_deliver("late") is None
    assert s.get_log_entries()[-1].event_type is LogEventType.LOGOUT
