# File: tests/test_concurrency.py

"""
Races run against a file-backed SQLite database so every thread has its own
connection and session.
"""

import threading

import pytest
from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import sessionmaker

from portal.core.errors import PortalError, QuotaExceeded
from portal.models.base import Base
from portal.models.enums import PaymentPurpose, PaymentStatus, Role
from portal.models.issue import Issue
from portal.models.payment import Payment
from portal.models.user import User
from portal.services import issue_service, payment_service


@pytest.fixture
def file_sessions(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'portal.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


def _add_user(factory, subject, *, role=Role.CITIZEN, issues_created=0):
    with factory() as session:
        user = User(subject=subject, role=role, issues_created=issues_created)
        session.add(user)
        session.commit()
        return user.id


def _run_together(factory, count, call):
    """Start `count` threads at once; each gets its own session."""
    barrier = threading.Barrier(count)
    results = []

    def worker(n):
        with factory() as session:
            barrier.wait()
            try:
                results.append(call(session, n))
            except PortalError as e:
                results.append(e)

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(count)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)
    return results


def test_concurrent_creates_at_quota_edge(file_sessions):
    citizen_id = _add_user(file_sessions, "uid-edge", issues_created=2)

    def create(session, n):
        actor = session.get(User, citizen_id)
        return issue_service.create_issue(session, actor, {"title": f"Race {n}"}).id

    results = _run_together(file_sessions, 2, create)

    created = [r for r in results if isinstance(r, int)]
    refused = [r for r in results if isinstance(r, QuotaExceeded)]
    assert len(created) == 1
    assert len(refused) == 1

    with file_sessions() as session:
        assert session.scalar(select(func.count()).select_from(Issue)) == 1
        assert session.get(User, citizen_id).issues_created == 3


def test_concurrent_confirms_apply_effect_once(file_sessions, gateway, monkeypatch):
    citizen_id = _add_user(file_sessions, "uid-payer")

    with file_sessions() as session:
        citizen = session.get(User, citizen_id)
        issue = issue_service.create_issue(session, citizen, {"title": "Broken lamp"})
        issue_id = issue.id
        checkout = payment_service.initiate_boost_checkout(session, gateway, citizen, issue_id)
    gateway.mark_paid(checkout.session_id)

    applied = []
    apply_effect = payment_service._apply_effect

    def counting_apply(db, payment):
        applied.append(payment.id)
        apply_effect(db, payment)

    monkeypatch.setattr(payment_service, "_apply_effect", counting_apply)

    results = _run_together(
        file_sessions,
        6,
        lambda session, n: payment_service.confirm_payment(session, gateway, checkout.session_id),
    )

    assert len(results) == 6
    assert all(r == results[0] for r in results)
    assert results[0].purpose is PaymentPurpose.BOOST
    assert results[0].target == issue_id
    assert len(applied) == 1

    with file_sessions() as session:
        assert session.scalar(select(func.count()).select_from(Payment)) == 1
        payment = payment_service.get_by_session(session, checkout.session_id)
        assert payment.status is PaymentStatus.COMPLETED
        assert session.get(Issue, issue_id).is_boosted is True


def test_concurrent_upvotes_from_distinct_users(file_sessions):
    owner_id = _add_user(file_sessions, "uid-owner")
    voter_ids = [_add_user(file_sessions, f"uid-voter-{n}") for n in range(5)]

    with file_sessions() as session:
        issue_id = issue_service.create_issue(
            session, session.get(User, owner_id), {"title": "Flooded underpass"}
        ).id

    def vote(session, n):
        return issue_service.upvote_issue(session, session.get(User, voter_ids[n]), issue_id).id

    results = _run_together(file_sessions, len(voter_ids), vote)

    assert results == [issue_id] * len(voter_ids)
    with file_sessions() as session:
        assert session.get(Issue, issue_id).upvotes == len(voter_ids)
        assert sorted(issue_service.list_votes(session, issue_id)) == sorted(voter_ids)
