import re
import uuid

import pytest
from sqlalchemy.exc import OperationalError

from cash_exchange.exceptions import (
    AmountMismatchError,
    DirectionMismatchError,
    HelperBusyError,
    InternalError,
    NoActiveRequestError,
    RequestNotFoundError,
    RequestUnavailableError,
    SelfAcceptError,
)
from cash_exchange.models import Direction, RequestStatus
from cash_exchange.services import ExchangeService, generate_completion_code
from cash_exchange.services import acceptance

from .conftest import P1, P2


def failing_write(*args, **kwargs):
    raise OperationalError("UPDATE exchange_requests", {}, Exception("database is locked"))


class TestCompletionCode:
    def test_six_digits(self):
        for _ in range(50):
            assert re.fullmatch(r"\d{6}", generate_completion_code())

    def test_zero_padded(self, monkeypatch):
        monkeypatch.setattr(acceptance.secrets, "randbelow", lambda n: 42)
        assert generate_completion_code() == "000042"


class TestAccept:
    def test_accept_links_both_requests(self, service, scenario, clock):
        alice, bob, alice_request, bob_request = scenario
        result = service.accept(bob.id, alice_request.id)

        target = result.request
        assert target.id == alice_request.id
        assert target.status == RequestStatus.ACCEPTED
        assert target.helper_id == bob.id
        assert target.linked_request_id == bob_request.id
        assert target.accepted_at == clock.now()
        assert re.fullmatch(r"\d{6}", result.completion_code)
        assert target.completion_code == result.completion_code

        own = result.helper_request
        assert own.id == bob_request.id
        assert own.status == RequestStatus.ACCEPTED
        assert own.linked_request_id == alice_request.id
        assert own.helper_id is None
        assert own.completion_code is None

    def test_unknown_request(self, service, scenario):
        _, bob, _, _ = scenario
        with pytest.raises(RequestNotFoundError):
            service.accept(bob.id, uuid.uuid4())

    def test_cannot_accept_own_request(self, service, scenario):
        alice, _, alice_request, _ = scenario
        with pytest.raises(SelfAcceptError):
            service.accept(alice.id, alice_request.id)

    def test_self_check_comes_before_availability(self, service, make_user):
        user = make_user()
        request = service.create_request(user.id, 100, Direction.CASH_TO_ONLINE, P1)
        service.cancel(user.id, request.id)
        with pytest.raises(SelfAcceptError):
            service.accept(user.id, request.id)

    def test_cancelled_target_is_unavailable(self, service, scenario):
        alice, bob, alice_request, _ = scenario
        service.cancel(alice.id, alice_request.id)
        with pytest.raises(RequestUnavailableError):
            service.accept(bob.id, alice_request.id)

    def test_expired_target_is_unavailable(self, service, scenario, clock):
        _, bob, alice_request, _ = scenario
        clock.advance(minutes=30)
        with pytest.raises(RequestUnavailableError):
            service.accept(bob.id, alice_request.id)
        service.db.refresh(alice_request)
        assert alice_request.helper_id is None

    def test_helper_needs_own_request(self, service, scenario, make_user):
        _, _, alice_request, _ = scenario
        carol = make_user("carol")
        with pytest.raises(NoActiveRequestError):
            service.accept(carol.id, alice_request.id)

    def test_helper_request_must_be_opposite_direction(self, service, scenario, make_user):
        _, _, alice_request, _ = scenario
        carol = make_user("carol")
        service.create_request(carol.id, 500, Direction.CASH_TO_ONLINE, P2)
        with pytest.raises(DirectionMismatchError):
            service.accept(carol.id, alice_request.id)

    def test_helper_amount_must_cover_target(self, service, scenario, make_user):
        _, _, alice_request, _ = scenario
        carol = make_user("carol", balance=1000)
        service.create_request(carol.id, 499, Direction.ONLINE_TO_CASH, P2)
        with pytest.raises(AmountMismatchError):
            service.accept(carol.id, alice_request.id)

    def test_exact_amount_is_enough(self, service, scenario, make_user):
        _, _, alice_request, _ = scenario
        carol = make_user("carol", balance=500)
        service.create_request(carol.id, 500, Direction.ONLINE_TO_CASH, P2)
        assert service.accept(carol.id, alice_request.id).request.helper_id == carol.id

    def test_busy_helper_cannot_accept_again(self, service, scenario, make_user):
        _, bob, alice_request, _ = scenario
        service.accept(bob.id, alice_request.id)
        dave = make_user("dave")
        other = service.create_request(dave.id, 100, Direction.CASH_TO_ONLINE, P1)
        with pytest.raises(HelperBusyError):
            service.accept(bob.id, other.id)

    def test_busy_check_comes_first(self, service, scenario):
        _, bob, alice_request, _ = scenario
        service.accept(bob.id, alice_request.id)
        with pytest.raises(HelperBusyError):
            service.accept(bob.id, uuid.uuid4())

    def test_requester_with_accepted_request_is_busy(self, service, scenario, make_user):
        alice, bob, alice_request, _ = scenario
        service.accept(bob.id, alice_request.id)
        dave = make_user("dave", balance=1000)
        other = service.create_request(dave.id, 100, Direction.ONLINE_TO_CASH, P1)
        with pytest.raises(HelperBusyError):
            service.accept(alice.id, other.id)

    def test_accepted_target_is_unavailable_to_others(self, service, scenario, make_user):
        _, bob, alice_request, _ = scenario
        service.accept(bob.id, alice_request.id)
        carol = make_user("carol", balance=1000)
        service.create_request(carol.id, 800, Direction.ONLINE_TO_CASH, P2)
        with pytest.raises(RequestUnavailableError):
            service.accept(carol.id, alice_request.id)


class TestAcceptRace:
    def test_stale_reader_loses_the_conditional_write(self, service, scenario, make_user, session_factory, clock, settings):
        _, bob, alice_request, bob_request = scenario
        carol = make_user("carol", balance=1000)
        service.create_request(carol.id, 800, Direction.ONLINE_TO_CASH, P2)

        # Carol wins on her own connection; Bob's session still holds the CREATED row in memory.
        other_session = session_factory()
        try:
            ExchangeService(other_session, clock=clock, settings=settings).accept(carol.id, alice_request.id)
        finally:
            other_session.close()

        with pytest.raises(RequestUnavailableError):
            service.accept(bob.id, alice_request.id)

        service.db.refresh(alice_request)
        service.db.refresh(bob_request)
        assert alice_request.helper_id == carol.id
        assert bob_request.status == RequestStatus.CREATED
        assert bob_request.linked_request_id is None


class TestAcceptIsAtomic:
    def test_failed_link_write_rolls_back_the_claim(self, service, scenario, monkeypatch):
        _, bob, alice_request, bob_request = scenario
        monkeypatch.setattr(service.store, "link_helper_request", failing_write)
        with pytest.raises(InternalError):
            service.accept(bob.id, alice_request.id)
        monkeypatch.undo()

        service.db.refresh(alice_request)
        service.db.refresh(bob_request)
        assert alice_request.status == RequestStatus.CREATED
        assert alice_request.helper_id is None
        assert alice_request.completion_code is None
        assert bob_request.status == RequestStatus.CREATED

        assert service.accept(bob.id, alice_request.id).request.helper_id == bob.id

    def test_helper_request_taken_mid_accept(self, service, scenario, make_user, session_factory, clock, settings, monkeypatch):
        alice, bob, alice_request, bob_request = scenario
        xavier = make_user("xavier")
        xavier_request = service.create_request(xavier.id, 1500, Direction.CASH_TO_ONLINE, P1)

        original_claim = service.store.claim

        def claim_after_xavier_takes_bob(*args, **kwargs):
            # Xavier claims Bob's own request after Bob's checks passed.
            other_session = session_factory()
            try:
                ExchangeService(other_session, clock=clock, settings=settings).accept(xavier.id, bob_request.id)
            finally:
                other_session.close()
            return original_claim(*args, **kwargs)

        monkeypatch.setattr(service.store, "claim", claim_after_xavier_takes_bob)
        with pytest.raises(NoActiveRequestError):
            service.accept(bob.id, alice_request.id)
        monkeypatch.undo()

        service.db.refresh(alice_request)
        service.db.refresh(bob_request)
        assert alice_request.status == RequestStatus.CREATED
        assert alice_request.helper_id is None
        assert alice_request.linked_request_id is None
        assert bob_request.status == RequestStatus.ACCEPTED
        assert bob_request.helper_id == xavier.id
        assert bob_request.linked_request_id == xavier_request.id

        assert service.cancel(alice.id, alice_request.id).status == RequestStatus.CANCELLED
