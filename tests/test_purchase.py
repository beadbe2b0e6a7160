import threading
from concurrent.futures import ThreadPoolExecutor
from types import SimpleNamespace

import pytest
from sqlalchemy import update
from sqlalchemy.exc import OperationalError

from eventy.dto.purchase import ContactInfo
from eventy.entities.sale import PurchaseContactInfo, SoldTicket
from eventy.entities.ticket import Ticket, TicketStatus
from eventy.entities.user import User
from eventy.exceptions import ErrorCode, StoreError, TicketConflictError, TicketNotFoundError
from eventy.repositories.ticket_repository import ticket_repository


def _status(session_factory, ticket_id):
    with session_factory() as session:
        return session.get(Ticket, ticket_id).status


class TestPurchase:

    def test_vip_scenario(self, db, vip_event, make_user):
        first_buyer = make_user(id=42)
        second_buyer = make_user(id=7)
        seat_one, seat_two = ticket_repository.list_available(db, vip_event.id)

        result = ticket_repository.purchase(db, [seat_one.ticket_id], first_buyer, "card")

        assert result.total_tickets == 1
        assert result.payment_method == "card"
        assert result.purchased_tickets[0].ticket_id == seat_one.ticket_id
        assert result.purchased_tickets[0].event_id == vip_event.id

        with pytest.raises(TicketConflictError) as exc_info:
            ticket_repository.purchase(db, [seat_one.ticket_id], second_buyer, "card")
        assert exc_info.value.code == ErrorCode.TICKET_ALREADY_SOLD
        assert exc_info.value.ticket_ids == (seat_one.ticket_id,)

        remaining = ticket_repository.list_available(db, vip_event.id)
        assert [ticket.ticket_id for ticket in remaining] == [seat_two.ticket_id]

        sale = db.query(SoldTicket).filter(SoldTicket.ticket_id == seat_one.ticket_id).one()
        assert sale.buyer_id == 42
        assert sale.id == result.purchased_tickets[0].sold_ticket_id

    def test_batch_purchase_creates_one_sale_per_ticket(self, db, vip_event, make_user):
        buyer = make_user()
        ids = [ticket.ticket_id for ticket in ticket_repository.list_available(db, vip_event.id)]

        result = ticket_repository.purchase(db, ids, buyer, "paypal")

        assert sorted(item.ticket_id for item in result.purchased_tickets) == sorted(ids)
        assert db.query(SoldTicket).count() == 2
        assert {row.status for row in db.query(Ticket.status).all()} == {TicketStatus.SOLD}

    def test_duplicate_ids_are_collapsed(self, db, vip_event, make_user):
        buyer = make_user()
        seat_one = ticket_repository.list_available(db, vip_event.id)[0]

        result = ticket_repository.purchase(db, [seat_one.ticket_id, seat_one.ticket_id], buyer, "card")

        assert result.total_tickets == 1
        assert db.query(SoldTicket).count() == 1

    def test_empty_ticket_list_is_rejected(self, db, make_user):
        with pytest.raises(ValueError):
            ticket_repository.purchase(db, [], make_user(), "card")

    def test_missing_tickets_are_reported_with_count(self, db, vip_event, make_user):
        buyer = make_user()
        seat_one = ticket_repository.list_available(db, vip_event.id)[0]

        with pytest.raises(TicketNotFoundError) as exc_info:
            ticket_repository.purchase(db, [seat_one.ticket_id, 9001, 9002], buyer, "card")

        assert exc_info.value.ticket_ids == (9001, 9002)
        assert exc_info.value.missing_count == 2
        assert exc_info.value.to_detail()["missing_count"] == 2
        assert db.query(SoldTicket).count() == 0
        assert ticket_repository.list_available(db, vip_event.id)[0].ticket_id == seat_one.ticket_id

    def test_batch_with_one_sold_ticket_sells_nothing(self, db, vip_event, make_user):
        buyer = make_user()
        rival = make_user()
        ticket_a, ticket_b = ticket_repository.list_available(db, vip_event.id)
        ticket_repository.purchase(db, [ticket_b.ticket_id], rival, "card")

        with pytest.raises(TicketConflictError) as exc_info:
            ticket_repository.purchase(db, [ticket_a.ticket_id, ticket_b.ticket_id], buyer, "card")

        assert exc_info.value.ticket_ids == (ticket_b.ticket_id,)
        assert db.get(Ticket, ticket_a.ticket_id).status == TicketStatus.AVAILABLE
        assert db.query(SoldTicket).filter(SoldTicket.buyer_id == buyer.id).count() == 0

    def test_store_failure_rolls_back_every_write(self, db, vip_event, make_user, monkeypatch):
        buyer = make_user()
        ids = [ticket.ticket_id for ticket in ticket_repository.list_available(db, vip_event.id)]
        contact = ContactInfo(
            name="Someone Else", email="else@example.com", phone="+1 555 0100",
            agree_to_terms=True, marketing_consent=True,
        )

        def failing_add_all(instances):
            raise OperationalError("INSERT INTO sold_tickets", {}, Exception("database is full"))

        monkeypatch.setattr(db, "add_all", failing_add_all)

        with pytest.raises(StoreError):
            ticket_repository.purchase(db, ids, buyer, "card", contact)

        monkeypatch.undo()
        db.expire_all()
        assert {row.status for row in db.query(Ticket.status).all()} == {TicketStatus.AVAILABLE}
        assert db.query(SoldTicket).count() == 0
        assert db.query(PurchaseContactInfo).count() == 0
        assert db.get(User, buyer.id).marketing_consent is False


class TestPurchaseContactInfo:

    def test_matching_contact_info_is_not_duplicated(self, db, vip_event, make_user):
        buyer = make_user()
        seat_one = ticket_repository.list_available(db, vip_event.id)[0]
        contact = ContactInfo(
            name=f" {buyer.full_name} ", email=buyer.email.upper(), phone=buyer.phone_number, agree_to_terms=True,
        )

        result = ticket_repository.purchase(db, [seat_one.ticket_id], buyer, "card", contact)

        assert result.purchase_contact_info_id is None
        assert db.query(PurchaseContactInfo).count() == 0
        assert db.query(SoldTicket).one().purchase_contact_info_id is None

    def test_different_contact_info_is_snapshotted_on_every_sale(self, db, vip_event, make_user):
        buyer = make_user()
        ids = [ticket.ticket_id for ticket in ticket_repository.list_available(db, vip_event.id)]
        contact = ContactInfo(
            name="Gift Recipient", email="gift@example.com", phone="+44 20 7946 0000", agree_to_terms=True,
        )

        result = ticket_repository.purchase(db, ids, buyer, "card", contact)

        snapshot = db.query(PurchaseContactInfo).one()
        assert snapshot.id == result.purchase_contact_info_id
        assert snapshot.name == "Gift Recipient"
        assert snapshot.agree_to_terms is True
        assert {sale.purchase_contact_info_id for sale in db.query(SoldTicket).all()} == {snapshot.id}

    def test_changed_marketing_consent_updates_profile(self, db, vip_event, make_user):
        buyer = make_user()
        seat_one = ticket_repository.list_available(db, vip_event.id)[0]
        contact = ContactInfo(
            name=buyer.full_name, email=buyer.email, phone=buyer.phone_number,
            agree_to_terms=True, marketing_consent=True,
        )

        ticket_repository.purchase(db, [seat_one.ticket_id], buyer, "card", contact)

        db.expire_all()
        assert db.get(User, buyer.id).marketing_consent is True
        assert db.query(PurchaseContactInfo).count() == 0

    def test_consent_left_out_keeps_profile(self, db, vip_event, make_user):
        buyer = make_user(marketing_consent=True)
        seat_one = ticket_repository.list_available(db, vip_event.id)[0]
        contact = ContactInfo(name=buyer.full_name, email=buyer.email, phone=buyer.phone_number, agree_to_terms=True)

        ticket_repository.purchase(db, [seat_one.ticket_id], buyer, "card", contact)

        db.expire_all()
        assert db.get(User, buyer.id).marketing_consent is True


class TestConcurrentPurchase:

    def test_only_one_of_many_buyers_gets_the_last_seat(self, session_factory, vip_event, make_user, available):
        buyers = [make_user() for _ in range(8)]
        ticket_id = available(vip_event.id)[0].ticket_id
        barrier = threading.Barrier(len(buyers))

        def attempt(buyer):
            barrier.wait()
            with session_factory() as session:
                try:
                    ticket_repository.purchase(session, [ticket_id], buyer, "card")
                    return "sold"
                except TicketConflictError:
                    return "conflict"

        with ThreadPoolExecutor(max_workers=len(buyers)) as pool:
            outcomes = list(pool.map(attempt, buyers))

        assert outcomes.count("sold") == 1
        assert outcomes.count("conflict") == len(buyers) - 1
        assert _status(session_factory, ticket_id) == TicketStatus.SOLD
        with session_factory() as session:
            assert session.query(SoldTicket).filter(SoldTicket.ticket_id == ticket_id).count() == 1

    def test_disjoint_purchases_all_succeed(self, session_factory, owner, make_event, make_user, available):
        event = make_event(owner, zones=(("Floor", "40.00", 6),))
        buyers = [make_user() for _ in range(6)]
        tickets = available(event.id)
        barrier = threading.Barrier(len(buyers))

        def attempt(pair):
            buyer, ticket = pair
            barrier.wait()
            with session_factory() as session:
                return ticket_repository.purchase(session, [ticket.ticket_id], buyer, "card").total_tickets

        with ThreadPoolExecutor(max_workers=len(buyers)) as pool:
            sold = list(pool.map(attempt, zip(buyers, tickets)))

        assert sold == [1] * len(buyers)
        assert available(event.id) == []


def _lose_the_race(db, monkeypatch, on_reread=None):
    """Make the conditional status update report no rows changed.

    on_reread runs once, after the rollback and before the tickets are read again.
    """
    real_execute = db.execute
    state = {"raced": False, "on_reread": on_reread}

    def execute(statement, *args, **kwargs):
        table = getattr(getattr(statement, "table", None), "name", None)
        if getattr(statement, "is_update", False) and table == "tickets":
            state["raced"] = True
            return SimpleNamespace(rowcount=0)
        if state["raced"] and state["on_reread"] and getattr(statement, "is_select", False):
            hook, state["on_reread"] = state["on_reread"], None
            hook()
        return real_execute(statement, *args, **kwargs)

    monkeypatch.setattr(db, "execute", execute)
    return state


class TestLostRace:

    def test_short_update_reports_the_tickets_sold_meanwhile(
        self, db, session_factory, vip_event, make_user, monkeypatch
    ):
        buyer = make_user()
        rival = make_user()
        ticket_a, ticket_b = ticket_repository.list_available(db, vip_event.id)
        contact = ContactInfo(
            name="Someone Else", email="else@example.com", phone="+1 555 0100",
            agree_to_terms=True, marketing_consent=True,
        )

        def rival_commits_seat_b():
            with session_factory() as session:
                session.execute(
                    update(Ticket).where(Ticket.id == ticket_b.ticket_id).values(status=TicketStatus.SOLD)
                )
                session.add(SoldTicket(ticket_id=ticket_b.ticket_id, buyer_id=rival.id, payment_method="card"))
                session.commit()

        state = _lose_the_race(db, monkeypatch, on_reread=rival_commits_seat_b)

        with pytest.raises(TicketConflictError) as exc_info:
            ticket_repository.purchase(db, [ticket_a.ticket_id, ticket_b.ticket_id], buyer, "card", contact)

        monkeypatch.undo()
        assert state["raced"] is True
        assert exc_info.value.ticket_ids == (ticket_b.ticket_id,)
        db.expire_all()
        assert db.get(Ticket, ticket_a.ticket_id).status == TicketStatus.AVAILABLE
        assert [sale.buyer_id for sale in db.query(SoldTicket).all()] == [rival.id]
        assert db.query(PurchaseContactInfo).count() == 0
        assert db.get(User, buyer.id).marketing_consent is False

    def test_short_update_with_nothing_sold_is_a_store_error(self, db, vip_event, make_user, monkeypatch):
        buyer = make_user()
        ids = [ticket.ticket_id for ticket in ticket_repository.list_available(db, vip_event.id)]
        contact = ContactInfo(
            name="Someone Else", email="else@example.com", phone="+1 555 0100",
            agree_to_terms=True, marketing_consent=True,
        )
        _lose_the_race(db, monkeypatch)

        with pytest.raises(StoreError):
            ticket_repository.purchase(db, ids, buyer, "card", contact)

        monkeypatch.undo()
        db.expire_all()
        assert {row.status for row in db.query(Ticket.status).all()} == {TicketStatus.AVAILABLE}
        assert db.query(SoldTicket).count() == 0
        assert db.query(PurchaseContactInfo).count() == 0
        assert db.get(User, buyer.id).marketing_consent is False

    def test_duplicate_sale_row_is_rolled_back(self, db, vip_event, make_user):
        buyer = make_user()
        rival = make_user()
        seat_one = ticket_repository.list_available(db, vip_event.id)[0]
        db.add(SoldTicket(ticket_id=seat_one.ticket_id, buyer_id=rival.id, payment_method="card"))
        db.commit()

        with pytest.raises(StoreError):
            ticket_repository.purchase(db, [seat_one.ticket_id], buyer, "card")

        db.expire_all()
        assert db.get(Ticket, seat_one.ticket_id).status == TicketStatus.AVAILABLE
        assert [sale.buyer_id for sale in db.query(SoldTicket).all()] == [rival.id]
