import pytest

from eventy.entities.ticket import IllegalTransitionError, Ticket, TicketStatus


class TestTicketStatus:

    def test_available_can_be_sold(self):
        assert TicketStatus.AVAILABLE.can_transition_to(TicketStatus.SOLD)
        assert TicketStatus.AVAILABLE.transition_to(TicketStatus.SOLD) is TicketStatus.SOLD

    @pytest.mark.parametrize("source,target", [
        (TicketStatus.SOLD, TicketStatus.AVAILABLE),
        (TicketStatus.SOLD, TicketStatus.SOLD),
        (TicketStatus.AVAILABLE, TicketStatus.AVAILABLE),
    ])
    def test_every_other_move_is_illegal(self, source, target):
        assert not source.can_transition_to(target)
        with pytest.raises(IllegalTransitionError):
            source.transition_to(target)

    def test_status_set_is_closed(self):
        assert {status.value for status in TicketStatus} == {"AVAILABLE", "SOLD"}
        with pytest.raises(ValueError):
            TicketStatus("HELD")


class TestTicketStatusOnModel:

    def test_loaded_ticket_can_be_sold_once(self, db, vip_event):
        ticket = db.query(Ticket).filter(Ticket.seat_number == 1).first()

        ticket.status = TicketStatus.SOLD
        assert ticket.status == TicketStatus.SOLD

        with pytest.raises(IllegalTransitionError):
            ticket.status = TicketStatus.AVAILABLE
        db.rollback()

    def test_unknown_status_is_rejected(self, db, vip_event):
        ticket = db.query(Ticket).first()

        with pytest.raises(ValueError):
            ticket.status = "REFUNDED"
        db.rollback()
