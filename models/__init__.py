from models.users import User
from models.refresh_tokens import RefreshToken
from models.orders import Order
from models.rentals import Rental
from models.deposits import Deposit
from models.catalog import Service
from models.ledger_entries import LedgerEntry
from models.tickets import Ticket, TicketMessage

__all__ = ["User", "RefreshToken", "Order", "Rental", "Deposit", "Service",
           "LedgerEntry", "Ticket", "TicketMessage"]
