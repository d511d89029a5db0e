"""
Business Logic Services
"""
from .desk import TicketDesk, DeskState, UploadedFile
from .sheet_client import SheetStoreClient
from .store import TicketStore, InMemoryTicketStore, build_store, parse_user_entries

__all__ = [
    "TicketDesk",
    "DeskState",
    "UploadedFile",
    "SheetStoreClient",
    "TicketStore",
    "InMemoryTicketStore",
    "build_store",
    "parse_user_entries",
]
