from barbershop.clients.email import ConsoleEmailSender, EmailMessage, ResendEmailSender
from barbershop.clients.errors import (
    EmailDeliveryError,
    FunctionCallError,
    NetworkError,
    ServerError,
    BackendError,
    UnknownError,
)
from barbershop.clients.functions import FunctionsClient
from barbershop.clients.store import InMemoryStore, SupabaseStore

__all__ = [
    "ConsoleEmailSender",
    "EmailMessage",
    "ResendEmailSender",
    "EmailDeliveryError",
    "FunctionCallError",
    "NetworkError",
    "ServerError",
    "BackendError",
    "UnknownError",
    "FunctionsClient",
    "InMemoryStore",
    "SupabaseStore",
]
