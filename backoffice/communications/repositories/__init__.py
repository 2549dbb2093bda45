from .communication_repo import CommunicationRepository

__all__ = ['CommunicationRepository']
