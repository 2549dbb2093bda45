from .communication_service import CommunicationService

__all__ = ['CommunicationService']
